"""Process-level infrastructure: listener binding and the service lifecycle."""
