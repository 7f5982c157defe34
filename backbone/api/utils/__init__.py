"""API utilities: JSON rendering and the envelope codec."""
