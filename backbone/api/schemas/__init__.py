"""Pydantic models describing the response envelope wire shape."""
