"""HTTP layer: application factory, middleware pipeline and envelope codec."""
