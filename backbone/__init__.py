"""Backbone - request-handling core of a JSON web API service.

The service accepts HTTP connections, runs every request through a fixed
middleware pipeline, dispatches to route handlers and answers in a uniform
success/error envelope. Shutdown drains in-flight requests before exit.

Architecture Overview:
- **API Layer**: FastAPI application, middleware pipeline and envelope codec
- **Core Layer**: Configuration, error taxonomy, logging and tracing
- **Infrastructure Layer**: Listener binding and the service lifecycle
"""
