"""Core infrastructure package for shared application functionality.

- **config**: Immutable settings loaded from the environment
- **context**: Request context and correlation ID management
- **exceptions**: Closed error taxonomy with wire codes and HTTP statuses
- **error_context**: Sensitive data sanitization for safe logging
- **logging**: Loguru sink configuration and the service logger handle
- **observability**: Optional OpenTelemetry tracing
"""
