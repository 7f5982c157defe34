"""API-related constants."""

# HTTP Headers
CORRELATION_ID_HEADER = "X-Correlation-ID"
RETRY_AFTER_HEADER = "Retry-After"

# Routes
HEALTH_PATH = "/health"
API_V1_PREFIX = "/api/v1"

# Client address resolution, most trusted first
TRUE_CLIENT_IP_HEADER = "true-client-ip"
REAL_IP_HEADER = "x-real-ip"
FORWARDED_FOR_HEADER = "x-forwarded-for"

# Request logging
MAX_USER_AGENT_LENGTH = 200
