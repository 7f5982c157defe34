"""Middleware pipeline, listed outermost first.

- **in_flight**: Counts active requests for the shutdown drain
- **request_context**: Correlation ID propagation and log binding
- **real_ip**: Client address resolution from proxy headers
- **security_headers**: Hardening headers on every response
- **request_logging**: Start/completion records with timing
- **recoverer**: Converts escaped faults into the internal error envelope
- **timeout**: Per-request processing deadline
- **cors**: Cross-origin allow-list
- **rate_limit**: Process-wide token bucket

Exception handlers for AppError and framework HTTP errors live in
**error_handler** and run inside the router.
"""
