"""Security headers middleware for adding common security headers to responses."""

from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from backbone.core.constants import DEFAULT_HSTS_MAX_AGE

DEFAULT_CONTENT_SECURITY_POLICY = "default-src 'none'; frame-ancestors 'none'"
DEFAULT_REFERRER_POLICY = "no-referrer"
DEFAULT_PERMISSIONS_POLICY = "camera=(), geolocation=(), microphone=()"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    Headers added:
    - X-Content-Type-Options: nosniff
    - X-Frame-Options: DENY
    - X-XSS-Protection: 1; mode=block
    - Strict-Transport-Security (if HSTS enabled)
    - Content-Security-Policy, Referrer-Policy, Permissions-Policy
    - Cache-Control: no-store and Pragma: no-cache

    Args:
        app: The ASGI application to wrap.
        hsts_enabled: Whether to include the HSTS header.
        hsts_max_age: Max age for HSTS in seconds (defaults to 1 year).
        hsts_include_subdomains: Whether to include subdomains in HSTS.
        content_security_policy: Value of the Content-Security-Policy header.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        hsts_enabled: bool = True,
        hsts_max_age: int = DEFAULT_HSTS_MAX_AGE,
        hsts_include_subdomains: bool = True,
        content_security_policy: str = DEFAULT_CONTENT_SECURITY_POLICY,
    ) -> None:
        super().__init__(app)
        self.headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "X-XSS-Protection": "1; mode=block",
            "Content-Security-Policy": content_security_policy,
            "Referrer-Policy": DEFAULT_REFERRER_POLICY,
            "Permissions-Policy": DEFAULT_PERMISSIONS_POLICY,
            "Cache-Control": "no-store",
            "Pragma": "no-cache",
        }
        if hsts_enabled:
            hsts = f"max-age={hsts_max_age}"
            if hsts_include_subdomains:
                hsts += "; includeSubDomains"
            self.headers["Strict-Transport-Security"] = hsts

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Add security headers to the response.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            Response: The HTTP response with security headers added.
        """
        response = await call_next(request)
        response.headers.update(self.headers)
        return response
