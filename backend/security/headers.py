"""
Security Headers Middleware
Case data must never be cached, framed or sniffed by the browser
"""
from typing import Callable, Dict, Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

DISABLED_FEATURES = ("geolocation", "microphone", "camera", "payment", "usb")


class SecurityHeadersConfig:
    """Headers sent on every response, plus the HSTS and /api cache policy"""

    def __init__(self, environment: str = "production", hsts_max_age: int = 31536000):
        self.environment = environment
        self.hsts = f"max-age={hsts_max_age}; includeSubDomains"
        self.static_headers: Dict[str, str] = {
            "X-Frame-Options": "DENY",
            "X-Content-Type-Options": "nosniff",
            "Referrer-Policy": "no-referrer",
            "Permissions-Policy": ", ".join(f"{feature}=()" for feature in DISABLED_FEATURES),
        }
        self.api_cache_control = "no-store"

    def use_hsts(self, request: Request) -> bool:
        return request.url.scheme == "https" or self.environment == "production"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamp security headers onto every response"""

    def __init__(self, app: ASGIApp, config: Optional[SecurityHeadersConfig] = None):
        super().__init__(app)
        self.config = config or SecurityHeadersConfig()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers.update(self.config.static_headers)
        if self.config.use_hsts(request):
            response.headers["Strict-Transport-Security"] = self.config.hsts
        # /api responses carry victim data
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = self.config.api_cache_control

        return response
