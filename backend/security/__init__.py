"""
Security Module for the GBV case tracker

Usage:
    from security import SecurityHeadersMiddleware, SecurityHeadersConfig
"""

from .headers import SecurityHeadersMiddleware, SecurityHeadersConfig

__all__ = [
    "SecurityHeadersMiddleware",
    "SecurityHeadersConfig",
]
