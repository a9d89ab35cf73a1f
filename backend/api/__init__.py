"""
API module - REST endpoints for the GBV case tracker
"""
from . import auth, users, cases, tasks, analytics, audit

__all__ = ["auth", "users", "cases", "tasks", "analytics", "audit"]
