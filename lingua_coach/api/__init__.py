"""
API module for Lingua Coach.

This module contains the HTTP endpoints:
- Practice feedback and conversation turns
- Level listing
- Health and readiness checks
"""

from .routes import router

__all__ = [
    "router",
]
