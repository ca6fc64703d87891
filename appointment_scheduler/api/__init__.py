"""
HTTP layer - FastAPI application exposing free slots and events.
"""

from .app import create_app

__all__ = ["create_app"]
