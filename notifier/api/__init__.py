"""FastAPI application for unsubscribe and tracking callbacks."""

from .app import create_app

__all__ = ["create_app"]
