"""FastAPI application for the feedback service."""

from .feedback_api import create_app

__all__ = ["create_app"]
