"""Keyed storage for feedback, locations and summary cache."""

from .database import FeedbackDatabase

__all__ = ["FeedbackDatabase"]
