"""Hourly forecast-accuracy feedback with cached summaries and demo activity."""

__version__ = "1.0.0"
