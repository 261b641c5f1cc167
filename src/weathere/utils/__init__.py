"""Shared helpers: logging, time bucketing and config file IO."""
