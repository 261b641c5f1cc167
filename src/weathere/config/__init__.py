"""Configuration constants, runtime config and record schemas."""
