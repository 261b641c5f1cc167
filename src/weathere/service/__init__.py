"""Aggregation, summarization and the HTTP surface."""
