"""Feedback storage, demo seeding and the synthetic activity scheduler."""
