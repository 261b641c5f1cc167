"""Test configuration and shared fixtures."""

import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from weathere.data_pipeline.storage.database import FeedbackDatabase
from weathere.errors import GenerationFailure

FORECAST_TIME = datetime(2024, 1, 1, 10, 25, 13, 500, tzinfo=timezone.utc)
FORECAST_HOUR = datetime(2024, 1, 1, 10, tzinfo=timezone.utc)


class FakeSummarizer:
    """Records every call; returns ``text`` or raises ``error``."""

    label = "fake-model"

    def __init__(self, text="X", error=None):
        self.text = text
        self.error = error
        self.calls = []

    def summarize(self, system_context, prompt, max_output_tokens):
        self.calls.append((system_context, prompt, max_output_tokens))
        if self.error is not None:
            raise GenerationFailure(self.error)
        return self.text


class FirstChoice:
    """Deterministic random source: always picks the first candidate."""

    def choice(self, seq):
        return seq[0]


@pytest.fixture
def temp_data_dir():
    """Create a temporary directory for test data."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def database(temp_data_dir):
    return FeedbackDatabase(temp_data_dir / "feedback.db")


@pytest.fixture
def location(database):
    return database.get_or_create_location("Testville, TS", 10.0, 20.0, "UTC")


@pytest.fixture
def fake_summarizer():
    return FakeSummarizer()


@pytest.fixture
def first_choice():
    return FirstChoice()
