"""Hourly feedback aggregation and accuracy-summary decisions.

Statistics are recomputed from the stored records on every read. The summary
for a (location, hour) bucket is produced by the first rule that applies:

============================  ===============================  ===========
condition                     ``aiSummary``                    cached
============================  ===============================  ===========
unknown location / no data    ``None``                         no
cache entry exists            cached text                      (already)
no summarizer configured,     deterministic fallback text      no
too few meaningful comments,
or too few unique users
summarizer succeeds           generated text                   yes
summarizer fails              ``None``                         no
============================  ===============================  ===========

The fallback is never cached so that a later read with more data still gets
a chance at a generated summary.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from weathere.config.config import (
    MIN_MEANINGFUL_COMMENTS,
    MIN_UNIQUE_USERS_FOR_AI,
    SUMMARY_MAX_OUTPUT_TOKENS,
    SUMMARY_SYSTEM_CONTEXT,
    SUMMARY_WINDOW,
)
from weathere.config.schemas import AggregatedStats, LocationRef, SummaryOutcome, SummaryView
from weathere.data_pipeline.storage.database import FeedbackDatabase
from weathere.errors import GenerationFailure, UnavailableError
from weathere.robustness.comment_filter import CommentFilter
from weathere.service.summarizer import Summarizer
from weathere.utils.datetime import bucket_hour, to_utc
from weathere.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SummaryPolicy:
    min_meaningful_comments: int = MIN_MEANINGFUL_COMMENTS
    min_unique_users: int = MIN_UNIQUE_USERS_FOR_AI
    max_output_tokens: int = SUMMARY_MAX_OUTPUT_TOKENS
    window: str = SUMMARY_WINDOW


def fallback_summary(stats: AggregatedStats) -> str:
    total = stats.total_feedback
    entries = "entry" if total == 1 else "entries"
    return (
        f"Based on {total} feedback {entries} so far, "
        f"{stats.likes} like(s) and {stats.dislikes} dislike(s) have been recorded for this hour. "
        "There is not yet enough consistent commentary from multiple users to generate an AI summary."
    )


def build_summary_prompt(
    location_name: str,
    forecast_hour: datetime,
    stats: AggregatedStats,
    comments: List[str],
) -> str:
    numbered = "\n".join(f"{i}. {c}" for i, c in enumerate(comments, start=1))
    return f"""
You are analyzing user comments about how accurate the current weather forecast is.

Location: {location_name}
Forecast time (normalized hour): {to_utc(forecast_hour).isoformat()}

Stats:
- Total feedback entries: {stats.total_feedback}
- Likes (forecast accurate): {stats.likes}
- Dislikes (forecast inaccurate): {stats.dislikes}
- Unique users: {stats.unique_users}

User comments (only a sample of meaningful ones):
{numbered}

Task:
Provide a concise 2-3 sentence summary that:
- describes how accurate the forecast seems compared to real conditions,
- clearly states the overall sentiment (positive, mixed, or negative),
- notes any recurring issues users mention (e.g. wrong temperature, wrong precipitation, timing off),
- and mentions when the sample size is small or feedback is sparse, instead of overgeneralizing.

Respond as plain text with no bullet points.
""".strip()


class FeedbackSummaryService:
    """Builds the summary view for a location and forecast hour."""

    def __init__(
        self,
        database: FeedbackDatabase,
        summarizer: Optional[Summarizer] = None,
        comment_filter: Optional[CommentFilter] = None,
        policy: Optional[SummaryPolicy] = None,
    ):
        self.database = database
        self.summarizer = summarizer
        self.comment_filter = comment_filter or CommentFilter()
        self.policy = policy or SummaryPolicy()

    def get_summary_view(self, location_name: str, forecast_time: datetime) -> SummaryView:
        """Return stats, comments and the accuracy summary for one hour bucket.

        Raises:
            UnavailableError: if the store cannot be read.
        """
        location = self.database.find_location(location_name)
        if location is None:
            return SummaryView()

        forecast_hour = bucket_hour(forecast_time)
        records = self.database.list_feedback(location.id, forecast_hour)
        stats = AggregatedStats.from_records(records)

        cached = self.database.get_summary(location.id, forecast_hour, self.policy.window)
        if cached is not None:
            return SummaryView(stats, records, cached.summary_text, SummaryOutcome.CACHED)

        if stats.total_feedback == 0:
            return SummaryView(stats, records, None, SummaryOutcome.EMPTY)

        meaningful = self.comment_filter.meaningful(r.comment_text for r in records)
        if (
            self.summarizer is None
            or len(meaningful) < self.policy.min_meaningful_comments
            or stats.unique_users < self.policy.min_unique_users
        ):
            return SummaryView(stats, records, fallback_summary(stats), SummaryOutcome.FALLBACK)

        text = self._generate(location, forecast_hour, stats, meaningful)
        outcome = SummaryOutcome.GENERATED if text else SummaryOutcome.UNAVAILABLE
        return SummaryView(stats, records, text, outcome)

    def _generate(
        self,
        location: LocationRef,
        forecast_hour: datetime,
        stats: AggregatedStats,
        comments: List[str],
    ) -> Optional[str]:
        prompt = build_summary_prompt(location.name, forecast_hour, stats, comments)
        try:
            text = self.summarizer.summarize(
                SUMMARY_SYSTEM_CONTEXT, prompt, self.policy.max_output_tokens
            )
        except GenerationFailure as e:
            logger.error(f"Summary generation failed for {location.name} at {forecast_hour}: {e}")
            return None
        except Exception as e:
            logger.error(f"Summarizer raised unexpectedly for {location.name} at {forecast_hour}: {e!r}")
            return None

        text = (text or "").strip()
        if not text:
            logger.error(f"Summary generation returned no text for {location.name} at {forecast_hour}")
            return None

        try:
            self.database.upsert_summary(
                location.id,
                forecast_hour,
                stats,
                text,
                self.summarizer.label,
                self.policy.window,
            )
        except UnavailableError as e:
            logger.error(f"Failed to cache summary for {location.name} at {forecast_hour}: {e}")
        return text
