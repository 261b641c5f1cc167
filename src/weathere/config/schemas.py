"""Schema definitions for structured data used in the project."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class Rating(str, Enum):
    LIKE = "like"
    DISLIKE = "dislike"


class SummaryOutcome(str, Enum):
    """How the ``aiSummary`` of a view was obtained."""
    EMPTY = "empty"              # no feedback, nothing to summarize
    CACHED = "cached"
    FALLBACK = "fallback"
    GENERATED = "generated"
    UNAVAILABLE = "unavailable"  # generation attempted and failed


class TickOutcome(str, Enum):
    CREATED = "created"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_NO_LOCATION = "skipped_no_location"
    SKIPPED_NO_ACTORS = "skipped_no_actors"
    ERROR = "error"


@dataclass(frozen=True)
class LocationRef:
    id: int
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timezone: Optional[str] = None


@dataclass(frozen=True)
class UserRef:
    id: str
    display_name: str


@dataclass(frozen=True)
class FeedbackRecord:
    id: int
    user_id: str
    location_id: int
    forecast_hour: datetime
    rating: Rating
    comment_text: str
    created_at: datetime
    updated_at: datetime
    user_display_name: str = "User"


@dataclass(frozen=True)
class AggregatedStats:
    likes: int = 0
    dislikes: int = 0
    total_feedback: int = 0
    unique_users: int = 0

    @classmethod
    def from_records(cls, records: Iterable[FeedbackRecord]) -> "AggregatedStats":
        """Count ratings and distinct users; total is always likes + dislikes."""
        records = list(records)
        likes = sum(1 for r in records if r.rating is Rating.LIKE)
        dislikes = sum(1 for r in records if r.rating is Rating.DISLIKE)
        return cls(
            likes=likes,
            dislikes=dislikes,
            total_feedback=likes + dislikes,
            unique_users=len({r.user_id for r in records}),
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "likes": self.likes,
            "dislikes": self.dislikes,
            "totalFeedback": self.total_feedback,
            "uniqueUsers": self.unique_users,
        }


@dataclass(frozen=True)
class SummaryCacheEntry:
    location_id: int
    forecast_hour: datetime
    window: str
    stats: AggregatedStats
    summary_text: str
    generator_label: str
    generated_at: datetime


@dataclass
class SummaryView:
    stats: AggregatedStats = field(default_factory=AggregatedStats)
    comments: List[FeedbackRecord] = field(default_factory=list)
    ai_summary: Optional[str] = None
    outcome: SummaryOutcome = SummaryOutcome.EMPTY

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape returned by the summary endpoint."""
        return {
            "stats": self.stats.to_dict(),
            "comments": [
                {
                    "id": r.id,
                    "userId": r.user_id,
                    "userDisplayName": r.user_display_name,
                    "commentText": r.comment_text,
                    "rating": r.rating.value,
                    "createdAt": r.created_at.isoformat(),
                }
                for r in self.comments
            ],
            "aiSummary": self.ai_summary,
        }


@dataclass(frozen=True)
class TickResult:
    outcome: TickOutcome
    message: str
    actor_id: Optional[str] = None
    comment_text: Optional[str] = None
