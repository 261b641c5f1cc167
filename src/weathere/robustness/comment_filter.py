from __future__ import annotations

"""Cheap noise filter for feedback comments.

Only decides whether a comment carries enough text to be worth sending to
the summarizer. It is not a moderation or spam classifier.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List

from weathere.config.config import MIN_MEANINGFUL_COMMENT_CHARS

_LETTER = re.compile(r"[A-Za-z]")


@dataclass
class CommentFilterConfig:
    """Configuration for :class:`CommentFilter` heuristics."""

    min_chars: int = MIN_MEANINGFUL_COMMENT_CHARS


class CommentFilter:
    """Keep comments that are long enough and contain at least one letter."""

    def __init__(self, config: CommentFilterConfig | None = None) -> None:
        self.config = config or CommentFilterConfig()

    def is_meaningful(self, text: str | None) -> bool:
        text = (text or "").strip()
        return len(text) >= self.config.min_chars and bool(_LETTER.search(text))

    def meaningful(self, texts: Iterable[str | None]) -> List[str]:
        """Return the trimmed meaningful comments of ``texts``, order preserved."""
        return [t.strip() for t in texts if self.is_meaningful(t)]
