"""Input-quality heuristics."""

from .comment_filter import CommentFilter, CommentFilterConfig

__all__ = ["CommentFilter", "CommentFilterConfig"]
