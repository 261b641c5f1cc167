"""SQLite storage for feedback records, locations and cached summaries.

The uniqueness rules the rest of the core relies on are enforced here with
``UNIQUE`` constraints rather than in application code:

- ``locations(name)``
- ``feedback(user_id, location_id, forecast_hour)``
- ``ai_summaries(location_id, forecast_hour, summary_window)``
"""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from weathere.config.config import MAX_COMMENT_LENGTH, SUMMARY_WINDOW, UPSERT_MAX_ATTEMPTS
from weathere.config.schemas import (
    AggregatedStats,
    FeedbackRecord,
    LocationRef,
    Rating,
    SummaryCacheEntry,
    UserRef,
)
from weathere.errors import ConflictError, UnavailableError, ValidationError
from weathere.utils.datetime import bucket_hour, to_storage_key, utc_now
from weathere.utils.io import ensure_dir
from weathere.utils.logging import get_logger

logger = get_logger(__name__)

_FEEDBACK_COLUMNS = """
    f.id, f.user_id, f.location_id, f.forecast_hour, f.rating, f.comment_text,
    f.created_at, f.updated_at, COALESCE(u.display_name, 'User') AS display_name
"""


def validate_rating(rating) -> Rating:
    """Coerce ``rating`` to :class:`Rating` or raise :class:`ValidationError`."""
    try:
        return Rating(rating)
    except ValueError:
        raise ValidationError("rating must be 'like' or 'dislike'") from None


def validate_comment(comment_text: Optional[str]) -> str:
    comment_text = comment_text or ""
    if len(comment_text) > MAX_COMMENT_LENGTH:
        raise ValidationError(
            f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters. "
            f"Current length: {len(comment_text)}"
        )
    return comment_text


class FeedbackDatabase:
    """SQLite-backed keyed store for the feedback core."""

    def __init__(self, db_path: Path | str):
        """Initialize database connection and create tables."""
        self.db_path = Path(db_path)
        ensure_dir(self.db_path.parent)
        self._lock = threading.Lock()

        self._init_schema()
        logger.info(f"Feedback database initialized at {self.db_path}")

    def _init_schema(self):
        """Create database tables if they don't exist."""
        with self._get_connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS locations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    latitude REAL,
                    longitude REAL,
                    timezone TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    display_name TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS feedback (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    location_id INTEGER NOT NULL REFERENCES locations(id),
                    forecast_hour TEXT NOT NULL,
                    rating TEXT NOT NULL CHECK (rating IN ('like', 'dislike')),
                    comment_text TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (user_id, location_id, forecast_hour)
                );

                CREATE TABLE IF NOT EXISTS ai_summaries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    location_id INTEGER NOT NULL REFERENCES locations(id),
                    forecast_hour TEXT NOT NULL,
                    summary_window TEXT NOT NULL DEFAULT 'hour',
                    likes INTEGER NOT NULL,
                    dislikes INTEGER NOT NULL,
                    total_feedback INTEGER NOT NULL,
                    unique_users INTEGER NOT NULL,
                    summary_text TEXT NOT NULL,
                    model TEXT,
                    generated_at TEXT NOT NULL,
                    UNIQUE (location_id, forecast_hour, summary_window)
                );

                CREATE INDEX IF NOT EXISTS idx_feedback_bucket
                    ON feedback(location_id, forecast_hour);
            """)
            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection with proper locking."""
        with self._lock:
            try:
                conn = sqlite3.connect(str(self.db_path), timeout=5.0)
            except sqlite3.OperationalError as e:
                raise UnavailableError(f"Cannot open database {self.db_path}: {e}") from e
            conn.row_factory = sqlite3.Row
            try:
                conn.execute("PRAGMA foreign_keys = ON")
                yield conn
            except sqlite3.OperationalError as e:
                conn.rollback()
                raise UnavailableError(f"Database error: {e}") from e
            finally:
                conn.close()

    def ping(self) -> bool:
        """Return True when the database answers a trivial query."""
        try:
            with self._get_connection() as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except UnavailableError as e:
            logger.error(f"Database health check failed: {e}")
            return False

    # ------------------------------------------------------------------
    # Locations

    def find_location(self, name: str) -> Optional[LocationRef]:
        """Look up a location by its canonical name without creating it."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM locations WHERE name = ?", ((name or "").strip(),)
            ).fetchone()
        return self._row_to_location(row) if row else None

    def get_or_create_location(
        self,
        name: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        timezone: Optional[str] = None,
    ) -> LocationRef:
        """Return the location named ``name``, creating it if absent.

        Fields of an existing location are never overwritten.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("locationName is required")

        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO locations (name, latitude, longitude, timezone, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(name) DO NOTHING
                """,
                (name, latitude, longitude, timezone, utc_now().isoformat()),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM locations WHERE name = ?", (name,)).fetchone()
        return self._row_to_location(row)

    # ------------------------------------------------------------------
    # Users

    def get_or_create_user(self, user_id: str, display_name: str) -> Tuple[UserRef, bool]:
        """Return ``(user, created)``; an existing display name is kept."""
        if not user_id:
            raise ValidationError("user id is required")
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO users (id, display_name, created_at) VALUES (?, ?, ?)
                ON CONFLICT(id) DO NOTHING
                """,
                (user_id, display_name or "User", utc_now().isoformat()),
            )
            created = cursor.rowcount == 1
            conn.commit()
            row = conn.execute("SELECT id, display_name FROM users WHERE id = ?", (user_id,)).fetchone()
        return UserRef(id=row["id"], display_name=row["display_name"]), created

    def get_users(self, user_ids: Sequence[str]) -> List[UserRef]:
        """Return the users among ``user_ids`` that exist, ordered by id."""
        if not user_ids:
            return []
        placeholders = ", ".join("?" for _ in user_ids)
        with self._get_connection() as conn:
            rows = conn.execute(
                f"SELECT id, display_name FROM users WHERE id IN ({placeholders}) ORDER BY id",
                tuple(user_ids),
            ).fetchall()
        return [UserRef(id=r["id"], display_name=r["display_name"]) for r in rows]

    # ------------------------------------------------------------------
    # Feedback

    def upsert_feedback(
        self,
        user_id: str,
        location_id: int,
        forecast_hour: datetime,
        rating,
        comment_text: Optional[str] = "",
    ) -> FeedbackRecord:
        """Insert or update the single record for ``(user, location, hour)``.

        ``forecast_hour`` is bucketed before it is stored. A lost insert race
        is retried as an update. When every attempt collides the write falls
        back to a single atomic ``INSERT ... ON CONFLICT DO UPDATE``.
        """
        rating = validate_rating(rating)
        comment_text = validate_comment(comment_text)
        if not user_id:
            raise ValidationError("user id is required")
        key = to_storage_key(bucket_hour(forecast_hour))

        for attempt in range(1, UPSERT_MAX_ATTEMPTS + 1):
            try:
                return self._write_feedback(user_id, location_id, key, rating, comment_text)
            except ConflictError as e:
                logger.warning(
                    f"Feedback insert conflict for user {user_id} at {key} "
                    f"(attempt {attempt}/{UPSERT_MAX_ATTEMPTS}): {e}"
                )
        logger.warning(f"Falling back to atomic upsert for user {user_id} at {key}")
        return self._write_feedback_atomic(user_id, location_id, key, rating, comment_text)

    def _find_feedback_id(self, conn, user_id: str, location_id: int, key: str) -> Optional[int]:
        row = conn.execute(
            "SELECT id FROM feedback WHERE user_id = ? AND location_id = ? AND forecast_hour = ?",
            (user_id, location_id, key),
        ).fetchone()
        return row["id"] if row else None

    def _write_feedback(
        self, user_id: str, location_id: int, key: str, rating: Rating, comment_text: str
    ) -> FeedbackRecord:
        now = utc_now().isoformat()
        with self._get_connection() as conn:
            feedback_id = self._find_feedback_id(conn, user_id, location_id, key)
            if feedback_id is not None:
                conn.execute(
                    "UPDATE feedback SET rating = ?, comment_text = ?, updated_at = ? WHERE id = ?",
                    (rating.value, comment_text, now, feedback_id),
                )
            else:
                try:
                    cursor = conn.execute(
                        """
                        INSERT INTO feedback
                        (user_id, location_id, forecast_hour, rating, comment_text, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        (user_id, location_id, key, rating.value, comment_text, now, now),
                    )
                except sqlite3.IntegrityError as e:
                    conn.rollback()
                    if "UNIQUE" in str(e):
                        raise ConflictError(str(e)) from e
                    raise ValidationError(f"Unknown location id {location_id}") from e
                feedback_id = cursor.lastrowid
            conn.commit()

            row = conn.execute(
                f"""
                SELECT {_FEEDBACK_COLUMNS}
                FROM feedback f LEFT JOIN users u ON u.id = f.user_id
                WHERE f.id = ?
                """,
                (feedback_id,),
            ).fetchone()
        return self._row_to_feedback(row)

    def _write_feedback_atomic(
        self, user_id: str, location_id: int, key: str, rating: Rating, comment_text: str
    ) -> FeedbackRecord:
        now = utc_now().isoformat()
        with self._get_connection() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO feedback
                    (user_id, location_id, forecast_hour, rating, comment_text, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(user_id, location_id, forecast_hour) DO UPDATE SET
                        rating = excluded.rating,
                        comment_text = excluded.comment_text,
                        updated_at = excluded.updated_at
                    """,
                    (user_id, location_id, key, rating.value, comment_text, now, now),
                )
            except sqlite3.IntegrityError as e:
                conn.rollback()
                raise ValidationError(f"Unknown location id {location_id}") from e
            conn.commit()

            row = conn.execute(
                f"""
                SELECT {_FEEDBACK_COLUMNS}
                FROM feedback f LEFT JOIN users u ON u.id = f.user_id
                WHERE f.user_id = ? AND f.location_id = ? AND f.forecast_hour = ?
                """,
                (user_id, location_id, key),
            ).fetchone()
        return self._row_to_feedback(row)

    def has_feedback(self, user_id: str, location_id: int, forecast_hour: datetime) -> bool:
        key = to_storage_key(bucket_hour(forecast_hour))
        with self._get_connection() as conn:
            return self._find_feedback_id(conn, user_id, location_id, key) is not None

    def list_feedback(self, location_id: int, forecast_hour: datetime) -> List[FeedbackRecord]:
        """All records for a bucket, newest first, with user display names."""
        key = to_storage_key(bucket_hour(forecast_hour))
        with self._get_connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_FEEDBACK_COLUMNS}
                FROM feedback f LEFT JOIN users u ON u.id = f.user_id
                WHERE f.location_id = ? AND f.forecast_hour = ?
                ORDER BY f.created_at DESC, f.id DESC
                """,
                (location_id, key),
            ).fetchall()
        return [self._row_to_feedback(r) for r in rows]

    def count_feedback_by_users(self, user_ids: Sequence[str]) -> int:
        if not user_ids:
            return 0
        placeholders = ", ".join("?" for _ in user_ids)
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) FROM feedback WHERE user_id IN ({placeholders})",
                tuple(user_ids),
            ).fetchone()
        return row[0]

    # ------------------------------------------------------------------
    # Summary cache

    def get_summary(
        self, location_id: int, forecast_hour: datetime, window: str = SUMMARY_WINDOW
    ) -> Optional[SummaryCacheEntry]:
        key = to_storage_key(bucket_hour(forecast_hour))
        with self._get_connection() as conn:
            row = conn.execute(
                """
                SELECT * FROM ai_summaries
                WHERE location_id = ? AND forecast_hour = ? AND summary_window = ?
                """,
                (location_id, key, window),
            ).fetchone()
        return self._row_to_summary(row) if row else None

    def upsert_summary(
        self,
        location_id: int,
        forecast_hour: datetime,
        stats: AggregatedStats,
        summary_text: str,
        generator_label: str,
        window: str = SUMMARY_WINDOW,
    ) -> SummaryCacheEntry:
        """Write the summary for a bucket; concurrent writers converge on one row."""
        key = to_storage_key(bucket_hour(forecast_hour))
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO ai_summaries
                (location_id, forecast_hour, summary_window, likes, dislikes,
                 total_feedback, unique_users, summary_text, model, generated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(location_id, forecast_hour, summary_window) DO UPDATE SET
                    likes = excluded.likes,
                    dislikes = excluded.dislikes,
                    total_feedback = excluded.total_feedback,
                    unique_users = excluded.unique_users,
                    summary_text = excluded.summary_text,
                    model = excluded.model,
                    generated_at = excluded.generated_at
                """,
                (
                    location_id, key, window, stats.likes, stats.dislikes,
                    stats.total_feedback, stats.unique_users, summary_text,
                    generator_label, utc_now().isoformat(),
                ),
            )
            conn.commit()
            row = conn.execute(
                """
                SELECT * FROM ai_summaries
                WHERE location_id = ? AND forecast_hour = ? AND summary_window = ?
                """,
                (location_id, key, window),
            ).fetchone()
        return self._row_to_summary(row)

    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_location(row) -> LocationRef:
        return LocationRef(
            id=row["id"],
            name=row["name"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            timezone=row["timezone"],
        )

    @staticmethod
    def _row_to_feedback(row) -> FeedbackRecord:
        return FeedbackRecord(
            id=row["id"],
            user_id=row["user_id"],
            location_id=row["location_id"],
            forecast_hour=datetime.fromisoformat(row["forecast_hour"]),
            rating=Rating(row["rating"]),
            comment_text=row["comment_text"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            user_display_name=row["display_name"],
        )

    @staticmethod
    def _row_to_summary(row) -> SummaryCacheEntry:
        return SummaryCacheEntry(
            location_id=row["location_id"],
            forecast_hour=datetime.fromisoformat(row["forecast_hour"]),
            window=row["summary_window"],
            stats=AggregatedStats(
                likes=row["likes"],
                dislikes=row["dislikes"],
                total_feedback=row["total_feedback"],
                unique_users=row["unique_users"],
            ),
            summary_text=row["summary_text"],
            generator_label=row["model"] or "",
            generated_at=datetime.fromisoformat(row["generated_at"]),
        )
