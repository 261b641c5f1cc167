"""Scheduler for synthetic demo activity.

While active, one interval job injects a single synthetic feedback entry per
tick for the simulation location. Synthetic actors obey the same rule as real
users: at most one entry per (actor, location, forecast hour).

Only one tick series ever runs. Reconfiguration removes the current job
before a new one is added, under a lock shared by every control operation.
"""

import random
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.job import Job
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from weathere.config.config import (
    BOT_DEFAULT_FREQUENCY_SECONDS,
    BOT_JOB_ID,
    BOT_USERS,
    SIMULATION_LOCATION,
    SYNTHETIC_COMMENTS,
)
from weathere.config.schemas import TickOutcome, TickResult
from weathere.data_pipeline.storage.database import FeedbackDatabase
from weathere.errors import UnavailableError, ValidationError
from weathere.utils.datetime import bucket_hour, utc_now
from weathere.utils.logging import get_logger

logger = get_logger(__name__)


class SyntheticActivityScheduler:
    """Owns the synthetic-comment job and its control operations."""

    def __init__(
        self,
        database: FeedbackDatabase,
        actors: Sequence[Dict[str, str]] = BOT_USERS,
        corpus: Sequence[Tuple[str, str]] = SYNTHETIC_COMMENTS,
        location_name: str = SIMULATION_LOCATION["name"],
        frequency_seconds: float = BOT_DEFAULT_FREQUENCY_SECONDS,
        active: bool = False,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utc_now,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        """Initialize the scheduler.

        Args:
            database: Store that synthetic feedback is written through
            actors: Pool of synthetic identities (``id`` and ``display_name``)
            corpus: ``(comment_text, rating)`` pairs to draw from
            location_name: Simulation target location
            frequency_seconds: Seconds between ticks
            active: Whether ticks inject feedback once started
            rng: Random source used for actor and comment selection
            clock: Returns the current time for bucketing
            scheduler: APScheduler instance to own; a background one by default
        """
        self.database = database
        self.actor_ids = [a["id"] for a in actors]
        self.corpus = list(corpus)
        self.location_name = location_name
        self.rng = rng or random.Random()
        self.clock = clock
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self.scheduler.add_listener(self._job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

        self._interval_ms = self._to_millis(frequency_seconds)
        self._active = bool(active)
        self._job: Optional[Job] = None
        self._control_lock = threading.Lock()
        self._tick_lock = threading.Lock()

        self.last_result: Optional[TickResult] = None
        self.last_tick_at: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self) -> None:
        """Start the background scheduler; arms the job if already active."""
        with self._control_lock:
            if not self.scheduler.running:
                self.scheduler.start()
            if self._active and self._job is None:
                self._arm()
        logger.info(
            f"Synthetic activity scheduler started "
            f"({'ACTIVE' if self._active else 'INACTIVE'}, every {self._interval_ms / 1000:g}s)"
        )

    def stop(self) -> None:
        with self._control_lock:
            self._cancel()
            if self.scheduler.running:
                self.scheduler.shutdown(wait=True)
        logger.info("Synthetic activity scheduler stopped")

    # ------------------------------------------------------------------
    # Control surface

    @property
    def active(self) -> bool:
        return self._active

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def activate(self) -> None:
        with self._control_lock:
            self._active = True
            if self._job is None:
                self._arm()
        logger.info("Synthetic activity scheduler activated")

    def deactivate(self) -> None:
        with self._control_lock:
            self._active = False
            self._cancel()
        logger.info("Synthetic activity scheduler deactivated")

    def set_frequency(self, seconds: float) -> None:
        """Change the tick interval, re-arming the job when active."""
        interval_ms = self._to_millis(seconds)
        with self._control_lock:
            self._interval_ms = interval_ms
            self._cancel()
            if self._active:
                self._arm()
        logger.info(f"Synthetic comment frequency set to {interval_ms / 1000:g} seconds")

    def trigger_now(self) -> TickResult:
        """Run one tick immediately, whatever the active flag or timer state."""
        return self.run_tick()

    def status(self) -> Dict[str, Any]:
        next_run = getattr(self._job, "next_run_time", None) if self._job else None
        try:
            total = self.database.count_feedback_by_users(self.actor_ids)
            pool_size = len(self.database.get_users(self.actor_ids))
        except UnavailableError as e:
            logger.error(f"Could not read synthetic activity counts: {e}")
            total, pool_size = 0, 0

        return {
            "active": self._active,
            "intervalMillis": self._interval_ms,
            "frequency": self._interval_ms / 1000,
            "nextScheduledAt": next_run.isoformat() if next_run else None,
            "totalSyntheticComments": total,
            "actorPoolSize": pool_size,
            "lastTickAt": self.last_tick_at.isoformat() if self.last_tick_at else None,
            "lastOutcome": self.last_result.outcome.value if self.last_result else None,
        }

    # ------------------------------------------------------------------
    # Ticks

    def run_tick(self) -> TickResult:
        """Inject one synthetic feedback entry. Never raises."""
        try:
            with self._tick_lock:
                result = self._tick()
        except Exception as e:
            logger.error(f"Synthetic comment tick failed: {e}")
            result = TickResult(TickOutcome.ERROR, f"Error: {e}")

        self.last_result = result
        self.last_tick_at = utc_now()
        logger.info(f"Synthetic tick {result.outcome.value}: {result.message}")
        return result

    def _tick(self) -> TickResult:
        location = self.database.find_location(self.location_name)
        if location is None:
            return TickResult(
                TickOutcome.SKIPPED_NO_LOCATION,
                f"Skipped - {self.location_name} location not found",
            )

        actors = self.database.get_users(self.actor_ids)
        if not actors or not self.corpus:
            return TickResult(TickOutcome.SKIPPED_NO_ACTORS, "Skipped - No bot users found")

        actor = self.rng.choice(actors)
        comment_text, rating = self.rng.choice(self.corpus)
        forecast_hour = bucket_hour(self.clock())

        if self.database.has_feedback(actor.id, location.id, forecast_hour):
            return TickResult(
                TickOutcome.SKIPPED_DUPLICATE,
                f"{actor.display_name} already commented this hour",
                actor_id=actor.id,
            )

        self.database.upsert_feedback(actor.id, location.id, forecast_hour, rating, comment_text)
        return TickResult(
            TickOutcome.CREATED,
            f'{actor.display_name} commented: "{comment_text}"',
            actor_id=actor.id,
            comment_text=comment_text,
        )

    def _scheduled_tick(self) -> None:
        if not self._active:
            return
        self.run_tick()

    # ------------------------------------------------------------------
    # Job handle; callers hold _control_lock

    def _arm(self) -> None:
        self._job = self.scheduler.add_job(
            func=self._scheduled_tick,
            trigger=IntervalTrigger(seconds=self._interval_ms / 1000, timezone="UTC"),
            id=BOT_JOB_ID,
            name="Synthetic feedback comment",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

    def _cancel(self) -> None:
        if self._job is not None:
            self.scheduler.remove_job(self._job.id)
            self._job = None

    @staticmethod
    def _to_millis(seconds) -> int:
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
            raise ValidationError("frequency must be a number of seconds")
        interval_ms = int(round(seconds * 1000))
        if interval_ms <= 0:
            raise ValidationError("frequency must be greater than 0 seconds")
        return interval_ms

    def _job_listener(self, event):
        """Listen to job execution events."""
        if event.job_id != BOT_JOB_ID:
            return
        if event.exception:
            logger.error(f"Job {event.job_id} failed: {event.exception}")
        else:
            logger.debug(f"Job {event.job_id} executed")
