"""Demo data seeding: the simulation location and the synthetic actor pool."""

from typing import Any, Dict, Sequence

from weathere.config.config import BOT_USERS, SIMULATION_LOCATION
from weathere.data_pipeline.storage.database import FeedbackDatabase
from weathere.utils.logging import get_logger

logger = get_logger(__name__)


def seed_demo_bots(
    database: FeedbackDatabase,
    bots: Sequence[Dict[str, str]] = BOT_USERS,
    location: Dict[str, Any] = SIMULATION_LOCATION,
) -> Dict[str, Any]:
    """Ensure the simulation location and every bot user exist.

    Safe to call repeatedly; nothing that already exists is modified.
    """
    existing_location = database.find_location(location["name"])
    sim_location = database.get_or_create_location(
        location["name"],
        location.get("latitude"),
        location.get("longitude"),
        location.get("timezone"),
    )
    if existing_location is None:
        logger.info(f"Created {sim_location.name} location")

    created, existing = [], []
    for bot in bots:
        user, was_created = database.get_or_create_user(bot["id"], bot["display_name"])
        if was_created:
            created.append(user.display_name)
            logger.info(f"Created bot user: {user.display_name}")
        else:
            existing.append(user.display_name)

    return {
        "success": True,
        "message": "Demo bots processed successfully",
        "location": sim_location.name,
        "botsCreated": created,
        "botsExisting": existing,
        "totalBots": len(bots),
    }
