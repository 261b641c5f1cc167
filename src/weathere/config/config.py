"""Project-wide single-source configuration constants for the feedback service."""

from pathlib import Path

from weathere.utils.path_utils import find_repo_root

# ----- Base directory configuration -------
PROJECT_ROOT = find_repo_root()
DATA_DIR: Path = PROJECT_ROOT / "datasets"
DATABASE_PATH: Path = DATA_DIR / "weathere.db"
LOG_LEVEL: str = "INFO"

# ------ API configuration -------
API_HOST: str = "0.0.0.0"
API_PORT: int = 4000

# ------ Feedback validation -------
MAX_COMMENT_LENGTH: int = 1500
UPSERT_MAX_ATTEMPTS: int = 3     # insert race retried as update this many times

# ------- Summary window & thresholds -------
SUMMARY_WINDOW: str = "hour"
MIN_MEANINGFUL_COMMENTS: int = 3   # below this the fallback template is used
MIN_UNIQUE_USERS_FOR_AI: int = 2
MIN_MEANINGFUL_COMMENT_CHARS: int = 10

# ------- Text generation -------
OPENAI_MODEL: str = "gpt-4o-mini"
SUMMARY_MAX_OUTPUT_TOKENS: int = 220
SUMMARY_TIMEOUT_SECONDS: float = 15.0
SUMMARY_SYSTEM_CONTEXT: str = (
    "You summarize weather forecast accuracy based on user comments and basic statistics."
)

# ------- Synthetic activity -------
BOT_DEFAULT_FREQUENCY_SECONDS: int = 120   # 2 minutes between synthetic comments
BOT_JOB_ID: str = "synthetic_comment"
SIMULATION_LOCATION = {
    "name": "San Francisco, CA, USA",
    "latitude": 37.7749,
    "longitude": -122.4194,
    "timezone": "America/Los_Angeles",
}
BOT_USERS = (
    {"id": "weather_bot1", "display_name": "WeatherBot1"},
    {"id": "weather_bot2", "display_name": "WeatherBot2"},
    {"id": "weather_bot3", "display_name": "WeatherBot3"},
    {"id": "weather_bot4", "display_name": "WeatherBot4"},
)
SYNTHETIC_COMMENTS = (
    ("Accurate forecast! Temperature was spot on.", "like"),
    ("Temperature was off by a few degrees today.", "dislike"),
    ("Rain prediction was perfect - started right on time.", "like"),
    ("Wind stronger than expected, forecast needs improvement.", "dislike"),
    ("Beautiful sunny day just as predicted!", "like"),
    ("Humidity feels much higher than forecast indicated.", "dislike"),
    ("Cloud cover was exactly as forecasted - great job!", "like"),
    ("Sunset timing was different from the prediction.", "dislike"),
    ("Precipitation chance was accurate for today.", "like"),
    ("UV index seems higher than forecasted.", "dislike"),
)
