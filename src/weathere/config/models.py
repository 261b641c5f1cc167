"""Configuration models and data structures."""

import os
from dataclasses import dataclass, field, replace
from typing import Optional

from dotenv import load_dotenv

from weathere.config.config import (
    API_HOST,
    API_PORT,
    BOT_DEFAULT_FREQUENCY_SECONDS,
    DATABASE_PATH,
    LOG_LEVEL,
    OPENAI_MODEL,
    PROJECT_ROOT,
    SUMMARY_MAX_OUTPUT_TOKENS,
    SUMMARY_TIMEOUT_SECONDS,
)
from weathere.utils.io import maybe_load_yaml


def _env_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class AppConfig:
    """Service configuration with YAML and environment overrides."""
    database_path: str = str(DATABASE_PATH)
    openai_api_key: Optional[str] = field(default=None, repr=False)
    openai_model: str = OPENAI_MODEL
    summary_max_output_tokens: int = SUMMARY_MAX_OUTPUT_TOKENS
    summary_timeout_seconds: float = SUMMARY_TIMEOUT_SECONDS
    enable_demo_bots: bool = False
    bot_frequency_seconds: int = BOT_DEFAULT_FREQUENCY_SECONDS
    log_level: str = LOG_LEVEL
    host: str = API_HOST
    port: int = API_PORT

    @property
    def ai_configured(self) -> bool:
        return bool(self.openai_api_key)

    @classmethod
    def from_yaml(cls, yaml_path: Optional[str] = None) -> "AppConfig":
        """Create config with optional YAML overrides from the ``app`` section."""
        yaml_config = maybe_load_yaml(yaml_path)
        app_config = yaml_config.get("app", {}) or {}
        defaults = cls()

        return cls(
            database_path=str(app_config.get("database_path", defaults.database_path)),
            openai_model=app_config.get("openai_model", defaults.openai_model),
            summary_max_output_tokens=int(
                app_config.get("summary_max_output_tokens", defaults.summary_max_output_tokens)
            ),
            summary_timeout_seconds=float(
                app_config.get("summary_timeout_seconds", defaults.summary_timeout_seconds)
            ),
            enable_demo_bots=bool(app_config.get("enable_demo_bots", defaults.enable_demo_bots)),
            bot_frequency_seconds=int(app_config.get("bot_frequency_seconds", defaults.bot_frequency_seconds)),
            log_level=app_config.get("log_level", defaults.log_level),
            host=app_config.get("host", defaults.host),
            port=int(app_config.get("port", defaults.port)),
        )

    @classmethod
    def from_env(cls, base: Optional["AppConfig"] = None) -> "AppConfig":
        """Apply environment overrides (``.env`` is loaded first) on top of ``base``.

        ``WEATHERE_CONFIG`` may point at a YAML file used as the base when
        ``base`` is not given. Secrets are only ever read from the environment.
        """
        load_dotenv(PROJECT_ROOT / ".env")
        config = base or cls.from_yaml(os.getenv("WEATHERE_CONFIG"))
        env = os.environ

        overrides = {}
        if env.get("OPENAI_API_KEY"):
            overrides["openai_api_key"] = env["OPENAI_API_KEY"]
        if env.get("WEATHERE_DB_PATH"):
            overrides["database_path"] = env["WEATHERE_DB_PATH"]
        if env.get("OPENAI_MODEL"):
            overrides["openai_model"] = env["OPENAI_MODEL"]
        if "ENABLE_DEMO_BOTS" in env:
            overrides["enable_demo_bots"] = _env_flag(env["ENABLE_DEMO_BOTS"])
        if env.get("BOT_FREQUENCY_SECONDS"):
            overrides["bot_frequency_seconds"] = int(env["BOT_FREQUENCY_SECONDS"])
        if env.get("LOG_LEVEL"):
            overrides["log_level"] = env["LOG_LEVEL"]
        if env.get("PORT"):
            overrides["port"] = int(env["PORT"])

        return replace(config, **overrides)
