"""Entry point for the feedback API service."""

import argparse

import uvicorn

from weathere.config.models import AppConfig
from weathere.service.api.feedback_api import create_app
from weathere.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Weathere feedback API")
    parser.add_argument("--config", help="YAML config file with an 'app' section")
    parser.add_argument("--host", help="Bind address")
    parser.add_argument("--port", type=int, help="Port to listen on")
    parser.add_argument("--log-file", help="Optional log file")
    args = parser.parse_args(argv)

    config = AppConfig.from_env(AppConfig.from_yaml(args.config) if args.config else None)
    setup_logging(config.log_level, log_file=args.log_file)

    app = create_app(config)
    host = args.host or config.host
    port = args.port or config.port
    logger.info(f"Weathere backend listening on {host}:{port}")
    logger.info("Bot seeding available at: /api/scripts/seed-bots")
    logger.info("Bot control available at: /api/bots/status")
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
