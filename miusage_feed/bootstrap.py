"""Process wiring shared by the web app and the CLI."""

import logging
import sys

from miusage_feed.config import Settings, settings
from miusage_feed.services.cache import build_store
from miusage_feed.services.coordinator import DataCoordinator
from miusage_feed.services.fetcher import Fetcher


def configure_logging(config: Settings = settings) -> None:
    """Structured logging: JSON for production, human-readable for local."""
    if config.is_production:
        logging.basicConfig(
            level=logging.INFO,
            format='{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}',
            stream=sys.stdout,
        )
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")


def build_coordinator(config: Settings = settings) -> DataCoordinator:
    """Wire one store, one fetcher and one coordinator from settings."""
    store = build_store(config.cache_backend, config.cache_path)
    fetcher = Fetcher(config.api_endpoint, timeout=config.fetch_timeout)
    return DataCoordinator(
        store,
        fetcher,
        ttl=config.cache_ttl,
        refresh_flag_ttl=config.refresh_flag_ttl,
        single_flight=config.single_flight,
    )

