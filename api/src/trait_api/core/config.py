#!/usr/bin/env python3
"""
Configuration settings for trait data ingestion.

These settings can be overridden via environment variables to point the
service at a different database or to adjust request limits per deployment.
"""

import logging

from .env_utils import getenv_bool, getenv_clean, getenv_int

logger = logging.getLogger(__name__)


class IngestConfig:
    """Ingestion configuration.

    All values are read when the instance is created, so tests can patch the
    environment and build a fresh IngestConfig() to pick the changes up.
    """

    def __init__(self):
        # SQLAlchemy URL of the trait database
        self.DATABASE_URL = getenv_clean("TRAITS_DATABASE_URL", "sqlite:///./traits.db")

        # Echo every SQL statement (noisy; development only)
        self.DATABASE_ECHO = getenv_bool("TRAITS_DATABASE_ECHO", False)

        # Largest accepted submission body; bulk uploads are a few MB at most
        self.MAX_DOCUMENT_BYTES = getenv_int("TRAITS_MAX_DOCUMENT_BYTES", 5 * 1024 * 1024)

        self.LOG_LEVEL = getenv_clean("LOG_LEVEL", "INFO").upper()

        self.API_HOST = getenv_clean("API_HOST", "0.0.0.0")  # nosec B104
        self.API_PORT = getenv_int("API_PORT", 8000)
        self.APP_VERSION = getenv_clean("APP_VERSION", "unknown")

    def describe(self) -> dict:
        """Settings safe to log (database credentials masked)."""
        url = self.DATABASE_URL
        if "@" in url:
            scheme, _, rest = url.partition("://")
            url = f"{scheme}://***@{rest.split('@', 1)[1]}"
        return {
            "database_url": url,
            "database_echo": self.DATABASE_ECHO,
            "max_document_bytes": self.MAX_DOCUMENT_BYTES,
            "log_level": self.LOG_LEVEL,
        }


# Singleton instance
ingest_config = IngestConfig()
