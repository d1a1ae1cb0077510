"""
Application settings.

Settings are read once from the environment (and an optional ``.env`` file)
by ``load_settings()`` and passed explicitly to each component. Nothing else
in the package reads the environment.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv

SCHEMA = "rentals"


@dataclass(frozen=True)
class Settings:
    """
    Immutable configuration value shared by the app, the ledger and the feed aggregator.

    Attributes:
        database_url: SQLAlchemy URL of the primary store
        webhook_secret: Shared secret used to verify payment webhook signatures
        feed_sources: Property code -> ordered list of calendar feed URLs
        property_codes: The fixed set of properties this service manages
        log_level: Root log level (INFO renders JSON, anything else renders console output)
        allowed_origins: CORS origins for the HTTP API
        feed_timeout_seconds: Per-feed fetch timeout
        feed_max_workers: Upper bound on concurrent feed fetches per call
        wal_path: Location of the write-ahead log used while the store is unreachable
        reconcile_interval_seconds: Period of the background reconciler (0 disables it)
        calendar_uid_domain: Domain suffix for exported event UIDs
        webhook_tolerance_seconds: Maximum age of a signed webhook payload
    """

    database_url: str
    webhook_secret: str
    feed_sources: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    property_codes: tuple[str, ...] = ()
    log_level: str = "INFO"
    allowed_origins: tuple[str, ...] = ("*",)
    feed_timeout_seconds: float = 10.0
    feed_max_workers: int = 4
    wal_path: Path = Path("var/ledger-wal.jsonl")
    reconcile_interval_seconds: float = 0.0
    calendar_uid_domain: str = "rental-sync"
    webhook_tolerance_seconds: int = 300

    @property
    def debug(self) -> bool:
        return self.log_level == "DEBUG"

    def is_known_property(self, property_code: str) -> bool:
        return property_code in self.property_codes


def load_feed_sources(path: str | os.PathLike[str] | None) -> dict[str, tuple[str, ...]]:
    """
    Load the property -> feed URL mapping from a JSON file.

    The file must contain an object whose keys are property codes and whose values
    are lists of URLs, e.g. ``{"BLOM": ["https://.../basic.ics"], "LIVA": []}``.

    Args:
        path: Path to the JSON file, or None for no external feeds

    Returns:
        dict mapping upper-cased property codes to tuples of URLs

    Raises:
        ValueError: If the file does not have the expected shape
    """
    if not path:
        return {}

    with open(path, encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Feed sources file {path} must contain a JSON object")

    sources: dict[str, tuple[str, ...]] = {}
    for code, urls in raw.items():
        if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
            raise ValueError(f"Feed sources for {code!r} must be a list of URLs")
        sources[code.strip().upper()] = tuple(u.strip() for u in urls if u.strip())
    return sources


def _split_csv(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def load_settings() -> Settings:
    """
    Build Settings from the process environment.

    Raises:
        ValueError: If a required variable is missing or malformed
    """
    load_dotenv()

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL must be set in the environment")

    webhook_secret = os.getenv("STRIPE_WEBHOOK_SECRET")
    if not webhook_secret:
        raise ValueError("STRIPE_WEBHOOK_SECRET must be set in the environment")

    feed_sources = load_feed_sources(os.getenv("FEED_SOURCES_FILE"))

    property_codes = tuple(c.upper() for c in _split_csv(os.getenv("PROPERTY_CODES")))
    if not property_codes:
        property_codes = tuple(sorted(feed_sources))
    if not property_codes:
        raise ValueError("PROPERTY_CODES or FEED_SOURCES_FILE must define at least one property")

    unknown = set(feed_sources) - set(property_codes)
    if unknown:
        raise ValueError(f"Feed sources configured for unknown properties: {sorted(unknown)}")

    return Settings(
        database_url=database_url,
        webhook_secret=webhook_secret,
        feed_sources=feed_sources,
        property_codes=property_codes,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        allowed_origins=_split_csv(os.getenv("ALLOWED_ORIGINS")) or ("*",),
        feed_timeout_seconds=float(os.getenv("FEED_TIMEOUT_SECONDS", "10")),
        feed_max_workers=int(os.getenv("FEED_MAX_WORKERS", "4")),
        wal_path=Path(os.getenv("WAL_PATH", "var/ledger-wal.jsonl")),
        reconcile_interval_seconds=float(os.getenv("RECONCILE_INTERVAL_SECONDS", "0")),
        calendar_uid_domain=os.getenv("CALENDAR_UID_DOMAIN", "rental-sync"),
        webhook_tolerance_seconds=int(os.getenv("WEBHOOK_TOLERANCE_SECONDS", "300")),
    )
