"""
Unit tests for settings loading.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from rental_sync.config import load_feed_sources, load_settings

ENV_VARS = [
    "DATABASE_URL",
    "STRIPE_WEBHOOK_SECRET",
    "FEED_SOURCES_FILE",
    "PROPERTY_CODES",
    "LOG_LEVEL",
    "ALLOWED_ORIGINS",
    "FEED_TIMEOUT_SECONDS",
    "FEED_MAX_WORKERS",
    "WAL_PATH",
    "RECONCILE_INTERVAL_SECONDS",
    "CALENDAR_UID_DOMAIN",
    "WEBHOOK_TOLERANCE_SECONDS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Isolate from the developer's environment and any .env file."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("rental_sync.config.load_dotenv", lambda: False)


@pytest.fixture
def feeds_file(tmp_path: Path) -> Path:
    path = tmp_path / "feeds.json"
    path.write_text(
        json.dumps({"blom": [], "LIVA": ["https://www.airbnb.fr/calendar/ical/1.ics "]})
    )
    return path


@pytest.mark.unit
def test_load_feed_sources_normalizes(feeds_file: Path) -> None:
    assert load_feed_sources(feeds_file) == {
        "BLOM": (),
        "LIVA": ("https://www.airbnb.fr/calendar/ical/1.ics",),
    }


@pytest.mark.unit
def test_load_feed_sources_rejects_bad_shape(tmp_path: Path) -> None:
    path = tmp_path / "feeds.json"
    path.write_text(json.dumps({"LIVA": "https://www.airbnb.fr/calendar/ical/1.ics"}))

    with pytest.raises(ValueError):
        load_feed_sources(path)


@pytest.mark.unit
def test_load_settings_reads_environment(
    monkeypatch: pytest.MonkeyPatch, feeds_file: Path
) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/rentals")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_x")
    monkeypatch.setenv("FEED_SOURCES_FILE", str(feeds_file))
    monkeypatch.setenv("FEED_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("RECONCILE_INTERVAL_SECONDS", "30")
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example")

    settings = load_settings()

    assert settings.property_codes == ("BLOM", "LIVA")
    assert settings.feed_sources["LIVA"] == ("https://www.airbnb.fr/calendar/ical/1.ics",)
    assert not settings.feed_sources.get("BLOM")
    assert settings.feed_timeout_seconds == 2.5
    assert settings.reconcile_interval_seconds == 30.0
    assert settings.allowed_origins == ("https://a.example", "https://b.example")
    assert settings.is_known_property("BLOM")
    assert not settings.is_known_property("blom")


@pytest.mark.unit
@pytest.mark.parametrize("missing", ["DATABASE_URL", "STRIPE_WEBHOOK_SECRET"])
def test_load_settings_requires_values(monkeypatch: pytest.MonkeyPatch, missing: str) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/rentals")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_x")
    monkeypatch.setenv("PROPERTY_CODES", "BLOM")
    monkeypatch.delenv(missing)

    with pytest.raises(ValueError, match=missing):
        load_settings()


@pytest.mark.unit
def test_load_settings_rejects_feeds_for_unknown_property(
    monkeypatch: pytest.MonkeyPatch, feeds_file: Path
) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/rentals")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_x")
    monkeypatch.setenv("FEED_SOURCES_FILE", str(feeds_file))
    monkeypatch.setenv("PROPERTY_CODES", "BLOM")

    with pytest.raises(ValueError):
        load_settings()
