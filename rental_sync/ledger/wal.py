"""
Append-only write-ahead log for reservations that could not reach the primary store.

Format: JSON Lines, one reservation per line, with the originating event id and
event type. Every append and every drain holds an exclusive ``fcntl.flock`` on a
sidecar ``<path>.lock`` file, so several processes on one host can share a log.
The lock lives on a separate file because draining replaces the log file itself.
"""

from __future__ import annotations

import fcntl
import json
import os
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

import structlog

from rental_sync.ledger.records import ReservationRecord
from rental_sync.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class WalEntry:
    record: ReservationRecord
    event_type: str
    logged_at: str

    def to_line(self) -> str:
        payload = {
            "reservation": self.record.to_json_dict(),
            "event_type": self.event_type,
            "logged_at": self.logged_at,
        }
        return json.dumps(payload, sort_keys=True) + "\n"

    @classmethod
    def from_line(cls, line: str) -> "WalEntry":
        data = json.loads(line)
        return cls(
            record=ReservationRecord.from_json_dict(data["reservation"]),
            event_type=data["event_type"],
            logged_at=data["logged_at"],
        )


class DrainDecision:
    """Per-entry decision returned by a drain handler."""

    DROP = "drop"
    KEEP = "keep"
    REJECT = "reject"


class WriteAheadLog:
    """
    File-backed fallback log for the reservation ledger.

    Attributes:
        path: Log file (created on first append)
        rejected_path: Append-only file receiving entries that can never be replayed
    """

    def __init__(self, path: str | os.PathLike[str]):
        self.path = Path(path)
        self.rejected_path = self.path.with_name(self.path.name + ".rejected")
        self._lock_path = self.path.with_name(self.path.name + ".lock")

    @contextmanager
    def _locked(self) -> Iterator[None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._lock_path, "a") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def append(self, record: ReservationRecord, event_type: str) -> None:
        """
        Durably append one reservation.

        The line is flushed and fsynced before returning, so a DEGRADED answer is
        only given once the record is on disk.
        """
        entry = WalEntry(record=record, event_type=event_type, logged_at=utc_now().isoformat())
        with self._locked():
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(entry.to_line())
                f.flush()
                os.fsync(f.fileno())

        logger.warning(
            "wal_appended",
            path=str(self.path),
            event_id=record.event_id,
            property_code=record.property_code,
        )

    def _read_lines(self) -> list[str]:
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8") as f:
            return [line for line in f if line.strip()]

    def pending_count(self) -> int:
        with self._locked():
            return len(self._read_lines())

    def entries(self) -> list[WalEntry]:
        """Return parseable entries without modifying the log."""
        with self._locked():
            lines = self._read_lines()
        parsed = []
        for line in lines:
            try:
                parsed.append(WalEntry.from_line(line))
            except (ValueError, KeyError, TypeError):
                continue
        return parsed

    def drain(
        self, handler: Callable[[WalEntry], str], stop_on_keep: bool = True
    ) -> dict[str, int]:
        """
        Replay entries in order through ``handler`` and truncate the handled ones.

        The handler returns a DrainDecision for each entry. DROP removes the entry,
        REJECT moves it to the rejected file, KEEP leaves it in the log. With
        ``stop_on_keep`` the first KEEP also keeps every later entry untouched.
        Unparseable lines are always rejected.

        Returns:
            dict: Counts keyed by decision
        """
        counts = {DrainDecision.DROP: 0, DrainDecision.KEEP: 0, DrainDecision.REJECT: 0}

        with self._locked():
            lines = self._read_lines()
            if not lines:
                return counts

            kept: list[str] = []
            rejected: list[str] = []
            stopped = False

            for line in lines:
                if stopped:
                    kept.append(line)
                    continue

                try:
                    entry: Optional[WalEntry] = WalEntry.from_line(line)
                except (ValueError, KeyError, TypeError) as e:
                    logger.error("wal_entry_unparseable", path=str(self.path), error=str(e))
                    entry = None

                decision = DrainDecision.REJECT if entry is None else handler(entry)

                if decision == DrainDecision.KEEP:
                    kept.append(line)
                    stopped = stop_on_keep
                elif decision == DrainDecision.REJECT:
                    rejected.append(line)
                counts[decision] += 1

            if rejected:
                with open(self.rejected_path, "a", encoding="utf-8") as f:
                    f.writelines(rejected)
                    f.flush()
                    os.fsync(f.fileno())

            self._rewrite(kept)

        counts[DrainDecision.KEEP] = len(kept)
        return counts

    def _rewrite(self, lines: list[str]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.writelines(lines)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)


def describe_entry(entry: WalEntry) -> dict[str, Any]:
    """Key identifiers of an entry, for logging."""
    return {
        "event_id": entry.record.event_id,
        "property_code": entry.record.property_code,
        "start_date": entry.record.start_date.isoformat(),
        "end_date": entry.record.end_date.isoformat(),
    }
