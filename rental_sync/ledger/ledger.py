"""
Reservation ledger: the authoritative store of reservations.

Writes go to the primary relational store inside one transaction that also
records the webhook event id (idempotency) and rejects overlapping stays
(conflict). When the store is unreachable the reservation is parked in the
write-ahead log instead and the caller is told the write is DEGRADED.
Reads only ever serve the primary store, so they lag the write-ahead log until
``reconcile()`` has run.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from rental_sync.db.readers.reservations import list_reservations
from rental_sync.db.writers.properties import ensure_properties
from rental_sync.db.writers.reservations import insert_reservation
from rental_sync.errors import UnknownProperty
from rental_sync.ledger.records import ReconcileReport, ReservationRecord, WriteResult, WriteStatus
from rental_sync.ledger.wal import DrainDecision, WalEntry, WriteAheadLog, describe_entry
from rental_sync.metrics import ledger_writes, wal_pending, wal_replayed

logger = structlog.get_logger(__name__)

# Errors meaning "the primary store cannot be reached right now"
STORE_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError)

# PostgreSQL SQLSTATE raised by the reservations exclusion constraint
EXCLUSION_VIOLATION = "23P01"


class StoreUnavailable(Exception):
    """The primary store could not be reached during a write."""


class ReservationLedger:
    """
    Durable reservation store with write-ahead fallback and reconciliation.

    Example:
        >>> ledger = ReservationLedger(engine, WriteAheadLog("var/ledger-wal.jsonl"), ("BLOM", "LIVA"))
        >>> result = ledger.write(record, event_type="checkout.session.completed")
        >>> result.status
        <WriteStatus.COMMITTED: 'committed'>
    """

    def __init__(self, engine: Engine, wal: WriteAheadLog, property_codes: Iterable[str] = ()):
        self.engine = engine
        self.wal = wal
        self.property_codes = frozenset(property_codes)

    def _insert(self, record: ReservationRecord, event_type: str) -> WriteResult:
        with self.engine.begin() as conn:
            return insert_reservation(conn, record, event_type)

    def _seed_properties(self) -> None:
        try:
            ensure_properties(self.engine, self.property_codes)
        except IntegrityError:
            # Another process seeded the same codes first
            logger.info("properties_seeded_concurrently")

    def _write_primary(self, record: ReservationRecord, event_type: str) -> WriteResult:
        """
        Attempt the primary write.

        A configured property missing from the store (it was down when the app
        started) is seeded and the write retried once.

        Raises:
            StoreUnavailable: If the database cannot be reached
            UnknownProperty: If the property is not configured
        """
        try:
            try:
                return self._insert(record, event_type)
            except UnknownProperty:
                if record.property_code not in self.property_codes:
                    raise
                logger.warning("property_not_seeded", property_code=record.property_code)
                self._seed_properties()
                return self._insert(record, event_type)
        except IntegrityError as e:
            # A concurrent writer won the race, or the database-level
            # exclusion constraint caught an overlap.
            if getattr(e.orig, "pgcode", None) == EXCLUSION_VIOLATION:
                return WriteResult(WriteStatus.CONFLICT, record)
            return WriteResult(WriteStatus.DUPLICATE, record)
        except STORE_UNAVAILABLE_ERRORS as e:
            raise StoreUnavailable(str(e)) from e

    def write(self, record: ReservationRecord, event_type: str) -> WriteResult:
        """
        Write a reservation together with its idempotency witness.

        Args:
            record: Reservation to store
            event_type: Provider event type that produced it

        Returns:
            WriteResult: COMMITTED, CONFLICT, DUPLICATE, or DEGRADED when parked in the
            write-ahead log

        Raises:
            UnknownProperty: If the property is not configured
        """
        try:
            result = self._write_primary(record, event_type)
        except StoreUnavailable as e:
            logger.error(
                "ledger_store_unavailable",
                event_id=record.event_id,
                property_code=record.property_code,
                error=str(e),
            )
            self.wal.append(record, event_type)
            wal_pending.inc()
            result = WriteResult(WriteStatus.DEGRADED, record)

        ledger_writes.labels(
            property_code=record.property_code, status=result.status.value
        ).inc()

        if result.status == WriteStatus.CONFLICT:
            logger.error(
                "reservation_conflict",
                event_id=record.event_id,
                property_code=record.property_code,
                start_date=record.start_date.isoformat(),
                end_date=record.end_date.isoformat(),
                conflicts_with=[str(r.id) for r in result.conflicts_with],
            )
        elif result.status == WriteStatus.COMMITTED:
            logger.info(
                "reservation_committed",
                reservation_id=str(record.id),
                event_id=record.event_id,
                property_code=record.property_code,
                start_date=record.start_date.isoformat(),
                end_date=record.end_date.isoformat(),
            )

        return result

    def read(
        self,
        property_code: str,
        range_start: Optional[date] = None,
        range_end: Optional[date] = None,
    ) -> list[ReservationRecord]:
        """
        Read reservations from the primary store, ordered by start date.

        Reservations still waiting in the write-ahead log are not included.
        """
        with self.engine.connect() as conn:
            return list_reservations(conn, property_code, range_start, range_end)

    def pending_count(self) -> int:
        """Number of reservations waiting in the write-ahead log."""
        count = self.wal.pending_count()
        wal_pending.set(count)
        return count

    def reconcile(self) -> ReconcileReport:
        """
        Replay the write-ahead log into the primary store.

        Entries go through the same overlap and idempotency checks as ``write``.
        Committed and duplicate entries are truncated from the log; conflicting ones
        are moved to the rejected file and logged. If the store is still down,
        replay stops and the remaining entries stay in place.
        """
        report = ReconcileReport()

        def replay(entry: WalEntry) -> str:
            if not report.store_available:
                return DrainDecision.KEEP
            try:
                result = self._write_primary(entry.record, entry.event_type)
            except StoreUnavailable as e:
                logger.warning("wal_replay_store_unavailable", error=str(e))
                report.store_available = False
                return DrainDecision.KEEP
            except UnknownProperty as e:
                logger.error("wal_entry_unknown_property", error=str(e), **describe_entry(entry))
                return DrainDecision.REJECT

            wal_replayed.labels(status=result.status.value).inc()
            if result.status == WriteStatus.COMMITTED:
                report.committed += 1
                logger.info("wal_entry_committed", **describe_entry(entry))
                return DrainDecision.DROP
            if result.status == WriteStatus.DUPLICATE:
                report.duplicate += 1
                return DrainDecision.DROP

            logger.error(
                "wal_entry_conflict",
                rejected_path=str(self.wal.rejected_path),
                conflicts_with=[str(r.id) for r in result.conflicts_with],
                **describe_entry(entry),
            )
            return DrainDecision.REJECT

        counts = self.wal.drain(replay)
        report.remaining = counts[DrainDecision.KEEP]
        # Includes unparseable lines, which the log rejects without calling replay()
        report.rejected = counts[DrainDecision.REJECT]
        wal_pending.set(report.remaining)

        logger.info("wal_reconciled", **report.as_dict())
        return report
