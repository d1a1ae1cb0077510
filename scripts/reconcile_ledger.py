import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import json

import structlog

from rental_sync.config import load_settings
from rental_sync.db.engine import create_db_engine
from rental_sync.ledger.ledger import ReservationLedger
from rental_sync.ledger.wal import WriteAheadLog
from rental_sync.logging_config import setup_logging

logger = structlog.get_logger(__name__)


def list_pending(wal: WriteAheadLog) -> None:
    entries = wal.entries()
    for entry in entries:
        print(
            f"{entry.logged_at}  {entry.record.property_code:<6} "
            f"{entry.record.start_date} -> {entry.record.end_date}  {entry.record.event_id}"
        )
    print(f"{len(entries)} pending reservation(s) in {wal.path}")


def main() -> int:
    """
    Replay reservations parked in the write-ahead log into the primary store.

    Exit code is 0 when the log was fully drained, 1 when entries remain.
    """
    parser = argparse.ArgumentParser(description="Reconcile the reservation write-ahead log.")
    parser.add_argument("--list", action="store_true", help="Only list pending entries")
    args = parser.parse_args()

    settings = load_settings()
    setup_logging(settings.log_level)
    wal = WriteAheadLog(settings.wal_path)

    if args.list:
        list_pending(wal)
        return 0

    ledger = ReservationLedger(
        create_db_engine(settings.database_url), wal, settings.property_codes
    )

    try:
        report = ledger.reconcile()
    except Exception:
        logger.exception("wal_reconcile_failed", path=str(settings.wal_path))
        raise

    print(json.dumps(report.as_dict(), indent=2))
    return 0 if report.remaining == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
