"""Availability query orchestration: ledger read + feed fan-out + merge."""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

import structlog

from rental_sync.availability.merge import AvailabilityInterval, clip_blocks, merge_availability
from rental_sync.feeds.aggregator import FeedAggregator
from rental_sync.ledger.ledger import ReservationLedger

logger = structlog.get_logger(__name__)


class AvailabilityService:
    def __init__(self, ledger: ReservationLedger, aggregator: FeedAggregator):
        self.ledger = ledger
        self.aggregator = aggregator

    def query(
        self,
        property_code: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[AvailabilityInterval]:
        """
        Build the availability view of one property, optionally limited to [start, end).

        External feeds are best-effort: unavailable feeds only shorten the result.
        A primary-store read failure propagates to the caller.

        Args:
            property_code: Property to query
            start: Window start (inclusive), or None
            end: Window end (exclusive), or None

        Returns:
            list[AvailabilityInterval]: Ordered availability intervals
        """
        internal = self.ledger.read(property_code, start, end)
        external = clip_blocks(self.aggregator.fetch_all(property_code), start, end)
        intervals = merge_availability(internal, external)

        logger.info(
            "availability_queried",
            property_code=property_code,
            internal=len(internal),
            external_blocks=len(external),
            intervals=len(intervals),
        )
        return intervals

    def query_all(
        self,
        property_codes: Iterable[str],
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> dict[str, list[AvailabilityInterval]]:
        """
        Build the availability view of several properties.

        The feeds of every property are fetched in a single fan-out.
        """
        codes = list(property_codes)
        external = self.aggregator.fetch_many(codes)

        views = {}
        for code in codes:
            internal = self.ledger.read(code, start, end)
            blocks = clip_blocks(external.get(code, []), start, end)
            views[code] = merge_availability(internal, blocks)

        logger.info(
            "availability_queried_all",
            properties=codes,
            intervals=sum(len(v) for v in views.values()),
        )
        return views
