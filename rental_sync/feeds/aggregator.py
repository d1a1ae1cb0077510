"""
Fetch every external calendar feed of a property in parallel and collect the
occupancy blocks they advertise.

A failing feed (non-2xx, timeout, connection error, empty or malformed body)
is logged, counted and skipped. It never affects its siblings and
``fetch_all`` never raises.
"""

from __future__ import annotations

import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Iterable, Mapping, Sequence

import requests
import structlog

from rental_sync.errors import FeedUnavailable
from rental_sync.feeds.parser import ExternalBlock, parse_feed, source_tag
from rental_sync.metrics import external_blocks, feed_fetch_duration, feed_fetch_total

logger = structlog.get_logger(__name__)

USER_AGENT = "rental-sync/1.0 (+calendar aggregation)"
DEFAULT_TIMEOUT = 10.0
MAX_CONCURRENT_REQUESTS = 4


def fetch_feed(url: str, property_code: str, timeout: float = DEFAULT_TIMEOUT) -> list[ExternalBlock]:
    """
    Fetch and parse a single calendar feed.

    Args:
        url: Feed URL
        property_code: Property the feed belongs to
        timeout: Connect and read timeout in seconds

    Returns:
        list[ExternalBlock]: Blocks advertised by the feed

    Raises:
        FeedUnavailable: On any transport, HTTP status or parsing failure
    """
    try:
        res = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=timeout)
    except requests.Timeout as e:
        raise FeedUnavailable(url, "timeout") from e
    except requests.RequestException as e:
        raise FeedUnavailable(url, f"request failed: {e}") from e

    if not 200 <= res.status_code < 300:
        raise FeedUnavailable(url, f"HTTP {res.status_code}")

    return parse_feed(res.text, property_code, url)


class FeedAggregator:
    """
    Parallel, failure-isolating reader of the configured external feeds.

    Attributes:
        feed_sources: Property code -> feed URLs
        timeout: Per-feed timeout; the fan-out deadline allows one timeout per worker wave
        max_workers: Upper bound on concurrent fetches per call

    Example:
        >>> aggregator = FeedAggregator({"LIVA": ["https://www.airbnb.fr/calendar/ical/1.ics"]})
        >>> blocks = aggregator.fetch_all("LIVA")
    """

    def __init__(
        self,
        feed_sources: Mapping[str, Sequence[str]],
        timeout: float = DEFAULT_TIMEOUT,
        max_workers: int = MAX_CONCURRENT_REQUESTS,
    ):
        self.feed_sources = {code: tuple(urls) for code, urls in feed_sources.items()}
        self.timeout = timeout
        self.max_workers = max_workers

    def _fetch_one(self, url: str, property_code: str) -> list[ExternalBlock]:
        source = source_tag(url)
        start_time = time.time()
        try:
            blocks = fetch_feed(url, property_code, timeout=self.timeout)
        except FeedUnavailable as e:
            feed_fetch_total.labels(
                property_code=property_code, source=source, status="unavailable"
            ).inc()
            logger.warning(
                "feed_unavailable",
                property_code=property_code,
                source=source,
                reason=e.reason,
            )
            return []
        except Exception as e:
            # Anything unexpected from a single feed is still contained here.
            feed_fetch_total.labels(
                property_code=property_code, source=source, status="unavailable"
            ).inc()
            logger.exception(
                "feed_unexpected_error",
                property_code=property_code,
                source=source,
                error=str(e),
            )
            return []
        finally:
            feed_fetch_duration.labels(property_code=property_code, source=source).observe(
                time.time() - start_time
            )

        feed_fetch_total.labels(property_code=property_code, source=source, status="success").inc()
        external_blocks.labels(property_code=property_code, source=source).inc(len(blocks))
        logger.debug(
            "feed_fetched", property_code=property_code, source=source, blocks=len(blocks)
        )
        return blocks

    def _fan_out(self, jobs: list[tuple[str, str]]) -> dict[str, list[ExternalBlock]]:
        """Run (property_code, url) jobs concurrently under one deadline."""
        results: dict[str, list[ExternalBlock]] = {code: [] for code, _ in jobs}
        if not jobs:
            return results

        pool = ThreadPoolExecutor(
            max_workers=max(1, min(self.max_workers, len(jobs))),
            thread_name_prefix="feed-fetch",
        )
        futures: dict[Future[list[ExternalBlock]], tuple[str, str]] = {
            pool.submit(self._fetch_one, url, code): (code, url) for code, url in jobs
        }
        # requests' timeout bounds each socket operation, not the whole transfer,
        # so a trickling server is cut off here instead.
        deadline = self.timeout * (1 + (len(jobs) - 1) // max(1, self.max_workers)) + 1
        _, not_done = wait(futures, timeout=deadline)
        pool.shutdown(wait=False, cancel_futures=True)

        for future in futures:
            code, url = futures[future]
            if future in not_done:
                feed_fetch_total.labels(
                    property_code=code, source=source_tag(url), status="unavailable"
                ).inc()
                logger.warning(
                    "feed_unavailable",
                    property_code=code,
                    source=source_tag(url),
                    reason="deadline exceeded",
                )
                continue
            results[code].extend(future.result())

        return results

    def fetch_all(self, property_code: str) -> list[ExternalBlock]:
        """
        Fetch all feeds of one property.

        Never raises: unavailable feeds are simply missing from the result.

        Args:
            property_code: Property to fetch feeds for

        Returns:
            list[ExternalBlock]: Blocks from every feed that answered, in config order
        """
        urls = self.feed_sources.get(property_code, ())
        jobs = [(property_code, url) for url in urls]
        return self._fan_out(jobs).get(property_code, [])

    def fetch_many(self, property_codes: Iterable[str]) -> dict[str, list[ExternalBlock]]:
        """Fetch the feeds of several properties in one fan-out."""
        codes = list(dict.fromkeys(property_codes))
        jobs = [(code, url) for code in codes for url in self.feed_sources.get(code, ())]
        results = self._fan_out(jobs)
        return {code: results.get(code, []) for code in codes}
