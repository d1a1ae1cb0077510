import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import json

from rental_sync.availability.merge import union_external
from rental_sync.config import load_settings
from rental_sync.feeds.aggregator import FeedAggregator
from rental_sync.logging_config import setup_logging


def main() -> None:
    """
    Fetch the configured external calendar feeds and print the unioned blocks.

    Useful to check a new feed URL before relying on it.
    """
    parser = argparse.ArgumentParser(description="Fetch external calendar feeds.")
    parser.add_argument(
        "properties", nargs="*", help="Property codes to fetch (default: all configured)"
    )
    args = parser.parse_args()

    settings = load_settings()
    setup_logging(settings.log_level)

    codes = [c.upper() for c in args.properties] or list(settings.property_codes)
    aggregator = FeedAggregator(
        settings.feed_sources,
        timeout=settings.feed_timeout_seconds,
        max_workers=settings.feed_max_workers,
    )

    results = aggregator.fetch_many(codes)
    output = {code: [i.as_dict() for i in union_external(blocks)] for code, blocks in results.items()}
    print(json.dumps(output, indent=2))


if __name__ == "__main__":
    main()
