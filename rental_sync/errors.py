"""Exception types shared across ingestion, the ledger and the feed aggregator."""


class RentalSyncError(Exception):
    """Base class for errors raised by rental_sync."""


class InvalidSignature(RentalSyncError):
    """Webhook signature did not verify against the shared secret. Terminal."""


class MalformedEvent(RentalSyncError):
    """Webhook payload does not match the canonical event schema. Terminal."""


class UnknownProperty(RentalSyncError):
    """Property code is not part of the configured property set."""

    def __init__(self, property_code: str):
        super().__init__(f"Unknown property {property_code!r}")
        self.property_code = property_code


class FeedUnavailable(RentalSyncError):
    """A single external calendar feed could not be fetched or parsed."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Feed {url} unavailable: {reason}")
        self.url = url
        self.reason = reason
