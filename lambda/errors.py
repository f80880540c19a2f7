"""Exception hierarchy for the punctuality tracker."""


class TrackerError(Exception):
    """Base class for all tracker errors."""


class FetchError(TrackerError):
    """A stop's departures could not be fetched or parsed."""

    def __init__(self, stop_id, reason):
        self.stop_id = stop_id
        self.reason = reason
        super().__init__(f'{stop_id}: {reason}')


class StoreError(TrackerError):
    """Base class for stats document store failures."""


class StoreConflict(StoreError):
    """The stored document changed since its version token was issued."""


class StoreUnavailable(StoreError):
    """The store could not be reached or returned something unusable."""
