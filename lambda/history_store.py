"""Bounded history of punctuality points, merged into a shared stats document.

One run goes Idle -> Loaded -> Merged -> Committed | Conflicted | StoreUnavailable.
``load`` hands out a version token, ``append`` works on a copy, and ``commit``
only succeeds if nobody else wrote the document in between.
"""

import logging
from datetime import datetime, timezone

from config import HISTORY_LIMIT
from errors import StoreUnavailable
from models import StatsDatabase

logger = logging.getLogger(__name__)


class HistoryStore:
    def __init__(self, io, limit=HISTORY_LIMIT):
        self.io = io
        self.limit = limit

    def load(self):
        """Return (StatsDatabase, version token).

        A missing document yields a fresh database and a null token.
        """
        data, version = self.io.get_document()
        if data is None:
            return StatsDatabase(), None

        try:
            db = StatsDatabase.from_dict(data)
        except (TypeError, ValueError) as e:
            raise StoreUnavailable(f'malformed stats document: {e}') from e

        logger.info(f'Loaded stats document with {len(db.history)} points')
        return db, version

    def current_version(self):
        """Version token of the stored document, even if it does not parse."""
        return self.io.head_version()

    def append(self, db, point, stop_metadata, now=None):
        """Return a copy of ``db`` with ``point`` appended and metadata replaced."""
        now = now or datetime.now(timezone.utc)
        merged = db.copy()

        merged.stop_metadata = dict(stop_metadata)
        merged.history.append(point.to_dict())
        if len(merged.history) > self.limit:
            dropped = len(merged.history) - self.limit
            merged.history = merged.history[-self.limit:]
            logger.debug(f'Evicted {dropped} oldest points')
        merged.last_updated = now.isoformat()

        return merged

    def commit(self, db, version):
        """Persist ``db`` conditioned on ``version``.

        Raises StoreConflict when the token is stale and StoreUnavailable on
        any other failure. Nothing is written in either case.
        """
        new_version = self.io.put_document(db.to_dict(), version)
        logger.info(f'Committed stats document with {len(db.history)} points')
        return new_version
