"""One sampling run: fetch every stop, aggregate, and merge the point into history."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from aggregator import RunAggregate, aggregate_stops, summary_line
from config import COMMIT_RETRIES
from errors import FetchError, StoreConflict, StoreUnavailable
from models import StopFetch
from stop_metadata import build_stop_metadata

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    COMMITTED = 'committed'
    EMPTY = 'empty'
    CONFLICT = 'conflict'
    UNAVAILABLE = 'unavailable'


@dataclass
class RunOutcome:
    status: RunStatus
    aggregate: RunAggregate
    history_length: Optional[int] = None
    error: Optional[str] = None
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self):
        return self.status in (RunStatus.COMMITTED, RunStatus.EMPTY)

    def summary(self):
        if self.status is RunStatus.EMPTY:
            return 'No realtime data available, skipping write.'
        line = summary_line(self.aggregate.tally, self.finished_at)
        if self.status is RunStatus.COMMITTED:
            return line
        return f'{line} - not saved ({self.status.value}: {self.error})'


def fetch_stop(client, stop_id):
    try:
        return client.get_stop_place(stop_id)
    except FetchError as e:
        logger.warning(f'Failed {stop_id}: {e.reason}')
        return StopFetch(stop_id=stop_id, error=e.reason)


def fetch_all(client, stop_ids, workers=1):
    """Fetch every stop, isolating failures. Results keep ``stop_ids`` order."""
    if workers <= 1:
        return [fetch_stop(client, stop_id) for stop_id in stop_ids]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(lambda stop_id: fetch_stop(client, stop_id), stop_ids))


def run_collection(client, store, stops, now=None, workers=1, commit_retries=COMMIT_RETRIES):
    """Sample ``stops`` once and append the aggregate to ``store``.

    ``stops`` is the config STOPS mapping. Returns a RunOutcome; store
    failures are reported there rather than raised.
    """
    fetches = fetch_all(client, list(stops), workers=workers)
    run = aggregate_stops(fetches)

    if run.failed_stops:
        logger.warning(f'{len(run.failed_stops)} of {len(fetches)} stops failed: {", ".join(run.failed_stops)}')

    if run.empty:
        outcome = RunOutcome(status=RunStatus.EMPTY, aggregate=run)
        logger.info(outcome.summary())
        return outcome

    now = now or datetime.now(timezone.utc)
    point = run.to_point(now.timestamp())
    metadata = build_stop_metadata(stops, fetches)

    commit_retries = max(0, commit_retries)
    for attempt in range(commit_retries + 1):
        try:
            db, version = store.load()
            merged = store.append(db, point, metadata, now=now)
            store.commit(merged, version)
        except StoreConflict as e:
            if attempt < commit_retries:
                logger.warning(f'Commit conflict, reloading (attempt {attempt + 1}): {e}')
                continue
            logger.error(f'Commit conflict: {e}')
            outcome = RunOutcome(status=RunStatus.CONFLICT, aggregate=run, error=str(e), finished_at=now)
            break
        except StoreUnavailable as e:
            logger.error(f'Store unavailable: {e}')
            outcome = RunOutcome(status=RunStatus.UNAVAILABLE, aggregate=run, error=str(e), finished_at=now)
            break
        else:
            outcome = RunOutcome(
                status=RunStatus.COMMITTED,
                aggregate=run,
                history_length=len(merged.history),
                finished_at=now,
            )
            break

    logger.info(outcome.summary())
    return outcome
