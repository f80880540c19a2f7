"""Aggregation logic: folds classified calls into global, per-mode and per-stop tallies."""

import logging
from dataclasses import dataclass, field

from classifier import classify
from config import UNKNOWN_MODE
from models import HistoryPoint, Status, Tally

logger = logging.getLogger(__name__)


@dataclass
class RunAggregate:
    """Tallies owned by a single sampling run.

    Created empty at run start, filled one stop at a time and consumed once
    by ``to_point``.
    """
    tally: Tally = field(default_factory=Tally)
    modes: dict = field(default_factory=dict)
    stops: dict = field(default_factory=dict)
    failed_stops: list = field(default_factory=list)

    @property
    def empty(self):
        return self.tally.total == 0

    def add_stop(self, stop_id, tally, modes):
        """Record one stop's tallies and sum them into the run totals."""
        self.stops[stop_id] = tally
        self.tally.add(tally)
        for mode, mode_tally in modes.items():
            self.modes.setdefault(mode, Tally()).add(mode_tally)

    def to_point(self, timestamp, include_stops=True):
        return HistoryPoint(
            t=int(timestamp),
            tally=self.tally,
            modes=self.modes,
            stops=self.stops if include_stops else None,
        )


def aggregate_calls(calls):
    """Classify calls in order and tally them.

    Returns (global Tally, {mode: Tally}). Ignored calls touch no counter.
    """
    tally = Tally()
    modes = {}

    for call in calls:
        status = classify(call)
        if status is Status.IGNORED:
            continue
        tally.record(status)
        modes.setdefault(call.mode or UNKNOWN_MODE, Tally()).record(status)

    return tally, modes


def aggregate_stops(fetches):
    """Build a RunAggregate from per-stop fetch results.

    Failed fetches are listed in ``failed_stops`` and contribute nothing.
    """
    run = RunAggregate()

    for fetch in fetches:
        if not fetch.ok:
            run.failed_stops.append(fetch.stop_id)
            continue
        tally, modes = aggregate_calls(fetch.calls)
        run.add_stop(fetch.stop_id, tally, modes)
        logger.debug(f'{fetch.stop_id}: {tally.total} realtime calls of {len(fetch.calls)}')

    return run


def pct_on_time(tally):
    if tally.total == 0:
        return 0
    return round(100 * tally.on_time / tally.total)


def summary_line(tally, when):
    return (
        f'{when.isoformat()} - {pct_on_time(tally)}% on time '
        f'({tally.on_time}/{tally.total}, {tally.delayed} delayed, {tally.cancelled} cancelled)'
    )
