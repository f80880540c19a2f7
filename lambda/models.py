"""Data types shared by the collector: departures, tallies, history points and the stats document."""

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class Status(str, Enum):
    ON_TIME = 'onTime'
    DELAYED = 'delayed'
    CANCELLED = 'cancelled'
    IGNORED = 'ignored'


@dataclass(frozen=True)
class EstimatedCall:
    """One realtime departure prediction at a stop."""
    realtime: bool
    cancelled: bool
    aimed_time: datetime
    expected_time: datetime
    mode: str


@dataclass
class Tally:
    """Outcome counters for one scope (global, one mode or one stop).

    Only ``record`` and ``add`` change the counters, which keeps
    total == on_time + delayed + cancelled.
    """
    total: int = 0
    on_time: int = 0
    delayed: int = 0
    cancelled: int = 0

    def record(self, status):
        if status is Status.ON_TIME:
            self.on_time += 1
        elif status is Status.DELAYED:
            self.delayed += 1
        elif status is Status.CANCELLED:
            self.cancelled += 1
        else:
            return
        self.total += 1

    def add(self, other):
        self.total += other.total
        self.on_time += other.on_time
        self.delayed += other.delayed
        self.cancelled += other.cancelled

    def to_dict(self):
        return {
            'total': self.total,
            'onTime': self.on_time,
            'delayed': self.delayed,
            'cancelled': self.cancelled,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            total=int(data.get('total', 0)),
            on_time=int(data.get('onTime', 0)),
            delayed=int(data.get('delayed', 0)),
            cancelled=int(data.get('cancelled', 0)),
        )


@dataclass(frozen=True)
class StopRecord:
    stop_id: str
    name: str
    area: str
    lat: Optional[float]
    lon: Optional[float]

    def to_dict(self):
        return {'name': self.name, 'area': self.area, 'lat': self.lat, 'lon': self.lon}

    @classmethod
    def from_dict(cls, stop_id, data):
        if not isinstance(data, dict):
            raise ValueError(f'metadata for {stop_id} is not an object')
        return cls(
            stop_id=stop_id,
            name=data.get('name', stop_id),
            area=data.get('area', ''),
            lat=data.get('lat'),
            lon=data.get('lon'),
        )


@dataclass
class StopFetch:
    """Result of fetching one stop: either calls or a failure reason."""
    stop_id: str
    calls: list = field(default_factory=list)
    error: Optional[str] = None
    name: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None

    @property
    def ok(self):
        return self.error is None


@dataclass(frozen=True)
class HistoryPoint:
    t: int
    tally: Tally
    modes: dict
    stops: Optional[dict] = None

    def to_dict(self):
        point = {'t': self.t}
        point.update(self.tally.to_dict())
        point['modes'] = {mode: tally.to_dict() for mode, tally in self.modes.items()}
        if self.stops is not None:
            point['stops'] = {stop_id: tally.to_dict() for stop_id, tally in self.stops.items()}
        return point


@dataclass
class StatsDatabase:
    """The persisted stats document.

    ``history`` holds points in their stored JSON form, oldest first.
    """
    stop_metadata: dict = field(default_factory=dict)
    history: list = field(default_factory=list)
    last_updated: Optional[str] = None

    def copy(self):
        return copy.deepcopy(self)

    def to_dict(self):
        return {
            'stopMetadata': {stop_id: rec.to_dict() for stop_id, rec in self.stop_metadata.items()},
            'history': self.history,
            'lastUpdated': self.last_updated,
        }

    @classmethod
    def from_dict(cls, data):
        """Parse a stored document, accepting the legacy ``updated`` layout.

        Raises ValueError if the document is not shaped like a stats database.
        """
        if not isinstance(data, dict):
            raise ValueError('stats document is not a JSON object')

        history = data.get('history', [])
        if not isinstance(history, list):
            raise ValueError('history is not a list')

        metadata = data.get('stopMetadata')
        if metadata is None:
            metadata = {}
        if not isinstance(metadata, dict):
            raise ValueError('stopMetadata is not an object')

        return cls(
            stop_metadata={sid: StopRecord.from_dict(sid, rec) for sid, rec in metadata.items()},
            history=history,
            last_updated=data.get('lastUpdated', data.get('updated')),
        )
