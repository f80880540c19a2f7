"""Builds the stop metadata mapping written into the stats document."""

import logging

from models import StopRecord

logger = logging.getLogger(__name__)


def configured_records(stops):
    """Convert the config STOPS mapping into StopRecords."""
    return {stop_id: StopRecord.from_dict(stop_id, meta) for stop_id, meta in stops.items()}


def build_stop_metadata(stops, fetches):
    """Return {stop_id: StopRecord} for every configured stop.

    Name and coordinates reported by a successful fetch win over the
    configured values; the area label always comes from configuration.
    """
    records = configured_records(stops)
    live = {f.stop_id: f for f in fetches if f.ok}

    for stop_id, rec in records.items():
        fetch = live.get(stop_id)
        if fetch is None:
            continue
        records[stop_id] = StopRecord(
            stop_id=stop_id,
            name=fetch.name or rec.name,
            area=rec.area,
            lat=fetch.lat if fetch.lat is not None else rec.lat,
            lon=fetch.lon if fetch.lon is not None else rec.lon,
        )
        if fetch.name and fetch.name != rec.name:
            logger.info(f'{stop_id}: live name {fetch.name!r} differs from configured {rec.name!r}')

    return records
