"""Entur Journey Planner client. Fetches estimated calls for a stop place."""

import urllib.request
import urllib.error
import json
import time
import logging
from datetime import datetime

from config import (
    ENTUR_URL, DEFAULT_CLIENT_NAME, TIME_RANGE_SECONDS, DEPARTURES_PER_STOP,
    FETCH_TIMEOUT_SECONDS, FETCH_ATTEMPTS, UNKNOWN_MODE,
)
from errors import FetchError
from models import EstimatedCall, StopFetch

logger = logging.getLogger(__name__)

ESTIMATED_CALLS_QUERY = '''
query ($id: String!, $timeRange: Int!, $departures: Int!) {
  stopPlace(id: $id) {
    name
    latitude
    longitude
    estimatedCalls(timeRange: $timeRange, numberOfDepartures: $departures) {
      realtime
      cancellation
      aimedDepartureTime
      expectedDepartureTime
      serviceJourney {
        journeyPattern { line { publicCode transportMode } }
      }
    }
  }
}
'''


def parse_time(value):
    """Parse an ISO-8601 timestamp. Raises ValueError unless it carries an offset."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise ValueError(f'timestamp without UTC offset: {value!r}')
    return parsed


def format_errors(errors):
    if not isinstance(errors, list):
        return str(errors)
    return '; '.join(
        str(err.get('message', err)) if isinstance(err, dict) else str(err)
        for err in errors
    )


def parse_call(raw):
    """Turn one estimatedCalls entry into an EstimatedCall.

    Raises KeyError/TypeError/ValueError on missing or unparsable timestamps.
    """
    journey = raw.get('serviceJourney') or {}
    pattern = journey.get('journeyPattern') or {}
    line = pattern.get('line') or {}

    return EstimatedCall(
        realtime=bool(raw.get('realtime')),
        cancelled=bool(raw.get('cancellation')),
        aimed_time=parse_time(raw['aimedDepartureTime']),
        expected_time=parse_time(raw['expectedDepartureTime']),
        mode=line.get('transportMode') or UNKNOWN_MODE,
    )


class EnturClient:
    def __init__(self, client_name=DEFAULT_CLIENT_NAME, url=ENTUR_URL,
                 timeout=FETCH_TIMEOUT_SECONDS, attempts=FETCH_ATTEMPTS):
        self.client_name = client_name
        self.url = url
        self.timeout = timeout
        self.attempts = attempts

    def _post(self, query, variables):
        """POST a GraphQL query with retries. Returns the decoded JSON body."""
        body = json.dumps({'query': query, 'variables': variables}).encode('utf-8')
        req = urllib.request.Request(self.url, data=body, method='POST')
        req.add_header('Content-Type', 'application/json')
        req.add_header('ET-Client-Name', self.client_name)

        for attempt in range(self.attempts):
            try:
                with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                    return json.loads(resp.read().decode('utf-8'))
            except (OSError, ValueError) as e:
                logger.warning(f'Entur attempt {attempt + 1} failed for {variables.get("id")}: {e}')
                if attempt < self.attempts - 1:
                    time.sleep(2 ** attempt)
                else:
                    raise

    def get_stop_place(self, stop_id, time_range=TIME_RANGE_SECONDS, departures=DEPARTURES_PER_STOP):
        """Fetch a stop place and its estimated calls.

        Returns a StopFetch with parsed calls. Raises FetchError for any
        transport, HTTP, or payload problem; a stop never yields a partial list.
        """
        variables = {'id': stop_id, 'timeRange': time_range, 'departures': departures}
        try:
            payload = self._post(ESTIMATED_CALLS_QUERY, variables)
        except urllib.error.HTTPError as e:
            raise FetchError(stop_id, f'HTTP {e.code}') from e
        except (OSError, ValueError) as e:
            raise FetchError(stop_id, str(e)) from e

        if not isinstance(payload, dict):
            raise FetchError(stop_id, 'response is not a JSON object')

        data = payload.get('data') or {}
        errors = payload.get('errors')
        if errors and not data:
            raise FetchError(stop_id, f'GraphQL errors: {format_errors(errors)}')
        if not isinstance(data, dict):
            raise FetchError(stop_id, 'data is not a JSON object')

        place = data.get('stopPlace')
        if place is None:
            raise FetchError(stop_id, 'unknown stop place')
        if not isinstance(place, dict):
            raise FetchError(stop_id, 'stopPlace is not a JSON object')

        try:
            calls = [parse_call(raw) for raw in place.get('estimatedCalls') or []]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise FetchError(stop_id, f'malformed estimated call: {e!r}') from e

        return StopFetch(
            stop_id=stop_id,
            calls=calls,
            name=place.get('name'),
            lat=place.get('latitude'),
            lon=place.get('longitude'),
        )
