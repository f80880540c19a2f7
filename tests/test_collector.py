"""End-to-end tests for collector.run_collection with fake data source and store."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from collector import RunStatus, fetch_all, run_collection
from conftest import FakeEntur, MemoryIO, fetch_error, make_call
from entur_client import EnturClient
from errors import StoreUnavailable
from history_store import HistoryStore
from models import StatsDatabase

NOW = datetime(2026, 2, 9, 7, 15, tzinfo=timezone.utc)


def _three_stop_source():
    return FakeEntur({
        'NSR:StopPlace:1': [make_call(0, mode='bus')],
        'NSR:StopPlace:2': [make_call(300, mode='rail'), make_call(cancelled=True, mode='rail')],
        'NSR:StopPlace:3': [],
    })


class RacingIO(MemoryIO):
    """Another writer commits right after every load."""

    def __init__(self, data=None, races=1):
        super().__init__(data)
        self.races = races

    def get_document(self):
        result = super().get_document()
        if self.races:
            self.races -= 1
            self.external_write({'history': [{'t': 'other'}], 'stopMetadata': {}})
        return result


class TestRunCollection:

    def test_three_stops(self, stops, memory_io):
        outcome = run_collection(_three_stop_source(), HistoryStore(memory_io), stops, now=NOW)

        assert outcome.status is RunStatus.COMMITTED
        assert outcome.ok
        assert outcome.history_length == 1
        history = memory_io.data['history']
        assert len(history) == 1
        point = history[0]
        assert point['t'] == int(NOW.timestamp())
        assert (point['total'], point['onTime'], point['delayed'], point['cancelled']) == (3, 1, 1, 1)
        assert point['modes']['rail'] == {'total': 2, 'onTime': 0, 'delayed': 1, 'cancelled': 1}
        assert point['stops']['NSR:StopPlace:3'] == {'total': 0, 'onTime': 0, 'delayed': 0, 'cancelled': 0}

    def test_metadata_written(self, stops, memory_io):
        run_collection(_three_stop_source(), HistoryStore(memory_io), stops, now=NOW)
        meta = memory_io.data['stopMetadata']
        assert set(meta) == set(stops)
        assert meta['NSR:StopPlace:3'] == {'name': 'Third', 'area': 'Frogner', 'lat': 59.93, 'lon': 10.71}
        assert memory_io.data['lastUpdated'] == NOW.isoformat()

    def test_appends_after_existing_history(self, stops):
        io = MemoryIO({'history': [{'t': 1}], 'stopMetadata': {}, 'lastUpdated': None})
        run_collection(_three_stop_source(), HistoryStore(io), stops, now=NOW)
        assert [p['t'] for p in io.data['history']] == [1, int(NOW.timestamp())]

    def test_no_realtime_calls_skips_write(self, stops):
        source = FakeEntur({stop_id: [make_call(realtime=False)] for stop_id in stops})
        store = MagicMock()
        outcome = run_collection(source, store, stops, now=NOW)

        assert outcome.status is RunStatus.EMPTY
        assert outcome.ok
        store.load.assert_not_called()
        store.commit.assert_not_called()

    def test_all_stops_failing_is_empty(self, stops, memory_io):
        source = FakeEntur({stop_id: fetch_error(stop_id) for stop_id in stops})
        outcome = run_collection(source, HistoryStore(memory_io), stops, now=NOW)
        assert outcome.status is RunStatus.EMPTY
        assert outcome.aggregate.failed_stops == list(stops)
        assert memory_io.puts == 0

    def test_failed_stop_is_isolated(self, stops, memory_io):
        source = FakeEntur({
            'NSR:StopPlace:1': [make_call(0)],
            'NSR:StopPlace:2': fetch_error('NSR:StopPlace:2'),
            'NSR:StopPlace:3': [make_call(400)],
        })
        outcome = run_collection(source, HistoryStore(memory_io), stops, now=NOW)

        assert outcome.status is RunStatus.COMMITTED
        assert source.requested == list(stops)
        assert outcome.aggregate.failed_stops == ['NSR:StopPlace:2']
        assert memory_io.data['history'][0]['total'] == 2
        assert 'NSR:StopPlace:2' not in memory_io.data['history'][0]['stops']

    def test_malformed_payload_only_fails_that_stop(self, stops, memory_io):
        good = {'data': {'stopPlace': {'name': 'First', 'estimatedCalls': [{
            'realtime': True,
            'aimedDepartureTime': '2026-02-09T08:00:00+01:00',
            'expectedDepartureTime': '2026-02-09T08:00:00+01:00',
        }]}}}
        payloads = {
            'NSR:StopPlace:1': good,
            'NSR:StopPlace:2': {'data': 'oops'},
            'NSR:StopPlace:3': {'errors': 5},
        }
        client = EnturClient(attempts=1)
        with patch.object(client, '_post', side_effect=lambda query, variables: payloads[variables['id']]):
            outcome = run_collection(client, HistoryStore(memory_io), stops, now=NOW)

        assert outcome.status is RunStatus.COMMITTED
        assert outcome.aggregate.failed_stops == ['NSR:StopPlace:2', 'NSR:StopPlace:3']
        assert memory_io.data['history'][0]['total'] == 1
        assert memory_io.data['history'][0]['modes'] == {
            'unknown': {'total': 1, 'onTime': 1, 'delayed': 0, 'cancelled': 0},
        }

    def test_conflict_is_reported_not_retried(self, stops):
        io = RacingIO(races=5)
        outcome = run_collection(_three_stop_source(), HistoryStore(io), stops, now=NOW, commit_retries=0)

        assert outcome.status is RunStatus.CONFLICT
        assert not outcome.ok
        assert io.puts == 0
        assert io.data['history'] == [{'t': 'other'}]
        assert 'not saved' in outcome.summary()

    def test_conflict_retry_reloads_and_keeps_other_writer(self, stops):
        io = RacingIO(races=1)
        outcome = run_collection(_three_stop_source(), HistoryStore(io), stops, now=NOW, commit_retries=1)

        assert outcome.status is RunStatus.COMMITTED
        assert [p['t'] for p in io.data['history']] == ['other', int(NOW.timestamp())]

    def test_negative_retries_still_reports(self, stops):
        io = RacingIO(races=5)
        outcome = run_collection(_three_stop_source(), HistoryStore(io), stops, now=NOW, commit_retries=-2)
        assert outcome.status is RunStatus.CONFLICT

    def test_negative_retries_commits_once(self, stops, memory_io):
        outcome = run_collection(_three_stop_source(), HistoryStore(memory_io), stops, now=NOW, commit_retries=-1)
        assert outcome.status is RunStatus.COMMITTED
        assert memory_io.puts == 1

    def test_store_unavailable(self, stops):
        store = MagicMock()
        store.load.side_effect = StoreUnavailable('bucket gone')
        outcome = run_collection(_three_stop_source(), store, stops, now=NOW)

        assert outcome.status is RunStatus.UNAVAILABLE
        assert outcome.error == 'bucket gone'
        store.commit.assert_not_called()

    def test_commit_unavailable(self, stops):
        store = MagicMock()
        store.load.return_value = (StatsDatabase(), None)
        store.commit.side_effect = StoreUnavailable('throttled')
        outcome = run_collection(_three_stop_source(), store, stops, now=NOW)
        assert outcome.status is RunStatus.UNAVAILABLE

    def test_parallel_fetch_matches_sequential(self, stops):
        sequential = run_collection(_three_stop_source(), HistoryStore(MemoryIO()), stops, now=NOW)
        parallel = run_collection(_three_stop_source(), HistoryStore(MemoryIO()), stops, now=NOW, workers=3)
        assert sequential.aggregate.tally == parallel.aggregate.tally
        assert sequential.aggregate.modes == parallel.aggregate.modes
        assert sequential.aggregate.stops == parallel.aggregate.stops


class TestFetchAll:

    @pytest.mark.parametrize('workers', [1, 4])
    def test_keeps_stop_order(self, workers):
        source = FakeEntur({'A': [make_call()], 'B': fetch_error('B'), 'C': []})
        results = fetch_all(source, ['A', 'B', 'C'], workers=workers)
        assert [r.stop_id for r in results] == ['A', 'B', 'C']
        assert [r.ok for r in results] == [True, False, True]
        assert results[1].error == 'HTTP 503'
