"""Entry points for the Oslo transit punctuality tracker.

Triggered every 15 minutes, either by EventBridge as a Lambda or by cron via
``main``. Samples departures at the configured stops, counts on-time, delayed
and cancelled realtime calls, and appends one point to the stats document
read by the static frontend.
"""

import os
import logging
import sys

from collector import RunStatus, run_collection
from config import STOPS, DEFAULT_CLIENT_NAME, DEFAULT_STATS_KEY, DEFAULT_STATS_PATH, COMMIT_RETRIES
from entur_client import EnturClient
from history_store import HistoryStore
from local_io import LocalIO
from s3_io import S3IO

logger = logging.getLogger()
logger.setLevel(logging.INFO)

STATUS_CODES = {
    RunStatus.COMMITTED: 200,
    RunStatus.EMPTY: 204,
    RunStatus.CONFLICT: 409,
    RunStatus.UNAVAILABLE: 503,
}


def build_store(env):
    bucket = env.get('STATS_BUCKET')
    if bucket:
        return HistoryStore(S3IO(bucket=bucket, key=env.get('STATS_KEY', DEFAULT_STATS_KEY)))
    return HistoryStore(LocalIO(env.get('STATS_PATH', DEFAULT_STATS_PATH)))


def run_from_env(env=None):
    env = os.environ if env is None else env
    client = EnturClient(client_name=env.get('ET_CLIENT_NAME', DEFAULT_CLIENT_NAME))
    return run_collection(
        client,
        build_store(env),
        STOPS,
        workers=int(env.get('FETCH_WORKERS', 1)),
        commit_retries=int(env.get('COMMIT_RETRIES', COMMIT_RETRIES)),
    )


def handler(event, context):
    outcome = run_from_env()
    return {'statusCode': STATUS_CODES[outcome.status], 'body': outcome.summary()}


def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    outcome = run_from_env()
    return 0 if outcome.ok else 1


if __name__ == '__main__':
    sys.exit(main())
