#!/usr/bin/env python3
"""Import an on-disk stats.json into the S3 stats document.

Earlier deployments ran the collector from cron and committed
data/stats.json to the repository. This uploads such a file (old
``updated`` layout accepted) so the Lambda can keep appending to it:

1. Normalises it to the current layout, keeping the newest points
2. Refreshes stop metadata from the configured stop list
3. Writes it with the same conditional put the collector uses

Usage:
    python3 scripts/import_local_stats.py data/stats.json --bucket my-bucket [--force]
"""

import argparse
import logging
import os
import sys

# Add lambda dir to path for shared modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'lambda'))
from config import STOPS, DEFAULT_STATS_KEY, HISTORY_LIMIT
from errors import StoreConflict, StoreError
from history_store import HistoryStore
from local_io import LocalIO
from s3_io import S3IO
from stop_metadata import configured_records

logger = logging.getLogger('import_local_stats')


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument('path', help='local stats.json to import')
    parser.add_argument('--bucket', default=os.environ.get('STATS_BUCKET'), help='target S3 bucket')
    parser.add_argument('--key', default=os.environ.get('STATS_KEY', DEFAULT_STATS_KEY), help='target S3 key')
    parser.add_argument('--force', action='store_true', help='replace an existing S3 document')
    args = parser.parse_args(argv)
    if not args.bucket:
        parser.error('--bucket or STATS_BUCKET is required')
    return args


def import_stats(source, target, force=False):
    """Copy the document from ``source`` into ``target`` (both HistoryStores).

    Returns the number of points written.
    """
    db, _ = source.load()
    if not db.history:
        raise ValueError('source has no history points')

    if len(db.history) > target.limit:
        logger.info(f'Trimming {len(db.history) - target.limit} oldest points')
        db.history = db.history[-target.limit:]
    db.stop_metadata = configured_records(STOPS)

    # A null token only succeeds if nothing is stored yet. Forcing takes the
    # raw token so a corrupt document can still be replaced.
    version = target.current_version() if force else None
    target.commit(db, version)
    return len(db.history)


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format='%(levelname)s %(message)s')
    args = parse_args(argv)

    source = HistoryStore(LocalIO(args.path), limit=HISTORY_LIMIT)
    target = HistoryStore(S3IO(bucket=args.bucket, key=args.key), limit=HISTORY_LIMIT)

    try:
        count = import_stats(source, target, force=args.force)
    except StoreConflict as e:
        logger.error(f'Import refused: {e} (use --force to replace an existing document)')
        return 1
    except StoreError as e:
        logger.error(f'Import failed: {e}')
        return 1
    except ValueError as e:
        logger.error(f'Nothing to import: {e}')
        return 1

    logger.info(f'Imported {count} points into s3://{args.bucket}/{args.key}')
    return 0


if __name__ == '__main__':
    sys.exit(main())
