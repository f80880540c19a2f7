"""On-disk stats document, versioned by content hash."""

import fcntl
import hashlib
import json
import logging
import os
import tempfile

from errors import StoreConflict, StoreUnavailable

logger = logging.getLogger(__name__)


def _digest(raw):
    return hashlib.sha256(raw).hexdigest()


class LocalIO:
    """Same get/put contract as S3IO, backed by a JSON file.

    Commits hold an exclusive lock on ``<path>.lock`` while they compare the
    current hash with the caller's token and swap the new file into place.
    """

    def __init__(self, path):
        self.path = path
        self.lock_path = f'{path}.lock'

    def _read_raw(self):
        try:
            with open(self.path, 'rb') as f:
                return f.read()
        except FileNotFoundError:
            return None

    def get_document(self):
        try:
            raw = self._read_raw()
        except OSError as e:
            raise StoreUnavailable(f'read {self.path}: {e}') from e
        if raw is None:
            logger.info(f'{self.path} not found')
            return None, None

        try:
            data = json.loads(raw.decode('utf-8'))
        except ValueError as e:
            raise StoreUnavailable(f'{self.path} is not valid JSON: {e}') from e
        return data, _digest(raw)

    def head_version(self):
        try:
            raw = self._read_raw()
        except OSError as e:
            raise StoreUnavailable(f'read {self.path}: {e}') from e
        return _digest(raw) if raw is not None else None

    def put_document(self, data, version):
        body = json.dumps(data, separators=(',', ':')).encode('utf-8')
        directory = os.path.dirname(os.path.abspath(self.path))

        try:
            os.makedirs(directory, exist_ok=True)
            with open(self.lock_path, 'w') as lock:
                fcntl.flock(lock, fcntl.LOCK_EX)
                try:
                    current = self._read_raw()
                    current_version = _digest(current) if current is not None else None
                    if current_version != version:
                        raise StoreConflict(f'{self.path} changed since {version}')

                    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.stats-')
                    try:
                        with os.fdopen(fd, 'wb') as tmp:
                            tmp.write(body)
                            tmp.flush()
                            os.fsync(tmp.fileno())
                        os.replace(tmp_path, self.path)
                    except BaseException:
                        if os.path.exists(tmp_path):
                            os.unlink(tmp_path)
                        raise
                finally:
                    fcntl.flock(lock, fcntl.LOCK_UN)
        except OSError as e:
            raise StoreUnavailable(f'write {self.path}: {e}') from e

        return _digest(body)
