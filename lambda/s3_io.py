"""S3 I/O for the stats document, with ETag-conditioned writes."""

import boto3
import json
import logging

from botocore.exceptions import BotoCoreError, ClientError

from errors import StoreConflict, StoreUnavailable

logger = logging.getLogger(__name__)

CONFLICT_CODES = {'PreconditionFailed', 'ConditionalRequestConflict', '412', '409'}
NOT_FOUND_CODES = {'NoSuchKey', '404'}


def _error_code(err):
    return str(err.response.get('Error', {}).get('Code', ''))


class S3IO:
    def __init__(self, bucket, key, client=None):
        self.s3 = client if client is not None else boto3.client('s3')
        self.bucket = bucket
        self.key = key

    def get_document(self):
        """Read the JSON document.

        Returns (data, etag), or (None, None) if the key does not exist.
        """
        try:
            obj = self.s3.get_object(Bucket=self.bucket, Key=self.key)
            body = obj['Body'].read()
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                logger.info(f's3://{self.bucket}/{self.key} not found')
                return None, None
            raise StoreUnavailable(f'GET s3://{self.bucket}/{self.key}: {e}') from e
        except BotoCoreError as e:
            raise StoreUnavailable(f'GET s3://{self.bucket}/{self.key}: {e}') from e

        try:
            data = json.loads(body.decode('utf-8'))
        except ValueError as e:
            raise StoreUnavailable(f's3://{self.bucket}/{self.key} is not valid JSON: {e}') from e

        return data, obj['ETag']

    def head_version(self):
        """ETag of the stored object without reading it, or None if absent."""
        try:
            obj = self.s3.head_object(Bucket=self.bucket, Key=self.key)
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return None
            raise StoreUnavailable(f'HEAD s3://{self.bucket}/{self.key}: {e}') from e
        except BotoCoreError as e:
            raise StoreUnavailable(f'HEAD s3://{self.bucket}/{self.key}: {e}') from e
        return obj['ETag']

    def put_document(self, data, version):
        """Write the JSON document only if it is still at ``version``.

        A null version means the document must not exist yet. Returns the new
        ETag. Raises StoreConflict if another writer got there first.
        """
        condition = {'IfMatch': version} if version is not None else {'IfNoneMatch': '*'}
        try:
            resp = self.s3.put_object(
                Bucket=self.bucket,
                Key=self.key,
                Body=json.dumps(data, separators=(',', ':')).encode('utf-8'),
                ContentType='application/json',
                CacheControl='public, max-age=60',
                **condition,
            )
        except ClientError as e:
            if _error_code(e) in CONFLICT_CODES:
                raise StoreConflict(f's3://{self.bucket}/{self.key} changed since {version}') from e
            raise StoreUnavailable(f'PUT s3://{self.bucket}/{self.key}: {e}') from e
        except BotoCoreError as e:
            raise StoreUnavailable(f'PUT s3://{self.bucket}/{self.key}: {e}') from e

        return resp.get('ETag')
