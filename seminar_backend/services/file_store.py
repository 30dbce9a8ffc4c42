"""
Report file storage.

Two backends share one interface:
- ``LocalFileStore`` writes under ``UPLOAD_DIR`` and is served as a byte stream.
- ``S3FileStore`` writes to a bucket and is served through presigned URLs.
"""

import logging
import os
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from seminar_backend.core import config

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]+')


class FileStoreError(Exception):
    """The storage backend could not complete the operation."""


class StoredFileMissing(FileStoreError):
    pass


@dataclass(frozen=True)
class StoredFile:
    storage_key: str
    size: int


@dataclass(frozen=True)
class FileLocation:
    """Where a client can fetch a stored file: a local path or a URL."""
    path: Optional[Path] = None
    url: Optional[str] = None


class FileStore(Protocol):
    def save(self, data: bytes, original_name: str, content_type: Optional[str], owner_id: str) -> StoredFile: ...

    def locate(self, storage_key: str, download_name: str) -> FileLocation: ...

    def delete(self, storage_key: str) -> bool: ...


def build_storage_key(original_name: str, owner_id: str) -> str:
    name = _UNSAFE_CHARS.sub('_', os.path.basename(original_name)).strip('._') or 'report'
    return f"{owner_id}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}_{name}"


class LocalFileStore:
    def __init__(self, root: str | Path = config.UPLOAD_DIR):
        self.root = Path(root)

    def _path_for(self, storage_key: str) -> Path:
        path = (self.root / storage_key).resolve()
        if self.root.resolve() not in path.parents:
            raise StoredFileMissing(storage_key)
        return path

    def save(self, data: bytes, original_name: str, content_type: Optional[str], owner_id: str) -> StoredFile:
        storage_key = build_storage_key(original_name, owner_id)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            self._path_for(storage_key).write_bytes(data)
        except OSError as exc:
            raise FileStoreError(f'Could not write {storage_key}: {exc}') from exc
        return StoredFile(storage_key=storage_key, size=len(data))

    def locate(self, storage_key: str, download_name: str) -> FileLocation:
        path = self._path_for(storage_key)
        if not path.is_file():
            raise StoredFileMissing(storage_key)
        return FileLocation(path=path)

    def delete(self, storage_key: str) -> bool:
        try:
            self._path_for(storage_key).unlink()
            return True
        except (FileNotFoundError, StoredFileMissing):
            return False
        except OSError as exc:
            logger.warning('Could not delete stored file %s: %s', storage_key, exc)
            return False


class S3FileStore:
    def __init__(
        self,
        bucket: str = config.S3_BUCKET_NAME,
        prefix: str = config.S3_KEY_PREFIX,
        url_expires_seconds: int = config.S3_PRESIGNED_URL_EXPIRES_SECONDS,
        client=None,
    ):
        self.bucket = bucket
        self.prefix = prefix.strip('/')
        self.url_expires_seconds = url_expires_seconds
        self._client = client

    def _get_client(self):
        if self._client is None:
            if config.AWS_ACCESS_KEY_ID and config.AWS_SECRET_ACCESS_KEY:
                self._client = boto3.client(
                    's3',
                    aws_access_key_id=config.AWS_ACCESS_KEY_ID,
                    aws_secret_access_key=config.AWS_SECRET_ACCESS_KEY,
                    region_name=config.AWS_REGION,
                )
            else:
                # Falls back to the instance role / default credential chain.
                self._client = boto3.client('s3', region_name=config.AWS_REGION)
        return self._client

    def _object_key(self, storage_key: str) -> str:
        return f'{self.prefix}/{storage_key}' if self.prefix else storage_key

    def save(self, data: bytes, original_name: str, content_type: Optional[str], owner_id: str) -> StoredFile:
        storage_key = build_storage_key(original_name, owner_id)
        try:
            self._get_client().put_object(
                Bucket=self.bucket,
                Key=self._object_key(storage_key),
                Body=data,
                ContentType=content_type or 'application/octet-stream',
            )
        except (ClientError, BotoCoreError) as exc:
            raise FileStoreError(f'Could not upload {storage_key}: {exc}') from exc
        return StoredFile(storage_key=storage_key, size=len(data))

    def locate(self, storage_key: str, download_name: str) -> FileLocation:
        client = self._get_client()
        key = self._object_key(storage_key)
        try:
            client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            code = exc.response.get('Error', {}).get('Code')
            if code in ('404', 'NoSuchKey', 'NotFound'):
                raise StoredFileMissing(storage_key) from exc
            raise FileStoreError(str(exc)) from exc
        except BotoCoreError as exc:
            raise FileStoreError(str(exc)) from exc

        disposition = f"attachment; filename*=UTF-8''{quote(download_name)}"
        url = client.generate_presigned_url(
            'get_object',
            Params={'Bucket': self.bucket, 'Key': key, 'ResponseContentDisposition': disposition},
            ExpiresIn=self.url_expires_seconds,
        )
        return FileLocation(url=url)

    def delete(self, storage_key: str) -> bool:
        try:
            self._get_client().delete_object(Bucket=self.bucket, Key=self._object_key(storage_key))
            return True
        except (ClientError, BotoCoreError) as exc:
            logger.warning('Could not delete S3 object %s: %s', storage_key, exc)
            return False


def create_file_store() -> FileStore:
    if config.STORAGE_BACKEND == 's3':
        return S3FileStore()
    return LocalFileStore()
