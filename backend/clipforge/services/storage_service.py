"""Object storage for uploaded videos and generated clips."""
import asyncio
import logging
import re
import secrets
import shutil
import time
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import ClientError

from clipforge.config import Settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Object storage related error."""
    pass


class ObjectNotFoundError(StorageError):
    """Requested key does not exist."""
    pass


def generate_unique_key(filename: str, prefix: str = "") -> str:
    """Collision-resistant key: ``{prefix}/{epoch_ms}-{random}-{sanitized filename}``."""
    sanitized = re.sub(r"[^a-zA-Z0-9.-]", "_", filename)
    key = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}-{sanitized}"
    return f"{prefix.rstrip('/')}/{key}" if prefix else key


def video_storage_key(video_id: str, extension: str) -> str:
    """Key under which an uploaded source video is stored."""
    return f"videos/{video_id}.{extension}"


class ObjectStorage:
    """Interface implemented by the storage backends."""

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        raise NotImplementedError

    async def put_file(self, key: str, path: str | Path, content_type: str) -> None:
        raise NotImplementedError

    async def get(self, key: str) -> bytes:
        raise NotImplementedError

    async def download_to_file(self, key: str, path: str | Path) -> Path:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    async def signed_download_url(self, key: str, ttl_seconds: int = 300) -> str:
        raise NotImplementedError


class S3ObjectStorage(ObjectStorage):
    """S3-compatible storage (AWS S3, Cloudflare R2) through boto3."""

    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = None,
        region: str = "auto",
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket
        self._client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url or None,
            region_name=region,
            aws_access_key_id=access_key_id or None,
            aws_secret_access_key=secret_access_key or None,
        )

    @staticmethod
    def _is_missing(error: ClientError) -> bool:
        code = error.response.get("Error", {}).get("Code", "")
        return code in ("404", "NoSuchKey", "NotFound")

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        await asyncio.to_thread(
            self._client.put_object,
            Bucket=self.bucket, Key=key, Body=data, ContentType=content_type,
        )
        logger.debug(f"Uploaded {len(data)} bytes to s3://{self.bucket}/{key}")

    async def put_file(self, key: str, path: str | Path, content_type: str) -> None:
        await asyncio.to_thread(
            self._client.upload_file,
            str(path), self.bucket, key,
            ExtraArgs={"ContentType": content_type},
        )
        logger.debug(f"Uploaded {path} to s3://{self.bucket}/{key}")

    async def get(self, key: str) -> bytes:
        def _get():
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()

        try:
            return await asyncio.to_thread(_get)
        except ClientError as e:
            if self._is_missing(e):
                raise ObjectNotFoundError(f"Object not found: {key}") from e
            raise StorageError(f"Failed to read {key}: {e}") from e

    async def download_to_file(self, key: str, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            # Streams to disk; the object is never held in memory
            await asyncio.to_thread(self._client.download_file, self.bucket, key, str(path))
        except ClientError as e:
            if self._is_missing(e):
                raise ObjectNotFoundError(f"Object not found: {key}") from e
            raise StorageError(f"Failed to download {key}: {e}") from e
        return path

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._client.delete_object, Bucket=self.bucket, Key=key)

    async def signed_download_url(self, key: str, ttl_seconds: int = 300) -> str:
        return await asyncio.to_thread(
            self._client.generate_presigned_url,
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=ttl_seconds,
        )


class LocalObjectStorage(ObjectStorage):
    """Filesystem-backed storage for local development."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise StorageError(f"Invalid key: {key}")
        return path

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, data)

    async def put_file(self, key: str, path: str | Path, content_type: str) -> None:
        dest = self._path(key)
        dest.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(shutil.copyfile, str(path), str(dest))

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        if not path.exists():
            raise ObjectNotFoundError(f"Object not found: {key}")
        return await asyncio.to_thread(path.read_bytes)

    async def download_to_file(self, key: str, path: str | Path) -> Path:
        source = self._path(key)
        if not source.exists():
            raise ObjectNotFoundError(f"Object not found: {key}")
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(shutil.copyfile, str(source), str(path))
        return path

    async def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    async def signed_download_url(self, key: str, ttl_seconds: int = 300) -> str:
        return self._path(key).as_uri()

    def exists(self, key: str) -> bool:
        return self._path(key).exists()


def create_storage(config: Settings) -> ObjectStorage:
    """Build the configured storage backend."""
    if config.storage_backend == "s3":
        return S3ObjectStorage(
            bucket=config.s3_bucket,
            endpoint_url=config.s3_endpoint_url,
            region=config.s3_region,
            access_key_id=config.s3_access_key_id,
            secret_access_key=config.s3_secret_access_key,
        )
    return LocalObjectStorage(config.storage_local_dir)
