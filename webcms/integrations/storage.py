"""
Asset Store Client

Images and files referenced by content nodes live in an external object
store. Supported backends:
- local: Local filesystem (for development without S3)
- minio: MinIO or any S3-compatible storage
"""

import asyncio
import logging
import mimetypes
import shutil
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote, urlparse

from webcms.config import settings

logger = logging.getLogger(__name__)

ASSET_PREFIX = "assets"


@dataclass
class UploadedAsset:
    asset_id: str
    url: str
    width: Optional[int] = None
    height: Optional[int] = None


class AssetStore(ABC):
    """Opaque object storage keyed by an asset id extracted from a URL."""

    @abstractmethod
    async def upload(self, local_path: Union[str, Path]) -> UploadedAsset:
        pass

    @abstractmethod
    async def delete(self, asset_id: str) -> bool:
        """Delete an asset. Unknown ids are not an error."""
        pass

    @abstractmethod
    def public_url(self, asset_id: str) -> str:
        pass

    @abstractmethod
    def extract_asset_id(self, url: Optional[str]) -> Optional[str]:
        pass

    def _new_asset_id(self, local_path: Path) -> str:
        return f"{ASSET_PREFIX}/{uuid.uuid4().hex}{local_path.suffix.lower()}"

    def _get_content_type(self, key: str) -> str:
        content_type, _ = mimetypes.guess_type(key)
        return content_type or "application/octet-stream"

    @staticmethod
    def _strip_prefix(url: str, prefix: str) -> Optional[str]:
        prefix = prefix.rstrip("/") + "/"
        if not url.startswith(prefix):
            return None
        key = url[len(prefix):].split("?", 1)[0].split("#", 1)[0]
        return unquote(key) or None


class LocalAssetStore(AssetStore):
    """Local filesystem asset store for development."""

    def __init__(self, base_path: Optional[str] = None, base_url: Optional[str] = None):
        self.base_path = Path(base_path or settings.LOCAL_STORAGE_PATH)
        self.base_url = (base_url or settings.LOCAL_STORAGE_BASE_URL).rstrip("/")
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"LocalAssetStore initialized at {self.base_path}")

    def _get_full_path(self, asset_id: str) -> Path:
        full_path = (self.base_path / asset_id).resolve()
        if self.base_path.resolve() not in full_path.parents:
            raise ValueError(f"Asset id escapes the storage root: {asset_id}")
        return full_path

    async def upload(self, local_path: Union[str, Path]) -> UploadedAsset:
        source_path = Path(local_path)
        asset_id = self._new_asset_id(source_path)
        dest_path = self._get_full_path(asset_id)
        dest_path.parent.mkdir(parents=True, exist_ok=True)

        await asyncio.get_running_loop().run_in_executor(None, shutil.copy2, source_path, dest_path)

        logger.info(f"Uploaded file {source_path} as asset {asset_id}")
        return UploadedAsset(asset_id=asset_id, url=self.public_url(asset_id))

    async def delete(self, asset_id: str) -> bool:
        file_path = self._get_full_path(asset_id)
        existed = file_path.exists()
        file_path.unlink(missing_ok=True)
        return existed

    def exists(self, asset_id: str) -> bool:
        return self._get_full_path(asset_id).exists()

    def public_url(self, asset_id: str) -> str:
        return f"{self.base_url}/{asset_id}"

    def extract_asset_id(self, url: Optional[str]) -> Optional[str]:
        if not url:
            return None
        return self._strip_prefix(url, self.base_url)


class S3AssetStore(AssetStore):
    """S3-compatible asset store using MinIO.

    The minio client is blocking, so calls run in the default executor.
    """

    def __init__(self, endpoint: str, access_key: str, secret_key: str, bucket: str, secure: bool = False):
        from minio import Minio

        self.endpoint = endpoint
        self.bucket = bucket
        self.secure = secure

        self._client = Minio(
            endpoint,
            access_key=access_key,
            secret_key=secret_key,
            secure=secure,
        )
        self._bucket_checked = False
        logger.info(f"S3AssetStore initialized for {endpoint}/{bucket}")

    async def _run(self, func, *args, **kwargs):
        return await asyncio.get_running_loop().run_in_executor(
            None,
            partial(func, *args, **kwargs),
        )

    def _ensure_bucket(self):
        from minio.error import S3Error

        if self._bucket_checked:
            return
        try:
            if not self._client.bucket_exists(self.bucket):
                self._client.make_bucket(self.bucket)
                logger.info(f"Created bucket: {self.bucket}")
        except S3Error as e:
            if e.code != "BucketAlreadyOwnedByYou":
                logger.error(f"Failed to ensure bucket: {e}")
                raise
        self._bucket_checked = True

    async def upload(self, local_path: Union[str, Path]) -> UploadedAsset:
        source_path = Path(local_path)
        asset_id = self._new_asset_id(source_path)

        await self._run(self._ensure_bucket)
        await self._run(
            self._client.fput_object,
            self.bucket,
            asset_id,
            str(source_path),
            content_type=self._get_content_type(str(source_path)),
        )

        logger.info(f"Uploaded file {source_path} to s3://{self.bucket}/{asset_id}")
        return UploadedAsset(asset_id=asset_id, url=self.public_url(asset_id))

    async def delete(self, asset_id: str) -> bool:
        from minio.error import S3Error

        try:
            await self._run(self._client.remove_object, self.bucket, asset_id)
            return True
        except S3Error as e:
            if e.code == "NoSuchKey":
                return False
            raise

    def public_url(self, asset_id: str) -> str:
        protocol = "https" if self.secure else "http"
        return f"{protocol}://{self.endpoint}/{self.bucket}/{asset_id}"

    def extract_asset_id(self, url: Optional[str]) -> Optional[str]:
        if not url:
            return None
        parsed = urlparse(url)
        if parsed.netloc != self.endpoint:
            return None
        prefix = f"/{self.bucket}/"
        if not parsed.path.startswith(prefix):
            return None
        return unquote(parsed.path[len(prefix):]) or None


_default_store: Optional[AssetStore] = None


def get_asset_store() -> AssetStore:
    """Get or create the default asset store based on settings."""
    global _default_store

    if _default_store is None:
        provider = settings.STORAGE_PROVIDER
        logger.info(f"Initializing asset store with provider: {provider}")

        if provider == "local":
            _default_store = LocalAssetStore()
        else:
            _default_store = S3AssetStore(
                endpoint=settings.MINIO_ENDPOINT,
                access_key=settings.MINIO_ACCESS_KEY,
                secret_key=settings.MINIO_SECRET_KEY,
                bucket=settings.MINIO_BUCKET,
                secure=settings.MINIO_USE_SSL,
            )

    return _default_store


def reset_asset_store():
    """Reset the default store (useful for testing or config changes)."""
    global _default_store
    _default_store = None
