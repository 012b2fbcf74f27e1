"""
S3 object storage for extracted asset binaries.

Thin async layer over an aioboto3 session. Every S3 failure surfaces as a
StorageError naming the key; a missing object is answered, not raised.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import aioboto3
from botocore.exceptions import ClientError

from core.exceptions import ConfigurationError, StorageError

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")

# Global singleton
_s3_service_instance = None


def get_s3_service() -> 'S3Service':
    """Get singleton instance of S3Service."""
    global _s3_service_instance
    if _s3_service_instance is None:
        _s3_service_instance = S3Service()
    return _s3_service_instance


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3Service:
    """
    Bucket-scoped S3 operations.

    Args:
        session: Pre-built aioboto3 session (skips credential lookup and the bucket check)
        bucket_name: Bucket to use with an injected session
    """

    def __init__(self, session: Any = None, bucket_name: Optional[str] = None):
        self.session = session
        self.bucket_name: Optional[str] = bucket_name
        self.region_name: Optional[str] = None
        self._initialized = session is not None and bucket_name is not None

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(
        self,
        bucket_name: Optional[str] = None,
        region_name: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
    ):
        """
        Open a session and check the bucket is reachable.

        Credentials not passed here come from the standard AWS chain
        (environment, shared config, instance role).

        Raises:
            ConfigurationError: no bucket configured, or the bucket check failed
        """
        if self._initialized:
            logger.info("S3 already initialized")
            return

        bucket_name = bucket_name or os.getenv("S3_BUCKET_NAME")
        if not bucket_name:
            raise ConfigurationError("S3 bucket name is required (S3_BUCKET_NAME)")

        credentials = {
            key: value
            for key, value in (
                ("aws_access_key_id", aws_access_key_id),
                ("aws_secret_access_key", aws_secret_access_key),
            )
            if value
        }
        session = aioboto3.Session(region_name=region_name, **credentials)

        try:
            async with session.client('s3') as client:
                await client.head_bucket(Bucket=bucket_name)
        except ClientError as e:
            logger.error(f"S3 bucket check failed for {bucket_name}: {e}")
            raise ConfigurationError(f"S3 bucket {bucket_name} is not accessible: {_error_code(e)}") from e

        self.session = session
        self.bucket_name = bucket_name
        self.region_name = region_name
        self._initialized = True
        logger.info(f"S3 initialized: bucket={bucket_name}, region={region_name or 'default'}")

    @asynccontextmanager
    async def _client(self, action: str, key: str):
        """S3 client for one call; ClientError becomes StorageError."""
        if not self._initialized:
            raise ConfigurationError("S3 not initialized. Call await s3_service.initialize() first.")
        try:
            async with self.session.client('s3') as client:
                yield client
        except ClientError as e:
            logger.error(f"{action} failed for {key}: {e}")
            raise StorageError(f"{action} failed for {key}: {e}") from e

    def object_url(self, key: str) -> str:
        """Virtual-hosted style URL of an object."""
        if self.region_name:
            return f"https://{self.bucket_name}.s3.{self.region_name}.amazonaws.com/{key}"
        return f"https://{self.bucket_name}.s3.amazonaws.com/{key}"

    async def upload_bytes(
        self,
        data: bytes,
        key: str,
        content_type: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """
        Store ``data`` under ``key``.

        Args:
            data: Object content
            key: S3 object key
            content_type: MIME type stored with the object
            metadata: User metadata (string values)

        Returns:
            Dict with s3_key, s3_url, url and size

        Raises:
            StorageError: if S3 rejects the upload
        """
        put_kwargs: Dict[str, Any] = {"Bucket": self.bucket_name, "Key": key, "Body": data}
        if content_type:
            put_kwargs["ContentType"] = content_type
        if metadata:
            put_kwargs["Metadata"] = metadata

        async with self._client("Upload", key) as client:
            await client.put_object(**put_kwargs)

        logger.debug(f"Uploaded {len(data)} bytes to {key}")
        return {
            "s3_key": key,
            "s3_url": f"s3://{self.bucket_name}/{key}",
            "url": self.object_url(key),
            "size": len(data),
        }

    async def generate_presigned_url(self, key: str, expires_in: int) -> str:
        """Time-limited GET URL for an object."""
        async with self._client("Presigning", key) as client:
            return await client.generate_presigned_url(
                'get_object',
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=expires_in,
            )

    async def download_bytes(self, key: str) -> bytes:
        async with self._client("Download", key) as client:
            response = await client.get_object(Bucket=self.bucket_name, Key=key)
            async with response["Body"] as stream:
                return await stream.read()

    async def delete_file(self, key: str) -> bool:
        """Remove an object; S3 treats deleting an absent key as success."""
        async with self._client("Delete", key) as client:
            await client.delete_object(Bucket=self.bucket_name, Key=key)
        logger.debug(f"Deleted object: {key}")
        return True

    async def file_exists(self, key: str) -> bool:
        if not self._initialized:
            raise ConfigurationError("S3 not initialized. Call await s3_service.initialize() first.")
        try:
            async with self.session.client('s3') as client:
                await client.head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return False
            raise StorageError(f"Existence check failed for {key}: {e}") from e
        return True
