"""
Asset Storage Service

Places extracted asset bytes and thumbnails in object storage and returns
addressable references.
"""

import logging
from typing import Dict, Optional

from assets.signatures import detect_image_format, mime_type_for
from core.config import ExtractionSettings, get_settings
from core.exceptions import StorageError
from storage.s3 import S3Service, get_s3_service
from utils.asset_schemas import AssetExtractionOptions, AssetMetadata, StorageReference

logger = logging.getLogger(__name__)

UNASSIGNED_PRESENTATION = "unassigned"


def _object_metadata(metadata: Optional[AssetMetadata]) -> Dict[str, str]:
    """S3 user metadata: flat ASCII strings only."""
    if metadata is None:
        return {}
    values = {
        "extraction-method": metadata.extraction_method,
        "extracted-at": metadata.extracted_at,
        "slide-id": metadata.slide_id,
        "shape-id": metadata.shape_id,
        "mime-type": metadata.mime_type,
    }
    return {key: str(value).encode("ascii", "ignore").decode() for key, value in values.items() if value}


class AssetStorageService:
    """
    Asset-level storage on top of S3Service.

    Args:
        s3_service: Low-level S3 wrapper (process singleton by default)
        settings: Folder names, size limit and URL expiry
    """

    def __init__(self, s3_service: Optional[S3Service] = None, settings: Optional[ExtractionSettings] = None):
        self.s3 = s3_service or get_s3_service()
        self.settings = settings or get_settings()

    async def initialize(self):
        if not self.s3.initialized:
            await self.s3.initialize(bucket_name=self.settings.s3_bucket_name, region_name=self.settings.aws_region)

    def asset_path(self, filename: str, presentation_id: Optional[str]) -> str:
        return f"{self.settings.asset_storage_folder}/{presentation_id or UNASSIGNED_PRESENTATION}/{filename}"

    async def upload_asset(
        self,
        data: bytes,
        filename: str,
        metadata: Optional[AssetMetadata] = None,
        options: Optional[AssetExtractionOptions] = None,
    ) -> StorageReference:
        """
        Upload one asset.

        Args:
            data: Asset bytes
            filename: Asset filename (unique per asset)
            metadata: Asset metadata, copied into the object's user metadata
            options: Extraction options (presentation id, download URL flag)

        Returns:
            StorageReference with storage_url, storage_path and, when requested,
            a presigned download_url

        Raises:
            StorageError: if the asset is empty, too large or the upload fails
        """
        options = options or AssetExtractionOptions()
        if not data:
            raise StorageError(f"Refusing to upload empty asset {filename}")
        if len(data) > self.settings.max_asset_size_bytes:
            raise StorageError(
                f"Asset {filename} is {len(data)} bytes, limit is {self.settings.max_asset_size_bytes}"
            )

        path = self.asset_path(filename, options.presentation_id)
        content_type = (metadata.mime_type if metadata else None) or mime_type_for(filename.rsplit(".", 1)[-1])
        uploaded = await self.s3.upload_bytes(data, path, content_type=content_type, metadata=_object_metadata(metadata))

        download_url = None
        if options.generate_download_urls:
            download_url = await self.get_download_url(path)

        logger.info(f"Uploaded asset {filename} ({len(data)} bytes) to {path}")
        return StorageReference(storage_url=uploaded["url"], storage_path=path, download_url=download_url)

    async def upload_thumbnail(
        self,
        data: bytes,
        asset_id: str,
        metadata: Optional[AssetMetadata] = None,
    ) -> Dict[str, str]:
        """Upload a pre-rendered thumbnail; returns {"url": ...}."""
        if not data:
            raise StorageError(f"Empty thumbnail for asset {asset_id}")
        fmt = detect_image_format(data)
        path = f"{self.settings.thumbnail_folder}/{asset_id}.{fmt}"
        uploaded = await self.s3.upload_bytes(
            data, path, content_type=mime_type_for(fmt), metadata=_object_metadata(metadata)
        )
        return {"url": uploaded["url"]}

    async def delete_asset(self, storage_path: str) -> bool:
        await self.s3.delete_file(storage_path)
        logger.info(f"Deleted stored asset {storage_path}")
        return True

    async def get_download_url(self, storage_path: str, expires_in: Optional[int] = None) -> str:
        """Presigned URL, valid for the configured expiry unless overridden."""
        return await self.s3.generate_presigned_url(
            storage_path, expires_in or self.settings.download_url_expiry_seconds
        )
