"""
Asset Metadata Repository

Persists one flattened document per asset in ``asset_metadata`` and keeps a
denormalized per-presentation index in ``presentation_assets``.

The asset documents are the source of truth. Index maintenance is a single
atomic update per add/remove; its failures are logged and never fail the
primary write.
"""

import logging
import re
import time
from typing import Any, Dict, List, Optional

from core.config import (
    MONGODB_COLLECTION_ASSET_METADATA,
    MONGODB_COLLECTION_PRESENTATION_ASSETS,
)
from core.exceptions import RepositoryError
from storage.mongodb import MongoDBService, get_mongo_service
from utils.asset_schemas import (
    AssetDimensions,
    AssetMetadata,
    AssetQuality,
    AssetResult,
    AssetStatistics,
    AssetStyle,
    AssetThumbnail,
    AssetTransform,
    BulkDeleteResult,
    IndexedAsset,
    PresentationAssetIndex,
    utc_now_iso,
)
from utils.schemas import Position

logger = logging.getLogger(__name__)

CUSTOM_PREFIX = "custom_"

# AssetMetadata fields stored under their own name
_PLAIN_METADATA_FIELDS = (
    "extracted_at",
    "extraction_method",
    "has_data",
    "mime_type",
    "duration",
    "frame_rate",
    "channels",
    "sample_rate",
    "pages",
    "word_count",
    "shape_id",
    "shape_type",
    "slide_id",
    "parent_group_id",
    "linked_assets",
    "dependencies",
    "processing_time_ms",
    "error_count",
    "warnings",
)

_QUALITY_FIELDS = {
    "quality_resolution": "resolution",
    "quality_bitrate": "bitrate",
    "quality_color_depth": "color_depth",
    "quality_compression": "compression",
    "quality_level": "quality",
}

_ASSET_FIELDS = (
    "type",
    "format",
    "filename",
    "original_name",
    "size",
    "slide_index",
    "presentation_id",
    "storage_url",
    "storage_path",
    "download_url",
)


def flatten_metadata(metadata: AssetMetadata) -> Dict[str, Any]:
    """AssetMetadata -> flat document fields."""
    document: Dict[str, Any] = {field: getattr(metadata, field) for field in _PLAIN_METADATA_FIELDS}

    transform = metadata.transform
    if transform is not None:
        document.update({
            "transform_position": transform.position.model_dump(),
            "transform_dimensions": transform.dimensions.model_dump(),
            "transform_rotation": transform.rotation,
            "transform_scale_x": transform.scale_x,
            "transform_scale_y": transform.scale_y,
        })

    style = metadata.style
    if style is not None:
        document.update({
            "style_opacity": style.opacity,
            "style_effects": list(style.effects),
            "style_filters": dict(style.filters),
        })

    quality = metadata.quality
    if quality is not None:
        for key, field in _QUALITY_FIELDS.items():
            document[key] = getattr(quality, field)

    for key, value in metadata.custom_properties.items():
        document[f"{CUSTOM_PREFIX}{key}"] = value

    return {key: value for key, value in document.items() if value is not None}


def prepare_asset_document(asset: AssetResult, presentation_id: str) -> Dict[str, Any]:
    """AssetResult -> flattened Mongo document keyed by asset id."""
    now = utc_now_iso()
    document: Dict[str, Any] = {"_id": asset.id, "id": asset.id}
    for field in _ASSET_FIELDS:
        document[field] = getattr(asset, field)
    document["presentation_id"] = presentation_id

    document.update(flatten_metadata(asset.metadata))

    if asset.thumbnail is not None:
        document["thumbnail_url"] = asset.thumbnail.url
        document["thumbnail_base64"] = asset.thumbnail.base64
        document["thumbnail_size"] = asset.thumbnail.size

    document["created_at"] = now
    document["updated_at"] = now
    return {key: value for key, value in document.items() if value is not None}


def document_to_asset_result(document: Dict[str, Any]) -> AssetResult:
    """Rebuild an AssetResult (without data) from its flattened document."""
    metadata = AssetMetadata(
        **{field: document[field] for field in _PLAIN_METADATA_FIELDS if document.get(field) is not None}
    )

    if "transform_position" in document or "transform_dimensions" in document:
        metadata.transform = AssetTransform(
            position=Position(**(document.get("transform_position") or {})),
            dimensions=AssetDimensions(**(document.get("transform_dimensions") or {})),
            rotation=document.get("transform_rotation"),
            scale_x=document.get("transform_scale_x"),
            scale_y=document.get("transform_scale_y"),
        )

    if any(key in document for key in ("style_opacity", "style_effects", "style_filters")):
        metadata.style = AssetStyle(
            opacity=document.get("style_opacity"),
            effects=document.get("style_effects") or [],
            filters=document.get("style_filters") or {},
        )

    quality_values = {field: document[key] for key, field in _QUALITY_FIELDS.items() if key in document}
    if quality_values:
        metadata.quality = AssetQuality(**quality_values)

    metadata.custom_properties = {
        key[len(CUSTOM_PREFIX):]: value for key, value in document.items() if key.startswith(CUSTOM_PREFIX)
    }

    thumbnail = None
    if any(key in document for key in ("thumbnail_url", "thumbnail_base64", "thumbnail_size")):
        thumbnail = AssetThumbnail(
            url=document.get("thumbnail_url"),
            base64=document.get("thumbnail_base64"),
            size=document.get("thumbnail_size"),
        )

    return AssetResult(
        id=document.get("id") or str(document["_id"]),
        **{field: document[field] for field in _ASSET_FIELDS if document.get(field) is not None},
        thumbnail=thumbnail,
        metadata=metadata,
    )


class AssetMetadataRepository:
    """
    CRUD over asset metadata plus the per-presentation asset index.

    Args:
        mongo_service: Initialized MongoDBService (process singleton by default)
        database_name: Database override
    """

    def __init__(self, mongo_service: Optional[MongoDBService] = None, database_name: Optional[str] = None):
        self.mongo = mongo_service or get_mongo_service()
        self.database_name = database_name
        self.collection_name = MONGODB_COLLECTION_ASSET_METADATA
        self.presentation_assets_collection_name = MONGODB_COLLECTION_PRESENTATION_ASSETS

    @property
    def assets(self):
        return self.mongo.get_collection(self.collection_name, self.database_name)

    @property
    def presentation_assets(self):
        return self.mongo.get_collection(self.presentation_assets_collection_name, self.database_name)

    async def save_asset_metadata(self, asset_id: str, asset: AssetResult, presentation_id: str) -> None:
        """
        Store (or replace) one asset document and register it in the index.

        Raises:
            RepositoryError: if the asset document could not be written
        """
        started = time.perf_counter()
        if asset.id != asset_id:
            asset = asset.model_copy(update={"id": asset_id})

        try:
            document = prepare_asset_document(asset, presentation_id)
            existing = await self.assets.find_one({"_id": asset_id})
            if existing is not None:
                document["created_at"] = existing.get("created_at", document["created_at"])
            await self.assets.replace_one({"_id": asset_id}, document, upsert=True)
        except Exception as e:
            logger.error(f"Failed to save asset metadata {asset_id} for {presentation_id}: {e}")
            raise RepositoryError(f"Failed to save asset metadata: {e}") from e

        # a replaced asset stays counted under the presentation it was filed under
        if existing is None:
            await self._add_to_index(presentation_id, asset)
        elif existing.get("presentation_id") != presentation_id:
            await self._remove_from_index(existing.get("presentation_id"), existing)
            await self._add_to_index(presentation_id, asset)

        logger.info(
            f"Asset metadata saved: {asset_id} ({asset.type}) for {presentation_id} "
            f"in {int((time.perf_counter() - started) * 1000)}ms"
        )

    async def get_asset_metadata(self, asset_id: str) -> Optional[AssetResult]:
        try:
            document = await self.assets.find_one({"_id": asset_id})
        except Exception as e:
            logger.error(f"Failed to get asset metadata {asset_id}: {e}")
            raise RepositoryError(f"Failed to get asset metadata: {e}") from e

        if document is None:
            logger.debug(f"Asset metadata not found: {asset_id}")
            return None
        return document_to_asset_result(document)

    async def _find(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        cursor = self.assets.find(query).sort("created_at", -1)
        return await cursor.to_list(length=None)

    async def get_assets_by_presentation(self, presentation_id: str) -> List[AssetResult]:
        try:
            documents = await self._find({"presentation_id": presentation_id})
        except Exception as e:
            logger.error(f"Failed to get assets for {presentation_id}: {e}")
            raise RepositoryError(f"Failed to get assets by presentation: {e}") from e

        logger.info(f"Retrieved {len(documents)} asset(s) for {presentation_id}")
        return [document_to_asset_result(document) for document in documents]

    async def get_assets_by_type(self, presentation_id: str, asset_type: str) -> List[AssetResult]:
        try:
            documents = await self._find({"presentation_id": presentation_id, "type": asset_type})
        except Exception as e:
            logger.error(f"Failed to get {asset_type} assets for {presentation_id}: {e}")
            raise RepositoryError(f"Failed to get assets by type: {e}") from e
        return [document_to_asset_result(document) for document in documents]

    async def update_asset_metadata(self, asset_id: str, updates: Dict[str, Any]) -> None:
        """
        Partially update an asset document.

        Args:
            asset_id: Asset id
            updates: AssetResult field values; "metadata" may be an
                AssetMetadata or a dict and is flattened like a full save

        Raises:
            RepositoryError: if the asset does not exist or the write fails
        """
        update_document: Dict[str, Any] = {}
        for field, value in updates.items():
            if field == "metadata":
                metadata = value if isinstance(value, AssetMetadata) else AssetMetadata(**value)
                update_document.update(flatten_metadata(metadata))
            elif field == "thumbnail":
                thumbnail = value if isinstance(value, AssetThumbnail) else AssetThumbnail(**value)
                update_document.update({
                    "thumbnail_url": thumbnail.url,
                    "thumbnail_base64": thumbnail.base64,
                    "thumbnail_size": thumbnail.size,
                })
            elif field in _ASSET_FIELDS:
                update_document[field] = value
            else:
                raise RepositoryError(f"Unknown asset field '{field}'")
        update_document["updated_at"] = utc_now_iso()

        try:
            result = await self.assets.update_one({"_id": asset_id}, {"$set": update_document})
        except Exception as e:
            logger.error(f"Failed to update asset metadata {asset_id}: {e}")
            raise RepositoryError(f"Failed to update asset metadata: {e}") from e

        if result.matched_count == 0:
            raise RepositoryError(f"Asset {asset_id} not found")
        logger.info(f"Asset metadata updated: {asset_id} ({', '.join(updates)})")

    async def delete_asset_metadata(self, asset_id: str) -> None:
        """
        Delete an asset document and remove it from its presentation's index.

        Raises:
            RepositoryError: if the asset does not exist or the delete fails
        """
        try:
            document = await self.assets.find_one({"_id": asset_id})
            if document is None:
                raise RepositoryError(f"Asset {asset_id} not found")
            await self.assets.delete_one({"_id": asset_id})
        except RepositoryError:
            raise
        except Exception as e:
            logger.error(f"Failed to delete asset metadata {asset_id}: {e}")
            raise RepositoryError(f"Failed to delete asset metadata: {e}") from e

        presentation_id = document.get("presentation_id")
        if presentation_id:
            await self._remove_from_index(presentation_id, document)
        logger.info(f"Asset metadata deleted: {asset_id}")

    async def search_assets(
        self,
        presentation_id: str,
        asset_type: Optional[str] = None,
        format: Optional[str] = None,
        slide_index: Optional[int] = None,
        name_pattern: Optional[str] = None,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
    ) -> List[AssetResult]:
        """
        Structured asset search.

        Type, format, slide index and size range go to the store; the name
        pattern is a case-insensitive regular expression applied in memory to
        filename and original name.
        """
        query: Dict[str, Any] = {"presentation_id": presentation_id}
        if asset_type:
            query["type"] = asset_type
        if format:
            query["format"] = format
        if slide_index is not None:
            query["slide_index"] = slide_index
        size_range: Dict[str, int] = {}
        if min_size is not None:
            size_range["$gte"] = min_size
        if max_size is not None:
            size_range["$lte"] = max_size
        if size_range:
            query["size"] = size_range

        try:
            documents = await self._find(query)
        except Exception as e:
            logger.error(f"Failed to search assets for {presentation_id}: {e}")
            raise RepositoryError(f"Failed to search assets: {e}") from e

        if name_pattern:
            pattern = re.compile(name_pattern, re.IGNORECASE)
            documents = [
                document
                for document in documents
                if pattern.search(document.get("filename") or "") or pattern.search(document.get("original_name") or "")
            ]

        logger.info(f"Asset search for {presentation_id} returned {len(documents)} result(s)")
        return [document_to_asset_result(document) for document in documents]

    async def get_asset_statistics(self, presentation_id: str) -> AssetStatistics:
        """Totals computed from the asset documents themselves."""
        assets = await self.get_assets_by_presentation(presentation_id)

        statistics = AssetStatistics(total_assets=len(assets))
        for asset in assets:
            statistics.assets_by_type[asset.type] = statistics.assets_by_type.get(asset.type, 0) + 1
            statistics.assets_by_format[asset.format] = statistics.assets_by_format.get(asset.format, 0) + 1
            statistics.total_size += asset.size
        statistics.average_size = statistics.total_size / len(assets) if assets else 0.0
        return statistics

    async def bulk_delete_assets(self, asset_ids: List[str]) -> BulkDeleteResult:
        """Delete each id independently; failures are collected, never raised."""
        result = BulkDeleteResult()
        logger.info(f"Starting bulk deletion of {len(asset_ids)} asset(s)")

        for asset_id in asset_ids:
            try:
                await self.delete_asset_metadata(asset_id)
                result.deleted_count += 1
            except Exception as e:
                result.failed_deletes.append({"asset_id": asset_id, "error": str(e)})

        logger.info(
            f"Bulk deletion finished: {result.deleted_count} deleted, {len(result.failed_deletes)} failed"
        )
        return result

    async def get_presentation_asset_index(self, presentation_id: str) -> Optional[PresentationAssetIndex]:
        try:
            document = await self.presentation_assets.find_one({"_id": presentation_id})
        except Exception as e:
            logger.error(f"Failed to read asset index for {presentation_id}: {e}")
            raise RepositoryError(f"Failed to read asset index: {e}") from e
        if document is None:
            return None
        return PresentationAssetIndex(
            presentation_id=presentation_id,
            assets=[IndexedAsset(**entry) for entry in document.get("assets", [])],
            total_assets=document.get("total_assets", 0),
            assets_by_type=document.get("assets_by_type", {}),
            total_size=document.get("total_size", 0),
            last_updated=document.get("last_updated"),
        )

    async def _add_to_index(self, presentation_id: str, asset: AssetResult) -> None:
        entry = IndexedAsset(
            asset_id=asset.id,
            type=asset.type,
            format=asset.format,
            size=asset.size,
            slide_index=asset.slide_index,
        )
        try:
            await self.presentation_assets.update_one(
                {"_id": presentation_id},
                {
                    "$push": {"assets": entry.model_dump()},
                    "$inc": {
                        "total_assets": 1,
                        f"assets_by_type.{asset.type}": 1,
                        "total_size": asset.size,
                    },
                    "$set": {"presentation_id": presentation_id, "last_updated": utc_now_iso()},
                },
                upsert=True,
            )
        except Exception as e:
            logger.error(f"Failed to add asset {asset.id} to index of {presentation_id}: {e}")

    async def _remove_from_index(self, presentation_id: str, document: Dict[str, Any]) -> None:
        asset_id = document.get("id") or document.get("_id")
        try:
            # the filter only matches while the entry is still listed, so a
            # repeated removal cannot decrement twice
            await self.presentation_assets.update_one(
                {"_id": presentation_id, "assets.asset_id": asset_id},
                {
                    "$pull": {"assets": {"asset_id": asset_id}},
                    "$inc": {
                        "total_assets": -1,
                        f"assets_by_type.{document.get('type')}": -1,
                        "total_size": -int(document.get("size", 0)),
                    },
                    "$set": {"last_updated": utc_now_iso()},
                },
            )
        except Exception as e:
            logger.error(f"Failed to remove asset {asset_id} from index of {presentation_id}: {e}")
