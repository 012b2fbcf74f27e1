"""
Tests for the S3 wrapper and AssetStorageService.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.config import ExtractionSettings
from core.exceptions import ConfigurationError, StorageError
from storage.asset_storage import AssetStorageService
from storage.mongodb import MongoDBService
from storage.s3 import S3Service
from utils.asset_schemas import AssetExtractionOptions, AssetMetadata

from conftest import FakeS3Client, client_error, png_bytes

BUCKET = "test-assets"


@pytest.fixture
def s3_service(s3_session):
    return S3Service(session=s3_session, bucket_name=BUCKET)


@pytest.fixture
def storage(s3_service):
    settings = ExtractionSettings(s3_bucket_name=BUCKET, max_asset_size_bytes=1024)
    return AssetStorageService(s3_service=s3_service, settings=settings)


class TestS3Service:
    """Tests for S3Service."""

    @pytest.mark.asyncio
    async def test_upload_bytes(self, s3_service, s3_session):
        uploaded = await s3_service.upload_bytes(b"abc", "folder/a.bin", content_type="application/octet-stream")

        assert uploaded["s3_key"] == "folder/a.bin"
        assert uploaded["s3_url"] == f"s3://{BUCKET}/folder/a.bin"
        assert uploaded["size"] == 3
        assert s3_session.objects["folder/a.bin"]["Body"] == b"abc"

    @pytest.mark.asyncio
    async def test_upload_failure_raises_storage_error(self, s3_service, s3_session):
        s3_session.fail_uploads = True
        with pytest.raises(StorageError):
            await s3_service.upload_bytes(b"abc", "folder/a.bin")

    @pytest.mark.asyncio
    async def test_requires_initialization(self):
        with pytest.raises(ConfigurationError):
            await S3Service().upload_bytes(b"abc", "a.bin")

    @pytest.mark.asyncio
    async def test_exists_and_delete(self, s3_service):
        await s3_service.upload_bytes(b"abc", "a.bin")

        assert await s3_service.file_exists("a.bin") is True
        assert await s3_service.delete_file("a.bin") is True
        assert await s3_service.file_exists("a.bin") is False

    @pytest.mark.asyncio
    async def test_exists_surfaces_other_errors(self, s3_service):
        with patch.object(FakeS3Client, "head_object", side_effect=client_error("HeadObject", "403")):
            with pytest.raises(StorageError):
                await s3_service.file_exists("a.bin")


class TestAssetStorageService:
    """Tests for AssetStorageService."""

    @pytest.mark.asyncio
    async def test_upload_asset(self, storage, s3_session):
        metadata = AssetMetadata(extraction_method="shape-picture", mime_type="image/png", slide_id="0")
        options = AssetExtractionOptions(presentation_id="deck-1")

        reference = await storage.upload_asset(png_bytes(), "image-slide-0-x.png", metadata, options)

        assert reference.storage_path == "extracted-assets/deck-1/image-slide-0-x.png"
        assert reference.storage_url.endswith("/extracted-assets/deck-1/image-slide-0-x.png")
        assert reference.download_url is None
        stored = s3_session.objects[reference.storage_path]
        assert stored["ContentType"] == "image/png"
        assert stored["Metadata"]["extraction-method"] == "shape-picture"

    @pytest.mark.asyncio
    async def test_download_url_on_request(self, storage):
        options = AssetExtractionOptions(presentation_id="deck-1", generate_download_urls=True)
        reference = await storage.upload_asset(b"data", "doc.pdf", None, options)

        assert reference.download_url.startswith("https://signed.example/extracted-assets/deck-1/doc.pdf")
        assert reference.download_url.endswith("expires=604800")

    @pytest.mark.asyncio
    async def test_unassigned_presentation(self, storage):
        reference = await storage.upload_asset(b"data", "a.bin")
        assert reference.storage_path == "extracted-assets/unassigned/a.bin"

    @pytest.mark.asyncio
    async def test_size_limit(self, storage, s3_session):
        with pytest.raises(StorageError):
            await storage.upload_asset(b"x" * 2048, "big.bin")
        assert s3_session.objects == {}

    @pytest.mark.asyncio
    async def test_empty_asset(self, storage):
        with pytest.raises(StorageError):
            await storage.upload_asset(b"", "empty.bin")

    @pytest.mark.asyncio
    async def test_upload_failure(self, storage, s3_session):
        s3_session.fail_uploads = True
        with pytest.raises(StorageError):
            await storage.upload_asset(b"data", "a.bin")

    @pytest.mark.asyncio
    async def test_thumbnail(self, storage, s3_session):
        uploaded = await storage.upload_thumbnail(png_bytes(), "asset-1")

        assert uploaded["url"].endswith("/thumbnails/asset-1.png")
        assert s3_session.objects["thumbnails/asset-1.png"]["ContentType"] == "image/png"

    @pytest.mark.asyncio
    async def test_delete_asset(self, storage, s3_session):
        reference = await storage.upload_asset(b"data", "a.bin")
        assert await storage.delete_asset(reference.storage_path) is True
        assert reference.storage_path not in s3_session.objects


class TestMongoDBService:
    """Tests for MongoDBService."""

    @staticmethod
    def _client(collection):
        client = MagicMock()
        client.__getitem__.return_value.__getitem__.return_value = collection
        return client

    def test_requires_initialization(self):
        with pytest.raises(ConfigurationError):
            MongoDBService(settings=ExtractionSettings()).get_collection("asset_metadata")

    def test_configured_database(self):
        collection = MagicMock()
        client = self._client(collection)
        service = MongoDBService(settings=ExtractionSettings(mongodb_database="assets_test"), client=client)

        assert service.get_collection("asset_metadata") is collection
        client.__getitem__.assert_called_with("assets_test")

    @pytest.mark.asyncio
    async def test_ensure_indexes(self):
        collection = MagicMock(create_index=AsyncMock(side_effect=[None, RuntimeError("duplicate"), None, None]))
        service = MongoDBService(settings=ExtractionSettings(), client=self._client(collection))

        assert await service.ensure_indexes() == 3
        assert collection.create_index.await_count == 4

    @pytest.mark.asyncio
    async def test_close(self):
        client = self._client(MagicMock())
        service = MongoDBService(settings=ExtractionSettings(), client=client)
        await service.close()

        client.close.assert_called_once()
        with pytest.raises(ConfigurationError):
            service.get_collection("asset_metadata")
