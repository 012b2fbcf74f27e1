"""
Tests for AssetMetadataRepository and its per-presentation index.
"""

import pytest

from core.exceptions import RepositoryError
from storage.repository import AssetMetadataRepository, flatten_metadata
from utils.asset_schemas import (
    AssetDimensions,
    AssetMetadata,
    AssetQuality,
    AssetResult,
    AssetThumbnail,
    AssetTransform,
)
from utils.schemas import Position

PRESENTATION = "deck-1"


def make_asset(asset_type="image", fmt="png", size=100, slide_index=0, name=None, **kwargs) -> AssetResult:
    filename = name or f"{asset_type}-slide-{slide_index}.{fmt}"
    return AssetResult(
        type=asset_type,
        format=fmt,
        filename=filename,
        original_name=filename,
        size=size,
        slide_index=slide_index,
        presentation_id=PRESENTATION,
        **kwargs,
    )


@pytest.fixture
def repository(mongo_service):
    return AssetMetadataRepository(mongo_service=mongo_service)


async def save_all(repository, assets):
    for asset in assets:
        await repository.save_asset_metadata(asset.id, asset, PRESENTATION)


class TestSaveAndRead:
    """Tests for saving and reading asset documents."""

    @pytest.mark.asyncio
    async def test_round_trip_through_flattened_document(self, repository, mongo_service):
        metadata = AssetMetadata(
            extraction_method="shape-picture",
            has_data=True,
            mime_type="image/png",
            transform=AssetTransform(
                position=Position(x=10, y=20),
                dimensions=AssetDimensions(width=50, height=25, aspect_ratio=2.0),
            ),
            quality=AssetQuality(quality="high", compression="medium"),
            custom_properties={"progId": "Paint.Picture"},
        )
        asset = make_asset(metadata=metadata, thumbnail=AssetThumbnail(url="https://t/1.png", size=10))
        await repository.save_asset_metadata(asset.id, asset, PRESENTATION)

        stored = mongo_service.collections["asset_metadata"].documents[asset.id]
        assert stored["transform_dimensions"]["width"] == 50
        assert stored["quality_level"] == "high"
        assert stored["custom_progId"] == "Paint.Picture"
        assert "data" not in stored

        loaded = await repository.get_asset_metadata(asset.id)
        assert loaded.filename == asset.filename
        assert loaded.metadata.transform.dimensions.aspect_ratio == 2.0
        assert loaded.metadata.quality.compression == "medium"
        assert loaded.metadata.custom_properties == {"progId": "Paint.Picture"}
        assert loaded.thumbnail.url == "https://t/1.png"

    @pytest.mark.asyncio
    async def test_missing_asset(self, repository):
        assert await repository.get_asset_metadata("nope") is None

    @pytest.mark.asyncio
    async def test_primary_write_failure(self, repository, mongo_service):
        mongo_service.get_collection("asset_metadata").fail_on.add("replace_one")
        asset = make_asset()

        with pytest.raises(RepositoryError):
            await repository.save_asset_metadata(asset.id, asset, PRESENTATION)
        assert await repository.get_presentation_asset_index(PRESENTATION) is None

    @pytest.mark.asyncio
    async def test_index_failure_does_not_fail_save(self, repository, mongo_service):
        mongo_service.get_collection("presentation_assets").fail_on.add("update_one")
        asset = make_asset()

        await repository.save_asset_metadata(asset.id, asset, PRESENTATION)
        assert await repository.get_asset_metadata(asset.id) is not None

    @pytest.mark.asyncio
    async def test_by_presentation_and_type(self, repository):
        await save_all(repository, [make_asset(), make_asset("video", "mp4"), make_asset(slide_index=1)])

        assert len(await repository.get_assets_by_presentation(PRESENTATION)) == 3
        assert [a.type for a in await repository.get_assets_by_type(PRESENTATION, "video")] == ["video"]
        assert await repository.get_assets_by_presentation("other") == []

    @pytest.mark.asyncio
    async def test_update(self, repository):
        asset = make_asset()
        await repository.save_asset_metadata(asset.id, asset, PRESENTATION)
        await repository.update_asset_metadata(asset.id, {"storage_url": "https://s3/x.png"})

        assert (await repository.get_asset_metadata(asset.id)).storage_url == "https://s3/x.png"

    @pytest.mark.asyncio
    async def test_update_missing_or_unknown_field(self, repository):
        with pytest.raises(RepositoryError):
            await repository.update_asset_metadata("nope", {"storage_url": "x"})

        asset = make_asset()
        await repository.save_asset_metadata(asset.id, asset, PRESENTATION)
        with pytest.raises(RepositoryError):
            await repository.update_asset_metadata(asset.id, {"colour": "red"})


class TestPresentationIndex:
    """Tests for the denormalized per-presentation index."""

    @pytest.mark.asyncio
    async def test_index_matches_statistics(self, repository):
        assets = [
            make_asset(size=100),
            make_asset(size=300, slide_index=1),
            make_asset("video", "mp4", size=1000),
            make_asset("document", "pdf", size=50, slide_index=2),
        ]
        await save_all(repository, assets)

        index = await repository.get_presentation_asset_index(PRESENTATION)
        statistics = await repository.get_asset_statistics(PRESENTATION)

        assert index.total_assets == statistics.total_assets == 4
        assert index.total_size == statistics.total_size == 1450
        assert index.assets_by_type == statistics.assets_by_type == {"image": 2, "video": 1, "document": 1}
        assert {entry.asset_id for entry in index.assets} == {asset.id for asset in assets}
        assert statistics.assets_by_format == {"png": 2, "mp4": 1, "pdf": 1}
        assert statistics.average_size == 362.5

    @pytest.mark.asyncio
    async def test_delete_decrements_by_one(self, repository):
        assets = [make_asset(size=100), make_asset(size=300), make_asset("video", "mp4", size=1000)]
        await save_all(repository, assets)

        await repository.delete_asset_metadata(assets[1].id)

        index = await repository.get_presentation_asset_index(PRESENTATION)
        assert index.total_assets == 2
        assert index.total_size == 1100
        assert index.assets_by_type == {"image": 1, "video": 1}
        assert assets[1].id not in {entry.asset_id for entry in index.assets}
        assert await repository.get_asset_metadata(assets[1].id) is None

    @pytest.mark.asyncio
    async def test_resave_does_not_double_count(self, repository):
        asset = make_asset(size=100)
        await repository.save_asset_metadata(asset.id, asset, PRESENTATION)
        await repository.save_asset_metadata(asset.id, asset, PRESENTATION)

        index = await repository.get_presentation_asset_index(PRESENTATION)
        assert index.total_assets == 1
        assert index.total_size == 100

    @pytest.mark.asyncio
    async def test_resave_under_another_presentation_moves_index_entry(self, repository):
        asset = make_asset(size=100)
        await repository.save_asset_metadata(asset.id, asset, PRESENTATION)
        await repository.save_asset_metadata(asset.id, asset, "deck-2")

        old_index = await repository.get_presentation_asset_index(PRESENTATION)
        new_index = await repository.get_presentation_asset_index("deck-2")
        assert old_index.total_assets == 0
        assert old_index.total_size == 0
        assert old_index.assets == []
        assert new_index.total_assets == 1
        assert [entry.asset_id for entry in new_index.assets] == [asset.id]
        assert (await repository.get_asset_metadata(asset.id)).presentation_id == "deck-2"

    @pytest.mark.asyncio
    async def test_delete_missing_asset(self, repository):
        with pytest.raises(RepositoryError):
            await repository.delete_asset_metadata("nope")

    @pytest.mark.asyncio
    async def test_empty_statistics(self, repository):
        statistics = await repository.get_asset_statistics(PRESENTATION)
        assert statistics.total_assets == 0
        assert statistics.average_size == 0.0


class TestSearchAndBulkDelete:
    """Tests for search_assets and bulk_delete_assets."""

    @pytest.mark.asyncio
    async def test_search_filters(self, repository):
        await save_all(repository, [
            make_asset(size=100, name="logo.png"),
            make_asset(size=5000, slide_index=3, name="chart-export.png"),
            make_asset("video", "mp4", size=9000, name="intro.mp4"),
        ])

        by_type = await repository.search_assets(PRESENTATION, asset_type="image")
        by_size = await repository.search_assets(PRESENTATION, min_size=1000, max_size=6000)
        by_slide = await repository.search_assets(PRESENTATION, slide_index=3)
        by_name = await repository.search_assets(PRESENTATION, name_pattern="^LOGO")
        by_format = await repository.search_assets(PRESENTATION, format="mp4")

        assert len(by_type) == 2
        assert [a.filename for a in by_size] == ["chart-export.png"]
        assert [a.filename for a in by_slide] == ["chart-export.png"]
        assert [a.filename for a in by_name] == ["logo.png"]
        assert [a.filename for a in by_format] == ["intro.mp4"]

    @pytest.mark.asyncio
    async def test_bulk_delete_collects_failures(self, repository):
        assets = [make_asset(), make_asset(size=200)]
        await save_all(repository, assets)

        result = await repository.bulk_delete_assets([assets[0].id, "missing", assets[1].id])

        assert result.deleted_count == 2
        assert [failure["asset_id"] for failure in result.failed_deletes] == ["missing"]
        index = await repository.get_presentation_asset_index(PRESENTATION)
        assert index.total_assets == 0
        assert index.total_size == 0


class TestFlattening:
    """Tests for the metadata flattening helpers."""

    def test_none_values_are_dropped(self):
        document = flatten_metadata(AssetMetadata(extraction_method="shape-picture"))
        assert "mime_type" not in document
        assert document["extraction_method"] == "shape-picture"
        assert document["error_count"] == 0
