"""
Universal Schema Extraction Orchestrator

Unified interface for structure extraction, asset extraction and
reconstruction with mode-based execution.
Supports: structure, assets, full and reconstruct modes.
"""

import asyncio
import base64
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple

from assets import AssetExtractorRegistry, create_default_registry
from core.config import ExtractionSettings, get_settings
from core.exceptions import ConfigurationError
from core.loader import PresentationLoader
from core.metadata import AssetMetadataService, get_metadata_service
from core.reconstruction import ReconstructionMapper
from extractors.extensions import ExtensionRegistry, get_extension_registry
from extractors.presentation import PresentationExtractor, PresentationOptions
from storage.asset_storage import AssetStorageService
from storage.mongodb import MongoDBService
from storage.repository import AssetMetadataRepository
from utils.accessors import safe_get, safe_len
from utils.asset_schemas import (
    EXTRACTABLE_ASSET_TYPES,
    AssetExtractionOptions,
    AssetResult,
    AssetThumbnail,
    ExtractionContext,
    ExtractionResult,
    ExtractionStatus,
)
from utils.schemas import UniversalPresentation

logger = logging.getLogger(__name__)

# Mode type
Mode = Literal["structure", "assets", "full", "reconstruct"]

ThumbnailRenderer = Callable[[AssetResult], Optional[bytes]]


def _ordered_types(asset_types: List[str]) -> List[str]:
    """Built-in types in image, video, audio, document order; others after, as requested."""
    builtin = [t for t in EXTRACTABLE_ASSET_TYPES if t in asset_types]
    return builtin + [t for t in asset_types if t not in EXTRACTABLE_ASSET_TYPES]


class ExtractionOrchestrator:
    """
    Unified orchestrator for extraction and reconstruction.

    Modes:
    - 'structure': Extract a UniversalPresentation from a .pptx source
    - 'assets': Extract embedded binaries (images, video, audio, documents)
    - 'full': Both, from one loaded document
    - 'reconstruct': Build a .pptx from a Universal Schema document

    Asset runs pass through the state machine idle -> running ->
    completed | partially_completed | timed_out | failed; ``status`` holds the
    state of the most recent run.
    """

    def __init__(
        self,
        registry: Optional[AssetExtractorRegistry] = None,
        extension_registry: Optional[ExtensionRegistry] = None,
        metadata_service: Optional[AssetMetadataService] = None,
        storage: Optional[AssetStorageService] = None,
        repository: Optional[AssetMetadataRepository] = None,
        settings: Optional[ExtractionSettings] = None,
        thumbnail_renderer: Optional[ThumbnailRenderer] = None,
        auto_initialize: bool = True,
    ):
        """
        Initialize orchestrator.

        Args:
            registry: Asset extractor registry (default: image, video, audio, document)
            extension_registry: Shape extension registry for structure and reconstruction
            metadata_service: Metadata enrichment service
            storage: Asset storage service (created from settings if None and a bucket is configured)
            repository: Asset metadata repository (created if None)
            settings: Timeouts, limits and storage settings
            thumbnail_renderer: Produces thumbnail bytes for an image asset; the image
                itself is stored as its thumbnail when None
            auto_initialize: Whether to create and initialize missing collaborators on first use
        """
        self.settings = settings or get_settings()
        self.metadata_service = metadata_service or get_metadata_service()
        self.registry = registry if registry is not None else create_default_registry(self.metadata_service)
        self.extension_registry = extension_registry or get_extension_registry()
        self.storage = storage
        self.repository = repository
        self.thumbnail_renderer = thumbnail_renderer
        self.auto_initialize = auto_initialize
        self.status = ExtractionStatus.IDLE
        self._initialized = False

        self._structure = PresentationExtractor(self.extension_registry)
        self._mapper = ReconstructionMapper(self.extension_registry)

        logger.info("ExtractionOrchestrator initialized")

    async def _ensure_initialized(self):
        """Ensure storage and repository are initialized."""
        if self._initialized:
            return

        if self.auto_initialize:
            if self.storage is None and self.settings.s3_bucket_name:
                self.storage = AssetStorageService(settings=self.settings)
            if self.storage is not None:
                try:
                    await self.storage.initialize()
                except Exception as e:
                    logger.error(f"Asset storage unavailable, uploads will be skipped: {e}")
                    self.storage = None

            if self.repository is None:
                repository = AssetMetadataRepository(mongo_service=MongoDBService(settings=self.settings))
                try:
                    await repository.mongo.initialize()
                    self.repository = repository
                except Exception as e:
                    logger.error(f"Metadata repository unavailable, metadata will not be persisted: {e}")

        if self.storage is None:
            logger.info("No asset storage configured, uploads will be skipped")

        self._initialized = True
        logger.info("Orchestrator services initialized")

    def validate_configuration(self) -> List[str]:
        """
        Check the registry and collaborators.

        Returns:
            List of configuration problems (empty when ready)
        """
        problems = []
        if len(self.registry) == 0:
            problems.append("Asset extractor registry is empty")
        if self.storage is None and not self.settings.s3_bucket_name:
            problems.append("No asset storage configured (S3_BUCKET_NAME is not set)")
        if self.repository is None and not self.auto_initialize:
            problems.append("No asset metadata repository configured")
        return problems

    async def execute(
        self,
        mode: Mode,
        **kwargs
    ) -> Any:
        """
        Execute operation based on mode.

        Args:
            mode: Operation mode ('structure', 'assets', 'full', 'reconstruct')
            **kwargs: Mode-specific parameters

        Returns:
            Mode-specific results

        Raises:
            ValueError: If mode is invalid
        """
        if mode == "structure":
            return await self._execute_structure(**kwargs)
        elif mode == "assets":
            await self._ensure_initialized()
            return await self._execute_assets(**kwargs)
        elif mode == "full":
            await self._ensure_initialized()
            return await self._execute_full(**kwargs)
        elif mode == "reconstruct":
            return await self._execute_reconstruct(**kwargs)
        else:
            raise ValueError(f"Invalid mode: {mode}. Must be one of: structure, assets, full, reconstruct")

    async def _execute_structure(
        self,
        source: Any,
        options: Optional[PresentationOptions] = None,
        **kwargs
    ) -> UniversalPresentation:
        """
        Execute structure mode.

        Args:
            source: Path, bytes or stream of a .pptx file

        Returns:
            UniversalPresentation
        """
        logger.info("[STRUCTURE] Extracting presentation structure")
        loader = PresentationLoader(source)
        try:
            document = await self._extract_structure(loader, options)
        finally:
            loader.dispose()

        logger.info(f"[STRUCTURE] ✅ Extracted {document.metadata.slide_count} slides")
        return document

    async def _execute_assets(
        self,
        source: Any,
        options: Optional[AssetExtractionOptions] = None,
        **kwargs
    ) -> ExtractionResult:
        """
        Execute assets mode.

        Args:
            source: Path, bytes or stream of a .pptx file
            options: Asset extraction options

        Returns:
            ExtractionResult
        """
        logger.info("[ASSETS] Extracting assets")
        loader = PresentationLoader(source)
        try:
            return await self.extract_assets(loader.get_presentation(), options)
        finally:
            loader.dispose()

    async def _execute_full(
        self,
        source: Any,
        options: Optional[PresentationOptions] = None,
        asset_options: Optional[AssetExtractionOptions] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Execute full mode: structure and assets from one loaded document.

        Returns:
            Dict with 'presentation' and 'assets'
        """
        logger.info("[STRUCTURE] Step 1/2: Extracting structure")
        loader = PresentationLoader(source)
        try:
            document = await self._extract_structure(loader, options)
            logger.info("[ASSETS] Step 2/2: Extracting assets")
            assets = await self.extract_assets(loader.get_presentation(), asset_options)
        finally:
            # disposed once, after both passes
            loader.dispose()

        return {"presentation": document, "assets": assets}

    async def _execute_reconstruct(
        self,
        document: Any,
        output_path: Optional[str] = None,
        skip_failed: bool = False,
        **kwargs
    ) -> Any:
        """
        Execute reconstruct mode.

        Args:
            document: UniversalPresentation or its JSON dict
            output_path: Where to save the .pptx (optional)
            skip_failed: Skip slides that fail to reconstruct

        Returns:
            The reconstructed python-pptx Presentation
        """
        logger.info("[RECONSTRUCT] Rebuilding presentation")
        prs = await asyncio.to_thread(self._mapper.reconstruct_presentation, document, skip_failed)
        if output_path:
            await asyncio.to_thread(prs.save, output_path)
            logger.info(f"[RECONSTRUCT] Saved to: {output_path}")

        logger.info(f"[RECONSTRUCT] ✅ Rebuilt {len(prs.slides)} slides")
        return prs

    async def _extract_structure(
        self,
        loader: PresentationLoader,
        options: Optional[PresentationOptions],
    ) -> UniversalPresentation:
        options = options or PresentationOptions(max_shapes_per_slide=self.settings.max_shapes_per_slide)
        if options.file_size is None and loader.file_size is not None:
            options = options.model_copy(update={"file_size": loader.file_size})
        return await asyncio.to_thread(self._structure.extract, loader.get_presentation(), options)

    async def extract_assets(
        self,
        document: Any,
        options: Optional[AssetExtractionOptions] = None,
    ) -> ExtractionResult:
        """
        Run the requested asset extractors against one document.

        Each extractor is bounded by the per-extractor timeout; all of them
        together by the overall timeout. A failing or timed-out extractor
        contributes no assets and a warning or error naming its type.

        Args:
            document: Loaded python-pptx Presentation
            options: Asset extraction options (defaults: all types, urls)

        Returns:
            ExtractionResult

        Raises:
            ConfigurationError: if there is no document or the registry is empty
        """
        if document is None:
            raise ConfigurationError("No document handle to extract assets from")
        if len(self.registry) == 0:
            raise ConfigurationError("No asset extractors registered")

        options = options or AssetExtractionOptions()
        context = ExtractionContext(presentation_id=options.presentation_id or str(uuid.uuid4()), options=options)
        options = options.model_copy(update={"presentation_id": context.presentation_id})

        started = time.perf_counter()
        self.status = ExtractionStatus.RUNNING
        result = ExtractionResult(context=context, status=self.status)

        asset_types = []
        for asset_type in _ordered_types(options.resolved_asset_types()):
            if asset_type in self.registry:
                asset_types.append(asset_type)
            else:
                result.warnings.append(f"No extractor registered for asset type '{asset_type}'")

        slide_count = safe_len(safe_get(document, "slides"))
        logger.info(
            f"[ASSETS] Extracting {asset_types} from {slide_count} slides "
            f"({'parallel' if options.enable_parallel_processing else 'sequential'})"
        )

        if options.enable_parallel_processing:
            per_type, timed_out = await self._run_parallel(document, options, asset_types, slide_count, result)
        else:
            per_type, timed_out = await self._run_sequential(document, options, asset_types, slide_count, result)

        for asset_type in asset_types:
            for asset in per_type.get(asset_type, []):
                result.assets.append(await self._process_asset(asset, options, context, result.warnings))

        result.total_assets = len(result.assets)
        result.processing_time_ms = int((time.perf_counter() - started) * 1000)
        result.success = result.total_assets > 0 or not asset_types
        result.status = self._final_status(result, asset_types, timed_out)
        self.status = result.status

        logger.info(
            f"[ASSETS] {result.status.value}: {result.total_assets} asset(s) {result.assets_by_type()} "
            f"in {result.processing_time_ms}ms, {len(result.warnings)} warning(s), {len(result.errors)} error(s)"
        )
        return result

    async def extract_assets_by_type(
        self,
        document: Any,
        asset_type: str,
        options: Optional[AssetExtractionOptions] = None,
    ) -> List[AssetResult]:
        """Assets of a single type."""
        options = (options or AssetExtractionOptions()).model_copy(update={"asset_types": [asset_type]})
        result = await self.extract_assets(document, options)
        return result.assets

    async def _run_extractor(
        self,
        asset_type: str,
        document: Any,
        options: AssetExtractionOptions,
        timeout: float,
        result: ExtractionResult,
    ) -> Tuple[List[AssetResult], bool]:
        """One extractor under a timeout. Returns (assets, timed_out)."""
        extractor = self.registry.get(asset_type)
        started = time.perf_counter()
        try:
            assets = await asyncio.wait_for(extractor.extract_assets(document, options), timeout)
        except asyncio.TimeoutError:
            message = f"{asset_type} extractor timed out after {timeout:g}s"
            logger.warning(f"[ASSETS] {message}")
            result.warnings.append(message)
            return [], True
        except Exception as e:
            logger.error(f"[ASSETS] {asset_type} extractor failed: {e}")
            result.errors.append(f"{asset_type} extractor failed: {e}")
            return [], False

        logger.info(
            f"[ASSETS] {asset_type}: {len(assets)} asset(s) in {int((time.perf_counter() - started) * 1000)}ms"
        )
        return list(assets), False

    async def _run_parallel(
        self,
        document: Any,
        options: AssetExtractionOptions,
        asset_types: List[str],
        slide_count: int,
        result: ExtractionResult,
    ) -> Tuple[Dict[str, List[AssetResult]], bool]:
        if not asset_types:
            return {}, False

        per_extractor = self.settings.extractor_timeout(slide_count)
        overall = self.settings.overall_timeout(slide_count)
        tasks = {
            asyncio.create_task(self._run_extractor(t, document, options, per_extractor, result)): t
            for t in asset_types
        }
        done, pending = await asyncio.wait(tasks.keys(), timeout=overall)

        for task in pending:
            task.cancel()
            message = f"{tasks[task]} extractor did not finish within the overall timeout of {overall:g}s"
            logger.warning(f"[ASSETS] {message}")
            result.warnings.append(message)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        per_type = {tasks[task]: task.result()[0] for task in done}
        timed_out = bool(pending) or any(task.result()[1] for task in done)
        return per_type, timed_out

    async def _run_sequential(
        self,
        document: Any,
        options: AssetExtractionOptions,
        asset_types: List[str],
        slide_count: int,
        result: ExtractionResult,
    ) -> Tuple[Dict[str, List[AssetResult]], bool]:
        """Fixed order, bounded only by what is left of the overall timeout."""
        overall = self.settings.overall_timeout(slide_count)
        deadline = time.monotonic() + overall
        per_type: Dict[str, List[AssetResult]] = {}
        timed_out = False

        for asset_type in asset_types:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                timed_out = True
                result.warnings.append(f"{asset_type} extractor skipped, overall timeout of {overall:g}s reached")
                continue
            assets, expired = await self._run_extractor(asset_type, document, options, remaining, result)
            timed_out = timed_out or expired
            per_type[asset_type] = assets

        return per_type, timed_out

    def _final_status(self, result: ExtractionResult, asset_types: List[str], timed_out: bool) -> ExtractionStatus:
        # timed_out covers both the overall and any per-extractor timeout
        if timed_out:
            return ExtractionStatus.PARTIALLY_COMPLETED if result.assets else ExtractionStatus.TIMED_OUT
        if not result.success:
            return ExtractionStatus.FAILED if result.errors else ExtractionStatus.COMPLETED
        if result.errors or result.warnings:
            return ExtractionStatus.PARTIALLY_COMPLETED
        return ExtractionStatus.COMPLETED

    async def _process_asset(
        self,
        asset: AssetResult,
        options: AssetExtractionOptions,
        context: ExtractionContext,
        warnings: List[str],
    ) -> AssetResult:
        """
        Enrich, upload, persist and shape one asset.

        Every step is isolated; a failing step adds a warning and leaves the
        rest of the asset intact.
        """
        asset.presentation_id = asset.presentation_id or context.presentation_id

        if options.include_metadata and asset.data:
            asset.metadata = self.metadata_service.enrich_metadata(asset.metadata, asset.data)

        if options.save_to_storage and asset.data:
            if self.storage is None:
                warnings.append(f"Storage not configured, {asset.filename} was not uploaded")
            else:
                try:
                    reference = await self.storage.upload_asset(asset.data, asset.filename, asset.metadata, options)
                    asset.storage_url = reference.storage_url
                    asset.storage_path = reference.storage_path
                    asset.download_url = reference.download_url
                except Exception as e:
                    logger.warning(f"[ASSETS] Upload failed for {asset.filename}: {e}")
                    warnings.append(f"Upload failed for {asset.filename}: {e}")

        if options.extract_thumbnails and asset.type == "image" and asset.data and self.storage is not None:
            try:
                thumbnail = self.thumbnail_renderer(asset) if self.thumbnail_renderer else asset.data
                if thumbnail:
                    uploaded = await self.storage.upload_thumbnail(thumbnail, asset.id, asset.metadata)
                    asset.thumbnail = AssetThumbnail(url=uploaded["url"], size=len(thumbnail))
            except Exception as e:
                logger.warning(f"[ASSETS] Thumbnail failed for {asset.filename}: {e}")
                warnings.append(f"Thumbnail failed for {asset.filename}: {e}")

        if options.save_to_storage and self.repository is not None:
            try:
                await self.repository.save_asset_metadata(asset.id, asset, context.presentation_id)
            except Exception as e:
                logger.warning(f"[ASSETS] Metadata not persisted for {asset.filename}: {e}")
                warnings.append(f"Metadata not persisted for {asset.filename}: {e}")

        if options.return_format == "base64" and asset.data:
            asset.base64 = base64.b64encode(asset.data).decode("ascii")
        asset.data = None
        return asset

    async def close(self):
        """Close the repository connection."""
        if self.repository is not None:
            await self.repository.mongo.close()
        self.status = ExtractionStatus.IDLE
        logger.info("Orchestrator closed")
