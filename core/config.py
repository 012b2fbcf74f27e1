"""
Extraction core configuration.

Settings come from the environment (a local .env file is honoured) and fall
back to the defaults below.
"""

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv(override=True)

# MongoDB collection names
MONGODB_COLLECTION_ASSET_METADATA = "asset_metadata"
MONGODB_COLLECTION_PRESENTATION_ASSETS = "presentation_assets"

MONGODB_DATABASE = "universal_schema"

# Object storage layout
ASSET_STORAGE_FOLDER = "extracted-assets"
THUMBNAIL_FOLDER = "thumbnails"

MAX_ASSET_SIZE_BYTES = 100 * 1024 * 1024
DOWNLOAD_URL_EXPIRY_SECONDS = 7 * 24 * 60 * 60

# Time budgets (seconds)
EXTRACTOR_TIMEOUT_SECONDS = 60.0
LARGE_EXTRACTOR_TIMEOUT_SECONDS = 300.0
OVERALL_TIMEOUT_SECONDS = 120.0
LARGE_OVERALL_TIMEOUT_SECONDS = 600.0
LARGE_DOCUMENT_SLIDES = 100  # documents with more slides get the large budgets

MAX_SHAPES_PER_SLIDE = 1000
MAX_GROUP_DEPTH = 10


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


class ExtractionSettings(BaseModel):
    """Resolved runtime settings."""
    s3_bucket_name: Optional[str] = None
    aws_region: str = "us-east-1"
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = MONGODB_DATABASE
    asset_storage_folder: str = ASSET_STORAGE_FOLDER
    thumbnail_folder: str = THUMBNAIL_FOLDER
    max_asset_size_bytes: int = MAX_ASSET_SIZE_BYTES
    download_url_expiry_seconds: int = DOWNLOAD_URL_EXPIRY_SECONDS
    extractor_timeout_seconds: float = EXTRACTOR_TIMEOUT_SECONDS
    large_extractor_timeout_seconds: float = LARGE_EXTRACTOR_TIMEOUT_SECONDS
    overall_timeout_seconds: float = OVERALL_TIMEOUT_SECONDS
    large_overall_timeout_seconds: float = LARGE_OVERALL_TIMEOUT_SECONDS
    large_document_slides: int = Field(default=LARGE_DOCUMENT_SLIDES, description="Slide count above which large budgets apply")
    max_shapes_per_slide: int = MAX_SHAPES_PER_SLIDE
    log_level: str = "INFO"

    def extractor_timeout(self, slide_count: int) -> float:
        if slide_count > self.large_document_slides:
            return self.large_extractor_timeout_seconds
        return self.extractor_timeout_seconds

    def overall_timeout(self, slide_count: int) -> float:
        if slide_count > self.large_document_slides:
            return self.large_overall_timeout_seconds
        return self.overall_timeout_seconds


@lru_cache(maxsize=1)
def get_settings() -> ExtractionSettings:
    """Build settings from the environment once per process."""
    return ExtractionSettings(
        s3_bucket_name=os.getenv("S3_BUCKET_NAME"),
        aws_region=os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION") or "us-east-1",
        mongodb_uri=os.getenv("MONGODB_URI", "mongodb://localhost:27017"),
        mongodb_database=os.getenv("MONGODB_DATABASE", MONGODB_DATABASE),
        asset_storage_folder=os.getenv("ASSET_STORAGE_FOLDER", ASSET_STORAGE_FOLDER),
        thumbnail_folder=os.getenv("THUMBNAIL_FOLDER", THUMBNAIL_FOLDER),
        max_asset_size_bytes=_env_int("MAX_ASSET_SIZE_BYTES", MAX_ASSET_SIZE_BYTES),
        download_url_expiry_seconds=_env_int("DOWNLOAD_URL_EXPIRY_SECONDS", DOWNLOAD_URL_EXPIRY_SECONDS),
        extractor_timeout_seconds=_env_float("EXTRACTOR_TIMEOUT_SECONDS", EXTRACTOR_TIMEOUT_SECONDS),
        large_extractor_timeout_seconds=_env_float("LARGE_EXTRACTOR_TIMEOUT_SECONDS", LARGE_EXTRACTOR_TIMEOUT_SECONDS),
        overall_timeout_seconds=_env_float("OVERALL_TIMEOUT_SECONDS", OVERALL_TIMEOUT_SECONDS),
        large_overall_timeout_seconds=_env_float("LARGE_OVERALL_TIMEOUT_SECONDS", LARGE_OVERALL_TIMEOUT_SECONDS),
        large_document_slides=_env_int("LARGE_DOCUMENT_SLIDES", LARGE_DOCUMENT_SLIDES),
        max_shapes_per_slide=_env_int("MAX_SHAPES_PER_SLIDE", MAX_SHAPES_PER_SLIDE),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
