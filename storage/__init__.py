"""
Storage services for the extraction core.

Minimal wrappers for MongoDB and S3, plus the asset-level storage service and
metadata repository built on them.
"""

from .mongodb import MongoDBService, get_mongo_service
from .s3 import S3Service, get_s3_service
from .asset_storage import AssetStorageService
from .repository import AssetMetadataRepository

__all__ = [
    'MongoDBService',
    'S3Service',
    'AssetStorageService',
    'AssetMetadataRepository',
    'get_mongo_service',
    'get_s3_service',
]
