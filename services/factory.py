"""Build the engine and its adapters from configuration.

Shared by the API (`main.py`) and the standalone sweep (`sweep_expired.py`).
"""

from __future__ import annotations

from typing import Optional

from dal.image_dal import ImageDAL
from services.image_lifecycle import ImageLifecycleEngine
from services.local_object_store import LocalObjectStore
from services.object_store import ObjectStore
from services.s3_object_store import S3ObjectStore
from utils.config import AppConfig
from utils.database_init import AsyncDatabaseInitializer


def build_object_store(config: AppConfig) -> ObjectStore:
    """Create the object store selected by `OBJECT_STORE_BACKEND`."""
    if config.object_store_backend == "local":
        return LocalObjectStore(
            root_dir=config.resolved_local_storage_dir,
            public_base_url=config.public_base_url,
            signing_secret=config.url_signing_secret or "",
        )
    return S3ObjectStore(
        config.aws_s3_bucket or "",
        region_name=config.aws_region,
        endpoint_url=config.aws_endpoint_url,
        aws_access_key_id=config.aws_access_key_id,
        aws_secret_access_key=config.aws_secret_access_key,
    )


def build_engine(
    config: AppConfig,
    *,
    db_initializer: Optional[AsyncDatabaseInitializer] = None,
    object_store: Optional[ObjectStore] = None,
) -> ImageLifecycleEngine:
    """Wire an ImageLifecycleEngine; explicit arguments override the config."""
    db_initializer = db_initializer or AsyncDatabaseInitializer(config.database_dir)
    return ImageLifecycleEngine(
        ImageDAL(db_initializer),
        object_store or build_object_store(config),
        key_prefix=config.key_prefix,
    )
