"""Liveness and dependency health checks."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import Request

logger = logging.getLogger(__name__)

SERVICE_NAME = "ephemeral-image-share"


async def health_check() -> Dict[str, Any]:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat(), "service": SERVICE_NAME}


async def deep_health_check(request: Request) -> Dict[str, Any]:
    """Check that the object store and the metadata store both answer."""
    engine = getattr(request.app.state, "engine", None)
    object_store_ok = False
    metadata_store_ok = False
    if engine is not None:
        try:
            object_store_ok = await engine.object_store.check_connectivity()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.error("Object store health check failed: %s", exc)
        try:
            metadata_store_ok = await engine.metadata_store.ping()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.error("Metadata store health check failed: %s", exc)

    healthy = object_store_ok and metadata_store_ok
    return {
        "status": "ok" if healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": SERVICE_NAME,
        "dependencies": {
            "objectStore": "ok" if object_store_ok else "error",
            "metadataStore": "ok" if metadata_store_ok else "error",
        },
    }
