"""Signed upload/download handlers for the local object store backend."""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.responses import Response

from models.errors import ObjectStoreError
from services.local_object_store import OP_GET, OP_PUT, LocalObjectStore

logger = logging.getLogger(__name__)


def _get_local_store(request: Request) -> LocalObjectStore:
    engine = getattr(request.app.state, "engine", None)
    store = getattr(engine, "object_store", None)
    if not isinstance(store, LocalObjectStore):
        raise HTTPException(status_code=404, detail="Not found")
    return store


def _media_type(header_value: str | None) -> str:
    return (header_value or "").split(";", 1)[0].strip().lower()


async def put_object(request: Request, key: str, ct: str, expires: int, signature: str) -> Response:
    """Accept the raw request body as the object at `key` if the URL signature is valid."""
    store = _get_local_store(request)
    if not store.verify(OP_PUT, key, ct, expires, signature):
        raise HTTPException(status_code=403, detail="Invalid or expired signature")
    if _media_type(request.headers.get("content-type")) != _media_type(ct):
        raise HTTPException(status_code=403, detail="Content-Type does not match the signed upload")

    body = await request.body()
    try:
        await store.store_object(key, body)
    except ObjectStoreError as exc:
        logger.error("Error storing object %s: %s", key, exc)
        raise HTTPException(status_code=500, detail="Failed to store object") from exc
    return Response(status_code=200)


async def get_object(request: Request, key: str, ct: str, expires: int, signature: str) -> Response:
    """Serve the object at `key` if the URL signature is valid."""
    store = _get_local_store(request)
    if not store.verify(OP_GET, key, ct, expires, signature):
        raise HTTPException(status_code=403, detail="Invalid or expired signature")
    try:
        data = await store.fetch_object(key)
    except ObjectStoreError as exc:
        logger.error("Error reading object %s: %s", key, exc)
        raise HTTPException(status_code=404, detail="Not found") from exc
    if data is None:
        raise HTTPException(status_code=404, detail="Not found")
    return Response(content=data, media_type=ct or "application/octet-stream")
