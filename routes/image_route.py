"""FastAPI routes for upload intents, image reads and the expiration sweep."""

from typing import Optional, Union

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from controllers.image_controller import (
    create_upload_intent,
    get_image_content,
    get_image_metadata,
    trigger_sweep,
)
from utils.media_validation import DEFAULT_EXPIRATION_MINUTES

router = APIRouter(prefix="/v1/images", tags=["images"])
presign_router = APIRouter(tags=["images"])


class UploadIntentPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: Optional[str] = Field(default=None, alias="fileName")
    content_type: Optional[str] = Field(default=None, alias="contentType")
    expiration_minutes: Optional[Union[int, str]] = Field(default=DEFAULT_EXPIRATION_MINUTES, alias="expirationMinutes")


async def _create(request: Request, payload: UploadIntentPayload):
    try:
        return await create_upload_intent(
            request, payload.file_name, payload.content_type, payload.expiration_minutes
        )
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("", summary="Create an upload intent for a new image")
async def post_image(request: Request, payload: UploadIntentPayload):
    """Return a presigned upload URL, a read URL and the new image's metadata."""
    return await _create(request, payload)


@presign_router.post("/presigned-url", summary="Create an upload intent (frontend alias)")
async def post_presigned_url(request: Request, payload: UploadIntentPayload):
    return await _create(request, payload)


@router.post("/sweep", summary="Run one expiration sweep")
async def post_sweep(request: Request):
    try:
        return await trigger_sweep(request)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/{image_id}/metadata")
async def get_metadata(request: Request, image_id: str):
    """Return the public metadata for an active image."""
    try:
        return await get_image_metadata(request, image_id)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/{image_id}")
async def get_image(request: Request, image_id: str):
    """Return the raw image bytes with their declared content type."""
    try:
        return await get_image_content(request, image_id)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
