import logging
from datetime import timedelta
from typing import Any, Dict, Optional, Union

from fastapi import HTTPException, Request
from fastapi.responses import Response

from models.errors import ValidationError
from services.image_lifecycle import ImageLifecycleEngine
from utils.media_validation import parse_expiration_minutes

logger = logging.getLogger(__name__)

# One message for every unavailable image so callers cannot tell
# "never existed" from "expired" from "object purged".
NOT_FOUND_DETAIL = "Image not found or expired"


def get_engine(request: Request) -> ImageLifecycleEngine:
    """Retrieve the shared lifecycle engine from the app state."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=500, detail="Image service not initialized.")
    return engine


async def create_upload_intent(
    request: Request,
    file_name: Optional[str],
    content_type: Optional[str],
    expiration_minutes: Union[int, str, None],
) -> Dict[str, Any]:
    """Validate an upload intent and return presigned URLs plus image metadata.

    Args:
        request: FastAPI Request object (used to access app.state for the engine).
        file_name: Display name of the image to upload.
        content_type: Declared content type of the upload.
        expiration_minutes: Lifetime in minutes; positive integer, default 60.

    Returns:
        A dict containing: id, uploadUrl, url, expiresAt, originalName, mimeType, size, createdAt

    Raises:
        HTTPException(400) for invalid input, HTTPException(500) if a store fails.
    """
    engine = get_engine(request)

    if not (file_name or "").strip() or not (content_type or "").strip():
        raise HTTPException(status_code=400, detail="fileName and contentType are required")

    try:
        minutes = parse_expiration_minutes(expiration_minutes)
        ticket = await engine.initiate_upload(file_name, content_type, timedelta(minutes=minutes))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.error("Error generating upload URL for %r: %s", file_name, exc)
        raise HTTPException(status_code=500, detail="Failed to generate upload URL") from exc

    return ticket.to_response()


async def get_image_metadata(request: Request, image_id: str) -> Dict[str, Any]:
    """Return the public metadata of an active image, or 404."""
    result = await get_engine(request).fetch_metadata(image_id)
    if not result.is_found:
        raise HTTPException(status_code=404, detail=NOT_FOUND_DETAIL)
    return result.value


async def get_image_content(request: Request, image_id: str) -> Response:
    """Controller to fetch the stored bytes of an active image.

    Returns:
        FastAPI `Response` with the raw bytes and the declared content type.

    Raises:
        HTTPException(404) if the image is missing, expired, purged, or the
        stores failed while reading it.
    """
    logger.info("Retrieving image: %s", image_id)
    result = await get_engine(request).fetch_content(image_id)
    if not result.is_found:
        raise HTTPException(status_code=404, detail=NOT_FOUND_DETAIL)
    content = result.value
    return Response(content=content.data, media_type=content.mime_type)


async def trigger_sweep(request: Request) -> Dict[str, Any]:
    """Run one expiration sweep and acknowledge with its summary."""
    report = await get_engine(request).sweep_expired()
    return {"message": "Expired images check completed", **report.to_dict()}
