"""Signed object routes, mounted only with the local object store backend."""

from fastapi import APIRouter, HTTPException, Query, Request

from controllers.object_controller import get_object, put_object

router = APIRouter(prefix="/objects", tags=["objects"])


@router.put("/{key:path}")
async def put_signed_object(
	request: Request,
	key: str,
	ct: str = Query(...),
	expires: int = Query(...),
	signature: str = Query(...),
):
	"""Upload an object through a signed URL issued by the local store."""
	try:
		return await put_object(request, key, ct, expires, signature)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/{key:path}")
async def get_signed_object(
	request: Request,
	key: str,
	ct: str = Query(...),
	expires: int = Query(...),
	signature: str = Query(...),
):
	"""Download an object through a signed URL issued by the local store."""
	try:
		return await get_object(request, key, ct, expires, signature)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
