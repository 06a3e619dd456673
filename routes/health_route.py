from fastapi import APIRouter, Request

from controllers.health_controller import deep_health_check, health_check

router = APIRouter(tags=["health"])


@router.get("/health")
@router.get("/v1/health")
async def get_health():
	"""Liveness probe."""
	return await health_check()


@router.get("/health/deep")
async def get_deep_health(request: Request):
	"""Report object store and metadata store connectivity."""
	return await deep_health_check(request)
