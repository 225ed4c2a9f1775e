"""Health check endpoint."""
from fastapi import APIRouter
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request

from blobgate.models import HealthResponse
from blobgate.storage import StoreError

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    checks = {"app": "ok"}
    version = request.app.state.settings.app_version

    # Check the store root is writable
    try:
        await run_in_threadpool(request.app.state.store.ping)
        checks["storage"] = "ok"
    except StoreError as e:
        checks["storage"] = f"error: {e}"
        return HealthResponse(status="unhealthy", version=version, checks=checks)

    return HealthResponse(status="ok", version=version, checks=checks)
