import logging

import httpx
from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse

from blobgate.config import Settings, load_settings
from blobgate.errors import ServiceError
from blobgate.models import FailureResponse
from blobgate.routes import health, objects, tokens, upload
from blobgate.security import FailedAttemptLimiter
from blobgate.storage import BlobStore, LocalBlobStore


def create_app(
    settings: Settings | None = None,
    store: BlobStore | None = None,
    fetch_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    logging.getLogger("blobgate").setLevel(settings.log_level)

    app = FastAPI(title="blobgate", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.settings = settings
    app.state.store = store if store is not None else LocalBlobStore(settings.store_dir)
    app.state.fetch_transport = fetch_transport
    app.state.issue_limiter = FailedAttemptLimiter(
        limit=settings.issue_failure_limit,
        window_s=settings.issue_failure_window_s,
    )

    @app.middleware("http")
    async def referrer_policy_middleware(request, call_next):
        response = await call_next(request)
        response.headers["Referrer-Policy"] = "no-referrer"
        return response

    @app.exception_handler(ServiceError)
    async def service_error_handler(request, exc: ServiceError):
        if exc.plain_text:
            return PlainTextResponse(exc.message, status_code=exc.status_code)
        return JSONResponse(
            FailureResponse(message=exc.message).model_dump(),
            status_code=exc.status_code,
        )

    # fixed routes first; objects and upload match any path
    app.include_router(health.router)
    app.include_router(tokens.router)
    app.include_router(upload.router)
    app.include_router(objects.router)
    return app


app = create_app()


def run():
    import uvicorn

    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("blobgate.main:app", host="0.0.0.0", port=8000)
