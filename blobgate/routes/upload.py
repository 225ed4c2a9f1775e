import logging

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request

from blobgate.config import Settings
from blobgate.deps import get_settings, get_store, public_url
from blobgate.errors import Internal
from blobgate.gate import admit, authorize, parse_form
from blobgate.keys import derive_key, safe_key
from blobgate.models import UrlResponse
from blobgate.storage import BlobStore, StoreError

router = APIRouter(tags=["upload"])
logger = logging.getLogger(__name__)

TOKEN_HEADER = "Upload-Token"


@router.post("/", response_model=UrlResponse)
@router.post("/{key:path}", response_model=UrlResponse)
async def api_upload(
    request: Request,
    key: str = "",
    settings: Settings = Depends(get_settings),
    store: BlobStore = Depends(get_store),
):
    claims = authorize(request.headers.get(TOKEN_HEADER), settings.token_secret)

    form = await parse_form(request, claims)
    try:
        files = form.getlist("file")
        upload = files[0] if len(files) == 1 else None
        admitted = await admit(upload, claims)
    finally:
        await form.close()

    key = safe_key(derive_key(key, admitted.filename))
    try:
        await run_in_threadpool(store.put, key, admitted.data, admitted.content_type)
    except StoreError as e:
        logger.exception("upload store write failed: key=%s", key)
        raise Internal("store error") from e

    logger.info(
        "upload admitted: key=%s size=%s type=%s",
        key,
        len(admitted.data),
        admitted.content_type,
    )
    return UrlResponse(url=public_url(request, settings, key))
