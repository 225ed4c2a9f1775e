"""Direct operations on a stored object.

Routes:
  GET    /{key}  raw bytes with the stored Content-Type and ETag
  PUT    /{url}  fetch `url` and store it under its last path segment
  DELETE /{key}  remove the object

GET and DELETE answer in plain text on failure, PUT in the JSON envelope.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request

from blobgate.config import Settings
from blobgate.deps import get_settings, get_store, public_url
from blobgate.errors import BadRequest, Internal, NotFound
from blobgate.keys import derive_key, safe_key
from blobgate.models import UrlResponse
from blobgate.remote import fetch_remote, parse_remote_url
from blobgate.storage import BlobStore, StoreError

router = APIRouter(tags=["objects"])
logger = logging.getLogger(__name__)


def _not_found() -> NotFound:
    return NotFound("Object Not Found", plain_text=True)


@router.get("/{key:path}")
async def api_get_object(key: str, store: BlobStore = Depends(get_store)):
    try:
        key = safe_key(key)
    except BadRequest as e:
        raise _not_found() from e
    try:
        obj = await run_in_threadpool(store.get, key)
    except StoreError as e:
        logger.exception("object read failed: key=%s", key)
        raise Internal("Internal Server Error", plain_text=True) from e
    if obj is None:
        raise _not_found()
    return Response(content=obj.body, media_type=obj.content_type, headers={"ETag": obj.etag})


@router.put("/{key:path}", response_model=UrlResponse)
async def api_put_from_url(
    request: Request,
    key: str,
    settings: Settings = Depends(get_settings),
    store: BlobStore = Depends(get_store),
):
    raw = key
    if request.url.query:
        raw = f"{raw}?{request.url.query}"
    url = parse_remote_url(raw)
    fetched = await fetch_remote(
        url,
        limit=settings.max_upload_bytes,
        timeout=settings.fetch_timeout_s,
        transport=request.app.state.fetch_transport,
    )
    target = safe_key(fetched.name or derive_key("", ""))
    try:
        await run_in_threadpool(store.put, target, fetched.data, fetched.content_type)
    except StoreError as e:
        logger.exception("object write from url failed: key=%s url=%s", target, url)
        raise Internal("store error") from e
    logger.info("stored from url: key=%s size=%s url=%s", target, len(fetched.data), url)
    return UrlResponse(url=public_url(request, settings, target))


@router.delete("/{key:path}")
async def api_delete_object(key: str, store: BlobStore = Depends(get_store)):
    if not key:
        raise _not_found()
    try:
        key = safe_key(key)
    except BadRequest as e:
        raise BadRequest("invalid key", plain_text=True) from e
    try:
        await run_in_threadpool(store.delete, key)
    except StoreError as e:
        logger.exception("object delete failed: key=%s", key)
        raise Internal("Internal Server Error", plain_text=True) from e
    logger.info("object deleted: key=%s", key)
    return PlainTextResponse("Deleted!")
