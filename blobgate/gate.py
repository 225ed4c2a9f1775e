"""Admission checks for token-gated uploads.

Checks run in a fixed order and the first failure ends the request:

1. token present            -> 401 missing token
2. token signed by us       -> 401 invalid token
3. token not expired        -> 401 expired token
4. a ``file`` part present  -> 400 no file uploaded
5. size <= token max size   -> 400 file too large
6. type in token allow-list -> 400 unsupported file type

Steps 1-3 need only the header, so the handler calls `authorize` before it
reads the request body. The body is then parsed by `parse_form`, which stops
receiving as soon as it grows past the token's size ceiling plus a small
allowance for multipart framing, so an oversized upload is never spooled in
full.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from starlette.datastructures import FormData, UploadFile
from starlette.formparsers import FormParser, MultiPartException, MultiPartParser
from starlette.requests import Request

from blobgate.codec import InvalidToken, TokenClaims, decode
from blobgate.errors import BadRequest, Unauthorized

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
# room for boundaries, part headers and small form fields around the file
MULTIPART_OVERHEAD = 64 * 1024


@dataclass(frozen=True, slots=True)
class AdmittedUpload:
    filename: str
    content_type: str
    data: bytes


def authorize(token: str | None, secret: str, now: float | None = None) -> TokenClaims:
    token = (token or "").strip()
    if not token:
        raise Unauthorized("missing token")
    try:
        claims = decode(token, secret)
    except InvalidToken as e:
        logger.info("upload rejected: invalid token (%s)", e.reason)
        raise Unauthorized("invalid token") from e
    if claims.is_expired(now):
        logger.info("upload rejected: token expired at %s", claims.expires_at)
        raise Unauthorized("expired token")
    return claims


async def read_capped(upload: UploadFile, limit: int) -> bytes:
    """Read ``upload`` fully, stopping as soon as more than ``limit`` bytes arrive."""
    buf = bytearray()
    while True:
        chunk = await upload.read(CHUNK_SIZE)
        if not chunk:
            break
        buf += chunk
        if len(buf) > limit:
            raise BadRequest("file too large")
    return bytes(buf)


async def admit(upload: object, claims: TokenClaims) -> AdmittedUpload:
    if not isinstance(upload, UploadFile):
        raise BadRequest("no file uploaded")
    constraints = claims.constraints
    data = await read_capped(upload, constraints.max_size)
    content_type = upload.content_type or ""
    if content_type not in constraints.allowed_types:
        logger.info("upload rejected: type %r not allowed", content_type)
        raise BadRequest("unsupported file type")
    return AdmittedUpload(filename=upload.filename or "", content_type=content_type, data=data)


def body_limit(claims: TokenClaims) -> int:
    return claims.constraints.max_size + MULTIPART_OVERHEAD


async def _capped(stream, limit: int, state: dict):
    received = 0
    async for chunk in stream:
        received += len(chunk)
        if received > limit:
            state["exceeded"] = True
            raise MultiPartException("request body exceeds upload limit")
        yield chunk


async def parse_form(request: Request, claims: TokenClaims) -> FormData:
    """Parse the upload form, refusing bodies larger than the token allows.

    Only multipart and urlencoded bodies are parsed; anything else yields an
    empty form, which `admit` reports as "no file uploaded".
    """
    limit = body_limit(claims)
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        logger.info("upload rejected: declared length %s over limit %s", declared, limit)
        raise BadRequest("file too large")

    media_type = request.headers.get("content-type", "").split(";", 1)[0].strip().lower()
    state = {"exceeded": False}
    stream = _capped(request.stream(), limit, state)
    if media_type == "multipart/form-data":
        parser = MultiPartParser(request.headers, stream)
    elif media_type == "application/x-www-form-urlencoded":
        parser = FormParser(request.headers, stream)
    else:
        return FormData()

    try:
        return await parser.parse()
    except MultiPartException as e:
        if state["exceeded"]:
            logger.info("upload rejected: body over limit %s", limit)
            raise BadRequest("file too large") from e
        raise BadRequest("no file uploaded") from e
