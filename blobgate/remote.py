import logging
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx

from blobgate.errors import BadRequest, Internal
from blobgate.storage import DEFAULT_CONTENT_TYPE

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FetchedFile:
    url: str
    name: str
    content_type: str
    data: bytes


def parse_remote_url(raw: str | None) -> str:
    raw = (raw or "").strip()
    if not raw.startswith(("http://", "https://")) or not urlsplit(raw).netloc:
        raise BadRequest("invalid url")
    return raw


def remote_name(url: str) -> str:
    return urlsplit(url).path.rsplit("/", 1)[-1]


async def fetch_remote(
    url: str,
    limit: int,
    timeout: float,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FetchedFile:
    """Download ``url`` into memory, refusing bodies larger than ``limit`` bytes."""
    buf = bytearray()
    try:
        async with httpx.AsyncClient(
            transport=transport, timeout=timeout, follow_redirects=True
        ) as client:
            async with client.stream("GET", url) as resp:
                if resp.status_code >= 400:
                    logger.warning("remote fetch failed: url=%s status=%s", url, resp.status_code)
                    raise Internal("fetch failed")
                content_type = resp.headers.get("content-type") or DEFAULT_CONTENT_TYPE
                async for chunk in resp.aiter_bytes():
                    buf += chunk
                    if len(buf) > limit:
                        raise BadRequest("file too large")
    except httpx.HTTPError as e:
        logger.warning("remote fetch failed: url=%s error=%s", url, e)
        raise Internal("fetch failed") from e
    return FetchedFile(url=url, name=remote_name(url), content_type=content_type, data=bytes(buf))
