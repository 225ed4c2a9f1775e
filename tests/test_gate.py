import asyncio
import io

import pytest
from starlette.datastructures import Headers, UploadFile
from starlette.requests import Request

from blobgate.codec import TokenClaims, UploadConstraints, mint
from blobgate.errors import BadRequest, Unauthorized
from blobgate.gate import admit, authorize, body_limit, parse_form

SECRET = "gate-secret"
NOW = 1_700_000_000


def _claims(max_size: int = 10, types=("image/jpeg",)) -> TokenClaims:
    return TokenClaims(
        expires_at=NOW + 3600,
        constraints=UploadConstraints(max_size=max_size, allowed_types=frozenset(types)),
    )


def _upload(data: bytes, content_type: str = "image/jpeg", filename: str = "x.jpg") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


def test_authorize_missing_token():
    for value in (None, "", "   "):
        with pytest.raises(Unauthorized) as e:
            authorize(value, SECRET, now=NOW)
        assert e.value.message == "missing token"


def test_authorize_invalid_token():
    token = mint(_claims().constraints, 3600, "other-secret", now=NOW)
    with pytest.raises(Unauthorized) as e:
        authorize(token, SECRET, now=NOW)
    assert e.value.message == "invalid token"


def test_authorize_expired_token():
    token = mint(_claims().constraints, 60, SECRET, now=NOW)
    with pytest.raises(Unauthorized) as e:
        authorize(token, SECRET, now=NOW + 60)
    assert e.value.message == "expired token"


def test_authorize_valid_token():
    token = mint(_claims().constraints, 60, SECRET, now=NOW)
    claims = authorize(token, SECRET, now=NOW + 59)
    assert claims.constraints.max_size == 10


def test_admit_requires_a_file():
    with pytest.raises(BadRequest) as e:
        asyncio.run(admit("just a string", _claims()))
    assert e.value.message == "no file uploaded"
    with pytest.raises(BadRequest):
        asyncio.run(admit(None, _claims()))


def test_admit_accepts_exactly_max_size():
    admitted = asyncio.run(admit(_upload(b"x" * 10), _claims(max_size=10)))
    assert admitted.data == b"x" * 10
    assert admitted.content_type == "image/jpeg"
    assert admitted.filename == "x.jpg"


def test_admit_rejects_one_byte_over():
    with pytest.raises(BadRequest) as e:
        asyncio.run(admit(_upload(b"x" * 11), _claims(max_size=10)))
    assert e.value.message == "file too large"


def test_admit_type_match_is_exact():
    with pytest.raises(BadRequest) as e:
        asyncio.run(admit(_upload(b"abc", content_type="IMAGE/JPEG"), _claims()))
    assert e.value.message == "unsupported file type"
    with pytest.raises(BadRequest):
        asyncio.run(admit(_upload(b"abc", content_type="image/png"), _claims()))


def test_size_is_checked_before_type():
    with pytest.raises(BadRequest) as e:
        asyncio.run(admit(_upload(b"x" * 11, content_type="text/plain"), _claims(max_size=10)))
    assert e.value.message == "file too large"


BOUNDARY = "blobgate-boundary"
PART_HEAD = (
    f"--{BOUNDARY}\r\n"
    'Content-Disposition: form-data; name="file"; filename="a.jpg"\r\n'
    "Content-Type: image/jpeg\r\n\r\n"
).encode()
PART_TAIL = f"\r\n--{BOUNDARY}--\r\n".encode()


def _request(chunks, headers=None):
    """A request whose body arrives in `chunks`; returns it with the unread messages."""
    pending = [{"type": "http.request", "body": c, "more_body": True} for c in chunks]
    pending.append({"type": "http.request", "body": b"", "more_body": False})

    async def receive():
        return pending.pop(0)

    raw = {"content-type": f"multipart/form-data; boundary={BOUNDARY}", **(headers or {})}
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/",
        "query_string": b"",
        "headers": [(k.encode(), v.encode()) for k, v in raw.items()],
    }
    return Request(scope, receive), pending


def test_parse_form_reads_small_upload():
    async def run():
        request, _ = _request([PART_HEAD + b"abc" + PART_TAIL])
        form = await parse_form(request, _claims())
        try:
            upload = form["file"]
            assert isinstance(upload, UploadFile)
            assert await upload.read() == b"abc"
        finally:
            await form.close()

    asyncio.run(run())


def test_parse_form_stops_reading_oversized_body():
    chunk = b"x" * (32 * 1024)
    request, pending = _request([PART_HEAD] + [chunk] * 40 + [PART_TAIL])
    with pytest.raises(BadRequest) as e:
        asyncio.run(parse_form(request, _claims(max_size=10)))
    assert e.value.message == "file too large"
    # the cap sits a few chunks past the first, the rest is never received
    assert len(pending) > 30


def test_parse_form_rejects_declared_length_without_reading():
    async def receive():
        raise AssertionError("body must not be read")

    claims = _claims(max_size=10)
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/",
        "query_string": b"",
        "headers": [
            (b"content-type", f"multipart/form-data; boundary={BOUNDARY}".encode()),
            (b"content-length", str(body_limit(claims) + 1).encode()),
        ],
    }
    with pytest.raises(BadRequest) as e:
        asyncio.run(parse_form(Request(scope, receive), claims))
    assert e.value.message == "file too large"


def test_parse_form_ignores_other_body_types():
    request, _ = _request([b"{}"], headers={"content-type": "application/json"})
    form = asyncio.run(parse_form(request, _claims()))
    assert list(form.keys()) == []
