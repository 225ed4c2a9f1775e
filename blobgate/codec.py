"""Capability tokens for uploads.

A token is an itsdangerous ``URLSafeSerializer`` payload::

    {"exp": <unix seconds>, "max": <byte ceiling>, "types": [<mime>, ...]}

signed with the upload token secret. The codec only answers "was this minted
by us, and what does it say"; expiry and payload checks belong to the gate.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from itsdangerous import BadPayload, BadSignature, URLSafeSerializer

SALT = "blobgate.upload-token"


@dataclass(frozen=True, slots=True)
class UploadConstraints:
    max_size: int
    allowed_types: frozenset[str]


@dataclass(frozen=True, slots=True)
class TokenClaims:
    expires_at: int
    constraints: UploadConstraints

    def is_expired(self, now: float | None = None) -> bool:
        if now is None:
            now = time.time()
        return now >= self.expires_at


class InvalidToken(Exception):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def _serializer(secret: str) -> URLSafeSerializer:
    return URLSafeSerializer(secret_key=secret, salt=SALT)


def mint(constraints: UploadConstraints, ttl: int, secret: str, now: float | None = None) -> str:
    if not secret:
        raise ValueError("signing secret must not be empty")
    if ttl <= 0:
        raise ValueError("ttl must be positive")
    if constraints.max_size <= 0:
        raise ValueError("max_size must be positive")
    if now is None:
        now = time.time()
    payload = {
        "exp": int(now) + int(ttl),
        "max": int(constraints.max_size),
        "types": sorted(constraints.allowed_types),
    }
    return _serializer(secret).dumps(payload)


def _claims_from_payload(data: object) -> TokenClaims:
    if not isinstance(data, dict):
        raise InvalidToken("malformed")
    exp = data.get("exp")
    max_size = data.get("max")
    types = data.get("types")
    # bool is an int subclass; reject it explicitly
    if not isinstance(exp, int) or isinstance(exp, bool):
        raise InvalidToken("malformed")
    if not isinstance(max_size, int) or isinstance(max_size, bool) or max_size <= 0:
        raise InvalidToken("malformed")
    if not isinstance(types, list) or not all(isinstance(t, str) for t in types):
        raise InvalidToken("malformed")
    return TokenClaims(
        expires_at=exp,
        constraints=UploadConstraints(max_size=max_size, allowed_types=frozenset(types)),
    )


def decode(token: str, secret: str) -> TokenClaims:
    """Verify ``token`` against ``secret`` and return its claims.

    Raises ``InvalidToken("bad signature")`` when the signature does not match
    and ``InvalidToken("malformed")`` when the signed payload cannot be read.
    Expired tokens decode normally.
    """
    try:
        data = _serializer(secret).loads(token)
    except BadPayload as e:
        raise InvalidToken("malformed") from e
    except BadSignature as e:
        raise InvalidToken("bad signature") from e
    return _claims_from_payload(data)
