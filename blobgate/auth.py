import hmac
import logging
import time
from dataclasses import dataclass

from blobgate.codec import UploadConstraints, mint
from blobgate.config import Settings
from blobgate.errors import Forbidden

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IssuedToken:
    token: str
    expires_at: int
    constraints: UploadConstraints


def check_api_key(credential: str | None, expected: str):
    if not credential or not hmac.compare_digest(credential.encode(), expected.encode()):
        raise Forbidden("invalid api key")


def upload_policy(settings: Settings) -> UploadConstraints:
    return UploadConstraints(
        max_size=settings.max_upload_bytes,
        allowed_types=settings.allowed_types,
    )


def issue_token(credential: str | None, settings: Settings, now: float | None = None) -> IssuedToken:
    """Mint an upload token for a caller holding the internal API key.

    The constraints always come from `settings`; nothing the caller sends can
    widen them.
    """
    check_api_key(credential, settings.api_key)
    if now is None:
        now = time.time()
    policy = upload_policy(settings)
    token = mint(policy, settings.token_ttl, settings.token_secret, now=now)
    expires_at = int(now) + settings.token_ttl
    logger.info(
        "issued upload token: expires_at=%s max_size=%s types=%s",
        expires_at,
        policy.max_size,
        ",".join(sorted(policy.allowed_types)),
    )
    return IssuedToken(token=token, expires_at=expires_at, constraints=policy)
