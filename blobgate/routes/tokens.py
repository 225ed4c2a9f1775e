import logging

from fastapi import APIRouter, Depends, Header
from starlette.requests import Request

from blobgate.auth import issue_token
from blobgate.config import Settings
from blobgate.deps import client_host, get_settings
from blobgate.errors import Forbidden, TooManyRequests
from blobgate.models import TokenResponse

router = APIRouter(tags=["tokens"])
logger = logging.getLogger(__name__)


@router.post("/get-upload-token", response_model=TokenResponse)
def api_issue_token(
    request: Request,
    x_api_key: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
):
    limiter = request.app.state.issue_limiter
    client = client_host(request)
    if limiter.blocked(client):
        logger.warning("token issuance throttled: client=%s", client)
        raise TooManyRequests("too many attempts")
    try:
        issued = issue_token(x_api_key, settings)
    except Forbidden:
        limiter.record_failure(client)
        logger.info("token issuance refused: client=%s", client)
        raise
    return TokenResponse(
        token=issued.token,
        expiresAt=issued.expires_at,
        maxSize=issued.constraints.max_size,
        allowedTypes=sorted(issued.constraints.allowed_types),
    )
