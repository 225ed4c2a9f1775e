from urllib.parse import quote

from starlette.requests import Request

from blobgate.config import Settings
from blobgate.storage import BlobStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> BlobStore:
    return request.app.state.store


def client_host(request: Request) -> str:
    return request.client.host if request.client else ""


def public_url(request: Request, settings: Settings, key: str) -> str:
    origin = settings.public_origin or str(request.base_url).rstrip("/")
    return f"{origin}/{quote(key)}"
