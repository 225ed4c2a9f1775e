import os
from dataclasses import dataclass
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_ALLOWED_TYPES = "image/jpeg,image/png,image/gif,image/webp"


@dataclass(frozen=True, slots=True)
class Settings:
    """Process-wide configuration, read once at startup and never mutated."""

    api_key: str
    token_secret: str
    token_ttl: int = 3600
    max_upload_bytes: int = 10 * 1024 * 1024
    allowed_types: frozenset[str] = frozenset(DEFAULT_ALLOWED_TYPES.split(","))
    store_dir: Path = Path("/var/lib/blobgate")
    public_origin: str = ""
    fetch_timeout_s: float = 30.0
    issue_failure_limit: int = 20
    issue_failure_window_s: float = 60.0
    log_level: str = "INFO"
    app_version: str = "dev"


def _resolve_app_version() -> str:
    env_version = (os.environ.get("APP_VERSION") or "").strip()
    if env_version:
        return env_version
    file_version = _PROJECT_ROOT / ".version"
    if file_version.exists():
        from_file = file_version.read_text(encoding="utf-8").strip()
        if from_file:
            return from_file
    return "dev"


def _parse_types(raw: str) -> frozenset[str]:
    return frozenset(t.strip() for t in raw.split(",") if t.strip())


def load_settings() -> Settings:
    api_key = os.environ.get("INTERNAL_API_KEY", "")
    token_secret = os.environ.get("UPLOAD_TOKEN_SECRET", "")
    if not api_key:
        raise RuntimeError("INTERNAL_API_KEY is required")
    if not token_secret:
        raise RuntimeError("UPLOAD_TOKEN_SECRET is required")

    ttl = int(os.environ.get("UPLOAD_TOKEN_TTL_S", "3600"))
    max_mb = int(os.environ.get("UPLOAD_MAX_MB", "10"))
    if ttl <= 0:
        raise RuntimeError("UPLOAD_TOKEN_TTL_S must be positive")
    if max_mb <= 0:
        raise RuntimeError("UPLOAD_MAX_MB must be positive")

    allowed_types = _parse_types(os.environ.get("UPLOAD_ALLOWED_TYPES", DEFAULT_ALLOWED_TYPES))
    if not allowed_types:
        raise RuntimeError("UPLOAD_ALLOWED_TYPES must name at least one type")

    return Settings(
        api_key=api_key,
        token_secret=token_secret,
        token_ttl=ttl,
        max_upload_bytes=max_mb * 1024 * 1024,
        allowed_types=allowed_types,
        store_dir=Path(os.environ.get("STORE_DIR", "/var/lib/blobgate")).resolve(),
        public_origin=os.environ.get("PUBLIC_ORIGIN", "").rstrip("/"),
        fetch_timeout_s=float(os.environ.get("FETCH_TIMEOUT_S", "30")),
        issue_failure_limit=int(os.environ.get("ISSUE_FAILURE_LIMIT", "20")),
        issue_failure_window_s=float(os.environ.get("ISSUE_FAILURE_WINDOW_S", "60")),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        app_version=_resolve_app_version(),
    )
