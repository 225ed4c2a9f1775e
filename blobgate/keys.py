import enum
import re
import uuid
from dataclasses import dataclass

from blobgate.errors import BadRequest

KEY_SEGMENT_RE = re.compile(r"^[^/\\\x00]{1,255}$")
MAX_KEY_LENGTH = 1024
# served by fixed routes, so an object stored there could never be read back
RESERVED_KEYS = frozenset({"health", "get-upload-token"})


class KeySource(enum.Enum):
    CALLER = "caller"
    DERIVED = "derived"


@dataclass(frozen=True, slots=True)
class UploadTarget:
    source: KeySource
    key: str = ""


def resolve_target(path: str | None) -> UploadTarget:
    """Classify an upload path: a non-empty path names the key, the root derives one."""
    path = (path or "").lstrip("/")
    if path:
        return UploadTarget(KeySource.CALLER, path)
    return UploadTarget(KeySource.DERIVED)


def extension_of(filename: str | None) -> str:
    filename = filename or ""
    if "." not in filename:
        return ""
    return "." + filename.rsplit(".", 1)[1]


def derive_key(path: str | None, filename: str | None) -> str:
    target = resolve_target(path)
    if target.source is KeySource.CALLER:
        return target.key
    return f"{uuid.uuid4()}{extension_of(filename)}"


def safe_key(key: str) -> str:
    if not key or len(key) > MAX_KEY_LENGTH or key in RESERVED_KEYS:
        raise BadRequest("invalid key")
    for seg in key.split("/"):
        if seg in (".", "..") or seg.startswith(".") or not KEY_SEGMENT_RE.match(seg):
            raise BadRequest("invalid key")
    return key
