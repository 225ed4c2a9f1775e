"""Blob store contract and a filesystem implementation.

Layout under the store root::

    objects/<key>             raw bytes
    meta/<sha256(key)>.json   {"key": ..., "content_type": ..., "etag": ..., "size": ...}
    tmp/                      staging for writes in flight

An object and its metadata are swapped in together under a lock, so a reader
never pairs one write's bytes with another write's metadata.
"""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class StoreError(Exception):
    pass


@dataclass(frozen=True, slots=True)
class StoredObject:
    key: str
    content_type: str
    etag: str
    size: int
    body: bytes | None = None


class BlobStore(Protocol):
    def put(self, key: str, data: bytes, content_type: str) -> StoredObject: ...

    def get(self, key: str) -> StoredObject | None: ...

    def head(self, key: str) -> StoredObject | None: ...

    def delete(self, key: str) -> None: ...


def make_etag(data: bytes) -> str:
    return '"' + hashlib.md5(data, usedforsecurity=False).hexdigest() + '"'


class LocalBlobStore:
    def __init__(self, root: Path):
        self.root = Path(root).resolve()
        self.objects_dir = self.root / "objects"
        self.meta_dir = self.root / "meta"
        self.tmp_dir = self.root / "tmp"
        self._lock = threading.Lock()

    def _object_path(self, key: str) -> Path:
        p = (self.objects_dir / key).resolve()
        if not p.is_relative_to(self.objects_dir) or p == self.objects_dir:
            raise StoreError(f"key escapes store: {key!r}")
        return p

    def _meta_path(self, key: str) -> Path:
        # flat and hashed: no key can turn another key's sidecar into a directory
        return self.meta_dir / (hashlib.sha256(key.encode("utf-8")).hexdigest() + ".json")

    def _write_temp(self, data: bytes) -> Path:
        fd, tmp = tempfile.mkstemp(dir=self.tmp_dir)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        return Path(tmp)

    def _prune(self, directory: Path):
        """Remove empty directories from `directory` up to the objects root."""
        while directory != self.objects_dir and directory.is_relative_to(self.objects_dir):
            try:
                directory.rmdir()
            except OSError:
                return
            directory = directory.parent

    def put(self, key: str, data: bytes, content_type: str) -> StoredObject:
        obj = StoredObject(
            key=key,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            etag=make_etag(data),
            size=len(data),
        )
        meta = {"key": key, "content_type": obj.content_type, "etag": obj.etag, "size": obj.size}
        target = self._object_path(key)
        meta_path = self._meta_path(key)
        tmp_obj = tmp_meta = None
        try:
            self.tmp_dir.mkdir(parents=True, exist_ok=True)
            tmp_obj = self._write_temp(data)
            tmp_meta = self._write_temp(json.dumps(meta, ensure_ascii=False).encode("utf-8"))
            with self._lock:
                try:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    self.meta_dir.mkdir(exist_ok=True)
                    os.replace(tmp_obj, target)
                    try:
                        os.replace(tmp_meta, meta_path)
                    except OSError:
                        # bytes without their metadata must not stay visible
                        target.unlink(missing_ok=True)
                        raise
                except OSError:
                    self._prune(target.parent)
                    raise
        except OSError as e:
            for tmp in (tmp_obj, tmp_meta):
                if tmp is not None:
                    tmp.unlink(missing_ok=True)
            raise StoreError(f"put failed for {key!r}") from e
        return obj

    def _load_meta(self, key: str) -> dict:
        p = self._meta_path(key)
        if not p.exists():
            return {}
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except ValueError:
            return {}
        if not isinstance(data, dict) or data.get("key") != key:
            return {}
        return data

    def _stored(self, key: str, meta: dict, size: int, body: bytes | None) -> StoredObject:
        return StoredObject(
            key=key,
            content_type=meta.get("content_type") or DEFAULT_CONTENT_TYPE,
            etag=meta["etag"],
            size=size,
            body=body,
        )

    def head(self, key: str) -> StoredObject | None:
        p = self._object_path(key)
        try:
            with self._lock:
                if not p.is_file():
                    return None
                meta = self._load_meta(key)
                size = p.stat().st_size
                if not isinstance(meta.get("etag"), str):
                    meta = {**meta, "etag": make_etag(p.read_bytes())}
        except OSError as e:
            raise StoreError(f"head failed for {key!r}") from e
        return self._stored(key, meta, size, None)

    def get(self, key: str) -> StoredObject | None:
        p = self._object_path(key)
        try:
            with self._lock:
                body = p.read_bytes()
                meta = self._load_meta(key)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return None
        except OSError as e:
            raise StoreError(f"get failed for {key!r}") from e
        if not isinstance(meta.get("etag"), str):
            meta = {**meta, "etag": make_etag(body)}
        return self._stored(key, meta, len(body), body)

    def delete(self, key: str) -> None:
        p = self._object_path(key)
        try:
            with self._lock:
                if p.is_file():
                    p.unlink()
                self._meta_path(key).unlink(missing_ok=True)
                self._prune(p.parent)
        except OSError as e:
            raise StoreError(f"delete failed for {key!r}") from e

    def ping(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            probe = self.root / ".health_check"
            probe.write_text("ok")
            probe.unlink()
        except OSError as e:
            raise StoreError(str(e)) from e
