import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient


TEST_API_KEY = "secret123"
TEST_TOKEN_SECRET = "test-token-secret"


@pytest.fixture()
def app_ctx(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> dict:
    store_dir = tmp_path / "store"
    store_dir.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("INTERNAL_API_KEY", TEST_API_KEY)
    monkeypatch.setenv("UPLOAD_TOKEN_SECRET", TEST_TOKEN_SECRET)
    monkeypatch.setenv("STORE_DIR", str(store_dir))
    monkeypatch.setenv("UPLOAD_MAX_MB", "10")
    monkeypatch.setenv("UPLOAD_ALLOWED_TYPES", "image/jpeg,image/png")
    monkeypatch.setenv("ISSUE_FAILURE_LIMIT", "3")
    monkeypatch.delenv("PUBLIC_ORIGIN", raising=False)

    for name in list(sys.modules.keys()):
        if name == "blobgate" or name.startswith("blobgate."):
            del sys.modules[name]

    import importlib

    main = importlib.import_module("blobgate.main")
    return {
        "app": main.app,
        "main": main,
        "store_dir": store_dir,
        "api_key": TEST_API_KEY,
        "token_secret": TEST_TOKEN_SECRET,
    }


@pytest.fixture()
def client(app_ctx: dict):
    with TestClient(app_ctx["app"]) as c:
        yield c


@pytest.fixture()
def store_dir(app_ctx: dict) -> Path:
    return app_ctx["store_dir"]


@pytest.fixture()
def api_key(app_ctx: dict) -> str:
    return app_ctx["api_key"]


@pytest.fixture()
def token_secret(app_ctx: dict) -> str:
    return app_ctx["token_secret"]


@pytest.fixture()
def upload_token(client, api_key) -> str:
    r = client.post("/get-upload-token", headers={"X-API-Key": api_key})
    assert r.status_code == 200
    return r.json()["token"]


@pytest.fixture()
def broken_store_client(app_ctx: dict):
    """Client whose store fails every operation; remote fetches answer 200."""
    import httpx

    from blobgate.storage import StoreError

    class BrokenStore:
        def __init__(self):
            self.calls = []

        def _fail(self, op, key):
            self.calls.append((op, key))
            raise StoreError(f"{op} failed for {key!r}")

        def put(self, key, data, content_type):
            self._fail("put", key)

        def get(self, key):
            self._fail("get", key)

        def head(self, key):
            self._fail("head", key)

        def delete(self, key):
            self._fail("delete", key)

    store = BrokenStore()
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"remote"))
    main = app_ctx["main"]
    app = main.create_app(main.load_settings(), store=store, fetch_transport=transport)
    with TestClient(app) as c:
        c.store = store
        yield c
