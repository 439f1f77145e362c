import asyncio
from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest

from auditstore.storage.documents import META_COLLECTION, Document, SQLiteDocumentStore
from auditstore.storage.slug import slugify


def seed(store, urls, *, last_viewed=None):
    last_viewed = last_viewed or datetime(2024, 1, 1, tzinfo=timezone.utc)
    documents = [Document(id=slugify(url), data={"lastViewed": last_viewed}) for url in urls]
    asyncio.run(store.put_many(META_COLLECTION, documents))


def host_handler(request):
    """Answer according to the host name: ``<status>.test`` or a failure keyword."""
    host = request.url.host
    if host.startswith("refused"):
        raise httpx.ConnectError("connection refused", request=request)
    if host.startswith("slow"):
        raise httpx.ReadTimeout("timed out", request=request)
    return httpx.Response(int(host.split(".")[0].split("-")[-1]))


@pytest.fixture()
def settings(tmp_path):
    data_root = tmp_path / "data"
    return {
        "app": {
            "data_root": str(data_root),
            "manifest_dir": str(data_root / "manifests"),
            "metrics_dir": str(data_root / "metrics"),
        },
        "store": {"sqlite_path": str(data_root / "meta.db")},
        "fetch": {"user_agent": "test-agent", "max_redirects": 4, "max_connections": 5},
        "reconcile": {
            "checkpoint_path": str(tmp_path / "invalidurls.txt"),
            "page_size": 2,
            "max_pages": 20,
            "concurrency": 3,
            "timeout_ms": 1000,
            "method": "GET",
        },
        "scheduler": {"cron": "*/5 * * * *"},
    }


@pytest.fixture()
def store(settings):
    return SQLiteDocumentStore(Path(settings["store"]["sqlite_path"]))
