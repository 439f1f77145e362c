import asyncio
import json
from pathlib import Path
from types import SimpleNamespace

import httpx
import pytest

from auditstore import main as app_main
from auditstore.storage.documents import META_COLLECTION
from auditstore.storage.slug import slugify

from conftest import host_handler, seed


def test_reconcile_dry_run_prints_plan(settings, tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(app_main, "load_settings", lambda _path: settings)
    (tmp_path / "invalidurls.txt").write_text("https://z.example/\nhttps://a.example/\n", encoding="utf-8")

    app_main.main(["reconcile", "--dry-run"])

    plan = json.loads(capsys.readouterr().out)
    assert plan["known_invalid"] == 2
    assert plan["start_after"] == slugify("https://z.example/")
    assert plan["page_size"] == 2
    assert plan["method"] == "GET"


def test_run_reconcile_writes_manifest_and_metrics(settings, store):
    seed(store, ["http://ok-200.test/", "http://dead-404.test/"])

    summary = asyncio.run(
        app_main.run_reconcile(settings, run_id="test-run", transport=httpx.MockTransport(host_handler))
    )

    assert summary.num_removed == 1
    manifest = json.loads((Path(settings["app"]["manifest_dir"]) / "run-test-run.json").read_text(encoding="utf-8"))
    assert manifest["run_id"] == "test-run"
    assert manifest["num_removed"] == 1
    assert manifest["num_urls"] == 2
    assert manifest["metrics"]["urls_invalid"] == 1
    assert (Path(settings["app"]["metrics_dir"]) / "run_test-run.json").exists()


def test_invalid_settings_exit(settings, monkeypatch):
    monkeypatch.setattr(app_main, "load_settings", lambda _path: settings)
    settings["reconcile"]["concurrency"] = 0
    with pytest.raises(SystemExit):
        app_main.main(["reconcile", "--dry-run"])


def test_check_url(settings):
    args = SimpleNamespace(url="http://gone-405.test/", method="HEAD", timeout_ms=500)
    ok = asyncio.run(app_main.check_url(args, settings, transport=httpx.MockTransport(host_handler)))
    assert ok is True


def test_stale_command(settings, store, monkeypatch, capsys):
    monkeypatch.setattr(app_main, "load_settings", lambda _path: settings)
    seed(store, ["https://old.example/"])

    app_main.main(["stale", "--before", "2024-02-01"])

    output = json.loads(capsys.readouterr().out)
    assert output == [{"url": "https://old.example/", "last_viewed": "2024-01-01T00:00:00+00:00"}]


def test_purge_requires_confirmation(settings, store, tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(app_main, "load_settings", lambda _path: settings)
    seed(store, ["https://dead.example/"])
    (tmp_path / "invalidurls.txt").write_text("https://dead.example/\n", encoding="utf-8")

    with pytest.raises(SystemExit):
        app_main.main(["purge"])
    assert store.get(META_COLLECTION, slugify("https://dead.example/")) is not None

    app_main.main(["purge", "--yes"])
    assert json.loads(capsys.readouterr().out) == {"removed": ["https://dead.example/"]}
    assert store.get(META_COLLECTION, slugify("https://dead.example/")) is None
