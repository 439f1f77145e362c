import asyncio

from auditstore.orchestrator.checkpoint import CheckpointStore


def test_load_sorts_and_rewrites_file(tmp_path):
    path = tmp_path / "invalidurls.txt"
    path.write_text("b.com\na.com\nhttp://c.com", encoding="utf-8")
    checkpoint = CheckpointStore(path)

    assert checkpoint.load() == ["a.com", "b.com", "http://c.com"]
    assert path.read_text(encoding="utf-8") == "a.com\nb.com\nhttp://c.com\n"
    assert checkpoint.resume_cursor() == "http:____c.com"


def test_load_is_idempotent(tmp_path):
    path = tmp_path / "invalidurls.txt"
    path.write_text("http://z.com\nhttp://m.com\n", encoding="utf-8")
    checkpoint = CheckpointStore(path)

    first = checkpoint.load()
    content = path.read_text(encoding="utf-8")
    second = checkpoint.load()

    assert first == second == ["http://m.com", "http://z.com"]
    assert path.read_text(encoding="utf-8") == content


def test_load_drops_blank_lines_and_duplicates(tmp_path):
    path = tmp_path / "invalidurls.txt"
    path.write_text("http://x.com\n\nhttp://x.com\nhttp://a.com\n\n", encoding="utf-8")

    assert CheckpointStore(path).load() == ["http://a.com", "http://x.com"]
    assert path.read_text(encoding="utf-8") == "http://a.com\nhttp://x.com\n"


def test_resume_cursor_requires_url_entry(tmp_path):
    path = tmp_path / "invalidurls.txt"
    path.write_text("http://a.com\nnot-a-url\n", encoding="utf-8")

    assert CheckpointStore(path).resume_cursor() is None


def test_missing_file_starts_from_scratch(tmp_path):
    path = tmp_path / "state" / "invalidurls.txt"
    checkpoint = CheckpointStore(path)

    assert checkpoint.load() == []
    assert path.exists()
    assert checkpoint.resume_cursor() is None


def test_append_keeps_arrival_order_until_next_load(tmp_path):
    path = tmp_path / "invalidurls.txt"
    path.write_text("http://m.com\n", encoding="utf-8")
    checkpoint = CheckpointStore(path)
    checkpoint.load()

    assert checkpoint.append(["http://z.com", "http://a.com"]) == 2
    assert path.read_text(encoding="utf-8") == "http://m.com\nhttp://z.com\nhttp://a.com\n"

    reloaded = CheckpointStore(path)
    assert reloaded.load() == ["http://a.com", "http://m.com", "http://z.com"]
    assert reloaded.resume_cursor() == "http:____z.com"


def test_summary_reports_entries(tmp_path):
    path = tmp_path / "invalidurls.txt"
    path.write_text("https://b.org/x\nhttps://a.org/\n", encoding="utf-8")

    summary = CheckpointStore(path).summary()
    assert summary.entries == 2
    assert summary.last_entry == "https://b.org/x"
    assert summary.resume_cursor == "https:____b.org__x"


def test_concurrent_writes_keep_whole_lines(tmp_path):
    path = tmp_path / "invalidurls.txt"
    checkpoint = CheckpointStore(path)
    checkpoint.load()
    urls = [f"http://site{i:02d}.example/" for i in range(20)]

    async def _write_all():
        with checkpoint.open_appender() as appender:
            await asyncio.gather(*(appender.write(url) for url in urls))
            return appender.written

    assert asyncio.run(_write_all()) == 20
    assert sorted(path.read_text(encoding="utf-8").splitlines()) == urls
