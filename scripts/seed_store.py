#!/usr/bin/env python
"""Populate the metadata store with demo tracked URLs."""
from __future__ import annotations

import argparse
import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional

from dotenv import load_dotenv

from auditstore.storage.documents import META_COLLECTION, Document, SQLiteDocumentStore
from auditstore.storage.slug import slugify

DEMO_URLS = [
    "https://example.com/",
    "https://www.example.org/",
    "http://httpbin.org/status/500",
    "http://httpbin.org/status/405",
    "https://does-not-exist.invalid/",
]


def seed_store(path: Path, urls: Iterable[str] = DEMO_URLS, *, now: Optional[datetime] = None) -> int:
    """Write one `meta` document per URL, staggering their last view by a day each."""
    now = now or datetime.now(timezone.utc)
    documents = [
        Document(id=slugify(url), data={"lastViewed": now - timedelta(days=offset)})
        for offset, url in enumerate(urls)
    ]
    store = SQLiteDocumentStore(path)
    return asyncio.run(store.put_many(META_COLLECTION, documents))


def main() -> None:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Seed the metadata store with demo URLs")
    parser.add_argument(
        "--path",
        type=Path,
        default=Path("data/meta.db"),
        help="Path to the SQLite metadata store",
    )
    args = parser.parse_args()
    print(f"Seeded {seed_store(args.path)} urls into {args.path}")


if __name__ == "__main__":
    main()
