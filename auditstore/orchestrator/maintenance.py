"""Store maintenance built on top of the paginator and the checkpoint."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import List

import structlog

from auditstore.orchestrator.checkpoint import CheckpointStore
from auditstore.orchestrator.paginator import TrackedURL, iter_pages
from auditstore.orchestrator.runner import run_all
from auditstore.storage.documents import META_COLLECTION, DocumentStore
from auditstore.storage.slug import slugify

LOGGER = structlog.get_logger(__name__)

_SWEEP_PAGE_SIZE = 1000
_SWEEP_MAX_PAGES = 10_000


async def urls_last_viewed_before(
    store: DocumentStore,
    cutoff: datetime,
    *,
    page_size: int = _SWEEP_PAGE_SIZE,
    max_pages: int = _SWEEP_MAX_PAGES,
) -> List[TrackedURL]:
    """Return tracked URLs whose last view is older than ``cutoff``.

    Records that were never stamped with a view time are not considered stale.
    """
    if cutoff.tzinfo is None:
        cutoff = cutoff.replace(tzinfo=timezone.utc)
    stale: List[TrackedURL] = []
    async for page in iter_pages(store, page_size=page_size, max_pages=max_pages):
        stale.extend(item for item in page.urls if item.last_viewed is not None and item.last_viewed < cutoff)
    return stale


async def remove_url(store: DocumentStore, url: str) -> None:
    """Delete every report saved for ``url`` along with its metadata document."""
    slug = slugify(url)
    await asyncio.gather(
        store.delete_collection(slug),
        store.delete(META_COLLECTION, slug),
    )


async def purge_invalid_urls(
    store: DocumentStore,
    checkpoint: CheckpointStore,
    *,
    concurrency: int = 1,
) -> List[str]:
    """Remove every URL recorded in the checkpoint from the store.

    Returns the URLs that were removed. Failures are logged and the URL is
    left in place so a later purge can retry it.
    """
    urls = checkpoint.load()

    def make_task(url: str):
        async def task() -> str:
            LOGGER.info("removing_url", url=url)
            await remove_url(store, url)
            return url

        return task

    outcomes = await run_all([make_task(url) for url in urls], concurrency)
    removed = [outcome.value for outcome in outcomes if not outcome.failed]
    LOGGER.info("purge_complete", removed=len(removed), failed=len(urls) - len(removed))
    return removed
