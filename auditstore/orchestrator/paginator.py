"""Cursor-based pagination over the tracked URL collection."""
from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Union

from auditstore.observability.metrics import MetricsRegistry
from auditstore.observability.tracing import log_page
from auditstore.storage.documents import META_COLLECTION, Document, DocumentStore
from auditstore.storage.slug import deslugify, is_tracked_id


@dataclass(slots=True)
class TrackedURL:
    """A URL known to the report store and when it was last viewed."""

    url: str
    last_viewed: Optional[datetime] = None


@dataclass(slots=True)
class Page:
    """One batch of tracked URLs. The final page is empty and marked complete.

    ``cursor`` is the id of the last raw document behind the batch; pass it as
    ``start_after`` to continue the sweep. The complete page carries the cursor
    the sweep stopped at.
    """

    urls: List[TrackedURL] = field(default_factory=list)
    complete: bool = False
    cursor: Optional[str] = None


PageCallback = Callable[[Page], Union[None, Awaitable[None]]]


def _coerce_timestamp(value: object) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, dict) and "seconds" in value:
        return datetime.fromtimestamp(int(value["seconds"]), tz=timezone.utc)
    parsed = datetime.fromisoformat(str(value))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def to_tracked_url(document: Document) -> TrackedURL:
    return TrackedURL(
        url=deslugify(document.id),
        last_viewed=_coerce_timestamp(document.data.get("lastViewed")),
    )


async def iter_pages(
    store: DocumentStore,
    *,
    page_size: int,
    max_pages: int,
    start_after: Optional[str] = None,
    metrics: Optional[MetricsRegistry] = None,
) -> AsyncIterator[Page]:
    """Yield pages of tracked URLs in id order, ending with an empty complete page.

    The cursor only advances to the id of the last document actually returned
    by the store and travels on every page, so the caller always knows how far
    the sweep got. Store errors propagate and end the sweep.
    """
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    if max_pages < 1:
        raise ValueError("max_pages must be >= 1")

    cursor = start_after
    page_num = 1
    while page_num <= max_pages:
        documents = await store.query_page(META_COLLECTION, limit=page_size, start_after=cursor)
        if not documents:
            break
        urls = [to_tracked_url(doc) for doc in documents if is_tracked_id(doc.id)]
        cursor = documents[-1].id
        if metrics is not None:
            metrics.incr("urls_skipped", len(documents) - len(urls))
        log_page(page_num=page_num, fetched=len(documents), kept=len(urls), cursor=cursor)
        yield Page(urls=urls, complete=False, cursor=cursor)
        page_num += 1
    yield Page(urls=[], complete=True, cursor=cursor)


async def paginate(
    store: DocumentStore,
    *,
    page_size: int,
    max_pages: int,
    start_after: Optional[str] = None,
    on_page: PageCallback,
    metrics: Optional[MetricsRegistry] = None,
) -> None:
    """Drive :func:`iter_pages`, handing each page to ``on_page`` before fetching the next."""
    pages = iter_pages(store, page_size=page_size, max_pages=max_pages, start_after=start_after, metrics=metrics)
    async for page in pages:
        result = on_page(page)
        if inspect.isawaitable(result):
            await result
