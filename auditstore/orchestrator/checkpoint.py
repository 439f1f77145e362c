"""Flat-file record of URLs found invalid, used to resume reconciliation runs."""
from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterable, Iterator, List, Optional

from auditstore.storage.slug import looks_like_url, slugify


@dataclass(slots=True)
class CheckpointSummary:
    entries: int
    last_entry: Optional[str]
    resume_cursor: Optional[str]


class CheckpointAppender:
    """Appends one URL per line, flushing each write.

    ``write`` is for concurrent tasks on the event loop: the file I/O runs in a
    worker thread and a lock keeps lines whole. ``write_line`` is the blocking
    variant for synchronous callers.
    """

    def __init__(self, handle: IO[str]) -> None:
        self._handle = handle
        self._lock = asyncio.Lock()
        self.written = 0

    def write_line(self, url: str) -> None:
        self._handle.write(f"{url}\n")
        self._handle.flush()
        self.written += 1

    async def write(self, url: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self.write_line, url)


class CheckpointStore:
    """Owns the invalid URL file: sorted on load, append-only in between."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._entries: Optional[List[str]] = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> List[str]:
        """Read, dedupe and sort the record, rewriting the file in sorted order.

        Appends from a previous run land in completion order, so the file is
        repaired here before any resume decision is made.
        """
        if not self._path.exists():
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text("", encoding="utf-8")
        raw = self._path.read_text(encoding="utf-8")
        entries = sorted({line.strip() for line in raw.splitlines() if line.strip()})
        content = "\n".join(entries) + "\n" if entries else ""
        if content != raw:
            self._path.write_text(content, encoding="utf-8")
        self._entries = entries
        return list(entries)

    def resume_cursor(self) -> Optional[str]:
        """Return the document id to resume after, or None to start from scratch."""
        entries = self._entries if self._entries is not None else self.load()
        if not entries:
            return None
        last = entries[-1]
        return slugify(last) if looks_like_url(last) else None

    @contextlib.contextmanager
    def open_appender(self) -> Iterator[CheckpointAppender]:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as handle:
            yield CheckpointAppender(handle)

    def append(self, urls: Iterable[str]) -> int:
        """Append ``urls`` without sorting or deduplicating; returns lines written."""
        with self.open_appender() as appender:
            for url in urls:
                appender.write_line(url)
            return appender.written

    def summary(self) -> CheckpointSummary:
        entries = self.load()
        return CheckpointSummary(
            entries=len(entries),
            last_entry=entries[-1] if entries else None,
            resume_cursor=self.resume_cursor(),
        )
