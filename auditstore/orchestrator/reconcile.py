"""Orchestrates a full stale/invalid URL reconciliation pass."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

import structlog

from auditstore.fetch.validator import UrlValidator
from auditstore.observability.metrics import MetricsRegistry, record_duration
from auditstore.orchestrator.checkpoint import CheckpointAppender, CheckpointStore
from auditstore.orchestrator.config import ReconcileSettings
from auditstore.orchestrator.paginator import Page, TrackedURL, paginate
from auditstore.orchestrator.runner import Outcome, run_all
from auditstore.storage.documents import META_COLLECTION, DocumentStore
from auditstore.storage.slug import slugify

LOGGER = structlog.get_logger(__name__)


class ReconcileState(str, enum.Enum):
    INIT = "INIT"
    RESUME_COMPUTED = "RESUME_COMPUTED"
    PAGINATING = "PAGINATING"
    VALIDATING = "VALIDATING"
    CHECKPOINTING = "CHECKPOINTING"
    DONE = "DONE"


@dataclass(slots=True)
class ValidationOutcome:
    url: str
    ok: bool


@dataclass
class RunSummary:
    """Accumulated result of one reconciliation pass."""

    num_removed: int = 0
    all_urls: List[TrackedURL] = field(default_factory=list)
    num_validated: int = 0
    num_failed: int = 0
    start_after: Optional[str] = None


async def touch_last_verified(store: DocumentStore, url: str) -> None:
    await store.update(META_COLLECTION, slugify(url), {"lastVerified": datetime.now(timezone.utc)})


async def touch_last_viewed(store: DocumentStore, url: str) -> None:
    await store.update(META_COLLECTION, slugify(url), {"lastViewed": datetime.now(timezone.utc)})


class Reconciler:
    """Finds tracked URLs that no longer resolve and records them in the checkpoint.

    Nothing is deleted here; the checkpoint file is the hand-off to the purge
    step.
    """

    def __init__(
        self,
        *,
        store: DocumentStore,
        validator: UrlValidator,
        checkpoint: CheckpointStore,
        settings: ReconcileSettings,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self._store = store
        self._validator = validator
        self._checkpoint = checkpoint
        self._settings = settings
        self._metrics = metrics or MetricsRegistry()
        self.state = ReconcileState.INIT

    def _transition(self, state: ReconcileState, **context: object) -> None:
        self.state = state
        LOGGER.info("reconcile_state", state=state.value, **context)

    async def run(self) -> RunSummary:
        summary = RunSummary()
        with record_duration(self._metrics, "run_duration_ms"):
            self._transition(ReconcileState.INIT, checkpoint=str(self._checkpoint.path))
            known_invalid = self._checkpoint.load()

            summary.start_after = self._checkpoint.resume_cursor()
            self._transition(
                ReconcileState.RESUME_COMPUTED,
                known_invalid=len(known_invalid),
                start_after=summary.start_after,
            )

            self._transition(ReconcileState.PAGINATING)
            try:
                await self._collect(summary)
            except Exception:
                LOGGER.exception("pagination_failed", fetched=len(summary.all_urls))
                raise

            self._transition(ReconcileState.VALIDATING, urls=len(summary.all_urls))
            with self._checkpoint.open_appender() as appender:
                outcomes = await self._validate_all(summary, appender)
            self._transition(ReconcileState.CHECKPOINTING, appended=summary.num_removed)

        summary.num_validated = sum(1 for outcome in outcomes if not outcome.failed)
        summary.num_failed = sum(1 for outcome in outcomes if outcome.failed)
        self._transition(
            ReconcileState.DONE,
            validated=summary.num_validated,
            removed=summary.num_removed,
            failed=summary.num_failed,
        )
        return summary

    async def _collect(self, summary: RunSummary) -> None:
        def on_page(page: Page) -> None:
            if page.complete:
                return
            self._metrics.incr("pages_fetched")
            self._metrics.incr("urls_fetched", len(page.urls))
            summary.all_urls.extend(page.urls)
            LOGGER.info("urls_fetched", total=len(summary.all_urls))

        await paginate(
            self._store,
            page_size=self._settings.page_size,
            max_pages=self._settings.max_pages,
            start_after=summary.start_after,
            on_page=on_page,
            metrics=self._metrics,
        )

    async def _validate_all(
        self, summary: RunSummary, appender: CheckpointAppender
    ) -> List[Outcome[ValidationOutcome]]:
        def make_task(item: TrackedURL):
            async def task() -> ValidationOutcome:
                ok = await self._validator.validate(self._settings.method, item.url, self._settings.timeout_ms)
                await touch_last_verified(self._store, item.url)
                if not ok:
                    summary.num_removed += 1
                    self._metrics.incr("urls_invalid")
                    await appender.write(item.url)
                    LOGGER.info("url_invalid", url=item.url)
                return ValidationOutcome(url=item.url, ok=ok)

            return task

        tasks = [make_task(item) for item in summary.all_urls]
        outcomes = await run_all(tasks, self._settings.concurrency)
        self._metrics.incr("task_failures", sum(1 for outcome in outcomes if outcome.failed))
        return outcomes
