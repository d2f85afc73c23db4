"""Recursive, bounded-concurrency traversal of the results hierarchy.

One asyncio task per node. Each task:

1. asks the resume guard (``check_cache``) for a previously persisted document;
2. on a miss, fetches the document while holding the global semaphore;
3. classifies it by shape: listing (branch), record (leaf) or absent;
4. persists it, unless it came from the cache;
5. for a listing, runs one child task per listed node in a TaskGroup and
   finishes only once every child has finished.

Per-node fetch failures are contained at the node. A confirmed-missing node
(403) becomes a MISSING sentinel; other fetch errors are logged and leave no
artifact, so the next run retries them. Disk failures propagate and abort the
crawl.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Tuple, Union

from ermirror.models.area import Absent, AreaDocument, AreaNode, CrawlTask, RecordDocument
from .base import FetchError, NotFoundError, Outcome
from .locator import Locator, Templates, level_name, locate
from .pipeline import check_cache, persist

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 8
DEFAULT_MAX_DEPTH = 5


class Fetcher(Protocol):
    async def fetch(self, locator: Locator) -> Union[AreaDocument, RecordDocument]:
        ...


@dataclass
class CrawlReport:
    cached: int = 0
    saved: int = 0
    missing: int = 0
    failed: int = 0
    fetches: int = 0
    # (code, mirror path, reason) for each node that soft-failed
    failures: List[Tuple[str, str, str]] = field(default_factory=list)

    @property
    def nodes(self) -> int:
        return self.cached + self.saved + self.missing + self.failed

    def record(self, outcome: Outcome) -> None:
        if outcome is Outcome.CACHED:
            self.cached += 1
        elif outcome is Outcome.SAVED:
            self.saved += 1
        elif outcome is Outcome.MISSING:
            self.missing += 1
        else:
            self.failed += 1

    def summary(self) -> str:
        return (
            f"nodes={self.nodes} cached={self.cached} saved={self.saved} "
            f"missing={self.missing} failed={self.failed} fetches={self.fetches}"
        )


def _first_error(exc: BaseException) -> BaseException:
    while isinstance(exc, BaseExceptionGroup) and exc.exceptions:
        exc = exc.exceptions[0]
    return exc


def root_task(data_dir: Union[str, Path], code: str = "0") -> CrawlTask:
    """Task for the top-level listing; its files land in the mirror root."""
    return CrawlTask(node=AreaNode(code=code, name=""), depth=0, parent_path=Path(data_dir))


class Crawler:
    def __init__(
        self,
        fetcher: Fetcher,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        overseas: bool = False,
        max_depth: int = DEFAULT_MAX_DEPTH,
        templates: Templates = Templates(),
        on_complete: Optional[Callable[[CrawlTask, Outcome], None]] = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.fetcher = fetcher
        self.concurrency = concurrency
        self.overseas = overseas
        self.max_depth = max_depth
        self.templates = templates
        self.on_complete = on_complete
        self.report = CrawlReport()
        self._semaphore: Optional[asyncio.Semaphore] = None

    async def crawl(self, task: CrawlTask) -> CrawlReport:
        """Mirror the subtree under ``task``. Raises PersistenceError on disk failure."""
        # Created here so the semaphore belongs to the running event loop
        self._semaphore = asyncio.Semaphore(self.concurrency)
        try:
            await self._process(task)
        except BaseExceptionGroup as group:
            # TaskGroups nest one level per hierarchy level; surface the cause
            raise _first_error(group) from None
        return self.report

    # --- Per-node state machine ---
    async def _process(self, task: CrawlTask) -> None:
        node_dir = task.mirror_path
        code = task.node.code

        document = await check_cache(node_dir, code)
        from_cache = document is not None
        if document is None:
            try:
                document = await self._fetch(task)
            except NotFoundError:
                document = Absent()
            except FetchError as exc:
                self._finish(task, Outcome.ERROR, node_dir, detail=str(exc))
                self.report.failures.append((code, str(node_dir), str(exc)))
                return

        if isinstance(document, Absent):
            await self._handle_absent(task, from_cache)
            return

        if not from_cache:
            await persist(document, node_dir, code)

        if isinstance(document, AreaDocument):
            await self._recurse(task, document)

        self._finish(task, Outcome.CACHED if from_cache else Outcome.SAVED, node_dir)

    async def _fetch(self, task: CrawlTask) -> Union[AreaDocument, RecordDocument]:
        locator = locate(task.node.code, task.depth, self.overseas, self.templates)
        # Held for the whole call, retries and backoff included
        async with self._semaphore:
            self.report.fetches += 1
            return await self.fetcher.fetch(locator)

    async def _handle_absent(self, task: CrawlTask, from_cache: bool) -> None:
        """Record a confirmed-missing node as a sentinel; it is never recursed."""
        node_dir = task.mirror_path
        if not from_cache:
            await persist(Absent(), node_dir, task.node.code)
        self._finish(task, Outcome.CACHED if from_cache else Outcome.MISSING, node_dir)

    async def _recurse(self, task: CrawlTask, document: AreaDocument) -> None:
        if not document.regions:
            return
        if task.depth >= self.max_depth:
            logger.warning(
                "not descending below %s %s at depth %d (%d children listed)",
                level_name(task.depth),
                task.mirror_path,
                task.depth,
                len(document.regions),
            )
            return
        async with asyncio.TaskGroup() as group:
            for child in document.regions:
                group.create_task(self._process(task.child(child)))

    def _finish(self, task: CrawlTask, outcome: Outcome, path: Path, detail: str = "") -> None:
        self.report.record(outcome)
        if outcome is Outcome.ERROR:
            logger.warning("%s %s (%s)", outcome.value, path, detail)
        else:
            logger.info("%s %s", outcome.value, path)
        if self.on_complete is not None:
            self.on_complete(task, outcome)
