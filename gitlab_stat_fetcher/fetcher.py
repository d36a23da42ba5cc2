"""
Concurrent paginated fetching.

A fixed pool of worker threads pulls pages (or list indexes) from a shared
cursor and publishes non-empty results to a bounded queue; the calling thread
drains the queue until every worker has exited. Result order across pages is
not preserved.

The open-ended variant stops at the first page that returns zero records.
There is no other end-of-data check, so a transient empty page from the API
ends the phase early.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime
from queue import Empty, Queue
from threading import Event, Lock, Thread
from typing import Any, Callable, Dict, List, Sequence, TypeVar

from .errors import FetchPageError
from .gitlab_client import GitLabClient, GitLabClientError
from .models import Commit, MergeRequest, Note
from .utils import format_duration

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

_DONE = object()

PROGRESS_EVERY = 100


class SharedCursor:
    """
    Monotonic counter shared by worker threads.

    ``claim`` hands out each value exactly once, so no two workers ever get
    the same page number or list index.
    """

    def __init__(self, start: int = 0):
        self._next = start
        self._lock = Lock()

    def claim(self) -> int:
        """Return the current value and advance by one."""
        with self._lock:
            value = self._next
            self._next += 1
            return value


def _close_after(futures: List[Future], results: Queue, name: str) -> None:
    """Wait for every worker, then signal the aggregator."""
    wait(futures)
    for future in futures:
        error = future.exception()
        if error is not None:
            logger.error(f"{name} worker stopped unexpectedly: {error!r}")
    results.put(_DONE)


def _discard_until_done(results: Queue, closer: Thread) -> None:
    """Empty the queue until the closer's sentinel has been seen."""
    while True:
        try:
            if results.get(timeout=0.1) is _DONE:
                return
        except Empty:
            if not closer.is_alive() and results.empty():
                return


def _run_workers(
    worker: Callable[[Queue, Event], None],
    workers: int,
    name: str,
) -> List[Any]:
    """
    Run ``workers`` copies of ``worker`` and concatenate what they publish.

    Workers receive the result queue and a stop event they must check before
    claiming more work. If the calling thread is interrupted while collecting
    (Ctrl-C), the event is set and the queue is drained so blocked workers can
    finish, then the interrupt is re-raised.
    """
    results: Queue = Queue(maxsize=2 * workers)
    stop = Event()
    collected: List[Any] = []

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"{name}-worker") as executor:
        futures = [executor.submit(worker, results, stop) for _ in range(workers)]
        closer = Thread(
            target=_close_after,
            args=(futures, results, name),
            name=f"{name}-closer",
            daemon=True,
        )
        closer.start()

        try:
            for batch in iter(results.get, _DONE):
                collected.extend(batch)
        except BaseException:
            logger.warning(f"Interrupted, stopping {name} workers")
            stop.set()
            _discard_until_done(results, closer)
            raise

        closer.join()

    return collected


def fetch_all_pages(
    fetch_page: Callable[[int], Sequence[T]],
    workers: int = 1,
    name: str = "pages",
) -> List[T]:
    """
    Fetch every page of an open-ended paginated resource.

    Args:
        fetch_page: Returns the records of one 1-based page; raises
            FetchPageError when the page cannot be fetched
        workers: Number of concurrent worker threads
        name: Label used in thread names and log messages

    Returns:
        All records of all non-empty pages, in no particular page order
    """
    if workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}")

    cursor = SharedCursor(start=1)

    def worker(results: Queue, stop: Event) -> None:
        while not stop.is_set():
            page = cursor.claim()
            try:
                records = fetch_page(page)
            except FetchPageError as e:
                logger.warning(f"Error fetching {name} page {page}: {e}")
                records = []

            if not records:
                # Empty page means end of data
                stop.set()
                return
            results.put(list(records))

    return _run_workers(worker, workers, name)


def fetch_indexed(
    items: Sequence[T],
    fetch_one: Callable[[T], Sequence[U]],
    workers: int = 1,
    name: str = "items",
    progress_every: int = PROGRESS_EVERY,
) -> List[U]:
    """
    Fetch a known list of work units concurrently.

    Each index of ``items`` is claimed by exactly one worker and ``fetch_one``
    is called exactly once per item. Failures count as zero records.

    Args:
        items: Work units (e.g. merge request iids)
        fetch_one: Returns the records for one unit; raises FetchPageError on
            failure
        workers: Number of concurrent worker threads
        name: Label used in thread names and log messages
        progress_every: Log progress every N completed units

    Returns:
        Concatenated records of all units, in no particular order
    """
    if workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}")

    total = len(items)
    cursor = SharedCursor(start=0)
    done = SharedCursor(start=1)

    def worker(results: Queue, stop: Event) -> None:
        while not stop.is_set():
            idx = cursor.claim()
            if idx >= total:
                return

            try:
                records = fetch_one(items[idx])
            except FetchPageError as e:
                logger.warning(f"Error fetching {name} for {items[idx]}: {e}")
                records = []
            results.put(list(records))

            processed = done.claim()
            if processed % progress_every == 0:
                logger.info(f"Progress: {processed}/{total} {name}")

    return _run_workers(worker, workers, name)


def _build_records(items: Sequence[Any], build: Callable[[Any], T], label: str) -> List[T]:
    """Convert raw API items, skipping (and logging) the ones that do not parse."""
    records: List[T] = []
    for item in items:
        try:
            records.append(build(item))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed {label} record: {e!r}")
    return records


class ResourceFetcher:
    """
    Fetches the three exported resources of a project.

    Each method runs one phase: a worker pool over pages (commits, merge
    requests) or over merge request iids (discussions). Pages are collected
    raw and converted afterwards, so a malformed record is skipped on its
    own instead of emptying its page.
    """

    def __init__(
        self,
        client: GitLabClient,
        workers: int = 1,
        since_date: datetime | None = None,
    ):
        self.client = client
        self.workers = workers
        self.since_date = since_date

    def fetch_commits(self, project_id: int) -> List[Commit]:
        logger.info("Fetching commits...")
        started = time.monotonic()

        def fetch_page(page: int) -> List[Dict[str, Any]]:
            try:
                return self.client.list_commits(project_id, page, since=self.since_date)
            except GitLabClientError as e:
                raise FetchPageError(str(e), page=page, status_code=e.status_code) from e

        raw = fetch_all_pages(fetch_page, self.workers, name="commits")
        commits = _build_records(raw, lambda item: Commit.from_api(project_id, item), "commit")
        logger.info(f"Fetched {len(commits)} commits in {format_duration(time.monotonic() - started)}")
        return commits

    def fetch_merge_requests(self, project_id: int) -> List[MergeRequest]:
        logger.info("Fetching merge requests...")
        started = time.monotonic()

        def fetch_page(page: int) -> List[Dict[str, Any]]:
            try:
                return self.client.list_merge_requests(project_id, page, created_after=self.since_date)
            except GitLabClientError as e:
                raise FetchPageError(str(e), page=page, status_code=e.status_code) from e

        raw = fetch_all_pages(fetch_page, self.workers, name="merge_requests")
        mrs = _build_records(raw, lambda item: MergeRequest.from_api(project_id, item), "merge request")
        logger.info(f"Fetched {len(mrs)} MRs in {format_duration(time.monotonic() - started)}")
        return mrs

    def fetch_discussions(self, project_id: int, mr_iids: Sequence[int]) -> List[Note]:
        """Fetch all notes of all discussions of the given merge requests."""
        logger.info("Fetching discussions...")
        started = time.monotonic()

        def fetch_one(mr_iid: int) -> List[Note]:
            try:
                discussions = self.client.list_merge_request_discussions(project_id, mr_iid)
            except GitLabClientError as e:
                raise FetchPageError(str(e), status_code=e.status_code) from e

            raw_notes: List[Any] = []
            for discussion in discussions:
                if isinstance(discussion, dict):
                    raw_notes.extend(discussion.get("notes") or [])
            return _build_records(raw_notes, lambda item: Note.from_api(project_id, item), "note")

        notes = fetch_indexed(list(mr_iids), fetch_one, self.workers, name="MRs")
        logger.info(f"Fetched {len(notes)} notes in {format_duration(time.monotonic() - started)}")
        return notes
