"""Background search execution.

A ``SearchWorker`` owns one ``SearchEngine`` and a single-thread executor, so
the engine (and its transposition table) only ever runs one search at a time.
Each request gets its own cancellation token; submitting a new request
cancels the previous one.
"""

import asyncio
import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from typing import Callable, Iterable, Optional

from gambit.core.position import Position
from gambit.core.search import CancellationToken, SearchEngine, SearchOutcome, SearchResult
from gambit.errors import SearchCancelledError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[SearchResult], None]


class SearchHandle:
    """Response side of one search request."""

    def __init__(self, future: Future, token: CancellationToken):
        self.future = future
        self.token = token

    def cancel(self):
        """Abort the search; a queued request never starts."""
        self.token.cancel()
        self.future.cancel()

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: Optional[float] = None) -> SearchResult:
        """
        Block until the search finishes.

        Raises:
            SearchCancelledError: the request was cancelled.
            concurrent.futures.TimeoutError: ``timeout`` elapsed first.
        """
        try:
            result = self.future.result(timeout)
        except CancelledError:
            raise SearchCancelledError("search was cancelled before it started") from None
        if result.outcome is SearchOutcome.CANCELLED:
            raise SearchCancelledError("search was cancelled")
        return result

    async def wait(self) -> SearchResult:
        """Awaitable form of :meth:`result` for asyncio hosts."""
        try:
            result = await asyncio.wrap_future(self.future)
        except asyncio.CancelledError:
            if self.future.cancelled():
                raise SearchCancelledError("search was cancelled before it started") from None
            raise
        if result.outcome is SearchOutcome.CANCELLED:
            raise SearchCancelledError("search was cancelled")
        return result

    def add_done_callback(self, fn: Callable[["SearchHandle"], None]):
        self.future.add_done_callback(lambda _f: fn(self))


class SearchWorker:
    def __init__(self, engine: Optional[SearchEngine] = None):
        self.engine = engine or SearchEngine()
        self._pool: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="gambit-search"
        )
        self._lock = threading.Lock()
        self._current: Optional[SearchHandle] = None

    def submit(
        self,
        position: Position,
        depth: Optional[int] = None,
        time_limit_ms: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        history: Iterable[int] = (),
    ) -> SearchHandle:
        """Queue a search, cancelling the one in flight."""
        history = tuple(history)
        with self._lock:
            if self._pool is None:
                raise RuntimeError("search worker has been shut down")
            if self._current is not None and not self._current.done():
                logger.debug("Cancelling in-flight search for a new request")
                self._current.cancel()
            token = CancellationToken()
            future = self._pool.submit(
                self.engine.search, position, depth, time_limit_ms, token, on_progress, history
            )
            handle = SearchHandle(future, token)
            self._current = handle
        return handle

    def cancel(self):
        with self._lock:
            if self._current is not None:
                self._current.cancel()

    def new_game(self):
        """Cancel any search and clear the engine's tables on the search thread.

        Blocks until the cancelled search has unwound and the tables are empty.
        """
        with self._lock:
            if self._pool is None:
                raise RuntimeError("search worker has been shut down")
            if self._current is not None:
                self._current.cancel()
                self._current = None
            future = self._pool.submit(self.engine.new_game)
        future.result()

    def shutdown(self, wait: bool = True):
        """Cancel outstanding work and stop the thread."""
        with self._lock:
            if self._current is not None:
                self._current.cancel()
                self._current = None
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self) -> "SearchWorker":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
