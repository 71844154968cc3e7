# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Single-flight, lazily loaded, explicitly reloadable CodeGraph cache.

Each load starts a new *generation*. The accessor holds exactly one mutable
slot, "which generation is current", and a threading.Lock guards only the
reads and swaps of that slot. Loads run on a worker thread outside the lock;
once a generation has settled, readers return its outcome without touching
the lock.

State machine per generation:
    unloaded -> loading   (first get_graph() or any reload())
    loading  -> ready     (load succeeded)
    loading  -> failed    (load raised; the LoadError is memoized)
    ready/failed -> loading only through reload(), as a new generation

Cancellation:
    Cancelling an awaiting caller detaches that caller only. When the last
    caller waiting on a still-loading generation is cancelled, the load is
    aborted through its CancellationToken and the slot reverts to the
    generation that was current before it. A generation is never left stuck
    in "loading".
"""

import asyncio
import concurrent.futures
import logging
import threading
import time
from pathlib import Path
from typing import Optional, Union

from workspace_xref.cancellation import CancellationToken
from workspace_xref.engine import CodeAnalysisEngine
from workspace_xref.errors import LoadError, OperationCancelledError
from workspace_xref.models import CodeGraph

logger = logging.getLogger(__name__)


class WorkspaceState:
    """Observable state of the current generation."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class _Generation:
    """One load-to-next-reload lifecycle of a CodeGraph."""

    def __init__(self, number: int, previous: Optional["_Generation"]):
        self.number = number
        # Revert target if this load is aborted; dropped once settled
        self.previous = previous
        self.token = CancellationToken()
        self.future: "concurrent.futures.Future[CodeGraph]" = concurrent.futures.Future()
        self.waiters = 0
        self.aborted = False
        self.timed_out = False

    @property
    def state(self) -> str:
        if not self.future.done():
            return WorkspaceState.LOADING
        if self.future.exception() is not None:
            return WorkspaceState.FAILED
        return WorkspaceState.READY


def _retrieve_exception(future: "asyncio.Future[CodeGraph]") -> None:
    # Marks a detached waiter's outcome as observed so asyncio does not warn
    if not future.cancelled():
        future.exception()


class WorkspaceAccessor:
    """Owns the lifecycle of the loaded CodeGraph.

    Construct one instance per workspace root and inject it where needed;
    call close() at shutdown.

    Usage:
        accessor = WorkspaceAccessor("/path/to/workspace", engine)
        graph = await accessor.get_graph()
        graph = await accessor.reload()
        accessor.close()
    """

    def __init__(
        self,
        root_path: Union[str, Path],
        engine: CodeAnalysisEngine,
        load_timeout_seconds: Optional[float] = None,
        executor: Optional[concurrent.futures.Executor] = None,
    ):
        """Initialize the accessor. Nothing is loaded until first use.

        Args:
            root_path: Workspace root handed to the engine on every load.
            engine: Engine that performs loads.
            load_timeout_seconds: Abort a load (as a LoadError) after this long.
                None disables the limit.
            executor: Executor for load work (default: a private 2-thread pool).
        """
        if not str(root_path):
            raise ValueError("root_path is required")
        self._root_path = str(root_path)
        self._engine = engine
        self._load_timeout_seconds = load_timeout_seconds
        self._owns_executor = executor is None
        self._executor = executor or concurrent.futures.ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="workspace-load"
        )

        self._lock = threading.Lock()
        self._current: Optional[_Generation] = None
        self._generation_counter = 0
        self._closed = False

    @property
    def root_path(self) -> str:
        return self._root_path

    @property
    def state(self) -> str:
        """State of the current generation (see WorkspaceState)."""
        current = self._current
        return WorkspaceState.UNLOADED if current is None else current.state

    @property
    def generation(self) -> int:
        """Number of the current generation; 0 before the first load."""
        current = self._current
        return 0 if current is None else current.number

    async def get_graph(self) -> CodeGraph:
        """Return the current generation's graph, loading it on first use.

        Returns:
            The CodeGraph of the current generation.

        Raises:
            LoadError: If the current generation failed to load (memoized).
            asyncio.CancelledError: If the awaiting task is cancelled.
        """
        current = self._current
        if current is not None and current.future.done():
            return current.future.result()

        with self._lock:
            self._ensure_open()
            generation = self._current
            if generation is None:
                generation = self._start_generation_locked()
            generation.waiters += 1

        return await self._wait(generation)

    async def reload(self) -> CodeGraph:
        """Start a new generation with a full load and await its outcome.

        Callers that captured the previous generation keep observing it;
        callers arriving after the swap observe the new one.

        Raises:
            LoadError: If the new generation fails to load.
            asyncio.CancelledError: If the awaiting task is cancelled.
        """
        with self._lock:
            self._ensure_open()
            generation = self._start_generation_locked()
            generation.waiters += 1

        logger.info(f"Reloading workspace {self._root_path} (generation {generation.number})")
        return await self._wait(generation)

    async def preload(self) -> None:
        """Warm the cache at start-up. A load failure is logged, not raised."""
        try:
            graph = await self.get_graph()
        except LoadError as e:
            logger.error(f"Initial workspace load failed: {e}")
            return
        logger.info(f"Workspace preloaded: {len(graph.projects)} projects")

    def close(self) -> None:
        """Abort any in-flight load and release the load executor."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            current = self._current
        if current is not None and not current.future.done():
            current.token.cancel("Workspace accessor closed")
        if self._owns_executor:
            self._executor.shutdown(wait=False)
        logger.info("WorkspaceAccessor closed")

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("WorkspaceAccessor is closed")

    def _start_generation_locked(self) -> _Generation:
        """Create, start and publish a new generation. Caller holds the lock."""
        self._generation_counter += 1
        generation = _Generation(self._generation_counter, previous=self._current)
        generation.future = self._executor.submit(self._load, generation)
        generation.future.add_done_callback(lambda _: self._settled(generation))
        self._current = generation
        return generation

    @staticmethod
    def _settled(generation: _Generation) -> None:
        # Aborted generations keep their link so later reverts can skip past them
        if not generation.aborted:
            generation.previous = None

    async def _wait(self, generation: _Generation) -> CodeGraph:
        """Await a generation's outcome, detaching cleanly on cancellation."""
        outcome = asyncio.wrap_future(generation.future)
        try:
            # shield: one caller's cancellation must not cancel the shared load
            graph = await asyncio.shield(outcome)
        except asyncio.CancelledError:
            outcome.add_done_callback(_retrieve_exception)
            self._release(generation, cancelled=True)
            raise
        except BaseException:
            self._release(generation, cancelled=False)
            raise
        self._release(generation, cancelled=False)
        return graph

    def _release(self, generation: _Generation, cancelled: bool) -> None:
        """Drop one waiter; abort and revert if the last waiter was cancelled."""
        with self._lock:
            generation.waiters -= 1
            if not cancelled or generation.waiters > 0 or generation.future.done():
                return

            generation.aborted = True
            generation.token.cancel("All callers waiting for the load were cancelled")

            reverted = False
            if self._current is generation:
                previous = generation.previous
                while previous is not None and previous.aborted:
                    previous = previous.previous
                self._current = previous
                reverted = True

        if reverted:
            logger.info(
                f"Load of generation {generation.number} cancelled; "
                f"reverted to generation {self.generation}"
            )

    def _on_load_timeout(self, generation: _Generation) -> None:
        generation.timed_out = True
        generation.token.cancel(f"Load exceeded {self._load_timeout_seconds}s")

    def _load(self, generation: _Generation) -> CodeGraph:
        """Run one engine load on a worker thread."""
        timer: Optional[threading.Timer] = None
        if self._load_timeout_seconds:
            timer = threading.Timer(self._load_timeout_seconds, self._on_load_timeout, (generation,))
            timer.daemon = True
            timer.start()

        started = time.monotonic()
        logger.info(
            f"Loading workspace {self._root_path} with {self._engine.name()} "
            f"(generation {generation.number})"
        )
        try:
            graph = self._engine.load_graph(self._root_path, generation.token)
        except OperationCancelledError as e:
            if generation.timed_out:
                logger.error(f"Generation {generation.number} failed: {e}")
                raise LoadError(
                    f"Loading {self._root_path} timed out after {self._load_timeout_seconds}s",
                    root_path=self._root_path,
                ) from e
            logger.info(f"Generation {generation.number} load aborted: {e}")
            raise
        except LoadError as e:
            logger.error(f"Generation {generation.number} failed: {e}")
            raise
        except Exception as e:
            logger.exception(f"Unexpected error loading generation {generation.number}")
            raise LoadError(
                f"Unexpected error loading {self._root_path}: {e}", root_path=self._root_path
            ) from e
        finally:
            if timer is not None:
                timer.cancel()

        logger.info(
            f"Generation {generation.number} ready: {len(graph.projects)} projects "
            f"in {time.monotonic() - started:.2f}s"
        )
        return graph
