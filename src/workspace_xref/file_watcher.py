# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Workspace file system watcher.

Uses the watchdog library to notice edits to Python sources and project
files under the workspace root and asks for a reload once the burst of
events has settled:
- Only ``*.py``, ``pyproject.toml`` and ``setup.py`` events count
- Ignore rules are shared with workspace loading (PathFilter)
- Events are debounced; a burst of saves triggers a single reload

The watcher never loads anything itself. The reload callback runs on a
timer thread and should hand the work over to the event loop.
"""

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

from watchdog.events import FileMovedEvent, FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from workspace_xref.config import PROJECT_FILE_NAMES
from workspace_xref.path_filter import PathFilter

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)

# Callback signature: () -> None
ReloadCallback = Callable[[], None]


class WorkspaceWatcher:
    """Debounced watcher that requests workspace reloads.

    Thread Safety:
    - Events arrive on the observer thread; the pending timer is guarded by a lock
    - The reload callback runs on the timer thread

    Usage:
        watcher = WorkspaceWatcher(root, on_change=request_reload)
        watcher.start()
        # ...
        watcher.stop()
    """

    DEFAULT_DEBOUNCE_SECONDS = 1.0

    def __init__(
        self,
        root_path: Path,
        on_change: ReloadCallback,
        path_filter: Optional[PathFilter] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        """Initialize the watcher.

        Args:
            root_path: Workspace root directory to watch recursively.
            on_change: Called once per settled burst of relevant events.
            path_filter: Ignore rules (default: PathFilter(root_path)).
            debounce_seconds: Quiet period before on_change fires.
        """
        self.root_path = Path(root_path)
        self.on_change = on_change
        self.path_filter = path_filter if path_filter is not None else PathFilter(self.root_path)
        self.debounce_seconds = debounce_seconds

        self._lock = threading.Lock()
        self._pending: Optional[threading.Timer] = None
        self._observer: Optional[BaseObserver] = None
        self._event_handler = _WorkspaceEventHandler(self)

    def is_relevant(self, file_path: str) -> bool:
        """True for non-ignored Python sources and project files."""
        path = Path(file_path)
        if path.suffix != ".py" and path.name not in PROJECT_FILE_NAMES:
            return False
        return not self.path_filter.should_ignore(path)

    def notify(self, file_path: str) -> None:
        """Record a relevant event and (re)arm the debounce timer."""
        logger.debug(f"Workspace change: {file_path}")
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
            self._pending = threading.Timer(self.debounce_seconds, self._fire)
            self._pending.daemon = True
            self._pending.start()

    def _fire(self) -> None:
        with self._lock:
            self._pending = None
        logger.info(f"Workspace changed under {self.root_path}, requesting reload")
        try:
            self.on_change()
        except Exception as e:
            # Keep watching; the next change retries
            logger.error(f"Reload callback failed: {e}")

    def start(self) -> None:
        """Start watching the workspace.

        Raises:
            RuntimeError: If the watcher is already running.
        """
        if self._observer is not None and self._observer.is_alive():
            raise RuntimeError("WorkspaceWatcher is already running")

        self._observer = Observer()
        self._observer.schedule(  # type: ignore  # watchdog types vary by version
            self._event_handler, str(self.root_path), recursive=True
        )
        self._observer.start()  # type: ignore  # watchdog types vary by version

        logger.info(f"WorkspaceWatcher started, monitoring {self.root_path}")

    def stop(self) -> None:
        """Stop watching and drop any pending reload request."""
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None
        if self._observer is not None and self._observer.is_alive():
            self._observer.stop()  # type: ignore  # watchdog types vary by version
            self._observer.join(timeout=5.0)
            logger.info("WorkspaceWatcher stopped")

    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    @property
    def has_pending_reload(self) -> bool:
        with self._lock:
            return self._pending is not None


class _WorkspaceEventHandler(FileSystemEventHandler):
    """Internal event handler for watchdog; delegates to WorkspaceWatcher."""

    def __init__(self, watcher: WorkspaceWatcher):
        super().__init__()
        self.watcher = watcher

    def _handle_path(self, file_path: str) -> None:
        if self.watcher.is_relevant(file_path):
            self.watcher.notify(file_path)

    def _handle_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._handle_path(str(event.src_path))

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Treated as a delete of the old path plus a create of the new one."""
        if event.is_directory or not isinstance(event, FileMovedEvent):
            return
        self._handle_path(str(event.src_path))
        self._handle_path(str(event.dest_path))
