# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Cooperative cancellation for work running on worker threads.

Blocking work (workspace loads, reference searches) runs on threads where
asyncio task cancellation cannot reach it. A CancellationToken is handed to
that work and checked at project/file/symbol boundaries; run_cancellable()
bridges an awaiting task's cancellation to the token.
"""

import asyncio
import concurrent.futures
import threading
from typing import Callable, Optional, TypeVar

from workspace_xref.errors import OperationCancelledError

T = TypeVar("T")


class CancellationToken:
    """Thread-safe, one-way cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = "Operation cancelled"

    def cancel(self, reason: Optional[str] = None) -> None:
        if reason:
            self._reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if cancel() has been called."""
        if self._event.is_set():
            raise OperationCancelledError(self._reason)


def check_cancelled(token: Optional[CancellationToken]) -> None:
    """raise_if_cancelled() for an optional token."""
    if token is not None:
        token.raise_if_cancelled()


async def run_cancellable(
    func: Callable[[CancellationToken], T],
    executor: Optional[concurrent.futures.Executor] = None,
) -> T:
    """Run blocking ``func(token)`` on a worker thread.

    If the awaiting task is cancelled, the token is cancelled so the worker
    stops at its next checkpoint, and asyncio.CancelledError is re-raised.

    Args:
        func: Callable receiving the token for this run.
        executor: Executor to use (default: the loop's default executor).

    Returns:
        Whatever func returns.
    """
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(executor, func, token)
    try:
        return await future
    except asyncio.CancelledError:
        token.cancel("Request cancelled by caller")
        raise
