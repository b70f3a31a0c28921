"""
Cooperative cancellation shared between the executor and credentials providers.

A token is a multi-subscriber signal: callbacks registered with ``add`` fire at
most once, when ``cancel`` is first requested on the owning source. Callers
that suspend inside anyio code can bridge a token to a cancel scope with
``open_cancel_scope``.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Protocol, runtime_checkable

import anyio

logger = logging.getLogger(__name__)

CancellationCallback = Callable[[], None]


class OperationCancelled(Exception):
    """
    Raised to the caller in place of a result when its cancellation token fires.

    A terminal outcome, not a failure: it does not derive from BossError.
    """

    pass


@runtime_checkable
class CancellationToken(Protocol):
    """Protocol for cancellation signals."""

    @property
    def is_cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        ...

    def add(self, callback: CancellationCallback) -> CancellationCallback:
        """Register a callback to run when cancellation is requested."""
        ...

    def remove(self, callback: CancellationCallback) -> None:
        """Unregister a callback; it will never run afterwards."""
        ...

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelled if cancellation has been requested."""
        ...


class _UncancelableToken:
    """Token that never fires."""

    @property
    def is_cancelled(self) -> bool:
        return False

    def add(self, callback: CancellationCallback) -> CancellationCallback:
        return callback

    def remove(self, callback: CancellationCallback) -> None:
        pass

    def raise_if_cancelled(self) -> None:
        pass


UNCANCELABLE_TOKEN: CancellationToken = _UncancelableToken()


class CancellationTokenSource:
    """Cancellation token that is cancelled by calling ``cancel``."""

    def __init__(self) -> None:
        self._callbacks: list[CancellationCallback] | None = []

    @property
    def is_cancelled(self) -> bool:
        return self._callbacks is None

    def cancel(self) -> None:
        """Request cancellation. Calling this more than once has no further effect."""
        callbacks = self._callbacks
        if callbacks is None:
            return
        self._callbacks = None
        logger.debug(f"Cancelling token with {len(callbacks)} registered callback(s)")
        for callback in callbacks:
            callback()

    def add(self, callback: CancellationCallback) -> CancellationCallback:
        if self._callbacks is None:
            callback()
        else:
            self._callbacks.append(callback)
        return callback

    def remove(self, callback: CancellationCallback) -> None:
        if self._callbacks is None:
            return
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled:
            raise OperationCancelled()


@contextmanager
def open_cancel_scope(token: CancellationToken) -> Iterator[anyio.CancelScope]:
    """
    Open a cancel scope that is cancelled when ``token`` fires.

    The callback is unregistered when the block exits, so a later
    cancellation does not touch the finished scope. Inspect
    ``scope.cancelled_caught`` after the block to tell whether it was cut short.
    """
    with anyio.CancelScope() as scope:
        cancel = scope.cancel
        token.add(cancel)
        try:
            yield scope
        finally:
            token.remove(cancel)
