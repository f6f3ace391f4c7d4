"""Cooperative cancellation shared between callers and blocking I/O."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from sourcebridge.errors import OperationCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe cancellation signal.

    Connectors check the token between blocking steps and register a
    callback that closes their live socket or session, so an operation
    blocked inside a library call aborts as soon as ``cancel()`` runs.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._next_id = 0

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation and run registered callbacks once."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()

        for callback in callbacks:
            try:
                callback()
            except Exception as exc:  # noqa: BLE001 - a failed close must not mask the cancel
                logger.debug("Cancellation callback failed: %s", exc)

    def raise_if_cancelled(self, what: str = "Operation") -> None:
        if self._event.is_set():
            raise OperationCancelledError(f"{what} cancelled")

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` on cancellation; returns a function that unregisters it.

        If the token is already cancelled the callback runs immediately.
        """
        with self._lock:
            if not self._event.is_set():
                handle = self._next_id
                self._next_id += 1
                self._callbacks[handle] = callback

                def unregister() -> None:
                    with self._lock:
                        self._callbacks.pop(handle, None)

                return unregister

        callback()
        return lambda: None


def ensure_token(cancel: CancellationToken | None) -> CancellationToken:
    """Return ``cancel`` or a fresh token that is never cancelled."""
    return cancel if cancel is not None else CancellationToken()
