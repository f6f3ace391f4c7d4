"""Tests for cooperative cancellation tokens."""

import threading

import pytest

from sourcebridge.errors import OperationCancelledError
from sourcebridge.utils.cancellation import CancellationToken, ensure_token


def test_fresh_token_is_not_cancelled():
    token = CancellationToken()
    assert not token.cancelled
    token.raise_if_cancelled()


def test_cancel_raises_and_runs_callbacks_once():
    token = CancellationToken()
    calls = []
    token.register(lambda: calls.append("closed"))

    token.cancel()
    token.cancel()

    assert token.cancelled
    assert calls == ["closed"]
    with pytest.raises(OperationCancelledError, match="FTP read cancelled"):
        token.raise_if_cancelled("FTP read")


def test_unregistered_callback_is_not_run():
    token = CancellationToken()
    calls = []
    unregister = token.register(lambda: calls.append("closed"))
    unregister()

    token.cancel()

    assert calls == []


def test_register_after_cancel_runs_immediately():
    token = CancellationToken()
    token.cancel()
    calls = []

    token.register(lambda: calls.append("closed"))

    assert calls == ["closed"]


def test_failing_callback_does_not_block_others():
    token = CancellationToken()
    calls = []

    def broken() -> None:
        raise OSError("socket already closed")

    token.register(broken)
    token.register(lambda: calls.append("closed"))
    token.cancel()

    assert calls == ["closed"]


def test_cancel_from_another_thread():
    token = CancellationToken()
    closed = threading.Event()
    token.register(closed.set)

    worker = threading.Thread(target=token.cancel)
    worker.start()
    worker.join(timeout=5)

    assert closed.is_set()
    assert token.cancelled


def test_ensure_token_reuses_given_token():
    token = CancellationToken()
    assert ensure_token(token) is token
    assert isinstance(ensure_token(None), CancellationToken)
