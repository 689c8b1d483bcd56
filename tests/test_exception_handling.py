"""
Unit tests for bus exception handling capabilities.

Tests verify that without an exception handler listener failures propagate to
the caller, and that installed handlers (stop, continue, silent, collecting)
isolate failing handlers, init hooks and dispose hooks from the rest of the
pass.
"""

import logging
from typing import Any

import pytest

import nerve
from nerve import handlers


class Publisher(object):
    """A component able to emit messages."""


def _fail(*_: Any) -> None:
    raise ValueError("Test exception")


def test_default_reraises_from_init() -> None:
    """Test that a raising init hook propagates out of register()."""
    bus = nerve.Nerve()
    bus.on("a", nerve.Lifecycle(init=_fail))

    with pytest.raises(ValueError, match="Test exception"):
        bus.register(Publisher(), "a")


def test_default_reraises_from_dispose() -> None:
    """Test that a raising dispose hook propagates out of unregister()."""
    bus = nerve.Nerve()
    publisher = Publisher()
    bus.on("a", nerve.Lifecycle(dispose=_fail))
    bus.register(publisher, "a")

    with pytest.raises(ValueError, match="Test exception"):
        bus.unregister(publisher)


def test_flags_change_before_hooks_run() -> None:
    """Test that a failing init hook still leaves the listener active."""
    bus = nerve.Nerve()
    uid = bus.on("a", nerve.Lifecycle(init=_fail))

    with pytest.raises(ValueError):
        bus.register(Publisher(), "a")

    assert bus.is_init(uid) is True


def test_silent_exception_handler_continues() -> None:
    """Test that the silent handler keeps dispatching to later listeners."""
    bus = nerve.Nerve()
    bus.set_exception_handler(handlers.silent_exception)
    calls: list[str] = []

    bus.on("a", _fail)
    bus.on("a", lambda payload, message: calls.append("after"))
    bus.broadcast("a")

    assert calls == ["after"]


def test_log_and_continue_exception_handler(caplog: pytest.LogCaptureFixture) -> None:
    """Test that failures are logged as warnings and dispatch continues."""
    bus = nerve.Nerve()
    bus.set_exception_handler(handlers.log_and_continue_exception)
    calls: list[str] = []

    bus.on("a.*", _fail)
    bus.on("a.b", lambda payload, message: calls.append("after"))

    with caplog.at_level(logging.WARNING, logger="nerve.handlers"):
        bus.broadcast("a.b")

    assert calls == ["after"]
    assert "_fail in a.b: Test exception" in caplog.text


def test_stop_and_log_exception_handler(caplog: pytest.LogCaptureFixture) -> None:
    """Test that the stop handler logs the error and abandons the broadcast."""
    bus = nerve.Nerve()
    bus.set_exception_handler(handlers.stop_and_log_exception)
    calls: list[str] = []

    bus.on("a", _fail)
    bus.on("a", lambda payload, message: calls.append("after"))

    with caplog.at_level(logging.ERROR, logger="nerve.handlers"):
        bus.broadcast("a")

    assert calls == []
    assert "Exception in nerve listener" in caplog.text
    assert "ValueError: Test exception" in caplog.text


def test_collect_exception_handler() -> None:
    """Test that the collecting handler captures exception information."""
    handlers.exceptions_caught.clear()
    bus = nerve.Nerve()
    bus.set_exception_handler(handlers.collect_exception)

    def failing_handler1(payload: Any, message: str) -> None:
        raise ValueError("First error")

    def failing_handler2(payload: Any, message: str) -> None:
        raise TypeError("Second error")

    bus.on("test.event", failing_handler1)
    bus.on("test.*", failing_handler2)
    bus.broadcast("test.event")

    assert len(handlers.exceptions_caught) == 2
    assert "ValueError: First error" in handlers.exceptions_caught[0]["exception"]
    assert "TypeError: Second error" in handlers.exceptions_caught[1]["exception"]
    assert handlers.exceptions_caught[0]["topic"] == "test.event"
    assert handlers.exceptions_caught[1]["callback"] == "failing_handler2"
    handlers.exceptions_caught.clear()


def test_handler_isolates_init_hooks() -> None:
    """Test that one failing init hook does not prevent the others."""
    bus = nerve.Nerve()
    bus.set_exception_handler(handlers.silent_exception)
    publisher = Publisher()
    inits: list[Any] = []

    bus.on("a", nerve.Lifecycle(init=_fail))
    bus.on("a.*", nerve.Lifecycle(init=inits.append))
    bus.register(publisher, "a.b")

    assert inits == [[publisher]]


def test_custom_handler_receives_hook_key() -> None:
    """Test that hook failures report the subscription key as topic."""
    bus = nerve.Nerve()
    seen: list[tuple[str, str]] = []

    def custom_handler(callback: Any, topic: str, exception: Exception) -> bool:
        seen.append((topic, str(exception)))
        return handlers.CONTINUE

    bus.set_exception_handler(custom_handler)
    publisher = Publisher()
    bus.on("a.*", nerve.Lifecycle(dispose=_fail))
    bus.register(publisher, "a.b")
    bus.unregister(publisher)

    assert seen == [("a.*", "Test exception")]


def test_reset_clears_even_when_dispose_raises() -> None:
    """Test that a raising dispose hook still leaves the bus empty."""
    bus = nerve.Nerve()
    uid = bus.on("a", nerve.Lifecycle(dispose=_fail))

    with pytest.raises(ValueError):
        bus.reset()

    assert bus.get_by_id(uid) is None


def test_restore_default_with_none() -> None:
    """Test that setting the handler back to None re-raises again."""
    bus = nerve.Nerve()
    bus.set_exception_handler(handlers.silent_exception)
    bus.set_exception_handler(None)
    bus.on("a", _fail)

    with pytest.raises(ValueError, match="Test exception"):
        bus.broadcast("a")
