"""
Unit tests for the availability and listener registries.

Tests verify identity based bookkeeping of publishers, segment-bounded
revocation, removal of empty entries, and removal of listener records by id or
by bound context.
"""

from nerve import listener
from nerve import registry


class Publisher(object):
    """Compares equal to every other publisher, so only identity tells them apart."""

    def __eq__(self, other: object) -> bool:
        return True

    __hash__ = object.__hash__


def test_declare_reports_first_publisher_only() -> None:
    """Test that declare returns True only when a message becomes available."""
    available = registry.AvailabilityRegistry()
    first = Publisher()
    second = Publisher()

    assert available.declare(first, "a.b") is True
    assert available.declare(second, "a.b") is False
    assert available.publishers("a.b") == [first, second]


def test_declare_suppresses_duplicates_by_identity() -> None:
    """Test that the same publisher is only stored once per message."""
    available = registry.AvailabilityRegistry()
    publisher = Publisher()

    available.declare(publisher, "a.b")
    available.declare(publisher, "a.b")

    assert len(available.publishers("a.b")) == 1


def test_revoke_respects_segment_boundary() -> None:
    """Test that revoking 'a.b' affects 'a.b' and 'a.b.c' but not 'a.bc'."""
    available = registry.AvailabilityRegistry()
    publisher = Publisher()
    for message in ("a.b", "a.bc", "a.b.c"):
        available.declare(publisher, message)

    revoked = available.revoke(publisher, ["a.b"], ".")

    assert revoked == ["a.b", "a.b.c"]
    assert available.names() == ["a.bc"]


def test_revoke_is_case_insensitive() -> None:
    """Test that revocation roots are compared case-insensitively."""
    available = registry.AvailabilityRegistry()
    publisher = Publisher()
    available.declare(publisher, "App.Start")

    assert available.revoke(publisher, ["app.start"], ".") == ["App.Start"]
    assert "App.Start" not in available


def test_revoke_everything() -> None:
    """Test that revoking without names removes the publisher everywhere."""
    available = registry.AvailabilityRegistry()
    publisher = Publisher()
    other = Publisher()
    available.declare(publisher, "a")
    available.declare(publisher, "b")
    available.declare(other, "b")

    available.revoke(publisher, None, ".")

    assert available.names() == ["b"]
    assert available.publishers("b") == [other]


def test_revoke_unknown_publisher_is_noop() -> None:
    """Test that revoking a publisher which never declared changes nothing."""
    available = registry.AvailabilityRegistry()
    available.declare(Publisher(), "a")

    assert available.revoke(Publisher(), None, ".") == []
    assert len(available) == 1


def test_covers() -> None:
    """Test prefix coverage with single and multi character separators."""
    assert registry.covers("a.b", "a.b", ".") is True
    assert registry.covers("a.b", "a.b.c", ".") is True
    assert registry.covers("a.b", "a.bc", ".") is False
    assert registry.covers("a", "a::b", "::") is True
    assert registry.covers("a", "a:b", "::") is False


def _record(uid: int, key: str, context: object = None) -> listener.Listener:
    return listener.Listener(uid=uid, key=key, context=context)


def test_remove_by_uid_drops_empty_keys() -> None:
    """Test that removing the last record of a key removes the key."""
    listeners = registry.ListenerRegistry()
    listeners.add(_record(1, "a"))
    listeners.add(_record(2, "b"))

    removed = listeners.remove(1)

    assert [r.uid for r in removed] == [1]
    assert listeners.keys() == ["b"]
    assert listeners.find(1) is None


def test_remove_by_context() -> None:
    """Test that every record bound to a context is removed."""
    listeners = registry.ListenerRegistry()
    owner = object()
    listeners.add(_record(1, "a", owner))
    listeners.add(_record(2, "b", owner))
    listeners.add(_record(3, "b"))

    removed = listeners.remove(owner)

    assert sorted(r.uid for r in removed) == [1, 2]
    assert [r.uid for r in listeners.records()] == [3]


def test_remove_ignores_bool_targets() -> None:
    """Test that True is not mistaken for listener id 1."""
    listeners = registry.ListenerRegistry()
    listeners.add(_record(1, "a"))

    assert listeners.remove(True) == []
    assert len(listeners) == 1


def test_read_methods_return_copies() -> None:
    """Test that mutating the registry does not affect previously read lists."""
    listeners = registry.ListenerRegistry()
    listeners.add(_record(1, "a"))
    snapshot = listeners.items()

    listeners.add(_record(2, "a"))
    listeners.add(_record(3, "b"))

    assert [(key, [r.uid for r in records]) for key, records in snapshot] == [
        ("a", [1])
    ]


def test_normalize_shapes() -> None:
    """Test that every accepted subscription shape normalizes to a Lifecycle."""

    def handler(payload: object, message: str) -> None:
        pass

    assert listener.normalize(handler) == listener.Lifecycle(fn=handler)
    assert listener.normalize({"fn": handler, "init": "nope"}) == listener.Lifecycle(
        fn=handler
    )
    assert listener.normalize(None) == listener.Lifecycle()
    assert listener.normalize(42) == listener.Lifecycle()  # type: ignore[arg-type]
