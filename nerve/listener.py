"""
Listener data structures and type definitions for the message bus.

Defines the Listener dataclass, the record the bus stores for every
subscription, and the Lifecycle dataclass used to subscribe with init/dispose
hooks. A subscription may be given as a plain handler, a Lifecycle, or a
mapping with 'init', 'fn' and 'dispose' keys; normalize() turns any of those
into a Lifecycle before a record is built.

Listeners hold strong references. A record only leaves the bus through off()
or reset().
"""

from dataclasses import dataclass
from typing import Any
from typing import Callable
from typing import Mapping
from typing import Optional
from typing import Union

HANDLER = Callable[[Any, str], Any]
"""
Called on broadcast with (payload, message).

Return values are ignored. If you want data back, broadcast a message going
the opposite direction.
"""

INIT_HOOK = Callable[[Any], Any]
"""
Called when a message matching the key becomes available. Receives the
publisher when fired while subscribing, or a list holding the publisher when
fired because a publisher registered.
"""

DISPOSE_HOOK = Callable[[bool], Any]
"""Called when no publisher can serve the key anymore, with the prior init state."""

CALLBACK = Union[HANDLER, INIT_HOOK, DISPOSE_HOOK]


@dataclass(frozen=True)
class Lifecycle(object):
    """A handler plus the optional hooks tied to publisher availability."""

    fn: Optional[HANDLER] = None
    init: Optional[INIT_HOOK] = None
    dispose: Optional[DISPOSE_HOOK] = None


SUBSCRIPTION = Union[HANDLER, Lifecycle, Mapping[str, Any], None]
"""Anything on() accepts as its handler argument."""


@dataclass(eq=False)
class Listener(object):
    """A single subscription to a key."""

    uid: int
    """Unique per bus, assigned at creation. Pass to off() to remove."""

    key: str
    """The subscription key the record belongs to."""

    fn: Optional[HANDLER] = None
    """The handler run on broadcast. Records without one are never dispatched."""

    init: Optional[INIT_HOOK] = None
    dispose: Optional[DISPOSE_HOOK] = None

    context: Any = None
    """The object the record was bound to. off(context) removes it."""

    init_done: bool = False
    """True while the record is active."""

    dis_done: bool = False
    """True once the record was disposed and until it is initialized again."""

    @property
    def is_active(self) -> bool:
        return self.init_done and not self.dis_done


def _callable_or_none(value: Any) -> Optional[Callable]:
    return value if callable(value) else None


def normalize(subscription: SUBSCRIPTION) -> Lifecycle:
    """
    Normalize any accepted subscription shape to a Lifecycle.

    Values that are not callable are dropped, leaving a record that is still
    tracked but does nothing on broadcast.
    """
    if isinstance(subscription, Lifecycle):
        return Lifecycle(
            fn=_callable_or_none(subscription.fn),
            init=_callable_or_none(subscription.init),
            dispose=_callable_or_none(subscription.dispose),
        )

    if isinstance(subscription, Mapping):
        return Lifecycle(
            fn=_callable_or_none(subscription.get("fn")),
            init=_callable_or_none(subscription.get("init")),
            dispose=_callable_or_none(subscription.get("dispose")),
        )

    return Lifecycle(fn=_callable_or_none(subscription))
