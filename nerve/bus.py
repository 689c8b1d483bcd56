"""
# Message Bus

Herein is the Nerve bus: the publisher availability map, the listener table,
the lifecycle passes that tie a listener's init/dispose hooks to publisher
availability, and the broadcast dispatcher.

Every bus instance owns its own state, so independent buses can coexist.
Everything runs synchronously on the caller's stack. Callbacks may call back
into the bus (broadcast, on, off, register...) because every pass iterates over
a snapshot of the registries rather than the live tables.
"""

import itertools
import json
import logging
import os
from typing import Any
from typing import Callable
from typing import Optional
from typing import Union

from nerve import handlers
from nerve import listener
from nerve import patterns
from nerve import registry


logger = logging.getLogger(__name__)


def _as_list(value: Union[str, list[str], tuple[str, ...]]) -> list[str]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class Nerve(object):
    """
    In-process publish/subscribe coordinator.
    Supports hierarchical keys through dot notation, with * as a multi-level
    wildcard and % as a single-level wildcard. All three are configurable.

    Publishers declare the messages they can emit with register() and
    withdraw with unregister().

    Listeners subscribe with on(), once() or the @subscribe decorator. A
    listener may carry an init hook, fired once a publisher able to serve its
    key exists, and a dispose hook, fired once none is left.

    Use broadcast() to deliver a payload to every matching listener.
    """

    def __init__(
        self,
        split: Optional[str] = None,
        wild: Optional[str] = None,
        wildlvl: Optional[str] = None,
    ) -> None:
        self._available = registry.AvailabilityRegistry()
        self._listeners = registry.ListenerRegistry()
        self._uids = itertools.count(1)

        self._exception_handler: Optional[handlers.EXCEPTION_HANDLER] = None

        self.tokens = patterns.Tokens()
        self._matcher = patterns.PatternMatcher(self.tokens)
        self.configure(split=split, wild=wild, wildlvl=wildlvl)

    def configure(
        self,
        split: Optional[str] = None,
        wild: Optional[str] = None,
        wildlvl: Optional[str] = None,
    ) -> None:
        """
        Set the separator and wildcard tokens.
        Empty or omitted values keep their current setting.

        Args:
            split (str): Separates hierarchy levels. Defaults to '.'.
            wild (str): Multi-level wildcard. Defaults to '*'.
            wildlvl (str): Single-level wildcard. Defaults to '%'.
        Notes:
            Existing listeners and publishers are kept. Only matching done
            after the call uses the new tokens.
        """
        self.tokens = self.tokens.merged(split=split, wild=wild, wildlvl=wildlvl)
        self._matcher = patterns.PatternMatcher(self.tokens)
        logger.debug(f"Nerve configured with {self.tokens}")

    # -----Callback Invocation-------------------------------------------------

    def set_exception_handler(
        self, handler: Optional[handlers.EXCEPTION_HANDLER]
    ) -> None:
        """
        Set the exception handler for listener errors.
        The handler is called when a handler, init hook or dispose hook raises.

        Args:
            Optional[handlers.EXCEPTION_HANDLER]:
                Callable with signature (CALLBACK, str, Exception) -> bool.
                Returns True to stop the pass, False to continue.
                Pass None to restore default behavior (re-raise exceptions).
        """
        self._exception_handler = handler

    def _invoke(self, callback: listener.CALLBACK, topic: str, *args: Any) -> bool:
        """Run a callback. Returns True if the current pass should stop."""
        try:
            callback(*args)
        except Exception as e:
            if self._exception_handler is None:
                raise

            return self._exception_handler(callback, topic, e)

        return handlers.CONTINUE

    # -----Publisher Management------------------------------------------------

    def register(
        self,
        publisher: Any,
        messages: Union[str, list[str]],
        no_broadcast: bool = False,
    ) -> None:
        """
        Let listeners know that messages can be emitted by publisher.

        Args:
            publisher (Any): The object able to emit the messages.
            messages (Union[str, list[str]]): Concrete message names.
            no_broadcast (bool): If False and publisher has no broadcast
                attribute, this bus' broadcast method is set on it.
        Notes:
            Every message that becomes available (its first publisher) inits
            the inactive listeners whose key it can serve. Their init hooks
            receive [publisher].
        """
        if not no_broadcast and not hasattr(publisher, "broadcast"):
            try:
                publisher.broadcast = self.broadcast
            except (AttributeError, TypeError):
                logger.debug(f"Could not set broadcast on {publisher!r}")

        for message in _as_list(messages):
            if not self._available.declare(publisher, message):
                continue

            logger.debug(f"Message '{message}' became available from {publisher!r}")
            self._activate(message, publisher)

    def unregister(
        self,
        publisher: Any,
        messages: Optional[Union[str, list[str]]] = None,
    ) -> None:
        """
        Remove the publisher from the messages it can emit.

        Args:
            publisher (Any): The object to unregister.
            messages (Optional[Union[str, list[str]]]): Names, or roots of
                names, to unregister from. 'a.b' also covers 'a.b.c' but never
                'a.bc'. None unregisters from every message.
        Notes:
            Active listeners whose key can no longer be served by any available
            message are disposed. Their dispose hooks receive True.
        """
        prefixes = None if messages is None else _as_list(messages)
        revoked = self._available.revoke(publisher, prefixes, self.tokens.split)
        if not revoked:
            return

        logger.debug(f"Publisher {publisher!r} revoked from {revoked}")
        self._deactivate()

    # -----Lifecycle-----------------------------------------------------------

    def _can_fire_available(self, key: str) -> bool:
        """Check if any available message can serve the key."""
        return any(
            self._matcher.can_ever_match(key, message)
            for message in self._available.names()
        )

    def _serving_publishers(self, key: str) -> list[Any]:
        """
        Publishers of the key itself when it is an available message, otherwise
        of the first available message able to serve the key.
        """
        if key in self._available:
            return self._available.publishers(key)

        for message in self._available.names():
            if self._matcher.can_ever_match(key, message):
                return self._available.publishers(message)

        return []

    def _activate(self, message: str, publisher: Any) -> None:
        """Init every listener not yet active whose key message can serve."""
        for key, records in self._listeners.items():
            if not self._matcher.can_ever_match(key, message):
                continue

            for record in records:
                if record.init_done:
                    continue

                record.init_done = True
                record.dis_done = False
                logger.debug(f"Listener {record.uid} on '{key}' initialized")

                if record.init is not None and self._invoke(
                    record.init, key, [publisher]
                ):
                    return

    def _deactivate(self) -> None:
        """Dispose every active listener whose key no available message serves."""
        for key, records in self._listeners.items():
            if self._can_fire_available(key):
                continue

            for record in records:
                if not record.init_done or record.dis_done:
                    continue

                was_init = record.init_done
                record.dis_done = True
                record.init_done = False
                logger.debug(f"Listener {record.uid} on '{key}' disposed")

                if record.dispose is not None and self._invoke(
                    record.dispose, key, was_init
                ):
                    return

    # -----Listener Management-------------------------------------------------

    def on(
        self,
        key: Union[str, list[str]],
        handler: listener.SUBSCRIPTION = None,
        context: Any = None,
    ) -> Optional[int]:
        """
        Listen to a key.

        Args:
            key (Union[str, list[str]]): The key to listen to (e.g.
                'system.io.open', 'system.*' or 'system.%.open'). A list
                subscribes each key separately with the same handler.
            handler (SUBSCRIPTION): A function called with (payload, message),
                or a Lifecycle / mapping holding 'init', 'fn' and 'dispose'.
            context (Any): The object the listener belongs to. off(context)
                removes every listener bound to it.
        Returns:
            Optional[int]: The listener id to pass to off(), or None when a
                list of keys was given.
        Notes:
            If an available message can already serve the key, the listener
            is initialized immediately and its init hook receives the first
            publisher of that message.
        """
        if isinstance(key, (list, tuple)):
            for each in key:
                self.on(each, handler, context)
            return None

        hooks = listener.normalize(handler)
        record = listener.Listener(
            uid=next(self._uids),
            key=key,
            fn=hooks.fn,
            init=hooks.init,
            dispose=hooks.dispose,
            context=context,
        )
        self._listeners.add(record)
        logger.debug(f"Listener {record.uid} subscribed to '{key}'")

        publishers = self._serving_publishers(key)
        if publishers:
            record.init_done = True
            logger.debug(f"Listener {record.uid} on '{key}' initialized")
            if record.init is not None:
                self._invoke(record.init, key, publishers[0])

        return record.uid

    def once(self, key: str, handler: listener.HANDLER, context: Any = None) -> int:
        """
        Listen to a key for a single broadcast only.
        The listener is removed before the handler runs.

        Returns:
            int: The listener id to pass to off().
        """
        fired = False

        def fire_once(payload: Any, message: str) -> None:
            nonlocal fired
            if fired:
                return

            fired = True
            self.off(uid)
            handler(payload, message)

        uid = self.on(key, fire_once, context)
        return uid

    def subscribe(
        self, key: Union[str, list[str]], context: Any = None
    ) -> Callable[[listener.HANDLER], listener.HANDLER]:
        """
        Decorator to register a function as a handler for key.

        Args:
            key (Union[str, list[str]]): The key or keys to listen to.
            context (Any): The object the listener belongs to.
        """

        def decorator(func: listener.HANDLER) -> listener.HANDLER:
            self.on(key, func, context)
            return func

        return decorator

    def off(self, target: Any) -> bool:
        """
        Remove a listener by id or by the record itself, or every listener bound
        to a context object.

        Returns:
            bool: True if at least one listener was removed.
        """
        removed = self._listeners.remove(target)
        for record in removed:
            logger.debug(f"Listener {record.uid} removed from '{record.key}'")

        return bool(removed)

    def get_by_id(self, uid: int) -> Optional[listener.Listener]:
        """Return the listener with the given id, or None."""
        return self._listeners.find(uid)

    def is_init(self, uid: int) -> Optional[bool]:
        """If the init has run and the listener was not disposed since."""
        record = self.get_by_id(uid)
        return record.init_done if record is not None else None

    def is_disposed(self, uid: int) -> Optional[bool]:
        """If the listener has been disposed and not initialized again."""
        record = self.get_by_id(uid)
        return record.dis_done if record is not None else None

    # -----Dispatch------------------------------------------------------------

    def is_listened(self, message: str) -> bool:
        """Check if at least one listener would receive message."""
        return any(
            records and self._matcher.matches(key, message)
            for key, records in self._listeners.items()
        )

    def broadcast(self, message: str, payload: Any = None) -> None:
        """
        Deliver payload to every listener whose key matches message.

        Handlers are called with (payload, message), key by key in
        subscription order, then listener by listener in subscription order.

        Args:
            message (str): Concrete message name (e.g. 'system.io.open').
            payload (Any): Passed unchanged to every handler.
        """
        for key, records in self._listeners.items():
            if not self._matcher.matches(key, message):
                continue

            for record in records:
                if record.fn is None:
                    continue

                if self._invoke(record.fn, message, payload, message):
                    return

    def reset(self) -> None:
        """
        Return the bus to its original state.
        Every listener with a dispose hook is disposed, then all publishers and
        listeners are dropped.
        """
        try:
            for record in self._listeners.records():
                if record.dispose is not None and self._invoke(
                    record.dispose, record.key, record.init_done
                ):
                    break
        finally:
            self._available.clear()
            self._listeners.clear()
            logger.debug("Nerve reset")

    # -----Introspection API---------------------------------------------------

    def get_keys(self) -> list[str]:
        """Get all subscribed keys."""
        return sorted(self._listeners.keys())

    def get_listener_count(self, key: str) -> int:
        """Count the listeners subscribed to exactly key."""
        return len(self._listeners.get(key))

    def get_available_messages(self) -> list[str]:
        """Get all messages that at least one publisher can emit."""
        return sorted(self._available.names())

    def get_publishers(self, message: str) -> list[Any]:
        """Get the publishers of message, in registration order."""
        return self._available.publishers(message)

    def is_available(self, message: str) -> bool:
        """Check if at least one publisher declared message."""
        return message in self._available

    @staticmethod
    def _get_callback_info(callback: Optional[Callable]) -> str:
        """Returns metadata on a callable as a string."""
        if callback is None:
            info = "<none>"

        elif hasattr(callback, "__self__") and hasattr(callback, "__name__"):
            obj = callback.__self__
            class_name = obj.__class__.__name__
            method_name = callback.__name__
            info = f"{class_name}.{method_name}"

        elif hasattr(callback, "__qualname__"):
            # Regular function, static method, or class method
            module = getattr(callback, "__module__", "<unknown>")
            qualname = callback.__qualname__
            info = f"{module}.{qualname}"

        else:
            # Fallback for unusual callables
            info = str(callback)

        return info

    def to_dict(self) -> dict:
        """Convert the bus structure to a dictionary."""
        available = {}
        for message in sorted(self._available.names()):
            available[message] = [
                repr(publisher) for publisher in self._available.publishers(message)
            ]

        listeners = {}
        for key in sorted(self._listeners.keys()):
            listeners_info = []
            for record in self._listeners.get(key):
                info = self._get_callback_info(record.fn)

                hooks_str = "".join(
                    f" [{name}]"
                    for name in ("init", "dispose")
                    if getattr(record, name) is not None
                )
                state_str = " [active]" if record.is_active else ""
                listeners_info.append(
                    f"{info} [id={record.uid}]{hooks_str}{state_str}"
                )

            listeners[key] = listeners_info

        return {"available": available, "listeners": listeners}

    def to_string(self) -> str:
        """Returns a string representation of the bus."""
        return json.dumps(self.to_dict(), indent=4)

    def export(self, filepath: Union[str, os.PathLike]) -> None:
        """Export bus structure to filepath."""
        with open(filepath, "w") as outfile:
            json.dump(self.to_dict(), outfile, indent=4)
