"""
Registry data structures for the message bus.

AvailabilityRegistry maps each concrete message name to the ordered publishers
that declared they can emit it. A name is present only while at least one
publisher backs it.

ListenerRegistry maps each subscription key to its ordered listener records. A
key is present only while it holds at least one record.

Both registries hand out copies from their read methods so callers can invoke
callbacks, which may mutate the registry, while iterating.
"""

from typing import Any
from typing import Iterable
from typing import Optional

from nerve import listener


def covers(prefix: str, message: str, split: str) -> bool:
    """
    Returns True if message equals prefix or lives below it, compared
    case-insensitively and only up to a full segment boundary.

    'a.b' covers 'a.b' and 'a.b.c' but not 'a.bc'.
    """
    if message[: len(prefix)].lower() != prefix.lower():
        return False

    return len(message) == len(prefix) or message[len(prefix):].startswith(split)


class AvailabilityRegistry(object):
    """Message name -> publishers able to emit it, in declaration order."""

    def __init__(self) -> None:
        self._available: dict[str, list[Any]] = {}

    def declare(self, publisher: Any, message: str) -> bool:
        """
        Add publisher to the message's publishers unless already present.

        Returns:
            bool: True if the message just became available, i.e. the
                publisher is now its only one.
        """
        publishers = self._available.setdefault(message, [])
        if any(p is publisher for p in publishers):
            return False

        publishers.append(publisher)
        return len(publishers) == 1

    def revoke(
        self, publisher: Any, messages: Optional[Iterable[str]], split: str
    ) -> list[str]:
        """
        Remove publisher from the messages it declared.

        Args:
            publisher (Any): The publisher to remove.
            messages (Optional[Iterable[str]]): Names, or roots of names, to
                revoke. None revokes every name.
            split (str): The segment separator used for root matching.
        Returns:
            list[str]: The names the publisher was actually removed from.
        """
        prefixes = None if messages is None else list(messages)
        revoked = []

        for message, publishers in list(self._available.items()):
            if prefixes is not None and not any(
                covers(prefix, message, split) for prefix in prefixes
            ):
                continue

            remaining = [p for p in publishers if p is not publisher]
            if len(remaining) == len(publishers):
                continue

            revoked.append(message)
            if remaining:
                self._available[message] = remaining
            else:
                del self._available[message]

        return revoked

    def names(self) -> list[str]:
        return list(self._available)

    def publishers(self, message: str) -> list[Any]:
        return list(self._available.get(message, []))

    def clear(self) -> None:
        self._available.clear()

    def __contains__(self, message: object) -> bool:
        return message in self._available

    def __len__(self) -> int:
        return len(self._available)


def _is_target(record: listener.Listener, target: Any) -> bool:
    """A record is targeted by itself, its uid or the exact context object."""
    if record is target:
        return True

    if record.context is not None and record.context is target:
        return True

    return (
        isinstance(target, int)
        and not isinstance(target, bool)
        and record.uid == target
    )


class ListenerRegistry(object):
    """Subscription key -> listener records, in subscription order."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[listener.Listener]] = {}

    def add(self, record: listener.Listener) -> None:
        self._listeners.setdefault(record.key, []).append(record)

    def remove(self, target: Any) -> list[listener.Listener]:
        """
        Remove the record that is target, or whose uid or bound context is target.
        Keys left without records are dropped.

        Returns:
            list[listener.Listener]: The removed records.
        """
        removed = []
        for key, records in list(self._listeners.items()):
            kept = []
            for record in records:
                if _is_target(record, target):
                    removed.append(record)
                else:
                    kept.append(record)

            if len(kept) == len(records):
                continue

            if kept:
                self._listeners[key] = kept
            else:
                del self._listeners[key]

        return removed

    def find(self, uid: int) -> Optional[listener.Listener]:
        for records in self._listeners.values():
            for record in records:
                if record.uid == uid:
                    return record

        return None

    def get(self, key: str) -> list[listener.Listener]:
        return list(self._listeners.get(key, []))

    def items(self) -> list[tuple[str, list[listener.Listener]]]:
        return [(key, list(records)) for key, records in self._listeners.items()]

    def keys(self) -> list[str]:
        return list(self._listeners)

    def records(self) -> list[listener.Listener]:
        return [record for records in self._listeners.values() for record in records]

    def clear(self) -> None:
        self._listeners.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._listeners

    def __len__(self) -> int:
        return len(self._listeners)
