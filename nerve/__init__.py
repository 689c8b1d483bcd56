"""
# Nerve

An in-process publish/subscribe message bus with hierarchical, wildcard
capable keys and listeners whose init/dispose hooks follow the availability of
publishers.

    import nerve

    bus = nerve.Nerve()
    bus.on("system.*", nerve.Lifecycle(init=..., fn=..., dispose=...))
    bus.register(file_watcher, "system.io.open")
    bus.broadcast("system.io.open", payload)

For a complete breakdown of functionality, read the project readme.
"""

from nerve import handlers
from nerve import listener
from nerve import patterns
from nerve import registry
from nerve.bus import Nerve
from nerve.listener import Lifecycle
from nerve.listener import Listener
from nerve.patterns import PatternMatcher
from nerve.patterns import Tokens


version_major = 1
version_minor = 0
version_patch = 0
__version__ = f"{version_major}.{version_minor}.{version_patch}"

__all__ = [
    "Lifecycle",
    "Listener",
    "Nerve",
    "PatternMatcher",
    "Tokens",
    "handlers",
    "listener",
    "patterns",
    "registry",
]
