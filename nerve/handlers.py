"""
Exception handling utilities for the message bus.

By default the bus does not catch anything a handler, init hook or dispose
hook raises: the exception propagates to whoever called broadcast(),
register(), unregister(), on() or reset(), and the rest of that pass is
skipped.

Installing an exception handler with Nerve.set_exception_handler() isolates
listeners from each other instead. The handler receives the failing callable,
the topic (the broadcast message for handlers, the subscription key for
hooks) and the exception, then returns STOP to abandon the pass or CONTINUE
to carry on with the remaining listeners.

Built-in handlers cover the common patterns: logging and stopping
(stop_and_log_exception), logging and continuing
(log_and_continue_exception), silently continuing (silent_exception), and
collecting exceptions for batch processing (collect_exception).
"""

import logging
import sys
from typing import Callable

from nerve import listener


logger = logging.getLogger(__name__)


EXCEPTION_HANDLER = Callable[[listener.CALLBACK, str, Exception], bool]
"""
Signature for exception handlers.

Exception handlers receive the failing callable, topic, and exception, then
return True to stop the pass or False to continue to the remaining listeners.
"""

STOP = True
CONTINUE = False


def get_callable_name(callable_: Callable) -> str:
    """
    Returns the name of the callable, using class name for items with __self__,
    __name__ for anything with __name__, or str(callback) if neither are found.
    """
    if hasattr(callable_, "__self__") and hasattr(callable_, "__name__"):
        return f"{callable_.__self__.__class__.__name__}.{callable_.__name__}"
    elif hasattr(callable_, "__name__"):
        return callable_.__name__
    else:
        return str(callable_)


def stop_and_log_exception(
    callback: listener.CALLBACK, topic: str, exception: Exception
) -> bool:
    """Handler that logs the raised exception and stops the pass."""
    logger.error(
        f"Exception in nerve listener:\n"
        f"  Topic:     {topic}\n"
        f"  Callback:  {get_callable_name(callback)}\n"
        f"  Exception: {exception.__class__.__name__}: {exception}",
        exc_info=True,
    )

    return STOP


def log_and_continue_exception(
    callback: listener.CALLBACK, topic: str, exception: Exception
) -> bool:
    """Log listener errors but continue processing."""
    logger.warning(
        f"Listener error (continuing): "
        f"{get_callable_name(callback)} in {topic}: {exception}"
    )
    return CONTINUE


def silent_exception(_: listener.CALLBACK, __: str, ___: Exception) -> bool:
    """Silently ignore all exceptions."""
    return CONTINUE


exceptions_caught = []


def collect_exception(
    callback: listener.CALLBACK, topic: str, exception: Exception
) -> bool:
    """
    Collect exceptions for batch processing.
    This appends exceptions caught to nerve.handlers.exceptions_caught which
    is a list.
    Either manage the list manually or use this function as an example to create
    a more robust exception collector.
    """
    exceptions_caught.append(
        {
            "callback": get_callable_name(callback),
            "topic": topic,
            "exception": f"{exception.__class__.__name__}: {exception}",
            "exc_info": sys.exc_info(),
        }
    )
    return CONTINUE
