"""
Diagnostics sinks for the members middleware.

The middleware never logs through a process-wide singleton. Instead it is
handed a sink at construction and reports every notable event to it through a
single record() call. Built-in sinks cover the common patterns: logging
(LoggingDiagnostics), collecting for later inspection (CollectingDiagnostics)
and ignoring everything (SilentDiagnostics).

Also holds the relay exception handlers, which decide what happens when the
outbound action sink raises while a snapshot is being relayed.
"""

import logging
import sys
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Callable
from typing import Optional
from typing import Protocol


logger = logging.getLogger(__name__)


_NOTIFY_ROOT = "members.notify."

ON_CONTEXT_RECEIVED = f"{_NOTIFY_ROOT}context.received"
ON_REGISTER = f"{_NOTIFY_ROOT}register"
ON_IGNORED = f"{_NOTIFY_ROOT}ignored"
ON_STATE_RECEIVED = f"{_NOTIFY_ROOT}state.received"
ON_STATE_COMPLETED = f"{_NOTIFY_ROOT}state.completed"
ON_STATE_FAILED = f"{_NOTIFY_ROOT}state.failed"
ON_DETACHED = f"{_NOTIFY_ROOT}detached"
ON_RELAY_ERROR = f"{_NOTIFY_ROOT}relay.error"

_FAILURE_KINDS = frozenset({ON_STATE_FAILED, ON_RELAY_ERROR})


@dataclass(frozen=True)
class DiagnosticEvent(object):
    """A single diagnostic record."""

    kind: str
    """One of the ON_* constants."""

    message: str

    detail: dict[str, Any] = field(default_factory=dict)

    exception: Optional[BaseException] = None

    @property
    def is_failure(self) -> bool:
        return self.kind in _FAILURE_KINDS


class DiagnosticsSink(Protocol):
    def record(self, event: DiagnosticEvent) -> None:
        ...


class LoggingDiagnostics(object):
    """Writes events to a standard library logger."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self.log = log or logger

    def record(self, event: DiagnosticEvent) -> None:
        if event.is_failure:
            exc_info = None
            if event.exception is not None:
                exc_info = (
                    type(event.exception),
                    event.exception,
                    event.exception.__traceback__,
                )
            self.log.warning(
                f"{event.message} [{event.kind}]", exc_info=exc_info
            )
            return

        if event.detail:
            self.log.debug(f"{event.message} [{event.kind}] {event.detail}")
        else:
            self.log.debug(f"{event.message} [{event.kind}]")


class CollectingDiagnostics(object):
    """Keeps every event in memory, in record order."""

    def __init__(self) -> None:
        self.events: list[DiagnosticEvent] = []

    def record(self, event: DiagnosticEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [event.kind for event in self.events]

    def failures(self) -> list[DiagnosticEvent]:
        return [event for event in self.events if event.is_failure]

    def clear(self) -> None:
        self.events.clear()


class SilentDiagnostics(object):
    """Drops all events."""

    def record(self, event: DiagnosticEvent) -> None:
        pass


# -----Relay Exception Handlers------------------------------------------------

RELAY_EXCEPTION_HANDLER = Callable[[Callable[..., Any], Any, Exception], bool]
"""
Signature for relay exception handlers.

Handlers receive the failing output sink, the action that was being
dispatched and the exception, then return True to cancel the subscription or
False to keep relaying.
"""

STOP = True
CONTINUE = False


def get_callable_name(callable_: Callable) -> str:
    """
    Returns the name of the callable, using class name for items with __self__,
    __name__ for anything with __name__, or str(callable_) if neither are found.
    """
    if hasattr(callable_, "__self__") and hasattr(callable_, "__name__"):
        return f"{callable_.__self__.__class__.__name__}.{callable_.__name__}"
    elif hasattr(callable_, "__name__"):
        return callable_.__name__
    else:
        return str(callable_)


def log_and_continue_relay_exception(
    output: Callable[..., Any], action: Any, exception: Exception
) -> bool:
    """Log output sink errors but keep the subscription alive."""
    logger.error(
        f"Exception in members output sink:\n"
        f"  Output:    {get_callable_name(output)}\n"
        f"  Action:    {action!r}\n"
        f"  Exception: {exception.__class__.__name__}: {exception}",
        exc_info=True,
    )
    return CONTINUE


def log_and_stop_relay_exception(
    output: Callable[..., Any], action: Any, exception: Exception
) -> bool:
    """Log output sink errors and cancel the subscription."""
    logger.error(
        f"Exception in members output sink (stopping relay): "
        f"{get_callable_name(output)}: {exception}",
        exc_info=True,
    )
    return STOP


def silent_relay_exception(_: Callable[..., Any], __: Any, ___: Exception) -> bool:
    """Silently ignore output sink exceptions."""
    return CONTINUE


class RelayExceptionCollector(object):
    """
    Relay exception handler that keeps what it catches for later inspection.

    Each collector owns its list, so two middleware instances handed separate
    collectors never see each other's errors:

        collector = RelayExceptionCollector()
        middleware.set_relay_exception_handler(collector)
        ...
        for entry in collector.caught:
            ...
    """

    def __init__(self) -> None:
        self.caught: list[dict[str, Any]] = []

    def __call__(
        self, output: Callable[..., Any], action: Any, exception: Exception
    ) -> bool:
        self.caught.append(
            {
                "output": get_callable_name(output),
                "action": repr(action),
                "exception": f"{exception.__class__.__name__}: {exception}",
                "exc_info": sys.exc_info(),
            }
        )
        return CONTINUE

    def clear(self) -> None:
        self.caught.clear()
