"""
Subscription lifecycle for the provider change stream.

A ChangeStream is anything with a subscribe(on_value, on_failure,
on_completion) method returning a Cancellable. The SubscriptionController
keeps at most one live Subscription to such a stream, forwards each value in
the order the stream delivers it, surfaces a terminal failure exactly once and
guarantees that nothing is forwarded after the subscription is released.
"""

import logging
import threading
from typing import Any
from typing import Callable
from typing import Optional
from typing import Protocol


logger = logging.getLogger(__name__)


VALUE_CALLBACK = Callable[[Any], None]
FAILURE_CALLBACK = Callable[[Exception], None]
COMPLETION_CALLBACK = Callable[[], None]


class Cancellable(Protocol):
    def cancel(self) -> None:
        ...


class ChangeStream(Protocol):
    """A subscribable, possibly infinite sequence of snapshots."""

    def subscribe(
        self,
        on_value: VALUE_CALLBACK,
        on_failure: FAILURE_CALLBACK,
        on_completion: COMPLETION_CALLBACK,
    ) -> Cancellable:
        ...


class Subscription(object):
    """
    Handle for one subscription to a change stream.

    Callbacks run outside the handle lock. The handle counts deliveries in
    flight per thread instead, and cancel() waits for the ones running on
    other threads, so once it returns no callback is running or invoked again.
    A callback may cancel its own handle without waiting on itself.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._in_flight: dict[int, int] = {}
        self._upstream: Optional[Cancellable] = None
        self._released = False
        self._cancelled = False

    def __repr__(self) -> str:
        if self._cancelled:
            state = "cancelled"
        elif self._released:
            state = "released"
        else:
            state = "active"
        return f"<Subscription {state}>"

    @property
    def is_active(self) -> bool:
        return not self._released

    @property
    def released(self) -> bool:
        """True once cancelled, failed or completed."""
        return self._released

    @property
    def cancelled(self) -> bool:
        """True only when released through cancel()."""
        return self._cancelled

    def cancel(self) -> None:
        """Release the subscription. Safe to call more than once."""
        self._release()
        self.join()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until no delivery is running on another thread.

        Args:
            timeout (float): Seconds to wait, or None to wait indefinitely.
        Returns:
            bool: False if the timeout expired first.
        """
        me = threading.get_ident()
        with self._idle:
            return self._idle.wait_for(
                lambda: all(ident == me for ident in self._in_flight), timeout
            )

    def _release(self) -> bool:
        with self._lock:
            if self._released:
                return False
            self._released = True
            self._cancelled = True
            upstream = self._upstream
            self._upstream = None

        # Outside the lock, the upstream may wait on its own delivery thread.
        if upstream is not None:
            upstream.cancel()
        return True

    def _bind(self, upstream: Cancellable) -> None:
        with self._lock:
            if not self._released:
                self._upstream = upstream
                return

        # Released while subscribing (cancelled or terminated synchronously).
        if self._cancelled:
            upstream.cancel()

    def _enter(self, terminal: bool = False) -> bool:
        with self._lock:
            if self._released:
                return False
            if terminal:
                self._released = True
                self._upstream = None
            me = threading.get_ident()
            self._in_flight[me] = self._in_flight.get(me, 0) + 1
            return True

    def _exit(self) -> None:
        me = threading.get_ident()
        with self._idle:
            remaining = self._in_flight[me] - 1
            if remaining:
                self._in_flight[me] = remaining
            else:
                del self._in_flight[me]
            self._idle.notify_all()

    def _deliver(self, callback: VALUE_CALLBACK, value: Any) -> None:
        if not self._enter():
            return
        try:
            callback(value)
        finally:
            self._exit()

    def _terminate(self, callback: Optional[Callable[..., None]], *args: Any) -> None:
        if not self._enter(terminal=True):
            return
        try:
            if callback is not None:
                callback(*args)
        finally:
            self._exit()


class SubscriptionController(object):
    """
    Owns the single live subscription to a change stream.

    attach() releases any previous subscription before establishing the new
    one, so there is never more than one live subscription at a time. Waiting
    for a released handle's in-flight deliveries happens outside the
    controller lock.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._subscription: Optional[Subscription] = None

    @property
    def subscription(self) -> Optional[Subscription]:
        """The current handle, which may already be released."""
        return self._subscription

    @property
    def is_attached(self) -> bool:
        subscription = self._subscription
        return subscription is not None and subscription.is_active

    def attach(
        self,
        source: ChangeStream,
        on_value: VALUE_CALLBACK,
        on_failure: FAILURE_CALLBACK,
        on_completion: Optional[COMPLETION_CALLBACK] = None,
    ) -> Subscription:
        """
        Subscribe to source, replacing any live subscription.

        Args:
            source (ChangeStream): The stream to subscribe to.
            on_value (Callable): Receives each emitted value, in order.
            on_failure (Callable): Receives the terminal failure, once.
            on_completion (Callable): Called once if the stream finishes
                without failing.
        Returns:
            Subscription: The new handle.
        """
        self.detach()

        with self._lock:
            # A concurrent attach may have slipped in after the detach above.
            self._release_current()

            subscription = Subscription()
            self._subscription = subscription

            def forward_value(value: Any) -> None:
                subscription._deliver(on_value, value)

            def forward_failure(error: Exception) -> None:
                subscription._terminate(on_failure, error)

            def forward_completion() -> None:
                subscription._terminate(on_completion)

            upstream = source.subscribe(
                forward_value, forward_failure, forward_completion
            )
            subscription._bind(upstream)
            logger.debug(f"Attached to {type(source).__name__}")

        return subscription

    def detach(self, join: bool = True) -> Optional[Subscription]:
        """
        Release the live subscription, if any. Idempotent.

        Args:
            join (bool): Wait for deliveries still running on other threads.
                Callers holding their own locks pass False and join the
                returned handle once those locks are released.
        Returns:
            Optional[Subscription]: The handle that was released, if any.
        """
        with self._lock:
            previous = self._release_current()

        if join and previous is not None:
            previous.join()

        return previous

    def _release_current(self) -> Optional[Subscription]:
        previous = self._subscription
        self._subscription = None
        if previous is not None and previous._release():
            logger.debug("Released previous subscription")
            return previous
        return None
