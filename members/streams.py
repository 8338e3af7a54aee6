"""
Ready-made change stream implementations.

ChangeSubject is a push stream that a provider feeds by calling send(),
fail() or complete(). AsyncIteratorStream drives an async iterator on an
asyncio event loop and relays whatever it yields.

Both satisfy the ChangeStream protocol used by the SubscriptionController.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any
from typing import AsyncIterator
from typing import Callable
from typing import Optional

from members import subscription


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Observer(object):
    """The callbacks registered by one subscribe() call."""

    on_value: subscription.VALUE_CALLBACK
    on_failure: subscription.FAILURE_CALLBACK
    on_completion: subscription.COMPLETION_CALLBACK


class _SubjectCancellable(object):
    def __init__(self, subject: "ChangeSubject", observer: Observer) -> None:
        self._subject = subject
        self._observer = observer

    def cancel(self) -> None:
        self._subject._remove(self._observer)


class _NoopCancellable(object):
    def cancel(self) -> None:
        pass


class ChangeSubject(object):
    """
    Multi-subscriber push stream.

    Values are delivered synchronously on the thread calling send(), to
    observers in subscription order. Once failed or completed the subject
    ignores further sends, and late subscribers receive the terminal event
    immediately.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._observers: list[Observer] = []
        self._failure: Optional[Exception] = None
        self._completed = False

    @property
    def subscriber_count(self) -> int:
        return len(self._observers)

    @property
    def is_terminated(self) -> bool:
        return self._completed or self._failure is not None

    def subscribe(
        self,
        on_value: subscription.VALUE_CALLBACK,
        on_failure: subscription.FAILURE_CALLBACK,
        on_completion: subscription.COMPLETION_CALLBACK,
    ) -> subscription.Cancellable:
        observer = Observer(on_value, on_failure, on_completion)

        with self._lock:
            failure = self._failure
            completed = self._completed
            if failure is None and not completed:
                self._observers.append(observer)
                return _SubjectCancellable(self, observer)

        if failure is not None:
            on_failure(failure)
        else:
            on_completion()
        return _NoopCancellable()

    def send(self, value: Any) -> None:
        with self._lock:
            if self.is_terminated:
                logger.debug("Ignoring value sent to a terminated subject")
                return
            observers = list(self._observers)

        for observer in observers:
            observer.on_value(value)

    def fail(self, error: Exception) -> None:
        with self._lock:
            if self.is_terminated:
                return
            self._failure = error
            observers = self._observers
            self._observers = []

        for observer in observers:
            observer.on_failure(error)

    def complete(self) -> None:
        with self._lock:
            if self.is_terminated:
                return
            self._completed = True
            observers = self._observers
            self._observers = []

        for observer in observers:
            observer.on_completion()

    def _remove(self, observer: Observer) -> None:
        with self._lock:
            self._observers = [o for o in self._observers if o is not observer]


class _FutureCancellable(object):
    def __init__(self, future: Any) -> None:
        self.future = future

    def cancel(self) -> None:
        self.future.cancel()


class AsyncIteratorStream(object):
    """
    Change stream backed by an async iterator factory.

    Every subscribe() call creates a fresh iterator and pumps it in its own
    task. Cancelling the subscription cancels the task.
    """

    def __init__(
        self,
        factory: Callable[[], AsyncIterator[Any]],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        """
        Args:
            factory (Callable): Returns a new async iterator per subscription.
            loop (AbstractEventLoop): Loop to run on when subscribing from
                outside it. Defaults to the running loop.
        """
        self._factory = factory
        self._loop = loop

    def subscribe(
        self,
        on_value: subscription.VALUE_CALLBACK,
        on_failure: subscription.FAILURE_CALLBACK,
        on_completion: subscription.COMPLETION_CALLBACK,
    ) -> subscription.Cancellable:
        coro = self._pump(on_value, on_failure, on_completion)

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if self._loop is None or self._loop is running:
            if running is None:
                coro.close()
                raise RuntimeError(
                    "AsyncIteratorStream.subscribe() needs a running event loop "
                    "or an explicit loop"
                )
            return _FutureCancellable(running.create_task(coro))

        return _FutureCancellable(asyncio.run_coroutine_threadsafe(coro, self._loop))

    async def _pump(
        self,
        on_value: subscription.VALUE_CALLBACK,
        on_failure: subscription.FAILURE_CALLBACK,
        on_completion: subscription.COMPLETION_CALLBACK,
    ) -> None:
        try:
            async for value in self._factory():
                on_value(value)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            on_failure(e)
            return

        on_completion()
