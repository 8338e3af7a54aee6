"""
# Members Middleware

Sits between the application's action pipeline and the member directory
provider. It:
  * registers the member identifiers it is asked for with the provider,
    sending only what changed when the provider supports deltas,
  * keeps one subscription to the provider's change stream and dispatches
    every snapshot it receives back into the application as a StateChanged
    action, in the order the stream emitted them.

Stream failures stop the relay and are reported to diagnostics only. No error
action is dispatched and no resubscription happens here; call reattach() (or
hand over the context again) to resume.
"""

import json
import os
import threading
from typing import Any
from typing import Callable
from typing import Optional
from typing import Sequence
from typing import Union

from members import config
from members import diagnostics
from members import models
from members import policy
from members import reconciler
from members import subscription


ACTION_SINK = Callable[[models.MembersAction], None]
"""Receives the actions produced by the middleware."""

GET_STATE = Callable[[], Optional[models.MembersSnapshotState]]
"""Returns the state currently held by the application."""


class MembersMiddleware(object):
    """
    Registration and relay middleware for the member directory.

    Registration requests (Register actions) go through handle(). The relay is
    started by receive_context() and stopped by detach(). Both paths may be
    driven from different threads, and the output sink may answer a snapshot
    with a registration. Three locks keep them apart:
      * the buffer lock guards the registered buffer only and is never held
        while the provider or the output sink runs,
      * the register lock keeps provider calls in the order the buffer was
        updated, and the relay path never takes it,
      * the lifecycle lock makes the context fields and the subscription
        change together.
    """

    def __init__(
        self,
        provider: Union[policy.DeltaProvider, policy.ListProvider],
        registration_policy: Optional[policy.RegistrationPolicy] = None,
        diagnostics_sink: Optional[diagnostics.DiagnosticsSink] = None,
        settings: Optional[config.MiddlewareConfig] = None,
    ) -> None:
        """
        Args:
            provider: The member directory provider.
            registration_policy (RegistrationPolicy): How registrations reach
                the provider. Defaults to the policy named in settings.
            diagnostics_sink (DiagnosticsSink): Receives diagnostic events.
                Defaults to LoggingDiagnostics.
            settings (MiddlewareConfig): Policy name and notification flags.
        Raises:
            TypeError: If the policy is not a RegistrationPolicy or the
                provider lacks the call the policy makes.
        """
        self._settings = settings or config.MiddlewareConfig()

        if registration_policy is None:
            registration_policy = policy.policy_from_name(self._settings.policy)
        if not isinstance(registration_policy, policy.RegistrationPolicy):
            raise TypeError(
                f"Expected a RegistrationPolicy, got "
                f"{type(registration_policy).__name__}"
            )
        if not registration_policy.supports(provider):
            raise TypeError(
                f"{type(provider).__name__} does not support the "
                f"'{registration_policy.name}' registration policy"
            )

        self._provider = provider
        self._policy = registration_policy
        self._diagnostics = diagnostics_sink or diagnostics.LoggingDiagnostics()

        self._buffer_lock = threading.Lock()
        self._register_lock = threading.RLock()
        self._buffer: tuple[str, ...] = ()

        self._lifecycle_lock = threading.RLock()

        self._attached = False
        self._output: Optional[ACTION_SINK] = None
        self._get_state: Optional[GET_STATE] = None
        self._controller = subscription.SubscriptionController()

        self._relay_exception_handler: Optional[
            diagnostics.RELAY_EXCEPTION_HANDLER
        ] = diagnostics.log_and_continue_relay_exception

    # -----Properties----------------------------------------------------------

    @property
    def buffer(self) -> tuple[str, ...]:
        """The identifiers currently registered with the provider."""
        with self._buffer_lock:
            return self._buffer

    @property
    def registration_policy(self) -> policy.RegistrationPolicy:
        return self._policy

    @property
    def settings(self) -> config.MiddlewareConfig:
        return self._settings

    @property
    def is_attached(self) -> bool:
        """True between receive_context() and detach()."""
        return self._attached

    @property
    def is_relaying(self) -> bool:
        """True while a live subscription forwards snapshots."""
        return self._controller.is_attached

    @property
    def current_subscription(self) -> Optional[subscription.Subscription]:
        return self._controller.subscription

    # -----Configuration-------------------------------------------------------

    def set_flag_states(self, **flags: bool) -> None:
        """
        Turn notification flags on or off. Accepts any of:

        Args:
            on_context:        record when a context is received;
            on_register:       record every handled registration;
            on_ignored:        record actions that are not handled;
            on_state_changed:  record every relayed snapshot;
            on_completed:      record change stream completion;
            on_detach:         record teardown.
        Raises:
            ValueError: If an unknown flag is given.
        """
        self._settings = self._settings.with_flags(**flags)

    def set_relay_exception_handler(
        self, handler: Optional[diagnostics.RELAY_EXCEPTION_HANDLER]
    ) -> None:
        """
        Set the handler for exceptions raised by the output sink.

        Args:
            handler: Callable with signature (output, action, Exception) -> bool.
                Returns True to cancel the subscription, False to continue.
                Pass None to re-raise into the change stream.
        """
        self._relay_exception_handler = handler

    # -----Context & Relay-----------------------------------------------------

    def receive_context(
        self, get_state: GET_STATE, output: ACTION_SINK
    ) -> subscription.Subscription:
        """
        Store the application context and start relaying provider snapshots.

        Calling this again releases the previous subscription before the new
        one is established. Deliveries of the previous subscription still
        running on other threads have finished by the time this returns.

        Args:
            get_state (Callable): Returns the application's current state.
            output (Callable): Receives StateChanged actions.
        Returns:
            Subscription: The live subscription handle.
        """
        with self._lifecycle_lock:
            self._get_state = get_state
            self._output = output
            self._attached = True
            previous = self._controller.detach(join=False)

            if self._settings.on_context:
                self._record(diagnostics.ON_CONTEXT_RECEIVED, "Receiving context...")

            handle = self._attach(output)

        if previous is not None:
            previous.join()

        return handle

    def reattach(self) -> subscription.Subscription:
        """
        Re-run the relay attach with the last received context.

        Raises:
            RuntimeError: If no context has been received yet.
        """
        with self._lifecycle_lock:
            get_state = self._get_state
            output = self._output

        if output is None or get_state is None:
            raise RuntimeError("Cannot reattach before a context was received")

        return self.receive_context(get_state, output)

    def detach(self) -> None:
        """Release the live subscription. Safe to call when unattached."""
        with self._lifecycle_lock:
            was_attached = self._attached
            self._attached = False
            previous = self._controller.detach(join=False)

        if previous is not None:
            previous.join()

        if was_attached and self._settings.on_detach:
            self._record(diagnostics.ON_DETACHED, "Detached from change stream.")

    def get_state(self) -> Optional[models.MembersSnapshotState]:
        """Read the application state, or None when unattached."""
        with self._lifecycle_lock:
            attached = self._attached
            get_state = self._get_state

        if not attached or get_state is None:
            return None
        return get_state()

    def _attach(self, output: ACTION_SINK) -> subscription.Subscription:
        # Filled once attach() returns, so a stop handler cancels this
        # subscription and not a later one.
        attached: list[subscription.Subscription] = []

        def on_value(state: models.MembersSnapshotState) -> None:
            if self._settings.on_state_changed:
                self._record(
                    diagnostics.ON_STATE_RECEIVED,
                    "State change receiving value for members...",
                    state=state,
                )
            stop = self._relay(output, models.StateChanged(state))
            if stop:
                if attached:
                    attached[0].cancel()
                else:
                    self._controller.detach()

        def on_failure(error: Exception) -> None:
            self._record(
                diagnostics.ON_STATE_FAILED,
                f"State change completed with failure : {error}",
                exception=error,
            )

        def on_completion() -> None:
            if self._settings.on_completed:
                self._record(
                    diagnostics.ON_STATE_COMPLETED,
                    "State change completed with success.",
                )

        handle = self._controller.attach(
            self._provider.change_stream(), on_value, on_failure, on_completion
        )
        attached.append(handle)
        return handle

    def _relay(self, output: ACTION_SINK, action: models.StateChanged) -> bool:
        try:
            output(action)
        except Exception as e:
            self._record(
                diagnostics.ON_RELAY_ERROR,
                f"Output sink raised while relaying: {e}",
                exception=e,
            )
            if self._relay_exception_handler is None:
                raise

            return self._relay_exception_handler(output, action, e)

        return False

    # -----Registration--------------------------------------------------------

    def handle(self, action: Any) -> Optional[reconciler.RegistrationDelta]:
        """
        Handle an inbound action.

        Register actions are reconciled against the buffer and forwarded to the
        provider. Anything else is ignored.

        Args:
            action: The inbound action.
        Returns:
            Optional[RegistrationDelta]: The delta sent to the provider, or None
                if the action was ignored or the policy sends full lists.
        """
        if not isinstance(action, models.Register):
            if self._settings.on_ignored:
                self._record(
                    diagnostics.ON_IGNORED,
                    f"Not handling this case : {action!r} ...",
                )
            return None

        with self._register_lock:
            with self._buffer_lock:
                next_buffer, delta = self._policy.plan(self._buffer, action.ids)
                self._buffer = next_buffer
            self._policy.send(self._provider, action.ids, delta)

        if self._settings.on_register:
            self._record(
                diagnostics.ON_REGISTER,
                "Registering members...",
                ids=list(action.ids),
                delta=delta,
            )

        return delta

    def register(self, ids: Sequence[str]) -> Optional[reconciler.RegistrationDelta]:
        """Shorthand for handle(Register(ids))."""
        return self.handle(models.Register(tuple(ids)))

    # -----Introspection-------------------------------------------------------

    def to_dict(self) -> dict:
        """Convert the middleware state to a dictionary."""
        return {
            "policy": self._policy.name,
            "attached": self.is_attached,
            "relaying": self.is_relaying,
            "buffer": list(self.buffer),
            "settings": self._settings.to_dict(),
        }

    def to_string(self) -> str:
        """Returns a string representation of the middleware."""
        return json.dumps(self.to_dict(), indent=4)

    def export(self, filepath: Union[str, os.PathLike]) -> None:
        """Export middleware state to filepath."""
        with open(filepath, "w") as outfile:
            json.dump(self.to_dict(), outfile, indent=4)

    def _record(
        self,
        kind: str,
        message: str,
        exception: Optional[BaseException] = None,
        **detail: Any,
    ) -> None:
        self._diagnostics.record(
            diagnostics.DiagnosticEvent(
                kind=kind, message=message, detail=detail, exception=exception
            )
        )
