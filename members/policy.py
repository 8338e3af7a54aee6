"""
Registration policies and the provider shapes they drive.

Two provider contracts exist side by side:
  - DeltaProvider receives only the changes (apply_delta) so it can open and
    close exactly the listeners that changed.
  - ListProvider receives the full requested list on every registration
    (register) and works out listener management itself.

DeltaBased keeps the registered buffer and reconciles against it. FullReplace
forwards the list untouched and keeps no buffer at all.
"""

from abc import ABC
from abc import abstractmethod
from typing import Optional
from typing import Protocol
from typing import Sequence
from typing import runtime_checkable

from members import reconciler
from members import subscription


@runtime_checkable
class DeltaProvider(Protocol):
    def apply_delta(self, delta: reconciler.RegistrationDelta) -> None:
        """Open/close listeners for the changed identifiers. Fire-and-forget."""

    def change_stream(self) -> subscription.ChangeStream:
        """The stream of snapshots for all registered identifiers."""


@runtime_checkable
class ListProvider(Protocol):
    def register(self, ids: Sequence[str]) -> None:
        """Replace the registered identifiers with ids. Fire-and-forget."""

    def change_stream(self) -> subscription.ChangeStream:
        """The stream of snapshots for all registered identifiers."""


class RegistrationPolicy(ABC):
    """
    Decides how a registration request reaches the provider.

    A registration is split in two steps so the caller can update its buffer
    under a lock and talk to the provider after releasing it: plan() works out
    the next buffer and the delta, send() hands the result to the provider.
    """

    name: str = ""

    @abstractmethod
    def plan(
        self, buffer: tuple[str, ...], requested: Sequence[str]
    ) -> tuple[tuple[str, ...], Optional[reconciler.RegistrationDelta]]:
        """
        Work out a registration without touching the provider.

        Args:
            buffer (tuple[str, ...]): Currently registered identifiers.
            requested (Sequence[str]): Identifiers that should be registered.
        Returns:
            tuple: The next buffer and the delta to send, or None if the policy
                does not compute one.
        """

    @abstractmethod
    def send(
        self,
        provider: object,
        requested: Sequence[str],
        delta: Optional[reconciler.RegistrationDelta],
    ) -> None:
        """Issue a planned registration to the provider."""

    @abstractmethod
    def supports(self, provider: object) -> bool:
        """Check that provider exposes the call this policy makes."""

    def register(
        self, provider: object, buffer: tuple[str, ...], requested: Sequence[str]
    ) -> tuple[tuple[str, ...], Optional[reconciler.RegistrationDelta]]:
        """plan() followed by send(). Returns what plan() returned."""
        next_buffer, delta = self.plan(buffer, requested)
        self.send(provider, requested, delta)
        return next_buffer, delta

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class DeltaBased(RegistrationPolicy):
    """Send only the minimal delta against the registered buffer."""

    name = "delta"

    def plan(
        self, buffer: tuple[str, ...], requested: Sequence[str]
    ) -> tuple[tuple[str, ...], Optional[reconciler.RegistrationDelta]]:
        delta, next_buffer = reconciler.reconcile(buffer, requested)
        return next_buffer, delta

    def send(
        self,
        provider: object,
        requested: Sequence[str],
        delta: Optional[reconciler.RegistrationDelta],
    ) -> None:
        provider.apply_delta(delta)  # type: ignore[attr-defined]

    def supports(self, provider: object) -> bool:
        return callable(getattr(provider, "apply_delta", None))


class FullReplace(RegistrationPolicy):
    """Hand the provider the full requested list and keep no buffer."""

    name = "full"

    def plan(
        self, buffer: tuple[str, ...], requested: Sequence[str]
    ) -> tuple[tuple[str, ...], Optional[reconciler.RegistrationDelta]]:
        return (), None

    def send(
        self,
        provider: object,
        requested: Sequence[str],
        delta: Optional[reconciler.RegistrationDelta],
    ) -> None:
        provider.register(list(requested))  # type: ignore[attr-defined]

    def supports(self, provider: object) -> bool:
        return callable(getattr(provider, "register", None))


_POLICIES: dict[str, type[RegistrationPolicy]] = {
    DeltaBased.name: DeltaBased,
    FullReplace.name: FullReplace,
}


def policy_from_name(name: str) -> RegistrationPolicy:
    """
    Resolve a policy by its configuration name.

    Raises:
        ValueError: If name is not 'delta' or 'full'.
    """
    try:
        return _POLICIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown registration policy '{name}'. "
            f"Expected one of: {sorted(_POLICIES)}"
        ) from None
