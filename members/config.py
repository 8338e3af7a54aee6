"""
Middleware configuration.

MiddlewareConfig selects the registration policy by name and carries the
notification flags deciding which routine events reach the diagnostics sink.
Failures are always reported regardless of the flags.
"""

from dataclasses import dataclass
from dataclasses import fields
from dataclasses import replace
from typing import Any
from typing import Mapping


@dataclass(frozen=True)
class MiddlewareConfig(object):
    policy: str = "delta"
    """Registration policy name, 'delta' or 'full'."""

    on_context: bool = True
    """Record when a context is received."""

    on_register: bool = True
    """Record every handled registration request."""

    on_ignored: bool = True
    """Record actions the middleware does not handle."""

    on_state_changed: bool = True
    """Record every snapshot relayed from the change stream."""

    on_completed: bool = True
    """Record when the change stream finishes without failing."""

    on_detach: bool = True
    """Record teardown."""

    @classmethod
    def flag_names(cls) -> list[str]:
        return [f.name for f in fields(cls) if f.name.startswith("on_")]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "MiddlewareConfig":
        """
        Build a config from a plain mapping.

        Raises:
            ValueError: If the mapping holds keys that are not config fields.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(mapping) - known
        if unknown:
            raise ValueError(
                f"Unknown config keys: {sorted(unknown)}. "
                f"Expected any of: {sorted(known)}"
            )
        return cls(**dict(mapping))

    def with_flags(self, **flags: bool) -> "MiddlewareConfig":
        """Return a copy with the given notification flags changed."""
        unknown = set(flags) - set(self.flag_names())
        if unknown:
            raise ValueError(f"Unknown notification flags: {sorted(unknown)}")
        return replace(self, **flags)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
