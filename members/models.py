"""
Data structures exchanged between the provider, the middleware and the
application.

Defines the MemberSnapshot record, the MembersState mapping wrapper and the
two action variants (Register and StateChanged) that make up the
MembersAction tagged union. Also holds the decode/encode helpers used to turn
provider payloads into snapshots and back.
"""

import json
import random
from types import MappingProxyType
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Mapping
from typing import Optional
from typing import Sequence
from typing import Union

from members import errors


BEACON_ID_MIN = 0
BEACON_ID_MAX = 0xFFFF


def _random_beacon_id() -> int:
    return random.randint(BEACON_ID_MIN, BEACON_ID_MAX)


@dataclass(frozen=True)
class MemberSnapshot(object):
    """A single member record as emitted by the provider."""

    email: str
    given_name: str
    family_name: str
    beacon_id: int = field(default_factory=_random_beacon_id)
    """16-bit unsigned beacon identifier."""

    tracking: Optional[bool] = True
    """Whether tracking is enabled. None means the provider did not say."""

    display_name: str = field(init=False)
    """Always given_name + " " + family_name."""

    def __post_init__(self) -> None:
        for name in ("email", "given_name", "family_name"):
            value = getattr(self, name)
            if not isinstance(value, str):
                raise ValueError(
                    f"{name} must be a string, got {type(value).__name__}"
                )
        if self.tracking is not None and not isinstance(self.tracking, bool):
            raise ValueError(
                f"tracking must be a boolean or None, got "
                f"{type(self.tracking).__name__}"
            )
        if isinstance(self.beacon_id, bool) or not isinstance(self.beacon_id, int):
            raise ValueError(
                f"beacon_id must be an integer, got {type(self.beacon_id).__name__}"
            )
        if not BEACON_ID_MIN <= self.beacon_id <= BEACON_ID_MAX:
            raise ValueError(
                f"beacon_id {self.beacon_id} outside "
                f"[{BEACON_ID_MIN}, {BEACON_ID_MAX}]"
            )

        # Frozen dataclass, the derived field has to be set this way.
        object.__setattr__(
            self, "display_name", f"{self.given_name} {self.family_name}"
        )

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "MemberSnapshot":
        """
        Build a snapshot from its wire representation.

        Any displayName present in the payload is ignored and recomputed.

        Args:
            payload (Mapping[str, Any]): Mapping using the provider keys
                beaconid, email, givenName, familyName and tracking.
        Returns:
            MemberSnapshot: The decoded snapshot.
        Raises:
            DecodingError: If a key is missing or holds the wrong type.
        """
        if not isinstance(payload, Mapping):
            raise errors.DecodingError(
                f"Member payload must be a mapping, got {type(payload).__name__}"
            )

        try:
            beacon_id = payload["beaconid"]
            email = payload["email"]
            given_name = payload["givenName"]
            family_name = payload["familyName"]
        except KeyError as e:
            raise errors.DecodingError(f"Member payload missing key {e}") from e

        tracking = payload.get("tracking")
        for key, value in (
            ("email", email),
            ("givenName", given_name),
            ("familyName", family_name),
        ):
            if not isinstance(value, str):
                raise errors.DecodingError(f"'{key}' must be a string")

        if tracking is not None and not isinstance(tracking, bool):
            raise errors.DecodingError("'tracking' must be a boolean or null")

        try:
            return cls(
                email=email,
                given_name=given_name,
                family_name=family_name,
                beacon_id=beacon_id,
                tracking=tracking,
            )
        except ValueError as e:
            raise errors.DecodingError(str(e)) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert the snapshot to its wire representation."""
        return {
            "beaconid": self.beacon_id,
            "email": self.email,
            "givenName": self.given_name,
            "familyName": self.family_name,
            "displayName": self.display_name,
            "tracking": self.tracking,
        }


@dataclass(frozen=True)
class MembersState(object):
    """Mapping of member identifier to snapshot, or None when unknown."""

    members: Optional[Mapping[str, MemberSnapshot]] = None

    def __post_init__(self) -> None:
        # Read-only copy, so the caller's dict cannot change the hash later.
        if self.members is not None:
            object.__setattr__(self, "members", MappingProxyType(dict(self.members)))

    def __hash__(self) -> int:
        if self.members is None:
            return hash(None)
        return hash(frozenset(self.members.items()))

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "MembersState":
        """Build a state from {"members": {...} | null}."""
        if not isinstance(payload, Mapping):
            raise errors.DecodingError(
                f"State payload must be a mapping, got {type(payload).__name__}"
            )

        raw_members = payload.get("members")
        if raw_members is None:
            return cls(members=None)

        if not isinstance(raw_members, Mapping):
            raise errors.DecodingError("'members' must be a mapping or null")

        return cls(
            members={
                str(key): MemberSnapshot.from_dict(value)
                for key, value in raw_members.items()
            }
        )

    def to_dict(self) -> dict[str, Any]:
        if self.members is None:
            return {"members": None}
        return {"members": {key: m.to_dict() for key, m in self.members.items()}}


MembersSnapshotState = Union[MembersState, tuple[MemberSnapshot, ...]]
"""
The two observed shapes of a provider snapshot: a keyed MembersState, or an
ordered tuple of MemberSnapshot.
"""


def decode_state(payload: Union[Mapping[str, Any], Sequence[Any]]) -> MembersSnapshotState:
    """
    Decode a provider payload into one of the two snapshot shapes.

    Args:
        payload: A mapping ({"members": ...}) or a list of member mappings.
    Returns:
        MembersSnapshotState: MembersState for mappings, a tuple of
            MemberSnapshot for lists.
    Raises:
        DecodingError: If the payload is neither shape or a member is malformed.
    """
    if isinstance(payload, Mapping):
        return MembersState.from_dict(payload)

    if isinstance(payload, (list, tuple)):
        return tuple(MemberSnapshot.from_dict(item) for item in payload)

    raise errors.DecodingError(
        f"Cannot decode state from {type(payload).__name__}"
    )


def encode_state(state: Optional[MembersSnapshotState]) -> str:
    """
    Encode a snapshot state as JSON.

    Raises:
        EncodingError: If the state is of an unknown shape or holds values
            that JSON cannot represent.
    """
    if state is None:
        data: Any = None
    elif isinstance(state, MembersState):
        data = state.to_dict()
    elif isinstance(state, tuple):
        try:
            data = [member.to_dict() for member in state]
        except AttributeError as e:
            raise errors.EncodingError(f"Cannot encode member: {e}") from e
    else:
        raise errors.EncodingError(f"Cannot encode {type(state).__name__}")

    try:
        return json.dumps(data)
    except (TypeError, ValueError) as e:
        raise errors.EncodingError(str(e)) from e


# -----Actions-----------------------------------------------------------------


@dataclass(frozen=True)
class Register(object):
    """Inbound request naming the member identifiers of interest."""

    ids: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Lists are accepted for convenience but stored as tuples.
        object.__setattr__(self, "ids", tuple(self.ids))


@dataclass(frozen=True)
class StateChanged(object):
    """Outbound notification carrying the latest provider snapshot."""

    state: Optional[MembersSnapshotState] = None


MembersAction = Union[Register, StateChanged]


def is_register(action: Any) -> bool:
    return isinstance(action, Register)


def is_state_changed(action: Any) -> bool:
    return isinstance(action, StateChanged)
