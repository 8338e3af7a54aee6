"""
Unit tests for member snapshots, state and actions.

Tests verify the display name rule on every construction path, wire key
decoding and the DecodingError / EncodingError boundaries.
"""

import json

import pytest

from members import errors
from members import models


def _payload(**overrides: object) -> dict:
    payload = {
        "beaconid": 42,
        "email": "ada@example.com",
        "givenName": "Ada",
        "familyName": "Lovelace",
        "tracking": True,
    }
    payload.update(overrides)
    return payload


def test_display_name_is_derived() -> None:
    member = models.MemberSnapshot(
        email="ada@example.com", given_name="Ada", family_name="Lovelace"
    )

    assert member.display_name == "Ada Lovelace"


def test_display_name_not_settable() -> None:
    with pytest.raises(TypeError):
        models.MemberSnapshot(  # type: ignore[call-arg]
            email="ada@example.com",
            given_name="Ada",
            family_name="Lovelace",
            display_name="Someone Else",
        )


def test_display_name_recomputed_on_decode() -> None:
    """Test that a payload displayName cannot break the naming rule."""
    member = models.MemberSnapshot.from_dict(_payload(displayName="Wrong Name"))

    assert member.display_name == "Ada Lovelace"


def test_snapshot_equality_is_structural() -> None:
    a = models.MemberSnapshot("ada@example.com", "Ada", "Lovelace", beacon_id=1)
    b = models.MemberSnapshot("ada@example.com", "Ada", "Lovelace", beacon_id=1)
    c = models.MemberSnapshot("ada@example.com", "Ada", "Lovelace", beacon_id=2)

    assert a == b
    assert hash(a) == hash(b)
    assert a != c
    assert len({a, b, c}) == 2


def test_default_beacon_id_in_range() -> None:
    for _ in range(50):
        member = models.MemberSnapshot("x@example.com", "X", "Y")
        assert 0 <= member.beacon_id <= 0xFFFF


def test_default_tracking_true_and_optional() -> None:
    assert models.MemberSnapshot("x@example.com", "X", "Y").tracking is True
    assert models.MemberSnapshot("x@example.com", "X", "Y", tracking=None).tracking is None


@pytest.mark.parametrize("beacon_id", [-1, 0x10000, 1.5, "7", True])
def test_invalid_beacon_id_rejected(beacon_id: object) -> None:
    with pytest.raises(ValueError, match="beacon_id"):
        models.MemberSnapshot("x@example.com", "X", "Y", beacon_id=beacon_id)


@pytest.mark.parametrize(
    "overrides",
    [
        {"given_name": None},
        {"family_name": 7},
        {"email": b"ada@example.com"},
        {"tracking": "yes"},
    ],
)
def test_direct_construction_validates_fields(overrides: dict) -> None:
    """Test that constructing a snapshot directly checks field types."""
    fields = {
        "email": "ada@example.com",
        "given_name": "Ada",
        "family_name": "Lovelace",
    }
    fields.update(overrides)

    with pytest.raises(ValueError, match=next(iter(overrides))):
        models.MemberSnapshot(**fields)


def test_from_dict_reads_wire_keys() -> None:
    member = models.MemberSnapshot.from_dict(_payload(tracking=None))

    assert member.beacon_id == 42
    assert member.email == "ada@example.com"
    assert member.given_name == "Ada"
    assert member.family_name == "Lovelace"
    assert member.tracking is None


def test_to_dict_includes_display_name() -> None:
    member = models.MemberSnapshot.from_dict(_payload())
    data = member.to_dict()

    assert data["displayName"] == "Ada Lovelace"
    assert models.MemberSnapshot.from_dict(data) == member


def test_from_dict_missing_key() -> None:
    payload = _payload()
    del payload["email"]

    with pytest.raises(errors.DecodingError, match="missing key"):
        models.MemberSnapshot.from_dict(payload)


@pytest.mark.parametrize(
    "overrides",
    [
        {"givenName": 3},
        {"tracking": "yes"},
        {"beaconid": 70000},
    ],
)
def test_from_dict_bad_values(overrides: dict) -> None:
    with pytest.raises(errors.DecodingError):
        models.MemberSnapshot.from_dict(_payload(**overrides))


def test_decode_mapping_state() -> None:
    state = models.decode_state({"members": {"ada": _payload()}})

    assert isinstance(state, models.MembersState)
    assert state.members is not None
    assert state.members["ada"].display_name == "Ada Lovelace"


def test_decode_absent_members() -> None:
    state = models.decode_state({"members": None})

    assert state == models.MembersState(members=None)


def test_decode_list_state() -> None:
    state = models.decode_state([_payload(), _payload(beaconid=1, givenName="Bo")])

    assert isinstance(state, tuple)
    assert [m.display_name for m in state] == ["Ada Lovelace", "Bo Lovelace"]


def test_decode_rejects_other_shapes() -> None:
    with pytest.raises(errors.DecodingError):
        models.decode_state("members")  # type: ignore[arg-type]

    with pytest.raises(errors.DecodingError):
        models.decode_state({"members": ["not", "a", "mapping"]})


def test_encode_state_round_trip() -> None:
    state = models.decode_state({"members": {"ada": _payload()}})

    encoded = models.encode_state(state)

    assert models.decode_state(json.loads(encoded)) == state
    assert models.encode_state(None) == "null"


def test_encode_unknown_shape_raises() -> None:
    with pytest.raises(errors.EncodingError):
        models.encode_state({"members": {}})  # type: ignore[arg-type]

    with pytest.raises(errors.EncodingError):
        models.encode_state(("not a member",))  # type: ignore[arg-type]


def test_members_state_hashable() -> None:
    state = models.decode_state({"members": {"ada": _payload()}})

    assert hash(state) == hash(models.decode_state({"members": {"ada": _payload()}}))
    assert hash(models.MembersState()) == hash(models.MembersState(None))


def test_members_state_copies_caller_mapping() -> None:
    """Test that mutating the dict a state was built from leaves it unchanged."""
    ada = models.MemberSnapshot.from_dict(_payload())
    source = {"ada": ada}
    state = models.MembersState(members=source)
    before = hash(state)

    source["bob"] = models.MemberSnapshot.from_dict(_payload(email="bob@example.com"))

    assert list(state.members) == ["ada"]
    assert hash(state) == before
    assert state == models.MembersState(members={"ada": ada})
    with pytest.raises(TypeError):
        state.members["eve"] = ada  # type: ignore[index]


def test_register_normalises_ids_to_tuple() -> None:
    action = models.Register(["a", "b"])

    assert action.ids == ("a", "b")
    assert action == models.Register(("a", "b"))
    assert models.is_register(action)
    assert not models.is_state_changed(action)


def test_state_changed_allows_absent_state() -> None:
    action = models.StateChanged(None)

    assert action.state is None
    assert models.is_state_changed(action)
    assert not models.is_register(action)


def test_error_taxonomy() -> None:
    for error_type in (
        errors.DecodingError,
        errors.EncodingError,
        errors.DataNotFoundError,
    ):
        assert issubclass(error_type, errors.MembersError)
