from typing import Any

import members


class _Provider(object):
    def __init__(self) -> None:
        self.deltas: list[members.RegistrationDelta] = []
        self.stream = members.ChangeSubject()

    def apply_delta(self, delta: members.RegistrationDelta) -> None:
        self.deltas.append(delta)

    def change_stream(self) -> members.ChangeSubject:
        return self.stream


def test_register_then_reregister() -> None:
    """Test that registering b,c,d after a,b,c removes a and appends d."""
    provider = _Provider()
    mw = members.MembersMiddleware(
        provider, diagnostics_sink=members.SilentDiagnostics()
    )

    mw.handle(members.Register(["a", "b", "c"]))
    mw.handle(members.Register(["b", "c", "d"]))

    assert provider.deltas[-1] == members.RegistrationDelta(
        removals=(members.Remove("a", 0),),
        insertions=(members.Insert("d", 2),),
    )
    assert mw.buffer == ("b", "c", "d")


def test_register_empty_on_empty() -> None:
    """Test that an empty registration on an empty buffer is a no-op."""
    provider = _Provider()
    mw = members.MembersMiddleware(
        provider, diagnostics_sink=members.SilentDiagnostics()
    )

    delta = mw.handle(members.Register([]))

    assert delta == members.RegistrationDelta()
    assert mw.buffer == ()


def test_snapshots_are_relayed_as_actions() -> None:
    """Test that every provider snapshot becomes one StateChanged action."""
    provider = _Provider()
    mw = members.MembersMiddleware(
        provider, diagnostics_sink=members.SilentDiagnostics()
    )
    dispatched: list[Any] = []

    mw.receive_context(lambda: None, dispatched.append)
    first = members.MembersState(members=None)
    second = members.decode_state(
        {
            "members": {
                "ada": {
                    "beaconid": 1815,
                    "email": "ada@example.com",
                    "givenName": "Ada",
                    "familyName": "Lovelace",
                }
            }
        }
    )
    provider.stream.send(first)
    provider.stream.send(second)

    assert dispatched == [members.StateChanged(first), members.StateChanged(second)]
    assert dispatched[1].state.members["ada"].display_name == "Ada Lovelace"


def test_stream_failure_dispatches_nothing() -> None:
    """Test that a provider failure is reported to diagnostics only."""
    provider = _Provider()
    sink = members.CollectingDiagnostics()
    mw = members.MembersMiddleware(provider, diagnostics_sink=sink)
    dispatched: list[Any] = []

    mw.receive_context(lambda: None, dispatched.append)
    provider.stream.fail(members.DataNotFoundError("no such group"))

    assert dispatched == []
    assert len(sink.failures()) == 1
    assert mw.is_relaying is False


def test_version() -> None:
    assert members.__version__.count(".") == 2
