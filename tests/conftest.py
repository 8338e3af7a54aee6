"""Provider doubles shared by the middleware tests."""

from typing import Sequence

import pytest

from members import diagnostics
from members import reconciler
from members import streams


class RecordingDeltaProvider(object):
    """Delta provider that keeps every delta it was given."""

    def __init__(self) -> None:
        self.deltas: list[reconciler.RegistrationDelta] = []
        self.stream = streams.ChangeSubject()
        self.stream_requests = 0

    def apply_delta(self, delta: reconciler.RegistrationDelta) -> None:
        self.deltas.append(delta)

    def change_stream(self) -> streams.ChangeSubject:
        self.stream_requests += 1
        return self.stream


class RecordingListProvider(object):
    """List provider that keeps every list it was given."""

    def __init__(self) -> None:
        self.registrations: list[list[str]] = []
        self.stream = streams.ChangeSubject()

    def register(self, ids: Sequence[str]) -> None:
        self.registrations.append(list(ids))

    def change_stream(self) -> streams.ChangeSubject:
        return self.stream


@pytest.fixture
def delta_provider() -> RecordingDeltaProvider:
    return RecordingDeltaProvider()


@pytest.fixture
def list_provider() -> RecordingListProvider:
    return RecordingListProvider()


@pytest.fixture
def collected() -> diagnostics.CollectingDiagnostics:
    return diagnostics.CollectingDiagnostics()
