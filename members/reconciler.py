"""
Ordered key set reconciliation.

Computes the minimal insert/remove difference between the previously
registered identifiers and a newly requested sequence, using a longest common
subsequence table, and folds that difference back into a new buffer.

Offsets follow the usual collection difference convention:
  - Remove offsets index into the original sequence and are applied from the
    highest offset down.
  - Insert offsets index into the resulting sequence and are applied from the
    lowest offset up.

Nothing in here performs I/O or holds state.
"""

from dataclasses import dataclass
from typing import Iterator
from typing import Sequence
from typing import Union


@dataclass(frozen=True)
class Insert(object):
    """Insert identifier so that it ends up at offset in the new sequence."""

    identifier: str
    offset: int


@dataclass(frozen=True)
class Remove(object):
    """Remove identifier found at offset in the old sequence."""

    identifier: str
    offset: int


CHANGE = Union[Insert, Remove]


@dataclass(frozen=True)
class RegistrationDelta(object):
    """The removals and insertions moving one key sequence to another."""

    removals: tuple[Remove, ...] = ()
    """Sorted by ascending offset."""

    insertions: tuple[Insert, ...] = ()
    """Sorted by ascending offset."""

    def __iter__(self) -> Iterator[CHANGE]:
        """Changes in application order: removals high to low, then inserts."""
        yield from reversed(self.removals)
        yield from self.insertions

    def __len__(self) -> int:
        return len(self.removals) + len(self.insertions)

    def __bool__(self) -> bool:
        return len(self) > 0

    @property
    def inserted(self) -> tuple[str, ...]:
        """Identifiers gaining a listener."""
        return tuple(change.identifier for change in self.insertions)

    @property
    def removed(self) -> tuple[str, ...]:
        """Identifiers losing a listener."""
        return tuple(change.identifier for change in self.removals)

    def inverse(self) -> "RegistrationDelta":
        """The delta undoing this one."""
        return RegistrationDelta(
            removals=tuple(Remove(c.identifier, c.offset) for c in self.insertions),
            insertions=tuple(Insert(c.identifier, c.offset) for c in self.removals),
        )


EMPTY_DELTA = RegistrationDelta()


def _lcs_table(current: Sequence[str], requested: Sequence[str]) -> list[list[int]]:
    """
    Suffix LCS lengths: table[i][j] is the LCS length of current[i:] and
    requested[j:].
    """
    n = len(current)
    m = len(requested)
    table = [[0] * (m + 1) for _ in range(n + 1)]

    for i in range(n - 1, -1, -1):
        row = table[i]
        below = table[i + 1]
        for j in range(m - 1, -1, -1):
            if current[i] == requested[j]:
                row[j] = below[j + 1] + 1
            else:
                row[j] = max(below[j], row[j + 1])

    return table


def difference(current: Sequence[str], requested: Sequence[str]) -> RegistrationDelta:
    """
    Compute the minimal ordered difference from current to requested.

    The number of changes always equals
    len(current) + len(requested) - 2 * LCS(current, requested).

    Args:
        current (Sequence[str]): The registered identifiers.
        requested (Sequence[str]): The identifiers that should be registered.
    Returns:
        RegistrationDelta: Removals and insertions, empty if both are equal.
    """
    n = len(current)
    m = len(requested)

    # Shared prefix and suffix never change, skip them before building the
    # quadratic table.
    start = 0
    while start < n and start < m and current[start] == requested[start]:
        start += 1

    end_current = n
    end_requested = m
    while (
        end_current > start
        and end_requested > start
        and current[end_current - 1] == requested[end_requested - 1]
    ):
        end_current -= 1
        end_requested -= 1

    if start == end_current and start == end_requested:
        return EMPTY_DELTA

    middle_current = current[start:end_current]
    middle_requested = requested[start:end_requested]
    table = _lcs_table(middle_current, middle_requested)

    removals: list[Remove] = []
    insertions: list[Insert] = []
    i = 0
    j = 0
    while i < len(middle_current) and j < len(middle_requested):
        if middle_current[i] == middle_requested[j]:
            i += 1
            j += 1
        elif table[i + 1][j] >= table[i][j + 1]:
            removals.append(Remove(middle_current[i], start + i))
            i += 1
        else:
            insertions.append(Insert(middle_requested[j], start + j))
            j += 1

    for k in range(i, len(middle_current)):
        removals.append(Remove(middle_current[k], start + k))

    for k in range(j, len(middle_requested)):
        insertions.append(Insert(middle_requested[k], start + k))

    return RegistrationDelta(removals=tuple(removals), insertions=tuple(insertions))


def apply_delta(current: Sequence[str], delta: RegistrationDelta) -> tuple[str, ...]:
    """
    Apply a delta to a key sequence.

    Args:
        current (Sequence[str]): The sequence the delta was computed from.
        delta (RegistrationDelta): The delta to apply.
    Returns:
        tuple[str, ...]: The resulting sequence.
    Raises:
        ValueError: If the delta does not fit current.
    """
    if not delta:
        return tuple(current)

    result = list(current)
    for removal in reversed(delta.removals):
        if removal.offset >= len(result) or result[removal.offset] != removal.identifier:
            raise ValueError(
                f"Cannot remove '{removal.identifier}' at offset {removal.offset}"
            )
        del result[removal.offset]

    for insertion in delta.insertions:
        if insertion.offset > len(result):
            raise ValueError(
                f"Cannot insert '{insertion.identifier}' at offset {insertion.offset}"
            )
        result.insert(insertion.offset, insertion.identifier)

    return tuple(result)


def reconcile(
    current: Sequence[str], requested: Sequence[str]
) -> tuple[RegistrationDelta, tuple[str, ...]]:
    """
    Compute the delta from current to requested and the buffer it produces.

    Duplicates in requested are passed through untouched; the caller is
    expected to supply unique identifiers.

    Returns:
        tuple[RegistrationDelta, tuple[str, ...]]: The delta and the next
            buffer, which always equals requested.
    """
    delta = difference(current, requested)
    return delta, apply_delta(current, delta)
