"""Symbolic register versioning.

Haskell has no assignment, so every write to a register inside a block binds
a fresh name (``a1``, ``a2``, ...).  :class:`RegisterVersions` records, per
register slot, the name that currently holds the register's value and how
many times the slot has been rebound since the block was entered.

The table is an immutable value.  Lowering rules receive one and return its
successor, so there is no shared mutable name table and a rule can be
exercised on its own.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Sequence, Tuple, Union

from hslower.ir import NUM_REGISTERS, REGISTER_NAMES, Reg

Slot = Union[Reg, int]


@dataclass(frozen=True)
class RegisterVersions:
    """Current symbolic names of the six registers within one block.

    Invariant: for every slot, ``current(slot)`` is the name bound by the
    latest write to that slot lowered so far in the block, or the block-entry
    symbol if the slot has not been written.
    """

    names: Tuple[str, ...] = REGISTER_NAMES
    counts: Tuple[int, ...] = field(default=(0,) * NUM_REGISTERS)

    def __post_init__(self) -> None:
        if len(self.names) != NUM_REGISTERS or len(self.counts) != NUM_REGISTERS:
            raise ValueError(f"expected {NUM_REGISTERS} register slots")

    @classmethod
    def entry(cls, symbols: Sequence[str] = REGISTER_NAMES) -> "RegisterVersions":
        """State at block entry: every slot is its entry symbol at version 0."""
        return cls(names=tuple(symbols), counts=(0,) * NUM_REGISTERS)

    def reset(self, symbols: Sequence[str] = REGISTER_NAMES) -> "RegisterVersions":
        return RegisterVersions.entry(symbols)

    def current(self, slot: Slot) -> str:
        return self.names[int(slot)]

    def version(self, slot: Slot) -> int:
        return self.counts[int(slot)]

    def rebind(self, slot: Slot) -> Tuple["RegisterVersions", str]:
        """Allocate the next version of *slot*.

        Returns the successor state and the newly bound name.
        """
        i = int(slot)
        count = self.counts[i] + 1
        name = f"{REGISTER_NAMES[i]}{count}"
        return (
            replace(
                self,
                names=_set(self.names, i, name),
                counts=_set(self.counts, i, count),
            ),
            name,
        )

    def alias(self, slot: Slot, text: str) -> "RegisterVersions":
        """Make *slot* refer to *text* without allocating a version (MOV)."""
        return replace(self, names=_set(self.names, int(slot), text))

    def vector(self) -> str:
        """All six current names, space separated, in register order."""
        return " ".join(self.names)


def _set(items: tuple, index: int, value: object) -> tuple:
    return items[:index] + (value,) + items[index + 1:]
