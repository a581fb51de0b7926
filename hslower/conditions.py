"""Canonical relations for comparison and conditional-jump opcodes."""

from __future__ import annotations

from enum import Enum
from typing import Dict

from hslower.errors import InvalidConditionError
from hslower.ir import COMPARISON_OPS, COND_JUMP_OPS, Op


class Relation(Enum):
    EQ = "eq"
    NE = "ne"
    LT = "lt"
    GT = "gt"
    LE = "le"
    GE = "ge"

    def negate(self) -> "Relation":
        return _NEGATIONS[self]


_NEGATIONS: Dict[Relation, Relation] = {
    Relation.EQ: Relation.NE,
    Relation.NE: Relation.EQ,
    Relation.LT: Relation.GE,
    Relation.GE: Relation.LT,
    Relation.GT: Relation.LE,
    Relation.LE: Relation.GT,
}

_JUMP_RELATIONS: Dict[Op, Relation] = {
    Op.JEQ: Relation.EQ,
    Op.JNE: Relation.NE,
    Op.JLT: Relation.LT,
    Op.JGT: Relation.GT,
    Op.JLE: Relation.LE,
    Op.JGE: Relation.GE,
}

HASKELL_OPERATORS: Dict[Relation, str] = {
    Relation.EQ: "==",
    Relation.NE: "/=",
    Relation.LT: "<",
    Relation.GT: ">",
    Relation.LE: "<=",
    Relation.GE: ">=",
}


def normalize_cond(op: int, negate: bool = False) -> Relation:
    """Map a comparison or conditional-jump opcode to its canonical relation.

    Comparison opcodes are folded onto the jump with the same relation.  With
    ``negate`` the inverse relation is returned, for backends that branch
    around the taken path.  All IR comparisons are unsigned; there are no
    signed variants to normalise.

    Raises
    ------
    InvalidConditionError
        If *op* is neither a comparison nor a conditional jump.
    """
    if op in COMPARISON_OPS:
        op = op - (Op.EQ - Op.JEQ)
    if op not in COND_JUMP_OPS:
        raise InvalidConditionError(op)
    relation = _JUMP_RELATIONS[Op(op)]
    return relation.negate() if negate else relation


def render_relation(op: int) -> str:
    """Render the relation of *op* as a Haskell operator."""
    return HASKELL_OPERATORS[normalize_cond(op)]
