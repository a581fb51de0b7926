# tests/conftest.py
"""
Shared helpers for hslower tests: building modules from block lists,
lowering them, and evaluating the emitted programs.
"""

from typing import List, Optional, Sequence

import pytest

from hslower.backend import generate
from hslower.config import LoweringConfig
from hslower.evaluator import EvaluationResult, evaluate
from hslower.ir import Inst, Module, Op, Reg, make_inst, number_blocks

__all__ = [
    "Op",
    "Reg",
    "make_inst",
    "build_module",
    "lower",
    "run_blocks",
    "block_body",
    "data_rows",
]

UINT_MAX = (1 << 24) - 1


def build_module(blocks: Sequence[Sequence[Inst]], data: Sequence[int] = ()) -> Module:
    """Block ``i`` of *blocks* gets pc ``i``."""
    return Module(text=number_blocks(blocks), data=list(data))


def lower(
    blocks: Sequence[Sequence[Inst]],
    data: Sequence[int] = (),
    config: Optional[LoweringConfig] = None,
) -> str:
    return generate(build_module(blocks, data), config).code


def run_blocks(
    blocks: Sequence[Sequence[Inst]],
    data: Sequence[int] = (),
    stdin: bytes = b"",
    config: Optional[LoweringConfig] = None,
) -> EvaluationResult:
    return evaluate(lower(blocks, data, config), stdin=stdin, config=config)


def block_body(code: str, pc: int) -> List[str]:
    """Statements of the ``run pc@<pc>`` alternative, indentation stripped."""
    lines = code.splitlines()
    header = next(i for i, line in enumerate(lines) if line.startswith(f"run pc@{pc} "))
    body: List[str] = []
    for line in lines[header + 1:]:
        if not line.startswith(" "):
            break
        body.append(line.strip())
    return body


def data_rows(code: str) -> List[str]:
    """Literal rows between ``newListArray ... $ [`` and ``] ++ [0, 0..]``."""
    lines = code.splitlines()
    start = next(i for i, line in enumerate(lines) if line.endswith("$ ["))
    end = next(i for i, line in enumerate(lines) if line.strip() == "] ++ [0, 0..]")
    return [line.strip() for line in lines[start + 1:end]]


@pytest.fixture
def byte_config():
    """An 8-bit machine: small enough to make wraparound easy to see."""
    return LoweringConfig(word_bits=8)
