"""Generic block driver.

The driver walks an instruction stream in order and notifies a backend at
every function-chunk boundary, every block (program counter) boundary and
for every instruction.  Backends that must split output into several
top-level functions use the chunk notifications; the Haskell backend ignores
them.
"""

from __future__ import annotations

import logging
from itertools import groupby
from typing import Iterable, Iterator, List, Protocol, Tuple

from hslower.ir import Inst

logger = logging.getLogger(__name__)


class BackendHooks(Protocol):
    """Callbacks a backend exposes to :func:`emit_chunked_main_loop`."""

    def on_func_prologue(self, func_id: int) -> None: ...

    def on_func_epilogue(self) -> None: ...

    def on_pc_change(self, pc: int) -> None: ...

    def on_inst(self, inst: Inst) -> None: ...


def iter_blocks(text: Iterable[Inst]) -> Iterator[Tuple[int, List[Inst]]]:
    """Group consecutive instructions sharing a pc into ``(pc, insts)`` pairs."""
    for pc, insts in groupby(text, key=lambda inst: inst.pc):
        yield pc, list(insts)


def emit_chunked_main_loop(
    text: Iterable[Inst],
    hooks: BackendHooks,
    chunk_size: int,
) -> int:
    """Drive *hooks* over *text*.

    Block ``pc`` belongs to function ``pc // chunk_size``.  A prologue is
    issued before the first block of each function and an epilogue after the
    last one.  Returns the number of blocks visited.
    """
    prev_func_id = -1
    blocks = 0
    for pc, insts in iter_blocks(text):
        func_id = pc // chunk_size
        if func_id != prev_func_id:
            if prev_func_id != -1:
                hooks.on_func_epilogue()
            hooks.on_func_prologue(func_id)
            prev_func_id = func_id
        hooks.on_pc_change(pc)
        for inst in insts:
            hooks.on_inst(inst)
        blocks += 1
    if prev_func_id != -1:
        hooks.on_func_epilogue()
    logger.debug("driver visited %d blocks", blocks)
    return blocks
