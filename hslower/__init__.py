"""hslower: register-machine IR to Haskell lowering.

This package turns a small register-machine IR (six registers, one flat
word-addressed memory, byte I/O) into a Haskell program in which no variable
is ever mutated.  Registers are versioned symbolically inside each block and
threaded into tail calls of a single ``run`` function that pattern-matches on
the program counter.

Submodules
----------
ir
    ``Op`` / ``Reg`` / ``Value`` / ``Inst`` / ``Module`` data model.

conditions
    Canonical relations for comparison and branch opcodes.

registers
    ``RegisterVersions``: the immutable per-block register name table.

lowering
    One lowering rule per opcode.

backend
    ``HaskellBackend`` block emitter, bootstrap/data emitter and the
    ``generate()`` entry point.

driver / emitter
    Chunked block driver and indentation-aware line emitter.

evaluator
    PEG-based reference evaluator for the emitted Haskell subset.

main
    CLI entry-point (``check`` and ``run`` subcommands).

Usage
-----
Programmatic::

    from hslower import generate
    from hslower.ir import Module, Op, Reg, make_inst

    module = Module(
        text=[
            make_inst(Op.MOV, Reg.A, 5),
            make_inst(Op.ADD, Reg.A, 3),
            make_inst(Op.PUTC, src=Reg.A),
        ],
        data=[1, 2, 3],
    )
    print(generate(module).code)

Command-line::

    python -m hslower check program.hs
    python -m hslower run program.hs --input input.txt
"""

from __future__ import annotations

__version__: str = "0.1.0"

from hslower.backend import GeneratedProgram, HaskellBackend, generate
from hslower.config import LoweringConfig

__all__: list[str] = [
    "__version__",
    "GeneratedProgram",
    "HaskellBackend",
    "LoweringConfig",
    "generate",
]
