"""
hslower/backend.py
==================

Haskell backend.

The emitted program has three parts:

1. **Prelude**: imports, the ``Memory`` array type, wraparound ``add`` /
   ``sub`` helpers and byte-oriented ``putc`` / ``getc``.
2. **Bootstrap**: ``main`` materialises memory from the data segment (an
   explicit literal list followed by an infinite zero tail) and calls block 0
   with every register set to 0.
3. **Dispatch**: one ``run`` alternative per block, pattern-matched on the
   program counter, and a final catch-all alternative that returns.

Registers live in the parameters of ``run``.  Inside an alternative every
write binds a fresh name (see :mod:`hslower.registers`); leaving a block is a
tail call of ``run`` with the current names.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from hslower.config import DEFAULT_CONFIG, LoweringConfig
from hslower.driver import emit_chunked_main_loop
from hslower.emitter import CodeEmitter
from hslower.ir import NUM_REGISTERS, DataSegment, Inst, Module
from hslower.lowering import dispatch, lower_instruction
from hslower.registers import RegisterVersions

__all__ = [
    "generate",
    "HaskellBackend",
    "GeneratedProgram",
]

logger = logging.getLogger(__name__)

PRELUDE = """\
import Data.Array.IO as A
import Data.Bits ((.&.))
import Data.Char (chr, ord)
import System.IO (hSetBinaryMode, isEOF, stdin, stdout)
import System.Exit (exitSuccess)

type Memory = A.IOUArray Int Int

add :: Int -> Int -> Int
add x y = (x + y) .&. {uint_max}

sub :: Int -> Int -> Int
sub x y = (x - y) .&. {uint_max}

putc :: Int -> IO ()
putc c = putChar . chr $ c `mod` 256

getc :: IO Int
getc = do
 eof <- isEOF
 if eof
  then return 0
  else ord <$> getChar
"""

RUN_SIGNATURE = "run :: " + "Int -> " * (NUM_REGISTERS + 1) + "Memory -> IO ()"
CATCH_ALL = "run " + " ".join(["_"] * (NUM_REGISTERS + 2)) + " = return ()"
FALLTHROUGH_TARGET = "(succ pc)"


# ═══════════════════════════════════════════════════════════════════════════
# GENERATED PROGRAM CONTAINER
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class GeneratedProgram:
    """Generated Haskell source and a few statistics about it."""

    code: str
    block_count: int
    instruction_count: int
    word_bits: int

    def write_to_file(self, path: str) -> None:
        """Write the generated code to a file."""
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.code)


# ═══════════════════════════════════════════════════════════════════════════
# BACKEND
# ═══════════════════════════════════════════════════════════════════════════

class HaskellBackend:
    """Block emitter and bootstrap emitter for the Haskell target.

    Implements the driver hooks of :mod:`hslower.driver`.  The backend holds
    the register state of the block being lowered and a single flag,
    ``pending_fallthrough``. It is set when a block opens and cleared by
    the first instruction that transfers control; nothing else touches it.
    """

    def __init__(
        self,
        config: LoweringConfig = DEFAULT_CONFIG,
        emitter: Optional[CodeEmitter] = None,
    ) -> None:
        self.config = config
        self.out = emitter or CodeEmitter(config.indent_unit)
        self.registers = RegisterVersions.entry()
        self.pending_fallthrough = False
        self.current_pc: Optional[int] = None
        self.blocks = 0
        self.instructions = 0
        self.finished = False

    # ------------------------------------------------------------------
    # bootstrap / data
    # ------------------------------------------------------------------
    def emit_header(self, data: DataSegment) -> None:
        """Emit the prelude, ``main`` and the signature of ``run``."""
        uint_max = self.config.uint_max_str
        self.out.emit_raw(PRELUDE.format(uint_max=uint_max))
        self.out.emit_blank()
        self.out.emit("main :: IO ()")
        with self.out.block("main = do"):
            self.out.emit("hSetBinaryMode stdin True")
            self.out.emit("hSetBinaryMode stdout True")
            self.out.emit(f"mem <- A.newListArray (0, {uint_max}) $ [")
            self.out.indent()
            self.emit_data(data)
            self.out.emit("] ++ [0, 0..]")
            self.out.dedent()
            self.out.emit(dispatch("0", RegisterVersions.entry(("0",) * NUM_REGISTERS)))
        self.out.emit_blank()
        self.out.emit(RUN_SIGNATURE)

    def emit_data(self, data: DataSegment) -> None:
        """Emit the data segment as comma separated literal rows."""
        rows = data.rows(self.config.data_row_width)
        for i, row in enumerate(rows):
            line = ", ".join(str(self.config.mask(word)) for word in row)
            if i + 1 < len(rows):
                line += ","
            self.out.emit(line)
        logger.debug("emitted %d data words in %d rows", len(data), len(rows))

    # ------------------------------------------------------------------
    # driver hooks
    # ------------------------------------------------------------------
    def on_func_prologue(self, func_id: int) -> None:
        pass

    def on_func_epilogue(self) -> None:
        pass

    def on_pc_change(self, pc: int) -> None:
        """Close the open block (if any) and open the alternative for *pc*."""
        self._close_block()
        self.registers = self.registers.reset()
        self.out.emit_blank()
        self.out.emit(f"run pc@{pc} {self.registers.vector()} mem = do")
        self.out.indent()
        self.current_pc = pc
        self.pending_fallthrough = True
        self.blocks += 1
        logger.debug("opened block pc=%d", pc)

    def on_inst(self, inst: Inst) -> None:
        lowered = lower_instruction(inst, self.registers, self.config)
        self.registers = lowered.registers
        if lowered.transfers_control:
            self.pending_fallthrough = False
        if lowered.statement is not None:
            self.out.emit(lowered.statement)
        self.instructions += 1

    def finish(self) -> None:
        """Close the last block and emit the terminal catch-all alternative."""
        if self.finished:
            return
        self._close_block()
        self.out.emit_blank()
        self.out.emit(CATCH_ALL)
        self.finished = True

    def _close_block(self) -> None:
        if self.current_pc is None:
            return
        if self.pending_fallthrough:
            self.out.emit(dispatch(FALLTHROUGH_TARGET, self.registers))
        self.out.dedent()
        self.current_pc = None
        self.pending_fallthrough = False

    # ------------------------------------------------------------------
    # entry point
    # ------------------------------------------------------------------
    def lower_module(self, module: Module) -> GeneratedProgram:
        self.emit_header(module.data)
        emit_chunked_main_loop(module.text, self, self.config.chunk_size)
        self.finish()
        return GeneratedProgram(
            code=self.out.get_code(),
            block_count=self.blocks,
            instruction_count=self.instructions,
            word_bits=self.config.word_bits,
        )


def generate(module: Module, config: Optional[LoweringConfig] = None) -> GeneratedProgram:
    """Lower *module* to a Haskell program.

    Raises
    ------
    CodeGenError
        On an unknown opcode or malformed instruction.  No code is returned
        in that case.
    """
    config = (config or DEFAULT_CONFIG).check()
    program = HaskellBackend(config).lower_module(module)
    logger.info(
        "generated %d blocks (%d instructions, %d lines)",
        program.block_count,
        program.instruction_count,
        program.code.count("\n"),
    )
    return program
