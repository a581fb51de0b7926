"""Tuning knobs shared by the lowering backend and the reference evaluator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from hslower.errors import ConfigError


@dataclass(frozen=True)
class LoweringConfig:
    """Configuration for code generation and evaluation.

    Attributes
    ----------
    word_bits:
        Width of a machine word.  All arithmetic and every memory address is
        taken modulo ``2 ** word_bits``.
    chunk_size:
        Number of program counters grouped into one driver "function".  The
        Haskell backend emits a single ``run`` function regardless.
    data_row_width:
        Maximum number of data words per emitted literal row.
    indent_unit:
        String used for one level of indentation in the emitted program.
    max_steps:
        Step budget of the reference evaluator.
    """

    word_bits: int = 24
    chunk_size: int = 512
    data_row_width: int = 10
    indent_unit: str = " "
    max_steps: int = 10_000_000

    @property
    def uint_max(self) -> int:
        return (1 << self.word_bits) - 1

    @property
    def uint_max_str(self) -> str:
        """The largest address, as it appears in emitted bound declarations."""
        return str(self.uint_max)

    @property
    def memory_size(self) -> int:
        return 1 << self.word_bits

    def mask(self, value: int) -> int:
        """Reduce *value* modulo ``2 ** word_bits``."""
        return value & self.uint_max

    def validate(self) -> List[str]:
        """Return a list of validation problems (empty if valid)."""
        problems: List[str] = []
        if self.word_bits <= 0:
            problems.append("word_bits must be positive")
        if self.chunk_size <= 0:
            problems.append("chunk_size must be positive")
        if self.data_row_width <= 0:
            problems.append("data_row_width must be positive")
        if not self.indent_unit or self.indent_unit.strip(" "):
            problems.append("indent_unit must be one or more spaces")
        if self.max_steps <= 0:
            problems.append("max_steps must be positive")
        return problems

    def check(self) -> "LoweringConfig":
        """Raise :class:`ConfigError` if :meth:`validate` reports problems."""
        problems = self.validate()
        if problems:
            raise ConfigError("; ".join(problems))
        return self


DEFAULT_CONFIG = LoweringConfig()
