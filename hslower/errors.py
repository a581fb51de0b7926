# hslower/errors.py
"""
hslower Error Types

Error Hierarchy:
────────────────
┌──────────────────────────────────────────────────────────────────────┐
│  HsLowerError (base)                                                 │
│  ├── CodeGenError           - Lowering failures (caller bugs)        │
│  │   ├── UnknownOpcodeError     - Opcode outside the closed set      │
│  │   ├── InvalidConditionError  - Non-comparison passed to the       │
│  │   │                            condition normalizer               │
│  │   └── MalformedInstructionError - Missing or misplaced operand    │
│  ├── EvaluatorError         - Reference evaluator failures           │
│  │   ├── ProgramSyntaxError     - Text outside the emitted subset    │
│  │   └── EvaluationError        - Runtime fault while evaluating     │
│  └── ConfigError            - Invalid LoweringConfig                 │
└──────────────────────────────────────────────────────────────────────┘

Error Codes:
────────────
Each error carries a code of the form HSL-NNNN:
  - 4000-4999: Code generation errors
  - 5000-5999: Evaluation errors
  - 9000-9999: Configuration / internal errors

Code generation errors are always fatal: they signal a contract violation
between the IR producer and this backend, never a condition to tolerate.
"""

from __future__ import annotations

from enum import Enum, unique
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from hslower.ir import Inst


@unique
class ErrorPhase(Enum):
    """Pipeline phase where an error occurred."""

    CODEGEN = "codegen"
    EVALUATION = "evaluation"
    CONFIG = "config"
    INTERNAL = "internal"


class ErrorCode:
    """Structured error code ``PREFIX-NNNN``."""

    __slots__ = ("prefix", "number", "phase", "summary")

    def __init__(self, prefix: str, number: int, phase: ErrorPhase, summary: str) -> None:
        self.prefix = prefix
        self.number = number
        self.phase = phase
        self.summary = summary

    @property
    def code(self) -> str:
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.summary!r})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class HsLowerErrorCodes:
    """Predefined error codes."""

    UNKNOWN_OPCODE = ErrorCode("HSL", 4001, ErrorPhase.CODEGEN, "unknown operation")
    INVALID_CONDITION = ErrorCode("HSL", 4002, ErrorPhase.CODEGEN, "unknown operator")
    MALFORMED_INSTRUCTION = ErrorCode("HSL", 4003, ErrorPhase.CODEGEN, "malformed instruction")

    PROGRAM_SYNTAX = ErrorCode("HSL", 5001, ErrorPhase.EVALUATION, "unsupported program text")
    EVALUATION_FAULT = ErrorCode("HSL", 5002, ErrorPhase.EVALUATION, "evaluation fault")

    INVALID_CONFIG = ErrorCode("HSL", 9001, ErrorPhase.CONFIG, "invalid configuration")
    INTERNAL = ErrorCode("HSL", 9999, ErrorPhase.INTERNAL, "internal error")


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class HsLowerError(Exception):
    """
    Base exception for all hslower errors.

    Carries an :class:`ErrorCode` and, where known, the program counter and
    IR source line of the offending instruction.
    """

    default_code: ErrorCode = HsLowerErrorCodes.INTERNAL

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        pc: Optional[int] = None,
        lineno: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.pc = pc
        self.lineno = lineno

    @property
    def phase(self) -> ErrorPhase:
        return self.code.phase

    def location(self) -> str:
        parts = []
        if self.pc is not None:
            parts.append(f"pc={self.pc}")
        if self.lineno:
            parts.append(f"line={self.lineno}")
        return " ".join(parts)

    def __str__(self) -> str:
        where = self.location()
        prefix = f"error[{self.code}]"
        if where:
            return f"{prefix} ({where}): {self.message}"
        return f"{prefix}: {self.message}"


class ConfigError(HsLowerError):
    """Invalid :class:`~hslower.config.LoweringConfig`."""

    default_code = HsLowerErrorCodes.INVALID_CONFIG


# ───────────────────────────────────────────────────────────────────────────────
# CODE GENERATION ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class CodeGenError(HsLowerError):
    """Fatal error while lowering IR."""

    default_code = HsLowerErrorCodes.MALFORMED_INSTRUCTION


class UnknownOpcodeError(CodeGenError):
    """The instruction stream contains an opcode this backend does not know."""

    def __init__(self, op: object, pc: Optional[int] = None, lineno: Optional[int] = None) -> None:
        super().__init__(
            message=f"oops! unknown operation {_op_repr(op)}",
            code=HsLowerErrorCodes.UNKNOWN_OPCODE,
            pc=pc,
            lineno=lineno,
        )
        self.op = op


class InvalidConditionError(CodeGenError):
    """A relation was requested for an opcode that is not a comparison or branch."""

    def __init__(self, op: object, pc: Optional[int] = None, lineno: Optional[int] = None) -> None:
        super().__init__(
            message=f"oops! unknown operator {_op_repr(op)}",
            code=HsLowerErrorCodes.INVALID_CONDITION,
            pc=pc,
            lineno=lineno,
        )
        self.op = op


class MalformedInstructionError(CodeGenError):
    """An instruction lacks an operand or has an immediate where a register is required."""

    def __init__(self, message: str, inst: Optional[Inst] = None) -> None:
        super().__init__(
            message,
            code=HsLowerErrorCodes.MALFORMED_INSTRUCTION,
            pc=inst.pc if inst is not None else None,
            lineno=inst.lineno if inst is not None else None,
        )
        self.inst = inst


# ───────────────────────────────────────────────────────────────────────────────
# EVALUATOR ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class EvaluatorError(HsLowerError):
    """Base class for reference evaluator failures."""

    default_code = HsLowerErrorCodes.EVALUATION_FAULT


class ProgramSyntaxError(EvaluatorError):
    """Program text falls outside the subset the backend emits."""

    def __init__(self, message: str, lineno: Optional[int] = None) -> None:
        super().__init__(message, code=HsLowerErrorCodes.PROGRAM_SYNTAX, lineno=lineno)


class EvaluationError(EvaluatorError):
    """Runtime fault of an emitted program (bad address, unbound name, ...)."""

    def __init__(self, message: str, pc: Optional[int] = None) -> None:
        super().__init__(message, code=HsLowerErrorCodes.EVALUATION_FAULT, pc=pc)


def _op_repr(op: object) -> str:
    name = getattr(op, "name", None)
    if name is not None:
        return f"{int(op)} ({name})"  # type: ignore[call-overload]
    return repr(op)
