"""IR data model consumed by the lowering backend.

The IR is a register machine with six word-sized registers, one flat
word-addressed memory and byte-oriented I/O.  Instructions are grouped into
blocks by their program counter; the external parser and optimiser that
produce a :class:`Module` are outside this package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union


class Op(IntEnum):
    """IR opcodes.

    Comparison opcodes sit exactly eight above the conditional jump with the
    same relation (``EQ - 8 == JEQ``).
    """

    MOV = 0
    ADD = 1
    SUB = 2
    LOAD = 3
    STORE = 4
    PUTC = 5
    GETC = 6
    EXIT = 7

    JEQ = 8
    JNE = 9
    JLT = 10
    JGT = 11
    JLE = 12
    JGE = 13
    JMP = 14

    EQ = 16
    NE = 17
    LT = 18
    GT = 19
    LE = 20
    GE = 21
    DUMP = 22


COMPARISON_OPS: Tuple[Op, ...] = (Op.EQ, Op.NE, Op.LT, Op.GT, Op.LE, Op.GE)
COND_JUMP_OPS: Tuple[Op, ...] = (Op.JEQ, Op.JNE, Op.JLT, Op.JGT, Op.JLE, Op.JGE)
JUMP_OPS: Tuple[Op, ...] = COND_JUMP_OPS + (Op.JMP,)


class Reg(IntEnum):
    A = 0
    B = 1
    C = 2
    D = 3
    BP = 4
    SP = 5


REGISTER_NAMES: Tuple[str, ...] = ("a", "b", "c", "d", "bp", "sp")
NUM_REGISTERS = len(REGISTER_NAMES)


class ValueKind(Enum):
    REG = "reg"
    IMM = "imm"


@dataclass(frozen=True)
class Value:
    """An operand: either a register reference or an immediate."""

    kind: ValueKind
    reg: Optional[Reg] = None
    imm: int = 0

    @classmethod
    def of_reg(cls, reg: Union[Reg, int]) -> "Value":
        return cls(ValueKind.REG, reg=Reg(reg))

    @classmethod
    def of_imm(cls, imm: int) -> "Value":
        return cls(ValueKind.IMM, imm=int(imm))

    @property
    def is_reg(self) -> bool:
        return self.kind is ValueKind.REG

    def __str__(self) -> str:
        if self.is_reg:
            assert self.reg is not None
            return self.reg.name
        return str(self.imm)


Operand = Union[Value, Reg, int, None]


def as_value(operand: Operand) -> Optional[Value]:
    """Coerce a :class:`Reg` or ``int`` into a :class:`Value`.

    ``bool`` is rejected since it is almost always a mistake at a call site.
    """
    if operand is None or isinstance(operand, Value):
        return operand
    if isinstance(operand, Reg):
        return Value.of_reg(operand)
    if isinstance(operand, bool):
        raise TypeError("boolean operands are not IR values")
    if isinstance(operand, int):
        return Value.of_imm(operand)
    raise TypeError(f"cannot use {operand!r} as an IR operand")


@dataclass(frozen=True)
class Inst:
    """A single IR instruction.

    ``op`` is typed as ``int`` rather than :class:`Op` because the lowering
    table must be able to report opcode values outside the closed set.
    """

    op: int
    dst: Optional[Value] = None
    src: Optional[Value] = None
    jmp: Optional[Value] = None
    pc: int = 0
    lineno: int = 0

    @property
    def opcode(self) -> Optional[Op]:
        """The opcode as an :class:`Op`, or ``None`` if it is not one."""
        try:
            return Op(self.op)
        except ValueError:
            return None

    def __str__(self) -> str:
        op = self.opcode
        parts = [op.name if op is not None else f"<op {self.op}>"]
        operands = [str(v) for v in (self.dst, self.src, self.jmp) if v is not None]
        if operands:
            parts.append(", ".join(operands))
        return " ".join(parts)


def make_inst(
    op: Union[Op, int],
    dst: Operand = None,
    src: Operand = None,
    jmp: Operand = None,
    pc: int = 0,
    lineno: int = 0,
) -> Inst:
    """Build an :class:`Inst`, accepting registers and ints as operands."""
    return Inst(
        op=op,
        dst=as_value(dst),
        src=as_value(src),
        jmp=as_value(jmp),
        pc=pc,
        lineno=lineno,
    )


@dataclass(frozen=True)
class DataSegment:
    """Initial memory image.

    Word ``i`` lives at address ``i``; every address past the end is zero.
    """

    words: Tuple[int, ...] = ()

    @classmethod
    def of(cls, words: Iterable[int]) -> "DataSegment":
        return cls(tuple(int(w) for w in words))

    def __len__(self) -> int:
        return len(self.words)

    def __iter__(self) -> Iterator[int]:
        return iter(self.words)

    def __getitem__(self, address: int) -> int:
        if address < 0:
            raise IndexError(address)
        if address < len(self.words):
            return self.words[address]
        return 0

    def rows(self, width: int) -> List[Tuple[int, ...]]:
        """Split the words into consecutive rows of at most *width* entries."""
        return [self.words[i:i + width] for i in range(0, len(self.words), width)]


@dataclass
class Module:
    """A lowered-ready IR module: instruction stream plus static data."""

    text: List[Inst] = field(default_factory=list)
    data: DataSegment = field(default_factory=DataSegment)

    def __post_init__(self) -> None:
        if not isinstance(self.data, DataSegment):
            self.data = DataSegment.of(self.data)

    @property
    def block_count(self) -> int:
        return len({inst.pc for inst in self.text})


def number_blocks(blocks: Sequence[Sequence[Inst]]) -> List[Inst]:
    """Assign consecutive program counters to a list of instruction blocks.

    Convenient for building modules by hand: block ``i`` gets pc ``i``.
    """
    text: List[Inst] = []
    for pc, block in enumerate(blocks):
        for inst in block:
            text.append(Inst(inst.op, inst.dst, inst.src, inst.jmp, pc, inst.lineno))
    return text
