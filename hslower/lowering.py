"""Per-opcode lowering rules.

Each rule takes an instruction and the current :class:`RegisterVersions`
and returns a :class:`Lowered` record: at most one Haskell statement for the
body of the current ``run`` alternative, the successor register state, and
whether the statement already transfers control to another block.

Reads of a destination register always use its name *before* the rule
rebinds it, so ``ADD A, A`` lowers to ``let a1 = a `add` a``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from hslower.conditions import render_relation
from hslower.config import DEFAULT_CONFIG, LoweringConfig
from hslower.errors import MalformedInstructionError, UnknownOpcodeError
from hslower.ir import COMPARISON_OPS, COND_JUMP_OPS, Inst, Op, Value
from hslower.registers import RegisterVersions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Lowered:
    statement: Optional[str]
    registers: RegisterVersions
    transfers_control: bool = False


def render_value(
    value: Optional[Value],
    registers: RegisterVersions,
    config: LoweringConfig,
    inst: Optional[Inst] = None,
) -> str:
    """Render an operand as Haskell text.

    Registers render as their current symbolic name; immediates are reduced
    modulo the word size so emitted arithmetic never sees a negative literal.
    """
    if value is None:
        what = inst if inst is not None else "instruction"
        raise MalformedInstructionError(f"{what} is missing an operand", inst)
    if value.is_reg:
        assert value.reg is not None
        return registers.current(value.reg)
    return str(config.mask(value.imm))


def _dst_slot(inst: Inst) -> int:
    if inst.dst is None or not inst.dst.is_reg:
        raise MalformedInstructionError(f"{inst} needs a register destination", inst)
    assert inst.dst.reg is not None
    return int(inst.dst.reg)


def dispatch(target: str, registers: RegisterVersions) -> str:
    """Statement that continues execution at block *target*."""
    return f"run {target} {registers.vector()} mem"


# ═══════════════════════════════════════════════════════════════════════════
# RULES
# ═══════════════════════════════════════════════════════════════════════════

Rule = Callable[[Inst, RegisterVersions, LoweringConfig], Lowered]


def _lower_mov(inst: Inst, regs: RegisterVersions, config: LoweringConfig) -> Lowered:
    src = render_value(inst.src, regs, config, inst)
    return Lowered(None, regs.alias(_dst_slot(inst), src))


def _arith(helper: str) -> Rule:
    def rule(inst: Inst, regs: RegisterVersions, config: LoweringConfig) -> Lowered:
        slot = _dst_slot(inst)
        src = render_value(inst.src, regs, config, inst)
        dst = regs.current(slot)
        regs, name = regs.rebind(slot)
        return Lowered(f"let {name} = {dst} `{helper}` {src}", regs)

    rule.__name__ = f"_lower_{helper}"
    return rule


def _lower_load(inst: Inst, regs: RegisterVersions, config: LoweringConfig) -> Lowered:
    src = render_value(inst.src, regs, config, inst)
    regs, name = regs.rebind(_dst_slot(inst))
    return Lowered(f"{name} <- A.readArray mem {src}", regs)


def _lower_store(inst: Inst, regs: RegisterVersions, config: LoweringConfig) -> Lowered:
    address = render_value(inst.src, regs, config, inst)
    value = regs.current(_dst_slot(inst))
    return Lowered(f"A.writeArray mem {address} {value}", regs)


def _lower_putc(inst: Inst, regs: RegisterVersions, config: LoweringConfig) -> Lowered:
    return Lowered(f"putc {render_value(inst.src, regs, config, inst)}", regs)


def _lower_getc(inst: Inst, regs: RegisterVersions, config: LoweringConfig) -> Lowered:
    regs, name = regs.rebind(_dst_slot(inst))
    return Lowered(f"{name} <- getc", regs)


def _lower_exit(inst: Inst, regs: RegisterVersions, config: LoweringConfig) -> Lowered:
    return Lowered("exitSuccess", regs)


def _lower_dump(inst: Inst, regs: RegisterVersions, config: LoweringConfig) -> Lowered:
    return Lowered(None, regs)


def _lower_compare(inst: Inst, regs: RegisterVersions, config: LoweringConfig) -> Lowered:
    slot = _dst_slot(inst)
    src = render_value(inst.src, regs, config, inst)
    dst = regs.current(slot)
    regs, name = regs.rebind(slot)
    return Lowered(
        f"let {name} = fromEnum $ {dst} {render_relation(inst.op)} {src}", regs
    )


def _lower_cond_jump(inst: Inst, regs: RegisterVersions, config: LoweringConfig) -> Lowered:
    dst = regs.current(_dst_slot(inst))
    src = render_value(inst.src, regs, config, inst)
    target = render_value(inst.jmp, regs, config, inst)
    cond = f"{dst} {render_relation(inst.op)} {src}"
    return Lowered(
        dispatch(f"(if {cond} then {target} else succ pc)", regs),
        regs,
        transfers_control=True,
    )


def _lower_jmp(inst: Inst, regs: RegisterVersions, config: LoweringConfig) -> Lowered:
    target = render_value(inst.jmp, regs, config, inst)
    return Lowered(dispatch(target, regs), regs, transfers_control=True)


LOWERING_RULES: Dict[Op, Rule] = {
    Op.MOV: _lower_mov,
    Op.ADD: _arith("add"),
    Op.SUB: _arith("sub"),
    Op.LOAD: _lower_load,
    Op.STORE: _lower_store,
    Op.PUTC: _lower_putc,
    Op.GETC: _lower_getc,
    Op.EXIT: _lower_exit,
    Op.DUMP: _lower_dump,
    Op.JMP: _lower_jmp,
}
LOWERING_RULES.update({op: _lower_compare for op in COMPARISON_OPS})
LOWERING_RULES.update({op: _lower_cond_jump for op in COND_JUMP_OPS})


def lower_instruction(
    inst: Inst,
    registers: RegisterVersions,
    config: LoweringConfig = DEFAULT_CONFIG,
) -> Lowered:
    """Lower one instruction.

    Raises
    ------
    UnknownOpcodeError
        If ``inst.op`` is outside the closed opcode set.
    MalformedInstructionError
        If an operand the opcode needs is missing or of the wrong kind.
    """
    rule = LOWERING_RULES.get(inst.opcode) if inst.opcode is not None else None
    if rule is None:
        raise UnknownOpcodeError(inst.op, pc=inst.pc, lineno=inst.lineno)
    lowered = rule(inst, registers, config)
    logger.debug("pc=%d %s -> %s", inst.pc, inst, lowered.statement)
    return lowered
