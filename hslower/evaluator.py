"""
hslower/evaluator.py
====================

Reference evaluator for emitted Haskell programs.

The backend emits a small, fixed subset of Haskell.  This module parses that
subset with a PEG grammar (parsimonious) and executes it directly, which lets
the test-suite and the ``run`` CLI command check the observable behaviour of
generated programs without a Haskell toolchain.

Semantics follow the emitted prelude:

- ``add`` / ``sub`` mask their result with the word mask declared in the
  prelude.
- ``fromEnum $ x <rel> y`` is 1 or 0.
- ``getc`` yields the next input byte, or 0 once input is exhausted.
- ``putc c`` writes ``c mod 256``.
- Memory is the ``IOUArray`` declared by ``main``; reads and writes outside
  its bounds are faults.
- A ``run`` statement must be the last statement of its alternative.
- ``exitSuccess`` and the catch-all alternative both end the program.
"""

from __future__ import annotations

import logging
import operator
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from parsimonious.exceptions import ParseError
from parsimonious.grammar import Grammar
from parsimonious.nodes import Node, NodeVisitor

from hslower.config import DEFAULT_CONFIG, LoweringConfig
from hslower.errors import EvaluationError, ProgramSyntaxError

logger = logging.getLogger(__name__)

__all__ = [
    "HASKELL_SUBSET",
    "HaskellProgram",
    "EvaluationResult",
    "Memory",
    "parse_program",
    "evaluate",
]


# ═══════════════════════════════════════════════════════════════════
#  PART 1: GRAMMAR (Parsimonious PEG)
# ═══════════════════════════════════════════════════════════════════

HASKELL_SUBSET = Grammar(r'''
    program         = main_sig main_def run_sig clause* default_clause blank*

    # ─────────────────────────────────────────────────────────────
    # Bootstrap
    # ─────────────────────────────────────────────────────────────

    main_sig        = "main :: IO ()" nl
    main_def        = "main = do" nl binary_mode memory_decl boot_call blank*
    binary_mode     = indent "hSetBinaryMode stdin True" nl indent "hSetBinaryMode stdout True" nl
    memory_decl     = indent "mem <- A.newListArray (0, " number ") $ [" nl data_row* indent "] ++ [0, 0..]" nl
    data_row        = indent number more_number* ","? nl
    more_number     = ", " number
    boot_call       = indent "run " number " " registers " mem" nl
    run_sig         = "run :: " ~"[^\n]*" nl blank*

    # ─────────────────────────────────────────────────────────────
    # Dispatch alternatives
    # ─────────────────────────────────────────────────────────────

    clause          = "run pc@" number " " registers " mem = do" nl statement* blank*
    default_clause  = "run _ _ _ _ _ _ _ _ = return ()" nl
    registers       = atom " " atom " " atom " " atom " " atom " " atom

    # ─────────────────────────────────────────────────────────────
    # Statements
    # ─────────────────────────────────────────────────────────────

    statement       = indent command nl
    command         = let_compare / let_arith / load / getc / store / putc / exit / dispatch
    let_compare     = "let " ident " = fromEnum $ " atom " " relation " " atom
    let_arith       = "let " ident " = " atom " `" arith "` " atom
    load            = ident " <- A.readArray mem " atom
    getc            = ident " <- getc"
    store           = "A.writeArray mem " atom " " atom
    putc            = "putc " atom
    exit            = "exitSuccess"
    dispatch        = "run " target " " registers " mem"
    target          = branch / fallthrough / atom
    branch          = "(if " atom " " relation " " atom " then " atom " else succ pc)"
    fallthrough     = "(succ pc)"

    # ─────────────────────────────────────────────────────────────
    # Lexical
    # ─────────────────────────────────────────────────────────────

    arith           = "add" / "sub"
    relation        = "==" / "/=" / "<=" / ">=" / "<" / ">"
    atom            = number / ident
    ident           = ~"[a-z][a-z0-9]*"
    number          = ~"[0-9]+"
    indent          = ~" +"
    nl              = "\n"
    blank           = "\n"
''')

_MASK_RE = re.compile(r"^add x y = \(x \+ y\) \.&\. (\d+)$", re.MULTILINE)
_MAIN_RE = re.compile(r"^main :: IO \(\)$", re.MULTILINE)


# ═══════════════════════════════════════════════════════════════════
#  PART 2: PROGRAM MODEL
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Name:
    text: str

    def __str__(self) -> str:
        return self.text


Atom = Union[int, Name]

RELATIONS: Dict[str, Callable[[int, int], bool]] = {
    "==": operator.eq,
    "/=": operator.ne,
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
}


@dataclass(frozen=True)
class Arith:
    name: str
    helper: str
    left: Atom
    right: Atom


@dataclass(frozen=True)
class Compare:
    name: str
    left: Atom
    relation: str
    right: Atom


@dataclass(frozen=True)
class Load:
    name: str
    address: Atom


@dataclass(frozen=True)
class GetChar:
    name: str


@dataclass(frozen=True)
class Store:
    address: Atom
    value: Atom


@dataclass(frozen=True)
class PutChar:
    value: Atom


@dataclass(frozen=True)
class Exit:
    pass


@dataclass(frozen=True)
class Branch:
    left: Atom
    relation: str
    right: Atom
    then: Atom


class Fallthrough:
    """``(succ pc)`` dispatch target."""

    def __repr__(self) -> str:
        return "Fallthrough()"


FALLTHROUGH = Fallthrough()

Target = Union[Atom, Branch, Fallthrough]


@dataclass(frozen=True)
class Dispatch:
    target: Target
    args: Tuple[Atom, ...]


Statement = Union[Arith, Compare, Load, GetChar, Store, PutChar, Exit, Dispatch]


@dataclass
class Clause:
    pc: int
    params: Tuple[str, ...]
    statements: List[Statement]


@dataclass
class HaskellProgram:
    """Parsed form of an emitted program."""

    word_mask: int
    memory_bound: int
    data: List[int]
    boot_pc: int
    boot_args: Tuple[Atom, ...]
    clauses: Dict[int, Clause] = field(default_factory=dict)

    @property
    def block_count(self) -> int:
        return len(self.clauses)

    @property
    def statement_count(self) -> int:
        return sum(len(c.statements) for c in self.clauses.values())

    def summary(self) -> str:
        return (
            f"{self.block_count} blocks, {self.statement_count} statements, "
            f"{len(self.data)} data words, word mask {self.word_mask}"
        )


# ═══════════════════════════════════════════════════════════════════
#  PART 3: TREE VISITOR
# ═══════════════════════════════════════════════════════════════════

def _many(visited: object) -> list:
    """Visited children of a ``*`` repetition (a bare node when empty)."""
    return visited if isinstance(visited, list) else []


class _ProgramBuilder(NodeVisitor):
    """Turns the parse tree into a :class:`HaskellProgram`."""

    unwrapped_exceptions = (ProgramSyntaxError,)

    def __init__(self, word_mask: int) -> None:
        self.word_mask = word_mask

    def generic_visit(self, node: Node, visited_children: list):
        return visited_children or node

    # -- program ---------------------------------------------------------
    def visit_program(self, node, visited_children):
        _, (memory, boot), _, clauses, _, _ = visited_children
        bound, data = memory
        boot_pc, boot_args = boot
        program = HaskellProgram(
            word_mask=self.word_mask,
            memory_bound=bound,
            data=data,
            boot_pc=boot_pc,
            boot_args=boot_args,
        )
        for clause in _many(clauses):
            # The first matching equation wins, as in Haskell.
            program.clauses.setdefault(clause.pc, clause)
        return program

    def visit_main_def(self, node, visited_children):
        return visited_children[3], visited_children[4]

    def visit_memory_decl(self, node, visited_children):
        bound = visited_children[2]
        data: List[int] = []
        for row in _many(visited_children[5]):
            data.extend(row)
        return bound, data

    def visit_data_row(self, node, visited_children):
        return [visited_children[1]] + _many(visited_children[2])

    def visit_more_number(self, node, visited_children):
        return visited_children[1]

    def visit_boot_call(self, node, visited_children):
        return visited_children[2], visited_children[4]

    # -- clauses ---------------------------------------------------------
    def visit_clause(self, node, visited_children):
        pc = visited_children[1]
        params = visited_children[3]
        for param in params:
            if not isinstance(param, Name):
                raise ProgramSyntaxError(f"run pc@{pc}: register pattern {param} is not a name")
        return Clause(
            pc=pc,
            params=tuple(p.text for p in params),
            statements=_many(visited_children[6]),
        )

    def visit_registers(self, node, visited_children):
        return tuple(visited_children[::2])

    # -- statements ------------------------------------------------------
    def visit_statement(self, node, visited_children):
        return visited_children[1]

    def visit_command(self, node, visited_children):
        return visited_children[0]

    def visit_let_compare(self, node, visited_children):
        _, name, _, left, _, relation, _, right = visited_children
        return Compare(name.text, left, relation, right)

    def visit_let_arith(self, node, visited_children):
        _, name, _, left, _, helper, _, right = visited_children
        return Arith(name.text, helper, left, right)

    def visit_load(self, node, visited_children):
        return Load(visited_children[0].text, visited_children[2])

    def visit_getc(self, node, visited_children):
        return GetChar(visited_children[0].text)

    def visit_store(self, node, visited_children):
        return Store(visited_children[1], visited_children[3])

    def visit_putc(self, node, visited_children):
        return PutChar(visited_children[1])

    def visit_exit(self, node, visited_children):
        return Exit()

    def visit_dispatch(self, node, visited_children):
        return Dispatch(visited_children[1], visited_children[3])

    def visit_target(self, node, visited_children):
        return visited_children[0]

    def visit_branch(self, node, visited_children):
        return Branch(visited_children[1], visited_children[3], visited_children[5], visited_children[7])

    def visit_fallthrough(self, node, visited_children):
        return FALLTHROUGH

    # -- lexical ---------------------------------------------------------
    def visit_arith(self, node, visited_children):
        return node.text

    def visit_relation(self, node, visited_children):
        return node.text

    def visit_atom(self, node, visited_children):
        return visited_children[0]

    def visit_ident(self, node, visited_children):
        return Name(node.text)

    def visit_number(self, node, visited_children):
        return int(node.text)


def parse_program(text: str) -> HaskellProgram:
    """Parse an emitted Haskell program.

    Raises
    ------
    ProgramSyntaxError
        If the text is not a program this package could have emitted.
    """
    mask = _MASK_RE.search(text)
    if mask is None:
        raise ProgramSyntaxError("prelude does not define the masked add helper")
    main = _MAIN_RE.search(text)
    if main is None:
        raise ProgramSyntaxError("program has no main")
    offset = text.count("\n", 0, main.start())
    try:
        tree = HASKELL_SUBSET.parse(text[main.start():])
    except ParseError as exc:
        raise ProgramSyntaxError(
            f"unsupported program text: {exc}", lineno=offset + exc.line()
        ) from exc
    program = _ProgramBuilder(int(mask.group(1))).visit(tree)
    logger.debug("parsed program: %s", program.summary())
    return program


# ═══════════════════════════════════════════════════════════════════
#  PART 4: EVALUATION
# ═══════════════════════════════════════════════════════════════════

class Memory:
    """Sparse word memory with the bounds of the emitted ``IOUArray``."""

    def __init__(self, bound: int, data: Sequence[int] = ()) -> None:
        self.bound = bound
        self._words: Dict[int, int] = {}
        for address, word in enumerate(data[: bound + 1]):
            if word:
                self._words[address] = word

    def _check(self, address: int, pc: Optional[int]) -> None:
        if not 0 <= address <= self.bound:
            raise EvaluationError(f"memory address {address} out of bounds (0, {self.bound})", pc=pc)

    def read(self, address: int, pc: Optional[int] = None) -> int:
        self._check(address, pc)
        return self._words.get(address, 0)

    def write(self, address: int, value: int, pc: Optional[int] = None) -> None:
        self._check(address, pc)
        if value:
            self._words[address] = value
        else:
            self._words.pop(address, None)

    def snapshot(self) -> Dict[int, int]:
        """Non-zero words by address."""
        return dict(sorted(self._words.items()))


@dataclass
class EvaluationResult:
    """Outcome of evaluating a program.

    ``registers`` are the arguments of the last ``run`` invocation, i.e. the
    register values at the last block entry (or at the catch-all).
    """

    output: bytes
    registers: Tuple[int, ...]
    memory: Memory
    steps: int
    exited: bool
    pc: int

    @property
    def text(self) -> str:
        return self.output.decode("latin-1")


class _Machine:
    def __init__(self, program: HaskellProgram, stdin: bytes, max_steps: int) -> None:
        self.program = program
        self.input = stdin
        self.input_pos = 0
        self.output = bytearray()
        self.memory = Memory(program.memory_bound, program.data)
        self.max_steps = max_steps
        self.steps = 0

    def value(self, atom: Atom, env: Dict[str, int], pc: int) -> int:
        if isinstance(atom, Name):
            try:
                return env[atom.text]
            except KeyError:
                raise EvaluationError(f"unbound name {atom.text}", pc=pc) from None
        return atom

    def getc(self) -> int:
        if self.input_pos >= len(self.input):
            return 0
        byte = self.input[self.input_pos]
        self.input_pos += 1
        return byte

    def run(self) -> EvaluationResult:
        pc = self.program.boot_pc
        args = tuple(self.value(a, {}, pc) for a in self.program.boot_args)
        while True:
            clause = self.program.clauses.get(pc)
            if clause is None:
                return self._result(args, pc, exited=False)
            env: Dict[str, int] = dict(zip(clause.params, args))
            env["pc"] = pc
            transfer = self._run_clause(clause, env)
            if transfer is None:
                return self._result(args, pc, exited=False)
            if transfer == "exit":
                return self._result(args, pc, exited=True)
            pc, args = transfer

    def _run_clause(self, clause: Clause, env: Dict[str, int]):
        pc = clause.pc
        last = len(clause.statements) - 1
        mask = self.program.word_mask
        for i, stmt in enumerate(clause.statements):
            self.steps += 1
            if self.steps > self.max_steps:
                raise EvaluationError(f"step budget of {self.max_steps} exhausted", pc=pc)
            if isinstance(stmt, Arith):
                left = self.value(stmt.left, env, pc)
                right = self.value(stmt.right, env, pc)
                result = left + right if stmt.helper == "add" else left - right
                env[stmt.name] = result & mask
            elif isinstance(stmt, Compare):
                left = self.value(stmt.left, env, pc)
                right = self.value(stmt.right, env, pc)
                env[stmt.name] = int(RELATIONS[stmt.relation](left, right))
            elif isinstance(stmt, Load):
                env[stmt.name] = self.memory.read(self.value(stmt.address, env, pc), pc)
            elif isinstance(stmt, GetChar):
                env[stmt.name] = self.getc()
            elif isinstance(stmt, Store):
                self.memory.write(
                    self.value(stmt.address, env, pc), self.value(stmt.value, env, pc), pc
                )
            elif isinstance(stmt, PutChar):
                self.output.append(self.value(stmt.value, env, pc) % 256)
            elif isinstance(stmt, Exit):
                return "exit"
            elif isinstance(stmt, Dispatch):
                if i != last:
                    raise EvaluationError("run is not the last statement of its block", pc=pc)
                args = tuple(self.value(a, env, pc) for a in stmt.args)
                return self._target(stmt.target, env, pc), args
            else:
                raise EvaluationError(f"unsupported statement {stmt!r}", pc=pc)
        return None

    def _target(self, target: Target, env: Dict[str, int], pc: int) -> int:
        if isinstance(target, Fallthrough):
            return pc + 1
        if isinstance(target, Branch):
            left = self.value(target.left, env, pc)
            right = self.value(target.right, env, pc)
            if RELATIONS[target.relation](left, right):
                return self.value(target.then, env, pc)
            return pc + 1
        return self.value(target, env, pc)

    def _result(self, args: Tuple[int, ...], pc: int, exited: bool) -> EvaluationResult:
        logger.debug("program stopped at pc=%d after %d steps (exited=%s)", pc, self.steps, exited)
        return EvaluationResult(
            output=bytes(self.output),
            registers=args,
            memory=self.memory,
            steps=self.steps,
            exited=exited,
            pc=pc,
        )


def evaluate(
    program: Union[str, HaskellProgram],
    stdin: bytes = b"",
    config: Optional[LoweringConfig] = None,
) -> EvaluationResult:
    """Run an emitted program (text or parsed) on *stdin*.

    Raises
    ------
    ProgramSyntaxError
        If *program* is text that does not parse.
    EvaluationError
        On a runtime fault or when the step budget is exhausted.
    """
    config = config or DEFAULT_CONFIG
    if isinstance(program, str):
        program = parse_program(program)
    return _Machine(program, stdin, config.max_steps).run()
