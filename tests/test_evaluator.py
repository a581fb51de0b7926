# tests/test_evaluator.py
"""
Tests for the reference evaluator: parsing the emitted subset and executing it.
"""

import pytest

from hslower.config import LoweringConfig
from hslower.errors import EvaluationError, ProgramSyntaxError
from hslower.evaluator import Memory, evaluate, parse_program

from tests.conftest import Op, Reg, lower, make_inst, run_blocks


class TestParseProgram:

    def test_parses_emitted_program(self):
        code = lower(
            [
                [make_inst(Op.GETC, Reg.A), make_inst(Op.PUTC, src=Reg.A)],
                [make_inst(Op.EXIT)],
            ],
            data=[5, 6, 7],
        )
        program = parse_program(code)
        assert program.word_mask == 16777215
        assert program.memory_bound == 16777215
        assert program.data == [5, 6, 7]
        assert program.boot_pc == 0
        assert program.boot_args == (0, 0, 0, 0, 0, 0)
        assert program.block_count == 2
        assert program.statement_count == 5

    def test_summary(self):
        program = parse_program(lower([[make_inst(Op.EXIT)]]))
        assert program.summary() == "1 blocks, 2 statements, 0 data words, word mask 16777215"

    def test_clause_parameters(self):
        program = parse_program(lower([[make_inst(Op.EXIT)]]))
        assert program.clauses[0].params == ("a", "b", "c", "d", "bp", "sp")

    def test_garbage_is_rejected(self):
        with pytest.raises(ProgramSyntaxError) as info:
            parse_program("module Main where\nmain = print 1\n")
        assert info.value.code == "HSL-5001"

    def test_unsupported_statement_reports_line(self):
        code = lower([[make_inst(Op.PUTC, src=65)]])
        broken = code.replace(" putc 65\n", " print 65\n")
        with pytest.raises(ProgramSyntaxError) as info:
            parse_program(broken)
        assert info.value.lineno == broken.splitlines().index(" print 65") + 1

    def test_first_equation_wins(self):
        code = lower([[make_inst(Op.PUTC, src=65)]])
        dup = code.replace(
            "\nrun _ ",
            "\nrun pc@0 a b c d bp sp mem = do\n putc 66\n run (succ pc) a b c d bp sp mem\n\nrun _ ",
        )
        assert evaluate(dup).output == b"A"


class TestMemory:

    def test_initial_data_and_zero_tail(self):
        memory = Memory(15, [3, 0, 4])
        assert memory.read(0) == 3
        assert memory.read(2) == 4
        assert memory.read(15) == 0
        assert memory.snapshot() == {0: 3, 2: 4}

    def test_write_zero_clears(self):
        memory = Memory(15, [3])
        memory.write(0, 0)
        assert memory.snapshot() == {}

    @pytest.mark.parametrize("address", [-1, 16])
    def test_out_of_bounds(self, address):
        memory = Memory(15)
        with pytest.raises(EvaluationError):
            memory.read(address)
        with pytest.raises(EvaluationError):
            memory.write(address, 1)


class TestExecution:

    def test_getc_at_eof_is_zero(self):
        result = run_blocks([[make_inst(Op.GETC, Reg.A)]])
        assert result.registers[0] == 0

    def test_getc_reads_raw_bytes(self):
        result = run_blocks([[make_inst(Op.GETC, Reg.A)]], stdin=b"\xff")
        assert result.registers[0] == 255

    def test_putc_writes_low_byte(self):
        result = run_blocks([[make_inst(Op.PUTC, src=256 + 65)]])
        assert result.output == b"A"

    def test_catch_all_ends_without_exit(self):
        result = run_blocks([[make_inst(Op.PUTC, src=65)]])
        assert not result.exited
        assert result.pc == 1

    def test_exit_stops_immediately(self):
        result = run_blocks([
            [make_inst(Op.EXIT)],
            [make_inst(Op.PUTC, src=65)],
        ])
        assert result.exited
        assert result.pc == 0
        assert result.output == b""

    def test_step_budget(self):
        with pytest.raises(EvaluationError, match="step budget"):
            run_blocks([[make_inst(Op.JMP, jmp=0)]], config=LoweringConfig(max_steps=100))

    def test_run_must_be_the_last_statement(self):
        with pytest.raises(EvaluationError, match="last statement"):
            run_blocks([[make_inst(Op.JMP, jmp=1), make_inst(Op.PUTC, src=65)]])

    def test_out_of_bounds_load_faults(self, byte_config):
        with pytest.raises(EvaluationError) as info:
            evaluate(
                lower([[make_inst(Op.LOAD, Reg.A, 1)]], config=byte_config)
                .replace("A.readArray mem 1", "A.readArray mem 300")
            )
        assert info.value.code == "HSL-5002"
        assert info.value.pc == 0

    def test_unbound_name_faults(self):
        code = lower([[make_inst(Op.PUTC, src=Reg.A)]]).replace("putc a", "putc a7")
        with pytest.raises(EvaluationError, match="unbound name a7"):
            evaluate(code)

    def test_accepts_parsed_program(self):
        program = parse_program(lower([[make_inst(Op.PUTC, src=66)]]))
        assert evaluate(program).text == "B"
