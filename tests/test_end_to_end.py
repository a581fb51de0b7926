# tests/test_end_to_end.py
"""
End-to-end tests: IR blocks → generate → parse the emitted Haskell →
evaluate → compare output, registers and memory with IR semantics.
"""

import pytest

from tests.conftest import UINT_MAX, Op, Reg, make_inst, run_blocks


class TestArithmetic:

    def test_mov_then_add(self):
        result = run_blocks([[make_inst(Op.MOV, Reg.A, 5), make_inst(Op.ADD, Reg.A, 3)]])
        assert result.registers[Reg.A] == 8

    def test_add_wraps_around(self):
        result = run_blocks([[make_inst(Op.ADD, Reg.A, -1)]])
        assert result.registers[Reg.A] == UINT_MAX

    def test_sub_below_zero_wraps(self):
        result = run_blocks([[make_inst(Op.SUB, Reg.B, 1)]])
        assert result.registers[Reg.B] == UINT_MAX

    def test_wraparound_follows_word_size(self, byte_config):
        result = run_blocks([[make_inst(Op.ADD, Reg.A, -1)]], config=byte_config)
        assert result.registers[Reg.A] == 255
        result = run_blocks(
            [[make_inst(Op.MOV, Reg.A, 250), make_inst(Op.ADD, Reg.A, 10)]],
            config=byte_config,
        )
        assert result.registers[Reg.A] == 4

    def test_reads_see_nearest_prior_write(self):
        result = run_blocks([[make_inst(Op.MOV, Reg.B, 1), make_inst(Op.ADD, Reg.B, 2)]])
        assert result.registers == (0, 3, 0, 0, 0, 0)

    def test_chain_through_several_registers(self):
        result = run_blocks([[
            make_inst(Op.MOV, Reg.A, 2),
            make_inst(Op.ADD, Reg.A, Reg.A),
            make_inst(Op.MOV, Reg.C, Reg.A),
            make_inst(Op.ADD, Reg.C, 1),
            make_inst(Op.SUB, Reg.A, Reg.C),
        ]])
        assert result.registers[:3] == (UINT_MAX, 0, 5)

    def test_registers_survive_block_boundaries(self):
        result = run_blocks([
            [make_inst(Op.ADD, Reg.A, 1), make_inst(Op.ADD, Reg.A, 1)],
            [make_inst(Op.ADD, Reg.A, 1)],
        ])
        assert result.registers[Reg.A] == 3
        assert result.pc == 2


class TestComparisons:

    @pytest.mark.parametrize("op, left, right, expected", [
        (Op.EQ, 3, 3, 1),
        (Op.EQ, 3, 4, 0),
        (Op.NE, 3, 4, 1),
        (Op.LT, 3, 4, 1),
        (Op.GT, 3, 4, 0),
        (Op.LE, 4, 4, 1),
        (Op.GE, 3, 4, 0),
    ])
    def test_compare_yields_zero_or_one(self, op, left, right, expected):
        result = run_blocks([[make_inst(Op.MOV, Reg.A, left), make_inst(op, Reg.A, right)]])
        assert result.registers[Reg.A] == expected

    def test_comparisons_are_unsigned(self):
        result = run_blocks([[make_inst(Op.MOV, Reg.A, -1), make_inst(Op.GT, Reg.A, 0)]])
        assert result.registers[Reg.A] == 1


class TestControlFlow:

    def _branch(self, left, right):
        return run_blocks([
            [make_inst(Op.MOV, Reg.A, left), make_inst(Op.JGT, Reg.A, right, jmp=2)],
            [make_inst(Op.PUTC, src=ord("F")), make_inst(Op.EXIT)],
            [make_inst(Op.PUTC, src=ord("T")), make_inst(Op.EXIT)],
        ])

    def test_branch_taken(self):
        result = self._branch(5, 3)
        assert result.text == "T"
        assert result.exited

    def test_branch_not_taken(self):
        assert self._branch(3, 5).text == "F"

    def test_digit_loop(self):
        result = run_blocks([
            [make_inst(Op.MOV, Reg.A, ord("0"))],
            [
                make_inst(Op.PUTC, src=Reg.A),
                make_inst(Op.ADD, Reg.A, 1),
                make_inst(Op.JLT, Reg.A, ord("9") + 1, jmp=1),
            ],
            [make_inst(Op.EXIT)],
        ])
        assert result.text == "0123456789"
        assert result.exited

    def test_indirect_jump(self):
        result = run_blocks([
            [make_inst(Op.MOV, Reg.B, 2), make_inst(Op.JMP, jmp=Reg.B)],
            [make_inst(Op.PUTC, src=ord("x"))],
            [make_inst(Op.PUTC, src=ord("y"))],
        ])
        assert result.text == "y"

    def test_jump_past_last_block_returns(self):
        result = run_blocks([[make_inst(Op.JMP, jmp=99)]])
        assert not result.exited
        assert result.pc == 99


class TestIO:

    ECHO = [
        [make_inst(Op.GETC, Reg.A), make_inst(Op.JEQ, Reg.A, 0, jmp=2)],
        [make_inst(Op.PUTC, src=Reg.A), make_inst(Op.JMP, jmp=0)],
        [make_inst(Op.EXIT)],
    ]

    def test_echo(self):
        result = run_blocks(self.ECHO, stdin=b"hi")
        assert result.output == b"hi"
        assert result.exited

    def test_echo_empty_input(self):
        assert run_blocks(self.ECHO).output == b""

    def test_echo_binary(self):
        assert run_blocks(self.ECHO, stdin=b"\x01\x80\xfe").output == b"\x01\x80\xfe"


class TestMemory:

    @pytest.mark.parametrize("address, expected", [(0, 1), (1, 2), (2, 3), (3, 0)])
    def test_data_segment_decodes(self, address, expected):
        result = run_blocks([[make_inst(Op.LOAD, Reg.A, address)]], data=[1, 2, 3])
        assert result.registers[Reg.A] == expected
        assert result.memory.read(address) == expected

    def test_load_from_data_segment(self):
        result = run_blocks([[make_inst(Op.LOAD, Reg.A, 2)]], data=[1, 2, 3])
        assert result.registers[Reg.A] == 3
        assert result.memory.read(1) == 2

    def test_load_past_data_is_zero(self):
        result = run_blocks([[make_inst(Op.LOAD, Reg.A, 1000)]], data=[1, 2, 3])
        assert result.registers[Reg.A] == 0

    def test_store_then_load(self):
        result = run_blocks([[
            make_inst(Op.MOV, Reg.A, 42),
            make_inst(Op.STORE, Reg.A, 7),
            make_inst(Op.LOAD, Reg.B, 7),
        ]])
        assert result.memory.snapshot() == {7: 42}
        assert result.registers[Reg.B] == 42

    def test_stack_push_pop(self):
        result = run_blocks([
            [
                make_inst(Op.MOV, Reg.SP, 100),
                make_inst(Op.SUB, Reg.SP, 1),
                make_inst(Op.MOV, Reg.A, 9),
                make_inst(Op.STORE, Reg.A, Reg.SP),
            ],
            [
                make_inst(Op.LOAD, Reg.B, Reg.SP),
                make_inst(Op.ADD, Reg.SP, 1),
            ],
        ])
        assert result.registers[Reg.B] == 9
        assert result.registers[Reg.SP] == 100
        assert result.memory.snapshot() == {99: 9}

    def test_copy_loop(self):
        # copy data[0..3] to 10..13
        result = run_blocks(
            [
                [make_inst(Op.MOV, Reg.C, 0)],
                [
                    make_inst(Op.LOAD, Reg.A, Reg.C),
                    make_inst(Op.MOV, Reg.B, Reg.C),
                    make_inst(Op.ADD, Reg.B, 10),
                    make_inst(Op.STORE, Reg.A, Reg.B),
                    make_inst(Op.ADD, Reg.C, 1),
                    make_inst(Op.JLT, Reg.C, 4, jmp=1),
                ],
                [make_inst(Op.EXIT)],
            ],
            data=[5, 6, 7, 8],
        )
        snapshot = result.memory.snapshot()
        assert [snapshot[a] for a in range(10, 14)] == [5, 6, 7, 8]
