"""
Operand Resolver Tests

Each operand code maps to a Location; codes that consume the next word
advance PC, POP/PUSH move SP. Literal operands are read-only.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from dcpu_emulator.cpu.regs import Registers
from dcpu_emulator.cpu.operands import (
    Location, Storage, IllegalWriteTarget,
    resolve_operand, read_location, write_location,
)
from dcpu_emulator.mem.memory import Memory, LITERAL_POOL
from dcpu_emulator.config import HALT_WORD


@pytest.fixture
def state():
    regs = Registers()
    mem = Memory()
    return regs, mem


class TestResolveTable:
    """Every row of the operand code table."""

    def test_registers(self, state):
        regs, mem = state
        for code in range(0x08):
            assert resolve_operand(code, regs, mem) == Location(Storage.REGISTER, code)
        assert regs.PC == 0

    def test_register_indirect(self, state):
        regs, mem = state
        regs.set('C', 0x1234)
        assert resolve_operand(0x0A, regs, mem) == Location(Storage.MEMORY, 0x1234)

    def test_next_word_plus_register(self, state):
        regs, mem = state
        regs.PC = 0x10
        mem.write(0x10, 0x0100)
        regs.set('J', 0x0005)
        loc = resolve_operand(0x17, regs, mem)
        assert loc == Location(Storage.MEMORY, 0x0105)
        assert regs.PC == 0x11

    def test_next_word_plus_register_wraps(self, state):
        regs, mem = state
        mem.write(0, 0xFFFF)
        regs.set('A', 2)
        assert resolve_operand(0x10, regs, mem) == Location(Storage.MEMORY, 0x0001)

    def test_pop(self, state):
        regs, mem = state
        regs.SP = 0xFFFE
        assert resolve_operand(0x18, regs, mem) == Location(Storage.MEMORY, 0xFFFE)
        assert regs.SP == 0xFFFF

    def test_peek(self, state):
        regs, mem = state
        regs.SP = 0xFFFE
        assert resolve_operand(0x19, regs, mem) == Location(Storage.MEMORY, 0xFFFE)
        assert regs.SP == 0xFFFE

    def test_push_predecrements_and_wraps(self, state):
        regs, mem = state
        assert regs.SP == 0
        assert resolve_operand(0x1A, regs, mem) == Location(Storage.MEMORY, 0xFFFF)
        assert regs.SP == 0xFFFF

    def test_control_registers(self, state):
        regs, mem = state
        assert resolve_operand(0x1B, regs, mem).storage is Storage.SP
        assert resolve_operand(0x1C, regs, mem).storage is Storage.PC
        assert resolve_operand(0x1D, regs, mem).storage is Storage.OV

    def test_address_literal(self, state):
        regs, mem = state
        mem.write(0, 0x8000)
        assert resolve_operand(0x1E, regs, mem) == Location(Storage.MEMORY, 0x8000)
        assert regs.PC == 1

    def test_immediate(self, state):
        regs, mem = state
        mem.write(0, 0xBEEF)
        loc = resolve_operand(0x1F, regs, mem)
        assert loc == Location(Storage.IMMEDIATE, 0xBEEF)
        assert read_location(loc, regs, mem) == 0xBEEF
        assert regs.PC == 1

    def test_short_literals(self, state):
        regs, mem = state
        for code in range(0x20, 0x40):
            loc = resolve_operand(code, regs, mem)
            assert loc.storage is Storage.LITERAL
            assert read_location(loc, regs, mem) == code - 0x20
        assert regs.PC == 0

    def test_code_out_of_range(self, state):
        regs, mem = state
        with pytest.raises(ValueError):
            resolve_operand(0x40, regs, mem)

    def test_a_then_b_consume_words_in_order(self, state):
        regs, mem = state
        mem.write(0, 0x1111)
        mem.write(1, 0x2222)
        a = resolve_operand(0x1E, regs, mem)
        b = resolve_operand(0x1F, regs, mem)
        assert a.index == 0x1111
        assert b.index == 0x2222
        assert regs.PC == 2


class TestReadWrite:
    """Reading and writing resolved locations."""

    def test_write_masks_to_16_bits(self, state):
        regs, mem = state
        write_location(Location(Storage.REGISTER, 3), 0x12345, regs, mem)
        assert regs.get('X') == 0x2345
        write_location(Location(Storage.MEMORY, 0x4000), -1, regs, mem)
        assert mem.read(0x4000) == 0xFFFF

    def test_write_control_registers(self, state):
        regs, mem = state
        write_location(Location(Storage.SP), 0x10000, regs, mem)
        write_location(Location(Storage.PC), 0x0042, regs, mem)
        write_location(Location(Storage.OV), 0x0007, regs, mem)
        assert (regs.SP, regs.PC, regs.OV) == (0x0000, 0x0042, 0x0007)

    def test_literal_write_rejected(self, state):
        regs, mem = state
        loc = Location(Storage.LITERAL, 5)
        with pytest.raises(IllegalWriteTarget):
            write_location(loc, 9, regs, mem)
        assert LITERAL_POOL[5] == 5

    def test_immediate_write_rejected(self, state):
        regs, mem = state
        with pytest.raises(IllegalWriteTarget):
            write_location(Location(Storage.IMMEDIATE, 5), 9, regs, mem)

    def test_only_writable_locations_accept_stores(self, state):
        regs, mem = state
        for storage in Storage:
            loc = Location(storage, 1)
            if loc.writable:
                write_location(loc, 0x00FF, regs, mem)
                assert read_location(loc, regs, mem) == 0x00FF
            else:
                with pytest.raises(IllegalWriteTarget):
                    write_location(loc, 0x00FF, regs, mem)
        assert {s for s in Storage if not Location(s).writable} == \
            {Storage.LITERAL, Storage.IMMEDIATE}

    def test_literal_pool_is_immutable(self):
        assert LITERAL_POOL == tuple(range(32))
        with pytest.raises(TypeError):
            LITERAL_POOL[0] = 1


class TestMemory:
    """Sentinel cells, bulk loading and the dump format."""

    def test_sentinel_fetch_is_raw_read_is_masked(self):
        mem = Memory()
        mem.place_sentinel(0x0043)
        assert mem.fetch(0x0043) == HALT_WORD
        assert mem.read(0x0043) == 0

    def test_load_rejects_non_words(self):
        mem = Memory()
        with pytest.raises(ValueError):
            mem.load_words([1, -1])
        assert mem.load_words([HALT_WORD]) == 1

    def test_load_words_wraps_and_returns_end(self):
        mem = Memory()
        assert mem.load_words([1, 2, 3], 0xFFFE) == 0x0001
        assert (mem.read(0xFFFE), mem.read(0xFFFF), mem.read(0x0000)) == (1, 2, 3)

    def test_hexdump(self):
        mem = Memory()
        mem.load_words(range(1, 11), 0x0200)
        assert mem.hexdump(0x0200, 10) == (
            "0200  0001 0002 0003 0004 0005 0006 0007 0008\n"
            "0208  0009 000A")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
