"""
Assembler Tests for dcpu-kit.

Tests the two-pass assembler against hand-encoded instruction words.
Word layout: bbbbbb aaaaaa oooo (b in bits 10-15, a in 4-9, opcode in 0-3).
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from dcpu_asm.assembler import (
    Assembler, CompileError, Program, OPCODES, SPECIAL_OPCODES, OPERANDS,
    assemble, assemble_to_binary, load_binary_words,
)
from dcpu_emulator.cpu import decoder


def _words(source: str) -> list:
    """Assemble source and return the word list."""
    return list(assemble(source).words)


class TestOpcodeEncoding:
    """Verify individual instruction encodings."""

    def test_register_to_register(self):
        """SET B, A → a=1, b=0"""
        assert _words("SET B, A") == [0x0011]

    def test_binary_mnemonics(self):
        """Every binary mnemonic lands in the low 4 bits."""
        for mnem, opcode in OPCODES.items():
            assert _words(f"{mnem} A, B") == [opcode | (0x01 << 10)], mnem

    def test_indirect_register(self):
        """SET [A], B → a=0x08"""
        assert _words("SET [A], B") == [0x0481]

    def test_indirect_source(self):
        """ADD X, [J] → a=0x03, b=0x0F"""
        assert _words("ADD X, [J]") == [0x3C32]

    def test_stack_keywords(self):
        cases = [
            ("SET PUSH, POP", 0x61A1),
            ("SET PC, POP",   0x61C1),
            ("SET O, SP",     0x6DD1),
            ("IFE PEEK, C",   0x099C),
        ]
        for src, expected in cases:
            assert _words(src) == [expected], src

    def test_hex_literal_is_next_word(self):
        """SET A, 0x5 → b=0x1F, trailing word 5"""
        assert _words("SET A, 0x5") == [0x7C01, 0x0005]

    def test_hex_literal_masked(self):
        """Literals wider than 16 bits keep only the low word."""
        assert _words("SET A, 0x12345") == [0x7C01, 0x2345]

    def test_both_operands_trailing_a_first(self):
        """SET [0x1000], 0x20 → a's word precedes b's word"""
        assert _words("SET [0x1000], 0x20") == [0x7DE1, 0x1000, 0x0020]

    def test_indexed_next_word(self):
        """SET A, [0x10+B] → b=0x11, trailing offset"""
        assert _words("SET A, [0x10+B]") == [0x4401, 0x0010]
        assert _words("SET A, [B+0x10]") == [0x4401, 0x0010]

    def test_jsr_register(self):
        """JSR A → opcode 0, selector 1, b=0"""
        assert _words("JSR A") == [0x0010]

    def test_case_insensitive_mnemonics_and_registers(self):
        assert _words("set b, a") == _words("SET B, A")
        assert _words("set [a], pop") == _words("SET [A], POP")

    def test_tables_agree_with_decoder(self):
        """Assembler mnemonic table matches the emulator's opcode table."""
        assert {v: k for k, v in OPCODES.items()} == decoder.OPCODES
        assert {v: k for k, v in SPECIAL_OPCODES.items()} == decoder.EXTENDED_OPCODES
        for name, code in OPERANDS.items():
            if name in decoder.STACK_OPERANDS.values():
                assert decoder.STACK_OPERANDS[code] == name


class TestSourceFormat:
    """Comments, whitespace and labels."""

    def test_comments_stripped(self):
        src = "; header comment\nSET A, B ; trailing comment\n;"
        assert _words(src) == [0x0401]

    def test_whitespace_collapsed(self):
        assert _words("\t SET   A ,\tB   ") == [0x0401]
        assert _words("SET [ A ], B") == [0x0481]

    def test_blank_lines_ignored(self):
        assert _words("\n\nSET A, B\n\n") == [0x0401]

    def test_label_on_own_line(self):
        prog = assemble("SET A, 0x1\n:here\nSET B, A")
        assert prog.labels["here"] == 2

    def test_label_with_instruction(self):
        prog = assemble("SET A, B\n:loop ADD A, 0x1")
        assert prog.labels["loop"] == 1
        assert prog.words == (0x0401, 0x7C02, 0x0001)


class TestLabels:
    """Two-pass label resolution."""

    def test_forward_reference(self):
        src = """
                SET PC, end
                SET A, 0x1
        :end    SET B, 0x2
        """
        assert _words(src) == [0x7DC1, 0x0004, 0x7C01, 0x0001, 0x7C11, 0x0002]

    def test_backward_reference(self):
        src = """
        :top    ADD A, 0x1
                SET PC, top
        """
        assert _words(src) == [0x7C02, 0x0001, 0x7DC1, 0x0000]

    def test_label_address_not_ordinal(self):
        """A label far into the program encodes its word address."""
        body = "\n".join(["SET A, 0x1"] * 20)
        src = f":first SET B, A\n{body}\n:second SET C, A\nSET PC, second"
        prog = assemble(src)
        assert prog.labels["second"] == 41
        assert prog.words[-2:] == (0x7DC1, 41)

    def test_jsr_forward_label(self):
        src = "JSR sub\nSET A, 0x1\n:sub SET B, 0x2"
        assert _words(src)[:2] == [0x7C10, 0x0004]

    def test_bracketed_label(self):
        src = "SET A, [data]\nSET B, [data+I]\n:data SET C, A"
        assert _words(src) == [0x7801, 0x0004, 0x5811, 0x0004, 0x0021]

    def test_labels_keep_declaration_order(self):
        prog = assemble(":zeta SET A, B\n:alpha SET A, B\n:mid SET A, B")
        assert list(prog.labels) == ["zeta", "alpha", "mid"]

    def test_labels_case_sensitive(self):
        prog = assemble(":Loop SET A, B\n:loop SET A, B")
        assert prog.labels == {"Loop": 0, "loop": 1}


class TestErrors:
    """Every error aborts with a CompileError naming line and token."""

    def test_duplicate_label(self):
        asm = Assembler()
        with pytest.raises(CompileError, match="Duplicate label") as exc:
            asm.assemble(":dup SET A, B\n:dup SET B, A")
        assert exc.value.line_num == 2
        assert exc.value.token == "dup"
        assert asm.words == []

    def test_unknown_mnemonic(self):
        with pytest.raises(CompileError, match="Unknown mnemonic") as exc:
            assemble("SET A, B\nFOO A, B")
        assert exc.value.line_num == 2
        assert "FOO" in str(exc.value)

    def test_unknown_operand(self):
        with pytest.raises(CompileError, match="Operand not implemented") as exc:
            assemble("SET A, nowhere")
        assert exc.value.token == "nowhere"

    def test_bad_hex_literal(self):
        with pytest.raises(CompileError, match="Operand not implemented"):
            assemble("SET A, 0xZZ")

    def test_unknown_bracketed_label(self):
        with pytest.raises(CompileError, match="Operand not implemented"):
            assemble("SET A, [missing+B]")

    def test_wrong_operand_count(self):
        with pytest.raises(CompileError, match="expects 2 operands"):
            assemble("SET A")
        with pytest.raises(CompileError, match="expects 1 operand"):
            assemble("JSR A, B")

    def test_empty_operand(self):
        with pytest.raises(CompileError, match="Empty operand"):
            assemble("SET A,")

    def test_invalid_label(self):
        with pytest.raises(CompileError, match="Invalid label"):
            assemble(": SET A, B")

    def test_label_shadowing_register(self):
        with pytest.raises(CompileError, match="shadows"):
            assemble(":pc SET A, B")

    def test_label_shadowing_hex_literal(self):
        """:0x10 could never be referenced; 0x10 always reads as a literal."""
        with pytest.raises(CompileError, match="hex literal") as exc:
            assemble(":0x10 SET A, B\nSET PC, 0x10")
        assert exc.value.line_num == 1
        assert exc.value.token == "0x10"

    def test_label_starting_with_digit_allowed(self):
        prog = assemble(":0loop SET A, B\nSET PC, 0loop")
        assert prog.labels["0loop"] == 0
        assert prog.words[-2:] == (0x7DC1, 0x0000)

    def test_first_error_wins(self):
        with pytest.raises(CompileError) as exc:
            assemble("BAD A, B\nWORSE A, B")
        assert exc.value.line_num == 1


class TestOutputs:
    """Program object, binary form and listing."""

    def test_program_is_immutable(self):
        prog = assemble(":start SET A, B")
        assert isinstance(prog, Program)
        assert isinstance(prog.words, tuple)
        with pytest.raises(TypeError):
            prog.labels["start"] = 5

    def test_binary_little_endian(self):
        assert assemble_to_binary("SET A, 0x1234") == b'\x01\x7C\x34\x12'

    def test_binary_round_trip(self):
        prog = assemble("SET A, 0x1234\nADD [A], B")
        assert load_binary_words(prog.to_binary()) == list(prog.words)

    def test_odd_binary_rejected(self):
        with pytest.raises(ValueError):
            load_binary_words(b'\x01\x02\x03')

    def test_listing(self):
        asm = Assembler()
        asm.assemble("; setup\n:start SET A, 0x5\nSET B, A")
        listing = asm.get_listing()
        assert "$0000  7C01 0005" in listing
        assert "$0002  0011" in listing
        assert "; setup" in listing


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
