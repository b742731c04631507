"""
DCPU Emulator — Instruction Decoder / Opcode Tables

Instruction word layout (16 bits):

    bbbbbb aaaaaa oooo
    15  10 9    4 3  0

  o — 4-bit opcode. 0x0 selects the extended form, 0x1–0xF are binary ops.
  a — 6-bit operand code (destination of binary ops; selector of extended ops)
  b — 6-bit operand code (source of binary ops; the sole operand of extended ops)

Operand codes:
  0x00–0x07  register          0x18  POP         0x1C  PC
  0x08–0x0F  [register]        0x19  PEEK        0x1D  OV
  0x10–0x17  [next word + reg] 0x1A  PUSH        0x1E  [next word]
                               0x1B  SP          0x1F  next word (immediate)
  0x20–0x3F  short literal 0–31

This table must agree with the mnemonic table in dcpu_asm/assembler.py;
tests/test_asm_smoke.py cross-checks the two.
"""

from typing import List, NamedTuple, Optional, Sequence

from ..config import HALT_WORD, LITERAL_BASE, REGISTER_NAMES, WORD_MASK

# ──────────────────────────────────────────────
# Field layout
# ──────────────────────────────────────────────

OP_MASK = 0xF
A_MASK = 0x3F
B_MASK = 0x3F
A_SHIFT = 4
B_SHIFT = 10


class MachineError(Exception):
    """Base class for fatal machine faults."""


class IllegalOpcode(MachineError):
    """Raised when an instruction word does not decode to a defined operation."""
    def __init__(self, word: int, pc: int, detail: str = ""):
        self.word = word
        self.pc = pc
        message = f"Illegal opcode {word:04X} at ${pc:04X}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


# ──────────────────────────────────────────────
# Opcode tables
# ──────────────────────────────────────────────
# Binary form: opcode -> mnemonic

OPCODES = {
    0x1: 'SET',
    0x2: 'ADD',
    0x3: 'SUB',
    0x4: 'MUL',
    0x5: 'DIV',
    0x6: 'MOD',
    0x7: 'SHL',
    0x8: 'SHR',
    0x9: 'AND',
    0xA: 'BOR',
    0xB: 'XOR',
    0xC: 'IFE',
    0xD: 'IFN',
    0xE: 'IFG',
    0xF: 'IFB',
}

# Extended form (opcode 0): a-field selector -> mnemonic
EXTENDED_OPCODES = {
    0x01: 'JSR',
}

# Conditionals never write their destination.
CONDITIONAL_OPCODES = frozenset({0xC, 0xD, 0xE, 0xF})

# Operand codes that consume the word following the instruction.
NEXT_WORD_CODES = frozenset(range(0x10, 0x18)) | {0x1E, 0x1F}

STACK_OPERANDS = {
    0x18: 'POP',
    0x19: 'PEEK',
    0x1A: 'PUSH',
    0x1B: 'SP',
    0x1C: 'PC',
    0x1D: 'O',
}


class Instruction(NamedTuple):
    """Decoded instruction fields."""
    opcode: int
    a: int
    b: int

    @property
    def extended(self) -> bool:
        return self.opcode == 0


def decode_word(word: int) -> Instruction:
    """Split an instruction word into its opcode, a and b fields."""
    return Instruction(word & OP_MASK,
                       (word >> A_SHIFT) & A_MASK,
                       (word >> B_SHIFT) & B_MASK)


def encode_word(opcode: int, a: int, b: int) -> int:
    """Pack opcode/a/b fields into an instruction word."""
    return ((opcode & OP_MASK)
            | ((a & A_MASK) << A_SHIFT)
            | ((b & B_MASK) << B_SHIFT))


def mnemonic_for(instr: Instruction) -> Optional[str]:
    """Return the mnemonic for a decoded instruction, or None if undefined."""
    if instr.extended:
        return EXTENDED_OPCODES.get(instr.a)
    return OPCODES.get(instr.opcode)


def operand_words(code: int) -> int:
    """Number of trailing words an operand code consumes (0 or 1)."""
    return 1 if code in NEXT_WORD_CODES else 0


def instruction_length(word: int) -> int:
    """Total length in words of the instruction starting with word."""
    instr = decode_word(word)
    if instr.extended:
        return 1 + operand_words(instr.b)
    return 1 + operand_words(instr.a) + operand_words(instr.b)


# ──────────────────────────────────────────────
# Disassembly
# ──────────────────────────────────────────────

def format_operand(code: int, next_word: Optional[int] = None) -> str:
    """Render an operand code in assembler syntax."""
    if code < 0x08:
        return REGISTER_NAMES[code]
    if code < 0x10:
        return f"[{REGISTER_NAMES[code - 0x08]}]"
    if code < 0x18:
        return f"[0x{next_word or 0:04X}+{REGISTER_NAMES[code - 0x10]}]"
    if code in STACK_OPERANDS:
        return STACK_OPERANDS[code]
    if code == 0x1E:
        return f"[0x{next_word or 0:04X}]"
    if code == 0x1F:
        return f"0x{next_word or 0:04X}"
    return f"0x{code - LITERAL_BASE:02X}"


def disassemble(words: Sequence[int], base_addr: int = 0) -> List[str]:
    """Disassemble a word stream into formatted lines.

    Each line is '$ADDR  WORDS  MNEMONIC OPERANDS'. Undefined words and
    truncated instructions are emitted as DAT lines.
    """
    lines = []
    i = 0
    while i < len(words):
        addr = (base_addr + i) & WORD_MASK
        word = words[i]
        if word == HALT_WORD:
            lines.append(f"${addr:04X}  {'----':14s}  HALT")
            i += 1
            continue

        instr = decode_word(word)
        mnem = mnemonic_for(instr)
        length = instruction_length(word)
        if mnem is None or i + length > len(words):
            note = "  ; truncated" if mnem else ""
            lines.append(f"${addr:04X}  {word:04X}{'':10s}  DAT 0x{word:04X}{note}")
            i += 1
            continue

        tail = list(words[i + 1:i + length])
        if instr.extended:
            operands = format_operand(instr.b, tail[0] if tail else None)
        else:
            a_word = tail.pop(0) if operand_words(instr.a) else None
            b_word = tail.pop(0) if operand_words(instr.b) else None
            operands = (f"{format_operand(instr.a, a_word)}, "
                        f"{format_operand(instr.b, b_word)}")
        raw = ' '.join(f'{w:04X}' for w in words[i:i + length])
        lines.append(f"${addr:04X}  {raw:14s}  {mnem} {operands}")
        i += length

    return lines
