"""
DCPU Two-Pass Assembler.

Assembles DCPU mnemonic source into the 16-bit word stream the machine
executes.

Input:  Assembly text
Output: Program (words + label table), raw little-endian binary, listing

Source format:
  ; comment to end of line
  :label  SET A, 0x10        ; label declares the current word address
          ADD [A], B
          JSR label          ; extended form, one operand

Operand forms:
  A B C X Y Z I J          register                     (no extra word)
  [A] .. [J]               memory at register           (no extra word)
  POP PEEK PUSH SP PC O    stack / control keywords     (no extra word)
  0x1F                     immediate value              (+1 word)
  label                    immediate label address      (+1 word)
  [0x1000] [label]         memory at address            (+1 word)
  [0x10+A] [label+A]       memory at address + register (+1 word)

How the two-pass algorithm works:
  Pass 1: Scan all lines, record each label at the current word counter.
          Every operand's size is known from its spelling alone, so the
          counter is exact before any label value is needed.
  Pass 2: Encode each instruction: one instruction word, then the trailing
          words of operand a, then operand b. Labels resolve to addresses
          from the pass-1 table.

The first error aborts assembly; there is no partial output.
"""

from __future__ import annotations
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple
from dataclasses import dataclass, field
import logging
import re
import struct

__all__ = ['Assembler', 'CompileError', 'Program', 'assemble',
           'assemble_to_binary', 'load_binary_words']

log = logging.getLogger(__name__)

WORD_MASK = 0xFFFF
A_SHIFT = 4
B_SHIFT = 10


class CompileError(Exception):
    """Raised on the first assembly error."""
    def __init__(self, message: str, line_num: int = 0, token: str = "",
                 line_text: str = ""):
        self.line_num = line_num
        self.token = token
        self.line_text = line_text
        if token:
            message = f"{message}: '{token}'"
        super().__init__(f"Line {line_num}: {message}" if line_num else message)


# ──────────────────────────────────────────────
# Mnemonic and operand tables
# ──────────────────────────────────────────────

# Binary form: mnemonic -> 4-bit opcode (two operands)
OPCODES: Dict[str, int] = {
    'SET': 0x1, 'ADD': 0x2, 'SUB': 0x3, 'MUL': 0x4,
    'DIV': 0x5, 'MOD': 0x6, 'SHL': 0x7, 'SHR': 0x8,
    'AND': 0x9, 'BOR': 0xA, 'XOR': 0xB,
    'IFE': 0xC, 'IFN': 0xD, 'IFG': 0xE, 'IFB': 0xF,
}

# Extended form (opcode 0): mnemonic -> a-field selector (one operand)
SPECIAL_OPCODES: Dict[str, int] = {
    'JSR': 0x01,
}

REGISTERS = ('A', 'B', 'C', 'X', 'Y', 'Z', 'I', 'J')

OPERANDS: Dict[str, int] = {}
for _i, _name in enumerate(REGISTERS):
    OPERANDS[_name] = 0x00 + _i
    OPERANDS[f'[{_name}]'] = 0x08 + _i
OPERANDS.update({
    'POP': 0x18, 'PEEK': 0x19, 'PUSH': 0x1A,
    'SP': 0x1B, 'PC': 0x1C, 'O': 0x1D,
})

NEXT_WORD_INDEXED = 0x10   # + register index
NEXT_WORD_ADDRESS = 0x1E
NEXT_WORD_LITERAL = 0x1F

_LABEL_DECL = re.compile(r'^:(\S*)\s*(.*)$')
_LABEL_NAME = re.compile(r'^\w+$')
_HEX = re.compile(r'^0[xX]([0-9a-fA-F]+)$')


# ──────────────────────────────────────────────
# Source lines
# ──────────────────────────────────────────────

@dataclass
class AsmLine:
    """Parsed assembly source line."""
    label: Optional[str] = None
    mnemonic: Optional[str] = None
    operands: List[str] = field(default_factory=list)
    line_num: int = 0
    raw: str = ""


def _parse_line(line: str, line_num: int) -> AsmLine:
    """Parse one line of assembly into label, mnemonic and operand tokens."""
    result = AsmLine(line_num=line_num, raw=line)

    text = line.split(';', 1)[0]
    text = ' '.join(text.split())
    if not text:
        return result

    if text.startswith(':'):
        match = _LABEL_DECL.match(text)
        name = match.group(1)
        if not _LABEL_NAME.match(name):
            raise CompileError("Invalid label", line_num, text.split(' ', 1)[0], line)
        result.label = name
        text = match.group(2)
        if not text:
            return result

    parts = text.split(' ', 1)
    result.mnemonic = parts[0].upper()
    if len(parts) > 1:
        result.operands = [re.sub(r'\s+', '', tok) for tok in parts[1].split(',')]
        for tok in result.operands:
            if not tok:
                raise CompileError("Empty operand", line_num, parts[1], line)

    return result


# ──────────────────────────────────────────────
# Operand analysis
# ──────────────────────────────────────────────

def _parse_hex(text: str) -> Optional[int]:
    match = _HEX.match(text)
    if match is None:
        return None
    return int(match.group(1), 16) & WORD_MASK


def _operand_size(token: str) -> int:
    """Trailing words an operand needs; known from its spelling alone."""
    return 0 if token.upper() in OPERANDS else 1


def _split_indexed(inner: str) -> Optional[Tuple[str, int]]:
    """Split 'base+R' / 'R+base' into (base, register index)."""
    if '+' not in inner:
        return None
    left, right = inner.split('+', 1)
    if right.upper() in REGISTERS:
        return left, REGISTERS.index(right.upper())
    if left.upper() in REGISTERS:
        return right, REGISTERS.index(left.upper())
    return None


def _encode_operand(token: str, symbols: Mapping[str, int],
                    line: AsmLine) -> Tuple[int, Optional[int]]:
    """Resolve an operand token to (6-bit code, trailing word or None).

    Precedence: keyword table, hex literal, label, bracketed address.
    """
    upper = token.upper()
    if upper in OPERANDS:
        return OPERANDS[upper], None

    value = _parse_hex(token)
    if value is not None:
        return NEXT_WORD_LITERAL, value

    if token in symbols:
        return NEXT_WORD_LITERAL, symbols[token] & WORD_MASK

    if token.startswith('[') and token.endswith(']'):
        inner = token[1:-1]
        indexed = _split_indexed(inner)
        if indexed is not None:
            base, reg = indexed
            return NEXT_WORD_INDEXED + reg, _resolve_value(base, symbols, line, token)
        return NEXT_WORD_ADDRESS, _resolve_value(inner, symbols, line, token)

    raise CompileError("Operand not implemented", line.line_num, token, line.raw)


def _resolve_value(text: str, symbols: Mapping[str, int], line: AsmLine,
                   token: str) -> int:
    """Resolve a hex literal or label used inside brackets."""
    value = _parse_hex(text)
    if value is not None:
        return value
    if text in symbols:
        return symbols[text] & WORD_MASK
    raise CompileError("Operand not implemented", line.line_num, token, line.raw)


# ──────────────────────────────────────────────
# Program
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Program:
    """Assembler output: the word stream plus the label table."""
    words: Tuple[int, ...]
    labels: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))

    def __len__(self) -> int:
        return len(self.words)

    def to_binary(self) -> bytes:
        """Little-endian 16-bit words."""
        return struct.pack(f'<{len(self.words)}H', *self.words)


def load_binary_words(data: bytes) -> List[int]:
    """Inverse of Program.to_binary()."""
    if len(data) % 2:
        raise ValueError(f"Binary length {len(data)} is not a whole number of words")
    return list(struct.unpack(f'<{len(data) // 2}H', data))


# ──────────────────────────────────────────────
# The Assembler
# ──────────────────────────────────────────────

class Assembler:
    """Two-pass DCPU assembler.

    Usage:
        asm = Assembler()
        program = asm.assemble(source_text)
        listing = asm.get_listing()
    """

    def __init__(self):
        self.symbols: Dict[str, int] = {}     # label -> word address
        self.pc: int = 0                      # word-emission counter
        self.words: List[int] = []
        self._lines: List[AsmLine] = []
        self._emitted: List[Tuple[AsmLine, int, List[int]]] = []

    def assemble(self, source: str) -> Program:
        """Assemble source text into a Program."""
        self.symbols = {}
        self.words = []
        self._emitted = []
        self._lines = [_parse_line(line, i)
                       for i, line in enumerate(source.split('\n'), 1)]

        self._pass1()
        log.debug("Pass 1: %d labels, %d words", len(self.symbols), self.pc)
        expected = self.pc

        self._pass2()
        if self.pc != expected:
            raise CompileError(
                f"Internal error: pass 2 emitted {self.pc} words, pass 1 counted {expected}")
        log.debug("Pass 2: emitted %d words", len(self.words))

        return Program(tuple(self.words), MappingProxyType(dict(self.symbols)))

    def _pass1(self):
        """Pass 1: record each label at the current word counter."""
        self.pc = 0
        for line in self._lines:
            if line.label is not None:
                if line.label in self.symbols:
                    raise CompileError("Duplicate label", line.line_num,
                                       line.label, line.raw)
                if line.label.upper() in OPERANDS:
                    raise CompileError("Label shadows a register or keyword",
                                       line.line_num, line.label, line.raw)
                if _HEX.match(line.label):
                    raise CompileError("Label shadows a hex literal",
                                       line.line_num, line.label, line.raw)
                self.symbols[line.label] = self.pc

            if line.mnemonic is not None:
                self.pc += 1 + sum(_operand_size(tok) for tok in line.operands)

    def _pass2(self):
        """Pass 2: encode every instruction with the complete label table."""
        self.pc = 0
        for line in self._lines:
            if line.mnemonic is None:
                continue
            encoded = self._encode(line)
            self._emitted.append((line, self.pc, encoded))
            self.words.extend(encoded)
            self.pc += len(encoded)

    def _encode(self, line: AsmLine) -> List[int]:
        """Encode one instruction line: instruction word then trailing words."""
        mnem = line.mnemonic

        if mnem in OPCODES:
            self._expect_operands(line, 2)
            a, a_word = _encode_operand(line.operands[0], self.symbols, line)
            b, b_word = _encode_operand(line.operands[1], self.symbols, line)
            word = OPCODES[mnem] | (a << A_SHIFT) | (b << B_SHIFT)
            trailing = [w for w in (a_word, b_word) if w is not None]
            return [word] + trailing

        if mnem in SPECIAL_OPCODES:
            self._expect_operands(line, 1)
            b, b_word = _encode_operand(line.operands[0], self.symbols, line)
            word = (SPECIAL_OPCODES[mnem] << A_SHIFT) | (b << B_SHIFT)
            return [word] if b_word is None else [word, b_word]

        raise CompileError("Unknown mnemonic", line.line_num, mnem, line.raw)

    @staticmethod
    def _expect_operands(line: AsmLine, count: int):
        if len(line.operands) != count:
            raise CompileError(
                f"{line.mnemonic} expects {count} operand{'s' if count > 1 else ''}, "
                f"got {len(line.operands)}", line.line_num, line.raw.strip(), line.raw)

    def get_listing(self) -> str:
        """Return a human-readable listing showing address, words, and source."""
        lines = [f"{'ADDR':>5}  {'WORDS':<14}  SOURCE", "-" * 60]
        emitted = {line.line_num: (addr, words) for line, addr, words in self._emitted}

        for asmline in self._lines:
            raw = asmline.raw.strip()
            if asmline.line_num in emitted:
                addr, words = emitted[asmline.line_num]
                hex_str = ' '.join(f'{w:04X}' for w in words)
                lines.append(f"${addr:04X}  {hex_str:<14}  {raw}")
            elif raw:
                lines.append(f"{'':5}  {'':14}  {raw}")

        return '\n'.join(lines)


# ──────────────────────────────────────────────
# Convenience functions
# ──────────────────────────────────────────────

def assemble(source: str) -> Program:
    """Assemble source text, return the Program."""
    return Assembler().assemble(source)


def assemble_to_binary(source: str) -> bytes:
    """Assemble source text, return little-endian 16-bit words."""
    return assemble(source).to_binary()
