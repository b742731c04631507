"""
DCPU Emulator — ALU Operations

Binary operations return (result, overflow):
  result    — already masked to 16 bits
  overflow  — new OV value, or None when the operation leaves OV alone

OV holds the high 16 bits of the untruncated result for
ADD/SUB/MUL/DIV/SHL/SHR. SUB of a larger value underflows to OV = $FFFF
(the high half of the negative true difference). A quotient or right
shift of 16-bit operands never exceeds 16 bits, so DIV and SHR clear OV.

Division and modulo by zero are defined as 0, never a fault.

Comparisons return True when the condition holds; the dispatcher arms
the skip flag when it does not.
"""

from ..config import WORD_MASK


def _high(value: int) -> int:
    return (value >> 16) & WORD_MASK


def set16(a: int, b: int) -> tuple:
    return (b & WORD_MASK, None)


def add16(a: int, b: int) -> tuple:
    """a + b. OV = carry out ($0001 or $0000)."""
    result = a + b
    return (result & WORD_MASK, _high(result))


def sub16(a: int, b: int) -> tuple:
    """a - b. OV = $FFFF on borrow, else $0000."""
    result = a - b
    return (result & WORD_MASK, _high(result))


def mul16(a: int, b: int) -> tuple:
    """a * b. OV = high word of the 32-bit product."""
    result = a * b
    return (result & WORD_MASK, _high(result))


def div16(a: int, b: int) -> tuple:
    """a // b, 0 when b == 0. OV = high word of the quotient."""
    if b == 0:
        return (0, 0)
    result = a // b
    return (result & WORD_MASK, _high(result))


def mod16(a: int, b: int) -> tuple:
    """a % b, 0 when b == 0. OV unchanged."""
    if b == 0:
        return (0, None)
    return ((a % b) & WORD_MASK, None)


def shl16(a: int, b: int) -> tuple:
    """a << b. OV = bits shifted out of the top."""
    result = a << b
    return (result & WORD_MASK, _high(result))


def shr16(a: int, b: int) -> tuple:
    """a >> b (unsigned). OV = high word of the shifted value."""
    result = a >> b
    return (result & WORD_MASK, _high(result))


def and16(a: int, b: int) -> tuple:
    return (a & b, None)


def bor16(a: int, b: int) -> tuple:
    return ((a | b) & WORD_MASK, None)


def xor16(a: int, b: int) -> tuple:
    return ((a ^ b) & WORD_MASK, None)


# ══════════════════════════════════════════════
# Comparisons
# ══════════════════════════════════════════════

def ife(a: int, b: int) -> bool:
    return a == b


def ifn(a: int, b: int) -> bool:
    return a != b


def ifg(a: int, b: int) -> bool:
    """Unsigned greater-than."""
    return a > b


def ifb(a: int, b: int) -> bool:
    """Any bit in common."""
    return (a & b) != 0


# opcode -> handler
OPERATIONS = {
    0x1: set16,
    0x2: add16,
    0x3: sub16,
    0x4: mul16,
    0x5: div16,
    0x6: mod16,
    0x7: shl16,
    0x8: shr16,
    0x9: and16,
    0xA: bor16,
    0xB: xor16,
}

CONDITIONS = {
    0xC: ife,
    0xD: ifn,
    0xE: ifg,
    0xF: ifb,
}
