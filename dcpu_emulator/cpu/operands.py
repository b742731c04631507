"""
DCPU Emulator — Operand Resolver

Maps a 6-bit operand code to a Location: which storage class to touch and
the index inside it. Resolution may advance PC (codes that consume the
next word) or move SP (POP/PUSH); those side effects happen exactly once,
at resolution time, whether or not the instruction ends up executing.

The caller resolves operand a before operand b. When both consume a next
word, a takes the first trailing word and b the second.

  Storage     index meaning
  REGISTER    general register 0–7
  MEMORY      word address
  SP/PC/OV    unused (0)
  LITERAL     literal pool entry 0–31 (read-only)
  IMMEDIATE   the value itself (read-only)
"""

from enum import Enum
from typing import NamedTuple

from ..config import LITERAL_BASE, WORD_MASK
from ..mem.memory import LITERAL_POOL
from .decoder import MachineError


class IllegalWriteTarget(MachineError):
    """Raised on an attempt to store through a read-only operand."""
    def __init__(self, location: 'Location'):
        self.location = location
        super().__init__(
            f"Illegal write target: {location.storage.value} {location.index:#x}")


class Storage(Enum):
    REGISTER = 'register'
    MEMORY = 'memory'
    SP = 'SP'
    PC = 'PC'
    OV = 'OV'
    LITERAL = 'literal'
    IMMEDIATE = 'immediate'


READ_ONLY = frozenset({Storage.LITERAL, Storage.IMMEDIATE})


class Location(NamedTuple):
    storage: Storage
    index: int = 0

    @property
    def writable(self) -> bool:
        return self.storage not in READ_ONLY


def _next_word(regs, mem) -> int:
    """Consume the word at PC, advance PC."""
    value = mem.read(regs.PC)
    regs.PC = regs.PC + 1
    return value


def resolve_operand(code: int, regs, mem) -> Location:
    """Resolve an operand code to a Location, applying its PC/SP side effects."""
    if not 0 <= code <= 0x3F:
        raise ValueError(f"Operand code out of range: {code:#x}")

    if code < 0x08:
        return Location(Storage.REGISTER, code)

    elif code < 0x10:
        return Location(Storage.MEMORY, regs.read_gp(code - 0x08))

    elif code < 0x18:
        offset = _next_word(regs, mem)
        addr = (offset + regs.read_gp(code - 0x10)) & WORD_MASK
        return Location(Storage.MEMORY, addr)

    elif code == 0x18:  # POP
        addr = regs.SP
        regs.SP = addr + 1
        return Location(Storage.MEMORY, addr)

    elif code == 0x19:  # PEEK
        return Location(Storage.MEMORY, regs.SP)

    elif code == 0x1A:  # PUSH
        regs.SP = regs.SP - 1
        return Location(Storage.MEMORY, regs.SP)

    elif code == 0x1B:
        return Location(Storage.SP)

    elif code == 0x1C:
        return Location(Storage.PC)

    elif code == 0x1D:
        return Location(Storage.OV)

    elif code == 0x1E:
        return Location(Storage.MEMORY, _next_word(regs, mem))

    elif code == 0x1F:
        return Location(Storage.IMMEDIATE, _next_word(regs, mem))

    return Location(Storage.LITERAL, code - LITERAL_BASE)


def read_location(loc: Location, regs, mem) -> int:
    """Read the 16-bit value held at a resolved location."""
    storage = loc.storage
    if storage is Storage.REGISTER:
        return regs.read_gp(loc.index)
    if storage is Storage.MEMORY:
        return mem.read(loc.index)
    if storage is Storage.SP:
        return regs.SP
    if storage is Storage.PC:
        return regs.PC
    if storage is Storage.OV:
        return regs.OV
    if storage is Storage.LITERAL:
        return LITERAL_POOL[loc.index]
    return loc.index & WORD_MASK  # IMMEDIATE


def write_location(loc: Location, value: int, regs, mem):
    """Store a value (masked to 16 bits) at a resolved location."""
    if not loc.writable:
        raise IllegalWriteTarget(loc)
    storage = loc.storage
    if storage is Storage.REGISTER:
        regs.write_gp(loc.index, value)
    elif storage is Storage.MEMORY:
        mem.write(loc.index, value)
    elif storage is Storage.SP:
        regs.SP = value
    elif storage is Storage.PC:
        regs.PC = value
    else:
        regs.OV = value
