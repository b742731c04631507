# DCPU Emulator — pure-software 16-bit word machine
# Part of the dcpu-kit toolchain (assembler lives in dcpu_asm)
"""
Word-oriented virtual CPU: eight 16-bit registers, PC/SP/OV, a pending-skip
flag and a flat 64K-word memory image.

    from dcpu_emulator import Machine, StopReason
    m = Machine(words)
    assert m.run() is StopReason.HALT
"""

from .config import HALT_WORD
from .cpu.decoder import (
    MachineError, IllegalOpcode, Instruction, decode_word, encode_word,
    disassemble,
)
from .cpu.operands import IllegalWriteTarget, Location, Storage
from .cpu.regs import Registers
from .mem.memory import Memory, LITERAL_POOL
from .emu import Machine, MachineState, StopReason
from .trace import format_header, format_row

__all__ = [
    'HALT_WORD', 'MachineError', 'IllegalOpcode', 'IllegalWriteTarget',
    'Instruction', 'decode_word', 'encode_word', 'disassemble',
    'Location', 'Storage', 'Registers', 'Memory', 'LITERAL_POOL',
    'Machine', 'MachineState', 'StopReason', 'format_header', 'format_row',
]
