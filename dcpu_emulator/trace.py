"""
DCPU Emulator — Register Trace Formatting

One header line, then one row per step. Each row shows the control
state, the eight general registers and the fields of the instruction
about to execute:

|__PC__|__SP__|__OV__|_SKIP_|__A___|...|__J___|||_OP_|_A__|_B__|
| 0000 | 0000 | 0000 | 0000 | 0000 |...| 0000 ||| 01 | 00 | 1F |
"""

from .config import HALT_WORD, REGISTER_NAMES
from .cpu.decoder import decode_word


def _word_heading(name: str) -> str:
    return f"{name:_^6}"


def _field_heading(name: str) -> str:
    return f"{name:_^4}"


def format_header() -> str:
    """Column header line for a register trace."""
    words = [_word_heading(n) for n in ('PC', 'SP', 'OV', 'SKIP')]
    words += [_word_heading(n) for n in REGISTER_NAMES]
    fields = [_field_heading(n) for n in ('OP', 'A', 'B')]
    return '|' + '|'.join(words) + '|||' + '|'.join(fields) + '|'


def format_row(machine) -> str:
    """One trace row for the machine's current state."""
    regs = machine.regs
    values = [regs.PC, regs.SP, regs.OV, int(regs.skip)] + list(regs.gp)
    words = [f" {v:04X} " for v in values]

    word = machine.mem.fetch(regs.PC)
    if word == HALT_WORD:
        fields = [" -- "] * 3
    else:
        instr = decode_word(word)
        fields = [f" {v:02X} " for v in instr]
    return '|' + '|'.join(words) + '|||' + '|'.join(fields) + '|'
