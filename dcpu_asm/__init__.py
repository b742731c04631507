"""
dcpu-kit Assembler
==================
Two-pass assembler for the DCPU 16-bit word machine.

Architecture:
    ┌──────────────┐    ┌──────────┐    ┌──────────┐    ┌───────────────┐
    │ Source       │───>│  Pass 1  │───>│  Pass 2  │───>│ Program       │
    │ (.dasm text) │    │ (labels) │    │ (encode) │    │ words+labels  │
    └──────────────┘    └──────────┘    └──────────┘    └───────────────┘

The resulting Program loads straight into dcpu_emulator.Machine.
"""

__version__ = "0.1.0"

from .assembler import (
    Assembler, CompileError, Program, assemble, assemble_to_binary,
    load_binary_words,
)


def assemble_file(path: str) -> Program:
    """Read an assembly source file and assemble it."""
    with open(path, "r", encoding="utf-8") as f:
        return assemble(f.read())
