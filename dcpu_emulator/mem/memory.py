"""
DCPU Emulator — 64K Word Memory Image + Literal Pool

Memory map:
  $0000–$FFFF  flat, word-addressed RAM (65536 × 16-bit words)

There are no regions, no I/O and no write protection: every address is
plain storage. Addresses wrap modulo 65536 on every access.

The only cell value that is not a 16-bit word is the halt sentinel
(config.HALT_WORD), which the loader places after a program. fetch()
returns it untouched so the dispatcher can recognise it; read() masks it
like any other value, so data accesses only ever see 16-bit words.

The literal pool is the short-immediate "address space" behind operand
codes 0x20–0x3F. It is an immutable tuple shared by every machine.
"""

from typing import Iterable, List

from ..config import HALT_WORD, LITERAL_COUNT, MEMORY_SIZE, WORD_MASK

# Entry i holds the value i.
LITERAL_POOL = tuple(range(LITERAL_COUNT))


class Memory:
    """64K word-addressable memory owned by a single machine."""

    def __init__(self):
        self._mem: List[int] = [0] * MEMORY_SIZE

    # --- Core read/write ---

    def fetch(self, addr: int) -> int:
        """Fetch the raw cell at addr, halt sentinel included."""
        return self._mem[addr & WORD_MASK]

    def read(self, addr: int) -> int:
        """Read a 16-bit data word from address."""
        return self._mem[addr & WORD_MASK] & WORD_MASK

    def write(self, addr: int, value: int):
        """Write a 16-bit word to address (value is masked)."""
        self._mem[addr & WORD_MASK] = value & WORD_MASK

    def __len__(self) -> int:
        return MEMORY_SIZE

    # --- Bulk load ---

    def load_words(self, words: Iterable[int], base_addr: int = 0) -> int:
        """Copy words into memory starting at base_addr.

        Returns the address one past the last word written. Each word must
        be a 16-bit value or the halt sentinel.
        """
        addr = base_addr & WORD_MASK
        for i, word in enumerate(words):
            if word != HALT_WORD and not 0 <= word <= WORD_MASK:
                raise ValueError(f"Word {i} out of range: {word:#x}")
            self._mem[addr] = word
            addr = (addr + 1) & WORD_MASK
        return addr

    def place_sentinel(self, addr: int):
        """Store the halt sentinel at addr."""
        self._mem[addr & WORD_MASK] = HALT_WORD

    # --- Hex dump ---

    def hexdump(self, start: int, length: int = 64) -> str:
        """Produce a word dump of memory for debugging, 8 words per row."""
        lines = []
        for offset in range(0, length, 8):
            addr = (start + offset) & WORD_MASK
            count = min(8, length - offset)
            words = ' '.join(f'{self.read(addr + i):04X}' for i in range(count))
            lines.append(f'{addr:04X}  {words}')
        return '\n'.join(lines)
