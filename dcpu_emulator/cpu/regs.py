"""
DCPU Emulator — Register File + Control State

Register model:
  A B C X Y Z I J  — eight 16-bit general-purpose registers (index 0–7)
  PC               — 16-bit program counter
  SP               — 16-bit stack pointer (grows downward, PUSH pre-decrements)
  OV               — 16-bit overflow register
  skip             — pending-skip flag armed by IFE/IFN/IFG/IFB, consumed
                     by the next instruction fetch

Every setter masks to 16 bits, so nothing outside [0, 65535] can ever be
stored here.
"""

from ..config import INITIAL_SP, NUM_REGISTERS, REGISTER_NAMES, WORD_MASK

REGISTER_INDEX = {name: i for i, name in enumerate(REGISTER_NAMES)}


class Registers:
    """DCPU register file and control state."""

    __slots__ = ('gp', '_pc', '_sp', '_ov', 'skip')

    def __init__(self, initial_sp: int = INITIAL_SP):
        self.gp = [0] * NUM_REGISTERS   # general-purpose A..J
        self._pc = 0
        self._sp = initial_sp & WORD_MASK
        self._ov = 0
        self.skip = False

    # --- Control registers ---

    @property
    def PC(self) -> int:
        return self._pc

    @PC.setter
    def PC(self, value: int):
        self._pc = value & WORD_MASK

    @property
    def SP(self) -> int:
        return self._sp

    @SP.setter
    def SP(self, value: int):
        self._sp = value & WORD_MASK

    @property
    def OV(self) -> int:
        return self._ov

    @OV.setter
    def OV(self, value: int):
        self._ov = value & WORD_MASK

    # --- General-purpose access ---

    def read_gp(self, index: int) -> int:
        return self.gp[index % NUM_REGISTERS]

    def write_gp(self, index: int, value: int):
        self.gp[index % NUM_REGISTERS] = value & WORD_MASK

    def get(self, name: str) -> int:
        """Read a register by name: A..J, PC, SP, OV (case-insensitive)."""
        name = name.upper()
        if name in REGISTER_INDEX:
            return self.gp[REGISTER_INDEX[name]]
        if name in ('PC', 'SP', 'OV'):
            return getattr(self, name)
        raise KeyError(f"Unknown register: {name}")

    def set(self, name: str, value: int):
        """Write a register by name (value is masked to 16 bits)."""
        name = name.upper()
        if name in REGISTER_INDEX:
            self.gp[REGISTER_INDEX[name]] = value & WORD_MASK
        elif name in ('PC', 'SP', 'OV'):
            setattr(self, name, value)
        else:
            raise KeyError(f"Unknown register: {name}")

    # --- Stack ---

    def push(self, memory, value: int):
        """Push a word: SP decrements, then memory[SP] = value."""
        self.SP = self._sp - 1
        memory.write(self._sp, value)

    # --- Display ---

    def display(self) -> str:
        """Format register state for debugging."""
        gp = ' '.join(f"{name}={value:04X}"
                      for name, value in zip(REGISTER_NAMES, self.gp))
        return (f"PC={self._pc:04X} SP={self._sp:04X} OV={self._ov:04X} "
                f"SKIP={int(self.skip)} {gp}")

    def reset(self, initial_sp: int = INITIAL_SP):
        """Reset to power-on state."""
        self.gp = [0] * NUM_REGISTERS
        self._pc = 0
        self._sp = initial_sp & WORD_MASK
        self._ov = 0
        self.skip = False
