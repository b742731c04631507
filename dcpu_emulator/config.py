"""
DCPU Emulator — Machine Constants and Defaults
===============================================

Everything here is fixed by the instruction encoding except the two
run-time defaults at the bottom, which the CLI can override
(--sp, --max-steps).
"""

# =============================================================================
#  WORD / ADDRESS SPACE
# =============================================================================
WORD_BITS = 16
WORD_MASK = 0xFFFF
MEMORY_SIZE = 0x10000     # 65536 words, indexed modulo 65536

# =============================================================================
#  REGISTER FILE
# =============================================================================
NUM_REGISTERS = 8
REGISTER_NAMES = ('A', 'B', 'C', 'X', 'Y', 'Z', 'I', 'J')

# =============================================================================
#  SHORT LITERALS (operand codes 0x20-0x3F)
# =============================================================================
LITERAL_BASE = 0x20
LITERAL_COUNT = 32

# =============================================================================
#  HALT SENTINEL
#  Lies outside the 16-bit range on purpose: every stored result is masked
#  to 16 bits, so a running program can never forge it.
# =============================================================================
HALT_WORD = 0xFFFF0000

# =============================================================================
#  RUN-TIME DEFAULTS
# =============================================================================
INITIAL_SP = 0x0000       # first PUSH lands at $FFFF
DEFAULT_MAX_STEPS = 1_000_000
