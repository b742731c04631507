"""
DCPU Emulator — Main Machine Class

Integrates:
  - register file + control state (cpu/regs.py)
  - 64K word memory + literal pool (mem/memory.py)
  - field decoder and opcode tables (cpu/decoder.py)
  - operand resolver (cpu/operands.py)
  - ALU operations (cpu/alu.py)

Execution model (one step):
  1. Fetch the word at PC; the halt sentinel stops the machine
  2. Decode opcode / a / b, advance PC past the instruction word
  3. Resolve operands (a before b); PC/SP side effects happen here
  4. If a skip is pending, clear it and stop: the effect is suppressed
  5. Execute, store the masked result, update OV or arm the skip flag

Termination reasons:
  - HALT:           halt sentinel fetched
  - ILLEGAL:        undefined extended opcode
  - ILLEGAL_WRITE:  store through a literal operand
  - BREAK:          breakpoint address reached
  - TIMEOUT:        step limit exhausted
"""

import logging
from enum import Enum
from typing import Iterable, List, Optional, Set

from .config import DEFAULT_MAX_STEPS, HALT_WORD, INITIAL_SP, MEMORY_SIZE
from .cpu.regs import Registers
from .cpu.decoder import (
    decode_word, IllegalOpcode, MachineError, CONDITIONAL_OPCODES,
)
from .cpu.operands import (
    resolve_operand, read_location, write_location, IllegalWriteTarget,
)
from .cpu import alu
from .mem.memory import Memory
from .trace import format_header, format_row

log = logging.getLogger(__name__)

JSR = 0x01


class StopReason(Enum):
    HALT = 'HALT'
    ILLEGAL = 'ILLEGAL'
    ILLEGAL_WRITE = 'ILLEGAL_WRITE'
    BREAK = 'BREAK'
    TIMEOUT = 'TIMEOUT'


class MachineState(Enum):
    RUNNING = 'RUNNING'
    HALTED = 'HALTED'


class Machine:
    """DCPU virtual machine.

    Usage:
        m = Machine()
        m.load_program(assemble(source))
        reason = m.run(max_steps=10_000)
        print(m.regs.display())

    Fatal faults never escape step()/run(): they come back as a
    StopReason and the exception is kept in .fault.
    """

    def __init__(self, program=None, initial_sp: int = INITIAL_SP):
        self.regs = Registers(initial_sp)
        self.mem = Memory()
        self.state = MachineState.RUNNING
        self.stop_reason: Optional[StopReason] = None
        self.fault: Optional[MachineError] = None
        self.steps = 0
        self._initial_sp = initial_sp

        self._breakpoints: Set[int] = set()
        self._resume_pc: Optional[int] = None

        self._trace = False
        self.trace_output: List[str] = []

        if program is not None:
            self.load_program(program)

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    def load_program(self, program, base_addr: int = 0):
        """Load a Program (anything with .words) or a plain word sequence.

        The halt sentinel is placed right after the last word unless the
        image fills the whole address space.
        """
        words: Iterable[int] = getattr(program, 'words', program)
        words = list(words)
        if len(words) > MEMORY_SIZE:
            raise ValueError(f"Program too large: {len(words)} words")
        end = self.mem.load_words(words, base_addr)
        if len(words) < MEMORY_SIZE:
            self.mem.place_sentinel(end)
        log.debug("Loaded %d words at $%04X", len(words), base_addr)

    def reset(self):
        """Reset registers and run state. Memory is left as loaded."""
        self.regs.reset(self._initial_sp)
        self.state = MachineState.RUNNING
        self.stop_reason = None
        self.fault = None
        self.steps = 0
        self._resume_pc = None
        self.trace_output = []

    @property
    def halted(self) -> bool:
        return self.state is MachineState.HALTED

    # ══════════════════════════════════════════════
    # Breakpoints / trace
    # ══════════════════════════════════════════════

    def add_breakpoint(self, addr: int):
        self._breakpoints.add(addr & 0xFFFF)

    def remove_breakpoint(self, addr: int):
        self._breakpoints.discard(addr & 0xFFFF)

    def enable_trace(self, on: bool = True):
        """Record a header plus one row per step in trace_output."""
        self._trace = on
        if on and not self.trace_output:
            self.trace_output.append(format_header())
            self.trace_output.append(format_row(self))

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def step(self) -> Optional[StopReason]:
        """Execute one instruction. Returns a StopReason if stopped, else None."""
        if self.halted:
            return self.stop_reason

        pc = self.regs.PC

        # Breakpoint check; the step after a BREAK runs the instruction
        if pc in self._breakpoints and self._resume_pc != pc:
            self._resume_pc = pc
            log.info("Breakpoint at $%04X", pc)
            return StopReason.BREAK
        self._resume_pc = None

        word = self.mem.fetch(pc)
        if word == HALT_WORD:
            log.debug("Halt sentinel at $%04X after %d steps", pc, self.steps)
            return self._stop(StopReason.HALT)

        try:
            self._execute(word, pc)
        except IllegalOpcode as e:
            return self._stop(StopReason.ILLEGAL, e)
        except IllegalWriteTarget as e:
            return self._stop(StopReason.ILLEGAL_WRITE, e)

        self.steps += 1
        if self._trace:
            self.trace_output.append(format_row(self))
        return None

    def run(self, max_steps: Optional[int] = None) -> StopReason:
        """Run until a stop condition or max_steps executed instructions."""
        if max_steps is None:
            max_steps = DEFAULT_MAX_STEPS

        executed = 0
        while executed < max_steps:
            reason = self.step()
            if reason is not None:
                return reason
            executed += 1

        log.debug("Step limit %d reached at $%04X", max_steps, self.regs.PC)
        return StopReason.TIMEOUT

    def _stop(self, reason: StopReason,
              fault: Optional[MachineError] = None) -> StopReason:
        self.state = MachineState.HALTED
        self.stop_reason = reason
        self.fault = fault
        if fault is not None:
            log.warning("Machine fault: %s", fault)
        return reason

    # ══════════════════════════════════════════════
    # Instruction execution
    # ══════════════════════════════════════════════

    def _execute(self, word: int, pc: int):
        regs, mem = self.regs, self.mem
        instr = decode_word(word)
        regs.PC = pc + 1

        if instr.extended:
            self._execute_extended(instr, word, pc)
            return

        dst = resolve_operand(instr.a, regs, mem)
        src = resolve_operand(instr.b, regs, mem)

        if regs.skip:
            regs.skip = False
            return

        a = read_location(dst, regs, mem)
        b = read_location(src, regs, mem)

        if instr.opcode in CONDITIONAL_OPCODES:
            if not alu.CONDITIONS[instr.opcode](a, b):
                regs.skip = True
            return

        handler = alu.OPERATIONS.get(instr.opcode)
        if handler is None:
            raise IllegalOpcode(word, pc)
        result, overflow = handler(a, b)
        write_location(dst, result, regs, mem)
        if overflow is not None:
            regs.OV = overflow

    def _execute_extended(self, instr, word: int, pc: int):
        regs, mem = self.regs, self.mem
        if instr.a != JSR:
            raise IllegalOpcode(word, pc, f"extended selector {instr.a:#04x}")

        target = read_location(resolve_operand(instr.b, regs, mem), regs, mem)
        if regs.skip:
            regs.skip = False
            return
        regs.push(mem, regs.PC)
        regs.PC = target
