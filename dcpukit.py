#!/usr/bin/env python3
"""
dcpukit — DCPU assembler / emulator toolkit
===========================================

One CLI for everything:
    dcpukit asm     — Assemble source to a binary word file or listing
    dcpukit run     — Run source or a binary on the emulator, optionally traced
    dcpukit disasm  — Disassemble a binary word file

Usage:
    python dcpukit.py <command> [options]
    python dcpukit.py --help
    python dcpukit.py <command> --help

Examples:
    python dcpukit.py asm programs/sample.dasm -o sample.bin
    python dcpukit.py asm programs/sample.dasm --listing
    python dcpukit.py run programs/sample.dasm --trace
    python dcpukit.py run sample.bin --max-steps 500 --dump 0x1000:8
    python dcpukit.py disasm sample.bin

Binary word files are little-endian 16-bit words. Input files ending in
.bin are loaded as words; anything else is assembled first.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from dcpu_asm import __version__
from dcpu_asm.assembler import Assembler, CompileError, load_binary_words
from dcpu_emulator import Machine, StopReason, disassemble
from dcpu_emulator.config import DEFAULT_MAX_STEPS, INITIAL_SP

log = logging.getLogger("dcpukit")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="dcpukit",
        description="DCPU toolkit — assemble, run, trace, disassemble",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""commands:
  asm        Assemble DCPU source to a binary word file or listing
  run        Run a program until it halts, faults or hits the step limit
  disasm     Disassemble a binary word file
""",
    )
    parser.add_argument("--version", action="version", version=f"dcpukit {__version__}")
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="Increase verbosity (-v, -vv for tracebacks)")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Suppress all output except errors")
    parser.add_argument("--log-file", type=str, help="Write log to file")
    sub = parser.add_subparsers(dest="command", metavar="command")

    # ── asm ──────────────────────────────────────────────────────────────
    p_asm = sub.add_parser("asm", help="Assemble source to binary or listing")
    p_asm.add_argument("input", help="Input assembly file")
    p_asm.add_argument("-o", "--output", help="Output file (.bin or .lst)")
    p_asm.add_argument("--listing", action="store_true", help="Print listing to stdout")

    # ── run ──────────────────────────────────────────────────────────────
    p_run = sub.add_parser("run", help="Run a program on the emulator")
    p_run.add_argument("input", help="Assembly source or .bin word file")
    p_run.add_argument("--trace", action="store_true",
                       help="Print a register trace row per step")
    p_run.add_argument("--max-steps", type=int, default=DEFAULT_MAX_STEPS,
                       help=f"Step limit (default: {DEFAULT_MAX_STEPS})")
    p_run.add_argument("--sp", default=None,
                       help=f"Initial stack pointer (hex, default 0x{INITIAL_SP:04X})")
    p_run.add_argument("--break", dest="breakpoints", action="append", default=[],
                       metavar="ADDR", help="Stop at address (hex), repeatable")
    p_run.add_argument("--dump", metavar="START:LEN",
                       help="Dump memory after the run, e.g. 0x1000:16")

    # ── disasm ───────────────────────────────────────────────────────────
    p_dis = sub.add_parser("disasm", help="Disassemble a binary word file")
    p_dis.add_argument("input", help="Input .bin file")
    p_dis.add_argument("--base", default="0", help="Load address (hex)")
    p_dis.add_argument("-o", "--output", help="Output file (default: stdout)")

    # ── Parse and dispatch ───────────────────────────────────────────────
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    setup_logging(args)

    handler = COMMANDS[args.command]
    try:
        return handler(args)
    except CompileError as e:
        log.error("Assembly error: %s", e)
        return 1
    except (OSError, ValueError) as e:
        log.error("Error: %s", e)
        if args.verbose > 1:
            log.exception("Traceback")
        return 1


def setup_logging(args):
    """Configure logging based on arguments."""
    if args.quiet:
        level = logging.ERROR
    elif args.verbose == 0:
        level = logging.INFO
    else:
        level = logging.DEBUG

    handlers = []
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    handlers.append(console)

    if args.log_file:
        log_path = Path(args.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        handlers.append(file_handler)

    logging.basicConfig(level=logging.DEBUG if args.log_file else level,
                        handlers=handlers, force=True)


# ═════════════════════════════════════════════════════════════════════════════
# COMMAND IMPLEMENTATIONS
# ═════════════════════════════════════════════════════════════════════════════

def _parse_hex(s):
    """Parse hex string with optional 0x or $ prefix."""
    if s is None:
        return None
    s = s.strip()
    if s.startswith("0x") or s.startswith("0X"):
        return int(s, 16)
    if s.startswith("$"):
        return int(s[1:], 16)
    return int(s, 16)


def _load_words(path):
    """Load a .bin word file, or assemble anything else."""
    if os.path.splitext(path)[1].lower() == ".bin":
        return load_binary_words(Path(path).read_bytes())
    source = Path(path).read_text(encoding="utf-8")
    return list(Assembler().assemble(source).words)


# ── asm ──────────────────────────────────────────────────────────────────
def cmd_asm(args):
    source = Path(args.input).read_text(encoding="utf-8")

    asm = Assembler()
    program = asm.assemble(source)

    if args.listing or not args.output:
        print(asm.get_listing())
        return 0

    out = args.output
    if os.path.splitext(out)[1].lower() == ".lst":
        Path(out).write_text(asm.get_listing() + "\n", encoding="utf-8")
    else:  # .bin or anything else
        Path(out).write_bytes(program.to_binary())
    log.info("Assembled %d words -> %s", len(program), out)
    return 0


# ── run ──────────────────────────────────────────────────────────────────
def cmd_run(args):
    words = _load_words(args.input)

    sp = _parse_hex(args.sp) if args.sp else INITIAL_SP
    machine = Machine(words, initial_sp=sp)
    for addr in args.breakpoints:
        machine.add_breakpoint(_parse_hex(addr))

    if args.trace:
        machine.enable_trace()
    reason = machine.run(max_steps=args.max_steps)

    if args.trace:
        print("\n".join(machine.trace_output))
    print(machine.regs.display())

    if args.dump:
        start, _, length = args.dump.partition(":")
        print(machine.mem.hexdump(_parse_hex(start), int(length or "16", 0)))

    if reason is StopReason.HALT:
        log.info("Halted after %d steps", machine.steps)
        return 0
    if machine.fault is not None:
        log.error("Stopped (%s): %s", reason.value, machine.fault)
    else:
        log.error("Stopped (%s) at $%04X after %d steps",
                  reason.value, machine.regs.PC, machine.steps)
    return 1


# ── disasm ───────────────────────────────────────────────────────────────
def cmd_disasm(args):
    words = load_binary_words(Path(args.input).read_bytes())
    output = "\n".join(disassemble(words, _parse_hex(args.base)))

    if args.output:
        Path(args.output).write_text(output + "\n", encoding="utf-8")
        log.info("Disassembled %d words -> %s", len(words), args.output)
    else:
        print(output)
    return 0


COMMANDS = {
    "asm": cmd_asm,
    "run": cmd_run,
    "disasm": cmd_disasm,
}


if __name__ == "__main__":
    sys.exit(main())
