"""Command-line interface for the Warden verifier."""
from __future__ import annotations

import argparse
import sys

from ..constants import LOGBOOK_FILE, STACK_SIZE
from ..helpers import parse_inline_helpers
from .asm import disassemble
from .certificate import (
    diff_certificates,
    export_certificate,
    hash_certificate,
    record_admission,
    reverify_certificate,
    show_logbook,
)
from .crypto import verify_signature
from .graph import export_graphviz, visualize_cfg
from .program import load_program
from .verifier import format_state, verify_program


def parse_args(args):
    argp = argparse.ArgumentParser(description="Warden eBPF program verifier")

    argp.add_argument("program", nargs="?", help="Program file to verify")
    argp.add_argument(
        "--format",
        choices=("raw", "hex", "asm"),
        help="Program encoding (default: guessed from the file suffix)",
    )
    argp.add_argument(
        "--stack-size",
        type=int,
        default=STACK_SIZE,
        help=f"Stack bytes addressable below r10 (default: {STACK_SIZE})",
    )
    argp.add_argument(
        "--helper",
        action="append",
        dest="helpers",
        metavar="NAME:ID",
        help="Declare a callable helper (repeatable, e.g. map_lookup:1/2)",
    )
    argp.add_argument(
        "--states", action="store_true", help="Print the fixpoint state of every pc"
    )
    argp.add_argument(
        "--certificate",
        metavar="OUTPUT",
        help="Export an admission certificate for an admitted program",
    )
    argp.add_argument(
        "--record",
        action="store_true",
        help="Record the admission in the signed logbook (needs --certificate)",
    )
    argp.add_argument(
        "--viz",
        metavar="OUTPUT",
        help="Export a Graphviz CFG visualization to an SVG file",
    )
    argp.add_argument(
        "--visualize",
        nargs="?",
        const="status",
        metavar="SCRIPT",
        help="Draw the CFG with matplotlib ('status', 'knowledge' or both)",
    )
    argp.add_argument("--load", help="Re-verify a .warden.json certificate")
    argp.add_argument("--hash", help="Compute hash of a .warden.json certificate")
    argp.add_argument(
        "--diff",
        nargs=2,
        metavar=("A", "B"),
        help="Compare two .warden.json certificates",
    )
    argp.add_argument(
        "--logbook", action="store_true", help="Show the Warden admission logbook"
    )
    argp.add_argument(
        "--logbook-file",
        default=LOGBOOK_FILE,
        help=f"Logbook path (default: {LOGBOOK_FILE})",
    )
    argp.add_argument("--verify", help="Verify signature for a logbook entry hash")
    argp.add_argument("--signature", help="Signature hex for --verify")

    return argp.parse_args(args)


def _print_states(program, result):
    print("\nFixpoint states:")
    for pc in program.slot_starts():
        state = result.states.get(pc)
        text = disassemble(program[pc], program.high_imm(pc))
        print(f"  {pc:>4}: {text:<24} {format_state(state) if state else 'unreached'}")


def main(args):
    params = parse_args(args)

    try:
        if params.diff:
            differences = diff_certificates(params.diff[0], params.diff[1])
            return 1 if differences else 0
        if params.hash:
            hash_certificate(params.hash)
            return 0
        if params.load:
            reverify_certificate(params.load)
            return 0
    except (OSError, ValueError) as exc:
        print(f"  ✗ {exc}")
        return 1
    if params.logbook:
        show_logbook(logbook=params.logbook_file)
        return 0
    if params.verify:
        signature = params.signature or input("Signature hex: ").strip()
        ok = verify_signature(params.verify, signature)
        print("✓ Signature valid" if ok else "✗ Invalid signature")
        return 0 if ok else 1

    if not params.program:
        print("✗ No program given (see --help)")
        return 2

    try:
        program = load_program(params.program, params.format)
        helpers = (
            parse_inline_helpers(",".join(params.helpers)) if params.helpers else None
        )
    except (OSError, ValueError) as exc:
        print(f"✗ Cannot load {params.program}: {exc}")
        return 1

    print(f"Program: {params.program} ({len(program)} slots)")
    result = verify_program(program, stack_size=params.stack_size, helpers=helpers)

    print("\nVerification:")
    if result.ok:
        print(f"  ✓ Program admitted ({result.visits} visits)")
    else:
        for message in result.diagnostics:
            print("  ✗", message)

    if params.states:
        _print_states(program, result)

    if params.certificate:
        if result.ok:
            export_certificate(
                program,
                result,
                params.certificate,
                stack_size=params.stack_size,
                helpers=helpers,
            )
            if params.record:
                record_admission(params.certificate, result, logbook=params.logbook_file)
        else:
            print("  ✗ Rejected programs are not certified")

    if params.viz:
        export_graphviz(program, result, params.viz, stack_size=params.stack_size)
    if params.visualize:
        visualize_cfg(program, result, params.visualize, stack_size=params.stack_size)

    return 0 if result.ok else 1


def run():  # pragma: no cover
    sys.exit(main(sys.argv[1:]))


__all__ = [
    "main",
    "parse_args",
    "run",
]


if __name__ == "__main__":  # pragma: no cover
    run()
