"""Program containers, binary encoding and structural validation."""
from __future__ import annotations

import hashlib
from pathlib import Path
import re
import struct

from .. import constants as _constants
from ..constants import (
    EBPF_CLS_ST,
    EBPF_CLS_STX,
    EBPF_OP_BE,
    EBPF_OP_CALL,
    EBPF_OP_EXIT,
    EBPF_OP_JA,
    EBPF_OP_LDDW,
    EBPF_OP_LE,
    EBPF_SRC_REG,
    INSTRUCTION_SIZE,
    MASK32,
    MAX_INSTRUCTIONS,
    STACK_REGISTER,
)
from ..helpers import resolve_helpers
from .core import Instruction
from .isa import instruction_class, is_division, is_double_slot, is_jump

_ENCODING = struct.Struct("<BBhi")

VALID_OPCODES = frozenset(
    value
    for name, value in vars(_constants).items()
    if name.startswith("EBPF_OP_")
)


class Program:
    """A linear sequence of instruction slots.

    A ``lddw`` occupies two slots; the second carries the upper 32 bits of
    the immediate and is never executed on its own.
    """

    def __init__(self, instructions=None):
        self.instructions: list[Instruction] = list(instructions or [])

    def __len__(self):
        return len(self.instructions)

    def __getitem__(self, pc):
        return self.instructions[pc]

    def __iter__(self):
        return iter(self.instructions)

    def __eq__(self, other):
        if not isinstance(other, Program):
            return NotImplemented
        return self.instructions == other.instructions

    def __repr__(self):  # pragma: no cover - representation helper
        return f"Program({len(self.instructions)} slots)"

    def append(self, instruction):
        self.instructions.append(instruction)

    def high_imm(self, pc):
        """Upper immediate of the ``lddw`` at *pc* (0 for anything else)."""

        if not is_double_slot(self.instructions[pc].opcode):
            return 0
        if pc + 1 >= len(self.instructions):
            return 0
        return self.instructions[pc + 1].imm & MASK32

    def slot_starts(self):
        """Return the pcs that begin an instruction."""

        starts = []
        pc = 0
        while pc < len(self.instructions):
            starts.append(pc)
            pc += 2 if is_double_slot(self.instructions[pc].opcode) else 1
        return starts

    def next_pc(self, pc):
        return pc + (2 if is_double_slot(self.instructions[pc].opcode) else 1)

    def to_bytes(self):
        return encode_program(self.instructions)

    def digest(self):
        """SHA-256 of the binary encoding."""

        return hashlib.sha256(self.to_bytes()).hexdigest()


def encode_instruction(inst):
    regs = (inst.src << 4) | inst.dst
    return _ENCODING.pack(inst.opcode, regs, inst.offset, inst.imm)


def decode_instruction(data):
    if len(data) != INSTRUCTION_SIZE:
        raise ValueError(
            f"Instruction encoding must be {INSTRUCTION_SIZE} bytes, got {len(data)}"
        )
    opcode, regs, offset, imm = _ENCODING.unpack(data)
    return Instruction(opcode, regs & 0x0F, regs >> 4, offset, imm)


def encode_program(instructions):
    return b"".join(encode_instruction(inst) for inst in instructions)


def decode_program(data):
    """Decode raw little-endian instruction bytes into a :class:`Program`."""

    if len(data) % INSTRUCTION_SIZE:
        raise ValueError(
            f"Program length {len(data)} is not a multiple of {INSTRUCTION_SIZE}"
        )
    return Program(
        decode_instruction(data[i : i + INSTRUCTION_SIZE])
        for i in range(0, len(data), INSTRUCTION_SIZE)
    )


def parse_hex_program(text):
    """Decode a hex dump; whitespace, ``0x`` prefixes and ``#`` comments are ignored."""

    cleaned = []
    for line in text.splitlines():
        line = line.split("#", 1)[0]
        cleaned.append(re.sub(r"0x|[\s,]", "", line))
    digits = "".join(cleaned)
    try:
        data = bytes.fromhex(digits)
    except ValueError as exc:
        raise ValueError(f"Invalid hex program: {exc}") from exc
    return decode_program(data)


def load_program(path, fmt=None):
    """Load a program from *path* as ``raw`` bytes, ``hex`` text or ``asm``.

    The format defaults from the file suffix (``.hex``, ``.asm``/``.s``,
    anything else is raw). Raw input must be a bare instruction stream;
    ELF objects are not unpacked.
    """

    path = Path(path)
    if fmt is None:
        suffix = path.suffix.lower()
        if suffix == ".hex":
            fmt = "hex"
        elif suffix in (".asm", ".s"):
            fmt = "asm"
        else:
            fmt = "raw"

    if fmt == "raw":
        return decode_program(path.read_bytes())
    if fmt == "hex":
        return parse_hex_program(path.read_text(encoding="utf-8"))
    if fmt == "asm":
        from .asm import assemble

        return Program(assemble(path.read_text(encoding="utf-8")))
    raise ValueError(f"Unknown program format '{fmt}'")


def validate_program(program, helpers=None):
    """Check the structural rules a program must meet before analysis.

    Returns a list of diagnostics; an empty list means the program is well
    formed. *helpers* restricts ``call`` immediates (``None`` uses the
    global helper registry).
    """

    insts = program.instructions
    if not insts:
        return ["no instructions"]
    if len(insts) > MAX_INSTRUCTIONS:
        return ["too many instructions"]

    table = resolve_helpers(helpers)
    errors = []
    starts = program.slot_starts()
    start_set = set(starts)

    for pc in starts:
        inst = insts[pc]
        op = inst.opcode
        if op not in VALID_OPCODES:
            errors.append(f"unknown opcode 0x{op:02x} at PC {pc}")
            continue

        store = instruction_class(op) in (EBPF_CLS_ST, EBPF_CLS_STX)
        if inst.src > 10:
            errors.append(f"invalid source register at PC {pc}")
        if inst.dst > 9 and not (store and inst.dst == STACK_REGISTER):
            errors.append(f"invalid destination register at PC {pc}")

        if op == EBPF_OP_LDDW:
            if pc + 1 >= len(insts) or insts[pc + 1].opcode != 0:
                errors.append(f"incomplete lddw at PC {pc}")
        elif is_jump(op):
            target = pc + 1 + inst.offset
            if target < 0 or target >= len(insts):
                errors.append(f"jump out of bounds at PC {pc}")
            elif target not in start_set:
                errors.append(f"jump to middle of lddw at PC {pc}")
        elif op == EBPF_OP_CALL:
            if inst.imm not in table:
                errors.append(f"invalid call immediate at PC {pc}")
        elif is_division(op) and not op & EBPF_SRC_REG:
            if inst.imm == 0:
                errors.append(f"division by zero at PC {pc}")
        elif op in (EBPF_OP_LE, EBPF_OP_BE):
            if inst.imm not in (16, 32, 64):
                errors.append(f"invalid endian immediate at PC {pc}")

    last = starts[-1]
    if insts[last].opcode not in (EBPF_OP_EXIT, EBPF_OP_JA):
        errors.append(f"last instruction must be exit or jump at PC {last}")

    return errors


__all__ = [
    "Program",
    "VALID_OPCODES",
    "decode_instruction",
    "decode_program",
    "encode_instruction",
    "encode_program",
    "load_program",
    "parse_hex_program",
    "validate_program",
]
