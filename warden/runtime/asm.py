"""Text assembler and disassembler for the ubpf assembly syntax.

Examples of accepted lines::

    mov r0, 1            # 64-bit ALU (``mov32`` for 32-bit)
    add32 r1, r2
    neg r3
    be16 r1
    ldxw r2, [r1+4]
    stb [r10-1], 7
    stxdw [r10-8], r2
    lddw r3, 0x100000002
    jeq r1, 0, +2
    ja -3
    call 1
    exit
"""
from __future__ import annotations

import re

from ..constants import (
    EBPF_CLS_ALU,
    EBPF_CLS_ALU64,
    EBPF_CLS_JMP,
    EBPF_CLS_LDX,
    EBPF_CLS_ST,
    EBPF_CLS_STX,
    EBPF_MODE_MEM,
    EBPF_OP_BE,
    EBPF_OP_CALL,
    EBPF_OP_EXIT,
    EBPF_OP_JA,
    EBPF_OP_LDDW,
    EBPF_OP_LE,
    EBPF_SIZE_B,
    EBPF_SIZE_DW,
    EBPF_SIZE_H,
    EBPF_SIZE_W,
    EBPF_SRC_REG,
    MASK32,
    MASK64,
)
from .core import Instruction
from .isa import (
    ALU_OPS,
    JMP_OPS,
    alu_operation,
    instruction_class,
    is_alu,
    is_alu64,
    is_register_source,
)

SIZE_SUFFIXES = {
    "b": EBPF_SIZE_B,
    "h": EBPF_SIZE_H,
    "w": EBPF_SIZE_W,
    "dw": EBPF_SIZE_DW,
}
_SIZE_NAMES = {code: name for name, code in SIZE_SUFFIXES.items()}

_ALU_CODES = {name: code for code, name in ALU_OPS.items() if name != "end"}
_JMP_CODES = {
    name: code for code, name in JMP_OPS.items() if name not in ("call", "exit")
}

_REGISTER = re.compile(r"^r(\d+)$")
_MEMORY = re.compile(
    r"^\[\s*r(?P<reg>\d+)\s*(?:(?P<sign>[+-])\s*(?P<off>0x[0-9a-f]+|\d+))?\s*\]$"
)
_ALU_MNEMONIC = re.compile(r"^(?P<op>[a-z]+?)(?P<width>32|64)?$")
_ENDIAN_MNEMONIC = re.compile(r"^(?P<op>le|be)(?P<size>16|32|64)$")
_MEM_MNEMONIC = re.compile(r"^(?P<op>ldx|stx|st)(?P<size>dw|b|h|w)$")


def _parse_int(token, lineno):
    try:
        return int(token, 0)
    except ValueError:
        raise ValueError(f"Invalid integer '{token}' at line {lineno}") from None


def _parse_imm32(token, lineno):
    value = _parse_int(token, lineno)
    if 0x80000000 <= value <= MASK32:
        value -= 1 << 32
    if not -0x80000000 <= value <= 0x7FFFFFFF:
        raise ValueError(f"Immediate {token} does not fit in 32 bits at line {lineno}")
    return value


def _parse_register(token, lineno):
    match = _REGISTER.match(token)
    if not match:
        raise ValueError(f"Expected a register, got '{token}' at line {lineno}")
    reg = int(match.group(1))
    if reg > 10:
        raise ValueError(f"Register r{reg} does not exist at line {lineno}")
    return reg


def _parse_memory(token, lineno):
    match = _MEMORY.match(token)
    if not match:
        raise ValueError(
            f"Expected a memory operand like [r1+4], got '{token}' at line {lineno}"
        )
    reg = int(match.group("reg"))
    if reg > 10:
        raise ValueError(f"Register r{reg} does not exist at line {lineno}")
    offset = 0
    if match.group("off") is not None:
        offset = int(match.group("off"), 0)
        if match.group("sign") == "-":
            offset = -offset
    if not -0x8000 <= offset <= 0x7FFF:
        raise ValueError(f"Offset {offset} does not fit in 16 bits at line {lineno}")
    return reg, offset


def _parse_offset(token, lineno):
    offset = _parse_int(token, lineno)
    if not -0x8000 <= offset <= 0x7FFF:
        raise ValueError(f"Jump offset {offset} does not fit in 16 bits at line {lineno}")
    return offset


def _expect(operands, count, mnemonic, lineno):
    if len(operands) != count:
        raise ValueError(
            f"'{mnemonic}' takes {count} operand(s), got {len(operands)} at line {lineno}"
        )


def _assemble_line(mnemonic, operands, lineno):
    if mnemonic == "exit":
        _expect(operands, 0, mnemonic, lineno)
        return [Instruction(EBPF_OP_EXIT)]

    if mnemonic == "call":
        _expect(operands, 1, mnemonic, lineno)
        return [Instruction(EBPF_OP_CALL, imm=_parse_imm32(operands[0], lineno))]

    if mnemonic == "ja":
        _expect(operands, 1, mnemonic, lineno)
        return [Instruction(EBPF_OP_JA, offset=_parse_offset(operands[0], lineno))]

    if mnemonic == "lddw":
        _expect(operands, 2, mnemonic, lineno)
        dst = _parse_register(operands[0], lineno)
        value = _parse_int(operands[1], lineno) & MASK64
        low, high = value & MASK32, value >> 32
        return [
            Instruction(EBPF_OP_LDDW, dst=dst, imm=_parse_imm32(str(low), lineno)),
            Instruction(0, imm=_parse_imm32(str(high), lineno)),
        ]

    if mnemonic in _JMP_CODES:
        _expect(operands, 3, mnemonic, lineno)
        dst = _parse_register(operands[0], lineno)
        offset = _parse_offset(operands[2], lineno)
        opcode = EBPF_CLS_JMP | _JMP_CODES[mnemonic]
        if _REGISTER.match(operands[1]):
            src = _parse_register(operands[1], lineno)
            return [Instruction(opcode | EBPF_SRC_REG, dst=dst, src=src, offset=offset)]
        imm = _parse_imm32(operands[1], lineno)
        return [Instruction(opcode, dst=dst, offset=offset, imm=imm)]

    match = _ENDIAN_MNEMONIC.match(mnemonic)
    if match:
        _expect(operands, 1, mnemonic, lineno)
        opcode = EBPF_OP_LE if match.group("op") == "le" else EBPF_OP_BE
        dst = _parse_register(operands[0], lineno)
        return [Instruction(opcode, dst=dst, imm=int(match.group("size")))]

    match = _MEM_MNEMONIC.match(mnemonic)
    if match:
        _expect(operands, 2, mnemonic, lineno)
        size = SIZE_SUFFIXES[match.group("size")]
        kind = match.group("op")
        if kind == "ldx":
            dst = _parse_register(operands[0], lineno)
            src, offset = _parse_memory(operands[1], lineno)
            opcode = EBPF_CLS_LDX | EBPF_MODE_MEM | size
            return [Instruction(opcode, dst=dst, src=src, offset=offset)]
        dst, offset = _parse_memory(operands[0], lineno)
        if kind == "stx":
            src = _parse_register(operands[1], lineno)
            opcode = EBPF_CLS_STX | EBPF_MODE_MEM | size
            return [Instruction(opcode, dst=dst, src=src, offset=offset)]
        imm = _parse_imm32(operands[1], lineno)
        opcode = EBPF_CLS_ST | EBPF_MODE_MEM | size
        return [Instruction(opcode, dst=dst, offset=offset, imm=imm)]

    match = _ALU_MNEMONIC.match(mnemonic)
    if match and match.group("op") in _ALU_CODES:
        op = match.group("op")
        cls = EBPF_CLS_ALU if match.group("width") == "32" else EBPF_CLS_ALU64
        opcode = cls | _ALU_CODES[op]
        if op == "neg":
            _expect(operands, 1, mnemonic, lineno)
            return [Instruction(opcode, dst=_parse_register(operands[0], lineno))]
        _expect(operands, 2, mnemonic, lineno)
        dst = _parse_register(operands[0], lineno)
        if _REGISTER.match(operands[1]):
            src = _parse_register(operands[1], lineno)
            return [Instruction(opcode | EBPF_SRC_REG, dst=dst, src=src)]
        return [Instruction(opcode, dst=dst, imm=_parse_imm32(operands[1], lineno))]

    raise ValueError(f"Unknown mnemonic '{mnemonic}' at line {lineno}")


def assemble(text):
    """Assemble *text* into a list of instruction slots."""

    instructions = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = re.split(r"[#;]", raw, maxsplit=1)[0].strip().lower()
        if not line:
            continue
        parts = line.split(None, 1)
        mnemonic = parts[0]
        operands = []
        if len(parts) > 1:
            operands = [op.strip() for op in parts[1].split(",")]
            if any(not op for op in operands):
                raise ValueError(f"Empty operand at line {lineno}")
        instructions.extend(_assemble_line(mnemonic, operands, lineno))
    return instructions


def _format_offset(offset):
    return f"{offset:+d}"


def _format_memory(reg, offset):
    return f"[r{reg}{offset:+d}]" if offset else f"[r{reg}]"


def disassemble(inst, high_imm=0):
    """Render one instruction (with the ``lddw`` upper half if relevant)."""

    op = inst.opcode
    cls = instruction_class(op)

    if op == EBPF_OP_EXIT:
        return "exit"
    if op == EBPF_OP_CALL:
        return f"call {inst.imm}"
    if op == EBPF_OP_JA:
        return f"ja {_format_offset(inst.offset)}"
    if op == EBPF_OP_LDDW:
        value = (inst.imm & MASK32) | ((high_imm & MASK32) << 32)
        return f"lddw r{inst.dst}, {hex(value)}"
    if op in (EBPF_OP_LE, EBPF_OP_BE):
        name = "le" if op == EBPF_OP_LE else "be"
        return f"{name}{inst.imm} r{inst.dst}"

    if cls == EBPF_CLS_JMP:
        name = JMP_OPS.get(alu_operation(op), f"jmp_0x{op:02x}")
        rhs = f"r{inst.src}" if is_register_source(op) else str(inst.imm)
        return f"{name} r{inst.dst}, {rhs}, {_format_offset(inst.offset)}"

    if is_alu(op):
        name = ALU_OPS.get(alu_operation(op), f"alu_0x{op:02x}")
        if not is_alu64(op):
            name += "32"
        if alu_operation(op) == 0x80:
            return f"{name} r{inst.dst}"
        rhs = f"r{inst.src}" if is_register_source(op) else str(inst.imm)
        return f"{name} r{inst.dst}, {rhs}"

    size = _SIZE_NAMES.get(op & 0x18)
    if (op & 0xE0) == EBPF_MODE_MEM and size is not None:
        if cls == EBPF_CLS_LDX:
            return f"ldx{size} r{inst.dst}, {_format_memory(inst.src, inst.offset)}"
        if cls == EBPF_CLS_STX:
            return f"stx{size} {_format_memory(inst.dst, inst.offset)}, r{inst.src}"
        if cls == EBPF_CLS_ST:
            return f"st{size} {_format_memory(inst.dst, inst.offset)}, {inst.imm}"

    return f".byte 0x{op:02x}"


def disassemble_program(instructions):
    """Return ``(pc, text)`` pairs for every instruction start."""

    lines = []
    pc = 0
    while pc < len(instructions):
        inst = instructions[pc]
        high = 0
        if inst.opcode == EBPF_OP_LDDW and pc + 1 < len(instructions):
            high = instructions[pc + 1].imm
        lines.append((pc, disassemble(inst, high)))
        pc += 2 if inst.opcode == EBPF_OP_LDDW else 1
    return lines


__all__ = ["SIZE_SUFFIXES", "assemble", "disassemble", "disassemble_program"]
