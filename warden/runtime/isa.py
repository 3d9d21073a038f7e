"""Opcode classification and scalar primitives for the eBPF instruction set."""
from __future__ import annotations

from ..constants import (
    EBPF_ALU_OP_MASK,
    EBPF_CLS_ALU,
    EBPF_CLS_ALU64,
    EBPF_CLS_JMP,
    EBPF_CLS_LD,
    EBPF_CLS_LDX,
    EBPF_CLS_MASK,
    EBPF_CLS_ST,
    EBPF_CLS_STX,
    EBPF_OP_BE,
    EBPF_OP_CALL,
    EBPF_OP_DIV64_IMM,
    EBPF_OP_DIV_IMM,
    EBPF_OP_EXIT,
    EBPF_OP_JA,
    EBPF_OP_LDDW,
    EBPF_OP_LDXB,
    EBPF_OP_LDXDW,
    EBPF_OP_LDXH,
    EBPF_OP_LDXW,
    EBPF_OP_LE,
    EBPF_OP_MOD64_IMM,
    EBPF_OP_MOD_IMM,
    EBPF_OP_MOV64_IMM,
    EBPF_OP_MOV64_REG,
    EBPF_OP_MOV_IMM,
    EBPF_OP_MOV_REG,
    EBPF_OP_STB,
    EBPF_OP_STDW,
    EBPF_OP_STH,
    EBPF_OP_STW,
    EBPF_OP_STXB,
    EBPF_OP_STXDW,
    EBPF_OP_STXH,
    EBPF_OP_STXW,
    EBPF_SRC_REG,
    MASK32,
    MASK64,
)
from .core import TOP, Known, Scalar

ALU_OPS = {
    0x00: "add",
    0x10: "sub",
    0x20: "mul",
    0x30: "div",
    0x40: "or",
    0x50: "and",
    0x60: "lsh",
    0x70: "rsh",
    0x80: "neg",
    0x90: "mod",
    0xA0: "xor",
    0xB0: "mov",
    0xC0: "arsh",
    0xD0: "end",
}

JMP_OPS = {
    0x00: "ja",
    0x10: "jeq",
    0x20: "jgt",
    0x30: "jge",
    0x40: "jset",
    0x50: "jne",
    0x60: "jsgt",
    0x70: "jsge",
    0x80: "call",
    0x90: "exit",
    0xA0: "jlt",
    0xB0: "jle",
    0xC0: "jslt",
    0xD0: "jsle",
}

ACCESS_WIDTHS = {
    EBPF_OP_LDXB: 1,
    EBPF_OP_STB: 1,
    EBPF_OP_STXB: 1,
    EBPF_OP_LDXH: 2,
    EBPF_OP_STH: 2,
    EBPF_OP_STXH: 2,
    EBPF_OP_LDXW: 4,
    EBPF_OP_STW: 4,
    EBPF_OP_STXW: 4,
    EBPF_OP_LDXDW: 8,
    EBPF_OP_STDW: 8,
    EBPF_OP_STXDW: 8,
}

MOV_OPCODES = frozenset(
    {EBPF_OP_MOV_IMM, EBPF_OP_MOV_REG, EBPF_OP_MOV64_IMM, EBPF_OP_MOV64_REG}
)

DIVISION_OPCODES = frozenset(
    {EBPF_OP_DIV_IMM, EBPF_OP_DIV64_IMM, EBPF_OP_MOD_IMM, EBPF_OP_MOD64_IMM}
)


def const_join(a: Scalar, b: Scalar) -> Scalar:
    """Least upper bound in the flat constant lattice."""

    if isinstance(a, Known) and isinstance(b, Known) and a.value == b.value:
        return a
    return TOP


def instruction_class(opcode: int) -> int:
    return opcode & EBPF_CLS_MASK


def alu_operation(opcode: int) -> int:
    return opcode & EBPF_ALU_OP_MASK


def is_alu(opcode: int) -> bool:
    return instruction_class(opcode) in (EBPF_CLS_ALU, EBPF_CLS_ALU64)


def is_alu64(opcode: int) -> bool:
    return instruction_class(opcode) == EBPF_CLS_ALU64


def is_mov(opcode: int) -> bool:
    return opcode in MOV_OPCODES


def is_register_source(opcode: int) -> bool:
    return bool(opcode & EBPF_SRC_REG)


def is_load(opcode: int) -> bool:
    return instruction_class(opcode) in (EBPF_CLS_LD, EBPF_CLS_LDX)


def is_store(opcode: int) -> bool:
    return instruction_class(opcode) in (EBPF_CLS_ST, EBPF_CLS_STX)


def access_width(opcode: int) -> int | None:
    """Return the byte width of a load/store, or ``None`` for other opcodes."""

    return ACCESS_WIDTHS.get(opcode)


def is_memory_access(opcode: int) -> bool:
    return opcode in ACCESS_WIDTHS


def is_double_slot(opcode: int) -> bool:
    return opcode == EBPF_OP_LDDW


def is_jump(opcode: int) -> bool:
    return instruction_class(opcode) == EBPF_CLS_JMP and opcode not in (
        EBPF_OP_CALL,
        EBPF_OP_EXIT,
    )


def is_conditional_jump(opcode: int) -> bool:
    return is_jump(opcode) and opcode != EBPF_OP_JA


def is_division(opcode: int) -> bool:
    """DIV or MOD of either width, in register or immediate form."""

    return (opcode & ~EBPF_SRC_REG) in DIVISION_OPCODES


def sign_extend32(value: int) -> int:
    """Sign-extend a 32-bit immediate to an unsigned 64-bit pattern."""

    value &= MASK32
    if value & 0x80000000:
        value -= 1 << 32
    return value & MASK64


def _to_signed(value: int, bits: int) -> int:
    if value & (1 << (bits - 1)):
        return value - (1 << bits)
    return value


def _byteswap(value: int, bits: int) -> int:
    nbytes = bits // 8
    return int.from_bytes(
        (value & ((1 << bits) - 1)).to_bytes(nbytes, "little"), "big"
    )


def evaluate_alu(opcode: int, imm: int, dst_value: int, src_value: int) -> int:
    """Evaluate one ALU instruction on concrete 64-bit register values.

    The second operand is the source register for register forms and the
    immediate otherwise. 32-bit operations read and write the low half of
    the registers and zero the upper half of the result.
    """

    if not is_alu(opcode):
        raise ValueError(f"Opcode 0x{opcode:02x} is not an ALU instruction")

    op = alu_operation(opcode)
    wide = is_alu64(opcode)
    bits = 64 if wide else 32
    mask = MASK64 if wide else MASK32

    if op == 0xD0:
        value = dst_value & MASK64
        width = imm if imm in (16, 32, 64) else 64
        if opcode == EBPF_OP_BE:
            return _byteswap(value, width)
        if opcode == EBPF_OP_LE:
            return value & ((1 << width) - 1)
        raise ValueError(f"Opcode 0x{opcode:02x} is not a valid byte-order opcode")

    if is_register_source(opcode):
        b = src_value & mask
    elif wide:
        b = sign_extend32(imm)
    else:
        b = imm & MASK32
    a = dst_value & mask
    shift = b & (bits - 1)

    if op == 0x00:
        result = a + b
    elif op == 0x10:
        result = a - b
    elif op == 0x20:
        result = a * b
    elif op == 0x30:
        result = a // b if b else 0
    elif op == 0x40:
        result = a | b
    elif op == 0x50:
        result = a & b
    elif op == 0x60:
        result = a << shift
    elif op == 0x70:
        result = a >> shift
    elif op == 0x80:
        result = -a
    elif op == 0x90:
        result = a % b if b else a
    elif op == 0xA0:
        result = a ^ b
    elif op == 0xB0:
        result = b
    elif op == 0xC0:
        result = _to_signed(a, bits) >> shift
    else:
        raise ValueError(f"Unknown ALU operation in opcode 0x{opcode:02x}")

    return result & mask


__all__ = [
    "ACCESS_WIDTHS",
    "ALU_OPS",
    "DIVISION_OPCODES",
    "JMP_OPS",
    "MOV_OPCODES",
    "access_width",
    "alu_operation",
    "const_join",
    "evaluate_alu",
    "instruction_class",
    "is_alu",
    "is_alu64",
    "is_conditional_jump",
    "is_division",
    "is_double_slot",
    "is_jump",
    "is_load",
    "is_memory_access",
    "is_mov",
    "is_register_source",
    "is_store",
    "sign_extend32",
]
