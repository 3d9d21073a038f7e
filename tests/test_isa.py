import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from warden import constants as C  # noqa: E402
from warden.runtime import (  # noqa: E402
    access_width,
    evaluate_alu,
    is_alu64,
    is_conditional_jump,
    is_division,
    is_jump,
    is_load,
    is_mov,
    is_store,
    sign_extend32,
)


@pytest.mark.parametrize(
    "opcode, imm, dst, src, expected",
    [
        (C.EBPF_OP_ADD64_IMM, 1, 5, 0, 6),
        (C.EBPF_OP_SUB64_IMM, 1, 0, 0, C.MASK64),
        (C.EBPF_OP_SUB_IMM, 1, 0, 0, C.MASK32),
        (C.EBPF_OP_MUL64_REG, 0, 3, 4, 12),
        (C.EBPF_OP_DIV64_REG, 0, 7, 2, 3),
        (C.EBPF_OP_DIV64_REG, 0, 7, 0, 0),
        (C.EBPF_OP_MOD64_REG, 0, 7, 0, 7),
        (C.EBPF_OP_MOD64_IMM, 3, 7, 0, 1),
        (C.EBPF_OP_LSH64_IMM, 65, 1, 0, 2),
        (C.EBPF_OP_LSH_IMM, 33, 1, 0, 2),
        (C.EBPF_OP_LSH_IMM, 31, 3, 0, 0x80000000),
        (C.EBPF_OP_RSH64_IMM, 4, 0x100, 0, 0x10),
        (C.EBPF_OP_NEG64, 0, 1, 0, C.MASK64),
        (C.EBPF_OP_NEG, 0, 1, 0, C.MASK32),
        (C.EBPF_OP_XOR64_REG, 0, 0b1100, 0b1010, 0b0110),
        (C.EBPF_OP_OR_IMM, 0xF0, 0x0F, 0, 0xFF),
        (C.EBPF_OP_AND64_IMM, -1, 0x1234, 0, 0x1234),
        (C.EBPF_OP_AND_IMM, 0xFF, 0x1_0000_1234, 0, 0x34),
        (C.EBPF_OP_MOV64_IMM, -1, 0, 0, C.MASK64),
        (C.EBPF_OP_MOV_IMM, -1, 0, 0, C.MASK32),
        (C.EBPF_OP_MOV64_REG, 0, 0, 0x1_0000_0000, 0x1_0000_0000),
        (C.EBPF_OP_MOV_REG, 0, 0, 0x1_0000_0002, 2),
        (C.EBPF_OP_ARSH64_IMM, 4, 0xFFFFFFFFFFFFFF00, 0, 0xFFFFFFFFFFFFFFF0),
        (C.EBPF_OP_ARSH_IMM, 4, 0x80000000, 0, 0xF8000000),
        (C.EBPF_OP_ADD_REG, 0, 0x1FFFFFFFF, 1, 0),
        (C.EBPF_OP_LE, 16, 0x12345678, 0, 0x5678),
        (C.EBPF_OP_LE, 64, 0x12345678, 0, 0x12345678),
        (C.EBPF_OP_BE, 16, 0x1234, 0, 0x3412),
        (C.EBPF_OP_BE, 32, 0x11223344, 0, 0x44332211),
        (C.EBPF_OP_BE, 64, 0x0102030405060708, 0, 0x0807060504030201),
    ],
)
def test_evaluate_alu(opcode, imm, dst, src, expected):
    assert evaluate_alu(opcode, imm, dst, src) == expected


def test_evaluate_alu_rejects_non_alu_opcodes():
    with pytest.raises(ValueError):
        evaluate_alu(C.EBPF_OP_EXIT, 0, 0, 0)


def test_sign_extend32():
    assert sign_extend32(-1) == C.MASK64
    assert sign_extend32(0x7FFFFFFF) == 0x7FFFFFFF
    assert sign_extend32(0x80000000) == 0xFFFFFFFF80000000


def test_opcode_classification():
    assert is_division(C.EBPF_OP_DIV_REG)
    assert is_division(C.EBPF_OP_MOD64_IMM)
    assert not is_division(C.EBPF_OP_ADD64_REG)

    assert is_alu64(C.EBPF_OP_ADD64_IMM)
    assert not is_alu64(C.EBPF_OP_ADD_IMM)
    assert is_mov(C.EBPF_OP_MOV_REG)
    assert not is_mov(C.EBPF_OP_ADD_REG)

    assert is_load(C.EBPF_OP_LDXW)
    assert is_load(C.EBPF_OP_LDDW)
    assert is_store(C.EBPF_OP_STXB)
    assert is_store(C.EBPF_OP_STW)

    assert is_jump(C.EBPF_OP_JA)
    assert not is_conditional_jump(C.EBPF_OP_JA)
    assert is_conditional_jump(C.EBPF_OP_JSLE_REG)
    assert not is_jump(C.EBPF_OP_CALL)
    assert not is_jump(C.EBPF_OP_EXIT)


@pytest.mark.parametrize(
    "opcode, width",
    [
        (C.EBPF_OP_LDXB, 1),
        (C.EBPF_OP_STH, 2),
        (C.EBPF_OP_STXW, 4),
        (C.EBPF_OP_LDXDW, 8),
        (C.EBPF_OP_LDDW, None),
        (C.EBPF_OP_ADD64_IMM, None),
    ],
)
def test_access_width(opcode, width):
    assert access_width(opcode) == width
