import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from warden import (  # noqa: E402
    EBPF_OP_CALL,
    EBPF_OP_EXIT,
    EBPF_OP_JEQ_IMM,
    EBPF_OP_JEQ_REG,
    EBPF_OP_JGT_IMM,
    EBPF_OP_JNE_IMM,
    EBPF_OP_JNE_REG,
    EBPF_OP_LDXW,
    EBPF_OP_STXDW,
    MASK32,
    MASK64,
)
from warden.runtime import (  # noqa: E402
    TOP,
    UNREACHED,
    Instruction,
    Known,
    Reachable,
    assemble,
    execute,
    execute_assume,
    initialize_entry,
)


def _state(*values):
    regs = [TOP if v is None else Known(v) for v in values]
    regs += [TOP] * (11 - len(regs))
    return Reachable(tuple(regs))


def _run(line, state=None):
    inst = assemble(line)[0]
    return execute(UNREACHED, state or initialize_entry(), inst)


def test_lddw_combines_both_immediate_halves():
    low, high = assemble("lddw r3, 0x200000001")
    result = execute(UNREACHED, initialize_entry(), low, high.imm)
    assert result[3] == Known(0x0000000200000001)


def test_lddw_overwrites_a_known_destination():
    low, high = assemble("lddw r3, 0x200000001")
    result = execute(UNREACHED, _state(0, 0, 0, 99), low, high.imm)
    assert result[3] == Known(0x0000000200000001)


def test_lddw_with_negative_halves_is_all_ones():
    low, high = assemble("lddw r1, 0xffffffffffffffff")
    assert low.imm == -1 and high.imm == -1
    result = execute(UNREACHED, initialize_entry(), low, high.imm)
    assert result[1] == Known(MASK64)


def test_call_clobbers_return_and_argument_registers():
    state = _state(*([7] * 11))
    result = execute(UNREACHED, state, Instruction(EBPF_OP_CALL, imm=1))
    assert all(result[r] is TOP for r in range(6))
    assert all(result[r] == Known(7) for r in range(6, 11))


@pytest.mark.parametrize(
    "inst",
    [
        Instruction(EBPF_OP_LDXW, dst=2, src=1, offset=4),
        Instruction(EBPF_OP_STXDW, dst=10, src=2, offset=-8),
        Instruction(EBPF_OP_JGT_IMM, dst=1, imm=3, offset=1),
        Instruction(EBPF_OP_EXIT),
    ],
)
def test_non_alu_instructions_leave_the_state_unchanged(inst):
    state = _state(1, 2, 3)
    assert execute(UNREACHED, state, inst) == state


def test_mov_immediate_makes_the_register_known():
    assert _run("mov r1, 5")[1] == Known(5)
    assert _run("mov r1, -1")[1] == Known(MASK64)
    assert _run("mov32 r1, -1")[1] == Known(MASK32)


def test_register_source_that_is_top_makes_destination_top():
    state = _state(0, 4)
    assert _run("add r1, r2", state)[1] is TOP
    assert _run("mov r1, r2", state)[1] is TOP


def test_top_destination_stays_top_unless_moved():
    state = _state(0, None, 3)
    assert _run("add r1, 1", state)[1] is TOP
    assert _run("mov r1, r2", state)[1] == Known(3)


def test_known_operands_are_evaluated_with_width():
    state = _state(0, MASK32, 1)
    assert _run("add32 r1, r2", state)[1] == Known(0)
    assert _run("add r1, r2", state)[1] == Known(1 << 32)


def test_execute_joins_into_the_accumulator():
    acc = _state(0, 1)
    result = execute(acc, initialize_entry(), assemble("mov r1, 2")[0])
    assert result[1] is TOP


def test_execute_from_unreached_is_an_error():
    with pytest.raises(RuntimeError):
        execute(UNREACHED, UNREACHED, Instruction(EBPF_OP_EXIT))


def test_jeq_immediate_taken_narrows_destination():
    inst = Instruction(EBPF_OP_JEQ_IMM, dst=1, imm=5, offset=1)
    state = initialize_entry()
    assert execute_assume(UNREACHED, state, inst, True)[1] == Known(5)
    assert execute_assume(UNREACHED, state, inst, False) == state


def test_jne_immediate_not_taken_narrows_with_sign_extension():
    inst = Instruction(EBPF_OP_JNE_IMM, dst=1, imm=-1, offset=1)
    state = initialize_entry()
    assert execute_assume(UNREACHED, state, inst, False)[1] == Known(MASK64)
    assert execute_assume(UNREACHED, state, inst, True) == state


def test_register_equality_copies_the_source_value():
    jeq = Instruction(EBPF_OP_JEQ_REG, dst=1, src=2, offset=1)
    jne = Instruction(EBPF_OP_JNE_REG, dst=1, src=2, offset=1)
    state = _state(0, None, 3)
    assert execute_assume(UNREACHED, state, jeq, True)[1] == Known(3)
    assert execute_assume(UNREACHED, state, jne, False)[1] == Known(3)

    unknown_source = _state(0, 1, None)
    assert execute_assume(UNREACHED, unknown_source, jeq, True)[1] is TOP


def test_other_conditions_are_not_narrowed():
    inst = Instruction(EBPF_OP_JGT_IMM, dst=1, imm=5, offset=1)
    state = _state(0, 9)
    assert execute_assume(UNREACHED, state, inst, True) == state
    assert execute_assume(UNREACHED, state, inst, False) == state


def test_execute_assume_joins_into_the_accumulator():
    inst = Instruction(EBPF_OP_JEQ_IMM, dst=1, imm=5, offset=1)
    acc = _state(0, 4)
    assert execute_assume(acc, initialize_entry(), inst, True)[1] is TOP
