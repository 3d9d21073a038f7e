"""Abstract interpretation over the eBPF register file.

The domain tracks, for each of the eleven registers, either a single known
64-bit value or ``⊤``. A program point is either unreached or carries one
such register file. Transfer functions compute a successor from an input
state and fold it into an accumulator with :func:`join`; the two oracles
decide whether a memory access or a division is admissible.
"""
from __future__ import annotations

from ..constants import (
    CONTEXT_REGISTER,
    CONTEXT_SIZE,
    EBPF_OP_CALL,
    EBPF_OP_JEQ_IMM,
    EBPF_OP_JEQ_REG,
    EBPF_OP_JNE_IMM,
    EBPF_OP_JNE_REG,
    MASK32,
    NUM_REGISTERS,
    STACK_REGISTER,
    STACK_SIZE,
)
from .core import (
    TOP,
    UNREACHED,
    AbstractState,
    Instruction,
    Known,
    Reachable,
    Unreached,
    known,
    registers_of,
)
from .isa import (
    access_width,
    const_join,
    evaluate_alu,
    is_alu,
    is_alu64,
    is_division,
    is_double_slot,
    is_load,
    is_mov,
    is_register_source,
    sign_extend32,
)

# Registers a helper call may overwrite: the return value and the arguments.
CALL_CLOBBERED = (0, 1, 2, 3, 4, 5)


def initialize_entry() -> Reachable:
    """State at program entry; no calling convention is assumed."""

    return Reachable((TOP,) * NUM_REGISTERS)


def initialize_unreached() -> Unreached:
    return UNREACHED


def join(accumulator: AbstractState, other: AbstractState) -> AbstractState:
    """Fold *other* into *accumulator*.

    Registers 1 through 10 are joined pointwise. Register 0 keeps the
    accumulator's value.
    """

    if isinstance(accumulator, Unreached):
        return other
    if isinstance(other, Unreached):
        return accumulator

    acc = registers_of(accumulator)
    regs = registers_of(other)
    merged = [acc[0]]
    merged.extend(const_join(acc[r], regs[r]) for r in range(1, NUM_REGISTERS))
    return Reachable(tuple(merged))


def _reachable(state: AbstractState) -> Reachable:
    registers_of(state)
    return state


def _step(state: Reachable, inst: Instruction, high_imm: int) -> Reachable:
    if is_double_slot(inst.opcode):
        value = (inst.imm & MASK32) | ((high_imm & MASK32) << 32)
        return state.replace(inst.dst, Known(value))

    if inst.opcode == EBPF_OP_CALL:
        return state.clobber(CALL_CLOBBERED)

    if not is_alu(inst.opcode):
        return state

    dst = state[inst.dst]
    src = state[inst.src]
    if is_register_source(inst.opcode) and not isinstance(src, Known):
        return state.replace(inst.dst, TOP)
    # everything but mov reads the destination
    if not isinstance(dst, Known) and not is_mov(inst.opcode):
        return state.replace(inst.dst, TOP)

    dst_value = dst.value if isinstance(dst, Known) else 0
    src_value = src.value if isinstance(src, Known) else 0
    result = evaluate_alu(inst.opcode, inst.imm, dst_value, src_value)
    return state.replace(inst.dst, Known(result))


def execute(
    accumulator: AbstractState,
    from_state: AbstractState,
    inst: Instruction,
    high_imm: int = 0,
) -> AbstractState:
    """Apply the straight-line semantics of *inst* and join into *accumulator*.

    *high_imm* is the upper 32 bits of a double-slot ``lddw``; other
    instructions ignore it.
    """

    return join(accumulator, _step(_reachable(from_state), inst, high_imm))


def execute_assume(
    accumulator: AbstractState,
    from_state: AbstractState,
    inst: Instruction,
    taken: bool,
) -> AbstractState:
    """Refine *from_state* along one edge of a conditional branch.

    Equality edges (``jeq`` taken, ``jne`` not taken) narrow the compared
    register to the immediate or to the other register's current value.
    Feasibility of the edge is not checked, and the narrowed register is
    not linked to its source afterwards.
    """

    state = _reachable(from_state)
    op = inst.opcode
    if (taken and op == EBPF_OP_JEQ_IMM) or (not taken and op == EBPF_OP_JNE_IMM):
        state = state.replace(inst.dst, known(sign_extend32(inst.imm)))
    elif (taken and op == EBPF_OP_JEQ_REG) or (not taken and op == EBPF_OP_JNE_REG):
        state = state.replace(inst.dst, state[inst.src])

    return join(accumulator, state)


def bounds_fail(
    state: AbstractState, inst: Instruction, pc: int, *, stack_size: int = STACK_SIZE
) -> tuple[bool, str | None]:
    """Check that a load or store stays inside the stack or context region.

    Only the base register's identity and the static offset are consulted;
    *state* is accepted for symmetry with :func:`divzero_fail`.
    """

    width = access_width(inst.opcode)
    if width is None:
        return False, None

    load = is_load(inst.opcode)
    reg = inst.src if load else inst.dst
    offset = inst.offset
    if reg == STACK_REGISTER:
        fail = offset + width > 0 or offset < -stack_size
    elif reg == CONTEXT_REGISTER:
        # r1 is assumed to still hold the context pointer
        fail = offset < 0 or offset + width > CONTEXT_SIZE
    else:
        fail = True

    if not fail:
        return False, None
    kind = "load" if load else "store"
    return True, f"out of bounds memory {kind} at PC {pc} [r{reg}{offset:+d}]"


def divzero_fail(
    state: AbstractState, inst: Instruction, pc: int
) -> tuple[bool, str | None]:
    """Reject a division or modulo whose divisor may be zero."""

    if not is_division(inst.opcode):
        return False, None

    divisor = registers_of(state)[inst.src]
    if isinstance(divisor, Known):
        value = divisor.value if is_alu64(inst.opcode) else divisor.value & MASK32
        if value != 0:
            return False, None
    return True, f"division by zero at PC {pc}"


__all__ = [
    "CALL_CLOBBERED",
    "bounds_fail",
    "divzero_fail",
    "execute",
    "execute_assume",
    "initialize_entry",
    "initialize_unreached",
    "join",
]
