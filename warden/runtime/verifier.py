"""Work-list fixpoint driver that admits or rejects whole programs."""
from __future__ import annotations

from dataclasses import dataclass, field
import heapq

import networkx as nx

from ..constants import EBPF_OP_EXIT, EBPF_OP_JA, STACK_SIZE
from .analysis import (
    bounds_fail,
    divzero_fail,
    execute,
    execute_assume,
    initialize_entry,
    initialize_unreached,
)
from .core import Reachable, Unreached
from .isa import is_conditional_jump
from .program import Program, validate_program

# Work-list pops allowed before a run is reported as non-converging.
DEFAULT_MAX_VISITS = 1_000_000


def build_cfg(program):
    """Build the control-flow graph over instruction start pcs.

    Edge ``kind`` is ``next`` for fall-through, ``jump`` for ``ja``, and
    ``taken``/``not_taken`` for the two edges of a conditional branch.
    Targets outside the program are dropped; structural validation reports
    them.
    """

    graph = nx.DiGraph()
    size = len(program)
    for pc in program.slot_starts():
        inst = program[pc]
        graph.add_node(pc, opcode=inst.opcode)

    for pc in program.slot_starts():
        inst = program[pc]
        op = inst.opcode
        fallthrough = program.next_pc(pc)
        if op == EBPF_OP_EXIT:
            continue
        if op == EBPF_OP_JA:
            target = pc + 1 + inst.offset
            if 0 <= target < size:
                graph.add_edge(pc, target, kind="jump")
            continue
        if is_conditional_jump(op):
            target = pc + 1 + inst.offset
            if 0 <= target < size:
                graph.add_edge(pc, target, kind="taken")
            if fallthrough < size:
                if graph.has_edge(pc, fallthrough):
                    # offset 0: both edges reach the same point
                    graph.edges[pc, fallthrough]["kind"] = "both"
                else:
                    graph.add_edge(pc, fallthrough, kind="not_taken")
            continue
        if fallthrough < size:
            graph.add_edge(pc, fallthrough, kind="next")
    return graph


def format_state(state):
    """Render a state as ``r0=⊤ r1=0x1 ...`` (or ``unreached``)."""

    if isinstance(state, Unreached):
        return "unreached"
    return " ".join(f"r{i}={value!r}" for i, value in enumerate(state))


@dataclass
class VerificationResult:
    """Outcome of verifying one program."""

    ok: bool
    diagnostics: list = field(default_factory=list)
    states: dict = field(default_factory=dict)
    visits: int = 0

    @property
    def message(self):
        """First rejection reason, or ``None`` for an admitted program."""

        return self.diagnostics[0] if self.diagnostics else None

    def reachable_pcs(self):
        return sorted(pc for pc, st in self.states.items() if isinstance(st, Reachable))


def _transfer(accumulator, state, program, pc, kind):
    inst = program[pc]
    if kind == "taken":
        return execute_assume(accumulator, state, inst, True)
    if kind == "not_taken":
        return execute_assume(accumulator, state, inst, False)
    if kind == "both":
        accumulator = execute_assume(accumulator, state, inst, True)
        return execute_assume(accumulator, state, inst, False)
    return execute(accumulator, state, inst, program.high_imm(pc))


def compute_fixpoint(program, graph=None, *, max_visits=DEFAULT_MAX_VISITS):
    """Iterate the transfer functions until no accumulator changes.

    Returns ``(states, visits, converged)`` where *states* maps each
    instruction start pc to its input state.
    """

    if graph is None:
        graph = build_cfg(program)
    states = {pc: initialize_unreached() for pc in graph.nodes}
    if not states:
        return states, 0, True
    states[0] = initialize_entry()

    worklist = [0]
    queued = {0}
    visits = 0
    while worklist:
        pc = heapq.heappop(worklist)
        queued.discard(pc)
        visits += 1
        if visits > max_visits:
            return states, visits, False

        current = states[pc]
        for succ in sorted(graph.successors(pc)):
            kind = graph.edges[pc, succ]["kind"]
            updated = _transfer(states[succ], current, program, pc, kind)
            if updated != states[succ]:
                states[succ] = updated
                if succ not in queued:
                    heapq.heappush(worklist, succ)
                    queued.add(succ)
    return states, visits, True


def check_safety(program, states, *, stack_size=STACK_SIZE):
    """Query both oracles at every reachable instruction, in pc order."""

    diagnostics = []
    for pc in sorted(states):
        state = states[pc]
        if isinstance(state, Unreached):
            continue
        inst = program[pc]
        failed, message = bounds_fail(state, inst, pc, stack_size=stack_size)
        if failed:
            diagnostics.append(message)
        failed, message = divzero_fail(state, inst, pc)
        if failed:
            diagnostics.append(message)
    return diagnostics


def verify_program(
    program,
    *,
    stack_size=STACK_SIZE,
    helpers=None,
    max_visits=DEFAULT_MAX_VISITS,
):
    """Verify *program* and return a :class:`VerificationResult`.

    *program* may be a :class:`Program` or a list of instructions. Any
    structural error or oracle failure rejects the whole program.
    """

    if not isinstance(program, Program):
        program = Program(program)

    errors = validate_program(program, helpers)
    if errors:
        return VerificationResult(False, errors)

    graph = build_cfg(program)
    states, visits, converged = compute_fixpoint(
        program, graph, max_visits=max_visits
    )
    if not converged:
        return VerificationResult(
            False,
            [f"verification did not converge after {max_visits} visits"],
            states,
            visits,
        )

    diagnostics = check_safety(program, states, stack_size=stack_size)
    return VerificationResult(not diagnostics, diagnostics, states, visits)


__all__ = [
    "DEFAULT_MAX_VISITS",
    "VerificationResult",
    "build_cfg",
    "check_safety",
    "compute_fixpoint",
    "format_state",
    "verify_program",
]
