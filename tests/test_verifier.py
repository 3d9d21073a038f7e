import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from warden.runtime import (  # noqa: E402
    TOP,
    UNREACHED,
    Known,
    Program,
    Unreached,
    VerificationResult,
    assemble,
    build_cfg,
    format_state,
    initialize_entry,
    verify_program,
)


def _verify(text, **kwargs):
    kwargs.setdefault("helpers", [])
    return verify_program(Program(assemble(text)), **kwargs)


def test_build_cfg_labels_branch_edges():
    graph = build_cfg(Program(assemble("jeq r1, 0, +1\nmov r0, 1\nexit")))
    assert sorted(graph.nodes) == [0, 1, 2]
    assert graph.edges[0, 2]["kind"] == "taken"
    assert graph.edges[0, 1]["kind"] == "not_taken"
    assert graph.edges[1, 2]["kind"] == "next"
    assert list(graph.successors(2)) == []


def test_build_cfg_merges_zero_offset_branches_and_skips_lddw_tail():
    graph = build_cfg(Program(assemble("jeq r1, 0, +0\nlddw r0, 1\nexit")))
    assert graph.edges[0, 1]["kind"] == "both"
    assert sorted(graph.nodes) == [0, 1, 3]
    assert graph.edges[1, 3]["kind"] == "next"


def test_build_cfg_unconditional_jump():
    graph = build_cfg(Program(assemble("ja +1\nmov r0, 1\nexit")))
    assert graph.edges[0, 2]["kind"] == "jump"
    assert not graph.has_edge(0, 1)


def test_simple_program_is_admitted():
    result = _verify("mov r0, 0\nexit")
    assert result.ok
    assert result.message is None
    assert result.states[1][0] == Known(0)
    assert result.reachable_pcs() == [0, 1]


def test_verify_program_accepts_instruction_lists():
    assert verify_program(assemble("mov r0, 0\nexit"), helpers=[]).ok


def test_stack_access_is_admitted():
    result = _verify("stdw [r10-8], 1\nldxdw r0, [r10-8]\nexit")
    assert result.ok


def test_out_of_bounds_context_load_is_rejected():
    result = _verify("ldxw r0, [r1+4096]\nexit")
    assert not result.ok
    assert result.message == "out of bounds memory load at PC 0 [r1+4096]"


def test_stack_size_parameter_widens_the_stack():
    text = "stdw [r10-256], 1\nmov r0, 0\nexit"
    assert not _verify(text).ok
    assert _verify(text, stack_size=512).ok


def test_unreachable_instructions_are_not_checked():
    result = _verify("ja +1\nldxw r0, [r2]\nexit")
    assert result.ok
    assert isinstance(result.states[1], Unreached)
    assert result.reachable_pcs() == [0, 2]


def test_division_by_known_zero_is_rejected():
    result = _verify("mov r0, 10\nmov r2, 0\ndiv r0, r2\nexit")
    assert result.diagnostics == ["division by zero at PC 2"]


def test_division_by_known_value_is_admitted():
    result = _verify("mov r0, 10\nmov r2, 2\ndiv r0, r2\nexit")
    assert result.ok
    assert result.states[3][0] == Known(5)


def test_merging_different_divisors_rejects():
    text = """
    mov r2, 1
    jeq r1, 0, +1
    mov r2, 0
    div r0, r2
    exit
    """
    result = _verify(text)
    assert result.diagnostics == ["division by zero at PC 3"]
    assert result.states[3][2] is TOP


def test_equality_branch_narrows_the_divisor():
    text = """
    jeq r2, 3, +1
    exit
    div r0, r2
    exit
    """
    result = _verify(text)
    assert result.ok
    assert result.states[2][2] == Known(3)


def test_helper_call_clobbers_the_divisor():
    text = "mov r2, 4\ncall 1\ndiv r0, r2\nexit"
    result = _verify(text, helpers="trace:1")
    assert result.diagnostics == ["division by zero at PC 2"]

    preserved = "mov r6, 4\ncall 1\ndiv r0, r6\nexit"
    assert _verify(preserved, helpers="trace:1").ok


def test_structural_errors_short_circuit_analysis():
    result = _verify("call 9\nexit")
    assert not result.ok
    assert result.diagnostics == ["invalid call immediate at PC 0"]
    assert result.states == {}


def test_loops_converge_to_top():
    text = """
    mov r1, 0
    add r1, 1
    jne r1, 10, -2
    exit
    """
    result = _verify(text)
    assert result.ok
    assert result.states[1][1] is TOP
    assert result.states[3][1] == Known(10)


def test_visit_limit_reports_non_convergence():
    result = _verify("mov r0, 0\nmov r0, 1\nexit", max_visits=1)
    assert not result.ok
    assert result.message == "verification did not converge after 1 visits"


def test_register_zero_keeps_the_first_value_at_a_merge():
    text = """
    jeq r1, 0, +2
    mov r0, 1
    ja +1
    mov r0, 2
    exit
    """
    result = _verify(text)
    assert result.ok
    assert result.states[4][0] == Known(1)


def test_format_state():
    assert format_state(UNREACHED) == "unreached"
    state = initialize_entry().replace(1, Known(1))
    assert format_state(state).startswith("r0=⊤ r1=0x1 r2=⊤")


def test_verification_result_defaults():
    result = VerificationResult(True)
    assert result.message is None
    assert result.reachable_pcs() == []


@pytest.mark.parametrize("size", [0, 1])
def test_degenerate_programs(size):
    program = Program(assemble("exit")[:size])
    result = verify_program(program, helpers=[])
    assert result.ok is bool(size)
