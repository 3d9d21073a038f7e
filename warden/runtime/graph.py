"""Control-flow graph rendering with verification results overlaid."""
from __future__ import annotations

from pathlib import Path
import re

import networkx as nx

try:
    import matplotlib.pyplot as plt
except ModuleNotFoundError:  # pragma: no cover
    plt = None

try:
    import pydot
except ModuleNotFoundError:  # pragma: no cover
    pydot = None

from ..constants import EDGE_STYLES, STACK_SIZE, STATUS_COLORS
from .analysis import bounds_fail, divzero_fail
from .asm import disassemble
from .core import Known, Unreached
from .verifier import build_cfg, format_state


def annotate_cfg(program, result, *, stack_size=STACK_SIZE):
    """Return the CFG with per-node disassembly, state and status attributes.

    ``status`` is ``safe``, ``rejected`` (an oracle fails there) or
    ``unreached``.
    """

    graph = build_cfg(program)
    for pc in graph.nodes:
        inst = program[pc]
        state = result.states.get(pc)
        info = graph.nodes[pc]
        info["text"] = disassemble(inst, program.high_imm(pc))
        if state is None or isinstance(state, Unreached):
            info["status"] = "unreached"
            info["state"] = "unreached"
            info["known"] = 0
            continue
        info["state"] = format_state(state)
        info["known"] = sum(1 for value in state if isinstance(value, Known))
        out_of_bounds = bounds_fail(state, inst, pc, stack_size=stack_size)[0]
        divides_by_zero = divzero_fail(state, inst, pc)[0]
        info["status"] = "rejected" if out_of_bounds or divides_by_zero else "safe"
    return graph


def _node_label(pc, info, with_state=False):
    label = f"{pc}: {info['text']}"
    if with_state:
        label += f"\n{info['state']}"
    return label


def visualize_cfg(
    program, result, script="status", output=None, *, stack_size=STACK_SIZE
):  # pragma: no cover
    """Draw the annotated CFG with matplotlib.

    *script* holds one or more directives separated by ``,``/``;``/``+``:

    ``status``
        Colour instructions by verdict (safe, rejected, unreached).
    ``knowledge``
        Shade instructions by how many registers hold a known value.

    With *output* the figure is saved instead of shown.
    """

    if plt is None:
        raise RuntimeError("Visualization requires matplotlib to be installed")
    if script is None or script is True:
        script = "status"
    if not isinstance(script, str):
        raise TypeError("Visualization script must be a string of directives")

    commands = [
        part.strip().lower() for part in re.split(r"[;,+]+", script) if part.strip()
    ] or ["status"]

    graph = annotate_cfg(program, result, stack_size=stack_size)
    labels = {pc: _node_label(pc, graph.nodes[pc]) for pc in graph.nodes}
    positions = {pc: (0, -index) for index, pc in enumerate(sorted(graph.nodes))}
    dashed = [
        (u, v) for u, v, data in graph.edges(data=True)
        if EDGE_STYLES.get(data.get("kind")) == "dashed"
    ]
    solid = [edge for edge in graph.edges if edge not in dashed]

    def status_color(pc):
        return STATUS_COLORS[graph.nodes[pc]["status"]]

    def knowledge_color(pc):
        known_count = graph.nodes[pc]["known"]
        shade = 255 - int(200 * known_count / 11)
        return f"#{shade:02x}{shade:02x}ff"

    def render(color_for_node, title, filename=None):
        plt.figure(figsize=(6, max(3, len(graph) * 0.5)))
        nx.draw_networkx_nodes(
            graph,
            positions,
            node_color=[color_for_node(pc) for pc in graph.nodes],
            node_shape="s",
            edgecolors="black",
        )
        nx.draw_networkx_labels(graph, positions, labels=labels, font_size=8)
        nx.draw_networkx_edges(
            graph, positions, edgelist=solid, connectionstyle="arc3,rad=0.4"
        )
        if dashed:
            nx.draw_networkx_edges(
                graph,
                positions,
                edgelist=dashed,
                style="dashed",
                connectionstyle="arc3,rad=-0.4",
            )
        plt.title(title)
        plt.axis("off")
        plt.tight_layout()
        if filename:
            plt.savefig(filename)
            plt.close()
            print(f"  ✓ CFG figure saved → {filename}")
        else:
            plt.show()

    verdict = "admitted" if result.ok else "rejected"
    for command in commands:
        filename = None
        if output:
            out = Path(output)
            filename = out if len(commands) == 1 else out.with_name(
                f"{out.stem}-{command}{out.suffix}"
            )
        if command in {"status", "verdict"}:
            render(status_color, f"Warden CFG: {verdict}", filename)
        elif command in {"knowledge", "known"}:
            render(knowledge_color, "Warden CFG: known registers", filename)
        else:
            raise ValueError(f"Unknown visualization directive '{command}'")


def build_graphviz(program, result, *, stack_size=STACK_SIZE):
    """Build a ``pydot.Dot`` graph of the annotated CFG."""

    if pydot is None:
        raise RuntimeError("Graphviz export requires the optional pydot dependency")

    graph = annotate_cfg(program, result, stack_size=stack_size)
    dot = pydot.Dot(
        "warden_cfg",
        graph_type="digraph",
        rankdir="TB",
        fontname="Helvetica",
        label="admitted" if result.ok else f"rejected: {result.message}",
    )

    for pc in sorted(graph.nodes):
        info = graph.nodes[pc]
        label = _node_label(pc, info, with_state=True).replace("\n", "\\n")
        dot.add_node(
            pydot.Node(
                f"pc{pc}",
                label=f'"{label}"',
                shape="box",
                style="filled",
                fillcolor=STATUS_COLORS[info["status"]],
                fontname="Helvetica",
            )
        )

    for u, v, data in graph.edges(data=True):
        kind = data.get("kind", "next")
        attrs = {"style": EDGE_STYLES.get(kind, "solid")}
        if kind in ("taken", "not_taken"):
            attrs["label"] = kind.replace("_", " ")
        dot.add_edge(pydot.Edge(f"pc{u}", f"pc{v}", **attrs))

    return dot


def export_graphviz(program, result, output_path, *, stack_size=STACK_SIZE):  # pragma: no cover
    """Write the annotated CFG to an SVG file through Graphviz."""

    dot = build_graphviz(program, result, stack_size=stack_size)
    output_path = Path(output_path)
    if output_path.parent and not output_path.parent.exists():
        output_path.parent.mkdir(parents=True, exist_ok=True)
    dot.write_svg(str(output_path))
    print(f"  ✓ Graphviz CFG exported → {output_path}")
    return output_path


__all__ = [
    "annotate_cfg",
    "build_graphviz",
    "export_graphviz",
    "visualize_cfg",
]
