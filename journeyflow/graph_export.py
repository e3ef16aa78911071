"""Journey graph export helpers for DOT, Mermaid, JSON and standalone HTML outputs."""

from __future__ import annotations

import html
import json
from pathlib import Path
from typing import Dict, List

from .models import JourneyData, NodeType

EXPORT_FORMATS = ("json", "dot", "mermaid", "html")

_DOT_SHAPES: Dict[str, str] = {
    NodeType.INTENT.value: "ellipse",
    NodeType.ACTION.value: "box",
    NodeType.DECISION.value: "diamond",
    NodeType.EXIT.value: "doubleoctagon",
}

_EDGE_COLORS: Dict[str, str] = {
    "success": "#52c41a",
    "failure": "#f5222d",
    "warning": "#faad14",
    "branch": "#3f51b5",
}


def render_json(graph: JourneyData) -> str:
    return json.dumps(graph.to_dict(), indent=2, ensure_ascii=False)


def render_dot(graph: JourneyData, name: str = "Journey", direction: str = "TB") -> str:
    lines = [f'digraph "{_esc(name)}" {{']
    lines.append(f"  rankdir={direction};")

    for node in graph.nodes:
        shape = _DOT_SHAPES.get(node.type, "box")
        pos = f"{node.position.x:g},{-node.position.y:g}!"
        lines.append(
            f'  "{_esc(node.id)}" [label="{_esc(node.label)}", shape={shape}, pos="{pos}"];'
        )

    for edge in graph.edges:
        attrs = [f'label="{_esc(edge.label)}"'] if edge.label else []
        color = _EDGE_COLORS.get(edge.type)
        if color:
            attrs.append(f'color="{color}"')
        suffix = f" [{', '.join(attrs)}]" if attrs else ""
        lines.append(f'  "{_esc(edge.source)}" -> "{_esc(edge.target)}"{suffix};')

    lines.append("}")
    return "\n".join(lines)


def render_mermaid(graph: JourneyData, direction: str = "TB") -> str:
    # Mermaid ids must be plain identifiers, so nodes get positional aliases.
    alias = {node.id: f"n{i}" for i, node in enumerate(graph.nodes)}
    lines = [f"flowchart {'TD' if direction == 'TB' else direction}"]

    for node in graph.nodes:
        label = _mermaid_label(node.label)
        if node.type == NodeType.DECISION.value:
            lines.append(f'  {alias[node.id]}{{"{label}"}}')
        elif node.type == NodeType.EXIT.value:
            lines.append(f'  {alias[node.id]}(["{label}"])')
        elif node.type == NodeType.INTENT.value:
            lines.append(f'  {alias[node.id]}(("{label}"))')
        else:
            lines.append(f'  {alias[node.id]}["{label}"]')

    for edge in graph.edges:
        arrow = "-.->" if edge.type == "failure" else "-->"
        if edge.label:
            lines.append(f'  {alias[edge.source]} {arrow}|"{_mermaid_label(edge.label)}"| {alias[edge.target]}')
        else:
            lines.append(f"  {alias[edge.source]} {arrow} {alias[edge.target]}")

    return "\n".join(lines)


def render_html(graph: JourneyData, title: str = "Journey") -> str:
    """Standalone vis.js page; node positions are fixed to the computed layout."""
    payload = {
        "nodes": [
            {
                "id": node.id,
                "label": node.label,
                "title": node.description or node.label,
                "group": node.type,
                "x": node.position.x,
                "y": node.position.y,
            }
            for node in graph.nodes
        ],
        "edges": [
            {
                "from": edge.source,
                "to": edge.target,
                "label": edge.label,
                "color": _EDGE_COLORS.get(edge.type, "#8c8c8c"),
            }
            for edge in graph.edges
        ],
    }
    return _HTML_TEMPLATE.format(
        title=html.escape(title),
        data=json.dumps(payload, ensure_ascii=False).replace("</", "<\\/"),
    )


def export_graph(
    graph: JourneyData,
    output_file: Path,
    fmt: str,
    name: str = "Journey",
    direction: str = "TB",
) -> None:
    """Write *graph* to *output_file* in one of :data:`EXPORT_FORMATS`."""
    fmt = fmt.lower()
    if fmt == "json":
        text = render_json(graph)
    elif fmt == "dot":
        text = render_dot(graph, name, direction)
    elif fmt == "mermaid":
        text = render_mermaid(graph, direction)
    elif fmt == "html":
        text = render_html(graph, name)
    else:
        raise ValueError(f"Unsupported export format '{fmt}'; expected one of {', '.join(EXPORT_FORMATS)}")
    output_file.write_text(text, encoding="utf-8")


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _mermaid_label(text: str) -> str:
    parts: List[str] = text.replace('"', "#quot;").splitlines()
    return "<br/>".join(parts)


_HTML_TEMPLATE = """<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>{title}</title>
  <script src="https://unpkg.com/vis-network/standalone/umd/vis-network.min.js"></script>
  <style>
    body {{ font-family: ui-sans-serif, system-ui, sans-serif; margin: 0; }}
    h1 {{ font-size: 18px; margin: 12px 20px; }}
    #journey {{ width: 100vw; height: calc(100vh - 50px); border-top: 1px solid #ddd; }}
  </style>
</head>
<body>
  <h1>{title}</h1>
  <div id="journey"></div>
  <script>
    const graph = {data};
    const network = new vis.Network(
      document.getElementById('journey'),
      {{ nodes: new vis.DataSet(graph.nodes), edges: new vis.DataSet(graph.edges) }},
      {{
        physics: false,
        nodes: {{ shape: 'box', margin: 10, widthConstraint: {{ maximum: 220 }} }},
        edges: {{ arrows: 'to', smooth: {{ type: 'cubicBezier' }} }},
        groups: {{
          intent: {{ color: {{ background: '#e6f7ff', border: '#1890ff' }} }},
          action: {{ color: {{ background: '#f6ffed', border: '#52c41a' }} }},
          decision: {{ shape: 'diamond', color: {{ background: '#fff7e6', border: '#faad14' }} }},
          exit: {{ color: {{ background: '#f9f0ff', border: '#722ed1' }} }}
        }}
      }}
    );
  </script>
</body>
</html>
"""
