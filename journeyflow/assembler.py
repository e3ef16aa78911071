"""Assemble parsed conversation steps into a renderable journey graph."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Set, Tuple

from .layout import LayoutConfig, assign_positions
from .models import (
    Anomaly,
    AnomalyKind,
    ConversationStep,
    EdgeType,
    JourneyData,
    JourneyEdge,
    JourneyNode,
    NodeType,
    Role,
)

logger = logging.getLogger(__name__)


def node_id_for(step: ConversationStep) -> str:
    return f"step-{step.step_number}"


def unique_edge_id(source: str, target: str, used: Set[str]) -> str:
    """``edge-<source>-<target>``, suffixed ``-2``, ``-3``... when taken."""
    base = f"edge-{source}-{target}"
    edge_id = base
    suffix = 2
    while edge_id in used:
        edge_id = f"{base}-{suffix}"
        suffix += 1
    used.add(edge_id)
    return edge_id


def _record(anomalies: List[Anomaly], anomaly: Anomaly) -> None:
    logger.debug("Graph anomaly: %s", anomaly)
    anomalies.append(anomaly)


def build_edges(steps: List[ConversationStep], anomalies: List[Anomaly]) -> List[JourneyEdge]:
    """Connect steps in source order, honoring explicit branch directives.

    A step with at least one resolvable branch gets exactly its branch
    edges; otherwise it gets a default edge to the next step unless it is
    the last step or marked terminal.
    """
    by_nominal: Dict[int, ConversationStep] = {}
    for step in steps:
        key = step.source_number if step.source_number is not None else step.step_number
        by_nominal.setdefault(key, step)

    used_ids: Set[str] = set()
    edges: List[JourneyEdge] = []

    for i, step in enumerate(steps):
        source = node_id_for(step)

        targets: List[str] = []
        for branch in step.branches:
            target_step = by_nominal.get(branch.target)
            if target_step is None:
                _record(anomalies, Anomaly(
                    AnomalyKind.DANGLING_BRANCH,
                    f"Branch to Step {branch.target} has no matching step; edge dropped",
                    step_number=step.step_number,
                    ref=str(branch.target),
                ))
                continue
            target = node_id_for(target_step)
            if target in targets:
                _record(anomalies, Anomaly(
                    AnomalyKind.DUPLICATE_BRANCH,
                    f"Repeated branch to Step {branch.target} ignored",
                    step_number=step.step_number,
                    ref=str(branch.target),
                ))
                continue
            if target == source and not branch.condition:
                _record(anomalies, Anomaly(
                    AnomalyKind.SELF_LOOP,
                    "Unconditional branch back to the same step ignored",
                    step_number=step.step_number,
                    ref=str(branch.target),
                ))
                continue
            targets.append(target)
            edges.append(JourneyEdge(
                id=unique_edge_id(source, target, used_ids),
                source=source,
                target=target,
                type=EdgeType.BRANCH.value,
                label=branch.condition,
                condition=branch.condition,
            ))

        if targets or step.terminal or i == len(steps) - 1:
            continue

        target = node_id_for(steps[i + 1])
        edges.append(JourneyEdge(
            id=unique_edge_id(source, target, used_ids),
            source=source,
            target=target,
            type=EdgeType.DEFAULT.value,
        ))

    return edges


def node_type_for(index: int, out_degree: int) -> NodeType:
    if out_degree >= 2:
        return NodeType.DECISION
    if out_degree == 0:
        return NodeType.EXIT
    if index == 0:
        return NodeType.INTENT
    return NodeType.ACTION


def _describe(step: ConversationStep) -> str:
    return "\n".join(
        f"{m.role.value.capitalize()}: {m.text}" if m.role != Role.UNTAGGED else m.text
        for m in step.messages
    )


def build_graph(
    steps: List[ConversationStep],
    layout: Optional[LayoutConfig] = None,
) -> Tuple[JourneyData, List[Anomaly]]:
    """Create one node per step plus its edges, laid out and validated."""
    anomalies: List[Anomaly] = []
    edges = build_edges(steps, anomalies)

    successors: Dict[str, List[str]] = {}
    for edge in edges:
        successors.setdefault(edge.source, []).append(edge.target)

    ids = [node_id_for(step) for step in steps]
    positions = assign_positions(ids, successors, layout)

    nodes: List[JourneyNode] = []
    for index, (step, node_id) in enumerate(zip(steps, ids)):
        tags = [step.step_type.value] if step.step_type is not None else []
        nodes.append(JourneyNode(
            id=node_id,
            type=node_type_for(index, len(set(successors.get(node_id, [])))).value,
            label=step.title or f"Step {step.step_number}",
            position=positions[node_id],
            description=_describe(step),
            tags=tags,
            examples=[m.text for m in step.messages_by(Role.CUSTOMER)],
        ))

    graph, invalid = validate_graph(JourneyData(nodes=nodes, edges=edges))
    anomalies.extend(invalid)
    return graph, anomalies


def validate_graph(graph: JourneyData) -> Tuple[JourneyData, List[Anomaly]]:
    """Enforce the graph invariants, dropping what violates them.

    - node ids are unique (first occurrence wins)
    - every edge endpoint is a node in the graph
    - edge ids are unique (later duplicates are renamed)
    - self-loops need a label or condition to count as a clarification loop

    Returns a new graph; node and edge order is preserved.
    """
    anomalies: List[Anomaly] = []

    nodes: List[JourneyNode] = []
    node_ids: Set[str] = set()
    for node in graph.nodes:
        if node.id in node_ids:
            _record(anomalies, Anomaly(
                AnomalyKind.DUPLICATE_NODE,
                f"Duplicate node id '{node.id}' dropped",
                ref=node.id,
            ))
            continue
        node_ids.add(node.id)
        nodes.append(node)

    edges: List[JourneyEdge] = []
    edge_ids: Set[str] = set()
    for edge in graph.edges:
        if edge.source not in node_ids or edge.target not in node_ids:
            _record(anomalies, Anomaly(
                AnomalyKind.DANGLING_EDGE,
                f"Edge '{edge.id}' references a missing node ({edge.source} -> {edge.target}); dropped",
                ref=edge.id,
            ))
            continue
        if edge.source == edge.target and not (edge.label or edge.condition):
            _record(anomalies, Anomaly(
                AnomalyKind.SELF_LOOP,
                f"Unlabelled self-loop '{edge.id}' on '{edge.source}' dropped",
                ref=edge.id,
            ))
            continue
        if edge.id in edge_ids:
            new_id = unique_edge_id(edge.source, edge.target, edge_ids | {e.id for e in graph.edges})
            _record(anomalies, Anomaly(
                AnomalyKind.INVALID_EDGE,
                f"Duplicate edge id '{edge.id}' renamed to '{new_id}'",
                ref=edge.id,
            ))
            edge = replace(edge, id=new_id)
        edge_ids.add(edge.id)
        edges.append(edge)

    return JourneyData(nodes=nodes, edges=edges), anomalies
