"""Normalize externally analyzed transcript graphs.

The transcript-analysis service returns a loosely shaped JSON payload::

    {
      "intents": [{"name": ..., "frequency": ..., "examples": [...]}],
      "sentiments": {"positive": ..., "negative": ..., "neutral": ...},
      "journeyMap": {"nodes": [...], "edges": [...]},
      "insights": {"bottlenecks": [...], "dropoffs": [...], "improvements": [...]}
    }

Nothing in it is trusted: missing ids are generated, unusable entries are
dropped with an anomaly, missing positions are filled by the layout pass,
and the resulting graph always satisfies the graph invariants.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from .analysis import Bottleneck, Dropoff, Improvement, Insights, Intent
from .assembler import unique_edge_id, validate_graph
from .classifier import Vocabulary, classify_text
from .layout import LayoutConfig, assign_positions, clear_of
from .models import (
    AnalysisPayloadError,
    Anomaly,
    AnomalyKind,
    EdgeType,
    JourneyData,
    JourneyEdge,
    JourneyNode,
    NodeMetrics,
    NodeType,
    Position,
)

logger = logging.getLogger(__name__)

SENTIMENT_KEYS = ("positive", "negative", "neutral")


@dataclass
class TranscriptAnalysis:
    journey: JourneyData
    intents: List[Intent] = field(default_factory=list)
    sentiments: Dict[str, float] = field(default_factory=lambda: {k: 0.0 for k in SENTIMENT_KEYS})
    insights: Insights = field(default_factory=Insights)
    anomalies: List[Anomaly] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intents": [i.to_dict() for i in self.intents],
            "sentiments": dict(self.sentiments),
            "journeyMap": self.journey.to_dict(),
            "insights": self.insights.to_dict(),
            "anomalies": [a.to_dict() for a in self.anomalies],
        }


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip().rstrip("%"))
        except ValueError:
            return None
    return None


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _strings(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if isinstance(v, (str, int, float)) and str(v).strip()]


def _metrics(raw: Any) -> Optional[NodeMetrics]:
    if not isinstance(raw, dict):
        return None
    metrics = NodeMetrics(
        frequency=_number(raw.get("frequency")),
        duration=_number(raw.get("duration")),
        satisfaction=_number(raw.get("satisfaction")),
        dropoff=_number(raw.get("dropoff")),
    )
    return None if metrics.is_empty() else metrics


def _fresh_id(prefix: str, counter: Iterator[int], taken: Set[str]) -> str:
    while True:
        candidate = f"{prefix}-{next(counter)}"
        if candidate not in taken:
            return candidate


def _record(anomalies: List[Anomaly], kind: AnomalyKind, message: str, ref: Optional[str] = None) -> None:
    anomaly = Anomaly(kind, message, ref=ref)
    logger.debug("Normalization anomaly: %s", anomaly)
    anomalies.append(anomaly)


def _raw_id(value: Any) -> str:
    if isinstance(value, bool):
        return ""
    if isinstance(value, (str, int)):
        return str(value).strip()
    return ""


def normalize_journey(
    raw: Any,
    layout: Optional[LayoutConfig] = None,
    vocabulary: Optional[Vocabulary] = None,
) -> Tuple[JourneyData, List[Anomaly]]:
    """Turn an external ``journeyMap`` into a valid, fully positioned graph.

    Computed positions never coincide with supplied ones. Nodes without
    tags are tagged with the step type of their label and description.

    ``None`` yields an empty graph with a ``missing_graph`` anomaly; any other
    non-mapping raises :class:`AnalysisPayloadError`.
    """
    anomalies: List[Anomaly] = []
    if raw is None:
        _record(anomalies, AnomalyKind.MISSING_GRAPH, "No journey map supplied; returning an empty graph")
        return JourneyData(), anomalies
    if not isinstance(raw, dict):
        raise AnalysisPayloadError(f"journeyMap must be an object, got {type(raw).__name__}")

    raw_nodes = raw.get("nodes") if isinstance(raw.get("nodes"), list) else []
    raw_edges = raw.get("edges") if isinstance(raw.get("edges"), list) else []

    taken = {_raw_id(n.get("id")) for n in raw_nodes if isinstance(n, dict)} - {""}
    node_counter = itertools.count(1)

    nodes: List[JourneyNode] = []
    # Keyed by object identity: duplicate ids are only resolved by validate_graph.
    unplaced: Set[int] = set()
    for index, entry in enumerate(raw_nodes):
        if not isinstance(entry, dict):
            _record(anomalies, AnomalyKind.INVALID_NODE, f"Node #{index} is not an object; dropped")
            continue
        data = entry.get("data") if isinstance(entry.get("data"), dict) else {}

        node_id = _raw_id(entry.get("id"))
        if not node_id:
            node_id = _fresh_id("node", node_counter, taken)
            taken.add(node_id)
            _record(anomalies, AnomalyKind.INVALID_NODE, f"Node #{index} had no id; assigned '{node_id}'", node_id)

        node_type = _text(entry.get("type")) or _text(data.get("nodeType")) or NodeType.PASSTHROUGH.value
        label = _text(entry.get("label")) or _text(data.get("label")) or node_id
        description = _text(data.get("description"))
        position = Position.from_dict(entry.get("position"))

        node = JourneyNode(
            id=node_id,
            type=node_type,
            label=label,
            position=position or Position(0.0, 0.0),
            description=description,
            metrics=_metrics(data.get("metrics")),
            tags=_strings(data.get("tags")) or [classify_text(f"{label}\n{description}", vocabulary).value],
            examples=_strings(data.get("examples")),
        )
        if position is None:
            unplaced.add(id(node))
        nodes.append(node)

    edge_ids = {_raw_id(e.get("id")) for e in raw_edges if isinstance(e, dict)} - {""}
    edges: List[JourneyEdge] = []
    for index, entry in enumerate(raw_edges):
        if not isinstance(entry, dict):
            _record(anomalies, AnomalyKind.INVALID_EDGE, f"Edge #{index} is not an object; dropped")
            continue
        source, target = _raw_id(entry.get("source")), _raw_id(entry.get("target"))
        if not source or not target:
            _record(anomalies, AnomalyKind.INVALID_EDGE, f"Edge #{index} lacks a source or target; dropped")
            continue
        data = entry.get("data") if isinstance(entry.get("data"), dict) else {}
        edge_id = _raw_id(entry.get("id")) or unique_edge_id(source, target, edge_ids)
        edges.append(JourneyEdge(
            id=edge_id,
            source=source,
            target=target,
            type=_text(entry.get("type")) or EdgeType.DEFAULT.value,
            label=_text(entry.get("label")),
            frequency=_number(data.get("frequency")),
            condition=_text(data.get("condition")),
        ))

    graph, invalid = validate_graph(JourneyData(nodes=nodes, edges=edges))
    anomalies.extend(invalid)

    if unplaced:
        successors: Dict[str, List[str]] = {}
        for edge in graph.edges:
            successors.setdefault(edge.source, []).append(edge.target)
        positions = assign_positions(graph.node_ids(), successors, layout)
        occupied = {node.position for node in graph.nodes if id(node) not in unplaced}
        for node in graph.nodes:
            if id(node) in unplaced:
                node.position = clear_of(positions[node.id], occupied, layout)
                occupied.add(node.position)

    return graph, anomalies


def _intents(raw: Any) -> List[Intent]:
    intents: List[Intent] = []
    for entry in raw if isinstance(raw, list) else []:
        if not isinstance(entry, dict) or not _text(entry.get("name")):
            continue
        intents.append(Intent(
            name=_text(entry.get("name")),
            frequency=_number(entry.get("frequency")) or 0.0,
            examples=_strings(entry.get("examples")),
        ))
    return intents


def _sentiments(raw: Any) -> Dict[str, float]:
    raw = raw if isinstance(raw, dict) else {}
    return {key: _number(raw.get(key)) or 0.0 for key in SENTIMENT_KEYS}


def _insights(raw: Any, node_ids: Set[str], anomalies: List[Anomaly]) -> Insights:
    raw = raw if isinstance(raw, dict) else {}
    insights = Insights()

    for entry in raw.get("bottlenecks") if isinstance(raw.get("bottlenecks"), list) else []:
        if not isinstance(entry, dict):
            continue
        node_id = _raw_id(entry.get("nodeId"))
        if node_id not in node_ids:
            _record(anomalies, AnomalyKind.DANGLING_INSIGHT,
                    f"Bottleneck for unknown node '{node_id}' dropped", node_id or None)
            continue
        insights.bottlenecks.append(Bottleneck(
            node_id=node_id,
            reason=_text(entry.get("reason")),
            suggestion=_text(entry.get("suggestion")),
        ))

    for entry in raw.get("dropoffs") if isinstance(raw.get("dropoffs"), list) else []:
        if not isinstance(entry, dict):
            continue
        node_id = _raw_id(entry.get("nodeId"))
        if node_id not in node_ids:
            _record(anomalies, AnomalyKind.DANGLING_INSIGHT,
                    f"Dropoff for unknown node '{node_id}' dropped", node_id or None)
            continue
        insights.dropoffs.append(Dropoff(
            node_id=node_id,
            frequency=_number(entry.get("frequency")) or 0.0,
            reason=_text(entry.get("reason")),
        ))

    for entry in raw.get("improvements") if isinstance(raw.get("improvements"), list) else []:
        if isinstance(entry, dict) and _text(entry.get("description")):
            insights.improvements.append(Improvement(
                type=_text(entry.get("type")) or "general",
                description=_text(entry.get("description")),
                impact=_text(entry.get("impact")),
            ))

    return insights


def normalize_analysis(
    payload: Any,
    layout: Optional[LayoutConfig] = None,
    vocabulary: Optional[Vocabulary] = None,
) -> TranscriptAnalysis:
    """Normalize a full analysis result, or a bare journey map.

    A payload without ``journeyMap`` but with top-level ``nodes`` is treated
    as the journey map itself.
    """
    if payload is None:
        journey, anomalies = normalize_journey(None, layout)
        return TranscriptAnalysis(journey=journey, anomalies=anomalies)
    if not isinstance(payload, dict):
        raise AnalysisPayloadError(f"Analysis payload must be an object, got {type(payload).__name__}")

    if "journeyMap" not in payload and "nodes" in payload:
        raw_journey: Any = payload
    else:
        raw_journey = payload.get("journeyMap")

    journey, anomalies = normalize_journey(raw_journey, layout, vocabulary)
    insights = _insights(payload.get("insights"), set(journey.node_ids()), anomalies)
    return TranscriptAnalysis(
        journey=journey,
        intents=_intents(payload.get("intents")),
        sentiments=_sentiments(payload.get("sentiments")),
        insights=insights,
        anomalies=anomalies,
    )
