"""Downstream journey analysis: metric roll-ups, bottlenecks, and dropoffs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from . import config
from .models import JourneyData

logger = logging.getLogger(__name__)


@dataclass
class Intent:
    name: str
    frequency: float = 0.0
    examples: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "frequency": self.frequency, "examples": list(self.examples)}


@dataclass
class Bottleneck:
    node_id: str
    reason: str
    suggestion: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"nodeId": self.node_id, "reason": self.reason, "suggestion": self.suggestion}


@dataclass
class Dropoff:
    node_id: str
    frequency: float
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"nodeId": self.node_id, "frequency": self.frequency, "reason": self.reason}


@dataclass
class Improvement:
    type: str
    description: str
    impact: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "description": self.description, "impact": self.impact}


@dataclass
class Insights:
    bottlenecks: List[Bottleneck] = field(default_factory=list)
    dropoffs: List[Dropoff] = field(default_factory=list)
    improvements: List[Improvement] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bottlenecks": [b.to_dict() for b in self.bottlenecks],
            "dropoffs": [d.to_dict() for d in self.dropoffs],
            "improvements": [i.to_dict() for i in self.improvements],
        }


@dataclass
class MetricsSummary:
    node_count: int = 0
    measured_nodes: int = 0
    total_frequency: float = 0.0
    mean_duration: Optional[float] = None
    mean_satisfaction: Optional[float] = None
    mean_dropoff: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodeCount": self.node_count,
            "measuredNodes": self.measured_nodes,
            "totalFrequency": self.total_frequency,
            "meanDuration": self.mean_duration,
            "meanSatisfaction": self.mean_satisfaction,
            "meanDropoff": self.mean_dropoff,
        }


@dataclass(frozen=True)
class AnalysisThresholds:
    # Seconds spent at a node above which it is a bottleneck.
    bottleneck_duration: float = config.DEFAULT_BOTTLENECK_DURATION
    # Satisfaction score (1-5 scale) below which a node is a bottleneck.
    bottleneck_satisfaction: float = config.DEFAULT_BOTTLENECK_SATISFACTION
    # Dropoff percentage at or above which a node is reported.
    dropoff_threshold: float = config.DEFAULT_DROPOFF_THRESHOLD

    @classmethod
    def from_config(cls, values: Mapping[str, Any]) -> "AnalysisThresholds":
        defaults = cls()
        try:
            return cls(
                bottleneck_duration=float(values.get("bottleneck_duration", defaults.bottleneck_duration)),
                bottleneck_satisfaction=float(values.get("bottleneck_satisfaction", defaults.bottleneck_satisfaction)),
                dropoff_threshold=float(values.get("dropoff_threshold", defaults.dropoff_threshold)),
            )
        except (TypeError, ValueError) as exc:
            logger.warning("Invalid analysis config, using defaults: %s", exc)
            return defaults


def _mean(values: List[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def summarize_metrics(graph: JourneyData) -> MetricsSummary:
    """Aggregate node metrics; nodes without a value do not count toward its mean."""
    durations: List[float] = []
    satisfaction: List[float] = []
    dropoffs: List[float] = []
    total_frequency = 0.0
    measured = 0

    for node in graph.nodes:
        metrics = node.metrics
        if metrics is None or metrics.is_empty():
            continue
        measured += 1
        if metrics.frequency is not None:
            total_frequency += metrics.frequency
        if metrics.duration is not None:
            durations.append(metrics.duration)
        if metrics.satisfaction is not None:
            satisfaction.append(metrics.satisfaction)
        if metrics.dropoff is not None:
            dropoffs.append(metrics.dropoff)

    return MetricsSummary(
        node_count=len(graph.nodes),
        measured_nodes=measured,
        total_frequency=total_frequency,
        mean_duration=_mean(durations),
        mean_satisfaction=_mean(satisfaction),
        mean_dropoff=_mean(dropoffs),
    )


def find_bottlenecks(graph: JourneyData, thresholds: Optional[AnalysisThresholds] = None) -> List[Bottleneck]:
    """Nodes that are slow or poorly rated, in graph order."""
    thresholds = thresholds or AnalysisThresholds()
    found: List[Bottleneck] = []
    for node in graph.nodes:
        metrics = node.metrics
        if metrics is None:
            continue
        if metrics.duration is not None and metrics.duration > thresholds.bottleneck_duration:
            found.append(Bottleneck(
                node_id=node.id,
                reason=f"'{node.label}' takes {metrics.duration:g}s on average "
                       f"(limit {thresholds.bottleneck_duration:g}s)",
                suggestion="Shorten the step or automate the lookup behind it",
            ))
        elif metrics.satisfaction is not None and metrics.satisfaction < thresholds.bottleneck_satisfaction:
            found.append(Bottleneck(
                node_id=node.id,
                reason=f"'{node.label}' satisfaction {metrics.satisfaction:g} "
                       f"is below {thresholds.bottleneck_satisfaction:g}",
                suggestion="Review the agent responses given at this step",
            ))
    return found


def find_dropoffs(graph: JourneyData, thresholds: Optional[AnalysisThresholds] = None) -> List[Dropoff]:
    """Nodes losing customers at or above the threshold, worst first."""
    thresholds = thresholds or AnalysisThresholds()
    found = [
        Dropoff(
            node_id=node.id,
            frequency=node.metrics.dropoff,
            reason=f"{node.metrics.dropoff:g}% of conversations end at '{node.label}'",
        )
        for node in graph.nodes
        if node.metrics is not None
        and node.metrics.dropoff is not None
        and node.metrics.dropoff >= thresholds.dropoff_threshold
    ]
    return sorted(found, key=lambda d: d.frequency, reverse=True)


def edge_frequency_share(graph: JourneyData) -> Dict[str, float]:
    """Share of each edge in its source node's outgoing frequency.

    Only edges with a frequency are reported; a source whose outgoing
    frequencies sum to zero reports 0.0 for each of them.
    """
    totals: Dict[str, float] = {}
    for edge in graph.edges:
        if edge.frequency is not None:
            totals[edge.source] = totals.get(edge.source, 0.0) + edge.frequency

    shares: Dict[str, float] = {}
    for edge in graph.edges:
        if edge.frequency is None:
            continue
        total = totals[edge.source]
        shares[edge.id] = edge.frequency / total if total else 0.0
    return shares


def derive_insights(graph: JourneyData, thresholds: Optional[AnalysisThresholds] = None) -> Insights:
    return Insights(
        bottlenecks=find_bottlenecks(graph, thresholds),
        dropoffs=find_dropoffs(graph, thresholds),
    )
