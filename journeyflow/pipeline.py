"""Public entry points: flow text or analysis payload in, journey graph out."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from . import config, config_manager
from .analysis import AnalysisThresholds
from .assembler import build_graph, node_id_for
from .classifier import Vocabulary, classify_step
from .layout import LayoutConfig
from .models import (
    Anomaly,
    AnomalyKind,
    FlowInputError,
    FlowResult,
    JourneyData,
    ParsedFlow,
)
from .normalize import TranscriptAnalysis, normalize_analysis
from .tokenizer import number_steps, tokenize

logger = logging.getLogger(__name__)


@dataclass
class FlowSettings:
    vocabulary: Vocabulary = field(default_factory=Vocabulary)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    thresholds: AnalysisThresholds = field(default_factory=AnalysisThresholds)

    @classmethod
    def from_config(cls) -> "FlowSettings":
        """Settings from ``config.toml``, defaults for anything unset."""
        return cls(
            vocabulary=Vocabulary.from_config(config_manager.load_classifier_config()),
            layout=LayoutConfig.from_config(config_manager.load_layout_config()),
            thresholds=AnalysisThresholds.from_config(config_manager.load_analysis_config()),
        )


def parse_flow(text: Any, vocabulary: Optional[Vocabulary] = None) -> Tuple[ParsedFlow, List[Anomaly]]:
    """Parse flow text into numbered, typed steps.

    Raises :class:`FlowInputError` only when *text* is not a string.
    """
    if text is None:
        text = ""
    if not isinstance(text, str):
        raise FlowInputError(f"Flow text must be a string, got {type(text).__name__}")

    anomalies: List[Anomaly] = []
    if len(text) > config.MAX_INPUT_CHARS:
        anomalies.append(Anomaly(
            AnomalyKind.INPUT_TRUNCATED,
            f"Input of {len(text)} characters truncated to {config.MAX_INPUT_CHARS}",
        ))
        logger.warning("Flow text truncated from %d to %d characters", len(text), config.MAX_INPUT_CHARS)
        text = text[:config.MAX_INPUT_CHARS]

    blocks, token_anomalies = tokenize(text)
    anomalies.extend(token_anomalies)
    steps = number_steps(blocks, anomalies)
    for step in steps:
        step.step_type = classify_step(step, vocabulary)

    logger.debug("Parsed %d steps with %d anomalies", len(steps), len(anomalies))
    return ParsedFlow(steps=steps), anomalies


def build_journey(flow: ParsedFlow, layout: Optional[LayoutConfig] = None) -> Tuple[JourneyData, List[Anomaly]]:
    """Assemble the journey graph and copy node positions back onto the steps."""
    graph, anomalies = build_graph(flow.steps, layout)
    by_id = {node.id: node for node in graph.nodes}
    for step in flow.steps:
        step.position = by_id[node_id_for(step)].position
    return graph, anomalies


def parse_and_build(text: Any, settings: Optional[FlowSettings] = None) -> FlowResult:
    """Full pipeline for flow text. Always returns a valid graph."""
    settings = settings or FlowSettings()
    flow, anomalies = parse_flow(text, settings.vocabulary)
    graph, graph_anomalies = build_journey(flow, settings.layout)
    return FlowResult(flow=flow, graph=graph, anomalies=anomalies + graph_anomalies)


def journey_from_analysis(payload: Any, settings: Optional[FlowSettings] = None) -> TranscriptAnalysis:
    """Normalize an external transcript-analysis payload."""
    settings = settings or FlowSettings()
    return normalize_analysis(payload, settings.layout, settings.vocabulary)
