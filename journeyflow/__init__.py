"""JourneyFlow: derive renderable journey graphs from conversation flow text."""

__version__ = "1.0.0"

from .models import (  # noqa: E402
    Anomaly,
    AnomalyKind,
    ConversationStep,
    FlowResult,
    JourneyData,
    JourneyEdge,
    JourneyNode,
    Message,
    ParsedFlow,
    Role,
    StepType,
)
from .pipeline import (  # noqa: E402
    FlowSettings,
    build_journey,
    journey_from_analysis,
    parse_and_build,
    parse_flow,
)

__all__ = [
    "__version__",
    "Anomaly",
    "AnomalyKind",
    "ConversationStep",
    "FlowResult",
    "FlowSettings",
    "JourneyData",
    "JourneyEdge",
    "JourneyNode",
    "Message",
    "ParsedFlow",
    "Role",
    "StepType",
    "build_journey",
    "journey_from_analysis",
    "parse_and_build",
    "parse_flow",
]
