"""Core data models shared by the parser, the graph assembler, and exporters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Role(str, Enum):
    CUSTOMER = "customer"
    AGENT = "agent"
    UNTAGGED = "untagged"


class StepType(str, Enum):
    """Advisory classification of a conversation step."""

    ESCALATION = "escalation"
    PRICE_INQUIRY = "price_inquiry"
    PURCHASE_DECISION = "purchase_decision"
    CONFIRMATION = "confirmation"
    REQUIREMENT_GATHERING = "requirement_gathering"
    DECISION = "decision"
    INFORMATION = "information"


class NodeType(str, Enum):
    INTENT = "intent"
    ACTION = "action"
    DECISION = "decision"
    EXIT = "exit"
    PASSTHROUGH = "passthrough"


class EdgeType(str, Enum):
    DEFAULT = "default"
    SUCCESS = "success"
    FAILURE = "failure"
    BRANCH = "branch"


class AnomalyKind(str, Enum):
    UNTAGGED_MESSAGE = "untagged_message"
    EMPTY_MESSAGE = "empty_message"
    EMPTY_STEP = "empty_step"
    HEADER_MESSAGE = "header_message"
    RENUMBERED = "renumbered"
    DUPLICATE_STEP_NUMBER = "duplicate_step_number"
    DANGLING_BRANCH = "dangling_branch"
    DUPLICATE_BRANCH = "duplicate_branch"
    SELF_LOOP = "self_loop"
    DUPLICATE_NODE = "duplicate_node"
    DANGLING_EDGE = "dangling_edge"
    INVALID_NODE = "invalid_node"
    INVALID_EDGE = "invalid_edge"
    DANGLING_INSIGHT = "dangling_insight"
    MISSING_GRAPH = "missing_graph"
    INPUT_TRUNCATED = "input_truncated"


@dataclass(frozen=True)
class Message:
    role: Role
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "text": self.text}


@dataclass(frozen=True)
class Position:
    x: float
    y: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["Position"]:
        """Return a Position for ``{"x": .., "y": ..}`` or None when unusable."""
        if not isinstance(raw, dict):
            return None
        x, y = raw.get("x"), raw.get("y")
        if not _is_number(x) or not _is_number(y):
            return None
        return cls(float(x), float(y))


@dataclass(frozen=True)
class Branch:
    """An explicit transition written in flow text (``If ..., go to Step N``)."""

    target: int
    condition: str = ""


@dataclass
class ConversationStep:
    step_number: int
    messages: List[Message]
    step_type: Optional[StepType] = None
    position: Optional[Position] = None
    title: str = ""
    source_number: Optional[int] = None
    branches: List[Branch] = field(default_factory=list)
    terminal: bool = False

    @property
    def text(self) -> str:
        return "\n".join(m.text for m in self.messages)

    def messages_by(self, role: Role) -> List[Message]:
        return [m for m in self.messages if m.role == role]

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "stepNumber": self.step_number,
            "messages": [m.to_dict() for m in self.messages],
        }
        if self.step_type is not None:
            out["stepType"] = self.step_type.value
        if self.position is not None:
            out["position"] = self.position.to_dict()
        if self.title:
            out["title"] = self.title
        return out


@dataclass
class ParsedFlow:
    steps: List[ConversationStep] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.steps)

    def to_dict(self) -> Dict[str, Any]:
        return {"steps": [s.to_dict() for s in self.steps]}


@dataclass
class NodeMetrics:
    frequency: Optional[float] = None
    duration: Optional[float] = None
    satisfaction: Optional[float] = None
    dropoff: Optional[float] = None

    def is_empty(self) -> bool:
        return all(v is None for v in self.to_dict().values())

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {
            "frequency": self.frequency,
            "duration": self.duration,
            "satisfaction": self.satisfaction,
            "dropoff": self.dropoff,
        }


@dataclass
class JourneyNode:
    id: str
    type: str
    label: str
    position: Position
    description: str = ""
    metrics: Optional[NodeMetrics] = None
    tags: List[str] = field(default_factory=list)
    examples: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"nodeType": self.type}
        if self.description:
            data["description"] = self.description
        if self.metrics is not None and not self.metrics.is_empty():
            data["metrics"] = {k: v for k, v in self.metrics.to_dict().items() if v is not None}
        if self.tags:
            data["tags"] = list(self.tags)
        if self.examples:
            data["examples"] = list(self.examples)
        return {
            "id": self.id,
            "type": self.type,
            "label": self.label,
            "data": data,
            "position": self.position.to_dict(),
        }


@dataclass
class JourneyEdge:
    id: str
    source: str
    target: str
    type: str = EdgeType.DEFAULT.value
    label: str = ""
    frequency: Optional[float] = None
    condition: str = ""

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.type,
        }
        if self.label:
            out["label"] = self.label
        data: Dict[str, Any] = {}
        if self.frequency is not None:
            data["frequency"] = self.frequency
        if self.condition:
            data["condition"] = self.condition
        if data:
            out["data"] = data
        return out


@dataclass
class JourneyData:
    nodes: List[JourneyNode] = field(default_factory=list)
    edges: List[JourneyEdge] = field(default_factory=list)

    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def get_node(self, node_id: str) -> Optional[JourneyNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def outgoing(self, node_id: str) -> List[JourneyEdge]:
        return [e for e in self.edges if e.source == node_id]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


@dataclass(frozen=True)
class Anomaly:
    kind: AnomalyKind
    message: str
    step_number: Optional[int] = None
    ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.step_number is not None:
            out["stepNumber"] = self.step_number
        if self.ref is not None:
            out["ref"] = self.ref
        return out


@dataclass
class FlowResult:
    """Best-effort output of a parse: the flow, its graph, and what was repaired."""

    flow: ParsedFlow
    graph: JourneyData
    anomalies: List[Anomaly] = field(default_factory=list)

    def anomalies_of(self, kind: AnomalyKind) -> List[Anomaly]:
        return [a for a in self.anomalies if a.kind == kind]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flow": self.flow.to_dict(),
            "journey": self.graph.to_dict(),
            "anomalies": [a.to_dict() for a in self.anomalies],
        }


class FlowInputError(TypeError):
    """Raised when flow input is not text at all."""


class AnalysisPayloadError(ValueError):
    """Raised when an analysis payload is neither None nor a JSON object."""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
