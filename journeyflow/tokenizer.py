"""Structured flow-text tokenizer.

Turns a "Step N: / Customer: / Agent:" script into ordered step blocks, each
already decomposed into speaker-tagged messages.

Line grammar (checked in this order, on the whitespace-stripped line):

- blank line            flushes the open message
- ``Step N: [title]``   starts a new step (case-insensitive); a role marker
                        in place of the title opens the first message
- ``→`` or ``->``       starts a new inferred step
- ``Customer:`` / ``Agent:``  starts a new message (case-sensitive)
- ``End`` / ``[End]`` / ``End of conversation``  marks the step terminal
- ``[If cond,] go to Step N``  records an explicit branch (``Otherwise,`` too)
- anything else         continues the open message, or opens an untagged one

The tokenizer never raises on malformed text; anything it had to repair is
reported as an :class:`~journeyflow.models.Anomaly`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .models import Anomaly, AnomalyKind, Branch, ConversationStep, Message, Role

logger = logging.getLogger(__name__)

STEP_HEADER_RE = re.compile(r"^step\s+(\d+)\s*:\s*(.*)$", re.IGNORECASE)
ARROW_RE = re.compile(r"^(?:→|->)$")
TERMINAL_RE = re.compile(r"^\[?\s*end(?:\s+of\s+conversation)?\s*\]?\.?$", re.IGNORECASE)
BRANCH_RE = re.compile(
    r"^(?:(?:if|when)\s+(?P<condition>.+?)\s*[,:]?\s+|(?P<otherwise>otherwise|else)\s*[,:]?\s+)?"
    r"(?:go\s*to|jump\s+to|continue\s+at|next:?)\s+step\s+(?P<target>\d+)\s*\.?$",
    re.IGNORECASE,
)

ROLE_MARKERS: Tuple[Tuple[str, Role], ...] = (
    ("Customer:", Role.CUSTOMER),
    ("Agent:", Role.AGENT),
)


def _split_role(line: str) -> Optional[Tuple[Role, str]]:
    for prefix, role in ROLE_MARKERS:
        if line.startswith(prefix):
            return role, line[len(prefix):].strip()
    return None


@dataclass
class StepBlock:
    """Raw per-step output of the tokenizer, before numbering and typing."""

    source_number: Optional[int] = None
    title: str = ""
    messages: List[Message] = field(default_factory=list)
    branches: List[Branch] = field(default_factory=list)
    terminal: bool = False
    explicit: bool = False


class _Scanner:
    def __init__(self) -> None:
        self.blocks: List[StepBlock] = []
        self.anomalies: List[Anomaly] = []
        self.block = StepBlock()
        self.role: Optional[Role] = None
        self.parts: List[str] = []
        self.open = False

    def record(self, kind: AnomalyKind, message: str, ref: Optional[str] = None) -> None:
        anomaly = Anomaly(kind, message, step_number=self.block.source_number, ref=ref)
        logger.debug("Flow anomaly: %s", anomaly)
        self.anomalies.append(anomaly)

    def flush_message(self) -> None:
        if not self.open:
            return
        text = "\n".join(self.parts).strip()
        role = self.role or Role.UNTAGGED
        if not text:
            self.record(AnomalyKind.EMPTY_MESSAGE, f"Dropped empty {role.value} message")
        else:
            if role == Role.UNTAGGED:
                self.record(AnomalyKind.UNTAGGED_MESSAGE, "Text without a role prefix kept as untagged message")
            self.block.messages.append(Message(role=role, text=text))
        self.role = None
        self.parts = []
        self.open = False

    def open_message(self, role: Optional[Role], first_line: str) -> None:
        self.flush_message()
        self.role = role
        self.parts = [first_line]
        self.open = True

    def close_block(self) -> None:
        self.flush_message()
        block = self.block
        if block.messages:
            self.blocks.append(block)
        elif block.explicit:
            self.record(AnomalyKind.EMPTY_STEP, "Dropped step header without any messages")

    def start_block(self, source_number: Optional[int] = None, title: str = "") -> None:
        self.close_block()
        self.block = StepBlock(
            source_number=source_number,
            title=title,
            explicit=source_number is not None,
        )

    def feed(self, raw_line: str) -> None:
        line = raw_line.strip()

        if not line:
            self.flush_message()
            return

        header = STEP_HEADER_RE.match(line)
        if header:
            rest = header.group(2).strip()
            tagged = _split_role(rest)
            if tagged is None:
                self.start_block(int(header.group(1)), rest)
                return
            self.start_block(int(header.group(1)))
            self.record(AnomalyKind.HEADER_MESSAGE, "Message written on the step header line kept as the first message")
            self.open_message(*tagged)
            return

        if ARROW_RE.match(line):
            self.start_block()
            return

        tagged = _split_role(line)
        if tagged is not None:
            self.open_message(*tagged)
            return

        if TERMINAL_RE.match(line):
            self.flush_message()
            self.block.terminal = True
            return

        branch = BRANCH_RE.match(line)
        if branch:
            self.flush_message()
            condition = (branch.group("condition") or branch.group("otherwise") or "").strip()
            self.block.branches.append(Branch(int(branch.group("target")), condition))
            return

        if self.open:
            self.parts.append(line)
        else:
            self.open_message(None, line)


def tokenize(text: str) -> Tuple[List[StepBlock], List[Anomaly]]:
    """Split flow text into step blocks.

    Input without any ``Step N:`` header or arrow separator yields a single
    implicit block. Empty input yields no blocks.
    """
    scanner = _Scanner()
    if not text or not text.strip():
        return [], []
    for raw_line in text.splitlines():
        scanner.feed(raw_line)
    scanner.close_block()
    return scanner.blocks, scanner.anomalies


def number_steps(blocks: List[StepBlock], anomalies: List[Anomaly]) -> List[ConversationStep]:
    """Renumber blocks 1..N in source order and convert them to steps.

    Nominal header numbers are kept as ``source_number`` so branch directives
    written against them can still be resolved.
    """
    steps: List[ConversationStep] = []
    seen: set = set()
    for index, block in enumerate(blocks, start=1):
        nominal = block.source_number
        if nominal is not None:
            if nominal in seen:
                anomalies.append(Anomaly(
                    AnomalyKind.DUPLICATE_STEP_NUMBER,
                    f"Step number {nominal} appears more than once",
                    step_number=index,
                    ref=str(nominal),
                ))
            elif nominal != index:
                anomalies.append(Anomaly(
                    AnomalyKind.RENUMBERED,
                    f"Step {nominal} renumbered to {index}",
                    step_number=index,
                    ref=str(nominal),
                ))
            seen.add(nominal)
        steps.append(ConversationStep(
            step_number=index,
            messages=list(block.messages),
            title=block.title,
            source_number=nominal,
            branches=list(block.branches),
            terminal=block.terminal,
        ))
    return steps
