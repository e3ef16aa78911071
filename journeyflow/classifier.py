"""Keyword-based step-type classifier.

Classification is a pure, total function of a step's message text: rules are
tried in a fixed order and the first rule with a matching keyword wins;
steps that match nothing fall through to ``StepType.INFORMATION``.
The vocabulary is data and can be overridden from the ``[classifier]``
config section.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .models import ConversationStep, Message, Role, StepType

logger = logging.getLogger(__name__)

DEFAULT_STEP_TYPE = StepType.INFORMATION


@dataclass(frozen=True)
class Rule:
    step_type: StepType
    keywords: Tuple[str, ...]
    # Restrict matching to one speaker; None means any message.
    role: Optional[Role] = None

    def matches(self, messages: Iterable[Message]) -> bool:
        for message in messages:
            if self.role is not None and message.role != self.role:
                continue
            lowered = message.text.lower()
            if any(keyword in lowered for keyword in self.keywords):
                return True
        return False


DEFAULT_RULES: Tuple[Rule, ...] = (
    Rule(StepType.ESCALATION, (
        "sorry", "apologize", "apologies", "escalate", "supervisor", "manager",
        "transfer you", "specialist", "complaint",
    )),
    Rule(StepType.PRICE_INQUIRY, ("price", "cost", "$", "fee", "how much")),
    Rule(StepType.PURCHASE_DECISION, ("buy", "purchase", "get it", "place an order", "upgrade")),
    Rule(StepType.CONFIRMATION, (
        "confirmed", "i've updated", "i have updated", "has been applied",
        "all set", "you're welcome", "is there anything else",
    ), role=Role.AGENT),
    Rule(StepType.REQUIREMENT_GATHERING, ("need", "want", "prefer", "requirement", "looking for")),
    Rule(StepType.DECISION, ("?", "would you like", "do you want", "which one"), role=Role.AGENT),
)


class Vocabulary:
    """Ordered, closed set of classification rules."""

    def __init__(self, rules: Optional[Iterable[Rule]] = None) -> None:
        self.rules: List[Rule] = list(DEFAULT_RULES if rules is None else rules)

    @classmethod
    def from_config(cls, overrides: Dict[str, Any]) -> "Vocabulary":
        """Build a vocabulary from the ``[classifier]`` config section.

        Overrides replace the keywords (and optionally the role) of the
        matching default rule; rule order is unchanged. Unknown step types
        and malformed entries are ignored with a warning.
        """
        rules = {rule.step_type: rule for rule in DEFAULT_RULES}
        for name, entry in (overrides or {}).items():
            try:
                step_type = StepType(name)
            except ValueError:
                logger.warning("Unknown step type '%s' in classifier config", name)
                continue
            if step_type == DEFAULT_STEP_TYPE:
                logger.warning("'%s' is the fallback type and takes no keywords", name)
                continue
            if not isinstance(entry, dict) or not isinstance(entry.get("keywords"), list):
                logger.warning("Classifier entry '%s' needs a 'keywords' list", name)
                continue
            keywords = tuple(str(k).lower() for k in entry["keywords"] if str(k).strip())
            role = rules[step_type].role if step_type in rules else None
            if "role" in entry:
                try:
                    role = Role(entry["role"]) if entry["role"] else None
                except ValueError:
                    logger.warning("Unknown role '%s' for classifier entry '%s'", entry["role"], name)
            rules[step_type] = Rule(step_type, keywords, role)
        return cls(rules[r.step_type] for r in DEFAULT_RULES)

    def classify(self, messages: Iterable[Message]) -> StepType:
        messages = list(messages)
        for rule in self.rules:
            if rule.matches(messages):
                return rule.step_type
        return DEFAULT_STEP_TYPE


_DEFAULT_VOCABULARY = Vocabulary()


def classify_step(step: ConversationStep, vocabulary: Optional[Vocabulary] = None) -> StepType:
    """Return the advisory step type for *step*. Never raises, never mutates."""
    return (vocabulary or _DEFAULT_VOCABULARY).classify(step.messages)


def classify_text(text: str, vocabulary: Optional[Vocabulary] = None) -> StepType:
    """Classify a bare text snippet as if it were a single untagged message."""
    return (vocabulary or _DEFAULT_VOCABULARY).classify([Message(Role.UNTAGGED, text or "")])
