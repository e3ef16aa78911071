"""Deterministic flow layout.

Nodes are placed along a primary axis in source order with fixed spacing,
so every node gets a distinct primary coordinate. Successors of a branching
node are fanned out along the cross axis, centered on the parent's lane.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AbstractSet, Any, Dict, List, Mapping, Optional, Sequence

from . import config
from .models import Position

logger = logging.getLogger(__name__)

DIRECTIONS = ("TB", "LR")


@dataclass(frozen=True)
class LayoutConfig:
    # "TB" stacks steps top-to-bottom, "LR" left-to-right.
    direction: str = config.DEFAULT_DIRECTION

    # Distance between consecutive steps along the primary axis.
    node_spacing: float = config.DEFAULT_NODE_SPACING

    # Distance between sibling lanes when a node branches.
    branch_spacing: float = config.DEFAULT_BRANCH_SPACING

    origin_x: float = config.DEFAULT_ORIGIN_X
    origin_y: float = config.DEFAULT_ORIGIN_Y

    # Cross-axis shift applied to odd steps; 0 keeps a straight line.
    zigzag_offset: float = 0

    def __post_init__(self) -> None:
        if self.direction not in DIRECTIONS:
            raise ValueError(f"direction must be one of {DIRECTIONS}, got {self.direction!r}")
        if self.node_spacing <= 0 or self.branch_spacing <= 0:
            raise ValueError("node_spacing and branch_spacing must be positive")

    @classmethod
    def from_config(cls, values: Mapping[str, Any]) -> "LayoutConfig":
        """Build from a ``[layout]`` section, falling back to defaults on bad values."""
        try:
            return cls(
                direction=str(values.get("direction", config.DEFAULT_DIRECTION)).upper(),
                node_spacing=float(values.get("node_spacing", config.DEFAULT_NODE_SPACING)),
                branch_spacing=float(values.get("branch_spacing", config.DEFAULT_BRANCH_SPACING)),
                origin_x=float(values.get("origin_x", config.DEFAULT_ORIGIN_X)),
                origin_y=float(values.get("origin_y", config.DEFAULT_ORIGIN_Y)),
                zigzag_offset=float(values.get("zigzag_offset", 0)),
            )
        except (TypeError, ValueError) as exc:
            logger.warning("Invalid layout config, using defaults: %s", exc)
            return cls()


def compute_lanes(node_ids: Sequence[str], successors: Mapping[str, Sequence[str]]) -> Dict[str, float]:
    """Assign each node a cross-axis lane.

    Nodes are visited in order. A node keeps the lane given by the first
    earlier node that points at it; a node with k distinct forward
    successors spreads them over lanes ``parent + j - (k - 1) / 2``.
    Back edges never move a node.
    """
    index = {node_id: i for i, node_id in enumerate(node_ids)}
    lanes: Dict[str, float] = {}

    for i, node_id in enumerate(node_ids):
        lane = lanes.setdefault(node_id, 0.0)

        forward: List[str] = []
        for target in successors.get(node_id, ()):
            if target in index and index[target] > i and target not in forward:
                forward.append(target)

        if len(forward) == 1:
            lanes.setdefault(forward[0], lane)
            continue

        count = len(forward)
        for j, target in enumerate(forward):
            lanes.setdefault(target, lane + j - (count - 1) / 2)

    return lanes


def assign_positions(
    node_ids: Sequence[str],
    successors: Mapping[str, Sequence[str]],
    cfg: Optional[LayoutConfig] = None,
) -> Dict[str, Position]:
    """Return a position for every node id.

    Pure and idempotent: the result depends only on the order of
    *node_ids*, the successor lists, and *cfg*.
    """
    cfg = cfg or LayoutConfig()
    lanes = compute_lanes(node_ids, successors)
    positions: Dict[str, Position] = {}

    for i, node_id in enumerate(node_ids):
        primary = i * cfg.node_spacing
        cross = lanes[node_id] * cfg.branch_spacing
        if i % 2:
            cross += cfg.zigzag_offset

        if cfg.direction == "TB":
            positions[node_id] = Position(cfg.origin_x + cross, cfg.origin_y + primary)
        else:
            positions[node_id] = Position(cfg.origin_x + primary, cfg.origin_y + cross)

    return positions


def clear_of(position: Position, occupied: AbstractSet[Position], cfg: Optional[LayoutConfig] = None) -> Position:
    """Step *position* along the primary axis until it is not in *occupied*."""
    cfg = cfg or LayoutConfig()
    while position in occupied:
        if cfg.direction == "TB":
            position = Position(position.x, position.y + cfg.node_spacing)
        else:
            position = Position(position.x + cfg.node_spacing, position.y)
    return position
