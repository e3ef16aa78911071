"""Configuration paths and defaults for JourneyFlow."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("JOURNEYFLOW_HOME", str(Path.home() / ".journeyflow"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

# Layout defaults (pixels)
DEFAULT_NODE_SPACING = 200
DEFAULT_BRANCH_SPACING = 250
DEFAULT_DIRECTION = "TB"
DEFAULT_ORIGIN_X = 50
DEFAULT_ORIGIN_Y = 50

# Analysis thresholds
DEFAULT_BOTTLENECK_DURATION = 120.0
DEFAULT_BOTTLENECK_SATISFACTION = 3.0
DEFAULT_DROPOFF_THRESHOLD = 10.0

# Parsing is linear in input size; callers bound the input here.
MAX_INPUT_CHARS = 1_000_000
