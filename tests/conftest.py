"""Pytest configuration and fixtures for JourneyFlow tests."""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest


FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch):
    """Point the config file at a temp location so a user's ~/.journeyflow never leaks in."""
    config_file = tmp_path / "journeyflow_home" / "config.toml"
    monkeypatch.setattr("journeyflow.config.CONFIG_FILE", config_file)
    monkeypatch.setattr("journeyflow.config_manager.CONFIG_FILE", config_file)
    return config_file


@pytest.fixture
def config_file(_isolated_config: Path) -> Path:
    return _isolated_config


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def fixtures_path() -> Path:
    return FIXTURES


@pytest.fixture
def order_flow_text() -> str:
    """Arrow-separated flow without step headers."""
    return (FIXTURES / "order_inquiry.txt").read_text(encoding="utf-8")


@pytest.fixture
def branching_flow_text() -> str:
    """Headed flow with branch directives, one dangling."""
    return (FIXTURES / "refund_branching.txt").read_text(encoding="utf-8")


@pytest.fixture
def analysis_payload() -> dict:
    """Transcript-analysis result as returned by the external service."""
    return json.loads((FIXTURES / "analysis.json").read_text(encoding="utf-8"))


@pytest.fixture
def two_step_flow() -> str:
    return (
        "Step 1:\n"
        "Customer: Hi\n"
        "Agent: Hello, how can I help?\n"
        "\n"
        "Step 2:\n"
        "Customer: I need a refund\n"
        "Agent: Let me check that."
    )


@pytest.fixture
def three_way_flow() -> str:
    """A decision step with three explicit branches, each ending the conversation."""
    return (
        "Step 1: Triage\n"
        "Customer: I have a problem with my order.\n"
        "Agent: Is it about delivery, billing, or a return?\n"
        "If delivery, go to Step 2\n"
        "If billing, go to Step 3\n"
        "If return, go to Step 4\n"
        "\n"
        "Step 2: Delivery\n"
        "Agent: Let me track the parcel.\n"
        "End\n"
        "\n"
        "Step 3: Billing\n"
        "Agent: Let me open your invoice.\n"
        "End\n"
        "\n"
        "Step 4: Returns\n"
        "Agent: I'll email you a return label.\n"
        "End\n"
    )
