"""End-to-end tests for the public parsing entry points."""

import pytest

import journeyflow
from journeyflow.classifier import Vocabulary
from journeyflow.layout import LayoutConfig
from journeyflow.models import AnomalyKind, FlowInputError, Message, Position, Role, StepType
from journeyflow.pipeline import FlowSettings, journey_from_analysis, parse_and_build, parse_flow


class TestParseFlow:
    def test_two_steps(self, two_step_flow: str):
        flow, anomalies = parse_flow(two_step_flow)

        assert len(flow) == 2
        assert flow.steps[0].messages == [
            Message(Role.CUSTOMER, "Hi"),
            Message(Role.AGENT, "Hello, how can I help?"),
        ]
        assert flow.steps[1].messages[0] == Message(Role.CUSTOMER, "I need a refund")
        assert flow.steps[0].step_type == StepType.DECISION
        assert anomalies == []

    @pytest.mark.parametrize("text", ["", None, "\n\n   \n"])
    def test_empty_input(self, text):
        flow, anomalies = parse_flow(text)

        assert flow.steps == []
        assert anomalies == []

    @pytest.mark.parametrize("value", [b"Customer: Hi", 42, ["Customer: Hi"]])
    def test_non_text_raises(self, value):
        with pytest.raises(FlowInputError):
            parse_flow(value)

    def test_flow_input_error_is_type_error(self):
        with pytest.raises(TypeError):
            parse_and_build(3.5)

    def test_oversized_input_truncated(self, monkeypatch, caplog):
        monkeypatch.setattr("journeyflow.config.MAX_INPUT_CHARS", 20)
        flow, anomalies = parse_flow("Customer: Hello there, this is long")

        assert flow.steps[0].messages == [Message(Role.CUSTOMER, "Hello ther")]
        assert anomalies[0].kind == AnomalyKind.INPUT_TRUNCATED
        assert "truncated" in caplog.text

    @pytest.mark.parametrize("text", [
        "Step 7:\nCustomer: a\nStep 3:\nCustomer: b\nStep 7:\nCustomer: c",
        "Customer: a\n→\nCustomer: b\n→\n→\nCustomer: c",
        "intro\nStep 2:\nAgent: a\nStep 2:\n\nStep 9:\nCustomer: c",
    ])
    def test_steps_always_numbered_from_one(self, text):
        flow, _ = parse_flow(text)
        assert [s.step_number for s in flow.steps] == list(range(1, len(flow) + 1))

    def test_vocabulary_is_used(self):
        vocab = Vocabulary.from_config({"escalation": {"keywords": ["hello"]}})
        flow, _ = parse_flow("Customer: Hello", vocab)

        assert flow.steps[0].step_type == StepType.ESCALATION


class TestParseAndBuild:
    """Parsing plus graph assembly."""

    def test_two_steps_default_edge(self, two_step_flow: str):
        result = parse_and_build(two_step_flow)

        assert result.graph.node_ids() == ["step-1", "step-2"]
        assert [(e.source, e.target, e.type) for e in result.graph.edges] == [("step-1", "step-2", "default")]

    def test_empty_input(self):
        result = parse_and_build("")

        assert len(result.flow) == 0
        assert result.graph.nodes == []
        assert result.graph.edges == []
        assert result.anomalies == []

    def test_single_untitled_message(self):
        result = parse_and_build("Customer: Hello")

        assert len(result.flow) == 1
        assert result.flow.steps[0].messages == [Message(Role.CUSTOMER, "Hello")]
        assert result.flow.steps[0].step_type == StepType.INFORMATION
        assert result.graph.edges == []
        assert result.graph.nodes[0].type == "exit"

    def test_dangling_branch_keeps_other_edges(self):
        text = (
            "Step 1:\nCustomer: Hi\n"
            "Step 2:\nAgent: Let me see.\nIf stuck, go to Step 5\nIf fine, go to Step 3\n"
            "Step 3:\nAgent: Done.\n"
        )
        result = parse_and_build(text)

        assert [(e.source, e.target) for e in result.graph.edges] == [("step-1", "step-2"), ("step-2", "step-3")]
        assert [a.kind for a in result.anomalies_of(AnomalyKind.DANGLING_BRANCH)] == [AnomalyKind.DANGLING_BRANCH]

    def test_steps_carry_node_positions(self, order_flow_text: str):
        result = parse_and_build(order_flow_text)

        for step, node in zip(result.flow.steps, result.graph.nodes):
            assert step.position == node.position
        assert result.flow.steps[4].position == Position(50, 850)

    def test_order_fixture_types(self, order_flow_text: str):
        result = parse_and_build(order_flow_text)

        assert [s.step_type for s in result.flow.steps] == [
            StepType.DECISION,
            StepType.INFORMATION,
            StepType.PRICE_INQUIRY,
            StepType.PURCHASE_DECISION,
            StepType.CONFIRMATION,
        ]
        assert [n.type for n in result.graph.nodes] == ["intent", "action", "action", "action", "exit"]

    def test_layout_setting(self, two_step_flow: str):
        settings = FlowSettings(layout=LayoutConfig(direction="LR"))
        result = parse_and_build(two_step_flow, settings)

        assert result.graph.nodes[1].position == Position(250, 50)

    def test_to_dict(self, two_step_flow: str):
        out = parse_and_build(two_step_flow).to_dict()

        assert set(out) == {"flow", "journey", "anomalies"}
        step = out["flow"]["steps"][0]
        assert step["stepNumber"] == 1
        assert step["messages"][0] == {"role": "customer", "text": "Hi"}
        assert step["stepType"] == "decision"
        assert step["position"] == {"x": 50, "y": 50}
        node = out["journey"]["nodes"][0]
        assert node["data"]["nodeType"] == "intent"
        assert node["data"]["examples"] == ["Hi"]

    def test_header_line_message_reaches_graph(self):
        result = parse_and_build("Step 1: Customer: I need a refund\nAgent: Sure.")

        assert result.flow.steps[0].messages[0] == Message(Role.CUSTOMER, "I need a refund")
        assert result.graph.nodes[0].examples == ["I need a refund"]
        assert result.graph.nodes[0].label == "Step 1"
        assert [a.kind for a in result.anomalies] == [AnomalyKind.HEADER_MESSAGE]

    def test_package_exports(self, two_step_flow: str):
        assert journeyflow.parse_and_build(two_step_flow).graph.node_ids() == ["step-1", "step-2"]
        assert journeyflow.__version__


def test_journey_from_analysis_uses_layout(analysis_payload):
    settings = FlowSettings(layout=LayoutConfig(node_spacing=100))
    analysis = journey_from_analysis(analysis_payload, settings)

    assert analysis.journey.get_node("verify").position == Position(50, 150)


MESSY_FLOWS = [
    "Step 3: Hi\nCustomer: a\nIf x, go to Step 3\nIf y, go to Step 12\n\nStep 3:\nAgent: b\nGo to Step 3",
    "orphan line\n→\nAgent:\n→\nCustomer: c\nEnd\nCustomer: d",
    "Step 1:\nCustomer: a\nGo to Step 2\nGo to Step 2\nStep 2:\nAgent: b\nOtherwise, go to Step 1",
]


@pytest.mark.parametrize("text", MESSY_FLOWS)
def test_messy_input_yields_valid_graph(text):
    result = parse_and_build(text)
    graph = result.graph

    ids = graph.node_ids()
    assert len(ids) == len(set(ids)) == len(result.flow)
    for edge in graph.edges:
        assert edge.source in ids and edge.target in ids
    assert len({n.position for n in graph.nodes}) == len(graph.nodes)


@pytest.mark.parametrize("text", MESSY_FLOWS)
def test_reparse_gives_identical_flow(text):
    first = parse_and_build(text)
    second = parse_and_build(text)

    assert first.flow == second.flow
    assert first.to_dict() == second.to_dict()
