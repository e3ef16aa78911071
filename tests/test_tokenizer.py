"""Tests for the flow-text tokenizer and step numbering."""

from journeyflow.models import AnomalyKind, Branch, Message, Role
from journeyflow.tokenizer import number_steps, tokenize


def _kinds(anomalies):
    return [a.kind for a in anomalies]


class TestTokenize:
    """Line grammar of the tokenizer."""

    def test_headed_steps(self, two_step_flow: str):
        """Each header opens a block holding its tagged messages."""
        blocks, anomalies = tokenize(two_step_flow)

        assert len(blocks) == 2
        assert blocks[0].source_number == 1
        assert blocks[0].messages == [
            Message(Role.CUSTOMER, "Hi"),
            Message(Role.AGENT, "Hello, how can I help?"),
        ]
        assert blocks[1].messages == [
            Message(Role.CUSTOMER, "I need a refund"),
            Message(Role.AGENT, "Let me check that."),
        ]
        assert anomalies == []

    def test_empty_input(self):
        assert tokenize("") == ([], [])
        assert tokenize("   \n\t\n") == ([], [])

    def test_headerless_input_is_one_implicit_block(self):
        blocks, anomalies = tokenize("Customer: Hello")

        assert len(blocks) == 1
        assert blocks[0].source_number is None
        assert blocks[0].explicit is False
        assert blocks[0].messages == [Message(Role.CUSTOMER, "Hello")]
        assert anomalies == []

    def test_continuation_lines_join_with_newline(self):
        blocks, _ = tokenize("Step 1:\nCustomer: My router\nkeeps dropping\n  the connection")

        assert blocks[0].messages == [
            Message(Role.CUSTOMER, "My router\nkeeps dropping\nthe connection"),
        ]

    def test_blank_line_closes_message(self):
        """Text after a blank line does not continue the previous message."""
        blocks, anomalies = tokenize("Step 1:\nCustomer: Hi\n\nthere")

        assert blocks[0].messages == [
            Message(Role.CUSTOMER, "Hi"),
            Message(Role.UNTAGGED, "there"),
        ]
        assert _kinds(anomalies) == [AnomalyKind.UNTAGGED_MESSAGE]

    def test_preamble_becomes_implicit_block(self):
        blocks, anomalies = tokenize("Support script v2\nStep 1:\nCustomer: Hi")

        assert len(blocks) == 2
        assert blocks[0].source_number is None
        assert blocks[0].messages == [Message(Role.UNTAGGED, "Support script v2")]
        assert blocks[1].source_number == 1
        assert _kinds(anomalies) == [AnomalyKind.UNTAGGED_MESSAGE]

    def test_header_title_and_case(self):
        blocks, _ = tokenize("STEP 3:  Greeting \nAgent: Welcome!")

        assert blocks[0].source_number == 3
        assert blocks[0].title == "Greeting"

    def test_role_markers_are_case_sensitive(self):
        blocks, anomalies = tokenize("customer: hi")

        assert blocks[0].messages == [Message(Role.UNTAGGED, "customer: hi")]
        assert _kinds(anomalies) == [AnomalyKind.UNTAGGED_MESSAGE]

    def test_indented_role_marker(self):
        blocks, _ = tokenize("Step 1:\n    Agent:   Hello  ")

        assert blocks[0].messages == [Message(Role.AGENT, "Hello")]

    def test_arrow_separators(self, order_flow_text: str):
        blocks, anomalies = tokenize(order_flow_text)

        assert len(blocks) == 5
        assert all(block.source_number is None for block in blocks)
        assert all(len(block.messages) == 2 for block in blocks)
        assert blocks[2].messages[0].text == "Is there any way to expedite the shipping?"
        assert anomalies == []

    def test_ascii_arrow(self):
        blocks, _ = tokenize("Customer: A\n->\nCustomer: B")

        assert [b.messages[0].text for b in blocks] == ["A", "B"]

    def test_branch_directives(self):
        text = (
            "Step 1:\n"
            "Agent: Do you have an account?\n"
            "If yes, go to Step 3\n"
            "Otherwise, go to Step 2\n"
        )
        blocks, anomalies = tokenize(text)

        assert blocks[0].branches == [Branch(3, "yes"), Branch(2, "Otherwise")]
        assert blocks[0].messages == [Message(Role.AGENT, "Do you have an account?")]
        assert anomalies == []

    def test_unconditional_branch(self):
        blocks, _ = tokenize("Step 2:\nAgent: Done.\nGo to Step 4.")

        assert blocks[0].branches == [Branch(4, "")]

    def test_terminal_marker(self):
        for marker in ("End", "[End]", "end of conversation", "END."):
            blocks, _ = tokenize(f"Step 1:\nAgent: Bye\n{marker}")
            assert blocks[0].terminal is True, marker
            assert len(blocks[0].messages) == 1

    def test_empty_step_header_is_dropped(self):
        blocks, anomalies = tokenize("Step 1:\n\nStep 2:\nCustomer: Hi")

        assert len(blocks) == 1
        assert blocks[0].source_number == 2
        assert _kinds(anomalies) == [AnomalyKind.EMPTY_STEP]

    def test_empty_message_is_dropped(self):
        blocks, anomalies = tokenize("Step 1:\nCustomer: Hi\nAgent:\n\nStep 2:\nAgent: Hello")

        assert blocks[0].messages == [Message(Role.CUSTOMER, "Hi")]
        assert _kinds(anomalies) == [AnomalyKind.EMPTY_MESSAGE]

    def test_role_marker_on_header_line(self):
        """A message written after the step header is kept, not used as the title."""
        blocks, anomalies = tokenize("Step 1: Customer: I need a refund\nAgent: Sure.")

        assert blocks[0].title == ""
        assert blocks[0].messages == [
            Message(Role.CUSTOMER, "I need a refund"),
            Message(Role.AGENT, "Sure."),
        ]
        assert _kinds(anomalies) == [AnomalyKind.HEADER_MESSAGE]
        assert anomalies[0].step_number == 1

    def test_header_line_message_alone_keeps_step(self):
        blocks, anomalies = tokenize("Step 1: Agent: Hello\nlooking forward to it\nStep 2:\nCustomer: Hi")

        assert [b.source_number for b in blocks] == [1, 2]
        assert blocks[0].messages == [Message(Role.AGENT, "Hello\nlooking forward to it")]
        assert AnomalyKind.EMPTY_STEP not in _kinds(anomalies)

    def test_refund_fixture(self, branching_flow_text: str):
        blocks, anomalies = tokenize(branching_flow_text)

        assert [b.source_number for b in blocks] == [1, 2, 3, 4]
        assert [b.title for b in blocks] == ["Greeting", "Damaged item", "Change of mind", "Wrap-up"]
        assert [br.target for br in blocks[0].branches] == [2, 3, 9]
        assert blocks[1].branches == [Branch(4, "")]
        assert blocks[3].terminal is True
        assert anomalies == []


class TestNumberSteps:
    """Renumbering blocks into 1..N."""

    def test_sequential_numbers_kept(self, two_step_flow: str):
        blocks, anomalies = tokenize(two_step_flow)
        steps = number_steps(blocks, anomalies)

        assert [s.step_number for s in steps] == [1, 2]
        assert [s.source_number for s in steps] == [1, 2]
        assert anomalies == []

    def test_gaps_are_renumbered(self):
        blocks, anomalies = tokenize("Step 1:\nCustomer: A\nStep 5:\nCustomer: B")
        steps = number_steps(blocks, anomalies)

        assert [s.step_number for s in steps] == [1, 2]
        assert steps[1].source_number == 5
        assert _kinds(anomalies) == [AnomalyKind.RENUMBERED]
        assert anomalies[0].ref == "5"

    def test_out_of_order_headers(self):
        blocks, anomalies = tokenize("Step 2:\nCustomer: A\nStep 1:\nCustomer: B")
        steps = number_steps(blocks, anomalies)

        assert [s.step_number for s in steps] == [1, 2]
        assert [s.messages[0].text for s in steps] == ["A", "B"]
        assert _kinds(anomalies) == [AnomalyKind.RENUMBERED, AnomalyKind.RENUMBERED]

    def test_duplicate_headers(self):
        blocks, anomalies = tokenize("Step 1:\nCustomer: A\nStep 1:\nCustomer: B")
        steps = number_steps(blocks, anomalies)

        assert [s.step_number for s in steps] == [1, 2]
        assert _kinds(anomalies) == [AnomalyKind.DUPLICATE_STEP_NUMBER]
        assert anomalies[0].step_number == 2

    def test_implicit_blocks_numbered_in_order(self, order_flow_text: str):
        blocks, anomalies = tokenize(order_flow_text)
        steps = number_steps(blocks, anomalies)

        assert [s.step_number for s in steps] == [1, 2, 3, 4, 5]
        assert all(s.source_number is None for s in steps)
        assert anomalies == []
