"""Tests for the built-in core node handlers."""
import time

import pytest

from flowgraph.config import Settings
from flowgraph.nodepacks.core import NODE_CLASSES
from flowgraph.nodepacks.core.comparisons import compare, regex_match, to_number
from flowgraph.nodepacks.core.flow import IfNode, MergeNode, NoOpNode, SwitchNode, WaitNode
from flowgraph.nodepacks.core.integrations import INTEGRATION_CLASSES
from flowgraph.nodepacks.core.transform import CodeNode, SetNode
from flowgraph.nodepacks.core.triggers import ManualTriggerNode, WebhookTriggerNode
from flowgraph.sdk import CodeExecutionError, NodeOperationError


class TestComparisons:
    """Test comparison operations."""

    @pytest.mark.parametrize("operation,value1,value2,expected", [
        ("equal", "a", "a", True),
        ("equals", 1, 1, True),
        ("equal", 1, "1", False),
        ("notEqual", "a", "b", True),
        ("contains", "hello world", "world", True),
        ("notContains", "hello", "x", True),
        ("startsWith", "hello", "he", True),
        ("endsWith", "hello", "lo", True),
        ("larger", 5, 3, True),
        ("smallerEqual", "3", 3, True),
        ("isEmpty", "", None, True),
        ("isNotEmpty", [1], None, True),
        ("regex", "abc123", "\\d+", True),
        ("after", "2024-02-01", "2024-01-01", True),
        ("before", "2024-02-01", "2024-01-01", False),
    ])
    def test_operations(self, operation, value1, value2, expected):
        """Test each named operation."""
        assert compare(operation, value1, value2) is expected

    def test_unknown_operation(self):
        """Test that unknown operations raise ValueError."""
        with pytest.raises(ValueError, match="Unknown comparison operation"):
            compare("sortOf", 1, 1)

    def test_regex_flags(self):
        """Test /pattern/flags syntax."""
        assert regex_match("HELLO", "/hello/i")
        assert not regex_match("HELLO", "/hello/")

    def test_to_number(self):
        """Test numeric coercion of strings."""
        assert to_number("42") == 42
        assert to_number("2.5") == 2.5


class TestTriggerNodes:
    """Test trigger handlers."""

    async def test_emits_copies_of_seed(self, node_context):
        """Test that a trigger returns copies of its seed items."""
        seed = {"manualTrigger": True, "nodeId": "node-1"}
        node = node_context(ManualTriggerNode(), items=[seed])

        result = await node.execute()

        assert result[0].json == seed
        assert result[0].json is not node.get_input_data()[0].json

    async def test_seeds_itself_without_input(self, node_context):
        """Test that a trigger invoked directly synthesizes its payload."""
        node = node_context(WebhookTriggerNode())

        result = await node.execute()

        assert len(result) == 1
        data = result[0].json
        assert set(["headers", "query", "body"]) <= set(data)
        assert data["nodeId"] == "node-1"
        assert data["$workflow"]["id"] == "wf-test"


class TestIfNode:
    """Test IF node."""

    async def test_typed_conditions(self, node_context):
        """Test active/inactive users against a boolean condition."""
        node = node_context(
            IfNode(),
            parameters={"conditions": {"boolean": [{"value1": "{{ active }}", "operation": "equal", "value2": True}]}},
            items=[{"name": "a", "active": True}, {"name": "b", "active": False}],
        )

        result = await node.execute()

        assert [item.json["conditionResult"] for item in result] == [True, False]
        assert [item.json["branchTaken"] for item in result] == ["true", "false"]
        assert result[0].json["name"] == "a"

    async def test_any_combination(self, node_context):
        """Test combineOperation any."""
        node = node_context(
            IfNode(),
            parameters={
                "combineOperation": "any",
                "conditions": {
                    "number": [{"value1": "{{ age }}", "operation": "larger", "value2": 65}],
                    "string": [{"value1": "{{ role }}", "operation": "equal", "value2": "admin"}],
                },
            },
            items=[{"age": 30, "role": "admin"}, {"age": 30, "role": "user"}],
        )

        result = await node.execute()

        assert [item.json["conditionResult"] for item in result] == [True, False]

    async def test_literal_values_stay_literal(self, node_context):
        """Test that values without tokens are not looked up in the item."""
        node = node_context(
            IfNode(),
            parameters={"conditions": [{"value1": "status", "operation": "equal", "value2": "status"}]},
            items=[{"status": "other"}],
        )

        result = await node.execute()

        assert result[0].json["conditionResult"] is True

    async def test_bad_operation_is_soft(self, node_context):
        """Test that an unknown operation marks the item instead of raising."""
        node = node_context(
            IfNode(),
            parameters={"conditions": [{"value1": 1, "operation": "sortOf", "value2": 1}]},
            items=[{"x": 1}],
        )

        result = await node.execute()

        assert result[0].json["conditionResult"] is False
        assert "Condition evaluation failed" in result[0].json["error"]


class TestSwitchNode:
    """Test Switch node."""

    async def test_first_matching_rule(self, node_context):
        """Test that items route to the first matching rule."""
        node = node_context(
            SwitchNode(),
            parameters={
                "dataPropertyName": "priority",
                "rules": {"rules": [
                    {"operation": "equal", "value": "high", "outputName": "urgent"},
                    {"operation": "equal", "value": "low"},
                ]},
            },
            items=[{"priority": "high"}, {"priority": "low"}, {"priority": "none"}],
        )

        result = await node.execute()

        assert [item.json["switchOutput"] for item in result] == [0, 1, 2]
        assert [item.json["switchRule"] for item in result] == ["urgent", "1", "default"]
        assert [item.json["switchMatched"] for item in result] == [True, True, False]

    async def test_explicit_fallback(self, node_context):
        """Test fallbackOutput for unmatched items."""
        node = node_context(
            SwitchNode(),
            parameters={"value": "{{ n }}", "fallbackOutput": 9, "rules": [{"operation": "larger", "value": 10}]},
            items=[{"n": 5}],
        )

        result = await node.execute()

        assert result[0].json["switchOutput"] == 9
        assert result[0].json["switchMatched"] is False

    async def test_named_outputs(self, node_context):
        """Test that a named output labels the branch and keeps the rule position."""
        node = node_context(
            SwitchNode(),
            parameters={
                "value": "{{ level }}",
                "fallbackOutput": "other",
                "rules": [
                    {"operation": "equal", "value": "low", "output": "calm"},
                    {"operation": "equal", "value": "high", "output": "urgent"},
                ],
            },
            items=[{"level": "high"}, {"level": "none"}],
        )

        result = await node.execute()

        assert [item.json["switchOutput"] for item in result] == [1, 2]
        assert [item.json["switchRule"] for item in result] == ["urgent", "other"]
        assert [item.json["switchMatched"] for item in result] == [True, False]

    async def test_status_field_by_default(self, node_context):
        """Test that rules without value or field compare the item's status."""
        node = node_context(
            SwitchNode(),
            parameters={"rules": [{"condition": "equal", "value": "active"}]},
            items=[{"status": "active"}, {"status": "closed"}, {}],
        )

        result = await node.execute()

        assert [item.json["switchMatched"] for item in result] == [True, False, False]


class TestMergeWaitNoOp:
    """Test Merge, Wait and No Operation nodes."""

    async def test_merge_annotates(self, node_context):
        """Test Merge passes items with merge metadata."""
        node = node_context(MergeNode(), items=[{"a": 1}])

        result = await node.execute()

        assert result[0].json["a"] == 1
        assert result[0].json["mergeMode"] == "append"
        assert "mergedAt" in result[0].json

    async def test_wait_suspends(self, node_context):
        """Test that Wait sleeps for the configured time."""
        node = node_context(WaitNode(), parameters={"amount": 1, "unit": "seconds"}, items=[{"a": 1}])

        start = time.monotonic()
        result = await node.execute()
        elapsed = time.monotonic() - start

        assert elapsed >= 0.95
        assert result[0].json["waitCompleted"] is True
        assert result[0].json["waitDuration"] == "1 seconds"

    async def test_wait_capped(self, node_context):
        """Test that long waits are capped by settings."""
        settings = Settings(wait_max_seconds=0.05)
        node = node_context(WaitNode(), parameters={"amount": 2, "unit": "hours"}, items=[{}], settings=settings)

        start = time.monotonic()
        await node.execute()

        assert time.monotonic() - start < 1.0

    async def test_noop_copies(self, node_context):
        """Test that No Operation returns equal but new items."""
        node = node_context(NoOpNode(), items=[{"a": 1}])

        result = await node.execute()

        assert result[0].json == {"a": 1}
        assert result[0].json is not node.get_input_data()[0].json


class TestSetNode:
    """Test Set node."""

    async def test_typed_values(self, node_context):
        """Test string/number/boolean groups with expressions."""
        node = node_context(
            SetNode(),
            parameters={"values": {
                "string": [{"name": "greeting", "value": "hello {{ name }}"}],
                "number": [{"name": "count", "value": "42"}],
                "boolean": [{"name": "flag", "value": "false"}],
            }},
            items=[{"name": "Ada"}],
        )

        result = await node.execute()

        assert result[0].json == {"name": "Ada", "greeting": "hello Ada", "count": 42, "flag": False}

    async def test_keep_only_set_and_dot_notation(self, node_context):
        """Test keepOnlySet and nested names."""
        node = node_context(
            SetNode(),
            parameters={"keepOnlySet": True, "values": {"string": [{"name": "user.name", "value": "Ada"}]}},
            items=[{"other": 1}],
        )

        result = await node.execute()

        assert result[0].json == {"user": {"name": "Ada"}}

    async def test_plain_mapping(self, node_context):
        """Test values given as a plain mapping."""
        node = node_context(SetNode(), parameters={"values": {"greeting": "hello"}}, items=[{}])

        result = await node.execute()

        assert result[0].json == {"greeting": "hello"}

    async def test_raw_json(self, node_context):
        """Test raw mode."""
        node = node_context(
            SetNode(),
            parameters={"mode": "raw", "jsonData": '{"message": "Hello", "count": 42}'},
            items=[{}],
        )

        result = await node.execute()

        assert result[0].json == {"message": "Hello", "count": 42}

    async def test_raw_json_invalid(self, node_context):
        """Test that invalid raw JSON fails the node."""
        node = node_context(SetNode(), parameters={"mode": "raw", "jsonData": "{nope"}, items=[{}])

        with pytest.raises(NodeOperationError, match="invalid JSON"):
            await node.execute()

    async def test_input_not_mutated(self, node_context):
        """Test that the input item is untouched."""
        node = node_context(SetNode(), parameters={"values": {"a": "2"}}, items=[{"a": "1"}])

        await node.execute()

        assert node.get_input_data()[0].json == {"a": "1"}


class TestCodeNode:
    """Test Code node."""

    async def test_runs_code(self, node_context):
        """Test that the Code node runs user code in the sandbox."""
        node = node_context(
            CodeNode(),
            parameters={"code": 'return [{"json": {**i["json"], "doubled": i["json"]["n"] * 2}} for i in items]'},
            items=[{"n": 1}, {"n": 2}],
        )

        result = await node.execute()

        assert [item.json["doubled"] for item in result] == [2, 4]

    async def test_code_failure_raises(self, node_context):
        """Test that user code errors fail the node."""
        node = node_context(CodeNode(), parameters={"code": "return 1 / 0"}, items=[{}])

        with pytest.raises(CodeExecutionError, match="Code execution failed"):
            await node.execute()


class TestIntegrationStubs:
    """Test integration pass-through stubs."""

    async def test_marks_items(self, node_context):
        """Test that a stub adds its processed marker."""
        node = node_context(INTEGRATION_CLASSES["slack"](), items=[{"text": "hi"}])

        result = await node.execute()

        assert result[0].json == {"text": "hi", "slackProcessed": True}

    def test_registered_in_core_pack(self):
        """Test that every stub is part of the core pack."""
        for node_type in INTEGRATION_CLASSES:
            assert node_type in NODE_CLASSES
