"""Tests for items and run bookkeeping."""
import re

import pytest

from flowgraph.runtime import NodeResult, RunRecord, RunStateError, RunStatus, RunSummary, new_run_id
from flowgraph.sdk import ExecutionError, Item, to_items


class TestItem:
    """Test Item helpers."""

    def test_json_alias(self):
        """Test that items serialize their data under "json"."""
        item = Item(json={"name": "John"})

        assert item.json == {"name": "John"}
        assert item["name"] == "John"
        assert "name" in item
        assert item.get("missing", 1) == 1
        assert item.to_dict() == {"json": {"name": "John"}}

    def test_merged_returns_new_dict(self):
        """Test that merged() never mutates the source item."""
        source = Item(json_data={"a": 1})

        merged = source.merged(b=2)

        assert merged.json == {"a": 1, "b": 2}
        assert source.json == {"a": 1}
        assert merged.json_data is not source.json_data

    def test_clone_is_deep(self):
        """Test that nested data is copied."""
        source = Item(json_data={"nested": {"n": 1}})

        clone = source.clone()
        clone.json["nested"]["n"] = 2

        assert source.json["nested"]["n"] == 1

    def test_error_marker(self):
        """Test the error marker aliases."""
        item = Item(json_data={}, error=ExecutionError(message="boom", node_id="n1"))

        assert item.to_dict()["error"] == {"message": "boom", "nodeId": "n1", "type": "NodeOperationError"}


class TestToItems:
    """Test handler output normalisation."""

    def test_shapes(self):
        """Test Items, wrapped dicts, plain dicts and scalars."""
        existing = Item(json_data={"x": 1})

        items = to_items([existing, {"json": {"y": 2}}, {"z": 3}, 4])

        assert items[0] is existing
        assert [item.json for item in items[1:]] == [{"y": 2}, {"z": 3}, {"data": 4}]

    def test_single_value_and_none(self):
        """Test a bare dict and None."""
        assert [item.json for item in to_items({"a": 1})] == [{"a": 1}]
        assert to_items(None) == []


class TestRunRecord:
    """Test RunRecord status transitions."""

    def test_run_id_format(self):
        """Test generated run ids."""
        assert re.fullmatch(r"exec_\d+_[a-z0-9]{9}", new_run_id())
        assert RunRecord().id.startswith("exec_")

    def test_success_lifecycle(self):
        """Test new -> running -> success."""
        record = RunRecord(run_id="exec_1", workflow_id="wf-1")
        assert record.status == RunStatus.NEW

        record.start()
        record.record(NodeResult(node_id="a", success=True, data=[]))
        record.record(NodeResult(node_id="b", success=False, error="bad"), append_order=False)
        record.finish(success=False, error="bad", error_node_id="b")

        summary = record.to_summary()
        assert summary.status == RunStatus.ERROR
        assert summary.success is False
        assert summary.execution_order == ["a"]
        assert summary.nodes_executed == 2
        assert summary.error_node_id == "b"

    def test_illegal_transitions(self):
        """Test that each transition is allowed once and in order."""
        record = RunRecord()

        with pytest.raises(RunStateError):
            record.finish(success=True)
        with pytest.raises(RunStateError):
            record.record(NodeResult(node_id="a", success=True))
        with pytest.raises(RunStateError):
            record.to_summary()

        record.start()
        with pytest.raises(RunStateError):
            record.start()

        record.finish(success=True)
        with pytest.raises(RunStateError):
            record.finish(success=False)


class TestRunSummary:
    """Test RunSummary serialization."""

    def test_to_dict_uses_camel_case(self):
        """Test the wire shape of a summary."""
        record = RunRecord(run_id="exec_1", workflow_id="wf-1")
        record.start()
        record.record(NodeResult(node_id="a", node_type="manual", success=True, data=[Item(json_data={"n": 1})]))
        record.finish(success=True)

        data = record.to_summary().to_dict()

        assert data["runId"] == "exec_1"
        assert data["status"] == "success"
        assert data["nodesExecuted"] == 1
        assert data["nodeResults"]["a"]["data"] == [{"json": {"n": 1}}]
        assert "error" not in data
        assert RunSummary.from_dict(data) == record.to_summary()
