"""Tests for the handler registry."""
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from flowgraph.nodepacks.core import MANIFEST, NODE_CLASSES
from flowgraph.nodepacks.core.flow import NoOpNode
from flowgraph.registry import (
    NODE_PACK_ENTRY_POINT,
    HandlerRegistry,
    NodePackManifest,
    create_default_registry,
    get_global_registry,
)
from flowgraph.sdk import BaseNode, Item


class TestHandlerRegistry:
    """Test HandlerRegistry registration and lookup."""

    def test_register_node(self):
        """Test registering a BaseNode subclass."""
        registry = HandlerRegistry()

        definition = registry.register_node(NoOpNode)

        assert definition.node_type == "noOp"
        assert definition.display_name == "No Operation"
        assert registry.has_node("noOp")
        assert "noOp" in registry
        assert len(registry) == 1
        assert isinstance(registry.create_node("noOp"), NoOpNode)

    def test_register_rejects_non_nodes(self):
        """Test that only BaseNode subclasses are accepted."""
        with pytest.raises(TypeError):
            HandlerRegistry().register_node(dict)

    def test_prefixed_lookup(self):
        """Test that n8n-prefixed types resolve to the bare type."""
        registry = HandlerRegistry()
        registry.register_node(NoOpNode)

        assert registry.get_node_class("n8n-nodes-base.noOp") is NoOpNode
        assert registry.create_node("n8n-nodes-base.missing") is None

    def test_register_function(self):
        """Test wrapping a plain async function."""
        async def shout(node, items):
            """Upper-case the text field."""
            return [{"text": item.get("text", "").upper()} for item in items]

        registry = HandlerRegistry()
        definition = registry.register_function("shout", shout)

        handler = registry.create_node("shout")
        assert isinstance(handler, BaseNode)
        assert type(handler).__name__ == "shout_node"
        assert definition.description == "Upper-case the text field."

    def test_register_function_requires_coroutine(self):
        """Test that sync functions are rejected."""
        with pytest.raises(TypeError, match="async"):
            HandlerRegistry().register_function("sync", lambda node, items: items)

    def test_replacing_handler(self):
        """Test that re-registering a type replaces the handler."""
        async def first(node, items):
            return items

        async def second(node, items):
            return []

        registry = HandlerRegistry()
        registry.register_function("x", first)
        registry.register_function("x", second)

        assert len(registry) == 1
        assert registry.get_node_class("x").__name__ == "second_node"


class TestPacks:
    """Test node pack registration and discovery."""

    def test_core_pack(self):
        """Test that the default registry holds the whole core pack."""
        registry = create_default_registry()

        assert set(registry.list_node_types()) == set(NODE_CLASSES)
        assert registry.list_packs()[0].name == MANIFEST.name
        assert all(definition.node_pack == "core" for definition in registry.list_nodes())

    def test_trigger_flag(self):
        """Test that trigger handlers are flagged in their definitions."""
        registry = create_default_registry()

        assert registry.get_node("manual").is_trigger is True
        assert registry.get_node("webhook").is_trigger is True
        assert registry.get_node("set").is_trigger is False

    def test_discover_entry_points(self):
        """Test discovery of packs returning a bare class dict."""
        entry_point = SimpleNamespace(name="extra", load=lambda: (lambda: {"extraNoOp": NoOpNode}))
        registry = HandlerRegistry()

        with patch("flowgraph.registry.registry.entry_points", return_value=[entry_point]) as mock_eps:
            count = registry.discover_entry_points()
            registry.discover_entry_points()

        mock_eps.assert_called_once_with(group=NODE_PACK_ENTRY_POINT)
        assert count == 1
        assert registry.has_node("extraNoOp")
        assert registry.list_packs()[0].name == "extra"

    def test_broken_pack_skipped(self):
        """Test that a failing pack is skipped."""
        def _fail():
            raise ImportError("missing dependency")

        broken = SimpleNamespace(name="broken", load=_fail)
        manifest = NodePackManifest(name="good", nodes=["noOp"])
        good = SimpleNamespace(name="good", load=lambda: (lambda: (manifest, {"noOp": NoOpNode})))
        registry = HandlerRegistry()

        with patch("flowgraph.registry.registry.entry_points", return_value=[broken, good]):
            count = registry.discover_entry_points()

        assert count == 1
        assert registry.has_node("noOp")

    def test_global_registry_cached(self):
        """Test the process-wide registry."""
        with patch("flowgraph.registry.registry.entry_points", return_value=[]):
            first = get_global_registry()
            second = get_global_registry()

        assert first is second
        assert first.has_node("httpRequest")


class TestFunctionHandlerExecution:
    """Test running a function-backed handler."""

    async def test_execute(self, node_context):
        """Test that the wrapped function receives node and items."""
        seen = {}

        async def capture(node, items):
            seen["node"] = node.id
            return [{"count": len(items)}]

        registry = HandlerRegistry()
        registry.register_function("capture", capture)
        handler = node_context(registry.create_node("capture"), items=[{"a": 1}, {"a": 2}])

        result = await handler.execute()

        assert seen["node"] == "node-1"
        assert result == [Item(json_data={"count": 2})]
