"""Tests for expression resolution."""
import re

from flowgraph.sdk import MISSING, ExpressionResolver, RunVariables, resolve_path, resolve_template, resolve_value


ITEM = {
    "user": {"name": "Ada", "tags": ["admin", "ops"], "manager": None},
    "count": 3,
    "active": True,
    "price": 2.0,
}


class TestResolvePath:
    """Test single path lookups."""

    def test_dotted_walk(self):
        """Test nested dict and list access."""
        assert resolve_path("user.name", ITEM) == "Ada"
        assert resolve_path("user.tags.1", ITEM) == "ops"

    def test_missing_segments(self):
        """Test that absent keys, bad indexes and None intermediates are MISSING."""
        assert resolve_path("user.email", ITEM) is MISSING
        assert resolve_path("user.tags.9", ITEM) is MISSING
        assert resolve_path("user.manager.name", ITEM) is MISSING

    def test_reserved_prefixes(self, run_variables):
        """Test $vars, $json, $workflow and $execution lookups."""
        assert resolve_path("$vars.apiUrl", ITEM, run_variables) == "https://api.example.com"
        assert resolve_path("$json.user.name", ITEM, run_variables) == "Ada"
        assert resolve_path("$input.count", ITEM, run_variables) == 3
        assert resolve_path("$workflow.name", ITEM, run_variables) == "Test Workflow"
        assert resolve_path("$execution.id", ITEM, run_variables) == "exec_test"

    def test_now_and_today(self):
        """Test clock tokens are evaluated at resolution time."""
        assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$", resolve_path("$now", {}))
        assert re.match(r"^\d{4}-\d{2}-\d{2}$", resolve_path("$today", {}))


class TestResolveTemplate:
    """Test token substitution in strings."""

    def test_brace_tokens(self):
        """Test {{ }} tokens with surrounding whitespace."""
        assert resolve_template("Hello {{ user.name }}!", ITEM) == "Hello Ada!"
        assert resolve_template("Hello {{user.name}}!", ITEM) == "Hello Ada!"

    def test_dollar_call_tokens(self, run_variables):
        """Test $( ) tokens."""
        result = resolve_template("$($vars.apiUrl)/users/$(count)", ITEM, run_variables)
        assert result == "https://api.example.com/users/3"

    def test_unresolved_token_left_verbatim(self):
        """Test that unresolvable tokens are kept as written."""
        template = "Hi {{ user.email }} and {{ nothing.here }}"
        assert resolve_template(template, ITEM) == template

    def test_value_stringification(self):
        """Test booleans, floats and structures inside templates."""
        assert resolve_template("{{ active }}", ITEM) == "true"
        assert resolve_template("p={{ price }}", ITEM) == "p=2"
        assert resolve_template("tags={{ user.tags }}", ITEM) == 'tags=["admin", "ops"]'

    def test_non_string_passthrough(self):
        """Test that non-string templates are returned unchanged."""
        assert resolve_template(42, ITEM) == 42
        assert resolve_template(None, ITEM) is None
        assert resolve_template("", ITEM) == ""


class TestResolveValue:
    """Test type-preserving parameter resolution."""

    def test_single_token_keeps_type(self):
        """Test that a lone token yields the raw value."""
        assert resolve_value("{{ count }}", ITEM) == 3
        assert resolve_value("{{ user.tags }}", ITEM) == ["admin", "ops"]
        assert resolve_value("{{ active }}", ITEM) is True

    def test_single_missing_token_stays_string(self):
        """Test that an unresolvable lone token is not replaced."""
        assert resolve_value("{{ missing }}", ITEM) == "{{ missing }}"

    def test_nested_structures(self):
        """Test recursive resolution inside dicts and lists."""
        value = {"greeting": "Hi {{ user.name }}", "items": ["{{ count }}", 7]}
        assert resolve_value(value, ITEM) == {"greeting": "Hi Ada", "items": [3, 7]}

    def test_literals_untouched(self):
        """Test that strings without tokens are literal."""
        assert resolve_value("user.name", ITEM) == "user.name"


class TestExpressionResolver:
    """Test the run-bound resolver."""

    def test_bound_variables(self):
        """Test that the resolver uses its own variable table."""
        resolver = ExpressionResolver(RunVariables(vars={"env": "prod"}))

        assert resolver.template("env={{ $vars.env }}", {}) == "env=prod"
        assert resolver.value("{{ $vars.env }}", {}) == "prod"
        assert resolver.path("$vars.env", {}) == "prod"

    def test_default_variables(self):
        """Test that a resolver without variables still resolves item paths."""
        resolver = ExpressionResolver()

        assert resolver.path("$vars.anything", {}) is MISSING
        assert resolver.template("{{ a }}", {"a": 1}) == "1"
