"""
Tests for the Reference Resolver.

Tests verify that the resolver correctly:
    - Flattens token tables and follows aliases
    - Picks contextual token values
    - Falls back (or returns UNRESOLVED) for missing tokens, never raising
    - Applies transforms and computed values
    - Builds event handlers and evaluates conditions
"""

import logging
import math

import pytest
from coral.config import ResolverOptions
from coral.diagnostics import DiagnosticKind
from coral.model import Package
from coral.references import (
    AssetRef,
    ComparisonCondition,
    ComparisonOperator,
    ComputedKind,
    ComputedValue,
    EventRef,
    ExternalRef,
    HandlerKind,
    InlineHandler,
    LogicalCondition,
    LogicalOperator,
    NotCondition,
    PropRef,
    PropTransform,
    TokenRef,
    TransformKind,
)
from coral.resolver import (
    UNRESOLVED,
    ReferenceResolver,
    TokenTable,
    apply_transform,
    collect_prop_references,
    collect_token_references,
    evaluate_condition,
    flatten_tokens,
    resolve_all_event_bindings,
    resolve_event_binding,
    resolve_value,
    to_text,
)


def build_tokens() -> dict:
    return {
        "$schema": "https://example.com/tokens.json",
        "color": {
            "primary": {"$value": {"$contexts": {"light": "#0066ff", "dark": "#3385ff"}, "$default": "light"}},
            "text": {"$contexts": {"light": "#111111", "dark": "#eeeeee"}},
            "accent": {"$value": "{color.primary}"},
            "loopA": {"$value": "{color.loopB}"},
            "loopB": {"$value": "{color.loopA}"},
        },
        "space": {"$description": "Spacing", "md": {"$value": "8px"}},
    }


def build_resolver(**options) -> ReferenceResolver:
    pkg = Package(name="@test/tokens", tokens=build_tokens())
    return ReferenceResolver.for_package(pkg, ResolverOptions(**options))


class TestTokenTable:
    """Test token flattening."""

    def test_flatten_skips_metadata(self):
        """Keys starting with $ are metadata, not groups."""
        flat = flatten_tokens(build_tokens())
        assert "space.md" in flat
        assert "$schema" not in flat
        assert not any(path.startswith("space.$") for path in flat)

    def test_flatten_paths(self):
        table = TokenTable.from_tokens(build_tokens())
        assert set(table.paths()) == {
            "color.primary", "color.text", "color.accent", "color.loopA", "color.loopB", "space.md",
        }
        assert len(table) == 6

    def test_alias_follows_target(self):
        table = TokenTable.from_tokens(build_tokens())
        assert table.lookup("color.accent", "dark") == "#3385ff"

    def test_alias_loop_is_unresolved(self):
        table = TokenTable.from_tokens(build_tokens())
        assert table.lookup("color.loopA") is UNRESOLVED


class TestResolveToken:
    """Test token resolution."""

    def test_plain_value(self):
        assert build_resolver().resolve_token(TokenRef("space.md")) == "8px"

    def test_context_from_options(self):
        assert build_resolver(token_context="dark").resolve_token(TokenRef("color.primary")) == "#3385ff"

    def test_context_per_call_overrides_options(self):
        resolver = build_resolver(token_context="dark")
        assert resolver.resolve_token(TokenRef("color.primary"), context="light") == "#0066ff"

    def test_unknown_context_uses_declared_default(self):
        assert build_resolver(token_context="sepia").resolve_token(TokenRef("color.primary")) == "#0066ff"

    def test_unknown_context_without_default_uses_first(self):
        assert build_resolver(token_context="sepia").resolve_token(TokenRef("color.text")) == "#111111"

    def test_missing_token_uses_fallback(self):
        """A missing token yields its fallback."""
        assert build_resolver().resolve_token(TokenRef("missing.path", fallback="red")) == "red"

    def test_missing_token_without_fallback(self, caplog):
        """Without a fallback the sentinel is returned and a warning logged."""
        diagnostics = []
        with caplog.at_level(logging.WARNING, logger="coral.resolver"):
            value = build_resolver().resolve_token(TokenRef("missing.path"), diagnostics=diagnostics)
        assert value is UNRESOLVED
        assert not value
        assert "missing.path" in caplog.text
        assert len(diagnostics) == 1
        assert diagnostics[0].kind is DiagnosticKind.UNRESOLVED_TOKEN
        assert not diagnostics[0].is_error


class TestOtherReferences:
    def test_prop(self):
        resolver = build_resolver()
        assert resolver.resolve_prop(PropRef("label"), {"label": "OK"}) == "OK"
        assert resolver.resolve_prop(PropRef("label"), {}) is None

    def test_asset(self):
        assert build_resolver().resolve_asset(AssetRef("icons/check.svg")) == "assets/icons/check.svg"
        resolver = build_resolver(asset_base_path="/static/")
        assert resolver.resolve_asset(AssetRef("logo.png")) == "/static/assets/logo.png"

    def test_external(self):
        assert build_resolver().resolve_external(ExternalRef("@acme/icons", "Check")) == "@acme/icons/Check"


class TestTransforms:
    """Test prop transforms."""

    @pytest.mark.parametrize(
        "value, kind, expected",
        [
            ("", TransformKind.BOOLEAN, False),
            ("x", TransformKind.BOOLEAN, True),
            (None, TransformKind.STRING, ""),
            (True, TransformKind.STRING, "true"),
            (2.0, TransformKind.STRING, "2"),
            ("42", TransformKind.NUMBER, 42),
            ("1.5", TransformKind.NUMBER, 1.5),
            (True, TransformKind.NUMBER, 1),
            (False, TransformKind.NOT, True),
            ("Save", TransformKind.UPPERCASE, "SAVE"),
            ("Save", TransformKind.LOWERCASE, "save"),
        ],
    )
    def test_apply_transform(self, value, kind, expected):
        assert apply_transform(value, kind) == expected

    def test_transform_by_name(self):
        assert apply_transform("abc", "uppercase") == "ABC"

    def test_number_of_garbage_is_nan(self):
        assert math.isnan(apply_transform("abc", TransformKind.NUMBER))

    def test_to_text(self):
        assert to_text(UNRESOLVED) == ""
        assert to_text(3) == "3"


class TestResolveValue:
    """Test recursive value resolution."""

    def test_nested_structures(self):
        resolver = build_resolver()
        value = {
            "padding": TokenRef("space.md"),
            "shadow": [TokenRef("color.primary"), "0 1px"],
            "opacity": 0.5,
        }
        assert resolve_value(value, resolver, {}) == {
            "padding": "8px",
            "shadow": ["#0066ff", "0 1px"],
            "opacity": 0.5,
        }

    def test_transform_reference(self):
        resolver = build_resolver()
        assert resolve_value(PropTransform("disabled", TransformKind.NOT), resolver, {"disabled": True}) is False

    def test_concat(self):
        computed = ComputedValue(ComputedKind.CONCAT, (PropRef("first"), " ", PropRef("last")))
        assert resolve_value(computed, build_resolver(), {"first": "Ada", "last": "Lovelace"}) == "Ada Lovelace"

    def test_template(self):
        computed = ComputedValue(ComputedKind.TEMPLATE, ("{0} of {1} ({2})", PropRef("page"), PropRef("total")))
        assert resolve_value(computed, build_resolver(), {"page": 2, "total": 5}) == "2 of 5 ()"

    def test_ternary(self):
        computed = ComputedValue(ComputedKind.TERNARY, (PropRef("loading"), "Loading...", PropRef("label")))
        resolver = build_resolver()
        assert resolve_value(computed, resolver, {"loading": True, "label": "Go"}) == "Loading..."
        assert resolve_value(computed, resolver, {"loading": False, "label": "Go"}) == "Go"

    def test_classnames_drop_falsy(self):
        computed = ComputedValue(ComputedKind.CLASSNAMES, ("btn", PropRef("extra"), None, "active"))
        assert resolve_value(computed, build_resolver(), {"extra": ""}) == "btn active"

    def test_nested_computed(self):
        inner = ComputedValue(ComputedKind.CONCAT, (TokenRef("space.md"), " solid"))
        outer = ComputedValue(ComputedKind.CONCAT, ("border: ", inner))
        assert resolve_value(outer, build_resolver(), {}) == "border: 8px solid"

    def test_event_refs_left_in_place(self):
        ref = EventRef("onClick")
        assert resolve_value({"onClick": ref}, build_resolver(), {}) == {"onClick": ref}

    def test_collect_references(self):
        value = {
            "a": TokenRef("color.primary"),
            "b": ComputedValue(ComputedKind.CONCAT, (PropRef("x"), TokenRef("space.md"), PropRef("x"))),
        }
        assert collect_token_references(value) == ["color.primary", "space.md"]
        assert collect_prop_references(value) == ["x"]


class FakeEvent:
    def __init__(self, value):
        self.target = {"value": value}
        self.prevented = False

    def preventDefault(self):
        self.prevented = True


class TestEventBindings:
    """Test event handler construction."""

    def test_forward_with_extract_and_args(self):
        calls = []
        handler = resolve_event_binding(
            EventRef("onChange", extract_path="target.value", extra_args=("email",)),
            {"onChange": lambda *args: calls.append(args)},
            {},
            lambda name, value: None,
        )
        handler(FakeEvent("a@b.c"))
        assert calls == [("a@b.c", "email")]

    def test_missing_parent_event(self):
        assert resolve_event_binding(EventRef("onClose"), {}, {}, lambda n, v: None) is None

    def test_prevent_default(self):
        event = FakeEvent(None)
        handler = resolve_event_binding(InlineHandler(HandlerKind.PREVENT_DEFAULT), {}, {}, lambda n, v: None)
        handler(event)
        assert event.prevented

    def test_toggle_and_set(self):
        props = {"isOpen": False}
        updates = {}
        setter = updates.__setitem__
        resolve_event_binding(InlineHandler(HandlerKind.TOGGLE, target="isOpen"), {}, props, setter)()
        resolve_event_binding(InlineHandler(HandlerKind.SET, target="mode", value="edit"), {}, props, setter)()
        assert updates == {"isOpen": True, "mode": "edit"}

    def test_resolve_all_skips_unbound(self):
        handlers = resolve_all_event_bindings(
            {"onClick": EventRef("onPress"), "onBlur": EventRef("onLeave")},
            {"onPress": lambda *args: None},
            {},
            lambda n, v: None,
        )
        assert list(handlers) == ["onClick"]

    def test_unsupported_binding(self):
        with pytest.raises(TypeError):
            resolve_event_binding(PropRef("x"), {}, {}, lambda n, v: None)


class TestConditions:
    """Test condition evaluation."""

    def test_prop_truthiness(self):
        assert evaluate_condition(PropRef("visible"), {"visible": 1})
        assert not evaluate_condition(PropRef("visible"), {})

    def test_logical(self):
        condition = LogicalCondition(LogicalOperator.AND, (PropRef("a"), NotCondition(PropRef("b"))))
        assert evaluate_condition(condition, {"a": True, "b": False})
        assert not evaluate_condition(condition, {"a": True, "b": True})
        either = LogicalCondition(LogicalOperator.OR, (PropRef("a"), PropRef("b")))
        assert evaluate_condition(either, {"b": True})

    def test_comparison(self):
        equals = ComparisonCondition(ComparisonOperator.EQUALS, PropRef("size"), "lg")
        differs = ComparisonCondition(ComparisonOperator.NOT_EQUALS, PropRef("size"), "lg")
        assert evaluate_condition(equals, {"size": "lg"})
        assert evaluate_condition(differs, {"size": "sm"})

    def test_comparison_of_nested_condition(self):
        condition = ComparisonCondition(ComparisonOperator.EQUALS, NotCondition(PropRef("a")), True)
        assert evaluate_condition(condition, {"a": False})

    def test_unsupported_condition(self):
        with pytest.raises(TypeError):
            evaluate_condition("visible", {})
