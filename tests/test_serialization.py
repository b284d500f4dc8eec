"""
Tests for serialization and deserialization of coral packages.

These tests ensure lossless JSON/YAML round-trip using the explicit
serialization functions in `coral.serialization`, and cover reading
the older untagged file shapes.
"""

import json

import pytest
from coral.examples import build_example_package
from coral.model import FlatStateStyles, VariantStateStyles
from coral.references import (
    ComparisonCondition,
    ComparisonOperator,
    ComputedKind,
    ComputedValue,
    EventRef,
    ExternalRef,
    LogicalCondition,
    LogicalOperator,
    NotCondition,
    PropRef,
    PropTransform,
    SlotForward,
    TokenRef,
    TransformKind,
)
from coral.resolver import UNRESOLVED
from coral.serialization import (
    PackageFormatError,
    classify_state_style,
    component_from_dict,
    node_from_dict,
    node_to_dict,
    package_from_dict,
    package_from_json,
    package_from_yaml,
    package_to_dict,
    package_to_json,
    package_to_yaml,
    reference_from_value,
    reference_to_value,
    state_style_from_dict,
    state_style_to_dict,
)
from coral.variants import resolve_state_styles


def test_json_roundtrip():
    package = build_example_package()
    before = package_to_dict(package)
    json_str = package_to_json(package)
    restored = package_from_json(json_str)
    after = package_to_dict(restored)
    assert before == after


def test_yaml_roundtrip():
    package = build_example_package()
    before = package_to_dict(package)
    yaml_str = package_to_yaml(package)
    restored = package_from_yaml(yaml_str)
    after = package_to_dict(restored)
    assert before == after


def test_json_is_sorted():
    data = json.loads(package_to_json(build_example_package()))
    assert list(data) == sorted(data)


def test_roundtrip_keeps_instances():
    restored = package_from_json(package_to_json(build_example_package()))
    icon_button = restored.get_component("IconButton")
    assert icon_button.root.component.ref == "./button/button.coral.json"
    assert icon_button.root.slot_bindings == {"icon": SlotForward("icon")}
    assert icon_button.root.event_bindings == {"onClick": EventRef("onPress")}
    card = restored.get_component("Card")
    assert card.root.children[3].slot_bindings["icon"].name == "Dots"


class TestReferences:
    """The $-keyed reference forms."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ({"$token": "color.primary"}, TokenRef("color.primary")),
            ({"$token": "space.md", "$fallback": "8px"}, TokenRef("space.md", fallback="8px")),
            ({"$prop": "label"}, PropRef("label")),
            ({"$prop": "label", "$transform": "uppercase"}, PropTransform("label", TransformKind.UPPERCASE)),
            ({"$slot": "icon"}, SlotForward("icon")),
            ({"$event": "onChange", "$extract": "target.value"}, EventRef("onChange", extract_path="target.value")),
            ({"$external": {"package": "@acme/icons", "path": "star"}}, ExternalRef("@acme/icons", "star")),
        ],
    )
    def test_reference_from_value(self, raw, expected):
        assert reference_from_value(raw) == expected

    def test_nested_values(self):
        styles = reference_from_value({"padding": {"$token": "space.md"}, "margin": 0})
        assert styles == {"padding": TokenRef("space.md"), "margin": 0}

    def test_computed(self):
        value = reference_from_value({"$computed": "concat", "$inputs": [{"$prop": "first"}, " ", {"$prop": "last"}]})
        assert value == ComputedValue(ComputedKind.CONCAT, (PropRef("first"), " ", PropRef("last")))
        assert reference_to_value(value) == {"$computed": "concat", "$inputs": [{"$prop": "first"}, " ", {"$prop": "last"}]}

    def test_conditions(self):
        raw = {"$and": [{"$prop": "open"}, {"$not": {"$eq": [{"$prop": "size"}, "sm"]}}]}
        condition = reference_from_value(raw)
        assert condition == LogicalCondition(
            LogicalOperator.AND,
            (
                PropRef("open"),
                NotCondition(ComparisonCondition(ComparisonOperator.EQUALS, PropRef("size"), "sm")),
            ),
        )
        assert reference_to_value(condition) == raw

    def test_unresolved_written_as_null(self):
        assert reference_to_value({"color": UNRESOLVED}) == {"color": None}

    def test_unknown_transform(self):
        with pytest.raises(PackageFormatError):
            reference_from_value({"$prop": "x", "$transform": "sideways"})


class TestStateStyles:
    """Tagged entries and the untagged legacy shape."""

    def test_tagged_forms(self):
        assert state_style_from_dict({"$styles": {"opacity": 0.5}}) == FlatStateStyles({"opacity": 0.5})
        assert state_style_from_dict({"$variants": {"color": {"red": {"opacity": 1}}}}) == VariantStateStyles(
            {"color": {"red": {"opacity": 1}}}
        )

    def test_written_tagged(self):
        assert state_style_to_dict(FlatStateStyles({"opacity": 0.5})) == {"$styles": {"opacity": 0.5}}
        assert state_style_to_dict(VariantStateStyles({"intent": {"primary": {}}})) == {
            "$variants": {"intent": {"primary": {}}}
        }

    def test_untagged_flat(self):
        assert isinstance(classify_state_style({"backgroundColor": "#0052cc"}), FlatStateStyles)
        assert isinstance(classify_state_style({"borderTopColor": "#000"}), FlatStateStyles)

    def test_untagged_flat_by_value_shape(self):
        """A color-shaped value marks the entry flat even under an unknown key."""
        entry = classify_state_style({"ring": {"r": 0, "g": 0, "b": 0}})
        assert isinstance(entry, FlatStateStyles)
        assert isinstance(classify_state_style({"ring": {"$token": "color.focus"}}), FlatStateStyles)

    def test_untagged_per_axis(self):
        entry = classify_state_style({"intent": {"primary": {"backgroundColor": {"$token": "color.primary"}}}})
        assert entry == VariantStateStyles({"intent": {"primary": {"backgroundColor": TokenRef("color.primary")}}})

    def test_axis_name_starting_with_style_property_is_per_axis(self):
        """Only exact style property names mark an entry flat."""
        raw = {
            "colorScheme": {
                "dark": {"backgroundColor": "#000"},
                "light": {"backgroundColor": "#fff"},
            },
        }
        assert classify_state_style(raw) == VariantStateStyles(raw)

    def test_prefixed_axis_resolves_per_value(self):
        node = node_from_dict({
            "name": "Root",
            "stateStyles": {
                "hover": {
                    "colorScheme": {"dark": {"backgroundColor": "#000"}, "light": {"backgroundColor": "#fff"}},
                    "fontScale": {"lg": {"fontWeight": 700}},
                },
            },
        })
        assert resolve_state_styles(node, "hover", {"colorScheme": "dark"}) == {"backgroundColor": "#000"}
        assert resolve_state_styles(node, "hover", {"colorScheme": "light", "fontScale": "lg"}) == {
            "backgroundColor": "#fff",
            "fontWeight": 700,
        }

    def test_axis_named_like_style_property_is_flat(self):
        entry = classify_state_style({"color": {"red": {"opacity": 1}}})
        assert isinstance(entry, FlatStateStyles)


class TestLegacyFiles:
    """Reading component files as they are laid out on disk."""

    def test_component_file(self):
        raw = {
            "componentName": "Chip",
            "elementType": "span",
            "styles": {"padding": {"$token": "space.sm"}},
            "stateStyles": {"hover": {"opacity": 0.8}},
            "componentVariants": {"axes": [{"name": "tone", "values": ["a", "b"], "default": "a"}]},
            "props": {"label": {"type": "string", "required": True}, "tone": {"type": {"enum": ["a", "b"]}}},
            "slots": [{"name": "default", "multiple": False}],
            "children": [{"name": "Text", "textContent": {"$prop": "label"}}],
        }
        chip = component_from_dict(raw)
        assert chip.name == "Chip"
        assert chip.root.name == "Chip"
        assert chip.root.element_type == "span"
        assert chip.root.state_styles["hover"] == FlatStateStyles({"opacity": 0.8})
        assert chip.default_variants() == {"tone": "a"}
        assert chip.props["label"].required
        assert chip.props["tone"].type.values == ("a", "b")
        assert not chip.slots[0].multiple
        assert chip.root.children[0].text_content == PropRef("label")

    def test_instance_node(self):
        raw = {
            "name": "Save",
            "type": "COMPONENT_INSTANCE",
            "$component": {"ref": "./button/button.coral.json"},
            "propBindings": {"label": "Save"},
            "slotBindings": {"default": "Save", "icon": {"$slot": "icon"}, "extra": [{"name": "A"}]},
            "variantOverrides": {"size": "sm"},
        }
        node = node_from_dict(raw)
        assert node.is_component_instance
        assert node.slot_bindings["icon"] == SlotForward("icon")
        assert node.slot_bindings["extra"][0].name == "A"
        assert node_to_dict(node)["$component"] == {"ref": "./button/button.coral.json"}

    def test_extends_as_string(self):
        assert package_from_dict({"name": "app", "extends": "@acme/base"}).extends == ["@acme/base"]


class TestFormatErrors:
    """Malformed input raises PackageFormatError."""

    def test_missing_package_name(self):
        with pytest.raises(PackageFormatError):
            package_from_dict({"components": {}})

    def test_not_a_mapping(self):
        with pytest.raises(PackageFormatError):
            package_from_dict(["not", "a", "package"])

    def test_instance_without_ref(self):
        with pytest.raises(PackageFormatError):
            node_from_dict({"name": "X", "type": "COMPONENT_INSTANCE", "$component": {}})

    def test_invalid_json(self):
        with pytest.raises(PackageFormatError):
            package_from_json("{not json")

    def test_invalid_yaml(self):
        with pytest.raises(PackageFormatError):
            package_from_yaml("name: [unclosed")
