"""
Serialization helpers for Coral packages (Package, ComponentDef, Node, references).

Converts between the ``$``-keyed JSON/YAML file format and the typed model.
This is the ONLY module that looks at ``$`` keys: everything downstream
works with Reference / Condition objects.

Legacy state styles carry no tag saying whether they are flat or keyed by
variant axis. ``classify_state_style`` guesses once, on import; the writer
always emits the tagged form (``{"$styles": ...}`` or ``{"$variants": ...}``).
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

import yaml

from coral.model import (
    ArrayType,
    ComponentDef,
    ComponentRef,
    CompoundVariantStyle,
    ConditionalStyle,
    EnumType,
    EventDef,
    FlatStateStyles,
    Node,
    ObjectType,
    Package,
    PackageError,
    PropDef,
    SlotDef,
    StateStyleEntry,
    UnionType,
    VariantAxis,
    VariantStateStyles,
)
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
    SlotForward,
    TokenRef,
    TransformKind,
)
from coral.resolver import UNRESOLVED

logger = logging.getLogger(__name__)


class PackageFormatError(PackageError):
    """Raised when raw package data does not have the expected shape."""
    pass


def _require_mapping(d: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(d, Mapping):
        raise PackageFormatError(f"{what} must be a mapping, got {type(d).__name__}")
    return d


def _enum(enum_cls, raw: Any, what: str):
    try:
        return enum_cls(raw)
    except ValueError:
        raise PackageFormatError(f"Unknown {what}: {raw!r}") from None


def _compact(d: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None or an empty container."""
    return {k: v for k, v in d.items() if v is not None and v != {} and v != []}


# =============================================================================
# References and conditions
# =============================================================================

_CONDITION_KEYS = ("$not", "$and", "$or", "$eq", "$ne")


def reference_from_value(value: Any) -> Any:
    """
    Convert ``$``-keyed mappings anywhere inside ``value`` into references.

    Examples:
        reference_from_value({"$token": "color.primary"})   # TokenRef("color.primary")
        reference_from_value({"padding": {"$prop": "gap"}}) # {"padding": PropRef("gap")}
    """
    if isinstance(value, list):
        return [reference_from_value(v) for v in value]
    if not isinstance(value, Mapping):
        return value

    if "$token" in value:
        return TokenRef(path=value["$token"], fallback=value.get("$fallback"))
    if "$prop" in value and "$transform" in value:
        return PropTransform(name=value["$prop"], kind=_enum(TransformKind, value["$transform"], "transform"))
    if "$prop" in value:
        return PropRef(value["$prop"])
    if "$computed" in value:
        return ComputedValue(
            kind=_enum(ComputedKind, value["$computed"], "computed kind"),
            inputs=tuple(reference_from_value(v) for v in value.get("$inputs", [])),
        )
    if "$event" in value:
        return EventRef(
            name=value["$event"],
            extract_path=value.get("$extract"),
            extra_args=tuple(value.get("$args", [])),
        )
    if "$handler" in value:
        return InlineHandler(
            kind=_enum(HandlerKind, value["$handler"], "handler"),
            target=value.get("$target"),
            value=value.get("$value"),
        )
    if "$asset" in value:
        return AssetRef(value["$asset"])
    if "$external" in value:
        external = _require_mapping(value["$external"], "$external")
        return ExternalRef(package=external["package"], path=external.get("path", ""))
    if "$slot" in value:
        return SlotForward(value["$slot"])
    if any(key in value for key in _CONDITION_KEYS):
        return condition_from_dict(value)

    return {k: reference_from_value(v) for k, v in value.items()}


def reference_to_value(value: Any) -> Any:
    """Inverse of ``reference_from_value``; also turns tuples into lists."""
    if value is UNRESOLVED:
        return None
    if isinstance(value, TokenRef):
        return _compact({"$token": value.path, "$fallback": value.fallback})
    if isinstance(value, PropRef):
        return {"$prop": value.name}
    if isinstance(value, PropTransform):
        return {"$prop": value.name, "$transform": value.kind.value}
    if isinstance(value, ComputedValue):
        return {"$computed": value.kind.value, "$inputs": [reference_to_value(v) for v in value.inputs]}
    if isinstance(value, EventRef):
        return _compact({"$event": value.name, "$extract": value.extract_path, "$args": list(value.extra_args)})
    if isinstance(value, InlineHandler):
        return _compact({"$handler": value.kind.value, "$target": value.target, "$value": value.value})
    if isinstance(value, AssetRef):
        return {"$asset": value.path}
    if isinstance(value, ExternalRef):
        return {"$external": {"package": value.package, "path": value.path}}
    if isinstance(value, SlotForward):
        return {"$slot": value.name}
    if isinstance(value, (NotCondition, LogicalCondition, ComparisonCondition)):
        return condition_to_dict(value)
    if isinstance(value, Node):
        return node_to_dict(value)
    if isinstance(value, Mapping):
        return {k: reference_to_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [reference_to_value(v) for v in value]
    return value


def condition_from_dict(d: Any) -> Any:
    d = _require_mapping(d, "Condition")
    if "$prop" in d:
        return PropRef(d["$prop"])
    if "$not" in d:
        return NotCondition(condition_from_dict(d["$not"]))
    for key, operator in (("$and", LogicalOperator.AND), ("$or", LogicalOperator.OR)):
        if key in d:
            return LogicalCondition(operator=operator, operands=tuple(condition_from_dict(c) for c in d[key]))
    for key, operator in (("$eq", ComparisonOperator.EQUALS), ("$ne", ComparisonOperator.NOT_EQUALS)):
        if key in d:
            left, right = (list(d[key]) + [None, None])[:2]
            return ComparisonCondition(operator=operator, left=condition_from_dict(left), right=right)
    raise PackageFormatError(f"Unsupported condition: {dict(d)!r}")


def condition_to_dict(condition: Any) -> Dict[str, Any]:
    if isinstance(condition, PropRef):
        return {"$prop": condition.name}
    if isinstance(condition, NotCondition):
        return {"$not": condition_to_dict(condition.operand)}
    if isinstance(condition, LogicalCondition):
        return {f"${condition.operator.value}": [condition_to_dict(c) for c in condition.operands]}
    if isinstance(condition, ComparisonCondition):
        return {f"${condition.operator.value}": [condition_to_dict(condition.left), condition.right]}
    raise TypeError(f"Unsupported Condition type: {type(condition)}")


# =============================================================================
# State styles (import shim)
# =============================================================================

# Style property names that mark a legacy state entry as flat.
STYLE_PROPERTY_NAMES = (
    "color",
    "background",
    "backgroundColor",
    "border",
    "borderColor",
    "borderRadius",
    "boxShadow",
    "padding",
    "margin",
    "display",
    "position",
    "width",
    "height",
    "font",
    "fontSize",
    "fontWeight",
    "opacity",
    "outline",
    "textDecoration",
    "transform",
    "transition",
    "cursor",
)


def _is_style_leaf(value: Any) -> bool:
    """Colors ({hex} or {r, g, b}), dimensions and token refs are values, not axes."""
    if not isinstance(value, Mapping):
        return True
    if "hex" in value or all(channel in value for channel in ("r", "g", "b")):
        return True
    if "value" in value and "unit" in value:
        return True
    return any(key.startswith("$") for key in value)


def classify_state_style(raw: Mapping[str, Any]) -> StateStyleEntry:
    """
    Guess the shape of an untagged legacy state entry.

    Flat when any key is a known style property name, or
    when any value is a style leaf. Per-axis only when every value is a
    mapping of axis values to style mappings.

    NOTE: a per-axis entry whose axis happens to be named like a style
    property (an axis called "color") is classified as flat. Tag such
    entries with ``$variants``.
    """
    keys = list(raw)
    looks_flat = (
        not keys
        or any(key in STYLE_PROPERTY_NAMES for key in keys)
        or any(_is_style_leaf(value) for value in raw.values())
        or not all(
            isinstance(styles, Mapping) and not _is_style_leaf(styles)
            for axis_values in raw.values()
            for styles in axis_values.values()
        )
    )
    if looks_flat:
        logger.debug("Classified state styles %s as flat", keys)
        return FlatStateStyles(styles=reference_from_value(dict(raw)))
    logger.debug("Classified state styles %s as per-axis", keys)
    return VariantStateStyles(axes=reference_from_value(dict(raw)))


def state_style_from_dict(raw: Any) -> StateStyleEntry:
    raw = _require_mapping(raw, "State styles")
    if "$styles" in raw:
        return FlatStateStyles(styles=reference_from_value(dict(raw["$styles"])))
    if "$variants" in raw:
        return VariantStateStyles(axes=reference_from_value(dict(raw["$variants"])))
    return classify_state_style(raw)


def state_style_to_dict(entry: StateStyleEntry) -> Dict[str, Any]:
    if isinstance(entry, FlatStateStyles):
        return {"$styles": reference_to_value(entry.styles)}
    if isinstance(entry, VariantStateStyles):
        return {"$variants": reference_to_value(entry.axes)}
    raise TypeError(f"Unsupported state style entry: {type(entry)}")


# =============================================================================
# Nodes
# =============================================================================


def _slot_binding_from_value(value: Any) -> Any:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return [node_from_dict(item) for item in value]
    value = _require_mapping(value, "Slot binding")
    if "$prop" in value:
        return PropRef(value["$prop"])
    if "$slot" in value:
        return SlotForward(value["$slot"])
    return node_from_dict(value)


def node_from_dict(d: Any) -> Node:
    d = _require_mapping(d, "Node")
    if "name" not in d:
        raise PackageFormatError("Node is missing 'name'")

    component = None
    if d.get("type") == "COMPONENT_INSTANCE" or "$component" in d:
        ref = _require_mapping(d.get("$component"), f"$component of {d['name']}")
        if "ref" not in ref:
            raise PackageFormatError(f"Instance {d['name']!r} has no component ref")
        component = ComponentRef(ref=ref["ref"], version=ref.get("version"))

    conditional = d.get("conditional")
    return Node(
        name=d["name"],
        element_type=d.get("elementType", "div"),
        text_content=reference_from_value(d.get("textContent")),
        element_attributes=reference_from_value(dict(d.get("elementAttributes") or {})),
        styles=reference_from_value(dict(d.get("styles") or {})),
        variant_styles=reference_from_value(dict(d.get("variantStyles") or {})),
        compound_variant_styles=[
            CompoundVariantStyle(
                conditions=dict(c.get("conditions", {})),
                styles=reference_from_value(dict(c.get("styles", {}))),
                description=c.get("description"),
            )
            for c in d.get("compoundVariantStyles") or []
        ],
        state_styles={name: state_style_from_dict(raw) for name, raw in (d.get("stateStyles") or {}).items()},
        conditional=condition_from_dict(conditional) if conditional is not None else None,
        conditional_styles=[
            ConditionalStyle(
                condition=condition_from_dict(c["condition"]),
                styles=reference_from_value(dict(c.get("styles", {}))),
            )
            for c in d.get("conditionalStyles") or []
        ],
        children=[node_from_dict(c) for c in d.get("children") or []],
        slot_target=d.get("slotTarget"),
        slot_fallback=[node_from_dict(c) for c in d.get("slotFallback") or []],
        component=component,
        prop_bindings=reference_from_value(dict(d.get("propBindings") or {})),
        slot_bindings={k: _slot_binding_from_value(v) for k, v in (d.get("slotBindings") or {}).items()},
        event_bindings=reference_from_value(dict(d.get("eventBindings") or {})),
        variant_overrides=dict(d.get("variantOverrides") or {}),
        style_overrides=reference_from_value(dict(d.get("styleOverrides") or {})),
    )


def node_to_dict(n: Node) -> Dict[str, Any]:
    d = {
        "name": n.name,
        "elementType": n.element_type,
        "textContent": reference_to_value(n.text_content),
        "elementAttributes": reference_to_value(n.element_attributes),
        "styles": reference_to_value(n.styles),
        "variantStyles": reference_to_value(n.variant_styles),
        "compoundVariantStyles": [
            _compact({"conditions": c.conditions, "styles": reference_to_value(c.styles), "description": c.description})
            for c in n.compound_variant_styles
        ],
        "stateStyles": {name: state_style_to_dict(entry) for name, entry in n.state_styles.items()},
        "conditional": condition_to_dict(n.conditional) if n.conditional is not None else None,
        "conditionalStyles": [
            {"condition": condition_to_dict(c.condition), "styles": reference_to_value(c.styles)}
            for c in n.conditional_styles
        ],
        "children": [node_to_dict(c) for c in n.children],
        "slotTarget": n.slot_target,
        "slotFallback": [node_to_dict(c) for c in n.slot_fallback],
    }
    if n.component is not None:
        d.update({
            "type": "COMPONENT_INSTANCE",
            "$component": _compact({"ref": n.component.ref, "version": n.component.version}),
            "propBindings": reference_to_value(n.prop_bindings),
            "slotBindings": reference_to_value(n.slot_bindings),
            "eventBindings": reference_to_value(n.event_bindings),
            "variantOverrides": dict(n.variant_overrides),
            "styleOverrides": reference_to_value(n.style_overrides),
        })
    return _compact(d)


# =============================================================================
# Components
# =============================================================================


def prop_type_from_value(raw: Any) -> Any:
    if isinstance(raw, str):
        return raw
    raw = _require_mapping(raw, "Prop type")
    if "enum" in raw:
        return EnumType(values=tuple(raw["enum"]))
    if "array" in raw:
        return ArrayType(item=prop_type_from_value(raw["array"]))
    if "object" in raw:
        return ObjectType(shape=tuple((k, prop_type_from_value(v)) for k, v in raw["object"].items()))
    if "union" in raw:
        return UnionType(members=tuple(prop_type_from_value(m) for m in raw["union"]))
    raise PackageFormatError(f"Unsupported prop type: {dict(raw)!r}")


def prop_type_to_value(prop_type: Any) -> Any:
    if isinstance(prop_type, str):
        return prop_type
    if isinstance(prop_type, EnumType):
        return {"enum": list(prop_type.values)}
    if isinstance(prop_type, ArrayType):
        return {"array": prop_type_to_value(prop_type.item)}
    if isinstance(prop_type, ObjectType):
        return {"object": {k: prop_type_to_value(v) for k, v in prop_type.shape}}
    if isinstance(prop_type, UnionType):
        return {"union": [prop_type_to_value(m) for m in prop_type.members]}
    raise TypeError(f"Unsupported prop type: {type(prop_type)}")


def prop_def_from_dict(d: Mapping[str, Any]) -> PropDef:
    return PropDef(
        type=prop_type_from_value(d.get("type", "any")),
        default=d.get("default"),
        required=bool(d.get("required", False)),
        description=d.get("description"),
        deprecated=d.get("deprecated"),
    )


def prop_def_to_dict(p: PropDef) -> Dict[str, Any]:
    return _compact({
        "type": prop_type_to_value(p.type),
        "default": p.default,
        "required": p.required or None,
        "description": p.description,
        "deprecated": p.deprecated,
    })


def slot_def_from_dict(d: Mapping[str, Any]) -> SlotDef:
    return SlotDef(
        name=d["name"],
        required=bool(d.get("required", False)),
        multiple=bool(d.get("multiple", True)),
        description=d.get("description"),
        allowed_elements=list(d.get("allowedElements", [])),
    )


def slot_def_to_dict(s: SlotDef) -> Dict[str, Any]:
    return _compact({
        "name": s.name,
        "required": s.required or None,
        "multiple": None if s.multiple else False,
        "description": s.description,
        "allowedElements": s.allowed_elements,
    })


def axis_from_dict(d: Mapping[str, Any]) -> VariantAxis:
    return VariantAxis(
        name=d["name"],
        values=list(d.get("values", [])),
        default=d.get("default", ""),
        description=d.get("description"),
    )


def axis_to_dict(a: VariantAxis) -> Dict[str, Any]:
    return _compact({"name": a.name, "values": a.values, "default": a.default, "description": a.description})


def component_from_dict(d: Any, name: Optional[str] = None) -> ComponentDef:
    """
    Build a component from its file representation.

    The root node's fields sit at the top level next to ``props``,
    ``slots``, ``events`` and ``componentVariants``.
    """
    d = _require_mapping(d, "Component")
    component_name = name or d.get("componentName") or d.get("name")
    if not component_name:
        raise PackageFormatError("Component has no name")
    variants = d.get("componentVariants") or {}
    return ComponentDef(
        name=component_name,
        root=node_from_dict({"name": component_name, **d}),
        axes=[axis_from_dict(a) for a in variants.get("axes", [])],
        props={k: prop_def_from_dict(v) for k, v in (d.get("props") or {}).items()},
        slots=[slot_def_from_dict(s) for s in d.get("slots") or []],
        events={
            k: EventDef(description=v.get("description"), deprecated=v.get("deprecated"))
            for k, v in (d.get("events") or {}).items()
        },
        component_properties=dict(d.get("componentProperties") or {}),
        description=d.get("description"),
        deprecated=d.get("deprecated"),
    )


def component_to_dict(c: ComponentDef) -> Dict[str, Any]:
    d = node_to_dict(c.root)
    d.update(_compact({
        "componentName": c.name,
        "componentVariants": {"axes": [axis_to_dict(a) for a in c.axes]} if c.axes else None,
        "props": {k: prop_def_to_dict(p) for k, p in c.props.items()},
        "slots": [slot_def_to_dict(s) for s in c.slots],
        "events": {k: _compact({"description": e.description, "deprecated": e.deprecated}) for k, e in c.events.items()},
        "componentProperties": c.component_properties,
        "description": c.description,
        "deprecated": c.deprecated,
    }))
    return d


# =============================================================================
# Packages
# =============================================================================


def package_from_dict(d: Any) -> Package:
    d = _require_mapping(d, "Package")
    if not d.get("name"):
        raise PackageFormatError("Package is missing 'name'")
    components = _require_mapping(d.get("components") or {}, "components")
    tokens = _require_mapping(d.get("tokens") or {}, "tokens")
    extends = d.get("extends") or []
    if isinstance(extends, str):
        extends = [extends]
    return Package(
        name=d["name"],
        version=d.get("version", "0.0.0"),
        components={name: component_from_dict(c, name) for name, c in components.items()},
        tokens=dict(tokens),
        extends=list(extends),
        description=d.get("description"),
    )


def package_to_dict(p: Package) -> Dict[str, Any]:
    return _compact({
        "name": p.name,
        "version": p.version,
        "description": p.description,
        "extends": list(p.extends),
        "components": {name: component_to_dict(c) for name, c in p.components.items()},
        "tokens": p.tokens,
    })


def package_to_json(p: Package) -> str:
    return json.dumps(package_to_dict(p), sort_keys=True)


def package_from_json(s: str) -> Package:
    try:
        d = json.loads(s)
    except json.JSONDecodeError as exc:
        raise PackageFormatError(f"Invalid JSON: {exc}") from exc
    return package_from_dict(d)


def package_to_yaml(p: Package) -> str:
    return yaml.safe_dump(package_to_dict(p))


def package_from_yaml(s: str) -> Package:
    try:
        d = yaml.safe_load(s)
    except yaml.YAMLError as exc:
        raise PackageFormatError(f"Invalid YAML: {exc}") from exc
    return package_from_dict(d)


def node_to_yaml(n: Node) -> str:
    return yaml.safe_dump(node_to_dict(n), sort_keys=False)
