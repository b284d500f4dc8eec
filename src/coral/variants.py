"""
Variant & State Style Resolver.

Computes the effective styles of a node for a variant selection
(e.g. ``{"intent": "primary", "size": "lg"}``) and optional interaction state.

Merge order for ``resolve_node_styles``:
    1. unconditional styles
    2. per-axis overrides, in the iteration order of the variant context
       (later axes win on key collisions)
    3. matching compound rules, in declaration order (always last)

Everything here is a pure function of its arguments: the same node and
context always produce equal results.
"""
from __future__ import annotations

from itertools import product
from typing import Any, Dict, List, Mapping, Optional, Sequence

from coral.model import ComponentDef, FlatStateStyles, Node, VariantAxis, VariantStateStyles
from coral.resolver import evaluate_condition

VariantContext = Dict[str, str]

INTERACTION_STATES = ("hover", "focus", "active", "disabled", "focusVisible", "focusWithin")


def _merge_axis_styles(
    resolved: Dict[str, Any],
    axis_styles: Mapping[str, Mapping[str, Mapping[str, Any]]],
    active_variants: Mapping[str, str],
) -> Dict[str, Any]:
    for axis_name, axis_value in active_variants.items():
        overrides = axis_styles.get(axis_name, {}).get(axis_value)
        if overrides:
            resolved.update(overrides)
    return resolved


def resolve_node_styles(node: Node, active_variants: Mapping[str, str]) -> Dict[str, Any]:
    """
    Resolve the styles of one node for the active variants.

    Example:
        node = Node(
            name="Root",
            styles={"backgroundColor": "#ffffff"},
            variant_styles={"intent": {"primary": {"backgroundColor": "#007bff"}}},
        )
        resolve_node_styles(node, {"intent": "primary"})
        # {"backgroundColor": "#007bff"}
    """
    resolved = dict(node.styles)
    _merge_axis_styles(resolved, node.variant_styles, active_variants)
    for compound in node.compound_variant_styles:
        if compound.matches(active_variants):
            resolved.update(compound.styles)
    return resolved


def resolve_state_styles(
    node: Node,
    state_name: str,
    active_variants: Mapping[str, str],
) -> Optional[Dict[str, Any]]:
    """
    Resolve the styles of an interaction state.

    Flat entries apply as they are. Per-axis entries are merged in the
    order of the variant context, like ``resolve_node_styles``.

    Returns:
        The state's styles, or None if the node declares nothing for the
        state (or nothing matches the active variants)
    """
    entry = node.state_styles.get(state_name)
    if entry is None:
        return None
    if isinstance(entry, FlatStateStyles):
        return dict(entry.styles) if entry.styles else None
    if isinstance(entry, VariantStateStyles):
        resolved = _merge_axis_styles({}, entry.axes, active_variants)
        return resolved or None
    raise TypeError(f"Unsupported state style entry: {type(entry)}")


def resolve_conditional_styles(node: Node, styles: Mapping[str, Any], props: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge the node's conditional styles whose condition holds, in order."""
    resolved = dict(styles)
    for rule in node.conditional_styles:
        if evaluate_condition(rule.condition, props):
            resolved.update(rule.styles)
    return resolved


def get_all_node_styles(node: Node, active_variants: Mapping[str, str]) -> Dict[str, Optional[Dict[str, Any]]]:
    """Base styles plus every interaction state the node declares."""
    result: Dict[str, Optional[Dict[str, Any]]] = {"base": resolve_node_styles(node, active_variants)}
    for state_name in list(INTERACTION_STATES) + [s for s in node.state_styles if s not in INTERACTION_STATES]:
        if state_name in node.state_styles:
            result[state_name] = resolve_state_styles(node, state_name, active_variants)
    return result


def resolve_tree_styles(node: Node, active_variants: Mapping[str, str]) -> Dict[str, Dict[str, Any]]:
    """
    Node name -> resolved styles for a whole tree (children and slot fallbacks).

    Nodes sharing a name overwrite each other; the last visited wins.
    """
    result: Dict[str, Dict[str, Any]] = {}

    def walk(current: Node) -> None:
        result[current.name] = resolve_node_styles(current, active_variants)
        for child in current.children:
            walk(child)
        for fallback in current.slot_fallback:
            walk(fallback)

    walk(node)
    return result


# =============================================================================
# Variant contexts
# =============================================================================


def get_default_variant_values(axes: Sequence[VariantAxis]) -> VariantContext:
    return {axis.name: axis.default for axis in axes}


def variant_context_for(component: ComponentDef, props: Mapping[str, Any]) -> VariantContext:
    """
    Variant selection implied by resolved props.

    Each axis takes the prop of the same name when it is a declared value,
    and the axis default otherwise.
    """
    context: VariantContext = {}
    for axis in component.axes:
        value = props.get(axis.name)
        context[axis.name] = value if isinstance(value, str) and value in axis.values else axis.default
    return context


def validate_variant_values(values: Mapping[str, str], axes: Sequence[VariantAxis]) -> List[str]:
    """Messages for unknown axes or values outside an axis; empty when valid."""
    errors = []
    by_name = {axis.name: axis for axis in axes}
    for name, value in values.items():
        axis = by_name.get(name)
        if axis is None:
            errors.append(f'Unknown variant axis: "{name}"')
        elif value not in axis.values:
            errors.append(f'Invalid value "{value}" for axis "{name}". Expected one of: {", ".join(axis.values)}')
    return errors


def get_variant_combinations(axes: Sequence[VariantAxis]) -> List[VariantContext]:
    """Every combination of axis values, first axis varying slowest."""
    names = [axis.name for axis in axes]
    return [dict(zip(names, combo)) for combo in product(*(axis.values for axis in axes))]


# =============================================================================
# Reporting helpers for emitters
# =============================================================================


def generate_variant_style_map(node: Node, axes: Sequence[VariantAxis]) -> Dict[str, Dict[str, Any]]:
    """
    Style bundle of every (axis, value) pair, keyed "axis-value".

    Example:
        {"intent-primary": {...}, "intent-secondary": {...}, "size-sm": {...}}
    """
    result: Dict[str, Dict[str, Any]] = {}
    for axis in axes:
        axis_styles = node.variant_styles.get(axis.name)
        if not axis_styles:
            continue
        for value in axis.values:
            styles = axis_styles.get(value)
            if styles:
                result[f"{axis.name}-{value}"] = dict(styles)
    return result


def variants_to_class_name(variants: Mapping[str, str], prefix: str = "") -> str:
    """{"intent": "primary", "size": "sm"} -> "intent-primary size-sm" """
    if prefix:
        return " ".join(f"{prefix}-{axis}-{value}" for axis, value in variants.items())
    return " ".join(f"{axis}-{value}" for axis, value in variants.items())
