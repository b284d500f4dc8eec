"""
Package Validator — reference and prop-binding diagnostics.

Two passes, both read-only:
    - validate_package: every token / prop / component reference resolves,
      variant axis defaults are legal, no composition cycles, no unused props
    - validate_props: every component instance binds what its target needs,
      with values of the right type

IMPORTANT: Invalidity is returned as data (``ValidationResult``). Nothing
here raises for a problem in the package; warnings never make a result
invalid.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, List, Mapping, Optional, Set, Tuple

from coral.composition import find_component_instances
from coral.diagnostics import DiagnosticKind, ValidationResult, error, warning
from coral.graph import build_dependency_graph, find_circular_dependencies
from coral.model import ArrayType, ComponentDef, EnumType, FlatStateStyles, Node, ObjectType, Package, PropDef, UnionType, VariantStateStyles
from coral.packages import extract_component_name
from coral.references import (
    ComparisonCondition,
    ComputedValue,
    LogicalCondition,
    NotCondition,
    PropRef,
    PropTransform,
    Reference,
    TokenRef,
)
from coral.resolver import TokenTable, collect_prop_references


# =============================================================================
# Reference walking
# =============================================================================


def _references_with_paths(value: Any, path: str) -> Iterator[Tuple[Reference, str]]:
    """Like ``iter_references`` but also yields where each reference sits."""
    if isinstance(value, Reference):
        yield value, path
        if isinstance(value, ComputedValue):
            for i, item in enumerate(value.inputs):
                yield from _references_with_paths(item, f"{path}/inputs[{i}]")
    elif isinstance(value, NotCondition):
        yield from _references_with_paths(value.operand, f"{path}/not")
    elif isinstance(value, LogicalCondition):
        for i, operand in enumerate(value.operands):
            yield from _references_with_paths(operand, f"{path}/{value.operator.value}[{i}]")
    elif isinstance(value, ComparisonCondition):
        yield from _references_with_paths(value.left, f"{path}/{value.operator.value}[0]")
    elif isinstance(value, Mapping):
        for key, item in value.items():
            yield from _references_with_paths(item, f"{path}/{key}")
    elif isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            yield from _references_with_paths(item, f"{path}[{i}]")


@dataclass
class _ComponentScope:
    """What the references of one component tree are checked against."""

    name: str
    defined_props: Set[str]
    known_tokens: TokenTable
    known_components: Set[str]
    result: ValidationResult


def _check_value(value: Any, path: str, scope: _ComponentScope, in_condition: bool = False) -> None:
    for ref, ref_path in _references_with_paths(value, path):
        if isinstance(ref, TokenRef):
            if ref.path not in scope.known_tokens:
                scope.result.add(error(
                    DiagnosticKind.MISSING_TOKEN, ref_path,
                    f'Token "{ref.path}" not found', reference=ref.path,
                ))
        elif isinstance(ref, (PropRef, PropTransform)):
            if ref.name not in scope.defined_props:
                where = "used in conditional is not defined" if in_condition else "is not defined on this component"
                scope.result.add(error(
                    DiagnosticKind.MISSING_PROP, ref_path,
                    f'Prop "{ref.name}" {where}', reference=ref.name,
                ))


def _validate_node(node: Node, scope: _ComponentScope) -> None:
    node_path = f"{scope.name}/{node.name or node.element_type}"

    _check_value(node.styles, f"{node_path}/styles", scope)
    _check_value(node.variant_styles, f"{node_path}/variantStyles", scope)
    for i, compound in enumerate(node.compound_variant_styles):
        _check_value(compound.styles, f"{node_path}/compoundVariantStyles[{i}]", scope)
    for state_name, entry in node.state_styles.items():
        if isinstance(entry, FlatStateStyles):
            _check_value(entry.styles, f"{node_path}/stateStyles/{state_name}", scope)
        elif isinstance(entry, VariantStateStyles):
            _check_value(entry.axes, f"{node_path}/stateStyles/{state_name}", scope)

    if node.conditional is not None:
        _check_value(node.conditional, f"{node_path}/conditional", scope, in_condition=True)
    for i, rule in enumerate(node.conditional_styles):
        _check_value(rule.condition, f"{node_path}/conditionalStyles[{i}]/condition", scope, in_condition=True)
        _check_value(rule.styles, f"{node_path}/conditionalStyles[{i}]/styles", scope)

    _check_value(node.text_content, f"{node_path}/textContent", scope)
    _check_value(node.element_attributes, f"{node_path}/elementAttributes", scope)

    if node.is_component_instance:
        ref = node.component.ref
        ref_name = extract_component_name(ref)
        if ref_name not in scope.known_components:
            scope.result.add(error(
                DiagnosticKind.MISSING_COMPONENT, node_path,
                f'Component "{ref_name}" not found', reference=ref,
            ))
        _check_value(node.prop_bindings, f"{node_path}/propBindings", scope)
        _check_value(node.style_overrides, f"{node_path}/styleOverrides", scope)
        for slot_name, binding in node.slot_bindings.items():
            bound = binding if isinstance(binding, (list, tuple)) else [binding]
            for item in bound:
                if isinstance(item, Node):
                    _validate_node(item, scope)
                else:
                    _check_value(item, f"{node_path}/slotBindings/{slot_name}", scope)

    for child in node.children:
        _validate_node(child, scope)
    for fallback in node.slot_fallback:
        _validate_node(fallback, scope)


def _defined_props(component: ComponentDef) -> Set[str]:
    return set(component.props) | set(component.component_properties) | {axis.name for axis in component.axes}


def validate_package(package: Package) -> ValidationResult:
    """
    Validate every reference in a package.

    Checks:
        1. Token references exist in the token table
        2. Prop references name a declared prop, a legacy component
           property or one of the component's variant axes
        3. Instances target components that exist
        4. Every variant axis default is one of the axis values
        5. No composition cycles
        6. (warning) Every declared prop is referenced somewhere

    Example:
        result = validate_package(pkg)
        if not result.valid:
            for diagnostic in result.errors:
                print(f"{diagnostic.kind.value}: {diagnostic.message}")
    """
    result = ValidationResult()
    known_tokens = TokenTable.from_tokens(package.tokens)
    known_components = set(package.components)

    for name, component in package.components.items():
        # =====================================================================
        # 1. VARIANT AXES
        # =====================================================================
        for axis in component.axes:
            if axis.default not in axis.values:
                result.add(error(
                    DiagnosticKind.INVALID_VARIANT, f"{name}/variants/{axis.name}",
                    f'Default value "{axis.default}" is not in values: {", ".join(axis.values)}',
                    reference=axis.default,
                ))

        # =====================================================================
        # 2. NODE TREE
        # =====================================================================
        scope = _ComponentScope(
            name=name,
            defined_props=_defined_props(component),
            known_tokens=known_tokens,
            known_components=known_components,
            result=result,
        )
        _validate_node(component.root, scope)

        # =====================================================================
        # 3. UNUSED PROPS
        # =====================================================================
        for prop_name in find_unused_props(component):
            result.add(warning(
                DiagnosticKind.UNUSED_PROP, f"{name}/props/{prop_name}",
                f'Prop "{prop_name}" is declared but never used', reference=prop_name,
            ))

    # =========================================================================
    # 4. CYCLES
    # =========================================================================
    for cycle in find_circular_dependencies(build_dependency_graph(package)):
        chain = " -> ".join(cycle)
        result.add(error(
            DiagnosticKind.CIRCULAR_REF, chain,
            f"Circular dependency: {chain}", reference=cycle[0],
        ))

    return result


def find_unused_props(component: ComponentDef) -> List[str]:
    """Declared props that nothing in the component's tree references."""
    used: Set[str] = set()

    def collect(node: Node) -> None:
        for value in (
            node.styles, node.variant_styles, node.text_content, node.element_attributes,
            node.conditional, node.prop_bindings, node.style_overrides,
            [rule.condition for rule in node.conditional_styles],
            [rule.styles for rule in node.conditional_styles],
            [compound.styles for compound in node.compound_variant_styles],
            [entry.styles if isinstance(entry, FlatStateStyles) else entry.axes
             for entry in node.state_styles.values()],
        ):
            used.update(collect_prop_references(value))
        for binding in node.slot_bindings.values():
            bound = binding if isinstance(binding, (list, tuple)) else [binding]
            for item in bound:
                if isinstance(item, Node):
                    collect(item)
                else:
                    used.update(collect_prop_references(item))
        for child in node.children + node.slot_fallback:
            collect(child)

    collect(component.root)
    axis_names = {axis.name for axis in component.axes}
    return [name for name in component.props if name not in used and name not in axis_names]


# =============================================================================
# Prop bindings
# =============================================================================


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _matches_type(value: Any, prop_type: Any) -> bool:
    if isinstance(prop_type, str):
        if prop_type in ("string", "number", "boolean"):
            return _type_name(value) == prop_type
        return True
    if isinstance(prop_type, EnumType):
        return isinstance(value, str)
    if isinstance(prop_type, ArrayType):
        return isinstance(value, (list, tuple))
    if isinstance(prop_type, ObjectType):
        return isinstance(value, Mapping)
    if isinstance(prop_type, UnionType):
        return any(_matches_type(value, member) for member in prop_type.members)
    return True


def _describe_type(prop_type: Any) -> str:
    if isinstance(prop_type, str):
        return prop_type
    if isinstance(prop_type, EnumType):
        return f"one of [{', '.join(prop_type.values)}]"
    if isinstance(prop_type, ArrayType):
        return "array"
    if isinstance(prop_type, ObjectType):
        return "object"
    if isinstance(prop_type, UnionType):
        return " | ".join(_describe_type(member) for member in prop_type.members)
    return str(prop_type)


def _deprecation_message(deprecated: Any, default: str) -> str:
    return deprecated if isinstance(deprecated, str) else default


def _check_prop_binding(
    prop_name: str,
    prop_def: PropDef,
    binding: Any,
    target_name: str,
    path: str,
    result: ValidationResult,
) -> None:
    if prop_def.deprecated:
        result.add(warning(
            DiagnosticKind.DEPRECATED, path,
            _deprecation_message(prop_def.deprecated, f'Prop "{prop_name}" is deprecated'),
            reference=prop_name,
        ))

    if isinstance(binding, Reference):
        return

    if not _matches_type(binding, prop_def.type):
        result.add(error(
            DiagnosticKind.TYPE_MISMATCH, path,
            f'Prop "{prop_name}" of <{target_name}> expected {_describe_type(prop_def.type)}, '
            f"got {_type_name(binding)}",
            reference=prop_name,
        ))
    elif isinstance(prop_def.type, EnumType) and binding not in prop_def.type.values:
        result.add(error(
            DiagnosticKind.INVALID_ENUM, path,
            f'Invalid value "{binding}" for prop "{prop_name}". '
            f"Expected one of: {', '.join(prop_def.type.values)}",
            reference=prop_name,
        ))


def _validate_instance(
    instance: Node,
    path: str,
    target_name: str,
    target: ComponentDef,
    result: ValidationResult,
) -> None:
    if target.deprecated:
        result.add(warning(
            DiagnosticKind.DEPRECATED, path,
            _deprecation_message(target.deprecated, f'Component "{target_name}" is deprecated'),
            reference=target_name,
        ))

    for prop_name, prop_def in target.props.items():
        bound = prop_name in instance.prop_bindings or prop_name in instance.variant_overrides
        if prop_def.required and not bound and prop_def.default is None:
            result.add(error(
                DiagnosticKind.MISSING_REQUIRED, path,
                f'Required prop "{prop_name}" not provided to <{target_name}>',
                reference=prop_name,
            ))
        if prop_name in instance.prop_bindings:
            _check_prop_binding(prop_name, prop_def, instance.prop_bindings[prop_name], target_name, path, result)

    for axis_name, value in instance.variant_overrides.items():
        axis = target.get_axis(axis_name)
        if axis is None:
            result.add(error(
                DiagnosticKind.INVALID_VARIANT, path,
                f'<{target_name}> has no variant axis "{axis_name}"', reference=axis_name,
            ))
        elif value not in axis.values:
            result.add(error(
                DiagnosticKind.INVALID_VARIANT, path,
                f'Invalid value "{value}" for axis "{axis_name}". Expected one of: {", ".join(axis.values)}',
                reference=axis_name,
            ))

    for event_name, event_def in target.events.items():
        if event_def.deprecated and event_name in instance.event_bindings:
            result.add(warning(
                DiagnosticKind.DEPRECATED, path,
                _deprecation_message(event_def.deprecated, f'Event "{event_name}" is deprecated'),
                reference=event_name,
            ))

    for slot in target.slots:
        if slot.required and slot.name not in instance.slot_bindings:
            result.add(error(
                DiagnosticKind.MISSING_REQUIRED, path,
                f'Required slot "{slot.name}" not provided to <{target_name}>',
                reference=slot.name,
            ))


def validate_props(package: Package) -> ValidationResult:
    """
    Validate the bindings of every component instance in a package.

    Errors:
        - target component missing
        - required prop with no binding, no variant override and no default
        - static binding of the wrong type, or outside an enum's values
        - variant override naming an unknown axis or value
        - required slot with no binding

    Warnings:
        - binding a deprecated prop or event, instantiating a deprecated component
    """
    result = ValidationResult()
    for component_name, component in package.components.items():
        for instance, instance_path in find_component_instances(component.root):
            path = f"{component_name}/{instance_path}"
            target_name = extract_component_name(instance.component.ref)
            target: Optional[ComponentDef] = package.get_component(target_name)
            if target is None:
                result.add(error(
                    DiagnosticKind.MISSING_COMPONENT, path,
                    f'Referenced component "{target_name}" not found',
                    reference=instance.component.ref,
                ))
                continue
            _validate_instance(instance, path, target_name, target, result)
    return result
