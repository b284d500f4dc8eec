"""
Composition Resolver — expands component instances into one tree.

A component instance is a node whose ``component`` names another component.
Resolving it means:
    1. looking up the target by its normalized name
    2. computing the target's props (defaults < variant overrides < bindings)
    3. computing the target's slot content from the instance's slot bindings

Flattening applies this recursively until the tree holds no instances.

CYCLES:
    Flattening keeps the stack of components currently being expanded and
    raises ``CircularCompositionError`` when a component re-enters itself.
    Pipelines that accept untrusted packages must still run
    ``coral.graph.find_circular_dependencies`` first and treat any cycle as
    fatal for the package.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from coral.diagnostics import Diagnostic
from coral.model import ComponentDef, CoralError, FlatStateStyles, Node, Package, VariantStateStyles, text_node
from coral.packages import extract_component_name
from coral.references import EventRef, PropRef, Reference, SlotForward
from coral.resolver import ReferenceResolver, evaluate_condition, resolve_all_prop_bindings, resolve_value, to_text
from coral.variants import (
    VariantContext,
    resolve_conditional_styles,
    resolve_node_styles,
    resolve_state_styles,
    variant_context_for,
)

logger = logging.getLogger(__name__)

SlotContent = Dict[str, List[Node]]


class ComponentNotFoundError(CoralError):
    """An instance points at a component the package does not define."""

    def __init__(self, ref: str, component_name: str):
        self.ref = ref
        self.component_name = component_name
        super().__init__(f"Component not found: {ref}")


class CircularCompositionError(CoralError):
    """A component was reached again while it was still being expanded."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__(f"Circular composition: {' -> '.join(self.cycle)}")


@dataclass
class ResolvedInstance:
    """
    Result of resolving one component instance.

    Properties:
        component: The target component definition
        props: Props the target renders with
        slots: Slot name -> content nodes
    """

    component: ComponentDef
    props: Dict[str, Any] = field(default_factory=dict)
    slots: SlotContent = field(default_factory=dict)


def resolve_component_instance(
    instance: Node,
    parent_props: Mapping[str, Any],
    parent_slots: Mapping[str, List[Node]],
    package: Package,
    resolver: Optional[ReferenceResolver] = None,
    diagnostics: Optional[List[Diagnostic]] = None,
) -> ResolvedInstance:
    """
    Resolve a component instance against its target component.

    Props are built lowest to highest precedence:
        1. defaults declared by the target's props
        2. the instance's variant overrides
        3. the instance's prop bindings, resolved against ``parent_props``

    Example:
        resolved = resolve_component_instance(
            Node(name="Save", component=ComponentRef("Button"),
                 prop_bindings={"label": PropRef("saveLabel")}),
            {"saveLabel": "Save"}, {}, pkg,
        )
        resolved.props["label"]  # "Save"

    Raises:
        ComponentNotFoundError: If the target component does not exist
    """
    if instance.component is None:
        raise ValueError(f"Node {instance.name!r} is not a component instance")

    component_name = extract_component_name(instance.component.ref)
    component = package.get_component(component_name)
    if component is None:
        raise ComponentNotFoundError(instance.component.ref, component_name)

    if resolver is None:
        resolver = ReferenceResolver.for_package(package)

    props: Dict[str, Any] = {
        prop_name: prop_def.default
        for prop_name, prop_def in component.props.items()
        if prop_def.default is not None
    }
    props.update(instance.variant_overrides)
    props.update(resolve_all_prop_bindings(instance.prop_bindings, resolver, parent_props, diagnostics))

    slots: SlotContent = {
        slot_name: resolve_slot_binding(binding, parent_props, parent_slots)
        for slot_name, binding in instance.slot_bindings.items()
    }

    return ResolvedInstance(component=component, props=props, slots=slots)


def resolve_slot_binding(
    binding: Any,
    parent_props: Mapping[str, Any],
    parent_slots: Mapping[str, List[Node]],
) -> List[Node]:
    """
    Turn one slot binding into content nodes.

        "Click me"            -> [Text("Click me")]
        PropRef("label")      -> [Text(str(parent_props["label"]))]
        SlotForward("icon")   -> parent_slots["icon"] (empty if absent)
        Node / [Node, ...]    -> passed through
    """
    if isinstance(binding, str):
        return [text_node(binding)]
    if isinstance(binding, PropRef):
        return [text_node(to_text(parent_props.get(binding.name)))]
    if isinstance(binding, SlotForward):
        return list(parent_slots.get(binding.name, []))
    if isinstance(binding, Node):
        return [binding]
    if isinstance(binding, (list, tuple)):
        return [item for item in binding if isinstance(item, Node)]
    logger.debug("Ignoring unsupported slot binding %r", binding)
    return []


# =============================================================================
# Flattening
# =============================================================================


@dataclass(frozen=True)
class _Scope:
    """
    Everything a node is resolved against.

    ``events`` is None at the top level (event references stay as they
    are). Inside an expanded instance it maps the target's event names to
    bindings in the enclosing scope.
    """

    props: Mapping[str, Any]
    slots: Mapping[str, List[Node]]
    variants: Optional[VariantContext]
    events: Optional[Mapping[str, Reference]]
    expanding: Tuple[str, ...]


class _Flattener:
    def __init__(self, package: Package, resolver: ReferenceResolver, diagnostics: Optional[List[Diagnostic]]):
        self.package = package
        self.resolver = resolver
        self.diagnostics = diagnostics

    def node(self, node: Node, scope: _Scope) -> Node:
        if node.is_component_instance:
            return self.instance(node, scope)
        return self.element(node, scope)

    def children(self, nodes: Sequence[Node], scope: _Scope) -> List[Node]:
        flat = []
        for child in nodes:
            if child.conditional is not None and not evaluate_condition(child.conditional, scope.props):
                continue
            flat.append(self.node(child, scope))
        return flat

    def instance(self, node: Node, scope: _Scope) -> Node:
        component_name = extract_component_name(node.component.ref)
        if component_name in scope.expanding:
            start = scope.expanding.index(component_name)
            raise CircularCompositionError(scope.expanding[start:] + (component_name,))

        resolved = resolve_component_instance(
            node, scope.props, scope.slots, self.package, self.resolver, self.diagnostics
        )
        logger.debug("Expanding %s as %s", node.name, component_name)

        # Slot content belongs to the scope that supplied it. Forwarded
        # content was already expanded one level up.
        slots: SlotContent = {}
        for slot_name, binding in node.slot_bindings.items():
            if isinstance(binding, SlotForward):
                slots[slot_name] = list(scope.slots.get(binding.name, []))
            else:
                slots[slot_name] = self.children(resolved.slots.get(slot_name, []), scope)

        events = {name: _rebind_event(binding, scope.events) for name, binding in node.event_bindings.items()}
        inner = _Scope(
            props=resolved.props,
            slots=slots,
            variants=variant_context_for(resolved.component, resolved.props),
            events={name: binding for name, binding in events.items() if binding is not None},
            expanding=scope.expanding + (component_name,),
        )
        root = self.node(resolved.component.root, inner)

        if node.style_overrides:
            overrides = resolve_value(node.style_overrides, self.resolver, scope.props, diagnostics=self.diagnostics)
            root = replace(root, styles={**root.styles, **overrides})
        return root

    def element(self, node: Node, scope: _Scope) -> Node:
        resolve = self._resolver_for(scope)

        if scope.variants is not None:
            styles = resolve_node_styles(node, scope.variants)
            variant_styles: Dict[str, Any] = {}
            compounds = []
            state_styles = {}
            for state_name in node.state_styles:
                state = resolve_state_styles(node, state_name, scope.variants)
                if state:
                    state_styles[state_name] = FlatStateStyles(resolve(state))
        else:
            styles = dict(node.styles)
            variant_styles = resolve(node.variant_styles)
            compounds = [replace(c, styles=resolve(c.styles)) for c in node.compound_variant_styles]
            state_styles = {name: _resolve_state_entry(entry, resolve) for name, entry in node.state_styles.items()}

        styles = resolve(resolve_conditional_styles(node, styles, scope.props))

        if node.slot_target is not None and scope.slots.get(node.slot_target):
            children = list(scope.slots[node.slot_target])
        elif node.slot_target is not None and node.slot_fallback:
            children = self.children(node.slot_fallback, scope)
        else:
            children = self.children(node.children, scope)

        return replace(
            node,
            text_content=resolve(node.text_content),
            element_attributes=_rebind_attributes(resolve(node.element_attributes), scope.events),
            styles=styles,
            variant_styles=variant_styles,
            compound_variant_styles=compounds,
            state_styles=state_styles,
            conditional=None,
            conditional_styles=[],
            children=children,
            slot_fallback=[],
        )

    def top_scope(
        self,
        props: Mapping[str, Any],
        slots: Mapping[str, List[Node]],
        variants: Optional[VariantContext],
        expanding: Tuple[str, ...],
    ) -> _Scope:
        # Caller-supplied slot content is expanded against the same props
        # as the tree it is injected into.
        outer = _Scope(props=props, slots={}, variants=None, events=None, expanding=())
        flat_slots = {name: self.children(nodes, outer) for name, nodes in slots.items()}
        return _Scope(props=props, slots=flat_slots, variants=variants, events=None, expanding=expanding)

    def _resolver_for(self, scope: _Scope):
        def resolve(value: Any) -> Any:
            return resolve_value(value, self.resolver, scope.props, diagnostics=self.diagnostics)

        return resolve


def _resolve_state_entry(entry, resolve):
    if isinstance(entry, FlatStateStyles):
        return FlatStateStyles(resolve(entry.styles))
    if isinstance(entry, VariantStateStyles):
        return VariantStateStyles(resolve(entry.axes))
    raise TypeError(f"Unsupported state style entry: {type(entry)}")


def _rebind_event(binding: Any, events: Optional[Mapping[str, Reference]]) -> Optional[Reference]:
    """Express an event binding in terms of the enclosing scope's events."""
    if events is None or not isinstance(binding, EventRef):
        return binding
    outer = events.get(binding.name)
    if outer is None:
        return None
    if isinstance(outer, EventRef):
        # The inner extraction runs first; the outer one reads its result.
        paths = [p for p in (binding.extract_path, outer.extract_path) if p]
        return EventRef(
            name=outer.name,
            extract_path=".".join(paths) or None,
            extra_args=binding.extra_args + outer.extra_args,
        )
    return outer


def _rebind_attributes(attributes: Dict[str, Any], events: Optional[Mapping[str, Reference]]) -> Dict[str, Any]:
    if events is None:
        return attributes
    rebound = {}
    for name, value in attributes.items():
        value = _rebind_event(value, events)
        if value is not None:
            rebound[name] = value
    return rebound


def flatten_component_tree(
    node: Node,
    props: Mapping[str, Any],
    slots: Mapping[str, List[Node]],
    package: Package,
    resolver: Optional[ReferenceResolver] = None,
    variants: Optional[VariantContext] = None,
    diagnostics: Optional[List[Diagnostic]] = None,
) -> Node:
    """
    Expand every component instance below ``node`` into its target's tree.

    Slot-target nodes receive the injected slot content, or their own
    fallback content when the slot is empty. References in styles, text and
    attributes are resolved against the props of the component each node
    belongs to; children whose ``conditional`` is false are dropped.

    Expanded instances are rendered with the variant selection implied by
    their resolved props. For ``node``'s own component, variant and state
    styles are collapsed only if ``variants`` is given; otherwise they are
    kept (with their references resolved) for emitters to use.

    Raises:
        ComponentNotFoundError: If any instance targets a missing component
        CircularCompositionError: If expansion re-enters a component
    """
    flattener = _Flattener(package, resolver or ReferenceResolver.for_package(package), diagnostics)
    return flattener.node(node, flattener.top_scope(props, slots, variants, ()))


def flatten_component(
    package: Package,
    component_name: str,
    props: Optional[Mapping[str, Any]] = None,
    slots: Optional[Mapping[str, List[Node]]] = None,
    variants: Optional[VariantContext] = None,
    resolver: Optional[ReferenceResolver] = None,
    diagnostics: Optional[List[Diagnostic]] = None,
) -> Node:
    """
    Flatten a whole component by name.

    Declared prop defaults are applied under ``props``, and the component
    itself counts as being expanded, so a self-reference is reported as a
    cycle immediately.
    """
    component = package.get_component(component_name)
    if component is None:
        raise ComponentNotFoundError(component_name, component_name)

    merged_props = {name: d.default for name, d in component.props.items() if d.default is not None}
    merged_props.update(props or {})

    flattener = _Flattener(package, resolver or ReferenceResolver.for_package(package), diagnostics)
    scope = flattener.top_scope(merged_props, slots or {}, variants, (component_name,))
    return flattener.node(component.root, scope)


# =============================================================================
# Instance discovery
# =============================================================================


def find_component_instances(node: Node, path: str = "root") -> List[Tuple[Node, str]]:
    """
    Every instance node in a tree, with its path.

    Walks children, slot fallbacks and node-valued slot bindings.
    """
    results: List[Tuple[Node, str]] = []
    if node.is_component_instance:
        results.append((node, path))

    for i, child in enumerate(node.children):
        results.extend(find_component_instances(child, f"{path}/children[{i}]"))
    for i, fallback in enumerate(node.slot_fallback):
        results.extend(find_component_instances(fallback, f"{path}/slotFallback[{i}]"))
    for slot_name, binding in node.slot_bindings.items():
        bound = binding if isinstance(binding, (list, tuple)) else [binding]
        for i, item in enumerate(bound):
            if isinstance(item, Node):
                results.extend(find_component_instances(item, f"{path}/slotBindings/{slot_name}[{i}]"))
    return results


def get_component_dependencies(component: ComponentDef) -> List[str]:
    """Normalized names of every component this one instantiates, in order."""
    names: Dict[str, None] = {}
    for instance, _path in find_component_instances(component.root):
        names[extract_component_name(instance.component.ref)] = None
    return list(names)
