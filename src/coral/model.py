"""
Core Package Model Objects

Defines the fundamental data structures of a Coral design-system package.

These are plain data classes representing:
    - Packages (root container: components + tokens + extension list)
    - Component definitions (a node tree plus props, slots, events, axes)
    - Nodes (tree elements, optionally instances of other components)
    - Variant axes and compound variant rules
    - Interaction-state styles (flat or per variant axis)

ARCHITECTURAL RULE:
    These objects:
        - Know nothing about React, CSS or any other target
        - Are treated as read-only once a package is merged
        - Refer to other components by name, never by embedded copy
        - Represent structure, not behavior
"""

from abc import ABC
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from coral.references import Reference


class CoralError(Exception):
    """Base class for all fatal errors raised by the core."""
    pass


class PackageError(CoralError):
    """Raised when a package is malformed. No partial package is returned."""
    pass


# =============================================================================
# Variant axes
# =============================================================================


@dataclass
class VariantAxis:
    """
    A named dimension of component variation.

    Example:
        VariantAxis(name="size", values=["sm", "md", "lg"], default="md")

    Properties:
        name: Axis identifier, also usable as a prop name
        values: Ordered list of allowed values
        default: Value used when the caller selects nothing

    IMPORTANT:
        ``default`` is NOT checked against ``values`` here.
        An invalid default is a validation error, reported by
        ``coral.validator.validate_package``.
    """

    name: str
    values: List[str] = field(default_factory=list)
    default: str = ""
    description: Optional[str] = None


@dataclass
class CompoundVariantStyle:
    """
    Styles that apply when several axes match at once.

    Example:
        CompoundVariantStyle(
            conditions={"intent": "primary", "size": "lg"},
            styles={"fontWeight": 700},
        )
    """

    conditions: Dict[str, str] = field(default_factory=dict)
    styles: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None

    def matches(self, active_variants: Dict[str, str]) -> bool:
        return all(active_variants.get(axis) == value for axis, value in self.conditions.items())


# =============================================================================
# Interaction-state styles
# =============================================================================


class StateStyleEntry(ABC):
    """
    Styles for one interaction state (hover, focus, disabled, ...).

    Exactly two shapes exist: ``FlatStateStyles`` and ``VariantStateStyles``.
    """
    pass


@dataclass
class FlatStateStyles(StateStyleEntry):
    """The same style overrides whatever variant is active."""

    styles: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VariantStateStyles(StateStyleEntry):
    """
    State styles keyed by variant axis, then by axis value.

    Example:
        VariantStateStyles(axes={
            "intent": {
                "primary": {"backgroundColor": "#0052cc"},
                "secondary": {"backgroundColor": "#4a4a4a"},
            },
        })
    """

    axes: Dict[str, Dict[str, Dict[str, Any]]] = field(default_factory=dict)


@dataclass
class ConditionalStyle:
    """Styles merged over a node when ``condition`` holds for the current props."""

    condition: Any
    styles: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Props, slots and events
# =============================================================================


@dataclass(frozen=True)
class EnumType:
    values: tuple


@dataclass(frozen=True)
class ArrayType:
    item: Any = "any"


@dataclass(frozen=True)
class ObjectType:
    shape: tuple = ()


@dataclass(frozen=True)
class UnionType:
    members: tuple = ()


PropType = Union[str, EnumType, ArrayType, ObjectType, UnionType]


@dataclass
class PropDef:
    """
    Declares a prop of a component.

    Properties:
        type:
            A primitive name ("string", "number", "boolean", "any", "node",
            "function") or one of EnumType / ArrayType / ObjectType / UnionType
        default:
            Value used when an instance binds nothing (None = no default)
        required:
            Instances must bind it unless a default exists
        deprecated:
            True, or a message explaining the replacement
    """

    type: PropType = "any"
    default: Any = None
    required: bool = False
    description: Optional[str] = None
    deprecated: Union[bool, str, None] = None


@dataclass
class SlotDef:
    """A named insertion point; "default" is the primary children slot."""

    name: str
    required: bool = False
    multiple: bool = True
    description: Optional[str] = None
    allowed_elements: List[str] = field(default_factory=list)


@dataclass
class EventDef:
    description: Optional[str] = None
    deprecated: Union[bool, str, None] = None


# =============================================================================
# Nodes
# =============================================================================


@dataclass(frozen=True)
class ComponentRef:
    """
    Points an instance node at another component.

    ``ref`` is either a component name ("Button") or a path
    ("./button/button.coral.json"); see ``coral.packages.extract_component_name``.
    """

    ref: str
    version: Optional[str] = None


@dataclass
class Node:
    """
    One element of a component tree.

    Properties:
        name / element_type:
            Identity and target element (e.g. "Label", "span")

        text_content:
            Literal text or a Reference (PropRef, ComputedValue, ...)

        styles:
            Unconditional styles; values may contain references

        variant_styles:
            axis -> value -> styles, applied when that axis value is active

        compound_variant_styles:
            Rules applied when all their axis conditions match

        state_styles:
            state name -> FlatStateStyles | VariantStateStyles

        conditional / conditional_styles:
            Render condition and prop-driven style rules

        slot_target / slot_fallback:
            Marks an insertion point and the content shown when it is empty

        component:
            Set on component instances only. Together with the binding maps
            (prop_bindings, slot_bindings, event_bindings, variant_overrides,
            style_overrides) it describes how the target is configured.

    ARCHITECTURAL RULE:
        An instance holds the target's NAME only, never a copy of its tree.
    """

    name: str
    element_type: str = "div"
    text_content: Any = None
    element_attributes: Dict[str, Any] = field(default_factory=dict)
    styles: Dict[str, Any] = field(default_factory=dict)
    variant_styles: Dict[str, Dict[str, Dict[str, Any]]] = field(default_factory=dict)
    compound_variant_styles: List[CompoundVariantStyle] = field(default_factory=list)
    state_styles: Dict[str, StateStyleEntry] = field(default_factory=dict)
    conditional: Any = None
    conditional_styles: List[ConditionalStyle] = field(default_factory=list)
    children: List["Node"] = field(default_factory=list)
    slot_target: Optional[str] = None
    slot_fallback: List["Node"] = field(default_factory=list)
    component: Optional[ComponentRef] = None
    prop_bindings: Dict[str, Any] = field(default_factory=dict)
    slot_bindings: Dict[str, Any] = field(default_factory=dict)
    event_bindings: Dict[str, Reference] = field(default_factory=dict)
    variant_overrides: Dict[str, str] = field(default_factory=dict)
    style_overrides: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_component_instance(self) -> bool:
        return self.component is not None


def text_node(text: str) -> Node:
    """Synthetic text leaf used for string and prop slot bindings."""
    return Node(name="Text", element_type="span", text_content=text)


# =============================================================================
# Components and packages
# =============================================================================


@dataclass
class ComponentDef:
    """
    A named, reusable node tree.

    Properties:
        name: Unique component name within a package
        root: Root node of the tree
        axes: Declared variant axes
        props / slots / events: Public interface of the component
        component_properties:
            Legacy design-tool properties. Their names count as declared
            props for reference validation.
        deprecated: True, or a message explaining the replacement
    """

    name: str
    root: Node
    axes: List[VariantAxis] = field(default_factory=list)
    props: Dict[str, PropDef] = field(default_factory=dict)
    slots: List[SlotDef] = field(default_factory=list)
    events: Dict[str, EventDef] = field(default_factory=dict)
    component_properties: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None
    deprecated: Union[bool, str, None] = None

    def get_axis(self, axis_name: str) -> Optional[VariantAxis]:
        """
        Retrieve a variant axis by name.

        Returns:
            VariantAxis or None if not declared
        """
        for axis in self.axes:
            if axis.name == axis_name:
                return axis
        return None

    def get_slot(self, slot_name: str) -> Optional[SlotDef]:
        for slot in self.slots:
            if slot.name == slot_name:
                return slot
        return None

    def default_variants(self) -> Dict[str, str]:
        """Axis name -> default value, in declaration order."""
        return {axis.name: axis.default for axis in self.axes}


@dataclass
class Package:
    """
    Root container: named component definitions plus a token table.

    Properties:
        name / version:
            Package identity ("@acme/design-system", "1.2.0")

        components:
            Component name -> ComponentDef. Names are unique after merging.

        tokens:
            Nested token table. Leaves are ``{"$value": ...}`` mappings; a
            value may be ``{"$contexts": {...}, "$default": "light"}``.

        extends:
            Ordered references of extended packages. Later entries win over
            earlier ones; the package's own definitions win over all of them.

    INVARIANTS:
        - Immutable for the duration of any resolution pass
        - Instance nodes refer to components by name only
    """

    name: str
    version: str = "0.0.0"
    components: Dict[str, ComponentDef] = field(default_factory=dict)
    tokens: Dict[str, Any] = field(default_factory=dict)
    extends: List[str] = field(default_factory=list)
    description: Optional[str] = None

    def get_component(self, component_name: str) -> Optional[ComponentDef]:
        """
        Retrieve a component by name.

        Args:
            component_name: Component name

        Returns:
            ComponentDef or None if not found
        """
        return self.components.get(component_name)

    def has_component(self, component_name: str) -> bool:
        return component_name in self.components

    @property
    def component_names(self) -> List[str]:
        return list(self.components)
