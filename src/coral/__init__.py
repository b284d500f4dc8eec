"""
Coral Resolution Core

Turns a design-system package (components, design tokens, variant axes,
interaction states, slots, component composition) into fully resolved,
target-independent component trees and styles.

ARCHITECTURAL GUARANTEE:
------------------------
This package contains ZERO knowledge of:
    - React, CSS or any other output target
    - File layout of packages on disk
    - Network or registry access

Emitters consume the resolved trees and diagnostics produced here.
Loading files is the caller's job; ``coral.serialization`` only converts
already-parsed data.
"""

from coral.composition import (
    CircularCompositionError,
    ComponentNotFoundError,
    ResolvedInstance,
    flatten_component,
    flatten_component_tree,
    resolve_component_instance,
)
from coral.config import ResolverOptions
from coral.diagnostics import Diagnostic, DiagnosticKind, Severity, ValidationResult
from coral.graph import build_dependency_graph, find_circular_dependencies, get_component_order
from coral.model import (
    ComponentDef,
    ComponentRef,
    CoralError,
    Node,
    Package,
    PackageError,
    PropDef,
    SlotDef,
    VariantAxis,
)
from coral.packages import merge_packages, resolve_extends
from coral.resolver import UNRESOLVED, ReferenceResolver
from coral.serialization import (
    PackageFormatError,
    package_from_dict,
    package_from_json,
    package_from_yaml,
    package_to_dict,
    package_to_json,
    package_to_yaml,
)
from coral.validator import validate_package, validate_props
from coral.variants import resolve_node_styles, resolve_state_styles

__version__ = "0.1.0"
