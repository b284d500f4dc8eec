"""
Demo: validate the example package, print its build order and flatten a component.

Usage:
    python demo_package.py [component] [context]
"""

import logging
import sys

from coral.composition import flatten_component
from coral.config import ResolverOptions
from coral.examples import build_example_package
from coral.graph import find_circular_dependencies, build_dependency_graph, get_component_order
from coral.resolver import ReferenceResolver
from coral.serialization import node_to_yaml
from coral.validator import validate_package, validate_props


def print_result(title, result):
    """Pretty-print a ValidationResult."""
    print(f"{title}: {'VALID' if result.valid else 'INVALID'}")
    for diagnostic in result.errors:
        print(f"  ❌ [{diagnostic.kind.value}] {diagnostic.path}: {diagnostic.message}")
    for diagnostic in result.warnings:
        print(f"  ⚠️  [{diagnostic.kind.value}] {diagnostic.path}: {diagnostic.message}")
    print()


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    component_name = sys.argv[1] if len(sys.argv) > 1 else "Card"
    context = sys.argv[2] if len(sys.argv) > 2 else "light"

    package = build_example_package()

    print()
    print("=" * 70)
    print(f"PACKAGE: {package.name}@{package.version}")
    print("=" * 70)
    print()

    print_result("📋 References", validate_package(package))
    print_result("🔗 Prop bindings", validate_props(package))

    cycles = find_circular_dependencies(build_dependency_graph(package))
    if cycles:
        for cycle in cycles:
            print(f"Cycle: {' -> '.join(cycle)}")
        sys.exit(1)

    print(f"Build order: {' -> '.join(get_component_order(package))}")
    print()

    resolver = ReferenceResolver.for_package(package, ResolverOptions(token_context=context))
    flat = flatten_component(package, component_name, props={"title": "Welcome"}, resolver=resolver)

    print(f"FLATTENED {component_name} ({context}):")
    print("-" * 70)
    print(node_to_yaml(flat))


if __name__ == "__main__":
    main()
