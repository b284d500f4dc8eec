"""
Dependency Graph — component-to-component edges, cycles and build order.

An edge A -> B means "A contains an instance of B" anywhere in its tree
(children, slot fallbacks, node-valued slot bindings).

IMPORTANT: This module only reads the package. It never expands anything.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Set, Tuple

from coral.composition import get_component_dependencies
from coral.model import Package


DependencyGraph = Dict[str, List[str]]


def build_dependency_graph(package: Package) -> DependencyGraph:
    """
    Component name -> names of the components it instantiates.

    Targets are normalized names; they need not exist in the package.
    """
    return {name: get_component_dependencies(component) for name, component in package.components.items()}


def _collect_cycles_dfs(graph: DependencyGraph, start: str, visited: Set[str], cycles: List[List[str]]) -> None:
    """
    DFS from one node, recording a cycle for every back edge.

    Iterative: ``pending`` holds one neighbor iterator per entry of ``path``.
    """
    visited.add(start)
    path: List[str] = [start]
    rec_stack: Set[str] = {start}
    pending: List[Iterator[str]] = [iter(graph.get(start, []))]

    while pending:
        neighbor = next(pending[-1], None)
        if neighbor is None:
            pending.pop()
            rec_stack.remove(path.pop())
        elif neighbor in rec_stack:
            cycle_start_idx = path.index(neighbor)
            cycles.append(path[cycle_start_idx:] + [neighbor])
        elif neighbor not in visited:
            visited.add(neighbor)
            rec_stack.add(neighbor)
            path.append(neighbor)
            pending.append(iter(graph.get(neighbor, [])))


def find_circular_dependencies(graph: DependencyGraph) -> List[List[str]]:
    """
    Every cycle reachable in the graph, as ``[first, ..., first]``.

    Example:
        find_circular_dependencies({"A": ["B"], "B": ["A"]})
        # [["A", "B", "A"]]

    Each back edge is reported once; a self-instantiating component shows
    up as ``["A", "A"]``.
    """
    cycles: List[List[str]] = []
    visited: Set[str] = set()
    for name in graph:
        if name not in visited:
            _collect_cycles_dfs(graph, name, visited, cycles)
    return cycles


def get_component_order(package: Package) -> List[str]:
    """
    Components in dependency order: dependencies before dependents.

    Post-order DFS over the package's own components. Dependencies that
    are not in the package are skipped, and cycles do not fail (the first
    visited member of a cycle simply comes last).
    """
    graph = build_dependency_graph(package)
    order: List[str] = []
    visited: Set[str] = set()

    for root in package.components:
        if root in visited:
            continue
        visited.add(root)
        stack: List[Tuple[str, Iterator[str]]] = [(root, iter(graph.get(root, [])))]
        while stack:
            name, dependencies = stack[-1]
            dependency = next(dependencies, None)
            if dependency is None:
                stack.pop()
                order.append(name)
            elif dependency not in visited and package.has_component(dependency):
                visited.add(dependency)
                stack.append((dependency, iter(graph.get(dependency, []))))
    return order


def has_component_instances(package: Package, component_name: str) -> bool:
    return bool(build_dependency_graph(package).get(component_name))


def get_dependents(package: Package, component_name: str) -> List[str]:
    """Components that directly instantiate ``component_name``."""
    return [name for name, deps in build_dependency_graph(package).items() if component_name in deps]
