"""
Tests for the component dependency graph.

Tests verify that the graph module correctly:
    - Builds edges from instances anywhere in a tree
    - Finds every cycle, as [first, ..., first]
    - Orders components dependencies-first
"""

from coral.examples import build_example_package
from coral.graph import (
    build_dependency_graph,
    find_circular_dependencies,
    get_component_order,
    get_dependents,
    has_component_instances,
)
from coral.model import ComponentDef, ComponentRef, Node, Package


def package_from_edges(edges: dict) -> Package:
    """One component per key, instantiating each listed target."""
    components = {}
    for name, targets in edges.items():
        children = [Node(name=f"{name}To{t}", component=ComponentRef(t)) for t in targets]
        components[name] = ComponentDef(name=name, root=Node(name=name, children=children))
    return Package(name="@test/graph", components=components)


def test_build_dependency_graph():
    graph = build_dependency_graph(build_example_package())
    assert graph == {"Button": [], "IconButton": ["Button"], "Card": ["Button", "IconButton"]}


def test_graph_includes_slot_fallbacks():
    """Instances inside slot fallbacks are dependencies too."""
    root = Node(name="Root", slot_target="icon", slot_fallback=[Node(name="F", component=ComponentRef("Icon"))])
    pkg = Package(name="@test/fallback", components={"Root": ComponentDef(name="Root", root=root)})
    assert build_dependency_graph(pkg) == {"Root": ["Icon"]}


def test_no_cycles_in_example():
    assert find_circular_dependencies(build_dependency_graph(build_example_package())) == []


def test_two_component_cycle():
    """X -> Y -> X is reported exactly once."""
    cycles = find_circular_dependencies({"X": ["Y"], "Y": ["X"]})
    assert cycles == [["X", "Y", "X"]]


def test_self_cycle():
    assert find_circular_dependencies({"A": ["A"]}) == [["A", "A"]]


def test_every_back_edge_reported():
    """Two distinct cycles through A are both found."""
    cycles = find_circular_dependencies({"A": ["B", "C"], "B": ["A"], "C": ["A"]})
    assert cycles == [["A", "B", "A"], ["A", "C", "A"]]


def test_cycle_reached_from_outside():
    """A cycle not containing the starting node is still sliced correctly."""
    cycles = find_circular_dependencies({"Root": ["A"], "A": ["B"], "B": ["A"]})
    assert cycles == [["A", "B", "A"]]


def test_missing_targets_are_ignored_by_cycle_search():
    assert find_circular_dependencies({"A": ["Ghost"]}) == []


def test_component_order_dependencies_first():
    """For X -> Y, Y comes before X."""
    order = get_component_order(package_from_edges({"X": ["Y"], "Y": []}))
    assert order == ["Y", "X"]


def test_component_order_example():
    order = get_component_order(build_example_package())
    assert order.index("Button") < order.index("IconButton") < order.index("Card")
    assert sorted(order) == ["Button", "Card", "IconButton"]


def test_component_order_skips_missing_dependencies():
    order = get_component_order(package_from_edges({"A": ["Ghost", "B"], "B": []}))
    assert order == ["B", "A"]


def test_component_order_with_cycle_does_not_fail():
    order = get_component_order(package_from_edges({"A": ["B"], "B": ["A"]}))
    assert order == ["B", "A"]


def test_dependents():
    pkg = build_example_package()
    assert get_dependents(pkg, "Button") == ["IconButton", "Card"]
    assert has_component_instances(pkg, "Card")
    assert not has_component_instances(pkg, "Button")


def test_deep_chain_orders_without_recursion_limit():
    """A chain far deeper than the interpreter's recursion limit still sorts."""
    depth = 5000
    edges = {f"C{i}": [f"C{i + 1}"] for i in range(depth)}
    edges[f"C{depth}"] = []
    package = package_from_edges(edges)
    order = get_component_order(package)
    assert order[0] == f"C{depth}"
    assert order[-1] == "C0"
    assert len(order) == depth + 1
    assert find_circular_dependencies(build_dependency_graph(package)) == []


def test_deep_cycle_found():
    depth = 5000
    graph = {f"C{i}": [f"C{(i + 1) % depth}"] for i in range(depth)}
    [cycle] = find_circular_dependencies(graph)
    assert len(cycle) == depth + 1
    assert cycle[0] == cycle[-1] == "C0"
