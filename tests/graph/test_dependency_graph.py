"""Tests for dependency graph."""

import pytest
from converge.graph.dependency_graph import DependencyGraph, build_graph
from converge.model.resolver import resolve_declarations
from converge.utils.errors import CycleDetected, DependentsExist, GraphError


@pytest.fixture
def sample_resolved():
    """Load balancer stack: listener -> target group -> vpc, listener -> lb -> vpc."""
    return resolve_declarations([
        {"type": "aws_vpc", "name": "main"},
        {"type": "aws_lb", "name": "shared", "attributes": {"vpc_id": "${aws_vpc.main.id}"}},
        {"type": "aws_lb_target_group", "name": "api", "attributes": {"vpc_id": "${aws_vpc.main.id}"}},
        {
            "type": "aws_lb_listener",
            "name": "https",
            "attributes": {
                "load_balancer_arn": "${aws_lb.shared.id}",
                "default_target_group": "${aws_lb_target_group.api.id}",
            },
        },
    ])


def _graph(nodes, edges):
    graph = DependencyGraph()
    for rank, address in enumerate(nodes):
        graph.add_node(address, rank)
    for source, target in edges:
        graph.add_edge(source, target)
    return graph


class TestDependencyGraph:
    """Test dependency graph construction."""

    def test_build_graph_from_declarations(self, sample_resolved):
        """Test building graph from resolved declarations."""
        graph = build_graph(sample_resolved)

        assert graph.graph.number_of_nodes() == 4
        assert graph.graph.number_of_edges() == 4
        assert len(graph) == 4

    def test_edge_keeps_attribute_paths(self, sample_resolved):
        """Test edge data records the referencing attribute."""
        graph = build_graph(sample_resolved)

        assert graph.edge_references("aws_lb_listener.https", "aws_lb.shared") == ["load_balancer_arn"]
        assert graph.edge_references("aws_vpc.main", "aws_lb.shared") == []

    def test_ordering_hint_edge_has_no_path(self):
        """Test depends_on adds an edge without attribute paths."""
        resolved = resolve_declarations([
            {"type": "aws_vpc", "name": "main"},
            {"type": "aws_instance", "name": "web", "depends_on": ["aws_vpc.main"]},
        ])
        graph = build_graph(resolved)

        assert "aws_vpc.main" in graph.dependencies("aws_instance.web")
        assert graph.edge_references("aws_instance.web", "aws_vpc.main") == []

    def test_duplicate_edge_is_idempotent(self):
        """Test adding the same edge twice keeps one edge."""
        graph = _graph(["a.x", "b.y"], [("b.y", "a.x"), ("b.y", "a.x")])
        assert graph.graph.number_of_edges() == 1

    def test_edge_to_unknown_node(self):
        graph = _graph(["a.x"], [])
        with pytest.raises(GraphError):
            graph.add_edge("a.x", "b.missing")

    def test_dependents_and_dependencies(self, sample_resolved):
        """Test direct and transitive neighbours."""
        graph = build_graph(sample_resolved)

        assert graph.dependents("aws_vpc.main") == {"aws_lb.shared", "aws_lb_target_group.api"}
        assert graph.dependents("aws_vpc.main", transitive=True) == {
            "aws_lb.shared", "aws_lb_target_group.api", "aws_lb_listener.https",
        }
        assert graph.dependencies("aws_lb_listener.https", transitive=True) == {
            "aws_lb.shared", "aws_lb_target_group.api", "aws_vpc.main",
        }

    def test_get_resource(self, sample_resolved):
        """Test getting resource by address."""
        graph = build_graph(sample_resolved)

        resource = graph.get_resource("aws_lb.shared")
        assert resource is not None
        assert resource.address == "aws_lb.shared"
        assert graph.get_resource("aws_lb.missing") is None


class TestOrdering:
    """Test topological and destroy ordering."""

    def test_topological_order_respects_every_edge(self, sample_resolved):
        """Test every dependency precedes its dependents."""
        graph = build_graph(sample_resolved)
        order = graph.topological_order()
        position = {address: i for i, address in enumerate(order)}

        for source, target in graph.graph.edges:
            assert position[target] < position[source]

    def test_ties_broken_by_declaration_rank(self, sample_resolved):
        """Test independent nodes keep declaration order."""
        graph = build_graph(sample_resolved)

        assert graph.topological_order() == [
            "aws_vpc.main",
            "aws_lb.shared",
            "aws_lb_target_group.api",
            "aws_lb_listener.https",
        ]

    def test_destroy_order_is_reversed(self):
        """Test A depends on B destroys A before B."""
        graph = _graph(["b.node", "a.node"], [("a.node", "b.node")])
        assert graph.destroy_order() == ["a.node", "b.node"]

    def test_destroy_subset_with_live_dependent(self):
        """Test destroying a dependency while its dependent stays."""
        graph = _graph(["b.node", "a.node"], [("a.node", "b.node")])

        with pytest.raises(DependentsExist) as exc_info:
            graph.destroy_order(["b.node"])
        assert exc_info.value.dependents == ["a.node"]

    def test_destroy_closed_subset(self):
        graph = _graph(["c.node", "b.node", "a.node"], [("a.node", "b.node")])
        assert graph.destroy_order(["a.node", "b.node"]) == ["a.node", "b.node"]


class TestCycleDetection:
    """Test cycle detection."""

    def test_cycle_detected(self):
        """Test a three-node cycle is reported as a genuine cycle."""
        graph = _graph(["a.x", "b.x", "c.x"], [("a.x", "b.x"), ("b.x", "c.x"), ("c.x", "a.x")])

        with pytest.raises(CycleDetected) as exc_info:
            graph.validate()
        cycle = exc_info.value.cycle
        assert sorted(cycle) == ["a.x", "b.x", "c.x"]
        for i, address in enumerate(cycle):
            assert graph.graph.has_edge(address, cycle[(i + 1) % len(cycle)])

    def test_shortest_cycle_reported(self):
        """Test the shortest cycle within a strongly connected component."""
        graph = _graph(
            ["a.x", "b.x", "c.x"],
            [("a.x", "b.x"), ("b.x", "c.x"), ("c.x", "a.x"), ("b.x", "a.x")],
        )
        assert graph.find_cycle() == ["a.x", "b.x"]

    def test_reference_cycle_from_declarations(self):
        """Test a reference cycle in declarations fails graph construction."""
        resolved = resolve_declarations([
            {"type": "aws_security_group", "name": "a", "attributes": {"peer": "${aws_security_group.b.id}"}},
            {"type": "aws_security_group", "name": "b", "attributes": {"peer": "${aws_security_group.a.id}"}},
        ])
        with pytest.raises(CycleDetected):
            build_graph(resolved)

    def test_acyclic_graph_has_no_cycle(self, sample_resolved):
        assert build_graph(sample_resolved).find_cycle() is None
