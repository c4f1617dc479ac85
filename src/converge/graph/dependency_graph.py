"""Directed dependency graph over resource nodes."""

import networkx as nx
from typing import Dict, Iterable, List, Optional, Set, Tuple
from ..model.models import ResolvedDeclarations, ResourceNode
from ..utils.errors import CycleDetected, DependentsExist, GraphError
from ..utils.logging import get_logger

logger = get_logger("graph.dependency_graph")


class DependencyGraph:
    """
    Directed dependency graph: nodes=resource addresses, edges=dependencies.

    An edge ``source -> target`` means source depends on target, so the
    target must be provisioned before the source and destroyed after it.
    Edge data keeps the attribute paths that carry the reference; ordering
    hints from ``depends_on`` add an edge with no attribute path.
    """

    def __init__(self):
        self.graph = nx.DiGraph()
        self._resource_map: Dict[str, ResourceNode] = {}

    def add_node(self, address: str, rank: int, resource: Optional[ResourceNode] = None) -> None:
        """Add a node; resource is None for nodes known only from stored state."""
        if address in self.graph:
            raise GraphError(f"Node already present in graph: {address}")
        self.graph.add_node(address, rank=rank)
        if resource is not None:
            self._resource_map[address] = resource

    def add_resource(self, resource: ResourceNode) -> None:
        """Add a declared resource node."""
        self.add_node(resource.address, resource.rank, resource)

    def add_edge(self, source: str, target: str, attribute_path: Optional[str] = None) -> None:
        """Record that source depends on target. Adding the same edge twice is a no-op."""
        for address in (source, target):
            if address not in self.graph:
                raise GraphError(f"Cannot add edge {source} -> {target}: {address} is not in the graph")
        if not self.graph.has_edge(source, target):
            self.graph.add_edge(source, target, references=[])
            logger.debug(f"Added dependency edge: {source} -> {target}")
        if attribute_path is not None:
            paths = self.graph.edges[source, target]["references"]
            if attribute_path not in paths:
                paths.append(attribute_path)

    def build_from_declarations(self, resolved: ResolvedDeclarations) -> None:
        """Build the graph from resolved nodes, references and ordering hints."""
        for node in resolved.nodes:
            self.add_resource(node)
        for reference in resolved.references:
            self.add_edge(reference.source, reference.target, reference.attribute_path)
        for node in resolved.nodes:
            for target in node.depends_on:
                self.add_edge(node.address, target)
        logger.info(
            f"Built dependency graph with {self.graph.number_of_nodes()} nodes "
            f"and {self.graph.number_of_edges()} edges"
        )

    def _sort_key(self, address: str) -> Tuple[int, str]:
        return (self.graph.nodes[address].get("rank", 0), address)

    def find_cycle(self) -> Optional[List[str]]:
        """
        Return the shortest dependency cycle, or None for an acyclic graph.

        The cycle is listed so that each node depends on the next one and the
        last node depends on the first.
        """
        best: Optional[List[str]] = None
        components = sorted(
            (c for c in nx.strongly_connected_components(self.graph)),
            key=lambda c: min(self._sort_key(n) for n in c),
        )
        for component in components:
            members = sorted(component, key=self._sort_key)
            if len(members) == 1 and not self.graph.has_edge(members[0], members[0]):
                continue
            sub = self.graph.subgraph(component)
            for start in members:
                for succ in sorted(sub.successors(start), key=self._sort_key):
                    path = nx.shortest_path(sub, succ, start)
                    cycle = [start] + path[:-1]
                    if best is None or len(cycle) < len(best):
                        best = cycle
        return best

    def validate(self) -> None:
        """Raise CycleDetected when the edge set is not acyclic."""
        cycle = self.find_cycle()
        if cycle is not None:
            logger.error(f"Dependency cycle detected: {' -> '.join(cycle)}")
            raise CycleDetected(cycle)

    def topological_order(self) -> List[str]:
        """Addresses ordered so that every dependency precedes its dependents."""
        self.validate()
        return list(nx.lexicographical_topological_sort(
            self.graph.reverse(copy=False), key=self._sort_key
        ))

    def destroy_order(self, addresses: Optional[Iterable[str]] = None) -> List[str]:
        """
        Reverse topological order: dependents are destroyed before their dependencies.

        When addresses is given, only those nodes are returned and the set is
        checked for live dependents outside it.
        """
        order = list(reversed(self.topological_order()))
        if addresses is None:
            return order
        selected = set(addresses)
        self.check_destroy(selected)
        return [address for address in order if address in selected]

    def check_destroy(self, addresses: Set[str]) -> None:
        """Raise DependentsExist if any address has a dependent outside the destroy set."""
        for address in sorted(addresses, key=lambda a: self._sort_key(a) if a in self.graph else (0, a)):
            if address not in self.graph:
                raise GraphError(f"Cannot destroy unknown resource: {address}")
            outside = sorted(d for d in self.graph.predecessors(address) if d not in addresses)
            if outside:
                raise DependentsExist(address, outside)

    def dependencies(self, address: str, transitive: bool = False) -> Set[str]:
        """Nodes the given node depends on."""
        if address not in self.graph:
            return set()
        if transitive:
            return set(nx.descendants(self.graph, address))
        return set(self.graph.successors(address))

    def dependents(self, address: str, transitive: bool = False) -> Set[str]:
        """Nodes that depend on the given node."""
        if address not in self.graph:
            return set()
        if transitive:
            return set(nx.ancestors(self.graph, address))
        return set(self.graph.predecessors(address))

    def edge_references(self, source: str, target: str) -> List[str]:
        """Attribute paths linking source to target; empty for ordering hints."""
        if not self.graph.has_edge(source, target):
            return []
        return list(self.graph.edges[source, target]["references"])

    def get_resource(self, address: str) -> Optional[ResourceNode]:
        """Get the declared node for an address."""
        return self._resource_map.get(address)

    def get_all_resources(self) -> List[ResourceNode]:
        """Get all declared nodes in declaration order."""
        return sorted(self._resource_map.values(), key=lambda n: n.rank)

    def __contains__(self, address: str) -> bool:
        return address in self.graph

    def __len__(self) -> int:
        return self.graph.number_of_nodes()


def build_graph(resolved: ResolvedDeclarations) -> DependencyGraph:
    """Build and validate a dependency graph for resolved declarations."""
    graph = DependencyGraph()
    graph.build_from_declarations(resolved)
    graph.validate()
    return graph
