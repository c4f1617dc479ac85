"""Diff declared state against stored state and produce an ordered plan."""

from typing import Any, Dict, Iterable, List, Optional, Set
from .diff import creation_changes, diff_attributes
from .models import AttributeChange, Plan, PlanAction, PlanItem
from ..config.models import ReadinessConfig
from ..graph.dependency_graph import DependencyGraph
from ..model.expressions import UNKNOWN, resolve_value
from ..model.models import ResolvedDeclarations, ResourceNode
from ..model.schema import TypeRegistry
from ..state.models import StoredState
from ..utils.errors import GraphError
from ..utils.logging import get_logger

logger = get_logger("planner.planner")


class Planner:
    """
    Read-only planner.

    Planning never touches the state store or the provider: it works on a
    snapshot of stored state passed in by the caller, so repeated planning
    of the same inputs yields the same plan.
    """

    def __init__(self, registry: Optional[TypeRegistry] = None, readiness: Optional[ReadinessConfig] = None):
        self.registry = registry or TypeRegistry()
        self.readiness = readiness or ReadinessConfig()

    def plan(self, resolved: ResolvedDeclarations, prior: Dict[str, StoredState]) -> Plan:
        """
        Plan convergence of declared resources.

        Args:
            resolved: Nodes and references from the reference resolver
            prior: Stored state snapshot keyed by address

        Returns:
            Plan with one item per declared or stored node

        Raises:
            CycleDetected: If the declared dependencies are cyclic
        """
        graph = DependencyGraph()
        graph.build_from_declarations(resolved)
        graph.validate()

        orphans = sorted(address for address in prior if address not in graph)
        self._add_orphans(graph, orphans, prior, base_rank=len(resolved.nodes))

        order = graph.topological_order()
        items: Dict[str, PlanItem] = {}
        desired_values: Dict[str, Dict[str, Any]] = {}

        def lookup(target: str, output: str) -> Any:
            item = items.get(target)
            stored = prior.get(target)
            if item is None or item.action in (PlanAction.CREATE, PlanAction.REPLACE):
                return UNKNOWN
            if item.action == PlanAction.UPDATE and output in item.changed_attributes():
                return desired_values[target].get(output, UNKNOWN)
            if stored is None:
                return UNKNOWN
            return stored.output(output)

        for address in order:
            node = graph.get_resource(address)
            if node is None:
                continue
            desired = {key: resolve_value(value, lookup) for key, value in node.attributes.items()}
            desired_values[address] = desired
            dependencies = sorted(d for d in graph.dependencies(address) if graph.get_resource(d) is not None)
            item = self._classify(node, desired, prior.get(address), dependencies)
            dependents = graph.dependents(address)
            item.dependents = sorted(dependents)
            if item.action == PlanAction.REPLACE and not item.create_before_destroy:
                # removed dependents are destroyed before the old object is deleted in place
                item.wait_for = sorted(set(dependencies) | (dependents & set(orphans)))
            items[address] = item

        ordered: List[PlanItem] = [items[a] for a in order if a in items]
        for address in reversed(order):
            if address in orphans:
                ordered.append(self._destroy_item(address, prior[address], graph.dependents(address)))

        for rank, item in enumerate(ordered):
            item.rank = rank

        plan = Plan(operation="apply", items=ordered)
        logger.info(f"Plan {plan.plan_id}: {self._describe(plan)}")
        return plan

    def plan_destroy(
        self,
        prior: Dict[str, StoredState],
        resolved: Optional[ResolvedDeclarations] = None,
        targets: Optional[Iterable[str]] = None,
    ) -> Plan:
        """
        Plan destruction of stored resources.

        Args:
            prior: Stored state snapshot keyed by address
            resolved: Declarations, used for ordering ties and reporting
            targets: Addresses (or ``type.name`` bases of counted resources)
                to destroy; every stored resource when omitted

        Raises:
            DependentsExist: If a target has a stored dependent outside the target set
        """
        ranks = {node.address: node.rank for node in (resolved.nodes if resolved else [])}
        graph = DependencyGraph()
        base = len(ranks)
        for offset, address in enumerate(sorted(prior)):
            graph.add_node(address, ranks.get(address, base + offset))
        for address in sorted(prior):
            for dependency in prior[address].dependencies:
                if dependency in prior:
                    graph.add_edge(address, dependency)

        selected = set(prior) if targets is None else self._expand_targets(targets, prior)
        order = graph.destroy_order(selected)

        items = [
            self._destroy_item(
                address,
                prior[address],
                graph.dependents(address) & selected,
                reason="destroy requested",
            )
            for address in order
        ]
        if resolved is not None and targets is None:
            for node in resolved.nodes:
                if node.address not in prior:
                    items.append(PlanItem(
                        address=node.address,
                        type=node.type,
                        name=node.identity.name,
                        index=node.identity.index,
                        provider=node.identity.provider,
                        action=PlanAction.NO_OP,
                        reason="not present in state",
                    ))
        for rank, item in enumerate(items):
            item.rank = rank

        plan = Plan(operation="destroy", items=items)
        logger.info(f"Destroy plan {plan.plan_id}: {self._describe(plan)}")
        return plan

    def _add_orphans(
        self,
        graph: DependencyGraph,
        orphans: List[str],
        prior: Dict[str, StoredState],
        base_rank: int,
    ) -> None:
        """
        Add stored-but-undeclared nodes to the graph.

        Orphans keep their stored edges in both directions: anything that
        depended on an orphan points at it, and an orphan points at the
        declared or orphaned nodes it depended on. An orphan edge that would
        close a cycle through the new declarations is dropped.
        """
        orphan_set = set(orphans)
        for offset, address in enumerate(orphans):
            graph.add_node(address, base_rank + offset)
        for address, stored in sorted(prior.items()):
            if address not in graph:
                continue
            for dependency in stored.dependencies:
                if dependency == address or dependency not in graph:
                    continue
                if address not in orphan_set and dependency not in orphan_set:
                    continue
                if address in graph.dependencies(dependency, transitive=True):
                    logger.warning(f"Ignoring stored dependency {address} -> {dependency}: it conflicts with the declarations")
                    continue
                graph.add_edge(address, dependency)

    def _classify(
        self,
        node: ResourceNode,
        desired: Dict[str, Any],
        stored: Optional[StoredState],
        dependencies: List[str],
    ) -> PlanItem:
        schema = self.registry.get(node.type)
        item = PlanItem(
            address=node.address,
            type=node.type,
            name=node.identity.name,
            index=node.identity.index,
            provider=node.identity.provider,
            action=PlanAction.NO_OP,
            attributes=node.attributes,
            dependencies=dependencies,
            wait_for=dependencies,
            create_before_destroy=self.registry.create_before_destroy(
                node.type, node.lifecycle.create_before_destroy
            ),
            ignore_changes=list(node.lifecycle.ignore_changes),
            await_ready=schema.await_ready,
            readiness_poll_interval=schema.readiness_poll_interval or self.readiness.poll_interval,
            readiness_timeout=schema.readiness_timeout or self.readiness.timeout,
        )

        if stored is None:
            item.action = PlanAction.CREATE
            item.reason = "not present in state"
            item.changes = creation_changes(desired)
            return item
        if stored.identifier is None:
            item.action = PlanAction.CREATE
            item.reason = "no longer exists at the provider"
            item.changes = creation_changes(desired)
            item.prior_version = stored.version
            item.deposed = list(stored.deposed)
            return item

        item.prior_identifier = stored.identifier
        item.prior_version = stored.version
        item.deposed = list(stored.deposed)
        changes = diff_attributes(desired, stored.attributes, schema.force_new, node.lifecycle.ignore_changes)
        if stored.provider != node.identity.provider:
            changes.append(AttributeChange(
                path="provider",
                before=stored.provider,
                after=node.identity.provider,
                forces_replacement=True,
            ))
        item.changes = changes

        forcing = [change.path for change in changes if change.forces_replacement]
        if forcing:
            item.action = PlanAction.REPLACE
            item.reason = f"{', '.join(forcing)} forces replacement"
        elif changes:
            item.action = PlanAction.UPDATE
            item.reason = f"{len(changes)} attribute(s) changed"
        elif not stored.ready:
            item.action = PlanAction.UPDATE
            item.reason = "resume waiting for readiness"
        elif stored.deposed:
            item.action = PlanAction.UPDATE
            item.reason = f"delete {len(stored.deposed)} deposed object(s)"

        if item.action == PlanAction.UPDATE and not stored.ready:
            item.resume_readiness = True
        return item

    def _destroy_item(
        self,
        address: str,
        stored: StoredState,
        dependents: Set[str],
        reason: str = "removed from declarations",
    ) -> PlanItem:
        return PlanItem(
            address=address,
            type=stored.type,
            name=stored.name,
            index=stored.index,
            provider=stored.provider,
            action=PlanAction.DESTROY,
            reason=reason,
            dependencies=list(stored.dependencies),
            wait_for=sorted(dependents),
            prior_identifier=stored.identifier,
            prior_version=stored.version,
            deposed=list(stored.deposed),
        )

    def _expand_targets(self, targets: Iterable[str], prior: Dict[str, StoredState]) -> Set[str]:
        selected: Set[str] = set()
        for target in targets:
            matches = [a for a in prior if a == target or a.startswith(f"{target}[")]
            if not matches:
                raise GraphError(f"Cannot destroy {target}: it is not present in state")
            selected.update(matches)
        return selected

    def _describe(self, plan: Plan) -> str:
        summary = plan.summary()
        return ", ".join(f"{count} to {action}" for action, count in summary.items() if count) or "no items"
