"""Orchestrator facade: validate, refresh, plan, apply and destroy."""

import uuid
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence, Union
from .config.models import OrchestratorConfig
from .executor.executor import Executor
from .executor.report import RunReport
from .executor.retry import call_with_retry
from .graph.dependency_graph import build_graph
from .model.models import ResolvedDeclarations, ResourceDeclaration
from .model.resolver import ReferenceResolver
from .planner.models import Plan
from .planner.planner import Planner
from .provider.base import Provider
from .state.base import StateStore
from .state.models import StoredState
from .utils.cancellation import CancellationToken
from .utils.errors import ConvergeError, ResourceNotFound
from .utils.logging import get_logger
from .waiter.readiness import ReadinessWaiter

logger = get_logger("orchestrator")

Declarations = Sequence[Union[ResourceDeclaration, Mapping[str, Any]]]


class Orchestrator:
    """
    Converge declared resources against a provider and a state store.

    Declaration and graph errors are raised before any provider call.
    Execution errors are reported per node in the RunReport.
    """

    def __init__(
        self,
        provider: Provider,
        store: StateStore,
        config: Optional[OrchestratorConfig] = None,
        waiter: Optional[ReadinessWaiter] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.provider = provider
        self.store = store
        self.config = config or OrchestratorConfig()
        self.registry = self.config.type_registry()
        self.resolver = ReferenceResolver(self.registry)
        self.planner = Planner(self.registry, self.config.readiness)
        self.executor = Executor(provider, store, self.config, waiter=waiter, sleep=sleep)

    def validate(self, declarations: Declarations) -> ResolvedDeclarations:
        """
        Resolve declarations and check the dependency graph.

        Raises:
            DeclarationError: Duplicate identity, unresolved reference or invalid output
            CycleDetected: If the dependencies are cyclic
        """
        resolved = self.resolver.resolve(declarations)
        build_graph(resolved)
        return resolved

    def refresh(self, cancel: Optional[CancellationToken] = None) -> Dict[str, StoredState]:
        """
        Read every stored resource back from the provider.

        The store is never written. Resources the provider no longer knows
        keep their entry (and version) with the identifier cleared, so the
        planner re-creates them.
        """
        cancel = cancel or CancellationToken()
        refreshed: Dict[str, StoredState] = {}
        for address, stored in sorted(self.store.snapshot().items()):
            if stored.identifier is None:
                refreshed[address] = stored
                continue
            identifier = stored.identifier
            try:
                remote = call_with_retry(
                    lambda: self.provider.read(identifier),
                    self.config.retry,
                    cancel,
                    f"refresh {address}",
                    self.executor.sleep,
                )
            except ResourceNotFound:
                logger.warning(f"{address}: {identifier} was deleted outside of converge")
                refreshed[address] = stored.model_copy(update={"identifier": None, "outputs": {}})
                continue
            attributes = {key: remote.attributes.get(key, value) for key, value in stored.attributes.items()}
            outputs = {**stored.outputs, **remote.outputs}
            if attributes != stored.attributes:
                logger.warning(f"{address}: attributes drifted from the last apply")
            refreshed[address] = stored.model_copy(update={"attributes": attributes, "outputs": outputs})
        logger.info(f"Refreshed {len(refreshed)} stored resources")
        return refreshed

    def plan(self, declarations: Declarations, refresh: bool = True) -> Plan:
        """
        Compute a plan without changing anything.

        Args:
            declarations: Resource declarations (models or dicts)
            refresh: Read stored resources back from the provider first

        Raises:
            StateLocked: If another run holds the store lock
        """
        resolved = self.validate(declarations)
        return self.planner.plan(resolved, self._snapshot(refresh))

    def apply(self, plan: Plan, cancel: Optional[CancellationToken] = None) -> RunReport:
        """
        Execute a plan, holding the store lock for the whole run.

        Raises:
            StateLocked: If another run holds the store lock
        """
        run_id = uuid.uuid4().hex[:12]
        self.store.lock(run_id)
        try:
            return self.executor.execute(plan, cancel=cancel, run_id=run_id)
        except ConvergeError:
            raise
        except Exception as e:
            logger.error(f"Unexpected error during run {run_id}: {e}", exc_info=True)
            raise ConvergeError(f"Run {run_id} failed: {e}") from e
        finally:
            self.store.unlock(run_id)

    def plan_destroy(self, declarations: Optional[Declarations] = None, targets: Optional[Iterable[str]] = None) -> Plan:
        """
        Plan destruction of stored resources.

        Raises:
            DependentsExist: If a target still has stored dependents outside the targets
        """
        resolved = self.validate(declarations) if declarations else None
        return self.planner.plan_destroy(self._snapshot(refresh=False), resolved=resolved, targets=targets)

    def destroy(
        self,
        declarations: Optional[Declarations] = None,
        targets: Optional[Iterable[str]] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> RunReport:
        """Destroy stored resources, dependents before their dependencies."""
        return self.apply(self.plan_destroy(declarations, targets), cancel=cancel)

    def _snapshot(self, refresh: bool) -> Dict[str, StoredState]:
        """Read state under a short-lived lock so planning never overlaps another run."""
        run_id = f"plan-{uuid.uuid4().hex[:8]}"
        self.store.lock(run_id)
        try:
            return self.refresh() if refresh else self.store.snapshot()
        finally:
            self.store.unlock(run_id)
