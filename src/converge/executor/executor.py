"""Execute a plan against a provider with bounded concurrency."""

import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar
from .report import ErrorKind, ExecutionOutcome, ExecutionRecord, RunReport
from .retry import call_with_retry
from ..config.models import OrchestratorConfig
from ..model.expressions import resolve_value
from ..planner.models import Plan, PlanAction, PlanItem
from ..provider.base import Provider
from ..state.base import StateStore
from ..state.models import StoredState
from ..utils.cancellation import CancellationToken
from ..utils.errors import (
    ConvergeError,
    FatalProviderError,
    ProviderError,
    ReadinessCancelled,
    ReadinessError,
    ReadinessFailed,
    ReadinessTimeout,
    ResourceAlreadyExists,
    ResourceNotFound,
    StateConflict,
    TransientProviderError,
)
from ..utils.logging import get_logger
from ..waiter.readiness import ReadinessState, ReadinessWaiter

logger = get_logger("executor.executor")

T = TypeVar("T")


class _Cleanup:
    """Deferred deletion of replaced objects, run once every dependent has settled."""

    def __init__(self, item: PlanItem, identifiers: List[str], record: ExecutionRecord):
        self.item = item
        self.identifiers = list(identifiers)
        self.record = record

    @property
    def wait_for(self) -> List[str]:
        return self.item.dependents


class _Run:
    """Mutable bookkeeping for one execution."""

    def __init__(self, plan: Plan, cancel: CancellationToken):
        self.plan = plan
        self.cancel = cancel
        self.records: Dict[str, ExecutionRecord] = {}
        self.applied: Dict[str, StoredState] = {}
        self.lock = threading.Lock()
        self.planned = {item.address for item in plan.items}

    def finish(self, record: ExecutionRecord) -> None:
        record.finished_at = _now()
        with self.lock:
            self.records[record.address] = record

    def remember(self, stored: StoredState) -> None:
        with self.lock:
            self.applied[stored.address] = stored


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Executor:
    """
    Walk a plan in dependency order.

    A bounded worker pool runs every item whose dependencies have all
    succeeded; the scheduler parks on a wakeup event between completions.
    A failed node only affects the nodes that depend on it: they are
    skipped, while independent subgraphs keep going.
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
        self.waiter = waiter or ReadinessWaiter(provider)
        self.sleep = sleep

    def execute(
        self,
        plan: Plan,
        cancel: Optional[CancellationToken] = None,
        run_id: Optional[str] = None,
    ) -> RunReport:
        """
        Execute every item of the plan.

        Execution-time errors never escape: each item ends with a record.

        Args:
            plan: Plan produced by the planner
            cancel: Run-wide cancellation token
            run_id: Identifier for logs and the report

        Returns:
            RunReport listing every item with its outcome
        """
        cancel = cancel or CancellationToken()
        run_id = run_id or uuid.uuid4().hex[:12]
        report = RunReport(run_id=run_id, plan_id=plan.plan_id, operation=plan.operation, started_at=_now())
        run = _Run(plan, cancel)
        concurrency = self.config.executor.concurrency

        timer = None
        if self.config.executor.run_timeout:
            timer = threading.Timer(self.config.executor.run_timeout, cancel.cancel, args=("run timeout",))
            timer.daemon = True
            timer.start()

        logger.info(f"Run {run_id}: executing plan {plan.plan_id} with concurrency {concurrency}")
        wakeup = threading.Event()
        cancel.add_callback(wakeup.set)
        try:
            self._schedule(run, concurrency, wakeup)
        finally:
            cancel.remove_callback(wakeup.set)
            if timer is not None:
                timer.cancel()

        report.records = [run.records[item.address] for item in plan.items]
        report.finished_at = _now()
        report.cancelled = cancel.cancelled
        report.cancel_reason = cancel.reason
        counts = report.outcome_counts()
        summary = ", ".join(f"{n} {outcome}" for outcome, n in counts.items() if n)
        if report.succeeded:
            logger.info(f"Run {run_id} finished: {summary}")
        else:
            logger.error(f"Run {run_id} finished with failures: {summary}")
        return report

    def _schedule(self, run: _Run, concurrency: int, wakeup: threading.Event) -> None:
        pending: List[PlanItem] = []
        for item in run.plan.items:
            if item.executable:
                pending.append(item)
            else:
                record = ExecutionRecord(address=item.address, action=item.action, outcome=ExecutionOutcome.NO_OP)
                record.started_at = _now()
                run.finish(record)

        cleanups: List[_Cleanup] = []
        running: Dict[Future, Any] = {}

        with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="converge") as pool:
            while True:
                wakeup.clear()

                for future in [f for f in running if f.done()]:
                    task = running.pop(future)
                    cleanup = self._collect(run, task, future)
                    if cleanup is not None:
                        cleanups.append(cleanup)

                if run.cancel.cancelled:
                    for item in pending:
                        self._skip(run, item, ErrorKind.CANCELLED, f"run cancelled: {run.cancel.reason}")
                    pending = []
                    for cleanup in cleanups:
                        self._retain_deposed(cleanup, "run cancelled")
                    cleanups = []

                progressed = True
                while progressed:
                    progressed = False
                    for item in list(pending):
                        blocked = self._blocked_by(run, item.wait_for)
                        if blocked:
                            self._skip(
                                run, item, ErrorKind.DEPENDENCY_FAILED,
                                f"dependency did not succeed: {', '.join(blocked)}",
                            )
                            pending.remove(item)
                            progressed = True

                for cleanup in list(cleanups):
                    if not self._settled(run, cleanup.wait_for):
                        continue
                    cleanups.remove(cleanup)
                    blocked = self._blocked_by(run, cleanup.wait_for)
                    if blocked:
                        self._retain_deposed(cleanup, f"dependents did not converge: {', '.join(blocked)}")
                    elif len(running) < concurrency:
                        future = pool.submit(self._run_cleanup, run, cleanup)
                        future.add_done_callback(lambda _: wakeup.set())
                        running[future] = cleanup
                    else:
                        cleanups.append(cleanup)

                for item in list(pending):
                    if len(running) >= concurrency:
                        break
                    if not self._ready(run, item.wait_for):
                        continue
                    pending.remove(item)
                    future = pool.submit(self._run_item, run, item)
                    future.add_done_callback(lambda _: wakeup.set())
                    running[future] = item

                if not running:
                    if pending or cleanups:
                        for item in pending:
                            self._skip(run, item, ErrorKind.INTERNAL, "dependencies can never be satisfied")
                        for cleanup in cleanups:
                            self._retain_deposed(cleanup, "dependents never settled")
                    break

                wakeup.wait()

    def _collect(self, run: _Run, task: Any, future: Future) -> Optional[_Cleanup]:
        if isinstance(task, _Cleanup):
            try:
                future.result()
            except Exception as e:
                logger.error(f"Unexpected error deleting deposed object of {task.item.address}: {e}", exc_info=True)
                self._retain_deposed(task, f"unexpected error: {e}")
            return None

        try:
            record, cleanup = future.result()
        except Exception as e:
            logger.error(f"Unexpected error executing {task.address}: {e}", exc_info=True)
            record = ExecutionRecord(address=task.address, action=task.action, started_at=_now())
            self._fail(record, ErrorKind.INTERNAL, e)
            cleanup = None
        run.finish(record)
        return cleanup

    def _blocked_by(self, run: _Run, wait_for: List[str]) -> List[str]:
        with run.lock:
            return [
                address for address in wait_for
                if address in run.records and not run.records[address].ok
            ]

    def _ready(self, run: _Run, wait_for: List[str]) -> bool:
        with run.lock:
            return all(
                address not in run.planned or (address in run.records and run.records[address].ok)
                for address in wait_for
            )

    def _settled(self, run: _Run, wait_for: List[str]) -> bool:
        with run.lock:
            return all(address not in run.planned or address in run.records for address in wait_for)

    def _skip(self, run: _Run, item: PlanItem, kind: ErrorKind, reason: str) -> None:
        logger.warning(f"Skipping {item.address}: {reason}")
        record = ExecutionRecord(
            address=item.address,
            action=item.action,
            outcome=ExecutionOutcome.SKIPPED,
            error=reason,
            error_kind=kind,
            started_at=_now(),
        )
        run.finish(record)

    def _fail(self, record: ExecutionRecord, kind: ErrorKind, error: Exception) -> None:
        record.outcome = ExecutionOutcome.FAILED
        record.error_kind = kind
        record.error = str(error)
        logger.error(f"{record.address} failed ({kind.value}): {error}")

    # Workers

    def _run_item(self, run: _Run, item: PlanItem) -> Tuple[ExecutionRecord, Optional[_Cleanup]]:
        record = ExecutionRecord(address=item.address, action=item.action, started_at=_now())
        cleanup = None
        logger.info(f"{item.address}: {PlanAction(item.action).value} started")
        try:
            stored = None
            if item.action == PlanAction.CREATE:
                stored = self._create(run, item, record, item.prior_version, deposed=item.deposed)
            elif item.action == PlanAction.UPDATE:
                stored = self._update(run, item, record)
            elif item.action == PlanAction.REPLACE:
                stored = self._replace(run, item, record)
            elif item.action == PlanAction.DESTROY:
                self._destroy(run, item, record)
            record.outcome = ExecutionOutcome.SUCCEEDED
            logger.info(f"{item.address}: {PlanAction(item.action).value} succeeded")
            if stored is not None and stored.deposed:
                cleanup = _Cleanup(item, stored.deposed, record)
        except StateConflict as e:
            self._fail(record, ErrorKind.STATE_CONFLICT, e)
        except ReadinessTimeout as e:
            self._fail(record, ErrorKind.READINESS_TIMEOUT, e)
        except ReadinessCancelled as e:
            self._fail(record, ErrorKind.READINESS_CANCELLED, e)
        except ReadinessFailed as e:
            self._fail(record, ErrorKind.READINESS_FAILED, e)
        except TransientProviderError as e:
            self._fail(record, ErrorKind.PROVIDER_TRANSIENT, e)
        except ProviderError as e:
            self._fail(record, ErrorKind.PROVIDER_FATAL, e)
        except ConvergeError as e:
            self._fail(record, ErrorKind.INTERNAL, e)
        return record, cleanup

    def _call(self, run: _Run, record: ExecutionRecord, description: str, fn: Callable[[], T]) -> T:
        def attempt() -> T:
            record.attempts += 1
            return fn()

        return call_with_retry(attempt, self.config.retry, run.cancel, f"{record.address} {description}", self.sleep)

    def _revalidate(self, item: PlanItem, expected: Optional[int]) -> Optional[StoredState]:
        current = self.store.get(item.address)
        actual = current.version if current is not None else None
        if actual != expected:
            raise StateConflict(item.address, expected, actual)
        return current

    def _resolve(self, run: _Run, item: PlanItem) -> Dict[str, Any]:
        def lookup(target: str, output: str) -> Any:
            with run.lock:
                stored = run.applied.get(target)
            if stored is None:
                stored = self.store.get(target)
            if stored is None:
                raise ConvergeError(f"{item.address}: cannot resolve {target}.{output}; {target} has no state")
            return stored.output(output)

        return {key: resolve_value(value, lookup) for key, value in item.attributes.items()}

    def _state_for(
        self,
        item: PlanItem,
        identifier: str,
        attributes: Dict[str, Any],
        outputs: Dict[str, Any],
        ready: bool,
        deposed: Optional[List[str]] = None,
    ) -> StoredState:
        return StoredState(
            address=item.address,
            type=item.type,
            name=item.name,
            index=item.index,
            provider=item.provider,
            identifier=identifier,
            attributes=attributes,
            outputs=outputs,
            dependencies=list(item.dependencies),
            ready=ready,
            deposed=list(deposed or []),
        )

    def _write(self, run: _Run, record: ExecutionRecord, state: StoredState, expected: Optional[int]) -> StoredState:
        stored = self.store.put(state.address, state, expected)
        run.remember(stored)
        record.identifier = stored.identifier
        record.outputs = dict(stored.outputs)
        return stored

    def _create(
        self,
        run: _Run,
        item: PlanItem,
        record: ExecutionRecord,
        expected: Optional[int],
        deposed: Optional[List[str]] = None,
    ) -> StoredState:
        """
        Create the resource, or adopt it when the provider already has it.

        Objects listed in deposed are replaced ones; colliding with one of
        them is fatal since adopting it would undo the replacement.
        """
        self._revalidate(item, expected)
        attributes = self._resolve(run, item)
        deposed = list(deposed or [])
        try:
            result = self._call(run, record, "create", lambda: self.provider.create(item.type, attributes, alias=item.provider))
            identifier, outputs = result.identifier, dict(result.outputs)
        except ResourceAlreadyExists as e:
            if e.identifier in deposed:
                raise FatalProviderError(
                    f"replacement of {item.address} collides with the object it replaces ({e.identifier}); "
                    f"set create_before_destroy: false for this resource"
                )
            identifier, outputs = self._adopt(run, item, record, e.identifier, attributes)

        failure = self._await_ready(run, item, record, identifier) if item.await_ready else None
        stored = self._write(
            run, record,
            self._state_for(item, identifier, attributes, outputs, failure is None, deposed),
            expected,
        )
        if failure is not None:
            raise failure
        return stored

    def _adopt(
        self,
        run: _Run,
        item: PlanItem,
        record: ExecutionRecord,
        identifier: str,
        attributes: Dict[str, Any],
    ) -> Tuple[str, Dict[str, Any]]:
        """Take over a resource the provider already has under this identity."""
        logger.warning(f"{item.address}: provider reports {identifier} already exists; adopting it")
        existing = self._call(run, record, "read", lambda: self.provider.read(identifier))
        changes = {k: v for k, v in attributes.items() if existing.attributes.get(k) != v}
        outputs = dict(existing.outputs)
        if changes:
            outputs.update(self._call(run, record, "update", lambda: self.provider.update(identifier, changes)))
        record.notes.append(f"adopted existing resource {identifier}")
        return identifier, outputs

    def _update(self, run: _Run, item: PlanItem, record: ExecutionRecord) -> StoredState:
        prior = self._revalidate(item, item.prior_version)
        identifier = prior.identifier
        if identifier is None:
            return self._create(run, item, record, item.prior_version, deposed=prior.deposed)
        try:
            existing = self._call(run, record, "read", lambda: self.provider.read(identifier))
        except ResourceNotFound:
            logger.warning(f"{item.address}: {identifier} no longer exists at the provider; re-creating")
            record.notes.append(f"{identifier} was deleted outside of converge; re-created")
            return self._create(run, item, record, item.prior_version, deposed=prior.deposed)

        attributes = self._resolve(run, item)
        for key in item.ignore_changes:
            if key in prior.attributes:
                attributes[key] = prior.attributes[key]
        changes = {
            change.path: attributes.get(change.path)
            for change in item.changes
            if change.path in attributes or change.path in prior.attributes
        }
        outputs = dict(existing.outputs)
        if changes:
            outputs.update(self._call(run, record, "update", lambda: self.provider.update(identifier, changes)))

        failure = self._await_ready(run, item, record, identifier) if item.resume_readiness else None
        stored = self._write(
            run, record,
            self._state_for(item, identifier, attributes, outputs, failure is None, prior.deposed),
            item.prior_version,
        )
        if failure is not None:
            raise failure
        return stored

    def _replace(self, run: _Run, item: PlanItem, record: ExecutionRecord) -> StoredState:
        prior = self._revalidate(item, item.prior_version)
        old = prior.identifier
        if item.create_before_destroy:
            deposed = list(prior.deposed) + ([old] if old else [])
            stored = self._create(run, item, record, item.prior_version, deposed=deposed)
            record.notes.append(f"created replacement for {old}")
            return stored

        for identifier in [old] + list(prior.deposed):
            if identifier:
                self._delete(run, record, identifier)
        self.store.delete(item.address, item.prior_version)
        with run.lock:
            run.applied.pop(item.address, None)
        record.notes.append(f"destroyed {old} before creating its replacement")
        return self._create(run, item, record, None)

    def _destroy(self, run: _Run, item: PlanItem, record: ExecutionRecord) -> None:
        prior = self._revalidate(item, item.prior_version)
        for identifier in [prior.identifier] + list(prior.deposed):
            if identifier:
                self._delete(run, record, identifier)
        self.store.delete(item.address, item.prior_version)
        with run.lock:
            run.applied.pop(item.address, None)
        record.identifier = prior.identifier

    def _delete(self, run: _Run, record: ExecutionRecord, identifier: str) -> None:
        try:
            self._call(run, record, "delete", lambda: self.provider.delete(identifier))
        except ResourceNotFound:
            logger.info(f"{record.address}: {identifier} was already deleted")

    def _run_cleanup(self, run: _Run, cleanup: _Cleanup) -> None:
        """Delete replaced objects and drop the deleted ones from the stored entry."""
        record = cleanup.record
        deleted = []
        for identifier in cleanup.identifiers:
            try:
                self._delete(run, record, identifier)
            except ProviderError as e:
                logger.warning(f"{cleanup.item.address}: could not delete replaced object {identifier}: {e}")
                record.notes.append(f"replaced object {identifier} kept as deposed: {e}")
                continue
            deleted.append(identifier)
            record.notes.append(f"deleted replaced object {identifier}")
        if not deleted:
            return

        current = self.store.get(cleanup.item.address)
        if current is None:
            return
        remaining = [i for i in current.deposed if i not in deleted]
        try:
            self._write(run, record, current.model_copy(update={"deposed": remaining}), current.version)
        except StateConflict as e:
            logger.warning(f"{cleanup.item.address}: deleted {', '.join(deleted)} but could not record it: {e}")

    def _retain_deposed(self, cleanup: _Cleanup, reason: str) -> None:
        identifiers = ", ".join(cleanup.identifiers)
        logger.warning(f"{cleanup.item.address}: keeping replaced objects {identifiers} ({reason})")
        cleanup.record.notes.append(f"replaced objects {identifiers} kept as deposed: {reason}")

    def _await_ready(
        self,
        run: _Run,
        item: PlanItem,
        record: ExecutionRecord,
        identifier: str,
    ) -> Optional[ReadinessError]:
        """
        Wait for readiness and return the error to raise once state is saved.

        The resource exists whatever the outcome, so the caller records it
        (as not ready) before failing the node.
        """
        try:
            result = self.waiter.await_ready(
                identifier,
                poll_interval=item.readiness_poll_interval,
                timeout=item.readiness_timeout,
                cancel=run.cancel,
            )
        except FatalProviderError as e:
            record.notes.append(f"readiness failed: {e}")
            return ReadinessFailed(f"{item.address} ({identifier}): {e}")
        record.notes.append(f"readiness {result.state.value} after {result.polls} polls")
        if result.state == ReadinessState.TIMED_OUT:
            return ReadinessTimeout(f"{item.address} ({identifier}) was not ready after {item.readiness_timeout}s")
        if result.state == ReadinessState.CANCELLED:
            return ReadinessCancelled(f"wait for {item.address} ({identifier}) was cancelled")
        return None
