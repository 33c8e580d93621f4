"""
Capability Executor
Responsible for the EXECUTION phase of the query workflow.

The executor:
1. Orders calls by (declared order, position in the plan)
2. Groups them into dependency levels; calls in one level run in parallel
3. Skips only the dependents of a failed call, independent calls still run
4. Flags calls caught in a dependency cycle instead of running them
5. Stops scheduling new work once the request is cancelled
"""
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from capabilities import CapabilityResult
from config import settings
from models import Tenant
from registry import CapabilityRegistry
from utils import get_logger, CancellationToken
from .query_plan import QueryPlan, CapabilityCall
from .types import ErrorCode

logger = get_logger(__name__)

IndexedCall = tuple[int, CapabilityCall]


@dataclass
class DependencyGroups:
    """Execution levels for a plan plus the calls that can never be scheduled"""
    groups: list[list[IndexedCall]] = field(default_factory=list)
    unresolved: list[IndexedCall] = field(default_factory=list)  # depend on a name not in the plan
    cyclic: list[IndexedCall] = field(default_factory=list)      # stuck behind a dependency cycle


def build_dependency_groups(calls: list[IndexedCall]) -> DependencyGroups:
    """
    Split ordered calls into levels. A call is ready once every call named in
    its depends_on (all calls with that name) has been placed in an earlier level.
    """
    names_total = Counter(call.name for _, call in calls)
    unresolved = [(i, c) for i, c in calls if any(d not in names_total for d in c.depends_on)]
    unresolved_ids = {i for i, _ in unresolved}
    # Unresolved calls count as finished so that their dependents see them as failed
    placed = Counter(c.name for _, c in unresolved)

    pending = [(i, c) for i, c in calls if i not in unresolved_ids]
    groups = []
    while pending:
        finished = {name for name, total in names_total.items() if placed[name] == total}
        ready = [(i, c) for i, c in pending if all(d in finished for d in c.depends_on)]
        if not ready:
            break
        groups.append(ready)
        placed.update(c.name for _, c in ready)
        ready_ids = {i for i, _ in ready}
        pending = [(i, c) for i, c in pending if i not in ready_ids]

    return DependencyGroups(groups=groups, unresolved=unresolved, cyclic=pending)


@dataclass
class ExecutionResult:
    """Per-call results in execution order"""
    results: list[CapabilityResult] = field(default_factory=list)
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return bool(self.results) and all(r.success for r in self.results)

    @property
    def executed_capabilities(self) -> list[str]:
        return [r.capability_name for r in self.results]

    @property
    def data_source(self) -> str | None:
        return next((r.data_source for r in self.results if r.data_source), None)


class CapabilityExecutor:
    """
    Handles the EXECUTION phase of the query workflow.

    Key responsibilities:
    - Dependency-ordered, level-parallel execution
    - Failure isolation per call and per dependent subtree
    - Cancellation between levels
    """

    def __init__(self, registry: CapabilityRegistry, max_workers: int | None = None):
        self.registry = registry
        self.max_workers = max_workers or settings.MAX_PARALLEL_CAPABILITIES

    def execute(
        self,
        plan: QueryPlan,
        tenant: Tenant,
        cancel: CancellationToken | None = None,
    ) -> ExecutionResult:
        cancel = cancel or CancellationToken()
        ordered = sorted(enumerate(plan.calls), key=lambda pair: (pair[1].order, pair[0]))
        dependency_groups = build_dependency_groups(ordered)
        results: dict[int, CapabilityResult] = {}
        failed_names: set[str] = set()

        logger.info(
            f"Executing {len(ordered)} calls for tenant {tenant.id} in "
            f"{len(dependency_groups.groups)} groups"
        )

        for index, call in dependency_groups.unresolved:
            missing = [d for d in call.depends_on if d not in plan.call_names()]
            results[index] = self._failure(call, ErrorCode.DEPENDENCY_FAILED, f"Missing dependencies: {', '.join(missing)}")
            failed_names.add(call.name)

        for group in dependency_groups.groups:
            if cancel.is_cancelled:
                break

            runnable = []
            for index, call in group:
                blocked = [d for d in call.depends_on if d in failed_names]
                if blocked:
                    logger.info(f"Skipping {call.label}: dependency failed ({', '.join(blocked)})")
                    results[index] = self._failure(
                        call, ErrorCode.DEPENDENCY_FAILED, f"Skipped because {', '.join(blocked)} failed"
                    )
                    failed_names.add(call.name)
                else:
                    runnable.append((index, call))

            for index, result in self._run_group(runnable, tenant, cancel):
                results[index] = result
                if not result.success:
                    failed_names.add(result.capability_name)

        for index, call in dependency_groups.cyclic:
            logger.warning(f"{call.label} is part of a dependency cycle")
            results[index] = self._failure(call, ErrorCode.DEPENDENCY_CYCLE, "Circular dependency between capabilities")

        cancelled = cancel.is_cancelled
        for index, call in ordered:
            if index not in results:
                results[index] = self._failure(call, ErrorCode.REQUEST_CANCELLED, "Request was cancelled")

        execution = ExecutionResult(results=[results[index] for index, _ in ordered], cancelled=cancelled)
        logger.info(
            f"Execution finished for tenant {tenant.id}: "
            f"{sum(1 for r in execution.results if r.success)}/{len(execution.results)} succeeded"
        )
        return execution

    def _run_group(self, runnable: list[IndexedCall], tenant: Tenant, cancel: CancellationToken):
        if not runnable:
            return []
        if len(runnable) == 1:
            index, call = runnable[0]
            return [(index, self._execute_call(call, tenant, cancel))]

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(runnable))) as pool:
            futures = [(index, pool.submit(self._execute_call, call, tenant, cancel)) for index, call in runnable]
            return [(index, future.result()) for index, future in futures]

    def _execute_call(self, call: CapabilityCall, tenant: Tenant, cancel: CancellationToken) -> CapabilityResult:
        capability = self.registry.get(call.name, call.version)
        if capability is None:
            return self._failure(call, ErrorCode.CAPABILITY_NOT_FOUND, f"Capability not found: {call.label}")
        try:
            return capability.execute(tenant, call.parameters, cancel)
        except Exception as e:
            logger.exception(f"Unexpected error executing {call.label}: {e}")
            return self._failure(call, "CAPABILITY_EXECUTION_ERROR", str(e))

    @staticmethod
    def _failure(call: CapabilityCall, code, message: str) -> CapabilityResult:
        code_value = code.value if isinstance(code, ErrorCode) else code
        return CapabilityResult.error(call.name, call.version, code_value, message)
