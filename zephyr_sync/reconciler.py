"""Reconciliation of a matched event with the Zephyr execution of its test."""

import re
import threading
from concurrent.futures import Executor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from enum import Enum

from structlog.stdlib import BoundLogger

from .ancestry import AncestryResolver, extract_version_cycle, resolve_folder_name
from .config import ExecutionMode, ProcessingRule
from .exceptions import JobTimeoutError, ResolutionError
from .hierarchy import HierarchyResolver
from .models import (
    Cycle,
    EventStatus,
    Execution,
    ExecutionStatus,
    ExecutionUpdate,
    Folder,
    Issue,
    Project,
    RemoteEvent,
    Version,
    VersionCycleKey,
    ZephyrJob,
)
from .services import ServiceHolder
from .strategies import RelatedIssuesStrategy


class ReconciliationState(str, Enum):
    """Steps an event goes through for one matching rule."""

    MATCHED = "matched"
    OUTCOME_RESOLVED = "outcome_resolved"
    ISSUE_RESOLVED = "issue_resolved"
    ANCESTRY_RESOLVED = "ancestry_resolved"
    HIERARCHY_RESOLVED = "hierarchy_resolved"
    EXECUTION_RESOLVED = "execution_resolved"
    STATUS_APPLIED = "status_applied"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class RuleBinding:
    """Processing rule with everything resolved for it when the engine was built."""

    rule: ProcessingRule
    services: ServiceHolder
    status_mapping: dict[EventStatus, ExecutionStatus]
    strategies: list[RelatedIssuesStrategy] = field(default_factory=list)
    version_pattern: re.Pattern[str] | None = None


@dataclass(frozen=True)
class ReconciliationContext:
    """Values resolved once per event and shared by the primary and related issues."""

    event: RemoteEvent
    status: ExecutionStatus
    version_cycle: VersionCycleKey
    folder_name: str | None


def to_issue_key(event_name: str) -> str:
    """Convert the event name to the Jira key of the issue it reports about."""
    return event_name.replace("_", "-")


class ExecutionReconciler:
    """Brings the Zephyr execution of a test in line with the status of an event."""

    def __init__(self, binding: RuleBinding, job_executor: Executor, logger: BoundLogger) -> None:
        """Initialize reconciler."""
        self.binding = binding
        self.rule = binding.rule
        self.jira = binding.services.jira
        self.zephyr = binding.services.zephyr
        self.job_executor = job_executor
        self.logger = logger.bind(rule=self.rule.label, destination=self.rule.destination)
        self.hierarchy = HierarchyResolver(self.zephyr, self.logger)
        self.state = ReconciliationState.MATCHED

    def process(self, event: RemoteEvent, ancestry: AncestryResolver) -> None:
        """Reconcile the execution of the event's issue, then the executions of its related issues."""
        try:
            status = self._resolve_status(event)
            self._advance(ReconciliationState.OUTCOME_RESOLVED)

            issue = self.jira.issue_by_key(to_issue_key(event.name))
            self._advance(ReconciliationState.ISSUE_RESOLVED, issue_key=issue.key)

            root = ancestry.find_root(event)
            folder_event = ancestry.find_folder_ancestor(event, root)
            context = ReconciliationContext(
                event=event,
                status=status,
                version_cycle=extract_version_cycle(root, issue.key, self.rule, self.binding.version_pattern),
                folder_name=resolve_folder_name(folder_event, issue.key, self.rule),
            )
            self._advance(
                ReconciliationState.ANCESTRY_RESOLVED,
                version=context.version_cycle.version,
                cycle=context.version_cycle.cycle,
                folder=context.folder_name,
            )

            self.reconcile(context, issue)
            self._expand_related(context, issue)
            self._advance(ReconciliationState.DONE)
        except Exception as e:
            self.logger.error("Reconciliation failed", state=self.state.value, error=str(e))
            self.state = ReconciliationState.FAILED
            raise

    def reconcile(self, context: ReconciliationContext, issue: Issue) -> Execution:
        """Find or create the execution of the issue and apply the event status to it."""
        project = self.jira.project_by_key(issue.project_key)
        version = project.find_version(context.version_cycle.version)
        if version is None:
            raise ResolutionError(
                f"Cannot find version {context.version_cycle.version} for project {project.name or project.key}",
                context.event.id,
            )
        cycle = self.hierarchy.get_or_create_cycle(context.version_cycle.cycle, project, version)
        folder = None
        if context.folder_name is not None:
            folder = self.hierarchy.get_or_create_folder(cycle, context.folder_name)
        self._advance(ReconciliationState.HIERARCHY_RESOLVED, issue_key=issue.key, cycle_id=cycle.id)

        if self.rule.test_execution_mode == ExecutionMode.CREATE_NEW:
            execution = self.zephyr.create_execution(project, version, cycle, folder, issue)
        else:
            execution = self._get_or_create_execution(project, version, cycle, folder, issue, context.event)
        self._advance(ReconciliationState.EXECUTION_RESOLVED, issue_key=issue.key, execution_id=execution.id)

        self.zephyr.update_execution(
            ExecutionUpdate(
                id=execution.id,
                status=context.status,
                comment=f"Updated by zephyr-sync because of event with id: {context.event.id}",
                custom_fields={
                    name: extraction.extract(context.event, context.version_cycle)
                    for name, extraction in self.rule.custom_fields.items()
                },
                execution=execution,
            )
        )
        self._advance(ReconciliationState.STATUS_APPLIED, issue_key=issue.key, status=context.status.name)
        return execution

    def _resolve_status(self, event: RemoteEvent) -> ExecutionStatus:
        status = self.binding.status_mapping.get(event.status)
        if status is None:
            raise ResolutionError(f"Cannot find the status mapping for {event.status.value}", event.id)
        return status

    def _expand_related(self, context: ReconciliationContext, issue: Issue) -> None:
        for strategy in self.binding.strategies:
            self.logger.info("Extracting related issues", strategy=type(strategy).__name__, issue_key=issue.key)
            for related in strategy.find_related_for(self.binding.services, issue):
                self.reconcile(context, related)

    def _get_or_create_execution(
        self,
        project: Project,
        version: Version,
        cycle: Cycle,
        folder: Folder | None,
        issue: Issue,
        event: RemoteEvent,
    ) -> Execution:
        execution = self.zephyr.find_execution(project, version, cycle, folder, issue)
        if execution is not None:
            return execution

        if folder is None:
            self.logger.debug("Adding test to cycle", issue_key=issue.key, cycle=cycle.name)
            job = self.zephyr.add_test_to_cycle(cycle, issue)
        else:
            self.logger.debug("Adding test to folder", issue_key=issue.key, folder=folder.name)
            job = self.zephyr.add_test_to_folder(folder, issue)
        self._await_job(job)

        execution = self.zephyr.find_execution(project, version, cycle, folder, issue)
        if execution is None:
            raise ResolutionError(
                f"Execution for test {issue.key} not found after creation job {job.token} completed "
                f"(project {project.key}, version {version.name}, cycle {cycle.name})",
                event.id,
            )
        return execution

    def _await_job(self, job: ZephyrJob) -> None:
        timeout = self.rule.job_await_timeout
        cancelled = threading.Event()
        future = self.job_executor.submit(self.zephyr.await_job_done, job, cancelled)
        try:
            future.result(timeout=timeout)
        except FutureTimeoutError as e:
            cancelled.set()
            future.cancel()
            self.logger.warning("Job was not done in time", token=job.token, timeout=timeout)
            raise JobTimeoutError(job.token, timeout) from e

    def _advance(self, state: ReconciliationState, **context: object) -> None:
        self.state = state
        self.logger.debug("Reconciliation state changed", state=state.value, **context)
