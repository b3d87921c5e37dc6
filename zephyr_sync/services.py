"""Capabilities the engine consumes and the connections that provide them."""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from .config import ConnectionConfig, ProcessorSettings, ZephyrType
from .jira_client import JiraClient
from .models import (
    Cycle,
    Execution,
    ExecutionStatus,
    ExecutionUpdate,
    Folder,
    Issue,
    Project,
    RemoteEvent,
    Version,
    ZephyrJob,
)
from .zephyr_client import ZephyrSquadClient
from .zephyr_scale_client import ScaleTestCaseClient, ZephyrScaleServerClient

logger = structlog.get_logger()


class JiraService(Protocol):
    """Issue tracker capability."""

    def project_by_key(self, project_key: str) -> Project: ...

    def issue_by_key(self, issue_key: str) -> Issue: ...

    def close(self) -> None: ...


class ZephyrService(Protocol):
    """Test management capability."""

    def get_cycle(self, name: str, project: Project, version: Version) -> Cycle | None: ...

    def create_cycle(self, name: str, project: Project, version: Version) -> Cycle: ...

    def get_folder(self, cycle: Cycle, name: str) -> Folder | None: ...

    def create_folder(self, cycle: Cycle, name: str) -> Folder: ...

    def get_execution_statuses(self) -> list[ExecutionStatus]: ...

    def find_execution(
        self, project: Project, version: Version, cycle: Cycle, folder: Folder | None, issue: Issue
    ) -> Execution | None: ...

    def create_execution(
        self, project: Project, version: Version, cycle: Cycle, folder: Folder | None, issue: Issue
    ) -> Execution: ...

    def add_test_to_cycle(self, cycle: Cycle, issue: Issue) -> ZephyrJob: ...

    def add_test_to_folder(self, folder: Folder, issue: Issue) -> ZephyrJob: ...

    def await_job_done(self, job: ZephyrJob, cancelled: threading.Event | None = None) -> None: ...

    def update_execution(self, update: ExecutionUpdate) -> Any: ...

    def close(self) -> None: ...


class EventProvider(Protocol):
    """Source of events used to walk an event's ancestors."""

    def get_event(self, event_id: str) -> RemoteEvent: ...


@dataclass(frozen=True)
class ServiceHolder:
    """Jira and Zephyr services of one named connection and the Zephyr variant they talk to."""

    jira: JiraService
    zephyr: ZephyrService
    zephyr_type: ZephyrType = ZephyrType.SQUAD

    def close(self) -> None:
        """Close both services, a failure closing one does not prevent closing the other."""
        for service in (self.jira, self.zephyr):
            try:
                service.close()
            except Exception as e:
                logger.error("Cannot close service", service=type(service).__name__, error=str(e))


ConnectionFactory = Callable[[ConnectionConfig, float], ServiceHolder]


def _squad_services(connection: ConnectionConfig, poll_interval: float) -> ServiceHolder:
    return ServiceHolder(
        jira=JiraClient(connection.jira_url, connection.credentials),
        zephyr=ZephyrSquadClient(connection.zephyr_base_url, connection.credentials, poll_interval=poll_interval),
        zephyr_type=ZephyrType.SQUAD,
    )


def _scale_server_services(connection: ConnectionConfig, poll_interval: float) -> ServiceHolder:
    return ServiceHolder(
        jira=ScaleTestCaseClient(connection.jira_url, connection.credentials),
        zephyr=ZephyrScaleServerClient(
            connection.zephyr_base_url,
            connection.credentials,
            status_project_key=connection.status_project_key,
        ),
        zephyr_type=ZephyrType.SCALE_SERVER,
    )


CONNECTION_FACTORIES: dict[ZephyrType, ConnectionFactory] = {
    ZephyrType.SQUAD: _squad_services,
    ZephyrType.SCALE_SERVER: _scale_server_services,
}


def create_services(connection: ConnectionConfig, poll_interval: float) -> ServiceHolder:
    """Create the services for a configured connection."""
    logger.info("Creating services", connection=connection.name, zephyr_type=connection.zephyr_type.value)
    return CONNECTION_FACTORIES[connection.zephyr_type](connection, poll_interval)


def create_connections(settings: ProcessorSettings) -> dict[str, ServiceHolder]:
    """Create services for every configured connection."""
    return {
        connection.name: create_services(connection, settings.job_poll_interval_seconds)
        for connection in settings.connections
    }
