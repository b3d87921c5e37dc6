"""Data models for the zephyr sync engine."""

from datetime import datetime
from enum import Enum
from typing import Any, NamedTuple

from pydantic import BaseModel, Field


class EventStatus(str, Enum):
    """Observed outcome of a test event."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class LinkDirection(str, Enum):
    """Direction of a Jira issue link relative to the issue that holds it."""

    INWARD = "INWARD"
    OUTWARD = "OUTWARD"


class RemoteEvent(BaseModel):
    """Event observed in the event stream."""

    id: str
    name: str
    parent_id: str | None = None
    status: EventStatus = EventStatus.SUCCESS
    type: str | None = None
    start_timestamp: datetime | None = None

    @property
    def short_string(self) -> str:
        """Short representation used in log records and error messages."""
        return f"id: {self.id}; name: {self.name}"


class VersionCycleKey(NamedTuple):
    """Pair of version and cycle names an execution belongs to."""

    version: str
    cycle: str


class Version(BaseModel):
    """Jira project version."""

    id: int
    name: str


class Project(BaseModel):
    """Jira project with its versions."""

    id: int
    key: str
    name: str | None = None
    versions: list[Version] = Field(default_factory=list)

    def find_version(self, name: str) -> Version | None:
        """Find the project version with the given name."""
        return next((version for version in self.versions if version.name == name), None)


class IssueLink(BaseModel):
    """Link from an issue to another issue."""

    target_key: str
    name: str
    description: str | None = None
    direction: LinkDirection


class Issue(BaseModel):
    """Jira issue or Zephyr Scale test case representing a test."""

    id: int | None = None
    key: str
    project_key: str
    links: list[IssueLink] = Field(default_factory=list)


class ExecutionStatus(BaseModel):
    """Execution status known by Zephyr."""

    id: int
    name: str
    type: int | None = None
    description: str | None = None


class Cycle(BaseModel):
    """Zephyr test cycle (a test run on Zephyr Scale) for a project and version."""

    id: str
    name: str
    project_id: int
    version_id: int


class Folder(BaseModel):
    """Folder inside a Zephyr test cycle."""

    id: str
    name: str
    project_id: int
    version_id: int
    cycle_id: str


class Execution(BaseModel):
    """Zephyr record tracking the result of a test in a cycle."""

    id: str
    issue_id: int | None = None
    issue_key: str | None = None
    project_id: int
    cycle_id: str
    version_id: int
    version_name: str | None = None
    folder_id: str | None = None
    status: ExecutionStatus | None = None


class ExecutionUpdate(BaseModel):
    """Update to apply to an execution."""

    id: str
    status: ExecutionStatus
    comment: str | None = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    execution: Execution | None = None


class ZephyrJob(BaseModel):
    """Handle of an asynchronous Zephyr operation."""

    token: str


class JobProgress(BaseModel):
    """Progress of an asynchronous Zephyr operation."""

    progress: float = 0.0
    message: str | None = None
    error_message: str | None = None

    @property
    def done(self) -> bool:
        """Whether the job finished."""
        return self.progress >= 1.0


class ProcessedEventReport(BaseModel):
    """Report about an event that was synchronized to Zephyr."""

    event_id: str
    event_name: str
    status: EventStatus
    processed_at: datetime

    @property
    def name(self) -> str:
        """Human readable report name."""
        return f"Updated test status in zephyr because of event '{self.event_name}'"
