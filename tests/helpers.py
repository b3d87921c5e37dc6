"""Test data and fakes shared by the zephyr sync tests."""

from zephyr_sync.models import (
    Cycle,
    EventStatus,
    Execution,
    ExecutionStatus,
    Folder,
    Issue,
    Project,
    RemoteEvent,
    Version,
)

VERSION = Version(id=1, name="1.0.0")
PROJECT_TEST = Project(id=1, key="TEST", name="TEST", versions=[VERSION])
PROJECT_BAR = Project(id=2, key="BAR", name="BAR", versions=[VERSION])
PASS = ExecutionStatus(id=1, name="PASS", type=1)
WIP = ExecutionStatus(id=2, name="WIP", type=2)

ROOT_EVENT = RemoteEvent(id="1", name="1.0.0|TestCycle|2024-05-01T10:00:00Z")
FOLDER_EVENT = RemoteEvent(id="2", name="TestFolder", parent_id="1")
TEST_EVENT = RemoteEvent(id="3", name="TEST_1234", parent_id="2", status=EventStatus.SUCCESS)


class FakeEventProvider:
    """Event provider serving a fixed set of events and recording requests."""

    def __init__(self, *events: RemoteEvent) -> None:
        self.events = {event.id: event for event in events}
        self.requested: list[str] = []

    def get_event(self, event_id: str) -> RemoteEvent:
        self.requested.append(event_id)
        return self.events[event_id]


def make_issue(key: str) -> Issue:
    return Issue(id=int(key.split("-")[1]), key=key, project_key=key.split("-")[0])


def make_cycle(name: str, project: Project, version: Version) -> Cycle:
    return Cycle(id=f"c{project.id}", name=name, project_id=project.id, version_id=version.id)


def make_folder(cycle: Cycle, name: str) -> Folder:
    return Folder(
        id=f"f{cycle.id}",
        name=name,
        project_id=cycle.project_id,
        version_id=cycle.version_id,
        cycle_id=cycle.id,
    )


def make_execution(
    project: Project, version: Version, cycle: Cycle, folder: Folder | None, issue: Issue
) -> Execution:
    return Execution(
        id=f"e-{issue.key}",
        issue_id=issue.id,
        project_id=project.id,
        cycle_id=cycle.id,
        version_id=version.id,
        folder_id=folder.id if folder else None,
    )
