"""Zephyr Squad (ZAPI) client for cycles, folders and executions."""

import threading
import time
from typing import Any

import structlog

from .config import Credentials
from .exceptions import JobCancelledError, RemoteServiceError
from .models import (
    Cycle,
    Execution,
    ExecutionStatus,
    ExecutionUpdate,
    Folder,
    Issue,
    JobProgress,
    Project,
    Version,
    ZephyrJob,
)
from .rest_client import RestClient

logger = structlog.get_logger()

REST_API_PREFIX = "rest/zapi/latest"
ADD_TESTS_BY_KEYS = "1"


class ZephyrSquadClient(RestClient):
    """Zephyr Squad API client."""

    service_name = "Zephyr"

    def __init__(
        self,
        base_url: str,
        credentials: Credentials,
        poll_interval: float = 0.5,
        timeout: float = 30,
    ) -> None:
        """Initialize Zephyr Squad client."""
        super().__init__(base_url, REST_API_PREFIX, credentials, timeout=timeout)
        self.poll_interval = poll_interval

    def get_execution_statuses(self) -> list[ExecutionStatus]:
        """Get execution statuses known by Zephyr."""
        logger.info("Requesting execution statuses", url=self.base_url)
        data = self._make_request("GET", "util/testExecutionStatus")
        return [
            ExecutionStatus(
                id=status["id"],
                name=status["name"],
                type=status.get("type"),
                description=status.get("description"),
            )
            for status in data
        ]

    def get_cycle(self, name: str, project: Project, version: Version) -> Cycle | None:
        """Find cycle by name for the project version."""
        logger.debug("Searching cycle", cycle=name, project=project.key, version=version.name)
        data = self._make_request("GET", "cycle", params={"projectId": project.id, "versionId": version.id})
        for cycle_id, cycle_data in data.items():
            # the response also contains "recordsCount" and the ad hoc cycle with id -1
            if not isinstance(cycle_data, dict) or cycle_id == "-1":
                continue
            if cycle_data.get("name") == name:
                return Cycle(id=cycle_id, name=name, project_id=project.id, version_id=version.id)
        return None

    def create_cycle(self, name: str, project: Project, version: Version) -> Cycle:
        """Create cycle for the project version."""
        logger.info("Creating cycle", cycle=name, project=project.key, version=version.name)
        data = self._make_request(
            "POST",
            "cycle",
            data={"name": name, "projectId": str(project.id), "versionId": str(version.id)},
        )
        return Cycle(id=str(data["id"]), name=name, project_id=project.id, version_id=version.id)

    def get_folder(self, cycle: Cycle, name: str) -> Folder | None:
        """Find folder by name inside the cycle."""
        logger.debug("Searching folder", folder=name, cycle=cycle.name)
        data = self._make_request(
            "GET",
            f"cycle/{cycle.id}/folders",
            params={"projectId": cycle.project_id, "versionId": cycle.version_id},
        )
        for folder_data in data:
            if folder_data.get("folderName") == name:
                return self._folder(str(folder_data["folderId"]), name, cycle)
        return None

    def create_folder(self, cycle: Cycle, name: str) -> Folder:
        """Create folder inside the cycle."""
        logger.info("Creating folder", folder=name, cycle=cycle.name)
        data = self._make_request(
            "POST",
            "folder/create",
            data={
                "name": name,
                "cycleId": cycle.id,
                "projectId": cycle.project_id,
                "versionId": cycle.version_id,
            },
        )
        return self._folder(str(data["id"]), name, cycle)

    def find_execution(
        self,
        project: Project,
        version: Version,
        cycle: Cycle,
        folder: Folder | None,
        issue: Issue,
    ) -> Execution | None:
        """Find the last execution of the issue in the cycle or folder."""
        params: dict[str, Any] = {
            "issueId": issue.id,
            "projectId": project.id,
            "versionId": version.id,
            "cycleId": cycle.id,
        }
        if folder is not None:
            params["folderId"] = folder.id
        logger.debug("Searching execution", issue_key=issue.key, cycle=cycle.name, folder=folder and folder.name)

        data = self._make_request("GET", "execution", params=params)
        executions = [
            self._parse_execution(execution)
            for execution in data.get("executions", [])
            if folder is not None or not execution.get("folderId")
        ]
        return max(executions, key=lambda execution: int(execution.id), default=None)

    def create_execution(
        self,
        project: Project,
        version: Version,
        cycle: Cycle,
        folder: Folder | None,
        issue: Issue,
    ) -> Execution:
        """Create a new execution of the issue in the cycle or folder."""
        payload: dict[str, Any] = {
            "issueId": issue.id,
            "projectId": project.id,
            "versionId": version.id,
            "cycleId": cycle.id,
        }
        if folder is not None:
            payload["folderId"] = folder.id
        logger.info("Creating execution", issue_key=issue.key, cycle=cycle.name, folder=folder and folder.name)

        data = self._make_request("POST", "execution", data=payload)
        # the response maps the id of the new execution to its content
        execution_data = next(iter(data.values()))
        return self._parse_execution(execution_data)

    def add_test_to_cycle(self, cycle: Cycle, issue: Issue) -> ZephyrJob:
        """Start a job adding the test to the cycle."""
        return self._add_tests(issue, cycle.id, cycle.project_id, cycle.version_id)

    def add_test_to_folder(self, folder: Folder, issue: Issue) -> ZephyrJob:
        """Start a job adding the test to the folder."""
        return self._add_tests(issue, folder.cycle_id, folder.project_id, folder.version_id, folder.id)

    def get_job_progress(self, job: ZephyrJob) -> JobProgress:
        """Get the progress of a job."""
        data = self._make_request("GET", f"execution/jobProgress/{job.token}")
        return JobProgress(
            progress=data.get("progress", 0.0),
            message=data.get("message"),
            error_message=data.get("errorMessage") or None,
        )

    def await_job_done(self, job: ZephyrJob, cancelled: threading.Event | None = None) -> None:
        """Poll the job progress until it is done, failed or the wait was cancelled."""
        logger.debug("Awaiting job", token=job.token)
        while True:
            if cancelled is not None and cancelled.is_set():
                raise JobCancelledError(f"Awaiting job {job.token} was cancelled")

            progress = self.get_job_progress(job)
            if progress.error_message:
                raise RemoteServiceError(f"Zephyr job {job.token} failed: {progress.error_message}")
            if progress.done:
                logger.debug("Job done", token=job.token, message=progress.message)
                return

            if cancelled is not None:
                cancelled.wait(self.poll_interval)
            else:
                time.sleep(self.poll_interval)

    def update_execution(self, update: ExecutionUpdate) -> dict[str, Any]:
        """Set the status of an execution."""
        logger.info("Updating execution", execution_id=update.id, status=update.status.name)
        payload: dict[str, Any] = {"status": str(update.status.id)}
        if update.comment is not None:
            payload["comment"] = update.comment
        if update.custom_fields:
            payload["customFields"] = update.custom_fields
        return self._make_request("PUT", f"execution/{update.id}/execute", data=payload)

    def _add_tests(
        self,
        issue: Issue,
        cycle_id: str,
        project_id: int,
        version_id: int,
        folder_id: str | None = None,
    ) -> ZephyrJob:
        payload: dict[str, Any] = {
            "issues": [issue.key],
            "cycleId": cycle_id,
            "projectId": project_id,
            "versionId": version_id,
            "method": ADD_TESTS_BY_KEYS,
        }
        if folder_id is not None:
            payload["folderId"] = folder_id
        logger.info("Adding test", issue_key=issue.key, cycle_id=cycle_id, folder_id=folder_id)

        data = self._make_request("POST", "execution/addTestsToCycle/", data=payload)
        return ZephyrJob(token=data["jobProgressToken"])

    def _folder(self, folder_id: str, name: str, cycle: Cycle) -> Folder:
        return Folder(
            id=folder_id,
            name=name,
            project_id=cycle.project_id,
            version_id=cycle.version_id,
            cycle_id=cycle.id,
        )

    def _parse_execution(self, data: dict[str, Any]) -> Execution:
        status = None
        if data.get("executionStatus") is not None:
            status = ExecutionStatus(id=data["executionStatus"], name=data.get("executionStatusName", ""))
        return Execution(
            id=str(data["id"]),
            issue_id=data["issueId"],
            project_id=data["projectId"],
            cycle_id=str(data["cycleId"]),
            version_id=data["versionId"],
            folder_id=str(data["folderId"]) if data.get("folderId") else None,
            status=status,
        )
