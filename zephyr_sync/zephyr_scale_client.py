"""Zephyr Scale Server (ATM) clients for test cases, test runs and test results."""

import threading
from typing import Any

import structlog

from .config import Credentials
from .exceptions import JobCancelledError, ResolutionError
from .jira_client import JiraClient
from .jira_client import REST_API_PREFIX as JIRA_API_PREFIX
from .models import (
    Cycle,
    Execution,
    ExecutionStatus,
    ExecutionUpdate,
    Folder,
    Issue,
    Project,
    Version,
    ZephyrJob,
)
from .rest_client import RestClient

logger = structlog.get_logger()

REST_API_PREFIX = "rest/atm/1.0"
TESTS_API_PREFIX = "rest/tests/1.0"
NOT_EXECUTED = "Not Executed"
SEARCH_PAGE_SIZE = 100


class ScaleTestCaseClient(JiraClient):
    """Jira client resolving test keys to Zephyr Scale test cases instead of Jira issues."""

    def issue_by_key(self, issue_key: str) -> Issue:
        """Get Zephyr Scale test case by key."""
        if not issue_key.strip():
            raise ValueError("test case key cannot be blank")
        logger.debug("Finding test case", test_case_key=issue_key)

        data = self._make_request(
            "GET",
            f"testcase/{issue_key}",
            params={"fields": "id,key,projectKey"},
            api_url=f"{self.base_url}/{REST_API_PREFIX}",
        )
        return Issue(
            id=data.get("id"),
            key=data["key"],
            project_key=data.get("projectKey") or data["key"].split("-")[0],
        )


class ZephyrScaleServerClient(RestClient):
    """Zephyr Scale Server API client.

    Test runs play the role of cycles and test results the role of executions.
    Test runs hold their results directly, so the folder level collapses onto the
    test run itself. Test results are added synchronously and the returned jobs
    are done as soon as they exist.
    """

    service_name = "Zephyr Scale"

    def __init__(
        self,
        base_url: str,
        credentials: Credentials,
        status_project_key: str,
        timeout: float = 30,
    ) -> None:
        """Initialize Zephyr Scale Server client."""
        super().__init__(base_url, REST_API_PREFIX, credentials, timeout=timeout)
        self.status_project_key = status_project_key

    def get_execution_statuses(self) -> list[ExecutionStatus]:
        """Get test result statuses of the status project."""
        logger.info("Requesting execution statuses", url=self.base_url, project_key=self.status_project_key)
        project = self._make_request(
            "GET",
            f"project/{self.status_project_key}",
            api_url=f"{self.base_url}/{JIRA_API_PREFIX}",
        )
        data = self._make_request(
            "GET",
            f"project/{project['id']}/testresultstatus",
            api_url=f"{self.base_url}/{TESTS_API_PREFIX}",
        )
        return [
            ExecutionStatus(id=status["id"], name=status["name"], description=status.get("description"))
            for status in data
        ]

    def get_cycle(self, name: str, project: Project, version: Version) -> Cycle | None:
        """Find test run by name for the project version."""
        logger.debug("Searching test run", cycle=name, project=project.key, version=version.name)
        start_at = 0
        while True:
            test_runs = self._make_request(
                "GET",
                "testrun/search",
                params={
                    "query": f'projectKey = "{project.key}"',
                    "fields": "key,name,version,folder",
                    "maxResults": SEARCH_PAGE_SIZE,
                    "startAt": start_at,
                },
            )
            for test_run in test_runs:
                if test_run.get("name") == name and test_run.get("version") in (None, version.name):
                    return Cycle(id=test_run["key"], name=name, project_id=project.id, version_id=version.id)
            if len(test_runs) < SEARCH_PAGE_SIZE:
                return None
            start_at += len(test_runs)

    def create_cycle(self, name: str, project: Project, version: Version) -> Cycle:
        """Create test run for the project version."""
        logger.info("Creating test run", cycle=name, project=project.key, version=version.name)
        data = self._make_request(
            "POST",
            "testrun",
            data={"name": name, "projectKey": project.key, "version": version.name},
        )
        return Cycle(id=data["key"], name=name, project_id=project.id, version_id=version.id)

    def get_folder(self, cycle: Cycle, name: str) -> Folder | None:
        """Test run standing in for the folder."""
        return self._folder(cycle, name)

    def create_folder(self, cycle: Cycle, name: str) -> Folder:
        """Test run standing in for the folder, nothing is created remotely."""
        return self._folder(cycle, name)

    def find_execution(
        self,
        project: Project,
        version: Version,
        cycle: Cycle,
        folder: Folder | None,
        issue: Issue,
    ) -> Execution | None:
        """Find the last test result of the test case in the test run."""
        logger.debug("Searching test result", test_case_key=issue.key, test_run=cycle.id)
        result = self._last_result(cycle.id, issue.key)
        if result is None:
            return None
        return self._execution(str(result["id"]), project, version, cycle, folder, issue)

    def create_execution(
        self,
        project: Project,
        version: Version,
        cycle: Cycle,
        folder: Folder | None,
        issue: Issue,
    ) -> Execution:
        """Create a new test result of the test case in the test run."""
        logger.info("Creating test result", test_case_key=issue.key, test_run=cycle.id)
        data = self._create_result(cycle.id, issue.key, version.name)
        return self._execution(str(data["id"]), project, version, cycle, folder, issue)

    def add_test_to_cycle(self, cycle: Cycle, issue: Issue) -> ZephyrJob:
        """Add the test case to the test run."""
        self._create_result(cycle.id, issue.key)
        return ZephyrJob(token=f"{cycle.id}/{issue.key}")

    def add_test_to_folder(self, folder: Folder, issue: Issue) -> ZephyrJob:
        """Add the test case to the test run the folder stands for."""
        self._create_result(folder.cycle_id, issue.key)
        return ZephyrJob(token=f"{folder.cycle_id}/{issue.key}")

    def await_job_done(self, job: ZephyrJob, cancelled: threading.Event | None = None) -> None:
        """Jobs are done when they are created."""
        if cancelled is not None and cancelled.is_set():
            raise JobCancelledError(f"Awaiting job {job.token} was cancelled")

    def update_execution(self, update: ExecutionUpdate) -> dict[str, Any]:
        """Replace the last test result of the test case with the new status."""
        execution = update.execution
        if execution is None or execution.issue_key is None:
            raise ValueError(f"test result {update.id} cannot be updated without its test case")
        logger.info("Updating test result", test_case_key=execution.issue_key, status=update.status.name)

        result = self._last_result(execution.cycle_id, execution.issue_key)
        if result is None:
            raise ResolutionError(
                f"Test results for test case {execution.issue_key} in test run {execution.cycle_id} not found"
            )
        for field_name in ("actualStartDate", "actualEndDate"):
            result.pop(field_name, None)
        result["status"] = update.status.name
        if execution.version_name is not None:
            result["version"] = execution.version_name
        if update.comment is None:
            result.pop("comment", None)
        else:
            result["comment"] = update.comment
        if update.custom_fields:
            result["customFields"] = {**result.get("customFields", {}), **update.custom_fields}

        return self._make_request(
            "PUT",
            f"testrun/{execution.cycle_id}/testcase/{execution.issue_key}/testresult",
            data=result,
        )

    def _last_result(self, test_run_key: str, test_case_key: str) -> dict[str, Any] | None:
        results = self._make_request("GET", f"testrun/{test_run_key}/testresults")
        return max(
            (result for result in results if result.get("testCaseKey") == test_case_key),
            key=lambda result: int(result["id"]),
            default=None,
        )

    def _create_result(self, test_run_key: str, test_case_key: str, version: str | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {"status": NOT_EXECUTED}
        if version is not None:
            payload["version"] = version
        logger.info("Adding test result", test_case_key=test_case_key, test_run=test_run_key)
        return self._make_request("POST", f"testrun/{test_run_key}/testcase/{test_case_key}/testresult", data=payload)

    def _folder(self, cycle: Cycle, name: str) -> Folder:
        return Folder(
            id=cycle.id,
            name=name,
            project_id=cycle.project_id,
            version_id=cycle.version_id,
            cycle_id=cycle.id,
        )

    def _execution(
        self,
        execution_id: str,
        project: Project,
        version: Version,
        cycle: Cycle,
        folder: Folder | None,
        issue: Issue,
    ) -> Execution:
        return Execution(
            id=execution_id,
            issue_id=issue.id,
            issue_key=issue.key,
            project_id=project.id,
            cycle_id=cycle.id,
            version_id=version.id,
            version_name=version.name,
            folder_id=folder.id if folder else None,
        )
