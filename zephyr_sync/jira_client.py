"""JIRA API client for project and issue lookups."""

from typing import Any

import structlog

from .config import Credentials
from .models import Issue, IssueLink, LinkDirection, Project, Version
from .rest_client import RestClient

logger = structlog.get_logger()

REST_API_PREFIX = "rest/api/latest"


class JiraClient(RestClient):
    """JIRA API client resolving projects and test issues."""

    service_name = "JIRA"

    def __init__(self, base_url: str, credentials: Credentials, timeout: float = 30) -> None:
        """Initialize JIRA client."""
        super().__init__(base_url, REST_API_PREFIX, credentials, timeout=timeout)

    def project_by_key(self, project_key: str) -> Project:
        """Get JIRA project with its versions by key."""
        if not project_key.strip():
            raise ValueError("project key cannot be blank")
        logger.debug("Finding JIRA project", project_key=project_key)

        data = self._make_request("GET", f"project/{project_key}")
        return Project(
            id=data["id"],
            key=data["key"],
            name=data.get("name"),
            versions=[
                Version(id=version["id"], name=version.get("name") or "unknown version name")
                for version in data.get("versions", [])
            ],
        )

    def issue_by_key(self, issue_key: str) -> Issue:
        """Get JIRA issue by key."""
        if not issue_key.strip():
            raise ValueError("issue key cannot be blank")
        logger.debug("Finding JIRA issue", issue_key=issue_key)

        data = self._make_request(
            "GET",
            f"issue/{issue_key}",
            params={"fields": "project,issuelinks"},
        )
        return self._parse_issue(data)

    def _parse_issue(self, issue_data: dict[str, Any]) -> Issue:
        """Parse JIRA issue data into our standardized model."""
        fields = issue_data.get("fields", {})
        links = [
            link for link in (self._parse_link(link_data) for link_data in fields.get("issuelinks", [])) if link
        ]
        return Issue(
            id=issue_data["id"],
            key=issue_data["key"],
            project_key=fields.get("project", {}).get("key") or issue_data["key"].split("-")[0],
            links=links,
        )

    def _parse_link(self, link_data: dict[str, Any]) -> IssueLink | None:
        """Parse JIRA issue link, the direction is relative to the issue holding the link."""
        link_type = link_data.get("type", {})
        if "outwardIssue" in link_data:
            target = link_data["outwardIssue"]
            direction = LinkDirection.OUTWARD
            description = link_type.get("outward")
        elif "inwardIssue" in link_data:
            target = link_data["inwardIssue"]
            direction = LinkDirection.INWARD
            description = link_type.get("inward")
        else:
            logger.warning("Issue link without target issue", link_id=link_data.get("id"))
            return None

        return IssueLink(
            target_key=target["key"],
            name=link_type.get("name", ""),
            description=description,
            direction=direction,
        )
