"""Fixtures shared by the zephyr sync tests."""

from collections.abc import Generator
from unittest.mock import MagicMock

import pytest
import structlog

from tests.helpers import (
    FOLDER_EVENT,
    PASS,
    PROJECT_BAR,
    PROJECT_TEST,
    ROOT_EVENT,
    TEST_EVENT,
    WIP,
    FakeEventProvider,
    make_cycle,
    make_execution,
    make_folder,
    make_issue,
)
from zephyr_sync.config import ProcessingRule
from zephyr_sync.engine import EventReconciliationEngine
from zephyr_sync.models import EventStatus
from zephyr_sync.services import ServiceHolder


@pytest.fixture(autouse=True)
def configure_structlog_for_caplog() -> Generator[None, None, None]:
    """Configure structlog for use with caplog."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def remote() -> MagicMock:
    """Jira and Zephyr mocks sharing a parent so the order of all remote calls is recorded."""
    remote = MagicMock()
    remote.jira.issue_by_key.side_effect = make_issue
    remote.jira.project_by_key.side_effect = {"TEST": PROJECT_TEST, "BAR": PROJECT_BAR}.__getitem__
    remote.zephyr.get_execution_statuses.return_value = [PASS, WIP]
    remote.zephyr.get_cycle.side_effect = make_cycle
    remote.zephyr.get_folder.side_effect = make_folder
    remote.zephyr.find_execution.side_effect = make_execution
    return remote


@pytest.fixture
def services(remote: MagicMock) -> ServiceHolder:
    return ServiceHolder(jira=remote.jira, zephyr=remote.zephyr)


@pytest.fixture
def provider() -> FakeEventProvider:
    return FakeEventProvider(ROOT_EVENT, FOLDER_EVENT, TEST_EVENT)


@pytest.fixture
def rule() -> ProcessingRule:
    return ProcessingRule(
        issue_format=r"TEST_\d+",
        status_mapping={EventStatus.FAILED: "WIP", EventStatus.SUCCESS: "PASS"},
    )


@pytest.fixture
def engine(
    rule: ProcessingRule, services: ServiceHolder, provider: FakeEventProvider, remote: MagicMock
) -> Generator[EventReconciliationEngine, None, None]:
    """Engine built for the default rule, with the calls made while building forgotten."""
    engine = EventReconciliationEngine.build([rule], {"default": services}, provider)
    remote.reset_mock()
    yield engine
    engine.close()
