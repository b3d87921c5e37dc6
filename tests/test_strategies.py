"""Contains unit tests for the related issues strategies."""

from unittest.mock import MagicMock

import pytest

from tests.helpers import make_issue
from zephyr_sync.config import StrategyConfig
from zephyr_sync.exceptions import ConfigurationError
from zephyr_sync.models import Issue, IssueLink, LinkDirection
from zephyr_sync.services import ServiceHolder
from zephyr_sync.strategies import (
    LinkedIssuesStrategy,
    StrategyRegistry,
    TrackedLink,
    default_registry,
)


def link(target_key: str, name: str, description: str, direction: LinkDirection) -> IssueLink:
    return IssueLink(target_key=target_key, name=name, description=description, direction=direction)


ISSUE = Issue(
    id=1,
    key="TEST-1",
    project_key="TEST",
    links=[
        link("TEST-2", "Tests", "is tested by", LinkDirection.INWARD),
        link("BAR-3", "Tests", "tests", LinkDirection.OUTWARD),
        link("TEST-4", "Relates", "relates to", LinkDirection.OUTWARD),
        link("TEST-2", "Tests", "is tested by", LinkDirection.INWARD),
        link("TEST-1", "Tests", "tests", LinkDirection.OUTWARD),
    ],
)


@pytest.fixture
def services() -> ServiceHolder:
    jira = MagicMock()
    jira.issue_by_key.side_effect = make_issue
    return ServiceHolder(jira=jira, zephyr=MagicMock())


@pytest.mark.parametrize(
    "tracked, expected",
    [
        pytest.param([{"link_name": "Tests"}], ["TEST-2", "BAR-3"], id="both directions by name"),
        pytest.param(
            [{"link_name": "tests", "direction": "OUTWARD"}], ["BAR-3"], id="outward direction only"
        ),
        pytest.param([{"link_name": "is tested by"}], ["TEST-2"], id="by description"),
        pytest.param(
            [{"link_name": "Relates"}, {"link_name": "Tests", "direction": "INWARD"}],
            ["TEST-2", "TEST-4"],
            id="several link types in link order",
        ),
        pytest.param([{"link_name": "Blocks"}], [], id="no matching links"),
    ],
)
def test_linked_issues(services: ServiceHolder, tracked: list[dict], expected: list[str]) -> None:
    strategy = LinkedIssuesStrategy.from_config(StrategyConfig(type="linked", track_linked_issues=tracked))

    related = strategy.find_related_for(services, ISSUE)

    assert [issue.key for issue in related] == expected
    assert [c.args[0] for c in services.jira.issue_by_key.call_args_list] == expected


def test_tracked_link_is_case_insensitive() -> None:
    tracked = TrackedLink(link_name="TESTS", direction=LinkDirection.OUTWARD)

    assert tracked.matches(link("BAR-3", "Tests", "tests", LinkDirection.OUTWARD))
    assert not tracked.matches(link("TEST-2", "Tests", "is tested by", LinkDirection.INWARD))


def test_default_registry_resolves_linked_strategy() -> None:
    config = StrategyConfig(type="linked", track_linked_issues=[{"link_name": "Tests"}])

    assert isinstance(default_registry().resolve(config), LinkedIssuesStrategy)


@pytest.mark.parametrize(
    "config, message",
    [
        pytest.param(StrategyConfig(type="unknown"), "Unknown related issues strategy 'unknown'", id="unknown type"),
        pytest.param(
            StrategyConfig(type="linked"), "Invalid configuration for strategy 'linked'", id="missing links"
        ),
        pytest.param(
            StrategyConfig(type="linked", track_linked_issues=[]),
            "Invalid configuration for strategy 'linked'",
            id="empty links",
        ),
    ],
)
def test_invalid_strategy_config(config: StrategyConfig, message: str) -> None:
    with pytest.raises(ConfigurationError, match=message):
        default_registry().resolve(config)


def test_registered_strategy_is_resolved() -> None:
    strategy = MagicMock()
    registry = StrategyRegistry()
    registry.register("custom", lambda config: strategy)

    assert registry.resolve(StrategyConfig(type="custom")) is strategy
