"""Strategies finding issues related to the processed one."""

from collections.abc import Callable
from typing import Literal, Protocol

import structlog
from pydantic import BaseModel, Field, ValidationError

from .config import StrategyConfig
from .exceptions import ConfigurationError
from .models import Issue, IssueLink, LinkDirection
from .services import ServiceHolder

logger = structlog.get_logger()


class RelatedIssuesStrategy(Protocol):
    """Finds issues whose executions get the same status as the processed issue."""

    def find_related_for(self, services: ServiceHolder, issue: Issue) -> list[Issue]: ...


StrategyFactory = Callable[[StrategyConfig], RelatedIssuesStrategy]


class StrategyRegistry:
    """Registry mapping a strategy type from the configuration to its implementation."""

    def __init__(self, factories: dict[str, StrategyFactory] | None = None) -> None:
        """Initialize registry."""
        self._factories: dict[str, StrategyFactory] = dict(factories or {})

    def register(self, type_name: str, factory: StrategyFactory) -> None:
        """Register a strategy factory for a type name."""
        self._factories[type_name] = factory

    def resolve(self, config: StrategyConfig) -> RelatedIssuesStrategy:
        """Create the strategy for a configuration."""
        factory = self._factories.get(config.type)
        if factory is None:
            raise ConfigurationError(
                f"Unknown related issues strategy '{config.type}'. Known strategies: {sorted(self._factories)}"
            )
        try:
            return factory(config)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration for strategy '{config.type}': {e}") from e


class TrackedLink(BaseModel):
    """Link type that relates two issues."""

    link_name: str = Field(..., description="Link type name or its inward/outward description")
    direction: LinkDirection | None = Field(default=None, description="Direction to follow, both if not set")

    def matches(self, link: IssueLink) -> bool:
        """Check whether the issue link is of the tracked type and direction."""
        names = {link.name.lower()}
        if link.description:
            names.add(link.description.lower())
        return self.link_name.lower() in names and self.direction in (None, link.direction)


class LinkedIssuesStrategyConfig(BaseModel):
    """Configuration of the strategy following issue links."""

    type: Literal["linked"] = "linked"
    track_linked_issues: list[TrackedLink] = Field(..., min_length=1)


class LinkedIssuesStrategy:
    """Finds related issues by following the Jira links of the tracked types."""

    def __init__(self, config: LinkedIssuesStrategyConfig) -> None:
        """Initialize strategy."""
        self.config = config

    @classmethod
    def from_config(cls, config: StrategyConfig) -> "LinkedIssuesStrategy":
        """Create the strategy from a generic strategy configuration."""
        return cls(LinkedIssuesStrategyConfig.model_validate(config.model_dump()))

    def find_related_for(self, services: ServiceHolder, issue: Issue) -> list[Issue]:
        """Fetch the issues linked to the issue, in link order and without duplicates."""
        seen = {issue.key}
        related = []
        for link in issue.links:
            if link.target_key in seen or not any(tracked.matches(link) for tracked in self.config.track_linked_issues):
                continue
            seen.add(link.target_key)
            related.append(services.jira.issue_by_key(link.target_key))

        logger.debug("Found linked issues", issue_key=issue.key, related=[r.key for r in related])
        return related


def default_registry() -> StrategyRegistry:
    """Registry with the built-in strategies."""
    return StrategyRegistry({"linked": LinkedIssuesStrategy.from_config})
