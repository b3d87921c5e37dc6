"""Event reconciliation engine synchronizing test events to Zephyr executions."""

import re
from concurrent.futures import ThreadPoolExecutor
from types import TracebackType

import structlog
from structlog.stdlib import BoundLogger

from .ancestry import AncestryResolver
from .config import ProcessingRule, ProcessorSettings, ZephyrType
from .data_provider import DataProviderClient
from .exceptions import ConfigurationError, EventProcessingError
from .models import EventStatus, ExecutionStatus, RemoteEvent
from .reconciler import ExecutionReconciler, RuleBinding
from .services import EventProvider, ServiceHolder, create_connections
from .strategies import StrategyRegistry, default_registry

# Zephyr variants taking the version from the root event name with the rule's version pattern
VERSION_PATTERN_TYPES = {ZephyrType.SCALE_SERVER}


class EventReconciliationEngine:
    """Matches events to processing rules and reconciles them with Zephyr executions.

    Use :meth:`build` to create the engine: it reads the execution statuses of every
    destination and fails before the engine is exposed to events when a rule cannot
    be satisfied. After that the engine only reads what was resolved at build time.
    """

    def __init__(
        self,
        bindings: list[RuleBinding],
        connections: dict[str, ServiceHolder],
        provider: EventProvider,
        max_ancestry_depth: int | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        """Initialize engine from already resolved rule bindings."""
        self.bindings = bindings
        self.connections = connections
        self.provider = provider
        self.max_ancestry_depth = max_ancestry_depth
        self.logger = logger or structlog.get_logger().bind(component="engine")
        self._job_executor = ThreadPoolExecutor(thread_name_prefix="zephyr-job-await")

    @classmethod
    def build(
        cls,
        rules: list[ProcessingRule],
        connections: dict[str, ServiceHolder],
        provider: EventProvider,
        strategy_registry: StrategyRegistry | None = None,
        max_ancestry_depth: int | None = None,
        logger: BoundLogger | None = None,
    ) -> "EventReconciliationEngine":
        """Resolve status mappings and strategies for every rule and create the engine."""
        logger = logger or structlog.get_logger().bind(component="engine")
        registry = strategy_registry or default_registry()
        known_statuses: dict[str, dict[str, ExecutionStatus]] = {}
        bindings = []

        for rule in rules:
            services = connections.get(rule.destination)
            if services is None:
                raise ConfigurationError(
                    f"Rule {rule.label} refers to unknown connection {rule.destination}. "
                    f"Known connections: {sorted(connections)}"
                )

            if rule.destination not in known_statuses:
                logger.info("Requesting statuses for connection", connection=rule.destination)
                known_statuses[rule.destination] = {
                    status.name: status for status in services.zephyr.get_execution_statuses()
                }
            statuses = known_statuses[rule.destination]

            status_mapping: dict[EventStatus, ExecutionStatus] = {}
            for event_status, status_name in rule.status_mapping.items():
                if status_name not in statuses:
                    raise ConfigurationError(
                        f"Cannot find status {status_name} in Zephyr from connection {rule.destination}. "
                        f"Known statuses: {sorted(statuses)}"
                    )
                status_mapping[event_status] = statuses[status_name]

            version_pattern = None
            if rule.version_pattern is not None:
                if services.zephyr_type in VERSION_PATTERN_TYPES:
                    version_pattern = re.compile(rule.version_pattern)
                else:
                    logger.warning(
                        "Version pattern has no effect for the connection",
                        rule=rule.label,
                        zephyr_type=services.zephyr_type.value,
                    )

            bindings.append(
                RuleBinding(
                    rule=rule,
                    services=services,
                    status_mapping=status_mapping,
                    strategies=[registry.resolve(config) for config in rule.related_issues_strategies],
                    version_pattern=version_pattern,
                )
            )

        logger.info("Engine built", rules=len(bindings), connections=sorted(connections))
        return cls(bindings, connections, provider, max_ancestry_depth=max_ancestry_depth, logger=logger)

    @classmethod
    def from_settings(
        cls,
        settings: ProcessorSettings,
        strategy_registry: StrategyRegistry | None = None,
        logger: BoundLogger | None = None,
    ) -> "EventReconciliationEngine":
        """Create connections and the data provider client from the settings and build the engine."""
        logger = logger or structlog.get_logger().bind(component="engine")
        if settings.data_provider_url is None:
            raise ConfigurationError("Data provider URL is not configured")

        connections = create_connections(settings)
        provider = DataProviderClient(settings.data_provider_url)
        try:
            return cls.build(
                settings.processors,
                connections,
                provider,
                strategy_registry=strategy_registry,
                max_ancestry_depth=settings.max_ancestry_depth,
                logger=logger,
            )
        except Exception:
            for services in connections.values():
                services.close()
            provider.close()
            raise

    def matching_rules(self, event_name: str) -> list[ProcessingRule]:
        """Rules whose issue format matches the whole event name."""
        return [binding.rule for binding in self._matching_bindings(event_name)]

    def process_event(self, event: RemoteEvent) -> bool:
        """Synchronize the event to Zephyr.

        Returns False when no rule matches the event. Every matching rule is processed
        even if another one fails; failures are raised after all rules were tried.
        """
        bindings = self._matching_bindings(event.name)
        if not bindings:
            self.logger.debug("No rule matches event", event_id=event.id, event_name=event.name)
            return False

        logger = self.logger.bind(event_id=event.id, event_name=event.name)
        logger.info("Processing event", matches=len(bindings), status=event.status.value)
        ancestry = AncestryResolver(self.provider, self.max_ancestry_depth)
        errors: list[Exception] = []
        for binding in bindings:
            try:
                ExecutionReconciler(binding, self._job_executor, logger).process(event, ancestry)
            except Exception as e:
                errors.append(e)

        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise EventProcessingError(event.id, errors)
        return True

    def close(self) -> None:
        """Stop awaiting jobs and close every connection."""
        self.logger.info("Closing engine")
        self._job_executor.shutdown(wait=False, cancel_futures=True)
        for services in self.connections.values():
            services.close()
        close_provider = getattr(self.provider, "close", None)
        if close_provider is not None:
            close_provider()

    def __enter__(self) -> "EventReconciliationEngine":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def _matching_bindings(self, event_name: str) -> list[RuleBinding]:
        return [binding for binding in self.bindings if binding.rule.matches(event_name)]
