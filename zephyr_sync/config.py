"""Configuration management for the zephyr sync engine."""

import json
import re
from enum import Enum
from pathlib import Path
from typing import Any

from decouple import UndefinedValueError, config
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .exceptions import ConfigurationError
from .models import EventStatus, RemoteEvent, VersionCycleKey

DEFAULT_CONNECTION_NAME = "default"


class ZephyrType(str, Enum):
    """Zephyr backend variant a connection talks to."""

    SQUAD = "SQUAD"
    SCALE_SERVER = "SCALE_SERVER"


class ExecutionMode(str, Enum):
    """How the engine interacts with existing executions."""

    UPDATE_LAST = "UPDATE_LAST"
    CREATE_NEW = "CREATE_NEW"


class Credentials(BaseModel):
    """Credentials for Jira and Zephyr REST APIs."""

    username: str | None = Field(default=None, description="Username for basic authentication")
    api_token: str | None = Field(default=None, description="API token or password for basic authentication")
    bearer_token: str | None = Field(default=None, description="Personal access token for bearer authentication")

    @model_validator(mode="after")
    def _check_auth_method(self) -> "Credentials":
        if self.bearer_token is None and (self.username is None or self.api_token is None):
            raise ValueError("either bearer_token or both username and api_token must be set")
        return self


class ConnectionConfig(BaseModel):
    """Configuration for a Jira instance with its Zephyr plugin."""

    name: str = Field(default=DEFAULT_CONNECTION_NAME, description="Name rules use to refer to the connection")
    jira_url: str = Field(..., description="Jira instance base URL")
    zephyr_url: str | None = Field(default=None, description="Zephyr base URL, defaults to the Jira URL")
    credentials: Credentials
    zephyr_type: ZephyrType = Field(default=ZephyrType.SQUAD, description="Zephyr backend variant")
    status_project_key: str | None = Field(
        default=None, description="Project whose test result statuses are used (scale server only)"
    )

    @model_validator(mode="after")
    def _check_status_project(self) -> "ConnectionConfig":
        if self.zephyr_type == ZephyrType.SCALE_SERVER and not self.status_project_key:
            raise ValueError("status_project_key must be set for SCALE_SERVER connections")
        return self

    @property
    def zephyr_base_url(self) -> str:
        """Base URL used for Zephyr requests."""
        return self.zephyr_url or self.jira_url


class StrategyConfig(BaseModel):
    """Configuration of a related issues strategy.

    Only ``type`` is interpreted here. The remaining keys are validated by the
    strategy registered for that type when the engine is built.
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., description="Name the strategy is registered under")


class CustomFieldSource(str, Enum):
    """Where the value of a custom execution field comes from."""

    CONSTANT = "CONSTANT"
    EVENT_ID = "EVENT_ID"
    EVENT_NAME = "EVENT_NAME"
    VERSION = "VERSION"
    CYCLE = "CYCLE"


class CustomFieldExtraction(BaseModel):
    """Rule to compute the value of a custom field set on the execution."""

    source: CustomFieldSource = CustomFieldSource.CONSTANT
    value: Any = None

    @model_validator(mode="after")
    def _check_constant(self) -> "CustomFieldExtraction":
        if self.source == CustomFieldSource.CONSTANT and self.value is None:
            raise ValueError("value must be set for a constant custom field")
        return self

    def extract(self, event: RemoteEvent, version_cycle: VersionCycleKey) -> Any:
        """Compute the field value for an event."""
        match self.source:
            case CustomFieldSource.EVENT_ID:
                return event.id
            case CustomFieldSource.EVENT_NAME:
                return event.name
            case CustomFieldSource.VERSION:
                return version_cycle.version
            case CustomFieldSource.CYCLE:
                return version_cycle.cycle
        return self.value


class DefaultCycleAndVersion(BaseModel):
    """Version and cycle used for issues whose events have no root event."""

    version: str
    cycle: str
    issues: set[str] = Field(default_factory=set)


class ProcessingRule(BaseModel):
    """Configured synchronization policy for events matching an issue format."""

    name: str | None = Field(default=None, description="Optional name used in log records")
    issue_format: str = Field(..., description="Regular expression the whole event name must match")
    destination: str = Field(default=DEFAULT_CONNECTION_NAME, description="Connection to synchronize events to")
    delimiter: str = Field(default="|", description="Delimiter for version and cycle name in the root event")
    status_mapping: dict[EventStatus, str] = Field(..., description="Event status to Zephyr status name")
    folders: dict[str, set[str]] = Field(default_factory=dict, description="Folder name to issue keys")
    default_cycle_and_versions: list[DefaultCycleAndVersion] = Field(
        default_factory=list, description="Version and cycle for issues without a root event"
    )
    job_await_timeout: float = Field(default=1.0, gt=0, description="Seconds to await until a Zephyr job is done")
    related_issues_strategies: list[StrategyConfig] = Field(
        default_factory=list, description="Strategies to find issues related to the processed one"
    )
    test_execution_mode: ExecutionMode = Field(
        default=ExecutionMode.UPDATE_LAST, description="Update the last execution or always create a new one"
    )
    version_pattern: str | None = Field(
        default=None, description="Pattern extracting the version from the root event name (scale server only)"
    )
    custom_fields: dict[str, CustomFieldExtraction] = Field(
        default_factory=dict, description="Custom execution fields and how to compute their values"
    )

    @field_validator("issue_format", "version_pattern")
    @classmethod
    def _check_pattern(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"pattern {value} cannot be converted to regexp: {e}") from e
        return value

    @field_validator("delimiter")
    @classmethod
    def _check_delimiter(cls, value: str) -> str:
        if len(value) != 1:
            raise ValueError("delimiter must be a single character")
        return value

    @field_validator("status_mapping")
    @classmethod
    def _check_status_mapping(cls, value: dict[EventStatus, str]) -> dict[EventStatus, str]:
        for status in (EventStatus.FAILED, EventStatus.SUCCESS):
            if status not in value:
                raise ValueError(f"mapping for {status.value} status must be set")
        return value

    @property
    def label(self) -> str:
        """Name of the rule for log records."""
        return self.name or self.issue_format

    def matches(self, event_name: str) -> bool:
        """Check whether the whole event name matches the issue format."""
        return re.fullmatch(self.issue_format, event_name) is not None

    def version_cycle_for(self, issue_key: str) -> VersionCycleKey | None:
        """Find the configured version and cycle for an issue."""
        for entry in self.default_cycle_and_versions:
            if issue_key in entry.issues:
                return VersionCycleKey(entry.version, entry.cycle)
        return None

    def folder_for(self, issue_key: str) -> str | None:
        """Find the configured folder for an issue."""
        return next((folder for folder, issues in self.folders.items() if issue_key in issues), None)


class ProcessorSettings(BaseModel):
    """Main configuration of the sync process."""

    processors: list[ProcessingRule] = Field(..., min_length=1, description="Processing rules")
    connections: list[ConnectionConfig] = Field(default_factory=list, description="Jira and Zephyr connections")
    data_provider_url: str | None = Field(default=None, description="Base URL of the event data provider")
    job_poll_interval_seconds: float = Field(default=0.5, gt=0, description="Delay between job progress checks")
    max_ancestry_depth: int | None = Field(
        default=None, gt=0, description="Maximum number of ancestors fetched per event, unbounded if not set"
    )

    @field_validator("connections")
    @classmethod
    def _check_unique_names(cls, value: list[ConnectionConfig]) -> list[ConnectionConfig]:
        names = [connection.name for connection in value]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"connection names must be unique, duplicated: {', '.join(duplicates)}")
        return value


def _default_connection() -> ConnectionConfig:
    bearer_token = config("JIRA_BEARER_TOKEN", default=None)
    return ConnectionConfig(
        name=DEFAULT_CONNECTION_NAME,
        jira_url=config("JIRA_BASE_URL"),
        zephyr_url=config("ZEPHYR_BASE_URL", default=None),
        credentials=Credentials(
            username=config("JIRA_USERNAME", default=None),
            api_token=config("JIRA_API_TOKEN", default=None),
            bearer_token=bearer_token,
        ),
        zephyr_type=ZephyrType(config("ZEPHYR_TYPE", default=ZephyrType.SQUAD.value)),
        status_project_key=config("ZEPHYR_STATUS_PROJECT", default=None),
    )


# Environment variables overriding values of the settings file
ENVIRONMENT_OVERRIDES = {
    "JOB_POLL_INTERVAL_SECONDS": "job_poll_interval_seconds",
    "MAX_ANCESTRY_DEPTH": "max_ancestry_depth",
}


def load_config(path: str | Path | None = None) -> ProcessorSettings:
    """Load configuration from the settings file and environment variables."""
    settings_path = Path(path or config("ZEPHYR_SYNC_CONFIG", default="zephyr-sync.json"))
    try:
        raw_settings = json.loads(settings_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Cannot read settings file {settings_path}: {e}") from e
    except ValueError as e:
        raise ConfigurationError(f"Settings file {settings_path} is not valid JSON: {e}") from e
    if not isinstance(raw_settings, dict):
        raise ConfigurationError(f"Settings file {settings_path} must contain a JSON object")

    try:
        if not raw_settings.get("connections"):
            raw_settings["connections"] = [_default_connection()]
        if raw_settings.get("data_provider_url") is None:
            raw_settings["data_provider_url"] = config("DATA_PROVIDER_URL")
        for variable, field_name in ENVIRONMENT_OVERRIDES.items():
            value = config(variable, default=None)
            if value is not None:
                raw_settings[field_name] = value
        settings = ProcessorSettings.model_validate(raw_settings)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {settings_path}: {e}") from e
    except (UndefinedValueError, ValueError) as e:
        raise ConfigurationError(str(e)) from e

    return settings
