"""Client for the event data provider the engine reads event ancestors from."""

from datetime import UTC, datetime
from typing import Any

import structlog

from .models import EventStatus, RemoteEvent
from .rest_client import RestClient

logger = structlog.get_logger()


def parse_event(data: dict[str, Any]) -> RemoteEvent:
    """Parse a data provider event into our standardized model."""
    start_timestamp = None
    if data.get("startTimestamp"):
        timestamp = data["startTimestamp"]
        start_timestamp = datetime.fromtimestamp(
            timestamp.get("epochSecond", 0) + timestamp.get("nano", 0) / 1e9,
            tz=UTC,
        )

    return RemoteEvent(
        id=data["eventId"],
        name=data.get("eventName", ""),
        parent_id=data.get("parentEventId") or None,
        status=EventStatus.SUCCESS if data.get("successful", True) else EventStatus.FAILED,
        type=data.get("eventType"),
        start_timestamp=start_timestamp,
    )


class DataProviderClient(RestClient):
    """Event data provider API client."""

    service_name = "DataProvider"

    def __init__(self, base_url: str, timeout: float = 30) -> None:
        """Initialize data provider client."""
        super().__init__(base_url, "", timeout=timeout)

    def get_event(self, event_id: str) -> RemoteEvent:
        """Get event by id."""
        logger.debug("Fetching event", event_id=event_id)
        return parse_event(self._make_request("GET", f"event/{event_id}"))
