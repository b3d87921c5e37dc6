"""Event handling entry points and AWS Lambda handlers."""

import base64
import json
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog

from .config import load_config
from .data_provider import parse_event
from .engine import EventReconciliationEngine
from .logging_config import configure_logging
from .models import ProcessedEventReport, RemoteEvent

logger = structlog.get_logger()

# Engine reused across Lambda invocations
_engine: EventReconciliationEngine | None = None


class EventHandler:
    """Passes events to the engine and reports the outcome through callbacks."""

    def __init__(
        self,
        engine: EventReconciliationEngine,
        on_info: Callable[[ProcessedEventReport], None],
        on_error: Callable[[RemoteEvent, Exception], None],
    ) -> None:
        """Initialize event handler."""
        self.engine = engine
        self.on_info = on_info
        self.on_error = on_error

    def handle(self, event: RemoteEvent) -> bool:
        """Process the event, returns whether it was synchronized."""
        try:
            processed = self.engine.process_event(event)
        except Exception as e:
            logger.error("Cannot process event", event_id=event.id, event_name=event.name, error=str(e))
            self.on_error(event, e)
            return False

        if processed:
            self.on_info(
                ProcessedEventReport(
                    event_id=event.id,
                    event_name=event.name,
                    status=event.status,
                    processed_at=datetime.now(UTC),
                )
            )
        return processed


def get_engine() -> EventReconciliationEngine:
    """Get or create the engine instance."""
    global _engine
    if _engine is None:
        configure_logging()
        _engine = EventReconciliationEngine.from_settings(load_config())
    return _engine


def _load_body(event: dict[str, Any]) -> dict[str, Any]:
    """Extract the request body from an API Gateway event, or use the event itself."""
    if "body" not in event:
        return event

    body = event.get("body") or "{}"
    if event.get("isBase64Encoded", False):
        body = base64.b64decode(body).decode("utf-8")
    payload = json.loads(body)
    if not isinstance(payload, dict):
        raise ValueError("payload must be a JSON object")
    return payload


def _parse_batch(body: dict[str, Any]) -> tuple[list[RemoteEvent], list[str]]:
    """Parse inline events and the ids of events to fetch from the data provider."""
    events = [parse_event(data) for data in body.get("events", [])]
    event_ids = [str(event_id) for event_id in body.get("event_ids", [])]
    return events, event_ids


def event_stream_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Lambda handler for a batch of test events."""
    try:
        body = _load_body(event)
        inline_events, event_ids = _parse_batch(body)
    except (ValueError, UnicodeDecodeError, KeyError, TypeError, AttributeError) as e:
        logger.error("Failed to parse event batch", error=str(e))
        return {
            "statusCode": 400,
            "body": json.dumps({"error": "Invalid payload format"}),
        }

    try:
        engine = get_engine()
        reports: list[ProcessedEventReport] = []
        failures: list[dict[str, str]] = []
        handler = EventHandler(
            engine,
            on_info=reports.append,
            on_error=lambda failed, error: failures.append({"event_id": failed.id, "error": str(error)}),
        )

        for remote_event in inline_events:
            handler.handle(remote_event)
        for event_id in event_ids:
            try:
                remote_event = engine.provider.get_event(event_id)
            except Exception as e:
                logger.error("Cannot fetch event", event_id=event_id, error=str(e))
                failures.append({"event_id": event_id, "error": str(e)})
                continue
            handler.handle(remote_event)

        total = len(inline_events) + len(event_ids)
        skipped = total - len(reports) - len(failures)
        logger.info(
            "Event batch processed",
            total=total,
            processed=len(reports),
            skipped=skipped,
            failed=len(failures),
        )

        return {
            "statusCode": 200 if not failures else 207,
            "body": json.dumps(
                {
                    "summary": {
                        "total": total,
                        "processed": len(reports),
                        "skipped": skipped,
                        "failed": len(failures),
                    },
                    "processed": [report.name for report in reports],
                    "failures": failures,
                }
            ),
        }

    except Exception as e:
        logger.error("Unexpected error in event stream handler", error=str(e))
        return {
            "statusCode": 500,
            "body": json.dumps({"error": "Internal server error"}),
        }


def health_check_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Lambda handler for health checks."""
    try:
        settings = load_config()

        health_status = {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "config_loaded": True,
            "processors": [rule.label for rule in settings.processors],
            "connections": {
                connection.name: {
                    "jira_url": connection.jira_url,
                    "zephyr_url": connection.zephyr_base_url,
                    "zephyr_type": connection.zephyr_type.value,
                }
                for connection in settings.connections
            },
            "data_provider_url": settings.data_provider_url,
        }

        return {
            "statusCode": 200,
            "body": json.dumps(health_status),
        }

    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return {
            "statusCode": 500,
            "body": json.dumps(
                {
                    "status": "unhealthy",
                    "error": str(e),
                }
            ),
        }
