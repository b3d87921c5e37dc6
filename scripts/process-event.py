#!/usr/bin/env python3
"""Script to replay a single event through the sync engine."""

import sys

from zephyr_sync.config import load_config
from zephyr_sync.engine import EventReconciliationEngine
from zephyr_sync.exceptions import ConfigurationError
from zephyr_sync.logging_config import configure_logging


def process_event(event_id: str) -> int:
    """Fetch the event from the data provider and synchronize it."""
    configure_logging(log_format="console")

    try:
        engine = EventReconciliationEngine.from_settings(load_config())
    except ConfigurationError as e:
        print(f"❌ Cannot start the engine: {e}")  # noqa: T201
        return 1

    with engine:
        event = engine.provider.get_event(event_id)
        print(f"Processing event {event.short_string} ({event.status.value})")  # noqa: T201
        try:
            processed = engine.process_event(event)
        except Exception as e:
            print(f"❌ Processing failed: {e}")  # noqa: T201
            return 1

    if processed:
        print("✅ Zephyr execution updated")  # noqa: T201
    else:
        print("⏭️  No processing rule matches the event")  # noqa: T201
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: process-event.py <event-id>")  # noqa: T201
        sys.exit(2)
    sys.exit(process_event(sys.argv[1]))
