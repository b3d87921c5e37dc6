#!/usr/bin/env python3
"""Script to list the Zephyr execution statuses available for status mappings."""

import sys

from zephyr_sync.config import load_config
from zephyr_sync.exceptions import ConfigurationError, RemoteServiceError
from zephyr_sync.services import create_services


def list_statuses(connection_name: str | None = None) -> None:
    """Print the execution statuses of every connection or of the named one."""
    try:
        settings = load_config()
    except ConfigurationError as e:
        print(f"❌ Cannot load configuration: {e}")  # noqa: T201
        sys.exit(1)

    connections = [c for c in settings.connections if connection_name in (None, c.name)]
    if not connections:
        print(f"❌ Unknown connection: {connection_name}")  # noqa: T201
        sys.exit(1)

    for connection in connections:
        services = create_services(connection, settings.job_poll_interval_seconds)
        try:
            statuses = services.zephyr.get_execution_statuses()
        except RemoteServiceError as e:
            print(f"❌ {connection.name}: {e}")  # noqa: T201
            continue
        finally:
            services.close()

        print(f"📋 Execution statuses for {connection.name} ({connection.zephyr_base_url})")  # noqa: T201
        print("-" * 50)  # noqa: T201
        for status in statuses:
            print(f"  {status.id}: {status.name}")  # noqa: T201
        print()  # noqa: T201


if __name__ == "__main__":
    list_statuses(sys.argv[1] if len(sys.argv) > 1 else None)
