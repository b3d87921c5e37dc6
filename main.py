"""Main module for the Zephyr test execution sync."""

from zephyr_sync.handlers import (
    event_stream_handler,
    health_check_handler,
)

# Export Lambda handlers for AWS
__all__ = [
    "event_stream_handler",
    "health_check_handler",
]


def main() -> None:
    """Main function for local testing."""  # noqa: D401
    print("Zephyr Test Execution Sync")  # noqa: T201
    print("This system updates Zephyr executions from test events.")  # noqa: T201
    print("Use scripts/process-event.py to replay an event or deploy to AWS Lambda.")  # noqa: T201


if __name__ == "__main__":
    main()
