"""Resolution of the root and folder events an event belongs to."""

import re

from .config import ProcessingRule
from .exceptions import ResolutionError
from .models import RemoteEvent, VersionCycleKey
from .services import EventProvider


class AncestryResolver:
    """Walks the parents of an event, fetching every ancestor at most once."""

    def __init__(self, provider: EventProvider, max_depth: int | None = None) -> None:
        """Initialize resolver."""
        self.provider = provider
        self.max_depth = max_depth
        self._fetched: dict[str, RemoteEvent] = {}

    def fetch(self, event_id: str) -> RemoteEvent:
        """Fetch an event, reusing events fetched earlier by this resolver."""
        event = self._fetched.get(event_id)
        if event is None:
            event = self.provider.get_event(event_id)
            self._fetched[event_id] = event
        return event

    def find_root(self, event: RemoteEvent) -> RemoteEvent | None:
        """Find the ancestor without parent, None if the event itself has no parent."""
        depth = 0
        current = event
        while current.parent_id is not None:
            if self.max_depth is not None and depth >= self.max_depth:
                raise ResolutionError(
                    f"Cannot find the root of event {event.short_string} within {self.max_depth} ancestor(s)",
                    event.id,
                )
            current = self.fetch(current.parent_id)
            depth += 1
        return None if current is event else current

    def find_folder_ancestor(self, event: RemoteEvent, root: RemoteEvent | None) -> RemoteEvent | None:
        """Find the immediate parent of the event when it is not the root."""
        if event.parent_id is None or (root is not None and event.parent_id == root.id):
            return None
        return self.fetch(event.parent_id)


def extract_version_cycle(
    root: RemoteEvent | None,
    issue_key: str,
    rule: ProcessingRule,
    version_pattern: re.Pattern[str] | None = None,
) -> VersionCycleKey:
    """Get the version and cycle from the root event name or the rule's defaults for the issue.

    Root names are ``version<delimiter>cycle[<delimiter>...]``. With a version pattern the
    cycle is the root name up to the first delimiter and the version is the pattern's
    ``version`` group, its first group or its whole match inside that cycle name.
    """
    if root is None:
        version_cycle = rule.version_cycle_for(issue_key)
        if version_cycle is None:
            raise ResolutionError(f"Cannot find the version and cycle in the configuration for issue {issue_key}")
        return version_cycle

    if version_pattern is not None:
        return _match_version_cycle(root, version_pattern, rule.delimiter)

    parts = root.name.split(rule.delimiter)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ResolutionError(f"The root event's name {root.short_string} has incorrect format", root.id)
    return VersionCycleKey(version=parts[0], cycle=parts[1])


def resolve_folder_name(folder_event: RemoteEvent | None, issue_key: str, rule: ProcessingRule) -> str | None:
    """Get the folder name from the folder event or the rule's folders for the issue."""
    if folder_event is not None:
        return folder_event.name
    return rule.folder_for(issue_key)


def _match_version_cycle(root: RemoteEvent, version_pattern: re.Pattern[str], delimiter: str) -> VersionCycleKey:
    cycle = root.name.split(delimiter)[0]
    match = version_pattern.search(cycle)
    if not cycle or match is None:
        raise ResolutionError(
            f"The root event's name {root.short_string} does not contain a version "
            f"matching {version_pattern.pattern}",
            root.id,
        )
    if "version" in version_pattern.groupindex:
        version = match.group("version")
    elif version_pattern.groups:
        version = match.group(1)
    else:
        version = match.group(0)
    if not version:
        raise ResolutionError(f"The root event's name {root.short_string} has an empty version", root.id)
    return VersionCycleKey(version=version, cycle=cycle)
