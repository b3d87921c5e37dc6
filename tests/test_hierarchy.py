"""Contains unit tests for the get-or-create of cycles and folders."""

from unittest.mock import MagicMock

import pytest

from tests.helpers import PROJECT_TEST, VERSION, make_cycle, make_folder
from zephyr_sync.hierarchy import HierarchyResolver

CYCLE = make_cycle("TestCycle", PROJECT_TEST, VERSION)


@pytest.fixture
def zephyr() -> MagicMock:
    return MagicMock()


def test_existing_cycle_is_reused(zephyr: MagicMock) -> None:
    zephyr.get_cycle.return_value = CYCLE

    assert HierarchyResolver(zephyr).get_or_create_cycle("TestCycle", PROJECT_TEST, VERSION) == CYCLE

    zephyr.create_cycle.assert_not_called()


def test_missing_cycle_is_created(zephyr: MagicMock) -> None:
    zephyr.get_cycle.return_value = None
    zephyr.create_cycle.return_value = CYCLE

    assert HierarchyResolver(zephyr).get_or_create_cycle("TestCycle", PROJECT_TEST, VERSION) == CYCLE

    zephyr.create_cycle.assert_called_once_with("TestCycle", PROJECT_TEST, VERSION)


def test_existing_folder_is_reused(zephyr: MagicMock) -> None:
    folder = make_folder(CYCLE, "TestFolder")
    zephyr.get_folder.return_value = folder

    assert HierarchyResolver(zephyr).get_or_create_folder(CYCLE, "TestFolder") == folder

    zephyr.create_folder.assert_not_called()


def test_missing_folder_is_created(zephyr: MagicMock) -> None:
    folder = make_folder(CYCLE, "TestFolder")
    zephyr.get_folder.return_value = None
    zephyr.create_folder.return_value = folder

    assert HierarchyResolver(zephyr).get_or_create_folder(CYCLE, "TestFolder") == folder

    assert [name for name, _, _ in zephyr.mock_calls] == ["get_folder", "create_folder"]


@pytest.fixture
def stateful_zephyr() -> MagicMock:
    cycles: dict[tuple, object] = {}
    folders: dict[tuple, object] = {}
    zephyr = MagicMock()
    zephyr.get_cycle.side_effect = lambda name, project, version: cycles.get((name, project.id, version.id))
    zephyr.create_cycle.side_effect = lambda name, project, version: cycles.setdefault(
        (name, project.id, version.id), make_cycle(name, project, version)
    )
    zephyr.get_folder.side_effect = lambda cycle, name: folders.get((cycle.id, name))
    zephyr.create_folder.side_effect = lambda cycle, name: folders.setdefault(
        (cycle.id, name), make_folder(cycle, name)
    )
    return zephyr


def test_repeated_lookups_create_each_entity_once(stateful_zephyr: MagicMock) -> None:
    resolver = HierarchyResolver(stateful_zephyr)

    first_cycle = resolver.get_or_create_cycle("TestCycle", PROJECT_TEST, VERSION)
    second_cycle = resolver.get_or_create_cycle("TestCycle", PROJECT_TEST, VERSION)
    first_folder = resolver.get_or_create_folder(first_cycle, "TestFolder")
    second_folder = resolver.get_or_create_folder(second_cycle, "TestFolder")

    assert first_cycle == second_cycle
    assert first_folder == second_folder
    assert stateful_zephyr.get_cycle.call_count == 2
    stateful_zephyr.create_cycle.assert_called_once_with("TestCycle", PROJECT_TEST, VERSION)
    stateful_zephyr.create_folder.assert_called_once_with(first_cycle, "TestFolder")
