"""Get-or-create of the Zephyr cycles and folders executions live in."""

import structlog
from structlog.stdlib import BoundLogger

from .models import Cycle, Folder, Project, Version
from .services import ZephyrService


class HierarchyResolver:
    """Finds cycles and folders, creating them when they do not exist yet.

    The lookup and the creation are separate remote calls, so two resolvers racing
    on the same name may both create it. Zephyr is the only arbiter in that case.
    """

    def __init__(self, zephyr: ZephyrService, logger: BoundLogger | None = None) -> None:
        """Initialize hierarchy resolver."""
        self.zephyr = zephyr
        self.logger = logger or structlog.get_logger()

    def get_or_create_cycle(self, name: str, project: Project, version: Version) -> Cycle:
        """Find the cycle for the project version or create it."""
        self.logger.debug("Getting cycle", cycle=name, project=project.key, version=version.name)
        cycle = self.zephyr.get_cycle(name, project, version)
        if cycle is None:
            self.logger.info("Creating cycle", cycle=name, project=project.key, version=version.name)
            cycle = self.zephyr.create_cycle(name, project, version)
        return cycle

    def get_or_create_folder(self, cycle: Cycle, name: str) -> Folder:
        """Find the folder inside the cycle or create it."""
        self.logger.debug("Getting folder", folder=name, cycle=cycle.name)
        folder = self.zephyr.get_folder(cycle, name)
        if folder is None:
            self.logger.info("Creating folder", folder=name, cycle=cycle.name)
            folder = self.zephyr.create_folder(cycle, name)
        return folder
