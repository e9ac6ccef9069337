"""Import pipeline: parse a translated workbook and write it back."""

from __future__ import annotations

import asyncio
import logging

from ..config.schema import ImportConfig
from ..i18n import t
from ..repository.base import MetadataRepository
from ..utils.core.error_tracker import ErrorTracker
from ..utils.progress_tracker import ProgressTracker
from ..workbook.document import Workbook
from .dispatcher import ImportResult, UpdateDispatcher
from .parser import RowGroupingParser, UnitGroup, prune_unchanged

logger = logging.getLogger(__name__)


class Importer:
    """Runs one import against a repository."""

    def __init__(
        self,
        repository: MetadataRepository,
        config: ImportConfig | None = None,
        progress: ProgressTracker | None = None,
        errors: ErrorTracker | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self.repository: MetadataRepository = repository
        self.config: ImportConfig = config or ImportConfig()
        self.progress: ProgressTracker = progress or ProgressTracker()
        self.errors: ErrorTracker = errors or ErrorTracker()
        self.cancel_event: asyncio.Event = cancel_event or asyncio.Event()

    def parse(self, workbook: Workbook, baseline: Workbook | None = None) -> list[UnitGroup]:
        """Group the workbook's rows into units, minus anything equal to ``baseline``."""
        groups = RowGroupingParser(self.errors).parse_workbook(workbook)
        if baseline is not None:
            # Baseline problems are not the run's problems.
            reference = RowGroupingParser(ErrorTracker()).parse_workbook(baseline)
            groups = prune_unchanged(groups, reference)
            logger.info(f"Compared against baseline: {sum(len(g.units) for g in groups)} unit(s) changed")
        return groups

    async def run(self, workbook: Workbook, baseline: Workbook | None = None) -> ImportResult:
        """
        Apply a translated workbook.

        Raises:
            ConnectionUnavailableError: If the repository cannot be reached
            RunCancelledError: If the cancel event is set between sheets
        """
        await self.repository.ensure_connected()

        self.progress.update(t("Reading workbook..."), 0, 1)
        groups = self.parse(workbook, baseline)
        total = sum(len(group.units) for group in groups)
        logger.info(f"Parsed {len(groups)} sheet(s) into {total} update(s)")

        dispatcher = UpdateDispatcher(
            self.repository,
            errors=self.errors,
            progress=self.progress,
            log_interval=self.config.progress_log_interval,
            cancel_event=self.cancel_event,
        )
        result = await dispatcher.dispatch(groups)
        self.progress.update(t("Import complete"), 1, 1)
        return result
