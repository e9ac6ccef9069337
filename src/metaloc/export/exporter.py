"""
Export pipeline.

Builds the metadata tree, sweeps the operator's locale to snapshot localized
layouts, extracts layout captions, projects everything into sheets and writes
the workbook.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..config.schema import ExportConfig
from ..i18n import t
from ..model.nodes import FragmentKind, LayoutFragment, MetadataTree, Solution, Table, language_def
from ..repository.base import MetadataRepository
from ..utils.core.error_tracker import ErrorTracker
from ..utils.core.exceptions import ConfigurationError, ErrorCategory, LayoutParseError, RunCancelledError
from ..utils.progress_tracker import ProgressTracker
from ..workbook.document import SheetData, Workbook
from .language_sweep import LanguageSweep, SleepFunc
from .layout_extractor import FragmentKey, extract_fragments, extract_sitemap_elements
from .projector import SheetProjector, output_languages
from .tree_builder import MetadataTreeBuilder

logger = logging.getLogger(__name__)

EXPORT_STEPS = 8


@dataclass
class ExportResult:
    """Outcome of an export run."""

    workbook: Workbook
    sheets: list[SheetData]
    languages: list[int]
    base_language: int
    output_path: Path | None = None
    errors: dict[str, int] = field(default_factory=dict)


class Exporter:
    """Runs one export against a repository."""

    def __init__(
        self,
        repository: MetadataRepository,
        config: ExportConfig,
        settle_seconds: float = 2.0,
        progress: ProgressTracker | None = None,
        errors: ErrorTracker | None = None,
        cancel_event: asyncio.Event | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.repository: MetadataRepository = repository
        self.config: ExportConfig = config
        self.settle_seconds: float = settle_seconds
        self.progress: ProgressTracker = progress or ProgressTracker()
        self.errors: ErrorTracker = errors or ErrorTracker()
        self.cancel_event: asyncio.Event = cancel_event or asyncio.Event()
        self._sleep: SleepFunc = sleep
        self.builder: MetadataTreeBuilder = MetadataTreeBuilder(repository, config.options, self.errors)

    def _checkpoint(self, phase: str) -> None:
        if self.cancel_event.is_set():
            logger.warning(f"Export cancelled before {phase}")
            raise RunCancelledError("Export cancelled", phase=phase)

    async def build_tree(self) -> tuple[MetadataTree, list[int]]:
        """
        Collect everything the workbook needs.

        Returns:
            The populated tree and the output language codes

        Raises:
            ConnectionUnavailableError: If the repository cannot be reached
            ConfigurationError: If neither a solution nor tables are selected
            RunCancelledError: If the cancel event is set between phases
        """
        config = self.config
        options = config.options
        if not config.solution and not config.tables:
            raise ConfigurationError("Select a solution or at least one table to export")

        await self.repository.ensure_connected()

        self.progress.update(t("Getting base language..."), 1, EXPORT_STEPS)
        base_language = await self.repository.get_base_language()
        installed = await self.repository.get_languages() if config.all_languages else []
        languages = output_languages(installed, config.languages, base_language, config.all_languages)
        logger.info(f"Base language is {language_def(base_language).name} ({base_language})")
        logger.info(f"Output languages: {', '.join(str(code) for code in languages)}")

        solution = await self.builder.resolve_solution(config.solution) if config.solution else None

        self._checkpoint("tables")
        self.progress.update(t("Exporting table info..."), 2, EXPORT_STEPS)
        tree = MetadataTree(base_language=base_language)
        tree.tables = await self.builder.build_tables(solution, config.tables)

        self._checkpoint("table metadata")
        self.progress.update(t("Exporting attributes, relationships, choices, views and charts..."), 3, EXPORT_STEPS)
        await self.builder.populate(tree.tables)

        sweep_dashboards = options.dashboards and solution is not None
        if options.needs_form_snapshots or sweep_dashboards:
            self._checkpoint("language sweep")
            self.progress.update(t("Fetching localized forms..."), 4, EXPORT_STEPS)
            await self._sweep(tree, solution, languages)

        self._checkpoint("layout extraction")
        self.progress.update(t("Extracting layout captions..."), 5, EXPORT_STEPS)
        self._extract_form_fragments(tree)
        self._extract_dashboard_fragments(tree)

        if options.sitemaps and solution is not None:
            self._checkpoint("site maps")
            self.progress.update(t("Exporting site map..."), 6, EXPORT_STEPS)
            await self._load_sitemaps(tree, solution)

        return tree, languages

    async def run(self, output_path: Path | None = None) -> ExportResult:
        """Build, project and optionally save the workbook."""
        tree, languages = await self.build_tree()

        self._checkpoint("projection")
        self.progress.update(t("Writing workbook..."), 7, EXPORT_STEPS)
        sheets = SheetProjector(languages, self.config.options).project(tree)
        workbook = Workbook.from_sheets(sheets)
        if output_path is not None:
            workbook.save(output_path)

        self.progress.update(t("Export complete"), EXPORT_STEPS, EXPORT_STEPS)
        self.errors.log_summary("Export")
        return ExportResult(
            workbook=workbook,
            sheets=sheets,
            languages=languages,
            base_language=tree.base_language,
            output_path=output_path,
            errors=self.errors.get_summary(),
        )

    async def _sweep(self, tree: MetadataTree, solution: Solution | None, languages: list[int]) -> None:
        options = self.config.options
        sweep = LanguageSweep(self.repository, tree.base_language, self.settle_seconds, sleep=self._sleep)
        async with sweep:
            async for language, is_base in sweep.languages(languages):
                self._checkpoint(f"language {language}")
                logger.info(f"Fetching layouts for language {language_def(language).name} ({language})")
                if options.needs_form_snapshots:
                    await self.builder.snapshot_forms(tree.tables, language, is_base)
                if options.dashboards and solution is not None:
                    try:
                        tree.dashboards.extend(await self.builder.load_dashboards(solution, language, is_base))
                    except Exception as e:
                        _ = self.errors.record(e, phase="Dashboards", category=ErrorCategory.FETCH)

    def _fragment_kinds(self, tabs: bool, sections: bool, fields: bool) -> list[FragmentKind]:
        kinds: list[FragmentKind] = []
        if tabs:
            kinds.append(FragmentKind.TAB)
        if sections:
            kinds.append(FragmentKind.SECTION)
        if fields:
            kinds.append(FragmentKind.FIELD)
        return kinds

    def _extract_form_fragments(self, tree: MetadataTree) -> None:
        options = self.config.options
        kinds = self._fragment_kinds(options.form_tabs, options.form_sections, options.form_fields)
        if not kinds:
            return
        for table in tree.tables:
            accumulator: dict[FragmentKey, LayoutFragment] = {}

            def display_name(attribute: str, owner: Table = table) -> str | None:
                return owner.field_display_name(attribute, tree.base_language)

            for form in table.forms:
                try:
                    for kind in kinds:
                        _ = extract_fragments(form, kind, accumulator, table.logical_name, display_name)
                except LayoutParseError as e:
                    _ = self.errors.record(e, phase=f"{table.logical_name} forms")
            table.form_fragments = list(accumulator.values())

    def _extract_dashboard_fragments(self, tree: MetadataTree) -> None:
        if not self.config.options.dashboards:
            return

        def display_name(attribute: str) -> str | None:
            for table in tree.tables:
                name = table.field_display_name(attribute, tree.base_language)
                if name is not None:
                    return name
            return None

        accumulator: dict[FragmentKey, LayoutFragment] = {}
        for dashboard in tree.dashboards:
            try:
                for kind in (FragmentKind.TAB, FragmentKind.SECTION, FragmentKind.FIELD):
                    _ = extract_fragments(dashboard, kind, accumulator, display_name=display_name)
            except LayoutParseError as e:
                _ = self.errors.record(e, phase="Dashboards")
        tree.dashboard_fragments = list(accumulator.values())

    async def _load_sitemaps(self, tree: MetadataTree, solution: Solution) -> None:
        try:
            tree.sitemaps = await self.builder.load_sitemaps(solution)
        except Exception as e:
            _ = self.errors.record(e, phase="SiteMaps", category=ErrorCategory.FETCH)
            return
        for sitemap in tree.sitemaps:
            try:
                tree.sitemap_elements.extend(extract_sitemap_elements(sitemap))
            except LayoutParseError as e:
                _ = self.errors.record(e, phase="SiteMaps")
        logger.info(f"Site map elements: {len(tree.sitemap_elements)}")
