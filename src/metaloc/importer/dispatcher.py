"""
Update dispatcher.

Applies parsed unit groups to the repository one unit at a time, in sheet
order. A failing unit is counted and the run moves on; cached layout documents
are written once each at the end and customizations are published exactly
once, whatever failed before.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from ..i18n import t
from ..model.labels import DESCRIPTION
from ..model.nodes import RelationshipKind
from ..model.units import UnitKind, UpdateUnit
from ..repository.base import CHARTS_SET, FORMS_SET, VIEWS_SET, MetadataRepository
from ..utils.core.error_tracker import ErrorTracker
from ..utils.core.exceptions import ErrorCategory, RunCancelledError, UpdateError
from ..utils.progress_tracker import ProgressTracker
from .parser import UnitGroup
from .patcher import LayoutDocumentCache, LayoutPatcher

logger = logging.getLogger(__name__)

# Records whose name and description are set through localized labels.
RECORD_SETS: dict[UnitKind, str] = {
    UnitKind.VIEW: VIEWS_SET,
    UnitKind.CHART: CHARTS_SET,
    UnitKind.FORM: FORMS_SET,
    UnitKind.DASHBOARD: FORMS_SET,
}


@dataclass
class ImportResult:
    """Outcome of an import run."""

    processed: int = 0
    failed: int = 0
    skipped: int = 0
    documents_written: int = 0
    published: bool = False
    errors: dict[str, int] = field(default_factory=dict)


class UpdateDispatcher:
    """Routes update units to the matching repository write."""

    def __init__(
        self,
        repository: MetadataRepository,
        errors: ErrorTracker | None = None,
        progress: ProgressTracker | None = None,
        log_interval: int = 10,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self.repository: MetadataRepository = repository
        self.errors: ErrorTracker = errors or ErrorTracker()
        self.progress: ProgressTracker = progress or ProgressTracker()
        self.log_interval: int = max(1, log_interval)
        self.cancel_event: asyncio.Event = cancel_event or asyncio.Event()
        self.cache: LayoutDocumentCache = LayoutDocumentCache(repository, self.errors)
        self.patcher: LayoutPatcher = LayoutPatcher(self.cache, self.errors)

    async def dispatch(self, groups: list[UnitGroup]) -> ImportResult:
        """
        Apply every group, then flush layout documents and publish.

        Raises:
            RunCancelledError: If the cancel event is set between groups;
                nothing is flushed or published in that case
        """
        result = ImportResult()
        for group in groups:
            if self.cancel_event.is_set():
                logger.warning(f"Import cancelled before {group.name}")
                raise RunCancelledError("Import cancelled", phase=group.name)
            await self._dispatch_group(group, result)

        await self.flush(result)
        await self.publish(result)
        result.errors = self.errors.get_summary()
        self.errors.log_summary("Import")
        return result

    async def _dispatch_group(self, group: UnitGroup, result: ImportResult) -> None:
        units = group.units
        if not units:
            logger.info(f"{group.name}: nothing to update")
            return

        self.progress.start_group(group.name, len(units))
        logger.info(f"{group.name}: applying {len(units)} update(s)")
        for index, unit in enumerate(units, start=1):
            try:
                if unit.kind.is_layout:
                    if await self.patcher.patch(unit):
                        result.processed += 1
                    else:
                        result.skipped += 1
                else:
                    await self.apply(unit)
                    result.processed += 1
            except Exception as e:
                result.failed += 1
                _ = self.errors.record(
                    UpdateError(f"Failed to update {unit.kind.value} {unit.key}: {e}", context={"key": unit.key}),
                    phase=group.name,
                )
            self.progress.advance(t("Updating {sheet}", sheet=group.name))
            if index % self.log_interval == 0 or index == len(units):
                logger.info(f"{group.name}: {index}/{len(units)} processed")
        self.progress.reset_group()

    async def apply(self, unit: UpdateUnit) -> None:
        """Write one non-layout unit."""
        repository = self.repository
        key = unit.key
        match unit.kind:
            case UnitKind.ENTITY:
                await repository.update_entity_labels(str(key[0]), unit.labels)
            case UnitKind.ATTRIBUTE:
                await repository.update_attribute_labels(str(key[0]), str(key[1]), unit.labels)
            case UnitKind.RELATIONSHIP | UnitKind.MANY_TO_MANY_RELATIONSHIP:
                kind = (
                    RelationshipKind.MANY_TO_MANY
                    if unit.kind is UnitKind.MANY_TO_MANY_RELATIONSHIP
                    else RelationshipKind.ONE_TO_MANY
                )
                for translations in unit.labels.values():
                    if translations:
                        await repository.update_relationship_label(str(key[0]), kind, str(key[1]), translations)
            case UnitKind.LOCAL_OPTION | UnitKind.BOOLEAN_OPTION:
                for qualifier, translations in unit.labels.items():
                    if translations:
                        await repository.update_option_value(
                            str(key[0]), str(key[1]), None, int(key[2]), translations, _is_description(qualifier)
                        )
            case UnitKind.GLOBAL_OPTION:
                for qualifier, translations in unit.labels.items():
                    if translations:
                        await repository.update_option_value(
                            None, None, str(key[0]), int(key[1]), translations, _is_description(qualifier)
                        )
            case UnitKind.VIEW | UnitKind.CHART | UnitKind.FORM | UnitKind.DASHBOARD:
                entity_set = RECORD_SETS[unit.kind]
                for qualifier, translations in unit.labels.items():
                    if translations:
                        attribute = "description" if _is_description(qualifier) else "name"
                        await repository.set_loc_labels(entity_set, str(key[0]), attribute, translations)
            case _:
                raise UpdateError(f"Unsupported unit kind: {unit.kind.value}")

    async def flush(self, result: ImportResult) -> None:
        """Write every patched layout document once."""
        documents = self.cache.patched_documents()
        if documents:
            self.progress.start_group("Layouts", len(documents))
        for document in documents:
            try:
                await self.repository.update_record(
                    document.kind.entity_set, document.document_id, {document.kind.column: document.xml}
                )
                result.documents_written += 1
                logger.info(
                    f"Saved {document.kind.entity_set} {document.document_id} ({document.patches} change(s))"
                )
            except Exception as e:
                result.failed += 1
                _ = self.errors.record(
                    UpdateError(f"Failed to save {document.kind.entity_set} {document.document_id}: {e}"),
                    phase="Layouts",
                )
            self.progress.advance(t("Saving layouts"))
        if documents:
            self.progress.reset_group()

    async def publish(self, result: ImportResult) -> None:
        self.progress.update(t("Publishing customizations..."), 0, 1)
        try:
            await self.repository.publish_all()
            result.published = True
        except Exception as e:
            _ = self.errors.record(UpdateError(f"Publish failed: {e}"), phase="Publish")
        self.progress.update(t("Publishing customizations..."), 1, 1)


def _is_description(qualifier: str) -> bool:
    return qualifier.lower() == DESCRIPTION.lower()
