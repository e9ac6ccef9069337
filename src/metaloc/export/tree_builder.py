"""
Metadata tree builder.

This module reads tables, their columns, relationships, choices, views,
charts and forms, plus solution-level dashboards and site maps, from the
repository and assembles them into :mod:`metaloc.model.nodes` with their
label sets. Per-table fetches run concurrently because each one only
touches its own table; a failing fetch is recorded and the affected node is
left out of the tree.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Mapping
from typing import Final, cast

from ..config.schema import ExportOptionsConfig
from ..model.labels import (
    DESCRIPTION,
    DISPLAY_COLLECTION_NAME,
    DISPLAY_NAME,
    LABEL,
    LocalizedLabels,
    parse_localized_labels,
)
from ..model.nodes import (
    Chart,
    DashboardSnapshot,
    Field,
    FormSnapshot,
    OptionEntry,
    Relationship,
    RelationshipKind,
    SiteMap,
    Solution,
    Table,
    View,
)
from ..repository.base import (
    CHARTS_SET,
    COMPONENT_ENTITY,
    COMPONENT_SITEMAP,
    COMPONENT_SYSTEM_FORM,
    DASHBOARD_FORM_TYPE,
    FORM_COLUMNS,
    FORMS_SET,
    SITEMAP_COLUMNS,
    SITEMAPS_SET,
    VIEWS_SET,
    MetadataRepository,
    Payload,
)
from ..utils.core.error_tracker import ErrorTracker
from ..utils.core.exceptions import ErrorCategory, FetchError

logger = logging.getLogger(__name__)

USE_LABEL: Final[str] = "UseLabel"

VIEW_TYPES: Final[dict[int, str]] = {
    0: "Public View",
    1: "Advanced Search View",
    2: "Associated View",
    4: "Quick Find Search View",
    64: "Lookup view",
    2048: "Saved query used for workflow templates and email templates",
    8192: "Outlook offline template",
}

FORM_TYPES: Final[dict[int, str]] = {
    2: "Main",
    6: "Quick View Form",
    7: "Quick Create Form",
}


def _mapping(value: object) -> Mapping[str, object]:
    return cast(Mapping[str, object], value) if isinstance(value, Mapping) else {}


def _text(payload: Payload, key: str) -> str:
    value = payload.get(key)
    return "" if value is None else str(value)


def _labels_from(payload: Payload, *qualifiers: str) -> LocalizedLabels:
    """Collect ``{qualifier: {"LocalizedLabels": [...]}}`` entries of a metadata payload."""
    labels = LocalizedLabels()
    for qualifier in qualifiers:
        labels.extend(qualifier, parse_localized_labels(_mapping(payload.get(qualifier))))
    return labels


def table_from_payload(payload: Payload) -> Table:
    """Build a :class:`Table` with its entity-level labels."""
    labels = _labels_from(payload, DISPLAY_NAME, DISPLAY_COLLECTION_NAME, DESCRIPTION)
    logical_name = _text(payload, "LogicalName")
    display = parse_localized_labels(_mapping(payload.get(DISPLAY_NAME)))
    otc = payload.get("ObjectTypeCode")
    return Table(
        id=_text(payload, "MetadataId"),
        logical_name=logical_name,
        entity_set_name=_text(payload, "EntitySetName"),
        display_label=display[0].text if display else logical_name,
        object_type_code=int(cast(int, otc)) if otc is not None else None,
        labels=labels,
    )


def option_entries_from(attribute: Payload, boolean: bool = False) -> list[OptionEntry]:
    """Flatten the options of a picklist or boolean attribute payload."""
    option_set = _mapping(attribute.get("OptionSet"))
    if not option_set:
        return []

    if boolean:
        raw_options = [option_set.get("TrueOption"), option_set.get("FalseOption")]
    else:
        raw_options = cast(list[object], option_set.get("Options") or [])

    entries: list[OptionEntry] = []
    for raw in raw_options:
        option = _mapping(raw)
        if not option or option.get("Value") is None:
            continue
        entries.append(
            OptionEntry(
                attribute_id=_text(attribute, "MetadataId"),
                attribute_logical_name=_text(attribute, "LogicalName"),
                attribute_type=_text(attribute, "AttributeType"),
                value=int(cast(int, option["Value"])),
                is_global=bool(option_set.get("IsGlobal")),
                option_set_name=_text(option_set, "Name"),
                option_set_id=_text(option_set, "MetadataId"),
                labels=_labels_from(option, LABEL, DESCRIPTION),
            )
        )
    return entries


class MetadataTreeBuilder:
    """Assembles metadata nodes from repository payloads."""

    def __init__(
        self,
        repository: MetadataRepository,
        options: ExportOptionsConfig,
        errors: ErrorTracker,
    ) -> None:
        self.repository: MetadataRepository = repository
        self.options: ExportOptionsConfig = options
        self.errors: ErrorTracker = errors

    async def resolve_solution(self, unique_name: str) -> Solution:
        """
        Find a solution by unique name.

        Raises:
            FetchError: If no visible solution has that name
        """
        for payload in await self.repository.get_solutions():
            if _text(payload, "uniquename").lower() == unique_name.lower():
                return Solution(
                    solution_id=_text(payload, "solutionid"),
                    name=_text(payload, "friendlyname"),
                    unique_name=_text(payload, "uniquename"),
                )
        raise FetchError(f"Solution not found: {unique_name}", recoverable=False)

    async def build_tables(self, solution: Solution | None, logical_names: list[str]) -> list[Table]:
        """
        Fetch the selected tables and their entity-level labels.

        Explicit logical names take precedence over the solution's table
        components. The result is sorted by display label.
        """
        if logical_names:
            requests = [self.repository.get_entity(name) for name in logical_names]
            references = list(logical_names)
        elif solution is not None:
            ids = await self.repository.get_solution_component_ids(solution.solution_id, COMPONENT_ENTITY)
            requests = [self.repository.get_entity_by_id(metadata_id) for metadata_id in ids]
            references = ids
        else:
            return []

        results = await asyncio.gather(*requests, return_exceptions=True)

        tables: list[Table] = []
        for reference, result in zip(references, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                _ = self.errors.record(
                    FetchError(f"Failed to fetch entity metadata for {reference}: {result}"),
                    phase="Tables",
                )
                continue
            tables.append(table_from_payload(result))

        tables.sort(key=lambda table: table.display_label.casefold())
        logger.info(f"Fetched {len(tables)} tables")
        return tables

    async def populate(self, tables: list[Table]) -> None:
        """Fill every table's child collections concurrently."""
        _ = await asyncio.gather(*(self._populate_table(table) for table in tables))

    async def _populate_table(self, table: Table) -> None:
        options = self.options
        # Field display names feed the form field context column.
        if options.attributes or options.form_fields or options.dashboards:
            await self._guarded(table, "attributes", self.load_fields(table))
        if options.relationships:
            await self._guarded(table, "relationships", self.load_relationships(table))
        if options.needs_option_sets:
            await self._guarded(table, "option sets", self.load_option_sets(table))
        if options.booleans:
            await self._guarded(table, "booleans", self.load_booleans(table))
        if options.views:
            await self._guarded(table, "views", self.load_views(table))
        if options.charts:
            await self._guarded(table, "charts", self.load_charts(table))

    async def _guarded(self, table: Table, part: str, operation: Awaitable[None]) -> None:
        try:
            await operation
        except Exception as e:
            _ = self.errors.record(
                e,
                phase=f"{table.logical_name} {part}",
                category=ErrorCategory.FETCH,
            )

    async def load_fields(self, table: Table) -> None:
        for payload in await self.repository.get_attributes(table.logical_name):
            table.fields.append(
                Field(
                    id=_text(payload, "MetadataId"),
                    logical_name=_text(payload, "LogicalName"),
                    labels=_labels_from(payload, DISPLAY_NAME, DESCRIPTION),
                )
            )

    async def load_relationships(self, table: Table) -> None:
        """Load relationships whose associated menu shows a custom label."""
        seen: set[str] = set()
        for kind in (RelationshipKind.ONE_TO_MANY, RelationshipKind.MANY_TO_ONE):
            for payload in await self.repository.get_relationships(table.logical_name, kind):
                menu = _mapping(payload.get("AssociatedMenuConfiguration"))
                relationship_id = _text(payload, "MetadataId")
                if menu.get("Behavior") != USE_LABEL or relationship_id in seen:
                    continue
                seen.add(relationship_id)
                labels = LocalizedLabels()
                labels.extend(DISPLAY_NAME, parse_localized_labels(_mapping(menu.get("Label"))))
                table.relationships.append(
                    Relationship(
                        id=relationship_id,
                        schema_name=_text(payload, "SchemaName"),
                        kind=kind,
                        referencing_entity=_text(payload, "ReferencingEntity"),
                        labels=labels,
                    )
                )

        for payload in await self.repository.get_relationships(table.logical_name, RelationshipKind.MANY_TO_MANY):
            first = _mapping(payload.get("Entity1AssociatedMenuConfiguration"))
            second = _mapping(payload.get("Entity2AssociatedMenuConfiguration"))
            relationship_id = _text(payload, "MetadataId")
            if USE_LABEL not in (first.get("Behavior"), second.get("Behavior")) or relationship_id in seen:
                continue
            seen.add(relationship_id)
            menu = first if payload.get("Entity1LogicalName") == table.logical_name else second
            labels = LocalizedLabels()
            labels.extend(DISPLAY_NAME, parse_localized_labels(_mapping(menu.get("Label"))))
            table.relationships.append(
                Relationship(
                    id=relationship_id,
                    schema_name=_text(payload, "SchemaName"),
                    kind=RelationshipKind.MANY_TO_MANY,
                    intersect_entity=_text(payload, "IntersectEntityName"),
                    labels=labels,
                )
            )

    async def load_option_sets(self, table: Table) -> None:
        for attribute in await self.repository.get_picklist_attributes(table.logical_name):
            table.option_entries.extend(option_entries_from(attribute))
        logger.debug(f"Loaded {len(table.option_entries)} option entries for {table.logical_name}")

    async def load_booleans(self, table: Table) -> None:
        for attribute in await self.repository.get_boolean_attributes(table.logical_name):
            table.option_entries.extend(option_entries_from(attribute, boolean=True))

    async def load_views(self, table: Table) -> None:
        if table.object_type_code is None:
            return
        payloads = await self.repository.get_views(table.object_type_code)
        labels = await asyncio.gather(
            *(self._record_labels(VIEWS_SET, _text(payload, "savedqueryid")) for payload in payloads)
        )
        for payload, view_labels in zip(payloads, labels):
            query_type = payload.get("querytype")
            view_type = VIEW_TYPES.get(cast(int, query_type), str(query_type)) if query_type is not None else ""
            table.views.append(
                View(
                    id=_text(payload, "savedqueryid"),
                    name=_text(payload, "name"),
                    view_type=view_type,
                    labels=view_labels,
                )
            )

    async def load_charts(self, table: Table) -> None:
        if table.object_type_code is None:
            return
        payloads = await self.repository.get_charts(table.object_type_code)
        labels = await asyncio.gather(
            *(self._record_labels(CHARTS_SET, _text(payload, "savedqueryvisualizationid")) for payload in payloads)
        )
        for payload, chart_labels in zip(payloads, labels):
            table.charts.append(
                Chart(
                    id=_text(payload, "savedqueryvisualizationid"),
                    name=_text(payload, "name"),
                    labels=chart_labels,
                )
            )

    async def snapshot_forms(self, tables: list[Table], language: int, is_base: bool) -> None:
        """Fetch every table's forms in the active locale concurrently."""
        _ = await asyncio.gather(
            *(self._guarded(table, "forms", self.load_forms(table, language, is_base)) for table in tables)
        )

    async def load_forms(self, table: Table, language: int, is_base: bool) -> None:
        """
        Snapshot the table's forms as rendered in the active locale.

        Name and description loc labels are language independent and only
        fetched for the base snapshot.
        """
        if table.object_type_code is None:
            return
        for payload in await self.repository.get_forms(table.object_type_code):
            form_id = _text(payload, "formid")
            form_type = payload.get("type")
            table.forms.append(
                FormSnapshot(
                    id=form_id,
                    name=_text(payload, "name"),
                    unique_id=_text(payload, "formidunique"),
                    layout_xml=_text(payload, "formxml"),
                    language=language,
                    is_base=is_base,
                    labels=await self._record_labels(FORMS_SET, form_id) if is_base else LocalizedLabels(),
                    form_type=FORM_TYPES.get(cast(int, form_type), str(form_type)) if form_type is not None else "",
                    entity_logical_name=table.logical_name,
                )
            )

    async def load_dashboards(self, solution: Solution, language: int, is_base: bool) -> list[DashboardSnapshot]:
        """Snapshot the solution's dashboards as rendered in the active locale."""
        dashboards: list[DashboardSnapshot] = []
        ids = await self.repository.get_solution_component_ids(solution.solution_id, COMPONENT_SYSTEM_FORM)
        for form_id in ids:
            try:
                payload = await self.repository.retrieve_record(FORMS_SET, form_id, FORM_COLUMNS)
            except Exception as e:
                _ = self.errors.record(e, phase="Dashboards", category=ErrorCategory.FETCH)
                continue
            if payload.get("type") != DASHBOARD_FORM_TYPE:
                continue
            dashboards.append(
                DashboardSnapshot(
                    id=_text(payload, "formid") or form_id,
                    name=_text(payload, "name"),
                    unique_id=_text(payload, "formidunique"),
                    layout_xml=_text(payload, "formxml"),
                    language=language,
                    is_base=is_base,
                    labels=await self._record_labels(FORMS_SET, form_id) if is_base else LocalizedLabels(),
                )
            )
        return dashboards

    async def load_sitemaps(self, solution: Solution) -> list[SiteMap]:
        """Site maps carry every language in one document, so one fetch suffices."""
        sitemaps: list[SiteMap] = []
        for sitemap_id in await self.repository.get_solution_component_ids(solution.solution_id, COMPONENT_SITEMAP):
            try:
                payload = await self.repository.retrieve_record(SITEMAPS_SET, sitemap_id, SITEMAP_COLUMNS)
            except Exception as e:
                _ = self.errors.record(e, phase="SiteMaps", category=ErrorCategory.FETCH)
                continue
            sitemaps.append(
                SiteMap(
                    id=_text(payload, "sitemapid") or sitemap_id,
                    name=_text(payload, "sitemapname"),
                    unique_name=_text(payload, "sitemapnameunique"),
                    xml=_text(payload, "sitemapxml"),
                )
            )
        if not sitemaps:
            logger.warning(f"No site map found for solution {solution.unique_name}")
        return sitemaps

    async def _record_labels(self, entity_set: str, record_id: str) -> LocalizedLabels:
        """Name and description loc labels of a view, chart or form record."""
        names, descriptions = await asyncio.gather(
            self.repository.get_loc_labels(entity_set, record_id, "name"),
            self.repository.get_loc_labels(entity_set, record_id, "description"),
        )
        labels = LocalizedLabels()
        labels.extend(LABEL, parse_localized_labels(names))
        labels.extend(DESCRIPTION, parse_localized_labels(descriptions))
        return labels
