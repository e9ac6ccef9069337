"""
Sheet projector.

Flattens a :class:`~metaloc.model.nodes.MetadataTree` into one
:class:`~metaloc.workbook.document.SheetData` per entity kind: identity
columns first, then one column per output language. A row is emitted for
every (node, qualifier) pair the label filter keeps; languages a label set
lacks become empty cells. The tree is only read, never modified.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from ..config.schema import ExportOptionsConfig
from ..model.labels import DISPLAY_NAME, LABEL, LabelOption, LabelSet, LocalizedLabels
from ..model.nodes import (
    FragmentKind,
    LayoutFragment,
    MetadataTree,
    RelationshipKind,
    SiteMapElementKind,
)
from ..workbook import layouts
from ..workbook.document import CellValue, SheetData
from ..workbook.layouts import SheetLayout, wrap_id

logger = logging.getLogger(__name__)

IdentityFunc = Callable[[str], list[CellValue]]


def output_languages(
    installed: list[int],
    selected: list[int],
    base_language: int,
    all_languages: bool,
) -> list[int]:
    """
    Decide the language columns of an export.

    Every installed language when ``all_languages`` is set, otherwise the
    selected ones in their given order. The base language is always present.
    """
    codes = list(installed) if all_languages else list(dict.fromkeys(selected))
    if base_language not in codes:
        codes.append(base_language)
    return codes


class SheetProjector:
    """Builds worksheet values from a metadata tree."""

    def __init__(self, languages: list[int], options: ExportOptionsConfig) -> None:
        self.languages: list[int] = languages
        self.options: ExportOptionsConfig = options
        self.label_filter: LabelOption = options.label_filter

    def project(self, tree: MetadataTree) -> list[SheetData]:
        """Produce every enabled sheet in export order."""
        options = self.options
        sheets: list[SheetData] = []

        if options.entities:
            sheets.append(self.entities(tree))
        if options.attributes:
            sheets.append(self.attributes(tree))
        if options.relationships and self.label_filter is not LabelOption.DESCRIPTIONS:
            sheets.extend(self.relationships(tree))
        if options.local_option_sets:
            sheets.append(self.local_option_sets(tree))
        if options.global_option_sets:
            sheets.append(self.global_option_sets(tree))
        if options.booleans:
            sheets.append(self.booleans(tree))
        if options.views:
            sheets.append(self.views(tree))
        if options.charts:
            sheets.append(self.charts(tree))
        if options.forms:
            sheets.append(self.forms(tree))
        if options.form_tabs:
            sheets.append(self.form_fragments(tree, FragmentKind.TAB, layouts.FORMS_TABS))
        if options.form_sections:
            sheets.append(self.form_fragments(tree, FragmentKind.SECTION, layouts.FORMS_SECTIONS))
        if options.form_fields:
            sheets.append(self.form_fragments(tree, FragmentKind.FIELD, layouts.FORMS_FIELDS))
        if options.sitemaps:
            sheets.extend(self.sitemaps(tree))
        if options.dashboards:
            sheets.extend(self.dashboards(tree))

        for sheet in sheets:
            logger.debug(f"Projected sheet {sheet.name}: {len(sheet.rows)} rows")
        return sheets

    # Row helpers

    def _cells(self, label_set: LabelSet | None) -> list[CellValue]:
        if label_set is None:
            return [None] * len(self.languages)
        return [label_set.get(code) for code in self.languages]

    def _label_rows(self, labels: LocalizedLabels, identity: IdentityFunc) -> Iterable[list[CellValue]]:
        for qualifier, label_set in labels.items():
            if self.label_filter.includes(qualifier):
                yield [*identity(qualifier), *self._cells(label_set)]

    def _fixed_row(self, labels: LocalizedLabels, qualifier: str, identity: list[CellValue]) -> list[CellValue]:
        return [*identity, *self._cells(labels.get(qualifier))]

    def _sheet(self, layout: SheetLayout) -> SheetData:
        return SheetData(name=layout.name, header=layout.header(self.languages))

    # Table-level sheets

    def entities(self, tree: MetadataTree) -> SheetData:
        sheet = self._sheet(layouts.ENTITIES)
        for table in tree.tables:
            sheet.rows.extend(
                self._label_rows(table.labels, lambda q, t=table: [wrap_id(t.id), t.logical_name, q])
            )
        return sheet

    def attributes(self, tree: MetadataTree) -> SheetData:
        sheet = self._sheet(layouts.ATTRIBUTES)
        for table in tree.tables:
            for fld in table.fields:
                sheet.rows.extend(
                    self._label_rows(
                        fld.labels,
                        lambda q, t=table, f=fld: [wrap_id(f.id), t.logical_name, f.logical_name, q],
                    )
                )
        return sheet

    def relationships(self, tree: MetadataTree) -> list[SheetData]:
        """One-to-many and many-to-many relationship menu labels; names only."""
        one_to_many = self._sheet(layouts.RELATIONSHIPS)
        many_to_many = self._sheet(layouts.RELATIONSHIPS_NN)
        for table in tree.tables:
            for relationship in table.relationships:
                if relationship.kind is RelationshipKind.MANY_TO_MANY:
                    many_to_many.rows.append(
                        self._fixed_row(
                            relationship.labels,
                            DISPLAY_NAME,
                            [table.logical_name, wrap_id(relationship.id), relationship.intersect_entity],
                        )
                    )
                else:
                    one_to_many.rows.append(
                        self._fixed_row(
                            relationship.labels,
                            DISPLAY_NAME,
                            [
                                table.logical_name,
                                wrap_id(relationship.id),
                                relationship.schema_name,
                                relationship.referencing_entity,
                            ],
                        )
                    )
        return [one_to_many, many_to_many]

    def local_option_sets(self, tree: MetadataTree) -> SheetData:
        sheet = self._sheet(layouts.LOCAL_OPTION_SETS)
        for table in tree.tables:
            for entry in table.option_entries:
                if entry.is_global or entry.is_boolean:
                    continue
                sheet.rows.extend(
                    self._label_rows(
                        entry.labels,
                        lambda q, t=table, e=entry: [
                            wrap_id(e.attribute_id),
                            t.logical_name,
                            e.attribute_logical_name,
                            e.attribute_type,
                            e.value,
                            q,
                        ],
                    )
                )
        return sheet

    def global_option_sets(self, tree: MetadataTree) -> SheetData:
        """Global choices shared by several columns appear once per (option set, value)."""
        sheet = self._sheet(layouts.GLOBAL_OPTION_SETS)
        seen: set[tuple[str, int]] = set()
        for table in tree.tables:
            for entry in table.option_entries:
                if not entry.is_global or entry.is_boolean:
                    continue
                if (entry.option_set_name, entry.value) in seen:
                    continue
                seen.add((entry.option_set_name, entry.value))
                sheet.rows.extend(
                    self._label_rows(
                        entry.labels,
                        lambda q, e=entry: [
                            wrap_id(e.option_set_id),
                            e.option_set_name,
                            e.attribute_type,
                            e.value,
                            q,
                        ],
                    )
                )
        return sheet

    def booleans(self, tree: MetadataTree) -> SheetData:
        sheet = self._sheet(layouts.BOOLEANS)
        for table in tree.tables:
            for entry in table.option_entries:
                if not entry.is_boolean:
                    continue
                sheet.rows.extend(
                    self._label_rows(
                        entry.labels,
                        lambda q, t=table, e=entry: [
                            wrap_id(e.attribute_id),
                            t.logical_name,
                            e.attribute_logical_name,
                            e.attribute_type,
                            e.value,
                            q,
                        ],
                    )
                )
        return sheet

    def views(self, tree: MetadataTree) -> SheetData:
        sheet = self._sheet(layouts.VIEWS)
        for table in tree.tables:
            for view in table.views:
                sheet.rows.extend(
                    self._label_rows(
                        view.labels,
                        lambda q, t=table, v=view: [wrap_id(v.id), t.logical_name, v.view_type, q],
                    )
                )
        return sheet

    def charts(self, tree: MetadataTree) -> SheetData:
        sheet = self._sheet(layouts.CHARTS)
        for table in tree.tables:
            for chart in table.charts:
                sheet.rows.extend(
                    self._label_rows(chart.labels, lambda q, t=table, c=chart: [wrap_id(c.id), t.logical_name, q])
                )
        return sheet

    def forms(self, tree: MetadataTree) -> SheetData:
        sheet = self._sheet(layouts.FORMS)
        for table in tree.tables:
            for form in table.forms:
                if not form.is_base:
                    continue
                sheet.rows.extend(
                    self._label_rows(
                        form.labels,
                        lambda q, f=form: [
                            wrap_id(f.unique_id),
                            wrap_id(f.id),
                            f.entity_logical_name,
                            f.form_type,
                            q,
                        ],
                    )
                )
        return sheet

    def form_fragments(self, tree: MetadataTree, kind: FragmentKind, layout: SheetLayout) -> SheetData:
        sheet = self._sheet(layout)
        if not self.label_filter.includes(LABEL):
            return sheet
        for table in tree.tables:
            for fragment in table.form_fragments:
                if fragment.kind is kind:
                    sheet.rows.append(self._fragment_row(fragment, include_entity=True))
        return sheet

    # Solution-level sheets

    def sitemaps(self, tree: MetadataTree) -> list[SheetData]:
        areas = self._sheet(layouts.SITEMAP_AREAS)
        groups = self._sheet(layouts.SITEMAP_GROUPS)
        sub_areas = self._sheet(layouts.SITEMAP_SUBAREAS)
        for element in tree.sitemap_elements:
            prefix: list[CellValue] = [element.sitemap_name, wrap_id(element.sitemap_id)]
            match element.kind:
                case SiteMapElementKind.AREA:
                    identity = [*prefix, element.element_id]
                    target = areas
                case SiteMapElementKind.GROUP:
                    identity = [*prefix, element.area_id, element.element_id]
                    target = groups
                case SiteMapElementKind.SUB_AREA:
                    identity = [*prefix, element.area_id, element.group_id, element.element_id]
                    target = sub_areas
            target.rows.extend(self._label_rows(element.labels, lambda q, i=identity: [*i, q]))
        return [areas, groups, sub_areas]

    def dashboards(self, tree: MetadataTree) -> list[SheetData]:
        names = self._sheet(layouts.DASHBOARDS)
        for dashboard in tree.dashboards:
            if not dashboard.is_base:
                continue
            names.rows.extend(
                self._label_rows(
                    dashboard.labels,
                    lambda q, d=dashboard: [wrap_id(d.unique_id), wrap_id(d.id), q],
                )
            )

        sheets = [names]
        for kind, layout in (
            (FragmentKind.TAB, layouts.DASHBOARDS_TABS),
            (FragmentKind.SECTION, layouts.DASHBOARDS_SECTIONS),
            (FragmentKind.FIELD, layouts.DASHBOARDS_FIELDS),
        ):
            sheet = self._sheet(layout)
            if self.label_filter.includes(LABEL):
                sheet.rows.extend(
                    self._fragment_row(fragment, include_entity=False)
                    for fragment in tree.dashboard_fragments
                    if fragment.kind is kind
                )
            sheets.append(sheet)
        return sheets

    def _fragment_row(self, fragment: LayoutFragment, include_entity: bool) -> list[CellValue]:
        """Layout fragment ids already carry their braces and are written as-is."""
        identity: list[CellValue] = [fragment.element_id]
        if include_entity:
            identity.append(fragment.entity_logical_name)
        identity.extend([fragment.form_name, wrap_id(fragment.form_unique_id), wrap_id(fragment.form_id)])
        if fragment.kind is not FragmentKind.TAB:
            identity.append(fragment.tab_name)
        if fragment.kind is FragmentKind.FIELD:
            identity.extend([fragment.section_name, fragment.attribute, fragment.display_name])
        return self._fixed_row(fragment.labels, LABEL, identity)
