"""
Metadata tree nodes.

Each node kind is a dataclass carrying only the fields that kind needs plus
its :class:`~metaloc.model.labels.LocalizedLabels`. A :class:`Table` owns its
fields, relationships, option entries, views, charts, form snapshots and form
layout fragments; the :class:`MetadataTree` references solution-level
dashboards and site maps by id.
"""

from __future__ import annotations

import locale
from dataclasses import dataclass, field
from enum import Enum

from .labels import DISPLAY_NAME, LocalizedLabels


@dataclass(frozen=True)
class Solution:
    """A selection scope in the repository."""

    solution_id: str
    name: str
    unique_name: str


@dataclass(frozen=True)
class LanguageDef:
    """An installed language."""

    code: int
    name: str


@dataclass(frozen=True)
class UserSettings:
    """The operator's active locale."""

    user_id: str
    ui_language: int
    locale: int


class RelationshipKind(Enum):
    ONE_TO_MANY = "OneToMany"
    MANY_TO_ONE = "ManyToOne"
    MANY_TO_MANY = "ManyToMany"


class FragmentKind(Enum):
    """Captioned elements of form and dashboard layouts."""

    TAB = "tab"
    SECTION = "section"
    FIELD = "field"

    @property
    def tag(self) -> str:
        return "cell" if self is FragmentKind.FIELD else self.value


class SiteMapElementKind(Enum):
    """Captioned elements of a site map."""

    AREA = "Area"
    GROUP = "Group"
    SUB_AREA = "SubArea"

    @property
    def tag(self) -> str:
        return self.value


@dataclass
class Field:
    id: str
    logical_name: str
    labels: LocalizedLabels = field(default_factory=LocalizedLabels)


@dataclass
class Relationship:
    id: str
    schema_name: str
    kind: RelationshipKind
    referencing_entity: str = ""
    intersect_entity: str = ""
    labels: LocalizedLabels = field(default_factory=LocalizedLabels)


@dataclass
class OptionEntry:
    """A single option value of a picklist or boolean attribute."""

    attribute_id: str
    attribute_logical_name: str
    attribute_type: str
    value: int
    is_global: bool = False
    option_set_name: str = ""
    option_set_id: str = ""
    labels: LocalizedLabels = field(default_factory=LocalizedLabels)

    @property
    def is_boolean(self) -> bool:
        return self.attribute_type == "Boolean"


@dataclass
class View:
    id: str
    name: str
    view_type: str
    labels: LocalizedLabels = field(default_factory=LocalizedLabels)


@dataclass
class Chart:
    id: str
    name: str
    labels: LocalizedLabels = field(default_factory=LocalizedLabels)


@dataclass
class LayoutSnapshot:
    """
    A form or dashboard as served in one language.

    The repository only renders layout captions in the caller's active
    locale, so one snapshot is taken per language. The snapshot taken in the
    base language is authoritative for names and context columns.
    """

    id: str
    name: str
    unique_id: str
    layout_xml: str
    language: int
    is_base: bool = False
    labels: LocalizedLabels = field(default_factory=LocalizedLabels)


@dataclass
class FormSnapshot(LayoutSnapshot):
    form_type: str = ""
    entity_logical_name: str = ""


@dataclass
class DashboardSnapshot(LayoutSnapshot):
    pass


@dataclass
class LayoutFragment:
    """A tab, section or field caption surfaced from a layout document."""

    element_id: str
    kind: FragmentKind
    form_id: str
    form_unique_id: str
    form_name: str
    entity_logical_name: str = ""
    tab_name: str = ""
    section_name: str = ""
    attribute: str = ""
    display_name: str = ""
    labels: LocalizedLabels = field(default_factory=LocalizedLabels)


@dataclass
class SiteMap:
    id: str
    name: str
    unique_name: str
    xml: str


@dataclass
class SiteMapElement:
    element_id: str
    kind: SiteMapElementKind
    sitemap_id: str
    sitemap_name: str
    area_id: str = ""
    group_id: str = ""
    labels: LocalizedLabels = field(default_factory=LocalizedLabels)


@dataclass
class Table:
    id: str
    logical_name: str
    entity_set_name: str = ""
    display_label: str = ""
    object_type_code: int | None = None
    labels: LocalizedLabels = field(default_factory=LocalizedLabels)
    fields: list[Field] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)
    option_entries: list[OptionEntry] = field(default_factory=list)
    views: list[View] = field(default_factory=list)
    charts: list[Chart] = field(default_factory=list)
    forms: list[FormSnapshot] = field(default_factory=list)
    form_fragments: list[LayoutFragment] = field(default_factory=list)

    def field_display_name(self, logical_name: str, language_code: int) -> str | None:
        """Display name of one of this table's fields in the given language."""
        for fld in self.fields:
            if fld.logical_name == logical_name:
                return fld.labels.text(DISPLAY_NAME, language_code)
        return None


@dataclass
class MetadataTree:
    """Everything one export run collects."""

    base_language: int
    tables: list[Table] = field(default_factory=list)
    dashboards: list[DashboardSnapshot] = field(default_factory=list)
    dashboard_fragments: list[LayoutFragment] = field(default_factory=list)
    sitemaps: list[SiteMap] = field(default_factory=list)
    sitemap_elements: list[SiteMapElement] = field(default_factory=list)


def language_def(code: int) -> LanguageDef:
    """Describe a language code using the platform's LCID table."""
    return LanguageDef(code=code, name=locale.windows_locale.get(code, str(code)))
