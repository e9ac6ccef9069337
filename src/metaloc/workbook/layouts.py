"""
Worksheet layouts.

Every sheet starts with a fixed block of identity columns followed by one
column per language code. The same table drives both the projector (which
writes headers and rows) and the parser (which reads identity cells back and
groups rows into update units), so the two directions cannot drift apart.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from ..model.labels import LABEL
from ..model.units import UnitKind

TYPE_COLUMN: Final[str] = "Type"
VALUE_COLUMN: Final[str] = "Value"

# Minimum value a header must exceed to be taken as the first language column.
LANGUAGE_CODE_THRESHOLD: Final[int] = 1000


@dataclass(frozen=True)
class SheetLayout:
    """Column layout of one worksheet."""

    name: str
    columns: tuple[str, ...]
    unit_kind: UnitKind
    key_columns: tuple[str, ...]
    braced_columns: frozenset[str] = field(default_factory=frozenset)
    fixed_qualifier: str | None = None
    element_tag: str | None = None

    @property
    def language_offset(self) -> int:
        """Zero-based index of the first language column."""
        return len(self.columns)

    @property
    def type_column(self) -> str | None:
        return TYPE_COLUMN if TYPE_COLUMN in self.columns else None

    def header(self, language_codes: list[int]) -> list[str | int]:
        return [*self.columns, *language_codes]

    def index(self, column: str) -> int:
        return self.columns.index(column)


_OPTION_COLUMNS = (
    "Attribute Id",
    "Entity Logical Name",
    "Attribute Logical Name",
    "Attribute Type",
    VALUE_COLUMN,
    TYPE_COLUMN,
)

ENTITIES = SheetLayout(
    name="Entities",
    columns=("Entity Id", "Entity Logical Name", TYPE_COLUMN),
    unit_kind=UnitKind.ENTITY,
    key_columns=("Entity Logical Name",),
    braced_columns=frozenset({"Entity Id"}),
)
ATTRIBUTES = SheetLayout(
    name="Attributes",
    columns=("Attribute Id", "Entity Logical Name", "Attribute Logical Name", TYPE_COLUMN),
    unit_kind=UnitKind.ATTRIBUTE,
    key_columns=("Entity Logical Name", "Attribute Logical Name"),
    braced_columns=frozenset({"Attribute Id"}),
)
RELATIONSHIPS = SheetLayout(
    name="Relationships",
    columns=("Entity", "Relationship Id", "Relationship Name", "Relationship entity"),
    unit_kind=UnitKind.RELATIONSHIP,
    key_columns=("Relationship Id", "Entity"),
    braced_columns=frozenset({"Relationship Id"}),
    fixed_qualifier="DisplayName",
)
RELATIONSHIPS_NN = SheetLayout(
    name="RelationshipsNN",
    columns=("Entity", "Relationship Id", "Relationship Intersect Entity"),
    unit_kind=UnitKind.MANY_TO_MANY_RELATIONSHIP,
    key_columns=("Relationship Id", "Entity"),
    braced_columns=frozenset({"Relationship Id"}),
    fixed_qualifier="DisplayName",
)
LOCAL_OPTION_SETS = SheetLayout(
    name="Local OptionSets",
    columns=_OPTION_COLUMNS,
    unit_kind=UnitKind.LOCAL_OPTION,
    key_columns=("Entity Logical Name", "Attribute Logical Name", VALUE_COLUMN),
    braced_columns=frozenset({"Attribute Id"}),
)
GLOBAL_OPTION_SETS = SheetLayout(
    name="Global OptionSets",
    columns=("OptionSet Id", "OptionSet Name", "Attribute Type", VALUE_COLUMN, TYPE_COLUMN),
    unit_kind=UnitKind.GLOBAL_OPTION,
    key_columns=("OptionSet Name", VALUE_COLUMN),
    braced_columns=frozenset({"OptionSet Id"}),
)
BOOLEANS = SheetLayout(
    name="Booleans",
    columns=_OPTION_COLUMNS,
    unit_kind=UnitKind.BOOLEAN_OPTION,
    key_columns=("Entity Logical Name", "Attribute Logical Name", VALUE_COLUMN),
    braced_columns=frozenset({"Attribute Id"}),
)
VIEWS = SheetLayout(
    name="Views",
    columns=("View Id", "Entity Logical Name", "View Type", TYPE_COLUMN),
    unit_kind=UnitKind.VIEW,
    key_columns=("View Id",),
    braced_columns=frozenset({"View Id"}),
)
CHARTS = SheetLayout(
    name="Charts",
    columns=("Chart Id", "Entity Logical Name", TYPE_COLUMN),
    unit_kind=UnitKind.CHART,
    key_columns=("Chart Id",),
    braced_columns=frozenset({"Chart Id"}),
)
FORMS = SheetLayout(
    name="Forms",
    columns=("Form Unique Id", "Form Id", "Entity Logical Name", "Form Type", TYPE_COLUMN),
    unit_kind=UnitKind.FORM,
    key_columns=("Form Id",),
    braced_columns=frozenset({"Form Unique Id", "Form Id"}),
)
FORMS_TABS = SheetLayout(
    name="Forms Tabs",
    columns=("Tab Id", "Entity Logical Name", "Form Name", "Form Unique Id", "Form Id"),
    unit_kind=UnitKind.FORM_LAYOUT,
    key_columns=("Form Id", "Tab Id"),
    braced_columns=frozenset({"Form Unique Id", "Form Id"}),
    fixed_qualifier=LABEL,
    element_tag="tab",
)
FORMS_SECTIONS = SheetLayout(
    name="Forms Sections",
    columns=("Section Id", "Entity Logical Name", "Form Name", "Form Unique Id", "Form Id", "Tab Name"),
    unit_kind=UnitKind.FORM_LAYOUT,
    key_columns=("Form Id", "Section Id"),
    braced_columns=frozenset({"Form Unique Id", "Form Id"}),
    fixed_qualifier=LABEL,
    element_tag="section",
)
FORMS_FIELDS = SheetLayout(
    name="Forms Fields",
    columns=(
        "Label Id",
        "Entity Logical Name",
        "Form Name",
        "Form Unique Id",
        "Form Id",
        "Tab Name",
        "Section Name",
        "Attribute",
        "Display Name",
    ),
    unit_kind=UnitKind.FORM_LAYOUT,
    key_columns=("Form Id", "Label Id"),
    braced_columns=frozenset({"Form Unique Id", "Form Id"}),
    fixed_qualifier=LABEL,
    element_tag="cell",
)
SITEMAP_AREAS = SheetLayout(
    name="SiteMap Areas",
    columns=("SiteMap Name", "SiteMap Id", "Area Id", TYPE_COLUMN),
    unit_kind=UnitKind.SITEMAP_LAYOUT,
    key_columns=("SiteMap Id", "Area Id"),
    braced_columns=frozenset({"SiteMap Id"}),
    element_tag="Area",
)
SITEMAP_GROUPS = SheetLayout(
    name="SiteMap Groups",
    columns=("SiteMap Name", "SiteMap Id", "Area Id", "Group Id", TYPE_COLUMN),
    unit_kind=UnitKind.SITEMAP_LAYOUT,
    key_columns=("SiteMap Id", "Group Id"),
    braced_columns=frozenset({"SiteMap Id"}),
    element_tag="Group",
)
SITEMAP_SUBAREAS = SheetLayout(
    name="SiteMap SubAreas",
    columns=("SiteMap Name", "SiteMap Id", "Area Id", "Group Id", "SubArea Id", TYPE_COLUMN),
    unit_kind=UnitKind.SITEMAP_LAYOUT,
    key_columns=("SiteMap Id", "SubArea Id"),
    braced_columns=frozenset({"SiteMap Id"}),
    element_tag="SubArea",
)
DASHBOARDS = SheetLayout(
    name="Dashboards",
    columns=("Form Unique Id", "Form Id", TYPE_COLUMN),
    unit_kind=UnitKind.DASHBOARD,
    key_columns=("Form Id",),
    braced_columns=frozenset({"Form Unique Id", "Form Id"}),
)
DASHBOARDS_TABS = SheetLayout(
    name="Dashboards Tabs",
    columns=("Tab Id", "Form Name", "Form Unique Id", "Form Id"),
    unit_kind=UnitKind.DASHBOARD_LAYOUT,
    key_columns=("Form Id", "Tab Id"),
    braced_columns=frozenset({"Form Unique Id", "Form Id"}),
    fixed_qualifier=LABEL,
    element_tag="tab",
)
DASHBOARDS_SECTIONS = SheetLayout(
    name="Dashboards Sections",
    columns=("Section Id", "Form Name", "Form Unique Id", "Form Id", "Tab Name"),
    unit_kind=UnitKind.DASHBOARD_LAYOUT,
    key_columns=("Form Id", "Section Id"),
    braced_columns=frozenset({"Form Unique Id", "Form Id"}),
    fixed_qualifier=LABEL,
    element_tag="section",
)
DASHBOARDS_FIELDS = SheetLayout(
    name="Dashboards Fields",
    columns=(
        "Label Id",
        "Form Name",
        "Form Unique Id",
        "Form Id",
        "Tab Name",
        "Section Name",
        "Attribute",
        "Display Name",
    ),
    unit_kind=UnitKind.DASHBOARD_LAYOUT,
    key_columns=("Form Id", "Label Id"),
    braced_columns=frozenset({"Form Unique Id", "Form Id"}),
    fixed_qualifier=LABEL,
    element_tag="cell",
)

# Export order; the import dispatches groups in the order sheets appear in the workbook.
ALL_LAYOUTS: Final[tuple[SheetLayout, ...]] = (
    ENTITIES,
    ATTRIBUTES,
    RELATIONSHIPS,
    RELATIONSHIPS_NN,
    LOCAL_OPTION_SETS,
    GLOBAL_OPTION_SETS,
    BOOLEANS,
    VIEWS,
    CHARTS,
    FORMS,
    FORMS_TABS,
    FORMS_SECTIONS,
    FORMS_FIELDS,
    SITEMAP_AREAS,
    SITEMAP_GROUPS,
    SITEMAP_SUBAREAS,
    DASHBOARDS,
    DASHBOARDS_TABS,
    DASHBOARDS_SECTIONS,
    DASHBOARDS_FIELDS,
)

SHEET_ALIASES: Final[dict[str, str]] = {"OptionSets": LOCAL_OPTION_SETS.name}

_BY_NAME: Final[dict[str, SheetLayout]] = {layout.name: layout for layout in ALL_LAYOUTS}


def layout_for(sheet_name: str) -> SheetLayout | None:
    """Look up a layout by sheet name, accepting legacy aliases."""
    name = sheet_name.strip()
    return _BY_NAME.get(SHEET_ALIASES.get(name, name))


def wrap_id(value: str) -> str:
    """Render an opaque identifier as ``{<id>}``."""
    if not value:
        return ""
    return f"{{{strip_braces(value)}}}"


def strip_braces(value: str) -> str:
    return value.strip().removeprefix("{").removesuffix("}").strip()
