"""
Repository collaborator interface.

Reads return payloads in the repository's own wire shape (mappings with
``LocalizedLabels`` lists and so on); turning them into tree nodes is the
tree builder's job. Writes take plain ``{language code: text}`` dictionaries.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Final, Protocol, TypeAlias, runtime_checkable

from ..model.nodes import RelationshipKind, UserSettings

Payload: TypeAlias = Mapping[str, object]
LabelMap: TypeAlias = Mapping[int, str]

# Solution component types
COMPONENT_ENTITY: Final[int] = 1
COMPONENT_SYSTEM_FORM: Final[int] = 60
COMPONENT_SITEMAP: Final[int] = 62

# Record collections carrying loc labels or layout documents
FORMS_SET: Final[str] = "systemforms"
VIEWS_SET: Final[str] = "savedqueries"
CHARTS_SET: Final[str] = "savedqueryvisualizations"
SITEMAPS_SET: Final[str] = "sitemaps"

ENTITY_SET_LOGICAL_NAMES: Final[dict[str, str]] = {
    FORMS_SET: "systemform",
    VIEWS_SET: "savedquery",
    CHARTS_SET: "savedqueryvisualization",
    SITEMAPS_SET: "sitemap",
}

FORM_COLUMNS: Final[tuple[str, ...]] = ("formid", "name", "formxml", "type", "formidunique")
SITEMAP_COLUMNS: Final[tuple[str, ...]] = ("sitemapid", "sitemapname", "sitemapnameunique", "sitemapxml")

DASHBOARD_FORM_TYPE: Final[int] = 0


@runtime_checkable
class MetadataRepository(Protocol):
    """Operations consumed by the export and import pipelines."""

    async def ensure_connected(self) -> None:
        """Raise ``ConnectionUnavailableError`` when the repository cannot be reached."""
        ...

    async def get_solutions(self) -> list[Payload]: ...

    async def get_solution_component_ids(self, solution_id: str, component_type: int) -> list[str]: ...

    async def get_languages(self) -> list[int]: ...

    async def get_base_language(self) -> int: ...

    async def get_user_settings(self) -> UserSettings: ...

    async def set_user_language(self, user_id: str, language_code: int) -> None: ...

    async def get_entity(self, logical_name: str) -> Payload: ...

    async def get_entity_by_id(self, metadata_id: str) -> Payload: ...

    async def get_attributes(self, logical_name: str) -> list[Payload]: ...

    async def get_relationships(self, logical_name: str, kind: RelationshipKind) -> list[Payload]: ...

    async def get_picklist_attributes(self, logical_name: str) -> list[Payload]: ...

    async def get_boolean_attributes(self, logical_name: str) -> list[Payload]: ...

    async def get_views(self, object_type_code: int) -> list[Payload]: ...

    async def get_charts(self, object_type_code: int) -> list[Payload]: ...

    async def get_forms(self, object_type_code: int) -> list[Payload]: ...

    async def get_loc_labels(self, entity_set: str, record_id: str, attribute: str) -> Payload: ...

    async def set_loc_labels(self, entity_set: str, record_id: str, attribute: str, labels: LabelMap) -> None: ...

    async def update_entity_labels(self, logical_name: str, labels: Mapping[str, LabelMap]) -> None: ...

    async def update_attribute_labels(
        self, entity_logical_name: str, attribute_logical_name: str, labels: Mapping[str, LabelMap]
    ) -> None: ...

    async def update_relationship_label(
        self, relationship_id: str, kind: RelationshipKind, entity_logical_name: str, labels: LabelMap
    ) -> None: ...

    async def update_option_value(
        self,
        entity_logical_name: str | None,
        attribute_logical_name: str | None,
        option_set_name: str | None,
        value: int,
        labels: LabelMap,
        is_description: bool,
    ) -> None: ...

    async def retrieve_record(self, entity_set: str, record_id: str, columns: Sequence[str]) -> Payload: ...

    async def update_record(self, entity_set: str, record_id: str, data: Payload) -> None: ...

    async def publish_all(self) -> None: ...
