"""
Update units produced by the import parser.

Rows are grouped by an explicit ``(kind, key)`` tuple. Later rows for the
same pair extend or overwrite individual language entries and never drop a
qualifier that was merged earlier.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum

UnitKey = tuple[str | int, ...]


class UnitKind(Enum):
    ENTITY = "entity"
    ATTRIBUTE = "attribute"
    RELATIONSHIP = "relationship"
    MANY_TO_MANY_RELATIONSHIP = "many_to_many_relationship"
    LOCAL_OPTION = "local_option"
    GLOBAL_OPTION = "global_option"
    BOOLEAN_OPTION = "boolean_option"
    VIEW = "view"
    CHART = "chart"
    FORM = "form"
    DASHBOARD = "dashboard"
    FORM_LAYOUT = "form_layout"
    DASHBOARD_LAYOUT = "dashboard_layout"
    SITEMAP_LAYOUT = "sitemap_layout"

    @property
    def is_layout(self) -> bool:
        """Layout units are patched into a cached document instead of written directly."""
        return self in (UnitKind.FORM_LAYOUT, UnitKind.DASHBOARD_LAYOUT, UnitKind.SITEMAP_LAYOUT)


@dataclass
class UpdateUnit:
    """One grouped, ready-to-apply change."""

    kind: UnitKind
    key: UnitKey
    labels: dict[str, dict[int, str]] = field(default_factory=dict)

    def merge(self, qualifier: str, translations: Mapping[int, str]) -> None:
        self.labels.setdefault(qualifier, {}).update(translations)

    def qualifier_labels(self, qualifier: str) -> dict[int, str]:
        """Translations for ``qualifier``, matched case-insensitively."""
        for name, translations in self.labels.items():
            if name.lower() == qualifier.lower():
                return translations
        return {}

    @property
    def is_empty(self) -> bool:
        return not any(self.labels.values())


class UnitAccumulator:
    """Insertion-ordered map of ``(kind, key)`` to :class:`UpdateUnit`."""

    def __init__(self) -> None:
        self._units: dict[tuple[UnitKind, UnitKey], UpdateUnit] = {}

    def add(
        self,
        kind: UnitKind,
        key: UnitKey,
        qualifier: str,
        translations: Mapping[int, str],
    ) -> UpdateUnit:
        unit = self._units.get((kind, key))
        if unit is None:
            unit = UpdateUnit(kind, key)
            self._units[(kind, key)] = unit
        unit.merge(qualifier, translations)
        return unit

    def get(self, kind: UnitKind, key: UnitKey) -> UpdateUnit | None:
        return self._units.get((kind, key))

    def units(self) -> list[UpdateUnit]:
        return [unit for unit in self._units.values() if not unit.is_empty]

    def __iter__(self) -> Iterator[UpdateUnit]:
        return iter(self.units())

    def __len__(self) -> int:
        return len(self.units())
