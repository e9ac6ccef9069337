"""
Localized label sets.

A label set maps a qualifier (the facet of a label such as ``DisplayName`` or
``Description``) to an ordered list of translations, at most one per
language code. Insertion order is preserved so export columns stay stable.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Final

DISPLAY_NAME: Final[str] = "DisplayName"
DISPLAY_COLLECTION_NAME: Final[str] = "DisplayCollectionName"
DESCRIPTION: Final[str] = "Description"
LABEL: Final[str] = "Label"
TITLE: Final[str] = "Title"


class LabelOption(Enum):
    """Which qualifiers an export or import should carry."""

    BOTH = "both"
    NAMES = "names"
    DESCRIPTIONS = "descriptions"

    def includes(self, qualifier: str) -> bool:
        """Every qualifier other than ``Description`` counts as a name."""
        is_description = qualifier.lower() == DESCRIPTION.lower()
        match self:
            case LabelOption.BOTH:
                return True
            case LabelOption.NAMES:
                return not is_description
            case LabelOption.DESCRIPTIONS:
                return is_description


@dataclass(frozen=True)
class Translation:
    """One (language code, text) pair."""

    language_code: int
    text: str


class LabelSet:
    """Ordered translations for a single qualifier."""

    def __init__(self, translations: Iterable[Translation] = ()) -> None:
        self._items: dict[int, Translation] = {}
        for translation in translations:
            self.add(translation.language_code, translation.text)

    def add(self, language_code: int, text: str) -> None:
        """Add a translation; an existing code keeps its position and takes the new text."""
        self._items[int(language_code)] = Translation(int(language_code), text)

    def get(self, language_code: int) -> str | None:
        translation = self._items.get(language_code)
        return translation.text if translation is not None else None

    def languages(self) -> list[int]:
        return list(self._items)

    def as_dict(self) -> dict[int, str]:
        return {code: translation.text for code, translation in self._items.items()}

    def __iter__(self) -> Iterator[Translation]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, language_code: object) -> bool:
        return language_code in self._items

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LabelSet):
            return NotImplemented
        return list(self) == list(other)

    def __repr__(self) -> str:
        return f"LabelSet({list(self)!r})"


class LocalizedLabels:
    """Ordered mapping of qualifier to :class:`LabelSet` attached to a node."""

    def __init__(self) -> None:
        self._sets: dict[str, LabelSet] = {}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Mapping[int, str]]) -> LocalizedLabels:
        labels = cls()
        for qualifier, translations in data.items():
            for code, text in translations.items():
                labels.add(qualifier, code, text)
        return labels

    def qualifier(self, name: str) -> LabelSet:
        """Return the label set for ``name``, creating an empty one if needed."""
        if name not in self._sets:
            self._sets[name] = LabelSet()
        return self._sets[name]

    def add(self, qualifier: str, language_code: int, text: str) -> None:
        self.qualifier(qualifier).add(language_code, text)

    def extend(self, qualifier: str, translations: Iterable[Translation]) -> None:
        label_set = self.qualifier(qualifier)
        for translation in translations:
            label_set.add(translation.language_code, translation.text)

    def get(self, qualifier: str) -> LabelSet | None:
        return self._sets.get(qualifier)

    def text(self, qualifier: str, language_code: int) -> str | None:
        label_set = self._sets.get(qualifier)
        return label_set.get(language_code) if label_set is not None else None

    def qualifiers(self) -> list[str]:
        return list(self._sets)

    def items(self) -> Iterator[tuple[str, LabelSet]]:
        return iter(self._sets.items())

    def __contains__(self, qualifier: object) -> bool:
        return qualifier in self._sets

    def __len__(self) -> int:
        return len(self._sets)

    def __repr__(self) -> str:
        return f"LocalizedLabels({self._sets!r})"


def parse_localized_labels(payload: Mapping[str, object] | None) -> list[Translation]:
    """
    Read a repository ``Label`` payload into translations.

    The repository returns ``{"LocalizedLabels": [{"LanguageCode": 1033,
    "Label": "Account"}, ...]}``; a missing or null payload yields no
    translations.
    """
    if not payload:
        return []
    raw_labels = payload.get("LocalizedLabels") or []
    translations: list[Translation] = []
    if not isinstance(raw_labels, list):
        return translations
    for raw in raw_labels:  # pyright: ignore[reportUnknownVariableType]
        if not isinstance(raw, Mapping):
            continue
        code = raw.get("LanguageCode")  # pyright: ignore[reportUnknownMemberType]
        text = raw.get("Label")  # pyright: ignore[reportUnknownMemberType]
        if code is None or text is None:
            continue
        translations.append(Translation(int(code), str(text)))  # pyright: ignore[reportArgumentType]
    return translations
