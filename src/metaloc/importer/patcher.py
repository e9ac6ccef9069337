"""
Layout XML patcher.

Caption edits for tabs, sections, fields and site-map elements are applied to
a per-run cache of layout documents. Every patch parses the cached text,
edits the parsed tree and serializes it straight back, so later patches to
the same document start from the updated text. Documents are written to the
repository once, after every sheet has been parsed.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from enum import Enum

from ..export.layout_extractor import (
    CAPTION,
    CAPTION_CONTAINER,
    CAPTION_LANGUAGE,
    CAPTION_TEXT,
    SITEMAP_CAPTIONS,
    SITEMAP_LANGUAGE,
    parse_layout,
)
from ..model.labels import LABEL
from ..model.units import UnitKind, UpdateUnit
from ..repository.base import FORMS_SET, SITEMAPS_SET, MetadataRepository
from ..utils.core.error_tracker import ErrorTracker
from ..utils.core.exceptions import ErrorCategory, LayoutParseError, ReferenceNotFoundError
from ..workbook.layouts import strip_braces

logger = logging.getLogger(__name__)


class DocumentKind(Enum):
    """Records that embed a layout document, with the column holding it."""

    FORM = (FORMS_SET, "formxml")
    SITEMAP = (SITEMAPS_SET, "sitemapxml")

    @property
    def entity_set(self) -> str:
        return self.value[0]

    @property
    def column(self) -> str:
        return self.value[1]

    @classmethod
    def for_unit(cls, kind: UnitKind) -> DocumentKind:
        return cls.SITEMAP if kind is UnitKind.SITEMAP_LAYOUT else cls.FORM


@dataclass
class LayoutDocument:
    """Cached layout text of one record."""

    document_id: str
    kind: DocumentKind
    xml: str
    patches: int = 0


class LayoutDocumentCache:
    """Layout documents keyed by ``(kind, document id)``, fetched on first use."""

    def __init__(self, repository: MetadataRepository, errors: ErrorTracker) -> None:
        self.repository: MetadataRepository = repository
        self.errors: ErrorTracker = errors
        self._documents: dict[tuple[DocumentKind, str], LayoutDocument | None] = {}

    async def get(self, kind: DocumentKind, document_id: str) -> LayoutDocument | None:
        """Return the cached document, fetching it once; ``None`` if it cannot be retrieved."""
        key = (kind, document_id.lower())
        if key in self._documents:
            return self._documents[key]

        document: LayoutDocument | None = None
        try:
            record = await self.repository.retrieve_record(kind.entity_set, document_id, (kind.column,))
            document = LayoutDocument(document_id, kind, str(record.get(kind.column) or ""))
        except Exception as e:
            _ = self.errors.record(
                f"Could not retrieve {kind.entity_set} {document_id}: {e}",
                phase=kind.entity_set,
                category=ErrorCategory.REFERENCE,
            )
        self._documents[key] = document
        return document

    def patched_documents(self) -> list[LayoutDocument]:
        """Documents with at least one applied patch, in first-use order."""
        return [document for document in self._documents.values() if document is not None and document.patches]


def _normalize(identifier: str) -> str:
    return strip_braces(identifier).lower()


def find_element(root: ET.Element, tag: str, element_id: str, id_attribute: str = "id") -> ET.Element | None:
    """
    Locate an element by id, falling back to its name attribute.

    Ids are compared without braces and case-insensitively. When several
    elements match, the first in document order wins.
    """
    wanted = _normalize(element_id)
    candidates = list(root.iter(tag))
    for element in candidates:
        if _normalize(element.get(id_attribute, "")) == wanted:
            return element
    for element in candidates:
        name = element.get("name")
        if name is not None and _normalize(name) == wanted:
            return element
    return None


def rebuild_captions(element: ET.Element, translations: dict[int, str]) -> None:
    """Replace the element's own ``labels`` container contents with one caption per language."""
    container = element.find(CAPTION_CONTAINER)
    if container is None:
        container = ET.Element(CAPTION_CONTAINER)
        element.insert(0, container)
    for child in list(container):
        container.remove(child)
    for code, text in translations.items():
        _ = ET.SubElement(container, CAPTION, {CAPTION_TEXT: text, CAPTION_LANGUAGE: str(code)})


def rebuild_sitemap_captions(element: ET.Element, qualifier: str, translations: dict[int, str]) -> bool:
    """
    Route a site-map qualifier to its container and rebuild it.

    ``Title`` edits go to ``Titles/Title``, ``Description`` edits to
    ``Descriptions/Description``; the container is created as a direct child
    when missing.

    Returns:
        False if the qualifier has no site-map container
    """
    route = next((r for q, r in SITEMAP_CAPTIONS.items() if q.lower() == qualifier.lower()), None)
    if route is None:
        return False
    container_tag, caption_tag, text_attribute = route
    container = element.find(container_tag)
    if container is None:
        container = ET.SubElement(element, container_tag)
    for child in list(container):
        container.remove(child)
    for code, text in translations.items():
        _ = ET.SubElement(container, caption_tag, {SITEMAP_LANGUAGE: str(code), text_attribute: text})
    return True


class LayoutPatcher:
    """Applies layout update units to the document cache."""

    def __init__(self, cache: LayoutDocumentCache, errors: ErrorTracker) -> None:
        self.cache: LayoutDocumentCache = cache
        self.errors: ErrorTracker = errors

    async def patch(self, unit: UpdateUnit) -> bool:
        """
        Apply one layout unit.

        A missing document or element is reported and skipped.

        Returns:
            True if the cached document was changed
        """
        document_id, tag, element_id = (str(part) for part in unit.key)
        kind = DocumentKind.for_unit(unit.kind)
        document = await self.cache.get(kind, document_id)
        if document is None:
            return False

        try:
            root = parse_layout(document.xml, document_id)
        except LayoutParseError as e:
            _ = self.errors.record(e, phase=kind.entity_set)
            return False

        id_attribute = "Id" if kind is DocumentKind.SITEMAP else "id"
        element = find_element(root, tag, element_id, id_attribute)
        if element is None:
            _ = self.errors.record(
                ReferenceNotFoundError(
                    f"Could not find {tag} with id {element_id} in {kind.entity_set} {document_id}",
                    reference=element_id,
                ),
                phase=kind.entity_set,
            )
            return False

        if kind is DocumentKind.SITEMAP:
            changed = False
            for qualifier, translations in unit.labels.items():
                if not translations:
                    continue
                if rebuild_sitemap_captions(element, qualifier, translations):
                    changed = True
                else:
                    logger.warning(f"Unknown site map qualifier {qualifier!r} for {element_id}")
            if not changed:
                return False
        else:
            translations = unit.qualifier_labels(LABEL)
            if not translations:
                return False
            rebuild_captions(element, translations)

        document.xml = ET.tostring(root, encoding="unicode")
        document.patches += 1
        logger.debug(f"Patched {tag} {element_id} in {kind.entity_set} {document_id}")
        return True
