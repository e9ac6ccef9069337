"""
Layout XML extraction.

Forms and dashboards embed their captions in ``formxml``: every ``tab``,
``section`` and ``cell`` element owns a direct-child ``labels`` container
whose ``label`` children carry ``description`` and ``languagecode``
attributes. Site maps keep all languages in one document under direct-child
``Titles``/``Title`` and ``Descriptions``/``Description`` containers.

Only an element's own container is read. Nested elements must never pick up
a container belonging to an ancestor or a descendant.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections.abc import Callable, Iterator
from typing import Final

from ..model.labels import DESCRIPTION, LABEL, TITLE
from ..model.nodes import (
    FragmentKind,
    LayoutFragment,
    LayoutSnapshot,
    SiteMap,
    SiteMapElement,
    SiteMapElementKind,
)
from ..utils.core.exceptions import LayoutParseError

logger = logging.getLogger(__name__)

CAPTION_CONTAINER: Final[str] = "labels"
CAPTION: Final[str] = "label"
CAPTION_TEXT: Final[str] = "description"
CAPTION_LANGUAGE: Final[str] = "languagecode"

# Site map qualifier -> (container tag, caption tag, text attribute)
SITEMAP_CAPTIONS: Final[dict[str, tuple[str, str, str]]] = {
    TITLE: ("Titles", "Title", "Title"),
    DESCRIPTION: ("Descriptions", "Description", "Description"),
}
SITEMAP_LANGUAGE: Final[str] = "LCID"

FragmentKey = tuple[FragmentKind, str, str]
SiteMapKey = tuple[SiteMapElementKind, str, str]
DisplayNameLookup = Callable[[str], str | None]


def parse_layout(xml: str, document_id: str | None = None) -> ET.Element:
    """
    Parse a layout document.

    Raises:
        LayoutParseError: If the text is not well-formed XML
    """
    try:
        return ET.fromstring(xml)
    except ET.ParseError as e:
        raise LayoutParseError(f"Malformed layout XML in {document_id or 'document'}: {e}", document_id) from e


def caption_of(element: ET.Element) -> str | None:
    """Text of the first caption in the element's own ``labels`` container."""
    container = element.find(CAPTION_CONTAINER)
    if container is None:
        return None
    caption = container.find(CAPTION)
    if caption is None:
        return None
    return caption.get(CAPTION_TEXT, "")


def walk(element: ET.Element, tag: str, ancestors: tuple[ET.Element, ...] = ()) -> Iterator[tuple[ET.Element, tuple[ET.Element, ...]]]:
    """Yield every ``tag`` element below ``element`` with its ancestor chain."""
    for child in element:
        if child.tag == tag:
            yield child, ancestors
        yield from walk(child, tag, (*ancestors, child))


def _nearest(ancestors: tuple[ET.Element, ...], tag: str) -> ET.Element | None:
    for ancestor in reversed(ancestors):
        if ancestor.tag == tag:
            return ancestor
    return None


def _name_of(element: ET.Element | None) -> str:
    if element is None:
        return ""
    caption = caption_of(element)
    return caption if caption else element.get("name", "")


def extract_fragments(
    snapshot: LayoutSnapshot,
    kind: FragmentKind,
    accumulator: dict[FragmentKey, LayoutFragment],
    entity_logical_name: str = "",
    display_name: DisplayNameLookup | None = None,
) -> int:
    """
    Accumulate the captions of one language snapshot.

    New element ids create a fragment; known ids gain a translation for the
    snapshot's language. Context columns (form, tab and section names) are
    taken from the base-language snapshot when it is seen.

    Returns:
        Number of elements read from the snapshot

    Raises:
        LayoutParseError: If the snapshot's XML is malformed
    """
    root = parse_layout(snapshot.layout_xml, snapshot.id)
    count = 0
    for element, ancestors in walk(root, kind.tag):
        element_id = element.get("id", "")
        if not element_id:
            continue
        attribute = ""
        if kind is FragmentKind.FIELD:
            control = element.find("control")
            if control is None:
                continue
            attribute = control.get("datafieldname") or control.get("id", "")

        key = (kind, snapshot.id, element_id)
        fragment = accumulator.get(key)
        if fragment is None:
            fragment = LayoutFragment(
                element_id=element_id,
                kind=kind,
                form_id=snapshot.id,
                form_unique_id=snapshot.unique_id,
                form_name=snapshot.name,
                entity_logical_name=entity_logical_name,
            )
            accumulator[key] = fragment
            _set_context(fragment, ancestors, attribute, display_name)
        elif snapshot.is_base:
            fragment.form_name = snapshot.name
            _set_context(fragment, ancestors, attribute, display_name)

        caption = caption_of(element)
        if caption is not None:
            fragment.labels.add(LABEL, snapshot.language, caption)
        else:
            _ = fragment.labels.qualifier(LABEL)
        count += 1
    return count


def _set_context(
    fragment: LayoutFragment,
    ancestors: tuple[ET.Element, ...],
    attribute: str,
    display_name: DisplayNameLookup | None,
) -> None:
    if fragment.kind is not FragmentKind.TAB:
        fragment.tab_name = _name_of(_nearest(ancestors, "tab"))
    if fragment.kind is FragmentKind.FIELD:
        fragment.section_name = _name_of(_nearest(ancestors, "section"))
        fragment.attribute = attribute
        looked_up = display_name(attribute) if display_name is not None and attribute else None
        fragment.display_name = looked_up or attribute


def _sitemap_labels(element: ET.Element, target: SiteMapElement) -> None:
    for qualifier, (container_tag, caption_tag, text_attribute) in SITEMAP_CAPTIONS.items():
        label_set = target.labels.qualifier(qualifier)
        container = element.find(container_tag)
        if container is None:
            continue
        for caption in container.findall(caption_tag):
            try:
                code = int(caption.get(SITEMAP_LANGUAGE, ""))
            except ValueError:
                logger.debug(f"Ignoring {caption_tag} without a valid LCID in {target.element_id}")
                continue
            label_set.add(code, caption.get(text_attribute, ""))


def extract_sitemap_elements(sitemap: SiteMap) -> list[SiteMapElement]:
    """
    Surface every area, group and sub-area of a site map.

    Raises:
        LayoutParseError: If the site map XML is malformed
    """
    root = parse_layout(sitemap.xml, sitemap.id)
    elements: list[SiteMapElement] = []
    for area in root.iter(SiteMapElementKind.AREA.tag):
        area_id = area.get("Id", "")
        area_node = SiteMapElement(area_id, SiteMapElementKind.AREA, sitemap.id, sitemap.name)
        _sitemap_labels(area, area_node)
        elements.append(area_node)

        for group in area.findall(SiteMapElementKind.GROUP.tag):
            group_id = group.get("Id", "")
            group_node = SiteMapElement(
                group_id, SiteMapElementKind.GROUP, sitemap.id, sitemap.name, area_id=area_id
            )
            _sitemap_labels(group, group_node)
            elements.append(group_node)

            for sub_area in group.findall(SiteMapElementKind.SUB_AREA.tag):
                sub_area_node = SiteMapElement(
                    sub_area.get("Id", ""),
                    SiteMapElementKind.SUB_AREA,
                    sitemap.id,
                    sitemap.name,
                    area_id=area_id,
                    group_id=group_id,
                )
                _sitemap_labels(sub_area, sub_area_node)
                elements.append(sub_area_node)
    return elements
