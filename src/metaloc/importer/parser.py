"""
Row grouping parser.

Reads worksheets back into update units. The language block is detected from
the header row, identity cells are read according to the sheet's layout and
rows sharing the same ``(kind, key)`` are merged qualifier by qualifier.
Rows without any translation are dropped: an empty row means "no change
requested", never "clear all translations".
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..model.units import UnitAccumulator, UnitKey, UpdateUnit
from ..utils.core.error_tracker import ErrorTracker
from ..utils.core.exceptions import ErrorCategory, ErrorSeverity, SheetParseError
from ..workbook.document import CellValue, SheetData, Workbook
from ..workbook.layouts import (
    LANGUAGE_CODE_THRESHOLD,
    VALUE_COLUMN,
    SheetLayout,
    layout_for,
    strip_braces,
)

logger = logging.getLogger(__name__)


@dataclass
class UnitGroup:
    """Units parsed from one sheet kind, dispatched together."""

    name: str
    layout: SheetLayout
    accumulator: UnitAccumulator = field(default_factory=UnitAccumulator)
    rows_read: int = 0
    rows_skipped: int = 0

    @property
    def units(self) -> list[UpdateUnit]:
        return self.accumulator.units()


def _as_int(value: CellValue) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _as_text(value: CellValue) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def detect_language_columns(header: list[CellValue], fallback: int) -> tuple[int, list[int]]:
    """
    Locate the language block of a header row.

    The block starts at the first header, scanning from column 1, that
    parses as an integer strictly greater than 1000; smaller integers are
    ordinary business data. Without such a header the sheet-specific offset
    ``fallback`` is used. Every header from the start on must be a positive
    integer.

    Returns:
        Zero-based start index and the language codes in column order

    Raises:
        SheetParseError: If a header in the language block is not a language code
    """
    cells = list(header)
    while cells and (cells[-1] is None or _as_text(cells[-1]).strip() == ""):
        _ = cells.pop()

    start = fallback
    for index in range(len(cells)):
        code = _as_int(cells[index])
        if code is not None and code > LANGUAGE_CODE_THRESHOLD:
            start = index
            break

    codes: list[int] = []
    for index in range(start, len(cells)):
        code = _as_int(cells[index])
        if code is None or code <= 0:
            raise SheetParseError(
                f"Header column {index + 1} ({cells[index]!r}) is not a language code",
            )
        codes.append(code)
    return start, codes


class RowGroupingParser:
    """Turns worksheets into :class:`UnitGroup` instances."""

    def __init__(self, errors: ErrorTracker | None = None) -> None:
        self.errors: ErrorTracker = errors or ErrorTracker()

    def parse_workbook(self, workbook: Workbook) -> list[UnitGroup]:
        """Parse every recognised sheet, in workbook order."""
        return self.parse_sheets(workbook.sheets())

    def parse_sheets(self, sheets: Iterable[SheetData]) -> list[UnitGroup]:
        groups: dict[str, UnitGroup] = {}
        for sheet in sheets:
            layout = layout_for(sheet.name)
            if layout is None:
                logger.warning(f"Ignoring unrecognised sheet: {sheet.name}")
                continue
            group = groups.get(layout.name)
            if group is None:
                group = UnitGroup(name=layout.name, layout=layout)
                groups[layout.name] = group
            try:
                self.parse_sheet(sheet, group)
            except SheetParseError as e:
                e.sheet_name = sheet.name
                _ = self.errors.record(e, phase=sheet.name)
        return list(groups.values())

    def parse_sheet(self, sheet: SheetData, group: UnitGroup) -> UnitGroup:
        """
        Parse one sheet into ``group``.

        Raises:
            SheetParseError: If the header row is malformed
        """
        layout = group.layout
        if not sheet.header:
            return group
        start, codes = detect_language_columns(sheet.header, fallback=layout.language_offset)

        for row_number, row in enumerate(sheet.rows, start=2):
            cells = list(row) + [None] * max(0, len(sheet.header) - len(row))
            translations = {
                code: _as_text(cells[start + offset])
                for offset, code in enumerate(codes)
                if _as_text(cells[start + offset]).strip()
            }
            if not translations:
                continue
            group.rows_read += 1

            key = self._key(layout, cells)
            qualifier = layout.fixed_qualifier or self._qualifier(layout, cells)
            if key is None or not qualifier:
                group.rows_skipped += 1
                _ = self.errors.record(
                    f"Row {row_number} is missing an identity column; skipped",
                    phase=sheet.name,
                    category=ErrorCategory.PARSE,
                    severity=ErrorSeverity.LOW,
                )
                continue
            _ = group.accumulator.add(layout.unit_kind, key, qualifier, translations)

        logger.info(f"{sheet.name}: {group.rows_read} rows read, {len(group.units)} units")
        return group

    @staticmethod
    def _qualifier(layout: SheetLayout, cells: list[CellValue]) -> str:
        column = layout.type_column
        if column is None:
            return ""
        return _as_text(cells[layout.index(column)]).strip()

    @staticmethod
    def _key(layout: SheetLayout, cells: list[CellValue]) -> UnitKey | None:
        parts: list[str | int] = []
        for column in layout.key_columns:
            raw = cells[layout.index(column)]
            if column == VALUE_COLUMN:
                value = _as_int(raw)
                if value is None:
                    return None
                parts.append(value)
                continue
            text = strip_braces(_as_text(raw))
            if not text:
                return None
            parts.append(text)
        if layout.element_tag is not None:
            document_id, element_id = parts
            return (document_id, layout.element_tag, element_id)
        return tuple(parts)


def prune_unchanged(groups: list[UnitGroup], baseline: list[UnitGroup]) -> list[UnitGroup]:
    """
    Drop translations that still equal a baseline workbook's value.

    Importing an unmodified export against itself yields no units. Layout
    units keep every language of a changed caption because the patcher
    replaces the whole caption container.
    """
    reference: dict[tuple[object, ...], str] = {}
    for group in baseline:
        for unit in group.units:
            for qualifier, translations in unit.labels.items():
                for code, text in translations.items():
                    reference[(unit.kind, unit.key, qualifier.lower(), code)] = text

    pruned_groups: list[UnitGroup] = []
    for group in groups:
        pruned = UnitGroup(name=group.name, layout=group.layout, rows_read=group.rows_read, rows_skipped=group.rows_skipped)
        for unit in group.units:
            for qualifier, translations in unit.labels.items():
                changed = {
                    code: text
                    for code, text in translations.items()
                    if reference.get((unit.kind, unit.key, qualifier.lower(), code)) != text
                }
                # Layout captions are rebuilt wholesale, so a changed caption keeps all its languages.
                if changed and unit.kind.is_layout:
                    changed = dict(translations)
                if changed:
                    _ = pruned.accumulator.add(unit.kind, unit.key, qualifier, changed)
        pruned_groups.append(pruned)
    return pruned_groups
