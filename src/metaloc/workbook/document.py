"""
Workbook reading and writing on top of openpyxl.

The transformation core only deals in :class:`SheetData` (a header plus rows
of plain cell values); this module turns those into styled worksheets and
back. Styling is cosmetic and never read on import.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

import openpyxl
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

logger = logging.getLogger(__name__)

CellValue = str | int | float | None

HEADER_FONT = Font(bold=True, color="FFFFFFFF")
HEADER_FILL = PatternFill(start_color="FF0078D4", end_color="FF0078D4", fill_type="solid")
HEADER_ALIGNMENT = Alignment(vertical="center", horizontal="left")
STRIPE_FILL = PatternFill(start_color="FFF3F4F6", end_color="FFF3F4F6", fill_type="solid")

MAX_COLUMN_WIDTH = 60
# Excel sheet names max 31 chars
MAX_SHEET_TITLE = 31
FORMULA_PREFIX = "="


@dataclass
class SheetData:
    """A worksheet as plain values."""

    name: str
    header: list[CellValue]
    rows: list[list[CellValue]] = field(default_factory=list)


class Workbook:
    """Thin wrapper around :class:`openpyxl.Workbook`."""

    def __init__(self, book: openpyxl.Workbook | None = None) -> None:
        if book is None:
            book = openpyxl.Workbook()
            # Remove default sheet
            book.remove(book.active)
        self._book: openpyxl.Workbook = book

    @classmethod
    def from_sheets(cls, sheets: list[SheetData], styled: bool = True) -> Workbook:
        workbook = cls()
        for sheet in sheets:
            workbook.add_sheet(sheet, styled=styled)
        return workbook

    @classmethod
    def load(cls, path: Path) -> Workbook:
        """Open an existing .xlsx file."""
        logger.debug(f"Loading workbook from {path}")
        return cls(openpyxl.load_workbook(str(path), data_only=True))

    @classmethod
    def from_bytes(cls, data: bytes) -> Workbook:
        return cls(openpyxl.load_workbook(io.BytesIO(data), data_only=True))

    def add_sheet(self, sheet: SheetData, styled: bool = True) -> None:
        ws: Worksheet = self._book.create_sheet(title=sheet.name[:MAX_SHEET_TITLE])
        for row_idx, row in enumerate([sheet.header, *sheet.rows], start=1):
            for col_idx, value in enumerate(row, start=1):
                self._write_cell(ws, row_idx, col_idx, value)
        if styled:
            self._style(ws, len(sheet.header))

    @staticmethod
    def _write_cell(ws: Worksheet, row_idx: int, col_idx: int, value: CellValue) -> None:
        """Store ``value`` as a literal; text is never interpreted as a formula."""
        if value is None:
            return
        if not isinstance(value, str):
            _ = ws.cell(row=row_idx, column=col_idx, value=value)
            return

        cleaned = ILLEGAL_CHARACTERS_RE.sub("", value)
        if cleaned != value:
            logger.warning(
                f"Removed characters not allowed in worksheets from {ws.title} "
                f"row {row_idx} column {get_column_letter(col_idx)}"
            )
        cell = ws.cell(row=row_idx, column=col_idx, value=cleaned)
        if cleaned.startswith(FORMULA_PREFIX):
            cell.data_type = "s"
            # Keeps Excel from re-reading the text as a formula on save
            cell.quotePrefix = True

    @property
    def sheet_names(self) -> list[str]:
        return list(self._book.sheetnames)

    def sheets(self) -> Iterator[SheetData]:
        """Yield every worksheet in workbook order."""
        for ws in self._book.worksheets:
            yield self._read(ws)

    def sheet(self, name: str) -> SheetData | None:
        if name not in self._book.sheetnames:
            return None
        return self._read(self._book[name])

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self._book.save(str(path))
        logger.info(f"Workbook saved to {path}")

    def to_bytes(self) -> bytes:
        buffer = io.BytesIO()
        self._book.save(buffer)
        return buffer.getvalue()

    @staticmethod
    def _read(ws: Worksheet) -> SheetData:
        rows = [list(row) for row in ws.iter_rows(values_only=True)]
        if not rows:
            return SheetData(name=ws.title, header=[])
        return SheetData(name=ws.title, header=rows[0], rows=rows[1:])

    @staticmethod
    def _style(ws: Worksheet, column_count: int) -> None:
        for cell in ws[1]:
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
            cell.alignment = HEADER_ALIGNMENT
        ws.row_dimensions[1].height = 20

        for row_idx in range(2, ws.max_row + 1):
            if row_idx % 2 == 0:
                for col_idx in range(1, column_count + 1):
                    ws.cell(row=row_idx, column=col_idx).fill = STRIPE_FILL

        # Auto-fit column widths (approximate)
        for col_idx in range(1, column_count + 1):
            max_len = 0
            for row_idx in range(1, ws.max_row + 1):
                value = ws.cell(row=row_idx, column=col_idx).value
                if value is not None:
                    max_len = max(max_len, min(MAX_COLUMN_WIDTH, len(str(value))))
            ws.column_dimensions[get_column_letter(col_idx)].width = max_len + 3

        # Freeze header row
        ws.freeze_panes = "A2"
