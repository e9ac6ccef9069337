"""Workbook layouts and the openpyxl-backed document."""

from .document import CellValue, SheetData, Workbook
from .layouts import ALL_LAYOUTS, SheetLayout, layout_for

__all__ = ["ALL_LAYOUTS", "CellValue", "SheetData", "SheetLayout", "Workbook", "layout_for"]
