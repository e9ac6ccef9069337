"""Workbook import: row grouping, layout patching and update dispatch."""
