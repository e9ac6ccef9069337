"""metaloc: export metadata labels to a multi-language workbook and import translations back."""

from .main import main

__all__ = ["main"]
