"""Spreadsheet-driven batch video composition."""

__version__ = "1.0.0"
