"""Spread a music library across numbered flash drives and keep each drive in sync."""

__version__ = "0.3.0"
