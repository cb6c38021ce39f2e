"""Bookmark Admin - category tree engine and admin services for a link directory."""

__version__ = "0.1.0"
