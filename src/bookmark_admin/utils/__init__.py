"""Utilities package for the bookmark-admin backend."""
