"""Marginalia: link annotation, find/replace and note caching for a Markdown vault."""

__version__ = "0.1.0"
