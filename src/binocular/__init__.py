"""Binocular: a fuzzy-searchable window switcher."""

from __future__ import annotations

__version__ = "0.1.0"
