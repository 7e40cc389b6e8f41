"""Repository layer: catalog DB access helpers (SQLite).

Keep functions thin and focused, so services avoid SQL strings.
Every helper takes an open connection; callers own commit/close.
"""
from __future__ import annotations
