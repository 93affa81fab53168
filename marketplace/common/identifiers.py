"""Identifier generation for rows created by the application."""

from __future__ import annotations

import uuid


def generate_id() -> str:
    """Return a 32-character hex identifier for orders, items, reviews and replies."""

    return uuid.uuid4().hex
