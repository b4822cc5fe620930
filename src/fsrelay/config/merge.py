"""Layering of config dicts: system, then user, then project, env and CLI."""

from __future__ import annotations

from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``override`` laid over it; neither is modified.

    Sections (dicts) merge key by key, so a project file that only sets
    ``server.port`` keeps the user's ``server.host``. Anything else,
    lists included, is replaced wholesale. A ``None`` in ``override``
    means "not set here" and leaves the base value alone.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = merged.get(key)
        merged[key] = (
            deep_merge(current, value)
            if isinstance(current, dict) and isinstance(value, dict)
            else value
        )
    return merged


def merge_configs(*layers: dict[str, Any]) -> dict[str, Any]:
    """Fold config layers together, later layers winning."""
    merged: dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged = deep_merge(merged, layer)
    return merged
