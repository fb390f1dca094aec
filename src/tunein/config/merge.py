"""Layered merge of config dicts (system -> user -> project -> env)."""

from __future__ import annotations

from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` overlaid with ``override``.

    Nested mappings merge key by key. Lists and scalars are replaced
    wholesale. A ``None`` in ``override`` leaves the base value alone, so a
    layer can mention a key without resetting it.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def merge_layers(*layers: dict[str, Any]) -> dict[str, Any]:
    """Merge config layers in order; later layers win."""
    result: dict[str, Any] = {}
    for layer in layers:
        if layer:
            result = deep_merge(result, layer)
    return result
