"""Normalización de nombres de campos (ñ vs n) en documentos de salud."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from salud_monitor.model import LEGACY_SLEEP_KEY, SLEEP_KEY


def normalize_health_data(data: Mapping[str, Any]) -> dict[str, Any]:
    """Collapse both spellings of the sleep-hours field into ``horasDeSueno``.

    The canonical spelling wins when it is truthy, then the legacy
    ``horasDeSueño`` value, then 0. The legacy key is never returned.

    Args:
        data: Arbitrary document mapping.

    Returns:
        A new dict; ``data`` is not modified.
    """
    out = {k: v for k, v in data.items() if k != LEGACY_SLEEP_KEY}
    sleep = data.get(SLEEP_KEY)
    if not sleep:
        sleep = data.get(LEGACY_SLEEP_KEY)
    out[SLEEP_KEY] = sleep if sleep is not None else 0
    return out


def prepare_for_save(data: Mapping[str, Any]) -> dict[str, Any]:
    """Normalize and drop absent values so no placeholder reaches the store."""
    normalized = normalize_health_data(data)
    return {k: v for k, v in normalized.items() if v is not None}
