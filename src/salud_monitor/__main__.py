"""Punto de entrada: ``python -m salud_monitor``."""

from __future__ import annotations

from salud_monitor.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
