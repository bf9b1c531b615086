"""Exportación a Excel del resumen diario y de la vista de usuarios."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, Side

_DIA_SEMANA: tuple[str, ...] = ("lun", "mar", "mie", "jue", "vie", "sab", "dom")

_HEADER_MAP: dict[str, str] = {
    "weekday": "Día",
    "fecha": "Fecha",
    "horasDeSueno": "Sueño (h)",
    "frecuenciaCardiaca": "FC (BPM)",
    "frecuenciaCardiacaMin": "FC mín",
    "frecuenciaCardiacaMax": "FC máx",
    "nivelDeEstres": "Estrés (%)",
    "saturacionOxigeno": "SpO2 (%)",
    "pasosDiarios": "Pasos",
    "name": "Nombre",
    "email": "Email",
    "emergencyContact": "Contacto\nemergencia",
    "sex": "Sexo",
}

_WIDTHS: dict[str, int] = {
    "Día": 6,
    "Fecha": 12,
    "Sueño (h)": 10,
    "FC (BPM)": 10,
    "FC mín": 8,
    "FC máx": 8,
    "Estrés (%)": 10,
    "SpO2 (%)": 10,
    "Pasos": 12,
    "Nombre": 22,
    "Email": 26,
    "Contacto\nemergencia": 16,
    "Sexo": 16,
}

_NUMBER_FORMATS: dict[str, str] = {
    "Sueño (h)": "0.0",
    "FC (BPM)": "0",
    "FC mín": "0",
    "FC máx": "0",
    "Estrés (%)": "0",
    "SpO2 (%)": "0",
    "Pasos": "#,##0",
}


@dataclass(frozen=True)
class ExcelLayout:
    """Layout/formatting configuration for the exported sheet."""

    sheet_name: str = "Resumen diario"


def _weekday_label(i: object) -> str:
    """Convierte índice 0-6 (lunes-domingo) a etiqueta de 3 letras."""
    try:
        if i is None or (isinstance(i, float) and pd.isna(i)):
            return ""
        if isinstance(i, int | float):
            idx = int(i)
            return _DIA_SEMANA[idx] if 0 <= idx < 7 else ""
        return ""
    except (ValueError, TypeError):
        return ""


def _add_weekday_column(export_df: pd.DataFrame) -> pd.DataFrame:
    """Añade columna weekday (Día) a partir de fecha."""
    if "fecha" not in export_df.columns or export_df.empty:
        return export_df
    weekday_series = pd.to_datetime(export_df["fecha"], errors="coerce").dt.weekday
    export_df = export_df.copy()
    export_df["weekday"] = weekday_series.map(_weekday_label)
    cols = ["weekday"] + [c for c in export_df.columns if c != "weekday"]
    return export_df[cols]


def write_health_xlsx(df: pd.DataFrame, out_path: Path, layout: ExcelLayout) -> None:
    """Write a formatted Excel file.

    Args:
        df: Daily records or admin user table.
        out_path: Output path for the XLSX file.
        layout: Excel layout parameters.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)

    export_df = _add_weekday_column(df.copy())
    export_df = export_df.rename(columns=_HEADER_MAP)

    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        export_df.to_excel(writer, index=False, sheet_name=layout.sheet_name)
        ws = writer.book[layout.sheet_name]
        _format_sheet(ws)


def _style_header_row(ws: Any) -> None:
    """Aplica fuente negrita, alineación y borde a la fila de cabecera."""
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    center = Alignment(horizontal="center", vertical="center", wrap_text=True)
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.alignment = center
        cell.border = border


def _style_body_rows(ws: Any) -> None:
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    center = Alignment(horizontal="center", vertical="center")
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.alignment = center
            cell.border = border


def _get_header_col_index(ws: Any) -> dict[str, int]:
    """Devuelve mapa nombre de cabecera -> índice de columna (1-based)."""
    headers = [str(cell.value) for cell in ws[1]]
    return {name: idx + 1 for idx, name in enumerate(headers)}


def _format_sheet(ws: Any) -> None:
    """Apply borders, widths and number formats to a worksheet."""
    _style_header_row(ws)
    _style_body_rows(ws)
    col_index = _get_header_col_index(ws)
    for header, width in _WIDTHS.items():
        idx = col_index.get(header)
        if idx is not None:
            letter = ws.cell(row=1, column=idx).column_letter
            ws.column_dimensions[letter].width = width
    for row in ws.iter_rows(min_row=2):
        for header, fmt in _NUMBER_FORMATS.items():
            idx = col_index.get(header)
            if idx is not None:
                row[idx - 1].number_format = fmt
