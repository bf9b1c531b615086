from __future__ import annotations

from pathlib import Path
from typing import cast

import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from salud_monitor.excel_writer import ExcelLayout, _weekday_label, write_health_xlsx
from salud_monitor.model import HealthRecord
from salud_monitor.reconcile import records_to_frame


def test_write_health_xlsx_daily_records(tmp_path: Path) -> None:
    df = records_to_frame(
        [
            HealthRecord(fecha="2025-12-15", horas_de_sueno=7.5, pasos_diarios=8200),
            HealthRecord(fecha="2025-12-16", horas_de_sueno=6.0, pasos_diarios=4100),
        ]
    )
    out = tmp_path / "nested" / "out.xlsx"
    write_health_xlsx(df, out, ExcelLayout())

    wb = load_workbook(out)
    ws = cast(Worksheet, wb[ExcelLayout().sheet_name])

    headers = [cell.value for cell in ws[1]]
    assert headers[0] == "Día"
    assert "Fecha" in headers
    assert "Sueño (h)" in headers
    assert "Pasos" in headers
    assert "fecha" not in headers

    assert ws.cell(row=2, column=1).value == "lun"
    assert ws.cell(row=3, column=1).value == "mar"
    sleep_col = headers.index("Sueño (h)") + 1
    assert ws.cell(row=2, column=sleep_col).value == 7.5

    assert ws.column_dimensions["A"].width == 6
    pasos_letter = get_column_letter(headers.index("Pasos") + 1)
    assert ws.column_dimensions[pasos_letter].width == 12
    pasos_cell = ws.cell(row=2, column=headers.index("Pasos") + 1)
    assert pasos_cell.number_format == "#,##0"
    assert ws.cell(row=2, column=sleep_col).number_format == "0.0"


def test_write_health_xlsx_users_sheet(tmp_path: Path) -> None:
    df = pd.DataFrame({"name": ["Ana"], "email": ["ana@test.com"], "sex": ["Femenino"]})
    out = tmp_path / "users.xlsx"
    write_health_xlsx(df, out, ExcelLayout("Usuarios"))

    ws = cast(Worksheet, load_workbook(out)["Usuarios"])
    assert [cell.value for cell in ws[1]] == ["Nombre", "Email", "Sexo"]
    assert ws.cell(row=1, column=1).font.bold


def test_write_health_xlsx_empty_frame(tmp_path: Path) -> None:
    out = tmp_path / "empty.xlsx"
    write_health_xlsx(records_to_frame([]), out, ExcelLayout())
    ws = cast(Worksheet, load_workbook(out)[ExcelLayout().sheet_name])
    assert ws.max_row == 1


def test_weekday_label() -> None:
    assert _weekday_label(0) == "lun"
    assert _weekday_label(6) == "dom"
    assert _weekday_label(7) == ""
    assert _weekday_label(None) == ""
    assert _weekday_label(float("nan")) == ""
    assert _weekday_label("x") == ""
