from __future__ import annotations

import math
from datetime import datetime, timezone

from salud_monitor.model import (
    LOCAL_TZ,
    HealthRecord,
    HealthSnapshot,
    UserData,
    to_datetime,
    to_number,
)


def test_from_document_requires_fecha() -> None:
    assert HealthRecord.from_document({"horasDeSueno": 7}) is None
    assert HealthRecord.from_document({"fecha": ""}) is None


def test_from_document_maps_fields_and_extras() -> None:
    record = HealthRecord.from_document(
        {
            "fecha": "2025-11-26",
            "horasDeSueno": 6.5,
            "frecuenciaCardiaca": 72,
            "pasosDiarios": "1200",
            "relojColocado": True,
            "horaRegistro": "08:15",
            "dispositivo": "Galaxy Watch",
        },
        doc_id="abc",
    )
    assert record is not None
    assert record.doc_id == "abc"
    assert record.horas_de_sueno == 6.5
    assert record.frecuencia_cardiaca == 72
    assert record.pasos_diarios == 1200.0
    assert record.reloj_colocado is True
    assert record.hora_registro == "08:15"
    assert record.nivel_de_estres is None
    assert record.extra == {"dispositivo": "Galaxy Watch"}


def test_from_document_keeps_invalid_numbers_as_nan() -> None:
    record = HealthRecord.from_document({"fecha": "2025-11-26", "saturacionOxigeno": "n/a"})
    assert record is not None
    assert record.saturacion_oxigeno is not None
    assert math.isnan(record.saturacion_oxigeno)


def test_write_timestamp_preference_order() -> None:
    created = datetime(2025, 11, 26, 8, 0, tzinfo=timezone.utc)
    updated = datetime(2025, 11, 26, 9, 0, tzinfo=timezone.utc)
    event = datetime(2025, 11, 26, 10, 0, tzinfo=timezone.utc)

    both = HealthRecord(fecha="2025-11-26", created_at=created, last_updated=updated)
    assert both.write_timestamp == updated
    only_event = HealthRecord(fecha="2025-11-26", event_timestamp=event)
    assert only_event.write_timestamp == event
    assert HealthRecord(fecha="2025-11-26").write_timestamp is None


def test_to_document_omits_absent_fields() -> None:
    record = HealthRecord(fecha="2025-11-26", pasos_diarios=10, extra={"x": 1})
    assert record.to_document() == {"fecha": "2025-11-26", "pasosDiarios": 10, "x": 1}


def test_to_datetime_variants() -> None:
    naive = to_datetime("2025-11-26T08:30:00")
    assert naive is not None
    assert naive.tzinfo is LOCAL_TZ
    aware = to_datetime("2025-11-26T08:30:00+00:00")
    assert aware == datetime(2025, 11, 26, 8, 30, tzinfo=timezone.utc)
    assert to_datetime(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert to_datetime("") is None
    assert to_datetime("no es fecha") is None
    assert to_datetime(None) is None


def test_to_number() -> None:
    assert to_number(None) is None
    assert to_number(5) == 5
    assert to_number("7.5") == 7.5
    assert math.isnan(to_number("x"))  # type: ignore[arg-type]
    assert math.isnan(to_number([1]))  # type: ignore[arg-type]


def test_snapshot_defaults_and_legacy_sleep() -> None:
    snap = HealthSnapshot.from_document({"fecha": "2025-11-26", "horasDeSueño": 6})
    assert snap.horas_de_sueno == 6
    assert snap.pasos_diarios == 0
    assert snap.saturacion_oxigeno == 0


def test_user_data_defaults_and_last_record() -> None:
    user = UserData.from_documents(
        "u1",
        {"name": "Juan Pérez", "sex": 1},
        [{"fecha": "2025-11-26", "pasosDiarios": 900}, {"fecha": "2025-11-25"}],
    )
    assert user.email == "Sin email"
    assert user.emergency_contact == "No registrado"
    assert user.goal == "No especificado"
    assert user.sex == 1
    assert user.last_health_record is not None
    assert user.last_health_record.fecha == "2025-11-26"
    assert len(user.all_health_records) == 2


def test_user_data_without_history() -> None:
    user = UserData.from_documents("u2", {}, [])
    assert user.name == "Sin nombre"
    assert user.last_health_record is None
    assert user.all_health_records == ()
