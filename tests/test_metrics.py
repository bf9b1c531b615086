from __future__ import annotations

from salud_monitor.metrics import (
    average_sleep,
    current_record,
    detect_health_anomalies,
    stress_label,
    validate_health_params,
)
from salud_monitor.model import HealthRecord
from salud_monitor.reconcile import DailyResult


def test_validate_normal_params() -> None:
    result = validate_health_params(
        sleep_hours=7.5, heart_rate=75, stress_level=25, spo2=98, steps=8000
    )
    assert result.is_valid
    assert result.errors == []


def test_validate_reports_each_invalid_param() -> None:
    assert "Horas de sueño debe estar entre 0 y 24" in validate_health_params(
        sleep_hours=25
    ).errors
    assert "Frecuencia cardíaca debe estar entre 30 y 220 BPM" in validate_health_params(
        heart_rate=250
    ).errors
    assert "Nivel de estrés debe estar entre 0 y 100%" in validate_health_params(
        stress_level=150
    ).errors
    assert "Saturación de oxígeno debe estar entre 70 y 100%" in validate_health_params(
        spo2=60
    ).errors
    result = validate_health_params(steps=-100)
    assert not result.is_valid
    assert result.errors == ["Pasos diarios no puede ser negativo"]


def test_validate_without_params_is_valid() -> None:
    assert validate_health_params().is_valid


def test_anomalies_healthy_person() -> None:
    report = detect_health_anomalies(sleep_hours=7.5, heart_rate=72, stress_level=20, spo2=98)
    assert not report.has_anomalies
    assert report.risk_level == "bajo"


def test_anomalies_single_finding_is_medium_risk() -> None:
    report = detect_health_anomalies(sleep_hours=7, heart_rate=120, stress_level=20, spo2=98)
    assert report.anomalies == ["Frecuencia cardíaca elevada"]
    assert report.risk_level == "medio"


def test_anomalies_bradycardia_and_hypoxemia() -> None:
    report = detect_health_anomalies(sleep_hours=7, heart_rate=45, stress_level=20, spo2=90)
    assert "Frecuencia cardíaca baja" in report.anomalies
    assert "Saturación de oxígeno baja" in report.anomalies


def test_anomalies_sick_person_is_high_risk() -> None:
    report = detect_health_anomalies(sleep_hours=3, heart_rate=115, stress_level=75, spo2=91)
    assert report.risk_level == "alto"
    assert len(report.anomalies) == 4


def test_stress_label_thresholds() -> None:
    assert stress_label(25) == "Bajo"
    assert stress_label(26) == "Moderado"
    assert stress_label(50) == "Moderado"
    assert stress_label(75) == "Alto"
    assert stress_label(76) == "Muy Alto"


def test_average_sleep_ignores_days_without_sleep() -> None:
    records = [
        HealthRecord(fecha="2025-11-24", horas_de_sueno=6),
        HealthRecord(fecha="2025-11-25", horas_de_sueno=0),
        HealthRecord(fecha="2025-11-26", horas_de_sueno=8),
    ]
    assert average_sleep(records) == 7
    assert average_sleep([]) == 0


def test_current_record_prefers_latest_written() -> None:
    window = [HealthRecord(fecha="2025-11-25"), HealthRecord(fecha="2025-11-26")]
    latest = HealthRecord(fecha="2025-11-20")
    assert current_record(DailyResult(records=window, latest=latest)) is latest
    assert current_record(DailyResult(records=window)) is window[-1]
    assert current_record(DailyResult(records=[])) is None
