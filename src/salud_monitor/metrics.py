"""Validación de parámetros, detección de anomalías y valores actuales."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from salud_monitor.model import HealthRecord, is_number
from salud_monitor.reconcile import DailyResult


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AnomalyReport:
    has_anomalies: bool
    anomalies: list[str]
    risk_level: str


def validate_health_params(
    sleep_hours: float | None = None,
    heart_rate: float | None = None,
    stress_level: float | None = None,
    spo2: float | None = None,
    steps: float | None = None,
) -> ValidationResult:
    """Check physiologically plausible ranges for the given values.

    Only parameters that are passed are checked.
    """
    errors: list[str] = []
    if sleep_hours is not None and not 0 <= sleep_hours <= 24:
        errors.append("Horas de sueño debe estar entre 0 y 24")
    if heart_rate is not None and not 30 <= heart_rate <= 220:
        errors.append("Frecuencia cardíaca debe estar entre 30 y 220 BPM")
    if stress_level is not None and not 0 <= stress_level <= 100:
        errors.append("Nivel de estrés debe estar entre 0 y 100%")
    if spo2 is not None and not 70 <= spo2 <= 100:
        errors.append("Saturación de oxígeno debe estar entre 70 y 100%")
    if steps is not None and steps < 0:
        errors.append("Pasos diarios no puede ser negativo")
    return ValidationResult(is_valid=not errors, errors=errors)


def detect_health_anomalies(
    sleep_hours: float,
    heart_rate: float,
    stress_level: float,
    spo2: float,
) -> AnomalyReport:
    """Flag short sleep, tachycardia, bradycardia, high stress and hypoxemia.

    Risk is "alto" with three or more anomalies, "medio" with at least one
    and "bajo" otherwise.
    """
    anomalies: list[str] = []
    if sleep_hours < 5:
        anomalies.append("Sueño insuficiente")
    if heart_rate > 100:
        anomalies.append("Frecuencia cardíaca elevada")
    if heart_rate < 50:
        anomalies.append("Frecuencia cardíaca baja")
    if stress_level > 60:
        anomalies.append("Nivel de estrés elevado")
    if spo2 < 95:
        anomalies.append("Saturación de oxígeno baja")

    if len(anomalies) >= 3:
        risk = "alto"
    elif anomalies:
        risk = "medio"
    else:
        risk = "bajo"
    return AnomalyReport(has_anomalies=bool(anomalies), anomalies=anomalies, risk_level=risk)


def stress_label(level: float) -> str:
    if level <= 25:
        return "Bajo"
    if level <= 50:
        return "Moderado"
    if level <= 75:
        return "Alto"
    return "Muy Alto"


def average_sleep(records: Sequence[HealthRecord]) -> float:
    """Mean sleep hours over days that report sleep (> 0)."""
    values = [
        r.horas_de_sueno
        for r in records
        if is_number(r.horas_de_sueno) and r.horas_de_sueno > 0  # type: ignore[operator]
    ]
    if not values:
        return 0.0
    return sum(values) / len(values)  # type: ignore[arg-type]


def current_record(result: DailyResult) -> HealthRecord | None:
    """Record for the "current values" cards.

    The most recently written event wins; otherwise the newest day of the
    window.
    """
    if result.latest is not None:
        return result.latest
    return result.records[-1] if result.records else None
