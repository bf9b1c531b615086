"""Generación de datos sintéticos de salud (persona sana / enferma)."""

from __future__ import annotations

import random
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any

from loguru import logger

from salud_monitor.model import LOCAL_TZ
from salud_monitor.normalize import prepare_for_save
from salud_monitor.storage import DocumentStore, StoreError, health_records_path

HOURS: tuple[int, ...] = tuple(range(8, 24))
MORNING_END_HOUR = 12
MAX_UPLOAD_ERRORS = 3

PERMISSION_ERROR_MESSAGE = (
    "Error: No tienes permisos para escribir. Verifica las reglas de Firestore."
)

# Weekly pattern; weekdays are Monday=0 ... Sunday=6.
WEEKLY_HOURS: tuple[int, ...] = (7, 9, 12, 15, 18, 21, 23)
EXERCISE_DAYS = frozenset({0, 2, 4, 5})
WEEKEND_DAYS = frozenset({5, 6})
EXERCISE_HOURS = range(16, 19)
SLEEP_HOUR = 7
PATTERNS = ("hourly", "weekly")


@dataclass(frozen=True)
class HealthProfile:
    """Closed generation ranges for one physiological condition."""

    name: str
    sleep_hours: tuple[float, float]
    heart_rate: tuple[int, int]
    spo2: tuple[int, int]
    stress_morning: tuple[int, int]
    stress_rest: tuple[int, int]
    steps_per_hour: tuple[int, int]


PROFILES: dict[str, HealthProfile] = {
    "healthy": HealthProfile(
        name="healthy",
        sleep_hours=(6.0, 9.0),
        heart_rate=(60, 100),
        spo2=(96, 99),
        stress_morning=(5, 20),
        stress_rest=(10, 35),
        steps_per_hour=(300, 800),
    ),
    "sick": HealthProfile(
        name="sick",
        sleep_hours=(2.0, 4.5),
        heart_rate=(90, 130),
        spo2=(88, 94),
        stress_morning=(40, 70),
        stress_rest=(50, 85),
        steps_per_hour=(20, 150),
    ),
}


@dataclass(frozen=True)
class UploadReport:
    """Outcome of an upload run."""

    total: int
    uploaded: int
    errors: int
    aborted: bool
    message: str


def get_profile(name: str) -> HealthProfile:
    """Return a profile by name.

    Raises:
        ValueError: If the profile is unknown.
    """
    try:
        return PROFILES[name]
    except KeyError:
        known = ", ".join(sorted(PROFILES))
        raise ValueError(f"Unknown profile {name!r} (expected one of: {known})") from None


def _random_float(rng: random.Random, bounds: tuple[float, float]) -> float:
    return round(rng.uniform(*bounds), 1)


def generate_day(
    day: date, profile: HealthProfile, rng: random.Random
) -> list[dict[str, Any]]:
    """Generate one record per hour (08:00-23:00) for ``day``.

    Sleep is drawn once and shared by every record of the day; steps
    accumulate from zero.
    """
    sleep_hours = _random_float(rng, profile.sleep_hours)
    accumulated_steps = 0
    fecha = day.isoformat()

    records: list[dict[str, Any]] = []
    for hour in HOURS:
        fc_base = rng.randint(*profile.heart_rate)
        fc_min = fc_base - rng.randint(5, 10)
        fc_max = fc_base + rng.randint(10, 20)
        accumulated_steps += rng.randint(*profile.steps_per_hour)
        spo2 = rng.randint(*profile.spo2)
        stress_range = (
            profile.stress_morning if hour < MORNING_END_HOUR else profile.stress_rest
        )
        stress = rng.randint(*stress_range)

        minute = rng.randint(0, 59)
        written_at = datetime.combine(
            day, time(hour, minute, rng.randint(0, 59)), tzinfo=LOCAL_TZ
        )
        record = {
            "fecha": fecha,
            "horaRegistro": f"{hour:02d}:{minute:02d}",
            "createdAt": written_at,
            "lastUpdated": written_at,
            "frecuenciaCardiaca": fc_base,
            "frecuenciaCardiacaMin": fc_min,
            "frecuenciaCardiacaMax": fc_max,
            "nivelDeEstres": stress,
            "saturacionOxigeno": spo2,
            "pasosDiarios": accumulated_steps,
            "horasDeSueno": sleep_hours,
            "relojColocado": True,
        }
        records.append(prepare_for_save(record))
    return records


def generate_range(
    start: date,
    end: date,
    profile: HealthProfile | str,
    rng: random.Random | None = None,
) -> list[dict[str, Any]]:
    """Generate records for every day in ``[start, end]``.

    Raises:
        ValueError: If ``end`` is before ``start`` or the profile is unknown.
    """
    if end < start:
        raise ValueError(f"end {end} is before start {start}")
    if isinstance(profile, str):
        profile = get_profile(profile)
    rng = rng or random.Random()

    out: list[dict[str, Any]] = []
    for day in _days(start, end):
        out.extend(generate_day(day, profile, rng))
    logger.info("Generados {} registros ({})", len(out), profile.name)
    return out


def _days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def _weekly_heart_rate(
    rng: random.Random, hour: int, exercising: bool
) -> tuple[int, int, int]:
    """Base, min and max heart rate for a weekly-pattern record."""
    if exercising:
        return rng.randint(120, 150), rng.randint(100, 120), rng.randint(150, 175)
    if hour <= 9:
        return rng.randint(58, 68), rng.randint(52, 58), rng.randint(68, 78)
    if hour >= 21:
        return rng.randint(55, 65), rng.randint(50, 55), rng.randint(65, 72)
    return rng.randint(65, 85), rng.randint(58, 65), rng.randint(85, 100)


def _weekly_stress(
    rng: random.Random, hour: int, exercising: bool, weekend: bool
) -> int:
    if exercising:
        return rng.randint(5, 20)
    if weekend:
        return rng.randint(5, 30)
    if 9 <= hour <= 18:
        return rng.randint(20, 50)
    return rng.randint(10, 40)


def _weekly_steps(rng: random.Random, hour: int, exercise_day: bool) -> int:
    """Cumulative step count reported at ``hour``."""
    if hour <= 9:
        return rng.randint(500, 2000)
    if hour <= 12:
        return rng.randint(3000, 5000)
    if hour <= 15:
        return rng.randint(5000, 7000)
    if hour <= 18:
        return rng.randint(10000, 14000) if exercise_day else rng.randint(6000, 8000)
    if hour <= 21:
        return rng.randint(12000, 16000) if exercise_day else rng.randint(7000, 10000)
    return rng.randint(13000, 18000) if exercise_day else rng.randint(8000, 12000)


def generate_weekly_day(day: date, rng: random.Random) -> list[dict[str, Any]]:
    """Generate a day following a weekly routine.

    Exercise runs Monday, Wednesday, Friday and Saturday between 16:00 and
    18:00; weekends are calmer. Only the 07:00 record carries sleep hours.
    """
    weekday = day.weekday()
    exercise_day = weekday in EXERCISE_DAYS
    weekend = weekday in WEEKEND_DAYS
    fecha = day.isoformat()

    records: list[dict[str, Any]] = []
    for hour in WEEKLY_HOURS:
        exercising = exercise_day and hour in EXERCISE_HOURS
        fc_base, fc_min, fc_max = _weekly_heart_rate(rng, hour, exercising)
        stress = _weekly_stress(rng, hour, exercising, weekend)
        spo2 = rng.randint(95, 97) if exercising else rng.randint(96, 99)
        steps = _weekly_steps(rng, hour, exercise_day)
        sleep_hours = 0.0
        if hour == SLEEP_HOUR:
            sleep_hours = _random_float(rng, (7.5, 9.0) if weekend else (6.0, 8.0))

        minute = rng.randint(0, 59)
        written_at = datetime.combine(
            day, time(hour, minute, rng.randint(0, 59)), tzinfo=LOCAL_TZ
        )
        record = {
            "fecha": fecha,
            "horaRegistro": f"{hour:02d}:{minute:02d}",
            "createdAt": written_at,
            "lastUpdated": written_at,
            "frecuenciaCardiaca": fc_base,
            "frecuenciaCardiacaMin": fc_min,
            "frecuenciaCardiacaMax": fc_max,
            "nivelDeEstres": stress,
            "saturacionOxigeno": spo2,
            "pasosDiarios": steps,
            "horasDeSueno": sleep_hours,
            "relojColocado": True,
        }
        records.append(prepare_for_save(record))
    return records


def generate_weekly_range(
    start: date, end: date, rng: random.Random | None = None
) -> list[dict[str, Any]]:
    """Weekly-pattern records for every day in ``[start, end]``.

    Raises:
        ValueError: If ``end`` is before ``start``.
    """
    if end < start:
        raise ValueError(f"end {end} is before start {start}")
    rng = rng or random.Random()
    out: list[dict[str, Any]] = []
    for day in _days(start, end):
        out.extend(generate_weekly_day(day, rng))
    logger.info("Generados {} registros (weekly)", len(out))
    return out


def upload_records(
    store: DocumentStore,
    user_id: str,
    records: Iterable[dict[str, Any]],
    on_progress: Callable[[int, int], None] | None = None,
    max_errors: int = MAX_UPLOAD_ERRORS,
) -> UploadReport:
    """Write records one at a time under the user's health collection.

    Failed writes are counted; once ``max_errors`` is reached the upload
    stops and reports a permission/configuration message.
    """
    records = list(records)
    total = len(records)
    path = health_records_path(user_id)
    uploaded = 0
    errors = 0

    logger.info("Subiendo {} registros a {}", total, path)
    for record in records:
        try:
            store.add(path, prepare_for_save(record))
        except StoreError as exc:
            errors += 1
            logger.error("Error subiendo registro: {}", exc)
            if errors >= max_errors:
                return UploadReport(
                    total=total,
                    uploaded=uploaded,
                    errors=errors,
                    aborted=True,
                    message=PERMISSION_ERROR_MESSAGE,
                )
            continue
        uploaded += 1
        if on_progress is not None:
            on_progress(uploaded, total)
        if uploaded % 10 == 0:
            logger.debug("Subidos {}/{} registros...", uploaded, total)

    return UploadReport(
        total=total,
        uploaded=uploaded,
        errors=errors,
        aborted=False,
        message=f"Completado! Se subieron {uploaded} registros.",
    )
