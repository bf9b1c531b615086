"""Vista de administración: acceso, búsqueda y estadísticas de usuarios."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import pandas as pd
from loguru import logger

from salud_monitor.model import UserData
from salud_monitor.storage import (
    DEFAULT_ADMIN_EMAIL,
    DocumentStore,
    StoreError,
    health_records_path,
)

_SEX_LABELS = {0: "No especificado", 1: "Masculino", 2: "Femenino"}


class AdminPolicy(ABC):
    """Decides whether an identity may open the admin view."""

    @abstractmethod
    def is_authorized(self, email: str | None) -> bool:
        """Return True if ``email`` has admin access."""


class EmailAllowlistPolicy(AdminPolicy):
    """Exact, case-sensitive match against a set of admin emails."""

    def __init__(self, emails: Iterable[str] = (DEFAULT_ADMIN_EMAIL,)) -> None:
        self._emails = frozenset(e for e in emails if e)

    def is_authorized(self, email: str | None) -> bool:
        return bool(email) and email in self._emails


DEFAULT_POLICY = EmailAllowlistPolicy()


def is_admin(email: str | None, policy: AdminPolicy = DEFAULT_POLICY) -> bool:
    """Check admin access through ``policy``."""
    return policy.is_authorized(email)


@dataclass(frozen=True)
class UserStats:
    """Counters shown on the admin KPI cards."""

    total: int
    with_health_data: int
    with_emergency_contact: int
    high_stress: int


@dataclass(frozen=True)
class GlobalStats:
    """Averages over each user's last health record."""

    avg_sleep: float
    avg_stress: float
    avg_steps: float
    avg_heart_rate: float
    avg_spo2: float


def fetch_all_users(store: DocumentStore) -> list[UserData]:
    """Load every user profile with its full health history.

    A failure reading one user's history leaves that user with no health
    data; a failure listing users returns an empty list.
    """
    try:
        user_docs = store.query("users")
    except StoreError as exc:
        logger.error("Error fetching users: {}", exc)
        return []
    logger.info("Total usuarios encontrados: {}", len(user_docs))

    users: list[UserData] = []
    for doc in user_docs:
        try:
            health = store.query(
                health_records_path(doc.id), order_by="fecha", descending=True
            )
        except StoreError as exc:
            logger.warning("Error health records for user {}: {}", doc.id, exc)
            health = []
        logger.debug("Health records para {}: {}", doc.id, len(health))
        users.append(UserData.from_documents(doc.id, doc.data, [h.data for h in health]))
    return users


def filter_users(users: Sequence[UserData], search_term: str) -> list[UserData]:
    """Search by name or email (case-insensitive) or emergency contact."""
    term = search_term.lower()
    return [
        u
        for u in users
        if term in u.name.lower()
        or term in u.email.lower()
        or search_term in u.emergency_contact
    ]


def sex_label(sex: int) -> str:
    """Human label for the profile ``sex`` code."""
    return _SEX_LABELS.get(sex, "Otro")


def user_stats(users: Sequence[UserData]) -> UserStats:
    """Count users, users with data, emergency contacts and high stress."""
    return UserStats(
        total=len(users),
        with_health_data=sum(1 for u in users if u.last_health_record is not None),
        with_emergency_contact=sum(
            1 for u in users if u.emergency_contact != "No registrado"
        ),
        high_stress=sum(
            1
            for u in users
            if u.last_health_record is not None
            and u.last_health_record.nivel_de_estres > 40
        ),
    )


def global_stats(users: Sequence[UserData]) -> GlobalStats | None:
    """Average the last record of every user with health data; None if none."""
    last = [u.last_health_record for u in users if u.last_health_record is not None]
    if not last:
        return None
    n = len(last)
    return GlobalStats(
        avg_sleep=sum(r.horas_de_sueno for r in last) / n,
        avg_stress=sum(r.nivel_de_estres for r in last) / n,
        avg_steps=sum(r.pasos_diarios for r in last) / n,
        avg_heart_rate=sum(r.frecuencia_cardiaca for r in last) / n,
        avg_spo2=sum(r.saturacion_oxigeno for r in last) / n,
    )


def stress_distribution(users: Sequence[UserData]) -> dict[str, int]:
    """Bucket last stress level: <=20, <=40, <=60, >60."""
    out = {"low": 0, "medium": 0, "high": 0, "very_high": 0}
    for u in users:
        if u.last_health_record is None:
            continue
        level = u.last_health_record.nivel_de_estres
        if level <= 20:
            out["low"] += 1
        elif level <= 40:
            out["medium"] += 1
        elif level <= 60:
            out["high"] += 1
        else:
            out["very_high"] += 1
    return out


def sleep_distribution(users: Sequence[UserData]) -> dict[str, int]:
    """Bucket last sleep hours: <5, <7, <8, >=8."""
    out = {"poor": 0, "fair": 0, "good": 0, "excellent": 0}
    for u in users:
        if u.last_health_record is None:
            continue
        hours = u.last_health_record.horas_de_sueno
        if hours < 5:
            out["poor"] += 1
        elif hours < 7:
            out["fair"] += 1
        elif hours < 8:
            out["good"] += 1
        else:
            out["excellent"] += 1
    return out


def sex_distribution(users: Sequence[UserData]) -> dict[str, int]:
    male = sum(1 for u in users if u.sex == 1)
    female = sum(1 for u in users if u.sex == 2)
    return {"male": male, "female": female, "other": len(users) - male - female}


def steps_comparison(
    users: Sequence[UserData], max_users: int = 10
) -> list[tuple[str, float]]:
    """First name and last step count for the first users with data."""
    with_data = [u for u in users if u.last_health_record is not None][:max_users]
    return [
        (u.name.split(" ")[0], u.last_health_record.pasos_diarios)  # type: ignore[union-attr]
        for u in with_data
    ]


def weekly_trends(users: Sequence[UserData], days: int = 7) -> pd.DataFrame:
    """Per-date mean sleep, stress and steps over all users' histories.

    Returns:
        DataFrame with columns fecha, avg_sleep, avg_stress, avg_steps for
        the last ``days`` dates, ascending.
    """
    rows = [
        {
            "fecha": r.fecha,
            "sleep": r.horas_de_sueno,
            "stress": r.nivel_de_estres,
            "steps": r.pasos_diarios,
        }
        for u in users
        for r in u.all_health_records
    ]
    if not rows:
        return pd.DataFrame(columns=["fecha", "avg_sleep", "avg_stress", "avg_steps"])
    g = pd.DataFrame(rows).groupby("fecha", as_index=False).agg(
        avg_sleep=("sleep", "mean"),
        avg_stress=("stress", "mean"),
        avg_steps=("steps", "mean"),
    )
    return g.sort_values("fecha").tail(days).reset_index(drop=True)


def users_to_frame(users: Sequence[UserData]) -> pd.DataFrame:
    """Tabular admin view: one row per user with the last record values."""
    rows = []
    for u in users:
        last = u.last_health_record
        rows.append(
            {
                "name": u.name,
                "email": u.email,
                "emergencyContact": u.emergency_contact,
                "sex": sex_label(u.sex),
                "fecha": last.fecha if last else None,
                "horasDeSueno": last.horas_de_sueno if last else None,
                "nivelDeEstres": last.nivel_de_estres if last else None,
                "pasosDiarios": last.pasos_diarios if last else None,
                "frecuenciaCardiaca": last.frecuencia_cardiaca if last else None,
                "saturacionOxigeno": last.saturacion_oxigeno if last else None,
            }
        )
    return pd.DataFrame(rows)
