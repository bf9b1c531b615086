"""Modelos tipados para registros de salud y perfiles de usuario."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from dateutil import parser as date_parser
from dateutil import tz

LOCAL_TZ = tz.gettz("America/Santiago")

LEGACY_SLEEP_KEY = "horasDeSueño"
SLEEP_KEY = "horasDeSueno"

_NUMERIC_KEYS: dict[str, str] = {
    SLEEP_KEY: "horas_de_sueno",
    "frecuenciaCardiaca": "frecuencia_cardiaca",
    "frecuenciaCardiacaMin": "frecuencia_cardiaca_min",
    "frecuenciaCardiacaMax": "frecuencia_cardiaca_max",
    "nivelDeEstres": "nivel_de_estres",
    "saturacionOxigeno": "saturacion_oxigeno",
    "pasosDiarios": "pasos_diarios",
    "altura": "altura",
    "peso": "peso",
    "tiempoPantalla": "tiempo_pantalla",
}

_TIMESTAMP_KEYS: dict[str, str] = {
    "createdAt": "created_at",
    "lastUpdated": "last_updated",
    "event_timestamp": "event_timestamp",
}

_OTHER_KEYS: dict[str, str] = {
    "horaRegistro": "hora_registro",
    "relojColocado": "reloj_colocado",
}

_KNOWN_KEYS = (
    {"fecha", LEGACY_SLEEP_KEY}
    | set(_NUMERIC_KEYS)
    | set(_TIMESTAMP_KEYS)
    | set(_OTHER_KEYS)
)


@dataclass(frozen=True)
class HealthRecord:
    """One health document, raw or reconciled.

    Absent fields are ``None``; numeric fields that were present but not a
    number are kept as NaN so callers can tell both cases apart.
    """

    fecha: str
    horas_de_sueno: float | None = None
    frecuencia_cardiaca: float | None = None
    frecuencia_cardiaca_min: float | None = None
    frecuencia_cardiaca_max: float | None = None
    nivel_de_estres: float | None = None
    saturacion_oxigeno: float | None = None
    pasos_diarios: float | None = None
    hora_registro: str | None = None
    altura: float | None = None
    peso: float | None = None
    reloj_colocado: bool | None = None
    tiempo_pantalla: float | None = None
    created_at: datetime | None = None
    last_updated: datetime | None = None
    event_timestamp: datetime | None = None
    doc_id: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_document(
        cls, data: Mapping[str, Any], doc_id: str | None = None
    ) -> HealthRecord | None:
        """Build a record from a store document; None if ``fecha`` is missing.

        The document is expected to be normalized already, so the legacy
        sleep key is ignored here.
        """
        fecha = data.get("fecha")
        if not fecha:
            return None

        kwargs: dict[str, Any] = {"fecha": str(fecha), "doc_id": doc_id}
        for key, attr in _NUMERIC_KEYS.items():
            kwargs[attr] = to_number(data.get(key))
        for key, attr in _TIMESTAMP_KEYS.items():
            kwargs[attr] = to_datetime(data.get(key))
        hora = data.get("horaRegistro")
        kwargs["hora_registro"] = str(hora) if hora is not None else None
        reloj = data.get("relojColocado")
        kwargs["reloj_colocado"] = bool(reloj) if reloj is not None else None
        kwargs["extra"] = {
            k: v for k, v in data.items() if k not in _KNOWN_KEYS and v is not None
        }
        return cls(**kwargs)

    @property
    def write_timestamp(self) -> datetime | None:
        """Latest write marker: lastUpdated, else createdAt, else event_timestamp."""
        for value in (self.last_updated, self.created_at, self.event_timestamp):
            if value is not None:
                return value
        return None

    def to_document(self) -> dict[str, Any]:
        """Return the store representation, without absent fields."""
        out: dict[str, Any] = {"fecha": self.fecha}
        for mapping in (_NUMERIC_KEYS, _OTHER_KEYS, _TIMESTAMP_KEYS):
            for key, attr in mapping.items():
                value = getattr(self, attr)
                if value is not None:
                    out[key] = value
        out.update(self.extra)
        return out


@dataclass(frozen=True)
class HealthSnapshot:
    """Reduced health record used by the admin roll-up (absent -> 0)."""

    fecha: str
    horas_de_sueno: float = 0
    frecuencia_cardiaca: float = 0
    nivel_de_estres: float = 0
    pasos_diarios: float = 0
    saturacion_oxigeno: float = 0

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> HealthSnapshot:
        """Build a snapshot, accepting either spelling of the sleep field."""
        return cls(
            fecha=str(data.get("fecha") or ""),
            horas_de_sueno=_number_or_zero(
                data.get(SLEEP_KEY) or data.get(LEGACY_SLEEP_KEY)
            ),
            frecuencia_cardiaca=_number_or_zero(data.get("frecuenciaCardiaca")),
            nivel_de_estres=_number_or_zero(data.get("nivelDeEstres")),
            pasos_diarios=_number_or_zero(data.get("pasosDiarios")),
            saturacion_oxigeno=_number_or_zero(data.get("saturacionOxigeno")),
        )


@dataclass(frozen=True)
class UserData:
    """User profile plus health history, as shown in the admin view."""

    id: str
    email: str = "Sin email"
    name: str = "Sin nombre"
    emergency_contact: str = "No registrado"
    dob: str = "No registrado"
    height: float = 0
    weight: float = 0
    sex: int = 0
    goal: str = "No especificado"
    creation_date: datetime | None = None
    last_health_record: HealthSnapshot | None = None
    all_health_records: tuple[HealthSnapshot, ...] = ()

    @classmethod
    def from_documents(
        cls,
        user_id: str,
        profile: Mapping[str, Any],
        health_docs: list[Mapping[str, Any]],
    ) -> UserData:
        """Combine a profile document with its health documents.

        ``health_docs`` must be ordered by ``fecha`` descending; the first one
        becomes the last health record.
        """
        history = tuple(HealthSnapshot.from_document(d) for d in health_docs)
        return cls(
            id=user_id,
            email=profile.get("email") or "Sin email",
            name=profile.get("name") or "Sin nombre",
            emergency_contact=profile.get("emergencyContact") or "No registrado",
            dob=profile.get("dob") or "No registrado",
            height=_number_or_zero(profile.get("height")),
            weight=_number_or_zero(profile.get("weight")),
            sex=int(_number_or_zero(profile.get("sex"))),
            goal=profile.get("goal") or "No especificado",
            creation_date=to_datetime(profile.get("creationDate")),
            last_health_record=history[0] if history else None,
            all_health_records=history,
        )


def to_number(value: Any) -> float | None:
    """Coerce a document value to a number; None stays None, junk becomes NaN."""
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, int | float):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return math.nan
    return math.nan


def is_number(value: float | None) -> bool:
    """True when ``value`` is present and not NaN."""
    return value is not None and not math.isnan(value)


def to_datetime(value: Any) -> datetime | None:
    """Parse a write timestamp (datetime, ISO string or epoch seconds).

    Naive values are interpreted in the local time zone.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        if not value.strip():
            return None
        try:
            dt = date_parser.isoparse(value)
        except ValueError:
            return None
    elif isinstance(value, int | float) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=LOCAL_TZ)
    elif hasattr(value, "to_datetime"):
        dt = value.to_datetime()
    else:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=LOCAL_TZ)
    return dt


def _number_or_zero(value: Any) -> float:
    number = to_number(value)
    if not is_number(number):
        return 0
    return number  # type: ignore[return-value]
