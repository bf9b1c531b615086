"""Consolidación diaria: un registro canónico por fecha + último escrito."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, fields, replace
from functools import reduce
from typing import Any

import pandas as pd
from loguru import logger

from salud_monitor.model import HealthRecord, is_number
from salud_monitor.normalize import normalize_health_data
from salud_monitor.storage import (
    Document,
    DocumentStore,
    StoreError,
    health_records_path,
)

DEFAULT_WINDOW = 7
DEFAULT_FETCH_LIMIT = 200

# Fields with an explicit merge policy; everything else is overwritten by the
# incoming event, absent values included.
_POLICY_FIELDS = frozenset(
    {
        "fecha",
        "horas_de_sueno",
        "frecuencia_cardiaca",
        "frecuencia_cardiaca_min",
        "frecuencia_cardiaca_max",
        "pasos_diarios",
        "nivel_de_estres",
        "saturacion_oxigeno",
        "extra",
    }
)
_LAST_WRITE_FIELDS = tuple(
    f.name for f in fields(HealthRecord) if f.name not in _POLICY_FIELDS
)


@dataclass(frozen=True)
class DailyResult:
    """Output of a reconciliation run.

    ``records`` is the trailing window in ascending date order and
    ``latest`` the event with the newest write timestamp, which may belong
    to a date outside the window.
    """

    records: list[HealthRecord]
    latest: HealthRecord | None = None
    skipped: int = 0
    total: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        """True when the fetch completed without a store error."""
        return self.error is None


@dataclass(frozen=True)
class _FoldState:
    by_date: dict[str, HealthRecord]
    latest: HealthRecord | None = None
    skipped: int = 0


def _value(v: float | None) -> float:
    """Present, numeric and non-negative value, else 0."""
    return max(v, 0) if is_number(v) else 0  # type: ignore[type-var]


def _stress(v: float | None) -> float | None:
    return None if v is None else _value(v)


def _spo2(v: float | None) -> float | None:
    return max(v, 0) if is_number(v) else None  # type: ignore[type-var]


def _merge_sleep(existing: float | None, incoming: float | None) -> float:
    current = _value(existing)
    new = _value(incoming)
    if new > 0:
        return max(current, new) if current > 0 else new
    return current


def _merge_min_positive(existing: float | None, incoming: float | None) -> float:
    current = _value(existing)
    new = _value(incoming)
    if current > 0:
        return min(current, new) if new > 0 else current
    return new if new > 0 else 0


def seed_record(event: HealthRecord) -> HealthRecord:
    """Canonical record for the first event seen on a date."""
    return replace(
        event,
        horas_de_sueno=_merge_sleep(None, event.horas_de_sueno),
        frecuencia_cardiaca=_value(event.frecuencia_cardiaca),
        frecuencia_cardiaca_max=_value(event.frecuencia_cardiaca_max),
        frecuencia_cardiaca_min=_merge_min_positive(None, event.frecuencia_cardiaca_min),
        pasos_diarios=_value(event.pasos_diarios),
        nivel_de_estres=_stress(event.nivel_de_estres),
        saturacion_oxigeno=_spo2(event.saturacion_oxigeno),
        extra=dict(event.extra),
    )


def merge_event(existing: HealthRecord | None, event: HealthRecord) -> HealthRecord:
    """Fold one event into the canonical record of its date.

    Args:
        existing: Canonical record so far, or None for the first event.
        event: Incoming event for the same ``fecha``.

    Returns:
        A new canonical record; neither argument is modified.
    """
    if existing is None:
        return seed_record(event)

    overrides: dict[str, Any] = {
        "horas_de_sueno": _merge_sleep(existing.horas_de_sueno, event.horas_de_sueno),
        "frecuencia_cardiaca": max(
            _value(existing.frecuencia_cardiaca), _value(event.frecuencia_cardiaca)
        ),
        "frecuencia_cardiaca_max": max(
            _value(existing.frecuencia_cardiaca_max),
            _value(event.frecuencia_cardiaca_max),
        ),
        "frecuencia_cardiaca_min": _merge_min_positive(
            existing.frecuencia_cardiaca_min, event.frecuencia_cardiaca_min
        ),
        "pasos_diarios": max(_value(existing.pasos_diarios), _value(event.pasos_diarios)),
        "extra": {**existing.extra, **event.extra},
    }
    if event.nivel_de_estres is not None:
        overrides["nivel_de_estres"] = _stress(event.nivel_de_estres)
    if is_number(event.saturacion_oxigeno):
        overrides["saturacion_oxigeno"] = _spo2(event.saturacion_oxigeno)
    for name in _LAST_WRITE_FIELDS:
        overrides[name] = getattr(event, name)
    return replace(existing, **overrides)


def _step(state: _FoldState, event: HealthRecord | None) -> _FoldState:
    if event is None:
        return replace(state, skipped=state.skipped + 1)

    latest = state.latest
    ts = event.write_timestamp
    if ts is not None and (latest is None or ts > latest.write_timestamp):  # type: ignore[operator]
        latest = event

    by_date = dict(state.by_date)
    by_date[event.fecha] = merge_event(by_date.get(event.fecha), event)
    return _FoldState(by_date=by_date, latest=latest, skipped=state.skipped)


def parse_documents(documents: Iterable[Document]) -> list[HealthRecord | None]:
    """Normalize store documents into records; None marks a document without fecha."""
    out: list[HealthRecord | None] = []
    for doc in documents:
        record = HealthRecord.from_document(normalize_health_data(doc.data), doc.id)
        if record is None:
            logger.warning("Documento sin fecha: {} {}", doc.id, doc.data)
        out.append(record)
    return out


def reconcile_daily(
    events: Iterable[HealthRecord | None],
    window: int = DEFAULT_WINDOW,
) -> DailyResult:
    """Reconcile events into one record per date and keep the trailing window.

    Args:
        events: Parsed events in store order; None entries count as skipped.
        window: Number of most recent dates to keep.

    Returns:
        DailyResult with the window in ascending ``fecha`` order.
    """
    events = list(events)
    state = reduce(_step, events, _FoldState(by_date={}))
    dates = sorted(state.by_date)
    kept = dates[-window:] if window > 0 else []
    logger.debug("Fechas únicas encontradas: {}", dates)
    return DailyResult(
        records=[state.by_date[d] for d in kept],
        latest=state.latest,
        skipped=state.skipped,
        total=len(events),
    )


def reconcile_documents(
    documents: Iterable[Document], window: int = DEFAULT_WINDOW
) -> DailyResult:
    """Parse and reconcile raw store documents."""
    return reconcile_daily(parse_documents(documents), window=window)


def fetch_daily_records(
    store: DocumentStore,
    user_id: str,
    limit: int = DEFAULT_FETCH_LIMIT,
    window: int = DEFAULT_WINDOW,
) -> DailyResult:
    """Fetch a user's latest health documents and reconcile them.

    Store failures are logged and reported through ``DailyResult.error``
    with an empty record list; they are never raised.
    """
    try:
        documents = store.query(
            health_records_path(user_id),
            order_by="fecha",
            descending=True,
            limit=limit,
        )
    except StoreError as exc:
        logger.error("Error fetching health records for {}: {}", user_id, exc)
        return DailyResult(records=[], error=str(exc))

    logger.info("Total documentos obtenidos: {}", len(documents))
    result = reconcile_documents(documents, window=window)
    if result.skipped:
        logger.info("Documentos omitidos sin fecha: {}", result.skipped)
    return result


def records_to_frame(records: Iterable[HealthRecord]) -> pd.DataFrame:
    """Convert canonical records to a DataFrame ordered by fecha."""
    rows = [
        {
            "fecha": r.fecha,
            "horasDeSueno": r.horas_de_sueno,
            "frecuenciaCardiaca": r.frecuencia_cardiaca,
            "frecuenciaCardiacaMin": r.frecuencia_cardiaca_min,
            "frecuenciaCardiacaMax": r.frecuencia_cardiaca_max,
            "nivelDeEstres": r.nivel_de_estres,
            "saturacionOxigeno": r.saturacion_oxigeno,
            "pasosDiarios": r.pasos_diarios,
        }
        for r in records
    ]
    df = pd.DataFrame(rows)
    if df.empty:
        return pd.DataFrame(
            columns=[
                "fecha",
                "horasDeSueno",
                "frecuenciaCardiaca",
                "frecuenciaCardiacaMin",
                "frecuenciaCardiacaMax",
                "nivelDeEstres",
                "saturacionOxigeno",
                "pasosDiarios",
            ]
        )
    return df.sort_values("fecha").reset_index(drop=True)
