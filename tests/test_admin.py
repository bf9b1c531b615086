from __future__ import annotations

from pathlib import Path

import pandas as pd

from salud_monitor.admin import (
    AdminPolicy,
    EmailAllowlistPolicy,
    fetch_all_users,
    filter_users,
    global_stats,
    is_admin,
    sex_distribution,
    sex_label,
    sleep_distribution,
    steps_comparison,
    stress_distribution,
    user_stats,
    users_to_frame,
    weekly_trends,
)
from salud_monitor.model import HealthSnapshot, UserData
from salud_monitor.storage import Document, DocumentStore, SQLiteStore, StoreError

_USERS = [
    UserData(id="1", name="Juan Pérez", email="juan@test.com", emergency_contact="+56912345678"),
    UserData(id="2", name="María García", email="maria@test.com", emergency_contact="+56987654321"),
    UserData(id="3", name="Carlos López", email="carlos@empresa.cl"),
]


def _user(uid: str, stress: float | None, sleep: float = 7, **kwargs: object) -> UserData:
    last = None if stress is None else HealthSnapshot(
        fecha="2025-11-26", nivel_de_estres=stress, horas_de_sueno=sleep
    )
    return UserData(id=uid, last_health_record=last, **kwargs)  # type: ignore[arg-type]


def test_is_admin_exact_match_only() -> None:
    assert is_admin("admin@samsung.cl")
    assert not is_admin("admin@samsung.com")
    assert not is_admin("usuario@gmail.com")
    assert not is_admin("ADMIN@samsung.cl")


def test_is_admin_rejects_missing_email() -> None:
    assert not is_admin(None)
    assert not is_admin("")


def test_is_admin_with_injected_policy() -> None:
    class _AllowAll(AdminPolicy):
        def is_authorized(self, email: str | None) -> bool:
            return True

    assert is_admin("anyone@test.com", _AllowAll())
    policy = EmailAllowlistPolicy(["jefa@clinica.cl"])
    assert is_admin("jefa@clinica.cl", policy)
    assert not is_admin("admin@samsung.cl", policy)


def test_filter_users_by_name_case_insensitive() -> None:
    result = filter_users(_USERS, "juan")
    assert [u.name for u in result] == ["Juan Pérez"]
    assert len(filter_users(_USERS, "MARIA")) == 1


def test_filter_users_by_email_and_phone() -> None:
    assert [u.name for u in filter_users(_USERS, "empresa.cl")] == ["Carlos López"]
    assert [u.name for u in filter_users(_USERS, "+56912345678")] == ["Juan Pérez"]
    assert filter_users(_USERS, "xyz123") == []


def test_user_stats() -> None:
    users = [
        _user("1", 25, sleep=7, emergency_contact="+56912345678"),
        _user("2", 55, sleep=4, emergency_contact="+56987654321"),
        _user("3", None),
        _user("4", 80, sleep=3),
    ]
    stats = user_stats(users)
    assert stats.total == 4
    assert stats.with_health_data == 3
    assert stats.with_emergency_contact == 2
    assert stats.high_stress == 2


def test_global_stats() -> None:
    users = [_user("1", 20, sleep=6), _user("2", 40, sleep=8), _user("3", None)]
    stats = global_stats(users)
    assert stats is not None
    assert stats.avg_sleep == 7
    assert stats.avg_stress == 30
    assert global_stats([_user("3", None)]) is None


def test_distributions() -> None:
    users = [
        _user("1", 20, sleep=4.9),
        _user("2", 40, sleep=6),
        _user("3", 60, sleep=7.5),
        _user("4", 61, sleep=8, sex=2),
        _user("5", None, sex=1),
    ]
    assert stress_distribution(users) == {"low": 1, "medium": 1, "high": 1, "very_high": 1}
    assert sleep_distribution(users) == {"poor": 1, "fair": 1, "good": 1, "excellent": 1}
    assert sex_distribution(users) == {"male": 1, "female": 1, "other": 3}


def test_sex_label() -> None:
    assert sex_label(0) == "No especificado"
    assert sex_label(1) == "Masculino"
    assert sex_label(2) == "Femenino"
    assert sex_label(9) == "Otro"


def test_steps_comparison_uses_first_name() -> None:
    users = [
        UserData(
            id="1",
            name="Juan Pérez",
            last_health_record=HealthSnapshot(fecha="2025-11-26", pasos_diarios=4200),
        ),
        UserData(id="2", name="Sin datos"),
    ]
    assert steps_comparison(users) == [("Juan", 4200)]


def test_weekly_trends_averages_per_date() -> None:
    history_a = tuple(
        HealthSnapshot(fecha=f"2025-11-{d:02d}", horas_de_sueno=6, pasos_diarios=1000)
        for d in range(10, 20)
    )
    history_b = (HealthSnapshot(fecha="2025-11-19", horas_de_sueno=8, pasos_diarios=3000),)
    users = [
        UserData(id="a", all_health_records=history_a),
        UserData(id="b", all_health_records=history_b),
    ]
    df = weekly_trends(users)
    assert len(df) == 7
    assert list(df["fecha"])[-1] == "2025-11-19"
    last = df.iloc[-1]
    assert last["avg_sleep"] == 7
    assert last["avg_steps"] == 2000


def test_weekly_trends_empty() -> None:
    df = weekly_trends([])
    assert df.empty
    assert list(df.columns) == ["fecha", "avg_sleep", "avg_stress", "avg_steps"]


def test_users_to_frame() -> None:
    df = users_to_frame([_user("1", 30, name="Ana"), _user("2", None, name="Beto")])
    assert list(df["name"]) == ["Ana", "Beto"]
    assert df.loc[0, "nivelDeEstres"] == 30
    assert pd.isna(df.loc[1, "fecha"])


def test_fetch_all_users_from_sqlite(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    store.set_document("users", "u1", {"name": "Juan Pérez", "email": "juan@test.com"})
    store.set_document("users", "u2", {"name": "María García"})
    store.add("users/u1/health_records", {"fecha": "2025-11-25", "pasosDiarios": 100})
    store.add("users/u1/health_records", {"fecha": "2025-11-26", "horasDeSueño": 6})

    users = {u.id: u for u in fetch_all_users(store)}

    assert set(users) == {"u1", "u2"}
    juan = users["u1"]
    assert juan.last_health_record is not None
    assert juan.last_health_record.fecha == "2025-11-26"
    assert juan.last_health_record.horas_de_sueno == 6
    assert len(juan.all_health_records) == 2
    assert users["u2"].last_health_record is None
    assert users["u2"].email == "Sin email"


class _PartiallyBrokenStore(DocumentStore):
    def query(self, collection_path, order_by=None, descending=False, limit=None):  # type: ignore[no-untyped-def]
        if collection_path == "users":
            return [Document(id="ok", data={"name": "A"}), Document(id="bad", data={})]
        if collection_path.startswith("users/bad"):
            raise StoreError("denied")
        return [Document(id="h1", data={"fecha": "2025-11-26"})]

    def add(self, collection_path, record):  # type: ignore[no-untyped-def]
        raise NotImplementedError

    def set_document(self, collection_path, doc_id, record):  # type: ignore[no-untyped-def]
        raise NotImplementedError


def test_fetch_all_users_survives_per_user_errors() -> None:
    users = fetch_all_users(_PartiallyBrokenStore())
    assert [u.id for u in users] == ["ok", "bad"]
    assert users[0].last_health_record is not None
    assert users[1].all_health_records == ()


def test_fetch_all_users_listing_error_returns_empty() -> None:
    class _Down(_PartiallyBrokenStore):
        def query(self, collection_path, order_by=None, descending=False, limit=None):  # type: ignore[no-untyped-def]
            raise StoreError("unavailable")

    assert fetch_all_users(_Down()) == []
