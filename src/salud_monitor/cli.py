"""CLI: resumen diario, generación de datos sintéticos y vista admin."""

from __future__ import annotations

import argparse
import random
from datetime import date, datetime
from pathlib import Path

from loguru import logger

from salud_monitor.admin import (
    EmailAllowlistPolicy,
    fetch_all_users,
    filter_users,
    global_stats,
    is_admin,
    sex_distribution,
    sleep_distribution,
    steps_comparison,
    stress_distribution,
    user_stats,
    users_to_frame,
    weekly_trends,
)
from salud_monitor.excel_writer import ExcelLayout, write_health_xlsx
from salud_monitor.generator import (
    PATTERNS,
    PROFILES,
    generate_range,
    generate_weekly_range,
    upload_records,
)
from salud_monitor.logger import setup_logger
from salud_monitor.metrics import (
    average_sleep,
    current_record,
    detect_health_anomalies,
    stress_label,
    validate_health_params,
)
from salud_monitor.model import HealthRecord, is_number
from salud_monitor.reconcile import fetch_daily_records, records_to_frame
from salud_monitor.storage import (
    AppConfig,
    DocumentStore,
    FirestoreStore,
    SQLiteStore,
    StoreError,
)

_DEFAULT_DB = Path.home() / ".salud_monitor" / "salud.sqlite3"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argparse namespace.
    """
    parser = argparse.ArgumentParser(
        description="Métricas de salud: resumen diario, datos sintéticos y admin."
    )
    parser.add_argument(
        "--db",
        default=str(_DEFAULT_DB),
        help="Base SQLite local (documentos y configuración).",
    )
    parser.add_argument(
        "--firestore",
        action="store_true",
        help="Leer/escribir documentos en Cloud Firestore en vez de SQLite.",
    )
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-file", default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    dash = sub.add_parser("dashboard", help="Resumen de los últimos días.")
    dash.add_argument("--user", required=True, help="ID del usuario.")
    dash.add_argument("--limit", type=int, default=None)
    dash.add_argument("--days", type=int, default=None)
    dash.add_argument(
        "--export", nargs="?", const="", default=None, help="Ruta .xlsx o carpeta."
    )

    gen = sub.add_parser("generate", help="Generar y subir datos sintéticos.")
    gen.add_argument("--user", required=True, help="ID del usuario.")
    gen.add_argument("--profile", choices=sorted(PROFILES), default="healthy")
    gen.add_argument(
        "--pattern",
        choices=PATTERNS,
        default="hourly",
        help="hourly: perfil sano/enfermo cada hora; weekly: rutina semanal con ejercicio.",
    )
    gen.add_argument("--start", type=date.fromisoformat, default=date(2025, 11, 11))
    gen.add_argument("--end", type=date.fromisoformat, default=date(2025, 11, 25))
    gen.add_argument("--seed", type=int, default=None)
    gen.add_argument(
        "--preview", action="store_true", help="Mostrar registros sin subirlos."
    )

    adm = sub.add_parser("admin", help="Vista de administración.")
    adm.add_argument("--email", required=True, help="Email del usuario actual.")
    adm.add_argument("--search", default="")
    adm.add_argument(
        "--export", nargs="?", const="", default=None, help="Ruta .xlsx o carpeta."
    )

    usr = sub.add_parser("user", help="Crear o actualizar el perfil de un usuario.")
    usr.add_argument("--id", required=True, help="ID del usuario.")
    usr.add_argument("--name", default=None)
    usr.add_argument("--email", default=None)
    usr.add_argument("--emergency-contact", default=None)
    usr.add_argument("--sex", type=int, choices=(0, 1, 2), default=None)
    usr.add_argument("--height", type=float, default=None)
    usr.add_argument("--weight", type=float, default=None)

    cfg = sub.add_parser("config", help="Ver o guardar la configuración local.")
    cfg.add_argument("--admin-email", action="append", default=None)
    cfg.add_argument("--fetch-limit", type=int, default=None)
    cfg.add_argument("--window-days", type=int, default=None)
    cfg.add_argument("--export-dir", default=None)

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run the CLI.

    Returns:
        Exit code (0 on success).
    """
    ns = parse_args(argv)
    setup_logger(level=ns.log_level, log_file=ns.log_file)

    config_store = SQLiteStore(Path(ns.db).expanduser())
    store: DocumentStore = FirestoreStore() if ns.firestore else config_store

    if ns.command == "dashboard":
        return _run_dashboard(ns, config_store, store)
    if ns.command == "generate":
        return _run_generate(ns, store)
    if ns.command == "user":
        return _run_user(ns, store)
    if ns.command == "config":
        return _run_config(ns, config_store)
    return _run_admin(ns, config_store, store)


def _run_dashboard(
    ns: argparse.Namespace, config_store: SQLiteStore, store: DocumentStore
) -> int:
    config = config_store.load_config()
    result = fetch_daily_records(
        store,
        ns.user,
        limit=ns.limit or config.fetch_limit,
        window=ns.days or config.window_days,
    )
    if not result.ok:
        print(f"Error: no se pudieron obtener los registros ({result.error})")
        return 1
    if not result.records:
        print("Sin registros de salud.")
        return 0

    for record in result.records:
        print(_format_record(record))

    current = current_record(result)
    if current is not None:
        stress = _num(current.nivel_de_estres)
        print(
            f"Actual ({current.fecha}): sueño {_num(current.horas_de_sueno):.1f}h, "
            f"pasos {int(_num(current.pasos_diarios)):,}, "
            f"FC {_num(current.frecuencia_cardiaca):g} BPM, "
            f"SpO2 {_num(current.saturacion_oxigeno):g}%, "
            f"estrés {stress:g}% ({stress_label(stress)})"
        )
        _print_health_check(current)
    print(f"Promedio sueño: {average_sleep(result.records):.1f}h")

    if ns.export is not None:
        out_path = _export_path(ns.export, config.export_dir, "resumen_diario")
        write_health_xlsx(records_to_frame(result.records), out_path, ExcelLayout())
        print(f"OK: Output: {out_path}")
    return 0


def _run_generate(ns: argparse.Namespace, store: DocumentStore) -> int:
    rng = random.Random(ns.seed)
    if ns.pattern == "weekly":
        records = generate_weekly_range(ns.start, ns.end, rng=rng)
    else:
        records = generate_range(ns.start, ns.end, ns.profile, rng=rng)

    if ns.preview:
        print(f"Preview: {len(records)} registros serán generados")
        for r in records[:20]:
            sleep = f"{r['horasDeSueno']}h" if r["horasDeSueno"] > 0 else "-"
            print(
                f"{r['fecha']} {r['horaRegistro']} - FC:{r['frecuenciaCardiaca']} "
                f"SpO2:{r['saturacionOxigeno']}% Estrés:{r['nivelDeEstres']} "
                f"Pasos:{r['pasosDiarios']} Sueño:{sleep}"
            )
        return 0

    def _progress(done: int, total: int) -> None:
        if done % 10 == 0 or done == total:
            logger.info("Subidos {}/{} registros...", done, total)

    report = upload_records(store, ns.user, records, on_progress=_progress)
    print(report.message)
    return 1 if report.aborted else 0


def _run_admin(
    ns: argparse.Namespace, config_store: SQLiteStore, store: DocumentStore
) -> int:
    config = config_store.load_config()
    policy = EmailAllowlistPolicy(config.admin_emails)
    if not is_admin(ns.email, policy):
        print("Acceso denegado: se requiere una cuenta de administrador.")
        return 2

    users = fetch_all_users(store)
    if ns.search:
        users = filter_users(users, ns.search)

    stats = user_stats(users)
    print(
        f"Usuarios: {stats.total} | con datos: {stats.with_health_data} | "
        f"con contacto: {stats.with_emergency_contact} | "
        f"estrés alto: {stats.high_stress}"
    )
    averages = global_stats(users)
    if averages is not None:
        print(
            f"Promedios: sueño {averages.avg_sleep:.1f}h, "
            f"estrés {averages.avg_stress:.0f}%, pasos {averages.avg_steps:,.0f}, "
            f"FC {averages.avg_heart_rate:.0f} BPM, SpO2 {averages.avg_spo2:.0f}%"
        )
        print(f"Estrés: {_counts(stress_distribution(users))}")
        print(f"Sueño: {_counts(sleep_distribution(users))}")
        print(
            "Pasos: "
            + ", ".join(f"{name} {steps:,.0f}" for name, steps in steps_comparison(users))
        )
    print(f"Sexo: {_counts(sex_distribution(users))}")
    trends = weekly_trends(users)
    for row in trends.itertuples(index=False):
        print(
            f"{row.fecha} - sueño {row.avg_sleep:.1f}h, estrés {row.avg_stress:.0f}%, "
            f"pasos {row.avg_steps:,.0f}"
        )
    for u in users:
        print(f"- {u.name} <{u.email}> {u.emergency_contact}")

    if ns.export is not None:
        out_path = _export_path(ns.export, config.export_dir, "usuarios")
        write_health_xlsx(users_to_frame(users), out_path, ExcelLayout("Usuarios"))
        print(f"OK: Output: {out_path}")
    return 0


def _run_user(ns: argparse.Namespace, store: DocumentStore) -> int:
    profile = {
        "name": ns.name,
        "email": ns.email,
        "emergencyContact": ns.emergency_contact,
        "sex": ns.sex,
        "height": ns.height,
        "weight": ns.weight,
    }
    try:
        existing = {d.id: d.data for d in store.query("users")}.get(ns.id, {})
        merged = {**existing, **{k: v for k, v in profile.items() if v is not None}}
        store.set_document("users", ns.id, merged)
    except StoreError as exc:
        logger.error("Error guardando perfil {}: {}", ns.id, exc)
        print(f"Error: no se pudo guardar el perfil ({exc})")
        return 1
    print(f"OK: Perfil guardado: {ns.id}")
    return 0


def _run_config(ns: argparse.Namespace, config_store: SQLiteStore) -> int:
    config = config_store.load_config()
    updated = AppConfig(
        admin_emails=ns.admin_email or config.admin_emails,
        fetch_limit=ns.fetch_limit or config.fetch_limit,
        window_days=ns.window_days or config.window_days,
        export_dir=config.export_dir if ns.export_dir is None else ns.export_dir,
    )
    if updated != config:
        config_store.save_config(updated)
        print("OK: Configuración guardada")
    print("admin_emails: " + ", ".join(updated.admin_emails))
    print(f"fetch_limit: {updated.fetch_limit}")
    print(f"window_days: {updated.window_days}")
    print(f"export_dir: {updated.export_dir or '-'}")
    return 0


def _counts(buckets: dict[str, int]) -> str:
    return ", ".join(f"{k} {v}" for k, v in buckets.items())


def _present(value: float | None) -> float | None:
    return value if is_number(value) else None


def _print_health_check(r: HealthRecord) -> None:
    """Print range errors or the anomaly report for the current values."""
    sleep = _present(r.horas_de_sueno)
    heart_rate = _present(r.frecuencia_cardiaca)
    stress = _present(r.nivel_de_estres)
    spo2 = _present(r.saturacion_oxigeno)
    validation = validate_health_params(
        sleep_hours=sleep,
        heart_rate=heart_rate,
        stress_level=stress,
        spo2=spo2,
        steps=_present(r.pasos_diarios),
    )
    if not validation.is_valid:
        print("Valores fuera de rango: " + "; ".join(validation.errors))
        return
    if sleep is None or heart_rate is None or stress is None or spo2 is None:
        return
    report = detect_health_anomalies(sleep, heart_rate, stress, spo2)
    detail = f" ({', '.join(report.anomalies)})" if report.anomalies else ""
    print(f"Riesgo: {report.risk_level}{detail}")


def _num(value: float | None) -> float:
    """Printable number: absent or non-numeric values show as 0."""
    return value if is_number(value) else 0  # type: ignore[return-value]


def _format_record(r: HealthRecord) -> str:
    sleep = f"{r.horas_de_sueno:g}h" if _num(r.horas_de_sueno) else "-"
    stress = f"{r.nivel_de_estres:g}" if is_number(r.nivel_de_estres) else "-"
    spo2 = f"{r.saturacion_oxigeno:g}%" if is_number(r.saturacion_oxigeno) else "-"
    return (
        f"{r.fecha} - Sueño:{sleep} FC:{_num(r.frecuencia_cardiaca):g} "
        f"({_num(r.frecuencia_cardiaca_min):g}-{_num(r.frecuencia_cardiaca_max):g}) "
        f"SpO2:{spo2} Estrés:{stress} Pasos:{int(_num(r.pasos_diarios))}"
    )


def _export_path(raw: str, export_dir: str, prefix: str) -> Path:
    """Resolve ``--export``; a directory gets a timestamped file name."""
    if raw and Path(raw).suffix.lower() == ".xlsx":
        return Path(raw).expanduser()
    if raw:
        base = Path(raw).expanduser()
    elif export_dir:
        base = Path(export_dir).expanduser()
    else:
        base = Path.cwd() / "salidas"
    ts = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    return base / f"salud_{prefix}_{ts}.xlsx"
