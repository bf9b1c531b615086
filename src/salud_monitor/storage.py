"""Almacenes de documentos (SQLite local y Firestore) y configuración."""

from __future__ import annotations

import json
import sqlite3
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

from loguru import logger

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS app_config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS documents (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    collection TEXT NOT NULL,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_documents_collection
ON documents(collection);
"""

DEFAULT_ADMIN_EMAIL = "admin@samsung.cl"


class StoreError(Exception):
    """A document store read or write failed."""


@dataclass(frozen=True)
class Document:
    """A stored document: server-assigned id plus its field map."""

    id: str
    data: dict[str, Any]


@dataclass(frozen=True)
class AppConfig:
    """Configuracion persistida de la app."""

    admin_emails: list[str]
    fetch_limit: int = 200
    window_days: int = 7
    export_dir: str = ""


def health_records_path(user_id: str) -> str:
    """Collection path holding a user's health documents."""
    return f"users/{user_id}/health_records"


class DocumentStore(ABC):
    """Abstract schemaless document store."""

    @abstractmethod
    def query(
        self,
        collection_path: str,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        """Return documents of a collection.

        Raises:
            StoreError: If the read fails.
        """

    @abstractmethod
    def add(self, collection_path: str, record: dict[str, Any]) -> str:
        """Write one document and return its new id.

        Raises:
            StoreError: If the write fails.
        """

    @abstractmethod
    def set_document(
        self, collection_path: str, doc_id: str, record: dict[str, Any]
    ) -> None:
        """Create or replace a document with a known id (user profiles).

        Raises:
            StoreError: If the write fails.
        """


class SQLiteStore(DocumentStore):
    """Document store backed by a local SQLite file (JSON documents)."""

    def __init__(self, db_path: Path) -> None:
        """Create store and ensure schema exists."""
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()

    def query(
        self,
        collection_path: str,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        """Return documents, optionally ordered by a document field."""
        sql = "SELECT id, data FROM documents WHERE collection = ?"
        params: list[object] = [collection_path.strip("/")]
        if order_by:
            direction = "DESC" if descending else "ASC"
            sql += f" ORDER BY json_extract(data, ?) {direction}, seq"
            params.append(_json_path(order_by))
        else:
            sql += " ORDER BY seq"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        try:
            with self._connect() as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"query {collection_path} failed: {exc}") from exc
        return [Document(id=row["id"], data=json.loads(row["data"])) for row in rows]

    def add(self, collection_path: str, record: dict[str, Any]) -> str:
        """Insert a document with a generated id."""
        doc_id = uuid.uuid4().hex[:20]
        created_at = datetime.now().isoformat(timespec="seconds")
        try:
            payload = _dumps(record)
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO documents(id, collection, data, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (doc_id, collection_path.strip("/"), payload, created_at),
                )
                conn.commit()
        except (sqlite3.Error, TypeError, ValueError) as exc:
            raise StoreError(f"add to {collection_path} failed: {exc}") from exc
        return doc_id

    def set_document(self, collection_path: str, doc_id: str, record: dict[str, Any]) -> None:
        """Create or replace a document with a known id."""
        created_at = datetime.now().isoformat(timespec="seconds")
        try:
            payload = _dumps(record)
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO documents(id, collection, data, created_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET data=excluded.data
                    """,
                    (doc_id, collection_path.strip("/"), payload, created_at),
                )
                conn.commit()
        except (sqlite3.Error, TypeError, ValueError) as exc:
            raise StoreError(f"set {collection_path}/{doc_id} failed: {exc}") from exc

    def load_config(self) -> AppConfig:
        """Devuelve configuracion guardada o defaults."""
        defaults = {
            "admin_emails": json.dumps([DEFAULT_ADMIN_EMAIL]),
            "fetch_limit": "200",
            "window_days": "7",
            "export_dir": "",
        }
        with self._connect() as conn:
            rows = conn.execute("SELECT key, value FROM app_config").fetchall()
        values = {row["key"]: row["value"] for row in rows}
        merged = {**defaults, **values}
        return AppConfig(
            admin_emails=_parse_json_list(merged["admin_emails"]),
            fetch_limit=_parse_int(merged["fetch_limit"], 200),
            window_days=_parse_int(merged["window_days"], 7),
            export_dir=merged["export_dir"],
        )

    def save_config(self, config: AppConfig) -> None:
        """Guarda la configuracion en tabla key/value."""
        payload = {
            "admin_emails": json.dumps(config.admin_emails),
            "fetch_limit": str(config.fetch_limit),
            "window_days": str(config.window_days),
            "export_dir": config.export_dir,
        }
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO app_config(key, value) VALUES(?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                payload.items(),
            )
            conn.commit()


class FirestoreStore(DocumentStore):
    """Cloud Firestore adapter.

    ``client`` defaults to ``google.cloud.firestore.Client()``; any object
    exposing ``collection(path)`` with ``order_by``/``limit``/``stream``/``add``
    works, which keeps the adapter testable without the SDK installed.
    """

    def __init__(self, client: Any | None = None) -> None:
        if client is None:
            from google.cloud import firestore

            client = firestore.Client()
        self._client = client

    def query(
        self,
        collection_path: str,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        """Run a collection query and materialize the snapshots."""
        try:
            q = self._client.collection(collection_path)
            if order_by:
                q = q.order_by(order_by, direction="DESCENDING" if descending else "ASCENDING")
            if limit is not None:
                q = q.limit(limit)
            return [Document(id=snap.id, data=snap.to_dict() or {}) for snap in q.stream()]
        except Exception as exc:
            logger.debug("Firestore query failed: {}", exc)
            raise StoreError(f"query {collection_path} failed: {exc}") from exc

    def add(self, collection_path: str, record: dict[str, Any]) -> str:
        """Add a document and return the server-assigned id."""
        try:
            _, ref = self._client.collection(collection_path).add(record)
        except Exception as exc:
            logger.debug("Firestore write failed: {}", exc)
            raise StoreError(f"add to {collection_path} failed: {exc}") from exc
        return str(ref.id)

    def set_document(self, collection_path: str, doc_id: str, record: dict[str, Any]) -> None:
        """Create or replace a document with a known id."""
        try:
            self._client.collection(collection_path).document(doc_id).set(record)
        except Exception as exc:
            logger.debug("Firestore write failed: {}", exc)
            raise StoreError(f"set {collection_path}/{doc_id} failed: {exc}") from exc


def _json_path(field_name: str) -> str:
    escaped = field_name.replace('"', '\\"')
    return f'$."{escaped}"'


def _dumps(record: dict[str, Any]) -> str:
    return json.dumps(record, ensure_ascii=False, default=_encode_value)


def _encode_value(value: object) -> object:
    if isinstance(value, datetime | date):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _parse_json_list(raw: str) -> list[str]:
    try:
        parsed: Any = json.loads(raw)
    except json.JSONDecodeError:
        return [DEFAULT_ADMIN_EMAIL]
    if not isinstance(parsed, list):
        return [DEFAULT_ADMIN_EMAIL]
    return [str(item) for item in parsed]


def _parse_int(raw: str, default: int) -> int:
    try:
        return int(raw)
    except ValueError:
        return default
