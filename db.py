"""
db.py
SQLite helpers + initialization (creates DB/tables, inserts default admin, etc.)
and the generic select/insert/update/delete/upsert calls used by every screen.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone

import config

logger = logging.getLogger("easyaso.db")

DB_FILE = config.DB_FILE

# Known tables and their writable columns
TABLES = {
    "usuarios": ("id", "nome", "email", "role", "password_hash", "trocar_senha", "created_at"),
    "integrantes": ("id", "nome", "email", "cargo", "unidade", "cpf", "data_ultimo_aso"),
    "asos": ("id", "integrante_id", "data", "tipo", "observacoes", "actor_id", "created_at"),
    "convocacoes": ("id", "integrante_id", "tipo_aso", "data", "status", "email", "created_at"),
    "audit_logs": ("id", "actor_id", "action", "target", "details", "timestamp"),
}


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@contextmanager
def get_conn():
    conn = sqlite3.connect(DB_FILE, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def executemany(sql: str, seq_of_params: list[tuple]) -> None:
    with get_conn() as conn:
        conn.executemany(sql, seq_of_params)


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


# ---------- Generic table access ----------

def _check(table: str, columns) -> None:
    if table not in TABLES:
        raise ValueError(f"Unknown table: {table}")
    unknown = [c for c in columns if c not in TABLES[table]]
    if unknown:
        raise ValueError(f"Unknown column(s) for {table}: {', '.join(unknown)}")


def _where(where: dict | None) -> tuple[str, list]:
    if not where:
        return "", []
    clause = " AND ".join(f"{col} = ?" for col in where)
    return f" WHERE {clause}", list(where.values())


def _order(table: str, order_by: str) -> str:
    """'col' or 'col ASC|DESC' only."""
    parts = order_by.split()
    if len(parts) > 2 or (len(parts) == 2 and parts[1].upper() not in ("ASC", "DESC")):
        raise ValueError(f"Invalid order_by: {order_by}")
    _check(table, parts[:1])
    return " ".join(parts)


def select(table: str, where: dict | None = None, order_by: str | None = None, limit: int | None = None) -> list[sqlite3.Row]:
    _check(table, list(where or {}))
    if order_by:
        order_by = _order(table, order_by)
    clause, params = _where(where)
    sql = f"SELECT * FROM {table}{clause}"
    if order_by:
        sql += f" ORDER BY {order_by}"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(int(limit))
    return fetch_all(sql, tuple(params))


def insert(table: str, values: dict) -> int:
    _check(table, values)
    cols = ", ".join(values)
    marks = ", ".join("?" for _ in values)
    return execute(f"INSERT INTO {table}({cols}) VALUES({marks})", tuple(values.values()))


def update(table: str, values: dict, where: dict) -> None:
    if not where:
        raise ValueError("update() requires a where clause")
    _check(table, list(values) + list(where))
    assignments = ", ".join(f"{col} = ?" for col in values)
    clause, params = _where(where)
    execute(f"UPDATE {table} SET {assignments}{clause}", tuple(values.values()) + tuple(params))


def delete(table: str, where: dict) -> None:
    if not where:
        raise ValueError("delete() requires a where clause")
    _check(table, where)
    clause, params = _where(where)
    execute(f"DELETE FROM {table}{clause}", tuple(params))


def upsert(table: str, rows: list[dict], conflict: str) -> int:
    """
    Insert rows, updating the existing row when `conflict` (a unique column) matches.
    All rows must share the same keys. Returns the number of rows sent.
    """
    if not rows:
        return 0
    cols = list(rows[0])
    _check(table, cols + [conflict])
    updates = ", ".join(f"{c}=excluded.{c}" for c in cols if c != conflict)
    sql = (
        f"INSERT INTO {table}({', '.join(cols)}) VALUES({', '.join('?' for _ in cols)}) "
        f"ON CONFLICT({conflict}) DO UPDATE SET {updates}"
    )
    executemany(sql, [tuple(r[c] for c in cols) for r in rows])
    return len(rows)


# ---------- Schema ----------

def _create_tables() -> None:
    execute(
        """
        CREATE TABLE IF NOT EXISTS usuarios (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            nome TEXT NOT NULL,
            email TEXT NOT NULL UNIQUE,
            role TEXT NOT NULL DEFAULT 'user' CHECK(role IN ('admin','user')),
            password_hash TEXT NOT NULL,
            trocar_senha INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        )
        """
    )

    # email is optional: spreadsheet imports do not carry it
    execute(
        """
        CREATE TABLE IF NOT EXISTS integrantes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            nome TEXT NOT NULL,
            email TEXT,
            cargo TEXT,
            unidade TEXT,
            cpf TEXT UNIQUE,
            data_ultimo_aso TEXT
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS asos (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            integrante_id INTEGER NOT NULL,
            data TEXT NOT NULL,
            tipo TEXT NOT NULL,
            observacoes TEXT,
            actor_id INTEGER,
            created_at TEXT NOT NULL,
            FOREIGN KEY(integrante_id) REFERENCES integrantes(id) ON DELETE CASCADE
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS convocacoes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            integrante_id INTEGER NOT NULL,
            tipo_aso TEXT NOT NULL,
            data TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'Pending'
                CHECK(status IN ('Pending','Confirmed','Cancelled','Scheduled')),
            email TEXT,
            created_at TEXT NOT NULL,
            FOREIGN KEY(integrante_id) REFERENCES integrantes(id) ON DELETE CASCADE
        )
        """
    )

    # Append-only; actor kept even if the user is later removed
    execute(
        """
        CREATE TABLE IF NOT EXISTS audit_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            actor_id INTEGER,
            action TEXT NOT NULL,
            target TEXT NOT NULL,
            details TEXT,
            timestamp TEXT NOT NULL
        )
        """
    )


def init_db(default_admin_hash: str) -> None:
    """
    Initialize the database.
    - Create tables
    - Insert the default admin if no user exists
    - Force password change on that admin's first login
    """
    _create_tables()

    user = fetch_one("SELECT id FROM usuarios LIMIT 1")
    if not user:
        admin = config.DEFAULT_ADMIN
        insert(
            "usuarios",
            {
                "nome": admin["nome"],
                "email": admin["email"],
                "role": "admin",
                "password_hash": default_admin_hash,
                "trocar_senha": 1,
                "created_at": now_iso(),
            },
        )
        logger.info("Default admin %s created", admin["email"])
