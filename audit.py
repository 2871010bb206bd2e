"""
audit.py
Append-only audit log (write side) and the Notifications feed (read side).
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone

import config
import db
from models import ACTION_LABELS, AuditLogEntry

logger = logging.getLogger("easyaso.audit")

UNKNOWN_ACTOR = "Usuário desconhecido"


def log_action(actor_id: int | None, action: str, target: str, details: str | None = None) -> None:
    """
    Record an action. Audit failures are logged and never abort the caller's action.
    """
    if actor_id is None:
        logger.warning("No authenticated user found for logging '%s'", action)
        return
    try:
        db.insert(
            "audit_logs",
            {
                "actor_id": actor_id,
                "action": action,
                "target": target,
                "details": details,
                "timestamp": db.now_iso(),
            },
        )
    except sqlite3.Error:
        logger.exception("Error logging action '%s' on %s", action, target)


def fetch_feed(limit: int = config.FEED_PAGE_SIZE) -> list[AuditLogEntry]:
    rows = db.fetch_all(
        """
        SELECT l.id, l.action, l.target, l.details, l.timestamp, u.nome AS actor_name
        FROM audit_logs l
        LEFT JOIN usuarios u ON u.id = l.actor_id
        ORDER BY l.timestamp DESC, l.id DESC
        LIMIT ?
        """,
        (int(limit),),
    )
    return [
        AuditLogEntry(
            id=r["id"],
            actor_name=r["actor_name"] or UNKNOWN_ACTOR,
            action=r["action"],
            target=r["target"],
            details=r["details"],
            timestamp=r["timestamp"],
        )
        for r in rows
    ]


def count_entries() -> int:
    return db.fetch_one("SELECT COUNT(*) AS c FROM audit_logs")["c"]


def entry_kind(action: str) -> str:
    """create / edit / delete / system, by keyword."""
    a = action.lower()
    if any(k in a for k in ("create", "add", "insert", "launch", "invite")):
        return "create"
    if any(k in a for k in ("update", "edit", "import", "change")):
        return "edit"
    if any(k in a for k in ("delete", "remove")):
        return "delete"
    return "system"


def describe(entry: AuditLogEntry) -> str:
    phrase = ACTION_LABELS.get(entry.action, entry.action)
    return f"{entry.actor_name} {phrase} {entry.target}"


def relative_time(timestamp: str, now: datetime | None = None) -> str:
    ts = datetime.fromisoformat(timestamp)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    hours = int((now - ts).total_seconds() // 3600)
    if hours == 0:
        return "Agora mesmo"
    if 0 < hours < 24:
        return f"Há {hours}h"
    return ts.strftime("%d/%m/%Y %H:%M")
