from __future__ import annotations

from datetime import datetime, timezone

import audit
import db
from models import AuditLogEntry


def entry(action, actor="Jorge M.", target="Ricardo Almeida"):
    return AuditLogEntry(id=1, actor_name=actor, action=action, target=target, details=None, timestamp="")


def test_log_action_without_actor_is_skipped(store):
    audit.log_action(None, "member_create", "Ana")
    assert audit.count_entries() == 0


def test_log_action_and_feed(store, admin):
    audit.log_action(admin.id, "convocation_create", "Ricardo Almeida", "Tipo: Periódico")
    audit.log_action(admin.id, "member_update", "Carlos Lima")

    feed = audit.fetch_feed()
    assert [e.action for e in feed] == ["member_update", "convocation_create"]
    assert feed[1].details == "Tipo: Periódico"
    assert feed[0].actor_name == admin.nome


def test_feed_limit_and_unknown_actor(store, admin):
    for i in range(5):
        audit.log_action(admin.id, "member_create", f"Pessoa {i}")
    db.insert("audit_logs", {"actor_id": 999, "action": "custom", "target": "X", "timestamp": db.now_iso()})

    feed = audit.fetch_feed(limit=3)
    assert len(feed) == 3
    assert feed[0].actor_name == audit.UNKNOWN_ACTOR
    assert audit.count_entries() == 6


def test_log_action_failure_does_not_raise(store, admin, monkeypatch):
    monkeypatch.setattr(db, "DB_FILE", "/nonexistent-dir/easyaso.db")
    audit.log_action(admin.id, "member_create", "Ana")


def test_entry_kind():
    assert audit.entry_kind("member_create") == "create"
    assert audit.entry_kind("aso_launch") == "create"
    assert audit.entry_kind("member_update") == "edit"
    assert audit.entry_kind("member_import") == "edit"
    assert audit.entry_kind("member_delete") == "delete"
    assert audit.entry_kind("Remove attachment") == "delete"
    assert audit.entry_kind("expiration_alert") == "system"


def test_describe_uses_lookup_table():
    assert audit.describe(entry("convocation_create")) == "Jorge M. criou uma nova convocação para Ricardo Almeida"
    assert audit.describe(entry("member_update", "Ana Silva", "Carlos Lima")) == "Ana Silva atualizou o cadastro de Carlos Lima"
    # unknown keyword falls back to the keyword itself
    assert audit.describe(entry("custom_action")) == "Jorge M. custom_action Ricardo Almeida"


def test_relative_time():
    now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert audit.relative_time("2024-06-01T11:30:00+00:00", now) == "Agora mesmo"
    assert audit.relative_time("2024-06-01T09:00:00+00:00", now) == "Há 3h"
    assert audit.relative_time("2024-05-30T08:15:00+00:00", now) == "30/05/2024 08:15"
    assert audit.relative_time("2024-06-01T10:00:00", now) == "Há 2h"
