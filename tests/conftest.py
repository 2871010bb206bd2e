from __future__ import annotations

import pytest

import auth
import config
import db


@pytest.fixture(scope="session")
def admin_hash() -> str:
    return auth.hash_password(config.DEFAULT_ADMIN["password"])


@pytest.fixture
def store(tmp_path, monkeypatch, admin_hash):
    """Fresh SQLite file per test, initialized with the default admin."""
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "easyaso-test.db")
    monkeypatch.setitem(config.SMTP_CONFIG, "host", "")
    db.init_db(admin_hash)
    return db


@pytest.fixture
def admin(store):
    row = auth.get_user_by_email(config.DEFAULT_ADMIN["email"])
    return auth.get_user(row["id"])
