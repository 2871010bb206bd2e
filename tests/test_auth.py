from __future__ import annotations

import smtplib

import pytest

import audit
import auth
import config
import mailer

ADMIN_PASSWORD = config.DEFAULT_ADMIN["password"]


def test_default_admin_must_change_password(store, admin):
    assert admin.is_admin
    assert admin.email == config.DEFAULT_ADMIN["email"]
    assert admin.must_change_password


def test_sign_in(store):
    user = auth.sign_in("ADMIN@easyaso.com", ADMIN_PASSWORD)
    assert user is not None
    assert user.role == "admin"
    assert auth.sign_in(config.DEFAULT_ADMIN["email"], "wrong") is None
    assert auth.sign_in("nobody@easyaso.com", ADMIN_PASSWORD) is None


def test_change_password_clears_flag(store, admin):
    auth.change_password(admin.id, "novaSenha123")

    user = auth.sign_in(admin.email, "novaSenha123")
    assert user is not None
    assert not user.must_change_password
    assert auth.sign_in(admin.email, ADMIN_PASSWORD) is None


def test_long_password_is_truncated_consistently():
    hashed = auth.hash_password("x" * 100)
    assert auth.verify_password("x" * 72, hashed)
    assert auth.verify_password("x" * 100, hashed)


def test_invite_user_creates_account(store, admin, monkeypatch):
    sent = []
    monkeypatch.setattr(mailer, "send_email", lambda to, subject, body: sent.append((to, body)) or True)

    temp = auth.invite_user("colaborador@empresa.com", "Colaborador", actor_id=admin.id)

    user = auth.sign_in("colaborador@empresa.com", temp)
    assert user is not None
    assert user.role == "user"
    assert user.nome == "Colaborador"
    assert user.must_change_password
    assert sent[0][0] == "colaborador@empresa.com"
    assert temp in sent[0][1]
    assert [u.email for u in auth.list_users()] == [config.DEFAULT_ADMIN["email"], "colaborador@empresa.com"]

    entry = audit.fetch_feed()[0]
    assert entry.action == "user_invite"
    assert entry.actor_name == admin.nome


def test_invite_user_rejects_missing_or_duplicate_email(store, admin):
    with pytest.raises(ValueError):
        auth.invite_user("", "Sem Email", actor_id=admin.id)
    with pytest.raises(ValueError):
        auth.invite_user(config.DEFAULT_ADMIN["email"].upper(), actor_id=admin.id)


def test_get_user_returns_none_for_removed_account(store, admin):
    temp = auth.invite_user("temp@empresa.com", actor_id=admin.id)
    user = auth.sign_in("temp@empresa.com", temp)
    store.delete("usuarios", {"id": user.id})
    assert auth.get_user(user.id) is None


def test_invite_user_mail_failure_can_be_retried(store, admin, monkeypatch):
    def refuse(to, subject, body):
        raise smtplib.SMTPException("relay down")

    monkeypatch.setattr(mailer, "send_email", refuse)
    with pytest.raises(smtplib.SMTPException):
        auth.invite_user("colaborador@empresa.com", "Colaborador", actor_id=admin.id)

    assert [u.email for u in auth.list_users()] == [config.DEFAULT_ADMIN["email"]]
    assert audit.count_entries() == 0

    monkeypatch.setattr(mailer, "send_email", lambda to, subject, body: True)
    temp = auth.invite_user("colaborador@empresa.com", "Colaborador", actor_id=admin.id)
    assert auth.sign_in("colaborador@empresa.com", temp) is not None
