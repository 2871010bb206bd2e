"""
auth.py
Authentication utilities (bcrypt hashing, verify, sign in, change password, invites).
"""

from __future__ import annotations

import logging
import secrets

import bcrypt

import audit
import db
import mailer
from models import User

logger = logging.getLogger("easyaso.auth")


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    pw = password.encode("utf-8")
    if len(pw) > 72:
        pw = pw[:72]
    return pw


def hash_password(password: str) -> str:
    """
    Returns a bcrypt hash as a UTF-8 string (stored in SQLite).
    """
    secret = _to_bcrypt_secret(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(secret, salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against stored bcrypt hash.
    """
    secret = _to_bcrypt_secret(password)
    stored = password_hash.encode("utf-8")
    return bcrypt.checkpw(secret, stored)


def _to_user(row) -> User:
    return User(
        id=row["id"],
        nome=row["nome"],
        email=row["email"],
        role=row["role"],
        must_change_password=bool(row["trocar_senha"]),
    )


def get_user_by_email(email: str):
    return db.fetch_one("SELECT * FROM usuarios WHERE lower(email) = lower(?)", (email.strip(),))


def get_user(user_id: int) -> User | None:
    """Session check: None when the account no longer exists."""
    row = db.fetch_one("SELECT * FROM usuarios WHERE id = ?", (user_id,))
    return _to_user(row) if row else None


def sign_in(email: str, password: str) -> User | None:
    row = get_user_by_email(email)
    if not row or not verify_password(password, row["password_hash"]):
        logger.info("Failed sign-in for %s", email)
        return None
    logger.info("User %s signed in", row["email"])
    return _to_user(row)


def change_password(user_id: int, new_password: str) -> None:
    db.update(
        "usuarios",
        {"password_hash": hash_password(new_password), "trocar_senha": 0},
        {"id": user_id},
    )


def list_users() -> list[User]:
    return [_to_user(r) for r in db.select("usuarios", order_by="nome")]


def invite_user(email: str, name: str = "", actor_id: int | None = None) -> str:
    """
    Create an account with a temporary password and send the invitation.
    Returns the temporary password (shown to the admin when mail is disabled).
    """
    email = email.strip()
    if not email or "@" not in email:
        raise ValueError("Email é obrigatório.")
    if get_user_by_email(email):
        raise ValueError(f"Já existe um usuário com o email {email}.")

    temp_password = secrets.token_urlsafe(9)
    nome = name.strip() or email.split("@")[0]
    # a failed send rolls the new account back
    with db.get_conn() as conn:
        conn.execute(
            """
            INSERT INTO usuarios(nome, email, role, password_hash, trocar_senha, created_at)
            VALUES(?,?,?,?,?,?)
            """,
            (nome, email, "user", hash_password(temp_password), 1, db.now_iso()),
        )
        mailer.send_email(
            email,
            "Convite de acesso ao EasyASO",
            f"Olá {nome},\n\nVocê foi convidado para o EasyASO.\n"
            f"Login: {email}\nSenha temporária: {temp_password}\n\n"
            "Você deverá alterar a senha no primeiro acesso.",
        )
    audit.log_action(actor_id, "user_invite", nome, f"Email: {email}")
    return temp_password
