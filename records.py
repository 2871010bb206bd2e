"""
records.py
Data access for members (integrantes), ASO launches and convocations.
Every write is followed by an audit entry.
"""

from __future__ import annotations

import logging
from datetime import date

import audit
import config
import db
import mailer
import utils
from models import AsoRecord, Convocation, Member

logger = logging.getLogger("easyaso.records")


# ---------- Members ----------

def _to_member(row, today: date | None = None) -> Member:
    exp = utils.expiration_date(row["data_ultimo_aso"])
    days = utils.days_until(exp, today)
    return Member(
        id=row["id"],
        nome=row["nome"],
        email=row["email"],
        cargo=row["cargo"],
        unidade=row["unidade"],
        cpf=row["cpf"],
        last_aso_date=row["data_ultimo_aso"],
        expiration_date=exp,
        days_remaining=days,
        status=utils.status_for_days(days),
    )


def fetch_members(today: date | None = None) -> list[Member]:
    return [_to_member(r, today) for r in db.select("integrantes", order_by="nome")]


def get_member(member_id: int, today: date | None = None) -> Member | None:
    rows = db.select("integrantes", {"id": member_id})
    return _to_member(rows[0], today) if rows else None


def filter_members(members: list[Member], search: str = "", status: str = "All") -> list[Member]:
    term = search.strip().lower()
    out = []
    for m in members:
        if term and term not in m.nome.lower() and term not in (m.email or "").lower():
            continue
        if status != "All" and m.status != status:
            continue
        out.append(m)
    return out


def _member_values(nome: str, email: str, cargo: str, unidade: str, cpf: str, last_aso_br: str) -> dict:
    errors = utils.validate_member_inputs(nome, email, cargo, last_aso_br)
    if errors:
        raise ValueError(" ".join(errors))
    return {
        "nome": nome.strip(),
        "email": email.strip(),
        "cargo": cargo.strip(),
        "unidade": unidade.strip() or config.DEFAULT_UNIT,
        "cpf": utils.normalize_cpf(cpf) or None,
        "data_ultimo_aso": utils.br_to_iso(last_aso_br),
    }


def create_member(actor_id, nome: str, email: str, cargo: str, unidade: str = "", cpf: str = "", last_aso_br: str = "") -> int:
    values = _member_values(nome, email, cargo, unidade, cpf, last_aso_br)
    member_id = db.insert("integrantes", values)
    logger.info("Member %s created (id=%s)", values["nome"], member_id)
    audit.log_action(actor_id, "member_create", values["nome"], f"Cargo: {values['cargo']}")
    return member_id


def update_member(actor_id, member_id: int, nome: str, email: str, cargo: str, unidade: str = "", cpf: str = "", last_aso_br: str = "") -> None:
    values = _member_values(nome, email, cargo, unidade, cpf, last_aso_br)
    db.update("integrantes", values, {"id": member_id})
    logger.info("Member %s updated", member_id)
    audit.log_action(actor_id, "member_update", values["nome"])


def delete_member(actor_id, member_id: int) -> None:
    member = get_member(member_id)
    db.delete("integrantes", {"id": member_id})
    logger.info("Member %s deleted", member_id)
    audit.log_action(actor_id, "member_delete", member.nome if member else f"ID {member_id}")


# ---------- ASO launches ----------

def launch_aso(actor_id, member_id: int, aso_date_iso: str, aso_type: str, notes: str = "") -> None:
    if not member_id or not aso_date_iso or not aso_type:
        raise ValueError("Por favor, preencha todos os campos.")
    member = get_member(member_id)
    if member is None:
        raise ValueError(f"Integrante {member_id} não encontrado.")
    utils.parse_iso(aso_date_iso)

    with db.get_conn() as conn:
        conn.execute(
            "UPDATE integrantes SET data_ultimo_aso = ? WHERE id = ?",
            (aso_date_iso, member_id),
        )
        conn.execute(
            "INSERT INTO asos(integrante_id, data, tipo, observacoes, actor_id, created_at) VALUES(?,?,?,?,?,?)",
            (member_id, aso_date_iso, aso_type, notes.strip() or None, actor_id, db.now_iso()),
        )

    audit.log_action(
        actor_id,
        "aso_launch",
        f"Integrante: {member.nome}",
        f"Lançamento de ASO {aso_type} em {utils.iso_to_br(aso_date_iso)}. Obs: {notes.strip()}",
    )


def member_history(member_id: int) -> list[AsoRecord]:
    rows = db.select("asos", {"integrante_id": member_id}, order_by="data DESC")
    return [
        AsoRecord(id=r["id"], member_id=r["integrante_id"], date=r["data"], aso_type=r["tipo"], notes=r["observacoes"])
        for r in rows
    ]


# ---------- Convocations ----------

def fetch_convocations(search: str = "") -> list[Convocation]:
    rows = db.fetch_all(
        """
        SELECT c.id, c.integrante_id, i.nome AS member_name, c.tipo_aso, c.data, c.status
        FROM convocacoes c
        JOIN integrantes i ON i.id = c.integrante_id
        ORDER BY c.data DESC, c.id DESC
        """
    )
    items = [
        Convocation(
            id=r["id"],
            member_id=r["integrante_id"],
            member_name=r["member_name"],
            aso_type=r["tipo_aso"],
            date=r["data"],
            status=r["status"],
        )
        for r in rows
    ]
    term = search.strip().lower()
    if not term:
        return items
    return [c for c in items if term in c.member_name.lower() or term in c.aso_type.lower()]


def create_convocation(
    actor_id,
    aso_type: str,
    member_id: int | None = None,
    new_member_name: str = "",
    email: str = "",
    conv_date_iso: str | None = None,
    send_email: bool = True,
) -> int:
    """
    Convene an existing member, or register a new one by name first.
    The e-mail notice is optional; the convocation starts as Pending.
    A failed send rolls back both the new member and the convocation.
    """
    email = email.strip()
    if send_email and not email:
        raise ValueError("Informe o email para envio da convocação.")

    new_member = member_id is None
    if new_member:
        nome = new_member_name.strip()
        if not nome:
            raise ValueError("Selecione um integrante ou informe o nome do novo integrante.")
    else:
        member = get_member(member_id)
        if member is None:
            raise ValueError(f"Integrante {member_id} não encontrado.")
        nome = member.nome

    conv_date_iso = conv_date_iso or utils.today_iso()
    with db.get_conn() as conn:
        if new_member:
            member_id = conn.execute(
                "INSERT INTO integrantes(nome, email, unidade) VALUES(?,?,?)",
                (nome, email or None, config.DEFAULT_UNIT),
            ).lastrowid
        conv_id = conn.execute(
            """
            INSERT INTO convocacoes(integrante_id, tipo_aso, data, status, email, created_at)
            VALUES(?,?,?,?,?,?)
            """,
            (member_id, aso_type, conv_date_iso, "Pending", email or None, db.now_iso()),
        ).lastrowid

        if send_email:
            mailer.send_email(
                email,
                f"Convocação para ASO {aso_type}",
                f"Olá {nome},\n\nVocê foi convocado(a) para realizar o exame {aso_type} "
                f"a partir de {utils.iso_to_br(conv_date_iso)}.\n",
            )

    if new_member:
        audit.log_action(actor_id, "member_create", nome, "Cadastrado via convocação")
    audit.log_action(actor_id, "convocation_create", nome, f"Tipo: {aso_type}")
    return conv_id
