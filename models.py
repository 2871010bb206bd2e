"""
models.py
Lightweight domain helpers (labels, lookup tables, dataclasses).
"""

from __future__ import annotations
from dataclasses import dataclass

# Member status -> label shown in tables/badges
MEMBER_STATUS_LABELS = {
    "Valid": "Válido",
    "Near": "Próximo",
    "Summon": "Convocar",
    "Urgent": "Urgente",
    "Expired": "Vencido",
}

CONVOCATION_STATUS_LABELS = {
    "Pending": "Pendente",
    "Confirmed": "Confirmado",
    "Cancelled": "Cancelado",
    "Scheduled": "Agendado",
}

ASO_TYPES = [
    "Admissional",
    "Periódico",
    "Demissional",
    "Retorno ao Trabalho",
    "Mudança de Risco",
]

ROLE_LABELS = {
    "admin": "Administrador",
    "user": "Usuário",
}

# Audit action keyword -> phrase used in "<actor> <phrase> <target>"
ACTION_LABELS = {
    "member_create": "cadastrou o integrante",
    "member_update": "atualizou o cadastro de",
    "member_delete": "removeu o integrante",
    "member_import": "importou a planilha de integrantes",
    "aso_launch": "lançou um ASO para",
    "convocation_create": "criou uma nova convocação para",
    "user_invite": "convidou o usuário",
    "password_change": "alterou a senha de",
}


@dataclass(frozen=True)
class User:
    id: int
    nome: str
    email: str
    role: str  # 'admin' or 'user'
    must_change_password: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class Member:
    id: int
    nome: str
    email: str | None
    cargo: str | None
    unidade: str | None
    cpf: str | None
    last_aso_date: str | None  # ISO
    expiration_date: str | None  # ISO
    days_remaining: int | None
    status: str

    @property
    def status_label(self) -> str:
        return MEMBER_STATUS_LABELS.get(self.status, self.status)

    @property
    def initials(self) -> str:
        parts = [p for p in self.nome.split() if p]
        return "".join(p[0] for p in parts[:2]).upper()


@dataclass(frozen=True)
class AsoRecord:
    id: int
    member_id: int
    date: str
    aso_type: str
    notes: str | None


@dataclass(frozen=True)
class Convocation:
    id: int
    member_id: int
    member_name: str
    aso_type: str
    date: str
    status: str  # Pending/Confirmed/Cancelled/Scheduled

    @property
    def status_label(self) -> str:
        return CONVOCATION_STATUS_LABELS.get(self.status, self.status)


@dataclass(frozen=True)
class AuditLogEntry:
    id: int
    actor_name: str
    action: str
    target: str
    details: str | None
    timestamp: str
