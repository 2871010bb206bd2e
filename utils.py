"""
utils.py
Validation, dates, status classification, dashboard aggregates, exports.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
import pandas as pd

import config
from models import MEMBER_STATUS_LABELS

BR_DATE_FORMAT = "%d/%m/%Y"
EXCEL_EPOCH = date(1899, 12, 30)


def today_iso() -> str:
    return date.today().isoformat()


def parse_iso(d: str) -> date:
    return date.fromisoformat(d)


def br_to_iso(value: str | None) -> str | None:
    """
    "25/10/2023" -> "2023-10-25". Blank -> None. Raises ValueError on anything else.
    """
    if value is None or not str(value).strip():
        return None
    return datetime.strptime(str(value).strip(), BR_DATE_FORMAT).date().isoformat()


def iso_to_br(value: str | None) -> str:
    if not value:
        return "-"
    return parse_iso(value[:10]).strftime(BR_DATE_FORMAT)


def excel_serial_to_iso(serial: float) -> str:
    return (EXCEL_EPOCH + timedelta(days=round(float(serial)))).isoformat()


def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    # last day of target month
    if m == 12:
        next_month = date(y + 1, 1, 1)
    else:
        next_month = date(y, m + 1, 1)
    last_day = next_month - timedelta(days=1)
    day = min(start.day, last_day.day)
    return date(y, m, day)


def expiration_date(last_aso_iso: str | None) -> str | None:
    if not last_aso_iso:
        return None
    return add_months(parse_iso(last_aso_iso), config.ASO_VALIDITY_MONTHS).isoformat()


def days_until(expiration_iso: str | None, today: date | None = None) -> int | None:
    if not expiration_iso:
        return None
    return (parse_iso(expiration_iso) - (today or date.today())).days


def status_for_days(days: int | None) -> str:
    """
    Classify the days left before expiration. No date at all counts as expired.
    """
    if days is None:
        return "Expired"
    for limit, status in config.STATUS_THRESHOLDS:
        if days < limit:
            return status
    return "Valid"


def normalize_cpf(value) -> str:
    """Digits only, left-padded with zeros. Empty input -> ''."""
    if value is None:
        return ""
    if isinstance(value, float):
        if value != value:  # NaN
            return ""
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    # "1234567890.0": numeric cell read back as text
    if re.fullmatch(r"\d+\.0", text):
        text = text[:-2]
    digits = re.sub(r"\D", "", text)
    if not digits:
        return ""
    return digits.zfill(config.CPF_LENGTH)


def validate_member_inputs(nome: str, email: str, cargo: str, last_aso: str) -> list[str]:
    errors: list[str] = []
    if not nome.strip() or not email.strip() or not cargo.strip():
        errors.append("Por favor, preencha os campos obrigatórios (Nome, Email, Cargo).")
    if email.strip() and "@" not in email:
        errors.append("Email inválido.")
    try:
        br_to_iso(last_aso)
    except ValueError:
        errors.append("Data do último ASO deve estar no formato DD/MM/AAAA.")
    return errors


def validate_new_password(new: str, confirm: str) -> list[str]:
    errors: list[str] = []
    if not new or not confirm:
        return ["Por favor, preencha todos os campos."]
    if new != confirm:
        errors.append("As senhas não coincidem.")
    if len(new) < 8 or not re.search(r"[A-Za-z]", new) or not re.search(r"\d", new):
        errors.append("A senha deve conter no mínimo 8 caracteres, incluindo letras e números.")
    return errors


# ---------- Dashboard aggregates ----------

def _year(iso: str | None) -> int | None:
    return parse_iso(iso).year if iso else None


def available_years(members, today: date | None = None) -> list[int]:
    years = {(today or date.today()).year}
    for m in members:
        for y in (_year(m.last_aso_date), _year(m.expiration_date)):
            if y:
                years.add(y)
    return sorted(years)


def members_for_year(members, year: int) -> list:
    # exam done in the year OR expiring in the year
    return [m for m in members if year in (_year(m.last_aso_date), _year(m.expiration_date))]


def monthly_exam_counts(members, year: int) -> list[int]:
    stats = [0] * 12
    for m in members:
        if m.last_aso_date and _year(m.last_aso_date) == year:
            stats[parse_iso(m.last_aso_date).month - 1] += 1
    return stats


def expiring_in_year(members, year: int) -> int:
    return sum(1 for m in members if _year(m.expiration_date) == year)


def status_counts(members) -> dict[str, int]:
    counts = {s: 0 for _, s in config.STATUS_THRESHOLDS}
    counts["Valid"] = 0
    for m in members:
        counts[m.status] = counts.get(m.status, 0) + 1
    return counts


def members_dataframe(members) -> pd.DataFrame:
    cols = ["ID", "Nome", "Email", "Cargo", "Unidade", "CPF", "Último ASO", "Vencimento", "Dias", "Status"]
    if not members:
        return pd.DataFrame(columns=cols)
    return pd.DataFrame(
        [
            {
                "ID": m.id,
                "Nome": m.nome,
                "Email": m.email or "",
                "Cargo": m.cargo or "",
                "Unidade": m.unidade or "",
                "CPF": m.cpf or "",
                "Último ASO": iso_to_br(m.last_aso_date),
                "Vencimento": iso_to_br(m.expiration_date),
                "Dias": m.days_remaining,
                "Status": MEMBER_STATUS_LABELS.get(m.status, m.status),
            }
            for m in members
        ],
        columns=cols,
    )


def members_to_csv_bytes(members) -> bytes:
    df = members_dataframe(members)
    return df.to_csv(index=False).encode("utf-8")
