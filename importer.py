"""
importer.py
Spreadsheet import of members ("Atualizar Ativos"): read, normalize, check, upsert on CPF.
"""

from __future__ import annotations

import logging
import numbers
import zipfile
from collections import Counter
from datetime import date, datetime

import pandas as pd

import audit
import config
import db
import utils

logger = logging.getLogger("easyaso.importer")


class ImportValidationError(ValueError):
    """The spreadsheet cannot be imported as a whole."""


def normalize_date(value) -> str | None:
    """
    Spreadsheet cell -> ISO date. Accepts real dates, serial numbers,
    DD/MM/YYYY and YYYY-MM-DD strings.
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, numbers.Real):
        return utils.excel_serial_to_iso(value)
    text = str(value).strip()
    if not text:
        return None
    if "/" in text:
        return utils.br_to_iso(text)
    return utils.parse_iso(text[:10]).isoformat()


def _text(value) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value).strip()


def normalize_rows(df: pd.DataFrame) -> list[dict]:
    """
    Map spreadsheet rows to integrantes columns; rows without name or CPF are dropped.
    """
    cols = config.IMPORT_COLUMNS
    # a column missing from the file is left out, so the upsert keeps the stored value
    has_role = cols["role"] in df.columns
    has_unit = cols["unit"] in df.columns
    has_last_aso = cols["last_aso"] in df.columns
    rows = []
    for idx, raw in df.iterrows():
        nome = _text(raw.get(cols["name"]))
        cpf = utils.normalize_cpf(raw.get(cols["cpf"]))
        if not nome or not cpf:
            continue
        row = {"cpf": cpf, "nome": nome}
        if has_role:
            row["cargo"] = _text(raw[cols["role"]]) or None
        if has_unit:
            row["unidade"] = _text(raw[cols["unit"]]) or None
        if has_last_aso:
            try:
                row["data_ultimo_aso"] = normalize_date(raw[cols["last_aso"]])
            except ValueError as e:
                # spreadsheet line = index + 2 (header is line 1)
                raise ImportValidationError(f"Data inválida na linha {idx + 2}: {e}") from e
        rows.append(row)
    return rows


def find_duplicate_cpfs(rows: list[dict]) -> list[str]:
    counts = Counter(r["cpf"] for r in rows)
    return sorted(cpf for cpf, n in counts.items() if n > 1)


def read_spreadsheet(file) -> pd.DataFrame:
    # first sheet only; CPF read as text to keep leading zeros
    try:
        return pd.read_excel(file, sheet_name=0, dtype={config.IMPORT_COLUMNS["cpf"]: str})
    except (ValueError, zipfile.BadZipFile) as e:
        raise ImportValidationError(f"Erro ao processar o arquivo Excel: {e}") from e


def import_spreadsheet(file, actor_id=None, filename: str = "") -> int:
    """
    Import members from an .xlsx/.xls file. Returns the number of rows upserted.
    """
    df = read_spreadsheet(file)
    if df.empty:
        raise ImportValidationError("Arquivo vazio ou inválido.")

    rows = normalize_rows(df)
    if not rows:
        raise ImportValidationError(
            "Nenhum dado válido encontrado (Verifique se as colunas Nome e CPF existem)."
        )

    duplicates = find_duplicate_cpfs(rows)
    if duplicates:
        raise ImportValidationError(f"CPF duplicado na planilha: {', '.join(duplicates)}")

    logger.info("Importing %d member rows (%d read) from %s", len(rows), len(df), filename or "upload")
    count = db.upsert("integrantes", rows, conflict="cpf")
    audit.log_action(actor_id, "member_import", filename or "planilha", f"{count} integrantes importados")
    return count
