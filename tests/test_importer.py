from __future__ import annotations

from datetime import datetime

import pandas as pd
import pytest

import audit
import importer
import records

COLUMNS = ["Nome", "CPF", "Cargo", "Unidade", "Data Ultimo ASO"]


def write_sheet(tmp_path, rows, name="integrantes.xlsx"):
    path = tmp_path / name
    pd.DataFrame(rows, columns=COLUMNS).to_excel(path, index=False)
    return path


def test_normalize_date_variants():
    assert importer.normalize_date(datetime(2023, 10, 25, 0, 0)) == "2023-10-25"
    assert importer.normalize_date(pd.Timestamp("2023-10-25")) == "2023-10-25"
    assert importer.normalize_date(45224) == "2023-10-25"
    assert importer.normalize_date("25/10/2023") == "2023-10-25"
    assert importer.normalize_date("2023-10-25") == "2023-10-25"
    assert importer.normalize_date(None) is None
    assert importer.normalize_date(float("nan")) is None
    assert importer.normalize_date(pd.NaT) is None
    assert importer.normalize_date("  ") is None
    with pytest.raises(ValueError):
        importer.normalize_date("32/13/2023")


def test_normalize_rows_drops_rows_without_name_or_cpf():
    df = pd.DataFrame(
        [
            ["Ana Silva", "123.456.789-09", "Enfermeira", "Rio de Janeiro", "25/10/2023"],
            ["", "98765432100", "Médico", "Macaé", None],
            ["Sem CPF", None, "Técnica", "Santos", None],
        ],
        columns=COLUMNS,
    )
    rows = importer.normalize_rows(df)
    assert rows == [
        {
            "cpf": "12345678909",
            "nome": "Ana Silva",
            "cargo": "Enfermeira",
            "unidade": "Rio de Janeiro",
            "data_ultimo_aso": "2023-10-25",
        }
    ]


def test_normalize_rows_reports_bad_date_line():
    df = pd.DataFrame([["Ana", "1", "X", "Y", "31/02/2023"]], columns=COLUMNS)
    with pytest.raises(importer.ImportValidationError, match="linha 2"):
        importer.normalize_rows(df)


def test_find_duplicate_cpfs():
    rows = [{"cpf": "1"}, {"cpf": "2"}, {"cpf": "1"}, {"cpf": "3"}, {"cpf": "2"}]
    assert importer.find_duplicate_cpfs(rows) == ["1", "2"]
    assert importer.find_duplicate_cpfs([{"cpf": "1"}]) == []


def test_import_spreadsheet_inserts_then_upserts(store, admin, tmp_path):
    first = write_sheet(
        tmp_path,
        [
            ["Ana Silva", "1234567", "Enfermeira", "Rio de Janeiro", datetime(2023, 10, 25)],
            ["Carlos Lima", "98765432100", "Médico", "Macaé", "02/11/2023"],
        ],
    )
    assert importer.import_spreadsheet(first, actor_id=admin.id, filename="ativos.xlsx") == 2

    members = {m.cpf: m for m in records.fetch_members()}
    assert set(members) == {"00001234567", "98765432100"}
    assert members["00001234567"].last_aso_date == "2023-10-25"
    assert members["98765432100"].last_aso_date == "2023-11-02"

    second = write_sheet(
        tmp_path,
        [["Ana Silva", "1234567", "Enfermeira Chefe", "Santos", "10/01/2024"]],
        name="update.xlsx",
    )
    assert importer.import_spreadsheet(second, actor_id=admin.id) == 1

    members = {m.cpf: m for m in records.fetch_members()}
    assert len(members) == 2
    assert members["00001234567"].cargo == "Enfermeira Chefe"
    assert members["00001234567"].unidade == "Santos"
    assert members["00001234567"].last_aso_date == "2024-01-10"

    feed = audit.fetch_feed()
    assert [e.action for e in feed] == ["member_import", "member_import"]
    assert feed[1].target == "ativos.xlsx"


def test_import_spreadsheet_rejects_duplicate_cpfs(store, admin, tmp_path):
    path = write_sheet(
        tmp_path,
        [
            ["Ana Silva", "123.456.789-09", "Enfermeira", "Rio", None],
            ["Ana S.", "12345678909", "Enfermeira", "Rio", None],
        ],
    )
    with pytest.raises(importer.ImportValidationError, match="12345678909"):
        importer.import_spreadsheet(path, actor_id=admin.id)
    assert records.fetch_members() == []


def test_import_spreadsheet_empty_or_invalid(store, admin, tmp_path):
    empty = write_sheet(tmp_path, [], name="empty.xlsx")
    with pytest.raises(importer.ImportValidationError, match="vazio"):
        importer.import_spreadsheet(empty, actor_id=admin.id)

    no_valid = write_sheet(tmp_path, [["", "", "Cargo", "Unidade", None]], name="novalid.xlsx")
    with pytest.raises(importer.ImportValidationError, match="Nenhum dado válido"):
        importer.import_spreadsheet(no_valid, actor_id=admin.id)


def test_import_spreadsheet_unreadable_file(store, admin, tmp_path):
    path = tmp_path / "corrompido.xlsx"
    path.write_bytes(b"isto nao e uma planilha")
    with pytest.raises(importer.ImportValidationError):
        importer.import_spreadsheet(path, actor_id=admin.id)


def test_import_spreadsheet_keeps_values_of_missing_columns(store, admin, tmp_path):
    full = write_sheet(tmp_path, [["Ana Silva", "1234567", "Enfermeira", "Santos", "25/10/2023"]])
    importer.import_spreadsheet(full, actor_id=admin.id)

    names_only = tmp_path / "nomes.xlsx"
    pd.DataFrame([["Ana Paula Silva", "1234567"]], columns=["Nome", "CPF"]).to_excel(names_only, index=False)
    assert importer.normalize_rows(pd.read_excel(names_only, dtype={"CPF": str})) == [
        {"cpf": "00001234567", "nome": "Ana Paula Silva"}
    ]
    assert importer.import_spreadsheet(names_only, actor_id=admin.id) == 1

    [member] = records.fetch_members()
    assert member.nome == "Ana Paula Silva"
    assert member.cargo == "Enfermeira"
    assert member.unidade == "Santos"
    assert member.last_aso_date == "2023-10-25"
