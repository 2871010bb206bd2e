"""
config.py
Centralized settings for EasyASO (paths, thresholds, default admin, mail, logging).
"""

from __future__ import annotations

import os
from pathlib import Path

# SQLite database file
DB_FILE = Path(os.environ.get("EASYASO_DB", Path(__file__).with_name("easyaso.db")))

# An ASO is valid for this many months after the exam date
ASO_VALIDITY_MONTHS = 12

# (upper bound in days, status) checked in order; anything above is "Valid"
STATUS_THRESHOLDS = [
    (0, "Expired"),
    (30, "Urgent"),
    (60, "Summon"),
    (90, "Near"),
]

DEFAULT_ADMIN = {
    "email": "admin@easyaso.com",
    "nome": "Administrador",
    "password": os.environ.get("EASYASO_ADMIN_PASSWORD", "123456"),
}

DEFAULT_UNIT = "Matriz"

# Audit feed page size (Notifications screen)
FEED_PAGE_SIZE = 50

# Spreadsheet import columns
IMPORT_COLUMNS = {
    "name": "Nome",
    "cpf": "CPF",
    "role": "Cargo",
    "unit": "Unidade",
    "last_aso": "Data Ultimo ASO",
}

CPF_LENGTH = 11

# Outgoing mail (invites, convocation notices). Disabled when host is empty.
SMTP_CONFIG = {
    "host": os.environ.get("EASYASO_SMTP_HOST", ""),
    "port": int(os.environ.get("EASYASO_SMTP_PORT", "587")),
    "user": os.environ.get("EASYASO_SMTP_USER", ""),
    "password": os.environ.get("EASYASO_SMTP_PASSWORD", ""),
    "sender": os.environ.get("EASYASO_SMTP_SENDER", "nao-responda@easyaso.com"),
}

LOG_LEVEL = os.environ.get("EASYASO_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
