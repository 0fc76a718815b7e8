# backend/aymur/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/aymur.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///aymur.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Sale numbering: {prefix}{YYYYMMDD}-{sequence}
    DEFAULT_INVOICE_PREFIX = os.environ.get("DEFAULT_INVOICE_PREFIX", "INV-")
    SALE_NUMBER_PAD = int(os.environ.get("SALE_NUMBER_PAD", "4"))

    # Internal re-read loops (never applied to caller-visible CAS failures)
    TOTALS_RECOMPUTE_ATTEMPTS = int(os.environ.get("TOTALS_RECOMPUTE_ATTEMPTS", "5"))
    LEDGER_APPEND_ATTEMPTS = int(os.environ.get("LEDGER_APPEND_ATTEMPTS", "5"))
