# backend/ledgerbook/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/ledgerbook.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///ledgerbook.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LEDGERBOOK_LOG_LEVEL = os.environ.get("LEDGERBOOK_LOG_LEVEL", "INFO")

    # Compare-and-swap attempts for a single item stock write
    STOCK_CAS_ATTEMPTS = int(os.environ.get("STOCK_CAS_ATTEMPTS", "5"))

    # Zero padding for generated document numbers (INV-0001)
    DOCUMENT_NUMBER_PAD = int(os.environ.get("DOCUMENT_NUMBER_PAD", "4"))
