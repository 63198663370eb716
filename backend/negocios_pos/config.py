# backend/negocios_pos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/negocios_pos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location (postgresql://... in production)
        "sqlite:///negocios_pos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Invoicing
    # Tax rate in basis points (1900 = 19%)
    SALES_TAX_RATE_BPS = int(os.environ.get("SALES_TAX_RATE_BPS", "1900"))
    INVOICE_PREFIX = os.environ.get("INVOICE_PREFIX", "FAC")
    RETURN_INVOICE_PREFIX = os.environ.get("RETURN_INVOICE_PREFIX", "DEV-")
    INVOICE_NUMBER_WIDTH = int(os.environ.get("INVOICE_NUMBER_WIDTH", "6"))

    # Retries for lock conflicts (deadlocks, SQLite "database is locked")
    DB_RETRY_ATTEMPTS = int(os.environ.get("DB_RETRY_ATTEMPTS", "3"))
