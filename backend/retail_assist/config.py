# backend/retail_assist/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/retail_assist.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location (e.g. postgresql://...)
        "sqlite:///retail_assist.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Shared secret expected in the "auth-token" header. Unset means every
    # API request is rejected.
    AUTH_TOKEN = os.environ.get("AUTH_TOKEN")

    # First invoice number handed out when no invoices exist yet
    INVOICE_START_NUMBER = int(os.environ.get("INVOICE_START_NUMBER", "1001"))

    DEFAULT_PAGE_SIZE = int(os.environ.get("DEFAULT_PAGE_SIZE", "50"))
    MAX_PAGE_SIZE = int(os.environ.get("MAX_PAGE_SIZE", "100"))
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "5"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
