# backend/cafepos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/cafepos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///cafepos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bulk reconciliation: documents read per page, writes per committed batch
    RECON_PAGE_SIZE = int(os.environ.get("RECON_PAGE_SIZE", "500"))
    RECON_BATCH_SIZE = int(os.environ.get("RECON_BATCH_SIZE", "400"))
    RECON_COMMIT_ATTEMPTS = int(os.environ.get("RECON_COMMIT_ATTEMPTS", "3"))
    RECON_RETRY_BACKOFF = float(os.environ.get("RECON_RETRY_BACKOFF", "0.1"))

    # Calendar days for daily stats are cut in this zone (always UTC+8)
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "Asia/Manila")

    # How the operator-entered PC rental figure is split across payment methods
    RENTAL_CASH_POLICY = os.environ.get("RENTAL_CASH_POLICY", "cash_remainder")

    # Dev frontend origins allowed to call the API from the browser
    CORS_ALLOWED_ORIGINS = frozenset(
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    )
