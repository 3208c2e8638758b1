# backend/pharmastock/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pharmastock.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pharmastock.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Browser origins allowed to call the API, comma separated. Empty disables CORS.
    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get("CORS_ALLOWED_ORIGINS", "").split(",")
        if origin.strip()
    ]

    # Atomic movement scope: total attempts on a concurrency conflict
    # (first try + retries) and the exponential backoff base in seconds.
    MOVEMENT_RETRY_ATTEMPTS = int(os.environ.get("MOVEMENT_RETRY_ATTEMPTS", "3"))
    MOVEMENT_RETRY_BACKOFF = float(os.environ.get("MOVEMENT_RETRY_BACKOFF", "0.05"))

    # Alerts: "expiring soon" means expiry within this many days of today (inclusive)
    EXPIRY_WARNING_DAYS = int(os.environ.get("EXPIRY_WARNING_DAYS", "30"))

    DEFAULT_LOW_STOCK_THRESHOLD = 10

    DEFAULT_PAGE_SIZE = 50
    MAX_PAGE_SIZE = 200
