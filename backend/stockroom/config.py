# backend/stockroom/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockroom.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockroom.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Products below this stock level show up in the dashboard alert list
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "50"))

    # "read_then_write": stock is computed from the session mirror and written
    # as an absolute value (last writer wins across sessions).
    # "conditional": the store applies a guarded relative update instead.
    STOCK_UPDATE_MODE = os.environ.get("STOCK_UPDATE_MODE", "read_then_write")

    # "immediate" delivers change signals synchronously on publish;
    # "deferred" queues them until ChangeFeed.drain() is called; the app drains
    # the queue when each request finishes.
    CHANGE_FEED_DELIVERY = os.environ.get("CHANGE_FEED_DELIVERY", "immediate")

    # History date filters are whole calendar days in this zone
    DISPLAY_TIMEZONE = os.environ.get("DISPLAY_TIMEZONE", "UTC")

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
