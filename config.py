from __future__ import annotations
import logging
import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "p2pizza")

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000/api")
REMOTE_TIMEOUT = float(os.getenv("REMOTE_TIMEOUT", "10"))
CACHE_PATH = os.getenv("CACHE_PATH", "data/local_cache.json")
CACHE_PREFIX = "p2pizza_"

COOKING_MINUTES = int(os.getenv("COOKING_MINUTES", "8"))
COOKING_POLL_SECONDS = float(os.getenv("COOKING_POLL_SECONDS", "5"))
STRICT_TRANSITIONS = os.getenv("STRICT_TRANSITIONS", "1") == "1"

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@p2pizza.com")
DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "admin123")

TELEGRAM_API_BASE = os.getenv("TELEGRAM_API_BASE", "https://api.telegram.org")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", "8000"))


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
