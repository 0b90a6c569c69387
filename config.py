"""
Process-wide configuration, read once from the environment (and a local .env).
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# -----------------------------
# GitHub
# -----------------------------
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN", "").strip()
GITHUB_GRAPHQL_URL = os.getenv("GITHUB_GRAPHQL_URL", "https://api.github.com/graphql")
GITHUB_TIMEOUT_SECONDS = float(os.getenv("GITHUB_TIMEOUT_SECONDS", "25"))

# -----------------------------
# Server
# -----------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", "3000"))

# 30 requests per 15 minutes per client on the JSON route
API_RATE_LIMIT_ENABLED = _env_bool("API_RATE_LIMIT_ENABLED", "true")
API_RATE_LIMIT_MAX = int(os.getenv("API_RATE_LIMIT_MAX", "30"))
API_RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("API_RATE_LIMIT_WINDOW_SECONDS", "900"))
