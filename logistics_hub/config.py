"""
CONFIG.PY: SINGLE SOURCE OF TRUTH

This module is the ONLY place allowed to read environment variables.

Required variables must exist and be non-blank; the service fails early
otherwise. Vendor secrets are optional: a blank value means the matching
edge function answers with a "not configured" error instead of proxying.

To use a config value, import:

    from logistics_hub.config import get_config

Do not access os.getenv directly from any other module.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Mapping

from dotenv import load_dotenv


PROJECT_ROOT = Path(__file__).resolve().parents[1]

# OS env overrides values from .env
load_dotenv(PROJECT_ROOT / ".env")


logger = logging.getLogger(__name__)

REQUIRED_KEYS = [
    "DATABASE_URL",
    "SUPABASE_JWT_SECRET",
    "REPORTS_ROOT",
    "STORAGE_ROOT",
    "STORAGE_PUBLIC_URL",
]

OPTIONAL_DEFAULTS: Dict[str, str] = {
    "RUN_ENV": "dev",
    "PIPELINE_TIMEZONE": "Asia/Manila",
    "JSON_LOG_FILE": "",
    "ALEMBIC_CONFIG": "alembic.ini",
    "CORS_ALLOW_ORIGINS": "*",
    "HTTP_TIMEOUT_SECONDS": "15",
    "MAPBOX_PUBLIC_TOKEN": "",
    "PAYMONGO_SECRET_KEY": "",
    "PAYMONGO_WEBHOOK_SECRET": "",
    "PAYMONGO_BASE_URL": "https://api.paymongo.com/v1",
    "LALAMOVE_API_KEY": "",
    "LALAMOVE_API_SECRET": "",
    "LALAMOVE_MARKET": "PH",
    "LALAMOVE_BASE_URL": "https://rest.sandbox.lalamove.com",
}


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


def _require(values: Mapping[str, str | None], key: str) -> str:
    value = values.get(key)
    if value is None:
        message = f"Missing required environment variable: {key}"
        logger.error(message)
        raise ConfigError(message)
    stripped = value.strip()
    if not stripped:
        message = f"Environment variable {key} cannot be blank"
        logger.error(message)
        raise ConfigError(message)
    return stripped


def _optional(values: Mapping[str, str | None], key: str) -> str:
    value = values.get(key)
    if value is None:
        return OPTIONAL_DEFAULTS[key]
    return value.strip()


def _parse_int(value: str, *, key: str) -> int:
    try:
        return int(value.strip())
    except (TypeError, ValueError):
        message = f"Config key {key} must be an integer; got {value!r}"
        logger.error(message)
        raise ConfigError(message)


def _parse_list(value: str) -> list[str]:
    if not value:
        return []
    tokens = re.split(r"[,\n]", value)
    return [token.strip() for token in tokens if token and token.strip()]


def _clean_url(value: str) -> str:
    return value.strip().rstrip("/")


@dataclass(slots=True, frozen=True)
class Config:
    database_url: str
    supabase_jwt_secret: str
    reports_root: str
    storage_root: str
    storage_public_url: str

    run_env: str = "dev"
    pipeline_timezone: str = "Asia/Manila"
    json_log_file: str = ""
    alembic_config: str = "alembic.ini"
    cors_allow_origins: tuple[str, ...] = ("*",)
    http_timeout_seconds: int = 15

    mapbox_public_token: str = ""
    paymongo_secret_key: str = ""
    paymongo_webhook_secret: str = ""
    paymongo_base_url: str = "https://api.paymongo.com/v1"
    lalamove_api_key: str = ""
    lalamove_api_secret: str = ""
    lalamove_market: str = "PH"
    lalamove_base_url: str = "https://rest.sandbox.lalamove.com"

    @classmethod
    def from_mapping(cls, values: Mapping[str, str | None]) -> Config:
        required = {key: _require(values, key) for key in REQUIRED_KEYS}
        optional = {key: _optional(values, key) for key in OPTIONAL_DEFAULTS}

        origins = _parse_list(optional["CORS_ALLOW_ORIGINS"]) or ["*"]

        return cls(
            database_url=required["DATABASE_URL"],
            supabase_jwt_secret=required["SUPABASE_JWT_SECRET"],
            reports_root=required["REPORTS_ROOT"],
            storage_root=required["STORAGE_ROOT"],
            storage_public_url=_clean_url(required["STORAGE_PUBLIC_URL"]),
            run_env=optional["RUN_ENV"] or "dev",
            pipeline_timezone=optional["PIPELINE_TIMEZONE"] or "Asia/Manila",
            json_log_file=optional["JSON_LOG_FILE"],
            alembic_config=optional["ALEMBIC_CONFIG"] or "alembic.ini",
            cors_allow_origins=tuple(origins),
            http_timeout_seconds=_parse_int(
                optional["HTTP_TIMEOUT_SECONDS"], key="HTTP_TIMEOUT_SECONDS"
            ),
            mapbox_public_token=optional["MAPBOX_PUBLIC_TOKEN"],
            paymongo_secret_key=optional["PAYMONGO_SECRET_KEY"],
            paymongo_webhook_secret=optional["PAYMONGO_WEBHOOK_SECRET"],
            paymongo_base_url=_clean_url(optional["PAYMONGO_BASE_URL"]),
            lalamove_api_key=optional["LALAMOVE_API_KEY"],
            lalamove_api_secret=optional["LALAMOVE_API_SECRET"],
            lalamove_market=optional["LALAMOVE_MARKET"] or "PH",
            lalamove_base_url=_clean_url(optional["LALAMOVE_BASE_URL"]),
        )

    @classmethod
    def load_from_env(cls) -> Config:
        return cls.from_mapping(os.environ)


@lru_cache(maxsize=1)
def get_config() -> Config:
    return Config.load_from_env()


def reset_config_cache() -> None:
    get_config.cache_clear()
