"""Runtime settings loaded from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_OXR_BASE_URL = "https://openexchangerates.org"


class Settings(BaseModel):
    """Settings for rate fetching and batch evaluation."""

    oxr_app_id: str | None = Field(
        default=None, description="Open Exchange Rates application id"
    )
    oxr_base_url: str = Field(
        default=DEFAULT_OXR_BASE_URL, description="Open Exchange Rates API root"
    )
    as_of: datetime | None = Field(
        default=None, description="Evaluation instant; defaults to now when unset"
    )
    request_timeout: float = Field(
        default=20.0, gt=0, description="Timeout in seconds for rate requests"
    )

    model_config = ConfigDict(frozen=True)


def _parse_as_of(raw: str) -> datetime:
    try:
        return datetime.fromisoformat(raw.strip())
    except ValueError as exc:
        msg = f"Invalid AS_OF_DATE provided: {raw}"
        raise ValueError(msg) from exc


def settings_from_mapping(env: Mapping[str, str]) -> Settings:
    """Build settings from an environment-like mapping."""

    raw_as_of = env.get("AS_OF_DATE")
    raw_timeout = env.get("OPEN_EXCHANGE_RATES_TIMEOUT")
    return Settings(
        oxr_app_id=env.get("OPEN_EXCHANGE_RATES_APP_ID") or env.get("OXR_APP_ID") or None,
        oxr_base_url=env.get("OPEN_EXCHANGE_RATES_BASE_URL") or DEFAULT_OXR_BASE_URL,
        as_of=_parse_as_of(raw_as_of) if raw_as_of else None,
        request_timeout=float(raw_timeout) if raw_timeout else 20.0,
    )


def load_settings(env_file: str | Path | None = None) -> Settings:
    """Load ``.env`` (when present) and read settings from the environment."""

    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()
    return settings_from_mapping(os.environ)
