"""Exchange-rate retrieval from Open Exchange Rates."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date
from typing import Any

import requests
from pydantic import ValidationError

from .config import DEFAULT_OXR_BASE_URL, Settings
from .fx import ExchangeRates

logger = logging.getLogger(__name__)


class RateFetchError(RuntimeError):
    """Raised when exchange rates cannot be retrieved."""


class OpenExchangeRatesClient:
    """Fetch latest or historical rate tables from Open Exchange Rates."""

    def __init__(
        self,
        app_id: str,
        *,
        base_url: str = DEFAULT_OXR_BASE_URL,
        timeout: float = 20.0,
        session: requests.Session | None = None,
    ) -> None:
        if not app_id:
            raise ValueError("An Open Exchange Rates app id is required")
        self.app_id = app_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(
        cls, settings: Settings, *, session: requests.Session | None = None
    ) -> OpenExchangeRatesClient:
        if not settings.oxr_app_id:
            raise ValueError("OPEN_EXCHANGE_RATES_APP_ID is not configured")
        return cls(
            settings.oxr_app_id,
            base_url=settings.oxr_base_url,
            timeout=settings.request_timeout,
            session=session,
        )

    def fetch_latest(self) -> ExchangeRates:
        return self._fetch(f"{self.base_url}/api/latest.json", "latest")

    def fetch_for_date(self, day: date) -> ExchangeRates:
        date_key = day.isoformat()
        return self._fetch(f"{self.base_url}/api/historical/{date_key}.json", date_key)

    def _fetch(self, url: str, context: str) -> ExchangeRates:
        logger.debug("Fetching exchange rates (%s)", context)
        try:
            response = self.session.get(
                url, params={"app_id": self.app_id}, timeout=self.timeout
            )
        except requests.RequestException as exc:
            logger.warning("Rate request failed (%s): %s", context, exc)
            raise RateFetchError(f"Failed to fetch rates ({context}): {exc}") from exc

        if not response.ok:
            raise RateFetchError(
                f"Exchange rate API returned {response.status_code} ({context}): {response.reason}"
            )

        try:
            payload: Any = response.json()
        except ValueError as exc:
            raise RateFetchError(
                f"Invalid response from exchange rate API ({context}): body is not JSON"
            ) from exc

        return _parse_payload(payload, context)


def _parse_payload(payload: Any, context: str) -> ExchangeRates:
    if not isinstance(payload, dict):
        raise RateFetchError(
            f"Invalid response from exchange rate API ({context}): expected an object"
        )
    if payload.get("error") is True:
        message = payload.get("message") or "Unknown error"
        description = payload.get("description")
        detail = f"{message} - {description}" if description else message
        raise RateFetchError(f"Exchange rate API error ({context}): {detail}")

    raw_rates = payload.get("rates")
    if not isinstance(raw_rates, dict):
        raise RateFetchError(
            f"Invalid response from exchange rate API ({context}): expected 'rates' to be an object"
        )
    try:
        return ExchangeRates(base=payload.get("base") or "USD", rates=raw_rates)
    except ValidationError as exc:
        raise RateFetchError(
            f"Invalid response from exchange rate API ({context}): {exc.error_count()} invalid rate(s)"
        ) from exc


class DailyRatesCache:
    """Per-run cache of rate tables keyed by calendar date.

    Entries are filled on the first lookup for a date and never evicted. A
    failed fetch is remembered too, so later lookups for that date raise the
    same error without another request.
    """

    def __init__(self, fetcher: Callable[[date], ExchangeRates]) -> None:
        self._fetcher = fetcher
        self._rates: dict[date, ExchangeRates] = {}
        self._failures: dict[date, RateFetchError] = {}

    def get(self, day: date) -> ExchangeRates:
        cached = self._rates.get(day)
        if cached is not None:
            return cached
        failure = self._failures.get(day)
        if failure is not None:
            raise failure

        try:
            rates = self._fetcher(day)
        except RateFetchError as exc:
            logger.warning("Exchange rates unavailable for %s: %s", day.isoformat(), exc)
            self._failures[day] = exc
            raise
        self._rates[day] = rates
        return rates

    @property
    def cached_dates(self) -> list[date]:
        return sorted(self._rates)

    def __len__(self) -> int:
        return len(self._rates)
