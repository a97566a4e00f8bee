"""FX rates for settling in a different currency than expenses were recorded in.

Two modes:
1. predefined: fixed rates set by an event admin, keyed "{FROM}_{TO}".
2. eod: end-of-day market rates fetched from an external source and cached per
   calendar day under "{BASE}_{YYYY-MM-DD}".

A predefined-mode lookup with no matching rate falls through to eod.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

import requests

from settleup.config import (
    FX_API_BASE, FX_FETCH_TIMEOUT_SECONDS,
    PAYMENT_PROVIDER_CURRENCY, PAYMENT_PROVIDER_DEFAULT, PAYMENT_PROVIDER_DESIGNATED,
)
from settleup.errors import UpstreamUnavailable
from settleup.schemas import FxRate
from settleup.stores import RateCache, RateTable

logger = logging.getLogger("settleup.services.fx_rates")


class RateFetchError(Exception):
    pass


class RateFetcher(Protocol):
    def fetch(self, base_currency: str) -> RateTable: ...


class RequestsRateFetcher:
    """Full rate table for one base currency from an open.er-api.com compatible endpoint."""

    def __init__(self, api_base: str = FX_API_BASE, timeout: float = FX_FETCH_TIMEOUT_SECONDS):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    def fetch(self, base_currency: str) -> RateTable:
        try:
            response = requests.get(f"{self.api_base}/{base_currency}", timeout=self.timeout)
        except requests.RequestException as exc:
            raise RateFetchError(str(exc)) from exc
        if not response.ok:
            raise RateFetchError(f"FX API returned {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise RateFetchError("Invalid FX API response") from exc
        if not isinstance(data, dict) or data.get("result") != "success":
            raise RateFetchError("Invalid FX API response")
        rates = data.get("rates")
        if not isinstance(rates, dict) or not rates:
            raise RateFetchError("FX API response has no rate table")
        return rates


def _utc_today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


class FxRateResolver:
    def __init__(self, cache: RateCache, fetcher: RateFetcher, today: Optional[Callable[[], str]] = None):
        self.cache = cache
        self.fetcher = fetcher
        self.today = today or _utc_today

    def get_rate(
        self,
        from_currency: str,
        to_currency: str,
        predefined_rates: Optional[dict[str, float]] = None,
        mode: str = "eod",
    ) -> FxRate:
        if from_currency == to_currency:
            return FxRate(from_currency=from_currency, to_currency=to_currency, rate=1, date=self.today(), source=mode)

        if mode == "predefined" and predefined_rates:
            rate = predefined_rates.get(f"{from_currency}_{to_currency}")
            if rate:
                return self._predefined(from_currency, to_currency, rate)
            reverse = predefined_rates.get(f"{to_currency}_{from_currency}")
            if reverse:
                return self._predefined(from_currency, to_currency, round(1 / reverse, 6))
            logger.info("No predefined rate for %s→%s, falling back to EOD", from_currency, to_currency)

        return self.get_eod_rate(from_currency, to_currency)

    def _predefined(self, from_currency: str, to_currency: str, rate: float) -> FxRate:
        return FxRate(
            from_currency=from_currency, to_currency=to_currency,
            rate=rate, date=self.today(), source="predefined",
        )

    def get_eod_rate(self, from_currency: str, to_currency: str) -> FxRate:
        today = self.today()
        cache_key = f"{from_currency}_{today}"

        cached = self._cached(cache_key)
        if cached and cached.get(to_currency):
            return self._eod(from_currency, to_currency, cached[to_currency], today)

        try:
            rates = self.fetcher.fetch(from_currency)
            try:
                self.cache.put(cache_key, rates)
            except Exception:
                logger.warning("Could not cache FX rates under %s", cache_key, exc_info=True)
            if not rates.get(to_currency):
                raise RateFetchError(f"Currency {to_currency} not found in FX API response")
            return self._eod(from_currency, to_currency, rates[to_currency], today)
        except RateFetchError as exc:
            reverse = self._cached(f"{to_currency}_{today}")
            if reverse and reverse.get(from_currency):
                logger.info("FX fetch %s→%s failed (%s); using reverse cached rate", from_currency, to_currency, exc)
                return self._eod(from_currency, to_currency, round(1 / reverse[from_currency], 6), today)
            logger.warning("FX rate %s→%s unavailable: %s", from_currency, to_currency, exc)
            raise UpstreamUnavailable(from_currency, to_currency, str(exc)) from exc

    def _cached(self, key: str) -> Optional[RateTable]:
        try:
            return self.cache.get(key)
        except Exception:
            logger.warning("FX cache read failed for %s", key, exc_info=True)
            return None

    @staticmethod
    def _eod(from_currency: str, to_currency: str, rate: float, today: str) -> FxRate:
        return FxRate(from_currency=from_currency, to_currency=to_currency, rate=rate, date=today, source="eod")

    @staticmethod
    def convert(amount: float, rate: float) -> float:
        return round(amount * rate, 2)


class PaymentProviderPolicy:
    """Routing policy, not an algorithm: one designated provider for one currency, a default otherwise."""

    def __init__(self, currency: str, provider: str, default: str):
        self.currency = currency
        self.provider = provider
        self.default = default

    def provider_for(self, currency: str) -> str:
        return self.provider if currency == self.currency else self.default


payment_provider_policy = PaymentProviderPolicy(
    PAYMENT_PROVIDER_CURRENCY, PAYMENT_PROVIDER_DESIGNATED, PAYMENT_PROVIDER_DEFAULT,
)


def get_payment_provider(currency: str) -> str:
    return payment_provider_policy.provider_for(currency)
