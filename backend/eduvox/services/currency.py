"""
Currency Service

Exchange rates with a 24h database cache, USD-pivot conversion and display
formatting for tuition and cost figures.

Rate sources are tried in order:
1. currencyapi.com (only when CURRENCY_API_KEY is set)
2. exchangerate-api.com free endpoint
3. The DEFAULT_RATES table below
"""

import os
import logging
from datetime import datetime, timedelta
from typing import Dict, Any, Optional, List, Callable

import httpx
from sqlalchemy.orm import Session

from eduvox.models.models import ExchangeRateSnapshot

logger = logging.getLogger(__name__)

CURRENCY_API_URL = "https://api.currencyapi.com/v3/latest"
EXCHANGE_RATE_API_URL = "https://api.exchangerate-api.com/v4/latest/USD"
RATES_TTL = timedelta(hours=24)


# =============================================================================
# STATIC TABLES
# =============================================================================

DEFAULT_RATES: Dict[str, float] = {
    "USD": 1,
    "EUR": 0.85,
    "GBP": 0.73,
    "JPY": 110,
    "INR": 83.12,
    "CAD": 1.25,
    "AUD": 1.35,
    "CHF": 0.92,
    "SEK": 8.9,
    "NOK": 8.7,
    "DKK": 6.3,
    "SGD": 1.35,
    "HKD": 7.8,
    "NZD": 1.45,
    "KRW": 1200,
}

COUNTRY_CURRENCY: Dict[str, str] = {
    "US": "USD",
    "United States": "USD",
    "UK": "GBP",
    "United Kingdom": "GBP",
    "Canada": "CAD",
    "Australia": "AUD",
    "Germany": "EUR",
    "France": "EUR",
    "Netherlands": "EUR",
    "Italy": "EUR",
    "Spain": "EUR",
    "Ireland": "EUR",
    "Belgium": "EUR",
    "Austria": "EUR",
    "Finland": "EUR",
    "Sweden": "SEK",
    "Norway": "NOK",
    "Denmark": "DKK",
    "Switzerland": "CHF",
    "Japan": "JPY",
    "South Korea": "KRW",
    "Singapore": "SGD",
    "Hong Kong": "HKD",
    "New Zealand": "NZD",
    "India": "INR",
}

CURRENCY_SYMBOLS: Dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
    "CAD": "C$",
    "AUD": "A$",
    "CHF": "CHF",
    "SEK": "kr",
    "NOK": "kr",
    "DKK": "kr",
    "SGD": "S$",
    "HKD": "HK$",
    "NZD": "NZ$",
    "KRW": "₩",
}

CURRENCY_NAMES: Dict[str, str] = {
    "USD": "US Dollar",
    "EUR": "Euro",
    "GBP": "British Pound",
    "JPY": "Japanese Yen",
    "INR": "Indian Rupee",
    "CAD": "Canadian Dollar",
    "AUD": "Australian Dollar",
    "CHF": "Swiss Franc",
    "SEK": "Swedish Krona",
    "NOK": "Norwegian Krone",
    "DKK": "Danish Krone",
    "SGD": "Singapore Dollar",
    "HKD": "Hong Kong Dollar",
    "NZD": "New Zealand Dollar",
    "KRW": "South Korean Won",
}


def get_currency_for_country(country: str) -> str:
    return COUNTRY_CURRENCY.get(country, "USD")


def get_currency_symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get(currency, currency)


def get_supported_currencies() -> List[Dict[str, str]]:
    return [
        {"code": code, "symbol": symbol, "name": CURRENCY_NAMES.get(code, code)}
        for code, symbol in CURRENCY_SYMBOLS.items()
    ]


# =============================================================================
# PURE CONVERSION & FORMATTING
# =============================================================================

def convert_with_rates(amount: float, from_currency: str, to_currency: str, rates: Dict[str, float]) -> float:
    """
    Convert via USD using a USD-based rate table, rounded to 2 decimals.

    Returns the amount unchanged when either currency is missing from the table.
    """
    if from_currency == to_currency:
        return amount

    from_rate = rates.get(from_currency)
    to_rate = rates.get(to_currency)
    if not from_rate or not to_rate:
        logger.warning("No rate for %s -> %s, returning original amount", from_currency, to_currency)
        return amount

    usd_amount = amount if from_currency == "USD" else amount / from_rate
    converted = usd_amount if to_currency == "USD" else usd_amount * to_rate
    return round(converted, 2)


def format_currency(
    amount: Optional[float],
    currency: str = "USD",
    show_symbol: bool = True,
    show_code: bool = False,
    decimals: int = 0,
) -> str:
    """Format like '$45,000' or '45,000 USD'. None renders as 'N/A'."""
    if amount is None:
        return "N/A"

    number = f"{abs(amount):,.{decimals}f}"
    sign = "-" if amount < 0 else ""

    if show_symbol:
        formatted = f"{sign}{get_currency_symbol(currency)}{number}"
    else:
        formatted = f"{sign}{number}"
        if show_code:
            formatted += f" {currency}"
    return formatted


def format_currency_range(
    min_amount: Optional[float],
    max_amount: Optional[float],
    currency: str = "USD",
    **options: Any,
) -> str:
    if not min_amount and not max_amount:
        return "Not specified"
    if min_amount == max_amount:
        return format_currency(min_amount, currency, **options)
    return f"{format_currency(min_amount, currency, **options)} - {format_currency(max_amount, currency, **options)}"


# =============================================================================
# RATE FETCHING & CACHE
# =============================================================================

class CurrencyService:
    """
    Exchange rate access for one request or script run.

    Construct with a database session; the HTTP client and clock are
    injectable for tests.
    """

    def __init__(
        self,
        db: Session,
        http_client: Optional[httpx.Client] = None,
        api_key: Optional[str] = None,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self._http = http_client
        self._owns_http = False
        self.api_key = api_key if api_key is not None else os.getenv("CURRENCY_API_KEY")
        self._now = now

    def _client(self) -> httpx.Client:
        if self._http is None:
            self._http = httpx.Client(timeout=httpx.Timeout(10.0, connect=5.0))
            self._owns_http = True
        return self._http

    def close(self) -> None:
        """Close the HTTP client if this service created it; injected clients are left open."""
        if self._owns_http and self._http is not None:
            self._http.close()
            self._http = None
            self._owns_http = False

    def fetch_exchange_rates(self) -> Dict[str, Any]:
        """Fetch fresh USD-based rates. Never raises; the last resort is DEFAULT_RATES."""
        if self.api_key:
            try:
                response = self._client().get(
                    CURRENCY_API_URL, params={"apikey": self.api_key, "base_currency": "USD"}
                )
                response.raise_for_status()
                data = response.json().get("data")
                if data:
                    rates = {
                        code: (entry["value"] if isinstance(entry, dict) else entry)
                        for code, entry in data.items()
                    }
                    return {"rates": rates, "source": "currencyapi"}
            except (httpx.HTTPError, ValueError, KeyError) as e:
                logger.warning("currencyapi.com failed, trying fallback: %s", e)

        try:
            response = self._client().get(EXCHANGE_RATE_API_URL)
            response.raise_for_status()
            rates = response.json()["rates"]
            return {"rates": rates, "source": "exchangerate-api"}
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.error("Failed to fetch exchange rates: %s", e)

        return {"rates": dict(DEFAULT_RATES), "source": "default"}

    def get_stored_rates(self) -> Optional[ExchangeRateSnapshot]:
        """Latest stored snapshot if it is younger than 24 hours."""
        snapshot = self.db.query(ExchangeRateSnapshot).order_by(
            ExchangeRateSnapshot.fetched_at.desc()
        ).first()
        if snapshot and self._now() - snapshot.fetched_at < RATES_TTL:
            return snapshot
        return None

    def refresh_rates(self) -> ExchangeRateSnapshot:
        result = self.fetch_exchange_rates()
        snapshot = ExchangeRateSnapshot(
            base="USD",
            rates=result["rates"],
            source=result["source"],
            fetched_at=self._now(),
        )
        self.db.add(snapshot)
        self.db.commit()
        self.db.refresh(snapshot)
        logger.info("Stored exchange rates from %s", snapshot.source)
        return snapshot

    def get_current_rates(self) -> Dict[str, Any]:
        snapshot = self.get_stored_rates() or self.refresh_rates()
        return {
            "base": snapshot.base,
            "rates": snapshot.rates,
            "source": snapshot.source,
            "fetched_at": snapshot.fetched_at.isoformat() if snapshot.fetched_at else None,
        }

    def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        if from_currency == to_currency:
            return amount
        rates = self.get_current_rates()["rates"]
        return convert_with_rates(amount, from_currency, to_currency, rates)

    def format_tuition_with_conversion(
        self,
        tuition_min: Optional[float],
        tuition_max: Optional[float],
        original_currency: str,
        user_currency: str = "INR",
    ) -> str:
        """'₹2,000,000 - ₹3,000,000 ($24,000 - $36,000)' style dual display."""
        original = format_currency_range(tuition_min, tuition_max, original_currency)
        if original_currency == user_currency or (not tuition_min and not tuition_max):
            return original

        converted_min = self.convert(tuition_min, original_currency, user_currency) if tuition_min else tuition_min
        converted_max = self.convert(tuition_max, original_currency, user_currency) if tuition_max else tuition_max
        converted = format_currency_range(converted_min, converted_max, user_currency)
        return f"{converted} ({original})"
