"""
Formatter - Converts raw provider fields into canonical values.

Every missing-field decision lives here. Functions are pure and never raise:
absent or malformed input becomes a default value.
"""

import re
from datetime import datetime, timezone
from typing import Any, Optional

from src.domain.entities.coin import CoinRecord

DEFAULT_CURRENCY = "usd"

# Rank given to coins the provider reports as 0 / unranked; sorts after every real rank
UNRANKED_RANK = 1_000_000_000

# Quote currencies whose prices need satoshi-level precision
HIGH_PRECISION_CURRENCIES = {"BTC", "ETH"}

PERCENT_CHANGE_WINDOWS = ("1h", "24h", "7d", "30d")

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]+")


def to_float(value: Any) -> float:
    """Coerce a provider number to float; null and garbage become 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _round(value: float, places: int) -> float:
    return float(f"{value:.{places}f}")


def slugify(name: str) -> str:
    """Lower-case a name and collapse each non-alphanumeric run into a dash."""
    return _NON_ALNUM.sub("-", name or "").lower()


def normalize_currency(currency: Optional[str]) -> str:
    """Lower-case a currency code, defaulting to USD."""
    code = (currency or "").strip().lower()
    return code or DEFAULT_CURRENCY


def format_id(value: Any) -> str:
    return str(value or "").strip()


def format_name(value: Any) -> str:
    return str(value or "").strip()


def format_symbol(value: Any) -> str:
    return str(value or "").strip().upper()


def format_rank(value: Any) -> int:
    """
    Normalize a market cap rank.
    
    Args:
        value: Raw rank (int, float, numeric string or None)
    
    Returns:
        The rank, or UNRANKED_RANK for 0 / missing / unparsable values.
    """
    try:
        rank = int(to_float(value))
    except (ValueError, OverflowError):
        return UNRANKED_RANK
    if rank <= 0:
        return UNRANKED_RANK
    return rank


def format_supply(value: Any) -> float:
    return to_float(value)


def format_total_supply(total: Any, circulating: Any) -> float:
    """Total supply, falling back to circulating supply when it is 0 or absent."""
    total_supply = to_float(total)
    if total_supply == 0:
        return format_supply(circulating)
    return total_supply


def format_market_cap(value: Any) -> float:
    return to_float(value)


def format_volume(value: Any) -> float:
    return to_float(value)


def format_price(price: Any, currency: Optional[str]) -> float:
    """
    Round a price for display in the given currency.
    
    Args:
        price: Raw price
        currency: Quote currency, any case
    
    Returns:
        Price rounded to 8 places for BTC/ETH quotes or sub-unit prices,
        otherwise 2 places.
    """
    value = to_float(price)
    code = normalize_currency(currency).upper()
    if code in HIGH_PRECISION_CURRENCIES or value < 1:
        return _round(value, 8)
    return _round(value, 2)


def format_percent_change(value: Any) -> float:
    """Percent change rounded to 2 places; absent values are 0."""
    return _round(to_float(value), 2)


def format_last_updated(value: Any) -> str:
    """
    Convert a provider ISO-8601 timestamp to unix seconds.
    
    Returns:
        Unix seconds as a string, or "" when missing or unparsable.
    """
    if not value or not isinstance(value, str):
        return ""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return ""
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return str(int(parsed.timestamp()))


def format_coin_record(raw: dict, currency: Optional[str]) -> CoinRecord:
    """
    Build a CoinRecord from one raw /coins/markets item.
    
    Args:
        raw: Provider payload for one coin
        currency: Requested quote currency, any case
    
    Returns:
        Normalized CoinRecord.
    """
    code = normalize_currency(currency)
    circulating = raw.get("circulating_supply")
    changes = {
        window: format_percent_change(
            raw.get(f"price_change_percentage_{window}_in_currency")
        )
        for window in PERCENT_CHANGE_WINDOWS
    }
    
    return CoinRecord(
        id=format_id(raw.get("id")),
        name=format_name(raw.get("name")),
        symbol=format_symbol(raw.get("symbol")),
        rank=format_rank(raw.get("market_cap_rank")),
        currency=code,
        price=format_price(raw.get("current_price"), code),
        available_supply=format_supply(circulating),
        total_supply=format_total_supply(raw.get("total_supply"), circulating),
        market_cap=format_market_cap(raw.get("market_cap")),
        volume_24h=format_volume(raw.get("total_volume")),
        percent_change_1h=changes["1h"],
        percent_change_24h=changes["24h"],
        percent_change_7d=changes["7d"],
        percent_change_30d=changes["30d"],
        last_updated=format_last_updated(raw.get("last_updated")),
    )
