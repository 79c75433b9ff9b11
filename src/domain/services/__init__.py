"""
Domain services - Pure resolution and formatting logic.
"""

from src.domain.services.formatter import (
    UNRANKED_RANK,
    format_coin_record,
    normalize_currency,
    slugify,
)
from src.domain.services.resolver import CoinResolver, ResolutionTableBuilder

__all__ = [
    "UNRANKED_RANK",
    "format_coin_record",
    "normalize_currency",
    "slugify",
    "CoinResolver",
    "ResolutionTableBuilder",
]
