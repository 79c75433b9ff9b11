"""
Application configuration using Pydantic Settings.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_cache_dir() -> str:
    return str(Path.home() / ".cache" / "coinfeed")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    
    All settings can be overridden via environment variables.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    # CoinGecko API Configuration
    coingecko_base_url: str = Field(
        default="https://api.coingecko.com/api/v3",
        description="CoinGecko API base URL",
    )
    coingecko_api_key: Optional[str] = Field(
        default=None,
        description="CoinGecko demo API key (optional, for higher rate limits)",
    )
    request_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for a single provider request",
    )
    
    # Pagination Configuration
    max_results_per_page: int = Field(
        default=250,
        description="Coins per market page (provider maximum is 250)",
    )
    max_pages: int = Field(
        default=10,
        description="Upper bound on pages fetched per refresh",
    )
    page_delay_seconds: float = Field(
        default=1.0,
        description="Pause between successive page requests",
    )
    
    # Cache Configuration
    cache_dir: str = Field(
        default_factory=_default_cache_dir,
        description="Directory holding the durable cache files",
    )
    no_cache: bool = Field(
        default=False,
        description="Disable the durable (on-disk) cache tier",
    )
    volatile_ttl_seconds: int = Field(
        default=60,
        description="Default expiry of in-memory cache entries",
    )
    
    # Application Configuration
    default_currency: str = Field(
        default="usd",
        description="Currency used when none is requested",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    json_logs: bool = Field(
        default=False,
        description="Output logs as JSON",
    )
    
    @property
    def cache_path(self) -> Path:
        """Cache directory with user home expanded."""
        return Path(self.cache_dir).expanduser()
    
    def validate_required(self) -> list[str]:
        """
        Validate pagination and cache settings.
        
        Returns:
            List of invalid settings.
        """
        invalid = []
        
        if not 1 <= self.max_results_per_page <= 250:
            invalid.append("MAX_RESULTS_PER_PAGE")
        if self.max_pages < 1:
            invalid.append("MAX_PAGES")
        if self.page_delay_seconds < 0:
            invalid.append("PAGE_DELAY_SECONDS")
        if self.volatile_ttl_seconds < 0:
            invalid.append("VOLATILE_TTL_SECONDS")
        
        return invalid


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    
    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
