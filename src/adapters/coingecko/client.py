"""
CoinGecko API HTTP client.

API Documentation: https://www.coingecko.com/en/api/documentation
Free tier: roughly 30 calls/minute, no API key required.
"""

import json
from typing import Any, Optional

import httpx

from src.infrastructure.config import Settings
from src.infrastructure.logging import get_logger

logger = get_logger(__name__)


class CoinGeckoAPIError(Exception):
    """Exception for CoinGecko API errors."""
    
    def __init__(self, status: int, message: str, response: Optional[Any] = None):
        self.status = status
        self.message = message
        self.response = response
        super().__init__(f"CoinGecko API Error [{status}]: {message}")
    
    @property
    def is_rate_limited(self) -> bool:
        return self.status == 429


class ProviderConnectionError(CoinGeckoAPIError):
    """Raised when the provider cannot be reached at all."""
    
    def __init__(self, message: str):
        super().__init__(0, message)


class PingFailedError(CoinGeckoAPIError):
    """Raised when the connectivity check fails."""
    
    def __init__(self, message: str = "failed to ping"):
        super().__init__(0, message)


class NotFoundError(CoinGeckoAPIError):
    """Raised when a price lookup has no entry for the requested currency."""
    
    def __init__(self, message: str = "not found"):
        super().__init__(404, message)


class CoinGeckoClient:
    """
    HTTP client for CoinGecko API v3.
    
    Handles the optional API key header and maps transport and HTTP failures
    to CoinGeckoAPIError. Does not retry.
    """
    
    def __init__(self, settings: Settings):
        """
        Initialize CoinGecko client.
        
        Args:
            settings: Application settings with base URL and API key.
        """
        self.settings = settings
        self.base_url = settings.coingecko_base_url.rstrip("/")
        self._client: Optional[httpx.AsyncClient] = None
    
    async def __aenter__(self) -> "CoinGeckoClient":
        """Async context manager entry."""
        self._client = self._create_client()
        return self
    
    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
    
    def _create_client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.settings.coingecko_api_key:
            headers["x-cg-demo-api-key"] = self.settings.coingecko_api_key
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(self.settings.request_timeout_seconds),
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )
    
    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, ensuring it's initialized."""
        if self._client is None or self._client.is_closed:
            self._client = self._create_client()
        return self._client
    
    @staticmethod
    def _clean_params(params: Optional[dict[str, Any]]) -> dict[str, Any]:
        """Drop None values and join list values with commas."""
        cleaned: dict[str, Any] = {}
        for key, value in (params or {}).items():
            if value is None:
                continue
            if isinstance(value, (list, tuple)):
                if not value:
                    continue
                value = ",".join(str(v) for v in value)
            elif isinstance(value, bool):
                value = "true" if value else "false"
            cleaned[key] = value
        return cleaned
    
    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """
        Make a GET request.
        
        Args:
            path: API endpoint path (e.g., "/coins/markets")
            params: Query parameters; lists become comma-separated
        
        Returns:
            Parsed JSON response.
        
        Raises:
            ProviderConnectionError: If the request could not be sent.
            CoinGeckoAPIError: If the API returns an error status.
        """
        query = self._clean_params(params)
        logger.debug("GET request", path=path, params=query)
        
        try:
            response = await self.client.get(path, params=query)
        except httpx.TransportError as e:
            logger.warning("Request failed", path=path, error=str(e))
            raise ProviderConnectionError(f"{type(e).__name__}: {e}") from e
        
        return self._handle_response(response)
    
    def _handle_response(self, response: httpx.Response) -> Any:
        """
        Handle API response and raise errors if needed.
        
        Args:
            response: HTTP response object
        
        Returns:
            Parsed response data.
        
        Raises:
            CoinGeckoAPIError: On non-2xx status or unparsable body.
        """
        if response.is_error:
            message = response.reason_phrase or "HTTP error"
            body: Optional[Any] = None
            try:
                body = response.json()
                if isinstance(body, dict):
                    status = body.get("status")
                    if isinstance(status, dict) and status.get("error_message"):
                        message = status["error_message"]
                    elif body.get("error"):
                        message = str(body["error"])
            except json.JSONDecodeError:
                body = response.text
            if response.status_code == 429:
                logger.warning("CoinGecko rate limit exceeded")
            logger.error("API error", status=response.status_code, message=message)
            raise CoinGeckoAPIError(response.status_code, message, body)
        
        try:
            return response.json()
        except json.JSONDecodeError as e:
            logger.error("Failed to parse response", status=response.status_code)
            raise CoinGeckoAPIError(response.status_code, f"Failed to parse response: {e}")
    
    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
