"""Async eniu.com client for daily price history."""

from __future__ import annotations

from typing import Any

import httpx

from models import HistoricalPrice


class EniuError(Exception):
    """Raised when the eniu API returns an error."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


def eniu_code(secucode: str) -> str:
    """Convert "600519.SH" to eniu's "sh600519"."""
    code, _, market = secucode.partition(".")
    return f"{market.lower()}{code}"


class EniuClient:
    """Async HTTP client for eniu.com price charts."""

    BASE_URL = "https://eniu.com"

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.BASE_URL,
                timeout=self.timeout,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def get(self, path: str, params: dict | None = None) -> Any:
        """Make a GET request to eniu.

        Raises:
            EniuError: On HTTP errors or transport failures
        """
        try:
            resp = await self._get_client().get(path, params=params)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise EniuError(
                f"Eniu API error {e.response.status_code}: {e.response.text[:200]}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise EniuError(f"Request failed: {e}") from e

        return resp.json()

    async def query_historical_stock_price(self, secucode: str) -> HistoricalPrice:
        """Daily closing prices, oldest first.

        Raises:
            EniuError: On transport errors or mismatched date/price series
        """
        data = await self.get(f"/chart/pricea/{eniu_code(secucode)}/t/all")
        if not isinstance(data, dict):
            raise EniuError(f"Unexpected price payload for {secucode}")

        prices = HistoricalPrice.model_validate(data)
        if len(prices.dates) != len(prices.price):
            raise EniuError(
                f"Price series length mismatch for {secucode}: "
                f"{len(prices.dates)} dates vs {len(prices.price)} prices"
            )
        return prices
