"""Async Zhongshan Securities (zszx) client for capital-flow data."""

from __future__ import annotations

from typing import Any

import httpx

from models import NetInflow


class ZszxError(Exception):
    """Raised when the zszx API returns an error."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


# Exchange suffix to zszx market id.
MARKET_IDS = {"SH": "1", "SZ": "0", "BJ": "0"}


class ZszxClient:
    """Async HTTP client for the zszx money-flow API."""

    BASE_URL = "https://zszx.zszq.com"

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
        """Make a GET request to zszx.

        Raises:
            ZszxError: On API errors or invalid responses
        """
        try:
            resp = await self._get_client().get(path, params=params)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ZszxError(
                f"Zszx API error {e.response.status_code}: {e.response.text[:200]}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise ZszxError(f"Request failed: {e}") from e

        data = resp.json()

        # zszx reports errors in-band with a non-zero code
        if isinstance(data, dict) and str(data.get("code", "0")) != "0":
            raise ZszxError(data.get("msg") or f"zszx error code {data.get('code')}")

        return data

    async def query_main_money_net_inflows(self, secucode: str, start: str, end: str) -> list[NetInflow]:
        """Daily main-force net inflows between two YYYY-MM-DD dates."""
        code, _, market = secucode.partition(".")
        data = await self.get(
            "/api/stock/moneyflow/history",
            params={
                "stkcode": code,
                "mkt": MARKET_IDS.get(market.upper(), "0"),
                "startDate": start,
                "endDate": end,
            },
        )
        rows = data.get("data") if isinstance(data, dict) else None
        return [NetInflow.model_validate(r) for r in rows or [] if isinstance(r, dict)]
