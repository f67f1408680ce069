"""Async EastMoney datacenter client for A-share F10 data."""

from __future__ import annotations

from typing import Any

import httpx

from models import (
    REPORT_TYPE_YEAR,
    CashflowData,
    CompanyProfile,
    FinaPublishDate,
    FinaReport,
    FreeHolder,
    GincomeData,
    OrgRating,
    PEPoint,
    ProfitPredict,
    SecurityInfo,
    ValuationAssessment,
)


class EastMoneyError(Exception):
    """Raised when the EastMoney datacenter returns an error."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class EastMoneyClient:
    """Async HTTP client for the EastMoney datacenter report API.

    Every data category is a ``reportName`` on the same endpoint, filtered
    by security code. No retries and no caching: each query hits upstream.
    """

    BASE_URL = "https://datacenter.eastmoney.com"
    REPORT_PATH = "/securities/api/data/v1/get"

    # Returned with success=false when a filter matches no rows.
    CODE_EMPTY = 9201

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
        """Make a GET request to the datacenter.

        Raises:
            EastMoneyError: On HTTP errors or transport failures
        """
        try:
            resp = await self._get_client().get(path, params=params)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise EastMoneyError(
                f"EastMoney API error {e.response.status_code}: {e.response.text[:200]}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise EastMoneyError(f"Request failed: {e}") from e

        return resp.json()

    async def query_report(
        self,
        report_name: str,
        filter_expr: str,
        *,
        sort_columns: str = "",
        sort_types: str = "-1",
        page_size: int = 200,
    ) -> list[dict]:
        """Fetch the rows of one datacenter report.

        Returns:
            Raw row dicts (empty when the report has no matching rows)

        Raises:
            EastMoneyError: On transport errors or an unsuccessful envelope
        """
        params = {
            "reportName": report_name,
            "columns": "ALL",
            "filter": filter_expr,
            "pageNumber": 1,
            "pageSize": page_size,
            "source": "HSF10",
            "client": "PC",
        }
        if sort_columns:
            params["sortColumns"] = sort_columns
            params["sortTypes"] = sort_types

        data = await self.get(self.REPORT_PATH, params=params)
        if not isinstance(data, dict):
            raise EastMoneyError(f"{report_name}: unexpected response type {type(data).__name__}")

        if not data.get("success"):
            if data.get("code") == self.CODE_EMPTY:
                return []
            raise EastMoneyError(f"{report_name}: {data.get('message') or 'unknown error'}")

        result = data.get("result") or {}
        rows = result.get("data") or []
        return [row for row in rows if isinstance(row, dict)]

    # ------------------------------------------------------------------
    # Query operations, one per data category
    # ------------------------------------------------------------------

    async def query_security_info(self, secucode: str) -> SecurityInfo | None:
        """Quote and selector fields for one security, or None if unknown."""
        rows = await self.query_report("RPTA_APP_STOCKSELECT", f'(SECUCODE="{secucode}")', page_size=1)
        if not rows:
            return None
        return SecurityInfo.model_validate(rows[0])

    async def query_historical_fina_main_data(self, secucode: str) -> list[FinaReport]:
        """Main financial indicators for every reporting period, newest first."""
        rows = await self.query_report(
            "RPT_F10_FINANCE_MAINFINADATA",
            f'(SECUCODE="{secucode}")',
            sort_columns="REPORT_DATE",
        )
        return [FinaReport.model_validate(r) for r in rows]

    async def query_historical_pe_list(self, secucode: str) -> list[PEPoint]:
        rows = await self.query_report(
            "RPT_VALUEANALYSIS_DET",
            f'(SECUCODE="{secucode}")',
            sort_columns="TRADE_DATE",
            page_size=1000,
        )
        return [PEPoint.model_validate(r) for r in rows]

    async def query_valuation_status(self, secucode: str) -> dict[str, str]:
        """Valuation level per indicator, e.g. {"市盈率": "估值较低"}."""
        rows = await self.query_report("RPT_VALUATIONSTATUS", f'(SECUCODE="{secucode}")')
        return {
            str(r["INDICATOR_NAME"]): str(r.get("VALUATION_STATUS") or "")
            for r in rows
            if r.get("INDICATOR_NAME")
        }

    async def query_company_profile(self, secucode: str) -> CompanyProfile:
        rows = await self.query_report("RPT_F10_BASIC_ORGINFO", f'(SECUCODE="{secucode}")', page_size=1)
        if not rows:
            return CompanyProfile()
        return CompanyProfile.model_validate(rows[0])

    async def query_fina_publish_date_list(self, security_code: str) -> list[FinaPublishDate]:
        """Scheduled and actual report disclosure dates, newest period first."""
        rows = await self.query_report(
            "RPT_PUBLIC_BS_APPOIN",
            f'(SECURITY_CODE="{security_code}")',
            sort_columns="REPORT_DATE",
            page_size=10,
        )
        return [FinaPublishDate.model_validate(r) for r in rows]

    async def query_org_rating(self, secucode: str) -> list[OrgRating]:
        rows = await self.query_report("RPT_RES_ORGRATING", f'(SECUCODE="{secucode}")')
        return [OrgRating.model_validate(r) for r in rows]

    async def query_profit_predict(self, secucode: str) -> list[ProfitPredict]:
        rows = await self.query_report(
            "RPT_RES_PROFITPREDICT",
            f'(SECUCODE="{secucode}")',
            sort_columns="PREDICT_YEAR",
            sort_types="1",
        )
        return [ProfitPredict.model_validate(r) for r in rows]

    async def query_valuation_assessment(self, secucode: str) -> ValuationAssessment:
        rows = await self.query_report("RPT_VALUE_ASSESSMENT", f'(SECUCODE="{secucode}")', page_size=1)
        if not rows:
            return ValuationAssessment()
        return ValuationAssessment.model_validate(rows[0])

    async def query_fina_gincome_data(self, secucode: str) -> list[GincomeData]:
        """Annual income statements, newest first."""
        rows = await self.query_report(
            "RPT_F10_FINANCE_GINCOME",
            f'(SECUCODE="{secucode}")(REPORT_TYPE="{REPORT_TYPE_YEAR}")',
            sort_columns="REPORT_DATE",
            page_size=10,
        )
        return [GincomeData.model_validate(r) for r in rows]

    async def query_fina_cashflow_data(self, secucode: str) -> list[CashflowData]:
        """Annual cash-flow statements, newest first."""
        rows = await self.query_report(
            "RPT_F10_FINANCE_GCASHFLOW",
            f'(SECUCODE="{secucode}")(REPORT_TYPE="{REPORT_TYPE_YEAR}")',
            sort_columns="REPORT_DATE",
            page_size=10,
        )
        return [CashflowData.model_validate(r) for r in rows]

    async def query_free_holders(self, secucode: str) -> list[FreeHolder]:
        """Top ten free-float holders of the latest disclosed period."""
        rows = await self.query_report(
            "RPT_F10_EH_FREEHOLDERS",
            f'(SECUCODE="{secucode}")',
            sort_columns="END_DATE,HOLDER_RANK",
            sort_types="-1,1",
            page_size=10,
        )
        return [FreeHolder.model_validate(r) for r in rows]
