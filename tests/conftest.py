"""Shared test fixtures."""

from __future__ import annotations

from datetime import date

import httpx
import pytest
import pytest_asyncio
import respx

from eastmoney_client import EastMoneyClient
from eniu_client import EniuClient
from tools.aggregator import Providers
from zszx_client import ZszxClient

SECUCODE = "600519.SH"
TODAY = date(2025, 5, 1)

REPORT_URL = "https://datacenter.eastmoney.com/securities/api/data/v1/get"
ENIU_URL = "https://eniu.com/chart/pricea/sh600519/t/all"
ZSZX_URL = "https://zszx.zszq.com/api/stock/moneyflow/history"


def envelope(rows: list[dict]) -> dict:
    """Wrap rows in the datacenter success envelope."""
    return {
        "version": "d1c1b4d7",
        "result": {"pages": 1, "data": rows, "count": len(rows)},
        "success": True,
        "message": "ok",
        "code": 0,
    }


EMPTY_ENVELOPE = {"version": None, "result": None, "success": False, "message": "返回数据为空", "code": 9201}


# --- Sample response data ---

SECURITY_INFO = [{
    "SECUCODE": "600519.SH",
    "SECURITY_CODE": "600519",
    "SECURITY_NAME_ABBR": "贵州茅台",
    "NEW_PRICE": 1500.0,
    "PE9": 25.0,
    "INDUSTRY": "食品饮料",
    "ROE_WEIGHT": 36.0,
    "NETPROFIT_GROWTHRATE_3Y": 18.0,
    "NETPROFIT_YOY_RATIO": 15.4,
    "TOTAL_MARKET_CAP": 1884000000000,
}]

FINA_MAIN_DATA = [
    {"REPORT_DATE": "2025-03-31 00:00:00", "REPORT_TYPE": "一季报", "REPORT_DATE_NAME": "2025一季报", "ORG_TYPE": "通用", "EPSJB": 21.38, "ROEJQ": 9.0, "PARENTNETPROFIT": 26847000000, "TOTALOPERATEREVE": 51443000000, "TOTALOPERATEREVETZ": 10.0, "ZCFZL": 15.0},
    {"REPORT_DATE": "2024-12-31 00:00:00", "REPORT_TYPE": "年报", "REPORT_DATE_NAME": "2024年报", "ORG_TYPE": "通用", "EPSJB": 68.0, "ROEJQ": 36.0, "PARENTNETPROFIT": 86000000000, "TOTALOPERATEREVE": 174144000000, "TOTALOPERATEREVETZ": 15.7, "ZCFZL": 20.0},
    {"REPORT_DATE": "2023-12-31 00:00:00", "REPORT_TYPE": "年报", "REPORT_DATE_NAME": "2023年报", "ORG_TYPE": "通用", "EPSJB": 59.5, "ROEJQ": 34.2, "PARENTNETPROFIT": 74700000000, "TOTALOPERATEREVE": 150560000000, "TOTALOPERATEREVETZ": 18.0, "ZCFZL": 18.0},
    {"REPORT_DATE": "2022-12-31 00:00:00", "REPORT_TYPE": "年报", "REPORT_DATE_NAME": "2022年报", "ORG_TYPE": "通用", "EPSJB": 49.9, "ROEJQ": 30.3, "PARENTNETPROFIT": 62700000000, "TOTALOPERATEREVE": 127554000000, "TOTALOPERATEREVETZ": 16.5, "ZCFZL": 19.4},
    {"REPORT_DATE": "2021-12-31 00:00:00", "REPORT_TYPE": "年报", "REPORT_DATE_NAME": "2021年报", "ORG_TYPE": "通用", "EPSJB": 41.8, "ROEJQ": 29.9, "PARENTNETPROFIT": 52400000000, "TOTALOPERATEREVE": 109464000000, "TOTALOPERATEREVETZ": 11.7, "ZCFZL": 22.8},
    {"REPORT_DATE": "2020-12-31 00:00:00", "REPORT_TYPE": "年报", "REPORT_DATE_NAME": "2020年报", "ORG_TYPE": "通用", "EPSJB": 37.2, "ROEJQ": 31.4, "PARENTNETPROFIT": 46700000000, "TOTALOPERATEREVE": 97993000000, "TOTALOPERATEREVETZ": 10.3, "ZCFZL": 21.4},
]

PE_LIST = [
    {"TRADE_DATE": "2025-04-30 00:00:00", "PE_TTM": 20.0},
    {"TRADE_DATE": "2025-04-29 00:00:00", "PE_TTM": 25.0},
    {"TRADE_DATE": "2025-04-28 00:00:00", "PE_TTM": 30.0},
    {"TRADE_DATE": "2025-04-25 00:00:00", "PE_TTM": 35.0},
    {"TRADE_DATE": "2025-04-24 00:00:00", "PE_TTM": 40.0},
]

VALUATION_STATUS = [
    {"INDICATOR_NAME": "市盈率", "VALUATION_STATUS": "估值较低"},
    {"INDICATOR_NAME": "市净率", "VALUATION_STATUS": "估值中等"},
]

COMPANY_PROFILE = [{
    "ORG_NAME": "贵州茅台酒股份有限公司",
    "ORG_PROFILE": "公司主营茅台酒及系列酒的生产与销售。",
    "MAIN_BUSINESS": "茅台酒及系列酒的生产与销售",
    "INDUSTRYCSRC1": "制造业-酒、饮料和精制茶制造业",
    "CHAIRMAN": "张德芹",
    "FOUND_DATE": "1999-11-20 00:00:00",
    "LISTING_DATE": "2001-08-27 00:00:00",
    "ORG_WEB": "www.moutaichina.com",
}]

PUBLISH_DATES = [
    {"REPORT_DATE": "2025-06-30 00:00:00", "APPOINT_PUBLISH_DATE": "2025-08-13 00:00:00", "ACTUAL_PUBLISH_DATE": None},
    {"REPORT_DATE": "2025-03-31 00:00:00", "APPOINT_PUBLISH_DATE": "2025-04-26 00:00:00", "ACTUAL_PUBLISH_DATE": "2025-04-26 00:00:00"},
]

ORG_RATING = [{
    "DATE_TYPE": "近一月",
    "COMPRE_RATING": "买入",
    "RATING_ORG_NUM": 24,
    "RATING_BUY_NUM": 20,
    "RATING_ADD_NUM": 4,
    "RATING_NEUTRAL_NUM": 0,
    "RATING_REDUCE_NUM": 0,
    "RATING_SALE_NUM": 0,
}]

PROFIT_PREDICT = [
    {"PREDICT_YEAR": 2025, "EPS": 74.5, "PE": 20.1, "RATING_ORG_NUM": 24},
    {"PREDICT_YEAR": 2026, "EPS": 81.2, "PE": 18.5, "RATING_ORG_NUM": 22},
]

VALUATION_ASSESSMENT = [{"TOTAL_SCORE": 82.5, "INDUSTRY_RANK": 3, "INDUSTRY_TOTAL": 20, "VALUE_RATING": "低估"}]

GINCOME = [
    {"REPORT_DATE": "2024-12-31 00:00:00", "TOTAL_OPERATE_INCOME": 174144000000, "OPERATE_PROFIT": 119000000000, "NONBUSINESS_INCOME": 1000000000, "PARENT_NETPROFIT": 86000000000, "OPINION_TYPE": "标准无保留意见"},
    {"REPORT_DATE": "2023-12-31 00:00:00", "TOTAL_OPERATE_INCOME": 150560000000, "OPERATE_PROFIT": 103000000000, "NONBUSINESS_INCOME": 500000000, "PARENT_NETPROFIT": 74700000000, "OPINION_TYPE": "标准无保留意见"},
]

CASHFLOW = [
    {"REPORT_DATE": "2024-12-31 00:00:00", "NETCASH_OPERATE": 92400000000, "NETCASH_INVEST": -2000000000, "NETCASH_FINANCE": -70000000000},
    {"REPORT_DATE": "2023-12-31 00:00:00", "NETCASH_OPERATE": 66600000000, "NETCASH_INVEST": -9700000000, "NETCASH_FINANCE": -59100000000},
    {"REPORT_DATE": "2022-12-31 00:00:00", "NETCASH_OPERATE": 36700000000, "NETCASH_INVEST": -5000000000, "NETCASH_FINANCE": -56000000000},
]

FREE_HOLDERS = [
    {"HOLDER_RANK": 1, "HOLDER_NAME": "中国贵州茅台酒厂(集团)有限责任公司", "HOLD_NUM": 678291955, "FREE_HOLDNUM_RATIO": 54.0, "HOLD_NUM_CHANGE": "不变"},
    {"HOLDER_RANK": 2, "HOLDER_NAME": "香港中央结算有限公司", "HOLD_NUM": 90000000, "FREE_HOLDNUM_RATIO": 7.16, "HOLD_NUM_CHANGE": "-1200000"},
]

ENIU_PRICES = {
    "date": [f"2025-04-{d:02d}" for d in range(1, 31)],
    "price": [1500.0 + (i % 5) * 10 - (i % 3) * 7 for i in range(30)],
}

ZSZX_INFLOWS = {
    "code": 0,
    "msg": "",
    "data": [
        {"date": "2025-04-29", "mainNetInflow": -325000000.0},
        {"date": "2025-04-30", "mainNetInflow": 181000000.0},
    ],
}

REPORTS = {
    "RPTA_APP_STOCKSELECT": SECURITY_INFO,
    "RPT_F10_FINANCE_MAINFINADATA": FINA_MAIN_DATA,
    "RPT_VALUEANALYSIS_DET": PE_LIST,
    "RPT_VALUATIONSTATUS": VALUATION_STATUS,
    "RPT_F10_BASIC_ORGINFO": COMPANY_PROFILE,
    "RPT_PUBLIC_BS_APPOIN": PUBLISH_DATES,
    "RPT_RES_ORGRATING": ORG_RATING,
    "RPT_RES_PROFITPREDICT": PROFIT_PREDICT,
    "RPT_VALUE_ASSESSMENT": VALUATION_ASSESSMENT,
    "RPT_F10_FINANCE_GINCOME": GINCOME,
    "RPT_F10_FINANCE_GCASHFLOW": CASHFLOW,
    "RPT_F10_EH_FREEHOLDERS": FREE_HOLDERS,
}


def mock_providers(
    api: respx.Router,
    *,
    failing: tuple[str, ...] = (),
    empty: tuple[str, ...] = (),
) -> dict[str, respx.Route]:
    """Route every provider call and return the routes by source name.

    Source names are the report names plus "eniu" and "zszx". Names in
    ``failing`` answer HTTP 500; report names in ``empty`` answer the
    datacenter's no-data envelope.
    """
    routes = {}
    for report_name, rows in REPORTS.items():
        route = api.get(REPORT_URL, params__contains={"reportName": report_name})
        if report_name in failing:
            route.mock(return_value=httpx.Response(500, text="error"))
        elif report_name in empty:
            route.mock(return_value=httpx.Response(200, json=EMPTY_ENVELOPE))
        else:
            route.mock(return_value=httpx.Response(200, json=envelope(rows)))
        routes[report_name] = route

    routes["eniu"] = api.get(ENIU_URL)
    if "eniu" in failing:
        routes["eniu"].mock(return_value=httpx.Response(500, text="error"))
    else:
        routes["eniu"].mock(return_value=httpx.Response(200, json=ENIU_PRICES))

    routes["zszx"] = api.get(ZSZX_URL)
    if "zszx" in failing:
        routes["zszx"].mock(return_value=httpx.Response(500, text="error"))
    else:
        routes["zszx"].mock(return_value=httpx.Response(200, json=ZSZX_INFLOWS))
    return routes


@pytest.fixture
def mock_api():
    """Start respx mock for every provider host."""
    with respx.mock(assert_all_called=False) as api:
        yield api


@pytest_asyncio.fixture
async def providers():
    """Provider clients with default settings, closed after the test."""
    p = Providers(eastmoney=EastMoneyClient(), eniu=EniuClient(), zszx=ZszxClient())
    yield p
    await p.close()
