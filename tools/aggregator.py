"""Concurrent fan-out/fan-in that builds a SecurityProfile from every provider.

Each unit of work owns a fixed, disjoint set of profile fields. Units write
only into their own output mapping; once every unit has finished, the
caller's coroutine merges the outputs into the profile one at a time and
then runs the derived computations and scoring.

Building a profile never fails because an upstream query failed: the
affected fields stay empty and a ``FetchFailure`` is returned alongside
the profile. Only an unresolvable identifier is fatal.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any

from models import FetchFailure, ProfileResult, SecurityInfo, SecurityProfile
from tools.scoring import score_profile
from tools.valuation import calc_peg, estimate_reasonable_price, historical_volatility

if TYPE_CHECKING:
    from eastmoney_client import EastMoneyClient
    from eniu_client import EniuClient
    from zszx_client import ZszxClient

logger = logging.getLogger(__name__)

SECUCODE_RE = re.compile(r"^\d{6}\.(SH|SZ|BJ)$")

MONEY_FLOW_DAYS = 60
RANK_KEYS = ("roe", "price_space")


class InvalidSecurityError(ValueError):
    """Raised when an identifier is malformed or matches no security."""


@dataclass
class Providers:
    eastmoney: EastMoneyClient
    eniu: EniuClient
    zszx: ZszxClient

    async def close(self) -> None:
        await asyncio.gather(self.eastmoney.close(), self.eniu.close(), self.zszx.close())


UnitFn = Callable[[Providers, SecurityInfo, dict[str, Any], date], Awaitable[None]]


@dataclass(frozen=True)
class Unit:
    name: str
    provider: str
    owns: frozenset[str]
    fn: UnitFn


UNITS: list[Unit] = []


def unit(name: str, provider: str, owns: tuple[str, ...]) -> Callable[[UnitFn], UnitFn]:
    """Register a unit of work that owns ``owns`` exclusively.

    Raises:
        ValueError: If a field is unknown or already owned by another unit
    """

    def decorator(fn: UnitFn) -> UnitFn:
        unknown = set(owns) - set(SecurityProfile.model_fields)
        if unknown:
            raise ValueError(f"Unit '{name}' claims unknown fields: {sorted(unknown)}")
        for other in UNITS:
            overlap = other.owns & set(owns)
            if overlap:
                raise ValueError(f"Unit '{name}' claims fields owned by '{other.name}': {sorted(overlap)}")
        UNITS.append(Unit(name=name, provider=provider, owns=frozenset(owns), fn=fn))
        return fn

    return decorator


# --- Units of work ---


@unit("fundamentals", "eastmoney", owns=("historical_fina_main_data", "historical_pe_list"))
async def _fundamentals(providers: Providers, info: SecurityInfo, out: dict[str, Any], today: date) -> None:
    fina = await providers.eastmoney.query_historical_fina_main_data(info.secucode)
    if not fina:
        logger.warning("[%s] historical financial data is empty", info.secucode)
        return
    logger.info("[%s] %d financial reports, latest %s", info.secucode, len(fina), fina[0].report_date)
    out["historical_fina_main_data"] = fina

    # PE history is only useful once there are reports to value
    out["historical_pe_list"] = await providers.eastmoney.query_historical_pe_list(info.secucode)


@unit("valuation_status", "eastmoney", owns=("valuation_map",))
async def _valuation_status(providers: Providers, info: SecurityInfo, out: dict[str, Any], today: date) -> None:
    out["valuation_map"] = await providers.eastmoney.query_valuation_status(info.secucode)


@unit("historical_price", "eniu", owns=("historical_price",))
async def _historical_price(providers: Providers, info: SecurityInfo, out: dict[str, Any], today: date) -> None:
    out["historical_price"] = await providers.eniu.query_historical_stock_price(info.secucode)


@unit("company_profile", "eastmoney", owns=("company_profile",))
async def _company_profile(providers: Providers, info: SecurityInfo, out: dict[str, Any], today: date) -> None:
    out["company_profile"] = await providers.eastmoney.query_company_profile(info.secucode)


@unit(
    "publish_dates",
    "eastmoney",
    owns=("fina_appoint_publish_date", "fina_actual_publish_date", "fina_report_date"),
)
async def _publish_dates(providers: Providers, info: SecurityInfo, out: dict[str, Any], today: date) -> None:
    security_code = info.security_code or info.secucode.partition(".")[0]
    dates = await providers.eastmoney.query_fina_publish_date_list(security_code)
    if dates:
        out["fina_appoint_publish_date"] = dates[0].appoint_publish_date
        out["fina_actual_publish_date"] = dates[0].actual_publish_date
        out["fina_report_date"] = dates[0].report_date


@unit("org_rating", "eastmoney", owns=("org_rating_list",))
async def _org_rating(providers: Providers, info: SecurityInfo, out: dict[str, Any], today: date) -> None:
    out["org_rating_list"] = await providers.eastmoney.query_org_rating(info.secucode)


@unit("profit_predict", "eastmoney", owns=("profit_predict_list",))
async def _profit_predict(providers: Providers, info: SecurityInfo, out: dict[str, Any], today: date) -> None:
    out["profit_predict_list"] = await providers.eastmoney.query_profit_predict(info.secucode)


@unit("valuation_assessment", "eastmoney", owns=("valuation_assessment",))
async def _valuation_assessment(providers: Providers, info: SecurityInfo, out: dict[str, Any], today: date) -> None:
    out["valuation_assessment"] = await providers.eastmoney.query_valuation_assessment(info.secucode)


@unit("gincome", "eastmoney", owns=("historical_gincome_list",))
async def _gincome(providers: Providers, info: SecurityInfo, out: dict[str, Any], today: date) -> None:
    out["historical_gincome_list"] = await providers.eastmoney.query_fina_gincome_data(info.secucode)


@unit("cashflow", "eastmoney", owns=("historical_cashflow_list",))
async def _cashflow(providers: Providers, info: SecurityInfo, out: dict[str, Any], today: date) -> None:
    out["historical_cashflow_list"] = await providers.eastmoney.query_fina_cashflow_data(info.secucode)


@unit("free_holders", "eastmoney", owns=("free_holders_top_10",))
async def _free_holders(providers: Providers, info: SecurityInfo, out: dict[str, Any], today: date) -> None:
    out["free_holders_top_10"] = await providers.eastmoney.query_free_holders(info.secucode)


@unit("money_flow", "zszx", owns=("main_money_net_inflows",))
async def _money_flow(providers: Providers, info: SecurityInfo, out: dict[str, Any], today: date) -> None:
    start = (today - timedelta(days=MONEY_FLOW_DAYS)).isoformat()
    out["main_money_net_inflows"] = await providers.zszx.query_main_money_net_inflows(
        info.secucode, start, today.isoformat()
    )


# --- Orchestration ---


async def _run_unit(
    u: Unit,
    providers: Providers,
    info: SecurityInfo,
    today: date,
    timeout: float | None,
) -> tuple[dict[str, Any], FetchFailure | None]:
    """Run one unit; errors and timeouts become a failure record, never an exception."""
    out: dict[str, Any] = {}
    try:
        await asyncio.wait_for(u.fn(providers, info, out, today), timeout)
    except asyncio.TimeoutError:
        error = f"timed out after {timeout}s"
    except Exception as e:
        error = str(e) or type(e).__name__
    else:
        return out, None

    logger.warning("[%s] unit %s failed: %s", info.secucode, u.name, error)
    missing = sorted(u.owns - set(out))
    return out, FetchFailure(unit=u.name, provider=u.provider, error=error, fields=missing)


def _derive(profile: SecurityProfile, today: date) -> None:
    """Fill the derived fields. Reads sections only after every unit has finished."""
    info = profile.base_info
    profile.peg = calc_peg(info.pe, info.netprofit_growthrate_3y, info.name)

    price = profile.current_price()
    estimate = estimate_reasonable_price(profile.historical_fina_main_data, profile.historical_pe_list, price, today)
    if estimate is not None:
        profile.right_price = estimate.right_price
        profile.price_space = estimate.price_space
        profile.last_year_right_price = estimate.last_year_right_price

    if profile.historical_price.price:
        try:
            profile.historical_volatility = historical_volatility(profile.historical_price.price, "YEAR")
        except ValueError as e:
            logger.warning("[%s] historical volatility unavailable: %s", info.secucode, e)

    if profile.historical_cashflow_list:
        cf = profile.historical_cashflow_list[0]
        profile.netcash_operate = cf.netcash_operate
        profile.netcash_invest = cf.netcash_invest
        profile.netcash_finance = cf.netcash_finance
        if cf.netcash_invest < 0:
            profile.netcash_free = cf.netcash_operate + cf.netcash_invest
        else:
            profile.netcash_free = cf.netcash_operate - cf.netcash_invest

    if profile.historical_gincome_list:
        gincome = profile.historical_gincome_list[0]
        denominator = gincome.operate_profit + gincome.nonbusiness_income
        profile.byys_ratio = gincome.operate_profit / denominator if denominator else 0.0
        profile.fina_report_opinion = gincome.opinion_type


async def resolve_security(client: EastMoneyClient, secucode: str) -> SecurityInfo:
    """Validate an identifier like "600519.SH" and load its base info.

    Raises:
        InvalidSecurityError: If the identifier is malformed, unknown, or
            its base info cannot be fetched
    """
    code = secucode.upper().strip()
    if not SECUCODE_RE.match(code):
        raise InvalidSecurityError(f"Malformed security identifier '{secucode}' (expected e.g. 600519.SH)")

    try:
        info = await client.query_security_info(code)
    except Exception as e:
        raise InvalidSecurityError(f"Could not resolve '{code}': {e}") from e
    if info is None:
        raise InvalidSecurityError(f"No security found for '{code}'")
    return info


async def build_profile(
    providers: Providers,
    info: SecurityInfo,
    *,
    timeout: float | None = None,
    today: date | None = None,
) -> ProfileResult:
    """Query every provider concurrently and assemble a scored profile.

    Args:
        providers: Provider clients
        info: Resolved base info (see ``resolve_security``)
        timeout: Seconds each unit may run before it is abandoned (None = no limit)
        today: Reference date for report windows and money-flow range

    Returns:
        ProfileResult with the profile and any per-unit failures
    """
    today = today or date.today()
    profile = SecurityProfile(base_info=info)

    outcomes = await asyncio.gather(
        *(_run_unit(u, providers, info, today, timeout) for u in UNITS)
    )

    failures: list[FetchFailure] = []
    for u, (out, failure) in zip(UNITS, outcomes):
        stray = set(out) - u.owns
        if stray:
            raise RuntimeError(f"Unit '{u.name}' wrote fields it does not own: {sorted(stray)}")
        for name, value in out.items():
            setattr(profile, name, value)
        if failure is not None:
            failures.append(failure)

    _derive(profile, today)
    profile.quality_score = score_profile(profile)

    return ProfileResult(profile=profile, failures=failures)


def rank_profiles(profiles: list[SecurityProfile], by: str = "price_space") -> list[SecurityProfile]:
    """Stable sort, highest first, by ROE weight or price-gap percentage."""
    if by == "roe":
        return sorted(profiles, key=lambda p: p.base_info.roe_weight, reverse=True)
    if by == "price_space":
        return sorted(profiles, key=lambda p: p.price_space, reverse=True)
    raise ValueError(f"Invalid sort key '{by}'. Must be one of: {list(RANK_KEYS)}")
