"""Reasonable-price estimate, PEG, and price volatility."""

from __future__ import annotations

import logging
import math
import statistics
from dataclasses import dataclass
from datetime import date

from models import (
    PEG_INVALID,
    FinaReport,
    PEPoint,
    avg_revenue_increase_ratio,
    get_report,
    value_list,
)

logger = logging.getLogger(__name__)

# Growth (percent) fed into the price formula never exceeds this.
MAX_GROWTH_RATE = 50.0
# Latest-year EPS growth (percent) above which the spike is discounted.
EXPLOSIVE_GROWTH_THRESHOLD = 100.0
EXPLOSIVE_GROWTH_ADJUSTMENT = 0.7
EPS_AVERAGE_YEARS = 3

# Trading sessions per period, for annualizing volatility.
VOLATILITY_PERIODS = {"YEAR": 250, "MONTH": 20, "WEEK": 5}


@dataclass
class ValuationEstimate:
    right_price: float
    price_space: float
    last_year_right_price: float
    pe_median: float
    base_eps: float
    growth_rate: float
    explosive_adjustment: float
    fallback_used: bool = False


def _median(values: list[float]) -> float | None:
    clean = [v for v in values if v is not None and isinstance(v, (int, float)) and math.isfinite(v)]
    if not clean:
        return None
    return statistics.median(clean)


def _price_space(right_price: float, price: float) -> float:
    """Percent gap between the reasonable and current price."""
    if price <= 0:
        return 0.0
    return (right_price - price) / price * 100


def _cap_growth(growth: float) -> float:
    return min(growth, MAX_GROWTH_RATE)


def _is_explosive(eps_history: list[float]) -> bool:
    if len(eps_history) < 2:
        return False
    latest, prior = eps_history[0], eps_history[1]
    if prior == 0:
        return latest > 0
    return (latest - prior) / prior * 100 > EXPLOSIVE_GROWTH_THRESHOLD


def calc_peg(pe: float, growth_rate: float, name: str = "") -> float:
    """PE divided by the 3-year net-profit CAGR; ``PEG_INVALID`` when meaningless."""
    if growth_rate == 0:
        logger.info("[%s] 3y net profit growth is 0, PEG set to %s", name, PEG_INVALID)
        return PEG_INVALID
    if growth_rate < 0:
        logger.info("[%s] 3y net profit growth is negative (%.2f%%), PEG set to %s", name, growth_rate, PEG_INVALID)
        return PEG_INVALID

    try:
        peg = pe / growth_rate
    except (ZeroDivisionError, OverflowError):
        peg = math.nan
    if not math.isfinite(peg):
        logger.warning("[%s] PEG is not finite (PE=%.2f, growth=%.2f%%), set to %s", name, pe, growth_rate, PEG_INVALID)
        return PEG_INVALID

    logger.info("[%s] PEG=%.2f (PE=%.2f / growth=%.2f%%)", name, peg, pe, growth_rate)
    return peg


def estimate_reasonable_price(
    fina: list[FinaReport],
    pe_list: list[PEPoint],
    price: float,
    today: date | None = None,
) -> ValuationEstimate | None:
    """Estimate a reasonable price from annual EPS, median PE and revenue growth.

    reasonable = median PE x base EPS x (1 + capped growth) x explosive adjustment

    Base EPS is the mean of the last three annual EPS values (or the latest
    annual EPS when fewer exist). If last year's annual report is not out
    yet, every year in the window shifts back by one. A non-finite or
    non-positive result falls back to median PE x latest annual EPS.

    Returns:
        The estimate, or None when PE history or annual reports are missing
    """
    if not fina:
        return None

    this_year = (today or date.today()).year
    last_report = get_report(fina, this_year - 1)
    before_last_report = get_report(fina, this_year - 2)
    this_growth = avg_revenue_increase_ratio(fina, this_year)
    last_growth = avg_revenue_increase_ratio(fina, this_year - 1)

    # Early in the year last year's annual report may not be published yet
    if last_report is None:
        logger.debug("No annual report for %d, shifting back a year", this_year - 1)
        last_report = before_last_report
        before_last_report = get_report(fina, this_year - 3)
        this_growth = avg_revenue_increase_ratio(fina, this_year - 1)
        last_growth = avg_revenue_increase_ratio(fina, this_year - 2)

    pe_median = _median([p.pe_ttm for p in pe_list])
    if pe_median is None:
        logger.warning("Empty PE history, cannot estimate reasonable price")
        return None

    eps_history = value_list(fina, "epsjb", EPS_AVERAGE_YEARS)
    if len(eps_history) >= EPS_AVERAGE_YEARS:
        base_eps = sum(eps_history) / len(eps_history)
        logger.debug("Using %d-year average EPS %s from %s", EPS_AVERAGE_YEARS, base_eps, eps_history)
    elif last_report is not None:
        base_eps = last_report.epsjb
        logger.debug("Using last annual EPS %s", base_eps)
    else:
        logger.warning("No annual report available, cannot estimate reasonable price")
        return None

    growth = _cap_growth(this_growth)
    if growth != this_growth:
        logger.debug("Growth rate capped from %s%% to %s%%", this_growth, growth)

    adjustment = 1.0
    if _is_explosive(eps_history):
        adjustment = EXPLOSIVE_GROWTH_ADJUSTMENT
        logger.debug("Explosive EPS growth %s, applying adjustment %s", eps_history[:2], adjustment)

    right_price = pe_median * base_eps * (1 + growth / 100.0) * adjustment
    price_space = _price_space(right_price, price)

    # Same method one year earlier, kept only to sanity-check the estimate
    last_year_right_price = 0.0
    if len(eps_history) >= EPS_AVERAGE_YEARS:
        last_base_eps = (eps_history[1] + eps_history[2]) / 2.0
    elif before_last_report is not None:
        last_base_eps = before_last_report.epsjb
    else:
        last_base_eps = None
    if last_base_eps is not None:
        last_year_right_price = pe_median * last_base_eps * (1 + _cap_growth(last_growth) / 100.0)

    fallback_used = False
    if not math.isfinite(right_price) or right_price <= 0:
        logger.warning("Invalid reasonable price %s, using fallback", right_price)
        latest_eps = last_report.epsjb if last_report is not None else eps_history[0]
        right_price = pe_median * latest_eps
        price_space = _price_space(right_price, price)
        fallback_used = True

    logger.debug(
        "Reasonable price: base_eps=%s growth=%s%% adjustment=%s price=%s",
        base_eps, growth, adjustment, right_price,
    )
    return ValuationEstimate(
        right_price=right_price,
        price_space=price_space,
        last_year_right_price=last_year_right_price,
        pe_median=pe_median,
        base_eps=base_eps,
        growth_rate=growth,
        explosive_adjustment=adjustment,
        fallback_used=fallback_used,
    )


def historical_volatility(prices: list[float], period: str = "YEAR") -> float:
    """Annualized (or per-period) stdev of daily log returns.

    Uses the trailing window of sessions matching ``period``.

    Raises:
        ValueError: On an unknown period or fewer than three usable prices
    """
    if period not in VOLATILITY_PERIODS:
        raise ValueError(f"Invalid period '{period}'. Must be one of: {list(VOLATILITY_PERIODS)}")
    sessions = VOLATILITY_PERIODS[period]

    window = [p for p in prices[-(sessions + 1):] if p and p > 0]
    if len(window) < 3:
        raise ValueError(f"Need at least 3 positive prices, got {len(window)}")

    returns = [math.log(cur / prev) for prev, cur in zip(window, window[1:])]
    return statistics.stdev(returns) * math.sqrt(sessions)
