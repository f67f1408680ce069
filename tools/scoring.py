"""Ten-factor quality score computed from a populated security profile."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass

from models import QualityScore, SecurityProfile, value_list

logger = logging.getLogger(__name__)

ROE_YEARS = 5
ROE_VOLATILITY_LIMIT = 0.3
PROFIT_GROWTH_YEARS = 5
PROFIT_GROWTH_VOLATILITY_LIMIT = 0.5
CASH_FLOW_YEARS = 3
VOLATILITY_PENALTY = 0.8

# Industries with durable advantages, and ones that rarely have any.
STRONG_MOAT_INDUSTRIES = frozenset({"食品饮料", "医药生物", "家用电器", "银行", "保险"})
WEAK_MOAT_INDUSTRIES = frozenset({"建筑", "采掘", "农林牧渔"})
MOAT_BASE_SCORE = 5.0
MOAT_STRONG_SCORE = 8.0
MOAT_WEAK_SCORE = 3.0

# Fixed until dividend, buyback and R&D data are fetched.
MANAGEMENT_PLACEHOLDER_SCORE = 7.5
RD_PLACEHOLDER_SCORE = 5.0
DIVIDEND_PLACEHOLDER_SCORE = 5.0
REPURCHASE_PLACEHOLDER_SCORE = 5.0

# (upper PE bound, points), checked in order
PE_SCORE_TABLE = ((10, 15.0), (15, 12.0), (20, 8.0), (30, 5.0))
# (upper debt-to-asset bound in percent, points)
DEBT_RATIO_SCORE_TABLE = ((30, 10.0), (50, 8.0), (70, 5.0))
# positive operating-cash-flow years -> points
CASH_FLOW_SCORE_TABLE = {3: 15.0, 2: 10.0, 1: 5.0}


@dataclass(frozen=True)
class SubScore:
    field: str
    label: str
    max_points: float
    fn: Callable[[SecurityProfile], float]


def _roe_score(profile: SecurityProfile) -> float:
    roe_list = value_list(profile.historical_fina_main_data, "roejq", ROE_YEARS)
    if len(roe_list) < ROE_YEARS:
        logger.debug("ROE score: only %d years of ROE, scoring 0", len(roe_list))
        return 0.0

    avg_roe = sum(roe_list) / len(roe_list)
    std = math.sqrt(sum((roe - avg_roe) ** 2 for roe in roe_list) / len(roe_list))
    volatility = std / avg_roe if avg_roe else math.inf

    if avg_roe >= 20:
        score = 20.0
    elif avg_roe >= 15:
        score = 15.0
    else:
        score = avg_roe / 15 * 15

    if volatility > ROE_VOLATILITY_LIMIT:
        score *= VOLATILITY_PENALTY
    logger.debug("ROE score: avg=%.2f%% volatility=%.2f score=%.2f", avg_roe, volatility, score)
    return score


def _cash_flow_score(profile: SecurityProfile) -> float:
    cashflows = profile.historical_cashflow_list
    if len(cashflows) < CASH_FLOW_YEARS:
        return 0.0
    positive = sum(1 for cf in cashflows[:CASH_FLOW_YEARS] if cf.netcash_operate > 0)
    return CASH_FLOW_SCORE_TABLE.get(positive, 0.0)


def _growth(new: float, old: float) -> float | None:
    if old == 0:
        return None
    return (new - old) / abs(old)


def _profit_growth_score(profile: SecurityProfile) -> float:
    profits = value_list(profile.historical_fina_main_data, "parentnetprofit", PROFIT_GROWTH_YEARS)
    if len(profits) < PROFIT_GROWTH_YEARS:
        return 0.0

    growth_count = 0
    volatility = 0.0
    for i in range(len(profits) - 1):
        if profits[i] > profits[i + 1]:
            growth_count += 1
        if i > 0:
            older = _growth(profits[i], profits[i + 1])
            newer = _growth(profits[i - 1], profits[i])
            # Pairs against a zero-profit year have no rate to compare
            if older is not None and newer is not None:
                volatility += abs(older - newer)

    score = growth_count * 3.0
    if volatility > PROFIT_GROWTH_VOLATILITY_LIMIT:
        score *= VOLATILITY_PENALTY
    return score


def _debt_ratio_score(profile: SecurityProfile) -> float:
    if not profile.historical_fina_main_data:
        return 0.0
    debt_ratio = profile.historical_fina_main_data[0].zcfzl
    for bound, points in DEBT_RATIO_SCORE_TABLE:
        if debt_ratio < bound:
            return points
    return 0.0


def _moat_score(profile: SecurityProfile) -> float:
    industry = profile.base_info.industry
    if industry in STRONG_MOAT_INDUSTRIES:
        return MOAT_STRONG_SCORE
    if industry in WEAK_MOAT_INDUSTRIES:
        return MOAT_WEAK_SCORE
    return MOAT_BASE_SCORE


def _management_score(profile: SecurityProfile) -> float:
    # TODO: branch on dividend history (3+ years of reports) and buyback
    # records once those sections are fetched; until then every security
    # gets the same score.
    return MANAGEMENT_PLACEHOLDER_SCORE


def _valuation_score(profile: SecurityProfile) -> float:
    pe = profile.base_info.pe
    score = 0.0
    for bound, points in PE_SCORE_TABLE:
        if pe < bound:
            score = points
            break

    if 0 < profile.peg < 1:
        score = max(score, 15.0)
    return score


def _rd_score(profile: SecurityProfile) -> float:
    return RD_PLACEHOLDER_SCORE


def _dividend_score(profile: SecurityProfile) -> float:
    return DIVIDEND_PLACEHOLDER_SCORE


def _repurchase_score(profile: SecurityProfile) -> float:
    return REPURCHASE_PLACEHOLDER_SCORE


SUB_SCORES: tuple[SubScore, ...] = (
    SubScore("roe_score", "ROE", 20, _roe_score),
    SubScore("cash_flow_score", "Cash flow", 15, _cash_flow_score),
    SubScore("profit_growth_score", "Profit growth", 15, _profit_growth_score),
    SubScore("debt_ratio_score", "Debt ratio", 10, _debt_ratio_score),
    SubScore("moat_score", "Moat", 10, _moat_score),
    SubScore("management_score", "Management", 10, _management_score),
    SubScore("valuation_score", "Valuation", 15, _valuation_score),
    SubScore("rd_score", "R&D", 5, _rd_score),
    SubScore("dividend_score", "Dividend", 5, _dividend_score),
    SubScore("repurchase_score", "Buyback", 5, _repurchase_score),
)


def score_profile(profile: SecurityProfile) -> QualityScore:
    """Compute every sub-score, their total, and a readable breakdown."""
    values: dict[str, float] = {}
    for sub in SUB_SCORES:
        values[sub.field] = min(max(sub.fn(profile), 0.0), sub.max_points)

    total = sum(values.values())

    lines = [f"Total (100): {total:.1f}"]
    for sub in SUB_SCORES:
        line = f"{sub.label} ({sub.max_points:g}): {values[sub.field]:.1f}"
        if sub.field == "valuation_score":
            line += f" - PE: {profile.base_info.pe:.1f}, PEG: {profile.peg:.1f}"
        lines.append(line)

    logger.info("[%s] quality score %.1f", profile.base_info.name, total)
    return QualityScore(**values, total_score=total, score_description="\n".join(lines) + "\n")


def suggest_position(profile: SecurityProfile, expect: int, tech: int) -> float:
    """Suggested position size (3-20 units, 0 when overvalued).

    Blends PEG on 1-year net-profit growth (40%), the caller's growth
    expectation ``expect`` 1-5 (20%), technical rating ``tech`` 1-3 (20%)
    and the quality score (20%, 50 assumed when unscored).
    """
    growth = profile.base_info.netprofit_yoy_ratio
    if growth == 0:
        return 0.0

    peg = profile.base_info.pe / growth
    if peg <= 0.5:
        peg_score = 1.0
    elif peg <= 0.9:
        peg_score = (0.9 - peg) / 0.4
    else:
        peg_score = 0.0

    expect_score = (expect - 1) / 4.0
    tech_score = (tech - 1) / 2.0
    quality = profile.quality_score.total_score or 50.0

    total = 0.4 * peg_score + 0.2 * expect_score + 0.2 * tech_score + 0.2 * quality / 100.0
    amount = min(max(3 + 17 * total, 3.0), 20.0)

    if peg > 1:
        return 0.0
    return amount


# Position amounts are in units of 10,000 yuan; shares trade in lots of 100.
AMOUNT_UNIT = 10000
LOT_SIZE = 100

# Deviation (percent of target) above which a holding is flagged.
DEVIATION_HIGH = 30.0
DEVIATION_MEDIUM = 15.0


def share_count(amount: float, price: float) -> int:
    """Whole lots of shares that ``amount`` buys at ``price``; 0 without a price."""
    if price <= 0 or amount <= 0:
        return 0
    shares = int(amount * AMOUNT_UNIT / price)
    return shares // LOT_SIZE * LOT_SIZE


def deviation_percent(current_amount: float, target_amount: float) -> float:
    """Absolute gap between current and target amount, as a percent of target."""
    if target_amount <= 0:
        return 0.0
    return abs((target_amount - current_amount) / target_amount * 100)


def deviation_level(percent: float) -> str:
    if percent > DEVIATION_HIGH:
        return "high"
    if percent > DEVIATION_MEDIUM:
        return "medium"
    return "low"
