"""Security profile, ranking and position tools."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from models import Holding
from tools.aggregator import (
    RANK_KEYS,
    InvalidSecurityError,
    build_profile,
    rank_profiles,
    resolve_security,
)
from tools.scoring import (
    AMOUNT_UNIT,
    deviation_level,
    deviation_percent,
    share_count,
    suggest_position,
)

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from models import ProfileResult, SecurityProfile
    from tools.aggregator import Providers


def _summary(profile: SecurityProfile) -> dict:
    """Compact ranking row for one profile."""
    info = profile.base_info
    return {
        "symbol": info.secucode,
        "name": info.name,
        "price": round(profile.current_price(), 2),
        "right_price": round(profile.right_price, 2),
        "price_space": round(profile.price_space, 2),
        "roe_weight": info.roe_weight,
        "peg": round(profile.peg, 2),
        "total_score": round(profile.quality_score.total_score, 1),
    }


def register(mcp: FastMCP, providers: Providers, *, timeout: float | None = None) -> None:

    async def _load(symbol: str) -> ProfileResult:
        info = await resolve_security(providers.eastmoney, symbol)
        return await build_profile(providers, info, timeout=timeout)

    @mcp.tool(
        annotations={
            "title": "Security Profile",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": True,
        }
    )
    async def security_profile(symbol: str) -> dict:
        """Full profile for an A-share: fundamentals, valuation, holders, money flow and quality score.

        Queries every data source concurrently. Sections whose source failed
        are left empty and listed in `_warnings`.

        Args:
            symbol: Security code with exchange suffix (e.g. "600519.SH")
        """
        try:
            result = await _load(symbol)
        except InvalidSecurityError as e:
            return {"error": str(e)}

        data = result.profile.model_dump()
        if result.failures:
            data["_warnings"] = result.warnings()
        return data

    @mcp.tool(
        annotations={
            "title": "Rank Securities",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": True,
        }
    )
    async def rank_securities(symbols: list[str], sort_by: str = "price_space") -> dict:
        """Build profiles for several securities and rank them.

        Args:
            symbols: Security codes (e.g. ["600519.SH", "000858.SZ"])
            sort_by: "price_space" (reasonable-price gap) or "roe" (ROE weight)
        """
        if sort_by not in RANK_KEYS:
            return {"error": f"Invalid sort_by '{sort_by}'. Must be one of: {list(RANK_KEYS)}"}

        outcomes = await asyncio.gather(*(_load(s) for s in symbols), return_exceptions=True)

        profiles = []
        _warnings = []
        for symbol, outcome in zip(symbols, outcomes):
            if isinstance(outcome, InvalidSecurityError):
                _warnings.append(str(outcome))
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            profiles.append(outcome.profile)
            _warnings.extend(f"{symbol}: {w}" for w in outcome.warnings())

        result = {
            "sort_by": sort_by,
            "count": len(profiles),
            "ranking": [_summary(p) for p in rank_profiles(profiles, sort_by)],
        }
        if _warnings:
            result["_warnings"] = _warnings
        return result

    @mcp.tool(
        annotations={
            "title": "Position Suggestion",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": True,
        }
    )
    async def position_suggestion(symbol: str, expect: int = 3, tech: int = 2) -> dict:
        """Suggest a position size from PEG, quality score and your own ratings.

        Returns an amount in units of 10,000 yuan (3 to 20, or 0 when PEG is
        above 1) and the whole lots of 100 shares it buys at the current price.

        Args:
            symbol: Security code with exchange suffix (e.g. "600519.SH")
            expect: Growth expectation, 1 (low) to 5 (high)
            tech: Technical picture, 1 (weak) to 3 (strong)
        """
        if not 1 <= expect <= 5:
            return {"error": "expect must be between 1 and 5"}
        if not 1 <= tech <= 3:
            return {"error": "tech must be between 1 and 3"}

        try:
            result = await _load(symbol)
        except InvalidSecurityError as e:
            return {"error": str(e)}

        profile = result.profile
        amount = suggest_position(profile, expect, tech)
        data = {
            **_summary(profile),
            "pe": profile.base_info.pe,
            "netprofit_yoy_ratio": profile.base_info.netprofit_yoy_ratio,
            "expect": expect,
            "tech": tech,
            "amount": round(amount, 2),
            "share_count": share_count(amount, profile.current_price()),
        }
        if result.failures:
            data["_warnings"] = result.warnings()
        return data

    @mcp.tool(
        annotations={
            "title": "Position Deviation",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": True,
        }
    )
    async def position_deviation(holdings: list[Holding]) -> dict:
        """Compare each holding's current value with its suggested target position.

        Amounts are in units of 10,000 yuan. Deviation is the gap as a percent
        of the target: "high" above 30%, "medium" above 15%, else "low".
        Holdings that cannot be resolved get an `error` row and are left out
        of the summary.

        Args:
            holdings: Positions, e.g. [{"symbol": "600519.SH", "shares": 200, "expect": 3, "tech": 2}].
                expect (1-5) and tech (1-3) default to neutral when 0 or omitted.
        """
        if not holdings:
            return {"error": "holdings must not be empty"}

        outcomes = await asyncio.gather(*(_load(h.symbol) for h in holdings), return_exceptions=True)

        rows = []
        total_current = 0.0
        total_target = 0.0
        _warnings = []
        for holding, outcome in zip(holdings, outcomes):
            expect = holding.expect or 3
            tech = holding.tech or 2
            error = None
            if isinstance(outcome, InvalidSecurityError):
                error = str(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            elif not 1 <= expect <= 5:
                error = "expect must be between 1 and 5"
            elif not 1 <= tech <= 3:
                error = "tech must be between 1 and 3"

            if error is not None:
                rows.append({
                    "symbol": holding.symbol,
                    "shares": holding.shares,
                    "current_price": 0.0,
                    "current_amount": 0.0,
                    "target_amount": 0.0,
                    "amount_diff": 0.0,
                    "deviation_percent": 0.0,
                    "deviation_level": "unknown",
                    "error": error,
                })
                continue

            profile = outcome.profile
            price = max(profile.current_price(), 0.0)
            current_amount = holding.shares * price / AMOUNT_UNIT
            target_amount = suggest_position(profile, expect, tech)
            percent = deviation_percent(current_amount, target_amount)
            rows.append({
                "symbol": holding.symbol,
                "name": profile.base_info.name,
                "shares": holding.shares,
                "current_price": round(price, 2),
                "current_amount": round(current_amount, 2),
                "target_amount": round(target_amount, 2),
                "amount_diff": round(target_amount - current_amount, 2),
                "deviation_percent": round(percent, 2),
                "deviation_level": deviation_level(percent),
                "pe": profile.base_info.pe,
                "netprofit_yoy_ratio": profile.base_info.netprofit_yoy_ratio,
                "total_score": round(profile.quality_score.total_score, 1),
            })
            total_current += current_amount
            total_target += target_amount
            _warnings.extend(f"{holding.symbol}: {w}" for w in outcome.warnings())

        result = {
            "holdings": rows,
            "summary": {
                "total_current_amount": round(total_current, 2),
                "total_target_amount": round(total_target, 2),
                "total_diff": round(total_target - total_current, 2),
                "total_deviation_percent": round(deviation_percent(total_current, total_target), 2),
                "stock_count": len(holdings),
            },
        }
        if _warnings:
            result["_warnings"] = _warnings
        return result
