"""Investool Profile - A-share security profile and quality scoring MCP server."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastmcp import FastMCP

from eastmoney_client import EastMoneyClient
from eniu_client import EniuClient
from tools import profile
from tools.aggregator import Providers
from zszx_client import ZszxClient

load_dotenv()

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@asynccontextmanager
async def lifespan(server):
    """Manage client lifecycles."""
    yield
    await providers.close()


mcp = FastMCP(
    "Investool Profile",
    instructions=(
        "A-share research data. Use security_profile for the full picture of one "
        "security (fundamentals, reasonable price, holders, money flow, quality "
        "score), rank_securities to compare several by price gap or ROE, and "
        "position_suggestion to size a position. Identifiers carry the exchange "
        "suffix, e.g. 600519.SH or 000858.SZ."
    ),
    lifespan=lifespan,
)

providers = Providers(
    eastmoney=EastMoneyClient(timeout=_env_float("EASTMONEY_TIMEOUT", 30.0)),
    eniu=EniuClient(timeout=_env_float("ENIU_TIMEOUT", 30.0)),
    zszx=ZszxClient(timeout=_env_float("ZSZX_TIMEOUT", 30.0)),
)

# 0 disables the per-unit deadline
profile_timeout = _env_float("PROFILE_TIMEOUT", 45.0) or None

profile.register(mcp, providers, timeout=profile_timeout)
