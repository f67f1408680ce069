"""Pydantic models for provider payloads and the aggregated security profile."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Report type labels as returned by the EastMoney F10 endpoints.
REPORT_TYPE_YEAR = "年报"
REPORT_TYPE_Q1 = "一季报"
REPORT_TYPE_HALF = "中报"
REPORT_TYPE_Q3 = "三季报"

# Price returned when neither a live nor a historical price exists.
NO_PRICE = -1.0

# Sentinel PEG value when the ratio carries no signal.
PEG_INVALID = -1.0


class _Record(BaseModel):
    """Base for provider records: upstream keys as aliases, nulls become defaults."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_default(cls, value: Any, info: Any) -> Any:
        field_info = cls.model_fields[info.field_name]
        # Required fields have no default; let validation report the null
        if value is None and not field_info.is_required():
            return field_info.get_default(call_default_factory=True)
        return value


# --- Identity ---


class SecurityInfo(_Record):
    secucode: str = Field(alias="SECUCODE")
    security_code: str = Field("", alias="SECURITY_CODE")
    name: str = Field("", alias="SECURITY_NAME_ABBR")
    # Float while trading; the provider sends "-" when the market is closed.
    new_price: float | str = Field("-", alias="NEW_PRICE")
    pe: float = Field(0.0, alias="PE9")
    industry: str = Field("", alias="INDUSTRY")
    roe_weight: float = Field(0.0, alias="ROE_WEIGHT")
    netprofit_growthrate_3y: float = Field(0.0, alias="NETPROFIT_GROWTHRATE_3Y")
    netprofit_yoy_ratio: float = Field(0.0, alias="NETPROFIT_YOY_RATIO")
    total_market_cap: float = Field(0.0, alias="TOTAL_MARKET_CAP")


# --- Fundamentals ---


class FinaReport(_Record):
    """One row of the main financial indicators history."""

    report_date: str = Field(alias="REPORT_DATE")
    report_type: str = Field("", alias="REPORT_TYPE")
    report_date_name: str = Field("", alias="REPORT_DATE_NAME")
    org_type: str = Field("", alias="ORG_TYPE")
    epsjb: float = Field(0.0, alias="EPSJB")
    roejq: float = Field(0.0, alias="ROEJQ")
    parentnetprofit: float = Field(0.0, alias="PARENTNETPROFIT")
    totaloperatereve: float = Field(0.0, alias="TOTALOPERATEREVE")
    totaloperaterevetz: float = Field(0.0, alias="TOTALOPERATEREVETZ")
    zcfzl: float = Field(0.0, alias="ZCFZL")

    @property
    def report_year(self) -> int:
        return int(self.report_date[:4])


class PEPoint(_Record):
    trade_date: str = Field("", alias="TRADE_DATE")
    pe_ttm: float = Field(0.0, alias="PE_TTM")


def get_report(reports: list[FinaReport], year: int, report_type: str = REPORT_TYPE_YEAR) -> FinaReport | None:
    """Return the report of the given type published for ``year``, if any."""
    for report in reports:
        if report.report_year == year and report.report_type == report_type:
            return report
    return None


def value_list(
    reports: list[FinaReport],
    attr: str,
    count: int,
    report_type: str = REPORT_TYPE_YEAR,
) -> list[float]:
    """Collect ``attr`` from the newest ``count`` reports of ``report_type``, newest first."""
    values = []
    for report in reports:
        if report.report_type != report_type:
            continue
        values.append(getattr(report, attr))
        if len(values) == count:
            break
    return values


def avg_revenue_increase_ratio(reports: list[FinaReport], year: int) -> float:
    """Mean revenue YoY growth (percent) over every report dated in ``year``.

    Returns 0.0 when nothing was reported for that year.
    """
    ratios = [r.totaloperaterevetz for r in reports if r.report_year == year]
    if not ratios:
        return 0.0
    return sum(ratios) / len(ratios)


# --- Other sections ---


class HistoricalPrice(_Record):
    dates: list[str] = Field(default_factory=list, alias="date")
    price: list[float] = Field(default_factory=list, alias="price")

    @field_validator("price", mode="before")
    @classmethod
    def _null_price_to_zero(cls, value: Any) -> Any:
        # Null closes become 0; volatility drops non-positive closes
        if isinstance(value, list):
            return [0.0 if p is None else p for p in value]
        return value


class CompanyProfile(_Record):
    org_name: str = Field("", alias="ORG_NAME")
    org_profile: str = Field("", alias="ORG_PROFILE")
    main_business: str = Field("", alias="MAIN_BUSINESS")
    industry_csrc: str = Field("", alias="INDUSTRYCSRC1")
    chairman: str = Field("", alias="CHAIRMAN")
    found_date: str = Field("", alias="FOUND_DATE")
    listing_date: str = Field("", alias="LISTING_DATE")
    website: str = Field("", alias="ORG_WEB")


class FinaPublishDate(_Record):
    report_date: str = Field("", alias="REPORT_DATE")
    appoint_publish_date: str = Field("", alias="APPOINT_PUBLISH_DATE")
    actual_publish_date: str = Field("", alias="ACTUAL_PUBLISH_DATE")


class OrgRating(_Record):
    date_type: str = Field("", alias="DATE_TYPE")
    compre_rating: str = Field("", alias="COMPRE_RATING")
    rating_org_num: int = Field(0, alias="RATING_ORG_NUM")
    rating_buy_num: int = Field(0, alias="RATING_BUY_NUM")
    rating_add_num: int = Field(0, alias="RATING_ADD_NUM")
    rating_neutral_num: int = Field(0, alias="RATING_NEUTRAL_NUM")
    rating_reduce_num: int = Field(0, alias="RATING_REDUCE_NUM")
    rating_sale_num: int = Field(0, alias="RATING_SALE_NUM")


class ProfitPredict(_Record):
    year: int = Field(0, alias="PREDICT_YEAR")
    eps: float = Field(0.0, alias="EPS")
    pe: float = Field(0.0, alias="PE")
    rating_org_num: int = Field(0, alias="RATING_ORG_NUM")


class ValuationAssessment(_Record):
    total_score: float = Field(0.0, alias="TOTAL_SCORE")
    industry_rank: int = Field(0, alias="INDUSTRY_RANK")
    industry_total: int = Field(0, alias="INDUSTRY_TOTAL")
    rating: str = Field("", alias="VALUE_RATING")


class GincomeData(_Record):
    report_date: str = Field("", alias="REPORT_DATE")
    total_operate_income: float = Field(0.0, alias="TOTAL_OPERATE_INCOME")
    operate_profit: float = Field(0.0, alias="OPERATE_PROFIT")
    nonbusiness_income: float = Field(0.0, alias="NONBUSINESS_INCOME")
    parent_netprofit: float = Field(0.0, alias="PARENT_NETPROFIT")
    opinion_type: str = Field("", alias="OPINION_TYPE")


class CashflowData(_Record):
    report_date: str = Field("", alias="REPORT_DATE")
    netcash_operate: float = Field(0.0, alias="NETCASH_OPERATE")
    netcash_invest: float = Field(0.0, alias="NETCASH_INVEST")
    netcash_finance: float = Field(0.0, alias="NETCASH_FINANCE")


class FreeHolder(_Record):
    holder_rank: int = Field(0, alias="HOLDER_RANK")
    holder_name: str = Field("", alias="HOLDER_NAME")
    hold_num: float = Field(0.0, alias="HOLD_NUM")
    free_holdnum_ratio: float = Field(0.0, alias="FREE_HOLDNUM_RATIO")
    hold_num_change: str = Field("", alias="HOLD_NUM_CHANGE")


class NetInflow(_Record):
    trade_date: str = Field("", alias="date")
    main_net_inflow: float = Field(0.0, alias="mainNetInflow")


# --- Aggregate ---


class QualityScore(BaseModel):
    roe_score: float = 0.0
    cash_flow_score: float = 0.0
    profit_growth_score: float = 0.0
    debt_ratio_score: float = 0.0
    moat_score: float = 0.0
    management_score: float = 0.0
    valuation_score: float = 0.0
    rd_score: float = 0.0
    dividend_score: float = 0.0
    repurchase_score: float = 0.0
    total_score: float = 0.0
    score_description: str = ""


class SecurityProfile(BaseModel):
    """Aggregate record for one security, built fresh on every call."""

    base_info: SecurityInfo

    historical_fina_main_data: list[FinaReport] = Field(default_factory=list)
    historical_pe_list: list[PEPoint] = Field(default_factory=list)
    valuation_map: dict[str, str] = Field(default_factory=dict)
    historical_price: HistoricalPrice = Field(default_factory=HistoricalPrice)
    company_profile: CompanyProfile = Field(default_factory=CompanyProfile)
    fina_appoint_publish_date: str = ""
    fina_actual_publish_date: str = ""
    fina_report_date: str = ""
    org_rating_list: list[OrgRating] = Field(default_factory=list)
    profit_predict_list: list[ProfitPredict] = Field(default_factory=list)
    valuation_assessment: ValuationAssessment = Field(default_factory=ValuationAssessment)
    historical_gincome_list: list[GincomeData] = Field(default_factory=list)
    historical_cashflow_list: list[CashflowData] = Field(default_factory=list)
    free_holders_top_10: list[FreeHolder] = Field(default_factory=list)
    main_money_net_inflows: list[NetInflow] = Field(default_factory=list)

    # Derived after every fetch has finished
    peg: float = 0.0
    right_price: float = 0.0
    price_space: float = 0.0
    last_year_right_price: float = 0.0
    historical_volatility: float = 0.0
    netcash_operate: float = 0.0
    netcash_invest: float = 0.0
    netcash_finance: float = 0.0
    netcash_free: float = 0.0
    byys_ratio: float = 0.0
    fina_report_opinion: str = ""

    quality_score: QualityScore = Field(default_factory=QualityScore)

    def current_price(self) -> float:
        """Live price, else the last historical close, else ``NO_PRICE``."""
        price = self.base_info.new_price
        if isinstance(price, (int, float)):
            return float(price)
        if not self.historical_price.price:
            return NO_PRICE
        return self.historical_price.price[-1]


class Holding(BaseModel):
    """One position in a portfolio, as passed to the deviation tool."""

    symbol: str
    shares: int = Field(ge=0)
    # 0 means "use the neutral rating"
    expect: int = 3
    tech: int = 2


@dataclass
class FetchFailure:
    """Record of one unit of work that could not fill its fields."""

    unit: str
    provider: str
    error: str
    fields: list[str] = field(default_factory=list)


@dataclass
class ProfileResult:
    """A profile plus the failures met while building it.

    Building a profile always succeeds structurally; check ``failures``
    to tell empty-because-absent from empty-because-the-fetch-failed.
    """

    profile: SecurityProfile
    failures: list[FetchFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def failed_units(self) -> list[str]:
        return [f.unit for f in self.failures]

    def warnings(self) -> list[str]:
        return [f"{f.unit} unavailable ({f.provider}: {f.error})" for f in self.failures]
