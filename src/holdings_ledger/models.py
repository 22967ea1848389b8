"""Data models for filers, quarterly reports and holdings."""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime

from .periods import parse_period, period_from_date

# Change classifications
NEW = "NEW"
INCREASED = "INCREASED"
DECREASED = "DECREASED"
UNCHANGED = "UNCHANGED"
EXITED = "EXITED"

CHANGE_TYPES = (NEW, INCREASED, DECREASED, UNCHANGED, EXITED)


def _utcnow() -> str:
    return datetime.utcnow().isoformat()


def _to_date(value: date | str | None) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class RawHolding:
    """One position as delivered by the filing parser, optionally resolved."""

    cusip: str
    issuer_name: str
    value: int
    shares: int
    title_of_class: str = ""
    share_type: str = "SH"
    ticker: str | None = None
    sector: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "RawHolding":
        return cls(
            cusip=str(data["cusip"]),
            issuer_name=data.get("issuer_name", ""),
            value=int(data.get("value") or 0),
            shares=int(data.get("shares") or 0),
            title_of_class=data.get("title_of_class", ""),
            share_type=data.get("share_type", "SH"),
            ticker=data.get("ticker") or None,
            sector=data.get("sector") or None,
        )


@dataclass
class Holding:
    """One instrument position within a quarterly report, with QoQ fields."""

    cusip: str
    issuer_name: str
    value: int
    shares: int
    title_of_class: str = ""
    share_type: str = "SH"
    ticker: str | None = None
    sector: str | None = None
    percent_of_portfolio: float = 0.0

    # QoQ (None when there is no prior match)
    previous_value: int | None = None
    previous_shares: int | None = None
    value_change: int | None = None
    value_change_pct: float | None = None
    shares_change: int | None = None
    shares_change_pct: float | None = None
    change_type: str = NEW

    @property
    def is_exited(self) -> bool:
        return self.change_type == EXITED

    @classmethod
    def from_raw(cls, raw: RawHolding) -> "Holding":
        """Fresh holding with no QoQ fields populated."""
        return cls(
            cusip=raw.cusip,
            issuer_name=raw.issuer_name,
            value=raw.value,
            shares=raw.shares,
            title_of_class=raw.title_of_class,
            share_type=raw.share_type,
            ticker=raw.ticker,
            sector=raw.sector,
        )

    def to_raw(self) -> RawHolding:
        """Strip derived fields, recovering the resolved input."""
        return RawHolding(
            cusip=self.cusip,
            issuer_name=self.issuer_name,
            value=self.value,
            shares=self.shares,
            title_of_class=self.title_of_class,
            share_type=self.share_type,
            ticker=self.ticker,
            sector=self.sector,
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Holding":
        return cls(**data)


@dataclass
class SectorSlice:
    """Aggregate value held in one sector."""

    sector: str
    value: int
    percentage: float


@dataclass
class PortfolioChanges:
    """Portfolio-level QoQ summary."""

    previous_quarter: str | None = None
    value_change: int | None = None
    value_change_pct: float | None = None
    holdings_count_change: int | None = None
    new_positions: int = 0
    increased_positions: int = 0
    decreased_positions: int = 0
    exited_positions: int = 0
    unchanged_positions: int = 0


@dataclass
class ReportSummary:
    holdings_count: int  # excludes EXITED entries
    total_market_value: int


@dataclass
class QuarterlyReport:
    """One filer's holdings for one period."""

    quarter: str
    period_of_report: date
    filing_date: date | None
    accession_number: str
    summary: ReportSummary
    sector_breakdown: list[SectorSlice] = field(default_factory=list)
    portfolio_changes: PortfolioChanges = field(default_factory=PortfolioChanges)
    holdings: list[Holding] = field(default_factory=list)
    form_type: str = "13F-HR"
    processed_at: str = field(default_factory=_utcnow)

    @property
    def active_holdings(self) -> list[Holding]:
        """Holdings excluding synthetic EXITED entries."""
        return [h for h in self.holdings if not h.is_exited]

    @property
    def is_amendment(self) -> bool:
        return self.form_type.endswith("/A")

    def to_dict(self) -> dict:
        return {
            "quarter": self.quarter,
            "period_of_report": _iso(self.period_of_report),
            "filing_date": _iso(self.filing_date),
            "accession_number": self.accession_number,
            "form_type": self.form_type,
            "summary": asdict(self.summary),
            "sector_breakdown": [asdict(s) for s in self.sector_breakdown],
            "portfolio_changes": asdict(self.portfolio_changes),
            "holdings": [h.to_dict() for h in self.holdings],
            "processed_at": self.processed_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QuarterlyReport":
        return cls(
            quarter=data["quarter"],
            period_of_report=_to_date(data["period_of_report"]),
            filing_date=_to_date(data.get("filing_date")),
            accession_number=data.get("accession_number", ""),
            form_type=data.get("form_type", "13F-HR"),
            summary=ReportSummary(**data["summary"]),
            sector_breakdown=[SectorSlice(**s) for s in data.get("sector_breakdown", [])],
            portfolio_changes=PortfolioChanges(**data.get("portfolio_changes", {})),
            holdings=[Holding.from_dict(h) for h in data.get("holdings", [])],
            processed_at=data.get("processed_at", ""),
        )


@dataclass
class Address:
    street1: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None

    def merged_with(self, other: "Address | None") -> "Address":
        """Overlay non-blank fields of ``other`` onto this address."""
        if other is None:
            return self
        return Address(
            street1=other.street1 or self.street1,
            city=other.city or self.city,
            state=other.state or self.state,
            zip_code=other.zip_code or self.zip_code,
        )


@dataclass
class FilerIdentity:
    """Who filed: stable manager identifier plus display details."""

    cik: str
    name: str
    address: Address | None = None


@dataclass
class LatestActivity:
    last_reported_quarter: str
    last_filing_date: date | None
    current_holdings_count: int
    current_market_value: int
    last_updated: str = field(default_factory=_utcnow)


@dataclass
class Filer:
    """A reporting manager and its report history (newest first)."""

    cik: str
    name: str
    address: Address = field(default_factory=Address)
    reports: list[QuarterlyReport] = field(default_factory=list)
    latest_activity: LatestActivity | None = None
    version: int = 0
    created_at: str = field(default_factory=_utcnow)

    def report_for(self, quarter: str) -> QuarterlyReport | None:
        for report in self.reports:
            if report.quarter == quarter:
                return report
        return None

    def remove_report(self, quarter: str) -> QuarterlyReport | None:
        """Remove and return the report for a period, if present."""
        for i, report in enumerate(self.reports):
            if report.quarter == quarter:
                return self.reports.pop(i)
        return None

    def sort_reports(self) -> None:
        self.reports.sort(key=lambda r: r.period_of_report, reverse=True)

    def refresh_latest_activity(self) -> None:
        """Recompute the latest-activity snapshot from the newest report."""
        if not self.reports:
            self.latest_activity = None
            return
        latest = self.reports[0]
        self.latest_activity = LatestActivity(
            last_reported_quarter=latest.quarter,
            last_filing_date=latest.filing_date,
            current_holdings_count=latest.summary.holdings_count,
            current_market_value=latest.summary.total_market_value,
        )

    @property
    def latest_report(self) -> QuarterlyReport | None:
        return self.reports[0] if self.reports else None

    def reports_to_json(self) -> list[dict]:
        return [r.to_dict() for r in self.reports]


@dataclass
class FilingInput:
    """A parsed filing ready for ingestion."""

    filer: FilerIdentity
    period_of_report: date
    accession_number: str
    holdings: list[RawHolding] | None
    filing_date: date | None = None
    form_type: str = "13F-HR"
    quarter_token: str | None = None

    @property
    def quarter(self) -> str:
        """Period token, taken from an explicit token or the period end date."""
        if self.quarter_token:
            return parse_period(self.quarter_token).token
        return period_from_date(self.period_of_report)

    @classmethod
    def from_dict(cls, data: dict) -> "FilingInput":
        filer_data = data.get("filer") or {}
        address_data = filer_data.get("address")
        quarter_token = data.get("quarter")
        period_of_report = _to_date(data.get("period_of_report"))
        if period_of_report is None and quarter_token:
            period_of_report = parse_period(quarter_token).end_date()
        holdings_data = data.get("holdings")
        return cls(
            filer=FilerIdentity(
                cik=str(filer_data.get("cik") or "").strip(),
                name=filer_data.get("name", ""),
                address=Address(**address_data) if address_data else None,
            ),
            period_of_report=period_of_report,
            accession_number=data.get("accession_number", ""),
            holdings=(
                [RawHolding.from_dict(h) for h in holdings_data]
                if holdings_data is not None
                else None
            ),
            filing_date=_to_date(data.get("filing_date")),
            form_type=data.get("form_type", "13F-HR"),
            quarter_token=quarter_token,
        )
