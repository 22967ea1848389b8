"""Holding normalisation and ticker/sector enrichment.

Ticker and sector resolution are external services. This module only
adapts their answers onto raw holdings: a resolver is either a mapping or a
callable returning ``None`` when it has no answer. Resolution failures leave
the field empty instead of failing the filing.
"""

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import replace
from pathlib import Path

import yaml

from .models import RawHolding

logger = logging.getLogger(__name__)

Resolver = Mapping[str, str] | Callable[[str], str | None]

_CUSIP_RE = re.compile(r"^[A-Z0-9]{9}$")


def normalize_cusip(cusip: str) -> str:
    """Strip and upper-case an instrument identifier."""
    return cusip.strip().upper()


def is_valid_cusip(cusip: str | None) -> bool:
    """Check for a 9-character alphanumeric CUSIP."""
    if not cusip:
        return False
    return bool(_CUSIP_RE.match(cusip.strip()))


def deduplicate_holdings(holdings: list[RawHolding]) -> list[RawHolding]:
    """
    Merge rows that share an instrument identifier.

    A filing can report the same CUSIP on several rows (for example split
    across investment discretion types). Value and shares are summed; the
    first row's descriptive fields win.
    """
    by_cusip: dict[str, RawHolding] = {}
    for h in holdings:
        cusip = normalize_cusip(h.cusip)
        existing = by_cusip.get(cusip)
        if existing is None:
            by_cusip[cusip] = replace(h, cusip=cusip)
        else:
            existing.value += h.value
            existing.shares += h.shares
            existing.ticker = existing.ticker or h.ticker
            existing.sector = existing.sector or h.sector

    merged = list(by_cusip.values())
    if len(merged) != len(holdings):
        logger.info("Deduplicated %d holdings to %d", len(holdings), len(merged))
    return merged


def _lookup(resolver: Resolver | None, key: str) -> str | None:
    if resolver is None or not key:
        return None
    try:
        if isinstance(resolver, Mapping):
            value = resolver.get(key)
        else:
            value = resolver(key)
    except Exception as e:  # leave the field empty
        logger.warning("Resolver failed for %s: %s", key, e)
        return None
    return value.strip() if isinstance(value, str) and value.strip() else None


def enrich_holdings(
    holdings: list[RawHolding],
    ticker_resolver: Resolver | None = None,
    sector_resolver: Resolver | None = None,
) -> list[RawHolding]:
    """
    Attach tickers and sectors to holdings that lack them.

    Args:
        holdings: Raw holdings from the parser
        ticker_resolver: CUSIP -> ticker
        sector_resolver: ticker -> sector

    Returns:
        New list of holdings; existing ticker/sector values are kept
    """
    enriched = []
    for h in holdings:
        ticker = h.ticker
        if not ticker and is_valid_cusip(h.cusip):
            ticker = _lookup(ticker_resolver, normalize_cusip(h.cusip))
        if ticker:
            ticker = ticker.upper()

        sector = h.sector or (_lookup(sector_resolver, ticker) if ticker else None)
        enriched.append(replace(h, ticker=ticker, sector=sector))

    with_ticker = sum(1 for h in enriched if h.ticker)
    with_sector = sum(1 for h in enriched if h.sector)
    logger.info(
        "Enrichment complete: %d/%d with tickers, %d/%d with sectors",
        with_ticker,
        len(enriched),
        with_sector,
        len(enriched),
    )
    return enriched


class MappingResolver:
    """Offline resolver backed by a YAML file.

    The file holds two optional maps::

        tickers:
          "037833100": AAPL
        sectors:
          AAPL: Technology
    """

    def __init__(self, tickers: dict[str, str] | None = None, sectors: dict[str, str] | None = None) -> None:
        self.tickers = {normalize_cusip(str(k)): str(v) for k, v in (tickers or {}).items()}
        self.sectors = {str(k).upper(): str(v) for k, v in (sectors or {}).items()}

    @classmethod
    def from_yaml(cls, path: Path) -> "MappingResolver":
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(tickers=data.get("tickers"), sectors=data.get("sectors"))

    def ticker_for(self, cusip: str) -> str | None:
        return self.tickers.get(normalize_cusip(cusip))

    def sector_for(self, ticker: str) -> str | None:
        return self.sectors.get(ticker.upper())

    def enrich(self, holdings: list[RawHolding]) -> list[RawHolding]:
        return enrich_holdings(holdings, self.ticker_for, self.sector_for)
