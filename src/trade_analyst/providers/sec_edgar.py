"""
SEC EDGAR client for insider (Form 4) and institutional (13F) activity.

No API key; SEC only asks for a User-Agent with contact details. Both
public methods degrade to an empty result on any failure.
"""

import logging
from typing import Any

from bs4 import BeautifulSoup
from cachetools import TTLCache

from trade_analyst.exceptions import DataFetchError
from trade_analyst.models import InsiderActivity, InsiderTrade, InstitutionalActivity, InstitutionalHolding
from trade_analyst.providers.base import BaseProvider

logger = logging.getLogger(__name__)

SEC_WWW_URL = "https://www.sec.gov"
SEC_DATA_URL = "https://data.sec.gov"

MAX_INSIDER_TRADES = 20
MAX_SUBMISSIONS_SCANNED = 50

_BUY_WORDS = ("acquisition", "purchase", "award", "exercise")
_SELL_WORDS = ("disposition", "sale")

# The ticker map is ~1MB and changes rarely
_cik_cache: TTLCache[str, dict[str, str]] = TTLCache(maxsize=1, ttl=24 * 3600)


def classify_filing_title(title: str) -> str:
    lowered = title.lower()
    if any(word in lowered for word in _BUY_WORDS):
        return "buy"
    if any(word in lowered for word in _SELL_WORDS):
        return "sell"
    return "other"


def _lean(buys: int, sells: int, factor: float, positive: str, negative: str) -> str:
    if buys > sells * factor:
        return positive
    if sells > buys * factor:
        return negative
    return "neutral"


def parse_form4_feed(symbol: str, feed: str) -> InsiderActivity:
    """Build insider activity from an EDGAR Atom feed of Form 4 filings."""
    soup = BeautifulSoup(feed, "html.parser")
    activity = InsiderActivity(symbol=symbol)

    for entry in soup.find_all("entry"):
        title_node, updated_node = entry.find("title"), entry.find("updated")
        if not title_node or not updated_node:
            continue

        title = title_node.get_text(strip=True)
        # "4 - INSIDER NAME (0001234567) (Reporting)"
        parts = title.split(" - ")
        if len(parts) < 2:
            continue

        link = entry.find("link")
        kind = classify_filing_title(title)
        activity.trades.append(
            InsiderTrade(
                symbol=symbol,
                insider_name=parts[1] or "Unknown",
                insider_title="Officer/Director",
                transaction_date=updated_node.get_text(strip=True).split("T")[0],
                transaction_type=kind,
                price=0.0,
                value=0.0,
                shares_owned_after=0.0,
                filing_url=link.get("href") if link else None,
            )
        )
        if kind == "buy":
            activity.total_buys += 1
        elif kind == "sell":
            activity.total_sells += 1

        if len(activity.trades) >= MAX_INSIDER_TRADES:
            break

    activity.sentiment = _lean(activity.total_buys, activity.total_sells, 1.5, "bullish", "bearish")
    return activity


def parse_13f_submissions(symbol: str, submissions: dict[str, Any]) -> InstitutionalActivity:
    """
    Collect 13F-HR filings from a company's submission history.

    Only filing metadata is available here; share counts would require
    fetching each filing, so position changes stay at zero.
    """
    recent = (submissions.get("filings") or {}).get("recent") or {}
    forms = recent.get("form") or []
    dates = recent.get("filingDate") or []
    name = submissions.get("name") or "Unknown Institution"

    holders = []
    for i, form in enumerate(forms[:MAX_SUBMISSIONS_SCANNED]):
        if form not in ("13F-HR", "13F-HR/A"):
            continue
        filing_date = dates[i] if i < len(dates) else ""
        holders.append(
            InstitutionalHolding(
                symbol=symbol,
                institution_name=name,
                percent_of_portfolio=0.0,
                percent_of_shares_outstanding=0.0,
                change_in_shares=0.0,
                change_percent=0.0,
                filing_date=filing_date,
                quarter=filing_date[:7] or "Unknown",
            )
        )

    activity = InstitutionalActivity(symbol=symbol, holders=holders, total_institutions=len(holders))
    activity.sentiment = _lean(
        activity.increased_positions, activity.decreased_positions, 1.3, "accumulating", "distributing"
    )
    return activity


class SECEdgarProvider(BaseProvider):
    name = "SEC EDGAR"

    def __init__(self, user_agent: str, rate_limiter=None):
        super().__init__(api_key=None, rate_limiter=rate_limiter)
        self._headers = {"User-Agent": user_agent, "Accept": "application/json"}

    async def get_company_cik(self, symbol: str) -> str | None:
        """Zero-padded 10-digit CIK for a ticker, or None when unknown."""
        tickers = _cik_cache.get("tickers")
        if tickers is None:
            data = await self._get(f"{SEC_WWW_URL}/files/company_tickers.json", headers=self._headers)
            tickers = {item["ticker"].upper(): str(item["cik_str"]).zfill(10) for item in (data or {}).values()}
            _cik_cache["tickers"] = tickers
        return tickers.get(symbol.upper())

    async def get_insider_trades(self, symbol: str) -> InsiderActivity:
        upper = symbol.upper()
        try:
            cik = await self.get_company_cik(upper)
            if not cik:
                return InsiderActivity(symbol=upper)
            feed = await self._get_text(
                f"{SEC_WWW_URL}/cgi-bin/browse-edgar",
                params={
                    "action": "getcompany",
                    "CIK": cik,
                    "type": "4",
                    "dateb": "",
                    "owner": "only",
                    "count": 40,
                    "output": "atom",
                },
                headers={**self._headers, "Accept": "application/atom+xml"},
            )
        except DataFetchError as e:
            logger.error(f"[{self.name}] Failed to get insider trades for {upper}: {e}")
            return InsiderActivity(symbol=upper)
        return parse_form4_feed(upper, feed)

    async def get_institutional_holdings(self, symbol: str) -> InstitutionalActivity:
        upper = symbol.upper()
        try:
            cik = await self.get_company_cik(upper)
            if not cik:
                return InstitutionalActivity(symbol=upper)
            submissions = await self._get(f"{SEC_DATA_URL}/submissions/CIK{cik}.json", headers=self._headers)
        except DataFetchError as e:
            logger.error(f"[{self.name}] Failed to get institutional holdings for {upper}: {e}")
            return InstitutionalActivity(symbol=upper)
        return parse_13f_submissions(upper, submissions or {})
