"""Tests for SEC EDGAR insider and institutional lookups."""

from unittest.mock import AsyncMock

import pytest

from trade_analyst.exceptions import DataFetchError
from trade_analyst.providers import sec_edgar
from trade_analyst.providers.sec_edgar import (
    SECEdgarProvider,
    classify_filing_title,
    parse_13f_submissions,
    parse_form4_feed,
)

TICKERS = {"0": {"cik_str": 320193, "ticker": "AAPL", "title": "Apple Inc."}}


def _entry(title: str, updated: str | None = "2026-10-01T16:30:12-04:00") -> str:
    updated_tag = f"<updated>{updated}</updated>" if updated else ""
    return (
        f"<entry><title>{title}</title>{updated_tag}"
        '<link rel="alternate" type="text/html" href="https://www.sec.gov/Archives/edgar/data/320193/x.htm"/>'
        "</entry>"
    )


def _feed(*entries: str) -> str:
    return '<?xml version="1.0"?><feed xmlns="http://www.w3.org/2005/Atom">' + "".join(entries) + "</feed>"


@pytest.fixture(autouse=True)
def clear_cik_cache():
    sec_edgar._cik_cache.clear()
    yield
    sec_edgar._cik_cache.clear()


def test_classify_filing_title():
    """Form 4 titles classify as purchase, sale or other."""
    assert classify_filing_title("Open market PURCHASE") == "buy"
    assert classify_filing_title("Option exercise") == "buy"
    assert classify_filing_title("Sale of common stock") == "sell"
    assert classify_filing_title("4 - COOK TIMOTHY D (0001214156) (Reporting)") == "other"


class TestParseForm4Feed:
    def test_entries(self):
        """Feed entries become trades; undated or malformed ones are skipped."""
        feed = _feed(
            _entry("4 - COOK TIMOTHY D (0001214156) (Reporting)"),
            _entry("4 - Disposition by ADAMS KATHERINE (0001408100)"),
            _entry("4 - SKIPPED (no date)", updated=None),
            _entry("no separator here"),
        )

        activity = parse_form4_feed("AAPL", feed)

        assert len(activity.trades) == 2
        first = activity.trades[0]
        assert first.insider_name == "COOK TIMOTHY D (0001214156) (Reporting)"
        assert first.transaction_date == "2026-10-01"
        assert first.transaction_type == "other"
        assert first.filing_url.endswith("x.htm")
        assert activity.total_sells == 1
        assert activity.sentiment == "bearish"

    def test_caps_trade_count(self):
        """At most twenty trades are kept."""
        feed = _feed(*[_entry(f"4 - Purchase by INSIDER {i}") for i in range(30)])

        activity = parse_form4_feed("AAPL", feed)

        assert len(activity.trades) == 20
        assert activity.total_buys == 20
        assert activity.sentiment == "bullish"


def test_parse_13f_submissions():
    """Recent 13F filings are listed from the submissions payload."""
    submissions = {
        "name": "Apple Inc.",
        "filings": {
            "recent": {
                "form": ["10-Q", "13F-HR", "8-K", "13F-HR/A"],
                "filingDate": ["2026-08-01", "2026-08-14", "2026-07-30", "2026-05-15"],
            }
        },
    }

    activity = parse_13f_submissions("AAPL", submissions)

    assert activity.total_institutions == 2
    assert [h.filing_date for h in activity.holders] == ["2026-08-14", "2026-05-15"]
    assert activity.holders[0].quarter == "2026-08"
    assert activity.sentiment == "neutral"


class TestSECEdgarProvider:
    """Network paths with the HTTP helpers stubbed."""

    @pytest.mark.asyncio
    async def test_insider_trades(self):
        """Insider trades are fetched for the symbol's CIK."""
        provider = SECEdgarProvider("TradeAnalyst test@example.com")
        provider._get = AsyncMock(return_value=TICKERS)
        provider._get_text = AsyncMock(return_value=_feed(_entry("4 - Sale by COOK TIMOTHY D")))

        activity = await provider.get_insider_trades("aapl")

        assert activity.symbol == "AAPL"
        assert activity.total_sells == 1
        params = provider._get_text.await_args.kwargs["params"]
        assert params["CIK"] == "0000320193"
        assert params["type"] == "4"

    @pytest.mark.asyncio
    async def test_cik_map_is_cached(self):
        """The ticker to CIK map is fetched once."""
        provider = SECEdgarProvider("TradeAnalyst test@example.com")
        provider._get = AsyncMock(return_value=TICKERS)

        assert await provider.get_company_cik("AAPL") == "0000320193"
        assert await provider.get_company_cik("MSFT") is None
        assert provider._get.await_count == 1

    @pytest.mark.asyncio
    async def test_unknown_symbol_returns_empty_activity(self):
        """Symbols without a CIK give empty activity."""
        provider = SECEdgarProvider("TradeAnalyst test@example.com")
        provider._get = AsyncMock(return_value=TICKERS)
        provider._get_text = AsyncMock()

        activity = await provider.get_insider_trades("ZZZZ")

        assert activity.trades == []
        provider._get_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failures_degrade_to_empty_results(self):
        """Request failures give empty results rather than errors."""
        provider = SECEdgarProvider("TradeAnalyst test@example.com")
        provider._get = AsyncMock(side_effect=DataFetchError("SEC EDGAR API error: 403"))

        insiders = await provider.get_insider_trades("AAPL")
        institutions = await provider.get_institutional_holdings("AAPL")

        assert insiders.total_buys == insiders.total_sells == 0
        assert institutions.total_institutions == 0
