"""Tests for the Forex Factory economic calendar."""

from unittest.mock import AsyncMock

import pytest

from trade_analyst.exceptions import DataFetchError
from trade_analyst.models import EconomicEvent
from trade_analyst.providers.forex_factory import (
    ForexFactoryProvider,
    build_calendar,
    parse_calendar_html,
    parse_impact,
)

CALENDAR_HTML = """
<table>
  <tr class="calendar__row">
    <td class="calendar__date"><span>MonOct 19</span></td>
    <td class="calendar__time">8:30am</td>
    <td class="calendar__currency">usd</td>
    <td class="calendar__impact"><span class="icon icon--ff-impact-red"></span></td>
    <td class="calendar__event"><span>Retail Sales m/m</span></td>
    <td class="calendar__actual"></td>
    <td class="calendar__forecast">0.3%</td>
    <td class="calendar__previous">0.6%</td>
  </tr>
  <tr class="calendar__row">
    <td class="calendar__date"><span></span></td>
    <td class="calendar__time"></td>
    <td class="calendar__currency">EUR</td>
    <td class="calendar__impact"><span class="icon icon--ff-impact-ora"></span></td>
    <td class="calendar__event"><span>German ZEW Sentiment</span></td>
  </tr>
  <tr class="calendar__row calendar__row--day-breaker">
    <td colspan="8">Tue Oct 20</td>
  </tr>
</table>
"""


def _event(
    currency: str, impact: str, timestamp: str = "2026-10-21T08:30:00-04:00", name: str = "CPI"
) -> EconomicEvent:
    return EconomicEvent(
        date=timestamp, time="8:30am", currency=currency, impact=impact, event=name, timestamp=timestamp
    )


def test_parse_impact():
    """Impact labels and icon classes map to high, medium or low."""
    assert parse_impact("icon icon--ff-impact-red") == "high"
    assert parse_impact("impact-medium") == "medium"
    assert parse_impact("icon--ff-impact-yel") == "low"
    assert parse_impact("icon--ff-impact-gra") == "holiday"
    assert parse_impact("") == "low"


def test_parse_calendar_html_carries_date_forward():
    """Rows without a date inherit the previous row's date."""
    events = parse_calendar_html(CALENDAR_HTML)

    assert len(events) == 2
    first, second = events
    assert first.currency == "USD"
    assert first.impact == "high"
    assert first.actual is None
    assert first.forecast == "0.3%"
    assert second.date == "MonOct 19"
    assert second.time == "All Day"
    assert second.impact == "medium"


class TestBuildCalendar:
    """Risk levels for a pair's currencies."""

    def test_high_impact_today(self):
        """High-impact news today for the pair is a high risk day."""
        events = [_event("USD", "high", "2026-10-18T08:30:00-04:00", "Retail Sales"), _event("JPY", "high")]

        calendar = build_calendar("EUR/USD", events, today="2026-10-18")

        assert calendar.currencies == ["EUR", "USD"]
        assert calendar.total_relevant_events == 1
        assert calendar.risk_level == "High"
        assert calendar.warnings == ["Retail Sales (USD) - 8:30am"]
        assert calendar.avoid_trading_around[0]["impact"] == "High"

    def test_high_impact_later_this_week(self):
        """High-impact news later in the week raises a warning only."""
        calendar = build_calendar("GBPUSD", [_event("GBP", "high")], today="2026-10-18")

        assert calendar.risk_level == "Elevated"
        assert calendar.today_events == []

    def test_many_medium_events(self):
        """Several medium events make the week moderate."""
        events = [_event("EUR", "medium") for _ in range(3)]

        calendar = build_calendar("EUR/USD", events, today="2026-10-18")

        assert calendar.risk_level == "Moderate"
        assert calendar.warnings == []

    def test_quiet_week(self):
        """Events for other currencies do not count."""
        calendar = build_calendar("EUR/USD", [_event("EUR", "medium"), _event("CAD", "high")], today="2026-10-18")

        assert calendar.risk_level == "Normal"
        assert calendar.recommendation == "Normal trading conditions"


class TestForexFactoryProvider:
    @pytest.mark.asyncio
    async def test_feed(self):
        """The JSON feed is normalized into events."""
        provider = ForexFactoryProvider()
        provider._get = AsyncMock(
            return_value=[
                {"title": "CPI y/y", "country": "usd", "date": "2026-10-21T08:30:00-04:00", "impact": "High"},
                {"title": "Bank Holiday", "country": "JPY", "date": "2026-10-22T00:00:00+09:00", "impact": "Holiday"},
            ]
        )
        provider._get_text = AsyncMock()

        events = await provider.get_events()

        assert [(e.currency, e.impact) for e in events] == [("USD", "high"), ("JPY", "holiday")]
        assert events[0].timestamp == "2026-10-21T08:30:00-04:00"
        provider._get_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_scrapes_page_when_feed_fails(self):
        """The calendar page is scraped when the feed fails."""
        provider = ForexFactoryProvider()
        provider._get = AsyncMock(side_effect=DataFetchError("feed down"))
        provider._get_text = AsyncMock(return_value=CALENDAR_HTML)

        events = await provider.get_events()

        assert len(events) == 2

    @pytest.mark.asyncio
    async def test_both_sources_failing_gives_no_events(self):
        """With both sources down the calendar is empty."""
        provider = ForexFactoryProvider()
        provider._get = AsyncMock(side_effect=DataFetchError("feed down"))
        provider._get_text = AsyncMock(side_effect=DataFetchError("403"))

        calendar = await provider.get_forex_calendar("EUR/USD")

        assert calendar.total_relevant_events == 0
        assert calendar.risk_level == "Normal"
