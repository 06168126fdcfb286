"""
Economic calendar from Forex Factory.

Reads the weekly JSON feed and falls back to scraping the calendar page
with BeautifulSoup when the feed is unavailable.
"""

import logging
import re
from typing import Any

from bs4 import BeautifulSoup

from trade_analyst.exceptions import DataFetchError
from trade_analyst.models import EconomicCalendar, EconomicEvent
from trade_analyst.providers.base import BaseProvider, today_str

logger = logging.getLogger(__name__)

CALENDAR_FEED_URL = "https://nfs.faireconomy.media/ff_calendar_thisweek.json"
CALENDAR_PAGE_URL = "https://www.forexfactory.com/calendar"

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Cache-Control": "no-cache",
}

_FEED_IMPACT = {"High": "high", "Medium": "medium", "Low": "low", "Holiday": "holiday"}


def parse_impact(css_class: str) -> str:
    """Map an impact icon CSS class to high/medium/low/holiday."""
    if "high" in css_class or "red" in css_class:
        return "high"
    if "medium" in css_class or "ora" in css_class:
        return "medium"
    if "low" in css_class or "yel" in css_class:
        return "low"
    if "holiday" in css_class or "gra" in css_class:
        return "holiday"
    return "low"


def parse_calendar_html(html: str) -> list[EconomicEvent]:
    """Parse calendar rows; date cells only appear on the first row of each day."""
    soup = BeautifulSoup(html, "html.parser")
    events: list[EconomicEvent] = []
    current_date = ""

    for row in soup.select("tr.calendar__row"):
        date_cell = row.select_one(".calendar__date span")
        if date_cell and date_cell.get_text(strip=True):
            current_date = date_cell.get_text(strip=True)

        def cell(selector: str) -> str:
            node = row.select_one(selector)
            return node.get_text(strip=True) if node else ""

        currency = cell(".calendar__currency")
        event_name = cell(".calendar__event span")
        if not currency or not event_name:
            continue

        impact_node = row.select_one(".calendar__impact span")
        impact_class = " ".join(impact_node.get("class", [])) if impact_node else ""

        events.append(
            EconomicEvent(
                date=current_date,
                time=cell(".calendar__time") or "All Day",
                currency=currency.upper(),
                impact=parse_impact(impact_class),
                event=event_name,
                actual=cell(".calendar__actual") or None,
                forecast=cell(".calendar__forecast") or None,
                previous=cell(".calendar__previous") or None,
            )
        )
    return events


def _feed_event(item: dict[str, Any]) -> EconomicEvent:
    return EconomicEvent(
        date=item.get("date") or "",
        time=item.get("time") or "All Day",
        currency=(item.get("country") or "").upper(),
        impact=_FEED_IMPACT.get(item.get("impact", ""), "low"),
        event=item.get("title") or "",
        actual=item.get("actual") or None,
        forecast=item.get("forecast") or None,
        previous=item.get("previous") or None,
        timestamp=item.get("date") or None,
    )


def build_calendar(pair: str, events: list[EconomicEvent], today: str | None = None) -> EconomicCalendar:
    """
    Filter events to the pair's currencies and derive trading guidance.

    Risk levels:
        High: a high-impact event today
        Elevated: a high-impact event later this week
        Moderate: more than two medium-impact events
        Normal: otherwise
    """
    today = today or today_str()
    currencies = re.findall(r".{3}", pair.upper().replace("/", ""))
    relevant = [e for e in events if e.currency in currencies]

    today_events = [e for e in relevant if e.timestamp and e.timestamp[:10] == today]
    high = [e for e in relevant if e.impact == "high"]
    medium = [e for e in relevant if e.impact == "medium"]
    low = [e for e in relevant if e.impact == "low"]
    today_high = [e for e in today_events if e.impact == "high"]

    calendar = EconomicCalendar(
        ticker=pair,
        currencies=currencies,
        current_date=today,
        today_events=today_events,
        high_impact=high,
        medium_impact=medium,
        low_impact=low,
        total_relevant_events=len(relevant),
    )

    if today_high:
        calendar.risk_level = "High"
        calendar.recommendation = "High-impact news today - exercise extreme caution or avoid trading"
        for e in today_high:
            calendar.warnings.append(f"{e.event} ({e.currency}) - {e.time}")
            calendar.avoid_trading_around.append(
                {"event": e.event, "currency": e.currency, "datetime": f"{e.date} {e.time}", "impact": "High"}
            )
    elif high:
        calendar.risk_level = "Elevated"
        calendar.recommendation = "High-impact news upcoming this week - be cautious around release times"
        for e in high[:3]:
            calendar.warnings.append(f"{e.event} ({e.currency}) - {e.date} at {e.time}")
            calendar.avoid_trading_around.append(
                {"event": e.event, "currency": e.currency, "datetime": f"{e.date} {e.time}", "impact": "High"}
            )
    elif len(medium) > 2:
        calendar.risk_level = "Moderate"
        calendar.recommendation = "Multiple medium-impact events - consider reducing position size"

    return calendar


class ForexFactoryProvider(BaseProvider):
    name = "Forex Factory"

    async def get_events(self) -> list[EconomicEvent]:
        """This week's events from the JSON feed, or the scraped page when the feed fails."""
        try:
            data = await self._get(CALENDAR_FEED_URL, headers={"Accept": "application/json"})
            return [_feed_event(item) for item in data or []]
        except DataFetchError as e:
            logger.warning(f"[{self.name}] Calendar feed failed, scraping page: {e}")

        try:
            html = await self._get_text(CALENDAR_PAGE_URL, headers=BROWSER_HEADERS)
        except DataFetchError as e:
            logger.error(f"[{self.name}] Calendar scrape failed: {e}")
            return []
        return parse_calendar_html(html)

    async def get_forex_calendar(self, pair: str) -> EconomicCalendar:
        events = await self.get_events()
        calendar = build_calendar(pair, events)
        logger.debug(
            f"[{self.name}] {pair}: {calendar.total_relevant_events} relevant events, risk {calendar.risk_level}"
        )
        return calendar
