"""
Unusual Whales client: flow alerts, recent flow, dark pool prints and whale trades.

The four endpoints are fetched concurrently; any endpoint that fails
contributes an empty list. Alerts and whale trades are filtered to
trades 0-10 days old expiring in 3-13 weeks, then reduced to premium,
sweep, strike, age and expiry metrics plus an overall smart-money verdict.
"""

import asyncio
import logging
import re
from collections import Counter
from datetime import UTC, datetime, timedelta
from typing import Any

from trade_analyst.models import UnusualFlowSummary
from trade_analyst.providers.base import BaseProvider, to_float

logger = logging.getLogger(__name__)

TRADE_AGE_MAX_DAYS = 10
EXPIRY_MIN_DAYS = 21
EXPIRY_MAX_DAYS = 91
DARK_POOL_HEAVY_VOLUME = 1_000_000
DARK_POOL_MASSIVE_VOLUME = 5_000_000


def _parse_dt(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _days_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 86400


def _premium(item: dict[str, Any], key: str) -> float:
    return to_float(item.get(key), 0.0) or 0.0


def _in_window(traded: str, expiry: str, now: datetime) -> bool:
    traded_at, expires_at = _parse_dt(traded or ""), _parse_dt(expiry or "")
    if traded_at is None or expires_at is None:
        return False
    age = _days_between(traded_at, now)
    to_expiry = _days_between(now, expires_at)
    return 0 <= age <= TRADE_AGE_MAX_DAYS and EXPIRY_MIN_DAYS <= to_expiry <= EXPIRY_MAX_DAYS


def _side_sentiment(calls: float, puts: float) -> str:
    if calls > puts * 1.5:
        return "BULLISH"
    if puts > calls * 1.5:
        return "BEARISH"
    return "NEUTRAL"


def overall_sentiment(call_put_ratio: float, whale_sentiment: str) -> str:
    if call_put_ratio > 3 and whale_sentiment == "BULLISH":
        return "STRONGLY_BULLISH"
    if call_put_ratio > 1.5 or whale_sentiment == "BULLISH":
        return "BULLISH"
    if call_put_ratio < 0.33 and whale_sentiment == "BEARISH":
        return "STRONGLY_BEARISH"
    if call_put_ratio < 0.67 or whale_sentiment == "BEARISH":
        return "BEARISH"
    return "NEUTRAL"


def analyze_whale_activity(
    symbol: str,
    alerts: list[dict[str, Any]],
    dark_pool: list[dict[str, Any]],
    whales: list[dict[str, Any]],
    now: datetime | None = None,
) -> dict[str, Any]:
    """Reduce raw Unusual Whales payloads to the enhanced smart-money breakdown."""
    now = now or datetime.now(UTC)
    window_start = (now - timedelta(days=TRADE_AGE_MAX_DAYS)).strftime("%Y-%m-%d")
    window_end = now.strftime("%Y-%m-%d")
    expiry_min = (now + timedelta(days=EXPIRY_MIN_DAYS)).strftime("%Y-%m-%d")
    expiry_max = (now + timedelta(days=EXPIRY_MAX_DAYS)).strftime("%Y-%m-%d")

    filtered_alerts = [a for a in alerts if _in_window(a.get("created_at"), a.get("expiry"), now)]
    filtered_whales = [w for w in whales if _in_window(w.get("date"), w.get("expiry"), now)]

    call_alerts = [a for a in filtered_alerts if a.get("type") == "call"]
    put_alerts = [a for a in filtered_alerts if a.get("type") == "put"]
    alert_call_premium = sum(_premium(a, "total_premium") for a in call_alerts)
    alert_put_premium = sum(_premium(a, "total_premium") for a in put_alerts)
    alert_sweeps = sum(1 for a in filtered_alerts if a.get("has_sweep"))

    whale_call_premium = sum(_premium(w, "premium") for w in filtered_whales if w.get("type") == "call")
    whale_put_premium = sum(_premium(w, "premium") for w in filtered_whales if w.get("type") == "put")
    whale_sweeps = sum(1 for w in filtered_whales if w.get("is_sweep"))

    strike_counts = Counter(f"{(a.get('type') or '').upper()} ${a.get('strike')}" for a in filtered_alerts)
    top_strikes = [strike for strike, _ in strike_counts.most_common(5)]

    age_buckets = {"days1_2": 0, "days3_5": 0, "days6_10": 0}
    expiry_buckets = {"week3_5": 0, "week6_9": 0, "week10_13": 0}
    for alert in filtered_alerts:
        age = _days_between(_parse_dt(alert["created_at"]), now)
        if age <= 2:
            age_buckets["days1_2"] += 1
        elif age <= 5:
            age_buckets["days3_5"] += 1
        else:
            age_buckets["days6_10"] += 1

        to_expiry = _days_between(now, _parse_dt(alert["expiry"]))
        if to_expiry <= 35:
            expiry_buckets["week3_5"] += 1
        elif to_expiry <= 63:
            expiry_buckets["week6_9"] += 1
        else:
            expiry_buckets["week10_13"] += 1

    dark_pool_volume = sum(t.get("size") or 0 for t in dark_pool)
    dark_pool_premium = sum(_premium(t, "premium") for t in dark_pool)

    whale_sentiment = _side_sentiment(whale_call_premium, whale_put_premium)
    alert_sentiment = _side_sentiment(alert_call_premium, alert_put_premium)
    dark_pool_sentiment = "ACCUMULATION" if dark_pool_volume > DARK_POOL_HEAVY_VOLUME else "NEUTRAL"

    total_calls = whale_call_premium + alert_call_premium
    total_puts = whale_put_premium + alert_put_premium
    call_put_ratio = total_calls / total_puts if total_puts > 0 else 1.0
    verdict = overall_sentiment(call_put_ratio, whale_sentiment)

    alert_count = len(filtered_alerts)
    whale_count = len(filtered_whales)
    total_sweeps = alert_sweeps + whale_sweeps
    key_signals: list[str] = []
    warnings: list[str] = []

    if whale_count > 20:
        key_signals.append(f"EXTREME WHALE ACTIVITY: {whale_count} large trades ($100K+) in last 10 days")
    elif whale_count > 10:
        key_signals.append(f"HIGH WHALE ACTIVITY: {whale_count} large trades in last 10 days")

    if total_calls > total_puts * 2:
        key_signals.append(f"STRONGLY BULLISH FLOW: {call_put_ratio:.1f}:1 call/put premium ratio")
    elif total_calls > total_puts * 1.5:
        key_signals.append(f"BULLISH FLOW: {call_put_ratio:.1f}:1 call/put premium ratio")

    if total_puts > total_calls * 2 and call_put_ratio > 0:
        key_signals.append(f"STRONGLY BEARISH FLOW: {1 / call_put_ratio:.1f}:1 put/call premium ratio")
    elif total_puts > total_calls * 1.5 and call_put_ratio > 0:
        key_signals.append(f"BEARISH FLOW: {1 / call_put_ratio:.1f}:1 put/call premium ratio")

    if total_sweeps > 10:
        key_signals.append(f"EXTREME URGENCY: {total_sweeps} sweep orders detected")
    elif total_sweeps > 5:
        key_signals.append(f"HIGH URGENCY: {total_sweeps} sweep orders detected")

    if alert_count and age_buckets["days1_2"] > alert_count * 0.4:
        recent_pct = round(age_buckets["days1_2"] / alert_count * 100)
        key_signals.append(f"VERY RECENT: {recent_pct}% of trades in last 2 days")
    if alert_count and expiry_buckets["week3_5"] > alert_count * 0.5:
        key_signals.append(
            f"NEAR-TERM CATALYST: {round(expiry_buckets['week3_5'] / alert_count * 100)}% expire in 3-5 weeks"
        )

    if dark_pool_volume > DARK_POOL_MASSIVE_VOLUME:
        key_signals.append(f"MASSIVE INSTITUTIONAL: {dark_pool_volume / 1e6:.1f}M shares in dark pools")
    elif dark_pool_volume > DARK_POOL_HEAVY_VOLUME:
        key_signals.append(f"HEAVY INSTITUTIONAL: {dark_pool_volume / 1e6:.1f}M shares in dark pools")

    if top_strikes:
        key_signals.append(f"HOT STRIKES: {', '.join(top_strikes[:3])}")

    if alert_count < 5 and whale_count < 3:
        warnings.append("LOW DATA: Limited unusual activity detected - use caution")
    if whale_sentiment != alert_sentiment and "NEUTRAL" not in (whale_sentiment, alert_sentiment):
        warnings.append(
            f"CONFLICTING SIGNALS: Whale sentiment ({whale_sentiment}) differs from flow sentiment ({alert_sentiment})"
        )

    confidence = 50
    if whale_count > 10:
        confidence += 15
    elif whale_count > 5:
        confidence += 10
    if total_sweeps > 5:
        confidence += 10
    if abs(call_put_ratio - 1) > 1:
        confidence += 10
    if age_buckets["days1_2"] > alert_count * 0.3:
        confidence += 5
    if dark_pool_volume > DARK_POOL_HEAVY_VOLUME:
        confidence += 10
    if warnings:
        confidence -= 10
    confidence = max(20, min(95, confidence))

    top_trades = [
        {
            "type": (w.get("type") or "").upper(),
            "strike": w.get("strike"),
            "expiry": w.get("expiry"),
            "premium": _premium(w, "premium"),
            "isSweep": bool(w.get("is_sweep")),
            "tradeAgeDays": int(_days_between(_parse_dt(w["date"]), now)),
            "daysToExpiry": int(_days_between(now, _parse_dt(w["expiry"]))),
        }
        for w in sorted(filtered_whales, key=lambda w: _premium(w, "premium"), reverse=True)[:10]
    ]

    data = {
        "symbol": symbol,
        "tradeWindowStart": window_start,
        "tradeWindowEnd": window_end,
        "expirationMin": expiry_min,
        "expirationMax": expiry_max,
        "whaleTrades": {
            "count": whale_count,
            "callPremium": whale_call_premium,
            "putPremium": whale_put_premium,
            "sweepCount": whale_sweeps,
            "sentiment": whale_sentiment,
            "topTrades": top_trades,
        },
        "flowAlerts": {
            "count": alert_count,
            "totalBeforeFilter": len(alerts),
            "callPremium": alert_call_premium,
            "putPremium": alert_put_premium,
            "callAlerts": len(call_alerts),
            "putAlerts": len(put_alerts),
            "sweepCount": alert_sweeps,
            "sentiment": alert_sentiment,
            "topStrikes": top_strikes,
            "callPutRatio": call_put_ratio,
        },
        "tradeAgeBuckets": age_buckets,
        "expirationBuckets": expiry_buckets,
        "darkPool": {
            "tradeCount": len(dark_pool),
            "totalVolume": dark_pool_volume,
            "totalPremium": dark_pool_premium,
            "sentiment": dark_pool_sentiment,
        },
        "signals": {
            "overallSentiment": verdict,
            "confidenceScore": confidence,
            "keySignals": key_signals,
            "warnings": warnings,
        },
    }
    data["summary"] = build_summary(data)
    return data


def build_summary(data: dict[str, Any]) -> str:
    """Plain-text digest of the whale breakdown for the LLM prompt."""
    whales, flow, dark = data["whaleTrades"], data["flowAlerts"], data["darkPool"]
    ages, expiries, signals = data["tradeAgeBuckets"], data["expirationBuckets"], data["signals"]
    net = flow["callPremium"] - flow["putPremium"]

    lines = [
        f"UNUSUAL WHALES SMART MONEY ANALYSIS: {data['symbol']}",
        "",
        "ANALYSIS PARAMETERS:",
        f"- Trade Window: Last 10 days ({data['tradeWindowStart']} to {data['tradeWindowEnd']})",
        f"- Expiration Window: 3-13 weeks ({data['expirationMin']} to {data['expirationMax']})",
        f"- Alerts Analyzed: {flow['count']} (filtered from {flow['totalBeforeFilter']} total)",
        "",
    ]

    if whales["count"]:
        lines += [
            "WHALE TRADES ($100K+ PREMIUM):",
            f"- Total Whale Trades: {whales['count']}",
            f"- Whale Call Premium: ${whales['callPremium'] / 1e6:.2f}M",
            f"- Whale Put Premium: ${whales['putPremium'] / 1e6:.2f}M",
            f"- Whale Sweep Orders: {whales['sweepCount']}",
            f"- WHALE SENTIMENT: {whales['sentiment']}",
            "",
            "TOP 5 WHALE TRADES:",
        ]
        for i, t in enumerate(whales["topTrades"][:5], 1):
            sweep = " [SWEEP]" if t["isSweep"] else ""
            lines.append(
                f"  {i}. ${t['premium'] / 1e6:.2f}M {t['type']} ${t['strike']} | "
                f"{t['tradeAgeDays']}d ago -> exp in {t['daysToExpiry']}d{sweep}"
            )
        lines.append("")

    lines += [
        "OPTIONS FLOW (Filtered: 0-10 days old, 3-13 week exp):",
        f"- Call Premium: ${flow['callPremium'] / 1e6:.2f}M ({flow['callAlerts']} alerts)",
        f"- Put Premium: ${flow['putPremium'] / 1e6:.2f}M ({flow['putAlerts']} alerts)",
        f"- Net Flow: {'BULLISH' if net > 0 else 'BEARISH'} (${abs(net) / 1e6:.2f}M)",
        f"- Call/Put Ratio: {flow['callPutRatio']:.2f}:1",
        f"- Sweep Orders: {flow['sweepCount']}",
        "",
        "TRADE AGE DISTRIBUTION:",
        f"- Last 2 days: {ages['days1_2']} alerts",
        f"- 3-5 days ago: {ages['days3_5']} alerts",
        f"- 6-10 days ago: {ages['days6_10']} alerts",
        "",
        "EXPIRATION DISTRIBUTION:",
        f"- Weeks 3-5 (21-35 days): {expiries['week3_5']} alerts",
        f"- Weeks 6-9 (36-63 days): {expiries['week6_9']} alerts",
        f"- Weeks 10-13 (64-91 days): {expiries['week10_13']} alerts",
        "",
        "DARK POOL ACTIVITY (Last 10 days):",
        f"- Total Trades: {dark['tradeCount']}",
        f"- Volume: {dark['totalVolume'] / 1e6:.2f}M shares",
        f"- Premium: ${dark['totalPremium'] / 1e6:.2f}M",
        "",
    ]

    if flow["topStrikes"]:
        lines.append("HOTTEST STRIKES:")
        lines += [f"  {i}. {strike}" for i, strike in enumerate(flow["topStrikes"], 1)]
        lines.append("")

    lines.append("SMART MONEY SIGNALS:")
    lines += signals["keySignals"] or ["- No strong signals detected"]
    if signals["warnings"]:
        lines += ["", "WARNINGS:", *signals["warnings"]]

    lines += [
        "",
        f"OVERALL SMART MONEY VERDICT: {signals['overallSentiment'].replace('_', ' ', 1)}",
        f"CONFIDENCE SCORE: {signals['confidenceScore']}/100",
        "",
        "CRITICAL: Your trading decision MUST align with the whale activity above.",
        "If whales are BULLISH, do NOT recommend BEARISH trades (and vice versa).",
    ]
    return "\n".join(lines)


class UnusualWhalesProvider(BaseProvider):
    name = "Unusual Whales"
    base_url = "https://api.unusualwhales.com/api"
    api_key_env = "UNUSUAL_WHALES_API_KEY"

    async def _uw_list(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        headers = {"Accept": "application/json", "Authorization": f"Bearer {self._require_api_key()}"}
        data = await self._get(path, params=params, headers=headers)
        return (data or {}).get("data") or []

    async def get_enhanced_whale_data(self, symbol: str) -> dict[str, Any]:
        upper = symbol.upper()
        self._require_api_key()
        now = datetime.now(UTC)
        date_from = (now - timedelta(days=TRADE_AGE_MAX_DAYS)).strftime("%Y-%m-%d")

        results = await asyncio.gather(
            self._uw_list(f"/stock/{upper}/flow-alerts", {"limit": 200}),
            self._uw_list(f"/stock/{upper}/flow-recent", {"min_premium": 5000}),
            self._uw_list(
                f"/darkpool/{upper}", {"date_from": date_from, "date_to": now.strftime("%Y-%m-%d"), "limit": 500}
            ),
            self._uw_list("/option-trade/full-tape", {"ticker": upper, "limit": 200, "min_premium": 100000}),
            return_exceptions=True,
        )
        alerts, _recent, dark_pool, whales = (
            [] if isinstance(r, BaseException) else r for r in results
        )
        for endpoint, result in zip(("flow-alerts", "flow-recent", "darkpool", "full-tape"), results, strict=True):
            if isinstance(result, BaseException):
                logger.warning(f"[{self.name}] {endpoint} failed for {upper}: {result}")

        logger.info(
            f"[{self.name}] {upper}: {len(alerts)} alerts, {len(dark_pool)} dark pool prints, "
            f"{len(whales)} whale trades"
        )
        return analyze_whale_activity(upper, alerts, dark_pool, whales, now)

    async def get_unusual_options_flow(self, symbol: str) -> UnusualFlowSummary:
        enhanced = await self.get_enhanced_whale_data(symbol)
        flow, whales = enhanced["flowAlerts"], enhanced["whaleTrades"]
        verdict = enhanced["signals"]["overallSentiment"]

        strikes = []
        for label in flow["topStrikes"]:
            match = re.search(r"\$?([\d.]+)", label)
            if match:
                value = to_float(match.group(1))
                if value is not None:
                    strikes.append(value)

        if "BULLISH" in verdict:
            sentiment = "bullish"
        elif "BEARISH" in verdict:
            sentiment = "bearish"
        else:
            sentiment = "neutral"

        return UnusualFlowSummary(
            symbol=enhanced["symbol"],
            total_call_premium=flow["callPremium"] + whales["callPremium"],
            total_put_premium=flow["putPremium"] + whales["putPremium"],
            call_put_ratio=flow["callPutRatio"] or 1.0,
            overall_sentiment=sentiment,
            notable_strikes=strikes,
            enhanced_whale_data=enhanced,
        )
