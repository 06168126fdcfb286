"""Tests for provider helpers and BaseProvider."""

from unittest.mock import AsyncMock, patch

import pytest

from trade_analyst.exceptions import ConfigurationError, DataFetchError, RateLimitError
from trade_analyst.providers.base import BaseProvider, consensus_from_counts, summarize_targets, to_float


class DummyProvider(BaseProvider):
    name = "Dummy"
    base_url = "https://api.example.com"
    api_key_env = "DUMMY_API_KEY"


def test_to_float():
    """Numbers and numeric strings convert; junk gives None."""
    assert to_float("12.5") == 12.5
    assert to_float(3) == 3.0
    assert to_float("") is None
    assert to_float("n/a", 0.0) == 0.0
    assert to_float(None, 1.0) == 1.0


@pytest.mark.parametrize(
    ("counts", "expected"),
    [
        ((5, 3, 2, 0, 0), "strong_buy"),
        ((2, 3, 4, 1, 0), "buy"),
        ((0, 1, 2, 4, 3), "strong_sell"),
        ((0, 2, 2, 5, 0), "sell"),
        ((1, 1, 4, 1, 1), "hold"),
        ((0, 0, 0, 0, 0), "hold"),
    ],
)
def test_consensus_from_counts(counts, expected):
    """Consensus label from buy, hold and sell counts."""
    assert consensus_from_counts(*counts) == expected


def test_summarize_targets():
    """Price target summary statistics."""
    assert summarize_targets([]) == (None, None, None)
    assert summarize_targets([90.0, 110.0, 100.0]) == (100.0, 110.0, 90.0)


class TestBaseProvider:
    def test_missing_key(self):
        """A keyed provider without its key is not configured and refuses calls."""
        provider = DummyProvider()

        assert not provider.is_configured
        with pytest.raises(ConfigurationError, match="DUMMY_API_KEY not configured"):
            provider._require_api_key()

    def test_keyless_provider_is_always_configured(self):
        """Providers without a key variable are always configured."""
        class Keyless(BaseProvider):
            name = "Keyless"

        assert Keyless().is_configured

    @pytest.mark.asyncio
    async def test_get_joins_base_url(self):
        """Paths are appended to the base URL."""
        provider = DummyProvider("key")

        with patch("trade_analyst.providers.base.request_json", new_callable=AsyncMock, return_value={"ok": 1}) as mock:
            data = await provider._get("/quote", params={"symbol": "AAPL"})

        assert data == {"ok": 1}
        assert mock.await_args.args[0] == "https://api.example.com/quote"
        assert mock.await_args.kwargs["source"] == "Dummy"

    @pytest.mark.asyncio
    async def test_unexpected_errors_become_data_fetch_errors(self):
        """Unexpected exceptions are wrapped in DataFetchError."""
        provider = DummyProvider("key")

        with patch("trade_analyst.providers.base.request_json", new_callable=AsyncMock, side_effect=ValueError("bad")):
            with pytest.raises(DataFetchError, match="Dummy request failed: bad"):
                await provider._get("/quote")

    @pytest.mark.asyncio
    async def test_data_fetch_errors_pass_through(self):
        """DataFetchError subclasses are re-raised unchanged."""
        provider = DummyProvider("key")

        with patch(
            "trade_analyst.providers.base.request_json",
            new_callable=AsyncMock,
            side_effect=RateLimitError("Dummy rate limited"),
        ):
            with pytest.raises(RateLimitError):
                await provider._get("/quote")

    @pytest.mark.asyncio
    async def test_rate_limiter_is_acquired(self):
        """Each request takes a rate limiter token."""
        limiter = AsyncMock()
        provider = DummyProvider("key", rate_limiter=limiter)

        with patch("trade_analyst.providers.base.request_json", new_callable=AsyncMock, return_value=[]):
            await provider._get("/quote")

        limiter.acquire.assert_awaited_once()
