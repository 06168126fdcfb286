"""Builds every provider client from one Config."""

import logging

from trade_analyst.config import Config
from trade_analyst.infrastructure.rate_limiter import AsyncRateLimiter
from trade_analyst.providers.benzinga import BenzingaProvider
from trade_analyst.providers.finnhub import FinnhubProvider
from trade_analyst.providers.fmp import FMPProvider
from trade_analyst.providers.forex_factory import ForexFactoryProvider
from trade_analyst.providers.knowledge import KnowledgeBase
from trade_analyst.providers.polygon import PolygonProvider
from trade_analyst.providers.sec_edgar import SECEdgarProvider
from trade_analyst.providers.twelvedata import TwelveDataProvider
from trade_analyst.providers.unified import UnifiedDataResolver
from trade_analyst.providers.unusual_whales import UnusualWhalesProvider
from trade_analyst.providers.yahoo import YahooProvider
from trade_analyst.storage.database import Database

logger = logging.getLogger(__name__)

# Calls per minute, sized to each vendor's entry-level plan
RATE_LIMITS = {
    "polygon": 300,
    "finnhub": 60,
    "twelvedata": 8,
    "sec": 600,
    "yahoo": 60,
}


def _limiter(name: str) -> AsyncRateLimiter:
    return AsyncRateLimiter.per_minute(RATE_LIMITS[name], name)


class ProviderRegistry:
    """Holds one client per data source plus the unified resolver and knowledge base."""

    def __init__(self, config: Config, database: Database | None = None):
        keys = config.providers

        self.polygon = PolygonProvider(keys.polygon_api_key, _limiter("polygon"))
        self.finnhub = FinnhubProvider(keys.finnhub_api_key, _limiter("finnhub"))
        self.benzinga = BenzingaProvider(keys.benzinga_api_key)
        self.fmp = FMPProvider(keys.fmp_api_key)
        self.yahoo = YahooProvider(_limiter("yahoo"))
        self.twelvedata = TwelveDataProvider(keys.twelvedata_api_key, _limiter("twelvedata"))
        self.unusual_whales = UnusualWhalesProvider(keys.unusual_whales_api_key)
        self.sec = SECEdgarProvider(keys.sec_user_agent, _limiter("sec"))
        self.forex_factory = ForexFactoryProvider()

        self.unified = UnifiedDataResolver(self.benzinga, self.finnhub, self.fmp, self.yahoo)
        self.knowledge = KnowledgeBase(database, config.ai) if database is not None else None
