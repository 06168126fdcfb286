"""
Market data provider clients.

Each client wraps one vendor's HTTP API and maps its JSON into the
models in ``trade_analyst.models``.
"""

from trade_analyst.providers.base import BaseProvider
from trade_analyst.providers.benzinga import BenzingaProvider
from trade_analyst.providers.finnhub import FinnhubProvider
from trade_analyst.providers.fmp import FMPProvider
from trade_analyst.providers.forex_factory import ForexFactoryProvider
from trade_analyst.providers.knowledge import KnowledgeBase, format_context_for_prompt
from trade_analyst.providers.polygon import PolygonProvider
from trade_analyst.providers.registry import ProviderRegistry
from trade_analyst.providers.sec_edgar import SECEdgarProvider
from trade_analyst.providers.twelvedata import TwelveDataProvider
from trade_analyst.providers.unified import UnifiedDataResolver, UnifiedResult, resolve_with_fallback
from trade_analyst.providers.unusual_whales import UnusualWhalesProvider
from trade_analyst.providers.yahoo import YahooProvider

__all__ = [
    "BaseProvider",
    "BenzingaProvider",
    "FinnhubProvider",
    "FMPProvider",
    "ForexFactoryProvider",
    "KnowledgeBase",
    "format_context_for_prompt",
    "PolygonProvider",
    "ProviderRegistry",
    "SECEdgarProvider",
    "TwelveDataProvider",
    "UnifiedDataResolver",
    "UnifiedResult",
    "resolve_with_fallback",
    "UnusualWhalesProvider",
    "YahooProvider",
]
