"""Utility helpers."""

from trade_analyst.utils.logging_config import get_console, setup_logging

__all__ = ["get_console", "setup_logging"]
