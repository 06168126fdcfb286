"""
Logging setup for the command line.

Console output goes through one RichHandler that shares the CLI's Console,
so log lines and rendered tables interleave cleanly. The ``[Agent]``,
``[Executor]``, ``[JobStore]`` style tag that starts each message is
highlighted, as are job ids.

Levels come from LoggingConfig: LOG_LEVEL for everything, then
LOG_COMPONENT_LEVELS per component (``agent=DEBUG,providers=WARNING``).
A log file under ``<base_dir>/logs`` is written in debug mode or when
LOG_TO_FILE is set.
"""

import logging
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from trade_analyst.config import COMPONENT_LOGGERS, Config

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"

THEME = Theme(
    {
        "logging.level.info": "green",
        "logging.level.warning": "yellow",
        "logging.level.error": "red bold",
        "logging.level.debug": "dim",
        "log.component": "bold magenta",
        "log.job_id": "cyan",
        "bullish": "bold green",
        "bearish": "bold red",
        "neutral": "yellow",
        "status.pending": "yellow",
        "status.running": "cyan",
        "status.completed": "green",
        "status.failed": "red",
        "status.cancelled": "dim",
        "check.ok": "green",
        "check.warning": "yellow",
        "check.error": "red",
    }
)

# Libraries that log request-level chatter at INFO
NOISY_LOGGERS = (
    "aiohttp",
    "aiohttp.access",
    "asyncio",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "openai",
    "LiteLLM",
    "litellm",
)

_console: Console | None = None


class ComponentHighlighter(RegexHighlighter):
    """Styles the leading ``[Component]`` tag and any job id in a log message."""

    base_style = "log."
    highlights = [
        r"^(?P<component>\[[A-Za-z][\w ]*\])",
        r"(?P<job_id>\b[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b)",
    ]


def get_console() -> Console:
    """The Console shared by log output and CLI rendering."""
    global _console
    if _console is None:
        _console = Console(theme=THEME, force_terminal=True)
    return _console


def setup_logging(config: Config, debug: bool = False) -> Path | None:
    """
    Configure the root logger from ``config``.

    Safe to call more than once; handlers and component levels are reset
    each time.

    Returns:
        Path of the log file, or None when only the console is used
    """
    debug = debug or config.system.debug
    level = logging.DEBUG if debug else getattr(logging, config.logging.log_level, logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    console_handler = RichHandler(
        console=get_console(),
        show_time=True,
        show_path=debug,
        rich_tracebacks=True,
        tracebacks_show_locals=debug,
        omit_repeated_times=True,
        markup=False,
        highlighter=ComponentHighlighter(),
    )
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    log_file = None
    if debug or config.logging.log_to_file:
        log_file = _add_file_handler(root_logger, Path(config.log_dir), debug)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    for name in COMPONENT_LOGGERS.values():
        logging.getLogger(name).setLevel(logging.NOTSET)
    for name, component_level in config.logging.component_level_map().items():
        logging.getLogger(name).setLevel(component_level)

    logger = logging.getLogger(__name__)
    logger.debug(f"[Logging] level={logging.getLevelName(level)}, file={log_file or '-'}")
    return log_file


def _add_file_handler(root_logger: logging.Logger, log_dir: Path, debug: bool) -> Path:
    log_dir.mkdir(parents=True, exist_ok=True)
    prefix = "trade_analyst_debug" if debug else "trade_analyst"
    log_file = log_dir / f"{prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    root_logger.addHandler(file_handler)
    return log_file
