"""Pydantic Settings configuration management."""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import AfterValidator, BeforeValidator, Field, ValidationError, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from trade_analyst.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _find_project_root() -> Path:
    """Find project root directory (contains pyproject.toml or .env).

    Priority check for PROJECT_ROOT environment variable for Docker scenarios.
    """
    env_root = os.environ.get("PROJECT_ROOT")
    if env_root:
        path = Path(env_root)
        if path.exists():
            return path.resolve()

    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / "pyproject.toml").exists() or (parent / ".env").exists():
            return parent
    return current.parents[2]


_PROJECT_ROOT = _find_project_root()


def _parse_bool(value: str | bool | None) -> bool:
    """Parse boolean value from string or bool."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("true", "1", "yes")


def _validate_temperature(v: float) -> float:
    """Validate LLM temperature is within valid range."""
    if not 0 <= v <= 2:
        raise ConfigurationError("Temperature must be between 0 and 2")
    return v


ValidTemperature = Annotated[float, AfterValidator(_validate_temperature)]

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Short names accepted in LOG_COMPONENT_LEVELS
COMPONENT_LOGGERS = {
    "agent": "trade_analyst.ai.agent",
    "executor": "trade_analyst.ai.executor",
    "llm": "trade_analyst.ai.clients",
    "parser": "trade_analyst.ai.parser",
    "providers": "trade_analyst.providers",
    "jobstore": "trade_analyst.storage.job_store",
    "jobs": "trade_analyst.jobs",
    "backtest": "trade_analyst.backtest",
    "diagnostics": "trade_analyst.diagnostics",
}


def parse_component_levels(value: str) -> dict[str, str]:
    """Parse ``name=LEVEL`` pairs into {logger name: level}."""
    levels: dict[str, str] = {}
    for item in filter(None, (part.strip() for part in value.split(","))):
        name, sep, level = item.partition("=")
        name, level = name.strip().lower(), level.strip().upper()
        if not sep:
            raise ConfigurationError(f"Expected component=LEVEL in LOG_COMPONENT_LEVELS, got '{item}'")
        if name not in COMPONENT_LOGGERS:
            raise ConfigurationError(f"Unknown log component '{name}', expected one of {sorted(COMPONENT_LOGGERS)}")
        if level not in VALID_LOG_LEVELS:
            raise ConfigurationError(f"Log level for '{name}' must be one of {VALID_LOG_LEVELS}")
        levels[COMPONENT_LOGGERS[name]] = level
    return levels


# Type alias for boolean fields from environment variables
EnvBool = Annotated[bool, BeforeValidator(_parse_bool)]

# Shared model configuration
_COMMON_CONFIG = SettingsConfigDict(
    env_file=_PROJECT_ROOT / ".env",
    env_file_encoding="utf-8",
    extra="ignore",
)


# ==========================================
# Nested configuration classes using BaseSettings
# ==========================================


class AIConfig(BaseSettings):
    """AI provider configuration: OpenRouter as primary, OpenAI as fallback."""

    model_config = _COMMON_CONFIG

    # Primary provider (OpenRouter, litellm prefix "openrouter/")
    openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1", validation_alias="OPENROUTER_BASE_URL")
    primary_model: str = Field(default="anthropic/claude-3.7-sonnet", validation_alias="LLM_PRIMARY_MODEL")

    # Fallback provider (OpenAI, litellm prefix "openai/")
    openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
    openai_base_url: str = Field(default="https://api.openai.com/v1", validation_alias="OPENAI_BASE_URL")
    fallback_model: str = Field(default="gpt-4o", validation_alias="LLM_FALLBACK_MODEL")
    chat_fallback_model: str = Field(default="gpt-4o-mini", validation_alias="LLM_CHAT_FALLBACK_MODEL")

    # Generation parameters
    analysis_temperature: ValidTemperature = Field(default=0.2, validation_alias="LLM_ANALYSIS_TEMPERATURE")
    chat_temperature: ValidTemperature = Field(default=0.7, validation_alias="LLM_CHAT_TEMPERATURE")
    llm_timeout: int = Field(default=120, ge=1, validation_alias="LLM_TIMEOUT")

    # OpenRouter attribution headers
    app_url: str = Field(default="http://localhost:3000", validation_alias="APP_URL")
    app_title: str = Field(default="Trade Analyst AI", validation_alias="APP_TITLE")

    embedding_model: str = Field(default="text-embedding-3-small", validation_alias="EMBEDDING_MODEL")


class ProviderConfig(BaseSettings):
    """Market data provider credentials."""

    model_config = _COMMON_CONFIG

    polygon_api_key: str | None = Field(default=None, validation_alias="POLYGON_API_KEY")
    finnhub_api_key: str | None = Field(default=None, validation_alias="FINNHUB_API_KEY")
    benzinga_api_key: str | None = Field(default=None, validation_alias="BENZINGA_API_KEY")
    fmp_api_key: str | None = Field(default=None, validation_alias="FMP_API_KEY")
    twelvedata_api_key: str | None = Field(default=None, validation_alias="TWELVEDATA_API_KEY")
    unusual_whales_api_key: str | None = Field(default=None, validation_alias="UNUSUAL_WHALES_API_KEY")

    # SEC requires a User-Agent with contact info
    sec_user_agent: str = Field(
        default="TradeAnalyst/1.0 (contact@example.com)",
        validation_alias="SEC_USER_AGENT",
    )


class AgentConfig(BaseSettings):
    """Analysis agent loop limits."""

    model_config = _COMMON_CONFIG

    max_tool_calls: int = Field(default=15, ge=1, validation_alias="MAX_TOOL_CALLS")
    max_iterations: int = Field(default=10, ge=1, validation_alias="MAX_ITERATIONS")
    force_analysis_after_tools: int = Field(default=8, ge=1, validation_alias="FORCE_ANALYSIS_AFTER_TOOLS")
    tool_timeout_seconds: float = Field(default=15.0, gt=0, validation_alias="TOOL_TIMEOUT_SECONDS")
    reflection_max_iterations: int = Field(default=2, ge=1, le=5, validation_alias="REFLECTION_MAX_ITERATIONS")


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = _COMMON_CONFIG

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_to_file: EnvBool = Field(default=False, validation_alias="LOG_TO_FILE")
    # e.g. "agent=DEBUG,providers=WARNING"; names are the keys of COMPONENT_LOGGERS
    component_levels: str = Field(default="", validation_alias="LOG_COMPONENT_LEVELS")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if v.upper() not in VALID_LOG_LEVELS:
            raise ConfigurationError(f"Log level must be one of {VALID_LOG_LEVELS}")
        return v.upper()

    @field_validator("component_levels")
    @classmethod
    def validate_component_levels(cls, v: str) -> str:
        parse_component_levels(v)
        return v

    def component_level_map(self) -> dict[str, str]:
        return parse_component_levels(self.component_levels)


class SystemConfig(BaseSettings):
    """System configuration."""

    model_config = _COMMON_CONFIG

    debug: EnvBool = Field(default=False, validation_alias="DEBUG")
    database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")


# ==========================================
# Main configuration class
# ==========================================


def _default_base_dir() -> str:
    """Get default base directory for application data.

    Priority:
    1. BASE_DIR environment variable
    2. ~/.trade-analyst (user home directory)
    """
    env_base = os.environ.get("BASE_DIR")
    if env_base:
        return env_base
    return str(Path.home() / ".trade-analyst")


class Config(BaseSettings):
    """Main system configuration class.

    Built once at process start and passed explicitly into the LLM client,
    provider registry, tool executor, agent and job store.

    All runtime data (database, logs) is stored under base_dir,
    which defaults to ~/.trade-analyst.
    """

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
        env_parse_none_str="null",
    )

    base_dir: str = Field(default_factory=_default_base_dir, validation_alias="BASE_DIR")

    ai: AIConfig = Field(default_factory=AIConfig)
    providers: ProviderConfig = Field(default_factory=ProviderConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)

    # ==========================================
    # Derived paths from base_dir
    # ==========================================

    @computed_field
    @property
    def data_dir(self) -> str:
        """Directory for database and data files."""
        return str(Path(self.base_dir) / "data")

    @computed_field
    @property
    def log_dir(self) -> str:
        """Directory for log files."""
        return str(Path(self.base_dir) / "logs")

    @computed_field
    @property
    def database_path(self) -> str:
        """Path to SQLite database file."""
        return str(Path(self.base_dir) / "data" / "trade_analyst.db")

    # ==========================================
    # Methods
    # ==========================================

    def get_db_url(self) -> str:
        """Get SQLAlchemy database connection URL.

        DATABASE_URL wins when set; otherwise a SQLite file under data_dir,
        creating parent directories if they don't exist.
        """
        if self.system.database_url:
            return self.system.database_url
        db_path = Path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path.absolute()}"

    def validate_config(self) -> list[str]:
        """Validate configuration completeness and return list of warnings."""
        warnings_list: list[str] = []

        if not self.ai.openrouter_api_key and not self.ai.openai_api_key:
            warnings_list.append(
                "Warning: neither OPENROUTER_API_KEY nor OPENAI_API_KEY is set, AI analysis is unavailable"
            )
        elif not self.ai.openai_api_key:
            warnings_list.append("Note: OPENAI_API_KEY is not set, there is no LLM fallback or knowledge search")

        if not self.providers.polygon_api_key:
            warnings_list.append("Note: POLYGON_API_KEY is not set, stock prices, history and news are unavailable")

        if not self.providers.twelvedata_api_key:
            warnings_list.append("Note: TWELVEDATA_API_KEY is not set, forex quotes and indicators are unavailable")

        if not any(
            (
                self.providers.benzinga_api_key,
                self.providers.finnhub_api_key,
                self.providers.fmp_api_key,
            )
        ):
            warnings_list.append("Note: no earnings/ratings API key configured, only the Yahoo scraper will be used")

        return warnings_list


@lru_cache
def get_config() -> Config:
    """Get cached configuration instance.

    Loads configuration from environment variables and .env file.

    Returns:
        Config instance with all settings loaded.
    """
    return Config()


def get_config_safe() -> tuple[Config | None, list[str]]:
    """Safely load configuration.

    Returns:
        tuple: (Config object or None, list of error messages)
    """
    errors = []
    try:
        config = Config()
        return config, []
    except ValidationError as e:
        errors.append(f"Failed to load configuration: {e}")
        return None, errors
    except ConfigurationError as e:
        errors.append(f"Invalid configuration: {e}")
        return None, errors
