"""Configuration management using Pydantic models.

This module handles loading and validation of configuration from YAML files
and environment variables.
"""

import yaml
from pathlib import Path
from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExchangeConfig(BaseModel):
    """Bybit market data API configuration."""

    base_url: str = Field(default="https://api.bybit.com", description="Bybit API base URL")
    category: str = Field(default="linear", pattern="^(linear|inverse|spot)$", description="Bybit product category")
    timeout: float = Field(default=8.0, gt=0, le=120, description="Request timeout in seconds")
    candle_limit: int = Field(default=200, ge=1, le=1000, description="Number of candles to fetch per request")
    max_retries: int = Field(default=0, ge=0, le=10, description="Retry attempts within a single fetch")
    retry_backoff: float = Field(default=1.0, ge=0.1, le=10.0, description="Retry backoff multiplier")
    max_concurrent_requests: int = Field(default=5, ge=1, le=50, description="HTTP connection pool size")


class ScannerConfig(BaseModel):
    """Scan scheduler configuration."""

    symbols: List[str] = Field(default_factory=list, description="Symbols to scan")
    timeframes: List[str] = Field(
        default=["5m", "15m", "1h", "4h", "1d"],
        description="Timeframe tokens to scan for every symbol"
    )
    scan_interval_seconds: int = Field(default=60, ge=1, le=86400, description="Interval between scan passes")
    max_concurrent_scans: int = Field(default=4, ge=1, le=50, description="Worker pool size within a pass")


class OTEStrategyConfig(BaseModel):
    """Bias + OTE retracement signal rules."""

    # History requirement
    min_candles: int = Field(default=80, ge=1, description="Minimum closes before a setup is evaluated")

    # Indicator periods
    ema_fast: int = Field(default=20, ge=1, le=200, description="Fast EMA period")
    ema_slow: int = Field(default=50, ge=1, le=400, description="Slow EMA period")
    rsi_period: int = Field(default=14, ge=2, le=100, description="RSI period")
    range_period: int = Field(default=20, ge=1, le=200, description="Average candle range period")
    swing_lookback: int = Field(default=30, ge=2, le=500, description="Closes used for the swing range")

    # OTE band (fraction of the swing retraced)
    ote_fib_shallow: float = Field(default=0.618, gt=0.0, lt=1.0, description="Shallow edge of the OTE band")
    ote_fib_deep: float = Field(default=0.79, gt=0.0, lt=1.0, description="Deep edge of the OTE band")

    # RSI filters (exclusive bounds)
    long_rsi_min: float = Field(default=40.0, ge=0.0, le=100.0)
    long_rsi_max: float = Field(default=70.0, ge=0.0, le=100.0)
    short_rsi_min: float = Field(default=30.0, ge=0.0, le=100.0)
    short_rsi_max: float = Field(default=60.0, ge=0.0, le=100.0)

    # Targets
    tp_range_mult: float = Field(default=2.5, gt=0.0, le=20.0, description="Take profit distance in average ranges")
    sl_range_mult: float = Field(default=1.2, gt=0.0, le=20.0, description="Stop loss distance in average ranges")
    fallback_range_pct: float = Field(default=0.01, gt=0.0, le=0.5, description="Range used when candles have no width")

    @field_validator('ote_fib_deep')
    @classmethod
    def deep_beyond_shallow(cls, v, info):
        """Ensure the deep fib level retraces further than the shallow one."""
        shallow = info.data.get('ote_fib_shallow') if info.data else None
        if shallow is not None and v <= shallow:
            raise ValueError(f"ote_fib_deep ({v}) must be greater than ote_fib_shallow ({shallow})")
        return v

    @field_validator('ema_slow')
    @classmethod
    def slow_beyond_fast(cls, v, info):
        """Ensure the slow EMA is slower than the fast one."""
        fast = info.data.get('ema_fast') if info.data else None
        if fast is not None and v <= fast:
            raise ValueError(f"ema_slow ({v}) must be greater than ema_fast ({fast})")
        return v


class LogFilesConfig(BaseModel):
    """Log files configuration."""

    main: Optional[str] = Field(default="runtime/logs/scanner.log", description="Main log file")
    error: Optional[str] = Field(default="runtime/logs/error.log", description="Error log file")
    debug: Optional[str] = Field(default="runtime/logs/debug.log", description="Debug log file")
    api: Optional[str] = Field(default="runtime/logs/api.log", description="API log file")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$", description="Log level")
    format: str = Field(default="text", pattern="^(json|text)$", description="Log format")

    files: LogFilesConfig = Field(default_factory=LogFilesConfig)

    # Log rotation
    max_file_size_mb: int = Field(default=50, ge=1, le=1000, description="Max log file size")
    backup_count: int = Field(default=10, ge=1, le=100, description="Number of backup files")

    # Structured logging fields
    include_fields: List[str] = Field(
        default=["timestamp", "level", "module", "message", "data", "correlation_id"],
        description="Fields to include in structured logs"
    )


class Config(BaseModel):
    """Main configuration model containing all settings."""
    model_config = ConfigDict(extra='ignore')

    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    strategy: OTEStrategyConfig = Field(default_factory=OTEStrategyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class EnvironmentConfig(BaseSettings):
    """Environment-specific configuration loaded from .env file."""

    environment: str = Field(default="development", description="Environment name")
    log_level: Optional[str] = Field(default=None, description="Log level override")

    # Development options
    debug_mode: bool = Field(default=False, description="Enable debug mode")
    log_api_requests: bool = Field(default=False, description="Log API requests")
    log_api_responses: bool = Field(default=False, description="Log API responses")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


DEFAULT_CONFIG_PATH = "configs/config.yaml"


def load_config(config_path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> Config:
    """Read and validate a YAML configuration file.

    An empty file yields the all-defaults configuration.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the YAML is malformed or fails validation
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding='utf-8'))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must contain a mapping, got {type(raw).__name__}")

    try:
        return Config.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"Configuration validation failed: {e}") from e


def load_environment_config() -> EnvironmentConfig:
    """Settings from the process environment and ``.env``."""
    try:
        return EnvironmentConfig()
    except ValidationError as e:
        raise ValueError(f"Environment configuration failed: {e}") from e


def ensure_directories(config: Config) -> None:
    """Create parent directories of every configured log file."""
    files = config.logging.files
    for log_file in filter(None, (files.main, files.error, files.debug, files.api)):
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)


# Lazily loaded process-wide instances
_config_instance: Optional[Config] = None
_env_config_instance: Optional[EnvironmentConfig] = None


def get_config() -> Config:
    """Process-wide configuration, loaded from the default path on first use."""
    if _config_instance is None:
        return reload_config()
    return _config_instance


def get_env_config() -> EnvironmentConfig:
    global _env_config_instance

    if _env_config_instance is None:
        _env_config_instance = load_environment_config()

    return _env_config_instance


def reload_config(config_path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> Config:
    """Replace the process-wide configuration with a fresh load of ``config_path``."""
    global _config_instance

    config = load_config(config_path)
    ensure_directories(config)
    _config_instance = config
    return config
