"""
Configuration management for the token casino.
Supports config.json with environment variable overrides.
All paths are resolved relative to the project root.
"""

import json
import os
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field

from dotenv import load_dotenv

load_dotenv()

# Project root directory (parent of 'tokencasino' folder)
PROJECT_ROOT = Path(__file__).parent.parent


def get_env(key: str, default: str = None) -> Optional[str]:
    """Get environment variable with optional default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key)
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes", "on")


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get float environment variable."""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        return default


# ==================== Configuration Models ====================

class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = True
    name: str = "Token Casino"


class SecurityConfig(BaseModel):
    secret_key: str = "CHANGE_THIS_IN_PRODUCTION_PLEASE"
    session_max_age_days: int = 30


class EconomyConfig(BaseModel):
    exchange_rate: float = 10.0  # tokens per unit of external currency
    balance_cache_ttl: float = 5.0  # seconds; display only
    starting_balance: float = 0.0
    settlement_retry_seconds: int = 30


class GameConfig(BaseModel):
    enabled: bool = True
    min_bet: float = 0.0  # 0 allows practice rounds
    max_bet: float = 10000.0

    class Config:
        extra = "allow"  # Allow extra fields for game-specific configs


class CrashConfig(GameConfig):
    tick_ms: int = 50
    base_multiplier: float = 1.0024
    house_edge: float = 0.99


class MinesConfig(GameConfig):
    auto_reveal_threshold: int = 2


class MiningConfig(GameConfig):
    energy_max: int = 100
    energy_regen: int = 5
    energy_regen_seconds: float = 5.0


class GamesConfig(BaseModel):
    crash: CrashConfig = Field(default_factory=CrashConfig)
    dice: GameConfig = Field(default_factory=GameConfig)
    mines: MinesConfig = Field(default_factory=MinesConfig)
    plinko: GameConfig = Field(default_factory=GameConfig)
    blackjack: GameConfig = Field(default_factory=GameConfig)
    mining: MiningConfig = Field(default_factory=MiningConfig)
    round_idle_timeout: int = 600  # 10 minutes


class RateLimitConfig(BaseModel):
    enabled: bool = True
    game_requests: str = "30/minute"  # For game actions like rolls and reveals
    api_requests: str = "60/minute"   # For general API calls


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_to_file: bool = False
    formatter: str = "color"


class PathsConfig(BaseModel):
    """All paths are relative to PROJECT_ROOT."""
    config_file: str = "config.json"
    database: str = "data/ledger.db"
    log_file: str = "data/app.log"

    def get_config_path(self) -> Path:
        return PROJECT_ROOT / self.config_file

    def get_db_path(self) -> Path:
        return PROJECT_ROOT / self.database

    def get_log_path(self) -> Path:
        return PROJECT_ROOT / self.log_file


class AppConfig(BaseModel):
    """Main application configuration."""
    server: ServerConfig = Field(default_factory=ServerConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    economy: EconomyConfig = Field(default_factory=EconomyConfig)
    games: GamesConfig = Field(default_factory=GamesConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)


# ==================== Configuration Loading ====================

def load_config() -> AppConfig:
    """
    Load configuration from config.json with environment variable overrides.
    Environment variables take precedence over config.json values.
    """
    config_path = PathsConfig().get_config_path()

    data = {}

    if config_path.exists():
        with open(config_path, "r") as f:
            data = json.load(f)

    # Apply environment variable overrides
    if get_env("SERVER_HOST"):
        data.setdefault("server", {})["host"] = get_env("SERVER_HOST")
    if get_env("SERVER_PORT"):
        data.setdefault("server", {})["port"] = get_env_int("SERVER_PORT", 8000)
    if get_env("DEBUG"):
        data.setdefault("server", {})["debug"] = get_env_bool("DEBUG")

    if get_env("SECRET_KEY"):
        data.setdefault("security", {})["secret_key"] = get_env("SECRET_KEY")

    if get_env("EXCHANGE_RATE"):
        data.setdefault("economy", {})["exchange_rate"] = get_env_float("EXCHANGE_RATE", 10.0)
    if get_env("BALANCE_CACHE_TTL"):
        data.setdefault("economy", {})["balance_cache_ttl"] = get_env_float("BALANCE_CACHE_TTL", 5.0)

    if get_env("DB_PATH"):
        data.setdefault("paths", {})["database"] = get_env("DB_PATH")

    if get_env("LOG_LEVEL"):
        data.setdefault("logging", {})["level"] = get_env("LOG_LEVEL")
    if get_env("LOG_TO_FILE"):
        data.setdefault("logging", {})["log_to_file"] = get_env_bool("LOG_TO_FILE")
    if get_env("LOG_FORMATTER"):
        data.setdefault("logging", {})["formatter"] = get_env("LOG_FORMATTER")

    if get_env("RATE_LIMIT_ENABLED"):
        data.setdefault("rate_limit", {})["enabled"] = get_env_bool("RATE_LIMIT_ENABLED", True)
    if get_env("RATE_LIMIT_GAME_REQUESTS"):
        data.setdefault("rate_limit", {})["game_requests"] = get_env("RATE_LIMIT_GAME_REQUESTS")
    if get_env("RATE_LIMIT_API_REQUESTS"):
        data.setdefault("rate_limit", {})["api_requests"] = get_env("RATE_LIMIT_API_REQUESTS")

    return AppConfig(**data)


# Global config instance
settings = load_config()
