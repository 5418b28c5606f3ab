"""
Configuration module for the Fusion swap bot.
Loads settings from environment variables with validation.
"""

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

from .monitor.trigger import Stance, StanceError

# Load .env file if present
load_dotenv()


@dataclass
class WalletConfig:
    """Wallet and chain configuration."""
    wallet_address: str
    private_key_hex: str
    chain_id: int


@dataclass
class TokenConfig:
    """One side of the traded pair."""
    symbol: str
    name: str
    decimals: int
    address: str


@dataclass
class RouterConfig:
    """1inch router configuration."""
    contract_address: str
    request_timeout_seconds: float = 15.0


@dataclass
class RedisConfig:
    """Redis connection settings."""
    host: str
    port: int
    password: str
    db: int = 0


@dataclass
class MonitorConfig:
    """Trigger band parameters."""
    initial_stance: Stance
    limit_percent: float
    stop_loss_percent: float


@dataclass
class PollingConfig:
    """Loop timing."""
    poll_interval_seconds: float
    post_trade_sleep_seconds: float


@dataclass
class RiskConfig:
    """Risk control settings."""
    kill_switch: bool
    simulation_mode: bool  # Dry run - quote and sign but don't submit
    min_stable_output: float  # Minimum stable units a swap must return


@dataclass
class LogConfig:
    """Logging configuration."""
    log_level: str
    json_logging: bool


@dataclass
class Config:
    """Main configuration container."""
    env: str
    wallet: WalletConfig
    target_token: TokenConfig
    stable_token: TokenConfig
    router: RouterConfig
    redis: RedisConfig
    monitor: MonitorConfig
    polling: PollingConfig
    risk: RiskConfig
    logging: LogConfig

    @property
    def is_production(self) -> bool:
        return self.env == "production"


def get_env(key: str, default: Optional[str] = None, required: bool = True) -> str:
    """Get environment variable with validation."""
    value = os.getenv(key, default)
    if required and not value:
        raise ValueError(f"Required environment variable {key} is not set")
    return value or ""


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes")


def get_env_int(key: str, default: Optional[int] = None) -> int:
    """Get integer environment variable. Required when no default is given."""
    value = os.getenv(key)
    if value is None or value == "":
        if default is None:
            raise ValueError(f"Required environment variable {key} is not set")
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be an integer, got {value!r}")


def get_env_float(key: str, default: float) -> float:
    """Get float environment variable."""
    value = os.getenv(key, str(default))
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be a number, got {value!r}")


def _load_token(prefix: str) -> TokenConfig:
    return TokenConfig(
        symbol=get_env(f"{prefix}_TOKEN_SYMBOL"),
        name=get_env(f"{prefix}_TOKEN_NAME", required=False),
        decimals=get_env_int(f"{prefix}_TOKEN_DECIMALS"),
        address=get_env(f"{prefix}_TOKEN_ADDRESS"),
    )


def load_config() -> Config:
    """Load and validate configuration from environment."""
    env = get_env("ENV", "development", required=False)
    log_level = get_env("LOG_LEVEL", "DEBUG", required=False).upper()

    # Production never logs below INFO
    if env == "production" and log_level == "DEBUG":
        log_level = "INFO"

    stance_value = get_env("INITIAL_STANCE", Stance.ACCUMULATE.value, required=False)
    try:
        initial_stance = Stance.parse(stance_value)
    except StanceError as e:
        raise ValueError(f"INITIAL_STANCE: {e}") from e

    return Config(
        env=env,
        wallet=WalletConfig(
            wallet_address=get_env("WALLET_ADDRESS"),
            private_key_hex=get_env("WALLET_PRIVATE_KEY_HEX"),
            chain_id=get_env_int("CHAIN_ID"),
        ),
        target_token=_load_token("TARGET"),
        stable_token=_load_token("STABLE"),
        router=RouterConfig(
            contract_address=get_env("ROUTER_CONTRACT_ADDRESS"),
            request_timeout_seconds=get_env_float("REQUEST_TIMEOUT_SECONDS", 15.0),
        ),
        redis=RedisConfig(
            host=get_env("REDIS_HOST", "localhost", required=False),
            port=get_env_int("REDIS_PORT", 6379),
            password=get_env("REDIS_PASSWORD", required=False),
            db=get_env_int("REDIS_DB", 0),
        ),
        monitor=MonitorConfig(
            initial_stance=initial_stance,
            limit_percent=get_env_float("LIMIT_PERCENT", 0.5),
            stop_loss_percent=get_env_float("STOP_LOSS_PERCENT", 1.0),
        ),
        polling=PollingConfig(
            poll_interval_seconds=get_env_float("POLL_INTERVAL_SECONDS", 10),
            post_trade_sleep_seconds=get_env_float("POST_TRADE_SLEEP_SECONDS", 3600),
        ),
        risk=RiskConfig(
            kill_switch=get_env_bool("KILL_SWITCH", False),
            simulation_mode=get_env_bool("SIMULATION_MODE", True),  # Default to simulation
            min_stable_output=get_env_float("MIN_STABLE_OUTPUT", 0.0),
        ),
        logging=LogConfig(
            log_level=log_level,
            json_logging=get_env_bool("JSON_LOGGING", True),
        ),
    )
