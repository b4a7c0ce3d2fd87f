import os
import re
from decimal import Decimal
from typing import List, Optional, Tuple

from pydantic import BaseModel, field_validator, ValidationError

from common.errors import ProviderUnavailable

_PLACEHOLDER_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class RPC(BaseModel):
    url: str
    timeout: int = 30

    @field_validator("url")
    @classmethod
    def must_be_https(cls, v: str) -> str:
        if not v.startswith("https://"):
            raise ValueError("RPC URL must be HTTPS")
        return v


class Scan(BaseModel):
    window_size: int = 100_000
    pause_seconds: float = 0.5
    max_retries: int = 6
    backoff_seconds: float = 0.5
    max_backoff_seconds: float = 30.0

    @field_validator("window_size", "max_retries")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


class Holders(BaseModel):
    dust_threshold: Decimal = Decimal("0.01")
    top_n: int = 10
    buckets: List[Tuple[int, int]] = [(0, 10), (10, 25), (25, 50), (50, 80), (80, 100)]
    classify_concurrency: int = 10

    @field_validator("buckets")
    @classmethod
    def must_partition(cls, v: List[Tuple[int, int]]) -> List[Tuple[int, int]]:
        edge = 0
        for lo, hi in v:
            if lo != edge or hi <= lo:
                raise ValueError("bucket ranges must be contiguous and ascending from 0")
            edge = hi
        if edge != 100:
            raise ValueError("bucket ranges must end at 100")
        return v


class Prices(BaseModel):
    enabled: bool = True
    base_url: str = "https://api.coingecko.com/api/v3"
    timeout: float = 5.0


class DB(BaseModel):
    driver: str = "sqlite"
    sqlite_path: str = "data/holder_stats.db"


class Refresh(BaseModel):
    min_interval_minutes: int = 15
    interval_hours: float = 24.0
    discord_webhook: Optional[str] = None


class TokenTarget(BaseModel):
    name: str
    token_address: str
    start_block: int = 0
    decimals: Optional[int] = None
    mc_ticker: Optional[str] = None
    abi_path: Optional[str] = None


class Settings(BaseModel):
    network: str = "ethereum"
    rpc: RPC
    scan: Scan = Scan()
    holders: Holders = Holders()
    prices: Prices = Prices()
    db: DB = DB()
    refresh: Refresh = Refresh()
    tokens: List[TokenTarget] = []


def resolve_rpc_url(rpc: RPC) -> str:
    """
    Return the RPC URL with ${VAR} placeholders filled from the environment.
    RPC_URL_OVERRIDE wins when set. Unresolved placeholders mean a missing credential.
    """
    override = os.environ.get("RPC_URL_OVERRIDE", "").strip()
    if override:
        return override

    missing = []

    def _sub(m: re.Match) -> str:
        val = os.environ.get(m.group(1), "").strip()
        if not val:
            missing.append(m.group(1))
        return val

    url = _PLACEHOLDER_RE.sub(_sub, rpc.url)
    if missing:
        raise ProviderUnavailable(f"RPC credential not provided: {', '.join(missing)} is not set")
    return url


def load_settings(path: str = "config.yaml") -> Settings:
    import yaml
    with open(path, "r") as f:
        cfg = yaml.safe_load(f) or {}

    webhook = os.environ.get("DISCORD_WEBHOOK_URL")
    if webhook:
        cfg.setdefault("refresh", {})["discord_webhook"] = webhook

    try:
        return Settings.model_validate(cfg)
    except ValidationError as e:
        raise RuntimeError(f"Configuration error in {path}: {e}") from e
