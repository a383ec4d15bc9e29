from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_RPC_URL = "http://127.0.0.1:8545"
DEFAULT_CONTRACT_ADDRESS = "0x59B649856d8c5Fb6991d30a345f0b923eA91a3f7"
DEFAULT_POLL_MS = 10000


def _env_str(name: str, default: str) -> str:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    return v.strip()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_positive_int(name: str, default: int) -> int:
    v = _env_int(name, default)
    return v if v > 0 else default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_bool(name: str, default: str = "0") -> bool:
    v = os.getenv(name, default).strip().lower()
    return v in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [p.strip() for p in raw.split(",") if p.strip()]


@dataclass
class Settings:
    host: str = "0.0.0.0"
    port: int = 10000

    rpc_url: str = DEFAULT_RPC_URL
    contract_address: str = DEFAULT_CONTRACT_ADDRESS
    rpc_timeout_s: float = 30.0

    event_schema: str = "lifecycle"
    poll_ms: int = DEFAULT_POLL_MS
    lookback_blocks: int = 0
    confirmations: int = 0
    poller_enabled: bool = True

    send_timeout_s: float = 5.0
    broadcast_anonymous: bool = False

    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def poll_interval_s(self) -> float:
        # the interval is the only backoff between RPC attempts; never let it reach zero
        poll_ms = self.poll_ms if self.poll_ms > 0 else DEFAULT_POLL_MS
        return poll_ms / 1000.0

    @classmethod
    def from_env(cls, rpc_url: Optional[str] = None) -> "Settings":
        # INFURA_URL is the older name for the endpoint; RPC_URL wins when both are set
        rpc = rpc_url or _env_str("RPC_URL", _env_str("INFURA_URL", DEFAULT_RPC_URL))
        return cls(
            host=_env_str("HOST", "0.0.0.0"),
            port=_env_int("PORT", 10000),
            rpc_url=rpc,
            contract_address=_env_str("CONTRACT_ADDRESS", DEFAULT_CONTRACT_ADDRESS),
            rpc_timeout_s=_env_float("RPC_TIMEOUT_S", 30.0),
            event_schema=_env_str("EVENT_SCHEMA", "lifecycle").lower(),
            poll_ms=_env_positive_int("POLL_MS", DEFAULT_POLL_MS),
            lookback_blocks=max(_env_int("LOOKBACK_BLOCKS", 0), 0),
            confirmations=max(_env_int("CONFIRMATIONS", 0), 0),
            poller_enabled=_env_bool("POLLER_ENABLED", "1"),
            send_timeout_s=_env_float("SEND_TIMEOUT_S", 5.0),
            broadcast_anonymous=_env_bool("BROADCAST_ANONYMOUS", "0"),
            cors_origins=_env_list("CORS_ORIGINS", "*"),
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
            log_format=_env_str("LOG_FORMAT", "json").lower(),
        )
