from __future__ import annotations

import os
from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field

from modules.inference.huggingface import DEFAULT_INFERENCE_URL
from modules.storage.pinata import DEFAULT_API_URL, DEFAULT_GATEWAY


def _env(*names: str) -> str | None:
    for name in names:
        val = os.getenv(name)
        if val is not None and val.strip():
            return val.strip()
    return None


def _truthy(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    env: Literal["dev", "test", "staging", "prod"] = Field(
        default="dev", description="Deployment environment label"
    )

    # Readiness checks: comma-separated list of checks to perform: db,chain
    ready_checks: str = Field(default="", description="Comma-separated readiness checks: db,chain")

    # Journal database
    db_url: str | None = Field(default=None, description="Postgres URL, e.g., postgresql+psycopg://...")

    # Inference
    inference_url: str = DEFAULT_INFERENCE_URL
    inference_token: str | None = None
    inference_timeout_s: float = 120.0
    fake_runner: bool = Field(default=False, description="Generate placeholder images offline")

    # Pinning service
    pinata_jwt: str | None = None
    pinata_api_url: str = DEFAULT_API_URL
    ipfs_gateway: str = DEFAULT_GATEWAY
    upload_timeout_s: float = 60.0

    # Chain session
    rpc_url: str | None = None
    private_key: str | None = Field(default=None, repr=False)
    nft_address: str | None = None
    mint_cost_eth: Decimal = Decimal("1")
    mint_confirm_timeout_s: float = 120.0

    # Logs / streaming
    logs_tail_default: int = 500
    logs_tail_max: int = 2000
    sse_poll_ms: int = 500

    # Metrics
    metrics_enabled: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        values: dict[str, object] = {
            "env": _env("MF_ENV") or "dev",
            "ready_checks": _env("MF_READY_CHECKS") or "",
            "db_url": _env("MF_DB_URL"),
            "inference_url": _env("MF_INFERENCE_URL") or DEFAULT_INFERENCE_URL,
            "inference_token": _env("MF_HF_TOKEN", "HF_TOKEN", "HUGGINGFACE_HUB_TOKEN"),
            "fake_runner": _truthy(_env("MF_FAKE_RUNNER")),
            "pinata_jwt": _env("MF_PINATA_JWT", "PINATA_JWT"),
            "pinata_api_url": _env("MF_PINATA_API_URL") or DEFAULT_API_URL,
            "ipfs_gateway": _env("MF_IPFS_GATEWAY") or DEFAULT_GATEWAY,
            "rpc_url": _env("MF_RPC_URL"),
            "private_key": _env("MF_PRIVATE_KEY"),
            "nft_address": _env("MF_NFT_ADDRESS"),
            "metrics_enabled": _truthy(_env("MF_METRICS_ENABLED"), default=True),
        }
        numeric = {
            "inference_timeout_s": "MF_INFERENCE_TIMEOUT_S",
            "upload_timeout_s": "MF_UPLOAD_TIMEOUT_S",
            "mint_cost_eth": "MF_MINT_COST_ETH",
            "mint_confirm_timeout_s": "MF_MINT_CONFIRM_TIMEOUT_S",
            "logs_tail_default": "MF_LOGS_TAIL_DEFAULT",
            "logs_tail_max": "MF_LOGS_TAIL_MAX",
            "sse_poll_ms": "MF_SSE_POLL_MS",
        }
        for field, name in numeric.items():
            raw = _env(name)
            if raw is not None:
                values[field] = raw
        return cls(**values)  # pydantic coerces the numeric strings

    def ready_check_set(self) -> set[str]:
        return {c.strip() for c in self.ready_checks.split(",") if c.strip()}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
