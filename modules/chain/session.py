from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import aiohttp
from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import Web3Exception

from modules.creation.errors import NotConnected

from .contract import NFT_ABI


@dataclass
class ChainConfig:
    rpc_url: str | None
    private_key: str | None
    nft_address: str | None
    timeout_s: float = 10.0


@dataclass
class ChainSession:
    """Signing identity plus resolved contract, established once per process."""

    w3: Any
    account: Any
    chain_id: int
    contract: Any

    @property
    def address(self) -> str:
        return self.account.address


async def connect(cfg: ChainConfig) -> ChainSession:
    missing = [k for k, v in (("MF_RPC_URL", cfg.rpc_url), ("MF_PRIVATE_KEY", cfg.private_key), ("MF_NFT_ADDRESS", cfg.nft_address)) if not v]
    if missing:
        raise NotConnected(f"chain session not configured: missing {', '.join(missing)}")

    w3 = AsyncWeb3(AsyncHTTPProvider(cfg.rpc_url, request_kwargs={"timeout": cfg.timeout_s}))
    try:
        account = Account.from_key(cfg.private_key)
        address = AsyncWeb3.to_checksum_address(str(cfg.nft_address))
    except ValueError as exc:
        raise NotConnected(f"invalid chain credentials: {exc}") from exc
    try:
        chain_id = await asyncio.wait_for(w3.eth.chain_id, timeout=cfg.timeout_s)
    except (Web3Exception, aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
        raise NotConnected(f"RPC endpoint unreachable: {exc}") from exc
    contract = w3.eth.contract(address=address, abi=NFT_ABI)
    return ChainSession(w3=w3, account=account, chain_id=int(chain_id), contract=contract)
