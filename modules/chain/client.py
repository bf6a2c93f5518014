from __future__ import annotations

import asyncio

import aiohttp
from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted, Web3Exception

from modules.creation.errors import MintFailed, MintRejected, NotConnected
from modules.creation.models import MintReceipt

from .session import ChainSession


class ChainClient:
    """Submits `mint(tokenURI)` with a fixed payment and waits for confirmation."""

    def __init__(
        self,
        session: ChainSession | None,
        *,
        cost_wei: int,
        confirm_timeout_s: float = 120.0,
        not_connected_reason: str = "no chain session",
    ) -> None:
        self._session = session
        self._cost_wei = int(cost_wei)
        self._confirm_timeout_s = confirm_timeout_s
        self._reason = not_connected_reason

    @property
    def connected(self) -> bool:
        return self._session is not None

    @property
    def not_connected_reason(self) -> str:
        return self._reason

    @property
    def session(self) -> ChainSession | None:
        return self._session

    async def mint(self, token_uri: str) -> MintReceipt:
        s = self._session
        if s is None:
            raise NotConnected(self._reason)

        try:
            nonce = await s.w3.eth.get_transaction_count(s.address)
            tx = await s.contract.functions.mint(token_uri).build_transaction(
                {"from": s.address, "value": self._cost_wei, "nonce": nonce, "chainId": s.chain_id}
            )
            signed = s.account.sign_transaction(tx)
            tx_hash = await s.w3.eth.send_raw_transaction(signed.raw_transaction)
        except (Web3Exception, ValueError, aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            raise MintRejected(f"mint submission rejected: {exc}") from exc

        tx_hex = AsyncWeb3.to_hex(tx_hash)
        try:
            receipt = await s.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._confirm_timeout_s)
        except (TimeExhausted, asyncio.TimeoutError) as exc:
            raise MintFailed(f"mint not confirmed within {self._confirm_timeout_s:.0f}s", tx_hash=tx_hex) from exc
        except (Web3Exception, aiohttp.ClientError, OSError) as exc:
            raise MintFailed(f"mint confirmation failed: {exc}", tx_hash=tx_hex) from exc

        if int(receipt["status"]) != 1:
            raise MintFailed("mint transaction reverted", tx_hash=tx_hex)
        return MintReceipt(
            token_uri=token_uri,
            transaction_confirmed=True,
            tx_hash=tx_hex,
            block_number=receipt.get("blockNumber"),
        )
