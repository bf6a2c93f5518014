from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import aiohttp
import pytest
from web3.exceptions import ContractLogicError, TimeExhausted

from modules.chain.client import ChainClient
from modules.chain.session import ChainConfig, ChainSession, connect
from modules.creation.errors import MintFailed, MintRejected, NotConnected


TX_HASH = b"\xab" * 32
ACCOUNT = "0x00000000000000000000000000000000000000A1"


class _Eth:
    def __init__(
        self,
        receipt: dict[str, Any] | None = None,
        *,
        wait_error: Exception | None = None,
        send_error: Exception | None = None,
        count_error: Exception | None = None,
    ) -> None:
        self.receipt = receipt if receipt is not None else {"status": 1, "blockNumber": 42}
        self.wait_error = wait_error
        self.send_error = send_error
        self.count_error = count_error
        self.sent: list[bytes] = []
        self.waited: list[tuple[bytes, float]] = []

    async def get_transaction_count(self, address: str) -> int:
        if self.count_error is not None:
            raise self.count_error
        return 5

    async def send_raw_transaction(self, raw: bytes) -> bytes:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(raw)
        return TX_HASH

    async def wait_for_transaction_receipt(self, tx_hash: bytes, timeout: float) -> dict[str, Any]:
        self.waited.append((tx_hash, timeout))
        if self.wait_error is not None:
            raise self.wait_error
        return self.receipt


class _MintCall:
    def __init__(self, contract: "_Contract", uri: str) -> None:
        self._contract = contract
        self._uri = uri

    async def build_transaction(self, params: dict[str, Any]) -> dict[str, Any]:
        if self._contract.build_error is not None:
            raise self._contract.build_error
        tx = dict(params, data=self._uri)
        self._contract.built.append(tx)
        return tx


class _Contract:
    def __init__(self, build_error: Exception | None = None) -> None:
        self.build_error = build_error
        self.built: list[dict[str, Any]] = []
        self.functions = SimpleNamespace(mint=lambda uri: _MintCall(self, uri))


class _Account:
    address = ACCOUNT

    def sign_transaction(self, tx: dict[str, Any]) -> SimpleNamespace:
        return SimpleNamespace(raw_transaction=b"signed:" + tx["data"].encode())


def _client(eth: _Eth | None = None, contract: _Contract | None = None, **kwargs: Any) -> tuple[ChainClient, _Eth, _Contract]:
    eth = eth or _Eth()
    contract = contract or _Contract()
    session = ChainSession(w3=SimpleNamespace(eth=eth), account=_Account(), chain_id=11155111, contract=contract)
    return ChainClient(session, cost_wei=10**18, **kwargs), eth, contract


@pytest.mark.asyncio
async def test_mint_pays_cost_and_waits_for_receipt() -> None:
    client, eth, contract = _client(confirm_timeout_s=30)

    receipt = await client.mint("https://gateway/ipfs/Qmeta")

    assert receipt.transaction_confirmed is True
    assert receipt.token_uri == "https://gateway/ipfs/Qmeta"
    assert receipt.tx_hash == "0x" + "ab" * 32
    assert receipt.block_number == 42
    tx = contract.built[0]
    assert tx["from"] == ACCOUNT
    assert tx["value"] == 10**18
    assert tx["nonce"] == 5
    assert tx["chainId"] == 11155111
    assert eth.sent == [b"signed:https://gateway/ipfs/Qmeta"]
    assert eth.waited == [(TX_HASH, 30)]


@pytest.mark.asyncio
async def test_reverted_receipt_is_mint_failed_with_hash() -> None:
    client, _, _ = _client(eth=_Eth(receipt={"status": 0, "blockNumber": 43}))
    with pytest.raises(MintFailed) as ei:
        await client.mint("uri")
    assert ei.value.tx_hash == "0x" + "ab" * 32
    assert ei.value.to_dict()["details"] == {"tx_hash": ei.value.tx_hash}


@pytest.mark.asyncio
async def test_confirmation_timeout_is_mint_failed() -> None:
    client, _, _ = _client(eth=_Eth(wait_error=TimeExhausted("not in chain after 120 seconds")))
    with pytest.raises(MintFailed) as ei:
        await client.mint("uri")
    assert ei.value.tx_hash is not None


@pytest.mark.asyncio
async def test_contract_revert_on_estimate_is_rejected() -> None:
    client, eth, _ = _client(contract=_Contract(build_error=ContractLogicError("execution reverted: insufficient funds")))
    with pytest.raises(MintRejected):
        await client.mint("uri")
    assert eth.sent == []


@pytest.mark.asyncio
async def test_node_refusing_raw_transaction_is_rejected() -> None:
    client, _, _ = _client(eth=_Eth(send_error=ValueError({"code": -32000, "message": "nonce too low"})))
    with pytest.raises(MintRejected):
        await client.mint("uri")


@pytest.mark.asyncio
async def test_without_session_mint_is_not_connected() -> None:
    client = ChainClient(None, cost_wei=1, not_connected_reason="chain session not configured")
    assert client.connected is False
    with pytest.raises(NotConnected) as ei:
        await client.mint("uri")
    assert "not configured" in ei.value.message


@pytest.mark.asyncio
async def test_connect_requires_all_settings() -> None:
    with pytest.raises(NotConnected) as ei:
        await connect(ChainConfig(rpc_url="http://127.0.0.1:8545", private_key=None, nft_address=None))
    assert "MF_PRIVATE_KEY" in ei.value.message
    assert "MF_NFT_ADDRESS" in ei.value.message
    assert "MF_RPC_URL" not in ei.value.message


@pytest.mark.asyncio
async def test_rpc_unreachable_before_broadcast_is_rejected() -> None:
    client, eth, _ = _client(eth=_Eth(count_error=aiohttp.ClientConnectionError("rpc down")))
    with pytest.raises(MintRejected) as ei:
        await client.mint("uri")
    assert "rpc down" in ei.value.message
    assert eth.sent == []


@pytest.mark.asyncio
async def test_rpc_lost_after_broadcast_keeps_tx_hash() -> None:
    client, eth, _ = _client(eth=_Eth(wait_error=aiohttp.ClientConnectionError("rpc down")))
    with pytest.raises(MintFailed) as ei:
        await client.mint("uri")
    assert len(eth.sent) == 1
    assert ei.value.tx_hash == "0x" + "ab" * 32
