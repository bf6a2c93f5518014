from __future__ import annotations

import sys

from web3 import AsyncWeb3

from modules.chain.client import ChainClient
from modules.chain.session import ChainConfig, connect
from modules.creation.errors import ConfigurationError, NotConnected
from modules.inference.fake import FakeInferenceClient
from modules.inference.huggingface import HFInferenceClient, InferenceConfig
from modules.storage.pinata import PinataConfig, PinataStore
from services.config import Settings

from .journal import RunJournal
from .metrics import RunMetrics
from .pipeline import CreationPipeline


def build_inference(settings: Settings) -> HFInferenceClient | FakeInferenceClient:
    if settings.fake_runner:
        return FakeInferenceClient()
    if not settings.inference_token:
        raise ConfigurationError("Missing inference token: set MF_HF_TOKEN (or MF_FAKE_RUNNER=1)")
    return HFInferenceClient(
        InferenceConfig(url=settings.inference_url, token=settings.inference_token, timeout_s=settings.inference_timeout_s)
    )


def build_store(settings: Settings) -> PinataStore:
    return PinataStore(
        PinataConfig(
            jwt=settings.pinata_jwt,
            api_url=settings.pinata_api_url,
            gateway=settings.ipfs_gateway,
            timeout_s=settings.upload_timeout_s,
        )
    )


async def build_chain(settings: Settings) -> ChainClient:
    cost_wei = AsyncWeb3.to_wei(settings.mint_cost_eth, "ether")
    cfg = ChainConfig(rpc_url=settings.rpc_url, private_key=settings.private_key, nft_address=settings.nft_address)
    try:
        session = await connect(cfg)
    except NotConnected as exc:
        print(f"[pipeline] chain session unavailable: {exc.message}", file=sys.stderr)
        return ChainClient(None, cost_wei=cost_wei, not_connected_reason=exc.message)
    print(f"[pipeline] chain session: chain_id={session.chain_id} account={session.address}", file=sys.stderr)
    return ChainClient(session, cost_wei=cost_wei, confirm_timeout_s=settings.mint_confirm_timeout_s)


async def build_pipeline(settings: Settings, *, journal: bool = True) -> CreationPipeline:
    """Wire the pipeline for one process. Raises ConfigurationError at startup."""
    inference = build_inference(settings)
    store = build_store(settings)
    chain = await build_chain(settings)
    observers: list = [RunJournal()] if journal else []
    if settings.metrics_enabled:
        observers.append(RunMetrics())
    return CreationPipeline(inference, store, chain, observers=observers)
