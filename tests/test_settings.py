from decimal import Decimal

import pytest

from modules.creation.errors import ConfigurationError
from modules.inference.fake import FakeInferenceClient
from modules.inference.huggingface import HFInferenceClient
from services.config import Settings, get_settings
from services.pipeline.factory import build_chain, build_inference, build_store


def test_defaults() -> None:
    s = Settings()
    assert s.mint_cost_eth == Decimal("1")
    assert s.ipfs_gateway == "gateway.pinata.cloud"
    assert s.ready_check_set() == set()


def test_from_env_reads_fallback_names(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("MF_HF_TOKEN", "MF_PINATA_JWT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HF_TOKEN", " hf_abc ")
    monkeypatch.setenv("PINATA_JWT", "jwt-xyz")
    monkeypatch.setenv("MF_MINT_COST_ETH", "0.05")
    monkeypatch.setenv("MF_LOGS_TAIL_MAX", "100")
    monkeypatch.setenv("MF_READY_CHECKS", "db, chain")

    s = get_settings()
    assert s.inference_token == "hf_abc"
    assert s.pinata_jwt == "jwt-xyz"
    assert s.mint_cost_eth == Decimal("0.05")
    assert s.logs_tail_max == 100
    assert s.ready_check_set() == {"db", "chain"}


def test_prefixed_names_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MF_PINATA_JWT", "primary")
    monkeypatch.setenv("PINATA_JWT", "fallback")
    assert Settings.from_env().pinata_jwt == "primary"


def test_private_key_is_not_in_repr() -> None:
    s = Settings(private_key="0xdeadbeef")
    assert "deadbeef" not in repr(s)


def test_build_inference() -> None:
    assert isinstance(build_inference(Settings(fake_runner=True)), FakeInferenceClient)
    assert isinstance(build_inference(Settings(inference_token="hf_abc")), HFInferenceClient)
    with pytest.raises(ConfigurationError):
        build_inference(Settings(fake_runner=False, inference_token=None))


def test_build_store_reports_missing_credential() -> None:
    assert build_store(Settings(pinata_jwt=None)).has_credential is False
    assert build_store(Settings(pinata_jwt="jwt")).has_credential is True


@pytest.mark.asyncio
async def test_build_chain_without_configuration_is_disconnected() -> None:
    chain = await build_chain(Settings(rpc_url=None, private_key=None, nft_address=None))
    assert chain.connected is False
    assert "MF_RPC_URL" in chain.not_connected_reason
