import asyncio
import threading

import pytest

from modules.creation.errors import AlreadyInProgress, ValidationError
from modules.creation.models import Stage
from services.pipeline.pipeline import CreationPipeline
from tests.fakes import FakeChain, FakeInference, FakeStore, GatedInference, RecordingObserver


DESC = "A futuristic lion with cybernetic enhancements."


async def _wait_for(pred, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not pred():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


@pytest.mark.asyncio
@pytest.mark.parametrize("name,desc", [("ab", DESC), ("x" * 31, DESC), ("x" * 30 + " ", DESC), ("Cyber Lion", "short"), ("Cyber Lion", "d" * 151)])
async def test_invalid_input_stays_idle_with_no_network_calls(name: str, desc: str) -> None:
    inference, store, chain, obs = FakeInference(), FakeStore(), FakeChain(), RecordingObserver()
    p = CreationPipeline(inference, store, chain, observers=[obs])

    with pytest.raises(ValidationError):
        p.start(name, desc)

    assert p.stage is Stage.IDLE
    assert not p.busy
    assert p.snapshot() is None
    assert inference.prompts == [] and store.calls == 0 and chain.mint_calls == []
    assert obs.events == []


@pytest.mark.asyncio
async def test_second_submission_while_running_is_refused() -> None:
    gate = threading.Event()
    inference = GatedInference(gate)
    p = CreationPipeline(inference, FakeStore(), FakeChain())

    first = p.start("Cyber Lion", DESC)
    assert first.stage is Stage.VALIDATING
    await _wait_for(lambda: p.stage is Stage.GENERATING_IMAGE)

    with pytest.raises(AlreadyInProgress):
        p.start("Other Lion", DESC)
    # invalid input is still refused as in-progress first
    with pytest.raises(AlreadyInProgress):
        p.start("x", "y")

    snap = p.snapshot()
    assert snap is not None and snap.id == first.id
    assert p.stage is Stage.GENERATING_IMAGE
    assert inference.prompts == []

    gate.set()
    final = await p.wait()
    assert final is not None and final.id == first.id
    assert final.stage is Stage.SUCCEEDED
    assert inference.prompts == [f"`{DESC}`"]


@pytest.mark.asyncio
async def test_slot_released_after_failure_and_next_run_is_fresh() -> None:
    store = FakeStore(jwt=False)
    p = CreationPipeline(FakeInference(), store, FakeChain())

    failed = await p.submit("Cyber Lion", DESC)
    assert failed.stage is Stage.FAILED
    assert p.stage is Stage.IDLE

    store.jwt = True
    ok = await p.submit("Cyber Tiger", "A tiger with chrome stripes at dusk.")
    assert ok.stage is Stage.SUCCEEDED
    assert ok.id != failed.id
    assert ok.error is None and ok.failed_stage is None
    assert ok.name == "Cyber Tiger"


@pytest.mark.asyncio
async def test_snapshot_is_a_read_only_copy() -> None:
    p = CreationPipeline(FakeInference(), FakeStore(), FakeChain())
    snap = await p.submit("Cyber Lion", DESC)
    with pytest.raises(AttributeError):
        snap.stage = Stage.IDLE  # type: ignore[misc]
    assert p.snapshot() == snap


@pytest.mark.asyncio
async def test_wait_without_a_run_returns_none() -> None:
    p = CreationPipeline(FakeInference(), FakeStore(), FakeChain())
    assert await p.wait() is None


@pytest.mark.asyncio
async def test_caller_timeout_does_not_abort_the_run() -> None:
    gate = threading.Event()
    obs = RecordingObserver()
    p = CreationPipeline(GatedInference(gate), FakeStore(), FakeChain(), observers=[obs])

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(p.submit("Cyber Lion", DESC), 0.05)
    assert p.busy and p.stage is Stage.GENERATING_IMAGE

    gate.set()
    final = await p.wait()
    assert final.stage is Stage.SUCCEEDED
    assert obs.codes[-1] == "run.succeeded"


@pytest.mark.asyncio
async def test_cancelled_run_ends_failed_and_frees_the_slot() -> None:
    gate = threading.Event()
    inference = GatedInference(gate)
    obs = RecordingObserver()
    p = CreationPipeline(inference, FakeStore(), FakeChain(), observers=[obs])

    p.start("Cyber Lion", DESC)
    await _wait_for(inference.entered.is_set)
    p._task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await p.wait()

    assert not p.busy
    snap = p.snapshot()
    assert snap.stage is Stage.FAILED
    assert snap.failed_stage is Stage.GENERATING_IMAGE
    assert snap.error["code"] == "internal"
    assert "cancelled" in snap.error["message"]
    code, _, payload, level = obs.events[-1]
    assert code == "run.failed" and level == "error"
    assert payload["failed_stage"] == "generating_image"
