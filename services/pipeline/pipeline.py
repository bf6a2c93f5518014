from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timezone
from typing import Any, Awaitable, Iterable, Protocol

from modules.creation.errors import (
    AlreadyInProgress,
    GenerationFailed,
    MintFailed,
    MissingCredential,
    NotConnected,
    PipelineError,
    UploadFailed,
)
from modules.creation.models import (
    ImageArtifact,
    MetadataDocument,
    MintReceipt,
    PinnedContent,
    PipelineRun,
    RunSnapshot,
    Stage,
)
from modules.creation.validation import build_prompt, validate_request


class InferenceClient(Protocol):
    async def generate_image(self, prompt: str) -> ImageArtifact: ...


class ContentStore(Protocol):
    @property
    def has_credential(self) -> bool: ...

    async def upload_binary(self, data: bytes, *, filename: str, content_type: str) -> PinnedContent: ...

    async def upload_json(self, doc: dict[str, Any]) -> PinnedContent: ...


class MintClient(Protocol):
    @property
    def connected(self) -> bool: ...

    @property
    def not_connected_reason(self) -> str: ...

    async def mint(self, token_uri: str) -> MintReceipt: ...


class RunObserver(Protocol):
    def on_event(self, snapshot: RunSnapshot, code: str, payload: dict[str, Any], *, level: str = "info") -> None: ...


_FORWARD = {
    Stage.VALIDATING: Stage.GENERATING_IMAGE,
    Stage.GENERATING_IMAGE: Stage.UPLOADING_IMAGE,
    Stage.UPLOADING_IMAGE: Stage.UPLOADING_METADATA,
    Stage.UPLOADING_METADATA: Stage.MINTING,
    Stage.MINTING: Stage.SUCCEEDED,
}


class CreationPipeline:
    """Drives one submission through generate -> pin image -> pin metadata -> mint.

    Single-flight: at most one run occupies the slot; a submission while a run
    is active is refused with AlreadyInProgress. The slot is released in every
    terminal state.
    """

    def __init__(
        self,
        inference: InferenceClient,
        store: ContentStore,
        chain: MintClient,
        *,
        observers: Iterable[RunObserver] = (),
    ) -> None:
        self._inference = inference
        self._store = store
        self._chain = chain
        self._observers = list(observers)
        self._active: PipelineRun | None = None
        self._last: PipelineRun | None = None
        self._task: asyncio.Task[RunSnapshot] | None = None

    @property
    def stage(self) -> Stage:
        return self._active.stage if self._active else Stage.IDLE

    @property
    def busy(self) -> bool:
        return self._active is not None

    @property
    def chain_connected(self) -> bool:
        return self._chain.connected

    def add_observer(self, observer: RunObserver) -> None:
        self._observers.append(observer)

    def snapshot(self) -> RunSnapshot | None:
        run = self._active or self._last
        return run.snapshot() if run else None

    def start(self, name: object, description: object) -> RunSnapshot:
        if self._active is not None:
            raise AlreadyInProgress(f"run {self._active.id} is {self._active.stage.value}")
        request = validate_request(name, description)
        run = PipelineRun(request=request)
        self._active = run
        self._emit(run, "run.created", {"name": request.name})
        self._task = asyncio.get_running_loop().create_task(self._drive(run))
        return run.snapshot()

    async def submit(self, name: object, description: object) -> RunSnapshot:
        self.start(name, description)
        assert self._task is not None
        return await asyncio.shield(self._task)

    async def wait(self) -> RunSnapshot | None:
        task = self._task
        if task is None:
            return self.snapshot()
        return await asyncio.shield(task)

    async def _drive(self, run: PipelineRun) -> RunSnapshot:
        try:
            await self._advance(run)
        except PipelineError as exc:
            self._fail(run, exc)
        except asyncio.CancelledError:
            self._fail(run, PipelineError(f"run cancelled during {run.stage.value}"))
            raise
        except Exception as exc:  # noqa: BLE001
            self._fail(run, PipelineError(f"{type(exc).__name__}: {exc}"))
        finally:
            run.image = None
            self._last = run
            self._active = None
        return run.snapshot()

    async def _advance(self, run: PipelineRun) -> None:
        if not self._store.has_credential:
            raise MissingCredential("Pinata JWT token is missing from environment variables.")
        if not self._chain.connected:
            raise NotConnected(self._chain.not_connected_reason)

        self._enter(run, Stage.GENERATING_IMAGE)
        image = await self._inference.generate_image(build_prompt(run.request.description))
        if not image.data:
            raise GenerationFailed("inference returned an empty image")
        run.image = image
        self._emit(run, "image.generated", {"bytes": len(image.data), "mime_type": image.mime_type})

        self._enter(run, Stage.UPLOADING_IMAGE)
        upload = self._store.upload_binary(image.data, filename=f"image.{image.extension}", content_type=image.mime_type)
        run.image_content = await self._pinned(run, "image", upload)
        run.image = None

        metadata = MetadataDocument.for_image(run.request, run.image_content)
        if metadata.image != run.image_content.url:
            raise UploadFailed("metadata image does not match the pinned image url", stage="metadata")
        run.metadata = metadata

        self._enter(run, Stage.UPLOADING_METADATA)
        run.metadata_content = await self._pinned(run, "metadata", self._store.upload_json(metadata.to_json()))

        self._enter(run, Stage.MINTING)
        receipt = await self._chain.mint(run.metadata_content.url)
        if not receipt.transaction_confirmed:
            raise MintFailed("mint transaction was not confirmed", tx_hash=receipt.tx_hash)
        run.receipt = receipt
        self._emit(run, "mint.confirmed", {"tx_hash": receipt.tx_hash, "block_number": receipt.block_number})

        self._enter(run, Stage.SUCCEEDED)
        self._emit(run, "run.succeeded", {"token_uri": run.token_uri, "tx_hash": receipt.tx_hash})

    async def _pinned(self, run: PipelineRun, stage: str, upload: Awaitable[PinnedContent]) -> PinnedContent:
        try:
            content = await upload
        except UploadFailed as exc:
            exc.stage = stage
            raise
        self._emit(run, "content.pinned", {"stage": stage, "cid": content.content_id, "url": content.url})
        return content

    def _enter(self, run: PipelineRun, stage: Stage) -> None:
        if _FORWARD.get(run.stage) is not stage:
            raise RuntimeError(f"illegal transition {run.stage.value} -> {stage.value}")
        run.stage = stage
        run.updated_at = datetime.now(timezone.utc)
        self._emit(run, "stage.enter", {"stage": stage.value})

    def _fail(self, run: PipelineRun, exc: PipelineError) -> None:
        run.failed_stage = run.stage
        run.error = exc
        run.stage = Stage.FAILED
        run.updated_at = datetime.now(timezone.utc)
        self._emit(run, "run.failed", {"failed_stage": run.failed_stage.value, **exc.to_dict()}, level="error")

    def _emit(self, run: PipelineRun, code: str, payload: dict[str, Any], *, level: str = "info") -> None:
        snap = run.snapshot()
        for obs in self._observers:
            try:
                obs.on_event(snap, code, payload, level=level)
            except Exception as exc:  # noqa: BLE001
                print(f"[pipeline] observer {type(obs).__name__} failed on {code}: {exc}", file=sys.stderr)
