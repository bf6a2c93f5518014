from __future__ import annotations

import uuid as _uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .errors import PipelineError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Stage(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    GENERATING_IMAGE = "generating_image"
    UPLOADING_IMAGE = "uploading_image"
    UPLOADING_METADATA = "uploading_metadata"
    MINTING = "minting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (Stage.SUCCEEDED, Stage.FAILED)

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    Stage.IDLE: "",
    Stage.VALIDATING: "Validating...",
    Stage.GENERATING_IMAGE: "Generating Image...",
    Stage.UPLOADING_IMAGE: "Uploading image to IPFS...",
    Stage.UPLOADING_METADATA: "Uploading metadata...",
    Stage.MINTING: "Waiting for Mint...",
    Stage.SUCCEEDED: "Minted",
    Stage.FAILED: "Failed",
}


@dataclass(frozen=True)
class CreationRequest:
    name: str
    description: str


@dataclass(frozen=True)
class ImageArtifact:
    data: bytes
    mime_type: str

    @property
    def extension(self) -> str:
        sub = self.mime_type.split("/", 1)[-1].split(";", 1)[0].strip().lower()
        return {"jpeg": "jpeg", "jpg": "jpeg", "png": "png", "webp": "webp", "gif": "gif"}.get(sub, "bin")


@dataclass(frozen=True)
class PinnedContent:
    content_id: str
    url: str


@dataclass(frozen=True)
class MetadataDocument:
    name: str
    description: str
    image: str
    attributes: tuple[dict[str, Any], ...] = ()

    @classmethod
    def for_image(cls, request: CreationRequest, image: PinnedContent) -> "MetadataDocument":
        return cls(name=request.name, description=request.description, image=image.url)

    def to_json(self) -> dict[str, Any]:
        # Key order is part of the pinned document
        return {
            "name": self.name,
            "description": self.description,
            "image": self.image,
            "attributes": [dict(a) for a in self.attributes],
        }


@dataclass(frozen=True)
class MintReceipt:
    token_uri: str
    transaction_confirmed: bool
    tx_hash: str | None = None
    block_number: int | None = None


@dataclass(frozen=True)
class RunSnapshot:
    """Read-only view of a run handed to observers and the presentation layer."""

    id: str
    stage: Stage
    label: str
    name: str
    description: str
    image_cid: str | None = None
    image_url: str | None = None
    metadata_cid: str | None = None
    token_uri: str | None = None
    tx_hash: str | None = None
    failed_stage: Stage | None = None
    error: dict[str, Any] | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass
class PipelineRun:
    request: CreationRequest
    id: str = field(default_factory=lambda: str(_uuid.uuid4()))
    stage: Stage = Stage.VALIDATING
    image: ImageArtifact | None = None
    image_content: PinnedContent | None = None
    metadata: MetadataDocument | None = None
    metadata_content: PinnedContent | None = None
    receipt: MintReceipt | None = None
    error: PipelineError | None = None
    failed_stage: Stage | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def token_uri(self) -> str | None:
        return self.metadata_content.url if self.metadata_content else None

    def snapshot(self) -> RunSnapshot:
        label = self.error.summary if self.stage is Stage.FAILED and self.error else self.stage.label
        return RunSnapshot(
            id=self.id,
            stage=self.stage,
            label=label,
            name=self.request.name,
            description=self.request.description,
            image_cid=self.image_content.content_id if self.image_content else None,
            image_url=self.image_content.url if self.image_content else None,
            metadata_cid=self.metadata_content.content_id if self.metadata_content else None,
            token_uri=self.token_uri,
            tx_hash=self.receipt.tx_hash if self.receipt else getattr(self.error, "tx_hash", None),
            failed_stage=self.failed_stage,
            error=self.error.to_dict() if self.error else None,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
