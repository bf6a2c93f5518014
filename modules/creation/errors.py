from __future__ import annotations

from typing import Any


class PipelineError(RuntimeError):
    """Base error for everything that can end a creation run.

    `code` is the stable machine-readable kind; `summary` is the one-line
    message shown to the user when a run fails.
    """

    code = "internal"
    summary = "Something went wrong. Please try again."

    def __init__(self, message: str, *, status: int | None = None, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.status is not None:
            out["status"] = self.status
        if self.details:
            out["details"] = self.details
        return out


class ConfigurationError(PipelineError):
    code = "configuration_error"
    summary = "The service is not configured."


class ValidationError(PipelineError):
    code = "validation_error"
    summary = "Please provide a valid name and description."

    def __init__(self, message: str, *, field: str) -> None:
        super().__init__(message, details={"field": field})
        self.field = field


class AlreadyInProgress(PipelineError):
    code = "already_in_progress"
    summary = "A creation is already in progress."


class MissingCredential(PipelineError):
    code = "missing_credential"
    summary = "Storage credentials are missing."


class NotConnected(PipelineError):
    code = "not_connected"
    summary = "Wallet is not connected."


class GenerationFailed(PipelineError):
    code = "generation_failed"
    summary = "Failed to generate image. Please try again."


class UploadFailed(PipelineError):
    code = "upload_failed"
    summary = "Upload failed. See logs for details."

    def __init__(self, message: str, *, stage: str | None = None, status: int | None = None) -> None:
        super().__init__(message, status=status)
        self.stage = stage

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        if self.stage:
            out["stage"] = self.stage
        return out


class MintRejected(PipelineError):
    code = "mint_rejected"
    summary = "Mint transaction was rejected."


class MintFailed(PipelineError):
    code = "mint_failed"
    summary = "Mint transaction failed."

    def __init__(self, message: str, *, tx_hash: str | None = None) -> None:
        super().__init__(message, details={"tx_hash": tx_hash} if tx_hash else None)
        self.tx_hash = tx_hash


SUMMARIES: dict[str, str] = {
    cls.code: cls.summary
    for cls in (
        PipelineError,
        ConfigurationError,
        ValidationError,
        AlreadyInProgress,
        MissingCredential,
        NotConnected,
        GenerationFailed,
        UploadFailed,
        MintRejected,
        MintFailed,
    )
}
