from __future__ import annotations

import io
from dataclasses import dataclass

import httpx
from PIL import Image, UnidentifiedImageError

from modules.creation.errors import ConfigurationError, GenerationFailed
from modules.creation.models import ImageArtifact


DEFAULT_INFERENCE_URL = "https://api-inference.huggingface.co/models/stabilityai/stable-diffusion-xl-base-1.0"


@dataclass
class InferenceConfig:
    url: str
    token: str
    timeout_s: float = 120.0


def sniff_mime(data: bytes, fallback: str = "image/jpeg") -> str:
    try:
        with Image.open(io.BytesIO(data)) as img:
            return Image.MIME.get(img.format or "", fallback)
    except (UnidentifiedImageError, OSError):
        return fallback


def _upstream_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:500] or resp.reason_phrase
    if isinstance(body, dict) and body.get("error"):
        err = body["error"]
        return err if isinstance(err, str) else str(err)
    return str(body)[:500]


class HFInferenceClient:
    """Text-to-image over the Hugging Face inference API.

    One POST per call, no retry. Anything other than a non-empty binary
    image body is reported as GenerationFailed with the upstream status.
    """

    def __init__(self, cfg: InferenceConfig, *, http: httpx.AsyncClient | None = None) -> None:
        if not cfg.token:
            raise ConfigurationError("Missing inference token (MF_HF_TOKEN)")
        self._cfg = cfg
        self._http = http

    async def generate_image(self, prompt: str) -> ImageArtifact:
        if not prompt:
            raise ValueError("prompt must be non-empty")
        headers = {"Authorization": f"Bearer {self._cfg.token}", "Content-Type": "application/json"}
        try:
            if self._http is not None:
                resp = await self._http.post(self._cfg.url, json={"inputs": prompt}, headers=headers, timeout=self._cfg.timeout_s)
            else:
                async with httpx.AsyncClient(timeout=self._cfg.timeout_s) as client:
                    resp = await client.post(self._cfg.url, json={"inputs": prompt}, headers=headers)
        except httpx.HTTPError as exc:
            raise GenerationFailed(f"inference request failed: {exc}") from exc

        if resp.status_code >= 400:
            raise GenerationFailed(f"inference returned HTTP {resp.status_code}: {_upstream_message(resp)}", status=resp.status_code)

        content_type = resp.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()
        if content_type == "application/json":
            raise GenerationFailed(f"inference returned JSON instead of an image: {_upstream_message(resp)}", status=resp.status_code)
        data = resp.content
        if not data:
            raise GenerationFailed("inference returned an empty body", status=resp.status_code)

        mime = content_type if content_type.startswith("image/") else sniff_mime(data)
        return ImageArtifact(data=data, mime_type=mime)
