from __future__ import annotations

import hashlib
import io

from PIL import Image

from modules.creation.models import ImageArtifact


class FakeInferenceClient:
    """Offline runner: a solid-color PNG derived from the prompt.

    Enabled with MF_FAKE_RUNNER=1 for local dev and tests.
    """

    def __init__(self, *, width: int = 64, height: int = 64) -> None:
        self.width = width
        self.height = height
        self.prompts: list[str] = []

    async def generate_image(self, prompt: str) -> ImageArtifact:
        if not prompt:
            raise ValueError("prompt must be non-empty")
        self.prompts.append(prompt)
        seed = int.from_bytes(hashlib.sha256(prompt.encode("utf-8")).digest()[:4], "big")
        color = (seed % 256, (seed // 3) % 256, (seed // 7) % 256)
        img = Image.new("RGB", (self.width, self.height), color)
        bio = io.BytesIO()
        img.save(bio, format="PNG")
        return ImageArtifact(data=bio.getvalue(), mime_type="image/png")
