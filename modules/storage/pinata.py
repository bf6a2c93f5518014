from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from modules.creation.errors import MissingCredential, UploadFailed
from modules.creation.models import PinnedContent


DEFAULT_API_URL = "https://api.pinata.cloud"
DEFAULT_GATEWAY = "gateway.pinata.cloud"


@dataclass
class PinataConfig:
    jwt: str | None
    api_url: str = DEFAULT_API_URL
    gateway: str = DEFAULT_GATEWAY
    timeout_s: float = 60.0


def gateway_url(cfg: PinataConfig, content_id: str) -> str:
    return f"https://{cfg.gateway}/ipfs/{content_id}"


def _headers(cfg: PinataConfig) -> dict[str, str]:
    jwt = (cfg.jwt or "").strip()
    if not jwt:
        raise MissingCredential("Pinata JWT token is missing from environment variables.")
    return {"Authorization": f"Bearer {jwt}"}


def _pinned(cfg: PinataConfig, resp: httpx.Response) -> PinnedContent:
    if resp.status_code >= 400:
        raise UploadFailed(f"pinning service returned HTTP {resp.status_code}: {resp.text[:500]}", status=resp.status_code)
    try:
        body = resp.json()
    except ValueError as exc:
        raise UploadFailed("pinning service returned a non-JSON body", status=resp.status_code) from exc
    cid = body.get("IpfsHash") if isinstance(body, dict) else None
    if not cid or not isinstance(cid, str):
        raise UploadFailed("pinning service response is missing IpfsHash", status=resp.status_code)
    return PinnedContent(content_id=cid, url=gateway_url(cfg, cid))


async def _post(cfg: PinataConfig, path: str, http: httpx.AsyncClient | None, **kwargs: Any) -> httpx.Response:
    url = cfg.api_url.rstrip("/") + path
    try:
        if http is not None:
            return await http.post(url, timeout=cfg.timeout_s, **kwargs)
        async with httpx.AsyncClient(timeout=cfg.timeout_s) as client:
            return await client.post(url, **kwargs)
    except httpx.HTTPError as exc:
        raise UploadFailed(f"pinning request failed: {exc}") from exc


async def pin_file(
    cfg: PinataConfig,
    data: bytes,
    *,
    filename: str,
    content_type: str = "application/octet-stream",
    http: httpx.AsyncClient | None = None,
) -> PinnedContent:
    headers = _headers(cfg)
    resp = await _post(cfg, "/pinning/pinFileToIPFS", http, headers=headers, files={"file": (filename, data, content_type)})
    return _pinned(cfg, resp)


async def pin_json(cfg: PinataConfig, doc: dict[str, Any], *, http: httpx.AsyncClient | None = None) -> PinnedContent:
    headers = _headers(cfg)
    resp = await _post(cfg, "/pinning/pinJSONToIPFS", http, headers=headers, json=doc)
    return _pinned(cfg, resp)


class PinataStore:
    """Content Store Client used by the pipeline."""

    def __init__(self, cfg: PinataConfig, *, http: httpx.AsyncClient | None = None) -> None:
        self._cfg = cfg
        self._http = http

    @property
    def has_credential(self) -> bool:
        return bool((self._cfg.jwt or "").strip())

    async def upload_binary(self, data: bytes, *, filename: str, content_type: str) -> PinnedContent:
        return await pin_file(self._cfg, data, filename=filename, content_type=content_type, http=self._http)

    async def upload_json(self, doc: dict[str, Any]) -> PinnedContent:
        return await pin_json(self._cfg, doc, http=self._http)
