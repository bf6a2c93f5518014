#!/usr/bin/env python3
"""Live smoke: submit one creation to a running API and poll it to a terminal stage."""
from __future__ import annotations

import json
import os
import sys
import time
import urllib.error
import urllib.request
from typing import Any, Tuple


API_BASE = os.getenv("API_BASE", "http://localhost:8001/v1")
TIMEOUT_S = int(os.getenv("E2E_TIMEOUT_S", "600"))
POLL_INTERVAL_S = float(os.getenv("E2E_POLL_INTERVAL_S", "2.0"))


def _join_url(base: str, *parts: str) -> str:
    return base.rstrip("/") + "/" + "/".join(p.strip("/") for p in parts)


def _http_json(method: str, url: str, body: dict[str, Any] | None = None) -> Tuple[int, dict[str, Any]]:
    data = None if body is None else json.dumps(body).encode("utf-8")
    req = urllib.request.Request(url, data=data, method=method)
    req.add_header("Accept", "application/json")
    if body is not None:
        req.add_header("Content-Type", "application/json")
    try:
        with urllib.request.urlopen(req, timeout=30) as resp:  # nosec - local test tool
            text = resp.read().decode("utf-8")
            return resp.getcode(), json.loads(text) if text else {}
    except urllib.error.HTTPError as e:  # surface JSON error bodies if present
        try:
            payload = json.loads(e.read().decode("utf-8"))
        except ValueError:
            payload = {"message": str(e)}
        return e.code, payload


def submit(name: str, description: str) -> str:
    status, body = _http_json("POST", _join_url(API_BASE, "creations"), {"name": name, "description": description})
    if status not in (200, 202) or "run" not in body:
        raise RuntimeError(f"Submit failed: HTTP {status} body={body}")
    return body["run"]["id"]


def poll_current(run_id: str, *, timeout_s: int = TIMEOUT_S, interval_s: float = POLL_INTERVAL_S) -> dict[str, Any]:
    url = _join_url(API_BASE, "creations", "current")
    deadline = time.time() + timeout_s
    last_label = None
    while time.time() < deadline:
        status, body = _http_json("GET", url)
        if status != 200:
            raise RuntimeError(f"Get current failed: HTTP {status} body={body}")
        run = body.get("run") or {}
        if run.get("id") != run_id:
            raise RuntimeError(f"slot now holds another run: {run.get('id')}")
        if body.get("label") != last_label:
            print(f"run {run_id}: {body.get('label')}")
            last_label = body.get("label")
        if not body.get("busy"):
            return run
        time.sleep(interval_s)
    raise TimeoutError(f"Timed out waiting for run {run_id}")


def main() -> int:
    name = os.getenv("E2E_NAME", "Cyber Lion")
    description = os.getenv("E2E_DESCRIPTION", "A futuristic lion with cybernetic enhancements.")
    print(f"Using API_BASE={API_BASE}")
    run_id = submit(name, description)
    print(f"submitted run: {run_id}")
    run = poll_current(run_id)
    print(json.dumps(run, indent=2))
    return 0 if run.get("stage") == "succeeded" else 2


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as exc:  # noqa: BLE001
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
