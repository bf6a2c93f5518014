from __future__ import annotations

import argparse
import asyncio
import json
import sys

from modules.creation.errors import ConfigurationError, ValidationError
from modules.creation.models import RunSnapshot, Stage
from modules.persistence.db import get_session
from modules.persistence import repos
from services.api.routes.logs import event_to_logline, parse_since_ts
from services.api.schemas.creations import RunOut
from services.config import get_settings
from services.pipeline.factory import build_pipeline


class _StderrProgress:
    """Prints each stage transition so long waits (mint confirmation) are visible."""

    def on_event(self, snapshot: RunSnapshot, code: str, payload: dict, *, level: str = "info") -> None:
        if code == "stage.enter":
            print(f"[pipeline] {snapshot.label}", file=sys.stderr)
        elif code == "run.failed":
            print(f"[pipeline] failed: {payload.get('message')}", file=sys.stderr)


async def _create(name: str, description: str) -> RunSnapshot:
    pipeline = await build_pipeline(get_settings())
    pipeline.add_observer(_StderrProgress())
    return await pipeline.submit(name, description)


def cmd_create(args: argparse.Namespace) -> int:
    try:
        snap = asyncio.run(_create(args.name, args.description))
    except (ValidationError, ConfigurationError) as exc:
        print(json.dumps({"error": exc.to_dict()}))
        return 2
    print(json.dumps(RunOut.from_snapshot(snap).model_dump(), ensure_ascii=False))
    return 0 if snap.stage is Stage.SUCCEEDED else 1


def cmd_runs_list(args: argparse.Namespace) -> int:
    with get_session() as session:
        rows = repos.list_runs(session, stage=args.stage, limit=int(args.limit))
        out = [RunOut.from_row(r).model_dump() for r in rows]
    print(json.dumps({"runs": out}, ensure_ascii=False))
    return 0


def cmd_runs_get(args: argparse.Namespace) -> int:
    with get_session() as session:
        row = repos.get_run(session, args.id)
        if not row:
            print(json.dumps({"error": {"code": "not_found", "message": "run not found"}}))
            return 2
        out = RunOut.from_row(row).model_dump()
    print(json.dumps(out, ensure_ascii=False))
    return 0


def cmd_runs_logs(args: argparse.Namespace) -> int:
    try:
        since = parse_since_ts(args.since_ts)
    except ValueError:
        print(json.dumps({"error": {"code": "invalid_input", "message": "invalid --since-ts"}}))
        return 2
    with get_session() as session:
        if not repos.get_run(session, args.id):
            print(json.dumps({"error": {"code": "not_found", "message": "run not found"}}))
            return 2
        tail = int(args.tail) if args.tail else None
        events = repos.iter_events(session, args.id, since_ts=since, tail=tail)
    for e in events:
        sys.stdout.write(json.dumps(event_to_logline(e), default=str) + "\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mintforge", description="Mint Forge CLI")
    sp = p.add_subparsers(dest="cmd")

    p_create = sp.add_parser("create", help="Generate an image, pin it with metadata and mint it")
    p_create.add_argument("--name", required=True, help="Token name (3..30 chars)")
    p_create.add_argument("--description", required=True, help="Image description / prompt (10..150 chars)")
    p_create.set_defaults(func=cmd_create)

    p_runs = sp.add_parser("runs", help="Browse journaled runs")
    spr = p_runs.add_subparsers(dest="subcmd")

    p_rl = spr.add_parser("list", help="List recent runs")
    p_rl.add_argument("--stage", choices=[s.value for s in Stage if s is not Stage.IDLE], default=None)
    p_rl.add_argument("--limit", default=20, help="Number of runs (1..200)")
    p_rl.set_defaults(func=cmd_runs_list)

    p_rg = spr.add_parser("get", help="Get one run")
    p_rg.add_argument("id", help="Run UUID")
    p_rg.set_defaults(func=cmd_runs_get)

    p_logs = spr.add_parser("logs", help="Run events (NDJSON)")
    p_logs.add_argument("id", help="Run UUID")
    p_logs.add_argument("--tail", default=None, help="Last N events")
    p_logs.add_argument("--since-ts", default=None, help="ISO timestamp (e.g., 2025-09-18T04:00:00Z)")
    p_logs.set_defaults(func=cmd_runs_logs)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)
    if not hasattr(ns, "func"):
        parser.print_help()
        return 1
    return int(ns.func(ns))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
