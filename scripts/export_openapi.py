from __future__ import annotations

import argparse
import json
from pathlib import Path

from services.api.app import create_app


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Export the Mint Forge OpenAPI document")
    parser.add_argument("--out", default="docs/openapi/openapi.v1.json", help="Output path for JSON spec")
    args = parser.parse_args(argv)

    # Schema export never needs a live pipeline; the lifespan is not entered here
    spec = create_app().openapi()
    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as f:
        json.dump(spec, f, ensure_ascii=False, separators=(",", ":"), sort_keys=True)

    print(f"Wrote {out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
