#!/usr/bin/env python3
"""Generate a synthetic month of daily service records for CareSubmit."""

from __future__ import annotations

import argparse
import json
import random
from datetime import date
from pathlib import Path

from caresubmit.fixtures import generate_daily_records


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate synthetic daily service records")
    parser.add_argument("--year", type=int, required=True)
    parser.add_argument("--month", type=int, required=True, choices=range(1, 13), metavar="MONTH")
    parser.add_argument("--seed", type=int, default=42, help="Seed for deterministic output")
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Treat this date (YYYY-MM-DD) as today; days on or after it are skipped",
    )
    parser.add_argument("--output", type=Path, default=None, help="Write JSON here instead of stdout")
    args = parser.parse_args()

    rng = random.Random(args.seed)
    today = args.today or date.today()
    records = generate_daily_records(args.year, args.month, today=today, rng=rng)
    payload = [record.model_dump(mode="json") for record in records]
    text = json.dumps(payload, indent=2)

    if args.output is None:
        print(text)
        return
    if not args.output.parent.exists():
        raise SystemExit(f"Output directory {args.output.parent} does not exist")
    with args.output.open("w", encoding="utf-8") as handle:
        handle.write(text)
        handle.write("\n")
    documented = sum(1 for record in records if record.documentation_complete)
    print(f"Wrote {len(records)} daily records ({documented} documented) to {args.output}")


if __name__ == "__main__":
    main()
