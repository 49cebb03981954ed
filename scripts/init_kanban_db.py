#!/usr/bin/env python3
import argparse
import json
import sys
from pathlib import Path

# Run from a checkout without installing the server package
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "mcp-server-python"))

from db.schema import initialize_database  # noqa: E402
from tools.create_application import create_application  # noqa: E402


def parse_args():
    parser = argparse.ArgumentParser(description="Create (or upgrade) the Kanban pipeline SQLite database.")
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite DB path (default: KANBAN_DB or data/kanban.db).",
    )
    parser.add_argument(
        "--seed",
        default=None,
        help="Optional JSON file with a list of applications to create (create_application arguments).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the seed file and print it; do not touch the DB.",
    )
    return parser.parse_args()


def load_seed(path: str) -> list:
    with open(path, "r", encoding="utf-8") as handle:
        records = json.load(handle)
    if not isinstance(records, list):
        raise SystemExit(f"Seed file must contain a JSON list, got {type(records).__name__}")
    return records


def main() -> int:
    args = parse_args()
    records = load_seed(args.seed) if args.seed else []

    if args.dry_run:
        print(json.dumps(records, indent=2, ensure_ascii=False))
        return 0

    db_path = initialize_database(args.db)
    print(f"Database ready: {db_path}")

    failures = 0
    for index, record in enumerate(records):
        result = create_application({**record, "db_path": str(db_path)})
        if "error" in result:
            failures += 1
            print(f"Seed record {index} rejected: {result['error']['message']}", file=sys.stderr)

    if records:
        print(f"Seeded {len(records) - failures} of {len(records)} applications")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
