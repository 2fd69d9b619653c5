#!/usr/bin/env python3
"""Dump everyone in the identity table with their memory counts and last mood."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))
from reminisce.config import RuntimeConfig
from reminisce.identity_store import IdentityStore
from reminisce.schema import Identity


def _summary(ident: Identity, with_history: bool) -> dict:
    row = {
        "name": ident.name,
        "memories": len(ident.history),
        "last_mood": ident.last_emotion.value,
        "tags": list(ident.tags),
    }
    if with_history:
        row["history"] = [entry.to_item() for entry in ident.history]
    return row


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config", help="Path to client_params.yaml")
    parser.add_argument("--json", action="store_true", help="Output JSON instead of plain text")
    parser.add_argument("--include-history", action="store_true", help="Include memories in JSON output")
    args = parser.parse_args()

    cfg = RuntimeConfig.load(args.config)
    store = IdentityStore(cfg.identity_table, cfg.region_name)
    rows = [_summary(ident, args.include_history) for ident in store.list_identities()]

    if args.json:
        print(json.dumps({"identities": rows}, indent=2, default=str))
        return
    for row in rows:
        print(f"{row['name']}\t{row['memories']} memories\tlast mood {row['last_mood']}")


if __name__ == "__main__":
    main()
