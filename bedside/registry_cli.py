#!/usr/bin/env python3
"""Command-line manager for enrolled people.

Records live in the DynamoDB identity table named by ``IDENTITY_TABLE`` (or
``identity_table`` in config/client_params.yaml).

Examples
--------
List everyone as a table:
    reminisce-registry list

Enroll from a photo:
    reminisce-registry add --name "Ada" --image ada.jpg --bio "Granddaughter" --contact "+1 555 0100"

Inspect one person, memories included, as JSON:
    reminisce-registry show --name Ada --json

Change a phone number, or remove someone:
    reminisce-registry contact --name Ada --value "+1 555 0199"
    reminisce-registry delete --name Ada
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Callable, List, Optional

from reminisce.config import ConfigHolder
from reminisce.identity_store import IdentityExistsError, IdentityStore
from reminisce.logging_utils import configure_logging
from reminisce.schema import Identity


def _store(args: argparse.Namespace) -> IdentityStore:
    cfg = args.settings.current
    return IdentityStore(cfg.identity_table, cfg.region_name)


def _as_dict(identity: Identity, *, with_embedding: bool = False) -> dict:
    data = {
        "name": identity.name,
        "bio": identity.bio,
        "contact": identity.contact,
        "tags": identity.tags,
        "last_emotion": identity.last_emotion.value,
        "history": [entry.to_item() for entry in identity.history],
    }
    if with_embedding:
        data["embedding"] = identity.embedding
    return data


def _list_entries(args: argparse.Namespace) -> None:
    identities = _store(args).list_identities()
    if args.json:
        print(json.dumps([_as_dict(i) for i in identities], indent=2))
        return
    if not identities:
        print("No one is currently enrolled.")
        return
    print(f"{'Name':20} {'Memories':8} {'Mood':8} Contact")
    print("-" * 60)
    for ident in identities:
        print(f"{ident.name:20} {len(ident.history):<8} {ident.last_emotion.value:8} {ident.contact or '-'}")


def _show_entry(args: argparse.Namespace) -> None:
    ident = _store(args).get(args.name.strip())
    if ident is None:
        raise SystemExit(f"No entry found for '{args.name}'.")
    if args.json:
        print(json.dumps(_as_dict(ident), indent=2))
        return
    print(f"{ident.name}")
    print(f"  bio: {ident.bio or '-'}")
    print(f"  contact: {ident.contact or '-'}")
    print(f"  tags: {', '.join(ident.tags) or '-'}")
    for entry in ident.history:
        print(f"  - {entry.timestamp[:16]} [{entry.emotion.value}] {entry.summary}")


def _add_entry(args: argparse.Namespace) -> None:
    # Deferred so list/show/delete work without the face model installed.
    from .enrollment import FaceEnroller
    from .recognizer import FaceRecognizer

    path = Path(args.image)
    if not path.exists():
        raise SystemExit(f"Image not found: {path}")
    enroller = FaceEnroller(FaceRecognizer(args.settings), _store(args))
    try:
        ident = enroller.enroll(args.name.strip(), path.read_bytes(), args.bio, args.contact)
    except IdentityExistsError as exc:
        raise SystemExit(str(exc)) from exc
    if ident is None:
        raise SystemExit(f"No faces found in {path}")
    print(f"Enrolled '{ident.name}'.")


def _update_contact(args: argparse.Namespace) -> None:
    if not _store(args).update_contact(args.name.strip(), args.value):
        raise SystemExit(f"No entry found for '{args.name}'.")
    print(f"Updated contact for '{args.name.strip()}'.")


def _delete_entry(args: argparse.Namespace) -> None:
    if not _store(args).delete(args.name.strip()):
        raise SystemExit(f"No entry found for '{args.name}'.")
    print(f"Removed '{args.name.strip()}'.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage the people Reminisce recognises")
    parser.add_argument("--config", help="Path to client_params.yaml")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List everyone enrolled")
    p_list.add_argument("--json", action="store_true", help="Output JSON")
    p_list.set_defaults(func=_list_entries)

    p_show = sub.add_parser("show", help="Show one person and their memories")
    p_show.add_argument("--name", required=True)
    p_show.add_argument("--json", action="store_true", help="Output the entry as JSON")
    p_show.set_defaults(func=_show_entry)

    p_add = sub.add_parser("add", help="Enroll a person from a photo")
    p_add.add_argument("--name", required=True)
    p_add.add_argument("--image", required=True, help="JPEG/PNG with the person's face")
    p_add.add_argument("--bio", default="New Person")
    p_add.add_argument("--contact", default="")
    p_add.set_defaults(func=_add_entry)

    p_contact = sub.add_parser("contact", help="Set a person's contact details")
    p_contact.add_argument("--name", required=True)
    p_contact.add_argument("--value", required=True)
    p_contact.set_defaults(func=_update_contact)

    p_del = sub.add_parser("delete", help="Remove a person and their memories")
    p_del.add_argument("--name", required=True)
    p_del.set_defaults(func=_delete_entry)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    args.settings = ConfigHolder(path=args.config)
    handler: Callable[[argparse.Namespace], None] = getattr(args, "func")
    handler(args)


if __name__ == "__main__":
    main()
