"""Command line helper for inspecting and editing a SheetDB spreadsheet."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Callable, Dict, List, Optional, Sequence

from sheetdb.errors import SheetDBError
from sheetdb.logging_config import configure_logging
from sheetdb.models import Record
from sheetdb.settings import load_settings
from sheetdb.store import SheetStore

StoreFactory = Callable[[argparse.Namespace], SheetStore]


def _parse_where(pairs: Optional[Sequence[str]]) -> Dict[str, str]:
    criteria: Dict[str, str] = {}
    for pair in pairs or ():
        if "=" not in pair:
            raise SheetDBError(f"--where expects key=value, got {pair!r}")
        key, value = pair.split("=", 1)
        criteria[key.strip()] = value
    return criteria


def _matcher(criteria: Dict[str, str]):
    def predicate(record: Record, position: int, rows: Sequence[Record]) -> bool:
        for key, expected in criteria.items():
            value = record.get(key)
            if value is None or str(value) != expected:
                return False
        return True

    return predicate


def _dump(payload) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def command_collections(store: SheetStore, args: argparse.Namespace) -> int:
    for name in store.collection_names():
        print(name)
    return 0


def command_find(store: SheetStore, args: argparse.Namespace) -> int:
    predicate = _matcher(_parse_where(args.where))
    if args.first:
        record = store.find_one(args.collection, predicate)
        _dump(record.to_dict() if record is not None else None)
        return 0
    _dump([record.to_dict() for record in store.find(args.collection, predicate)])
    return 0


def command_insert(store: SheetStore, args: argparse.Namespace) -> int:
    try:
        payload = json.loads(args.document)
    except json.JSONDecodeError as exc:
        raise SheetDBError(f"Document is not valid JSON: {exc.msg}") from exc
    documents: List[dict] = payload if isinstance(payload, list) else [payload]
    if not all(isinstance(item, dict) for item in documents):
        raise SheetDBError("Document must be a JSON object or a list of objects")
    count = store.insert_many(args.collection, documents)
    print(f"Inserted {count} row(s) into {args.collection}")
    return 0


def command_delete(store: SheetStore, args: argparse.Namespace) -> int:
    criteria = _parse_where(args.where)
    if not criteria:
        raise SheetDBError("delete requires at least one --where filter")
    count = store.delete(args.collection, _matcher(criteria))
    print(f"Deleted {count} row(s) from {args.collection}")
    return 0


def _default_store(args: argparse.Namespace) -> SheetStore:
    settings = load_settings(args.settings)
    if args.spreadsheet:
        settings.spreadsheet_id = args.spreadsheet
    return SheetStore.from_settings(settings)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sheetdb", description="Use a spreadsheet as a document store.")
    parser.add_argument("--settings", help="Path to a JSON settings file")
    parser.add_argument("--spreadsheet", help="Spreadsheet id or URL (overrides settings)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    collections = subparsers.add_parser("collections", help="List collections")
    collections.set_defaults(handler=command_collections)

    find = subparsers.add_parser("find", help="Print matching records as JSON")
    find.add_argument("collection")
    find.add_argument("--where", action="append", metavar="KEY=VALUE")
    find.add_argument("--first", action="store_true", help="Only print the first match")
    find.set_defaults(handler=command_find)

    insert = subparsers.add_parser("insert", help="Insert a JSON object or list of objects")
    insert.add_argument("collection")
    insert.add_argument("document")
    insert.set_defaults(handler=command_insert)

    delete = subparsers.add_parser("delete", help="Delete matching records")
    delete.add_argument("collection")
    delete.add_argument("--where", action="append", metavar="KEY=VALUE")
    delete.set_defaults(handler=command_delete)
    return parser


def main(argv: Optional[Sequence[str]] = None, *, store_factory: StoreFactory = _default_store) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        store = store_factory(args)
        return args.handler(store, args)
    except SheetDBError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
