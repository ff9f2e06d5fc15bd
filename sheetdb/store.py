"""Document-store operations on top of a spreadsheet.

:class:`SheetStore` exposes ``insert``/``find``/``update``/``delete`` over the
sheets of one spreadsheet.  Each sheet is a collection: row 1 holds the
column names and every following row is a record.  The store keeps a cache
of every collection it has touched and turns each operation into the
smallest range read or write it can:

``insert_many``
    Appends below the last cached row.  Fields that have never been seen
    get a new column to the right, in which case the header row is
    rewritten before the data is written.

``update``
    Rewrites exactly one row, addressed by the record's ``_index``.

``delete``
    Removes the matching rows one by one, bottom-up, then renumbers the
    remaining records.

``refresh_record`` / ``refresh_collection`` / ``refresh_all``
    Re-read state that may have been changed outside the store, for example
    by formulas or by somebody editing the sheet.

Row positions are zero based: the record at ``_index`` ``n`` lives on sheet
row ``n + 2``.  Remote calls are made one after another and the cache is only
touched once a write has succeeded.  The store is not safe to drive from
several threads at once.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence, Tuple

from sheetdb.columns import column_letter
from sheetdb.errors import InvalidUsageError
from sheetdb.grid_client import GridClient, build_client
from sheetdb.models import ID_KEY, INDEX_KEY, RESERVED_KEYS, Collection, Record, new_record_id
from sheetdb.registry import CollectionRegistry
from sheetdb.settings import StoreSettings

logger = logging.getLogger(__name__)

Predicate = Callable[[Record, int, Sequence[Record]], bool]

HEADER_ROW = 1
FIRST_DATA_ROW = 2


def _match_all(record: Record, position: int, rows: Sequence[Record]) -> bool:
    return True


def _record_index(record: Mapping[str, Any]) -> Any:
    if isinstance(record, Record):
        return record.index
    return record.get(INDEX_KEY)


class SheetStore:
    """Collection-oriented access to the sheets of one spreadsheet."""

    def __init__(self, client: GridClient, *, registry: Optional[CollectionRegistry] = None) -> None:
        self._client = client
        self._registry = registry or CollectionRegistry(client)

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "SheetStore":
        return cls(build_client(settings))

    @property
    def registry(self) -> CollectionRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------
    def initialize(self) -> None:
        self._registry.initialize()

    def collection_names(self) -> List[str]:
        self._registry.initialize()
        return self._registry.names()

    def get_collection(self, name: str) -> Optional[Collection]:
        self._registry.initialize()
        return self._registry.get(name)

    def _require_collection(self, name: str) -> Collection:
        collection = self.get_collection(name)
        if collection is None:
            raise InvalidUsageError(f"Collection {name!r} does not exist")
        return collection

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _project(collection: Collection, records: Iterable[Mapping[str, Any]]) -> Tuple[List[List[Any]], bool]:
        """Return row vectors for ``records`` and whether new columns appeared."""

        grew = False
        placed: List[Dict[int, Any]] = []
        for record in records:
            cells: Dict[int, Any] = {}
            for key, value in record.items():
                if key in RESERVED_KEYS:
                    continue
                offset, allocated = collection.columns.ensure(key)
                grew = grew or allocated
                cells[offset] = value
            placed.append(cells)

        width = len(collection.columns)
        values = [[cells.get(offset) for offset in range(width)] for cells in placed]
        return values, grew

    def _sync_header(self, collection: Collection) -> None:
        end = f"{collection.columns.last_letter()}{HEADER_ROW}"
        logger.debug("Resyncing header of %s (%d columns)", collection.name, len(collection.columns))
        self._client.write_range(collection.name, f"A{HEADER_ROW}", end, [collection.columns.header_values()])

    def _write_rows(self, collection: Collection, first_row: int, values: List[List[Any]]) -> None:
        last_row = first_row + len(values) - 1
        end = f"{column_letter(max(1, len(collection.columns)))}{last_row}"
        self._client.write_range(collection.name, f"A{first_row}", end, values)

    def _validated_index(self, name: str, record: Optional[Mapping[str, Any]]) -> Tuple[Collection, int]:
        collection = self._require_collection(name)
        if record is None:
            raise InvalidUsageError("Invalid record")
        index = _record_index(record)
        if isinstance(index, bool) or not isinstance(index, int):
            raise InvalidUsageError(f"Invalid index: {index!r}")
        self._registry.materialize(collection)
        if not 0 <= index < len(collection.rows):
            raise InvalidUsageError(f"Index {index} is outside collection {name!r}")
        return collection, index

    # ------------------------------------------------------------------
    # Insert
    # ------------------------------------------------------------------
    def insert(self, name: str, record: Mapping[str, Any]) -> int:
        return self.insert_many(name, [record])

    def insert_many(self, name: str, records: Sequence[Mapping[str, Any]]) -> int:
        """Append ``records`` to collection ``name``, creating it if needed.

        Returns the number of rows written.  Records are stamped with their
        ``_index`` and a new ``_id`` once the write succeeded; plain mutable
        mappings receive ``_index``/``_id`` keys.  A record that is already
        cached is inserted as a copy.
        """

        if not records:
            return 0

        self._registry.initialize()
        collection = self._registry.get(name)
        if collection is None:
            collection = Collection(name=name, initialized=True)
        if collection.sheet is None:
            self._registry.create_sheet(collection)
            collection.initialized = True
            self._registry.register(collection)
        else:
            self._registry.materialize(collection)

        cached = {id(row) for row in collection.rows}
        items: List[Record] = []
        for record in records:
            item = Record.coerce(record)
            if id(item) in cached:
                # A record object occupies at most one cache slot.
                item = Record(item)
            cached.add(id(item))
            items.append(item)
        values, grew = self._project(collection, items)
        first_row = len(collection.rows) + FIRST_DATA_ROW

        if grew:
            self._sync_header(collection)
        self._write_rows(collection, first_row, values)

        base = len(collection.rows)
        for offset, (source, item) in enumerate(zip(records, items)):
            item.stamp(base + offset)
            if not isinstance(source, Record) and isinstance(source, MutableMapping):
                source[INDEX_KEY] = item.index
                source[ID_KEY] = item.id
        collection.rows.extend(items)
        logger.debug("Inserted %d row(s) into %s at row %d", len(values), name, first_row)
        return len(values)

    # ------------------------------------------------------------------
    # Find
    # ------------------------------------------------------------------
    def find(self, name: str, predicate: Optional[Predicate] = None) -> List[Record]:
        collection = self.get_collection(name)
        if collection is None:
            return []
        self._registry.materialize(collection)
        test = predicate or _match_all
        rows = collection.rows
        return [record for position, record in enumerate(rows) if test(record, position, rows)]

    def find_one(self, name: str, predicate: Optional[Predicate] = None) -> Optional[Record]:
        matches = self.find(name, predicate)
        return matches[0] if matches else None

    # ------------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------------
    def update(self, name: str, record: Mapping[str, Any]) -> bool:
        """Overwrite the row at ``record['_index']`` with ``record``.

        The cached slot is replaced wholesale, so fields the caller left out
        disappear from the cached record.
        """

        collection, index = self._validated_index(name, record)
        item = Record.coerce(record)
        values, grew = self._project(collection, [item])
        row = index + FIRST_DATA_ROW

        if grew:
            self._sync_header(collection)
        self._write_rows(collection, row, values)

        item.index = index
        if not item.id:
            item.id = new_record_id()
        collection.rows[index] = item
        return True

    def delete(self, name: str, predicate: Optional[Predicate]) -> int:
        """Remove every record matching ``predicate`` and renumber the rest."""

        if predicate is None:
            raise InvalidUsageError("delete requires a predicate")
        collection = self.get_collection(name)
        if collection is None:
            return 0
        self._registry.materialize(collection)

        rows = collection.rows
        positions = [position for position, record in enumerate(rows) if predicate(record, position, rows)]
        if not positions:
            return 0

        sheet_id = collection.sheet.sheet_id if collection.sheet is not None else 0
        removed = 0
        try:
            for position in reversed(positions):
                # Grid row indices are zero based and row 0 is the header.
                self._client.remove_rows(sheet_id, position + 1, 1)
                del collection.rows[position]
                removed += 1
        finally:
            if removed:
                collection.restamp()

        logger.info("Deleted %d row(s) from %s", len(positions), name)
        return len(positions)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------
    def refresh_record(self, name: str, record: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        """Pull the current sheet values of ``record`` into it, in place."""

        collection, index = self._validated_index(name, record)
        row = index + FIRST_DATA_ROW
        end = f"{column_letter(max(1, len(collection.columns)))}{row}"
        values = self._client.read_range(collection.name, f"A{row}", end)
        raw = values[0] if values else []

        for key in list(record.keys()):
            if key in RESERVED_KEYS:
                continue
            offset = collection.columns.resolve(key)
            if offset is None or offset >= len(raw):
                record[key] = None
            else:
                record[key] = raw[offset]
        return record

    def refresh_collection(self, name: str) -> Collection:
        return self._registry.refresh_collection(name)

    def refresh_all(self) -> List[Collection]:
        return self._registry.refresh_all()


__all__ = ["Predicate", "SheetStore"]
