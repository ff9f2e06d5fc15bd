"""Collection registry and lazy materialization.

The registry owns one :class:`~sheetdb.models.Collection` per sheet of the
spreadsheet.  Registration is cheap: only the sheet properties are known
until a collection is first used, at which point :meth:`materialize` reads
the whole used range once and builds the column index and row cache.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Sequence

from sheetdb.columns import ColumnIndex, column_letter
from sheetdb.errors import CollectionNotFoundError, RemoteFailureError, SheetNotFoundError
from sheetdb.grid_client import GridClient
from sheetdb.models import Collection, Record, SheetProperties, new_record_id

logger = logging.getLogger(__name__)


def rows_to_records(columns: ColumnIndex, rows: Sequence[Sequence[object]]) -> List[Record]:
    records: List[Record] = []
    names = columns.names
    for position, raw in enumerate(rows):
        record = Record(index=position, record_id=new_record_id())
        for offset, name in enumerate(names):
            record[name] = raw[offset] if offset < len(raw) else None
        records.append(record)
    return records


class CollectionRegistry:
    """Name-indexed set of collections backed by one grid client."""

    def __init__(self, client: GridClient) -> None:
        self._client = client
        self._collections: Dict[str, Collection] = {}
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    def initialize(self) -> None:
        """Authenticate and register an unmaterialized shell per sheet."""

        if self._ready:
            return
        self._client.authenticate()
        sheets = self._client.list_sheets()
        self._collections = {sheet.title: Collection(name=sheet.title, sheet=sheet) for sheet in sheets}
        self._ready = True
        logger.debug("Registered %d collection(s)", len(self._collections))

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def get(self, name: str) -> Optional[Collection]:
        return self._collections.get(name)

    def names(self) -> List[str]:
        return list(self._collections)

    def register(self, collection: Collection) -> Collection:
        self._collections[collection.name] = collection
        return collection

    def __iter__(self) -> Iterator[Collection]:
        return iter(list(self._collections.values()))

    def __len__(self) -> int:
        return len(self._collections)

    def __contains__(self, name: object) -> bool:
        return name in self._collections

    # ------------------------------------------------------------------
    # Remote state
    # ------------------------------------------------------------------
    def create_sheet(self, collection: Collection) -> SheetProperties:
        """Create the backing sheet of ``collection`` and style its header."""

        sheets = self._client.create_sheet(collection.name)
        sheet = next((item for item in sheets if item.title == collection.name), None)
        if sheet is None:
            raise SheetNotFoundError(f"Sheet {collection.name!r} missing after creation")
        try:
            self._client.apply_header_style(sheet.sheet_id)
        except RemoteFailureError as exc:
            logger.warning("Header style could not be applied to %s: %s", collection.name, exc)
        collection.sheet = sheet
        logger.info("Created collection %s (sheet %s)", collection.name, sheet.sheet_id)
        return sheet

    def materialize(self, collection: Collection) -> Collection:
        if collection.initialized:
            return collection
        return self._load(collection)

    def _load(self, collection: Collection) -> Collection:
        sheet = collection.sheet
        if sheet is None or not sheet.row_count or not sheet.column_count:
            collection.columns = ColumnIndex()
            collection.rows = []
            collection.initialized = True
            return collection

        end = f"{column_letter(sheet.column_count)}{sheet.row_count}"
        values = self._client.read_range(collection.name, "A1", end)
        header = values[0] if values else []
        columns = ColumnIndex.from_header(header)
        collection.columns = columns
        collection.rows = rows_to_records(columns, values[1:])
        collection.initialized = True
        logger.debug(
            "Materialized %s: %d column(s), %d row(s)",
            collection.name,
            len(columns),
            len(collection.rows),
        )
        return collection

    def refresh_collection(self, name: str) -> Collection:
        """Reload ``name`` from the spreadsheet, replacing the registry entry."""

        self.initialize()
        sheets = self._client.list_sheets()
        sheet = next((item for item in sheets if item.title == name), None)
        if sheet is None:
            if name in self._collections:
                raise SheetNotFoundError(f"Sheet {name!r} no longer exists")
            raise CollectionNotFoundError(f"Collection {name!r} does not exist")
        collection = self._load(Collection(name=name, sheet=sheet))
        return self.register(collection)

    def refresh_all(self) -> List[Collection]:
        """Rebuild every collection from the spreadsheet."""

        self._client.authenticate()
        sheets = self._client.list_sheets()
        rebuilt: Dict[str, Collection] = {}
        for sheet in sheets:
            rebuilt[sheet.title] = self._load(Collection(name=sheet.title, sheet=sheet))
        self._collections = rebuilt
        self._ready = True
        return list(rebuilt.values())


__all__ = ["CollectionRegistry", "rows_to_records"]
