"""Records, sheet metadata and the in-memory collection model."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, MutableMapping, Optional

from sheetdb.columns import ColumnIndex

INDEX_KEY = "_index"
ID_KEY = "_id"
RESERVED_KEYS = (INDEX_KEY, ID_KEY)


def new_record_id() -> str:
    return uuid.uuid4().hex


class Record(MutableMapping[str, Any]):
    """A row of a collection.

    The mapping holds the user fields.  The row position (``index``) and the
    engine generated identifier (``id``) live outside the mapping so they can
    never be confused with a column; ``to_dict`` exposes them as ``_index``
    and ``_id``.
    """

    __slots__ = ("_fields", "index", "id")

    def __init__(
        self,
        fields: Optional[Mapping[str, Any]] = None,
        *,
        index: Optional[int] = None,
        record_id: Optional[str] = None,
    ) -> None:
        self._fields: Dict[str, Any] = {}
        self.index = index
        self.id = record_id
        if fields:
            for key, value in fields.items():
                self[key] = value

    @classmethod
    def coerce(cls, value: Mapping[str, Any]) -> "Record":
        """Return ``value`` itself when it is a ``Record``, else a new one.

        Plain mappings may carry ``_index``/``_id`` keys; they are lifted into
        the reserved attributes.
        """

        if isinstance(value, Record):
            return value
        fields = {key: item for key, item in value.items() if key not in RESERVED_KEYS}
        return cls(fields, index=value.get(INDEX_KEY), record_id=value.get(ID_KEY))

    def stamp(self, index: int) -> None:
        self.index = index
        self.id = new_record_id()

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {INDEX_KEY: self.index, ID_KEY: self.id}
        payload.update(self._fields)
        return payload

    def __getitem__(self, key: str) -> Any:
        return self._fields[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if key in RESERVED_KEYS:
            raise KeyError(f"{key} is managed by the store")
        self._fields[key] = value

    def __delitem__(self, key: str) -> None:
        del self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"Record({self._fields!r}, index={self.index!r}, id={self.id!r})"


@dataclass
class SheetProperties:
    """Subset of the Sheets API ``SheetProperties`` used by the store."""

    title: str
    sheet_id: int
    row_count: int = 0
    column_count: int = 0
    index: int = 0
    hidden: bool = False

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "SheetProperties":
        grid = payload.get("gridProperties") or {}
        return cls(
            title=str(payload.get("title", "")),
            sheet_id=int(payload.get("sheetId", 0)),
            row_count=int(grid.get("rowCount", 0) or 0),
            column_count=int(grid.get("columnCount", 0) or 0),
            index=int(payload.get("index", 0) or 0),
            hidden=bool(payload.get("hidden", False)),
        )


@dataclass
class Collection:
    """One logical table backed by a sheet of the spreadsheet."""

    name: str
    sheet: Optional[SheetProperties] = None
    columns: ColumnIndex = field(default_factory=ColumnIndex)
    rows: List[Record] = field(default_factory=list)
    initialized: bool = False

    def restamp(self) -> None:
        """Re-number every cached row and give it a fresh identifier."""

        for position, record in enumerate(self.rows):
            record.stamp(position)


__all__ = [
    "Collection",
    "ID_KEY",
    "INDEX_KEY",
    "RESERVED_KEYS",
    "Record",
    "SheetProperties",
    "new_record_id",
]
