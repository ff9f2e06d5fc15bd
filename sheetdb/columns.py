"""Column bookkeeping and A1 range helpers.

``ColumnIndex`` keeps the mapping between a field name and its zero-based
column offset.  Offsets are handed out in order of first appearance and are
never renumbered, so a field keeps its column for the lifetime of the
collection even when later inserts add more columns to the right.

The range helpers below translate offsets into the 1-based, bijective
base-26 column letters used by A1 notation (``A`` … ``Z``, ``AA`` …).
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from sheetdb.errors import IndexOutOfRangeError

SYNTHETIC_PREFIX = "_column_"

__all__ = [
    "ColumnIndex",
    "SYNTHETIC_PREFIX",
    "a1_range",
    "column_index",
    "column_letter",
    "is_synthetic",
    "quote_sheet_title",
]


def column_letter(index: int) -> str:
    """Return the spreadsheet column letter for a 1-indexed column index."""

    if index < 1:
        raise IndexOutOfRangeError(f"Column index must be >= 1, got {index}")
    letters: List[str] = []
    while index:
        index, remainder = divmod(index - 1, 26)
        letters.append(chr(65 + remainder))
    return "".join(reversed(letters))


def column_index(letters: str) -> int:
    """Return the 1-indexed column number for ``letters`` (``"AA"`` -> 27)."""

    text = (letters or "").strip().upper()
    if not text or not text.isalpha() or not text.isascii():
        raise ValueError(f"Invalid column letters: {letters!r}")
    value = 0
    for char in text:
        value = value * 26 + (ord(char) - 64)
    return value


def quote_sheet_title(title: str) -> str:
    """Return a worksheet title quoted according to A1 notation rules."""

    safe = (title or "").strip()
    if not safe:
        raise ValueError("Sheet title must not be empty")
    safe = safe.replace("'", "''")
    return f"'{safe}'"


def a1_range(sheet: str, start: str, end: str) -> str:
    return f"{quote_sheet_title(sheet)}!{start}:{end}"


def is_synthetic(name: str) -> bool:
    return bool(name) and name.startswith(SYNTHETIC_PREFIX)


class ColumnIndex:
    """Bidirectional, append-only mapping between field names and offsets."""

    def __init__(self, names: Optional[Sequence[str]] = None) -> None:
        self._names: List[str] = []
        self._labels: List[str] = []
        self._offsets: Dict[str, int] = {}
        for name in names or ():
            self.ensure(name)

    @classmethod
    def from_header(cls, header: Sequence[object]) -> "ColumnIndex":
        """Build an index from a raw header row.

        Blank header cells receive the synthetic name ``_column_<offset>`` so
        that every physical column keeps a slot.
        """

        index = cls()
        for offset, cell in enumerate(header):
            text = "" if cell is None else str(cell)
            name = text if text else f"{SYNTHETIC_PREFIX}{offset}"
            if name in index._offsets:
                # A repeated header keeps its text on the sheet but is
                # addressed by its synthetic name.
                name = f"{SYNTHETIC_PREFIX}{offset}"
            index._append(name, text)
        return index

    def _append(self, name: str, label: Optional[str] = None) -> int:
        offset = len(self._names)
        self._names.append(name)
        self._labels.append(name if label is None else label)
        self._offsets[name] = offset
        return offset

    def resolve(self, name: str) -> Optional[int]:
        return self._offsets.get(name)

    def ensure(self, name: str) -> Tuple[int, bool]:
        """Return ``(offset, grew)`` allocating a new column for unknown names."""

        offset = self._offsets.get(name)
        if offset is not None:
            return offset, False
        return self._append(name), True

    def name_at(self, offset: int) -> str:
        return self._names[offset]

    @property
    def names(self) -> List[str]:
        return list(self._names)

    def header_values(self) -> List[str]:
        """Return the header row to write back, with synthetic names blanked."""

        return ["" if is_synthetic(label) else label for label in self._labels]

    def last_letter(self) -> str:
        return column_letter(len(self._names))

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._offsets

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __repr__(self) -> str:
        return f"ColumnIndex({self._names!r})"
