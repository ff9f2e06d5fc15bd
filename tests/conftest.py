from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sheetdb.columns import column_index
from sheetdb.errors import DuplicateNameError, RemoteFailureError
from sheetdb.models import SheetProperties
from sheetdb.store import SheetStore

_CELL_RE = re.compile(r"^([A-Z]+)(\d+)$")


def _cell(ref: str) -> Tuple[int, int]:
    match = _CELL_RE.match(ref)
    assert match, f"bad cell reference {ref!r}"
    return int(match.group(2)) - 1, column_index(match.group(1)) - 1


class _FakeSheet:
    def __init__(self, title: str, sheet_id: int, rows: Iterable[Sequence[Any]], row_count: int, column_count: int) -> None:
        self.title = title
        self.sheet_id = sheet_id
        self.grid: List[List[Any]] = [list(row) for row in rows]
        self.row_count = max(row_count, len(self.grid))
        self.column_count = max([column_count] + [len(row) for row in self.grid])

    def properties(self) -> SheetProperties:
        return SheetProperties(
            title=self.title,
            sheet_id=self.sheet_id,
            row_count=self.row_count,
            column_count=self.column_count,
        )


class FakeGridClient:
    """In-memory grid that mimics how the Sheets API trims empty cells."""

    def __init__(self, sheets: Optional[Dict[str, Sequence[Sequence[Any]]]] = None) -> None:
        self.sheets: Dict[str, _FakeSheet] = {}
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.fail_on: Dict[str, Exception] = {}
        self._next_id = 100
        for title, rows in (sheets or {}).items():
            self.add_sheet(title, rows)

    # Test helpers -------------------------------------------------------
    def add_sheet(self, title: str, rows: Sequence[Sequence[Any]] = (), *, row_count: int = 1000, column_count: int = 26) -> None:
        sheet_id = self._next_id
        self._next_id += 1
        self.sheets[title] = _FakeSheet(title, sheet_id, rows, row_count, column_count)

    def values(self, title: str) -> List[List[Any]]:
        return [self._trim(row) for row in self.sheets[title].grid]

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def reset_calls(self) -> None:
        self.calls.clear()

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        error = self.fail_on.get(name)
        if error is not None:
            raise error

    def _by_id(self, sheet_id: int) -> _FakeSheet:
        for sheet in self.sheets.values():
            if sheet.sheet_id == sheet_id:
                return sheet
        raise RemoteFailureError(f"unknown sheet id {sheet_id}", status=400)

    @staticmethod
    def _trim(row: Sequence[Any]) -> List[Any]:
        values = list(row)
        while values and values[-1] in (None, ""):
            values.pop()
        return ["" if value is None else value for value in values]

    # GridClient ---------------------------------------------------------
    def authenticate(self) -> None:
        self._record("authenticate")

    def list_sheets(self) -> List[SheetProperties]:
        self._record("list_sheets")
        return [sheet.properties() for sheet in self.sheets.values()]

    def create_sheet(self, title: str) -> List[SheetProperties]:
        self._record("create_sheet", title)
        if title in self.sheets:
            raise DuplicateNameError(f"A sheet named {title!r} already exists", status=400)
        self.add_sheet(title)
        return [sheet.properties() for sheet in self.sheets.values()]

    def apply_header_style(self, sheet_id: int) -> None:
        self._record("apply_header_style", sheet_id)

    def read_range(self, sheet: str, start: str, end: str) -> List[List[Any]]:
        self._record("read_range", sheet, start, end)
        grid = self.sheets[sheet].grid
        first_row, first_col = _cell(start)
        last_row, last_col = _cell(end)
        rows = [self._trim(row[first_col : last_col + 1]) for row in grid[first_row : last_row + 1]]
        while rows and not rows[-1]:
            rows.pop()
        return rows

    def write_range(self, sheet: str, start: str, end: str, rows: Sequence[Sequence[Any]]) -> None:
        self._record("write_range", sheet, start, end, [list(row) for row in rows])
        target = self.sheets[sheet]
        first_row, first_col = _cell(start)
        last_row, last_col = _cell(end)
        assert len(rows) <= last_row - first_row + 1, "more rows than the range holds"
        for offset, row in enumerate(rows):
            assert len(row) <= last_col - first_col + 1, "more columns than the range holds"
            row_index = first_row + offset
            while len(target.grid) <= row_index:
                target.grid.append([])
            line = target.grid[row_index]
            for col_offset, value in enumerate(row):
                if value is None:
                    continue
                column = first_col + col_offset
                while len(line) <= column:
                    line.append("")
                line[column] = value
        target.row_count = max(target.row_count, len(target.grid))

    def insert_rows(self, sheet_id: int, start_index: int, count: int) -> None:
        self._record("insert_rows", sheet_id, start_index, count)
        sheet = self._by_id(sheet_id)
        for _ in range(count):
            sheet.grid.insert(start_index, [])
        sheet.row_count += count

    def remove_rows(self, sheet_id: int, start_index: int, count: int) -> None:
        self._record("remove_rows", sheet_id, start_index, count)
        sheet = self._by_id(sheet_id)
        del sheet.grid[start_index : start_index + count]
        sheet.row_count -= count


@pytest.fixture
def grid() -> FakeGridClient:
    return FakeGridClient()


@pytest.fixture
def grid_factory():
    return FakeGridClient


@pytest.fixture
def store(grid: FakeGridClient) -> SheetStore:
    return SheetStore(grid)
