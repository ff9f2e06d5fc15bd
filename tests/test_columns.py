from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from sheetdb.columns import ColumnIndex, a1_range, column_index, column_letter, quote_sheet_title
from sheetdb.errors import IndexOutOfRangeError


def test_column_letter_sequence() -> None:
    assert column_letter(1) == "A"
    assert column_letter(26) == "Z"
    assert column_letter(27) == "AA"
    assert column_letter(52) == "AZ"
    assert column_letter(702) == "ZZ"
    assert column_letter(703) == "AAA"


@pytest.mark.parametrize("value", [0, -1, -27])
def test_column_letter_rejects_non_positive_offsets(value: int) -> None:
    with pytest.raises(IndexOutOfRangeError):
        column_letter(value)


def test_column_letter_is_a_bijection() -> None:
    seen = set()
    for number in range(1, 2000):
        letters = column_letter(number)
        assert letters not in seen
        seen.add(letters)
        assert column_index(letters) == number


def test_column_index_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        column_index("A1")
    with pytest.raises(ValueError):
        column_index("")


def test_a1_range_quotes_titles() -> None:
    assert a1_range("people", "A1", "C3") == "'people'!A1:C3"
    assert a1_range("Bob's Rugs", "A2", "B2") == "'Bob''s Rugs'!A2:B2"
    assert quote_sheet_title(" Sheet Name ") == "'Sheet Name'"
    with pytest.raises(ValueError):
        quote_sheet_title("  ")


def test_ensure_allocates_monotonically() -> None:
    columns = ColumnIndex()

    assert columns.ensure("name") == (0, True)
    assert columns.ensure("age") == (1, True)
    assert columns.ensure("name") == (0, False)
    assert columns.ensure("email") == (2, True)

    assert columns.resolve("name") == 0
    assert columns.resolve("missing") is None
    assert columns.names == ["name", "age", "email"]
    assert len(columns) == 3
    assert columns.last_letter() == "C"


def test_from_header_names_blank_cells() -> None:
    columns = ColumnIndex.from_header(["name", "", None, "age"])

    assert columns.names == ["name", "_column_1", "_column_2", "age"]
    assert columns.header_values() == ["name", "", "", "age"]
    assert columns.ensure("city") == (4, True)
    assert columns.header_values() == ["name", "", "", "age", "city"]


def test_from_header_keeps_repeated_titles_on_write_back() -> None:
    columns = ColumnIndex.from_header(["name", "name"])

    assert columns.names == ["name", "_column_1"]
    assert columns.resolve("name") == 0
    assert columns.header_values() == ["name", "name"]
