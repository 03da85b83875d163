"""Tests for spreadsheet sources, range parsing and error mapping."""

from __future__ import annotations

import pandas as pd
import pytest

from core.errors import FetchError, InvalidRange, NotFound, PermissionDenied
from core.sources import (
    DEMO_SALES_ID,
    SALES_HEADERS,
    ChainedSheetSource,
    SampleSheetSource,
    WorkbookSheetSource,
    check_connection,
    column_index,
    parse_range,
)


@pytest.mark.parametrize(
    "letters, expected",
    [("A", 0), ("Z", 25), ("AA", 26), ("AZ", 51), ("BA", 52)],
)
def test_column_index(letters: str, expected: int) -> None:
    assert column_index(letters) == expected


def test_parse_range() -> None:
    assert parse_range("A1:Z1000") == (0, 0, 25, 999)
    assert parse_range("B2:C3") == (1, 1, 2, 2)
    assert parse_range("Sheet1!A1:B2") == (0, 0, 1, 1)
    assert parse_range(None) == (0, 0, 25, 999)


@pytest.mark.parametrize("bad", ["A1", "B1:A1", "A2:A1", "1A:B2", "A0:B2", "hello"])
def test_parse_range_rejects_bad_input(bad: str) -> None:
    with pytest.raises(InvalidRange):
        parse_range(bad)


def test_invalid_range_is_a_fetch_error() -> None:
    assert issubclass(InvalidRange, FetchError)


def test_sample_source_sales() -> None:
    dataset = SampleSheetSource().fetch(DEMO_SALES_ID)
    assert list(dataset.headers) == SALES_HEADERS
    assert dataset.row_count == 18
    assert dataset.first_row["Product"] == "MacBook Pro"


def test_sample_source_range_window() -> None:
    dataset = SampleSheetSource().fetch(DEMO_SALES_ID, range_="A1:B3")
    assert dataset.headers == ("Product", "Sales")
    assert [r["Sales"] for r in dataset.rows] == ["45", "120"]


def test_sample_source_picks_dataset_by_id() -> None:
    source = SampleSheetSource()
    assert source.fetch("my-users-sheet").headers[0] == "User ID"
    assert source.fetch("anything-else").headers[0] == "Quarter"
    assert source.list_tabs(DEMO_SALES_ID).tabs[0].title == "Sales Data"


def test_sample_source_unknown_tab() -> None:
    with pytest.raises(NotFound):
        SampleSheetSource().fetch(DEMO_SALES_ID, sheet_name="Other")


def test_workbook_csv(tmp_path) -> None:
    (tmp_path / "monthly.csv").write_text("Month,Sales\nJan,10\nFeb,20\n", encoding="utf-8")
    source = WorkbookSheetSource(tmp_path)

    dataset = source.fetch("monthly")

    assert dataset.headers == ("Month", "Sales")
    assert [dict(r) for r in dataset.rows] == [{"Month": "Jan", "Sales": "10"}, {"Month": "Feb", "Sales": "20"}]
    assert [t.title for t in source.list_tabs("monthly.csv").tabs] == ["monthly"]


def test_workbook_xlsx_tabs(tmp_path) -> None:
    path = tmp_path / "report.xlsx"
    with pd.ExcelWriter(path) as writer:
        pd.DataFrame({"Region": ["N", "S"], "Units": [3, 4.5]}).to_excel(writer, sheet_name="Q1", index=False)
        pd.DataFrame({"Region": ["E"], "Units": [7]}).to_excel(writer, sheet_name="Q2", index=False)
    source = WorkbookSheetSource(tmp_path)

    info = source.list_tabs("report")
    q1 = source.fetch("report")
    q2 = source.fetch("report.xlsx", sheet_name="Q2")

    assert info.title == "report"
    assert [t.title for t in info.tabs] == ["Q1", "Q2"]
    assert [r["Units"] for r in q1.rows] == ["3", "4.5"]
    assert q2.first_row["Region"] == "E"
    with pytest.raises(NotFound):
        source.fetch("report", sheet_name="Q3")


def test_workbook_missing_and_escaping(tmp_path) -> None:
    source = WorkbookSheetSource(tmp_path)
    with pytest.raises(NotFound):
        source.fetch("missing")
    with pytest.raises(PermissionDenied):
        source.fetch("../outside")


def test_workbook_checks_range_first(tmp_path) -> None:
    with pytest.raises(InvalidRange):
        WorkbookSheetSource(tmp_path).fetch("missing", range_="nope")


def test_chained_source_falls_through(tmp_path) -> None:
    (tmp_path / "local.csv").write_text("A,B\nx,1\n", encoding="utf-8")
    source = ChainedSheetSource(WorkbookSheetSource(tmp_path), SampleSheetSource())
    assert source.fetch("local").headers == ("A", "B")
    assert source.fetch(DEMO_SALES_ID).row_count == 18


def test_check_connection(tmp_path) -> None:
    assert check_connection(SampleSheetSource(), DEMO_SALES_ID) is True
    assert check_connection(WorkbookSheetSource(tmp_path), "missing") is False
