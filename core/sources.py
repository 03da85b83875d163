"""Spreadsheet sources that turn a remote or local tabular resource into a dataset."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import pandas as pd

from core.config import DATA_DIR, DEFAULT_RANGE
from core.dataset import TabularDataset
from core.errors import FetchError, InvalidRange, NotFound, PermissionDenied

logger = logging.getLogger(__name__)

DEMO_SALES_ID = "1BxiMVs0XRA5nFMdKvBdBZjgmUUqptlbs74OgvE2upms"
WORKBOOK_SUFFIXES = (".xlsx", ".xlsm", ".csv")

_CELL_RE = re.compile(r"^([A-Za-z]{1,3})(\d+)$")


@dataclass(frozen=True)
class SheetTab:
    id: int
    title: str
    index: int


@dataclass(frozen=True)
class SheetInfo:
    title: str
    tabs: Tuple[SheetTab, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "tabs": [{"id": t.id, "title": t.title, "index": t.index} for t in self.tabs],
        }


class SheetSource(Protocol):
    def fetch(self, source_id: str, sheet_name: Optional[str] = None, range_: Optional[str] = None) -> TabularDataset:
        ...

    def list_tabs(self, source_id: str) -> SheetInfo:
        ...


def column_index(letters: str) -> int:
    """Zero-based column index for spreadsheet letters (A -> 0, AA -> 26)."""
    out = 0
    for ch in letters.upper():
        out = out * 26 + (ord(ch) - ord("A") + 1)
    return out - 1


def parse_range(range_: Optional[str]) -> Tuple[int, int, int, int]:
    """Parse ``"A1:Z1000"`` into zero-based ``(first_col, first_row, last_col, last_row)``."""
    text = (range_ or DEFAULT_RANGE).strip()
    if "!" in text:
        text = text.split("!", 1)[1]
    parts = text.split(":")
    if len(parts) != 2:
        raise InvalidRange(f"Invalid range: {range_!r}")
    cells = []
    for part in parts:
        match = _CELL_RE.match(part.strip())
        if not match:
            raise InvalidRange(f"Invalid range: {range_!r}")
        row = int(match.group(2))
        if row < 1:
            raise InvalidRange(f"Invalid range: {range_!r}")
        cells.append((column_index(match.group(1)), row - 1))
    (c1, r1), (c2, r2) = cells
    if c2 < c1 or r2 < r1:
        raise InvalidRange(f"Invalid range: {range_!r}")
    return c1, r1, c2, r2


def grid_to_dataset(grid: pd.DataFrame, range_: Optional[str] = None) -> TabularDataset:
    """Cut the range window out of a raw cell grid; its first row holds the headers."""
    c1, r1, c2, r2 = parse_range(range_)
    window = grid.iloc[r1 : r2 + 1, c1 : c2 + 1]
    window = window.dropna(how="all").dropna(axis=1, how="all")
    if window.empty:
        return TabularDataset.empty()
    header_row = window.iloc[0].tolist()
    headers = [
        (str(h).strip() if pd.notna(h) and str(h).strip() else f"Column {i + 1}")
        for i, h in enumerate(header_row)
    ]
    body = window.iloc[1:]
    records = [
        {h: ("" if pd.isna(v) else _format_cell(v)) for h, v in zip(headers, row)}
        for row in body.itertuples(index=False, name=None)
    ]
    return TabularDataset.from_records(headers, records)


def _format_cell(value: object) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, pd.Timestamp):
        return value.date().isoformat() if value == value.normalize() else value.isoformat()
    return str(value).strip()


class WorkbookSheetSource:
    """Reads ``.xlsx`` / ``.csv`` files under ``data_dir``; the source id is the file name."""

    def __init__(self, data_dir: Path = DATA_DIR) -> None:
        self.data_dir = Path(data_dir).resolve()

    def _path(self, source_id: str) -> Path:
        name = source_id.strip()
        candidates = [name] if Path(name).suffix else [name + s for s in WORKBOOK_SUFFIXES]
        for candidate in candidates:
            path = (self.data_dir / candidate).resolve()
            if self.data_dir not in path.parents:
                raise PermissionDenied(f"Source {source_id!r} is outside the data directory")
            if path.is_file():
                return path
        raise NotFound(f"Source {source_id!r} not found")

    def _read(self, path: Path, sheet_name: Optional[str]) -> pd.DataFrame:
        try:
            if path.suffix.lower() == ".csv":
                return pd.read_csv(path, header=None, dtype=object, keep_default_na=False, na_values=[""])
            with pd.ExcelFile(path) as book:
                sheet = sheet_name or book.sheet_names[0]
                if sheet not in book.sheet_names:
                    raise NotFound(f"Tab {sheet!r} not found in {path.name}")
                return book.parse(sheet, header=None, dtype=object)
        except PermissionError as exc:
            raise PermissionDenied(f"Cannot read {path.name}") from exc
        except (NotFound, PermissionDenied):
            raise
        except Exception as exc:
            raise FetchError(f"Failed to read {path.name}: {exc}") from exc

    def fetch(self, source_id: str, sheet_name: Optional[str] = None, range_: Optional[str] = None) -> TabularDataset:
        parse_range(range_)
        path = self._path(source_id)
        logger.info("reading %s (tab=%s, range=%s)", path.name, sheet_name or "default", range_ or DEFAULT_RANGE)
        return grid_to_dataset(self._read(path, sheet_name), range_)

    def list_tabs(self, source_id: str) -> SheetInfo:
        path = self._path(source_id)
        if path.suffix.lower() == ".csv":
            return SheetInfo(title=path.stem, tabs=(SheetTab(id=0, title=path.stem, index=0),))
        try:
            with pd.ExcelFile(path) as book:
                names = list(book.sheet_names)
        except PermissionError as exc:
            raise PermissionDenied(f"Cannot read {path.name}") from exc
        except Exception as exc:
            raise FetchError(f"Failed to read {path.name}: {exc}") from exc
        return SheetInfo(title=path.stem, tabs=tuple(SheetTab(id=i, title=n, index=i) for i, n in enumerate(names)))


SALES_HEADERS = ["Product", "Sales", "Region", "Month", "Category", "Revenue"]
SALES_ROWS = [
    ("MacBook Pro", "45", "North America", "January", "Electronics", "67500"),
    ("iPhone 15", "120", "North America", "January", "Electronics", "119880"),
    ("iPad Air", "78", "Europe", "January", "Electronics", "46800"),
    ("AirPods Pro", "200", "Asia", "January", "Accessories", "49800"),
    ("Apple Watch", "95", "North America", "February", "Wearables", "38000"),
    ("MacBook Air", "67", "Europe", "February", "Electronics", "73370"),
    ("iPhone 15 Pro", "89", "Asia", "February", "Electronics", "106780"),
    ("Magic Keyboard", "156", "North America", "March", "Accessories", "46800"),
    ("Studio Display", "23", "Europe", "March", "Electronics", "36570"),
    ("Mac Studio", "34", "Asia", "March", "Electronics", "67660"),
    ("AirTag", "445", "North America", "April", "Accessories", "13350"),
    ("HomePod mini", "78", "Europe", "April", "Smart Home", "7800"),
    ("Apple TV 4K", "56", "Asia", "April", "Entertainment", "11200"),
    ("Magic Mouse", "134", "North America", "May", "Accessories", "10720"),
    ("Mac Pro", "12", "Europe", "May", "Electronics", "71940"),
    ("Pro Display XDR", "8", "Asia", "May", "Electronics", "39992"),
    ("iPad Pro", "67", "North America", "June", "Electronics", "73370"),
    ("Apple Pencil", "123", "Europe", "June", "Accessories", "15990"),
]

USER_HEADERS = ["User ID", "Name", "Email", "Registration Date", "Plan", "Monthly Revenue"]
USER_ROWS = [
    ("U001", "John Smith", "john@example.com", "2024-01-15", "Pro", "29"),
    ("U002", "Sarah Johnson", "sarah@example.com", "2024-01-18", "Basic", "9"),
    ("U003", "Mike Wilson", "mike@example.com", "2024-02-01", "Enterprise", "99"),
    ("U004", "Emma Davis", "emma@example.com", "2024-02-05", "Pro", "29"),
    ("U005", "Alex Brown", "alex@example.com", "2024-02-10", "Basic", "9"),
]

FINANCE_HEADERS = ["Quarter", "Revenue", "Expenses", "Profit", "Growth Rate", "Department"]
FINANCE_ROWS = [
    ("Q1 2024", "2847392", "1823945", "1023447", "12.5%", "Sales"),
    ("Q1 2024", "1456783", "987654", "469129", "8.3%", "Marketing"),
    ("Q1 2024", "756432", "543210", "213222", "15.2%", "Product"),
    ("Q2 2024", "3124567", "1987432", "1137135", "18.7%", "Sales"),
    ("Q2 2024", "1678945", "1123456", "555489", "11.4%", "Marketing"),
]


def _demo(source_id: str) -> Tuple[str, List[str], List[Sequence[str]]]:
    if source_id == DEMO_SALES_ID:
        return "Sales Data", SALES_HEADERS, SALES_ROWS
    if "users" in source_id:
        return "User Data", USER_HEADERS, USER_ROWS
    return "Financial Data", FINANCE_HEADERS, FINANCE_ROWS


class SampleSheetSource:
    """Built-in demo spreadsheets, picked by source id like the hosted demo sheet."""

    def fetch(self, source_id: str, sheet_name: Optional[str] = None, range_: Optional[str] = None) -> TabularDataset:
        title, headers, rows = _demo(source_id)
        if sheet_name and sheet_name != title:
            raise NotFound(f"Tab {sheet_name!r} not found")
        grid = pd.DataFrame([headers, *rows], dtype=object)
        return grid_to_dataset(grid, range_)

    def list_tabs(self, source_id: str) -> SheetInfo:
        title, _, _ = _demo(source_id)
        return SheetInfo(title=title, tabs=(SheetTab(id=0, title=title, index=0),))


class ChainedSheetSource:
    """Tries each source in order; ``NotFound`` moves on to the next one."""

    def __init__(self, *sources: SheetSource) -> None:
        self.sources = sources

    def fetch(self, source_id: str, sheet_name: Optional[str] = None, range_: Optional[str] = None) -> TabularDataset:
        last: Optional[NotFound] = None
        for source in self.sources:
            try:
                return source.fetch(source_id, sheet_name, range_)
            except NotFound as exc:
                last = exc
        raise last or NotFound(f"Source {source_id!r} not found")

    def list_tabs(self, source_id: str) -> SheetInfo:
        last: Optional[NotFound] = None
        for source in self.sources:
            try:
                return source.list_tabs(source_id)
            except NotFound as exc:
                last = exc
        raise last or NotFound(f"Source {source_id!r} not found")


def check_connection(source: SheetSource, source_id: str) -> bool:
    try:
        source.list_tabs(source_id)
    except FetchError as exc:
        logger.info("connection test failed for %s: %s", source_id, exc)
        return False
    return True


def default_source(data_dir: Path = DATA_DIR) -> SheetSource:
    return ChainedSheetSource(WorkbookSheetSource(data_dir), SampleSheetSource())
