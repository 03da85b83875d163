from __future__ import annotations

import math
from typing import Any, Dict, List, Literal, Optional, Union

from core.config import TABLE_PAGE_SIZE
from core.dataset import Row, TabularDataset, to_number

SortOrder = Optional[Literal["asc", "desc"]]


def next_sort_order(current_column: Optional[str], current_order: SortOrder, clicked: str):
    """Header click cycle: asc -> desc -> unsorted. Returns ``(column, order)``."""
    if current_column != clicked:
        return clicked, "asc"
    if current_order == "asc":
        return clicked, "desc"
    return None, None


def _matches(row: Row, needle: str) -> bool:
    return any(needle in str(value).lower() for value in row.values())


def _sorted(rows: List[Row], column: str, order: str) -> List[Row]:
    numbers = [to_number(r.get(column)) for r in rows]
    reverse = order == "desc"
    if rows and all(n is not None for n in numbers):
        pairs = sorted(zip(numbers, range(len(rows))), reverse=reverse)
        return [rows[i] for _, i in pairs]
    return sorted(rows, key=lambda r: str(r.get(column, "")).lower(), reverse=reverse)


def page_numbers(current: int, total: int, delta: int = 2) -> List[Union[int, str]]:
    """Page links around ``current`` with ``"..."`` gaps; first and last always shown."""
    if total <= 1:
        return [1] if total == 1 else []
    window = [p for p in range(max(2, current - delta), min(total - 1, current + delta) + 1)]
    out: List[Union[int, str]] = [1]
    if window and window[0] > 2:
        out.append("...")
    out.extend(window)
    if window and window[-1] < total - 1:
        out.append("...")
    out.append(total)
    return out


def table_page(
    dataset: TabularDataset,
    *,
    filter_text: str = "",
    sort_column: Optional[str] = None,
    sort_order: SortOrder = None,
    page: int = 1,
    per_page: int = TABLE_PAGE_SIZE,
) -> Dict[str, Any]:
    rows: List[Row] = list(dataset.rows)
    needle = (filter_text or "").strip().lower()
    if needle:
        rows = [r for r in rows if _matches(r, needle)]
    if sort_column and sort_order and sort_column in dataset.headers:
        rows = _sorted(rows, sort_column, sort_order)

    per_page = max(1, int(per_page))
    total_pages = math.ceil(len(rows) / per_page)
    page = max(1, min(int(page), max(total_pages, 1)))
    start = (page - 1) * per_page
    return {
        "headers": list(dataset.headers),
        "rows": [dict(r) for r in rows[start : start + per_page]],
        "page": page,
        "per_page": per_page,
        "total_pages": total_pages,
        "total_rows": len(rows),
        "page_numbers": page_numbers(page, total_pages),
    }
