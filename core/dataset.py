from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from core.errors import EmptyDataset


Row = Mapping[str, str]


def to_number(value: object) -> Optional[float]:
    """Return the finite float behind ``value`` or None when it is not numeric.

    Blank strings are not numeric.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, np.integer, np.floating)):
        out = float(value)
    else:
        text = str(value).strip()
        if not text or "_" in text:
            return None
        try:
            out = float(text)
        except ValueError:
            return None
    if math.isnan(out) or math.isinf(out):
        return None
    return out


def is_numeric(value: object) -> bool:
    return to_number(value) is not None


def coerce_numeric(series: pd.Series) -> pd.Series:
    """Vectorised ``to_number`` with non-numeric values filled by 0."""
    if series.empty:
        return pd.Series(dtype=float, index=series.index)
    if pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series):
        out = series.astype(float)
    else:
        out = pd.to_numeric(series.astype(str).str.strip(), errors="coerce")
    out = out.replace([np.inf, -np.inf], np.nan)
    return out.fillna(0.0).astype(float)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    if value is pd.NA:
        return ""
    return str(value)


def _unique_headers(headers: Iterable[object]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for header in headers:
        name = _cell(header).strip()
        if name not in seen:
            seen[name] = None
    return tuple(seen)


@dataclass(frozen=True, eq=False)
class TabularDataset:
    """Immutable ``{headers, rows}`` pair fetched from a spreadsheet source.

    Every row maps every header to a string (missing cells are ``""``).
    Instances hash by identity, so a dataset can key memoised transforms.
    """

    headers: Tuple[str, ...]
    rows: Tuple[Row, ...]

    @classmethod
    def from_records(cls, headers: Sequence[object], records: Iterable[Mapping[str, Any]]) -> "TabularDataset":
        cols = _unique_headers(headers)
        rows = tuple(
            MappingProxyType({h: _cell(record.get(h)) for h in cols})
            for record in records
        )
        return cls(headers=cols, rows=rows)

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "TabularDataset":
        df = df.loc[:, ~pd.Index(df.columns).duplicated()]
        headers = [str(c) for c in df.columns]
        frame = df.copy()
        frame.columns = headers
        return cls.from_records(headers, frame.to_dict(orient="records"))

    @classmethod
    def empty(cls) -> "TabularDataset":
        return cls(headers=(), rows=())

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.headers or not self.rows

    @property
    def first_row(self) -> Row:
        return self.rows[0] if self.rows else MappingProxyType({})

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([dict(r) for r in self.rows], columns=list(self.headers))

    def to_dict(self) -> Dict[str, Any]:
        return {"headers": list(self.headers), "data": [dict(r) for r in self.rows]}

    def summary(self) -> Dict[str, Any]:
        return {
            "rows": self.row_count,
            "columns": len(self.headers),
            "numeric_columns": numeric_columns(self),
        }


def numeric_columns(dataset: TabularDataset) -> List[str]:
    """Headers whose non-blank values are all numeric (and at least one exists)."""
    out: List[str] = []
    for header in dataset.headers:
        values = [r[header] for r in dataset.rows if r[header].strip()]
        if values and all(is_numeric(v) for v in values):
            out.append(header)
    return out


def require_rows(dataset: Optional[TabularDataset]) -> TabularDataset:
    if dataset is None or dataset.is_empty:
        raise EmptyDataset("No data to display")
    return dataset
