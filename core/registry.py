from __future__ import annotations

import itertools
from dataclasses import dataclass, replace
from typing import Dict, List, Literal, Optional, Sequence, Tuple

from core.errors import InvalidKeyBinding, ValidationError
from core.keys import check_key

ChartType = Literal[
    "bar", "line", "pie", "area", "scatter", "bubble", "streamgraph", "spiral", "heatmap", "treemap"
]

STANDARD_TYPES: Tuple[str, ...] = ("bar", "line", "pie", "area", "scatter", "bubble")
GEOMETRIC_TYPES: Tuple[str, ...] = ("streamgraph", "spiral", "heatmap", "treemap")
CHART_TYPES: Tuple[str, ...] = STANDARD_TYPES + GEOMETRIC_TYPES

CHART_TYPE_LABELS: Dict[str, Tuple[str, str]] = {
    "bar": ("Bar Chart", "Compare values across categories"),
    "line": ("Line Chart", "Show trends over time"),
    "area": ("Area Chart", "Show cumulative values"),
    "pie": ("Pie Chart", "Show proportions"),
    "scatter": ("Scatter Plot", "Show relationships"),
    "bubble": ("Bubble Chart", "Show 3D relationships"),
    "streamgraph": ("Stream Graph", "Show flow of data"),
    "spiral": ("Spiral Plot", "Show data in spiral pattern"),
    "heatmap": ("Heatmap", "Show data intensity"),
    "treemap": ("Treemap", "Show hierarchical data"),
}


@dataclass(frozen=True)
class ChartSpec:
    id: str
    title: str
    type: ChartType
    x_key: str
    y_key: str
    z_key: Optional[str] = None

    @property
    def is_geometric(self) -> bool:
        return self.type in GEOMETRIC_TYPES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "xKey": self.x_key,
            "yKey": self.y_key,
            "zKey": self.z_key,
        }


def _check_type(chart_type: str) -> str:
    if chart_type not in CHART_TYPES:
        raise ValidationError(f"Unknown chart type: {chart_type!r}")
    return chart_type


class ChartRegistry:
    """Ordered, in-memory collection of chart specs bound to one dataset's headers.

    Insertion order is display order. Ids come from a per-instance counter and
    are never reused, even after ``clear()``.
    """

    def __init__(self, headers: Sequence[str] = ()) -> None:
        self._headers: Tuple[str, ...] = tuple(headers)
        self._specs: List[ChartSpec] = []
        self._ids = itertools.count(1)

    @property
    def headers(self) -> Tuple[str, ...]:
        return self._headers

    def __len__(self) -> int:
        return len(self._specs)

    def __iter__(self):
        return iter(list(self._specs))

    def _index(self, chart_id: str) -> int:
        for i, spec in enumerate(self._specs):
            if spec.id == chart_id:
                return i
        raise KeyError(chart_id)

    def add(
        self,
        title: Optional[str] = None,
        type: str = "bar",
        x_key: Optional[str] = None,
        y_key: Optional[str] = None,
        z_key: Optional[str] = None,
    ) -> ChartSpec:
        headers = self._headers
        spec = ChartSpec(
            id=f"chart-{next(self._ids)}",
            title=title or f"Chart {len(self._specs) + 1}",
            type=_check_type(type),  # type: ignore[arg-type]
            x_key=x_key or (headers[0] if headers else ""),
            y_key=y_key or (headers[1] if len(headers) > 1 else (headers[0] if headers else "")),
            z_key=z_key if z_key is not None else (headers[2] if len(headers) > 2 else None),
        )
        self._specs.append(spec)
        return spec

    def update(self, chart_id: str, **changes) -> ChartSpec:
        idx = self._index(chart_id)
        changes.pop("id", None)
        if "type" in changes:
            _check_type(changes["type"])
        spec = replace(self._specs[idx], **changes)
        if self._headers:
            for key in ("x_key", "y_key", "z_key"):
                if changes.get(key):
                    check_key(changes[key], self._headers)
        self._specs[idx] = spec
        return spec

    def remove(self, chart_id: str) -> None:
        del self._specs[self._index(chart_id)]

    def get(self, chart_id: str) -> ChartSpec:
        return self._specs[self._index(chart_id)]

    def list(self) -> List[ChartSpec]:
        return list(self._specs)

    def clear(self) -> None:
        self._specs.clear()

    def bind(self, headers: Sequence[str]) -> None:
        """Attach to a new dataset. Every existing spec is dropped."""
        self._headers = tuple(headers)
        self.clear()

    def validate(self, spec: ChartSpec) -> ChartSpec:
        check_key(spec.x_key, self._headers)
        check_key(spec.y_key, self._headers)
        if spec.z_key:
            check_key(spec.z_key, self._headers)
        return spec

    def invalid_specs(self) -> List[str]:
        bad: List[str] = []
        for spec in self._specs:
            try:
                self.validate(spec)
            except InvalidKeyBinding:
                bad.append(spec.id)
        return bad

    def seed_defaults(self) -> List[ChartSpec]:
        """Starter charts shown when a dataset is first loaded."""
        h = self._headers
        if not h:
            return []
        second = h[1] if len(h) > 1 else h[0]
        third = h[2] if len(h) > 2 else h[0]
        return [
            self.add(title="Bar Chart Overview", type="bar"),
            self.add(title="Trend Analysis", type="line"),
            self.add(title="Distribution", type="pie"),
            self.add(title="Secondary Metrics", type="bar", x_key=third, y_key=second),
        ]
