"""Coordinate layouts for the non-standard chart types.

Each layout maps display rows onto a fixed 400x300 canvas (10px padding) and
returns drawable primitives. None of them divides by a zero maximum or total,
and no primitive ever gets a negative size.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd

from core.config import CANVAS_HEIGHT, CANVAS_PADDING, CANVAS_WIDTH, LAYOUT_ROW_CAP
from core.dataset import to_number

COLORS = (
    "#0088FE",
    "#00C49F",
    "#FFBB28",
    "#FF8042",
    "#8884D8",
    "#82CA9D",
    "#FFC658",
    "#FF7C7C",
)

USABLE_WIDTH = CANVAS_WIDTH - 2 * CANVAS_PADDING
USABLE_HEIGHT = CANVAS_HEIGHT - 2 * CANVAS_PADDING

STREAM_MAX_HEIGHT = 200.0
STREAM_LABEL_Y = 280.0
SPIRAL_MAX_RADIUS = 120.0
SPIRAL_TURNS = 2
SPIRAL_MIN_MARKER = 3.0
SPIRAL_MAX_MARKER = 15.0
TREEMAP_MIN_SIDE = 20.0
GUTTER = 2.0


@dataclass(frozen=True)
class LayoutItem:
    index: int
    value: float
    category: str
    numeric: bool = True


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float
    fill: str
    opacity: float = 1.0
    label: Optional[str] = None
    text_color: str = "white"
    value: float = 0.0
    category: str = ""


@dataclass(frozen=True)
class Circle:
    cx: float
    cy: float
    r: float
    fill: str
    opacity: float = 0.8
    value: float = 0.0
    category: str = ""


@dataclass(frozen=True)
class Text:
    x: float
    y: float
    text: str
    angle: float = 0.0
    color: str = "#666"
    size: int = 10


@dataclass(frozen=True)
class Polyline:
    points: Tuple[Tuple[float, float], ...]
    stroke: str = "#ddd"


@dataclass(frozen=True)
class Layout:
    kind: str
    rects: Tuple[Rect, ...] = ()
    circles: Tuple[Circle, ...] = ()
    texts: Tuple[Text, ...] = ()
    guides: Tuple[Polyline, ...] = ()
    width: int = CANVAS_WIDTH
    height: int = CANVAS_HEIGHT

    @property
    def is_empty(self) -> bool:
        return not (self.rects or self.circles or self.texts or self.guides)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def prepare_items(rows: pd.DataFrame, x_key: str, y_key: str) -> List[LayoutItem]:
    """First ``LAYOUT_ROW_CAP`` rows as (value, category); non-numeric values become 0."""
    if rows.empty:
        return []
    items: List[LayoutItem] = []
    for position, row in enumerate(rows.head(LAYOUT_ROW_CAP).to_dict(orient="records")):
        value = to_number(row.get(y_key))
        numeric = value is not None and bool(row.get("_numeric", True))
        items.append(
            LayoutItem(
                index=position,
                value=value if value is not None else 0.0,
                category="" if row.get(x_key) is None else str(row.get(x_key)),
                numeric=numeric,
            )
        )
    return items


def _ratio(value: float, maximum: float) -> float:
    if maximum <= 0:
        return 0.0
    return min(1.0, max(0.0, value / maximum))


def _max_value(items: List[LayoutItem]) -> float:
    return max((item.value for item in items), default=0.0)


def _color(index: int) -> str:
    return COLORS[index % len(COLORS)]


def stream_layout(items: List[LayoutItem]) -> Layout:
    n = len(items)
    if n == 0:
        return Layout(kind="streamgraph")
    max_value = _max_value(items)
    band = USABLE_WIDTH / n
    width = max(0.0, band - GUTTER)
    center = CANVAS_HEIGHT / 2
    rects: List[Rect] = []
    texts: List[Text] = []
    for i, item in enumerate(items):
        height = _ratio(item.value, max_value) * STREAM_MAX_HEIGHT
        x = i * band + CANVAS_PADDING
        rects.append(
            Rect(
                x=x,
                y=center - height / 2,
                width=width,
                height=height,
                fill=_color(i),
                opacity=0.7,
                value=item.value,
                category=item.category,
            )
        )
        texts.append(Text(x=x + width / 2, y=STREAM_LABEL_Y, text=item.category, angle=-45.0))
    return Layout(kind="streamgraph", rects=tuple(rects), texts=tuple(texts))


def spiral_point(fraction: float) -> Tuple[float, float]:
    """Point on the two-turn Archimedean spiral at ``fraction`` of its length."""
    angle = fraction * math.pi * 2 * SPIRAL_TURNS
    radius = fraction * SPIRAL_MAX_RADIUS
    return CANVAS_WIDTH / 2 + math.cos(angle) * radius, CANVAS_HEIGHT / 2 + math.sin(angle) * radius


def spiral_layout(items: List[LayoutItem]) -> Layout:
    n = len(items)
    if n == 0:
        return Layout(kind="spiral")
    max_value = _max_value(items)
    circles: List[Circle] = []
    texts: List[Text] = []
    for i, item in enumerate(items):
        cx, cy = spiral_point(i / n)
        r = max(SPIRAL_MIN_MARKER, _ratio(item.value, max_value) * SPIRAL_MAX_MARKER)
        circles.append(Circle(cx=cx, cy=cy, r=r, fill=_color(i), value=item.value, category=item.category))
        texts.append(Text(x=cx, y=cy - r - 5, text=f"{item.value:.0f}", size=8))
    guide = ((CANVAS_WIDTH / 2, CANVAS_HEIGHT / 2),) + tuple(spiral_point(step / 100) for step in range(100))
    return Layout(kind="spiral", circles=tuple(circles), texts=tuple(texts), guides=(Polyline(points=guide),))


def heat_color(intensity: float) -> str:
    hue = 240 - intensity * 120
    lightness = 50 + intensity * 30
    return f"hsl({hue:.0f}, 70%, {lightness:.0f}%)"


def heatmap_layout(items: List[LayoutItem]) -> Layout:
    n = len(items)
    if n == 0:
        return Layout(kind="heatmap")
    grid_rows = math.ceil(math.sqrt(n))
    grid_cols = math.ceil(n / grid_rows)
    cell_width = USABLE_WIDTH / grid_cols
    cell_height = USABLE_HEIGHT / grid_rows
    max_value = _max_value(items)
    rects: List[Rect] = []
    texts: List[Text] = []
    for i, item in enumerate(items):
        row, col = divmod(i, grid_cols)
        x = col * cell_width + CANVAS_PADDING
        y = row * cell_height + CANVAS_PADDING
        intensity = _ratio(item.value, max_value)
        text_color = "white" if intensity > 0.5 else "black"
        rects.append(
            Rect(
                x=x,
                y=y,
                width=max(0.0, cell_width - GUTTER),
                height=max(0.0, cell_height - GUTTER),
                fill=heat_color(intensity),
                label=f"{item.value:.0f}",
                text_color=text_color,
                value=item.value,
                category=item.category,
            )
        )
        texts.append(Text(x=x + cell_width / 2, y=y + cell_height / 2, text=f"{item.value:.0f}", color=text_color, size=8))
    return Layout(kind="heatmap", rects=tuple(rects), texts=tuple(texts))


def _short(label: str, limit: int = 8) -> str:
    return label[:limit] + "..." if len(label) > limit else label


def treemap_layout(items: List[LayoutItem]) -> Layout:
    """Slice-and-wrap packing: each item's area is its share of the canvas.

    Rectangles fill the remaining strip left to right and wrap to a new row
    once the cursor passes the canvas width.
    """
    n = len(items)
    if n == 0:
        return Layout(kind="treemap")
    weights = [max(0.0, item.value) for item in items]
    total = sum(weights)
    canvas_area = USABLE_WIDTH * USABLE_HEIGHT

    cursor_x = float(CANVAS_PADDING)
    cursor_y = float(CANVAS_PADDING)
    remaining_width = float(USABLE_WIDTH)
    remaining_height = float(USABLE_HEIGHT)
    rects: List[Rect] = []
    texts: List[Text] = []
    for i, (item, weight) in enumerate(zip(items, weights)):
        proportion = weight / total if total > 0 else 1.0 / n
        area = proportion * canvas_area
        strip_width = max(remaining_width, 1.0)
        strip_height = max(remaining_height, 1.0)
        if area <= 0:
            width = height = 0.0
        elif strip_width > strip_height:
            width = min(strip_width, math.sqrt(area * (strip_width / strip_height)))
            height = area / width
        else:
            height = min(strip_height, math.sqrt(area * (strip_height / strip_width)))
            width = area / height

        rect = Rect(
            x=cursor_x,
            y=cursor_y,
            width=max(TREEMAP_MIN_SIDE, width),
            height=max(TREEMAP_MIN_SIDE, height),
            fill=_color(i),
            opacity=0.8,
            value=item.value,
            category=item.category,
        )
        if rect.width > 30 and rect.height > 20:
            rect = replace(rect, label=_short(item.category))
            texts.append(Text(x=rect.x + rect.width / 2, y=rect.y + rect.height / 2, text=rect.label or "", color="white"))
        rects.append(rect)

        if cursor_x + width < USABLE_WIDTH:
            cursor_x += width
            remaining_width -= width
        else:
            cursor_y += height
            cursor_x = float(CANVAS_PADDING)
            remaining_height -= height
            remaining_width = float(USABLE_WIDTH)
    return Layout(kind="treemap", rects=tuple(rects), texts=tuple(texts))


LAYOUTS: Dict[str, Callable[[List[LayoutItem]], Layout]] = {
    "streamgraph": stream_layout,
    "spiral": spiral_layout,
    "heatmap": heatmap_layout,
    "treemap": treemap_layout,
}


def build_layout(chart_type: str, rows: pd.DataFrame, x_key: str, y_key: str) -> Layout:
    try:
        layout_fn = LAYOUTS[chart_type]
    except KeyError:
        raise ValueError(f"{chart_type!r} has no geometric layout") from None
    return layout_fn(prepare_items(rows, x_key, y_key))
