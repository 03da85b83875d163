from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import asdict
from typing import Any, Dict, Iterable, List, Mapping, Optional

import altair as alt
import pandas as pd

from core.dataset import TabularDataset, is_numeric
from core.errors import ValidationError
from core.keys import ResolvedKeys, resolve_keys
from core.layouts import Layout, build_layout
from core.registry import CHART_TYPES, GEOMETRIC_TYPES, ChartSpec
from core.settings import ViewSettings, default_settings, performance_warning
from core.transform import cached_view, view_records
from core.trendline import compute_trendline, trendline_enabled

alt.data_transformers.disable_max_rows()
logger = logging.getLogger(__name__)

TREND_COLOR = "#ff7300"
BASE_COLOR = "#8884d8"
PIE_COLORS = ["#0088FE", "#00C49F", "#FFBB28", "#FF8042", "#8884D8"]
CHART_HEIGHT = 300


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _field(name: str) -> str:
    # Vega-Lite reads dots and brackets in field names as nested access
    return re.sub(r"([.\[\]])", r"\\\1", name)


def _is_quantitative(frame: pd.DataFrame, column: str) -> bool:
    values = [v for v in frame[column].tolist() if str(v).strip()]
    return bool(values) and all(is_numeric(v) for v in values)


def _tooltip(frame: pd.DataFrame, keys: ResolvedKeys) -> List[alt.Tooltip]:
    tips = [alt.Tooltip(field=_field(keys.x_key), type="nominal"), alt.Tooltip(field=_field(keys.y_key), type="quantitative")]
    if "_count" in frame.columns:
        tips.append(alt.Tooltip(field="_count", type="quantitative", title="Rows"))
    return tips


def _positional_x(frame: pd.DataFrame, keys: ResolvedKeys) -> alt.X:
    """One x slot per row, labelled with the row's category."""
    labels = json.dumps([str(v) for v in frame[keys.x_key].tolist()])
    return alt.X(
        field="index",
        type="ordinal",
        title=keys.x_key,
        axis=alt.Axis(labelExpr=f"{labels}[datum.value]", labelOverlap=True),
    )


def standard_chart(
    chart_type: str,
    rows: pd.DataFrame,
    keys: ResolvedKeys,
    *,
    trend: Optional[List[Dict[str, float]]] = None,
    zoom: bool = False,
) -> alt.TopLevelMixin:
    frame = rows.drop(columns=["_originalValues"], errors="ignore").copy()
    x_field, y_field = _field(keys.x_key), _field(keys.y_key)
    y_enc = alt.Y(field=y_field, type="quantitative", title=keys.y_key)
    tooltip = _tooltip(frame, keys)

    if chart_type == "pie":
        return (
            alt.Chart(frame)
            .mark_arc(outerRadius=110)
            .encode(
                theta=alt.Theta(field=y_field, type="quantitative"),
                color=alt.Color(field=x_field, type="nominal", scale=alt.Scale(range=PIE_COLORS), title=keys.x_key),
                tooltip=tooltip,
            )
            .properties(height=CHART_HEIGHT)
        )

    base = alt.Chart(frame)
    x_enc = _positional_x(frame, keys)
    if chart_type == "line":
        chart = base.mark_line(point=True, color=BASE_COLOR).encode(x=x_enc, y=y_enc, tooltip=tooltip)
    elif chart_type == "area":
        chart = base.mark_area(opacity=0.6, line=True, color=BASE_COLOR).encode(x=x_enc, y=y_enc, tooltip=tooltip)
    elif chart_type in ("scatter", "bubble"):
        if _is_quantitative(frame, keys.x_key):
            x_enc = alt.X(field=x_field, type="quantitative", title=keys.x_key)
        encoding: Dict[str, Any] = {
            "x": x_enc,
            "y": y_enc,
            "tooltip": tooltip,
        }
        if chart_type == "bubble":
            size_key = keys.z_key or keys.y_key
            frame["_size"] = pd.to_numeric(frame[size_key], errors="coerce").fillna(0).clip(lower=0)
            encoding["size"] = alt.Size(field="_size", type="quantitative", title=size_key)
        chart = alt.Chart(frame).mark_circle(opacity=0.7, color=BASE_COLOR).encode(**encoding)
    else:
        chart = base.mark_bar(color=BASE_COLOR).encode(x=x_enc, y=y_enc, tooltip=tooltip)

    if trend:
        trend_by_index = {p["index"]: p["trendValue"] for p in trend}
        frame["_trend"] = frame["index"].map(trend_by_index)
        trend_line = (
            alt.Chart(frame)
            .mark_line(color=TREND_COLOR, strokeDash=[6, 4])
            .encode(x=x_enc, y=alt.Y(field="_trend", type="quantitative"), tooltip=[alt.Tooltip(field="_trend", type="quantitative", title="Trend", format=",.2f")])
        )
        chart = alt.layer(chart, trend_line)

    chart = chart.properties(height=CHART_HEIGHT)
    if zoom:
        chart = chart.interactive(bind_y=False)
    return chart


def layout_chart(layout: Layout) -> Optional[alt.TopLevelMixin]:
    """Draw a geometric layout with fixed pixel scales (origin top-left)."""
    if layout.is_empty:
        return None
    x_scale = alt.Scale(domain=[0, layout.width], nice=False, zero=False)
    y_scale = alt.Scale(domain=[0, layout.height], nice=False, zero=False, reverse=True)
    layers = []

    if layout.rects:
        rects = pd.DataFrame([asdict(r) for r in layout.rects])
        rects["x2"] = rects["x"] + rects["width"]
        rects["y2"] = rects["y"] + rects["height"]
        layers.append(
            alt.Chart(rects)
            .mark_rect(stroke="#fff", strokeWidth=1)
            .encode(
                x=alt.X("x:Q", scale=x_scale, axis=None),
                x2="x2:Q",
                y=alt.Y("y:Q", scale=y_scale, axis=None),
                y2="y2:Q",
                color=alt.Color("fill:N", scale=None),
                opacity=alt.Opacity("opacity:Q", scale=None),
                tooltip=[alt.Tooltip("category:N", title="Category"), alt.Tooltip("value:Q", title="Value", format=",.2f")],
            )
        )
    if layout.guides:
        points = [
            {"x": x, "y": y, "order": i, "guide": g}
            for g, guide in enumerate(layout.guides)
            for i, (x, y) in enumerate(guide.points)
        ]
        layers.append(
            alt.Chart(pd.DataFrame(points))
            .mark_line(color="#ddd", strokeWidth=1, opacity=0.5)
            .encode(
                x=alt.X("x:Q", scale=x_scale, axis=None),
                y=alt.Y("y:Q", scale=y_scale, axis=None),
                order="order:Q",
                detail="guide:N",
            )
        )
    if layout.circles:
        circles = pd.DataFrame([asdict(c) for c in layout.circles])
        circles["area"] = math.pi * circles["r"] ** 2
        layers.append(
            alt.Chart(circles)
            .mark_circle()
            .encode(
                x=alt.X("cx:Q", scale=x_scale, axis=None),
                y=alt.Y("cy:Q", scale=y_scale, axis=None),
                size=alt.Size("area:Q", scale=None, legend=None),
                color=alt.Color("fill:N", scale=None),
                opacity=alt.Opacity("opacity:Q", scale=None),
                tooltip=[alt.Tooltip("category:N", title="Category"), alt.Tooltip("value:Q", title="Value", format=",.2f")],
            )
        )
    if layout.texts:
        texts = pd.DataFrame([asdict(t) for t in layout.texts])
        layers.append(
            alt.Chart(texts)
            .mark_text(baseline="middle", align="center")
            .encode(
                x=alt.X("x:Q", scale=x_scale, axis=None),
                y=alt.Y("y:Q", scale=y_scale, axis=None),
                text="text:N",
                angle=alt.Angle("angle:Q", scale=None),
                color=alt.Color("color:N", scale=None),
                size=alt.Size("size:Q", scale=None, legend=None),
            )
        )
    return alt.layer(*layers).properties(width=layout.width, height=layout.height).configure_view(strokeWidth=0)


def prepare_chart(dataset: TabularDataset, spec: ChartSpec, settings: ViewSettings) -> Dict[str, Any]:
    """Resolve keys, transform rows and fit the trendline for one chart."""
    keys = resolve_keys(dataset, spec.x_key, spec.y_key, spec.z_key)
    rows = cached_view(dataset, settings, keys.y_key).copy()
    if settings.view_mode == "aggregate":
        # aggregated rows are keyed by the group column
        group = settings.aggregate_by if settings.aggregate_by in dataset.headers else dataset.headers[0]
        keys = ResolvedKeys(x_key=group, y_key=keys.y_key, z_key=None)
    trend = compute_trendline(rows, keys.y_key) if trendline_enabled(spec.type, settings) else None
    return {
        "keys": keys,
        "rows": rows,
        "trend": trend,
        "warning": performance_warning(settings, dataset.row_count),
    }


def build_chart(dataset: TabularDataset, spec: ChartSpec, settings: ViewSettings) -> Optional[alt.TopLevelMixin]:
    prepared = prepare_chart(dataset, spec, settings)
    return _chart_for(spec, settings, prepared)


def _chart_for(spec: ChartSpec, settings: ViewSettings, prepared: Dict[str, Any]) -> Optional[alt.TopLevelMixin]:
    keys: ResolvedKeys = prepared["keys"]
    if spec.type in GEOMETRIC_TYPES:
        return layout_chart(build_layout(spec.type, prepared["rows"], keys.x_key, keys.y_key))
    if prepared["rows"].empty:
        return None
    return standard_chart(spec.type, prepared["rows"], keys, trend=prepared["trend"], zoom=settings.enable_zoom)


def compute_chart(dataset: TabularDataset, spec: ChartSpec, settings: ViewSettings) -> Dict[str, Any]:
    if spec.type not in CHART_TYPES:
        raise ValidationError(f"Unknown chart type: {spec.type!r}")
    prepared = prepare_chart(dataset, spec, settings)
    keys: ResolvedKeys = prepared["keys"]
    payload: Dict[str, Any] = {
        "id": spec.id,
        "title": spec.title,
        "type": spec.type,
        "xKey": keys.x_key,
        "yKey": keys.y_key,
        "zKey": keys.z_key,
        "settings": settings.to_dict(),
        "rows": view_records(prepared["rows"]),
        "trendline": prepared["trend"],
        "warning": prepared["warning"],
        "layout": None,
        "chart": None,
    }
    if spec.type in GEOMETRIC_TYPES:
        layout = build_layout(spec.type, prepared["rows"], keys.x_key, keys.y_key)
        payload["layout"] = layout.to_dict()
        chart = layout_chart(layout)
    else:
        chart = _chart_for(spec, settings, prepared)
    payload["chart"] = to_vega_spec(chart) if chart is not None else None
    return payload


def compute_charts(
    dataset: TabularDataset,
    specs: Iterable[ChartSpec],
    settings_by_id: Optional[Mapping[str, ViewSettings]] = None,
) -> List[Dict[str, Any]]:
    """Payloads for every chart; one failing chart never affects its siblings."""
    if dataset.is_empty:
        return []
    settings_by_id = settings_by_id or {}
    out: List[Dict[str, Any]] = []
    for spec in specs:
        settings = settings_by_id.get(spec.id) or default_settings(dataset)
        try:
            out.append(compute_chart(dataset, spec, settings))
        except Exception as exc:
            logger.exception("chart %s (%s) failed", spec.id, spec.type)
            out.append({"id": spec.id, "title": spec.title, "type": spec.type, "error": str(exc) or type(exc).__name__})
    return out
