from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from core.config import (
    ALL_ROWS_WARNING,
    DEFAULT_SAMPLE_SIZE,
    SAMPLE_MODE_THRESHOLD,
    ZOOM_THRESHOLD,
)
from core.dataset import TabularDataset

ViewMode = Literal["sample", "aggregate", "all"]
AggregateFunction = Literal["sum", "avg", "count", "max", "min"]

VIEW_MODES = ("sample", "aggregate", "all")
AGGREGATE_FUNCTIONS = ("sum", "avg", "count", "max", "min")


@dataclass(frozen=True)
class ViewSettings:
    view_mode: ViewMode = "all"
    sample_size: int = DEFAULT_SAMPLE_SIZE
    aggregate_by: str = ""
    aggregate_function: AggregateFunction = "sum"
    show_trendline: bool = False
    enable_zoom: bool = False

    def to_dict(self) -> dict:
        return {
            "viewMode": self.view_mode,
            "sampleSize": self.sample_size,
            "aggregateBy": self.aggregate_by,
            "aggregateFunction": self.aggregate_function,
            "showTrendline": self.show_trendline,
            "enableZoom": self.enable_zoom,
        }


def default_settings(dataset: TabularDataset) -> ViewSettings:
    total = dataset.row_count
    return ViewSettings(
        view_mode="sample" if total > SAMPLE_MODE_THRESHOLD else "all",
        sample_size=DEFAULT_SAMPLE_SIZE,
        aggregate_by=dataset.headers[0] if dataset.headers else "",
        aggregate_function="sum",
        show_trendline=False,
        enable_zoom=total > ZOOM_THRESHOLD,
    )


def _pick(raw: dict, camel: str, snake: str, default):
    if camel in raw and raw[camel] is not None:
        return raw[camel]
    if snake in raw and raw[snake] is not None:
        return raw[snake]
    return default


def normalize_settings(raw: Optional[dict], *, dataset: TabularDataset) -> ViewSettings:
    """Build ViewSettings from a loose dict (camelCase or snake_case keys)."""
    base = default_settings(dataset)
    raw = raw or {}

    view_mode = str(_pick(raw, "viewMode", "view_mode", base.view_mode))
    if view_mode not in VIEW_MODES:
        view_mode = base.view_mode

    sample_size = _pick(raw, "sampleSize", "sample_size", base.sample_size)
    try:
        sample_size = int(sample_size)
    except (TypeError, ValueError):
        sample_size = base.sample_size
    sample_size = max(1, sample_size)

    aggregate_by = str(_pick(raw, "aggregateBy", "aggregate_by", base.aggregate_by))
    if aggregate_by not in dataset.headers:
        aggregate_by = base.aggregate_by

    aggregate_function = str(_pick(raw, "aggregateFunction", "aggregate_function", base.aggregate_function))
    if aggregate_function not in AGGREGATE_FUNCTIONS:
        aggregate_function = base.aggregate_function

    return ViewSettings(
        view_mode=view_mode,  # type: ignore[arg-type]
        sample_size=sample_size,
        aggregate_by=aggregate_by,
        aggregate_function=aggregate_function,  # type: ignore[arg-type]
        show_trendline=bool(_pick(raw, "showTrendline", "show_trendline", base.show_trendline)),
        enable_zoom=bool(_pick(raw, "enableZoom", "enable_zoom", base.enable_zoom)),
    )


def performance_warning(settings: ViewSettings, row_count: int) -> Optional[str]:
    if settings.view_mode == "all" and row_count > ALL_ROWS_WARNING:
        return f"Showing all {row_count:,} rows may slow down the browser."
    return None
