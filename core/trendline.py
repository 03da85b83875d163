from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from core.errors import ComputationDegenerate
from core.settings import ViewSettings

logger = logging.getLogger(__name__)

PROPORTION_TYPES = frozenset({"pie"})


def trendline_enabled(chart_type: str, settings: ViewSettings) -> bool:
    return settings.show_trendline and chart_type not in PROPORTION_TYPES


def fit_line(xs: Sequence[float], ys: Sequence[float]) -> Tuple[float, float]:
    """Closed-form least squares; returns ``(slope, intercept)``."""
    n = len(xs)
    if n < 2 or n != len(ys):
        raise ComputationDegenerate(f"need at least 2 points, got {n}")
    sum_x = math.fsum(xs)
    sum_y = math.fsum(ys)
    sum_xy = math.fsum(x * y for x, y in zip(xs, ys))
    sum_xx = math.fsum(x * x for x in xs)
    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        raise ComputationDegenerate("all x values are identical")
    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return slope, intercept


def compute_trendline(rows: pd.DataFrame, y_key: str) -> Optional[List[Dict[str, float]]]:
    """Regress ``y_key`` on ``index``; None when there is nothing to fit."""
    if rows.empty or y_key not in rows.columns:
        return None
    ys = pd.to_numeric(rows[y_key], errors="coerce")
    valid = rows.loc[ys.notna()]
    xs = [float(i) for i in valid["index"].tolist()]
    values = [float(v) for v in ys[ys.notna()].tolist()]
    try:
        slope, intercept = fit_line(xs, values)
    except ComputationDegenerate as exc:
        logger.debug("trendline omitted: %s", exc)
        return None
    return [{"index": int(x), "trendValue": slope * x + intercept} for x in xs]
