"""Tests for chart payloads and Vega-Lite specs."""

from __future__ import annotations

from core.charts import build_chart, compute_chart, compute_charts, layout_chart, to_vega_spec
from core.dataset import TabularDataset
from core.layouts import Layout
from core.registry import ChartRegistry, ChartSpec
from core.settings import ViewSettings


def test_bar_chart_payload(monthly_dataset) -> None:
    spec = ChartSpec(id="c1", title="Sales", type="bar", x_key="Month", y_key="Sales")

    payload = compute_chart(monthly_dataset, spec, ViewSettings(view_mode="all"))

    assert payload["id"] == "c1"
    assert (payload["xKey"], payload["yKey"]) == ("Month", "Sales")
    assert [r["Sales"] for r in payload["rows"]] == [10.0, 20.0, 5.0, 7.0]
    assert payload["trendline"] is None
    assert payload["layout"] is None
    assert payload["chart"]["mark"]["type"] == "bar"


def test_aggregate_payload_uses_group_column(monthly_dataset) -> None:
    spec = ChartSpec(id="c1", title="Sales", type="line", x_key="Sales", y_key="Sales")
    settings = ViewSettings(view_mode="aggregate", aggregate_by="Month", show_trendline=True)

    payload = compute_chart(monthly_dataset, spec, settings)

    assert payload["xKey"] == "Month"
    assert [r["Month"] for r in payload["rows"]] == ["Jan", "Feb", "Mar"]
    assert len(payload["trendline"]) == 3
    assert "layer" in payload["chart"]


def test_pie_never_gets_trendline(monthly_dataset) -> None:
    spec = ChartSpec(id="p", title="Share", type="pie", x_key="Month", y_key="Sales")
    payload = compute_chart(monthly_dataset, spec, ViewSettings(show_trendline=True, enable_zoom=True))
    assert payload["trendline"] is None
    assert payload["chart"]["mark"]["type"] == "arc"


def test_geometric_payload_has_layout(sales_dataset) -> None:
    spec = ChartSpec(id="t", title="Tree", type="treemap", x_key="Product", y_key="Revenue")
    payload = compute_chart(sales_dataset, spec, ViewSettings())
    assert payload["layout"]["kind"] == "treemap"
    assert len(payload["layout"]["rects"]) == sales_dataset.row_count
    assert "layer" in payload["chart"]


def test_bubble_uses_size_column(sales_dataset) -> None:
    spec = ChartSpec(id="b", title="Bubbles", type="bubble", x_key="Sales", y_key="Revenue", z_key="Sales")
    payload = compute_chart(sales_dataset, spec, ViewSettings())
    assert payload["chart"]["encoding"]["size"]["field"] == "_size"
    assert payload["chart"]["encoding"]["x"]["type"] == "quantitative"


def test_zoom_makes_chart_interactive(sales_dataset) -> None:
    spec = ChartSpec(id="z", title="Zoom", type="scatter", x_key="Sales", y_key="Revenue")
    payload = compute_chart(sales_dataset, spec, ViewSettings(enable_zoom=True))
    assert payload["chart"].get("params")


def test_one_bad_chart_does_not_break_the_rest(sales_dataset) -> None:
    registry = ChartRegistry(sales_dataset.headers)
    good = registry.add(type="bar")
    bad = ChartSpec(id="bad", title="Broken", type="radar", x_key="Product", y_key="Sales")  # type: ignore[arg-type]
    also_good = registry.add(type="spiral")

    out = compute_charts(sales_dataset, [good, bad, also_good])

    assert [c["id"] for c in out] == [good.id, "bad", also_good.id]
    assert "error" in out[1]
    assert "error" not in out[0] and "error" not in out[2]
    assert out[0]["chart"] is not None


def test_compute_charts_empty_dataset() -> None:
    registry = ChartRegistry(("A",))
    assert compute_charts(TabularDataset.empty(), [registry.add()]) == []


def test_stale_keys_fall_back_to_defaults(sales_dataset) -> None:
    spec = ChartSpec(id="s", title="Stale", type="bar", x_key="Gone", y_key="Also gone")
    payload = compute_chart(sales_dataset, spec, ViewSettings())
    assert (payload["xKey"], payload["yKey"]) == ("Product", "Sales")


def test_dotted_column_names_are_escaped(make_dataset) -> None:
    dataset = make_dataset(["item.name", "price[usd]"], [("a", "1"), ("b", "2")])
    chart = build_chart(dataset, ChartSpec(id="d", title="D", type="bar", x_key="item.name", y_key="price[usd]"), ViewSettings())
    spec = to_vega_spec(chart)
    assert spec["encoding"]["tooltip"][0]["field"] == "item\\.name"
    assert spec["encoding"]["y"]["field"] == "price\\[usd\\]"


def test_repeated_categories_get_one_slot_per_row(make_dataset) -> None:
    dataset = make_dataset(["Region", "Sales"], [("N", "1"), ("S", "2"), ("N", "3"), ("S", "4")])
    spec = ChartSpec(id="r", title="Regions", type="line", x_key="Region", y_key="Sales")

    payload = compute_chart(dataset, spec, ViewSettings(view_mode="all", show_trendline=True))

    marks, trend = payload["chart"]["layer"]
    assert marks["encoding"]["x"]["field"] == "index"
    assert trend["encoding"]["x"]["field"] == "index"
    assert marks["encoding"]["x"]["axis"]["labelExpr"] == '["N", "S", "N", "S"][datum.value]'
    assert [p["index"] for p in payload["trendline"]] == [0, 1, 2, 3]
    assert [p["trendValue"] for p in payload["trendline"]] == [1.0, 2.0, 3.0, 4.0]


def test_empty_layout_has_no_chart() -> None:
    assert layout_chart(Layout(kind="spiral")) is None
