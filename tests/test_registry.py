"""Tests for the in-memory chart configuration registry."""

from __future__ import annotations

import pytest

from core.errors import InvalidKeyBinding, ValidationError
from core.registry import CHART_TYPE_LABELS, CHART_TYPES, ChartRegistry

HEADERS = ("Product", "Sales", "Region")


def test_add_defaults_from_headers() -> None:
    registry = ChartRegistry(HEADERS)
    spec = registry.add()
    assert spec.id == "chart-1"
    assert spec.title == "Chart 1"
    assert spec.type == "bar"
    assert (spec.x_key, spec.y_key, spec.z_key) == ("Product", "Sales", "Region")


def test_ids_are_never_reused() -> None:
    registry = ChartRegistry(HEADERS)
    first = registry.add()
    registry.remove(first.id)
    second = registry.add()
    registry.clear()
    third = registry.add()
    assert len({first.id, second.id, third.id}) == 3


def test_insertion_order_is_display_order() -> None:
    registry = ChartRegistry(HEADERS)
    ids = [registry.add(type=t).id for t in ("line", "pie", "treemap")]
    assert [s.id for s in registry.list()] == ids


def test_update_keeps_id_and_position() -> None:
    registry = ChartRegistry(HEADERS)
    a = registry.add(title="A")
    b = registry.add(title="B")
    updated = registry.update(a.id, title="Renamed", type="spiral", id="chart-99")
    assert updated.id == a.id
    assert updated.title == "Renamed"
    assert updated.is_geometric
    assert [s.id for s in registry.list()] == [a.id, b.id]


def test_update_missing_chart() -> None:
    with pytest.raises(KeyError):
        ChartRegistry(HEADERS).update("chart-404", title="x")


def test_update_rejects_unknown_keys() -> None:
    registry = ChartRegistry(HEADERS)
    spec = registry.add(x_key="Product", y_key="Sales")
    with pytest.raises(InvalidKeyBinding):
        registry.update(spec.id, title="Moved", y_key="Profit")
    with pytest.raises(InvalidKeyBinding):
        registry.update(spec.id, z_key="Nope")
    assert registry.get(spec.id) == spec
    assert registry.update(spec.id, x_key="Region").x_key == "Region"


def test_unknown_type_rejected() -> None:
    registry = ChartRegistry(HEADERS)
    with pytest.raises(ValidationError):
        registry.add(type="radar")
    spec = registry.add()
    with pytest.raises(ValidationError):
        registry.update(spec.id, type="radar")


def test_bind_resets_registry() -> None:
    registry = ChartRegistry(HEADERS)
    registry.seed_defaults()
    registry.bind(("Quarter", "Revenue"))
    assert len(registry) == 0
    assert registry.headers == ("Quarter", "Revenue")
    assert registry.add().id == "chart-5"


def test_validate_flags_stale_bindings() -> None:
    registry = ChartRegistry(HEADERS)
    good = registry.add()
    bad = registry.add(x_key="Missing")
    with pytest.raises(InvalidKeyBinding):
        registry.validate(bad)
    assert registry.validate(good) is good
    assert registry.invalid_specs() == [bad.id]


def test_seed_defaults() -> None:
    registry = ChartRegistry(HEADERS)
    seeded = registry.seed_defaults()
    assert [s.type for s in seeded] == ["bar", "line", "pie", "bar"]
    assert (seeded[-1].x_key, seeded[-1].y_key) == ("Region", "Sales")
    assert ChartRegistry().seed_defaults() == []


def test_every_type_has_a_label() -> None:
    assert set(CHART_TYPE_LABELS) == set(CHART_TYPES)


def test_to_dict_uses_camel_case() -> None:
    spec = ChartRegistry(HEADERS).add(title="T")
    assert spec.to_dict() == {
        "id": "chart-1",
        "title": "T",
        "type": "bar",
        "xKey": "Product",
        "yKey": "Sales",
        "zKey": "Region",
    }
