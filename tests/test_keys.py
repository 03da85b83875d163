"""Tests for default chart key inference and key resolution."""

from __future__ import annotations

import pytest

from core.errors import EmptyDataset, InvalidKeyBinding
from core.keys import check_key, infer_keys, resolve_keys


def test_infer_keys_picks_first_numeric_column() -> None:
    headers = ["Product", "Region", "Sales"]
    first = {"Product": "MacBook", "Region": "EU", "Sales": "45"}
    assert infer_keys(headers, first) == ("Product", "Sales")


def test_infer_keys_falls_back_to_second_header() -> None:
    headers = ["Name", "Plan"]
    first = {"Name": "John", "Plan": "Pro"}
    assert infer_keys(headers, first) == ("Name", "Plan")


def test_infer_keys_single_header() -> None:
    assert infer_keys(["Name"], {"Name": "John"}) == ("Name", "Name")


def test_infer_keys_blank_value_is_not_numeric() -> None:
    headers = ["Name", "Score", "Total"]
    first = {"Name": "a", "Score": "", "Total": "3.5"}
    assert infer_keys(headers, first) == ("Name", "Total")


def test_infer_keys_can_return_first_header_as_value() -> None:
    headers = ["Year", "Label"]
    first = {"Year": "2024", "Label": "x"}
    assert infer_keys(headers, first) == ("Year", "Year")


def test_infer_keys_without_headers_raises() -> None:
    with pytest.raises(EmptyDataset):
        infer_keys([], {})


def test_check_key_rejects_unknown_column() -> None:
    with pytest.raises(InvalidKeyBinding) as err:
        check_key("Missing", ["A", "B"])
    assert err.value.key == "Missing"
    assert check_key("A", ["A", "B"]) == "A"


def test_resolve_keys_replaces_stale_bindings(sales_dataset) -> None:
    keys = resolve_keys(sales_dataset, x_key="Gone", y_key="Revenue", z_key="Also gone")
    assert keys.x_key == "Product"
    assert keys.y_key == "Revenue"
    assert keys.z_key is None


def test_resolve_keys_uses_defaults_when_unset(sales_dataset) -> None:
    keys = resolve_keys(sales_dataset)
    assert (keys.x_key, keys.y_key) == ("Product", "Sales")
