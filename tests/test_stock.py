"""Tests for stock arithmetic and product-level aggregation."""
from types import SimpleNamespace

import pytest

from services.store_service.aggregation import (
    available_flavors,
    is_product_listed,
    low_stock_flavors,
    out_of_stock_flavors,
    product_available_inventory,
    product_stock_status,
    stock_summary,
)
from services.store_service.stock import (
    StockStatus,
    available_units,
    flavor_status_before_reserving,
    flavor_stock_status,
    is_flavor_low_stock,
    is_flavor_out_of_stock,
    product_counter_status,
)


def _counters(inventory=10, reserved=0, threshold=5, active=True, name="x"):
    return SimpleNamespace(
        name=name,
        inventory=inventory,
        reserved_inventory=reserved,
        low_stock_threshold=threshold,
        active=active,
    )


class TestAvailableUnits:
    @pytest.mark.parametrize(
        "inventory,reserved,expected",
        [(10, 3, 7), (5, 5, 0), (0, 0, 0), (3, 8, 0)],
    )
    def test_floor_at_zero(self, inventory, reserved, expected):
        assert available_units(_counters(inventory, reserved)) == expected


class TestFlavorStockStatus:
    def test_threshold_is_inclusive(self):
        assert flavor_stock_status(_counters(inventory=5, threshold=5)) == StockStatus.LOW_STOCK

    def test_one_above_threshold_is_in_stock(self):
        assert flavor_stock_status(_counters(inventory=6, threshold=5)) == StockStatus.IN_STOCK

    def test_nothing_available_is_out_of_stock(self):
        assert flavor_stock_status(_counters(inventory=4, reserved=4)) == StockStatus.OUT_OF_STOCK

    def test_inactive_flavor_is_out_of_stock(self):
        assert flavor_stock_status(_counters(inventory=100, active=False)) == StockStatus.OUT_OF_STOCK

    def test_inactive_flavor_is_never_low_stock(self):
        flavor = _counters(inventory=2, active=False)
        assert is_flavor_out_of_stock(flavor)
        assert not is_flavor_low_stock(flavor)

    def test_status_serializes_as_plain_string(self):
        assert StockStatus.LOW_STOCK.value == "low_stock"


class TestProductCounterStatus:
    def test_ignores_active_flag(self):
        product = _counters(inventory=50, threshold=10, active=False)
        assert product_counter_status(product) == StockStatus.IN_STOCK

    def test_uses_inclusive_threshold(self):
        product = _counters(inventory=10, threshold=10)
        assert product_counter_status(product) == StockStatus.LOW_STOCK


class TestProductAggregation:
    def test_sums_only_active_flavors(self):
        product = _counters(inventory=999)
        flavors = [
            _counters(inventory=10, reserved=3),
            _counters(inventory=4),
            _counters(inventory=50, active=False),
        ]
        assert product_available_inventory(product, flavors) == 11

    def test_without_flavors_uses_product_counters(self):
        product = _counters(inventory=20, reserved=5, threshold=10)
        assert product_available_inventory(product, []) == 15
        assert product_stock_status(product, []) == StockStatus.IN_STOCK

    def test_flavors_override_product_counters(self):
        product = _counters(inventory=0)
        flavors = [_counters(inventory=30, threshold=5)]
        assert product_stock_status(product, flavors) == StockStatus.IN_STOCK

    def test_no_active_flavor_is_out_of_stock(self):
        product = _counters(inventory=100)
        flavors = [_counters(inventory=30, active=False)]
        assert product_stock_status(product, flavors) == StockStatus.OUT_OF_STOCK
        assert product_available_inventory(product, flavors) == 0

    def test_all_active_flavors_sold_out(self):
        flavors = [_counters(inventory=3, reserved=3), _counters(inventory=0)]
        assert product_stock_status(_counters(), flavors) == StockStatus.OUT_OF_STOCK

    def test_any_low_flavor_makes_product_low(self):
        flavors = [_counters(inventory=100), _counters(inventory=2), _counters(inventory=0)]
        assert product_stock_status(_counters(), flavors) == StockStatus.LOW_STOCK

    def test_inactive_low_flavor_does_not_count(self):
        flavors = [_counters(inventory=100), _counters(inventory=2, active=False)]
        assert product_stock_status(_counters(), flavors) == StockStatus.IN_STOCK


class TestFlavorFilters:
    def test_available_flavors_keep_order(self):
        flavors = [
            _counters(inventory=5, name="Mango"),
            _counters(inventory=0, name="Cola"),
            _counters(inventory=9, active=False, name="Uva"),
            _counters(inventory=1, name="Menta"),
        ]
        assert [f.name for f in available_flavors(flavors)] == ["Mango", "Menta"]

    def test_low_and_out_of_stock_lists_skip_inactive(self):
        flavors = [
            _counters(inventory=3, name="Low"),
            _counters(inventory=0, name="Out"),
            _counters(inventory=0, active=False, name="Hidden"),
            _counters(inventory=50, name="Plenty"),
        ]
        assert [f.name for f in low_stock_flavors(flavors)] == ["Low"]
        assert [f.name for f in out_of_stock_flavors(flavors)] == ["Out"]

    def test_listing_requires_an_available_flavor(self):
        product = _counters(inventory=100)
        assert not is_product_listed(product, [_counters(inventory=0)])
        assert is_product_listed(product, [_counters(inventory=0), _counters(inventory=1)])

    def test_legacy_listing_uses_product_availability(self):
        assert is_product_listed(_counters(inventory=1), [])
        assert not is_product_listed(_counters(inventory=4, reserved=4), [])

    def test_stock_summary(self):
        flavors = [_counters(inventory=10, reserved=3), _counters(inventory=2), _counters(inventory=0)]
        summary = stock_summary(_counters(), flavors)
        assert summary == {
            "available_inventory": 9,
            "stock_status": "low_stock",
            "flavor_count": 3,
            "available_flavor_count": 2,
            "low_stock_flavor_count": 1,
            "out_of_stock_flavor_count": 1,
        }


class TestStatusBeforeReserving:
    def test_recovers_prior_status_from_fresh_row(self):
        # 10 on hand, 7 reserved after taking 3: 6 available before, 3 after
        flavor = _counters(inventory=10, reserved=7, threshold=5)
        assert flavor_status_before_reserving(flavor, 3) == StockStatus.IN_STOCK
        assert flavor_stock_status(flavor) == StockStatus.LOW_STOCK

    def test_already_low_before_reserving(self):
        flavor = _counters(inventory=10, reserved=7, threshold=5)
        assert flavor_status_before_reserving(flavor, 1) == StockStatus.LOW_STOCK

    def test_inactive_flavor(self):
        flavor = _counters(inventory=10, reserved=1, active=False)
        assert flavor_status_before_reserving(flavor, 1) == StockStatus.OUT_OF_STOCK
