"""Unit tests for variant stock resolution."""

import pytest
from pydantic import ValidationError

from storefront_server.exceptions import LineValidationException
from storefront_server.models import Product
from storefront_server.stock import resolve_stock


class TestResolveStock:

    def test_scalar_stock_without_variants(self, mug):
        assert resolve_stock(mug) == 10
        assert resolve_stock(mug, "") == 10

    def test_variant_ignored_for_products_without_variants(self, mug):
        assert resolve_stock(mug, "XL") == 10

    def test_variant_lookup(self, shoe):
        assert resolve_stock(shoe, "7") == 2
        assert resolve_stock(shoe, "8") == 0

    def test_missing_variant_entry_is_zero(self, shoe):
        # size 9 is declared but has no stock entry
        assert resolve_stock(shoe, "9") == 0
        assert resolve_stock(shoe, "42") == 0

    def test_null_variant_entry_is_zero(self):
        product = Product.model_validate({"_id": "x", "sizeStock": {"M": None, "L": 4}})
        assert resolve_stock(product, "M") == 0
        assert resolve_stock(product, "L") == 4

    def test_variant_required_when_declared(self, shoe):
        with pytest.raises(LineValidationException) as exc_info:
            resolve_stock(shoe, None)
        assert exc_info.value.message == "Please select a size"
        assert exc_info.value.product_id == "P1"

    def test_ordered_map_representation(self):
        """Both serialized map shapes resolve the same way as a plain mapping."""
        pairs = Product.model_validate({"_id": "a", "sizeStock": [["S", 3], ["M", 0]]})
        entries = Product.model_validate(
            {"_id": "b", "sizeStock": [{"key": "S", "value": 3}, {"key": "M", "value": 0}]}
        )
        for product in (pairs, entries):
            assert resolve_stock(product, "S") == 3
            assert resolve_stock(product, "M") == 0

    @pytest.mark.parametrize("size_stock", [
        [{"k": "7", "value": 2}],
        [["7"]],
        ["7"],
        "7:2",
    ])
    def test_unreadable_size_stock_is_a_validation_error(self, size_stock):
        with pytest.raises(ValidationError):
            Product.model_validate({"_id": "e", "sizeStock": size_stock})

    def test_numeric_size_keys_are_strings(self):
        product = Product.model_validate({"_id": "c", "sizeStock": {7: 5}})
        assert resolve_stock(product, "7") == 5

    def test_missing_scalar_stock_defaults_to_zero(self):
        product = Product.model_validate({"_id": "d", "stock": None})
        assert resolve_stock(product) == 0
