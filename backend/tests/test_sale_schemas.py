# Overview: Pytest coverage for sale payload parsing.

from decimal import Decimal

import pytest

from ledgerpos.errors import ValidationError
from ledgerpos.services.sale_schemas import (
    FixedDiscount,
    PercentageDiscount,
    ProductRef,
    VariantRef,
    make_item_ref,
    parse_sale_request,
)


def _payload(**overrides):
    data = {
        "items": [{"product_id": 1, "quantity": 2, "unit_price": 100, "tax_rate": 21}],
        "payments": [{"method": "CASH", "amount": 200}],
    }
    data.update(overrides)
    return data


class TestItems:

    def test_snake_and_camel_case(self):
        request = parse_sale_request({
            "items": [{"productId": "1", "variantId": 7, "quantity": 1, "unitPrice": "9.99", "taxRate": 10.5}],
            "paymentMethod": "CASH",
        })
        item = request.items[0]
        assert item.item_ref == VariantRef(1, 7)
        assert item.unit_price == Decimal("9.99")
        assert item.tax_rate == Decimal("10.5")
        assert request.payments is None
        assert request.legacy_payment_method == "CASH"

    def test_float_prices_are_exact(self):
        request = parse_sale_request(_payload(items=[
            {"product_id": 1, "quantity": 1, "unit_price": 0.1, "tax_rate": 21},
        ]))
        assert request.items[0].unit_price == Decimal("0.1")

    def test_legacy_item_discount_is_percentage(self):
        request = parse_sale_request(_payload(items=[
            {"product_id": 1, "quantity": 1, "unit_price": 100, "tax_rate": 21, "discount": 15},
        ]))
        assert request.items[0].discount == PercentageDiscount(Decimal("15"))

    def test_new_discount_pair_wins_over_legacy(self):
        request = parse_sale_request(_payload(items=[{
            "product_id": 1, "quantity": 1, "unit_price": 100, "tax_rate": 21,
            "discount": 15, "discountType": "FIXED", "discountValue": 5,
        }]))
        assert request.items[0].discount == FixedDiscount(Decimal("5"))

    @pytest.mark.parametrize("item", [
        {"quantity": 1, "unit_price": 1, "tax_rate": 21},
        {"product_id": 1, "quantity": 0, "unit_price": 1, "tax_rate": 21},
        {"product_id": 1, "quantity": 1.5, "unit_price": 1, "tax_rate": 21},
        {"product_id": 1, "quantity": 1, "unit_price": 0, "tax_rate": 21},
        {"product_id": 1, "quantity": 1, "unit_price": "abc", "tax_rate": 21},
        {"product_id": 1, "quantity": 1, "unit_price": 1, "tax_rate": 150},
        {"product_id": 1, "quantity": 1, "unit_price": 1, "tax_rate": 21, "discount": 120},
        {"product_id": 1, "quantity": 1, "unit_price": 1, "tax_rate": 21, "discountType": "BOGO", "discountValue": 1},
        {"product_id": 1, "quantity": 1, "unit_price": 1, "tax_rate": 21, "discountType": "FIXED", "discountValue": -1},
    ])
    def test_invalid_items_rejected(self, item):
        with pytest.raises(ValidationError):
            parse_sale_request(_payload(items=[item]))

    def test_items_required(self):
        with pytest.raises(ValidationError):
            parse_sale_request(_payload(items=[]))
        with pytest.raises(ValidationError):
            parse_sale_request(None)


class TestPayments:

    def test_card_and_transfer_references(self):
        request = parse_sale_request(_payload(payments=[
            {"method": "CREDIT_CARD", "amount": 150, "cardLastFour": "4242"},
            {"method": "TRANSFER", "amount": 50, "transferReference": "TX-9"},
        ]))
        assert [p.reference for p in request.payments] == ["card:4242", "ref:TX-9"]

    @pytest.mark.parametrize("payments", [
        [],
        [{"method": "BARTER", "amount": 10}],
        [{"method": "CASH", "amount": 0}],
        [{"method": "CASH", "amount": -3}],
        [{"method": "CASH", "amount": "0.004"}],
    ])
    def test_invalid_payments_rejected(self, payments):
        with pytest.raises(ValidationError):
            parse_sale_request(_payload(payments=payments))

    def test_missing_tender_is_left_to_posting(self):
        data = _payload()
        del data["payments"]
        request = parse_sale_request(data)
        assert request.payments is None
        assert request.legacy_payment_method is None

    def test_uses_account(self):
        assert parse_sale_request(_payload(payments=[{"method": "ACCOUNT", "amount": 200}])).uses_account()
        data = _payload(paymentMethod="ACCOUNT")
        del data["payments"]
        assert parse_sale_request(data).uses_account()
        assert not parse_sale_request(_payload()).uses_account()


class TestCartDiscount:

    def test_legacy_amount_is_fixed(self):
        request = parse_sale_request(_payload(discountAmount="12.5"))
        assert request.cart_discount == FixedDiscount(Decimal("12.5"))

    def test_new_pair_wins(self):
        request = parse_sale_request(_payload(discountAmount=12, discountType="PERCENTAGE", discountValue=10))
        assert request.cart_discount == PercentageDiscount(Decimal("10"))

    def test_no_discount(self):
        assert parse_sale_request(_payload()).cart_discount is None

    def test_negative_legacy_amount(self):
        with pytest.raises(ValidationError):
            parse_sale_request(_payload(discountAmount=-1))


class TestItemRef:

    def test_product_and_variant_keys(self):
        assert make_item_ref(3) == ProductRef(3)
        assert make_item_ref(3).key == "P:3"
        assert make_item_ref(3, 9).key == "V:9"
        assert make_item_ref(3, 9).columns() == {"product_id": None, "product_variant_id": 9}

    def test_rejects_booleans(self):
        with pytest.raises(ValidationError):
            make_item_ref(True)
