# Overview: Pytest coverage for payload validation and product rules.

from decimal import Decimal

import pytest

from stockroom.models import Product, SaleRecord
from stockroom.routes.products import PRODUCT_POLICY
from stockroom.routes.sales import SALE_POLICY
from stockroom.validation import (
    MAX_PRICE,
    InvalidQuantity,
    ValidationError,
    enforce_rules_product,
    require_quantity,
    require_text,
    validate_payload,
)


def test_product_payload_is_coerced():
    patch = validate_payload(
        model=Product,
        payload={'name': '  Rice ', 'stock': '12', 'unit': 'kg', 'price': '49.999'},
        policy=PRODUCT_POLICY,
        partial=False,
    )
    assert patch == {'name': 'Rice', 'stock': 12, 'unit': 'kg', 'price': Decimal('50.00')}


@pytest.mark.parametrize('stock', ['1e3', '12.5', 12.5, True, ''])
def test_stock_must_be_a_plain_integer(stock):
    with pytest.raises(ValidationError):
        validate_payload(model=Product, payload={'name': 'Rice', 'stock': stock, 'unit': 'kg'},
                         policy=PRODUCT_POLICY, partial=False)


@pytest.mark.parametrize('price', ['NaN', 'Infinity', True, 'ten'])
def test_price_must_be_a_finite_number(price):
    with pytest.raises(ValidationError):
        validate_payload(model=Product, payload={'name': 'Rice', 'stock': 1, 'unit': 'kg', 'price': price},
                         policy=PRODUCT_POLICY, partial=False)


def test_sale_payload_rejects_server_owned_fields():
    with pytest.raises(ValidationError) as exc:
        validate_payload(
            model=SaleRecord,
            payload={'customer_name': 'Alice', 'product_id': 1, 'quantity': 1, 'timestamp': '2024-01-01'},
            policy=SALE_POLICY,
            partial=False,
        )
    assert exc.value.message == 'Field not allowed: timestamp'


def test_missing_fields_are_listed():
    with pytest.raises(ValidationError) as exc:
        validate_payload(model=SaleRecord, payload={}, policy=SALE_POLICY, partial=False)
    assert exc.value.message == 'Missing required fields: customer_name, product_id, quantity'


def test_product_rules():
    enforce_rules_product({'stock': 0, 'price': MAX_PRICE})
    with pytest.raises(ValidationError):
        enforce_rules_product({'price': MAX_PRICE + Decimal('0.01')})
    with pytest.raises(ValidationError):
        enforce_rules_product({'stock': -1})


def test_require_helpers():
    assert require_text('  Alice ', 'customer_name') == 'Alice'
    with pytest.raises(ValidationError):
        require_text(None, 'customer_name')
    with pytest.raises(InvalidQuantity):
        require_quantity('3')
    with pytest.raises(InvalidQuantity):
        require_quantity(True)
