import pytest

from app_pos.models import PaymentDetails, PaymentMethod, Sale, SaleItem
from app_pos.services import PaymentValidator, PricingService, TaxConfig, calculate_change

from conftest import make_product


def _sale(method, price=100.0, discount=0.0, **fields):
    sale = Sale(
        items=[SaleItem(make_product('p1', price=price), quantity=1, unit_price=price,
                        discount_percent=discount)],
        payment_method=method,
        **fields
    )
    PricingService(TaxConfig(enabled=False)).recalculate(sale)
    return sale


@pytest.fixture
def validator():
    return PaymentValidator()


def test_cash_requires_received_amount(validator):
    errors = validator.validate(_sale(PaymentMethod.CASH))
    assert 'cashReceived' in errors


def test_cash_below_total_blocks(validator):
    errors = validator.validate(_sale(PaymentMethod.CASH, cash_received=99.99))
    assert 'cashReceived' in errors


def test_cash_exact_and_overpaid_are_valid(validator):
    exact = _sale(PaymentMethod.CASH, cash_received=100.0)
    over = _sale(PaymentMethod.CASH, cash_received=150.0)
    assert validator.validate(exact) == {}
    assert validator.validate(over) == {}
    assert calculate_change(exact.total, exact.cash_received) == 0.0
    assert calculate_change(over.total, over.cash_received) == 50.0
    assert calculate_change(100.0, None) == 0.0


def test_mixed_reports_missing_amount(validator):
    sale = _sale(PaymentMethod.MIXED, payment_details=PaymentDetails(cash=50.0, card=40.0,
                                                                     card_reference='A1'))
    errors = validator.validate(sale)
    assert errors['mixedTotal'] == 'Falta: $10.00'


def test_mixed_reports_excess_amount(validator):
    sale = _sale(PaymentMethod.MIXED, payment_details=PaymentDetails(cash=60.0, transfer=45.0,
                                                                     transfer_reference='T9'))
    errors = validator.validate(sale)
    assert errors['mixedTotal'] == 'Excedente: $5.00'


def test_mixed_within_one_cent_is_valid(validator):
    sale = _sale(PaymentMethod.MIXED, payment_details=PaymentDetails(
        cash=49.99, card=50.0, card_reference='A1'))
    assert validator.validate(sale) == {}


def test_mixed_requires_reference_per_non_cash_part(validator):
    sale = _sale(PaymentMethod.MIXED, payment_details=PaymentDetails(cash=20.0, card=50.0, transfer=30.0))
    errors = validator.validate(sale)
    assert 'mixedTotal' not in errors
    assert 'cardReference' in errors
    assert 'transferReference' in errors


@pytest.mark.parametrize('method', [PaymentMethod.CARD, PaymentMethod.TRANSFER])
def test_card_and_transfer_require_single_reference(validator, method):
    assert 'singleReference' in validator.validate(_sale(method))
    assert 'singleReference' in validator.validate(_sale(method, single_reference='   '))
    assert validator.validate(_sale(method, single_reference='REF-1')) == {}


def test_discount_requires_corporate_reason_for_any_method(validator):
    sale = _sale(PaymentMethod.CARD, discount=10.0, single_reference='REF-1')
    assert validator.validate(sale) == {'discountReason': 'Seleccione el motivo del descuento'}

    sale.discount_reason = 'Porque sí'
    assert 'discountReason' in validator.validate(sale)

    sale.discount_reason = 'Cliente frecuente'
    assert validator.validate(sale) == {}


def test_payment_references_follow_method():
    card = _sale(PaymentMethod.CARD, single_reference='C-1')
    assert PaymentValidator.payment_references(card) == {'cardReference': 'C-1', 'transferReference': None}

    mixed = _sale(PaymentMethod.MIXED, payment_details=PaymentDetails(
        cash=100.0, card=0.0, card_reference='ignorada'))
    assert PaymentValidator.payment_references(mixed) == {'cardReference': None, 'transferReference': None}
