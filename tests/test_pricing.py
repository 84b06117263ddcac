from app_pos.models import Sale, SaleItem, round2
from app_pos.services import PricingService, TaxConfig, calculate_item, calculate_totals

from conftest import make_product


def test_scenario_two_units_ten_percent_discount_with_tax(cart):
    product = make_product('p1', price=100.0, stock=5)
    assert cart.add_item(product)['ok']
    assert cart.add_item(product)['ok']
    assert cart.update_discount('p1', 10)['ok']

    sale = cart.sale
    assert len(sale.items) == 1
    assert sale.items[0].quantity == 2
    assert sale.subtotal == 200.0
    assert sale.discount_amount == 20.0
    assert sale.tax_amount == 28.8
    assert sale.total == 208.8


def test_tax_disabled_total_equals_taxable_base(cart):
    cart.add_item(make_product('p1', price=100.0, stock=5))
    cart.update_discount('p1', 10)
    cart.set_apply_tax(False)

    assert cart.sale.tax_amount == 0.0
    assert cart.sale.total == 90.0

    cart.set_apply_tax(True)
    assert cart.sale.total == 104.4


def test_item_amounts_are_rounded_per_stage():
    item = SaleItem(make_product('p1', price=19.99), quantity=3, unit_price=19.99, discount_percent=7.5)
    assert item.subtotal == round2(3 * 19.99)
    assert item.discount_amount == round2(item.subtotal * 0.075)
    assert item.total == round2(item.subtotal - item.discount_amount)
    assert item.discount_amount <= item.subtotal

    line = calculate_item(item)
    assert line.subtotal == item.subtotal
    assert line.tax_amount == 0.0


def test_round2_rounds_half_up():
    assert round2(0.125) == 0.13
    assert round2(-0.0) == 0.0
    assert round2(28.8) == 28.8


def test_totals_aggregate_rounded_lines():
    items = [
        SaleItem(make_product('a'), quantity=1, unit_price=10.10, discount_percent=0),
        SaleItem(make_product('b'), quantity=2, unit_price=5.55, discount_percent=10),
    ]
    totals = calculate_totals(items, TaxConfig(rate=0.16, enabled=True))
    assert totals.subtotal == 21.2
    assert totals.discount_amount == 1.11
    taxable = round2(totals.subtotal - totals.discount_amount)
    assert totals.tax_amount == round2(taxable * 0.16)
    assert totals.total == round2(taxable + totals.tax_amount)


def test_empty_sale_has_zero_totals():
    sale = Sale()
    PricingService().recalculate(sale)
    assert (sale.subtotal, sale.discount_amount, sale.tax_amount, sale.total) == (0, 0, 0, 0)


def test_set_tax_rate_changes_effective_rate():
    pricing = PricingService(TaxConfig(rate=0.16, enabled=True))
    pricing.set_tax_rate(0.08)
    sale = Sale(items=[SaleItem(make_product('p1'), quantity=1, unit_price=100.0)])
    pricing.recalculate(sale)
    assert sale.tax_amount == 8.0
    assert sale.total == 108.0
