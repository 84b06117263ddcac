from app_pos.models import (
    Agency,
    CommissionFormula,
    CommissionPolicy,
    Employee,
    Guide,
    PaymentMethod,
    Sale,
    SaleType,
)
from app_pos.services import (
    agency_commission,
    apply_commissions,
    employee_commission,
    guide_commission,
)


def _guide(formula=CommissionFormula.DISCOUNT_PERCENTAGE, rate=10.0, discount=20.0):
    return Guide('g1', 'Guía', CommissionPolicy(formula, rate, discount))


def _employee(card_rate=3.0, cash_rate=2.0, guide_rate=4.0,
              formula=CommissionFormula.DIRECT, discount=0.0):
    return Employee(
        'e1', 'Vendedor',
        policy=CommissionPolicy(formula, guide_rate, discount),
        street_card_rate=card_rate,
        street_cash_rate=cash_rate,
    )


def test_guide_discount_percentage_formula():
    assert guide_commission(1000.0, SaleType.GUIDE, _guide()) == 80.0


def test_guide_direct_formula():
    guide = _guide(CommissionFormula.DIRECT, rate=10.0, discount=20.0)
    assert guide_commission(1000.0, SaleType.GUIDE, guide) == 100.0


def test_guide_and_agency_only_apply_to_guide_sales():
    agency = Agency('a1', 'Agencia', commission_rate=5.0)
    assert agency_commission(1000.0, SaleType.GUIDE, agency) == 50.0
    assert agency_commission(1000.0, SaleType.STREET, agency) == 0.0
    assert guide_commission(1000.0, SaleType.STREET, _guide()) == 0.0
    assert agency_commission(1000.0, SaleType.GUIDE, None) == 0.0
    assert guide_commission(1000.0, SaleType.GUIDE, None) == 0.0


def test_street_employee_uses_card_rate_only_for_card_payments():
    employee = _employee(card_rate=3.0, cash_rate=2.0)
    assert employee_commission(1000.0, SaleType.STREET, PaymentMethod.CARD, employee) == 30.0
    assert employee_commission(1000.0, SaleType.STREET, PaymentMethod.CASH, employee) == 20.0
    assert employee_commission(1000.0, SaleType.STREET, PaymentMethod.TRANSFER, employee) == 20.0
    assert employee_commission(1000.0, SaleType.STREET, PaymentMethod.MIXED, employee) == 20.0


def test_guide_sale_employee_uses_general_rate_and_own_discount():
    employee = _employee(guide_rate=5.0, formula=CommissionFormula.DISCOUNT_PERCENTAGE, discount=10.0)
    assert employee_commission(1000.0, SaleType.GUIDE, PaymentMethod.CARD, employee) == 45.0


def test_zero_rate_or_zero_total_yields_zero():
    employee = _employee(card_rate=0.0, cash_rate=0.0)
    assert employee_commission(1000.0, SaleType.STREET, PaymentMethod.CARD, employee) == 0.0
    assert employee_commission(1000.0, SaleType.STREET, PaymentMethod.CASH, employee) == 0.0
    assert guide_commission(0.0, SaleType.GUIDE, _guide()) == 0.0
    assert employee_commission(1000.0, SaleType.STREET, PaymentMethod.CASH, None) == 0.0


def test_apply_commissions_writes_sale_fields():
    sale = Sale(
        sale_type=SaleType.GUIDE,
        payment_method=PaymentMethod.CASH,
        agency=Agency('a1', 'Agencia', 5.0),
        guide=_guide(),
        employee=_employee(guide_rate=2.0),
        total=1000.0,
    )
    breakdown = apply_commissions(sale)
    assert (sale.agency_commission, sale.guide_commission, sale.employee_commission) == (50.0, 80.0, 20.0)
    assert breakdown.guide == 80.0


def test_street_sale_keeps_agency_and_guide_at_zero():
    sale = Sale(sale_type=SaleType.STREET, payment_method=PaymentMethod.CARD,
                guide=_guide(), employee=_employee(), total=500.0)
    apply_commissions(sale)
    assert sale.agency_commission == 0.0
    assert sale.guide_commission == 0.0
    assert sale.employee_commission == 15.0
