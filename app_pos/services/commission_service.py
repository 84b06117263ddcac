# ==============================================================================
# SERVICIO DE COMISIONES
# ==============================================================================
# Funciones puras: agencia, guía y vendedor.
# Se calculan SOLO al enviar la venta, siempre con el total más reciente.
#
#   DIRECT              → total * rate%
#   DISCOUNT_PERCENTAGE → total * (1 - descuento%) * rate%
# ==============================================================================

from dataclasses import dataclass
from typing import Optional

from app_pos.models.entities import (
    Agency,
    CommissionFormula,
    Employee,
    Guide,
    PaymentMethod,
    Sale,
    SaleType,
    round2,
)


@dataclass
class CommissionBreakdown:
    """Comisiones calculadas para una venta."""
    agency: float = 0.0
    guide: float = 0.0
    employee: float = 0.0


def apply_formula(
    total: float,
    rate: float,
    formula: CommissionFormula,
    discount_percentage: float = 0.0
) -> float:
    """
    Aplica la fórmula de comisión.

    Args:
        total: Total de la venta
        rate: Porcentaje de comisión
        formula: DIRECT o DISCOUNT_PERCENTAGE
        discount_percentage: Descuento previo (solo DISCOUNT_PERCENTAGE)

    Returns:
        Monto de comisión redondeado a centavos (0 si rate <= 0)
    """
    if not total or rate <= 0:
        return 0.0
    if formula == CommissionFormula.DIRECT:
        return round2(total * (rate / 100))
    after_discount = total * (1 - discount_percentage / 100)
    return round2(after_discount * (rate / 100))


def agency_commission(total: float, sale_type: SaleType, agency: Optional[Agency]) -> float:
    """Comisión de agencia: solo en venta con guía y con agencia asignada."""
    if sale_type != SaleType.GUIDE or agency is None:
        return 0.0
    return apply_formula(total, agency.commission_rate, CommissionFormula.DIRECT)


def guide_commission(total: float, sale_type: SaleType, guide: Optional[Guide]) -> float:
    """Comisión de guía: solo en venta con guía y con guía asignado."""
    if sale_type != SaleType.GUIDE or guide is None:
        return 0.0
    policy = guide.policy
    return apply_formula(total, policy.rate, policy.formula, policy.discount_percentage)


def employee_rate(
    sale_type: SaleType,
    payment_method: PaymentMethod,
    employee: Employee
) -> float:
    """
    Tasa del vendedor.

    Venta de calle: tasa de tarjeta si el pago es con tarjeta,
    tasa de efectivo en cualquier otro caso. Venta con guía: tasa general.
    """
    if sale_type == SaleType.STREET:
        if payment_method == PaymentMethod.CARD:
            return employee.street_card_rate
        return employee.street_cash_rate
    return employee.policy.rate


def employee_commission(
    total: float,
    sale_type: SaleType,
    payment_method: PaymentMethod,
    employee: Optional[Employee]
) -> float:
    """Comisión del vendedor con su propio porcentaje de descuento."""
    if employee is None:
        return 0.0
    rate = employee_rate(sale_type, payment_method, employee)
    return apply_formula(total, rate, employee.policy.formula, employee.policy.discount_percentage)


def compute_commissions(sale: Sale) -> CommissionBreakdown:
    """Calcula las tres comisiones con el total actual de la venta."""
    return CommissionBreakdown(
        agency=agency_commission(sale.total, sale.sale_type, sale.agency),
        guide=guide_commission(sale.total, sale.sale_type, sale.guide),
        employee=employee_commission(sale.total, sale.sale_type, sale.payment_method, sale.employee),
    )


def apply_commissions(sale: Sale) -> CommissionBreakdown:
    """Calcula y escribe las comisiones en la venta."""
    breakdown = compute_commissions(sale)
    sale.agency_commission = breakdown.agency
    sale.guide_commission = breakdown.guide
    sale.employee_commission = breakdown.employee
    return breakdown
