# ==============================================================================
# SERVICIO DE PRECIOS
# ==============================================================================
# Cálculo puro de subtotal, descuento, impuesto y total.
# Se recalcula tras cualquier mutación del carrito o cambio del flag de IVA.
#
# REDONDEO: a centavos en cada etapa (por ítem y por agregado), no una sola
# vez al final. Así el total coincide con la suma que ve el cajero.
# ==============================================================================

from dataclasses import dataclass
from typing import Iterable

from app_pos import config
from app_pos.models.entities import Sale, SaleItem, SaleTotals, round2


@dataclass
class TaxConfig:
    """
    Configuración de impuesto.

    Attributes:
        rate: Tasa como factor (0.16 = 16%)
        enabled: Si False, la tasa efectiva es 0
    """
    rate: float = config.DEFAULT_TAX_RATE
    enabled: bool = config.DEFAULT_APPLY_TAX

    @property
    def effective_rate(self) -> float:
        return self.rate if self.enabled else 0.0


def calculate_item(item: SaleItem) -> SaleTotals:
    """Montos de una línea: subtotal, descuento y total (sin impuesto)."""
    return SaleTotals(
        subtotal=item.subtotal,
        discount_amount=item.discount_amount,
        tax_amount=0.0,
        total=item.total,
    )


def calculate_totals(items: Iterable[SaleItem], tax: TaxConfig) -> SaleTotals:
    """
    Totales de la venta.

    El impuesto se aplica sobre (subtotal - descuento).

    Args:
        items: Líneas de la venta
        tax: Configuración de impuesto

    Returns:
        SaleTotals redondeados a centavos
    """
    items = list(items)
    subtotal = round2(sum(i.subtotal for i in items))
    discount_amount = round2(sum(i.discount_amount for i in items))
    taxable = round2(subtotal - discount_amount)
    tax_amount = round2(taxable * tax.effective_rate)
    total = round2(taxable + tax_amount)
    return SaleTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        total=total,
    )


class PricingService:
    """
    Mantiene la configuración de impuesto y recalcula la venta.
    """

    def __init__(self, tax_config: TaxConfig = None):
        self.tax_config = tax_config or TaxConfig()

    def recalculate(self, sale: Sale) -> SaleTotals:
        """Recalcula y escribe los totales en la venta."""
        totals = calculate_totals(sale.items, self.tax_config)
        sale.apply_totals(totals)
        return totals

    def set_apply_tax(self, enabled: bool) -> None:
        self.tax_config.enabled = bool(enabled)

    def set_tax_rate(self, rate: float) -> None:
        self.tax_config.rate = float(rate)
