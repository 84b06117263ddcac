# ==============================================================================
# SERVICIO DE PAGOS
# ==============================================================================
# Valida los campos del método de pago contra el total calculado.
# Devuelve un mapa de errores por campo: vacío = válido.
# El envío queda bloqueado mientras el mapa tenga errores.
# ==============================================================================

import math
from typing import Callable, Dict, Optional

from app_pos import config
from app_pos.models.entities import (
    CORPORATE_DISCOUNT_REASONS,
    PaymentMethod,
    Sale,
    round2,
)

# Claves del mapa de errores
ERROR_CASH_RECEIVED = 'cashReceived'
ERROR_MIXED_TOTAL = 'mixedTotal'
ERROR_CARD_REFERENCE = 'cardReference'
ERROR_TRANSFER_REFERENCE = 'transferReference'
ERROR_SINGLE_REFERENCE = 'singleReference'
ERROR_DISCOUNT_REASON = 'discountReason'


def calculate_change(total: float, received: Optional[float]) -> float:
    """
    Vuelto para pago en efectivo.

    Returns:
        received - total si cubre el total, 0 en otro caso
    """
    if received is None or not math.isfinite(received) or received < total:
        return 0.0
    return round2(received - total)


def _validate_cash(sale: Sale, errors: Dict[str, str]) -> None:
    received = sale.cash_received
    if received is None:
        errors[ERROR_CASH_RECEIVED] = 'Ingrese el efectivo recibido'
    elif not math.isfinite(received) or received < sale.total:
        # Pagar de más es válido: genera vuelto
        errors[ERROR_CASH_RECEIVED] = 'El efectivo debe ser mayor o igual al total'


def _validate_mixed(sale: Sale, errors: Dict[str, str]) -> None:
    details = sale.payment_details
    diff = round2(sale.total - details.paid_total)
    if abs(diff) > config.PAYMENT_EPSILON:
        errors[ERROR_MIXED_TOTAL] = f'Falta: ${abs(diff):,.2f}' if diff > 0 \
            else f'Excedente: ${abs(diff):,.2f}'
    if details.card > 0 and not details.card_reference.strip():
        errors[ERROR_CARD_REFERENCE] = 'Referencia de tarjeta requerida'
    if details.transfer > 0 and not details.transfer_reference.strip():
        errors[ERROR_TRANSFER_REFERENCE] = 'Referencia de transferencia requerida'


def _validate_single_reference(sale: Sale, errors: Dict[str, str]) -> None:
    if not sale.single_reference.strip():
        errors[ERROR_SINGLE_REFERENCE] = 'Número de referencia requerido'


# Un validador por método de pago
_METHOD_VALIDATORS: Dict[PaymentMethod, Callable[[Sale, Dict[str, str]], None]] = {
    PaymentMethod.CASH: _validate_cash,
    PaymentMethod.MIXED: _validate_mixed,
    PaymentMethod.CARD: _validate_single_reference,
    PaymentMethod.TRANSFER: _validate_single_reference,
}


class PaymentValidator:
    """
    Validador del pago de la venta en curso.

    Responsabilidades:
    - Efectivo: monto recibido presente y >= total
    - Mixto: efectivo + tarjeta + transferencia = total (±0.01) y referencias
    - Tarjeta / transferencia: referencia única obligatoria
    - Motivo corporativo obligatorio si hay cualquier descuento
    """

    def __init__(self, discount_reasons=CORPORATE_DISCOUNT_REASONS):
        self.discount_reasons = tuple(discount_reasons)

    def validate(self, sale: Sale) -> Dict[str, str]:
        """
        Evalúa el pago.

        Args:
            sale: Venta con totales ya recalculados

        Returns:
            Mapa {campo: mensaje}; vacío si es válido

        Raises:
            ValueError: Si el método de pago no tiene validador
        """
        errors: Dict[str, str] = {}
        validator = _METHOD_VALIDATORS.get(sale.payment_method)
        if validator is None:
            raise ValueError(f'Método de pago sin validador: {sale.payment_method}')
        validator(sale, errors)

        if sale.has_discounts:
            reason = (sale.discount_reason or '').strip()
            if not reason:
                errors[ERROR_DISCOUNT_REASON] = 'Seleccione el motivo del descuento'
            elif reason not in self.discount_reasons:
                errors[ERROR_DISCOUNT_REASON] = 'Motivo de descuento no válido'

        return errors

    def is_valid(self, sale: Sale) -> bool:
        return not self.validate(sale)

    @staticmethod
    def payment_references(sale: Sale) -> Dict[str, Optional[str]]:
        """
        Referencias a enviar según el método de pago.

        Returns:
            {'cardReference': ..., 'transferReference': ...} (None si no aplica)
        """
        method = sale.payment_method
        details = sale.payment_details
        single = sale.single_reference.strip() or None

        card_ref = None
        transfer_ref = None
        if method == PaymentMethod.CARD:
            card_ref = single
        elif method == PaymentMethod.TRANSFER:
            transfer_ref = single
        elif method == PaymentMethod.MIXED:
            if details.card > 0:
                card_ref = details.card_reference.strip() or None
            if details.transfer > 0:
                transfer_ref = details.transfer_reference.strip() or None
        return {'cardReference': card_ref, 'transferReference': transfer_ref}
