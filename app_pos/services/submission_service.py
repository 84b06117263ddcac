# ==============================================================================
# SERVICIO DE ENVÍO DE VENTA
# ==============================================================================
# Máquina de estados de un intento de envío:
#
#   1. Validación previa (pago + stock/precio/descuento + datos de guía)
#      → falla: INVALID, sin tocar estado
#   2. Recalcular totales y comisiones con el total más reciente
#   3. Venta con guía: una Idempotency-Key por intento
#   4. Sin conexión → se encola (prioridad alta) → QUEUED_OFFLINE
#   5. En línea → respaldo previo + POST /sales (sin reintento en esta capa)
#      → error: FAILED_RECOVERABLE, el respaldo queda para recuperar
#      → éxito: lista de ventas, stock, limpieza de borradores → SUBMITTED
#
# Un flag `processing` impide envíos duplicados mientras hay uno en vuelo.
# ==============================================================================

import logging
import math
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app_pos import config
from app_pos.exceptions import ApiError
from app_pos.models.entities import (
    ActionPriority,
    ActionType,
    Client,
    PaymentMethod,
    Sale,
    SaleType,
    SubmissionState,
)
from app_pos.performance_logger import profile_function
from app_pos.repositories.interfaces import IApiClient, IEventBus, INotifier, IOfflineProvider
from app_pos.services.cart_service import CartService
from app_pos.services.catalog_service import CatalogService
from app_pos.services.commission_service import apply_commissions
from app_pos.services.draft_service import DraftService
from app_pos.services.event_bus import SALE_CREATED
from app_pos.services.payment_service import PaymentValidator, calculate_change
from app_pos.services.sales_list_service import SalesListService
from app_pos.services.session_service import SessionService

logger = logging.getLogger(__name__)

BELOW_REFERENCE_SUBMIT_WARNING = 'Algunos productos tienen precio menor al precio de referencia'


@dataclass
class SubmissionResult:
    """
    Resultado de un intento de envío.

    Attributes:
        state: Estado terminal del intento
        errors: Errores de validación por campo
        message: Mensaje para el cajero
        sale: Venta creada (respuesta del backend o payload encolado)
        idempotency_key: Clave usada (solo ventas con guía)
        payload: Payload normalizado que se envió o encoló
        offer_recovery: True si conviene ofrecer restaurar el último respaldo
        backup_key: Respaldo tomado antes del envío
    """
    state: SubmissionState
    errors: Dict[str, str] = field(default_factory=dict)
    message: str = ''
    sale: Optional[Dict[str, Any]] = None
    idempotency_key: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    offer_recovery: bool = False
    backup_key: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state in (SubmissionState.SUBMITTED, SubmissionState.QUEUED_OFFLINE)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ok': self.ok,
            'state': self.state.value,
            'errors': self.errors,
            'message': self.message,
            'sale': self.sale,
            'idempotencyKey': self.idempotency_key,
            'offerRecovery': self.offer_recovery,
        }


def build_sale_payload(sale: Sale, idempotency_key: Optional[str] = None) -> Dict[str, Any]:
    """
    Normaliza la venta al formato del backend.

    Las referencias de pago se eligen según el método; agencia y guía
    solo viajan en venta con guía.
    """
    notes = ' | '.join(part for part in (sale.discount_reason.strip(), sale.notes.strip()) if part)
    payload: Dict[str, Any] = {
        'items': [
            {
                'productId': item.product.id,
                'quantity': item.quantity,
                'unitPrice': item.unit_price,
                'discountPercent': item.discount_percent,
                'discountAmount': item.discount_amount,
                'subtotal': item.subtotal,
                'total': item.total,
            }
            for item in sale.items
        ],
        'clientId': sale.client.id if sale.client else None,
        'paymentMethod': sale.payment_method.value,
        'notes': notes or None,
        'saleType': sale.sale_type.value,
        'subtotal': sale.subtotal,
        'discountAmount': sale.discount_amount,
        'taxAmount': sale.tax_amount,
        'total': sale.total,
        'agencyCommission': sale.agency_commission,
        'guideCommission': sale.guide_commission,
        'employeeCommission': sale.employee_commission,
    }
    payload.update(PaymentValidator.payment_references(sale))

    if sale.payment_method == PaymentMethod.MIXED:
        payload['paymentDetails'] = {
            'cash': sale.payment_details.cash,
            'card': sale.payment_details.card,
            'transfer': sale.payment_details.transfer,
        }
    if sale.payment_method == PaymentMethod.CASH:
        payload['cashReceived'] = sale.cash_received
        payload['change'] = calculate_change(sale.total, sale.cash_received)

    if sale.employee:
        payload['employeeId'] = sale.employee.id
    if sale.sale_type == SaleType.GUIDE:
        payload['agencyId'] = sale.agency.id if sale.agency else None
        payload['guideId'] = sale.guide.id if sale.guide else None
    if idempotency_key:
        payload['idempotencyKey'] = idempotency_key
    return payload


class SaleSubmissionService:
    """
    Protocolo de envío de la venta en curso.

    Uso:
        submission = SaleSubmissionService(cart, drafts, api, offline, notifier, events)
        result = await submission.submit()
        if result.offer_recovery:
            submission.recover_latest_backup()
    """

    def __init__(
        self,
        cart: CartService,
        drafts: DraftService,
        api: IApiClient,
        offline: IOfflineProvider,
        notifier: INotifier,
        events: IEventBus,
        validator: Optional[PaymentValidator] = None,
        catalog: Optional[CatalogService] = None,
        sales_list: Optional[SalesListService] = None,
        session: Optional[SessionService] = None
    ):
        self.cart = cart
        self.drafts = drafts
        self.api = api
        self.offline = offline
        self.notifier = notifier
        self.events = events
        self.validator = validator or PaymentValidator()
        self.catalog = catalog
        self.sales_list = sales_list
        self.session = session
        self.processing = False

    # =========================================================================
    # VALIDACIÓN
    # =========================================================================

    def validate(self, sale: Sale) -> Dict[str, str]:
        """
        Validación previa completa (la venta ya debe tener totales recalculados).

        Returns:
            Mapa {campo: mensaje}; vacío si se puede enviar
        """
        errors: Dict[str, str] = {}
        if not sale.items:
            errors['items'] = 'Agregue al menos un producto'

        for item in sale.items:
            key = f'item:{item.item_id}'
            product = item.product
            if item.quantity <= 0 or item.quantity > product.stock:
                errors[key] = f'Stock insuficiente para "{product.name}". Disponible: {product.stock}'
            elif not math.isfinite(item.unit_price) or item.unit_price < 0:
                errors[key] = f'Precio inválido para "{product.name}"'
            elif not product.discountable and item.discount_percent > 0:
                errors[key] = f'"{product.name}" no admite descuentos'
            elif item.discount_percent > self.cart.resolve_discount_ceiling(product):
                errors[key] = f'Descuento fuera del máximo permitido para "{product.name}"'
            elif item.discount_amount > item.subtotal + config.PAYMENT_EPSILON:
                errors[key] = f'El descuento supera el subtotal de "{product.name}"'

        if sale.sale_type == SaleType.GUIDE:
            if sale.agency is None:
                errors['agency'] = 'Seleccione la agencia'
            if sale.guide is None:
                errors['guide'] = 'Seleccione el guía'
            if sale.employee is None:
                errors['employee'] = 'Seleccione el vendedor'

        errors.update(self.validator.validate(sale))
        return errors

    # =========================================================================
    # ENVÍO
    # =========================================================================

    @profile_function(name='Confirmar venta')
    async def submit(self) -> SubmissionResult:
        """
        Intenta enviar la venta en curso.

        Returns:
            SubmissionResult con el estado terminal del intento
        """
        if self.processing:
            return SubmissionResult(SubmissionState.BUSY, message='Ya hay una venta en proceso')
        self.processing = True
        try:
            return await self._submit()
        finally:
            self.processing = False

    async def _submit(self) -> SubmissionResult:
        sale = self.cart.sale
        self.cart.pricing.recalculate(sale)

        errors = self.validate(sale)
        if errors:
            message = next(iter(errors.values()))
            self.notifier.show_error('No se puede confirmar la venta', message)
            return SubmissionResult(SubmissionState.INVALID, errors=errors, message=message)

        if any(item.unit_price < item.product.sale_price for item in sale.items):
            self.notifier.show_warning(BELOW_REFERENCE_SUBMIT_WARNING)

        apply_commissions(sale)
        sale.change = calculate_change(sale.total, sale.cash_received) \
            if sale.payment_method == PaymentMethod.CASH else 0.0

        idempotency_key = str(uuid.uuid4()) if sale.sale_type == SaleType.GUIDE else None
        payload = build_sale_payload(sale, idempotency_key)

        if self.offline.is_offline:
            return self._enqueue(payload, idempotency_key)
        return await self._send(sale, payload, idempotency_key)

    def _enqueue(self, payload: Dict[str, Any], idempotency_key: Optional[str]) -> SubmissionResult:
        self.offline.add_pending_action(
            ActionType.CREATE_SALE,
            payload,
            ActionPriority.HIGH,
            config.OFFLINE_SALE_MAX_RETRIES,
        )
        self.events.publish(SALE_CREATED, {'sale': payload, 'offline': True})
        self.cart.reset()
        message = 'Venta guardada sin conexión. Se enviará al recuperar la conexión.'
        self.notifier.show_warning(message)
        logger.info("[VENTA] Venta encolada offline (total %.2f)", payload['total'])
        return SubmissionResult(
            SubmissionState.QUEUED_OFFLINE,
            message=message,
            sale=payload,
            idempotency_key=idempotency_key,
            payload=payload,
        )

    async def _send(
        self,
        sale: Sale,
        payload: Dict[str, Any],
        idempotency_key: Optional[str]
    ) -> SubmissionResult:
        backup_key = self.drafts.create_backup(sale)

        request_config: Dict[str, Any] = {'suppress_global_error': True}
        if idempotency_key:
            request_config['headers'] = {'Idempotency-Key': idempotency_key}

        try:
            created = await self.api.post('/sales', payload, request_config)
        except ApiError as e:
            logger.warning("[VENTA] Envío fallido (%s): %s", e.status, e.message)
            if e.status == 401 and self.session is not None:
                await self.session.handle_session_expired(sale)
            self.notifier.show_error('No se pudo registrar la venta', e.message)
            return SubmissionResult(
                SubmissionState.FAILED_RECOVERABLE,
                message=e.message,
                idempotency_key=idempotency_key,
                payload=payload,
                offer_recovery=backup_key is not None,
                backup_key=backup_key,
            )

        created_sale = created if isinstance(created, dict) else dict(payload)
        if self.sales_list is not None:
            self.sales_list.add_sale(created_sale)
        if self.catalog is not None:
            await self.catalog.refresh_products()
        self.drafts.cleanup()
        self.events.publish(SALE_CREATED, {'sale': created_sale, 'offline': False})
        self.cart.reset()
        self.notifier.show_success('Venta registrada', f"Total: ${payload['total']:,.2f}")
        logger.info("[VENTA] Venta registrada (total %.2f)", payload['total'])
        return SubmissionResult(
            SubmissionState.SUBMITTED,
            message='Venta registrada',
            sale=created_sale,
            idempotency_key=idempotency_key,
            payload=payload,
        )

    # =========================================================================
    # RECUPERACIÓN Y CLIENTES
    # =========================================================================

    def recover_latest_backup(self) -> Dict[str, Any]:
        """
        Restaura el último respaldo como borrador y lo carga en la venta.
        """
        if not self.drafts.restore_latest_backup():
            return {'ok': False, 'error': 'No hay respaldos disponibles'}
        catalog = self.catalog
        return self.cart.restore_from_draft(
            catalog.products if catalog else {p.id: p for p in self._products_in_cart()},
            catalog.agencies if catalog else None,
            catalog.guides if catalog else None,
            catalog.employees if catalog else None,
        )

    def _products_in_cart(self) -> List[Any]:
        return [item.product for item in self.cart.sale.items]

    async def create_client(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Crea un cliente y lo asigna a la venta.

        Se toma un respaldo antes, porque un error aquí puede perder la venta.

        Returns:
            Dict con ok, client o error
        """
        backup_key = self.drafts.create_backup(self.cart.sale)

        if self.offline.is_offline:
            self.offline.add_pending_action(ActionType.CREATE_CLIENT, data, ActionPriority.MEDIUM)
            self.notifier.show_warning('Cliente guardado sin conexión',
                                       'Se creará al recuperar la conexión')
            return {'ok': True, 'queued': True, 'backup_key': backup_key}

        try:
            created = await self.api.post('/clients', data, {'suppress_global_error': True})
        except ApiError as e:
            if e.status == 401 and self.session is not None:
                await self.session.handle_session_expired(self.cart.sale)
            self.notifier.show_error('No se pudo crear el cliente', e.message)
            return {'ok': False, 'error': e.message, 'backup_key': backup_key}

        client = Client.from_dict(created if isinstance(created, dict) else {})
        if not client.id:
            self.notifier.show_error('No se pudo crear el cliente', 'Respuesta sin id')
            return {'ok': False, 'error': 'Respuesta sin id', 'backup_key': backup_key}
        self.cart.set_client(client)
        self.notifier.show_success('Cliente creado', client.full_name)
        return {'ok': True, 'client': client.to_dict(), 'backup_key': backup_key}
