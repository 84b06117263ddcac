# ==============================================================================
# SERVICIO DE CARRITO
# ==============================================================================
# Centraliza toda la lógica de negocio de la venta en curso:
# líneas, cantidades, precios, descuentos y campos de pago.
#
# Cada mutación exitosa:
#   1. Deja la venta en estado consistente
#   2. Recalcula totales (PricingService)
#   3. Guarda el borrador (DraftService)
#
# Las fallas de negocio NO lanzan excepción: devuelven {'ok': False, 'error'}
# y se notifican.
# ==============================================================================

import logging
import math
from typing import Any, Dict, Mapping, Optional

from app_pos import config
from app_pos.models.entities import (
    Agency,
    Client,
    Employee,
    Guide,
    PaymentDetails,
    PaymentMethod,
    Product,
    Sale,
    SaleItem,
    SaleType,
    round2,
)
from app_pos.repositories.interfaces import IAuthProvider, INotifier
from app_pos.services.draft_service import DraftService
from app_pos.services.payment_service import calculate_change
from app_pos.services.pricing_service import PricingService

logger = logging.getLogger(__name__)

BELOW_REFERENCE_WARNING = 'El precio es menor al precio de referencia'


class CartService:
    """
    Servicio para gestión de la venta en curso.

    Responsabilidades:
    - Agregar/eliminar líneas validando stock
    - Editar cantidad, precio unitario y descuento dentro de su techo
    - Mantener los campos de pago
    - Recalcular totales y guardar borrador tras cada cambio
    """

    def __init__(
        self,
        pricing: PricingService,
        auth: Optional[IAuthProvider] = None,
        role_max_discount: Optional[Mapping[str, float]] = None,
        notifier: Optional[INotifier] = None,
        drafts: Optional[DraftService] = None
    ):
        """
        Inicializa el servicio de carrito.

        Args:
            pricing: Servicio de precios
            auth: Proveedor del rol actual
            role_max_discount: Tabla rol → descuento máximo (%)
            notifier: Sumidero de notificaciones
            drafts: Servicio de borradores (None = sin autosave)
        """
        self.pricing = pricing
        self.auth = auth
        self.role_max_discount = dict(role_max_discount or config.DEFAULT_ROLE_MAX_DISCOUNT)
        self.notifier = notifier
        self.drafts = drafts
        self.sale = Sale()

    # =========================================================================
    # INTERNOS
    # =========================================================================

    def _fail(self, error: str, **extra: Any) -> Dict[str, Any]:
        if self.notifier:
            self.notifier.show_error(error)
        result = {'ok': False, 'error': error}
        result.update(extra)
        return result

    def _warn(self, message: str) -> None:
        if self.notifier:
            self.notifier.show_warning(message)

    def _changed(self, warning: Optional[str] = None) -> Dict[str, Any]:
        """Recalcula, guarda el borrador y arma la respuesta."""
        self._recalculate()
        if self.drafts:
            self.drafts.autosave(self.sale)
        result = {'ok': True, 'cart': self.get_cart()}
        if warning:
            result['warning'] = warning
        return result

    def _recalculate(self) -> None:
        self.pricing.recalculate(self.sale)
        if self.sale.payment_method == PaymentMethod.CASH:
            self.sale.change = calculate_change(self.sale.total, self.sale.cash_received)
        else:
            self.sale.change = 0.0

    @property
    def current_role(self) -> str:
        role = getattr(self.auth, 'role', None) if self.auth else None
        if not role or role not in self.role_max_discount:
            return config.DEFAULT_ROLE
        return role

    def resolve_discount_ceiling(self, product: Product) -> float:
        """
        Techo efectivo de descuento para un producto.

        min(techo del rol, techo del producto o techo del rol);
        0 si el producto no admite descuentos.
        """
        if not product.discountable:
            return 0.0
        role_max = float(self.role_max_discount.get(
            self.current_role,
            self.role_max_discount.get(config.DEFAULT_ROLE, 0.0)
        ))
        product_max = product.max_discount_percent
        ceiling = min(role_max, role_max if product_max is None else product_max)
        return max(0.0, ceiling)

    # =========================================================================
    # LECTURA
    # =========================================================================

    def get_cart(self) -> Dict[str, Any]:
        """
        Obtiene la venta con totales calculados.

        Returns:
            Dict de la venta más items_count y total_items
        """
        data = self.sale.to_dict()
        data['items_count'] = len(self.sale.items)
        data['total_items'] = sum(i.quantity for i in self.sale.items)
        return data

    # =========================================================================
    # LÍNEAS
    # =========================================================================

    def add_item(self, product: Product) -> Dict[str, Any]:
        """
        Agrega un producto. Si ya está en la venta, suma una unidad.

        Args:
            product: Producto del catálogo

        Returns:
            Dict con resultado (ok, error, cart)
        """
        if product is None:
            return self._fail('Producto no encontrado')
        if product.stock <= 0:
            return self._fail(f'"{product.name}" no tiene stock disponible')

        existing = self.sale.find_item(product.id)
        if existing:
            if existing.quantity + 1 > product.stock:
                return self._fail(
                    f'Stock insuficiente. Ya tienes {existing.quantity} en la venta. '
                    f'Disponible: {product.stock}',
                    disponible=product.stock
                )
            existing.quantity += 1
            existing.product = product
        else:
            self.sale.items.append(SaleItem(
                product=product,
                quantity=1,
                unit_price=product.sale_price,
                discount_percent=0.0,
            ))

        logger.debug("[VENTA] Producto %s agregado", product.id)
        return self._changed()

    def update_quantity(self, item_id: str, quantity: Any) -> Dict[str, Any]:
        """
        Cambia la cantidad de una línea. Cantidad <= 0 elimina la línea.
        """
        item = self.sale.find_item(item_id)
        if not item:
            return self._fail('Producto no encontrado en la venta')
        try:
            value = float(quantity)
        except (TypeError, ValueError):
            return self._fail('Cantidad inválida')
        if not math.isfinite(value) or value != int(value):
            return self._fail('Cantidad inválida')
        quantity = int(value)

        if quantity <= 0:
            return self.remove_item(item_id)
        if quantity > item.product.stock:
            return self._fail(
                f'Stock insuficiente. Disponible: {item.product.stock}',
                disponible=item.product.stock
            )

        item.quantity = quantity
        return self._changed()

    def update_unit_price(self, item_id: str, price: Any) -> Dict[str, Any]:
        """
        Cambia el precio unitario. Un precio menor al de referencia
        se permite pero se avisa.
        """
        item = self.sale.find_item(item_id)
        if not item:
            return self._fail('Producto no encontrado en la venta')
        try:
            price = float(price)
        except (TypeError, ValueError):
            return self._fail('Precio unitario inválido')
        if not math.isfinite(price) or price < 0:
            return self._fail('Precio unitario inválido')

        item.unit_price = price
        warning = None
        if price < item.product.sale_price:
            warning = BELOW_REFERENCE_WARNING
            self._warn(warning)
        return self._changed(warning)

    def apply_margin_preset(self, item_id: str, margin_pct: Any) -> Dict[str, Any]:
        """
        Fija el precio como referencia * (1 + margen%).

        Args:
            item_id: Línea a modificar
            margin_pct: Margen en porcentaje (puede ser negativo)
        """
        item = self.sale.find_item(item_id)
        if not item:
            return self._fail('Producto no encontrado en la venta')
        try:
            margin = float(margin_pct)
        except (TypeError, ValueError):
            return self._fail('Margen inválido')
        return self.update_unit_price(item_id, round2(item.product.sale_price * (1 + margin / 100)))

    def update_discount(self, item_id: str, percent: Any) -> Dict[str, Any]:
        """
        Cambia el descuento de una línea, acotado a [0, techo].

        Returns:
            Dict con resultado; 'warning' si el valor pedido superaba el techo
        """
        item = self.sale.find_item(item_id)
        if not item:
            return self._fail('Producto no encontrado en la venta')
        try:
            requested = float(percent)
        except (TypeError, ValueError):
            return self._fail('Descuento inválido')
        if not math.isfinite(requested):
            return self._fail('Descuento inválido')

        if not item.product.discountable and requested > 0:
            return self._fail(f'"{item.product.name}" no admite descuentos')

        ceiling = self.resolve_discount_ceiling(item.product)
        applied = max(0.0, min(requested, ceiling))
        item.discount_percent = applied

        warning = None
        if requested > ceiling:
            warning = f'Descuento máximo permitido: {ceiling:g}%'
            self._warn(warning)
        return self._changed(warning)

    def update_item(self, item_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Aplica varios cambios a una línea: todos o ninguno.

        Args:
            item_id: Línea a editar
            changes: quantity, unit_price, margin y/o discount

        Returns:
            Dict con resultado; si un paso falla la línea vuelve a su estado previo
        """
        item = self.sale.find_item(item_id)
        if not item:
            return self._fail('Producto no encontrado en la venta')
        previous = (item.quantity, item.unit_price, item.discount_percent)

        steps = [
            ('quantity', self.update_quantity),
            ('unit_price', self.update_unit_price),
            ('margin', self.apply_margin_preset),
            ('discount', self.update_discount),
        ]
        result: Dict[str, Any] = {'ok': True, 'cart': self.get_cart()}
        warning = None
        for key, step in steps:
            if key not in changes:
                continue
            result = step(item_id, changes[key])
            if not result.get('ok'):
                break
            warning = result.get('warning') or warning
            # cantidad <= 0 quitó la línea
            if item not in self.sale.items:
                break

        if not result.get('ok'):
            item.quantity, item.unit_price, item.discount_percent = previous
            restored = self._changed()
            result['cart'] = restored['cart']
            return result

        if warning:
            result['warning'] = warning
        return result

    def remove_item(self, item_id: str) -> Dict[str, Any]:
        item = self.sale.find_item(item_id)
        if not item:
            return self._fail('Producto no encontrado en la venta')
        self.sale.items.remove(item)
        return self._changed()

    def clear(self, confirmed: bool = False) -> Dict[str, Any]:
        """
        Vacía la venta, el estado de pago y el borrador.

        Args:
            confirmed: Confirmación explícita del cajero (operación destructiva)
        """
        if not confirmed:
            return {'ok': False, 'error': 'Se requiere confirmación para limpiar la venta',
                    'requires_confirmation': True}
        self.reset()
        logger.info("[VENTA] Venta limpiada por el cajero")
        return {'ok': True, 'cart': self.get_cart()}

    def reset(self) -> None:
        """Reinicia la venta sin pedir confirmación (uso interno tras enviar)."""
        self.sale = Sale()
        self._recalculate()
        if self.drafts:
            self.drafts.discard_draft()

    # =========================================================================
    # CAMPOS DE PAGO Y CONTEXTO
    # =========================================================================

    def set_payment_method(self, method: Any) -> Dict[str, Any]:
        try:
            self.sale.payment_method = PaymentMethod(method)
        except ValueError:
            return self._fail('Método de pago inválido')
        return self._changed()

    def set_payment_details(self, details: Dict[str, Any]) -> Dict[str, Any]:
        """Reemplaza el desglose del pago mixto."""
        self.sale.payment_details = PaymentDetails.from_dict(details)
        return self._changed()

    def set_cash_received(self, value: Any) -> Dict[str, Any]:
        """
        Efectivo recibido. '' o None lo dejan vacío.
        """
        if value is None or (isinstance(value, str) and not value.strip()):
            self.sale.cash_received = None
            return self._changed()
        try:
            received = float(value)
        except (TypeError, ValueError):
            return self._fail('Monto recibido inválido')
        if not math.isfinite(received) or received < 0:
            return self._fail('Monto recibido inválido')
        self.sale.cash_received = received
        return self._changed()

    def set_single_reference(self, reference: str) -> Dict[str, Any]:
        self.sale.single_reference = (reference or '').strip()
        return self._changed()

    def set_discount_reason(self, reason: str) -> Dict[str, Any]:
        self.sale.discount_reason = (reason or '').strip()
        return self._changed()

    def set_notes(self, notes: str) -> Dict[str, Any]:
        self.sale.notes = notes or ''
        return self._changed()

    def set_sale_type(self, sale_type: Any) -> Dict[str, Any]:
        try:
            self.sale.sale_type = SaleType(sale_type)
        except ValueError:
            return self._fail('Tipo de venta inválido')
        if self.sale.sale_type == SaleType.STREET:
            self.sale.agency = None
            self.sale.guide = None
        return self._changed()

    def set_client(self, client: Optional[Client]) -> Dict[str, Any]:
        self.sale.client = client
        return self._changed()

    def set_agency(self, agency: Optional[Agency]) -> Dict[str, Any]:
        self.sale.agency = agency
        return self._changed()

    def set_guide(self, guide: Optional[Guide]) -> Dict[str, Any]:
        self.sale.guide = guide
        return self._changed()

    def set_employee(self, employee: Optional[Employee]) -> Dict[str, Any]:
        self.sale.employee = employee
        return self._changed()

    def set_apply_tax(self, enabled: bool) -> Dict[str, Any]:
        self.pricing.set_apply_tax(enabled)
        return self._changed()

    # =========================================================================
    # BORRADOR
    # =========================================================================

    def restore_from_draft(
        self,
        products: Mapping[str, Product],
        agencies: Optional[Mapping[str, Agency]] = None,
        guides: Optional[Mapping[str, Guide]] = None,
        employees: Optional[Mapping[str, Employee]] = None
    ) -> Dict[str, Any]:
        """
        Rehidrata la venta desde el borrador guardado (una vez cargado el catálogo).

        Returns:
            Dict con ok, restored (líneas recuperadas) y cart
        """
        if not self.drafts:
            return {'ok': False, 'error': 'Borradores deshabilitados'}
        sale = Sale()
        restored = self.drafts.restore_into(sale, products, agencies, guides, employees)
        if restored < 0:
            return {'ok': False, 'error': 'No hay borrador guardado', 'restored': 0}

        # El techo pudo cambiar (otro rol, catálogo actualizado)
        lowered = []
        for item in sale.items:
            ceiling = self.resolve_discount_ceiling(item.product)
            if item.discount_percent > ceiling:
                item.discount_percent = ceiling
                lowered.append(item.product.name)

        self.sale = sale
        result = self._changed()
        if lowered:
            warning = f"Descuento ajustado al máximo permitido: {', '.join(lowered)}"
            self._warn(warning)
            result['warning'] = warning
        logger.info("[BORRADOR] Venta restaurada con %d línea(s)", restored)
        result['restored'] = restored
        return result
