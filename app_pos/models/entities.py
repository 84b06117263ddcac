# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto de la venta en curso.
# Diseñadas para ser independientes del mecanismo de persistencia
# (JSON local, API REST o cualquier otro backend).
# ==============================================================================

import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# ==============================================================================
# UTILIDADES MONETARIAS
# ==============================================================================

def round2(value: float) -> float:
    """
    Redondea a centavos con mitad hacia arriba: floor(v * 100 + 0.5) / 100.

    Se aplica en cada etapa (subtotal, descuento, impuesto, total) para que
    los totales coincidan con lo que ve el cajero por ítem.
    """
    return math.floor(float(value) * 100 + 0.5) / 100


def now_ms() -> int:
    """Timestamp actual en milisegundos."""
    return int(time.time() * 1000)


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result if math.isfinite(result) else default


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class UserRole(str, Enum):
    """Roles de usuario que definen el techo de descuento."""
    ADMIN = "admin"
    MANAGER = "manager"
    CASHIER = "cashier"


class PaymentMethod(str, Enum):
    """Métodos de pago aceptados en caja."""
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    MIXED = "mixed"


class SaleType(str, Enum):
    """Tipo de venta: calle (sin guía) o con guía/agencia."""
    STREET = "STREET"
    GUIDE = "GUIDE"


class CommissionFormula(str, Enum):
    """Fórmula de comisión."""
    DIRECT = "DIRECT"                             # rate% del total
    DISCOUNT_PERCENTAGE = "DISCOUNT_PERCENTAGE"   # rate% del total menos descuento


class ActionPriority(str, Enum):
    """Prioridad de una acción pendiente en la cola offline."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def weight(self) -> int:
        return {'low': 1, 'medium': 2, 'high': 3}[self.value]


class ActionType(str, Enum):
    """Tipos de escritura que se pueden encolar sin conexión."""
    CREATE_SALE = "CREATE_SALE"
    CREATE_CLIENT = "CREATE_CLIENT"
    UPDATE_CLIENT = "UPDATE_CLIENT"
    DELETE_CLIENT = "DELETE_CLIENT"


class SubmissionState(str, Enum):
    """Resultado de un intento de envío de venta."""
    SUBMITTED = "submitted"                    # Confirmada por el backend
    QUEUED_OFFLINE = "queued-offline"          # En cola, se sincroniza luego
    FAILED_RECOVERABLE = "failed-recoverable"  # Falló, respaldo disponible
    INVALID = "invalid"                        # Bloqueada por validación
    BUSY = "busy"                              # Ya hay un envío en curso


# Motivos corporativos de descuento (obligatorio si hay cualquier descuento)
CORPORATE_DISCOUNT_REASONS = (
    'Promoción temporal',
    'Cliente frecuente',
    'Producto con defecto',
    'Ajuste comercial',
    'Autorización gerencia',
)


# ==============================================================================
# CATÁLOGO (solo lectura para el motor)
# ==============================================================================

@dataclass
class Product:
    """
    Producto del catálogo tal como lo entrega el backend.

    Attributes:
        id: Identificador del producto
        name: Nombre para mostrar
        sale_price: Precio de referencia
        stock: Stock disponible (caché, puede estar desactualizado)
        max_discount_percent: Techo de descuento propio (opcional)
        discountable: Si admite descuentos
        sku: Código SKU
        barcode: Código de barras
    """
    id: str
    name: str = ''
    sale_price: float = 0.0
    stock: int = 0
    max_discount_percent: Optional[float] = None
    discountable: bool = True
    sku: str = ''
    barcode: str = ''

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario con los nombres del backend."""
        d = {
            'id': self.id,
            'name': self.name,
            'salePrice': self.sale_price,
            'stock': self.stock,
            'discountable': self.discountable,
            'sku': self.sku,
            'barcode': self.barcode,
        }
        if self.max_discount_percent is not None:
            d['maxDiscountPercent'] = self.max_discount_percent
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        """Crea instancia desde la respuesta del backend (tolerante)."""
        price = data.get('salePrice')
        if price is None:
            price = data.get('price', data.get('costPrice', 0))
        max_discount = data.get('maxDiscountPercent')
        discountable = data.get('discountable')
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name', '') or '',
            sale_price=_to_float(price),
            stock=int(_to_float(data.get('stock', 0))),
            max_discount_percent=None if max_discount is None else _to_float(max_discount),
            discountable=True if discountable is None else bool(discountable),
            sku=data.get('sku', '') or '',
            barcode=data.get('barcode', '') or '',
        )


@dataclass
class Client:
    """Cliente asociado a la venta (solo identidad)."""
    id: str
    first_name: str = ''
    last_name: str = ''

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'firstName': self.first_name, 'lastName': self.last_name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Client':
        return cls(
            id=str(data.get('id', '')),
            first_name=data.get('firstName', '') or '',
            last_name=data.get('lastName', '') or '',
        )


# ==============================================================================
# COMISIONES
# ==============================================================================

@dataclass
class CommissionPolicy:
    """
    Política de comisión de una entidad.

    Attributes:
        formula: DIRECT o DISCOUNT_PERCENTAGE
        rate: Porcentaje de comisión
        discount_percentage: Descuento aplicado antes del rate
            (solo para DISCOUNT_PERCENTAGE)
    """
    formula: CommissionFormula = CommissionFormula.DISCOUNT_PERCENTAGE
    rate: float = 0.0
    discount_percentage: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CommissionPolicy':
        try:
            formula = CommissionFormula(data.get('commissionFormula') or 'DISCOUNT_PERCENTAGE')
        except ValueError:
            formula = CommissionFormula.DISCOUNT_PERCENTAGE
        return cls(
            formula=formula,
            rate=_to_float(data.get('commissionRate')),
            discount_percentage=_to_float(data.get('discountPercentage')),
        )


@dataclass
class Agency:
    """Agencia de turismo. Siempre comisión directa."""
    id: str
    name: str = ''
    commission_rate: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Agency':
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name', '') or '',
            commission_rate=_to_float(data.get('commissionRate')),
        )


@dataclass
class Guide:
    """Guía de turismo con su política de comisión."""
    id: str
    name: str = ''
    policy: CommissionPolicy = field(default_factory=CommissionPolicy)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Guide':
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name', '') or '',
            policy=CommissionPolicy.from_dict(data),
        )


@dataclass
class Employee:
    """
    Vendedor. En venta con guía usa policy.rate; en venta de calle
    usa la tasa de tarjeta o de efectivo según el método de pago.
    """
    id: str
    name: str = ''
    policy: CommissionPolicy = field(default_factory=CommissionPolicy)
    street_card_rate: float = 0.0
    street_cash_rate: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Employee':
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name', '') or '',
            policy=CommissionPolicy.from_dict(data),
            street_card_rate=_to_float(data.get('streetSaleCardRate')),
            street_cash_rate=_to_float(data.get('streetSaleCashRate')),
        )


# ==============================================================================
# VENTA EN CURSO
# ==============================================================================

@dataclass
class SaleItem:
    """
    Línea de venta. Los montos derivados se calculan siempre desde
    cantidad, precio y descuento, por lo que nunca quedan desfasados.
    """
    product: Product
    quantity: int = 1
    unit_price: float = 0.0
    discount_percent: float = 0.0

    @property
    def item_id(self) -> str:
        """Una línea por producto: el id de línea es el id del producto."""
        return self.product.id

    @property
    def subtotal(self) -> float:
        return round2(self.quantity * self.unit_price)

    @property
    def discount_amount(self) -> float:
        return round2(self.subtotal * (self.discount_percent / 100))

    @property
    def total(self) -> float:
        return round2(self.subtotal - self.discount_amount)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'productId': self.product.id,
            'name': self.product.name,
            'quantity': self.quantity,
            'unitPrice': self.unit_price,
            'discountPercent': self.discount_percent,
            'subtotal': self.subtotal,
            'discountAmount': self.discount_amount,
            'total': self.total,
        }


@dataclass
class PaymentDetails:
    """Desglose de un pago mixto con sus referencias."""
    cash: float = 0.0
    card: float = 0.0
    transfer: float = 0.0
    card_reference: str = ''
    transfer_reference: str = ''

    @property
    def paid_total(self) -> float:
        return round2(self.cash + self.card + self.transfer)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cash': self.cash,
            'card': self.card,
            'transfer': self.transfer,
            'cardReference': self.card_reference,
            'transferReference': self.transfer_reference,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PaymentDetails':
        data = data or {}
        return cls(
            cash=_to_float(data.get('cash')),
            card=_to_float(data.get('card')),
            transfer=_to_float(data.get('transfer')),
            card_reference=data.get('cardReference', '') or '',
            transfer_reference=data.get('transferReference', '') or '',
        )


@dataclass
class SaleTotals:
    """Totales derivados de la venta."""
    subtotal: float = 0.0
    discount_amount: float = 0.0
    tax_amount: float = 0.0
    total: float = 0.0


@dataclass
class Sale:
    """
    Agregado de la venta en curso.

    Los totales y comisiones son derivados: los escribe PricingService
    tras cada mutación y CommissionService justo antes del envío.
    """
    items: List[SaleItem] = field(default_factory=list)
    client: Optional[Client] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    sale_type: SaleType = SaleType.STREET
    agency: Optional[Agency] = None
    guide: Optional[Guide] = None
    employee: Optional[Employee] = None
    payment_details: PaymentDetails = field(default_factory=PaymentDetails)
    cash_received: Optional[float] = None
    single_reference: str = ''
    discount_reason: str = ''
    notes: str = ''
    subtotal: float = 0.0
    discount_amount: float = 0.0
    tax_amount: float = 0.0
    total: float = 0.0
    change: float = 0.0
    agency_commission: float = 0.0
    guide_commission: float = 0.0
    employee_commission: float = 0.0

    def find_item(self, item_id: str) -> Optional[SaleItem]:
        """Busca una línea por su id."""
        for item in self.items:
            if item.item_id == str(item_id):
                return item
        return None

    @property
    def has_discounts(self) -> bool:
        return any(item.discount_percent > 0 for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items and self.client is None and self.cash_received is None

    def apply_totals(self, totals: SaleTotals) -> None:
        self.subtotal = totals.subtotal
        self.discount_amount = totals.discount_amount
        self.tax_amount = totals.tax_amount
        self.total = totals.total

    def to_dict(self) -> Dict[str, Any]:
        """Vista completa para la API local."""
        return {
            'items': [i.to_dict() for i in self.items],
            'client': self.client.to_dict() if self.client else None,
            'paymentMethod': self.payment_method.value,
            'saleType': self.sale_type.value,
            'agencyId': self.agency.id if self.agency else None,
            'guideId': self.guide.id if self.guide else None,
            'employeeId': self.employee.id if self.employee else None,
            'paymentDetails': self.payment_details.to_dict(),
            'cashReceived': self.cash_received,
            'singleReference': self.single_reference,
            'discountReason': self.discount_reason,
            'notes': self.notes,
            'subtotal': self.subtotal,
            'discountAmount': self.discount_amount,
            'taxAmount': self.tax_amount,
            'total': self.total,
            'change': self.change,
        }


# ==============================================================================
# COLA OFFLINE
# ==============================================================================

@dataclass
class PendingAction:
    """
    Escritura encolada a la espera de sincronización.

    Attributes:
        id: Identificador local de la acción
        type: Tipo de acción (CREATE_SALE, ...)
        payload: Datos a enviar (opaco para la cola)
        priority: low | medium | high
        max_retries: Reintentos permitidos antes de descartarla
        timestamp: Creación en ms
        retry_count: Intentos fallidos
        last_attempt: Último intento en ms (None si nunca)
    """
    id: str
    type: ActionType
    payload: Dict[str, Any] = field(default_factory=dict)
    priority: ActionPriority = ActionPriority.MEDIUM
    max_retries: int = 3
    timestamp: int = field(default_factory=now_ms)
    retry_count: int = 0
    last_attempt: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type.value,
            'data': self.payload,
            'priority': self.priority.value,
            'maxRetries': self.max_retries,
            'timestamp': self.timestamp,
            'retryCount': self.retry_count,
            'lastAttempt': self.last_attempt,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PendingAction':
        try:
            priority = ActionPriority(data.get('priority') or 'medium')
        except ValueError:
            priority = ActionPriority.MEDIUM
        return cls(
            id=str(data.get('id', '')),
            type=ActionType(data.get('type')),
            payload=data.get('data') or {},
            priority=priority,
            max_retries=int(data.get('maxRetries') or 3),
            timestamp=int(data.get('timestamp') or now_ms()),
            retry_count=int(data.get('retryCount') or 0),
            last_attempt=data.get('lastAttempt'),
        )


# ==============================================================================
# BORRADOR
# ==============================================================================

@dataclass
class DraftItem:
    """Proyección mínima de una línea: solo lo necesario para rehidratar."""
    product_id: str
    quantity: int
    unit_price: float
    discount: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'productId': self.product_id,
            'quantity': self.quantity,
            'unitPrice': self.unit_price,
            'discount': self.discount,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DraftItem':
        return cls(
            product_id=str(data.get('productId', '')),
            quantity=int(_to_float(data.get('quantity'), 1)),
            unit_price=_to_float(data.get('unitPrice')),
            discount=_to_float(data.get('discount')),
        )


@dataclass
class DraftSnapshot:
    """Instantánea serializable de la venta en curso."""
    items: List[DraftItem] = field(default_factory=list)
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_details: PaymentDetails = field(default_factory=PaymentDetails)
    cash_received: Optional[float] = None
    sale_type: SaleType = SaleType.STREET
    client: Optional[Client] = None
    agency_id: Optional[str] = None
    guide_id: Optional[str] = None
    employee_id: Optional[str] = None
    timestamp: int = field(default_factory=now_ms)

    @classmethod
    def from_sale(cls, sale: Sale) -> 'DraftSnapshot':
        """Proyecta la venta a su forma mínima serializable."""
        return cls(
            items=[
                DraftItem(
                    product_id=i.product.id,
                    quantity=i.quantity,
                    unit_price=i.unit_price,
                    discount=i.discount_percent,
                )
                for i in sale.items
            ],
            payment_method=sale.payment_method,
            payment_details=PaymentDetails.from_dict(sale.payment_details.to_dict()),
            cash_received=sale.cash_received,
            sale_type=sale.sale_type,
            client=Client(sale.client.id, sale.client.first_name, sale.client.last_name)
            if sale.client else None,
            agency_id=sale.agency.id if sale.agency else None,
            guide_id=sale.guide.id if sale.guide else None,
            employee_id=sale.employee.id if sale.employee else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'items': [i.to_dict() for i in self.items],
            'paymentMethod': self.payment_method.value,
            'paymentDetails': self.payment_details.to_dict(),
            'cashReceived': self.cash_received,
            'saleType': self.sale_type.value,
            'client': self.client.to_dict() if self.client else None,
            'agencyId': self.agency_id,
            'guideId': self.guide_id,
            'employeeId': self.employee_id,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DraftSnapshot':
        """Crea instancia desde JSON; ignora campos desconocidos o corruptos."""
        try:
            method = PaymentMethod(data.get('paymentMethod') or 'cash')
        except ValueError:
            method = PaymentMethod.CASH
        try:
            sale_type = SaleType(data.get('saleType') or 'STREET')
        except ValueError:
            sale_type = SaleType.STREET
        cash = data.get('cashReceived')
        client = data.get('client')
        raw_items = data.get('items')
        return cls(
            items=[DraftItem.from_dict(i) for i in raw_items if isinstance(i, dict)]
            if isinstance(raw_items, list) else [],
            payment_method=method,
            payment_details=PaymentDetails.from_dict(data.get('paymentDetails')),
            cash_received=None if cash in (None, '') else _to_float(cash),
            sale_type=sale_type,
            client=Client.from_dict(client) if isinstance(client, dict) else None,
            agency_id=data.get('agencyId'),
            guide_id=data.get('guideId'),
            employee_id=data.get('employeeId'),
            timestamp=int(data.get('timestamp') or now_ms()),
        )
