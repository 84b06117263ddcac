# ==============================================================================
# CAPA DE SERVICIOS - Lógica de la venta en curso
# ==============================================================================
# PRINCIPIOS:
# 1. Los servicios reciben sus colaboradores por constructor (sin globales)
# 2. Aplican reglas de negocio y validaciones
# 3. Las rutas (controllers) solo llaman a servicios
# 4. Los servicios NO conocen el almacenamiento (JSON, memoria, etc.)
#
# ESTRUCTURA:
# ├── pricing_service.py       → Subtotal, descuento, impuesto y total
# ├── commission_service.py    → Comisiones de agencia, guía y vendedor
# ├── payment_service.py       → Validación del pago y vuelto
# ├── cart_service.py          → Líneas, descuentos y campos de pago
# ├── draft_service.py         → Borrador, respaldos y limpieza
# ├── offline_queue_service.py → Cola de escrituras sin conexión
# ├── submission_service.py    → Protocolo de envío de la venta
# ├── catalog_service.py       → Productos y entidades con caché
# ├── sales_list_service.py    → Ventas recientes
# ├── session_service.py       → Sesión y sesión expirada
# ├── notification_service.py  → Toasts
# ├── event_bus.py             → Eventos de dominio
# ├── api_client.py            → Cliente HTTP (requests)
# └── retry.py                 → Reintentos de lectura
# ==============================================================================

from app_pos.services.pricing_service import (
    PricingService,
    TaxConfig,
    calculate_item,
    calculate_totals,
)
from app_pos.services.commission_service import (
    CommissionBreakdown,
    agency_commission,
    guide_commission,
    employee_commission,
    compute_commissions,
    apply_commissions,
)
from app_pos.services.payment_service import PaymentValidator, calculate_change
from app_pos.services.draft_service import DraftService
from app_pos.services.cart_service import CartService
from app_pos.services.event_bus import EventBus, SALE_CREATED
from app_pos.services.notification_service import NotificationService
from app_pos.services.session_service import AuthSession, SessionService
from app_pos.services.retry import get_with_retry
from app_pos.services.api_client import RequestsApiClient
from app_pos.services.catalog_service import CatalogService
from app_pos.services.sales_list_service import SalesListService
from app_pos.services.offline_queue_service import OfflineQueueService
from app_pos.services.submission_service import (
    SaleSubmissionService,
    SubmissionResult,
    build_sale_payload,
)

__all__ = [
    'PricingService',
    'TaxConfig',
    'calculate_item',
    'calculate_totals',
    'CommissionBreakdown',
    'agency_commission',
    'guide_commission',
    'employee_commission',
    'compute_commissions',
    'apply_commissions',
    'PaymentValidator',
    'calculate_change',
    'DraftService',
    'CartService',
    'EventBus',
    'SALE_CREATED',
    'NotificationService',
    'AuthSession',
    'SessionService',
    'get_with_retry',
    'RequestsApiClient',
    'CatalogService',
    'SalesListService',
    'OfflineQueueService',
    'SaleSubmissionService',
    'SubmissionResult',
    'build_sale_payload',
]
