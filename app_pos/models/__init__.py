# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del motor de ventas
# ==============================================================================
# Este módulo define todas las entidades del dominio usando dataclasses.
# Beneficios:
#   - Type hints para mejor documentación y autocompletado
#   - Fácil serialización/deserialización para JSON
#   - Independiente del mecanismo de persistencia (JSON local o API REST)
# ==============================================================================

from .entities import (
    # Utilidades
    round2,
    now_ms,

    # Enumeraciones
    UserRole,
    PaymentMethod,
    SaleType,
    CommissionFormula,
    ActionPriority,
    ActionType,
    SubmissionState,
    CORPORATE_DISCOUNT_REASONS,

    # Catálogo
    Product,
    Client,

    # Comisiones
    CommissionPolicy,
    Agency,
    Guide,
    Employee,

    # Venta
    Sale,
    SaleItem,
    SaleTotals,
    PaymentDetails,

    # Cola offline
    PendingAction,

    # Borrador
    DraftItem,
    DraftSnapshot,
)

__all__ = [
    'round2',
    'now_ms',
    'UserRole',
    'PaymentMethod',
    'SaleType',
    'CommissionFormula',
    'ActionPriority',
    'ActionType',
    'SubmissionState',
    'CORPORATE_DISCOUNT_REASONS',
    'Product',
    'Client',
    'CommissionPolicy',
    'Agency',
    'Guide',
    'Employee',
    'Sale',
    'SaleItem',
    'SaleTotals',
    'PaymentDetails',
    'PendingAction',
    'DraftItem',
    'DraftSnapshot',
]
