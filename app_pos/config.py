# ==============================================================================
# CONFIGURACIÓN DEL MOTOR DE VENTAS
# ==============================================================================
# Constantes del sistema. Cada una puede sobrescribirse con una variable de
# entorno POS_* para no tocar código entre terminales.
# ==============================================================================

import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'si', 'sí', 'on')


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


# ═══════════════════════════════════════════════════════════════════════════
# RUTAS Y BACKEND
# ═══════════════════════════════════════════════════════════════════════════

# Carpeta donde viven los JSON locales (borradores, cola offline, settings)
DATA_DIR = os.environ.get(
    'POS_DATA_DIR',
    os.path.join(os.path.dirname(os.path.abspath(__file__)), 'data')
)

# URL base del API REST del backend
API_BASE_URL = os.environ.get('POS_API_BASE_URL', 'http://localhost:3001/api')

# Timeout de cada llamada HTTP (segundos)
API_TIMEOUT = _env_float('POS_API_TIMEOUT', 15.0)

# Reintentos de transporte (conexión caída) por debajo del motor
API_TRANSPORT_RETRIES = _env_int('POS_API_TRANSPORT_RETRIES', 2)


# ═══════════════════════════════════════════════════════════════════════════
# IMPUESTOS Y DESCUENTOS
# ═══════════════════════════════════════════════════════════════════════════

# IVA por defecto (16%) expresado como factor
DEFAULT_TAX_RATE = _env_float('POS_TAX_RATE', 0.16)
DEFAULT_APPLY_TAX = _env_bool('POS_APPLY_TAX', True)

# Descuento máximo por rol (porcentaje)
DEFAULT_ROLE_MAX_DISCOUNT = {
    'admin': 50.0,
    'manager': 30.0,
    'cashier': 20.0,
}
DEFAULT_ROLE = 'cashier'

# Tolerancia para cuadrar pagos mixtos
PAYMENT_EPSILON = 0.01


# ═══════════════════════════════════════════════════════════════════════════
# BORRADORES
# ═══════════════════════════════════════════════════════════════════════════

DRAFT_KEY = os.environ.get('POS_DRAFT_KEY', 'pos:sales:draft:v1')
DRAFT_STORE_FILE = 'drafts.json'


# ═══════════════════════════════════════════════════════════════════════════
# REINTENTOS DE LECTURA
# ═══════════════════════════════════════════════════════════════════════════

READ_MAX_RETRIES = _env_int('POS_READ_MAX_RETRIES', 2)
READ_BASE_DELAY_MS = 500
READ_JITTER_MS = 250


# ═══════════════════════════════════════════════════════════════════════════
# COLA OFFLINE
# ═══════════════════════════════════════════════════════════════════════════

PENDING_ACTIONS_FILE = 'pending_actions.json'
OFFLINE_MAX_STORAGE = _env_int('POS_OFFLINE_MAX_STORAGE', 50)
OFFLINE_MAX_AGE_MS = 7 * 24 * 60 * 60 * 1000  # 7 días
OFFLINE_BASE_BACKOFF_MS = 5000
OFFLINE_MAX_BACKOFF_MS = 300000
OFFLINE_MAX_RETRIES = 3
OFFLINE_SALE_MAX_RETRIES = 5
OFFLINE_MAX_SYNC_ERRORS = 15


# ═══════════════════════════════════════════════════════════════════════════
# PROFILING
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = _env_bool('POS_ENABLE_PROFILING', True)
THRESHOLD_WARNING = 300   # ms
THRESHOLD_CRITICAL = 700  # ms
LOGS_DIR = os.environ.get(
    'POS_LOGS_DIR',
    os.path.join(os.path.dirname(os.path.abspath(__file__)), 'logs')
)
