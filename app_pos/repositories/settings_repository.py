# ==============================================================================
# REPOSITORIO DE CONFIGURACIONES DE CAJA
# ==============================================================================
# Encapsula todo el acceso a pos_settings.json
# Guarda la tasa de IVA, si se aplica impuesto y el techo de descuento por rol.
# ==============================================================================

import os
from typing import Any, Dict

from app_pos import config
from app_pos.repositories.base import DictRepository


def normalize_tax_rate(value: Any, default: float = config.DEFAULT_TAX_RATE) -> float:
    """
    Acepta la tasa como porcentaje (16) o como factor (0.16).

    Returns:
        Factor entre 0 y 1
    """
    try:
        rate = float(value)
    except (TypeError, ValueError):
        return default
    if rate < 0:
        return default
    return rate / 100 if rate > 1 else rate


class SettingsRepository(DictRepository):
    """
    Repositorio de configuraciones de la terminal.

    Formato de datos en pos_settings.json:
    {
        "taxRate": 16,
        "applyTax": true,
        "roleMaxDiscount": {"admin": 50, "manager": 30, "cashier": 20}
    }
    """

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, 'pos_settings.json'))

    def get_setting(self, key: str, default: Any = None) -> Any:
        return self.get_all().get(key, default)

    def set_setting(self, key: str, value: Any) -> None:
        self.update(key, value)

    # =========================================================================
    # Métodos específicos
    # =========================================================================

    def get_tax_rate(self) -> float:
        """Tasa de IVA como factor (0.16 por defecto)."""
        return normalize_tax_rate(self.get_setting('taxRate', config.DEFAULT_TAX_RATE))

    def set_tax_rate(self, rate: Any) -> None:
        self.set_setting('taxRate', normalize_tax_rate(rate))

    def get_apply_tax(self) -> bool:
        return bool(self.get_setting('applyTax', config.DEFAULT_APPLY_TAX))

    def set_apply_tax(self, enabled: bool) -> None:
        self.set_setting('applyTax', bool(enabled))

    def get_role_max_discount(self) -> Dict[str, float]:
        """
        Tabla rol → descuento máximo (%).
        Los valores guardados sobrescriben los de config por rol.
        """
        table = dict(config.DEFAULT_ROLE_MAX_DISCOUNT)
        stored = self.get_setting('roleMaxDiscount') or {}
        if isinstance(stored, dict):
            for role, value in stored.items():
                try:
                    table[str(role)] = max(0.0, min(100.0, float(value)))
                except (TypeError, ValueError):
                    continue
        return table
