# ==============================================================================
# SERVICIO DE NOTIFICACIONES
# ==============================================================================
# Sumidero de toasts. Cada aviso se escribe en el log y queda en un historial
# acotado que la API entrega a la pantalla de caja.
# ==============================================================================

import logging
from collections import deque
from datetime import datetime
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Implementación de INotifier.

    Uso:
        notifier = NotificationService()
        notifier.show_warning('Sin conexión', 'Se usarán datos locales')
        notifier.drain()
    """

    def __init__(self, max_history: int = 100):
        self._history = deque(maxlen=max_history)

    def _push(self, level: str, message: str, detail: Optional[str]) -> None:
        self._history.append({
            'level': level,
            'message': message,
            'detail': detail,
            'timestamp': datetime.now().isoformat(),
        })

    def show_success(self, message: str, detail: Optional[str] = None) -> None:
        logger.info("[TOAST] %s%s", message, f" ({detail})" if detail else '')
        self._push('success', message, detail)

    def show_info(self, message: str, detail: Optional[str] = None) -> None:
        logger.info("[TOAST] %s%s", message, f" ({detail})" if detail else '')
        self._push('info', message, detail)

    def show_warning(self, message: str, detail: Optional[str] = None) -> None:
        logger.warning("[TOAST] %s%s", message, f" ({detail})" if detail else '')
        self._push('warning', message, detail)

    def show_error(self, message: str, detail: Optional[str] = None) -> None:
        logger.error("[TOAST] %s%s", message, f" ({detail})" if detail else '')
        self._push('error', message, detail)

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self._history)

    def drain(self) -> List[Dict[str, Any]]:
        """Devuelve y vacía el historial."""
        items = list(self._history)
        self._history.clear()
        return items
