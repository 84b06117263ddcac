# ==============================================================================
# BUS DE EVENTOS DE DOMINIO
# ==============================================================================
# Publicación fire-and-forget. Un suscriptor que falla se registra en el log
# y no afecta al que publica ni a los demás suscriptores.
#
# Eventos usados:
#   sale:created → {'sale': payload, 'offline': bool}
# ==============================================================================

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

SALE_CREATED = 'sale:created'

Handler = Callable[[Any], None]


class EventBus:
    """Publicador/suscriptor en memoria."""

    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        """
        Registra un suscriptor.

        Returns:
            Función para cancelar la suscripción
        """
        self._subscribers[event].append(handler)
        return lambda: self.unsubscribe(event, handler)

    def unsubscribe(self, event: str, handler: Handler) -> None:
        handlers = self._subscribers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: str, payload: Any = None) -> None:
        for handler in list(self._subscribers.get(event, [])):
            try:
                handler(payload)
            except Exception:
                logger.exception("[EVENTOS] Suscriptor de '%s' falló", event)
