# ==============================================================================
# SERVICIO DE LISTA DE VENTAS
# ==============================================================================
# Lista de ventas recientes en memoria. Lectura con reintentos y respaldo al
# último dato bueno; las ventas confirmadas se agregan al frente.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from app_pos.exceptions import ApiError
from app_pos.repositories.interfaces import IApiClient, INotifier, IOfflineProvider
from app_pos.services.retry import Sleep, get_with_retry
from app_pos.services.session_service import SessionService

logger = logging.getLogger(__name__)


class SalesListService:
    """Ventas recientes de la terminal."""

    def __init__(
        self,
        api: IApiClient,
        notifier: INotifier,
        offline: Optional[IOfflineProvider] = None,
        session: Optional[SessionService] = None,
        sleep: Optional[Sleep] = None
    ):
        self.api = api
        self.notifier = notifier
        self.offline = offline
        self.session = session
        self.sleep = sleep
        self.sales: List[Dict[str, Any]] = []

    async def fetch_sales(self) -> List[Dict[str, Any]]:
        """
        Lee las ventas del backend.

        Returns:
            Lista de ventas (la caché si la lectura falla)
        """
        if self.offline is not None and self.offline.is_offline:
            self.notifier.show_warning('Mostrando ventas guardadas', 'Sin conexión')
            return list(self.sales)

        kwargs = {'sleep': self.sleep} if self.sleep else {}
        try:
            data = await get_with_retry(self.api, '/sales', {'suppress_global_error': True}, **kwargs)
        except ApiError as e:
            if e.status == 401 and self.session is not None:
                await self.session.handle_session_expired()
            elif not e.is_auth_error:
                self.notifier.show_warning('Mostrando ventas guardadas',
                                           'No se pudo actualizar la lista')
            logger.warning("[VENTA] Falló la lectura de ventas: %s", e)
            return list(self.sales)

        if isinstance(data, dict):
            data = data.get('items') or data.get('sales') or []
        self.sales = [s for s in data if isinstance(s, dict)] if isinstance(data, list) else []
        return list(self.sales)

    def add_sale(self, sale: Dict[str, Any]) -> None:
        """Agrega una venta confirmada al frente (sin duplicar por id)."""
        sale_id = sale.get('id')
        if sale_id is not None:
            self.sales = [s for s in self.sales if s.get('id') != sale_id]
        self.sales.insert(0, sale)
