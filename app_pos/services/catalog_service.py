# ==============================================================================
# SERVICIO DE CATÁLOGO
# ==============================================================================
# Productos, agencias, guías y vendedores leídos del backend.
#
# El stock es de SOLO LECTURA para el motor y puede estar desactualizado:
# se refresca tras cada venta confirmada. Las carreras de stock las resuelve
# el servidor.
#
# LECTURA:
#   - con reintentos acotados (retry.get_with_retry)
#   - sin conexión o con reintentos agotados → último dato bueno + aviso
#   - 401 → manejo de sesión expirada
# ==============================================================================

import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

from app_pos.exceptions import ApiError
from app_pos.models.entities import Agency, Employee, Guide, Product
from app_pos.repositories.interfaces import IApiClient, INotifier, IOfflineProvider
from app_pos.services.retry import Sleep, get_with_retry
from app_pos.services.session_service import SessionService

logger = logging.getLogger(__name__)

T = TypeVar('T')

STALE_DATA_WARNING = 'Mostrando datos guardados'


def _as_list(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, dict):
        for key in ('items', 'results', 'rows'):
            if isinstance(data.get(key), list):
                data = data[key]
                break
    if not isinstance(data, list):
        return []
    return [row for row in data if isinstance(row, dict)]


class CatalogService:
    """
    Catálogo en caché con último dato bueno.

    Uso:
        catalog = CatalogService(api, notifier)
        await catalog.load_products()
        product = catalog.get_product('p1')
    """

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
        self.products: Dict[str, Product] = {}
        self.agencies: Dict[str, Agency] = {}
        self.guides: Dict[str, Guide] = {}
        self.employees: Dict[str, Employee] = {}

    async def _load(
        self,
        path: str,
        factory: Callable[[Dict[str, Any]], T],
        cache: Dict[str, T],
        label: str
    ) -> List[T]:
        """
        Lee una colección y reemplaza la caché; ante falla devuelve la caché.
        """
        if self.offline is not None and self.offline.is_offline:
            self.notifier.show_warning(STALE_DATA_WARNING, f'Sin conexión: {label}')
            return list(cache.values())

        kwargs = {'sleep': self.sleep} if self.sleep else {}
        try:
            data = await get_with_retry(self.api, path, {'suppress_global_error': True}, **kwargs)
        except ApiError as e:
            if e.status == 401 and self.session is not None:
                await self.session.handle_session_expired()
            elif not e.is_auth_error:
                self.notifier.show_warning(STALE_DATA_WARNING, f'No se pudo actualizar {label}')
            logger.warning("[CATALOGO] Falló la lectura de %s: %s", label, e)
            return list(cache.values())

        entities = [factory(row) for row in _as_list(data)]
        cache.clear()
        cache.update({entity.id: entity for entity in entities})
        return entities

    async def load_products(self) -> List[Product]:
        return await self._load('/products', Product.from_dict, self.products, 'productos')

    async def load_agencies(self) -> List[Agency]:
        return await self._load('/agencies', Agency.from_dict, self.agencies, 'agencias')

    async def load_guides(self) -> List[Guide]:
        return await self._load('/guides', Guide.from_dict, self.guides, 'guías')

    async def load_employees(self) -> List[Employee]:
        return await self._load('/employees', Employee.from_dict, self.employees, 'vendedores')

    async def load_all(self) -> None:
        """Carga inicial de la pantalla de venta."""
        await self.load_products()
        await self.load_agencies()
        await self.load_guides()
        await self.load_employees()

    async def refresh_products(self) -> List[Product]:
        """Refresca stock tras una venta confirmada."""
        return await self.load_products()

    def get_product(self, product_id: str) -> Optional[Product]:
        return self.products.get(str(product_id))

    def find_by_code(self, code: str) -> Optional[Product]:
        """Busca por código de barras o SKU (lector de códigos)."""
        code = (code or '').strip()
        if not code:
            return None
        for product in self.products.values():
            if code in (product.barcode, product.sku):
                return product
        return None
