# ==============================================================================
# INTERFACES DE COLABORADORES EXTERNOS
# ==============================================================================
#
# Contratos (protocolos) de todo lo que el motor consume pero no implementa:
#
# 1. INDEPENDENCIA DE ALMACENAMIENTO
#    - Los servicios dependen de interfaces, NO de implementaciones concretas
#    - Borradores en archivo JSON, memoria o cualquier otro backend
#
# 2. TESTING
#    - Fácil crear fakes que implementen estas interfaces
#    - Tests unitarios sin red ni archivos reales
#
# 3. SIN ESTADO GLOBAL
#    - Cada servicio recibe sus colaboradores por constructor
#
# ==============================================================================

from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, runtime_checkable


# ==============================================================================
# ALMACENAMIENTO CLAVE-VALOR (borradores y respaldos)
# ==============================================================================

@runtime_checkable
class IKeyValueStore(Protocol):
    """
    Almacén durable clave-valor, síncrono y con claves string.
    Usado por: DraftService.
    """

    def get(self, key: str) -> Optional[str]:
        """Obtiene el valor o None."""
        ...

    def set(self, key: str, value: str) -> None:
        """Guarda (sobrescribe) un valor."""
        ...

    def remove(self, key: str) -> None:
        """Elimina una clave (no falla si no existe)."""
        ...

    def keys(self, prefix: str = '') -> List[str]:
        """Lista las claves que empiezan con el prefijo."""
        ...


# ==============================================================================
# CLIENTE HTTP
# ==============================================================================

@runtime_checkable
class IApiClient(Protocol):
    """
    Cliente RPC asíncrono del backend.

    Cada método devuelve el cuerpo ya decodificado (el "data" de la
    respuesta) o lanza ApiError con el código HTTP.

    config admite:
        headers: Dict[str, str] con cabeceras adicionales
        suppress_global_error: True para no disparar el manejo global
    """

    async def get(self, path: str, config: Optional[Dict[str, Any]] = None) -> Any:
        ...

    async def post(self, path: str, body: Any = None, config: Optional[Dict[str, Any]] = None) -> Any:
        ...

    async def put(self, path: str, body: Any = None, config: Optional[Dict[str, Any]] = None) -> Any:
        ...

    async def delete(self, path: str, config: Optional[Dict[str, Any]] = None) -> Any:
        ...


# ==============================================================================
# NOTIFICACIONES, AUTENTICACIÓN Y EVENTOS
# ==============================================================================

@runtime_checkable
class INotifier(Protocol):
    """Sumidero de notificaciones (toasts). No devuelve nada."""

    def show_success(self, message: str, detail: Optional[str] = None) -> None:
        ...

    def show_error(self, message: str, detail: Optional[str] = None) -> None:
        ...

    def show_warning(self, message: str, detail: Optional[str] = None) -> None:
        ...


@runtime_checkable
class IAuthProvider(Protocol):
    """Proveedor de sesión: rol actual y cierre de sesión."""

    @property
    def role(self) -> str:
        ...

    @property
    def is_authenticated(self) -> bool:
        ...

    def logout(self) -> None:
        ...


@runtime_checkable
class IEventBus(Protocol):
    """Bus de eventos de dominio (fire-and-forget)."""

    def publish(self, event: str, payload: Any = None) -> None:
        ...


@runtime_checkable
class IOfflineProvider(Protocol):
    """Estado de red y cola de acciones pendientes."""

    @property
    def is_offline(self) -> bool:
        ...

    def add_pending_action(self, action_type: Any, payload: Dict[str, Any],
                           priority: Any = None, max_retries: Optional[int] = None) -> Any:
        ...

    async def sync_pending_actions(self) -> Dict[str, Any]:
        ...


# Diálogo de confirmación (bloquea solo la acción que lo pidió)
ConfirmPrompt = Callable[[str], Awaitable[bool]]
