# ==============================================================================
# SERVICIO DE COLA OFFLINE
# ==============================================================================
# Escrituras que no pudieron enviarse (sin conexión) quedan en
# pending_actions.json y se sincronizan cuando vuelve la red.
#
# POLÍTICA:
#   - Orden: prioridad (high > medium > low), luego la más antigua
#   - Capacidad: 50 acciones; al llenarse se descartan las de más de 7 días
#     y se conservan las 50 de mayor prioridad
#   - Backoff por acción: min(300 s, 5 s * 2^reintentos)
#   - Al llegar a su maxRetries la acción se elimina y se reporta como fallida
#   - CREATE_SALE viaja con Idempotency-Key si el payload la trae
# ==============================================================================

import json
import logging
import uuid
from collections import Counter
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app_pos import config
from app_pos.exceptions import PosError
from app_pos.models.entities import ActionPriority, ActionType, PendingAction, now_ms
from app_pos.performance_logger import profile_function
from app_pos.repositories.interfaces import IApiClient
from app_pos.repositories.pending_action_repository import PendingActionRepository

logger = logging.getLogger(__name__)

# Acciones con esta cantidad de reintentos se consideran "fallidas" en la UI
FAILED_ACTION_THRESHOLD = 3


def backoff_ms(retry_count: int,
               base_ms: int = config.OFFLINE_BASE_BACKOFF_MS,
               max_ms: int = config.OFFLINE_MAX_BACKOFF_MS) -> int:
    """Espera mínima entre intentos de una acción."""
    return min(max_ms, base_ms * (2 ** max(0, retry_count)))


def _priority_key(action: PendingAction):
    return (-action.priority.weight, action.timestamp)


class OfflineQueueService:
    """
    Estado de red y cola de acciones pendientes (implementa IOfflineProvider).

    Uso:
        queue = OfflineQueueService(PendingActionRepository(data_dir), api)
        queue.add_pending_action(ActionType.CREATE_SALE, payload, ActionPriority.HIGH, 5)
        await queue.sync_pending_actions()
    """

    def __init__(
        self,
        repository: PendingActionRepository,
        api: IApiClient,
        max_storage: int = config.OFFLINE_MAX_STORAGE,
        max_age_ms: int = config.OFFLINE_MAX_AGE_MS,
        max_retries: int = config.OFFLINE_MAX_RETRIES,
        clock: Callable[[], int] = now_ms
    ):
        """
        Args:
            repository: Persistencia de la cola
            api: Cliente HTTP para sincronizar
            max_storage: Capacidad de la cola
            max_age_ms: Edad máxima antes de descartar
            max_retries: Reintentos por defecto de cada acción nueva
            clock: Reloj en ms (inyectable en tests)
        """
        self.repository = repository
        self.api = api
        self.max_storage = max_storage
        self.max_age_ms = max_age_ms
        self.max_retries = max_retries
        self.clock = clock

        self._offline = False
        self._sync_in_progress = False
        self.auto_sync_enabled = True
        self.last_sync_time: Optional[int] = None
        self.failed_count = 0
        self.sync_errors: List[str] = []

        self._handlers: Dict[ActionType, Callable[[Dict[str, Any]], Awaitable[Any]]] = {
            ActionType.CREATE_SALE: self._create_sale,
            ActionType.CREATE_CLIENT: self._create_client,
            ActionType.UPDATE_CLIENT: self._update_client,
            ActionType.DELETE_CLIENT: self._delete_client,
        }

    # =========================================================================
    # ESTADO DE RED
    # =========================================================================

    @property
    def is_offline(self) -> bool:
        return self._offline

    @property
    def sync_in_progress(self) -> bool:
        return self._sync_in_progress

    def set_offline_status(self, offline: bool) -> bool:
        """
        Actualiza el estado de red.

        Returns:
            True si corresponde sincronizar (volvió la red y hay pendientes)
        """
        was_offline = self._offline
        self._offline = bool(offline)
        if was_offline != self._offline:
            logger.info("[OFFLINE] Estado de red: %s", 'sin conexión' if offline else 'en línea')
        return (not self._offline) and self.auto_sync_enabled and bool(self.pending_actions)

    # =========================================================================
    # COLA
    # =========================================================================

    @property
    def pending_actions(self) -> List[PendingAction]:
        return self.repository.load()

    def add_pending_action(
        self,
        action_type: ActionType,
        payload: Dict[str, Any],
        priority: Optional[ActionPriority] = None,
        max_retries: Optional[int] = None
    ) -> PendingAction:
        """
        Encola una escritura.

        Args:
            action_type: Tipo de acción
            payload: Datos a enviar
            priority: Prioridad (medium por defecto)
            max_retries: Reintentos permitidos (por defecto los del servicio)

        Returns:
            La acción creada
        """
        if len(self.pending_actions) >= self.max_storage:
            self.cleanup_old_actions()

        now = self.clock()
        action = PendingAction(
            id=f'offline-{now}-{uuid.uuid4().hex[:9]}',
            type=ActionType(action_type),
            payload=dict(payload or {}),
            priority=ActionPriority(priority) if priority else ActionPriority.MEDIUM,
            max_retries=max_retries or self.max_retries,
            timestamp=now,
        )
        self.repository.add(action)
        logger.info("[OFFLINE] Acción %s encolada (%s, prioridad %s)",
                    action.id, action.type.value, action.priority.value)
        return action

    def remove_pending_action(self, action_id: str) -> bool:
        return self.repository.remove(action_id)

    def clear_pending_actions(self) -> None:
        self.repository.clear()
        self.failed_count = 0
        self.sync_errors = []

    def get_pending_actions_by_priority(self) -> List[PendingAction]:
        return sorted(self.pending_actions, key=_priority_key)

    def cleanup_old_actions(self) -> int:
        """
        Descarta acciones viejas y recorta a la capacidad.

        Returns:
            Cantidad de acciones descartadas
        """
        now = self.clock()
        actions = self.pending_actions
        kept = sorted(
            (a for a in actions if now - a.timestamp < self.max_age_ms),
            key=_priority_key
        )[:self.max_storage]
        self.repository.save(kept)
        dropped = len(actions) - len(kept)
        if dropped:
            logger.warning("[OFFLINE] %d acción(es) descartadas por antigüedad o capacidad", dropped)
        return dropped

    # =========================================================================
    # SINCRONIZACIÓN
    # =========================================================================

    async def _create_sale(self, payload: Dict[str, Any]) -> Any:
        request_config: Dict[str, Any] = {'suppress_global_error': True}
        key = payload.get('idempotencyKey')
        if key:
            request_config['headers'] = {'Idempotency-Key': key}
        return await self.api.post('/sales', payload, request_config)

    async def _create_client(self, payload: Dict[str, Any]) -> Any:
        return await self.api.post('/clients', payload)

    async def _update_client(self, payload: Dict[str, Any]) -> Any:
        return await self.api.put(f"/clients/{payload.get('id')}", payload)

    async def _delete_client(self, payload: Dict[str, Any]) -> Any:
        return await self.api.delete(f"/clients/{payload.get('id')}")

    @profile_function
    async def sync_pending_actions(self) -> Dict[str, Any]:
        """
        Envía las acciones pendientes respetando prioridad y backoff.

        Returns:
            Resumen {'skipped', 'synced', 'failed', 'deferred', 'errors'}
        """
        result = {'skipped': False, 'synced': 0, 'failed': 0, 'deferred': 0, 'errors': []}
        if self._offline or self._sync_in_progress or not self.pending_actions:
            result['skipped'] = True
            return result

        self._sync_in_progress = True
        errors: List[str] = []
        try:
            for action in self.get_pending_actions_by_priority():
                if action.retry_count >= action.max_retries:
                    self.repository.remove(action.id)
                    result['failed'] += 1
                    errors.append(f'[FALLIDA] {action.type.value}: Máximo de reintentos excedido')
                    logger.warning("[OFFLINE] Acción %s descartada: máximo de reintentos", action.id)
                    continue

                now = self.clock()
                if action.last_attempt and now - action.last_attempt < backoff_ms(action.retry_count):
                    result['deferred'] += 1
                    continue

                handler = self._handlers.get(action.type)
                if handler is None:
                    logger.warning("[OFFLINE] Tipo de acción no reconocido: %s", action.type)
                    continue

                action.last_attempt = now
                try:
                    await handler(action.payload)
                except PosError as e:
                    action.retry_count += 1
                    self.repository.replace(action)
                    result['failed'] += 1
                    errors.append(f'{action.type.value}: {e}')
                    logger.warning("[OFFLINE] Acción %s falló (intento %d): %s",
                                   action.id, action.retry_count, e)
                    continue

                self.repository.remove(action.id)
                result['synced'] += 1
                logger.info("[OFFLINE] Acción %s sincronizada", action.id)
        finally:
            self._sync_in_progress = False

        self.failed_count = result['failed']
        self.sync_errors = errors[-config.OFFLINE_MAX_SYNC_ERRORS:]
        self.last_sync_time = self.clock()
        result['errors'] = list(self.sync_errors)
        logger.info("[OFFLINE] Sincronización: %d exitosas, %d fallidas, %d en espera",
                    result['synced'], result['failed'], result['deferred'])
        return result

    async def retry_failed_actions(self) -> Dict[str, Any]:
        """Reinicia el contador de las acciones con fallas y sincroniza."""
        actions = self.pending_actions
        retried = [a for a in actions if a.retry_count > 0]
        if not retried:
            return {'skipped': True, 'synced': 0, 'failed': 0, 'deferred': 0, 'errors': []}
        for action in retried:
            action.retry_count = 0
            action.last_attempt = None
        self.repository.save(actions)
        logger.info("[OFFLINE] Reintentando %d acción(es) fallidas", len(retried))
        return await self.sync_pending_actions()

    def get_failed_actions(self) -> List[PendingAction]:
        return [a for a in self.pending_actions if a.retry_count >= FAILED_ACTION_THRESHOLD]

    def clear_failed_actions(self) -> int:
        actions = self.pending_actions
        kept = [a for a in actions if a.retry_count < FAILED_ACTION_THRESHOLD]
        self.repository.save(kept)
        self.failed_count = 0
        self.sync_errors = []
        return len(actions) - len(kept)

    # =========================================================================
    # EXPORTAR / IMPORTAR
    # =========================================================================

    def export_pending_actions(self, only_failed: bool = False) -> str:
        """
        Exporta la cola (o solo las fallidas) como JSON.

        Returns:
            JSON con actions, exportDate, version y summary por tipo
        """
        actions = self.get_failed_actions() if only_failed else self.pending_actions
        return json.dumps({
            'actions': [a.to_dict() for a in actions],
            'exportDate': self.clock(),
            'version': '1.0',
            'summary': {
                'total': len(actions),
                'byType': dict(Counter(a.type.value for a in actions)),
            },
        }, ensure_ascii=False, indent=2)

    def import_pending_actions(self, raw: str) -> int:
        """
        Importa acciones exportadas (ignora ids repetidos e inválidos).

        Returns:
            Cantidad importada
        """
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("[OFFLINE] Importación inválida: JSON ilegible")
            return 0
        rows = data.get('actions', []) if isinstance(data, dict) else data
        if not isinstance(rows, list):
            return 0

        actions = self.pending_actions
        known = {a.id for a in actions}
        imported = 0
        for row in rows:
            if not isinstance(row, dict):
                continue
            try:
                action = PendingAction.from_dict(row)
            except (TypeError, ValueError):
                continue
            if action.id in known:
                continue
            actions.append(action)
            known.add(action.id)
            imported += 1
        self.repository.save(actions)
        if len(actions) > self.max_storage:
            self.cleanup_old_actions()
        return imported

    def sync_status(self) -> Dict[str, Any]:
        """Resumen para el indicador de sincronización."""
        return {
            'isOnline': not self._offline,
            'syncInProgress': self._sync_in_progress,
            'totalActions': len(self.pending_actions),
            'failedActions': self.failed_count,
            'syncErrors': list(self.sync_errors),
            'lastSync': self.last_sync_time,
        }
