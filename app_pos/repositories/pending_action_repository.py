# ==============================================================================
# REPOSITORIO DE ACCIONES PENDIENTES (COLA OFFLINE)
# ==============================================================================
# Encapsula todo el acceso a pending_actions.json.
# La cola sobrevive a reinicios de la terminal.
# ==============================================================================

import os
from typing import List, Optional

from app_pos.models.entities import PendingAction
from app_pos.repositories.base import ListRepository


class PendingActionRepository(ListRepository):
    """
    Repositorio de acciones offline.

    Formato de datos en pending_actions.json:
    [
        {
            "id": "offline-1700000000000-ab12cd34e",
            "type": "CREATE_SALE",
            "data": {...},
            "priority": "high",
            "maxRetries": 5,
            "timestamp": 1700000000000,
            "retryCount": 0,
            "lastAttempt": null
        }
    ]
    """

    def __init__(self, base_path: str, filename: str = 'pending_actions.json'):
        super().__init__(os.path.join(base_path, filename))

    def load(self) -> List[PendingAction]:
        """Carga todas las acciones (descarta registros ilegibles)."""
        actions = []
        for raw in self.get_all():
            try:
                actions.append(PendingAction.from_dict(raw))
            except (TypeError, ValueError):
                continue
        return actions

    def save(self, actions: List[PendingAction]) -> None:
        self.save_all([a.to_dict() for a in actions])

    def add(self, action: PendingAction) -> None:
        self.append(action.to_dict())

    def get(self, action_id: str) -> Optional[PendingAction]:
        for action in self.load():
            if action.id == action_id:
                return action
        return None

    def remove(self, action_id: str) -> bool:
        """
        Elimina una acción.

        Returns:
            True si existía
        """
        with self._file_lock:
            actions = self.load()
            remaining = [a for a in actions if a.id != action_id]
            if len(remaining) == len(actions):
                return False
            self.save(remaining)
            return True

    def replace(self, action: PendingAction) -> None:
        """Reemplaza una acción existente (mismo id)."""
        with self._file_lock:
            self.save([action if a.id == action.id else a for a in self.load()])

    def clear(self) -> None:
        self.save_all([])
