# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos locales de la terminal
# ==============================================================================
# Esta capa encapsula toda la persistencia local (JSON en disco).
# Los servicios dependen de las interfaces, no de estas implementaciones.
#
# ESTRUCTURA:
# ├── interfaces.py                → Protocolos de colaboradores externos
# ├── base.py                      → Clases base JSON (DictRepository, ListRepository)
# ├── key_value_store.py           → Borradores y respaldos (drafts.json)
# ├── pending_action_repository.py → Cola offline (pending_actions.json)
# └── settings_repository.py       → IVA y descuentos por rol (pos_settings.json)
# ==============================================================================

from .interfaces import (
    IKeyValueStore,
    IApiClient,
    INotifier,
    IAuthProvider,
    IEventBus,
    IOfflineProvider,
    ConfirmPrompt,
)

from .base import BaseRepository, DictRepository, ListRepository
from .key_value_store import JsonKeyValueStore, InMemoryKeyValueStore
from .pending_action_repository import PendingActionRepository
from .settings_repository import SettingsRepository, normalize_tax_rate

__all__ = [
    # Interfaces
    'IKeyValueStore',
    'IApiClient',
    'INotifier',
    'IAuthProvider',
    'IEventBus',
    'IOfflineProvider',
    'ConfirmPrompt',

    # Clases base
    'BaseRepository',
    'DictRepository',
    'ListRepository',

    # Implementaciones
    'JsonKeyValueStore',
    'InMemoryKeyValueStore',
    'PendingActionRepository',
    'SettingsRepository',
    'normalize_tax_rate',
]
