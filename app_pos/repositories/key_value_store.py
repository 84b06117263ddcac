# ==============================================================================
# ALMACÉN CLAVE-VALOR DURABLE
# ==============================================================================
# Reemplaza al localStorage del navegador: el borrador actual y los
# respaldos con timestamp se guardan como strings bajo claves fijas.
# ==============================================================================

import os
from typing import Dict, List, Optional

from app_pos.repositories.base import DictRepository


class JsonKeyValueStore(DictRepository):
    """
    Almacén clave-valor respaldado por un archivo JSON.

    Formato en drafts.json:
    {
        "pos:sales:draft:v1": "{\"items\": [...]}",
        "pos:sales:draft:v1:backup:1700000000000": "{...}"
    }
    """

    def __init__(self, base_path: str, filename: str = 'drafts.json'):
        """
        Args:
            base_path: Carpeta de datos de la terminal
            filename: Nombre del archivo
        """
        super().__init__(os.path.join(base_path, filename))

    def get(self, key: str) -> Optional[str]:
        value = self.get_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        self.update(key, value)

    def remove(self, key: str) -> None:
        self.delete(key)

    def keys(self, prefix: str = '') -> List[str]:
        return [k for k in self.get_all() if k.startswith(prefix)]


class InMemoryKeyValueStore:
    """Almacén en memoria (terminal sin disco o tests)."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = '') -> List[str]:
        return [k for k in self._data if k.startswith(prefix)]
