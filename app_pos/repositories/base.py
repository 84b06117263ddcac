# ==============================================================================
# REPOSITORIO BASE - Persistencia local en archivos JSON
# ==============================================================================
# Borradores, cola offline y settings viven en el disco de la terminal.
# Escritura atómica (archivo temporal + os.replace) para que un corte de luz
# a mitad de escritura nunca deje el JSON corrupto.
# ==============================================================================

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class BaseRepository(ABC):
    """
    Clase base abstracta para los repositorios JSON locales.

    Cada instancia es dueña de un archivo; las lecturas y escrituras se
    serializan con un lock por clase para que el autosave y la cola
    offline no se pisen.
    """

    _file_lock = threading.RLock()

    def __init__(self, file_path: str):
        """
        Args:
            file_path: Ruta absoluta al archivo JSON
        """
        self.file_path = file_path
        directory = os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        if not os.path.exists(self.file_path):
            self._write_raw(self._empty_data())

    @abstractmethod
    def _empty_data(self) -> Any:
        """Estructura vacía (dict o list) del repositorio."""
        pass

    def _read_raw(self) -> Any:
        """
        Lee el archivo completo.

        Returns:
            Datos parseados, o la estructura vacía si el archivo no existe
            o está corrupto
        """
        with self._file_lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except FileNotFoundError:
                return self._empty_data()
            except json.JSONDecodeError:
                logger.warning("[REPO] Archivo corrupto, se usa vacío: %s", self.file_path)
                return self._empty_data()

    def _write_raw(self, data: Any) -> None:
        """
        Escribe el archivo completo de forma atómica.

        Raises:
            OSError: Si no se puede escribir
        """
        with self._file_lock:
            temp_path = self.file_path + '.tmp'
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self.file_path)
            except Exception:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise


class DictRepository(BaseRepository):
    """
    Repositorio de datos almacenados como diccionario.

    Ejemplo: drafts.json -> {"pos:sales:draft:v1": "{...}"}
    """

    def _empty_data(self) -> Dict:
        return {}

    def get_all(self) -> Dict[str, Any]:
        data = self._read_raw()
        return data if isinstance(data, dict) else {}

    def save_all(self, data: Dict[str, Any]) -> None:
        self._write_raw(data)

    def update(self, record_id: str, record_data: Any) -> None:
        """Crea o reemplaza un registro."""
        with self._file_lock:
            data = self.get_all()
            data[record_id] = record_data
            self._write_raw(data)

    def delete(self, record_id: str) -> Any:
        """
        Elimina un registro.

        Returns:
            El valor eliminado o None si no existía
        """
        with self._file_lock:
            data = self.get_all()
            removed = data.pop(record_id, None)
            if removed is not None:
                self._write_raw(data)
            return removed


class ListRepository(BaseRepository):
    """
    Repositorio de datos almacenados como lista.

    Ejemplo: pending_actions.json -> [{...}, {...}]
    """

    def _empty_data(self) -> List:
        return []

    def get_all(self) -> List[Dict[str, Any]]:
        data = self._read_raw()
        return data if isinstance(data, list) else []

    def save_all(self, data: List[Dict[str, Any]]) -> None:
        self._write_raw(data)

    def append(self, record: Dict[str, Any]) -> None:
        with self._file_lock:
            data = self.get_all()
            data.append(record)
            self._write_raw(data)
