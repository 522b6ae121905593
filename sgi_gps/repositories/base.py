# ==============================================================================
# REPOSITORIO BASE - Almacén de documentos sobre archivos JSON
# ==============================================================================
# Cada colección (clientes, unidades, pagos...) vive en un archivo JSON dentro
# del directorio de datos. Toda modificación pasa por _editing(): lee, aplica
# el cambio en memoria y reescribe el archivo de forma atómica
# (temporal + os.replace) bajo un RLock compartido.
# ==============================================================================

import json
import os
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional


def _merge(document: Dict[str, Any], updates: Dict[str, Any]) -> None:
    """Aplica updates sobre document; un valor None borra la clave."""
    for key, value in updates.items():
        if value is None:
            document.pop(key, None)
        else:
            document[key] = value


class BaseRepository(ABC):
    """Archivo JSON con lectura tolerante y escritura atómica."""

    _file_lock = threading.RLock()

    FILE_NAME = ''

    def __init__(self, base_path: str):
        os.makedirs(base_path, exist_ok=True)
        self.file_path = os.path.join(base_path, self.FILE_NAME)
        if not os.path.exists(self.file_path):
            self._dump(self._empty_data())

    @abstractmethod
    def _empty_data(self) -> Any:
        """Estructura vacía de la colección ({} o [])."""

    def _load(self) -> Any:
        """
        Lee el archivo completo.

        Un archivo ausente o con JSON inválido se trata como colección vacía
        para que una escritura interrumpida no tumbe la aplicación.
        """
        with self._file_lock:
            try:
                with open(self.file_path, encoding='utf-8') as fh:
                    data = json.load(fh)
            except (FileNotFoundError, json.JSONDecodeError):
                return self._empty_data()
        return data if isinstance(data, type(self._empty_data())) else self._empty_data()

    def _dump(self, data: Any) -> None:
        tmp = f"{self.file_path}.tmp"
        with self._file_lock:
            try:
                with open(tmp, 'w', encoding='utf-8') as fh:
                    json.dump(data, fh, indent=2, ensure_ascii=False)
                os.replace(tmp, self.file_path)
            except OSError:
                if os.path.exists(tmp):
                    os.remove(tmp)
                raise

    @contextmanager
    def _editing(self) -> Iterator[Any]:
        """Lectura-modificación-escritura bajo el lock."""
        with self._file_lock:
            data = self._load()
            yield data
            self._dump(data)

    def save_all(self, data: Any) -> None:
        self._dump(data)


class DictRepository(BaseRepository):
    """Registros guardados como {"<id>": {...}}."""

    def _empty_data(self) -> Dict:
        return {}

    def get_all(self) -> Dict[str, Any]:
        return self._load()

    def get_by_id(self, record_id: Any) -> Optional[Dict[str, Any]]:
        if record_id is None:
            return None
        return self._load().get(str(record_id))

    def update(self, record_id: Any, record_data: Dict[str, Any]) -> None:
        """Reemplaza el registro completo."""
        with self._editing() as data:
            data[str(record_id)] = record_data

    def delete(self, record_id: Any) -> Optional[Dict[str, Any]]:
        """Elimina un registro y lo devuelve (None si no existía)."""
        with self._file_lock:
            data = self._load()
            removed = data.pop(str(record_id), None)
            if removed is not None:
                self._dump(data)
        return removed


class DocumentRepository(DictRepository):
    """
    Colección de documentos con ID generado (uuid hex).

    Ofrece lo mínimo de una base documental: alta con ID automático,
    actualización parcial, altas/cambios/bajas en lote y consultas por
    igualdad o predicado.
    """

    @staticmethod
    def _free_id(data: Dict[str, Any], wanted: Optional[str] = None) -> str:
        doc_id = wanted or uuid.uuid4().hex
        while doc_id in data:
            doc_id = uuid.uuid4().hex
        return doc_id

    def list(self) -> List[Dict[str, Any]]:
        return list(self._load().values())

    def insert(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """
        Guarda un documento nuevo y lo devuelve con su 'id'.

        Los campos se guardan tal cual, incluidos los None.
        """
        with self._editing() as data:
            doc_id = self._free_id(data, document.get('id'))
            stored = {**document, 'id': doc_id}
            data[doc_id] = stored
        return stored

    def insert_many(self, documents: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        with self._editing() as data:
            stored_docs = []
            for document in documents:
                doc_id = self._free_id(data)
                data[doc_id] = {**document, 'id': doc_id}
                stored_docs.append(data[doc_id])
        return stored_docs

    def update_fields(self, record_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Actualización parcial; un valor None elimina el campo.

        Returns:
            Documento resultante, o None si el ID no existe (sin escribir)
        """
        with self._file_lock:
            data = self._load()
            current = data.get(str(record_id))
            if current is None:
                return None
            _merge(current, updates)
            self._dump(data)
        return current

    def update_many(self, updates_by_id: Dict[str, Dict[str, Any]]) -> int:
        """Varias actualizaciones parciales en una sola escritura."""
        with self._file_lock:
            data = self._load()
            touched = 0
            for record_id, updates in updates_by_id.items():
                if str(record_id) in data:
                    _merge(data[str(record_id)], updates)
                    touched += 1
            if touched:
                self._dump(data)
        return touched

    def delete_many(self, record_ids: Iterable[str]) -> int:
        with self._file_lock:
            data = self._load()
            removed = [rid for rid in map(str, record_ids) if data.pop(rid, None) is not None]
            if removed:
                self._dump(data)
        return len(removed)

    def find_all_by(self, field: str, value: Any) -> List[Dict[str, Any]]:
        return self.filter(lambda doc: doc.get(field) == value)

    def find_by(self, field: str, value: Any) -> Optional[Dict[str, Any]]:
        return next((doc for doc in self.list() if doc.get(field) == value), None)

    def filter(self, predicate: Callable[[Dict[str, Any]], bool]) -> List[Dict[str, Any]]:
        return [doc for doc in self.list() if predicate(doc)]

    def count(self) -> int:
        return len(self._load())


class ListRepository(BaseRepository):
    """Bitácoras guardadas como lista: [{...}, {...}]."""

    def _empty_data(self) -> List:
        return []

    def get_all(self) -> List[Dict[str, Any]]:
        return self._load()

    def append(self, record: Dict[str, Any]) -> None:
        with self._editing() as data:
            data.append(record)
