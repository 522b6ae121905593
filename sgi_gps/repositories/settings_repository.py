# ==============================================================================
# REPOSITORIO DE CONFIGURACIONES
# ==============================================================================
# Encapsula todo el acceso a settings.json
# Cada clave de primer nivel es un "documento" de configuración:
#   {"integrations": {"wox": {"url": ..., "user": ..., "apiKey": ...}}}
# ==============================================================================

from typing import Any, Dict, Optional

from sgi_gps.repositories.base import DictRepository


class SettingsRepository(DictRepository):
    """Repositorio de configuraciones globales del sistema."""

    FILE_NAME = 'settings.json'

    INTEGRATIONS_DOC = 'integrations'

    def get_document(self, doc_id: str) -> Dict[str, Any]:
        """
        Obtiene un documento de configuración.

        Returns:
            Diccionario (vacío si no existe)
        """
        return self.get_by_id(doc_id) or {}

    def merge_document(self, doc_id: str, values: Dict[str, Any]) -> None:
        """
        Fusiona valores en un documento de configuración (setDoc con merge).

        Args:
            doc_id: ID del documento
            values: Claves a sobrescribir
        """
        with self._file_lock:
            document = self.get_document(doc_id)
            document.update(values)
            self.update(doc_id, document)

    def get_integration(self, key: str) -> Optional[Dict[str, Any]]:
        """Configuración de una integración (ej: 'wox' para P. GPS)."""
        return self.get_document(self.INTEGRATIONS_DOC).get(key)

    def set_integration(self, key: str, values: Dict[str, Any]) -> None:
        self.merge_document(self.INTEGRATIONS_DOC, {key: values})
