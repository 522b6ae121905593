# ==============================================================================
# REPOSITORIO DE PLANTILLAS DE MENSAJE
# ==============================================================================
# Encapsula todo el acceso a message_templates.json
# Conviven plantillas globales (isGlobal=True) y personales (ownerId=<user>).
# ==============================================================================

from typing import Any, Dict, List

from sgi_gps.repositories.base import DocumentRepository


class TemplateRepository(DocumentRepository):
    """Repositorio de plantillas de mensajes por evento."""

    FILE_NAME = 'message_templates.json'

    def get_global(self) -> List[Dict[str, Any]]:
        return self.filter(lambda t: t.get('isGlobal') is True)

    def has_global(self) -> bool:
        return any(t.get('isGlobal') is True for t in self.list())

    def get_personal(self, owner_id: str) -> List[Dict[str, Any]]:
        return self.filter(lambda t: not t.get('isGlobal') and t.get('ownerId') == owner_id)
