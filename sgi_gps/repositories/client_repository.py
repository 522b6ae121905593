# ==============================================================================
# REPOSITORIO DE CLIENTES
# ==============================================================================
# Encapsula todo el acceso a clients.json
# ==============================================================================

from typing import Any, Dict, List, Optional

from sgi_gps.repositories.base import DocumentRepository


class ClientRepository(DocumentRepository):
    """
    Repositorio de clientes.

    Formato de datos en clients.json:
    {
        "<id>": {
            "id": "<id>", "ownerId": "<userId>", "codTipoId": "C",
            "codIdSujeto": "0912345678", "nomSujeto": "Juan Pérez",
            "direccion": "...", "estado": "al dia", "usuario": "juan@mail.com",
            "pgpsId": "123"
        }
    }
    """

    FILE_NAME = 'clients.json'

    def get_by_owner(self, owner_id: str) -> List[Dict[str, Any]]:
        return self.find_all_by('ownerId', owner_id)

    def get_by_api_user(self, email: str) -> Optional[Dict[str, Any]]:
        """Busca el cliente que usa un correo de API (campo 'usuario')."""
        return self.find_by('usuario', email)
