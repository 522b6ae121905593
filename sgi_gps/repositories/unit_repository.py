# ==============================================================================
# REPOSITORIO DE UNIDADES
# ==============================================================================
# Encapsula todo el acceso a units.json
# Cada unidad referencia a su cliente mediante 'clientId'.
# ==============================================================================

from typing import Any, Dict, Iterable, List, Optional

from sgi_gps.repositories.base import DocumentRepository


class UnitRepository(DocumentRepository):
    """
    Repositorio de unidades (vehículos rastreados).

    Formato de datos en units.json:
    {
        "<id>": {
            "id": "<id>", "clientId": "<clientId>", "imei": "86...",
            "placa": "ABC-1234", "tipoContrato": "sin_contrato",
            "costoMensual": 15.0, "fechaSiguientePago": "2025-02-10", ...
        }
    }
    """

    FILE_NAME = 'units.json'

    def get_by_client(self, client_id: str) -> List[Dict[str, Any]]:
        return self.find_all_by('clientId', client_id)

    def get_for_client(self, client_id: str, unit_id: str) -> Optional[Dict[str, Any]]:
        """Obtiene una unidad solo si pertenece al cliente indicado."""
        unit = self.get_by_id(unit_id)
        if unit and unit.get('clientId') == client_id:
            return unit
        return None

    def get_by_clients(self, client_ids: Iterable[str]) -> List[Dict[str, Any]]:
        ids = set(client_ids)
        return self.filter(lambda unit: unit.get('clientId') in ids)
