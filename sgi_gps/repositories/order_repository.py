# ==============================================================================
# REPOSITORIOS DE ÓRDENES (SOPORTE E INSTALACIÓN)
# ==============================================================================
# work_orders.json         -> órdenes de soporte técnico
# installation_orders.json -> órdenes de instalación de dispositivos
# ==============================================================================

from typing import Any, Dict, List

from sgi_gps.repositories.base import DocumentRepository


class OrderRepository(DocumentRepository):
    """Consultas comunes a ambos tipos de orden."""

    def get_by_owner(self, owner_id: str) -> List[Dict[str, Any]]:
        return self.find_all_by('ownerId', owner_id)

    def get_by_technician(self, tecnico_id: str) -> List[Dict[str, Any]]:
        return self.find_all_by('tecnicoId', tecnico_id)


class WorkOrderRepository(OrderRepository):
    FILE_NAME = 'work_orders.json'


class InstallationOrderRepository(OrderRepository):
    FILE_NAME = 'installation_orders.json'
