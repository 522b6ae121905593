# ==============================================================================
# REPOSITORIO DE PAGOS
# ==============================================================================
# Encapsula todo el acceso a payments.json
# Cada pago referencia a su unidad ('unitId') y a su cliente ('clientId').
# ==============================================================================

from typing import Any, Dict, Iterable, List, Optional

from sgi_gps.repositories.base import DocumentRepository


class PaymentRepository(DocumentRepository):
    """
    Repositorio de pagos.

    Formato de datos en payments.json:
    {
        "<id>": {
            "id": "<id>", "unitId": "...", "clientId": "...", "ownerId": "...",
            "fechaPago": "2025-01-10", "numeroFactura": "001-001-000123",
            "monto": 30.0, "formaPago": "efectivo", "mesesPagados": 2
        }
    }
    """

    FILE_NAME = 'payments.json'

    def get_by_unit(self, unit_id: str) -> List[Dict[str, Any]]:
        return self.find_all_by('unitId', unit_id)

    def get_by_clients(self, client_ids: Iterable[str]) -> List[Dict[str, Any]]:
        ids = set(client_ids)
        return self.filter(lambda payment: payment.get('clientId') in ids)

    def get_latest_for_unit(self, unit_id: str, exclude_id: str = None) -> Optional[Dict[str, Any]]:
        """
        Pago más reciente (por fechaPago) de una unidad.

        Args:
            unit_id: ID de la unidad
            exclude_id: ID de pago a ignorar (el que se está eliminando)
        """
        payments = [
            p for p in self.get_by_unit(unit_id)
            if p.get('id') != exclude_id and p.get('fechaPago')
        ]
        if not payments:
            return None
        return max(payments, key=lambda p: p['fechaPago'])

    def delete_by_units(self, unit_ids: Iterable[str]) -> int:
        ids = set(unit_ids)
        to_delete = [p['id'] for p in self.filter(lambda p: p.get('unitId') in ids)]
        return self.delete_many(to_delete)
