# ==============================================================================
# SERVICIO DE CLIENTES
# ==============================================================================
# Cartera de clientes de cada manager.
#
# REGLAS:
# - Master ve todos los clientes; un analista ve los de su creador; el resto
#   solo los propios
# - El dueño de un cliente nuevo es el usuario, o su creador si es analista
# - 'usuario' (correo de API) es único y se usa para vincular con P. GPS
# - Eliminar un cliente elimina sus unidades y sus pagos
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from sgi_gps.models import ClientStatus, IdType, enum_values
from sgi_gps.repositories.client_repository import ClientRepository
from sgi_gps.repositories.interfaces import IPaymentRepository, IUnitRepository, IUserRepository
from sgi_gps.services import access, validation
from sgi_gps.services.audit_service import AuditService
from sgi_gps.services.pgps_client import PgpsClient
from sgi_gps.services.validation import ValidationError

logger = logging.getLogger(__name__)


ID_TYPES = enum_values(IdType)
CLIENT_STATUSES = enum_values(ClientStatus)


def clean_client_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Valida y normaliza el formulario de un cliente.

    Raises:
        ValidationError: Si algún campo es inválido
    """
    return {
        'codTipoId': validation.choice(data, 'codTipoId', ID_TYPES, 'Tipo de ID es requerido.'),
        'codIdSujeto': validation.required_text(data, 'codIdSujeto', 'Cédula o RUC es requerido.'),
        'nomSujeto': validation.required_text(data, 'nomSujeto', 'Nombre es requerido.'),
        'direccion': validation.required_text(data, 'direccion', 'Dirección es requerida.'),
        'ciudad': validation.text(data, 'ciudad'),
        'telefono': validation.text(data, 'telefono'),
        'numOperacion': validation.text(data, 'numOperacion'),
        'fecConcesion': validation.iso_date(data, 'fecConcesion', 'Fecha de concesión inválida.'),
        'valOperacion': validation.number(
            data, 'valOperacion', 'El valor de operación debe ser positivo.', positive=True
        ),
        'valorPago': validation.number(
            data, 'valorPago', 'El valor de pago no puede ser negativo.', minimum=0
        ),
        'fecVencimiento': validation.iso_date(data, 'fecVencimiento', 'Fecha de vencimiento inválida.'),
        'valorVencido': validation.number(
            data, 'valorVencido', 'El valor vencido no puede ser negativo.', minimum=0
        ),
        'usuario': validation.text(data, 'usuario').lower(),
        'estado': validation.choice(data, 'estado', CLIENT_STATUSES, 'Estado no válido.'),
    }


class ClientService:
    """Gestión de clientes con alcance por rol."""

    def __init__(
        self,
        client_repo: ClientRepository,
        unit_repo: IUnitRepository,
        payment_repo: IPaymentRepository,
        user_repo: IUserRepository,
        pgps: PgpsClient,
        audit_service: AuditService = None
    ):
        self.client_repo = client_repo
        self.unit_repo = unit_repo
        self.payment_repo = payment_repo
        self.user_repo = user_repo
        self.pgps = pgps
        self.audit_service = audit_service

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def list_clients(self, user: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Clientes visibles para el usuario, ordenados por nombre.
        Para master se agrega ownerName.
        """
        clients = access.scoped_clients(user, self.client_repo)
        if access.is_master(user):
            names = self.user_repo.get_name_map()
            for client in clients:
                client['ownerName'] = names.get(client.get('ownerId')) or 'N/A'
        return sorted(clients, key=lambda c: (c.get('nomSujeto') or '').lower())

    def get_client(self, client_id: str, user: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Cliente por ID o None si no existe o está fuera del alcance del usuario."""
        client = self.client_repo.get_by_id(client_id)
        if not access.can_access_client(user, client):
            return None
        return client

    # =========================================================================
    # GUARDAR / ELIMINAR
    # =========================================================================

    def save_client(
        self,
        data: Dict[str, Any],
        user: Dict[str, Any],
        client_id: str = None
    ) -> Dict[str, Any]:
        """
        Crea o edita un cliente.

        Args:
            data: Formulario del cliente
            user: Usuario en sesión
            client_id: ID a editar (None para crear)

        Returns:
            {'ok', 'message', 'client'} o {'ok': False, 'error'}
        """
        if not user:
            return {'ok': False, 'error': 'No se pudo identificar al usuario.'}
        if user.get('role') not in access.CLIENT_EDITOR_ROLES:
            return {'ok': False, 'error': 'No tiene permiso para guardar clientes.'}

        owner_id = access.scope_owner_id(user)
        if not owner_id:
            return {'ok': False, 'error': 'No se pudo determinar el propietario del cliente.'}

        try:
            values = clean_client_data(data)
        except ValidationError as e:
            return {'ok': False, 'error': f'Datos proporcionados no válidos. {e}'}

        existing = None
        if client_id:
            existing = self.client_repo.get_by_id(client_id)
            if not existing:
                return {'ok': False, 'error': 'Cliente no encontrado.'}
            if not access.can_access_client(user, existing):
                return {'ok': False, 'error': 'No tiene permiso para editar este cliente.'}

        link_message = ''
        api_email = values['usuario']
        if api_email:
            duplicate = self.client_repo.get_by_api_user(api_email)
            if duplicate and duplicate['id'] != client_id:
                return {'ok': False, 'error': 'El Usuario (API) ya está en uso por otro cliente.'}

            match = self.pgps.find_client_by_email(api_email)
            if not match['ok']:
                return {'ok': False, 'error': f"No se pudo guardar: {match['error']}"}
            if match['pgps_id']:
                values['pgpsId'] = match['pgps_id']
                link_message = 'Cliente vinculado a P. GPS exitosamente.'
            else:
                values['pgpsId'] = None
                link_message = 'No se encontró un cliente coincidente en P. GPS para vincular.'
        else:
            values['pgpsId'] = None

        try:
            if existing:
                # Los campos vacíos se eliminan del documento
                client = self.client_repo.update_fields(
                    client_id, {k: (v if v != '' else None) for k, v in values.items()}
                )
            else:
                values = {k: v for k, v in values.items() if v is not None and v != ''}
                values['ownerId'] = owner_id
                client = self.client_repo.insert(values)
        except Exception as e:
            logger.exception("Error al guardar el cliente")
            return {'ok': False, 'error': f'Error al guardar el cliente: {e}'}

        if self.audit_service:
            self.audit_service.log_client_saved(user.get('username'), client['id'], client.get('nomSujeto', ''), not existing)

        base = f"Cliente {'actualizado' if existing else 'creado'} con éxito."
        return {'ok': True, 'message': f'{base} {link_message}'.strip(), 'client': client}

    def delete_client(self, client_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
        """Elimina un cliente junto con sus unidades y pagos."""
        if not user:
            return {'ok': False, 'error': 'Acción no permitida.'}

        client = self.client_repo.get_by_id(client_id)
        if not client:
            return {'ok': False, 'error': 'Cliente no encontrado.'}
        if not access.can_access_client(user, client):
            return {'ok': False, 'error': 'No tiene permiso para eliminar este cliente.'}

        try:
            unit_ids = [u['id'] for u in self.unit_repo.get_by_client(client_id)]
            self.payment_repo.delete_by_units(unit_ids)
            self.unit_repo.delete_many(unit_ids)
            self.client_repo.delete(client_id)
        except Exception:
            logger.exception("Error al eliminar el cliente %s", client_id)
            return {'ok': False, 'error': 'Error al eliminar el cliente.'}

        if self.audit_service:
            self.audit_service.log_client_deleted(user.get('username'), client_id, client.get('nomSujeto', ''), len(unit_ids))
        return {'ok': True, 'message': 'Cliente y todas sus unidades eliminados con éxito.'}
