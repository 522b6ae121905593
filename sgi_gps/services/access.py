# ==============================================================================
# REGLAS DE ACCESO POR ROL
# ==============================================================================
# Alcance de datos compartido por clientes, unidades, pagos y recordatorios:
#
#   master   → todo
#   manager  → su propia cartera (ownerId == su id)
#   analista → la cartera de su creador (creatorId)
#   otros    → su propia cartera
# ==============================================================================

from typing import Any, Dict, List, Optional

from sgi_gps.repositories.client_repository import ClientRepository

ROLE_MASTER = 'master'
ROLE_MANAGER = 'manager'
ROLE_ANALISTA = 'analista'
ROLE_USUARIO = 'usuario'
ROLE_TECNICO = 'tecnico'

VALID_ROLES = frozenset([ROLE_MASTER, ROLE_MANAGER, ROLE_ANALISTA, ROLE_USUARIO, ROLE_TECNICO])

# Roles que pueden crear/editar clientes y unidades
CLIENT_EDITOR_ROLES = frozenset([ROLE_MASTER, ROLE_MANAGER, ROLE_ANALISTA])


def is_master(user: Optional[Dict[str, Any]]) -> bool:
    return bool(user) and user.get('role') == ROLE_MASTER


def scope_owner_id(user: Dict[str, Any]) -> Optional[str]:
    """Dueño de la cartera visible para un usuario."""
    if user.get('role') == ROLE_ANALISTA:
        return user.get('creatorId')
    return user.get('id')


def scoped_clients(user: Dict[str, Any], client_repo: ClientRepository) -> List[Dict[str, Any]]:
    """Clientes visibles para un usuario."""
    if is_master(user):
        return client_repo.list()
    owner_id = scope_owner_id(user)
    if not owner_id:
        return []
    return client_repo.get_by_owner(owner_id)


def can_access_client(user: Dict[str, Any], client: Optional[Dict[str, Any]]) -> bool:
    if not client:
        return False
    if is_master(user):
        return True
    return client.get('ownerId') is not None and client.get('ownerId') == scope_owner_id(user)


def can_edit_client_data(user: Dict[str, Any], client: Optional[Dict[str, Any]]) -> bool:
    """
    Permiso para modificar unidades/pagos de un cliente.

    Master, el dueño del cliente, o un analista cuyo creador es el dueño.
    """
    if not client or user.get('role') not in CLIENT_EDITOR_ROLES:
        return False
    if is_master(user):
        return True
    owner_id = client.get('ownerId')
    if owner_id == user.get('id'):
        return True
    return user.get('role') == ROLE_ANALISTA and bool(owner_id) and user.get('creatorId') == owner_id
