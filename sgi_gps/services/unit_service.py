# ==============================================================================
# SERVICIO DE UNIDADES
# ==============================================================================
# Vehículos/dispositivos rastreados de cada cliente.
#
# REGLAS:
# - Modifican unidades: master, el dueño del cliente, o un analista cuyo
#   creador es el dueño
# - Al guardar se vincula automáticamente con el dispositivo de P. GPS que
#   tenga el mismo IMEI
# - Suspender/activar actualiza primero P. GPS; si falla, no se toca nada local
# - Eliminar una unidad elimina también sus pagos
# ==============================================================================

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sgi_gps.models import ContractType, PgpsDevice, PlanType, enum_values
from sgi_gps.models.entities import CONTRACT_ONLY_FIELDS
from sgi_gps.repositories.client_repository import ClientRepository
from sgi_gps.repositories.interfaces import IPaymentRepository, IUnitRepository, IUserRepository
from sgi_gps.services import access, billing, validation
from sgi_gps.services.audit_service import AuditService
from sgi_gps.services.notification_service import NotificationService
from sgi_gps.services.pgps_client import PgpsClient
from sgi_gps.services.validation import ValidationError

logger = logging.getLogger(__name__)


PLAN_TYPES = enum_values(PlanType)
CONTRACT_TYPES = enum_values(ContractType)

# Roles que pueden eliminar unidades en lote
BULK_DELETE_ROLES = frozenset([access.ROLE_MASTER, access.ROLE_MANAGER])

BULK_ITEMS_ERROR = 'Datos no válidos. Cada elemento debe ser un objeto con unitId y clientId.'


def bulk_items(items: Any) -> List[Tuple[str, str]]:
    """
    Normaliza la selección de una operación en lote a pares (unitId, clientId).

    Raises:
        ValidationError: Si la selección no es una lista de objetos
    """
    if items is None or items == '':
        return []
    if not isinstance(items, (list, tuple)):
        raise ValidationError(BULK_ITEMS_ERROR)
    pairs = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError(BULK_ITEMS_ERROR)
        pairs.append((validation.text(item, 'unitId'), validation.text(item, 'clientId')))
    return pairs


def clean_unit_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Valida y normaliza el formulario de una unidad.

    Returns:
        Diccionario con los campos tipados (puede contener None)

    Raises:
        ValidationError: Si algún campo es inválido
    """
    tipo_contrato = validation.choice(
        data, 'tipoContrato', CONTRACT_TYPES, 'Tipo de contrato no válido.'
    )
    cleaned = {
        'imei': validation.required_text(data, 'imei', 'IMEI es requerido.'),
        'placa': validation.required_text(data, 'placa', 'Placa es requerida.'),
        'modelo': validation.required_text(data, 'modelo', 'Modelo es requerido.'),
        'tipoPlan': validation.choice(data, 'tipoPlan', PLAN_TYPES, 'Tipo de plan no válido.'),
        'tipoContrato': tipo_contrato,
        'fechaInstalacion': validation.iso_date(data, 'fechaInstalacion', 'Fecha de instalación inválida.'),
        'fechaInicioContrato': validation.iso_date(
            data, 'fechaInicioContrato', 'Fecha de inicio de contrato es requerida.', required=True
        ),
        'fechaVencimiento': validation.iso_date(data, 'fechaVencimiento', 'Fecha de vencimiento inválida.'),
        'ultimoPago': validation.iso_date(data, 'ultimoPago', 'Fecha de último pago inválida.'),
        'fechaSiguientePago': validation.iso_date(data, 'fechaSiguientePago', 'Fecha de siguiente pago inválida.'),
        'diasCorte': validation.integer(data, 'diasCorte', 'Los días de corte deben ser un entero no negativo.', minimum=0),
        'estaSuspendido': validation.boolean(data, 'estaSuspendido') if 'estaSuspendido' in data else None,
        'observacion': validation.text(data, 'observacion'),
        'urlContrato': validation.text(data, 'urlContrato'),
    }

    if tipo_contrato == ContractType.CON_CONTRATO.value:
        cleaned['costoTotalContrato'] = validation.number(
            data, 'costoTotalContrato', 'El costo total del contrato debe ser positivo.', positive=True, required=True
        )
        cleaned['mesesContrato'] = validation.integer(
            data, 'mesesContrato', 'Los meses de contrato deben ser al menos 1.', minimum=1, required=True
        )
        cleaned['saldoContrato'] = validation.number(
            data, 'saldoContrato', 'El saldo del contrato debe ser un número.'
        )
        cleaned['numeroOperacion'] = validation.text(data, 'numeroOperacion')
        cleaned['costoMensual'] = None
    else:
        cleaned['costoMensual'] = validation.number(
            data, 'costoMensual', 'El costo mensual no puede ser negativo.', minimum=0, required=True
        )
        for key in CONTRACT_ONLY_FIELDS:
            cleaned[key] = None

    return cleaned


class UnitService:
    """
    Servicio de unidades.

    Responsabilidades:
    - CRUD de unidades con control de permisos por cartera
    - Vinculación e importación de dispositivos de P. GPS
    - Suspensión/reactivación (individual y en lote)
    - Resumen de estados de pago para el dashboard
    """

    def __init__(
        self,
        unit_repo: IUnitRepository,
        client_repo: ClientRepository,
        payment_repo: IPaymentRepository,
        user_repo: IUserRepository,
        pgps: PgpsClient,
        notification_service: NotificationService,
        audit_service: AuditService = None
    ):
        self.unit_repo = unit_repo
        self.client_repo = client_repo
        self.payment_repo = payment_repo
        self.user_repo = user_repo
        self.pgps = pgps
        self.notification_service = notification_service
        self.audit_service = audit_service

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def _with_device_status(self, unit: Dict[str, Any]) -> Dict[str, Any]:
        """Agrega pgpsDeviceActive si la unidad está vinculada (best effort)."""
        if unit.get('pgpsDeviceId'):
            active = self.pgps.is_device_active(unit['pgpsDeviceId'])
            if active is not None:
                unit['pgpsDeviceActive'] = active
        return unit

    def get_units_by_client(self, client_id: str) -> List[Dict[str, Any]]:
        return [self._with_device_status(unit) for unit in self.unit_repo.get_by_client(client_id)]

    def get_unit(self, client_id: str, unit_id: str) -> Optional[Dict[str, Any]]:
        unit = self.unit_repo.get_for_client(client_id, unit_id)
        return self._with_device_status(unit) if unit else None

    def get_all_units(self, user: Dict[str, Any], with_device_status: bool = True) -> List[Dict[str, Any]]:
        """
        Todas las unidades visibles para un usuario.

        Args:
            user: Usuario en sesión
            with_device_status: Consultar el estado en P. GPS de cada unidad

        Returns:
            Unidades enriquecidas con clientName, ownerId, ownerName y paymentStatus
        """
        clients = {c['id']: c for c in access.scoped_clients(user, self.client_repo)}
        if not clients:
            return []
        names = self.user_repo.get_name_map()
        today = billing.today_local()

        units = []
        for unit in self.unit_repo.get_by_clients(clients.keys()):
            client = clients[unit['clientId']]
            unit['clientName'] = client.get('nomSujeto')
            unit['ownerId'] = client.get('ownerId')
            unit['ownerName'] = names.get(client.get('ownerId')) or 'Propietario Desconocido'
            unit['paymentStatus'] = billing.payment_status(unit, today)
            if with_device_status:
                self._with_device_status(unit)
            units.append(unit)
        return units

    def dashboard_summary(self, user: Dict[str, Any]) -> Dict[str, Any]:
        """
        Conteos del panel principal.

        Returns:
            {'ok', 'total_units', 'total_clients', 'by_status': {...},
             'suspended', 'monthly_billing', 'overdue_amount'}
        """
        units = self.get_all_units(user, with_device_status=False)
        today = billing.today_local()
        by_status = {status: 0 for status in billing.PAYMENT_STATUSES}
        monthly_billing = 0.0
        overdue_total = 0.0
        for unit in units:
            by_status[unit['paymentStatus']] += 1
            if not unit.get('estaSuspendido'):
                monthly_billing += billing.monthly_cost(unit)
                overdue_total += billing.overdue_amount(unit, today)
        return {
            'ok': True,
            'total_units': len(units),
            'total_clients': len(access.scoped_clients(user, self.client_repo)),
            'by_status': by_status,
            'suspended': by_status[billing.STATUS_SUSPENDED],
            'monthly_billing': round(monthly_billing, 2),
            'overdue_amount': round(overdue_total, 2),
        }

    # =========================================================================
    # GUARDAR / ELIMINAR
    # =========================================================================

    def _link_device(self, client: Dict[str, Any], imei: str) -> Optional[str]:
        """ID del dispositivo de P. GPS con ese IMEI (None si no hay vínculo)."""
        if not client.get('pgpsId') or not imei:
            return None
        result = self.pgps.find_device_by_imei(client['pgpsId'], imei)
        if not result['ok']:
            logger.warning("No se pudo vincular la unidad %s con P. GPS: %s", imei, result.get('error'))
        return result.get('device_id')

    def save_unit(
        self,
        data: Dict[str, Any],
        client_id: str,
        user: Dict[str, Any],
        unit_id: str = None
    ) -> Dict[str, Any]:
        """
        Crea o edita una unidad de un cliente.

        Args:
            data: Formulario de la unidad
            client_id: ID del cliente dueño
            user: Usuario en sesión
            unit_id: ID a editar (None para crear)

        Returns:
            {'ok', 'message', 'unit'} o {'ok': False, 'error'}
        """
        if not user or user.get('role') not in access.CLIENT_EDITOR_ROLES:
            return {'ok': False, 'error': 'No tiene permiso para modificar unidades.'}

        client = self.client_repo.get_by_id(client_id)
        if not client:
            return {'ok': False, 'error': 'El cliente especificado no existe.'}
        if not access.can_edit_client_data(user, client):
            return {'ok': False, 'error': 'No tiene permiso para añadir/editar unidades para este cliente.'}

        try:
            cleaned = clean_unit_data(data)
        except ValidationError as e:
            return {'ok': False, 'error': f'Datos de unidad no válidos. {e}'}

        if unit_id and not self.unit_repo.get_for_client(client_id, unit_id):
            return {'ok': False, 'error': 'La unidad no fue encontrada.'}

        is_contract = cleaned['tipoContrato'] == ContractType.CON_CONTRATO.value
        cleared_keys = ['costoMensual'] if is_contract else list(CONTRACT_ONLY_FIELDS)

        try:
            cleaned['pgpsDeviceId'] = self._link_device(client, cleaned['imei'])

            # Los valores vacíos no se guardan
            values = {
                k: v for k, v in cleaned.items()
                if v is not None and v != '' and k not in cleared_keys
            }

            if unit_id:
                # update_fields elimina las claves con None
                updates = dict(values)
                for key in cleared_keys:
                    updates[key] = None
                if not cleaned['pgpsDeviceId']:
                    updates['pgpsDeviceId'] = None
                unit = self.unit_repo.update_fields(unit_id, updates)
            else:
                values.update({'clientId': client_id, 'ultimoPago': None})
                values.setdefault('estaSuspendido', False)
                if is_contract:
                    values['saldoContrato'] = cleaned['costoTotalContrato']
                unit = self.unit_repo.insert(values)
        except Exception as e:
            logger.exception("Error al guardar la unidad")
            return {'ok': False, 'error': f'Error al guardar la unidad: {e}'}

        if self.audit_service:
            self.audit_service.log_unit_saved(user.get('username'), unit['id'], unit.get('placa', ''), not unit_id)

        return {'ok': True, 'message': 'Unidad guardada con éxito.', 'unit': self._with_device_status(unit)}

    def delete_unit(self, unit_id: str, client_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
        if not user or user.get('role') not in access.CLIENT_EDITOR_ROLES:
            return {'ok': False, 'error': 'Acción no permitida.'}

        client = self.client_repo.get_by_id(client_id)
        if not client:
            return {'ok': False, 'error': 'El cliente especificado no existe.'}
        if not access.can_edit_client_data(user, client):
            return {'ok': False, 'error': 'No tiene permiso para eliminar unidades de este cliente.'}

        unit = self.unit_repo.get_for_client(client_id, unit_id)
        if not unit:
            return {'ok': False, 'error': 'La unidad no fue encontrada.'}

        try:
            self.payment_repo.delete_by_units([unit_id])
            self.unit_repo.delete(unit_id)
        except Exception as e:
            logger.exception("Error al eliminar la unidad %s", unit_id)
            return {'ok': False, 'error': f'Error al eliminar la unidad: {e}'}

        if self.audit_service:
            self.audit_service.log_unit_deleted(user.get('username'), unit_id, unit.get('placa', ''))
        return {'ok': True, 'message': 'Unidad eliminada con éxito.'}

    def bulk_delete_units(self, items: List[Dict[str, str]], user: Dict[str, Any]) -> Dict[str, Any]:
        """
        Elimina varias unidades en una sola escritura.

        Args:
            items: [{unitId, clientId}]
            user: Usuario en sesión (master o manager)
        """
        if not user or user.get('role') not in BULK_DELETE_ROLES:
            return {'ok': False, 'error': 'No tiene permiso para eliminar unidades.'}

        try:
            pairs = bulk_items(items)
        except ValidationError as e:
            return {'ok': False, 'error': str(e)}

        to_delete = []
        for unit_id, client_id in pairs:
            client = self.client_repo.get_by_id(client_id)
            if not access.can_edit_client_data(user, client):
                continue
            if self.unit_repo.get_for_client(client['id'], unit_id):
                to_delete.append(unit_id)

        if not to_delete:
            return {'ok': False, 'error': 'No se pudo eliminar ninguna de las unidades seleccionadas (verifique permisos).'}

        try:
            self.payment_repo.delete_by_units(to_delete)
            deleted = self.unit_repo.delete_many(to_delete)
        except Exception as e:
            logger.exception("Error en eliminación masiva de unidades")
            return {'ok': False, 'error': f'Ocurrió un error al eliminar las unidades: {e}'}

        return {'ok': True, 'message': f'{deleted} unidad(es) eliminada(s) con éxito.', 'deleted': deleted}

    def save_contract_url(self, client_id: str, unit_id: str, url: str, user: Dict[str, Any]) -> Dict[str, Any]:
        client = self.client_repo.get_by_id(client_id)
        if not access.can_edit_client_data(user, client):
            return {'ok': False, 'error': 'No tiene permiso para modificar unidades de este cliente.'}
        if url and not validation.is_url(url):
            return {'ok': False, 'error': 'Debe ser una URL válida.'}
        if not self.unit_repo.get_for_client(client_id, unit_id):
            return {'ok': False, 'error': 'La unidad no fue encontrada.'}
        self.unit_repo.update_fields(unit_id, {'urlContrato': url or None})
        return {'ok': True, 'message': 'URL del contrato actualizada.'}

    # =========================================================================
    # P. GPS
    # =========================================================================

    def import_pgps_devices(self, client_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
        """
        Crea unidades locales para los dispositivos de P. GPS del cliente
        que aún no existen (por IMEI).

        Returns:
            {'ok', 'message', 'imported_count'}
        """
        client = self.client_repo.get_by_id(client_id)
        if not client:
            return {'ok': False, 'error': 'El cliente especificado no existe.'}
        if not access.can_edit_client_data(user, client):
            return {'ok': False, 'error': 'No tiene permiso para añadir/editar unidades para este cliente.'}
        if not client.get('pgpsId'):
            return {'ok': False, 'error': 'El cliente no está vinculado con P. GPS.'}

        result = self.pgps.get_devices_by_client(client['pgpsId'])
        if not result['ok']:
            return {'ok': False, 'error': f"No se pudo obtener dispositivos de P. GPS: {result['error']}"}
        devices = [PgpsDevice.from_api(d) for d in result['devices']]
        if not devices:
            return {'ok': True, 'message': 'No hay nuevos dispositivos para importar desde P. GPS.', 'imported_count': 0}

        existing_imeis = {str(u.get('imei')) for u in self.unit_repo.get_by_client(client_id)}
        new_devices = [d for d in devices if d.imei not in existing_imeis]
        if not new_devices:
            return {'ok': True, 'message': 'Todas las unidades de P. GPS ya están sincronizadas.', 'imported_count': 0}

        now = datetime.now()
        today = now.date()
        next_month = billing.add_months(today, 1).isoformat()
        note = f"Importado automáticamente desde P. GPS el {now.strftime('%d/%m/%Y')}"

        try:
            self.unit_repo.insert_many(
                {
                    'clientId': client_id,
                    'pgpsDeviceId': device.id,
                    'estaSuspendido': False,
                    'imei': device.imei,
                    'placa': device.name,
                    'modelo': 'Importado desde P. GPS',
                    'tipoPlan': PlanType.ESTANDAR_SC.value,
                    'tipoContrato': ContractType.SIN_CONTRATO.value,
                    'costoMensual': 0,
                    'fechaInstalacion': today.isoformat(),
                    'fechaInicioContrato': today.isoformat(),
                    'fechaVencimiento': next_month,
                    'ultimoPago': None,
                    'fechaSiguientePago': next_month,
                    'diasCorte': 0,
                    'observacion': note,
                }
                for device in new_devices
            )
        except Exception as e:
            logger.exception("Error al importar dispositivos de P. GPS")
            return {'ok': False, 'error': f'Error al importar unidades: {e}'}

        count = len(new_devices)
        return {
            'ok': True,
            'message': f'{count} unidad(es) nueva(s) importada(s) con éxito.',
            'imported_count': count,
        }

    # =========================================================================
    # SUSPENSIÓN / REACTIVACIÓN
    # =========================================================================

    @staticmethod
    def _status_updates(suspend: bool) -> Dict[str, Any]:
        return {
            'estaSuspendido': suspend,
            'fechaSuspension': datetime.now().isoformat() if suspend else None,
        }

    def _notify_status(self, client_id: str, units: List[Dict[str, Any]], suspend: bool) -> None:
        """Notificación de suspensión/reactivación (no revierte el cambio si falla)."""
        event_type = 'service_suspended' if suspend else 'service_reactivated'
        try:
            result = self.notification_service.send_grouped_templated_message(event_type, client_id, units)
        except Exception:
            logger.exception("Error enviando notificación %s al cliente %s", event_type, client_id)
            return
        if not result['ok']:
            logger.warning("Notificación %s no enviada: %s", event_type, result.get('error'))

    def set_unit_status(self, unit_id: str, client_id: str, suspend: bool, user: Dict[str, Any]) -> Dict[str, Any]:
        """
        Suspende o reactiva una unidad.

        Si la unidad está vinculada, primero se cambia el estado en P. GPS;
        un fallo allí aborta la operación.
        """
        client = self.client_repo.get_by_id(client_id)
        if not client:
            return {'ok': False, 'error': 'El cliente no fue encontrado.'}
        if not access.can_edit_client_data(user, client):
            return {'ok': False, 'error': 'No tiene permiso para modificar unidades de este cliente.'}
        unit = self.unit_repo.get_for_client(client_id, unit_id)
        if not unit:
            return {'ok': False, 'error': 'La unidad no fue encontrada.'}

        if unit.get('pgpsDeviceId'):
            pgps_result = self.pgps.set_device_status(unit['pgpsDeviceId'], not suspend)
            if not pgps_result['ok']:
                return pgps_result

        updated = self.unit_repo.update_fields(unit_id, self._status_updates(suspend))

        if self.audit_service:
            self.audit_service.log_unit_status(user.get('username'), unit_id, unit.get('placa', ''), suspend)
        self._notify_status(client_id, [updated], suspend)

        action = 'suspendió' if suspend else 'activó'
        return {'ok': True, 'message': f'La unidad se {action} con éxito.'}

    def bulk_set_unit_status(self, items: List[Dict[str, str]], suspend: bool, user: Dict[str, Any]) -> Dict[str, Any]:
        """
        Suspende o reactiva varias unidades.

        Cada unidad se procesa por separado: un fallo en P. GPS (o falta de
        permisos) cuenta como fallo y no detiene al resto. Las notificaciones
        se agrupan por cliente.

        Returns:
            {'ok': failures == 0, 'message', 'failures'}
        """
        success_count = 0
        failure_count = 0
        updates: Dict[str, Dict[str, Any]] = {}
        by_client: Dict[str, List[Dict[str, Any]]] = OrderedDict()

        try:
            pairs = bulk_items(items)
        except ValidationError as e:
            return {'ok': False, 'error': str(e), 'failures': 0}

        for unit_id, client_id in pairs:
            client = self.client_repo.get_by_id(client_id)
            unit = self.unit_repo.get_for_client(client_id, unit_id) if client else None
            if not unit or not access.can_edit_client_data(user, client):
                failure_count += 1
                continue

            if unit.get('pgpsDeviceId'):
                pgps_result = self.pgps.set_device_status(unit['pgpsDeviceId'], not suspend)
                if not pgps_result['ok']:
                    failure_count += 1
                    continue

            status_updates = self._status_updates(suspend)
            updates[unit['id']] = status_updates
            unit.update(status_updates)
            by_client.setdefault(client['id'], []).append(unit)
            success_count += 1

        if updates:
            try:
                self.unit_repo.update_many(updates)
            except Exception:
                logger.exception("Error guardando el cambio de estado en lote")
                return {
                    'ok': False,
                    'error': 'Error al actualizar los datos locales, aunque algunos estados en P. GPS pueden haber cambiado.',
                    'failures': len(pairs),
                }

        for client_id, units in by_client.items():
            self._notify_status(client_id, units, suspend)

        action = 'suspendida(s)' if suspend else 'activada(s)'
        parts = []
        if success_count:
            parts.append(f'{success_count} unidad(es) {action} con éxito.')
        if failure_count:
            parts.append(f'{failure_count} unidad(es) no se pudieron actualizar.')
        message = ' '.join(parts) or 'No se seleccionaron unidades para actualizar.'

        result = {'ok': failure_count == 0, 'message': message, 'failures': failure_count}
        if failure_count:
            result['error'] = message
        return result
