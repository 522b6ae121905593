# ==============================================================================
# SERVICIO DE ÓRDENES (SOPORTE E INSTALACIÓN)
# ==============================================================================
# Las órdenes de soporte técnico y de instalación comparten el mismo flujo:
#
#   master   → ve, edita y elimina todas
#   manager  → crea órdenes propias; edita/elimina solo las suyas
#   tecnico  → ve las asignadas; al editar solo cambia estado/observación
#              (y en instalaciones terminadas, los datos de cierre)
#
# Al asignar un técnico nuevo se le envía un mensaje con el enlace a la orden
# usando la URL de notificaciones del dueño.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from sgi_gps import config
from sgi_gps.models import (
    InstallationCategory,
    InstallationPlan,
    InstallationStatus,
    PaymentMethod,
    Segment,
    VehicleType,
    WorkOrderPriority,
    WorkOrderStatus,
    enum_values,
)
from sgi_gps.repositories.interfaces import IUserRepository
from sgi_gps.repositories.order_repository import (
    InstallationOrderRepository,
    OrderRepository,
    WorkOrderRepository,
)
from sgi_gps.services import access, billing, validation
from sgi_gps.services.audit_service import AuditService
from sgi_gps.services.notification_service import NotificationService
from sgi_gps.services.validation import ValidationError

logger = logging.getLogger(__name__)


MONTH_NAMES_ES = ('enero', 'febrero', 'marzo', 'abril', 'mayo', 'junio', 'julio',
                  'agosto', 'septiembre', 'octubre', 'noviembre', 'diciembre')

ORDER_ROLES = frozenset([access.ROLE_MASTER, access.ROLE_MANAGER, access.ROLE_TECNICO])
ORDER_ADMIN_ROLES = frozenset([access.ROLE_MASTER, access.ROLE_MANAGER])


def long_date_es(value: Any) -> str:
    """'5 de enero de 2025' (vacío si la fecha no es válida)."""
    parsed = billing.parse_date(value)
    if parsed is None:
        return ''
    return f"{parsed.day} de {MONTH_NAMES_ES[parsed.month - 1]} de {parsed.year}"


def _maps_url(data: Dict[str, Any]) -> str:
    url = validation.text(data, 'ubicacionGoogleMaps')
    if url and not validation.is_url(url):
        raise ValidationError('Debe ser una URL válida de Google Maps.')
    return url


def _common_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Campos compartidos por ambos tipos de orden."""
    return {
        'tecnicoId': validation.text(data, 'tecnicoId'),
        'placaVehiculo': validation.required_text(data, 'placaVehiculo', 'La placa es requerida.'),
        'nombreCliente': validation.required_text(data, 'nombreCliente', 'El nombre del cliente es requerido.'),
        'ciudad': validation.required_text(data, 'ciudad', 'La ciudad es requerida.'),
        'ubicacionGoogleMaps': _maps_url(data),
        'numeroCliente': validation.required_text(data, 'numeroCliente', 'El número del cliente es requerido.'),
        'observacion': validation.text(data, 'observacion'),
        'fechaProgramada': validation.iso_date(
            data, 'fechaProgramada', 'La fecha programada es requerida.', required=True
        ),
        'horaProgramada': validation.text(data, 'horaProgramada'),
    }


class BaseOrderService:
    """
    Flujo común de órdenes.

    Las subclases definen el repositorio, los campos del formulario, los
    campos que puede tocar un técnico y el mensaje de asignación.
    """

    KIND = ''
    LABEL = ''
    NOT_FOUND = 'Orden no encontrada.'
    PATH = ''
    STATUSES = frozenset()

    def __init__(
        self,
        order_repo: OrderRepository,
        user_repo: IUserRepository,
        notification_service: NotificationService,
        audit_service: AuditService = None
    ):
        self.order_repo = order_repo
        self.user_repo = user_repo
        self.notification_service = notification_service
        self.audit_service = audit_service

    # --- Puntos de extensión -------------------------------------------------

    def clean(self, data: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def technician_fields(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'estado': validation.choice(data, 'estado', self.STATUSES, 'Estado no válido.'),
            'observacion': validation.text(data, 'observacion'),
        }

    def assignment_message(self, order: Dict[str, Any]) -> str:
        raise NotImplementedError

    def order_url(self, order_id: str) -> str:
        return f"{config.PUBLIC_URL}/{self.PATH}/{order_id}/edit"

    # --- Consultas -----------------------------------------------------------

    def list(self, user: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Órdenes visibles para el usuario con tecnicoNombre, de la fecha
        programada más reciente a la más antigua.
        """
        if not user:
            return []
        role = user.get('role')
        if role == access.ROLE_MASTER:
            orders = self.order_repo.list()
        elif role == access.ROLE_MANAGER:
            orders = self.order_repo.get_by_owner(user['id'])
        elif role == access.ROLE_TECNICO:
            orders = self.order_repo.get_by_technician(user['id'])
        else:
            return []

        technicians = {
            t['id']: t.get('nombre') or t.get('username')
            for t in self.user_repo.get_users_by_role(access.ROLE_TECNICO)
        }
        for order in orders:
            order['tecnicoNombre'] = technicians.get(order.get('tecnicoId'))
        return sorted(orders, key=lambda o: o.get('fechaProgramada') or '', reverse=True)

    def get(self, order_id: str) -> Optional[Dict[str, Any]]:
        return self.order_repo.get_by_id(order_id)

    def can_view(self, order: Optional[Dict[str, Any]], user: Dict[str, Any]) -> bool:
        if not order or not user:
            return False
        role = user.get('role')
        if role == access.ROLE_MASTER:
            return True
        if role == access.ROLE_MANAGER:
            return order.get('ownerId') == user.get('id')
        if role == access.ROLE_TECNICO:
            return order.get('tecnicoId') == user.get('id')
        return False

    # --- Guardar / eliminar --------------------------------------------------

    def save(self, data: Dict[str, Any], user: Dict[str, Any], order_id: str = None) -> Dict[str, Any]:
        """
        Crea o edita una orden.

        Args:
            data: Formulario de la orden
            user: Usuario en sesión
            order_id: ID a editar (None para crear)

        Returns:
            {'ok', 'message', 'order'} o {'ok': False, 'error'}
        """
        if not user or user.get('role') not in ORDER_ROLES:
            return {'ok': False, 'error': 'No tiene permiso para realizar esta acción.'}

        by_technician = bool(order_id) and user.get('role') == access.ROLE_TECNICO
        if not by_technician and user.get('role') not in ORDER_ADMIN_ROLES:
            return {'ok': False, 'error': 'No tiene permiso para crear o editar esta orden.'}

        try:
            values = self.technician_fields(data) if by_technician else self.clean(data)
        except ValidationError as e:
            return {'ok': False, 'error': f'Datos proporcionados no válidos. {e}'}

        existing = None
        if order_id:
            existing = self.order_repo.get_by_id(order_id)
            if not existing:
                return {'ok': False, 'error': 'Orden no encontrada.'}
            can_edit = (
                user.get('role') == access.ROLE_MASTER
                or (user.get('role') == access.ROLE_MANAGER and existing.get('ownerId') == user.get('id'))
                or (by_technician and existing.get('tecnicoId') == user.get('id'))
            )
            if not can_edit:
                return {'ok': False, 'error': 'No tiene permisos para editar esta orden.'}

        old_tecnico_id = existing.get('tecnicoId') if existing else None
        owner_id = (existing or {}).get('ownerId') or user['id']

        try:
            if existing:
                # Vacío → se elimina el campo
                order = self.order_repo.update_fields(
                    order_id, {k: (None if v == '' else v) for k, v in values.items()}
                )
            else:
                values = {k: v for k, v in values.items() if v is not None and v != ''}
                values['ownerId'] = owner_id
                order = self.order_repo.insert(values)
        except Exception as e:
            logger.exception("Error al guardar la orden de %s", self.KIND)
            return {'ok': False, 'error': f'Error al guardar la orden: {e}'}

        message = f"{self.LABEL} {'actualizada' if existing else 'creada'} con éxito."
        new_tecnico_id = values.get('tecnicoId')
        if new_tecnico_id and new_tecnico_id != old_tecnico_id:
            if self._notify_technician(order, new_tecnico_id, owner_id):
                message += ' Notificación enviada al técnico.'

        if self.audit_service:
            self.audit_service.log_order_saved(
                user.get('username'), self.KIND, order['id'],
                order.get('placaVehiculo', ''), order.get('estado', ''), not existing
            )
        return {'ok': True, 'message': message, 'order': order}

    def _notify_technician(self, order: Dict[str, Any], tecnico_id: str, owner_id: str) -> bool:
        """Avisa al técnico asignado (best effort). Retorna True si se intentó el envío."""
        tecnico = self.user_repo.get_by_id(tecnico_id)
        if not tecnico or not tecnico.get('telefono'):
            return False
        notification_url = self.notification_service.get_notification_url_for_user(owner_id)
        if not notification_url:
            return False
        try:
            self.notification_service.send_notification_message(
                tecnico['telefono'],
                self.assignment_message(order),
                notification_url,
                {'ownerId': owner_id, 'clientId': 'N/A', 'clientName': order.get('nombreCliente', '')},
            )
        except Exception:
            logger.exception("Error al notificar al técnico %s", tecnico_id)
            return False
        return True

    def delete(self, order_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
        """Elimina una orden (master o su dueño)."""
        if not user:
            return {'ok': False, 'error': 'Acción no permitida.'}

        order = self.order_repo.get_by_id(order_id)
        if not order:
            return {'ok': False, 'error': self.NOT_FOUND}
        if user.get('role') != access.ROLE_MASTER and order.get('ownerId') != user.get('id'):
            return {'ok': False, 'error': 'No tiene permiso para eliminar esta orden.'}

        try:
            self.order_repo.delete(order_id)
        except Exception:
            logger.exception("Error al eliminar la orden %s", order_id)
            return {'ok': False, 'error': f'Error al eliminar la {self.LABEL.lower()}.'}

        if self.audit_service:
            self.audit_service.log_order_deleted(user.get('username'), self.KIND, order_id)
        return {'ok': True, 'message': f'{self.LABEL} eliminada con éxito.'}


class WorkOrderService(BaseOrderService):
    """Órdenes de soporte técnico."""

    KIND = 'soporte'
    LABEL = 'Orden de trabajo'
    NOT_FOUND = 'Orden de trabajo no encontrada.'
    PATH = 'work-orders'
    STATUSES = enum_values(WorkOrderStatus)

    def __init__(
        self,
        order_repo: WorkOrderRepository,
        user_repo: IUserRepository,
        notification_service: NotificationService,
        audit_service: AuditService = None
    ):
        super().__init__(order_repo, user_repo, notification_service, audit_service)

    def clean(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = _common_fields(data)
        values['prioridad'] = validation.choice(
            data, 'prioridad', enum_values(WorkOrderPriority), 'Prioridad no válida.'
        )
        values['descripcion'] = validation.required_text(data, 'descripcion', 'La descripción es requerida.')
        values['estado'] = validation.choice(data, 'estado', self.STATUSES, 'Estado no válido.', required=False) \
            or WorkOrderStatus.PENDIENTE.value
        return values

    def assignment_message(self, order: Dict[str, Any]) -> str:
        fecha = f"{long_date_es(order.get('fechaProgramada'))} {order.get('horaProgramada') or ''}".strip()
        return (
            "*Nueva orden de soporte asignada:*\n"
            f"- *Cliente:* {order.get('nombreCliente', '')}\n"
            f"- *Placa:* {order.get('placaVehiculo', '')}\n"
            f"- *Ciudad:* {order.get('ciudad', '')}\n"
            f"- *Fecha:* {fecha}\n\n"
            "*Ver detalles aquí:*\n"
            f"{self.order_url(order['id'])}"
        )


class InstallationOrderService(BaseOrderService):
    """Órdenes de instalación de dispositivos."""

    KIND = 'instalación'
    LABEL = 'Orden de instalación'
    NOT_FOUND = 'Orden de instalación no encontrada.'
    PATH = 'installations'
    STATUSES = enum_values(InstallationStatus)

    def __init__(
        self,
        order_repo: InstallationOrderRepository,
        user_repo: IUserRepository,
        notification_service: NotificationService,
        audit_service: AuditService = None
    ):
        super().__init__(order_repo, user_repo, notification_service, audit_service)

    @staticmethod
    def _payment_fields(data: Dict[str, Any], estado: str) -> Dict[str, Any]:
        """metodoPago (obligatorio al terminar) y montoEfectivo solo en efectivo."""
        metodo = validation.choice(
            data, 'metodoPago', enum_values(PaymentMethod),
            'Debe seleccionar un método de pago al completar la orden.',
            required=(estado == InstallationStatus.TERMINADO.value),
        )
        monto = None
        if metodo == PaymentMethod.EFECTIVO.value:
            monto = validation.number(data, 'montoEfectivo', 'El monto en efectivo no puede ser negativo.', minimum=0)
        return {'metodoPago': metodo, 'montoEfectivo': monto}

    @staticmethod
    def _closing_fields(data: Dict[str, Any]) -> Dict[str, Any]:
        corte = validation.boolean(data, 'corteDeMotor')
        return {
            'corteDeMotor': corte,
            'lugarCorteMotor': validation.text(data, 'lugarCorteMotor') if corte else None,
            'instalacionAccesorios': validation.boolean(data, 'instalacionAccesorios'),
            'accesorioBotonPanico': validation.boolean(data, 'accesorioBotonPanico'),
            'accesorioAperturaSeguro': validation.boolean(data, 'accesorioAperturaSeguro'),
        }

    def clean(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = _common_fields(data)
        values['tipoPlan'] = validation.choice(data, 'tipoPlan', enum_values(InstallationPlan), 'Plan no válido.')
        values['categoriaInstalacion'] = validation.choice(
            data, 'categoriaInstalacion', enum_values(InstallationCategory), 'Categoría no válida.'
        )
        values['tipoVehiculo'] = validation.choice(
            data, 'tipoVehiculo', enum_values(VehicleType), 'Tipo de vehículo no válido.'
        )
        values['segmento'] = validation.choice(data, 'segmento', enum_values(Segment), 'Segmento no válido.')
        values['estado'] = validation.choice(data, 'estado', self.STATUSES, 'Estado no válido.', required=False) \
            or InstallationStatus.PENDIENTE.value
        values.update(self._payment_fields(data, values['estado']))
        return values

    def technician_fields(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = super().technician_fields(data)
        if values['estado'] == InstallationStatus.TERMINADO.value:
            values.update(self._payment_fields(data, values['estado']))
            values.update(self._closing_fields(data))
        return values

    def assignment_message(self, order: Dict[str, Any]) -> str:
        fecha = f"{long_date_es(order.get('fechaProgramada'))} {order.get('horaProgramada') or ''}".strip()
        return (
            "*Nueva orden de instalación asignada:*\n"
            f"- *Cliente:* {order.get('nombreCliente', '')}\n"
            f"- *Número del cliente:* {order.get('numeroCliente', '')}\n"
            f"- *Placa:* {order.get('placaVehiculo', '')}\n"
            f"- *Ciudad:* {order.get('ciudad', '')}\n"
            f"- *Fecha:* {fecha}\n"
            f"- *Plan a instalar:* {order.get('tipoPlan', '')}\n"
            f"- *Tipo de vehículo:* {order.get('tipoVehiculo', '')}\n"
            f"- *Ubicación:* {order.get('ubicacionGoogleMaps') or 'No especificada'}\n\n"
            "*Ver detalles aquí:*\n"
            f"{self.order_url(order['id'])}"
        )
