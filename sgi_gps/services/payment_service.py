# ==============================================================================
# SERVICIO DE PAGOS
# ==============================================================================
# Centraliza toda la lógica de negocio relacionada con pagos de unidades.
#
# Un pago cubre N meses de una o varias unidades del mismo cliente: se guarda
# un registro por unidad y cada unidad avanza su ciclo de cobro. Eliminar un
# pago revierte ese avance.
# ==============================================================================

import logging
from typing import Any, Dict, List

from sgi_gps.models import Payment, PaymentMethod, enum_values
from sgi_gps.performance_logger import profile_function
from sgi_gps.repositories.client_repository import ClientRepository
from sgi_gps.repositories.interfaces import IPaymentRepository, IUnitRepository, IUserRepository
from sgi_gps.services import access, billing, validation
from sgi_gps.services.audit_service import AuditService
from sgi_gps.services.notification_service import NotificationService
from sgi_gps.services.validation import ValidationError

logger = logging.getLogger(__name__)


PAYMENT_METHODS = enum_values(PaymentMethod)

MAX_MONTHS = 120


def clean_payment_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Valida el formulario de pago.

    Raises:
        ValidationError: Si algún campo es inválido
    """
    return {
        'fechaPago': validation.iso_date(data, 'fechaPago', 'La fecha de pago es requerida.', required=True),
        'numeroFactura': validation.required_text(data, 'numeroFactura', 'El número de factura es requerido.'),
        'formaPago': validation.choice(data, 'formaPago', PAYMENT_METHODS, 'Forma de pago no válida.'),
        'mesesPagados': validation.integer(
            data, 'mesesPagados', f'Debe pagar al menos un mes y como máximo {MAX_MONTHS}.',
            minimum=1, maximum=MAX_MONTHS, required=True,
        ),
    }


class PaymentService:
    """
    Servicio para gestión de pagos.

    Responsabilidades:
    - Registrar pagos (uno por unidad) y avanzar el ciclo de cobro
    - Revertir el ciclo al eliminar un pago
    - Historial de pagos por cartera
    - Registrar pagos en auditoría
    """

    def __init__(
        self,
        payment_repo: IPaymentRepository,
        unit_repo: IUnitRepository,
        client_repo: ClientRepository,
        user_repo: IUserRepository,
        notification_service: NotificationService,
        audit_service: AuditService = None
    ):
        self.payment_repo = payment_repo
        self.unit_repo = unit_repo
        self.client_repo = client_repo
        self.user_repo = user_repo
        self.notification_service = notification_service
        self.audit_service = audit_service

    # =========================================================================
    # REGISTRAR
    # =========================================================================

    @profile_function(name='register_payment')
    def register_payment(
        self,
        data: Dict[str, Any],
        unit_ids: Any,
        client_id: Any,
        user: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Registra un pago de N meses para varias unidades de un cliente.

        Args:
            data: {fechaPago, numeroFactura, formaPago, mesesPagados}
            unit_ids: IDs de las unidades pagadas (se depuran duplicados)
            client_id: ID del cliente
            user: Usuario que registra

        Returns:
            {'ok', 'message', 'units', 'payments'} o {'ok': False, 'error'}
        """
        try:
            values = clean_payment_data(data)
        except ValidationError as e:
            return {'ok': False, 'error': f'Datos de pago no válidos. {e}'}

        client_id = client_id.strip() if isinstance(client_id, str) else ''
        if not client_id:
            return {'ok': False, 'error': "El 'clientId' es inválido o no fue proporcionado."}

        ids = []
        for unit_id in unit_ids if isinstance(unit_ids, (list, tuple)) else []:
            unit_id = unit_id.strip() if isinstance(unit_id, str) else ''
            if unit_id and unit_id not in ids:
                ids.append(unit_id)
        if not ids:
            return {'ok': False, 'error': 'No se seleccionó ninguna unidad válida.'}

        client = self.client_repo.get_by_id(client_id)
        if not client:
            return {'ok': False, 'error': 'El cliente asociado al pago no fue encontrado.'}
        if not access.can_edit_client_data(user, client):
            return {'ok': False, 'error': 'No tiene permiso para registrar pagos de este cliente.'}

        units = []
        for unit_id in ids:
            unit = self.unit_repo.get_for_client(client_id, unit_id)
            if not unit:
                return {'ok': False, 'error': f'Error al registrar el pago: La unidad con ID {unit_id} no fue encontrada.'}
            if billing.parse_date(unit.get('fechaInicioContrato')) is None:
                return {
                    'ok': False,
                    'error': (
                        f"Error al registrar el pago: La unidad con placa {unit.get('placa')} "
                        f"tiene una fecha de inicio de contrato inválida."
                    ),
                }
            units.append(unit)

        fecha_pago = billing.parse_date(values['fechaPago'])
        meses = values['mesesPagados']

        unit_updates = {}
        payments = []
        updated_units = []
        for unit in units:
            try:
                updates, amount = billing.apply_payment(unit, fecha_pago, meses)
            except (ValueError, OverflowError):
                logger.warning("Fechas fuera de rango al pagar la unidad %s", unit['id'])
                return {
                    'ok': False,
                    'error': f"Error al registrar el pago: las fechas de la unidad {unit.get('placa')} quedan fuera de rango.",
                }
            unit_updates[unit['id']] = updates
            updated_units.append({**unit, **updates})
            payments.append(Payment(
                unit_id=unit['id'],
                client_id=client_id,
                client_name=client.get('nomSujeto', ''),
                unit_placa=unit.get('placa', ''),
                fecha_pago=values['fechaPago'],
                numero_factura=values['numeroFactura'],
                monto=amount,
                forma_pago=values['formaPago'],
                meses_pagados=meses,
                owner_id=client.get('ownerId'),
            ).to_dict())

        try:
            for payment in payments:
                payment.pop('id', None)
            self.unit_repo.update_many(unit_updates)
            stored = self.payment_repo.insert_many(payments)
        except Exception as e:
            logger.exception("Error al registrar el pago del cliente %s", client_id)
            return {'ok': False, 'error': f'Error al registrar el pago: {e}'}

        if self.audit_service:
            self.audit_service.log_payment(
                user=user.get('username'),
                client_id=client_id,
                client_name=client.get('nomSujeto', ''),
                amount=round(sum(p['monto'] for p in stored), 2),
                method=values['formaPago'],
                units=[u.get('placa', '') for u in units],
                months=meses,
            )

        # La notificación nunca revierte el pago
        try:
            notice = self.notification_service.send_grouped_templated_message(
                'payment_received', client_id, updated_units
            )
            if not notice.get('ok'):
                logger.warning("Notificación de pago no enviada: %s", notice.get('error'))
        except Exception:
            logger.exception("Error al notificar el pago del cliente %s", client_id)

        return {
            'ok': True,
            'message': f'{len(stored)} pago(s) registrado(s) con éxito.',
            'units': updated_units,
            'payments': stored,
        }

    # =========================================================================
    # HISTORIAL
    # =========================================================================

    def get_payment_history(self, user: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Pagos de los clientes visibles para el usuario, del más reciente
        al más antiguo.
        """
        if not user:
            return []
        clients = {c['id']: c for c in access.scoped_clients(user, self.client_repo)}
        if not clients:
            return []
        units = {u['id']: u for u in self.unit_repo.get_by_clients(clients.keys())}
        names = self.user_repo.get_name_map()

        history = []
        for payment in self.payment_repo.get_by_clients(clients.keys()):
            client = clients[payment['clientId']]
            unit = units.get(payment.get('unitId')) or {}
            entry = dict(payment)
            entry['clientName'] = client.get('nomSujeto') or payment.get('clientName')
            entry['unitPlaca'] = unit.get('placa') or payment.get('unitPlaca')
            entry['ownerId'] = client.get('ownerId')
            entry['ownerName'] = names.get(client.get('ownerId'))
            history.append(entry)

        history.sort(key=lambda p: p.get('fechaPago') or '', reverse=True)
        return history

    # =========================================================================
    # ELIMINAR
    # =========================================================================

    def delete_payment(
        self,
        payment_id: str,
        client_id: str,
        unit_id: str,
        user: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Elimina un pago y revierte el ciclo de cobro de su unidad.

        ultimoPago queda con la fecha del pago restante más reciente.
        """
        payment = self.payment_repo.get_by_id(payment_id)
        if not payment or payment.get('unitId') != unit_id or payment.get('clientId') != client_id:
            return {'ok': False, 'error': 'Pago no encontrado.'}

        client = self.client_repo.get_by_id(client_id)
        if not access.can_edit_client_data(user, client):
            return {'ok': False, 'error': 'No tiene permiso para eliminar este pago.'}

        unit = self.unit_repo.get_for_client(client_id, unit_id)
        if not unit:
            return {'ok': False, 'error': 'No se pudo encontrar la unidad asociada.'}

        try:
            updates = billing.revert_payment(unit, int(payment.get('mesesPagados') or 0))
        except ValueError:
            return {
                'ok': False,
                'error': 'La fecha de siguiente pago actual de la unidad es inválida. No se puede revertir el pago.',
            }

        latest = self.payment_repo.get_latest_for_unit(unit_id, exclude_id=payment_id)
        updates['ultimoPago'] = latest['fechaPago'] if latest else None

        try:
            self.unit_repo.update_fields(unit_id, updates)
            self.payment_repo.delete(payment_id)
        except Exception as e:
            logger.exception("Error al eliminar el pago %s", payment_id)
            return {'ok': False, 'error': f'Error al eliminar el pago: {e}'}

        if self.audit_service:
            self.audit_service.log_payment_deleted(
                user.get('username'), payment_id, unit.get('placa', ''), float(payment.get('monto') or 0)
            )
        return {'ok': True, 'message': 'Pago eliminado y estado de la unidad revertido con éxito.'}

    # =========================================================================
    # MANTENIMIENTO
    # =========================================================================

    def backfill_payment_owner_ids(self, user: Dict[str, Any]) -> Dict[str, Any]:
        """Completa el ownerId faltante de los pagos con el dueño de su cliente."""
        if not access.is_master(user):
            return {'ok': False, 'error': 'Acción no permitida.'}

        payments = self.payment_repo.list()
        if not payments:
            return {'ok': True, 'message': 'No se encontraron pagos para actualizar.'}

        owners = {c['id']: c.get('ownerId') for c in self.client_repo.list() if c.get('ownerId')}
        updates = {
            p['id']: {'ownerId': owners[p.get('clientId')]}
            for p in payments
            if not p.get('ownerId') and owners.get(p.get('clientId'))
        }
        if not updates:
            return {'ok': True, 'message': 'Todos los registros de pago ya estaban actualizados.'}

        try:
            count = self.payment_repo.update_many(updates)
        except Exception as e:
            logger.exception("Error al actualizar los propietarios de los pagos")
            return {'ok': False, 'error': f'Error al actualizar los pagos: {e}'}
        return {'ok': True, 'message': f'{count} registros de pago han sido actualizados con el ID del propietario.'}
