# ==============================================================================
# RECORDATORIOS DE PAGO (verificación manual)
# ==============================================================================
# Recorre las unidades de la cartera del usuario y envía un mensaje agrupado
# por cliente y por evento:
#
#   fechaSiguientePago == hoy + 3  → payment_reminder
#   fechaSiguientePago == hoy      → payment_due_today
#   fechaSiguientePago == hoy - 3  → payment_overdue
# ==============================================================================

import logging
from collections import OrderedDict
from datetime import date
from typing import Any, Dict

from sgi_gps.performance_logger import profile_function
from sgi_gps.services import billing
from sgi_gps.services.audit_service import AuditService
from sgi_gps.services.notification_service import NotificationService
from sgi_gps.services.unit_service import UnitService

logger = logging.getLogger(__name__)


# Orden de envío por cliente
REMINDER_EVENTS = ('payment_reminder', 'payment_due_today', 'payment_overdue')


class ReminderService:
    """Verificación manual de vencimientos y envío de recordatorios."""

    def __init__(
        self,
        unit_service: UnitService,
        notification_service: NotificationService,
        audit_service: AuditService = None
    ):
        self.unit_service = unit_service
        self.notification_service = notification_service
        self.audit_service = audit_service

    @staticmethod
    def group_units(units, today: date) -> 'OrderedDict[str, Dict[str, list]]':
        """
        Agrupa unidades por cliente y evento de recordatorio.

        Returns:
            {clientId: {event_type: [unit, ...]}} solo con grupos no vacíos
        """
        groups = OrderedDict()
        for unit in units:
            event = billing.reminder_bucket(unit, today)
            if event is None:
                continue
            by_event = groups.setdefault(unit['clientId'], {})
            by_event.setdefault(event, []).append(unit)
        return groups

    @profile_function(name='trigger_manual_notification_check')
    def trigger_manual_notification_check(self, user: Dict[str, Any], today: date = None) -> Dict[str, Any]:
        """
        Envía los recordatorios del día para la cartera del usuario.

        Args:
            user: Usuario en sesión
            today: Fecha de referencia (hoy por defecto)

        Returns:
            {'ok', 'message', 'sent', 'errors'}
        """
        if not user:
            return {'ok': False, 'error': 'Acción no permitida.'}

        if not self.notification_service.get_notification_url_for_user(user['id']):
            return {
                'ok': False,
                'error': (
                    'La URL de notificaciones no está configurada para su usuario. '
                    'Vaya a Configuración para añadirla.'
                ),
            }

        today = today or billing.today_local()
        sent = 0
        errors = 0

        try:
            units = self.unit_service.get_all_units(user, with_device_status=False)
            if not units:
                return {'ok': True, 'message': 'No se encontraron unidades para verificar.', 'sent': 0, 'errors': 0}

            for client_id, by_event in self.group_units(units, today).items():
                for event in REMINDER_EVENTS:
                    if not by_event.get(event):
                        continue
                    result = self.notification_service.send_grouped_templated_message(
                        event, client_id, by_event[event], today
                    )
                    if result.get('ok'):
                        sent += 1
                    else:
                        errors += 1
        except Exception as e:
            logger.exception("Error durante la verificación manual de notificaciones")
            return {
                'ok': False,
                'error': f'Error durante la verificación manual: {e}',
                'sent': sent,
                'errors': errors,
            }

        if self.audit_service:
            self.audit_service.log_notification_batch(user.get('username'), sent, errors)

        if sent == 0 and errors == 0:
            message = (
                'Proceso finalizado. Ningún cliente tenía unidades que cumplieran '
                'con los criterios para enviar notificaciones hoy.'
            )
        else:
            message = f'Proceso finalizado. Se enviaron {sent} notificaciones agrupadas. Hubo {errors} errores.'
        return {'ok': True, 'message': message, 'sent': sent, 'errors': errors}
