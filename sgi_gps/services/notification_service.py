# ==============================================================================
# SERVICIO DE NOTIFICACIONES
# ==============================================================================
# Envío de mensajes (tipo WhatsApp) a clientes y técnicos mediante una URL
# de notificaciones configurada por cada manager:
#
#   https://proveedor/api/send?phone=NUMBER&text=TEXT
#
# NUMBER y TEXT se reemplazan (URL-encoded) y se hace un GET.
# Cada intento con teléfono y URL válidos queda en message_logs.json.
# ==============================================================================

import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from sgi_gps import config
from sgi_gps.models import MessageLog, MessageLogStatus
from sgi_gps.repositories.client_repository import ClientRepository
from sgi_gps.repositories.interfaces import IMessageLogRepository, IUserRepository
from sgi_gps.services import billing
from sgi_gps.services.template_service import TemplateService

logger = logging.getLogger(__name__)


URL_NOT_CONFIGURED = 'La URL de notificaciones no está configurada.'

SINGLE_UNIT_PLACEHOLDERS = (
    '{placa}', '{imei}', '{modelo_unidad}',
    '{fecha_vencimiento}', '{fecha_corte}', '{monto_a_pagar}',
)


def format_phone_number(phone: str) -> str:
    """
    Normaliza un teléfono ecuatoriano al formato internacional.

    Examples:
        '099 123 4567' -> '593991234567'
        '991234567'    -> '593991234567'
    """
    cleaned = re.sub(r'\D', '', phone or '')
    if cleaned.startswith('09'):
        return '593' + cleaned[1:]
    if cleaned.startswith('9'):
        return '593' + cleaned
    return cleaned


def format_message(
    template: str,
    client: Optional[Dict[str, Any]],
    units: List[Dict[str, Any]],
    owner: Optional[Dict[str, Any]],
    today: date = None
) -> str:
    """
    Reemplaza los marcadores de una plantilla.

    Args:
        template: Texto con marcadores {nombre_cliente}, {resumen_unidades}...
        client: Documento del cliente
        units: Unidades a resumir (una línea por unidad)
        owner: Usuario dueño del cliente (empresa que firma)
        today: Fecha de referencia para montos vencidos

    Returns:
        Mensaje final ('' si la plantilla no es texto)
    """
    if not isinstance(template, str) or not template:
        return ''

    client = client or {}
    owner = owner or {}
    today = today or billing.today_local()

    message = template
    message = message.replace('{nombre_cliente}', client.get('nomSujeto') or '[Cliente no disponible]')
    message = message.replace('{nombre_empresa}', owner.get('empresa') or '[Su Proveedor]')
    message = message.replace('{telefono_empresa}', owner.get('telefono') or '[Contacto no disponible]')

    lines = []
    total_due = 0.0
    for unit in units or []:
        if not unit:
            continue
        amount = billing.amount_to_pay(unit, today)
        total_due += amount
        cutoff = billing.cutoff_date(unit)
        lines.append(
            f"*Placa:* {unit.get('placa') or '[Placa no disp.]'}"
            f" | *F. Vence:* {billing.format_date(unit.get('fechaSiguientePago'))}"
            f" | *F. Corte:* {billing.format_date(cutoff) if cutoff else '[N/A]'}"
            f" | *Monto:* {billing.format_currency(amount)}"
        )

    if lines:
        summary = '\n'.join(lines)
        if len(lines) > 1:
            summary += f"\n\n*TOTAL A PAGAR: {billing.format_currency(total_due)}*"
        message = message.replace('{resumen_unidades}', summary)

    message = message.replace('{resumen_unidades}', '[No hay detalles de unidades disponibles]')
    for placeholder in SINGLE_UNIT_PLACEHOLDERS:
        message = message.replace(placeholder, '')
    return message


class NotificationService:
    """
    Servicio de mensajería saliente.

    Responsabilidades:
    - Resolver la URL de notificaciones de un usuario (o de su creador)
    - Enviar un mensaje y registrar el resultado en message_logs
    - Armar y enviar el mensaje agrupado de un evento para un cliente
    """

    def __init__(
        self,
        user_repo: IUserRepository,
        client_repo: ClientRepository,
        message_log_repo: IMessageLogRepository,
        template_service: TemplateService,
        session: requests.Session = None
    ):
        self.user_repo = user_repo
        self.client_repo = client_repo
        self.message_log_repo = message_log_repo
        self.template_service = template_service
        self.session = session or requests.Session()

    # =========================================================================
    # CONFIGURACIÓN
    # =========================================================================

    def get_notification_url_for_user(self, user_id: str) -> Optional[str]:
        """
        URL de notificaciones efectiva.

        Analistas y técnicos usan la URL de su creador (recursivo).
        """
        seen = set()
        while user_id and user_id not in seen:
            seen.add(user_id)
            user = self.user_repo.get_by_id(user_id)
            if not user:
                return None
            if user.get('role') in ('analista', 'tecnico') and user.get('creatorId'):
                user_id = user['creatorId']
                continue
            return user.get('notificationUrl') or None
        return None

    # =========================================================================
    # ENVÍO
    # =========================================================================

    def _log(self, log: MessageLog) -> None:
        self.message_log_repo.add(log.to_dict())

    def send_notification_message(
        self,
        phone: str,
        message: str,
        notification_url: Optional[str],
        meta: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Envía un mensaje a un número.

        Args:
            phone: Teléfono del destinatario (cualquier formato)
            message: Texto final
            notification_url: Plantilla de URL con NUMBER y TEXT
            meta: {ownerId, clientId, clientName} para el log

        Returns:
            {'ok', 'message'} o {'ok': False, 'error'}
        """
        if not isinstance(phone, str) or not phone.strip():
            return {
                'ok': True,
                'message': 'Operación omitida: No se proporcionó un número de teléfono válido para la notificación.'
            }

        if not notification_url:
            return {'ok': False, 'error': URL_NOT_CONFIGURED}

        number = format_phone_number(phone)
        log = MessageLog(
            owner_id=meta.get('ownerId', ''),
            recipient_number=number,
            client_id=meta.get('clientId', ''),
            client_name=meta.get('clientName', ''),
            message_content=message,
            sent_at=datetime.now().isoformat(),
            status=MessageLogStatus.SUCCESS,
            notification_url=notification_url,
        )

        final_url = (
            notification_url
            .replace('NUMBER', quote(number, safe=''), 1)
            .replace('TEXT', quote(message, safe=''), 1)
        )

        try:
            response = self.session.get(
                final_url,
                headers={'Accept': 'application/json'},
                timeout=config.HTTP_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.error("Fallo al enviar notificación a %s: %s", number, e)
            log.status = MessageLogStatus.FAILURE
            log.error_message = str(e)
            self._log(log)
            return {'ok': False, 'error': f'Error inesperado: {e}'}

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not response.ok:
            error = body.get('message') or body.get('error') or f'Error de la API: {response.reason}'
            logger.error("Error enviando mensaje a %s: %s %s", number, response.status_code, error)
            log.status = MessageLogStatus.FAILURE
            log.error_message = error
            self._log(log)
            return {'ok': False, 'error': f'No se pudo enviar el mensaje: {error}'}

        self._log(log)
        return {'ok': True, 'message': body.get('message') or 'Mensaje enviado para procesamiento.'}

    def send_grouped_templated_message(
        self,
        event_type: str,
        client_id: str,
        units: List[Dict[str, Any]],
        today: date = None
    ) -> Dict[str, Any]:
        """
        Envía un solo mensaje a un cliente con el resumen de varias unidades.

        Las condiciones que impiden el envío no son errores: retornan ok=True
        con un mensaje "Operación omitida".

        Args:
            event_type: Evento de la plantilla (payment_reminder, ...)
            client_id: ID del cliente destinatario
            units: Unidades a incluir en el resumen
            today: Fecha de referencia (hoy por defecto)
        """
        client = self.client_repo.get_by_id(client_id)
        if not client:
            return {'ok': True, 'message': f'Operación omitida: Cliente {client_id} no encontrado.'}
        if not client.get('telefono'):
            return {'ok': True, 'message': f"Operación omitida: Cliente {client.get('nomSujeto')} no tiene teléfono."}

        owner_id = client.get('ownerId')
        if not owner_id:
            return {'ok': True, 'message': f"Operación omitida: Cliente {client.get('nomSujeto')} no tiene propietario."}
        owner = self.user_repo.get_by_id(owner_id)
        if not owner:
            return {'ok': True, 'message': f'Operación omitida: Propietario {owner_id} no encontrado.'}
        if not owner.get('empresa'):
            return {'ok': True, 'message': f"Operación omitida: Propietario {owner.get('nombre')} no tiene nombre de empresa."}

        notification_url = self.get_notification_url_for_user(owner_id)
        if not notification_url:
            return {'ok': True, 'message': f"Operación omitida: Propietario {owner.get('nombre')} no tiene URL de notificaciones configurada."}

        template = self.template_service.get_template_for_event(owner_id, event_type)
        if not template or not template.get('content'):
            return {'ok': True, 'message': f"Operación omitida: No hay plantilla válida para el evento '{event_type}'."}

        if not units:
            return {'ok': True, 'message': 'Operación completada. No hay unidades para notificar.'}

        message = format_message(template['content'], client, units, owner, today)
        if not message.strip():
            return {'ok': True, 'message': f"El mensaje para '{event_type}' resultó vacío después de formatear. No se envió."}

        return self.send_notification_message(
            client['telefono'],
            message,
            notification_url,
            {'ownerId': owner_id, 'clientId': client['id'], 'clientName': client.get('nomSujeto', '')},
        )
