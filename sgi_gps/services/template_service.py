# ==============================================================================
# SERVICIO DE PLANTILLAS DE MENSAJE
# ==============================================================================
# Plantillas por evento (recordatorio, vencimiento, pago recibido...).
#
# REGLAS:
# - Las plantillas globales (isGlobal=True) son la base para todos
# - Masters y managers reciben una copia personal la primera vez que consultan
# - Las plantillas personales reemplazan a la global del mismo evento
# - Un analista usa las plantillas de su creador (manager)
# - Solo master edita globales; nadie las elimina
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from sgi_gps.models import MessageTemplate, TemplateEventType, enum_values
from sgi_gps.repositories.interfaces import IUserRepository
from sgi_gps.repositories.template_repository import TemplateRepository

logger = logging.getLogger(__name__)


DEFAULT_TEMPLATES = [
    MessageTemplate(
        name='Recordatorio de Pago (Global)',
        event_type=TemplateEventType.PAYMENT_REMINDER,
        content='Estimado/a {nombre_cliente}, le recordamos que su pago está próximo a vencer.\n\n{resumen_unidades}\n\nPara evitar la suspensión del servicio, por favor realice su pago. Gracias, {nombre_empresa}.',
        is_global=True,
    ),
    MessageTemplate(
        name='Vencimiento Hoy (Global)',
        event_type=TemplateEventType.PAYMENT_DUE_TODAY,
        content='Estimado/a {nombre_cliente}, su servicio vence el día de hoy.\n\n{resumen_unidades}\n\nRealice su pago para mantener su servicio activo. Atentamente, {nombre_empresa}.',
        is_global=True,
    ),
    MessageTemplate(
        name='Pago Vencido (Global)',
        event_type=TemplateEventType.PAYMENT_OVERDUE,
        content='Estimado/a {nombre_cliente}, su pago se encuentra vencido.\n\n{resumen_unidades}\n\nSu servicio será suspendido. Comuníquese con {nombre_empresa} para regularizar su situación.',
        is_global=True,
    ),
    MessageTemplate(
        name='Pago Recibido (Global)',
        event_type=TemplateEventType.PAYMENT_RECEIVED,
        content='Estimado/a {nombre_cliente}, hemos recibido su pago. ¡Gracias por su confianza!\n\n{resumen_unidades}\n\nAtentamente, {nombre_empresa}.',
        is_global=True,
    ),
    MessageTemplate(
        name='Servicio Suspendido (Global)',
        event_type=TemplateEventType.SERVICE_SUSPENDED,
        content='Estimado/a {nombre_cliente}, le informamos que su servicio ha sido suspendido por falta de pago.\n\n{resumen_unidades}\n\nPara reactivarlo, por favor póngase en contacto con {nombre_empresa}.',
        is_global=True,
    ),
    MessageTemplate(
        name='Servicio Reactivado (Global)',
        event_type=TemplateEventType.SERVICE_REACTIVATED,
        content='Estimado/a {nombre_cliente}, le informamos que su servicio ha sido reactivado con éxito.\n\n{resumen_unidades}\n\nGracias por su pago. Atentamente, {nombre_empresa}.',
        is_global=True,
    ),
]

EVENT_TYPES = enum_values(TemplateEventType)


class TemplateService:
    """Gestión de plantillas globales y personales."""

    TEMPLATE_ROLES = frozenset(['master', 'manager'])

    def __init__(self, template_repo: TemplateRepository, user_repo: IUserRepository):
        self.template_repo = template_repo
        self.user_repo = user_repo

    # =========================================================================
    # SEMILLAS
    # =========================================================================

    def ensure_global_templates_exist(self) -> bool:
        """
        Crea las seis plantillas globales por defecto si no hay ninguna.

        Returns:
            True si se crearon
        """
        if self.template_repo.has_global():
            return False
        logger.info("No hay plantillas globales. Creando plantillas por defecto...")
        self.template_repo.insert_many(
            {k: v for k, v in t.to_dict().items() if k != 'id'} for t in DEFAULT_TEMPLATES
        )
        return True

    def _copy_globals_for(self, owner_id: str) -> None:
        copies = []
        for template in self.template_repo.get_global():
            copy = {k: v for k, v in template.items() if k != 'id'}
            copy['isGlobal'] = False
            copy['ownerId'] = owner_id
            copy['isActive'] = template.get('isActive', True)
            copies.append(copy)
        if copies:
            self.template_repo.insert_many(copies)
            logger.info("Copiadas %d plantillas globales para el usuario %s", len(copies), owner_id)

    # =========================================================================
    # CONSULTA
    # =========================================================================

    def get_global_templates(self) -> List[Dict[str, Any]]:
        self.ensure_global_templates_exist()
        return sorted(self.template_repo.get_global(), key=lambda t: t.get('name', ''))

    def get_templates_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        """
        Plantillas efectivas de un usuario: globales reemplazadas por evento
        con las personales del dueño.

        Args:
            user_id: ID del usuario (un analista resuelve a su creador)

        Returns:
            Una plantilla por tipo de evento
        """
        user = self.user_repo.get_by_id(user_id)
        if not user:
            return []

        owner_id = user.get('creatorId') if user.get('role') == 'analista' and user.get('creatorId') else user_id

        self.ensure_global_templates_exist()

        if user.get('role') in self.TEMPLATE_ROLES and not self.template_repo.get_personal(owner_id):
            self._copy_globals_for(owner_id)

        by_event: Dict[str, Dict[str, Any]] = {}
        for template in self.template_repo.get_global():
            by_event[template.get('eventType')] = template
        for template in self.template_repo.get_personal(owner_id):
            by_event[template.get('eventType')] = template
        return list(by_event.values())

    def get_template_for_event(self, user_id: str, event_type: str) -> Optional[Dict[str, Any]]:
        for template in self.get_templates_for_user(user_id):
            if template.get('eventType') == event_type:
                return template
        return None

    # =========================================================================
    # MUTACIONES
    # =========================================================================

    @staticmethod
    def _validate(data: Dict[str, Any]) -> Optional[str]:
        if not (data.get('name') or '').strip():
            return 'El nombre de la plantilla es requerido.'
        if data.get('eventType') not in EVENT_TYPES:
            return 'Tipo de evento no válido.'
        if not (data.get('content') or '').strip():
            return 'El contenido de la plantilla es requerido.'
        return None

    def save_template(
        self,
        data: Dict[str, Any],
        user: Dict[str, Any],
        template_id: str = None
    ) -> Dict[str, Any]:
        """
        Crea o edita una plantilla.

        Args:
            data: {name, eventType, content, isActive}
            user: Usuario en sesión
            template_id: ID a editar (None para crear)
        """
        if user.get('role') not in self.TEMPLATE_ROLES:
            return {'ok': False, 'error': 'No tiene permiso para guardar plantillas.'}

        error = self._validate(data)
        if error:
            return {'ok': False, 'error': f'Datos de plantilla no válidos. {error}'}

        values = {
            'name': data['name'].strip(),
            'eventType': data['eventType'],
            'content': data['content'],
            'isActive': bool(data.get('isActive', True)),
        }

        if template_id:
            existing = self.template_repo.get_by_id(template_id)
            if not existing:
                return {'ok': False, 'error': 'La plantilla que intenta editar no existe.'}
            if existing.get('isGlobal') and user.get('role') != 'master':
                return {'ok': False, 'error': 'No tiene permiso para editar una plantilla global.'}
            if not existing.get('isGlobal') and existing.get('ownerId') != user.get('id'):
                return {'ok': False, 'error': 'No tiene permiso para editar esta plantilla.'}
            template = self.template_repo.update_fields(template_id, values)
            return {'ok': True, 'message': 'Plantilla actualizada con éxito.', 'template': template}

        values.update({'ownerId': user.get('id'), 'isGlobal': False})
        template = self.template_repo.insert(values)
        return {'ok': True, 'message': 'Plantilla creada con éxito.', 'template': template}

    def delete_template(self, template_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
        if user.get('role') not in self.TEMPLATE_ROLES:
            return {'ok': False, 'error': 'No tiene permiso para eliminar plantillas.'}

        existing = self.template_repo.get_by_id(template_id)
        if not existing:
            return {'ok': False, 'error': 'La plantilla no existe.'}
        if existing.get('isGlobal') is True:
            return {'ok': False, 'error': 'No se pueden eliminar las plantillas globales.'}
        if existing.get('ownerId') != user.get('id'):
            return {'ok': False, 'error': 'No tiene permiso para eliminar esta plantilla.'}

        self.template_repo.delete(template_id)
        return {'ok': True, 'message': 'Plantilla eliminada con éxito.'}
