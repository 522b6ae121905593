# ==============================================================================
# SERVICIO DE LOGS DE MENSAJES
# ==============================================================================
# Consulta paginada y limpieza de los mensajes enviados por la aplicación.
# ==============================================================================

from typing import Any, Dict

from sgi_gps.repositories.interfaces import IMessageLogRepository
from sgi_gps.services import access


LOGS_PER_PAGE = 25


class MessageLogService:

    def __init__(self, message_log_repo: IMessageLogRepository):
        self.message_log_repo = message_log_repo

    def get_logs(self, page: int = 1) -> Dict[str, Any]:
        """
        Página de logs, del más reciente al más antiguo.

        Returns:
            {'ok', 'logs', 'page', 'has_more'}
        """
        page = max(1, int(page or 1))
        logs, has_more = self.message_log_repo.get_page(page, LOGS_PER_PAGE)
        return {'ok': True, 'logs': logs, 'page': page, 'has_more': has_more}

    def clear_logs(self, user: Dict[str, Any]) -> Dict[str, Any]:
        if not access.is_master(user):
            return {'ok': False, 'error': 'Acción no permitida.'}
        count = self.message_log_repo.clear()
        if count == 0:
            return {'ok': True, 'message': 'No hay logs para eliminar.'}
        return {'ok': True, 'message': f'{count} logs eliminados con éxito.'}
