# ==============================================================================
# REPOSITORIO DE AUDITORÍA - audit.json
# ==============================================================================
# Lista de eventos, el más reciente primero, recortada a MAX_LOGS:
#
#   {"type": "PAGO", "user": "master", "message": "...",
#    "timestamp": "2025-01-01 10:00:00", "related_id": "<id>", "details": {...}}
# ==============================================================================

from datetime import datetime
from typing import Any, Dict, List, Optional

from sgi_gps.repositories.base import ListRepository


class AuditRepository(ListRepository):

    FILE_NAME = 'audit.json'
    MAX_LOGS = 10000

    def load(self) -> List[Dict[str, Any]]:
        return sorted(self.get_all(), key=lambda entry: entry.get('timestamp', ''), reverse=True)

    def log(self, log_type: str, user: str, message: str,
            related_id: str = '', details: Optional[Dict[str, Any]] = None) -> None:
        entry = {
            'type': log_type,
            'user': user or 'sistema',
            'message': message,
            'timestamp': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
            'related_id': related_id,
            'details': details or {},
        }
        with self._editing() as logs:
            logs.insert(0, entry)
            del logs[self.MAX_LOGS:]

    def get_logs_by_type(self, log_type: str) -> List[Dict[str, Any]]:
        return [entry for entry in self.load() if entry.get('type') == log_type]

    def search(self, query: str) -> List[Dict[str, Any]]:
        """Coincidencia sin mayúsculas en mensaje, usuario o ID relacionado."""
        needle = (query or '').strip().lower()
        logs = self.load()
        if not needle:
            return logs
        return [
            entry for entry in logs
            if any(needle in str(entry.get(field) or '').lower() for field in ('message', 'user', 'related_id'))
        ]
