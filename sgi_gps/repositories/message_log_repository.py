# ==============================================================================
# REPOSITORIO DE LOGS DE MENSAJES
# ==============================================================================
# Encapsula todo el acceso a message_logs.json
# Bitácora de cada mensaje enviado a clientes/técnicos (éxito o fallo).
# ==============================================================================

from typing import Any, Dict, List, Tuple

from sgi_gps.repositories.base import ListRepository


class MessageLogRepository(ListRepository):
    """
    Repositorio de logs de mensajes.

    Formato de datos en message_logs.json (más reciente primero):
    [
        {"ownerId": "...", "recipientNumber": "593991234567", "clientId": "...",
         "clientName": "...", "messageContent": "...", "sentAt": "...",
         "status": "success"}
    ]
    """

    FILE_NAME = 'message_logs.json'

    MAX_LOGS = 20000

    def add(self, entry: Dict[str, Any]) -> None:
        """Inserta un log al inicio respetando MAX_LOGS."""
        with self._file_lock:
            logs = self.get_all()
            logs.insert(0, entry)
            if len(logs) > self.MAX_LOGS:
                logs = logs[:self.MAX_LOGS]
            self.save_all(logs)

    def get_page(self, page: int, per_page: int) -> Tuple[List[Dict[str, Any]], bool]:
        """
        Página de logs ordenada por sentAt descendente.

        Returns:
            Tupla (logs_de_la_pagina, hay_mas)
        """
        logs = sorted(self.get_all(), key=lambda x: x.get('sentAt', ''), reverse=True)
        start = max(page - 1, 0) * per_page
        chunk = logs[start:start + per_page]
        return chunk, start + per_page < len(logs)

    def clear(self) -> int:
        """Elimina todos los logs. Retorna cuántos había."""
        with self._file_lock:
            count = len(self.get_all())
            if count:
                self.save_all([])
            return count
