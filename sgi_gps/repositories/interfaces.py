# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Contratos (protocolos) que cumplen los repositorios. Los servicios dependen
# de estas interfaces y no de los archivos JSON:
#
# 1. INDEPENDENCIA DE ALMACENAMIENTO
#    - Cambiar JSON por otra base documental solo requiere nueva implementación
#
# 2. TESTING
#    - Fácil crear dobles en memoria que cumplan estas interfaces
#
# ==============================================================================

from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple, runtime_checkable


# ==============================================================================
# INTERFACES BASE
# ==============================================================================

@runtime_checkable
class IDocumentRepository(Protocol):
    """
    Colección de documentos indexados por ID.
    Usado por: Usuarios, Clientes, Unidades, Pagos, Plantillas, Órdenes, Catálogos.
    """

    def list(self) -> List[Dict[str, Any]]:
        ...

    def get_by_id(self, record_id: Any) -> Optional[Dict[str, Any]]:
        ...

    def insert(self, document: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def insert_many(self, documents: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        ...

    def update_fields(self, record_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Actualización parcial (merge). None elimina el campo."""
        ...

    def update_many(self, updates_by_id: Dict[str, Dict[str, Any]]) -> int:
        ...

    def delete(self, record_id: Any) -> Optional[Dict[str, Any]]:
        ...

    def delete_many(self, record_ids: Iterable[str]) -> int:
        ...

    def filter(self, predicate: Callable[[Dict[str, Any]], bool]) -> List[Dict[str, Any]]:
        ...

    def count(self) -> int:
        ...


@runtime_checkable
class IListRepository(Protocol):
    """
    Bitácoras almacenadas como lista.
    Usado por: Auditoría, Logs de mensajes.
    """

    def get_all(self) -> List[Dict[str, Any]]:
        ...

    def save_all(self, data: List[Dict[str, Any]]) -> None:
        ...


# ==============================================================================
# INTERFACES ESPECÍFICAS
# ==============================================================================

@runtime_checkable
class IUserRepository(IDocumentRepository, Protocol):

    def get_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        ...

    def get_by_email(self, correo: str) -> Optional[Dict[str, Any]]:
        ...

    def count_masters(self) -> int:
        ...

    def get_users_by_role(self, role: str) -> List[Dict[str, Any]]:
        ...

    def get_name_map(self) -> Dict[str, str]:
        """ID de usuario -> nombre para mostrar."""
        ...


@runtime_checkable
class IUnitRepository(IDocumentRepository, Protocol):

    def get_by_client(self, client_id: str) -> List[Dict[str, Any]]:
        ...

    def get_for_client(self, client_id: str, unit_id: str) -> Optional[Dict[str, Any]]:
        ...

    def get_by_clients(self, client_ids: Iterable[str]) -> List[Dict[str, Any]]:
        ...


@runtime_checkable
class IPaymentRepository(IDocumentRepository, Protocol):

    def get_by_unit(self, unit_id: str) -> List[Dict[str, Any]]:
        ...

    def get_latest_for_unit(self, unit_id: str, exclude_id: str = None) -> Optional[Dict[str, Any]]:
        ...

    def get_by_clients(self, client_ids: Iterable[str]) -> List[Dict[str, Any]]:
        ...

    def delete_by_units(self, unit_ids: Iterable[str]) -> int:
        ...


@runtime_checkable
class IAuditRepository(Protocol):

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> None:
        ...

    def load(self) -> List[Dict[str, Any]]:
        ...

    def get_logs_by_type(self, log_type: str) -> List[Dict[str, Any]]:
        ...

    def search(self, query: str) -> List[Dict[str, Any]]:
        ...


@runtime_checkable
class IMessageLogRepository(Protocol):

    def add(self, entry: Dict[str, Any]) -> None:
        ...

    def get_page(self, page: int, per_page: int) -> Tuple[List[Dict[str, Any]], bool]:
        """(entradas de la página, hay_más)"""
        ...

    def clear(self) -> int:
        ...


@runtime_checkable
class ISettingsRepository(Protocol):

    def get_integration(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    def set_integration(self, key: str, values: Dict[str, Any]) -> None:
        ...
