# ==============================================================================
# SERVICIO DE AUDITORÍA
# ==============================================================================
# Bitácora de eventos de negocio con mensajes legibles para el master:
#
#   CLIENTE · UNIDAD · PAGO · USUARIO · ORDEN · NOTIFICACION · SISTEMA
#
# Todo cobro o reversión de cobro queda registrado como PAGO.
# ==============================================================================

from typing import Any, Dict, List, Optional

from sgi_gps.models import AuditType
from sgi_gps.repositories.interfaces import IAuditRepository


class AuditService:
    """Registro y consulta de la bitácora de auditoría."""

    TYPE_CLIENTE = AuditType.CLIENTE.value
    TYPE_UNIDAD = AuditType.UNIDAD.value
    TYPE_PAGO = AuditType.PAGO.value
    TYPE_USUARIO = AuditType.USUARIO.value
    TYPE_ORDEN = AuditType.ORDEN.value
    TYPE_NOTIFICACION = AuditType.NOTIFICACION.value
    TYPE_SISTEMA = AuditType.SISTEMA.value

    def __init__(self, audit_repo: IAuditRepository):
        self.audit_repo = audit_repo

    def log(self, log_type: str, user: str, message: str,
            related_id: str = '', details: Optional[Dict[str, Any]] = None) -> None:
        self.audit_repo.log(log_type, user, message, related_id, details)

    # =========================================================================
    # CLIENTES Y UNIDADES
    # =========================================================================

    def log_client_saved(self, user: str, client_id: str, name: str, is_new: bool) -> None:
        verb = 'creado' if is_new else 'actualizado'
        self.log(self.TYPE_CLIENTE, user, f"Cliente {verb}: {name} por {user}", client_id, {'name': name})

    def log_client_deleted(self, user: str, client_id: str, name: str, units_deleted: int) -> None:
        self.log(self.TYPE_CLIENTE, user,
                 f"Cliente eliminado: {name} ({units_deleted} unidades) por {user}",
                 client_id, {'name': name, 'units_deleted': units_deleted})

    def log_unit_saved(self, user: str, unit_id: str, placa: str, is_new: bool) -> None:
        verb = 'creada' if is_new else 'actualizada'
        self.log(self.TYPE_UNIDAD, user, f"Unidad {verb}: {placa} por {user}", unit_id, {'placa': placa})

    def log_unit_deleted(self, user: str, unit_id: str, placa: str) -> None:
        self.log(self.TYPE_UNIDAD, user, f"Unidad eliminada: {placa} por {user}", unit_id, {'placa': placa})

    def log_unit_status(self, user: str, unit_id: str, placa: str, suspended: bool) -> None:
        """Suspensión (suspended=True) o reactivación del servicio de una unidad."""
        verb = 'suspendida' if suspended else 'activada'
        self.log(self.TYPE_UNIDAD, user, f"Unidad {placa} {verb} por {user}", unit_id, {'suspended': suspended})

    # =========================================================================
    # PAGOS
    # =========================================================================

    def log_payment(self, user: str, client_id: str, client_name: str, amount: float,
                    method: str, units: List[str], months: int) -> None:
        """
        Registra un cobro.

        Args:
            user: Quien registró el pago
            client_id: Cliente que pagó (queda como related_id)
            client_name: Nombre para el mensaje
            amount: Total cobrado
            method: efectivo / transferencia / ...
            units: Placas cubiertas por el pago
            months: Meses pagados por unidad
        """
        message = (f"Pago recibido de {client_name}: $ {amount:.2f} ({method}), "
                   f"{len(units)} unidad(es) x {months} mes(es). Registrado por {user}")
        self.log(self.TYPE_PAGO, user, message, client_id,
                 {'amount': amount, 'method': method, 'units': units, 'months': months})

    def log_payment_deleted(self, user: str, payment_id: str, placa: str, amount: float) -> None:
        self.log(self.TYPE_PAGO, user, f"Pago eliminado de la unidad {placa}: $ {amount:.2f}. Por {user}",
                 payment_id, {'amount': amount, 'placa': placa})

    # =========================================================================
    # ÓRDENES Y NOTIFICACIONES
    # =========================================================================

    def log_order_saved(self, user: str, kind: str, order_id: str, placa: str, estado: str, is_new: bool) -> None:
        verb = 'creada' if is_new else 'actualizada'
        self.log(self.TYPE_ORDEN, user, f"Orden de {kind} {verb}: {placa} ({estado}) por {user}",
                 order_id, {'kind': kind, 'estado': estado})

    def log_order_deleted(self, user: str, kind: str, order_id: str) -> None:
        self.log(self.TYPE_ORDEN, user, f"Orden de {kind} eliminada por {user}", order_id, {'kind': kind})

    def log_notification_batch(self, user: str, sent: int, errors: int) -> None:
        self.log(self.TYPE_NOTIFICACION, user,
                 f"Revisión de recordatorios de {user}: {sent} enviados, {errors} con error",
                 details={'sent': sent, 'errors': errors})

    # =========================================================================
    # USUARIOS Y SESIÓN
    # =========================================================================

    def log_user_login(self, user: str) -> None:
        self.log(self.TYPE_SISTEMA, user, f"Inicio de sesión: {user}")

    def log_user_logout(self, user: str) -> None:
        self.log(self.TYPE_SISTEMA, user, f"Cierre de sesión: {user}")

    def _log_account(self, action: str, actor: str, target: str, role: str, key: str) -> None:
        self.log(self.TYPE_USUARIO, actor, f"Usuario {action}: {target} (rol: {role}). Por {actor}",
                 details={key: target, 'role': role})

    def log_user_created(self, admin_user: str, new_user: str, role: str) -> None:
        self._log_account('creado', admin_user, new_user, role, 'new_user')

    def log_user_updated(self, admin_user: str, target_user: str, role: str) -> None:
        self._log_account('actualizado', admin_user, target_user, role, 'target_user')

    def log_user_deleted(self, admin_user: str, deleted_user: str, role: str) -> None:
        self._log_account('eliminado', admin_user, deleted_user, role, 'deleted_user')

    # =========================================================================
    # CONSULTA
    # =========================================================================

    def get_all_logs(self) -> List[Dict[str, Any]]:
        """Bitácora completa, lo más reciente primero."""
        return self.audit_repo.load()

    def get_logs_by_type(self, log_type: str) -> List[Dict[str, Any]]:
        return self.audit_repo.get_logs_by_type(log_type)

    def search_logs(self, query: str = '') -> List[Dict[str, Any]]:
        return self.audit_repo.search(query)
