# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Esta capa contiene TODA la lógica de negocio de la aplicación.
#
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones entre repositorios
# 2. Aplican reglas de negocio, permisos por rol y validaciones
# 3. Las rutas solo llaman a servicios y convierten el resultado a JSON
# 4. Cada acción retorna {'ok': bool, 'error' | 'message': str, ...}
#
# ESTRUCTURA:
# ├── billing.py              → Fechas y montos del ciclo de cobro (funciones puras)
# ├── access.py               → Alcance de datos por rol
# ├── validation.py           → Validación de formularios
# ├── client_service.py       → Clientes
# ├── unit_service.py         → Unidades, suspensión, importación de P. GPS
# ├── payment_service.py      → Pagos y reversión
# ├── notification_service.py → Envío de mensajes por URL de notificaciones
# ├── reminder_service.py     → Recordatorios de vencimiento
# ├── template_service.py     → Plantillas de mensajes
# ├── user_service.py         → Usuarios, autenticación, perfil
# ├── order_service.py        → Órdenes de soporte e instalación
# ├── catalog_service.py      → Países y ciudades
# ├── message_log_service.py  → Logs de mensajes
# ├── report_service.py       → Reportes Excel
# ├── pgps_client.py          → API de P. GPS
# ├── audit_service.py        → Logs de actividad
# └── backup_service.py       → Backups diarios
# ==============================================================================

from sgi_gps.services import access, billing, validation
from sgi_gps.services.audit_service import AuditService
from sgi_gps.services.pgps_client import PgpsClient
from sgi_gps.services.template_service import TemplateService
from sgi_gps.services.notification_service import NotificationService
from sgi_gps.services.client_service import ClientService
from sgi_gps.services.unit_service import UnitService
from sgi_gps.services.payment_service import PaymentService
from sgi_gps.services.reminder_service import ReminderService
from sgi_gps.services.user_service import UserService
from sgi_gps.services.order_service import (
    BaseOrderService,
    InstallationOrderService,
    WorkOrderService,
)
from sgi_gps.services.catalog_service import CatalogService
from sgi_gps.services.message_log_service import MessageLogService
from sgi_gps.services.backup_service import BackupService, run_startup_backup

__all__ = [
    'access',
    'billing',
    'validation',
    'AuditService',
    'PgpsClient',
    'TemplateService',
    'NotificationService',
    'ClientService',
    'UnitService',
    'PaymentService',
    'ReminderService',
    'UserService',
    'BaseOrderService',
    'WorkOrderService',
    'InstallationOrderService',
    'CatalogService',
    'MessageLogService',
    'BackupService',
    'run_startup_backup',
]
