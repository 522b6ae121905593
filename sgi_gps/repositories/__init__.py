# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso a la persistencia (archivos JSON en el
# directorio de datos). Cada colección documental es un archivo.
#
# ESTRUCTURA:
# ├── interfaces.py                → Protocolos (contratos para los servicios)
# ├── base.py                      → Clases base (Dict/Document/ListRepository)
# ├── user_repository.py           → users.json
# ├── client_repository.py         → clients.json
# ├── unit_repository.py           → units.json
# ├── payment_repository.py        → payments.json
# ├── template_repository.py       → message_templates.json
# ├── message_log_repository.py    → message_logs.json
# ├── order_repository.py          → work_orders.json / installation_orders.json
# ├── catalog_repository.py        → countries.json / cities.json
# ├── settings_repository.py       → settings.json
# └── audit_repository.py          → audit.json
# ==============================================================================

# Interfaces
from sgi_gps.repositories.interfaces import (
    IDocumentRepository,
    IListRepository,
    IUserRepository,
    IUnitRepository,
    IPaymentRepository,
    IAuditRepository,
    IMessageLogRepository,
    ISettingsRepository,
)

# Implementaciones concretas (JSON)
from sgi_gps.repositories.base import (
    BaseRepository,
    DictRepository,
    DocumentRepository,
    ListRepository,
)
from sgi_gps.repositories.user_repository import UserRepository
from sgi_gps.repositories.client_repository import ClientRepository
from sgi_gps.repositories.unit_repository import UnitRepository
from sgi_gps.repositories.payment_repository import PaymentRepository
from sgi_gps.repositories.template_repository import TemplateRepository
from sgi_gps.repositories.message_log_repository import MessageLogRepository
from sgi_gps.repositories.order_repository import (
    OrderRepository,
    WorkOrderRepository,
    InstallationOrderRepository,
)
from sgi_gps.repositories.catalog_repository import CountryRepository, CityRepository
from sgi_gps.repositories.settings_repository import SettingsRepository
from sgi_gps.repositories.audit_repository import AuditRepository

__all__ = [
    # Interfaces
    'IDocumentRepository',
    'IListRepository',
    'IUserRepository',
    'IUnitRepository',
    'IPaymentRepository',
    'IAuditRepository',
    'IMessageLogRepository',
    'ISettingsRepository',

    # Clases base
    'BaseRepository',
    'DictRepository',
    'DocumentRepository',
    'ListRepository',

    # Implementaciones JSON
    'UserRepository',
    'ClientRepository',
    'UnitRepository',
    'PaymentRepository',
    'TemplateRepository',
    'MessageLogRepository',
    'OrderRepository',
    'WorkOrderRepository',
    'InstallationOrderRepository',
    'CountryRepository',
    'CityRepository',
    'SettingsRepository',
    'AuditRepository',
]
