# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Punto único para obtener repositorios y servicios. Facilita:
#   - Inyección de dependencias
#   - Testing (directorio de datos temporal, sesiones HTTP simuladas)
#   - Cambiar repositorios sin tocar servicios
#
# Todos los repositorios comparten el mismo directorio de datos (SGI_DATA_DIR).
# ==============================================================================

from typing import Optional

import requests

from sgi_gps import config

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITORIOS - Capa de persistencia
# ═══════════════════════════════════════════════════════════════════════════════
from sgi_gps.repositories import (
    AuditRepository,
    CityRepository,
    ClientRepository,
    CountryRepository,
    InstallationOrderRepository,
    MessageLogRepository,
    PaymentRepository,
    SettingsRepository,
    TemplateRepository,
    UnitRepository,
    UserRepository,
    WorkOrderRepository,
)

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS - Capa de lógica de negocio
# ═══════════════════════════════════════════════════════════════════════════════
from sgi_gps.services import (
    AuditService,
    BackupService,
    CatalogService,
    ClientService,
    InstallationOrderService,
    MessageLogService,
    NotificationService,
    PaymentService,
    PgpsClient,
    ReminderService,
    TemplateService,
    UnitService,
    UserService,
    WorkOrderService,
)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de cada repositorio y servicio.

    Uso:
        container = AppContainer(data_dir='/var/lib/sgi')
        client_service = container.client_service
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, data_dir: str = None, http_session: requests.Session = None):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, data_dir: str = None, http_session: requests.Session = None):
        """
        Args:
            data_dir: Directorio de los JSON (por defecto config.DATA_DIR)
            http_session: Sesión HTTP compartida por P. GPS y notificaciones
        """
        if self._initialized:
            return

        self._data_dir = data_dir or config.DATA_DIR
        self._http_session = http_session
        self._instances = {}
        self._initialized = True

    @property
    def data_dir(self) -> str:
        return self._data_dir

    @property
    def http_session(self) -> requests.Session:
        if self._http_session is None:
            self._http_session = requests.Session()
        return self._http_session

    def _get(self, name: str, factory):
        """Crea la instancia en el primer acceso (lazy loading)."""
        if name not in self._instances:
            self._instances[name] = factory()
        return self._instances[name]

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def user_repo(self) -> UserRepository:
        return self._get('user_repo', lambda: UserRepository(self._data_dir))

    @property
    def client_repo(self) -> ClientRepository:
        return self._get('client_repo', lambda: ClientRepository(self._data_dir))

    @property
    def unit_repo(self) -> UnitRepository:
        return self._get('unit_repo', lambda: UnitRepository(self._data_dir))

    @property
    def payment_repo(self) -> PaymentRepository:
        return self._get('payment_repo', lambda: PaymentRepository(self._data_dir))

    @property
    def template_repo(self) -> TemplateRepository:
        return self._get('template_repo', lambda: TemplateRepository(self._data_dir))

    @property
    def message_log_repo(self) -> MessageLogRepository:
        return self._get('message_log_repo', lambda: MessageLogRepository(self._data_dir))

    @property
    def work_order_repo(self) -> WorkOrderRepository:
        return self._get('work_order_repo', lambda: WorkOrderRepository(self._data_dir))

    @property
    def installation_order_repo(self) -> InstallationOrderRepository:
        return self._get('installation_order_repo', lambda: InstallationOrderRepository(self._data_dir))

    @property
    def country_repo(self) -> CountryRepository:
        return self._get('country_repo', lambda: CountryRepository(self._data_dir))

    @property
    def city_repo(self) -> CityRepository:
        return self._get('city_repo', lambda: CityRepository(self._data_dir))

    @property
    def settings_repo(self) -> SettingsRepository:
        return self._get('settings_repo', lambda: SettingsRepository(self._data_dir))

    @property
    def audit_repo(self) -> AuditRepository:
        return self._get('audit_repo', lambda: AuditRepository(self._data_dir))

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def audit_service(self) -> AuditService:
        return self._get('audit_service', lambda: AuditService(self.audit_repo))

    @property
    def pgps(self) -> PgpsClient:
        """Cliente de la API de P. GPS."""
        return self._get('pgps', lambda: PgpsClient(self.settings_repo, self.http_session))

    @property
    def template_service(self) -> TemplateService:
        return self._get('template_service', lambda: TemplateService(self.template_repo, self.user_repo))

    @property
    def notification_service(self) -> NotificationService:
        return self._get('notification_service', lambda: NotificationService(
            self.user_repo,
            self.client_repo,
            self.message_log_repo,
            self.template_service,
            self.http_session,
        ))

    @property
    def client_service(self) -> ClientService:
        return self._get('client_service', lambda: ClientService(
            self.client_repo,
            self.unit_repo,
            self.payment_repo,
            self.user_repo,
            self.pgps,
            self.audit_service,
        ))

    @property
    def unit_service(self) -> UnitService:
        return self._get('unit_service', lambda: UnitService(
            self.unit_repo,
            self.client_repo,
            self.payment_repo,
            self.user_repo,
            self.pgps,
            self.notification_service,
            self.audit_service,
        ))

    @property
    def payment_service(self) -> PaymentService:
        return self._get('payment_service', lambda: PaymentService(
            self.payment_repo,
            self.unit_repo,
            self.client_repo,
            self.user_repo,
            self.notification_service,
            self.audit_service,
        ))

    @property
    def reminder_service(self) -> ReminderService:
        return self._get('reminder_service', lambda: ReminderService(
            self.unit_service,
            self.notification_service,
            self.audit_service,
        ))

    @property
    def user_service(self) -> UserService:
        return self._get('user_service', lambda: UserService(self.user_repo, self.audit_service))

    @property
    def work_order_service(self) -> WorkOrderService:
        return self._get('work_order_service', lambda: WorkOrderService(
            self.work_order_repo,
            self.user_repo,
            self.notification_service,
            self.audit_service,
        ))

    @property
    def installation_order_service(self) -> InstallationOrderService:
        return self._get('installation_order_service', lambda: InstallationOrderService(
            self.installation_order_repo,
            self.user_repo,
            self.notification_service,
            self.audit_service,
        ))

    @property
    def catalog_service(self) -> CatalogService:
        return self._get('catalog_service', lambda: CatalogService(self.country_repo, self.city_repo))

    @property
    def message_log_service(self) -> MessageLogService:
        return self._get('message_log_service', lambda: MessageLogService(self.message_log_repo))

    @property
    def backup_service(self) -> BackupService:
        return self._get('backup_service', lambda: BackupService(self._data_dir))

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """Descarta todas las instancias (se recrean en el siguiente acceso)."""
        self._instances = {}

    @classmethod
    def get_instance(cls, data_dir: str = None, http_session: requests.Session = None) -> 'AppContainer':
        if cls._instance is None:
            return cls(data_dir, http_session)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


def get_container(data_dir: str = None, http_session: requests.Session = None) -> AppContainer:
    """
    Contenedor de dependencias global.

    Args:
        data_dir: Directorio de datos (solo se usa en la primera llamada)
        http_session: Sesión HTTP (solo se usa en la primera llamada)
    """
    return AppContainer.get_instance(data_dir, http_session)
