# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Enumeraciones con los valores válidos de cada campo y dataclasses para las
# entidades que llevan comportamiento (usuarios, pagos, mensajes, integración).
# ==============================================================================

from .entities import (
    # Usuarios
    User,
    UserRole,

    # Clientes y unidades
    ClientStatus,
    IdType,
    PlanType,
    ContractType,

    # Pagos
    Payment,
    PaymentMethod,

    # Mensajería
    MessageTemplate,
    MessageLog,
    MessageLogStatus,
    TemplateEventType,

    # Órdenes
    WorkOrderPriority,
    WorkOrderStatus,
    InstallationStatus,
    InstallationPlan,
    InstallationCategory,
    VehicleType,
    Segment,

    # Integración
    PgpsSettings,
    PgpsDevice,

    # Auditoría
    AuditType,

    enum_values,
)

__all__ = [
    'User',
    'UserRole',
    'ClientStatus',
    'IdType',
    'PlanType',
    'ContractType',
    'Payment',
    'PaymentMethod',
    'MessageTemplate',
    'MessageLog',
    'MessageLogStatus',
    'TemplateEventType',
    'WorkOrderPriority',
    'WorkOrderStatus',
    'InstallationStatus',
    'InstallationPlan',
    'InstallationCategory',
    'VehicleType',
    'Segment',
    'PgpsSettings',
    'PgpsDevice',
    'AuditType',
    'enum_values',
]
