# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio.
# Diseñadas para ser independientes del mecanismo de persistencia: los
# repositorios guardan diccionarios y los servicios convierten con
# from_dict / to_dict cuando necesitan comportamiento.
# ==============================================================================

from dataclasses import dataclass, field, asdict
from typing import Optional, List, Dict, Any
from enum import Enum


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class UserRole(str, Enum):
    """Roles de usuario disponibles en el sistema."""
    MASTER = "master"        # Ve y administra todo
    MANAGER = "manager"      # Dueño de su cartera de clientes
    ANALISTA = "analista"    # Trabaja sobre la cartera de su manager (creatorId)
    USUARIO = "usuario"
    TECNICO = "tecnico"      # Solo ve órdenes asignadas


class ClientStatus(str, Enum):
    AL_DIA = "al dia"
    ADEUDA = "adeuda"
    RETIRADO = "retirado"


class IdType(str, Enum):
    """Tipo de identificación tributaria: Cédula o RUC."""
    CEDULA = "C"
    RUC = "R"


class PlanType(str, Enum):
    ESTANDAR_SC = "estandar-sc"
    AVANZADO_SC = "avanzado-sc"
    TOTAL_SC = "total-sc"
    ESTANDAR_CC = "estandar-cc"
    AVANZADO_CC = "avanzado-cc"
    TOTAL_CC = "total-cc"


class ContractType(str, Enum):
    """Modalidad de cobro de una unidad."""
    SIN_CONTRATO = "sin_contrato"  # Cargo mensual fijo
    CON_CONTRATO = "con_contrato"  # Costo total repartido en N meses


class PaymentMethod(str, Enum):
    TRANSFERENCIA = "transferencia"
    EFECTIVO = "efectivo"


class TemplateEventType(str, Enum):
    """Eventos que disparan un mensaje con plantilla."""
    PAYMENT_REMINDER = "payment_reminder"
    PAYMENT_DUE_TODAY = "payment_due_today"
    PAYMENT_OVERDUE = "payment_overdue"
    PAYMENT_RECEIVED = "payment_received"
    SERVICE_SUSPENDED = "service_suspended"
    SERVICE_REACTIVATED = "service_reactivated"


class MessageLogStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class WorkOrderPriority(str, Enum):
    ALTA = "alta"
    MEDIA = "media"
    BAJA = "baja"


class WorkOrderStatus(str, Enum):
    PENDIENTE = "pendiente"
    EN_PROGRESO = "en-progreso"
    COMPLETADA = "completada"


class InstallationStatus(str, Enum):
    PENDIENTE = "pendiente"
    EN_CURSO = "en-curso"
    TERMINADO = "terminado"


class InstallationPlan(str, Enum):
    ESTANDAR_CC = "estandar-cc"
    AVANZADO_CC = "avanzado-cc"
    TOTAL_CC = "total-cc"


class InstallationCategory(str, Enum):
    PESADO = "pesado"
    LIVIANO = "liviano"
    MOTO_LINEAL = "moto lineal"
    MOTOTAXI = "mototaxi"


class VehicleType(str, Enum):
    AUTO = "auto"
    CAMIONETA = "camioneta"
    CAMION = "camion"
    FURGON = "furgón"
    TRAILER = "trailer"


class Segment(str, Enum):
    PERSONAL = "personal"
    NEGOCIO = "negocio"
    CORPORATIVO = "corporativo"


class AuditType(str, Enum):
    """Tipos de eventos de auditoría."""
    CLIENTE = "CLIENTE"
    UNIDAD = "UNIDAD"
    PAGO = "PAGO"
    USUARIO = "USUARIO"
    ORDEN = "ORDEN"
    NOTIFICACION = "NOTIFICACION"
    SISTEMA = "SISTEMA"


def enum_values(enum_cls) -> frozenset:
    """Conjunto de valores válidos de una enumeración."""
    return frozenset(member.value for member in enum_cls)


# ==============================================================================
# USUARIOS
# ==============================================================================

@dataclass
class User:
    """
    Representa un usuario del sistema.

    Attributes:
        id: Identificador del documento
        username: Nombre de inicio de sesión (único)
        password_hash: Hash werkzeug (nunca texto plano)
        role: Rol que define permisos y alcance de datos
        creator_id: Manager que creó al analista/técnico
    """
    id: str
    username: str
    password_hash: str = ''
    role: UserRole = UserRole.USUARIO
    nombre: str = ''
    correo: str = ''
    telefono: str = ''
    empresa: str = ''
    nota: str = ''
    creator_id: Optional[str] = None
    notification_url: Optional[str] = None

    def to_dict(self, include_password: bool = True) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia."""
        data = {
            'id': self.id,
            'username': self.username,
            'role': self.role.value if isinstance(self.role, Enum) else self.role,
            'nombre': self.nombre,
            'correo': self.correo,
            'telefono': self.telefono,
            'empresa': self.empresa,
            'nota': self.nota,
            'creatorId': self.creator_id,
            'notificationUrl': self.notification_url,
        }
        if include_password:
            data['password'] = self.password_hash
        return data


# ==============================================================================
# PAGOS
# ==============================================================================

@dataclass
class Payment:
    """Pago registrado contra una unidad (N meses cubiertos)."""
    unit_id: str
    client_id: str
    client_name: str
    unit_placa: str
    fecha_pago: str
    numero_factura: str
    monto: float
    forma_pago: PaymentMethod
    meses_pagados: int
    owner_id: Optional[str] = None
    id: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'unitId': self.unit_id,
            'clientId': self.client_id,
            'clientName': self.client_name,
            'unitPlaca': self.unit_placa,
            'ownerId': self.owner_id,
            'fechaPago': self.fecha_pago,
            'numeroFactura': self.numero_factura,
            'monto': round(self.monto, 2),
            'formaPago': self.forma_pago.value if isinstance(self.forma_pago, Enum) else self.forma_pago,
            'mesesPagados': self.meses_pagados,
        }


# ==============================================================================
# MENSAJERÍA
# ==============================================================================

@dataclass
class MessageTemplate:
    name: str
    event_type: TemplateEventType
    content: str
    is_global: bool = False
    is_active: bool = True
    owner_id: Optional[str] = None
    id: str = ''

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'name': self.name,
            'eventType': self.event_type.value if isinstance(self.event_type, Enum) else self.event_type,
            'content': self.content,
            'isGlobal': self.is_global,
            'isActive': self.is_active,
        }
        if self.owner_id:
            data['ownerId'] = self.owner_id
        return data


@dataclass
class MessageLog:
    """Registro de un mensaje enviado (o fallido) a un destinatario."""
    owner_id: str
    recipient_number: str
    client_id: str
    client_name: str
    message_content: str
    sent_at: str
    status: MessageLogStatus
    notification_url: str = ''
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'ownerId': self.owner_id,
            'notificationUrl': self.notification_url,
            'recipientNumber': self.recipient_number,
            'clientId': self.client_id,
            'clientName': self.client_name,
            'messageContent': self.message_content,
            'sentAt': self.sent_at,
            'status': self.status.value if isinstance(self.status, Enum) else self.status,
        }
        if self.error_message:
            data['errorMessage'] = self.error_message
        return data


# ==============================================================================
# INTEGRACIÓN P. GPS
# ==============================================================================

@dataclass
class PgpsSettings:
    """Credenciales de la API de administración de P. GPS."""
    url: str = ''
    user: str = ''
    api_key: str = ''

    def is_configured(self) -> bool:
        return bool(self.url and self.api_key)

    def to_dict(self) -> Dict[str, Any]:
        return {'url': self.url, 'user': self.user, 'apiKey': self.api_key}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PgpsSettings':
        data = data or {}
        return cls(
            url=(data.get('url') or '').strip(),
            user=(data.get('user') or '').strip(),
            api_key=(data.get('apiKey') or '').strip(),
        )


@dataclass
class PgpsDevice:
    """Dispositivo tal como lo devuelve la API de P. GPS (campos usados)."""
    id: str
    name: str = ''
    imei: str = ''
    active: bool = True
    plate_number: str = ''
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'PgpsDevice':
        known = {'id', 'name', 'imei', 'active', 'plate_number'}
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name') or '',
            imei=str(data.get('imei') or ''),
            active=bool(data.get('active', True)),
            plate_number=data.get('plate_number') or '',
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        extra = data.pop('extra')
        data.update(extra)
        return data


# Listas de campos por entidad (usadas en validación y limpieza)
CLIENT_FIELDS: List[str] = [
    'codTipoId', 'codIdSujeto', 'nomSujeto', 'direccion', 'ciudad', 'telefono',
    'numOperacion', 'fecConcesion', 'valOperacion', 'valorPago', 'fecVencimiento',
    'valorVencido', 'usuario', 'estado',
]

UNIT_FIELDS: List[str] = [
    'imei', 'placa', 'modelo', 'tipoPlan', 'tipoContrato', 'costoMensual',
    'costoTotalContrato', 'mesesContrato', 'saldoContrato', 'numeroOperacion',
    'fechaInstalacion', 'fechaInicioContrato', 'fechaVencimiento', 'ultimoPago',
    'fechaSiguientePago', 'diasCorte', 'estaSuspendido', 'fechaSuspension',
    'observacion', 'urlContrato',
]

CONTRACT_ONLY_FIELDS: List[str] = [
    'costoTotalContrato', 'mesesContrato', 'saldoContrato', 'numeroOperacion',
]
