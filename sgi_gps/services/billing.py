# ==============================================================================
# CÁLCULOS DE COBRO - Fechas y montos de las unidades
# ==============================================================================
# Funciones puras (sin acceso a repositorios) que usan pagos, recordatorios,
# notificaciones y el dashboard:
#
#   - Costo mensual según modalidad (sin/con contrato)
#   - Avance y reversión del ciclo de cobro al registrar/eliminar pagos
#   - Fecha de corte, monto vencido y estado de pago de una unidad
#   - Clasificación en baldes de recordatorio (±3 días / hoy)
#
# Las fechas se guardan como texto ISO-8601; aquí se trabajan como date.
# ==============================================================================

import math
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from dateutil import parser as date_parser
from dateutil import tz
from dateutil.relativedelta import relativedelta

from sgi_gps import config


# Estados de pago (dashboard y listados)
STATUS_SUSPENDED = 'suspended'
STATUS_NO_DATE = 'no_date'
STATUS_OVERDUE = 'overdue'
STATUS_DUE_TODAY = 'due_today'
STATUS_DUE_SOON = 'due_soon'
STATUS_CURRENT = 'current'

PAYMENT_STATUSES = (
    STATUS_CURRENT, STATUS_DUE_SOON, STATUS_DUE_TODAY,
    STATUS_OVERDUE, STATUS_SUSPENDED, STATUS_NO_DATE,
)

# Ventana de "por vencer" en días
DUE_SOON_DAYS = 7

# Días de anticipación/atraso para los recordatorios automáticos
REMINDER_OFFSET_DAYS = 3

# Días por "mes vencido" al calcular el monto adeudado
DAYS_PER_OVERDUE_MONTH = 30

MONTHS_ES = ('ENE', 'FEB', 'MAR', 'ABR', 'MAY', 'JUN',
             'JUL', 'AGO', 'SEP', 'OCT', 'NOV', 'DIC')


# ==============================================================================
# FECHAS
# ==============================================================================

def today_local() -> date:
    """Fecha de hoy en la zona horaria del negocio."""
    return datetime.now(tz.gettz(config.TIMEZONE)).date()


def parse_date(value: Any) -> Optional[date]:
    """
    Convierte un valor guardado a date.

    Args:
        value: date, datetime o texto ISO ('2025-01-10' o '2025-01-10T05:00:00Z')

    Returns:
        date o None si el valor está vacío o no es una fecha válida
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date_parser.isoparse(str(value)).date()
    except (ValueError, OverflowError):
        return None


def add_months(value: date, months: int) -> date:
    """Suma (o resta) meses calendario; el día se ajusta al fin de mes."""
    return value + relativedelta(months=months)


def format_date(value: Any) -> str:
    """
    Fecha legible para mensajes: '05 ENE 2025'.

    Returns:
        Texto en mayúsculas o un marcador si la fecha falta/es inválida
    """
    if value is None or value == '':
        return '[Fecha no disponible]'
    parsed = parse_date(value)
    if parsed is None:
        return '[Fecha inválida]'
    return f"{parsed.day:02d} {MONTHS_ES[parsed.month - 1]} {parsed.year}"


def format_currency(amount: Optional[float]) -> str:
    """$1,234.56"""
    return f"${(amount or 0):,.2f}"


# ==============================================================================
# MONTOS
# ==============================================================================

def monthly_cost(unit: Dict[str, Any]) -> float:
    """
    Costo mensual de una unidad.

    Con contrato el costo total se reparte entre los meses del contrato;
    sin contrato se usa el cargo mensual fijo.
    """
    if not unit:
        return 0.0
    if unit.get('tipoContrato') == 'con_contrato':
        return float(unit.get('costoTotalContrato') or 0) / (int(unit.get('mesesContrato') or 0) or 1)
    return float(unit.get('costoMensual') or 0)


def cutoff_date(unit: Dict[str, Any]) -> Optional[date]:
    """Fecha de corte: siguiente pago + días de gracia (None si falta algún dato)."""
    next_payment = parse_date(unit.get('fechaSiguientePago'))
    dias_corte = unit.get('diasCorte')
    if next_payment is None or dias_corte is None or dias_corte == '':
        return None
    return next_payment + timedelta(days=int(dias_corte))


def overdue_amount(unit: Dict[str, Any], today: date = None) -> float:
    """
    Monto vencido de una unidad.

    Cada bloque de 30 días de atraso (contando el día del vencimiento)
    suma un mes de costo.
    """
    today = today or today_local()
    next_payment = parse_date(unit.get('fechaSiguientePago'))
    if next_payment is None or today < next_payment:
        return 0.0
    rate = monthly_cost(unit)
    if rate == 0:
        return 0.0
    days_overdue = (today - next_payment).days
    return (math.floor(days_overdue / DAYS_PER_OVERDUE_MONTH) + 1) * rate


def amount_to_pay(unit: Dict[str, Any], today: date = None) -> float:
    overdue = overdue_amount(unit, today)
    return overdue if overdue > 0 else monthly_cost(unit)


# ==============================================================================
# CICLO DE COBRO
# ==============================================================================

def apply_payment(unit: Dict[str, Any], fecha_pago: date, meses: int) -> Tuple[Dict[str, Any], float]:
    """
    Avanza el ciclo de cobro de una unidad por un pago de N meses.

    Args:
        unit: Documento de la unidad
        fecha_pago: Fecha del pago
        meses: Meses cubiertos (>= 1)

    Returns:
        Tupla (campos_a_actualizar, monto_del_pago)
    """
    current_expiration = parse_date(unit.get('fechaVencimiento'))
    base = max(current_expiration, fecha_pago) if current_expiration else fecha_pago

    new_expiration = add_months(base, meses)
    next_payment = add_months(new_expiration, 1)
    amount = monthly_cost(unit) * meses

    updates = {
        'fechaVencimiento': new_expiration.isoformat(),
        'fechaSiguientePago': next_payment.isoformat(),
        'ultimoPago': fecha_pago.isoformat(),
    }

    if unit.get('tipoContrato') == 'con_contrato':
        saldo = unit.get('saldoContrato')
        if saldo is None:
            saldo = float(unit.get('costoTotalContrato') or 0)
        updates['saldoContrato'] = round(float(saldo) - amount, 2)

    return updates, amount


def revert_payment(unit: Dict[str, Any], meses: int) -> Dict[str, Any]:
    """
    Deshace el avance de un pago de N meses.

    Returns:
        Campos a actualizar en la unidad

    Raises:
        ValueError: Si la unidad no tiene una fecha de siguiente pago válida
    """
    next_payment = parse_date(unit.get('fechaSiguientePago'))
    if next_payment is None:
        raise ValueError('La unidad no tiene una fecha de siguiente pago válida para revertir.')

    updates = {'fechaSiguientePago': add_months(next_payment, -meses).isoformat()}

    current_expiration = parse_date(unit.get('fechaVencimiento'))
    if current_expiration is not None:
        updates['fechaVencimiento'] = add_months(current_expiration, -meses).isoformat()

    if unit.get('tipoContrato') == 'con_contrato':
        saldo = float(unit.get('saldoContrato') or 0)
        updates['saldoContrato'] = round(saldo + monthly_cost(unit) * meses, 2)

    return updates


# ==============================================================================
# CLASIFICACIÓN
# ==============================================================================

def payment_status(unit: Dict[str, Any], today: date = None) -> str:
    """
    Estado de pago de una unidad respecto a su fecha de siguiente pago.

    Returns:
        suspended | no_date | overdue | due_today | due_soon | current
    """
    if unit.get('estaSuspendido'):
        return STATUS_SUSPENDED
    next_payment = parse_date(unit.get('fechaSiguientePago'))
    if next_payment is None:
        return STATUS_NO_DATE
    today = today or today_local()
    days_left = (next_payment - today).days
    if days_left < 0:
        return STATUS_OVERDUE
    if days_left == 0:
        return STATUS_DUE_TODAY
    if days_left <= DUE_SOON_DAYS:
        return STATUS_DUE_SOON
    return STATUS_CURRENT


def reminder_bucket(unit: Dict[str, Any], today: date = None) -> Optional[str]:
    """
    Evento de recordatorio que corresponde hoy a una unidad.

    Solo coincidencias exactas de día: hoy+3 (recordatorio), hoy (vence hoy)
    y hoy-3 (vencido).

    Returns:
        payment_reminder | payment_due_today | payment_overdue | None
    """
    if unit.get('estaSuspendido'):
        return None
    next_payment = parse_date(unit.get('fechaSiguientePago'))
    if next_payment is None:
        return None
    today = today or today_local()
    offset = timedelta(days=REMINDER_OFFSET_DAYS)
    if next_payment == today + offset:
        return 'payment_reminder'
    if next_payment == today:
        return 'payment_due_today'
    if next_payment == today - offset:
        return 'payment_overdue'
    return None
