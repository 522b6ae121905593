# ==============================================================================
# SERVICIO DE REPORTES (EXCEL)
# ==============================================================================
# Reportes de órdenes de soporte, instalaciones y pagos:
#   - Filtros por año, mes, técnico, estado y prioridad
#   - Resumen de conteos para el panel de reportes
#   - Exportación a .xlsx con encabezado estilizado (openpyxl)
# ==============================================================================

from collections import Counter
from io import BytesIO
from typing import Any, Dict, Iterable, List, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from sgi_gps.services import billing


# ═══════════════════════════════════════════════════════════════════════════
# ESTILOS
# ═══════════════════════════════════════════════════════════════════════════

_HEADER_FILL = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")
_HEADER_FONT = Font(color="FFFFFF", bold=True)
_HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center", wrap_text=True)
_ALT_ROW_FILL = PatternFill(start_color="F3F6FC", end_color="F3F6FC", fill_type="solid")
_DATA_ALIGNMENT = Alignment(horizontal="left", vertical="top", wrap_text=True)
_BORDER = Border(
    left=Side(style="thin", color="D9D9D9"),
    right=Side(style="thin", color="D9D9D9"),
    top=Side(style="thin", color="D9D9D9"),
    bottom=Side(style="thin", color="D9D9D9"),
)

MIN_COLUMN_WIDTH = 12
MAX_COLUMN_WIDTH = 60

UNASSIGNED = 'No Asignado'

WORK_ORDER_SHEET = 'Reporte de Soporte'
INSTALLATION_SHEET = 'Reporte de Instalaciones'
PAYMENT_SHEET = 'Historial de Pagos'

WORK_ORDER_HEADERS = (
    'ID Orden', 'Estado', 'Prioridad', 'Fecha Programada', 'Hora Programada', 'Cliente',
    'Placa', 'Ciudad', 'Técnico', 'Descripción', 'Observación Técnico',
)

INSTALLATION_HEADERS = (
    'ID Orden', 'Estado', 'Fecha Programada', 'Hora Programada', 'Cliente', 'Placa', 'Ciudad',
    'Técnico', 'Plan', 'Categoría', 'Tipo Vehículo', 'Segmento', 'Método Pago',
    'Monto Efectivo', 'Corte de Motor', 'Lugar de Corte', 'Observación Técnico',
)

PAYMENT_HEADERS = (
    'Fecha de Pago', 'Cliente', 'Placa', 'Propietario', 'Factura',
    'Forma de Pago', 'Meses Pagados', 'Monto',
)


def style_sheet(worksheet: Worksheet, header_count: int) -> None:
    """Encabezado azul, bordes, filas alternas y ancho de columnas automático."""
    worksheet.row_dimensions[1].height = 26
    for cell in worksheet[1]:
        cell.fill = _HEADER_FILL
        cell.font = _HEADER_FONT
        cell.alignment = _HEADER_ALIGNMENT
        cell.border = _BORDER

    for row_index in range(2, worksheet.max_row + 1):
        alt = row_index % 2 == 1
        for cell in worksheet[row_index]:
            cell.alignment = _DATA_ALIGNMENT
            cell.border = _BORDER
            if alt:
                cell.fill = _ALT_ROW_FILL

    for index in range(1, header_count + 1):
        longest = max(
            (len(str(worksheet.cell(row=r, column=index).value or '')) for r in range(1, worksheet.max_row + 1)),
            default=0,
        )
        width = max(MIN_COLUMN_WIDTH, min(longest + 4, MAX_COLUMN_WIDTH))
        worksheet.column_dimensions[get_column_letter(index)].width = width

    worksheet.freeze_panes = 'A2'


def build_workbook(sheet_title: str, headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> BytesIO:
    """
    Crea un libro de una hoja y lo retorna en memoria.

    Args:
        sheet_title: Nombre de la hoja
        headers: Encabezados de columna
        rows: Filas de datos (mismo orden que headers)

    Returns:
        BytesIO posicionado al inicio
    """
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = sheet_title
    worksheet.append(list(headers))
    for row in rows:
        worksheet.append(list(row))
    style_sheet(worksheet, len(headers))

    output = BytesIO()
    workbook.save(output)
    output.seek(0)
    return output


# ═══════════════════════════════════════════════════════════════════════════
# FILTROS Y RESUMEN
# ═══════════════════════════════════════════════════════════════════════════

def _as_set(values: Any) -> set:
    if not values:
        return set()
    if isinstance(values, str):
        values = values.split(',')
    return {str(v).strip() for v in values if str(v).strip()}


def filter_orders(
    orders: Iterable[Dict[str, Any]],
    years: Any = None,
    months: Any = None,
    technicians: Any = None,
    statuses: Any = None,
    priorities: Any = None
) -> List[Dict[str, Any]]:
    """
    Filtra órdenes. Cada filtro vacío no restringe.

    Args:
        years: Años ('2025') de la fecha programada
        months: Meses ('1'..'12') de la fecha programada
        technicians: IDs de técnico
        statuses: Estados
        priorities: Prioridades (solo órdenes de soporte)
    """
    years, months = _as_set(years), _as_set(months)
    technicians, statuses, priorities = _as_set(technicians), _as_set(statuses), _as_set(priorities)

    result = []
    for order in orders:
        scheduled = billing.parse_date(order.get('fechaProgramada'))
        if years and (scheduled is None or str(scheduled.year) not in years):
            continue
        if months and (scheduled is None or str(scheduled.month) not in months):
            continue
        if technicians and order.get('tecnicoId') not in technicians:
            continue
        if statuses and order.get('estado') not in statuses:
            continue
        if priorities and order.get('prioridad') not in priorities:
            continue
        result.append(order)
    return result


def summarize_orders(orders: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Conteos por estado, prioridad, técnico y mes para el panel de reportes."""
    by_month = Counter()
    for order in orders:
        scheduled = billing.parse_date(order.get('fechaProgramada'))
        if scheduled:
            by_month[f"{scheduled.year}-{scheduled.month:02d}"] += 1
    by_technician = Counter(order.get('tecnicoNombre') or UNASSIGNED for order in orders)
    return {
        'total': len(orders),
        'by_status': dict(Counter(order.get('estado') for order in orders)),
        'by_priority': dict(Counter(order.get('prioridad') for order in orders if order.get('prioridad'))),
        'by_technician': [{'name': n, 'total': t} for n, t in by_technician.most_common()],
        'by_month': dict(sorted(by_month.items())),
    }


# ═══════════════════════════════════════════════════════════════════════════
# EXPORTACIONES
# ═══════════════════════════════════════════════════════════════════════════

def _iso_day(value: Any) -> str:
    parsed = billing.parse_date(value)
    return parsed.isoformat() if parsed else ''


def export_work_orders(orders: Iterable[Dict[str, Any]]) -> BytesIO:
    rows = (
        (
            o.get('id'), o.get('estado'), o.get('prioridad'), _iso_day(o.get('fechaProgramada')),
            o.get('horaProgramada'), o.get('nombreCliente'), o.get('placaVehiculo'), o.get('ciudad'),
            o.get('tecnicoNombre') or UNASSIGNED, o.get('descripcion'), o.get('observacion'),
        )
        for o in orders
    )
    return build_workbook(WORK_ORDER_SHEET, WORK_ORDER_HEADERS, rows)


def export_installation_orders(orders: Iterable[Dict[str, Any]]) -> BytesIO:
    rows = (
        (
            o.get('id'), o.get('estado'), _iso_day(o.get('fechaProgramada')), o.get('horaProgramada'),
            o.get('nombreCliente'), o.get('placaVehiculo'), o.get('ciudad'),
            o.get('tecnicoNombre') or UNASSIGNED, o.get('tipoPlan'), o.get('categoriaInstalacion'),
            o.get('tipoVehiculo'), o.get('segmento'), o.get('metodoPago') or 'N/A',
            o.get('montoEfectivo') if o.get('metodoPago') == 'efectivo' else 'N/A',
            'Sí' if o.get('corteDeMotor') else 'No', o.get('lugarCorteMotor') or 'N/A',
            o.get('observacion'),
        )
        for o in orders
    )
    return build_workbook(INSTALLATION_SHEET, INSTALLATION_HEADERS, rows)


def export_payments(payments: Iterable[Dict[str, Any]]) -> BytesIO:
    rows = (
        (
            _iso_day(p.get('fechaPago')), p.get('clientName'), p.get('unitPlaca'),
            p.get('ownerName') or 'N/A', p.get('numeroFactura'), p.get('formaPago'),
            p.get('mesesPagados'), round(float(p.get('monto') or 0), 2),
        )
        for p in payments
    )
    return build_workbook(PAYMENT_SHEET, PAYMENT_HEADERS, rows)
