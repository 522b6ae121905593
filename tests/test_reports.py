from io import BytesIO

from openpyxl import load_workbook

from sgi_gps.services import report_service


ORDERS = [
    {'id': 'a', 'fechaProgramada': '2025-01-10', 'estado': 'pendiente', 'prioridad': 'alta', 'tecnicoId': 't1', 'tecnicoNombre': 'Pedro'},
    {'id': 'b', 'fechaProgramada': '2025-02-03', 'estado': 'completada', 'prioridad': 'baja', 'tecnicoId': 't1', 'tecnicoNombre': 'Pedro'},
    {'id': 'c', 'fechaProgramada': '2024-02-20', 'estado': 'completada', 'prioridad': 'alta'},
    {'id': 'd', 'estado': 'pendiente'},
]


def _rows(output):
    workbook = load_workbook(BytesIO(output.getvalue()))
    sheet = workbook.active
    return sheet.title, [list(row) for row in sheet.iter_rows(values_only=True)]


def test_filter_orders_by_date_parts():
    assert [o['id'] for o in report_service.filter_orders(ORDERS, years=['2025'])] == ['a', 'b']
    assert [o['id'] for o in report_service.filter_orders(ORDERS, months='2')] == ['b', 'c']
    assert [o['id'] for o in report_service.filter_orders(ORDERS, years='2025,2024', months=['2'])] == ['b', 'c']


def test_filter_orders_by_attributes():
    assert [o['id'] for o in report_service.filter_orders(ORDERS, technicians=['t1'], statuses=['completada'])] == ['b']
    assert [o['id'] for o in report_service.filter_orders(ORDERS, priorities='alta')] == ['a', 'c']
    assert report_service.filter_orders(ORDERS) == ORDERS


def test_summarize_orders():
    summary = report_service.summarize_orders(ORDERS)

    assert summary['total'] == 4
    assert summary['by_status'] == {'pendiente': 2, 'completada': 2}
    assert summary['by_priority'] == {'alta': 2, 'baja': 1}
    assert summary['by_technician'][0] == {'name': 'Pedro', 'total': 2}
    assert {'name': 'No Asignado', 'total': 2} in summary['by_technician']
    assert summary['by_month'] == {'2024-02': 1, '2025-01': 1, '2025-02': 1}


def test_export_work_orders_sheet():
    orders = [dict(ORDERS[0], nombreCliente='Ana', placaVehiculo='P-1', descripcion='Sin señal')]
    title, rows = _rows(report_service.export_work_orders(orders))

    assert title == 'Reporte de Soporte'
    assert rows[0] == list(report_service.WORK_ORDER_HEADERS)
    assert rows[1][:4] == ['a', 'pendiente', 'alta', '2025-01-10']
    assert rows[1][8] == 'Pedro'


def test_export_installations_hides_cash_amount_for_transfers():
    orders = [
        {'id': 'x', 'metodoPago': 'efectivo', 'montoEfectivo': 25, 'corteDeMotor': True, 'lugarCorteMotor': 'Tablero'},
        {'id': 'y', 'metodoPago': 'transferencia', 'montoEfectivo': 25},
    ]
    title, rows = _rows(report_service.export_installation_orders(orders))
    headers = rows[0]
    amount_col = headers.index('Monto Efectivo')
    cut_col = headers.index('Corte de Motor')

    assert title == 'Reporte de Instalaciones'
    assert rows[1][amount_col] == 25
    assert rows[2][amount_col] == 'N/A'
    assert rows[1][cut_col] == 'Sí'
    assert rows[2][cut_col] == 'No'
    assert rows[1][7] == 'No Asignado'


def test_export_payments_sheet():
    payments = [{'fechaPago': '2025-03-01T10:00:00', 'clientName': 'Ana', 'unitPlaca': 'P-1',
                 'numeroFactura': 'F1', 'formaPago': 'efectivo', 'mesesPagados': 2, 'monto': '30.5'}]
    title, rows = _rows(report_service.export_payments(payments))

    assert title == 'Historial de Pagos'
    assert rows[1] == ['2025-03-01', 'Ana', 'P-1', 'N/A', 'F1', 'efectivo', 2, 30.5]


def test_header_is_styled_and_frozen():
    workbook = load_workbook(BytesIO(report_service.export_payments([]).getvalue()))
    sheet = workbook.active
    assert sheet.freeze_panes == 'A2'
    assert sheet['A1'].font.bold is True
    assert sheet.max_row == 1
