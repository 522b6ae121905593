from io import BytesIO

import pytest
from openpyxl import Workbook, load_workbook

from sgi_gps.main import app
from sgi_gps.services.user_service import LOGIN_ERROR


@pytest.fixture
def web(container):
    app.config['TESTING'] = True
    with app.test_client() as test_client:
        yield test_client


def login(web, username, password='secreto123'):
    token = web.get('/').get_json()['csrf_token']
    response = web.post('/', json={'username': username, 'password': password, 'csrf_token': token})
    assert response.status_code == 200
    return response.get_json()['csrf_token']


def _client_form():
    return {
        'codTipoId': 'R',
        'codIdSujeto': '1790012345001',
        'nomSujeto': 'Logística Norte',
        'direccion': 'Av. Amazonas',
        'estado': 'al dia',
    }


def test_index_returns_csrf_token(web):
    body = web.get('/').get_json()
    assert body['ok'] is True
    assert body['csrf_token']
    assert body['user'] is None


def test_login_requires_csrf(web, manager):
    response = web.post('/', json={'username': 'gestor', 'password': 'secreto123'})
    assert response.status_code == 403
    assert response.get_json() == {'ok': False, 'error': 'CSRF token inválido'}


def test_login_failure_is_generic(web, manager):
    token = web.get('/').get_json()['csrf_token']
    response = web.post('/', json={'username': 'gestor', 'password': 'mala', 'csrf_token': token})
    assert response.status_code == 401
    assert response.get_json()['error'] == LOGIN_ERROR


def test_login_accepts_form_data(web, manager):
    token = web.get('/').get_json()['csrf_token']
    response = web.post('/', data={'user': 'gestor', 'password': 'secreto123', 'csrf_token': token})
    body = response.get_json()
    assert body['ok'] is True
    assert body['user']['username'] == 'gestor'
    assert 'password' not in body['user']


def test_api_requires_login(web):
    response = web.get('/api/clients')
    assert response.status_code == 401
    assert response.get_json()['ok'] is False


def test_session_and_logout(web, manager):
    login(web, 'gestor')
    assert web.get('/api/session').get_json()['user']['id'] == manager['id']
    assert web.get('/logout').status_code == 200
    assert web.get('/api/session').status_code == 401


def test_create_and_list_clients(web, manager):
    token = login(web, 'gestor')

    response = web.post('/api/clients', json=_client_form(), headers={'X-CSRF-Token': token})

    assert response.status_code == 201
    client_id = response.get_json()['client']['id']
    listed = web.get('/api/clients').get_json()['clients']
    assert [c['id'] for c in listed] == [client_id]
    detail = web.get(f'/api/clients/{client_id}').get_json()
    assert detail['client']['nomSujeto'] == 'Logística Norte'
    assert detail['units'] == []


def test_post_without_token_is_rejected(web, manager):
    login(web, 'gestor')
    response = web.post('/api/clients', json=_client_form())
    assert response.status_code == 403


def test_service_errors_map_to_status_codes(web, manager):
    token = login(web, 'gestor')
    headers = {'X-CSRF-Token': token}

    missing = web.post('/api/clients/nope/delete', headers=headers)
    assert missing.status_code == 404

    invalid = web.post('/api/clients', json=dict(_client_form(), codTipoId='Z'), headers=headers)
    assert invalid.status_code == 400


def test_foreign_client_is_hidden(web, manager, make_user, make_client):
    foreign = make_client(make_user('gestor2', 'manager'))
    login(web, 'gestor')
    assert web.get(f"/api/clients/{foreign['id']}").status_code == 404


def test_role_restricted_routes(web, manager):
    login(web, 'gestor')
    response = web.get('/api/audit')
    assert response.status_code == 403
    assert response.get_json() == {'ok': False, 'error': 'Permiso denegado.'}
    assert web.get('/api/backups/status').status_code == 403
    assert web.get('/api/users').status_code == 200


def test_master_reads_audit_and_backup_status(web, master):
    login(web, 'master')
    logs = web.get('/api/audit?type=SISTEMA').get_json()['logs']
    assert logs and logs[0]['type'] == 'SISTEMA'
    status = web.get('/api/backups/status').get_json()
    assert status['ok'] is True
    assert status['max_backups'] == 7


def test_security_headers(web):
    response = web.get('/')
    assert response.headers['X-Frame-Options'] == 'DENY'
    assert response.headers['X-Content-Type-Options'] == 'nosniff'
    assert 'Strict-Transport-Security' not in response.headers


def test_sensitive_paths_are_blocked(web):
    assert web.get('/backups/backup_2025-01-01.zip').status_code == 404
    assert web.get('/logs/performance.log').status_code == 404


def test_register_payment_with_single_unit_id(web, manager, make_client, make_unit):
    client = make_client(manager)
    unit = make_unit(client)
    token = login(web, 'gestor')

    response = web.post('/api/payments', json={
        'clientId': client['id'],
        'unitId': unit['id'],
        'fechaPago': '2025-03-01',
        'numeroFactura': 'F-1',
        'formaPago': 'efectivo',
        'mesesPagados': 1,
    }, headers={'X-CSRF-Token': token})

    assert response.status_code == 201
    history = web.get('/api/payments').get_json()['payments']
    assert len(history) == 1
    assert history[0]['unitPlaca'] == 'ABC-1234'


def test_order_routes(web, container, manager, make_user):
    other = make_user('gestor2', 'manager')
    token = login(web, 'gestor')
    headers = {'X-CSRF-Token': token}
    form = {
        'placaVehiculo': 'PCA-1', 'nombreCliente': 'Ana', 'ciudad': 'Quito', 'numeroCliente': '099',
        'fechaProgramada': '2025-04-01', 'prioridad': 'media', 'descripcion': 'Revisión',
    }

    created = web.post('/api/work-orders', json=form, headers=headers)
    assert created.status_code == 201
    order_id = created.get_json()['order']['id']

    assert web.get(f'/api/work-orders/{order_id}').get_json()['order']['prioridad'] == 'media'
    assert web.get('/api/work-orders/nope').status_code == 404
    assert len(web.get('/api/work-orders').get_json()['orders']) == 1
    assert web.get('/api/installations').get_json()['orders'] == []

    foreign = container.work_order_service.save(form, other)['order']
    assert web.get(f"/api/work-orders/{foreign['id']}").status_code == 403

    summary = web.get('/api/reports/work-orders/summary?years=2025').get_json()['summary']
    assert summary['total'] == 1


def test_export_reports(web, manager):
    token = login(web, 'gestor')

    empty = web.get('/api/reports/work-orders/export')
    assert empty.status_code == 400
    assert empty.get_json()['error'] == 'No hay datos para exportar'

    web.post('/api/work-orders', json={
        'placaVehiculo': 'PCA-1', 'nombreCliente': 'Ana', 'ciudad': 'Quito', 'numeroCliente': '099',
        'fechaProgramada': '2025-04-01', 'prioridad': 'alta', 'descripcion': 'Revisión',
    }, headers={'X-CSRF-Token': token})

    response = web.get('/api/reports/work-orders/export?statuses=pendiente')
    assert response.status_code == 200
    assert response.mimetype == 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    assert 'reporte_soporte_' in response.headers['Content-Disposition']
    sheet = load_workbook(BytesIO(response.data)).active
    assert sheet['A1'].value == 'ID Orden'
    assert sheet.max_row == 2

    filtered = web.get('/api/reports/work-orders/export?statuses=completada')
    assert filtered.status_code == 400


def test_city_import_route(web, master, tmp_path):

    token = login(web, 'master')
    headers = {'X-CSRF-Token': token}
    web.post('/api/countries', json={'name': 'Ecuador', 'code': 'EC'}, headers=headers)
    country_id = web.get('/api/countries').get_json()['countries'][0]['id']

    workbook = Workbook()
    workbook.active.append(['PROVINCIA', 'CANTON', 'ESTADO'])
    workbook.active.append(['PICHINCHA', 'Quito', 'A'])
    buffer = BytesIO()
    workbook.save(buffer)
    buffer.seek(0)

    response = web.post(
        '/api/cities/import',
        data={'countryId': country_id, 'file': (buffer, 'cantones.xlsx')},
        headers=headers,
        content_type='multipart/form-data',
    )

    assert response.status_code == 200
    cities = web.get('/api/cities').get_json()['cities']
    assert [c['name'] for c in cities] == ['Quito']
    assert cities[0]['countryName'] == 'Ecuador'

    bad = web.post(
        '/api/cities/import',
        data={'countryId': country_id, 'file': (BytesIO(b'x'), 'cantones.csv')},
        headers=headers,
        content_type='multipart/form-data',
    )
    assert bad.status_code == 400


def test_unit_status_form_false_reactivates(web, container, manager, make_client, make_unit):
    client = make_client(manager)
    unit = make_unit(client, estaSuspendido=True, fechaSuspension='2025-01-01T00:00:00')
    token = login(web, 'gestor')

    response = web.post(
        f"/api/clients/{client['id']}/units/{unit['id']}/status",
        data={'suspend': 'false', 'csrf_token': token},
    )

    assert response.status_code == 200
    assert response.get_json()['message'] == 'La unidad se activó con éxito.'
    assert container.unit_repo.get_by_id(unit['id'])['estaSuspendido'] is False


def test_bulk_status_form_flag_is_parsed(web, container, manager, make_client, make_unit):
    client = make_client(manager)
    unit = make_unit(client)
    token = login(web, 'gestor')
    headers = {'X-CSRF-Token': token}
    items = [{'unitId': unit['id'], 'clientId': client['id']}]

    web.post('/api/units/bulk-status', json={'items': items, 'suspend': '0'}, headers=headers)
    assert container.unit_repo.get_by_id(unit['id'])['estaSuspendido'] is False

    web.post(
        f"/api/clients/{client['id']}/units/{unit['id']}/status",
        data={'suspend': '1'}, headers=headers,
    )
    assert container.unit_repo.get_by_id(unit['id'])['estaSuspendido'] is True


def test_city_import_rejects_corrupt_workbook(web, master):
    token = login(web, 'master')
    headers = {'X-CSRF-Token': token}
    web.post('/api/countries', json={'name': 'Ecuador', 'code': 'EC'}, headers=headers)
    country_id = web.get('/api/countries').get_json()['countries'][0]['id']

    response = web.post(
        '/api/cities/import',
        data={'countryId': country_id, 'file': (BytesIO(b'no es un excel'), 'cantones.xlsx')},
        headers=headers,
        content_type='multipart/form-data',
    )

    assert response.status_code == 400
    assert response.get_json() == {'ok': False, 'error': 'Archivo Excel inválido.'}


def test_bulk_delete_with_bare_ids_is_bad_request(web, manager):
    token = login(web, 'gestor')
    response = web.post('/api/units/bulk-delete', json={'items': ['u1']}, headers={'X-CSRF-Token': token})
    assert response.status_code == 400
    assert response.get_json()['ok'] is False
