import pytest
import requests

from sgi_gps.services.pgps_client import INTEGRATION_KEY, NOT_CONFIGURED_ERROR

from conftest import fake_response


@pytest.fixture
def pgps(container):
    container.settings_repo.set_integration(
        INTEGRATION_KEY, {'url': 'https://gps.example.com/', 'user': 'admin', 'apiKey': 'clave'}
    )
    return container.pgps


def test_unconfigured_client_list_is_empty(container, http_session):
    assert container.pgps.get_clients() == {'ok': True, 'clients': []}
    http_session.request.assert_not_called()
    assert container.pgps.get_device_details('7')['error'] == NOT_CONFIGURED_ERROR


def test_get_clients_filters_end_customers(pgps, http_session):
    http_session.request.return_value = fake_response(body={'data': [
        {'id': 10, 'email': 'flota@example.com', 'phone_number': '0991', 'group_id': 2},
        {'id': 11, 'email': 'admin@example.com', 'group_id': 1},
    ]})

    result = pgps.get_clients()

    assert result == {'ok': True, 'clients': [
        {'id': 'pgps-10', 'nomSujeto': 'flota@example.com', 'correo': 'flota@example.com', 'telefono': '0991'}
    ]}
    args, kwargs = http_session.request.call_args
    assert args == ('GET', 'https://gps.example.com/api/admin/clients')
    assert kwargs['params'] == {'user_api_hash': 'clave', 'limit': '10000'}


def test_find_client_by_email_is_case_insensitive(pgps, http_session):
    http_session.request.return_value = fake_response(body={'data': [
        {'id': 10, 'email': 'Flota@Example.com', 'group_id': 2},
    ]})
    assert pgps.find_client_by_email(' flota@example.com ') == {'ok': True, 'pgps_id': '10'}
    assert pgps.find_client_by_email('otro@example.com') == {'ok': True, 'pgps_id': None}


def test_api_error_message_is_extracted(pgps, http_session):
    http_session.request.return_value = fake_response(
        401, {'errors': [{'message': 'Token inválido'}]}, reason='Unauthorized'
    )
    result = pgps.get_clients()
    assert result['ok'] is False
    assert result['error'] == 'Error de la API de P. GPS: Token inválido'


def test_connection_error_is_reported(pgps, http_session):
    http_session.request.side_effect = requests.ConnectionError('sin red')
    result = pgps.get_devices_by_client('pgps-10')
    assert result['ok'] is False
    assert result['devices'] == []
    assert 'Error de conexión' in result['error']


def test_set_device_status_requires_status_one(pgps, http_session):
    http_session.request.return_value = fake_response(body={'status': 0})
    assert pgps.set_device_status('7', False)['ok'] is False
    kwargs = http_session.request.call_args[1]
    assert kwargs['json'] == {'active': 0}

    http_session.request.return_value = fake_response(body={'status': 1})
    assert pgps.set_device_status('7', True)['ok'] is True
    assert http_session.request.call_args[0][1] == 'https://gps.example.com/api/admin/device/7/status'


def test_find_device_by_imei_and_status(pgps, http_session):
    http_session.request.return_value = fake_response(body={'data': [
        {'id': 70, 'imei': '350000000000001'},
        {'id': 71, 'imei': '350000000000002'},
    ]})
    assert pgps.find_device_by_imei('pgps-10', '350000000000002') == {'ok': True, 'device_id': '71'}
    assert http_session.request.call_args[0][1].endswith('/api/admin/client/10/devices')

    http_session.request.return_value = fake_response(body={'data': {'id': 71, 'active': False}})
    assert pgps.is_device_active('71') is False
    http_session.request.return_value = fake_response(500, reason='Server Error')
    assert pgps.is_device_active('71') is None


def test_save_settings_validation(container, master, manager):
    pgps = container.pgps
    data = {'url': 'https://gps.example.com', 'user': 'admin', 'apiKey': 'k'}

    assert pgps.save_settings(data, manager)['error'] == 'Acción no permitida.'
    assert pgps.save_settings({**data, 'url': 'gps'}, master)['error'] == 'Debe ser una URL válida.'
    assert pgps.save_settings({**data, 'user': ''}, master)['error'] == 'El usuario es requerido.'
    assert pgps.save_settings({**data, 'apiKey': ' '}, master)['error'] == 'La API Key es requerida.'

    assert pgps.save_settings(data, master)['ok'] is True
    assert container.settings_repo.get_integration(INTEGRATION_KEY) == data
    assert pgps.get_settings().is_configured()
