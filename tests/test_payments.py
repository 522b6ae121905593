from unittest.mock import patch

import pytest


def _form(**overrides):
    data = {
        'fechaPago': '2025-03-01',
        'numeroFactura': '001-001-000123',
        'formaPago': 'transferencia',
        'mesesPagados': '2',
    }
    data.update(overrides)
    return data


def test_register_payment_advances_units(container, manager, make_client, make_unit):
    client = make_client(manager)
    first = make_unit(client, placa='A-1')
    second = make_unit(client, placa='B-2', costoMensual=20)

    result = container.payment_service.register_payment(
        _form(), [first['id'], second['id'], first['id']], client['id'], manager
    )

    assert result['ok'] is True
    assert result['message'] == '2 pago(s) registrado(s) con éxito.'
    stored = container.unit_repo.get_by_id(first['id'])
    assert stored['fechaVencimiento'] == '2025-05-01'
    assert stored['fechaSiguientePago'] == '2025-06-01'
    assert stored['ultimoPago'] == '2025-03-01'
    amounts = sorted(p['monto'] for p in container.payment_repo.list())
    assert amounts == [30, 40]
    assert all(p['ownerId'] == manager['id'] for p in container.payment_repo.list())


def test_register_payment_notifies_client(container, manager, make_client, make_unit, http_session):
    client = make_client(manager)
    unit = make_unit(client)
    container.payment_service.register_payment(_form(), [unit['id']], client['id'], manager)
    assert http_session.get.call_count == 1


def test_notification_failure_does_not_revert_payment(container, manager, make_client, make_unit):
    client = make_client(manager)
    unit = make_unit(client)
    with patch.object(container.notification_service, 'send_grouped_templated_message', side_effect=RuntimeError):
        result = container.payment_service.register_payment(_form(), [unit['id']], client['id'], manager)
    assert result['ok'] is True
    assert len(container.payment_repo.list()) == 1


def test_contract_unit_payment_reduces_balance(container, manager, make_client, make_unit):
    client = make_client(manager)
    unit = make_unit(
        client, tipoContrato='con_contrato', costoTotalContrato=240, mesesContrato=12, saldoContrato=240
    )
    container.payment_service.register_payment(_form(mesesPagados=3), [unit['id']], client['id'], manager)
    assert container.unit_repo.get_by_id(unit['id'])['saldoContrato'] == 180


def test_register_payment_validation(container, manager, make_client, make_unit):
    client = make_client(manager)
    unit = make_unit(client)
    service = container.payment_service

    assert 'al menos un mes' in service.register_payment(_form(mesesPagados=0), [unit['id']], client['id'], manager)['error']
    assert 'al menos un mes' in service.register_payment(_form(mesesPagados='1.5'), [unit['id']], client['id'], manager)['error']
    assert 'Forma de pago' in service.register_payment(_form(formaPago='cheque'), [unit['id']], client['id'], manager)['error']
    assert service.register_payment(_form(), [], client['id'], manager)['error'] == 'No se seleccionó ninguna unidad válida.'
    assert 'clientId' in service.register_payment(_form(), [unit['id']], '', manager)['error']
    assert 'no fue encontrada' in service.register_payment(_form(), ['otra'], client['id'], manager)['error']


@pytest.mark.parametrize('meses', ['nan', 'inf', '-inf', '1e400', '10000000', 121])
def test_register_payment_rejects_out_of_range_months(container, manager, make_client, make_unit, meses):
    client = make_client(manager)
    unit = make_unit(client)

    result = container.payment_service.register_payment(
        _form(mesesPagados=meses), [unit['id']], client['id'], manager
    )

    assert result['ok'] is False
    assert 'como máximo 120' in result['error']
    assert container.payment_repo.list() == []


def test_register_payment_accepts_max_months(container, manager, make_client, make_unit):
    client = make_client(manager)
    unit = make_unit(client)
    result = container.payment_service.register_payment(
        _form(mesesPagados=120), [unit['id']], client['id'], manager
    )
    assert result['ok'] is True
    assert container.unit_repo.get_by_id(unit['id'])['fechaVencimiento'] == '2035-03-01'


def test_register_payment_date_overflow_is_reported(container, manager, make_client, make_unit):
    client = make_client(manager)
    unit = make_unit(client, fechaVencimiento='9999-06-01')

    result = container.payment_service.register_payment(
        _form(mesesPagados=12), [unit['id']], client['id'], manager
    )

    assert result['ok'] is False
    assert 'fuera de rango' in result['error']
    assert container.payment_repo.list() == []
    assert container.unit_repo.get_by_id(unit['id'])['fechaVencimiento'] == '9999-06-01'


def test_register_payment_rejects_invalid_contract_start(container, manager, make_client, make_unit):
    client = make_client(manager)
    unit = make_unit(client, fechaInicioContrato='')
    result = container.payment_service.register_payment(_form(), [unit['id']], client['id'], manager)
    assert 'fecha de inicio de contrato inválida' in result['error']
    assert container.payment_repo.count() == 0


def test_register_payment_requires_permission(container, manager, make_user, make_client, make_unit):
    client = make_client(manager)
    unit = make_unit(client)
    outsider = make_user('gestor2', 'manager')
    technician = make_user('tecnico1', 'tecnico', creatorId=manager['id'])
    analyst = make_user('analista1', 'analista', creatorId=manager['id'])

    service = container.payment_service
    assert service.register_payment(_form(), [unit['id']], client['id'], outsider)['ok'] is False
    assert service.register_payment(_form(), [unit['id']], client['id'], technician)['ok'] is False
    assert service.register_payment(_form(), [unit['id']], client['id'], analyst)['ok'] is True


def test_delete_payment_reverts_unit(container, manager, make_client, make_unit):
    client = make_client(manager)
    unit = make_unit(client)
    service = container.payment_service
    service.register_payment(_form(fechaPago='2025-01-01', mesesPagados=1), [unit['id']], client['id'], manager)
    second = service.register_payment(_form(fechaPago='2025-01-20', mesesPagados=2), [unit['id']], client['id'], manager)
    payment = second['payments'][0]
    assert container.unit_repo.get_by_id(unit['id'])['fechaSiguientePago'] == '2025-05-01'

    result = service.delete_payment(payment['id'], client['id'], unit['id'], manager)

    assert result == {'ok': True, 'message': 'Pago eliminado y estado de la unidad revertido con éxito.'}
    stored = container.unit_repo.get_by_id(unit['id'])
    assert stored['fechaSiguientePago'] == '2025-03-01'
    assert stored['fechaVencimiento'] == '2025-02-01'
    assert stored['ultimoPago'] == '2025-01-01'
    assert container.payment_repo.get_by_id(payment['id']) is None


def test_delete_last_payment_clears_last_payment_date(container, manager, make_client, make_unit):
    client = make_client(manager)
    unit = make_unit(client)
    service = container.payment_service
    payment = service.register_payment(_form(), [unit['id']], client['id'], manager)['payments'][0]

    service.delete_payment(payment['id'], client['id'], unit['id'], manager)

    assert 'ultimoPago' not in container.unit_repo.get_by_id(unit['id'])


def test_delete_payment_checks_ids_and_permission(container, manager, make_user, make_client, make_unit):
    client = make_client(manager)
    unit = make_unit(client)
    service = container.payment_service
    payment = service.register_payment(_form(), [unit['id']], client['id'], manager)['payments'][0]

    assert service.delete_payment(payment['id'], client['id'], 'otra', manager)['error'] == 'Pago no encontrado.'
    outsider = make_user('gestor2', 'manager')
    assert service.delete_payment(payment['id'], client['id'], unit['id'], outsider)['ok'] is False
    assert container.payment_repo.get_by_id(payment['id'])


def test_payment_history_scoped_and_sorted(container, master, manager, make_user, make_client, make_unit):
    own = make_client(manager)
    other_manager = make_user('gestor2', 'manager')
    foreign = make_client(other_manager, nomSujeto='Ajeno')
    service = container.payment_service
    service.register_payment(_form(fechaPago='2025-01-05'), [make_unit(own)['id']], own['id'], manager)
    service.register_payment(_form(fechaPago='2025-02-05'), [make_unit(own, placa='Z-9')['id']], own['id'], manager)
    service.register_payment(_form(), [make_unit(foreign)['id']], foreign['id'], other_manager)

    history = service.get_payment_history(manager)
    assert [p['fechaPago'] for p in history] == ['2025-02-05', '2025-01-05']
    assert history[0]['unitPlaca'] == 'Z-9'
    assert history[0]['ownerName'] == manager['nombre']
    assert len(service.get_payment_history(master)) == 3


def test_backfill_owner_ids(container, master, manager, make_client):
    client = make_client(manager)
    container.payment_repo.insert({'clientId': client['id'], 'unitId': 'u1', 'fechaPago': '2025-01-01'})
    service = container.payment_service

    assert service.backfill_payment_owner_ids(manager)['ok'] is False
    result = service.backfill_payment_owner_ids(master)
    assert result['message'].startswith('1 registros')
    assert container.payment_repo.list()[0]['ownerId'] == manager['id']
    assert 'ya estaban actualizados' in service.backfill_payment_owner_ids(master)['message']
