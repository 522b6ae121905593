def test_audit_search_and_type_filter(container):
    audit = container.audit_service
    audit.log_client_saved('gestor', 'c1', 'Ana Torres', True)
    audit.log_unit_status('gestor', 'u1', 'PBA-100', True)
    audit.log_user_login('master')

    assert len(audit.get_all_logs()) == 3
    assert audit.get_all_logs()[0]['type'] == 'SISTEMA'
    assert [log['related_id'] for log in audit.search_logs('pba-100')] == ['u1']
    assert len(audit.get_logs_by_type('CLIENTE')) == 1
    assert len(audit.search_logs('')) == 3


def test_message_logs_paginated_newest_first(container):
    repo = container.message_log_repo
    for day in range(1, 31):
        repo.add({'sentAt': f'2025-01-{day:02d}T10:00:00', 'status': 'success'})

    first = container.message_log_service.get_logs(1)
    second = container.message_log_service.get_logs('2')

    assert first['logs'][0]['sentAt'].startswith('2025-01-30')
    assert len(first['logs']) == 25
    assert first['has_more'] is True
    assert len(second['logs']) == 5
    assert second['has_more'] is False


def test_only_master_clears_message_logs(container, master, manager):
    container.message_log_repo.add({'sentAt': '2025-01-01', 'status': 'failure'})
    service = container.message_log_service

    assert service.clear_logs(manager)['ok'] is False
    assert service.clear_logs(master)['message'] == '1 logs eliminados con éxito.'
    assert service.clear_logs(master)['message'] == 'No hay logs para eliminar.'
