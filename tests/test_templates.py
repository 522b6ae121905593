from sgi_gps.services.template_service import DEFAULT_TEMPLATES


def _form(**overrides):
    data = {'name': 'Mi recordatorio', 'eventType': 'payment_reminder', 'content': 'Hola {nombre_cliente}'}
    data.update(overrides)
    return data


def test_global_templates_are_seeded_once(container):
    service = container.template_service
    assert service.ensure_global_templates_exist() is True
    assert service.ensure_global_templates_exist() is False
    assert len(service.get_global_templates()) == len(DEFAULT_TEMPLATES)


def test_manager_gets_personal_copies_on_first_read(container, manager):
    service = container.template_service

    templates = service.get_templates_for_user(manager['id'])

    assert len(templates) == len(DEFAULT_TEMPLATES)
    assert all(t['ownerId'] == manager['id'] and t['isGlobal'] is False for t in templates)
    service.get_templates_for_user(manager['id'])
    assert len(container.template_repo.get_personal(manager['id'])) == len(DEFAULT_TEMPLATES)


def test_analyst_uses_creator_templates(container, manager, make_user):
    analyst = make_user('analista1', 'analista', creatorId=manager['id'])
    service = container.template_service
    service.get_templates_for_user(manager['id'])

    reminder = service.get_template_for_event(analyst['id'], 'payment_reminder')

    assert reminder['ownerId'] == manager['id']
    assert container.template_repo.get_personal(analyst['id']) == []


def test_analyst_without_creator_templates_falls_back_to_globals(container, manager, make_user):
    analyst = make_user('analista1', 'analista', creatorId=manager['id'])
    templates = container.template_service.get_templates_for_user(analyst['id'])
    assert templates
    assert all(t['isGlobal'] is True for t in templates)


def test_personal_template_overrides_global(container, manager):
    service = container.template_service
    service.ensure_global_templates_exist()

    result = service.save_template(_form(), manager)

    assert result['ok'] is True
    reminder = service.get_template_for_event(manager['id'], 'payment_reminder')
    assert reminder['content'] == 'Hola {nombre_cliente}'
    overdue = service.get_template_for_event(manager['id'], 'payment_overdue')
    assert overdue['isGlobal'] is True


def test_global_templates_cannot_be_deleted(container, master):
    service = container.template_service
    global_template = service.get_global_templates()[0]
    assert service.delete_template(global_template['id'], master) == {
        'ok': False, 'error': 'No se pueden eliminar las plantillas globales.'
    }


def test_only_master_edits_globals(container, master, manager):
    service = container.template_service
    global_template = service.get_global_templates()[0]
    form = _form(eventType=global_template['eventType'], content='Nuevo texto')

    assert service.save_template(form, manager, global_template['id'])['ok'] is False
    result = service.save_template(form, master, global_template['id'])
    assert result['ok'] is True
    assert container.template_repo.get_by_id(global_template['id'])['content'] == 'Nuevo texto'


def test_owner_scoped_edit_and_delete(container, manager, make_user):
    service = container.template_service
    other = make_user('gestor2', 'manager')
    template = service.save_template(_form(), other)['template']

    assert service.save_template(_form(content='x'), manager, template['id'])['ok'] is False
    assert service.delete_template(template['id'], manager)['ok'] is False
    assert service.delete_template(template['id'], other) == {'ok': True, 'message': 'Plantilla eliminada con éxito.'}


def test_template_validation_and_roles(container, manager, make_user):
    service = container.template_service
    assert 'evento' in service.save_template(_form(eventType='cumpleanos'), manager)['error']
    assert 'nombre' in service.save_template(_form(name='  '), manager)['error']
    analyst = make_user('analista1', 'analista')
    assert service.save_template(_form(), analyst)['ok'] is False
    assert service.delete_template('nope', manager)['error'] == 'La plantilla no existe.'
