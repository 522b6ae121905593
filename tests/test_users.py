from werkzeug.security import check_password_hash

from sgi_gps import config
from sgi_gps.services.user_service import LOGIN_ERROR, is_password_hashed


def _form(**overrides):
    data = {
        'username': 'nuevo_user',
        'password': 'clave123',
        'correo': 'nuevo@example.com',
        'role': 'analista',
        'nombre': 'Nuevo',
    }
    data.update(overrides)
    return data


def test_login_success_returns_public_user(container, master):
    result = container.user_service.login('master', 'secreto123')
    assert result['ok'] is True
    assert result['user']['id'] == master['id']
    assert 'password' not in result['user']
    assert container.audit_service.get_logs_by_type('SISTEMA')


def test_login_failures_share_generic_message(container, master, make_user):
    make_user('plano', 'manager', password='x')
    container.user_repo.update_fields(container.user_repo.get_by_username('plano')['id'], {'password': 'texto'})

    assert container.user_service.login('master', 'mala')['error'] == LOGIN_ERROR
    assert container.user_service.login('nadie', 'secreto123')['error'] == LOGIN_ERROR
    assert container.user_service.login('plano', 'texto')['error'] == LOGIN_ERROR


def test_cannot_delete_last_master(container, master):
    result = container.user_service.delete_user(master['id'])
    assert result == {'ok': False, 'error': 'No se puede eliminar el último usuario maestro.'}
    assert container.user_repo.get_by_id(master['id'])


def test_master_can_be_deleted_when_another_exists(container, master, make_user):
    other = make_user('master2', 'master')
    result = container.user_service.delete_user(other['id'], actor=master)
    assert result['ok'] is True
    assert container.user_repo.get_by_id(other['id']) is None


def test_cannot_delete_own_account(container, master, make_user):
    make_user('master2', 'master')
    result = container.user_service.delete_user(master['id'], actor=master)
    assert result['error'] == 'No puedes eliminar tu propia cuenta.'


def test_cannot_demote_last_master(container, master):
    data = _form(username='master', correo=master['correo'], role='manager', password='')
    result = container.user_service.save_user(data, master['id'], actor=master)
    assert result['ok'] is False
    assert container.user_repo.get_by_id(master['id'])['role'] == 'master'


def test_create_user_hashes_password(container, master):
    result = container.user_service.save_user(_form(), actor=master)

    assert result['ok'] is True
    assert 'password' not in result['user']
    stored = container.user_repo.get_by_username('nuevo_user')
    assert is_password_hashed(stored['password'])
    assert check_password_hash(stored['password'], 'clave123')
    assert 'creatorId' not in stored


def test_edit_without_password_keeps_hash(container, master, make_user):
    user = make_user('editable', 'analista')
    data = _form(username='editable', correo='editable@example.com', password='', nombre='Editado')

    result = container.user_service.save_user(data, user['id'], actor=master)

    assert result['ok'] is True
    stored = container.user_repo.get_by_id(user['id'])
    assert stored['nombre'] == 'Editado'
    assert stored['password'] == user['password']


def test_duplicate_username_and_email_rejected(container, master, make_user):
    make_user('repetido', 'analista', correo='rep@example.com')

    result = container.user_service.save_user(_form(username='repetido'), actor=master)
    assert result['error'] == 'El nombre de usuario ya existe.'

    result = container.user_service.save_user(_form(correo='rep@example.com'), actor=master)
    assert result['error'] == 'El correo electrónico ya está en uso.'


def test_invalid_user_data(container, master):
    assert 'al menos 6' in container.user_service.save_user(_form(password='123'), actor=master)['error']
    assert 'Rol no válido' in container.user_service.save_user(_form(role='jefe'), actor=master)['error']
    assert 'correo' in container.user_service.save_user(_form(correo='sin-arroba'), actor=master)['error']
    assert 'letras' in container.user_service.save_user(_form(username='con espacio'), actor=master)['error']


def test_manager_creates_technician_with_creator(container, manager):
    result = container.user_service.save_user(_form(role='tecnico'), actor=manager)
    assert result['ok'] is True
    assert result['user']['creatorId'] == manager['id']


def test_manager_cannot_create_master(container, manager):
    result = container.user_service.save_user(_form(role='master'), actor=manager)
    assert result['ok'] is False


def test_manager_lists_and_deletes_only_own_users(container, master, manager, make_user):
    own = make_user('mio', 'tecnico', creatorId=manager['id'])
    foreign = make_user('ajeno', 'tecnico')

    listed = [u['username'] for u in container.user_service.list_users(manager)]
    assert listed == ['mio']
    assert container.user_service.delete_user(foreign['id'], actor=manager)['ok'] is False
    assert container.user_service.delete_user(own['id'], actor=manager)['ok'] is True


def test_technicians_scoped_by_creator(container, master, manager, make_user):
    make_user('tec_mio', 'tecnico', creatorId=manager['id'])
    make_user('tec_otro', 'tecnico')

    assert [t['username'] for t in container.user_service.get_technicians(manager)] == ['tec_mio']
    assert len(container.user_service.get_technicians(master)) == 2


def test_update_profile_requires_matching_confirmation(container, manager):
    service = container.user_service
    result = service.update_profile(manager['id'], {'password': 'nueva123', 'confirmPassword': 'otra123'})
    assert result['error'] == 'Las contraseñas no coinciden.'

    result = service.update_profile(
        manager['id'], {'nombre': 'Gestor', 'empresa': 'Nueva SA', 'password': 'nueva123', 'confirmPassword': 'nueva123'}
    )
    assert result['ok'] is True
    stored = container.user_repo.get_by_id(manager['id'])
    assert stored['empresa'] == 'Nueva SA'
    assert check_password_hash(stored['password'], 'nueva123')


def test_save_notification_url_validates(container, manager):
    assert container.user_service.save_notification_url(manager['id'], 'ftp://x')['ok'] is False
    result = container.user_service.save_notification_url(manager['id'], 'https://api.example.com/?p=NUMBER&t=TEXT')
    assert result['ok'] is True
    assert container.user_repo.get_by_id(manager['id'])['notificationUrl'].startswith('https://api.example.com')


def test_bootstrap_master_created_once(container, monkeypatch):
    monkeypatch.setattr(config, 'BOOTSTRAP_USER', 'raiz')
    monkeypatch.setattr(config, 'BOOTSTRAP_PASSWORD', 'inicio123')

    created = container.user_service.ensure_bootstrap_master()
    assert created['username'] == 'raiz'
    assert created['role'] == 'master'
    assert container.user_service.ensure_bootstrap_master() is None
    assert container.user_service.login('raiz', 'inicio123')['ok'] is True


def test_bootstrap_master_skipped_without_password(container, monkeypatch):
    monkeypatch.setattr(config, 'BOOTSTRAP_PASSWORD', None)
    assert container.user_service.ensure_bootstrap_master() is None
    assert container.user_repo.count() == 0


def test_bootstrap_master_document_shape(container, monkeypatch):
    monkeypatch.setattr(config, 'BOOTSTRAP_PASSWORD', 'inicio123')
    container.user_service.ensure_bootstrap_master()

    stored = container.user_repo.list()[0]
    assert stored['creatorId'] is None
    assert stored['nombre'] == 'Administrador'
    assert check_password_hash(stored['password'], 'inicio123')
