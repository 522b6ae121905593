import pytest
from werkzeug.security import generate_password_hash

from sgi_gps.repositories import (
    IAuditRepository,
    IDocumentRepository,
    IMessageLogRepository,
    IPaymentRepository,
    ISettingsRepository,
    IUnitRepository,
    IUserRepository,
)


@pytest.mark.parametrize('attr, protocol', [
    ('user_repo', IUserRepository),
    ('unit_repo', IUnitRepository),
    ('payment_repo', IPaymentRepository),
    ('client_repo', IDocumentRepository),
    ('audit_repo', IAuditRepository),
    ('message_log_repo', IMessageLogRepository),
    ('settings_repo', ISettingsRepository),
])
def test_json_repositories_satisfy_interfaces(container, attr, protocol):
    assert isinstance(getattr(container, attr), protocol)


def test_user_service_accepts_in_memory_repository(container):
    """Un doble en memoria que cumple IUserRepository basta para el servicio."""
    from sgi_gps.services.user_service import UserService

    class MemoryUsers:
        def __init__(self):
            self.docs = {}

        def list(self):
            return list(self.docs.values())

        def get_by_id(self, record_id):
            return self.docs.get(record_id)

        def insert(self, document):
            stored = dict(document, id=str(len(self.docs) + 1))
            self.docs[stored['id']] = stored
            return stored

        def insert_many(self, documents):
            return [self.insert(d) for d in documents]

        def update_fields(self, record_id, updates):
            doc = self.docs.get(record_id)
            if doc is not None:
                doc.update(updates)
            return doc

        def update_many(self, updates_by_id):
            return sum(1 for rid, upd in updates_by_id.items() if self.update_fields(rid, upd))

        def delete(self, record_id):
            return self.docs.pop(record_id, None)

        def delete_many(self, record_ids):
            return sum(1 for rid in record_ids if self.delete(rid))

        def filter(self, predicate):
            return [d for d in self.docs.values() if predicate(d)]

        def count(self):
            return len(self.docs)

        def get_by_username(self, username):
            return next((d for d in self.docs.values() if d.get('username') == username), None)

        def get_by_email(self, correo):
            return next((d for d in self.docs.values() if d.get('correo') == correo), None)

        def count_masters(self):
            return len(self.get_users_by_role('master'))

        def get_users_by_role(self, role):
            return [d for d in self.docs.values() if d.get('role') == role]

        def get_name_map(self):
            return {d['id']: d.get('nombre') or d.get('username') for d in self.docs.values()}

    users = MemoryUsers()
    assert isinstance(users, IUserRepository)

    service = UserService(users, container.audit_service)
    users.insert({'username': 'raiz', 'role': 'master', 'password': generate_password_hash('clave123')})
    assert service.login('raiz', 'clave123')['ok'] is True
    assert service.login('raiz', 'otra')['ok'] is False
