# -*- coding: utf-8 -*-
"""
Fixtures compartidas: contenedor sobre un directorio temporal, sesión HTTP
simulada y fábricas de usuarios, clientes y unidades.
"""
import os
import sys
from unittest.mock import MagicMock

import pytest

# Asegurar que el proyecto esté en el path al correr desde tests/
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Sin profiling en tests (no escribir logs dentro del paquete)
os.environ['SGI_ENABLE_PROFILING'] = '0'

from werkzeug.security import generate_password_hash  # noqa: E402

from sgi_gps.app_container import AppContainer, get_container  # noqa: E402


NOTIFY_URL = 'https://notify.example.com/send?phone=NUMBER&text=TEXT'


def fake_response(status_code=200, body=None, reason='OK'):
    """Respuesta de requests simulada."""
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.reason = reason
    response.json.return_value = body if body is not None else {}
    return response


@pytest.fixture
def http_session():
    session = MagicMock()
    session.get.return_value = fake_response(body={'message': 'enviado'})
    session.request.return_value = fake_response(body={})
    return session


@pytest.fixture
def container(tmp_path, http_session):
    AppContainer.reset_instance()
    c = get_container(str(tmp_path / 'data'), http_session)
    yield c
    AppContainer.reset_instance()


@pytest.fixture
def make_user(container):
    def _make(username, role, password='secreto123', **extra):
        doc = {
            'username': username,
            'password': generate_password_hash(password),
            'role': role,
            'nombre': extra.pop('nombre', username.title()),
            'correo': extra.pop('correo', f'{username}@example.com'),
        }
        doc.update(extra)
        return container.user_repo.insert(doc)
    return _make


@pytest.fixture
def master(make_user):
    return make_user('master', 'master')


@pytest.fixture
def manager(make_user):
    return make_user(
        'gestor', 'manager',
        empresa='Rastreo Andino',
        telefono='0987654321',
        notificationUrl=NOTIFY_URL,
    )


@pytest.fixture
def make_client(container):
    def _make(owner, **extra):
        doc = {
            'codTipoId': 'C',
            'codIdSujeto': '0102030405',
            'nomSujeto': 'Juan Pérez',
            'direccion': 'Av. Siempre Viva 123',
            'telefono': '0991234567',
            'estado': 'al dia',
            'ownerId': owner['id'],
        }
        doc.update(extra)
        return container.client_repo.insert(doc)
    return _make


@pytest.fixture
def make_unit(container):
    def _make(client, **extra):
        doc = {
            'clientId': client['id'],
            'imei': '350000000000001',
            'placa': 'ABC-1234',
            'modelo': 'GT06',
            'tipoPlan': 'estandar-sc',
            'tipoContrato': 'sin_contrato',
            'costoMensual': 15.0,
            'fechaInicioContrato': '2025-01-01',
            'estaSuspendido': False,
        }
        doc.update(extra)
        return container.unit_repo.insert(doc)
    return _make
