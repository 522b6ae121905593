# ==============================================================================
# CLIENTE DE LA API DE P. GPS
# ==============================================================================
# Plataforma externa donde viven los dispositivos GPS. Se usa para:
#   - Vincular clientes locales con clientes de P. GPS (por correo)
#   - Vincular unidades con dispositivos (por IMEI)
#   - Consultar el estado activo/inactivo de un dispositivo
#   - Activar/desactivar dispositivos al suspender/reactivar servicio
#
# Ningún método lanza excepciones al llamador: siempre retorna un dict
# con 'ok' y 'error' cuando algo falla.
# ==============================================================================

import logging
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import requests

from sgi_gps import config
from sgi_gps.models import PgpsSettings
from sgi_gps.repositories.interfaces import ISettingsRepository
from sgi_gps.services.validation import is_url

logger = logging.getLogger(__name__)


NOT_CONFIGURED_ERROR = 'La configuración de P. GPS no está completa.'

# Clave del documento settings/integrations donde se guardan las credenciales
INTEGRATION_KEY = 'wox'

# Solo los clientes de este grupo son clientes finales en P. GPS
CLIENT_GROUP_ID = 2


class PgpsClient:
    """
    Cliente HTTP de la API de administración de P. GPS.

    Las credenciales se leen de settings.json en cada llamada, así un cambio
    de configuración aplica sin reiniciar la aplicación.
    """

    def __init__(self, settings_repo: ISettingsRepository, session: requests.Session = None):
        """
        Args:
            settings_repo: Repositorio de configuraciones
            session: Sesión HTTP (inyectable en tests)
        """
        self.settings_repo = settings_repo
        self.session = session or requests.Session()

    # =========================================================================
    # CONFIGURACIÓN
    # =========================================================================

    def get_settings(self) -> PgpsSettings:
        return PgpsSettings.from_dict(self.settings_repo.get_integration(INTEGRATION_KEY))

    def save_settings(self, data: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
        """
        Guarda las credenciales de P. GPS (solo master).

        Args:
            data: {url, user, apiKey}
            user: Usuario en sesión
        """
        if not user or user.get('role') != 'master':
            return {'ok': False, 'error': 'Acción no permitida.'}

        settings = PgpsSettings.from_dict(data)
        if not is_url(settings.url):
            return {'ok': False, 'error': 'Debe ser una URL válida.'}
        if not settings.user:
            return {'ok': False, 'error': 'El usuario es requerido.'}
        if not settings.api_key:
            return {'ok': False, 'error': 'La API Key es requerida.'}

        self.settings_repo.set_integration(INTEGRATION_KEY, settings.to_dict())
        return {'ok': True, 'message': 'Configuración de P. GPS guardada con éxito.'}

    # =========================================================================
    # HTTP
    # =========================================================================

    def _request(
        self,
        method: str,
        path: str,
        params: Dict[str, Any] = None,
        json_body: Dict[str, Any] = None
    ) -> Dict[str, Any]:
        """
        Ejecuta una llamada autenticada con user_api_hash.

        Returns:
            {'ok': True, 'body': <json>} o {'ok': False, 'error': str}
        """
        settings = self.get_settings()
        if not settings.is_configured():
            return {'ok': False, 'error': NOT_CONFIGURED_ERROR, 'not_configured': True}

        url = urljoin(settings.url.rstrip('/') + '/', path.lstrip('/'))
        query = {'user_api_hash': settings.api_key}
        query.update(params or {})

        try:
            response = self.session.request(
                method,
                url,
                params=query,
                json=json_body,
                headers={'Accept': 'application/json'},
                timeout=config.HTTP_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.error("Fallo de conexión con P. GPS (%s %s): %s", method, path, e)
            return {'ok': False, 'error': f'Error de conexión con P. GPS: {e}'}

        if not response.ok:
            reason = self._error_reason(response)
            logger.error("Error de la API de P. GPS (%s %s): %s %s", method, path, response.status_code, reason)
            return {'ok': False, 'error': f'Error de la API de P. GPS: {reason}'}

        try:
            body = response.json()
        except ValueError:
            logger.error("Respuesta no JSON de P. GPS (%s %s)", method, path)
            return {'ok': False, 'error': 'Error de la API de P. GPS: respuesta inválida'}

        return {'ok': True, 'body': body}

    @staticmethod
    def _error_reason(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.reason or str(response.status_code)
        errors = body.get('errors') if isinstance(body, dict) else None
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return errors[0].get('message') or response.reason
        return response.reason or str(response.status_code)

    @staticmethod
    def _numeric_id(pgps_id: Any) -> str:
        return str(pgps_id).replace('pgps-', '')

    # =========================================================================
    # CLIENTES Y DISPOSITIVOS
    # =========================================================================

    def get_clients(self) -> Dict[str, Any]:
        """
        Lista los clientes finales de P. GPS.

        Returns:
            {'ok', 'clients': [{id: 'pgps-<id>', nomSujeto, correo, telefono}]}
            Lista vacía (sin error) si la integración no está configurada.
        """
        result = self._request('GET', '/api/admin/clients', params={'limit': '10000'})
        if not result['ok']:
            if result.get('not_configured'):
                return {'ok': True, 'clients': []}
            return {'ok': False, 'clients': [], 'error': result['error']}

        rows = (result['body'] or {}).get('data') or []
        clients = [
            {
                'id': f"pgps-{row.get('id')}",
                'nomSujeto': row.get('email'),
                'correo': row.get('email'),
                'telefono': row.get('phone_number'),
            }
            for row in rows
            if row.get('group_id') == CLIENT_GROUP_ID
        ]
        return {'ok': True, 'clients': clients}

    def find_client_by_email(self, email: str) -> Dict[str, Any]:
        """
        Busca el cliente de P. GPS que usa un correo.

        Returns:
            {'ok', 'pgps_id': str | None, 'error'?}
        """
        result = self.get_clients()
        if not result['ok']:
            return {'ok': False, 'pgps_id': None, 'error': result['error']}
        email = (email or '').strip().lower()
        for client in result['clients']:
            if (client.get('correo') or '').strip().lower() == email:
                return {'ok': True, 'pgps_id': self._numeric_id(client['id'])}
        return {'ok': True, 'pgps_id': None}

    def get_devices_by_client(self, pgps_client_id: Any) -> Dict[str, Any]:
        """
        Dispositivos de un cliente de P. GPS.

        Returns:
            {'ok', 'devices': [dict], 'error'?}
        """
        client_id = self._numeric_id(pgps_client_id)
        result = self._request('GET', f'/api/admin/client/{client_id}/devices', params={'limit': '10000'})
        if not result['ok']:
            return {'ok': False, 'devices': [], 'error': result['error']}
        return {'ok': True, 'devices': (result['body'] or {}).get('data') or []}

    def get_device_details(self, device_id: Any) -> Dict[str, Any]:
        """
        Detalle de un dispositivo.

        Returns:
            {'ok', 'device': dict | None, 'error'?}
        """
        result = self._request('GET', f'/api/admin/device/{device_id}')
        if not result['ok']:
            return {'ok': False, 'device': None, 'error': result['error']}
        return {'ok': True, 'device': (result['body'] or {}).get('data')}

    def set_device_status(self, device_id: Any, active: bool) -> Dict[str, Any]:
        """
        Activa o desactiva un dispositivo.

        La API responde 200 incluso cuando rechaza el cambio; el éxito real
        se indica con status == 1 en el cuerpo.
        """
        result = self._request(
            'POST',
            f'/api/admin/device/{device_id}/status',
            json_body={'active': 1 if active else 0},
        )
        if not result['ok']:
            return {'ok': False, 'error': result['error']}
        body = result['body'] or {}
        if body.get('status') != 1:
            return {'ok': False, 'error': 'La API de P. GPS indicó un error al cambiar el estado.'}
        return {'ok': True, 'message': 'El estado del dispositivo se actualizó con éxito en P. GPS.'}

    def find_device_by_imei(self, pgps_client_id: Any, imei: str) -> Dict[str, Any]:
        """
        Busca el dispositivo con un IMEI entre los de un cliente de P. GPS.

        Returns:
            {'ok', 'device_id': str | None, 'error'?}
        """
        result = self.get_devices_by_client(pgps_client_id)
        if not result['ok']:
            return {'ok': False, 'device_id': None, 'error': result['error']}
        for device in result['devices']:
            if str(device.get('imei') or '') == str(imei or ''):
                return {'ok': True, 'device_id': str(device.get('id'))}
        return {'ok': True, 'device_id': None}

    def is_device_active(self, device_id: Any) -> Optional[bool]:
        """Estado activo de un dispositivo o None si no se pudo consultar."""
        result = self.get_device_details(device_id)
        if not result['ok'] or not result['device']:
            return None
        return bool(result['device'].get('active'))
