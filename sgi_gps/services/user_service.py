# ==============================================================================
# SERVICIO DE USUARIOS
# ==============================================================================
# Centraliza toda la lógica de negocio relacionada con usuarios.
#
# - Toda la lógica de permisos y validaciones está aquí, NO en rutas
# - Las contraseñas se guardan solo como hash werkzeug
#
# REGLAS:
# - No se puede eliminar el último master
# - Un manager solo crea analistas/técnicos, que quedan ligados a su cuenta
#   mediante creatorId
# - Los listados nunca incluyen el hash de la contraseña
# ==============================================================================

import logging
import re
from typing import Any, Dict, List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from sgi_gps import config
from sgi_gps.models import User
from sgi_gps.repositories.interfaces import IUserRepository
from sgi_gps.services import access, validation
from sgi_gps.services.audit_service import AuditService
from sgi_gps.services.validation import ValidationError

logger = logging.getLogger(__name__)


USERNAME_RE = re.compile(r'^[a-zA-Z0-9_-]+$')
MIN_PASSWORD_LENGTH = 6

LOGIN_ERROR = 'Usuario o contraseña incorrectos.'

# Roles que un manager puede crear (quedan ligados a su cartera)
MANAGER_CREATABLE_ROLES = frozenset([access.ROLE_ANALISTA, access.ROLE_TECNICO])


def public_user(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Copia del usuario sin el hash de la contraseña."""
    if user is None:
        return None
    data = dict(user)
    data.pop('password', None)
    return data


def is_password_hashed(password_value: str) -> bool:
    if not password_value:
        return False
    return password_value.startswith('pbkdf2:') or password_value.startswith('scrypt:')


class UserService:
    """
    Servicio para gestión de usuarios.

    Responsabilidades:
    - Autenticación (login/logout)
    - CRUD de usuarios con control por rol
    - Perfil propio y URL de notificaciones
    - Usuario master inicial
    """

    def __init__(self, user_repo: IUserRepository, audit_service: AuditService = None):
        self.user_repo = user_repo
        self.audit_service = audit_service

    # =========================================================================
    # AUTENTICACIÓN
    # =========================================================================

    def login(self, username: str, password: str) -> Dict[str, Any]:
        """
        Valida credenciales.

        Cualquier fallo retorna el mismo mensaje genérico.

        Returns:
            {'ok': True, 'user'} o {'ok': False, 'error'}
        """
        username = (username or '').strip()
        if not username or not password:
            return {'ok': False, 'error': 'Usuario y contraseña son requeridos.'}

        user = self.user_repo.get_by_username(username)
        if not user:
            return {'ok': False, 'error': LOGIN_ERROR}

        stored = user.get('password', '')
        if not is_password_hashed(stored):
            logger.warning("[SEGURIDAD] Usuario '%s' tiene contraseña sin hash.", username)
            return {'ok': False, 'error': LOGIN_ERROR}
        if not check_password_hash(stored, password):
            return {'ok': False, 'error': LOGIN_ERROR}

        if self.audit_service:
            self.audit_service.log_user_login(username)
        return {'ok': True, 'message': 'Inicio de sesión exitoso.', 'user': public_user(user)}

    def logout(self, username: str) -> None:
        if self.audit_service and username:
            self.audit_service.log_user_logout(username)

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Usuario sin contraseña o None."""
        return public_user(self.user_repo.get_by_id(user_id))

    def list_users(self, actor: Dict[str, Any] = None) -> List[Dict[str, Any]]:
        """
        Usuarios sin contraseña, ordenados por username.

        Un manager solo ve los usuarios que creó.
        """
        users = self.user_repo.list()
        if actor and actor.get('role') == access.ROLE_MANAGER:
            users = [u for u in users if u.get('creatorId') == actor.get('id')]
        return sorted((public_user(u) for u in users), key=lambda u: (u.get('username') or '').lower())

    def get_technicians(self, actor: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Técnicos asignables a órdenes por el usuario."""
        technicians = self.user_repo.get_users_by_role(access.ROLE_TECNICO)
        if not access.is_master(actor):
            technicians = [t for t in technicians if t.get('creatorId') == actor.get('id')]
        return [public_user(t) for t in technicians]

    # =========================================================================
    # CRUD
    # =========================================================================

    @staticmethod
    def _clean(data: Dict[str, Any], is_editing: bool) -> Dict[str, Any]:
        username = validation.required_text(data, 'username', 'El nombre de usuario es requerido.')
        if len(username) < 3:
            raise ValidationError('El nombre de usuario debe tener al menos 3 caracteres.')
        if not USERNAME_RE.match(username):
            raise ValidationError(
                'El nombre de usuario solo puede contener letras, números, guiones y guiones bajos.'
            )

        password = data.get('password') or ''
        if password or not is_editing:
            if len(password) < MIN_PASSWORD_LENGTH:
                raise ValidationError('La contraseña debe tener al menos 6 caracteres.')

        correo = validation.text(data, 'correo')
        if not validation.is_email(correo):
            raise ValidationError('El correo electrónico es obligatorio y debe ser válido.')

        role = validation.choice(data, 'role', access.VALID_ROLES, 'Rol no válido.')

        return {
            'username': username,
            'password': password,
            'role': role,
            'nombre': validation.text(data, 'nombre'),
            'correo': correo,
            'telefono': validation.text(data, 'telefono'),
            'empresa': validation.text(data, 'empresa'),
            'nota': validation.text(data, 'nota'),
        }

    def save_user(
        self,
        data: Dict[str, Any],
        user_id: str = None,
        actor: Dict[str, Any] = None
    ) -> Dict[str, Any]:
        """
        Crea o edita un usuario.

        Args:
            data: Formulario (username, password, role, nombre, correo, ...)
            user_id: ID a editar (None para crear)
            actor: Usuario en sesión que realiza la acción

        Returns:
            {'ok', 'message', 'user'} o {'ok': False, 'error'}
        """
        is_editing = bool(user_id)
        try:
            values = self._clean(data, is_editing)
        except ValidationError as e:
            return {'ok': False, 'error': f'Datos no válidos: {e}'}

        existing = None
        if is_editing:
            existing = self.user_repo.get_by_id(user_id)
            if not existing:
                return {'ok': False, 'error': 'Usuario no encontrado.'}

        actor_is_manager = bool(actor) and actor.get('role') == access.ROLE_MANAGER
        if actor_is_manager:
            if values['role'] not in MANAGER_CREATABLE_ROLES:
                return {'ok': False, 'error': 'Solo puede crear usuarios analistas o técnicos.'}
            if existing and existing.get('creatorId') != actor.get('id'):
                return {'ok': False, 'error': 'No tiene permiso para editar este usuario.'}

        duplicate = self.user_repo.get_by_username(values['username'])
        if duplicate and duplicate['id'] != user_id:
            return {'ok': False, 'error': 'El nombre de usuario ya existe.'}
        duplicate = self.user_repo.get_by_email(values['correo'])
        if duplicate and duplicate['id'] != user_id:
            return {'ok': False, 'error': 'El correo electrónico ya está en uso.'}

        if (existing and existing.get('role') == access.ROLE_MASTER
                and values['role'] != access.ROLE_MASTER and self.user_repo.count_masters() <= 1):
            return {'ok': False, 'error': 'No se puede quitar el rol al último usuario maestro.'}

        password = values.pop('password')
        if password:
            values['password'] = generate_password_hash(password)

        if actor_is_manager and values['role'] in MANAGER_CREATABLE_ROLES:
            values['creatorId'] = actor['id']

        actor_name = actor.get('username') if actor else 'system'
        try:
            if existing:
                stored = self.user_repo.update_fields(user_id, values)
            else:
                stored = self.user_repo.insert(values)
        except Exception as e:
            logger.exception("Error al guardar el usuario %s", values['username'])
            return {'ok': False, 'error': f'Error al guardar el usuario: {e}'}

        if self.audit_service:
            if existing:
                self.audit_service.log_user_updated(actor_name, stored['username'], stored['role'])
            else:
                self.audit_service.log_user_created(actor_name, stored['username'], stored['role'])

        message = 'Usuario actualizado con éxito.' if existing else 'Usuario creado con éxito.'
        return {'ok': True, 'message': message, 'user': public_user(stored)}

    def delete_user(self, user_id: str, actor: Dict[str, Any] = None) -> Dict[str, Any]:
        """
        Elimina un usuario.

        VALIDACIONES:
        1. Usuario debe existir
        2. No se puede eliminar el último master
        3. No se puede auto-eliminar
        4. Un manager solo elimina usuarios que creó
        """
        user = self.user_repo.get_by_id(user_id)
        if not user:
            return {'ok': False, 'error': 'Usuario no encontrado.'}

        if user.get('role') == access.ROLE_MASTER and self.user_repo.count_masters() <= 1:
            return {'ok': False, 'error': 'No se puede eliminar el último usuario maestro.'}

        if actor:
            if actor.get('id') == user_id:
                return {'ok': False, 'error': 'No puedes eliminar tu propia cuenta.'}
            if actor.get('role') == access.ROLE_MANAGER and user.get('creatorId') != actor.get('id'):
                return {'ok': False, 'error': 'No tiene permiso para eliminar este usuario.'}

        try:
            self.user_repo.delete(user_id)
        except Exception:
            logger.exception("Error al eliminar el usuario %s", user_id)
            return {'ok': False, 'error': 'Error al eliminar el usuario.'}

        if self.audit_service:
            actor_name = actor.get('username') if actor else 'system'
            self.audit_service.log_user_deleted(actor_name, user.get('username', ''), user.get('role', ''))
        return {'ok': True, 'message': 'Usuario eliminado con éxito.'}

    # =========================================================================
    # PERFIL
    # =========================================================================

    def update_profile(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Edición del perfil propio: nombre, teléfono, empresa y contraseña.

        Returns:
            {'ok', 'message', 'user'} o {'ok': False, 'error'}
        """
        if not self.user_repo.get_by_id(user_id):
            return {'ok': False, 'error': 'Usuario no encontrado.'}

        password = data.get('password') or ''
        if password and len(password) < MIN_PASSWORD_LENGTH:
            return {'ok': False, 'error': 'La nueva contraseña debe tener al menos 6 caracteres.'}
        if password != (data.get('confirmPassword') or ''):
            return {'ok': False, 'error': 'Las contraseñas no coinciden.'}

        updates = {
            'nombre': validation.text(data, 'nombre'),
            'telefono': validation.text(data, 'telefono'),
            'empresa': validation.text(data, 'empresa'),
        }
        if password:
            updates['password'] = generate_password_hash(password)

        try:
            stored = self.user_repo.update_fields(user_id, updates)
        except Exception as e:
            logger.exception("Error al actualizar el perfil %s", user_id)
            return {'ok': False, 'error': f'Error al actualizar el perfil: {e}'}
        return {'ok': True, 'message': 'Perfil actualizado con éxito.', 'user': public_user(stored)}

    def save_notification_url(self, user_id: str, url: str) -> Dict[str, Any]:
        """Guarda la URL de notificaciones (plantilla con NUMBER y TEXT)."""
        url = (url or '').strip()
        if not validation.is_url(url):
            return {'ok': False, 'error': 'Datos no válidos. Debe ser una URL válida.'}

        stored = self.user_repo.update_fields(user_id, {'notificationUrl': url})
        if stored is None:
            return {'ok': False, 'error': 'Usuario no encontrado.'}
        return {
            'ok': True,
            'message': 'URL de Notificaciones guardada con éxito en su perfil.',
            'user': public_user(stored),
        }

    # =========================================================================
    # INICIALIZACIÓN
    # =========================================================================

    def ensure_bootstrap_master(self) -> Optional[Dict[str, Any]]:
        """
        Crea el primer usuario master si no existe ningún usuario.

        Las credenciales vienen de SGI_BOOTSTRAP_USER / SGI_BOOTSTRAP_PASSWORD.

        Returns:
            Usuario creado (sin contraseña) o None si ya había usuarios
        """
        if self.user_repo.count() > 0:
            return None
        if not config.BOOTSTRAP_PASSWORD:
            logger.warning("No hay usuarios y SGI_BOOTSTRAP_PASSWORD no está definido: no se crea el master inicial.")
            return None

        master = User(
            id='',
            username=config.BOOTSTRAP_USER,
            password_hash=generate_password_hash(config.BOOTSTRAP_PASSWORD),
            role=access.ROLE_MASTER,
            nombre='Administrador',
            correo=config.BOOTSTRAP_EMAIL,
        ).to_dict()
        master.pop('id')
        stored = self.user_repo.insert(master)

        logger.warning("Usuario master inicial '%s' creado. Cambie su contraseña.", stored['username'])
        if self.audit_service:
            self.audit_service.log('SISTEMA', 'system', f"Usuario master inicial '{stored['username']}' creado")
        return public_user(stored)
