# ==============================================================================
# REPOSITORIO DE USUARIOS
# ==============================================================================
# Encapsula todo el acceso a users.json
# Los usuarios se indexan por ID: {id: {id, username, password, role, ...}}
# ==============================================================================

from typing import Any, Dict, List, Optional

from sgi_gps.repositories.base import DocumentRepository


class UserRepository(DocumentRepository):
    """
    Repositorio para gestión de usuarios.

    Formato de datos en users.json:
    {
        "a1b2...": {"id": "a1b2...", "username": "master", "password": "scrypt:...",
                    "role": "master", "correo": "...", "creatorId": null}
    }
    """

    FILE_NAME = 'users.json'

    def get_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        return self.find_by('username', username)

    def get_by_email(self, correo: str) -> Optional[Dict[str, Any]]:
        correo = (correo or '').strip().lower()
        for user in self.list():
            if (user.get('correo') or '').strip().lower() == correo:
                return user
        return None

    def get_users_by_role(self, role: str) -> List[Dict[str, Any]]:
        return self.find_all_by('role', role)

    def count_masters(self) -> int:
        """Cuenta cuántos usuarios master hay."""
        return len(self.get_users_by_role('master'))

    def get_name_map(self) -> Dict[str, str]:
        """
        Mapa {id: nombre visible} para enriquecer listados.

        Returns:
            Diccionario id -> nombre (o username si no tiene nombre)
        """
        return {
            user_id: (user.get('nombre') or user.get('username') or '')
            for user_id, user in self.get_all().items()
        }

    # NOTA: La validación de credenciales se hace SOLO en UserService
    # usando check_password_hash. El repositorio solo maneja persistencia.
