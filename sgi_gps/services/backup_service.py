# ==============================================================================
# SERVICIO DE BACKUPS
# ==============================================================================
# Un ZIP por día con las colecciones JSON del directorio de datos:
#
#   <data_dir>/backups/backup_YYYY-MM-DD.zip
#
# Se conservan los MAX_BACKUPS más recientes. Los archivos de la carpeta con
# otro nombre (p. ej. respaldos manuales) no se tocan.
# ==============================================================================

import logging
import os
import re
import zipfile
from datetime import date
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

_ARCHIVE_NAME = re.compile(r'^backup_(\d{4}-\d{2}-\d{2})\.zip$')


class BackupService:
    """Backups diarios del directorio de datos con rotación."""

    COLLECTIONS = (
        'users.json',
        'clients.json',
        'units.json',
        'payments.json',
        'message_templates.json',
        'message_logs.json',
        'work_orders.json',
        'installation_orders.json',
        'countries.json',
        'cities.json',
        'settings.json',
        'audit.json',
    )

    MAX_BACKUPS = 7

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        self.backup_root = os.path.join(data_dir, 'backups')
        os.makedirs(self.backup_root, exist_ok=True)

    def _today_path(self) -> str:
        return os.path.join(self.backup_root, f'backup_{date.today().isoformat()}.zip')

    def _archives(self) -> List[str]:
        """Nombres de backups con fecha válida, del más nuevo al más viejo."""
        names = []
        for name in os.listdir(self.backup_root):
            match = _ARCHIVE_NAME.match(name)
            if not match or not os.path.isfile(os.path.join(self.backup_root, name)):
                continue
            try:
                date.fromisoformat(match.group(1))
            except ValueError:
                continue
            names.append(name)
        return sorted(names, reverse=True)

    def _today_exists(self) -> bool:
        path = self._today_path()
        return os.path.isfile(path) and os.path.getsize(path) > 0

    # =========================================================================
    # CREACIÓN Y ROTACIÓN
    # =========================================================================

    def create_backup(self, force: bool = False) -> Dict[str, Any]:
        """
        Genera el ZIP del día con las colecciones que existan.

        Args:
            force: Reescribir el backup aunque ya exista el de hoy

        Returns:
            {success, message, files_added, errors, backup_path}
        """
        path = self._today_path()
        if self._today_exists() and not force:
            logger.info("[BACKUP] Ya existe el backup de hoy: %s", os.path.basename(path))
            return {'success': True, 'message': 'Backup del día ya existe',
                    'files_added': 0, 'errors': [], 'backup_path': path}

        present = [name for name in self.COLLECTIONS if os.path.isfile(os.path.join(self.data_dir, name))]
        errors = []
        added = 0
        if present:
            try:
                with zipfile.ZipFile(path, 'w', zipfile.ZIP_DEFLATED) as archive:
                    for name in present:
                        try:
                            archive.write(os.path.join(self.data_dir, name), name)
                            added += 1
                        except OSError as e:
                            errors.append(f"{name}: {e}")
            except OSError as e:
                errors.append(f"Error creando ZIP: {e}")
                added = 0
                if os.path.exists(path):
                    os.remove(path)

        if not added:
            message = 'No se pudo crear el backup' if errors else 'No se encontraron archivos para respaldar'
            return {'success': False, 'message': message,
                    'files_added': 0, 'errors': errors, 'backup_path': path}

        size_kb = round(os.path.getsize(path) / 1024, 2)
        logger.info("[BACKUP] %s creado (%d archivos, %s KB)", os.path.basename(path), added, size_kb)
        return {'success': True, 'message': f'Backup creado: {added} archivos ({size_kb} KB)',
                'files_added': added, 'errors': errors, 'backup_path': path}

    def rotate_backups(self) -> Dict[str, int]:
        """Borra los backups fechados que exceden MAX_BACKUPS."""
        deleted = 0
        for name in self._archives()[self.MAX_BACKUPS:]:
            try:
                os.remove(os.path.join(self.backup_root, name))
            except OSError as e:
                logger.error("[BACKUP] No se pudo borrar %s: %s", name, e)
                continue
            deleted += 1
            logger.info("[BACKUP] Rotación: eliminado %s", name)
        return {'deleted_count': deleted, 'remaining_count': len(self._archives())}

    def run_daily_backup(self) -> Dict[str, Any]:
        return {'backup': self.create_backup(), 'rotation': self.rotate_backups()}

    # =========================================================================
    # ESTADO
    # =========================================================================

    def _archive_info(self, name: str) -> Dict[str, Any]:
        path = os.path.join(self.backup_root, name)
        size = os.path.getsize(path)
        try:
            with zipfile.ZipFile(path) as archive:
                files = len(archive.namelist())
        except zipfile.BadZipFile:
            files = 0
        return {
            'filename': name,
            'date': _ARCHIVE_NAME.match(name).group(1),
            'files': files,
            'size_bytes': size,
            'size_kb': round(size / 1024, 2),
        }

    def get_backup_status(self) -> Dict[str, Any]:
        backups = [self._archive_info(name) for name in self._archives()]
        return {
            'total_backups': len(backups),
            'max_backups': self.MAX_BACKUPS,
            'backups': backups,
            'today_exists': self._today_exists(),
        }


def run_startup_backup(service: BackupService) -> None:
    """Backup de arranque; si falla se registra y la app sigue iniciando."""
    try:
        result = service.run_daily_backup()
    except OSError:
        logger.exception("[BACKUP] Falló el backup de arranque")
        return

    backup = result['backup']
    if backup['errors']:
        logger.warning("[BACKUP] Errores: %s", backup['errors'])
    elif backup['files_added']:
        logger.info("[BACKUP] Backup diario completado")
