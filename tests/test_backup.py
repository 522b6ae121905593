import os
import zipfile

import pytest

from sgi_gps.services.backup_service import BackupService


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / 'data'
    path.mkdir()
    (path / 'users.json').write_text('{}', encoding='utf-8')
    (path / 'clients.json').write_text('{}', encoding='utf-8')
    (path / 'notas.txt').write_text('no se respalda', encoding='utf-8')
    return str(path)


def test_create_backup_zips_known_collections(data_dir):
    service = BackupService(data_dir)

    result = service.create_backup()

    assert result['success'] is True
    assert result['files_added'] == 2
    with zipfile.ZipFile(result['backup_path']) as zf:
        assert sorted(zf.namelist()) == ['clients.json', 'users.json']


def test_backup_created_once_per_day(data_dir):
    service = BackupService(data_dir)
    service.create_backup()

    again = service.create_backup()
    assert again['message'] == 'Backup del día ya existe'
    assert again['files_added'] == 0

    forced = service.create_backup(force=True)
    assert forced['files_added'] == 2


def test_empty_data_dir_creates_nothing(tmp_path):
    service = BackupService(str(tmp_path))
    result = service.create_backup()
    assert result['success'] is False
    assert result['message'] == 'No se encontraron archivos para respaldar'


def test_rotation_keeps_latest_backups(data_dir):
    service = BackupService(data_dir)
    for day in range(1, 11):
        with zipfile.ZipFile(os.path.join(service.backup_root, f'backup_2024-01-{day:02d}.zip'), 'w') as zf:
            zf.writestr('users.json', '{}')
    open(os.path.join(service.backup_root, 'backup_manual.zip'), 'w').close()

    result = service.rotate_backups()

    assert result == {'deleted_count': 3, 'remaining_count': BackupService.MAX_BACKUPS}
    remaining = sorted(os.listdir(service.backup_root))
    assert 'backup_2024-01-01.zip' not in remaining
    assert 'backup_2024-01-10.zip' in remaining
    assert 'backup_manual.zip' in remaining


def test_backup_status(data_dir):
    service = BackupService(data_dir)
    service.run_daily_backup()

    status = service.get_backup_status()

    assert status['total_backups'] == 1
    assert status['max_backups'] == 7
    assert status['today_exists'] is True
    assert status['backups'][0]['files'] == 2
