# ==============================================================================
# SERVICIO DE CATÁLOGOS (PAÍSES Y CIUDADES)
# ==============================================================================
# Solo master puede crear, editar o eliminar. Eliminar un país elimina sus
# ciudades en la misma escritura.
# ==============================================================================

import logging
import os
import zipfile
from typing import Any, Dict, List

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from sgi_gps.repositories.catalog_repository import CityRepository, CountryRepository
from sgi_gps.services import access, validation
from sgi_gps.services.validation import ValidationError

logger = logging.getLogger(__name__)


UNKNOWN_COUNTRY = 'País Desconocido'

# Columnas del archivo de importación de ciudades
IMPORT_COLUMNS = ('PROVINCIA', 'CANTON', 'ESTADO')


class CatalogService:
    """Países y ciudades usados en formularios de órdenes y clientes."""

    def __init__(self, country_repo: CountryRepository, city_repo: CityRepository):
        self.country_repo = country_repo
        self.city_repo = city_repo

    # =========================================================================
    # PAÍSES
    # =========================================================================

    def get_countries(self) -> List[Dict[str, Any]]:
        return self.country_repo.list_sorted()

    def save_country(self, data: Dict[str, Any], user: Dict[str, Any], country_id: str = None) -> Dict[str, Any]:
        if not access.is_master(user):
            return {'ok': False, 'error': 'Acción no permitida.'}
        try:
            name = validation.required_text(data, 'name', 'El nombre del país es requerido.')
            code = validation.text(data, 'code')
            if not 2 <= len(code) <= 3:
                raise ValidationError('El código debe tener entre 2 y 3 caracteres.')
        except ValidationError as e:
            return {'ok': False, 'error': f'Datos no válidos. {e}'}

        values = {'name': name, 'code': code.upper()}
        if country_id:
            if self.country_repo.update_fields(country_id, values) is None:
                return {'ok': False, 'error': 'País no encontrado.'}
        else:
            self.country_repo.insert(values)
        return {'ok': True, 'message': f"País {'actualizado' if country_id else 'creado'} con éxito."}

    def delete_country(self, country_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
        if not access.is_master(user):
            return {'ok': False, 'error': 'Acción no permitida.'}
        if not self.country_repo.get_by_id(country_id):
            return {'ok': False, 'error': 'País no encontrado.'}

        try:
            city_ids = [c['id'] for c in self.city_repo.get_by_country(country_id)]
            self.city_repo.delete_many(city_ids)
            self.country_repo.delete(country_id)
        except Exception as e:
            logger.exception("Error al eliminar el país %s", country_id)
            return {'ok': False, 'error': f'Error al eliminar el país: {e}'}
        return {'ok': True, 'message': 'País y sus ciudades asociadas eliminados con éxito.'}

    # =========================================================================
    # CIUDADES
    # =========================================================================

    def get_cities(self) -> List[Dict[str, Any]]:
        """Ciudades ordenadas por nombre, con countryName."""
        countries = {c['id']: c.get('name') for c in self.country_repo.list()}
        cities = self.city_repo.list_sorted()
        for city in cities:
            city['countryName'] = countries.get(city.get('countryId')) or UNKNOWN_COUNTRY
        return cities

    def save_city(self, data: Dict[str, Any], user: Dict[str, Any], city_id: str = None) -> Dict[str, Any]:
        if not access.is_master(user):
            return {'ok': False, 'error': 'Acción no permitida.'}
        try:
            values = {
                'name': validation.required_text(data, 'name', 'El nombre de la ciudad es requerido.'),
                'countryId': validation.required_text(data, 'countryId', 'Debe seleccionar un país.'),
            }
        except ValidationError as e:
            return {'ok': False, 'error': f'Datos no válidos. {e}'}

        if city_id:
            if self.city_repo.update_fields(city_id, values) is None:
                return {'ok': False, 'error': 'Ciudad no encontrada.'}
        else:
            self.city_repo.insert(values)
        return {'ok': True, 'message': f"Ciudad {'actualizada' if city_id else 'creada'} con éxito."}

    def delete_city(self, city_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
        if not access.is_master(user):
            return {'ok': False, 'error': 'Acción no permitida.'}
        if self.city_repo.delete(city_id) is None:
            return {'ok': False, 'error': 'Ciudad no encontrada.'}
        return {'ok': True, 'message': 'Ciudad eliminada con éxito.'}

    def import_cities(self, file_path: str, country_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
        """
        Carga ciudades desde un Excel con columnas PROVINCIA, CANTON, ESTADO.

        Solo se importan filas activas (ESTADO == 'A') y únicamente si el
        país todavía no tiene ciudades.

        Args:
            file_path: Ruta del archivo .xlsx
            country_id: País al que pertenecen las ciudades
            user: Usuario en sesión (master)
        """
        if not access.is_master(user):
            return {'ok': False, 'error': 'Acción no permitida.'}
        if not self.country_repo.get_by_id(country_id):
            return {'ok': False, 'error': 'País no encontrado.'}
        if self.city_repo.get_by_country(country_id):
            return {'ok': True, 'message': 'El país ya tiene ciudades. No se requiere ninguna acción.'}
        if not os.path.exists(file_path):
            return {'ok': False, 'error': 'El archivo de importación no se encuentra.'}

        try:
            workbook = load_workbook(file_path, read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError) as e:
            logger.warning("Archivo de ciudades no legible %s: %s", file_path, e)
            return {'ok': False, 'error': 'Archivo Excel inválido.'}
        try:
            rows = workbook.worksheets[0].iter_rows(values_only=True)
            header = [str(h or '').strip().upper() for h in next(rows, ())]
            if any(col not in header for col in IMPORT_COLUMNS):
                return {'ok': False, 'error': 'El archivo de ciudades está vacío o tiene un formato incorrecto.'}
            canton_idx = header.index('CANTON')
            estado_idx = header.index('ESTADO')

            names = []
            for row in rows:
                canton = str(row[canton_idx] or '').strip()
                if canton and str(row[estado_idx] or '').strip().upper() == 'A' and canton not in names:
                    names.append(canton)
        finally:
            workbook.close()

        if not names:
            return {'ok': False, 'error': 'El archivo de ciudades está vacío o tiene un formato incorrecto.'}

        self.city_repo.insert_many({'name': name, 'countryId': country_id} for name in names)
        logger.info("%d ciudades importadas para el país %s", len(names), country_id)
        return {'ok': True, 'message': f'{len(names)} ciudades importadas con éxito.'}
