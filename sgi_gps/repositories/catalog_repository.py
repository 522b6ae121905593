# ==============================================================================
# REPOSITORIOS DE CATÁLOGOS (PAÍSES Y CIUDADES)
# ==============================================================================

from typing import Any, Dict, List

from sgi_gps.repositories.base import DocumentRepository


class CountryRepository(DocumentRepository):
    """countries.json -> {id: {id, name, code}}"""

    FILE_NAME = 'countries.json'

    def list_sorted(self) -> List[Dict[str, Any]]:
        return sorted(self.list(), key=lambda c: (c.get('name') or '').lower())


class CityRepository(DocumentRepository):
    """cities.json -> {id: {id, name, countryId}}"""

    FILE_NAME = 'cities.json'

    def list_sorted(self) -> List[Dict[str, Any]]:
        return sorted(self.list(), key=lambda c: (c.get('name') or '').lower())

    def get_by_country(self, country_id: str) -> List[Dict[str, Any]]:
        return self.find_all_by('countryId', country_id)
