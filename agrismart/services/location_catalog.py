"""Static catalog of districts with climate, soil and coordinate defaults."""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from agrismart.core.config import LOCATIONS_PATH
from agrismart.services.agronomy_rules import load_rule_table

logger = logging.getLogger(__name__)

_locations_cache = None


class UnknownLocationError(KeyError):
    """Raised when a location name is not in the catalog."""
    pass


@dataclass(frozen=True)
class Location:
    name: str
    rainfall_mm: float
    avg_temp_c: float
    soil_type: str
    latitude: float
    longitude: float


def clear_locations_cache():
    """Clear the cache to reload locations on next call."""
    global _locations_cache
    _locations_cache = None


def load_locations() -> Dict:
    """Load location table from JSON file."""
    global _locations_cache
    if _locations_cache is None:
        _locations_cache = load_rule_table(LOCATIONS_PATH, {"locations": []}, "locations")
    return _locations_cache


class LocationCatalog:
    """Case-insensitive lookup of location defaults."""

    def __init__(self, locations: Optional[List[Location]] = None):
        if locations is None:
            locations = [Location(**row) for row in load_locations().get("locations", [])]
        self._locations = {loc.name.lower(): loc for loc in locations}

    def names(self) -> List[str]:
        return [loc.name for loc in self._locations.values()]

    def all(self) -> List[Location]:
        return list(self._locations.values())

    def find(self, name: Optional[str]) -> Optional[Location]:
        if not name:
            return None
        return self._locations.get(name.strip().lower())

    def get(self, name: str) -> Location:
        location = self.find(name)
        if location is None:
            raise UnknownLocationError(name)
        return location


# Singleton instance
location_catalog = LocationCatalog()
