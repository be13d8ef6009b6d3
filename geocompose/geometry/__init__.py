"""Geographic and native-coordinate geometry."""

from .sector import Sector
from .geo_area import GeoArea

__all__ = ['Sector', 'GeoArea']
