"""
Great-circle helpers.

All distances are in kilometers on a sphere of radius 6371 km; coordinates are
decimal degrees.
"""
from dataclasses import dataclass, field
import math

from sqlalchemy import Float, case, func

EARTH_RADIUS_KM = 6371.0

# Keeps points that sit exactly on the search circle inside the prefilter
_BOX_MARGIN_DEG = 1e-9


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two points"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # Rounding can push a just past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.asin(math.sqrt(a))
    return EARTH_RADIUS_KM * c


def distance_km_sql(lat_column, lon_column, lat: float, lon: float):
    """
    The haversine formula of `distance_km` as a SQL expression, measured from a
    fixed point to the given coordinate columns.

    Only radians, sin, cos, power, sqrt and asin are used. PostgreSQL ships them
    all; SQLite connections get them registered by `Database`.
    """
    d_phi = func.radians(lat_column - lat, type_=Float)
    d_lambda = func.radians(lon_column - lon, type_=Float)

    a = (
        func.power(func.sin(d_phi / 2, type_=Float), 2, type_=Float)
        + math.cos(math.radians(lat))
        * func.cos(func.radians(lat_column, type_=Float), type_=Float)
        * func.power(func.sin(d_lambda / 2, type_=Float), 2, type_=Float)
    )
    a = case((a > 1.0, 1.0), else_=a)
    return (2 * EARTH_RADIUS_KM) * func.asin(func.sqrt(a, type_=Float), type_=Float)


def is_valid_coordinate(lat, lon) -> bool:
    if lat is None or lon is None:
        return False
    try:
        lat = float(lat)
        lon = float(lon)
    except (TypeError, ValueError):
        return False
    if math.isnan(lat) or math.isnan(lon):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


@dataclass(frozen=True)
class BoundingBox:
    """Latitude band plus one or two longitude ranges (two when crossing the antimeridian)"""

    min_lat: float
    max_lat: float
    lon_ranges: list[tuple[float, float]] = field(default_factory=list)

    @property
    def covers_all_longitudes(self) -> bool:
        return self.lon_ranges == [(-180.0, 180.0)]


def bounding_box(lat: float, lon: float, radius_km: float) -> BoundingBox:
    """
    Smallest lat/lon box holding every point within radius_km of the center.

    The longitude half-width uses asin(sin(r) / cos(lat)), which is exact for a
    sphere; near the poles the box widens to all longitudes.
    """
    angular = radius_km / EARTH_RADIUS_KM
    if angular >= math.pi:
        return BoundingBox(-90.0, 90.0, [(-180.0, 180.0)])

    d_lat = math.degrees(angular) + _BOX_MARGIN_DEG
    min_lat = lat - d_lat
    max_lat = lat + d_lat

    if min_lat <= -90 or max_lat >= 90:
        return BoundingBox(max(min_lat, -90.0), min(max_lat, 90.0), [(-180.0, 180.0)])

    ratio = math.sin(angular) / math.cos(math.radians(lat))
    if ratio >= 1:
        return BoundingBox(min_lat, max_lat, [(-180.0, 180.0)])

    d_lon = math.degrees(math.asin(ratio)) + _BOX_MARGIN_DEG
    min_lon = lon - d_lon
    max_lon = lon + d_lon

    if min_lon < -180:
        ranges = [(min_lon + 360, 180.0), (-180.0, max_lon)]
    elif max_lon > 180:
        ranges = [(min_lon, 180.0), (-180.0, max_lon - 360)]
    else:
        ranges = [(min_lon, max_lon)]

    return BoundingBox(min_lat, max_lat, ranges)


def format_coordinates(lat: float, lon: float, with_degrees: bool = False) -> str:
    lat_dir = "N" if lat >= 0 else "S"
    lon_dir = "E" if lon >= 0 else "W"
    degree = "°" if with_degrees else ""
    return f"{abs(lat)}{degree} {lat_dir}, {abs(lon)}{degree} {lon_dir}"
