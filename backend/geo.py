# backend/geo.py
import math

EARTH_RADIUS_KM = 6371.0


def great_circle_km(lat0, lng0, lat, lng):
    """
    Distance in km between two (lat, lng) points, spherical law of cosines.

    Rounding can push the acos argument just past 1 when both points are
    the same; it is clamped so such a pair never yields NaN. Identical
    points return exactly 0 so a zero radius still matches them.
    """
    if lat0 == lat and lng0 == lng:
        return 0.0
    phi0, phi = math.radians(lat0), math.radians(lat)
    dlng = math.radians(lng) - math.radians(lng0)
    cos_angle = math.cos(phi0) * math.cos(phi) * math.cos(dlng) + math.sin(phi0) * math.sin(phi)
    cos_angle = max(-1.0, min(1.0, cos_angle))
    return EARTH_RADIUS_KM * math.acos(cos_angle)


def valid_coordinates(lat, lng):
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0
