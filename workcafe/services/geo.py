from __future__ import annotations

import math

from sqlalchemy import Float, func
from sqlalchemy.sql.elements import ColumnElement

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in kilometres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def distance_km_expr(lat_col, lon_col, lat: float, lon: float) -> ColumnElement[float]:
    """SQL version of haversine_km from a fixed point to (lat_col, lon_col).

    Needs radians/sin/cos/sqrt/asin on the database side; SQLite gets them
    from the connection hooks in workcafe.db.session.
    """
    half_d_phi = func.sin((func.radians(lat_col, type_=Float) - math.radians(lat)) / 2.0, type_=Float)
    half_d_lambda = func.sin((func.radians(lon_col, type_=Float) - math.radians(lon)) / 2.0, type_=Float)

    cos_product = math.cos(math.radians(lat)) * func.cos(func.radians(lat_col, type_=Float), type_=Float)
    a = half_d_phi * half_d_phi + cos_product * half_d_lambda * half_d_lambda
    return 2 * EARTH_RADIUS_KM * func.asin(func.sqrt(a, type_=Float), type_=Float)
