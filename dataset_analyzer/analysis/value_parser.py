# ==============================================
# ValueParser
# ==============================================
#
# PURPOSE:
#   Per-value checks the metric calculator and the classifier
#   build on: emptiness, conformity to a declared type, and
#   geometry parsing. Bad values give False / None, never an
#   exception.
#
# CONSTANTS:
# ----------
# - PLAUSIBLE_REGIONS: lon/lat boxes per adequacy region
#     ("russia" spans the antimeridian, "world" is the globe)
# - DEFAULT_DATE_FORMATS: strptime formats a date string may use
#
# CLASS: ValueParser
# ------------------
#   - is_empty(value) -> bool
#       None, NaN, blank or null-like strings, empty lists and dicts.
#   - conforms(declared_type, value) -> bool
#   - parse_geometry(value) -> BaseGeometry | None
#       WKT, EWKT ("SRID=4326;POINT (...)"), GeoJSON dicts or
#       strings, GeoJSON Features.
#   - within_bounds(geometry, boxes) -> bool
#   - geometry_word(value) -> str | None
#       Leading shape-type word of a text value ("POLYGON", ...).
#
# ==============================================

import json
import math
import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

import shapely
import shapely.wkt
from shapely.errors import ShapelyError
from shapely.geometry import shape
from shapely.geometry.base import BaseGeometry

from .descriptor import FieldType


# (min_x, min_y, max_x, max_y) in lon/lat degrees
BoundingBox = Tuple[float, float, float, float]

# Russia crosses the antimeridian: Chukotka east of 180° is a second box.
PLAUSIBLE_REGIONS: Dict[str, Tuple[BoundingBox, ...]] = {
    "russia": (
        (19.6, 41.1, 180.0, 81.9),
        (-180.0, 64.0, -168.9, 72.0),
    ),
    "world": ((-180.0, -90.0, 180.0, 90.0),),
}

DEFAULT_DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%d.%m.%Y",
    "%d.%m.%Y %H:%M:%S",
    "%d/%m/%Y",
    "%Y/%m/%d",
    "%d-%m-%Y",
)

_SRID_PREFIX = re.compile(r"^\s*SRID=\d+\s*;\s*", re.IGNORECASE)
_LEADING_WORD = re.compile(r"^\s*([A-Za-z]+)")
_GEOJSON_TYPE = re.compile(r'"type"\s*:\s*"([A-Za-z]+)"')


class ValueParser:
    """
    Decides whether raw values are empty, conform to a declared type,
    and parse as geometry.

    Every method is total: malformed input yields False / None,
    never an exception.
    """

    NULL_VARIANTS = {"null", "none", "nil", ""}
    INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")

    def __init__(self, date_formats: Sequence[str] = DEFAULT_DATE_FORMATS):
        self.date_formats = tuple(date_formats)

    # ======================================
    # Emptiness
    # ======================================
    @classmethod
    def is_empty(cls, value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, str):
            return value.strip().lower() in cls.NULL_VARIANTS
        if isinstance(value, float) and math.isnan(value):
            return True
        if isinstance(value, (list, dict)) and not value:
            return True
        return False

    # ======================================
    # Type conformity
    # ======================================
    def conforms(self, declared_type: FieldType, value: Any) -> bool:
        """
        Check whether a non-empty value matches the declared type.

        Args:
            declared_type: The field's declared FieldType
            value: A non-empty raw value

        Returns:
            True if the value is of (or parses as) the declared type
        """
        if declared_type == FieldType.STRING:
            return isinstance(value, str)
        if declared_type == FieldType.INTEGER:
            return self._is_integer(value)
        if declared_type == FieldType.FLOAT:
            return self._is_float(value)
        if declared_type == FieldType.DATE:
            return self._is_date(value)
        if declared_type == FieldType.GEOMETRY:
            return self.parse_geometry(value) is not None
        return False

    def _is_integer(self, value: Any) -> bool:
        if isinstance(value, bool):
            return False
        if isinstance(value, int):
            return True
        if isinstance(value, float):
            return math.isfinite(value) and value.is_integer()
        if isinstance(value, str):
            return bool(self.INTEGER_PATTERN.match(value.strip()))
        return False

    def _is_float(self, value: Any) -> bool:
        if isinstance(value, bool):
            return False
        if isinstance(value, (int, float)):
            return math.isfinite(value)
        if isinstance(value, str):
            try:
                return math.isfinite(float(value.strip().replace(",", ".")))
            except ValueError:
                return False
        return False

    def _is_date(self, value: Any) -> bool:
        if isinstance(value, (datetime, date)):
            return True
        if not isinstance(value, str):
            return False
        text = value.strip()
        for fmt in self.date_formats:
            try:
                datetime.strptime(text, fmt)
                return True
            except ValueError:
                continue
        return False

    # ======================================
    # Geometry
    # ======================================
    @staticmethod
    def parse_geometry(value: Any) -> Optional[BaseGeometry]:
        """
        Parse a GeoJSON object/string or a (E)WKT string.

        Returns:
            A non-empty shapely geometry, or None when the value is
            not well-formed geometry.
        """
        try:
            if isinstance(value, dict):
                geometry = shape(_unwrap_feature(value))
            elif isinstance(value, str):
                text = value.strip()
                if text.startswith("{"):
                    geometry = shape(_unwrap_feature(json.loads(text)))
                else:
                    geometry = shapely.wkt.loads(_SRID_PREFIX.sub("", text))
            else:
                return None
        except (ShapelyError, ValueError, TypeError, KeyError, AttributeError, IndexError):
            return None
        if geometry is None or geometry.is_empty:
            return None
        return geometry

    @staticmethod
    def within_bounds(geometry: BaseGeometry, boxes: Iterable[BoundingBox]) -> bool:
        """True if every coordinate of the geometry lies inside one of the boxes."""
        boxes = tuple(boxes)
        coordinates = shapely.get_coordinates(geometry)
        if len(coordinates) == 0:
            return False
        for x, y in coordinates:
            if not any(
                min_x <= x <= max_x and min_y <= y <= max_y
                for min_x, min_y, max_x, max_y in boxes
            ):
                return False
        return True

    @staticmethod
    def geometry_word(value: Any) -> Optional[str]:
        """
        The shape-type word a raw text value starts with.

        "POINT (30 10)"                → "POINT"
        "SRID=4326;LINESTRING(...)"    → "LINESTRING"
        '{"type": "Polygon", ...}'     → "Polygon"
        """
        if isinstance(value, dict):
            raw_type = value.get("type")
            return raw_type if isinstance(raw_type, str) else None
        if not isinstance(value, str):
            return None
        text = _SRID_PREFIX.sub("", value.strip())
        if text.startswith("{"):
            match = _GEOJSON_TYPE.search(text)
        else:
            match = _LEADING_WORD.match(text)
        return match.group(1) if match else None


def _unwrap_feature(data: Any) -> Any:
    # GeoJSON Feature → its geometry member
    if isinstance(data, dict) and data.get("type") == "Feature":
        return data.get("geometry")
    return data
