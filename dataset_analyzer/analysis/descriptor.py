# ==============================================
# FieldDescriptor
# ==============================================
#
# PURPOSE:
#   Describes one field of a dataset as the metadata store knows
#   it: name, declared type, whether an index exists, and the
#   address role ("feature") the field was tagged with.
#
# ENUMS:
# ------
# - FieldType(Enum): STRING, INTEGER, FLOAT, DATE, GEOMETRY, UNKNOWN
# - AddressRole(Enum): REGION, MUNICIPALITY, STREET, HOUSE
#
# CLASS: FieldDescriptor (frozen dataclass)
# -----------------------------------------
#   - name: str
#   - declared_type: FieldType
#   - indexed: bool
#   - role: AddressRole | None
#   - provenance: str | None
#
#   - from_document(doc, indexed=False) -> FieldDescriptor  (classmethod)
#       Build from a datasetsStructure "fields" entry:
#       {"name": "addr", "type": "String", "feature": "Street"}
#
# ==============================================

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class FieldType(Enum):
    """Declared semantic type of a field."""
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    DATE = "date"
    GEOMETRY = "geometry"
    UNKNOWN = "unknown"

    @property
    def is_numeric(self) -> bool:
        return self in (FieldType.INTEGER, FieldType.FLOAT)


class AddressRole(Enum):
    """Which part of an address a field carries."""
    REGION = "region"
    MUNICIPALITY = "municipality"
    STREET = "street"
    HOUSE = "house"


# Store type names → FieldType. The metadata store uses BSON-ish names.
TYPE_ALIASES: Dict[str, FieldType] = {
    "string": FieldType.STRING,
    "str": FieldType.STRING,
    "text": FieldType.STRING,
    "integer": FieldType.INTEGER,
    "int": FieldType.INTEGER,
    "long": FieldType.INTEGER,
    "float": FieldType.FLOAT,
    "double": FieldType.FLOAT,
    "decimal": FieldType.FLOAT,
    "number": FieldType.FLOAT,
    "date": FieldType.DATE,
    "datetime": FieldType.DATE,
    "timestamp": FieldType.DATE,
    "geometry": FieldType.GEOMETRY,
    "geojson": FieldType.GEOMETRY,
    "wkt": FieldType.GEOMETRY,
}

# Descriptor "feature" values → AddressRole
ROLE_ALIASES: Dict[str, AddressRole] = {
    "region": AddressRole.REGION,
    "municipalitet": AddressRole.MUNICIPALITY,
    "municipality": AddressRole.MUNICIPALITY,
    "street": AddressRole.STREET,
    "housenumber": AddressRole.HOUSE,
    "house": AddressRole.HOUSE,
}


def parse_field_type(raw: Optional[str]) -> FieldType:
    """Map a store type name to FieldType; unknown names → UNKNOWN."""
    if not raw:
        return FieldType.UNKNOWN
    return TYPE_ALIASES.get(str(raw).strip().lower(), FieldType.UNKNOWN)


def parse_address_role(raw: Optional[str]) -> Optional[AddressRole]:
    """Map a descriptor "feature" value to AddressRole."""
    if not raw:
        return None
    return ROLE_ALIASES.get(str(raw).strip().lower())


@dataclass(frozen=True)
class FieldDescriptor:
    """Read-only description of a dataset field."""

    name: str
    declared_type: FieldType = FieldType.UNKNOWN
    indexed: bool = False
    role: Optional[AddressRole] = None
    provenance: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any], indexed: bool = False) -> "FieldDescriptor":
        """
        Build a descriptor from a metadata store field entry.

        Args:
            doc: Field entry, e.g. {"name": "geom", "type": "Geometry"}
            indexed: Whether the data collection has an index on the field

        Returns:
            A FieldDescriptor
        """
        return cls(
            name=doc["name"],
            declared_type=parse_field_type(doc.get("type")),
            indexed=bool(doc.get("indexed", indexed)),
            role=parse_address_role(doc.get("feature")),
            provenance=doc.get("provenance"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.declared_type.value,
            "indexed": self.indexed,
            "role": self.role.value if self.role else None,
            "provenance": self.provenance,
        }
