"""
Station normalizer for SIATA map records.

Each upstream record nests every field as
    {"valor_alfanumerico": "<string>"}
under atributos.metadato / atributos.descripcion. The normalizer walks those
paths and produces a flat Station. Any station whose value or coordinates
can't be parsed aborts the whole batch.
"""

import logging
import math
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Tuple

from siata.errors import DecodeError, ParseError

logger = logging.getLogger(__name__)

LEAF_KEY = "valor_alfanumerico"

# Station field -> key path (excluding the leaf key)
FIELD_PATHS: Dict[str, Tuple[str, ...]] = {
    "name":        ("atributos", "metadato", "name"),
    "description": ("atributos", "descripcion", "ICA_PM25_Descripcion"),
    "updated_at":  ("atributos", "descripcion", "fecha_ultima_actualizacion"),
    "value":       ("atributos", "descripcion", "ICA_PM25_Valor"),
    "latitude":    ("atributos", "descripcion", "Latitud"),
    "longitude":   ("atributos", "descripcion", "Longitud"),
}

# Parse order matters: the first failing field is the one reported.
NUMERIC_FIELDS = ("value", "latitude", "longitude")

_DECIMAL_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


@dataclass
class Station:
    """A single measurement station, as published."""
    name: str
    description: str
    updated_at: str    # provider's free-text timestamp, not parsed
    value: float       # PM2.5 ICA value, may be negative (sensor fault)
    latitude: float
    longitude: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Station":
        return cls(
            name=data["name"],
            description=data["description"],
            updated_at=data["updated_at"],
            value=float(data["value"]),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
        )


def parse_decimal(field_name: str, raw: str) -> float:
    """
    Parse a plain decimal string as a finite float.

    Only ASCII digits, one optional sign, an optional '.' fraction and an
    optional exponent are accepted. Whitespace, thousands separators,
    underscores, comma decimals, nan and inf are all rejected.

    Raises:
        ParseError: identifying `field_name` and the offending string.
    """
    if not _DECIMAL_RE.fullmatch(raw):
        raise ParseError(field_name, raw)
    value = float(raw)
    if not math.isfinite(value):
        raise ParseError(field_name, raw)
    return value


def _extract(point: Dict[str, Any], path: Tuple[str, ...]) -> str:
    """
    Walk `path` then the leaf key. Missing or null keys give "".
    A wrong container or leaf type is a DecodeError.
    """
    node: Any = point
    for key in path + (LEAF_KEY,):
        if node is None:
            return ""
        if not isinstance(node, dict):
            raise DecodeError(f"expected an object at {'.'.join(path)}, got {type(node).__name__}")
        node = node.get(key)
    if node is None:
        return ""
    if not isinstance(node, str):
        raise DecodeError(
            f"expected a string at {'.'.join(path)}.{LEAF_KEY}, got {type(node).__name__}"
        )
    return node


def normalize(point: Dict[str, Any]) -> Station:
    """
    Convert one raw SIATA record into a Station.

    Raises:
        DecodeError: The record's nesting doesn't match the expected shape.
        ParseError: value, latitude or longitude is not a finite decimal.
    """
    raw = {name: _extract(point, path) for name, path in FIELD_PATHS.items()}
    parsed = {name: parse_decimal(name, raw[name]) for name in NUMERIC_FIELDS}

    return Station(
        name=raw["name"],
        description=raw["description"],
        updated_at=raw["updated_at"],
        value=parsed["value"],
        latitude=parsed["latitude"],
        longitude=parsed["longitude"],
    )


def normalize_all(points: Iterable[Dict[str, Any]]) -> List[Station]:
    """Normalize every record in order. The first bad record aborts the batch."""
    stations = []
    for i, point in enumerate(points):
        try:
            stations.append(normalize(point))
        except ParseError as e:
            logger.error("Station #%d has an unparseable %s: %r", i, e.field, e.raw)
            raise
    return stations
