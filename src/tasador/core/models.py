"""
Data Models for Tasador

Dataclass definitions for the target property, comparables, saved
valuations and the computed statistics.

Documents in the remote store use camelCase keys (``coveredSurface``,
``daysOnMarket``); the models use snake_case attributes and convert at the
boundary with ``to_document()`` / ``from_document()``.
"""

from dataclasses import dataclass, field, fields, asdict, replace
from typing import Any, Dict, List, Mapping, Optional

from tasador.core.constants import (
    DEFAULT_COMPARABLE_ADDRESS,
    DEFAULT_COMPARABLE_COVERED_SURFACE,
    DEFAULT_COMPARABLE_FACTOR,
    DEFAULT_COMPARABLE_PRICE,
    DEFAULT_COMPARABLE_SURFACE_TYPE,
    DEFAULT_TARGET_FACTOR,
    DEFAULT_TARGET_SURFACE_TYPE,
)
from tasador.exceptions import ValidationError
from tasador.utils.surface_types import SurfaceType, parse_surface_type

# Fields holding numbers that must be stored as floats
_FLOAT_FIELDS = {
    "covered_surface",
    "uncovered_surface",
    "homogenization_factor",
    "semi_covered_surface",
    "price",
    "publication_price",
    "closing_price",
    "days_on_market",
}


def _to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _document_key(f) -> str:
    return f.metadata.get("key", _to_camel(f.name))


@dataclass
class Location:
    """Geographic coordinate."""

    lat: float
    lng: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    @classmethod
    def from_value(cls, value: Any) -> Optional["Location"]:
        if value is None or isinstance(value, Location):
            return value
        if isinstance(value, Mapping) and "lat" in value and "lng" in value:
            return cls(lat=float(value["lat"]), lng=float(value["lng"]))
        raise ValidationError("Invalid location", field="location", value=value)


class DocumentModel:
    """Mixin converting dataclass models to and from store documents."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def to_document(self) -> Dict[str, Any]:
        """Convert to a camelCase document, omitting unset values."""
        document = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            document[_document_key(f)] = _encode(value)
        return document

    @classmethod
    def from_document(cls, data: Mapping[str, Any], **overrides):
        """Build a model from a stored document; unknown keys are ignored."""
        kwargs = {}
        for f in fields(cls):
            key = _document_key(f)
            if key in data:
                kwargs[f.name] = _coerce(f.name, data[key])
            elif f.name in data:
                kwargs[f.name] = _coerce(f.name, data[f.name])
        kwargs.update(overrides)
        return cls(**kwargs)

    @classmethod
    def resolve_field(cls, key: str) -> str:
        """Map a snake_case name or camelCase document key to the attribute name.

        Raises:
            ValidationError: If the key does not name a field of this model.
        """
        for f in fields(cls):
            if key in (f.name, _document_key(f)):
                return f.name
        raise ValidationError(f"Unknown field for {cls.__name__}: {key}", field=key)

    def with_changes(self, changes: Mapping[str, Any]):
        """Return a copy with ``changes`` merged in.

        Keys may be snake_case attribute names or camelCase document keys.

        Raises:
            ValidationError: If a key does not name a field of this model.
        """
        resolved = {}
        for key, value in changes.items():
            name = self.resolve_field(key)
            resolved[name] = _coerce(name, value)
        return replace(self, **resolved)

    def document_subset(self, keys) -> Dict[str, Any]:
        """Document entries for the given fields only, including unset ones as None."""
        names = {self.resolve_field(key) for key in keys}
        return {
            _document_key(f): _encode(getattr(self, f.name))
            for f in fields(self)
            if f.name in names
        }


def _encode(value: Any) -> Any:
    if isinstance(value, SurfaceType):
        return value.value
    if isinstance(value, (Location, ValueRange)):
        return value.to_dict()
    if isinstance(value, DocumentModel):
        return value.to_document()
    if isinstance(value, list):
        return [_encode(item) for item in value]
    return value


def _coerce(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name == "surface_type":
        return parse_surface_type(value)
    if name == "location":
        return Location.from_value(value)
    if name == "value_range":
        return ValueRange.from_value(value)
    if name in _FLOAT_FIELDS:
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Expected a number for {name}", field=name, value=value)
    return value


@dataclass
class PropertyCharacteristics(DocumentModel):
    """Attributes shared by the target property and its comparables.

    All optional: None means unknown, not zero.
    """

    rooms: Optional[int] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    toilettes: Optional[int] = None
    age: Optional[int] = None
    garage: Optional[bool] = None
    semi_covered_surface: Optional[float] = None
    floor_type: Optional[str] = None
    apartments_in_building: Optional[int] = None
    is_credit_eligible: Optional[bool] = None
    is_professional: Optional[bool] = None
    has_financing: Optional[bool] = None
    images: Optional[List[str]] = None
    map_image: Optional[str] = None
    lot_dimensions: Optional[str] = None
    orientation: Optional[str] = None
    utilities: Optional[str] = None
    condition: Optional[str] = None


# Characteristic values written by a fresh form
BLANK_CHARACTERISTICS: Dict[str, Any] = {
    "rooms": 0,
    "bedrooms": 0,
    "bathrooms": 0,
    "toilettes": 0,
    "age": 0,
    "garage": False,
    "semi_covered_surface": 0.0,
    "floor_type": "",
    "apartments_in_building": 0,
    "is_credit_eligible": False,
    "is_professional": False,
    "has_financing": False,
    "images": [],
}


@dataclass
class TargetProperty(PropertyCharacteristics):
    """The property being valued."""

    address: str = ""
    location: Optional[Location] = None
    covered_surface: float = 0.0
    uncovered_surface: float = 0.0
    surface_type: SurfaceType = SurfaceType(DEFAULT_TARGET_SURFACE_TYPE)
    homogenization_factor: float = DEFAULT_TARGET_FACTOR

    @classmethod
    def empty(cls) -> "TargetProperty":
        """Target written when a new valuation starts."""
        return cls(map_image="", **_blank())

    def has_address(self) -> bool:
        return bool(self.address and self.address.strip())


@dataclass
class Comparable(PropertyCharacteristics):
    """A market listing compared against the target."""

    id: str = ""
    address: str = ""
    location: Optional[Location] = None
    price: float = 0.0
    covered_surface: float = 0.0
    uncovered_surface: float = 0.0
    surface_type: SurfaceType = SurfaceType(DEFAULT_COMPARABLE_SURFACE_TYPE)
    homogenization_factor: float = 0.0
    days_on_market: float = 0.0
    publication_price: Optional[float] = None
    closing_price: Optional[float] = None
    closing_date: Optional[str] = None
    status: Optional[str] = None
    amenities: Optional[List[str]] = None

    @classmethod
    def new(cls, comparable_id: str, initial: Optional[Mapping[str, Any]] = None) -> "Comparable":
        """Create a comparable with every required numeric field defaulted.

        Args:
            comparable_id: Identifier allocated for the new row.
            initial: Optional field overrides (snake_case or camelCase).
        """
        base = cls(
            id=comparable_id,
            address=DEFAULT_COMPARABLE_ADDRESS,
            price=DEFAULT_COMPARABLE_PRICE,
            covered_surface=DEFAULT_COMPARABLE_COVERED_SURFACE,
            uncovered_surface=0.0,
            surface_type=SurfaceType(DEFAULT_COMPARABLE_SURFACE_TYPE),
            homogenization_factor=DEFAULT_COMPARABLE_FACTOR,
            days_on_market=0.0,
            **_blank(),
        )
        if not initial:
            return base
        overrides = {k: v for k, v in initial.items() if k != "id"}
        return base.with_changes(overrides)

    def business_fields(self) -> Dict[str, Any]:
        """Document without the identifier (what a comparable *is*)."""
        document = self.to_document()
        document.pop("id", None)
        return document


@dataclass
class ValueRange:
    """Low / market / high value of the target."""

    low: float = 0.0
    market: float = 0.0
    high: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"low": self.low, "market": self.market, "high": self.high}

    @classmethod
    def from_value(cls, value: Any) -> Optional["ValueRange"]:
        if value is None or isinstance(value, ValueRange):
            return value
        return cls(
            low=float(value.get("low", 0)),
            market=float(value.get("market", 0)),
            high=float(value.get("high", 0)),
        )


@dataclass
class ValuationStats:
    """Summary of the homogenized unit prices of the priced comparables."""

    avg: float = 0.0
    min: float = 0.0
    max: float = 0.0
    terciles: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PricedComparable:
    """A comparable with its derived (never persisted) homogenized figures."""

    comparable: Comparable
    h_surface: float
    h_price: float

    @property
    def id(self) -> str:
        return self.comparable.id

    def to_dict(self) -> Dict[str, Any]:
        data = self.comparable.to_document()
        data["hSurface"] = self.h_surface
        data["hPrice"] = self.h_price
        return data


@dataclass
class SavedValuation(DocumentModel):
    """A named snapshot of an active valuation."""

    id: str = ""
    name: str = ""
    date: int = 0
    target: TargetProperty = field(default_factory=TargetProperty)
    comparables: List[Comparable] = field(default_factory=list)
    client_name: str = ""
    property_id: Optional[str] = field(default=None, metadata={"key": "inmuebleId"})
    value_range: Optional[ValueRange] = field(default=None, metadata={"key": "valuation"})
    publication_price: Optional[float] = None
    closing_price: Optional[float] = None
    closing_date: Optional[str] = None
    valuation_status: Optional[str] = None
    amenities: Optional[List[str]] = None

    @classmethod
    def from_document(cls, data: Mapping[str, Any], **overrides) -> "SavedValuation":
        nested = dict(overrides)
        if "target" not in nested:
            nested["target"] = TargetProperty.from_document(data.get("target") or {})
        if "comparables" not in nested:
            nested["comparables"] = [
                Comparable.from_document(item) for item in data.get("comparables") or []
            ]
        return super().from_document(data, **nested)


def _blank() -> Dict[str, Any]:
    blank = dict(BLANK_CHARACTERISTICS)
    blank["images"] = []
    return blank
