"""
Surface Type Utilities

Closed enumeration of uncovered-surface kinds plus the lookups used when
free text (forms, spreadsheets) has to be mapped onto it.
"""

import unicodedata
from enum import Enum
from typing import List, Optional, Union

from tasador.core.constants import DEFAULT_FACTORS, FALLBACK_FACTOR
from tasador.logging_config import get_logger

logger = get_logger(__name__)


class SurfaceType(str, Enum):
    """Kind of uncovered surface. Values are the stored (wire) labels."""

    GARDEN = "Jardín"
    PATIO = "Patio"
    TERRACE = "Terraza"
    BALCONY = "Balcón"
    NONE = "Ninguno"


# Normalized free-text label -> surface type (Spanish and English)
SURFACE_TYPE_MAP = {
    "jardin": SurfaceType.GARDEN,
    "garden": SurfaceType.GARDEN,
    "patio": SurfaceType.PATIO,
    "terraza": SurfaceType.TERRACE,
    "terrace": SurfaceType.TERRACE,
    "balcon": SurfaceType.BALCONY,
    "balcony": SurfaceType.BALCONY,
    "ninguno": SurfaceType.NONE,
    "ninguna": SurfaceType.NONE,
    "none": SurfaceType.NONE,
}


def _normalize(label: str) -> str:
    """Lowercase and strip accents: 'Balcón ' -> 'balcon'."""
    decomposed = unicodedata.normalize("NFKD", label.strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def parse_surface_type(label: Union[str, SurfaceType, None]) -> SurfaceType:
    """Map a free-text surface type onto the closed enumeration.

    Args:
        label: Raw label, e.g. "Balcón", "balcony", "TERRAZA".

    Returns:
        Matching SurfaceType, or SurfaceType.NONE when unrecognized.

    Example:
        >>> parse_surface_type("Terrace")
        <SurfaceType.TERRACE: 'Terraza'>
        >>> parse_surface_type("piscina")
        <SurfaceType.NONE: 'Ninguno'>
    """
    if isinstance(label, SurfaceType):
        return label
    if not label:
        return SurfaceType.NONE

    surface_type = SURFACE_TYPE_MAP.get(_normalize(str(label)))
    if surface_type is None:
        logger.debug("Unrecognized surface type: %s", label)
        return SurfaceType.NONE
    return surface_type


def get_default_factor(surface_type: Optional[SurfaceType]) -> float:
    """Get the default homogenization factor for a surface type.

    Example:
        >>> get_default_factor(SurfaceType.BALCONY)
        0.1
        >>> get_default_factor(SurfaceType.NONE)
        1.0
    """
    if surface_type is None:
        return FALLBACK_FACTOR
    return DEFAULT_FACTORS.get(surface_type.value) or FALLBACK_FACTOR


def resolve_factor(explicit: Optional[float], surface_type: SurfaceType) -> float:
    """Use an explicit factor when positive, else the surface-type default."""
    if explicit is not None and explicit > 0:
        return explicit
    return get_default_factor(surface_type)


def get_surface_types() -> List[str]:
    """Get the stored labels of all surface types."""
    return [member.value for member in SurfaceType]
