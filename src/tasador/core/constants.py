"""
Shared Constants for Tasador

Contains all constant values used across the application.
"""

from typing import Dict, List

# Remote store layout (relative to workspace/{agent_id})
WORKSPACE_ROOT: str = "workspace"
ACTIVE_TARGET_DOC: str = "data/valuation_active"
COMPARABLES_COLLECTION: str = "comparables"
SAVED_VALUATIONS_COLLECTION: str = "saved_valuations"

# Saved valuation quota per agent
MAX_SAVED_VALUATIONS: int = 30

# Identifier allocation
DOCUMENT_ID_LENGTH: int = 20
LOCAL_ID_PREFIX: str = "local-"
# Snapshots written by older clients may carry ids from a non-persistent
# allocator: decimal strings ("0.8134...") or very short tokens.
LEGACY_EPHEMERAL_PREFIX: str = "0."
MIN_STABLE_ID_LENGTH: int = 5

# Target property defaults for a new valuation
DEFAULT_TARGET_SURFACE_TYPE: str = "Balcón"
DEFAULT_TARGET_FACTOR: float = 0.10

# Comparable defaults for a freshly added row
DEFAULT_COMPARABLE_ADDRESS: str = "Nueva Propiedad"
DEFAULT_COMPARABLE_PRICE: float = 100_000.0
DEFAULT_COMPARABLE_COVERED_SURFACE: float = 50.0
DEFAULT_COMPARABLE_SURFACE_TYPE: str = "Ninguno"
DEFAULT_COMPARABLE_FACTOR: float = 0.0

# Homogenization factor lookup used when an import row has none
DEFAULT_FACTORS: Dict[str, float] = {
    "Jardín": 0.2,
    "Patio": 0.3,
    "Terraza": 0.3,
    "Balcón": 0.1,
}
FALLBACK_FACTOR: float = 1.0

# Tabular import
NO_ADDRESS: str = "Sin dirección"
ADDRESS_COLUMNS: List[str] = ["Dirección", "Address"]
PRICE_COLUMNS: List[str] = ["Precio", "Price"]
COVERED_COLUMNS: List[str] = ["Sup. Cubierta", "Covered Surface"]
UNCOVERED_COLUMNS: List[str] = ["Sup. Descubierta", "Uncovered Surface"]
SURFACE_TYPE_COLUMNS: List[str] = ["Tipo Sup", "Surface Type"]
FACTOR_COLUMNS: List[str] = ["Factor"]
DAYS_COLUMNS: List[str] = ["Días", "Days"]

GOOGLE_SHEETS_EXPORT_URL: str = (
    "https://docs.google.com/spreadsheets/d/{sheet_id}/gviz/tq?tqx=out:csv"
)

# Confirmation prompts
CONFIRM_NEW_VALUATION: str = (
    "¿Estás seguro de crear una nueva tasación? Se perderán los datos actuales no guardados."
)
CONFIRM_LOAD_VALUATION: str = "Cargar esta tasación reemplazará los datos actuales. ¿Continuar?"
CONFIRM_DELETE_VALUATION: str = "¿Estás seguro de eliminar esta tasación?"

# Status written when a snapshot is first saved
STATUS_OPEN: str = "Abierta"
