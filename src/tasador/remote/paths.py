"""Document paths of one agent's workspace."""

from dataclasses import dataclass

from tasador.core.constants import (
    ACTIVE_TARGET_DOC,
    COMPARABLES_COLLECTION,
    SAVED_VALUATIONS_COLLECTION,
    WORKSPACE_ROOT,
)
from tasador.exceptions import ValidationError


@dataclass(frozen=True)
class WorkspacePaths:
    """Paths under ``workspace/{agent_id}``."""

    agent_id: str

    def __post_init__(self):
        if not self.agent_id or "/" in self.agent_id:
            raise ValidationError("Invalid agent id", field="agent_id", value=self.agent_id)

    @property
    def base(self) -> str:
        return f"{WORKSPACE_ROOT}/{self.agent_id}"

    @property
    def target(self) -> str:
        return f"{self.base}/{ACTIVE_TARGET_DOC}"

    @property
    def comparables(self) -> str:
        return f"{self.base}/{COMPARABLES_COLLECTION}"

    @property
    def saved_valuations(self) -> str:
        return f"{self.base}/{SAVED_VALUATIONS_COLLECTION}"

    def comparable(self, comparable_id: str) -> str:
        return f"{self.comparables}/{comparable_id}"

    def saved_valuation(self, valuation_id: str) -> str:
        return f"{self.saved_valuations}/{valuation_id}"
