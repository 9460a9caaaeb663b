"""
Active valuation, saved valuations and the per-agent session.
"""

from tasador.valuation.active import ActiveValuationStore
from tasador.valuation.prompts import ConsolePrompter, Prompter, StaticPrompter
from tasador.valuation.saved import SavedValuationRepository
from tasador.valuation.session import ValuationSession

__all__ = [
    "ActiveValuationStore",
    "ConsolePrompter",
    "Prompter",
    "StaticPrompter",
    "SavedValuationRepository",
    "ValuationSession",
]
