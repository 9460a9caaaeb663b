"""
Confirmation Prompts

Operations that discard or replace data ask the agent first. The prompter
is injected so the CLI can ask on the terminal, the API can pass the
client's answer through, and tests can answer up front.
"""

from tasador.logging_config import get_logger

logger = get_logger(__name__)


class Prompter:
    """Asks the agent a yes/no question and blocks until answered."""

    def confirm(self, message: str) -> bool:
        raise NotImplementedError


class StaticPrompter(Prompter):
    """Always gives the same answer."""

    def __init__(self, answer: bool = True):
        self.answer = answer
        self.asked = []

    def confirm(self, message: str) -> bool:
        self.asked.append(message)
        logger.debug("Auto-%s: %s", "confirmed" if self.answer else "declined", message)
        return self.answer


class ConsolePrompter(Prompter):
    """Asks on the terminal; anything but yes declines."""

    def confirm(self, message: str) -> bool:
        reply = input(f"{message} [s/N] ").strip().lower()
        return reply in ("s", "si", "sí", "y", "yes")
