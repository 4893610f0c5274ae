"""Number allocation and draw subsystem for a numbered-entry raffle."""

from .config import RaffleSettings
from .errors import RaffleError
from .service import Outcome, RaffleDesk

__all__ = [
    "Outcome",
    "RaffleDesk",
    "RaffleError",
    "RaffleSettings",
]
