"""Fire-and-forget notification collaborator."""

import logging
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)


class Notifier:
    """Receives success/error signals for the UI layer.

    Delivery is never awaited for correctness: callers invoke :meth:`notify`
    after their transaction has committed and ignore its failures.
    """

    def notify(self, event: str, payload: Optional[Mapping[str, Any]] = None) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Default notifier that writes each signal to the log."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def notify(self, event: str, payload: Optional[Mapping[str, Any]] = None) -> None:
        logger.log(self.level, "raffle event %s: %s", event, dict(payload or {}))
