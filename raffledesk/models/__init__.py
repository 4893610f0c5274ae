from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .cycle import RaffleCycle  # noqa: F401
from .participant import ORIGIN_DIRECT, ORIGIN_EXTRA, Participant  # noqa: F401
from .extra_request import (  # noqa: F401
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    ExtraNumberRequest,
)
from .draw import DrawOutcome  # noqa: F401
from .operation_log import OperationLog  # noqa: F401

__all__ = [
    "Base",
    "RaffleCycle",
    "Participant",
    "ExtraNumberRequest",
    "DrawOutcome",
    "OperationLog",
    "ORIGIN_DIRECT",
    "ORIGIN_EXTRA",
    "STATUS_PENDING",
    "STATUS_APPROVED",
    "STATUS_REJECTED",
]
