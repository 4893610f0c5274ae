"""Runtime configuration for the raffle subsystem."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[1]

DEFAULT_POOL_SIZE = 1000
DEFAULT_UNIT_PRICE = Decimal("7")
DEFAULT_TICKETS_PER_UNIT = 5

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable '{name}' must be an integer") from exc


def _env_decimal(env: Mapping[str, str], name: str, default: Decimal) -> Decimal:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return Decimal(raw.strip())
    except InvalidOperation as exc:
        raise ValueError(f"Environment variable '{name}' must be a decimal") from exc


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"Environment variable '{name}' must be a boolean")


@dataclass(frozen=True)
class RaffleSettings:
    """Pool and pricing constants plus store tuning.

    Attributes
    ----------
    pool_size : int
        Highest ticket number; tickets are numbered ``1..pool_size``.
    unit_price : Decimal
        Purchase amount that earns one batch of extra tickets.
    tickets_per_unit : int
        Extra tickets granted per ``unit_price`` spent.
    require_registration_for_extras : bool
        Only contacts holding a ticket may submit extra-number requests.
    db_isolation_level : Optional[str]
        Isolation level for non-SQLite backends.
    db_timeout : float
        Seconds a connection waits on a locked store before giving up.
    proof_storage_dir : Path
        Root directory for :class:`~raffledesk.storage.LocalProofStorage`.
    """

    pool_size: int = DEFAULT_POOL_SIZE
    unit_price: Decimal = DEFAULT_UNIT_PRICE
    tickets_per_unit: int = DEFAULT_TICKETS_PER_UNIT
    require_registration_for_extras: bool = True
    db_isolation_level: Optional[str] = "SERIALIZABLE"
    db_timeout: float = 30.0
    proof_storage_dir: Path = ROOT_DIR / "proofs"

    def __post_init__(self) -> None:
        if self.pool_size < 1:
            raise ValueError("pool_size must be a positive integer")
        if self.unit_price <= 0:
            raise ValueError("unit_price must be positive")
        if self.tickets_per_unit < 1:
            raise ValueError("tickets_per_unit must be a positive integer")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "RaffleSettings":
        """Build settings from environment variables (``.env`` is loaded first)."""

        if env is None:
            load_dotenv()
            env = os.environ

        isolation = env.get("RAFFLE_DB_ISOLATION_LEVEL", "SERIALIZABLE").strip()
        storage_dir = env.get("PROOF_STORAGE_DIR", "./proofs").strip()
        storage_path = Path(storage_dir)
        if not storage_path.is_absolute():
            storage_path = (ROOT_DIR / storage_path).resolve()

        return cls(
            pool_size=_env_int(env, "RAFFLE_POOL_SIZE", DEFAULT_POOL_SIZE),
            unit_price=_env_decimal(env, "RAFFLE_UNIT_PRICE", DEFAULT_UNIT_PRICE),
            tickets_per_unit=_env_int(
                env, "RAFFLE_TICKETS_PER_UNIT", DEFAULT_TICKETS_PER_UNIT
            ),
            require_registration_for_extras=_env_bool(
                env, "RAFFLE_REQUIRE_REGISTRATION_FOR_EXTRAS", True
            ),
            db_isolation_level=isolation or None,
            db_timeout=float(_env_int(env, "RAFFLE_DB_TIMEOUT", 30)),
            proof_storage_dir=storage_path,
        )

    def extra_ticket_count(self, purchase_amount: Decimal) -> int:
        """Tickets earned by ``purchase_amount``: whole units times the batch size."""

        return int(purchase_amount // self.unit_price) * self.tickets_per_unit


__all__ = ["RaffleSettings", "ROOT_DIR"]
