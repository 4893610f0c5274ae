"""Uniform selection of unclaimed ticket numbers."""

from __future__ import annotations

import random
from typing import AbstractSet, Optional

from ..errors import InsufficientPool, InvalidInput


def available_numbers(claimed: AbstractSet[int], pool_size: int) -> list[int]:
    """Return the numbers in ``1..pool_size`` that are not in ``claimed``, ascending."""

    if pool_size < 1:
        raise ValueError("pool_size must be a positive integer")
    return [n for n in range(1, pool_size + 1) if n not in claimed]


class NumberPoolAllocator:
    """Pick unclaimed ticket numbers from the fixed range ``1..pool_size``.

    The allocator is a pure computation over a snapshot of claimed numbers. It
    does not reserve anything in the store: callers must insert the returned
    numbers in the same transaction that read the snapshot, relying on the
    store's uniqueness constraint to reject a stale pick.
    """

    def __init__(
        self,
        pool_size: int = 1000,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Create an allocator.

        Parameters
        ----------
        pool_size : int, default: 1000
            Highest ticket number in the pool.
        rng : Optional[random.Random], default: None
            Random source used for sampling. Defaults to
            :class:`random.SystemRandom`; tests inject a seeded
            :class:`random.Random`.
        """

        if pool_size < 1:
            raise ValueError("pool_size must be a positive integer")
        self.pool_size = pool_size
        self._rng = rng or random.SystemRandom()

    def complement(self, claimed: AbstractSet[int]) -> list[int]:
        return available_numbers(claimed, self.pool_size)

    def allocate(self, claimed: AbstractSet[int], count: int) -> list[int]:
        """Return ``count`` distinct numbers outside ``claimed``.

        Parameters
        ----------
        claimed : AbstractSet[int]
            Numbers already held by participants at the time of the call.
        count : int
            How many numbers to pick.

        Returns
        -------
        list[int]
            Pairwise distinct numbers disjoint from ``claimed``. The order is
            the sampling order and carries no meaning.

        Raises
        ------
        InvalidInput
            If ``count`` is negative.
        InsufficientPool
            If fewer than ``count`` numbers remain unclaimed.
        """

        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise InvalidInput("count must be a non-negative integer", field="count")

        pool = self.complement(claimed)
        if len(pool) < count:
            raise InsufficientPool(requested=count, available=len(pool))

        # Partial Fisher-Yates: after step i, pool[:i + 1] is a uniform sample.
        for i in range(count):
            j = self._rng.randrange(i, len(pool))
            pool[i], pool[j] = pool[j], pool[i]
        return pool[:count]


def allocate(
    claimed: AbstractSet[int],
    count: int,
    *,
    pool_size: int = 1000,
    rng: Optional[random.Random] = None,
) -> list[int]:
    """Shortcut for ``NumberPoolAllocator(pool_size, rng=rng).allocate(...)``."""

    return NumberPoolAllocator(pool_size, rng=rng).allocate(claimed, count)


__all__ = ["NumberPoolAllocator", "allocate", "available_numbers"]
