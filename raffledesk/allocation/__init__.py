"""Ticket-number allocation for the raffle pool."""

from .pool import NumberPoolAllocator, allocate, available_numbers

__all__ = [
    "NumberPoolAllocator",
    "allocate",
    "available_numbers",
]
