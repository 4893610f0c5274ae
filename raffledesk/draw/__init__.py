"""Utilities for the raffle draw."""

from .engine import DrawEngine, pick_winner

__all__ = [
    "DrawEngine",
    "pick_winner",
]
