"""Adapters for the proof-of-payment storage collaborator."""

from .base import ProofStorage
from .local import LocalProofStorage
from .api import HttpProofStorage

__all__ = [
    "ProofStorage",
    "LocalProofStorage",
    "HttpProofStorage",
]
