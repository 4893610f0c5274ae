"""Contract for the collaborator that keeps proof-of-payment files."""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import BinaryIO


class ProofStorage:
    """Persist proof files and hand back an opaque URI.

    Implementations raise :class:`~raffledesk.errors.ProofStorageError` on any
    transport or filesystem failure.
    """

    def store(self, stream: BinaryIO, filename: str) -> str:
        """Persist the bytes of ``stream`` and return a URI referencing them."""
        raise NotImplementedError

    def delete(self, uri: str) -> None:
        """Remove the file behind ``uri``; deleting a missing file is not an error."""
        raise NotImplementedError

    @staticmethod
    def generate_name(filename: str) -> str:
        """Random file name keeping the original extension, e.g. ``<uuid4>.jpg``."""
        ext = Path(filename).suffix.lower()
        return f"{uuid.uuid4()}{ext}"
