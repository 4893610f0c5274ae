import logging
import shutil
from pathlib import Path
from typing import BinaryIO, Union
from urllib.parse import unquote, urlparse

from ..errors import ProofStorageError
from .base import ProofStorage

logger = logging.getLogger(__name__)


class LocalProofStorage(ProofStorage):
    """Store proof files under a directory and address them by ``file://`` URI.

    Files are written to ``<root>/proofs/<uuid4>.<ext>``.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    def _proof_dir(self) -> Path:
        return self.root / "proofs"

    def store(self, stream: BinaryIO, filename: str) -> str:
        target_dir = self._proof_dir()
        target = target_dir / self.generate_name(filename)
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as fh:
                shutil.copyfileobj(stream, fh)
        except OSError as e:
            logger.error(f"Could not write proof file {target.name}: {e}")
            raise ProofStorageError(f"Failed to store proof: {e}") from e
        return target.as_uri()

    def delete(self, uri: str) -> None:
        path = self._path_from_uri(uri)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise ProofStorageError(f"Failed to delete proof: {e}") from e

    def _path_from_uri(self, uri: str) -> Path:
        parsed = urlparse(uri)
        if parsed.scheme != "file":
            raise ProofStorageError(f"Not a local proof URI: {uri}")
        path = Path(unquote(parsed.path)).resolve()
        if self._proof_dir() not in path.parents:
            raise ProofStorageError(f"Proof URI points outside the storage root: {uri}")
        return path
