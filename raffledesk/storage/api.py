import os
import logging
from urllib.parse import urljoin
from typing import Any, BinaryIO, Mapping, Optional

import requests
from dotenv import load_dotenv

from ..errors import ProofStorageError
from .base import ProofStorage

logger = logging.getLogger(__name__)


class HttpProofStorage(ProofStorage):
    """Proof storage backed by a remote object-storage HTTP API."""

    def __init__(
        self,
        base_fqdn: Optional[str] = None,
        token: Optional[str] = None,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        load_dotenv()
        fqdn = base_fqdn or os.getenv("PROOF_STORAGE_BASE_FQDN")
        if not fqdn:
            raise ValueError("Environment variable 'PROOF_STORAGE_BASE_FQDN' is not set")

        self.base_url = f"https://{fqdn}".rstrip("/")
        self.token = token or os.getenv("PROOF_STORAGE_TOKEN")
        self.session = session or requests.Session()
        self.timeout = timeout

    # -------- headers --------
    @property
    def auth_headers(self) -> Mapping[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
        files: Optional[dict] = None,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        try:
            r = self.session.request(
                method=method.upper(),
                url=url,
                headers=self.auth_headers,
                json=json,
                files=files,
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.RequestException as e:
            # Never log the token; the URL and error are enough for diagnostics.
            logger.error(f"Proof storage request {method.upper()} {url} failed: {e}")
            raise ProofStorageError(f"Proof storage request failed: {e}") from e
        return r.json() if r.content else None

    # -------- API callers --------
    def store(self, stream: BinaryIO, filename: str) -> str:
        stored_name = self.generate_name(filename)
        response = self._request(
            "POST",
            "/api/v1/proofs",
            files={"file": (stored_name, stream)},
        )
        if not isinstance(response, dict) or not response.get("uri"):
            raise ProofStorageError(f"Unexpected proof storage response: {response!r}")
        return response["uri"]

    def delete(self, uri: str) -> None:
        self._request("DELETE", "/api/v1/proofs", json={"uri": uri})
