import io
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import requests

from raffledesk.errors import ProofStorageError
from raffledesk.storage import HttpProofStorage, LocalProofStorage


class DummyResponse:
    def __init__(self, json_data=None, content: bytes = b"", error=None):
        self._json = json_data
        if json_data is not None and not content:
            import json as _json

            content = _json.dumps(json_data).encode()
        self.content = content
        self._error = error

    def json(self):
        return self._json

    def raise_for_status(self):
        if self._error is not None:
            raise self._error


class DummySession:
    def __init__(self, response: DummyResponse):
        self.response = response
        self.calls = []

    def request(self, method, url, headers=None, json=None, files=None, timeout=None):
        self.calls.append(
            {
                "method": method,
                "url": url,
                "headers": headers,
                "json": json,
                "files": files,
                "timeout": timeout,
            }
        )
        return self.response


class TestLocalProofStorage(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.storage = LocalProofStorage(self.root)

    def tearDown(self):
        self._tmp.cleanup()

    def test_store_and_delete(self):
        uri = self.storage.store(io.BytesIO(b"pix receipt"), "comprovante.PNG")
        self.assertTrue(uri.startswith("file://"))
        stored = list((self.root / "proofs").iterdir())
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0].suffix, ".png")
        self.assertEqual(stored[0].read_bytes(), b"pix receipt")

        self.storage.delete(uri)
        self.assertEqual(list((self.root / "proofs").iterdir()), [])
        # Deleting twice is harmless.
        self.storage.delete(uri)

    def test_generated_names_are_unique(self):
        first = self.storage.store(io.BytesIO(b"a"), "a.jpg")
        second = self.storage.store(io.BytesIO(b"b"), "a.jpg")
        self.assertNotEqual(first, second)

    def test_rejects_foreign_uris(self):
        with self.assertRaises(ProofStorageError):
            self.storage.delete("https://cdn.example.com/proof.jpg")
        outside = (self.root.parent / "elsewhere.jpg").resolve().as_uri()
        with self.assertRaises(ProofStorageError):
            self.storage.delete(outside)


class TestHttpProofStorage(unittest.TestCase):
    @patch("raffledesk.storage.api.load_dotenv")
    def test_requires_fqdn(self, mock_load_dotenv):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValueError):
                HttpProofStorage()

    def test_store_posts_file_and_returns_uri(self):
        session = DummySession(DummyResponse(json_data={"uri": "https://cdn/p/1.jpg"}))
        storage = HttpProofStorage(
            base_fqdn="storage.example.com", token="secret", session=session
        )
        uri = storage.store(io.BytesIO(b"data"), "receipt.JPG")
        self.assertEqual(uri, "https://cdn/p/1.jpg")
        call = session.calls[0]
        self.assertEqual(call["method"], "POST")
        self.assertEqual(call["url"], "https://storage.example.com/api/v1/proofs")
        self.assertEqual(call["headers"]["Authorization"], "Bearer secret")
        self.assertTrue(call["files"]["file"][0].endswith(".jpg"))

    @patch("raffledesk.storage.api.load_dotenv")
    def test_delete_sends_uri(self, mock_load_dotenv):
        session = DummySession(DummyResponse())
        with patch.dict(os.environ, {}, clear=True):
            storage = HttpProofStorage(base_fqdn="storage.example.com", session=session)
        storage.delete("https://cdn/p/1.jpg")
        call = session.calls[0]
        self.assertEqual(call["method"], "DELETE")
        self.assertEqual(call["json"], {"uri": "https://cdn/p/1.jpg"})
        self.assertNotIn("Authorization", call["headers"])

    def test_http_errors_become_storage_errors(self):
        error = requests.HTTPError("503 Service Unavailable")
        session = DummySession(DummyResponse(error=error))
        storage = HttpProofStorage(base_fqdn="storage.example.com", session=session)
        with self.assertRaises(ProofStorageError) as ctx:
            storage.store(io.BytesIO(b"x"), "a.jpg")
        self.assertTrue(ctx.exception.retryable)

    def test_unexpected_payload(self):
        session = DummySession(DummyResponse(json_data={"status": "ok"}))
        storage = HttpProofStorage(base_fqdn="storage.example.com", session=session)
        with self.assertRaises(ProofStorageError):
            storage.store(io.BytesIO(b"x"), "a.jpg")


if __name__ == "__main__":
    unittest.main()
