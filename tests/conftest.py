"""Shared fixtures: an in-process TUS server that records every request."""

import os
import shutil
import tempfile
import uuid
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from threading import Lock, Thread
from typing import Any, Optional

import pytest


class RecordingTusServer:
    """Minimal TUS 1.0.0 server for exercising the client.

    Uploads are kept in memory. Every request is appended to ``requests`` as
    (method, path, headers) with lower-cased header names. Behaviour can be
    bent per test:

    - ``fail_patch_after``: number of PATCH requests to accept before every
      further PATCH is answered with 500
    - ``max_accept``: accept at most this many bytes per PATCH
    - ``omit_headers``: response header names to leave out
    - ``expires``: value sent as Upload-Expires
    """

    TUS_VERSION = "1.0.0"

    def __init__(self, base_path: str = "/files"):
        self.base_path = base_path
        self.uploads: dict[str, dict[str, Any]] = {}
        self.requests: list[tuple[str, str, dict[str, str]]] = []
        self.lock = Lock()
        self.fail_patch_after: Optional[int] = None
        self.max_accept: Optional[int] = None
        self.omit_headers: set[str] = set()
        self.expires: Optional[str] = None
        self.patch_count = 0

    def methods(self) -> list[str]:
        return [method for method, _, _ in self.requests]

    def patch_offsets(self) -> list[int]:
        return [
            int(headers["upload-offset"])
            for method, _, headers in self.requests
            if method == "PATCH"
        ]

    def handle_request(
        self, method: str, path: str, headers: dict[str, str], body: bytes
    ) -> tuple[int, dict[str, str], bytes]:
        headers = {k.lower(): v for k, v in headers.items()}
        with self.lock:
            self.requests.append((method, path, headers))
            if headers.get("tus-resumable") != self.TUS_VERSION:
                return (412, {"Tus-Resumable": self.TUS_VERSION}, b"Invalid TUS version")

            if method == "POST" and path == self.base_path:
                status, response_headers, response_body = self._handle_create(headers)
            elif path.startswith(self.base_path + "/"):
                upload_id = path[len(self.base_path) + 1 :]
                upload = self.uploads.get(upload_id)
                if upload is None:
                    return (404, {}, b"Upload not found")
                if method == "HEAD":
                    status, response_headers, response_body = self._handle_head(upload)
                elif method == "PATCH":
                    status, response_headers, response_body = self._handle_patch(
                        upload, headers, body
                    )
                else:
                    return (405, {}, b"Method not allowed")
            else:
                return (404, {}, b"Not Found")

        response_headers["Tus-Resumable"] = self.TUS_VERSION
        if self.expires and status < 300:
            response_headers["Upload-Expires"] = self.expires
        for name in self.omit_headers:
            response_headers.pop(name, None)
        return status, response_headers, response_body

    def _handle_create(self, headers: dict[str, str]) -> tuple[int, dict[str, str], bytes]:
        length = headers.get("upload-length")
        if length is None or not length.isdigit():
            return (400, {}, b"Missing Upload-Length header")

        upload_id = uuid.uuid4().hex
        self.uploads[upload_id] = {
            "length": int(length),
            "offset": 0,
            "data": bytearray(),
            "metadata": headers.get("upload-metadata"),
        }
        return (201, {"Location": f"{self.base_path}/{upload_id}"}, b"")

    def _handle_head(self, upload: dict[str, Any]) -> tuple[int, dict[str, str], bytes]:
        response_headers = {
            "Upload-Offset": str(upload["offset"]),
            "Upload-Length": str(upload["length"]),
            "Cache-Control": "no-store",
        }
        if upload["metadata"]:
            response_headers["Upload-Metadata"] = upload["metadata"]
        return (200, response_headers, b"")

    def _handle_patch(
        self, upload: dict[str, Any], headers: dict[str, str], body: bytes
    ) -> tuple[int, dict[str, str], bytes]:
        self.patch_count += 1
        if self.fail_patch_after is not None and self.patch_count > self.fail_patch_after:
            return (500, {}, b"Simulated failure")

        if headers.get("content-type") != "application/offset+octet-stream":
            return (415, {}, b"Invalid Content-Type")
        if int(headers.get("upload-offset", -1)) != upload["offset"]:
            return (409, {}, b"Upload-Offset mismatch")

        if self.max_accept is not None:
            body = body[: self.max_accept]
        upload["data"].extend(body)
        upload["offset"] += len(body)
        return (204, {"Upload-Offset": str(upload["offset"])}, b"")


class RecordingHandler(BaseHTTPRequestHandler):
    """HTTP request handler forwarding to a RecordingTusServer."""

    tus_server: RecordingTusServer = None

    def do_POST(self) -> None:
        self._handle_request("POST")

    def do_HEAD(self) -> None:
        self._handle_request("HEAD")

    def do_PATCH(self) -> None:
        self._handle_request("PATCH")

    def do_DELETE(self) -> None:
        self._handle_request("DELETE")

    def _handle_request(self, method: str) -> None:
        body = b""
        content_length = int(self.headers.get("Content-Length", 0))
        if content_length > 0:
            body = self.rfile.read(content_length)

        status, response_headers, response_body = self.tus_server.handle_request(
            method, self.path, dict(self.headers), body
        )

        self.send_response(status)
        for key, value in response_headers.items():
            self.send_header(key, value)
        self.send_header("Content-Length", str(len(response_body)))
        self.end_headers()
        if response_body and method != "HEAD":
            self.wfile.write(response_body)

    def log_message(self, format: str, *args: Any) -> None:
        """Suppress default logging."""
        pass


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def make_file(temp_dir):
    """Return a factory writing a file of the given size."""

    def _make_file(size: int, name: str = "test_file.bin") -> str:
        file_path = os.path.join(temp_dir, name)
        with open(file_path, "wb") as f:
            f.write(os.urandom(size))
        return file_path

    return _make_file


@pytest.fixture
def tus_server():
    """Start a recording TUS server, yield (base_url, server)."""
    recording = RecordingTusServer()

    class Handler(RecordingHandler):
        pass

    Handler.tus_server = recording

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    port = server.server_address[1]
    thread = Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield f"http://127.0.0.1:{port}", recording

    server.shutdown()
    server.server_close()
