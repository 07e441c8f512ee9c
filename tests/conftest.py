"""Shared fixtures."""

import contextlib
import http.server
import threading
import time

import pytest

SLOW_REPLY_DELAY = 1.5


class SlowHandler(http.server.BaseHTTPRequestHandler):
    """Answers every GET after SLOW_REPLY_DELAY seconds."""

    def do_GET(self):
        time.sleep(SLOW_REPLY_DELAY)
        # The client has usually given up by now.
        with contextlib.suppress(OSError):
            body = b'{"ok": true}'
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

    def log_message(self, format, *args):  # noqa: A002
        pass


class SlowServer(http.server.ThreadingHTTPServer):
    daemon_threads = True
    block_on_close = False


@pytest.fixture
def slow_server(monkeypatch):
    """Base URL of a local HTTP server that is slower than the test deadlines."""
    for name in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY"):
        monkeypatch.delenv(name, raising=False)
        monkeypatch.delenv(name.lower(), raising=False)
    server = SlowServer(("127.0.0.1", 0), SlowHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_port}"
    server.shutdown()
    server.server_close()
    thread.join()
