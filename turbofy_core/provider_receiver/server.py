import json
import logging
import re
import threading
from http.server import ThreadingHTTPServer, BaseHTTPRequestHandler

from turbofy_core.inbound.processor import InboundWebhookProcessor

logger = logging.getLogger("turbofy.inbound")

WEBHOOK_PATH = re.compile(r"^/webhooks/(?P<provider>[A-Za-z0-9_-]+)(?P<health>/health)?/?$")
EXPECTED_SIGNATURE_FORMAT = "t=<unix timestamp>,v1=<hex hmac-sha256>"


class _ProviderHandler(BaseHTTPRequestHandler):
    """Routes provider callbacks to the inbound processor."""

    def do_POST(self):
        match = WEBHOOK_PATH.match(self.path.split("?", 1)[0])
        if not match or match.group("health"):
            self._reply(404, {"error": "not found"})
            return

        content_length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(content_length) if content_length > 0 else b""

        processor: InboundWebhookProcessor = self.server.processor  # type: ignore[attr-defined]
        try:
            response = processor.receive(match.group("provider"), dict(self.headers.items()), body)
        except Exception as e:
            # authentication never got a verdict; let the provider retry
            logger.exception(f"Inbound webhook handling failed: {e}")
            self._reply(500, {"error": "internal error"})
            return
        self._reply(response.status, response.body)

    def do_GET(self):
        match = WEBHOOK_PATH.match(self.path.split("?", 1)[0])
        if not match:
            self._reply(404, {"error": "not found"})
            return
        self._reply(200, {
            "status": "ok",
            "provider": match.group("provider"),
            "signatureFormat": EXPECTED_SIGNATURE_FORMAT,
        })

    def _reply(self, code: int, body: dict) -> None:
        payload = json.dumps(body).encode()
        self.send_response(code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format, *args):
        logger.debug(f"{self.address_string()} {format % args}")


class ProviderWebhookServer:
    """HTTP surface for ``POST /webhooks/{provider}`` and its health probes."""

    def __init__(self, processor: InboundWebhookProcessor, host: str = "127.0.0.1", port: int = 0):
        self._host = host
        self._port = port
        self._processor = processor
        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._server = ThreadingHTTPServer((self._host, self._port), _ProviderHandler)
        self._server.processor = self._processor  # type: ignore[attr-defined]
        self._port = self._server.server_address[1]
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info(f"Provider webhook receiver listening on {self._host}:{self._port}")

    def serve_forever(self) -> None:
        """Blocking variant of ``start`` for the command line entry point."""
        self._server = ThreadingHTTPServer((self._host, self._port), _ProviderHandler)
        self._server.processor = self._processor  # type: ignore[attr-defined]
        self._port = self._server.server_address[1]
        logger.info(f"Provider webhook receiver listening on {self._host}:{self._port}")
        try:
            self._server.serve_forever()
        finally:
            self._server.server_close()
            self._server = None

    def stop(self) -> None:
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

    def url_for(self, provider: str = "transfeera") -> str:
        return f"http://{self._host}:{self._port}/webhooks/{provider}"

    @property
    def port(self) -> int:
        return self._port
