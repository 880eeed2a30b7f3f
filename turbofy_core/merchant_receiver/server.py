import json
import threading
import time
from dataclasses import dataclass, field
from http.server import ThreadingHTTPServer, BaseHTTPRequestHandler
from typing import Self

from turbofy_core.utils.crypto import verify_turbofy_signature

SIGNATURE_HEADER = "turbofy-signature"
ENVELOPE_FIELDS = ["id", "type", "timestamp", "version", "routingKey", "payload"]


@dataclass
class _EndpointState:
    """Behaviour knobs and the record of what a merchant endpoint received."""

    response_code: int = 200
    response_delay: float = 0
    secret: str | None = None
    tolerance_seconds: float = 0
    dedupe: bool = False
    received: list[dict] = field(default_factory=list)
    acknowledged_ids: set[str] = field(default_factory=set)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def accept(self, envelope: dict, headers: dict, raw_body: bytes) -> tuple[int, dict]:
        event_id = envelope["id"]
        with self.lock:
            if self.dedupe and event_id in self.acknowledged_ids:
                return 200, {"status": "duplicate", "eventId": event_id}
            self.received.append({
                "event_id": event_id,
                "envelope": envelope,
                "headers": headers,
                "raw_body": raw_body,
            })
            code = self.response_code
            # only an acknowledged event counts as handled; a failed one may come back
            if 200 <= code < 300:
                self.acknowledged_ids.add(event_id)
        if 200 <= code < 300:
            return code, {"status": "ok", "eventId": event_id}
        return code, {"error": "configured failure"}


class _MerchantHandler(BaseHTTPRequestHandler):
    """Reference merchant endpoint: verify, parse, dedupe, acknowledge."""

    def do_POST(self):
        state: _EndpointState = self.server.state  # type: ignore[attr-defined]
        raw = self.rfile.read(int(self.headers.get("Content-Length", 0)))

        if state.response_delay > 0:
            time.sleep(state.response_delay)

        # the digest covers the raw bytes, so verify before parsing
        if state.secret:
            header = self.headers.get(SIGNATURE_HEADER, "")
            if not header:
                self._reply(401, {"error": "missing signature"})
                return
            if not verify_turbofy_signature(state.secret, header, raw, tolerance_seconds=state.tolerance_seconds):
                self._reply(401, {"error": "invalid signature"})
                return

        try:
            envelope = json.loads(raw)
        except ValueError:
            self._reply(400, {"error": "invalid JSON"})
            return
        if not isinstance(envelope, dict):
            self._reply(400, {"error": "envelope must be an object"})
            return

        missing = [f for f in ENVELOPE_FIELDS if f not in envelope]
        if missing:
            self._reply(400, {"error": f"missing fields: {missing}"})
            return

        self._reply(*state.accept(envelope, dict(self.headers), raw))

    def _reply(self, code: int, body: dict) -> None:
        payload = json.dumps(body).encode()
        self.send_response(code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format, *args):
        pass


class MerchantWebhookServer:
    """Stand-in for a merchant's webhook endpoint, used to observe outbound delivery.

    Every well-formed envelope is recorded, including the ones answered with
    a configured failure code, so tests can see each attempt.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 0, secret: str | None = None):
        self._host = host
        self._port = port
        self._state = _EndpointState(secret=secret)
        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    def set_response_code(self, code: int) -> Self:
        self._state.response_code = code
        return self

    def set_response_delay(self, seconds: float) -> Self:
        self._state.response_delay = seconds
        return self

    def enable_signature_verification(self, secret: str, tolerance_seconds: float = 0) -> Self:
        self._state.secret = secret
        self._state.tolerance_seconds = tolerance_seconds
        return self

    def enable_idempotency(self) -> Self:
        """Answer already-acknowledged envelope ids without recording them again."""
        self._state.dedupe = True
        return self

    def start(self) -> None:
        self._server = ThreadingHTTPServer((self._host, self._port), _MerchantHandler)
        self._server.state = self._state  # type: ignore[attr-defined]
        self._port = self._server.server_address[1]
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

    @property
    def url(self) -> str:
        return f"http://{self._host}:{self._port}/webhook"

    @property
    def port(self) -> int:
        return self._port

    def get_received_events(self, event_type: str | None = None) -> list[dict]:
        with self._state.lock:
            events = list(self._state.received)
        if event_type is None:
            return events
        return [e for e in events if e["envelope"]["type"] == event_type]

    def get_processed_count(self) -> int:
        with self._state.lock:
            return len(self._state.received)

    def was_event_processed(self, event_id: str) -> bool:
        with self._state.lock:
            return event_id in self._state.acknowledged_ids

    def clear_events(self) -> None:
        with self._state.lock:
            self._state.received.clear()
            self._state.acknowledged_ids.clear()
