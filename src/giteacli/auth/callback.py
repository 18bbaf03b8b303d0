"""One-shot loopback HTTP listener for the OAuth2 redirect.

:class:`CallbackListener` binds a :class:`~http.server.ThreadingHTTPServer`
on the redirect URL's host and port, runs its accept loop on a daemon
worker thread and hands the first terminal callback to the waiting
caller through a write-once slot. Connections that stay idle are dropped
after a few seconds, or when the listener closes.

Lifecycle::

    IDLE --start()--> LISTENING --await_result()--> CODE_RECEIVED
                                                  | ERROR_RECEIVED
                                                  | TIMED_OUT
                                 --close()------> CLOSED

Only the first callback on the redirect path is honoured. Later requests
(browser prefetches, reloads, favicon fetches) get a plain 404 and never
touch the captured result. Verifying the returned ``state`` is the
caller's job; the listener reports whatever the browser delivered.
"""

from __future__ import annotations

import html
import logging
import socket
import socketserver
import threading
from dataclasses import dataclass
from enum import Enum
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from giteacli.exceptions import BindError

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.05
_CONNECTION_TIMEOUT = 5.0

SUCCESS_MESSAGE = (
    "Authorization successful! You can close this window and return to the terminal."
)


class CallbackKind(str, Enum):
    """Which terminal outcome a :class:`CallbackResult` represents."""

    CODE = "code"
    ERROR = "error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class CallbackResult:
    """The single terminal outcome of a callback listener.

    Use the :meth:`success`, :meth:`failure` and :meth:`timed_out`
    constructors rather than building instances by hand.
    """

    kind: CallbackKind
    code: str = ""
    state: str = ""
    error_code: str = ""
    error_description: str = ""

    @classmethod
    def success(cls, code: str, state: str) -> CallbackResult:
        return cls(kind=CallbackKind.CODE, code=code, state=state)

    @classmethod
    def failure(cls, error_code: str, error_description: str = "") -> CallbackResult:
        return cls(
            kind=CallbackKind.ERROR,
            error_code=error_code,
            error_description=error_description,
        )

    @classmethod
    def timed_out(cls) -> CallbackResult:
        return cls(kind=CallbackKind.TIMEOUT)

    @property
    def error_message(self) -> str:
        """``error: description`` for error results, empty otherwise."""
        if self.kind is not CallbackKind.ERROR:
            return ""
        if self.error_description:
            return f"{self.error_code}: {self.error_description}"
        return self.error_code


class ListenerState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    CODE_RECEIVED = "code_received"
    ERROR_RECEIVED = "error_received"
    TIMED_OUT = "timed_out"
    CLOSED = "closed"


_TERMINAL_STATES = {
    CallbackKind.CODE: ListenerState.CODE_RECEIVED,
    CallbackKind.ERROR: ListenerState.ERROR_RECEIVED,
    CallbackKind.TIMEOUT: ListenerState.TIMED_OUT,
}


class _ResultSlot:
    """Write-once cell shared by the handler thread and the waiting caller."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ready = threading.Event()
        self._value: Optional[CallbackResult] = None

    @property
    def settled(self) -> bool:
        return self._ready.is_set()

    def offer(self, result: CallbackResult) -> bool:
        """Store *result* unless a value is already present.

        Returns:
            ``True`` if *result* became the terminal value.
        """
        with self._lock:
            if self._value is not None:
                return False
            self._value = result
            self._ready.set()
            return True

    def wait(self, timeout: float) -> CallbackResult:
        """Block up to *timeout* seconds, then settle on a timeout if still empty."""
        self._ready.wait(timeout)
        self.offer(CallbackResult.timed_out())
        assert self._value is not None
        return self._value


class _CallbackServer(ThreadingHTTPServer):
    """Threaded HTTPServer carrying the callback path and the shared result slot.

    Each connection is handled on its own daemon thread, so a client that
    connects and never sends a request (a browser preconnect) cannot stall
    the accept loop. Open connections are tracked so :meth:`drop_connections`
    can release them when the listener closes.
    """

    allow_reuse_port = False
    daemon_threads = True
    block_on_close = False

    def __init__(self, address: tuple[str, int], callback_path: str, slot: _ResultSlot) -> None:
        if ":" in address[0]:
            self.address_family = socket.AF_INET6
        self.callback_path = callback_path
        self.slot = slot
        self._connections: set[socket.socket] = set()
        self._connections_lock = threading.Lock()
        super().__init__(address, _CallbackHandler)

    def server_bind(self) -> None:
        # Skip the reverse DNS lookup HTTPServer performs for server_name.
        socketserver.TCPServer.server_bind(self)
        self.server_name = str(self.server_address[0])
        self.server_port = self.server_address[1]

    def process_request(self, request: Any, client_address: Any) -> None:
        with self._connections_lock:
            self._connections.add(request)
        super().process_request(request, client_address)

    def shutdown_request(self, request: Any) -> None:
        with self._connections_lock:
            self._connections.discard(request)
        super().shutdown_request(request)

    def drop_connections(self) -> None:
        """Unblock handler threads still waiting on idle connections."""
        with self._connections_lock:
            for conn in self._connections:
                try:
                    conn.shutdown(socket.SHUT_RDWR)
                except OSError:
                    # Peer already went away.
                    pass


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _CallbackServer

    timeout = _CONNECTION_TIMEOUT

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        if parsed.path != self.server.callback_path or self.server.slot.settled:
            self._respond(404, "Not found.")
            return

        params = parse_qs(parsed.query)
        error_code = params.get("error", [""])[0]
        code = params.get("code", [""])[0]

        if error_code:
            result = CallbackResult.failure(error_code, params.get("error_description", [""])[0])
            status, body = 400, f"Authorization failed: {result.error_message}"
        elif code:
            result = CallbackResult.success(code, params.get("state", [""])[0])
            status, body = 200, SUCCESS_MESSAGE
        else:
            result = CallbackResult.failure("no_code", "no authorization code received")
            status, body = 400, "Error: No authorization code received."

        if not self.server.slot.offer(result):
            # Lost a race with another request or the timeout.
            self._respond(404, "Not found.")
            return
        self._respond(status, body)

    def _respond(self, status: int, message: str) -> None:
        payload = f"<html><body><h2>{html.escape(message)}</h2></body></html>".encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.send_header("Connection", "close")
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("callback server: " + format, *args)


class CallbackListener:
    """Receive exactly one OAuth2 redirect on a loopback address.

    Args:
        redirect_url: The redirect URL registered for the client. Its
            host, port (0 = pick a free one) and path select where the
            listener binds and which path it answers.

    Example::

        listener = CallbackListener("http://127.0.0.1:0/")
        port = listener.start()
        # ... open the browser on an URL whose redirect_uri uses *port* ...
        result = listener.await_result(timeout=60)
    """

    def __init__(self, redirect_url: str) -> None:
        parsed = urlparse(redirect_url)
        self._host = parsed.hostname or "127.0.0.1"
        self._port = parsed.port or 0
        self._path = parsed.path or "/"
        self._slot = _ResultSlot()
        self._server: Optional[_CallbackServer] = None
        self._thread: Optional[threading.Thread] = None
        self._state = ListenerState.IDLE
        self._outcome: Optional[CallbackResult] = None

    @property
    def state(self) -> ListenerState:
        return self._state

    @property
    def outcome(self) -> Optional[CallbackResult]:
        """The terminal result once :meth:`await_result` has returned."""
        return self._outcome

    @property
    def callback_path(self) -> str:
        return self._path

    @property
    def port(self) -> int:
        """The bound port (only meaningful after :meth:`start`)."""
        return self._port

    def start(self) -> int:
        """Bind the socket and start serving in a background thread.

        The socket is listening when this returns, so the browser may be
        opened immediately afterwards.

        Returns:
            The actual bound port.

        Raises:
            BindError: If the address cannot be bound.
            RuntimeError: If the listener was already started.
        """
        if self._state is not ListenerState.IDLE:
            raise RuntimeError(f"Callback listener cannot start from state {self._state.value}")
        try:
            server = _CallbackServer((self._host, self._port), self._path, self._slot)
        except OSError as exc:
            raise BindError(
                f"Failed to start local callback server on {self._host}:{self._port}: {exc}"
            ) from exc

        self._server = server
        self._port = server.server_address[1]
        self._thread = threading.Thread(
            target=server.serve_forever,
            kwargs={"poll_interval": _POLL_INTERVAL},
            name=f"oauth-callback-{self._port}",
            daemon=True,
        )
        self._thread.start()
        self._state = ListenerState.LISTENING
        logger.debug("Callback listener on %s:%d%s", self._host, self._port, self._path)
        return self._port

    def await_result(self, timeout: float) -> CallbackResult:
        """Block until a callback arrives or *timeout* seconds elapse.

        The listener is closed before this returns, whatever the outcome.

        Raises:
            RuntimeError: If :meth:`start` was not called.
        """
        if self._state is not ListenerState.LISTENING:
            raise RuntimeError(f"Callback listener is not listening (state {self._state.value})")
        try:
            result = self._slot.wait(timeout)
        finally:
            self.close()
        self._outcome = result
        self._state = _TERMINAL_STATES[result.kind]
        return result

    def close(self) -> None:
        """Stop serving, drop open connections and release the socket. Safe to call twice."""
        server, thread = self._server, self._thread
        self._server = None
        self._thread = None
        if server is not None:
            if thread is not None and thread.is_alive():
                server.shutdown()
            server.drop_connections()
            server.server_close()
        if thread is not None:
            thread.join(timeout=5)
        if self._state is ListenerState.LISTENING or self._state is ListenerState.IDLE:
            self._state = ListenerState.CLOSED

    def __enter__(self) -> CallbackListener:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
