"""Local control socket turning CLI commands into bus calls and signals."""

import json
import os
import socket
import socketserver
import threading
from concurrent import futures
from pathlib import Path
from typing import Any, Optional

import structlog

from diskmonitor.core.bus import (
    ACTIVITY_SIGNAL_INTERFACE,
    BOOT_DONE,
    BOOT_SIGNAL_INTERFACE,
    REQ_CHECK,
    REQUEST_INTERFACE,
    SYSTEM_INACTIVITY_IND,
    LocalBus,
)

logger = structlog.get_logger()

DEFAULT_REPLY_TIMEOUT = 30.0


class ControlError(Exception):
    """Control command was rejected or failed."""


def handle_command(
    bus: LocalBus, request: dict[str, Any], reply_timeout: float = DEFAULT_REPLY_TIMEOUT
) -> None:
    """Deliver one control command onto the bus.

    Args:
        bus: Bus the disk monitor handlers are bound on
        request: Decoded command with ``method`` and optional ``params``
        reply_timeout: Seconds to wait for a check request to be acknowledged

    Raises:
        ControlError: If the command is unknown or malformed
        BusError: If the bus cannot deliver the command
    """
    method = request.get("method")
    params = request.get("params") or {}

    if method == "check":
        reply = bus.call_method(REQUEST_INTERFACE, REQ_CHECK, "control")
        reply.result(timeout=reply_timeout)
    elif method == "boot_done":
        bus.send_signal(BOOT_SIGNAL_INTERFACE, BOOT_DONE)
    elif method == "activity":
        inactive = params.get("inactive")
        if not isinstance(inactive, int) or isinstance(inactive, bool):
            raise ControlError("activity requires an integer 'inactive' parameter")
        bus.send_signal(ACTIVITY_SIGNAL_INTERFACE, SYSTEM_INACTIVITY_IND, inactive)
    else:
        raise ControlError(f"Unknown control method: {method}")


class _ControlHandler(socketserver.StreamRequestHandler):
    def handle(self):
        line = self.rfile.readline()
        try:
            request = json.loads(line)
            if not isinstance(request, dict):
                raise ControlError("Control request must be a JSON object")
        except (ValueError, ControlError) as e:
            response = {"error": f"Invalid request: {e}"}
        else:
            response = self.server.control.handle(request)
        self.wfile.write(json.dumps(response).encode("utf-8") + b"\n")


class _UnixServer(socketserver.ThreadingUnixStreamServer):
    daemon_threads = True


class ControlServer:
    """Serves control commands on a Unix stream socket."""

    def __init__(
        self,
        bus: LocalBus,
        socket_path: str,
        reply_timeout: float = DEFAULT_REPLY_TIMEOUT,
    ):
        self.bus = bus
        self.socket_path = socket_path
        self.reply_timeout = reply_timeout
        self.logger = logger.bind(component="ControlServer")
        self._server: Optional[_UnixServer] = None
        self._thread: Optional[threading.Thread] = None

    def handle(self, request: dict[str, Any]) -> dict[str, Any]:
        method = request.get("method")
        try:
            handle_command(self.bus, request, self.reply_timeout)
        except futures.TimeoutError:
            self.logger.warning("Control command timed out", method=method)
            return {"error": f"{method} was not acknowledged in time"}
        except Exception as e:
            self.logger.error("Control command failed", method=method, error=str(e))
            return {"error": str(e)}
        self.logger.info("Control command handled", method=method)
        return {"result": "ok"}

    def start(self) -> None:
        # A socket file left behind by a killed daemon blocks bind()
        if os.path.exists(self.socket_path):
            os.remove(self.socket_path)
        os.makedirs(os.path.dirname(self.socket_path) or ".", exist_ok=True)

        self._server = _UnixServer(self.socket_path, _ControlHandler)
        self._server.control = self
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="control-socket", daemon=True
        )
        self._thread.start()
        self.logger.info("Control socket listening", socket_path=self.socket_path)

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        try:
            os.remove(self.socket_path)
        except FileNotFoundError:
            pass


def control_call(
    socket_path: str,
    method: str,
    params: Optional[dict[str, Any]] = None,
    timeout: float = DEFAULT_REPLY_TIMEOUT + 5,
) -> None:
    """Send a control command to the running daemon.

    Raises:
        ConnectionError: If the daemon's control socket is unavailable
        ControlError: If the daemon rejected the command
    """
    if not Path(socket_path).exists():
        raise ConnectionError(f"Control socket not found: {socket_path}")

    request = {"method": method, "params": params or {}}
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.settimeout(timeout)
    try:
        sock.connect(socket_path)
        sock.sendall(json.dumps(request).encode("utf-8") + b"\n")
        with sock.makefile("rb") as stream:
            line = stream.readline()
    finally:
        sock.close()

    if not line:
        raise ConnectionError("Connection closed by daemon")

    response = json.loads(line)
    if "error" in response:
        raise ControlError(response["error"])
