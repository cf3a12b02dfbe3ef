"""In-process message bus used to receive triggers and publish results."""

import threading
from concurrent.futures import Future
from typing import Any, Callable, Protocol

import structlog

from diskmonitor.models import DiskSpaceSignal

logger = structlog.get_logger()

SERVICE_NAME = "org.diskmonitor"
REQUEST_INTERFACE = "org.diskmonitor.request"
SIGNAL_INTERFACE = "org.diskmonitor.signal"

REQ_CHECK = "req_check"
DISK_SPACE_CHANGE_IND = "disk_space_change_ind"

BOOT_SIGNAL_INTERFACE = "org.startup.signal"
BOOT_DONE = "base_boot_done"
ACTIVITY_SIGNAL_INTERFACE = "org.activity.signal"
SYSTEM_INACTIVITY_IND = "system_inactivity_ind"

MethodHandler = Callable[..., Future]
SignalHandler = Callable[..., None]
Subscriber = Callable[[DiskSpaceSignal], None]


class BusError(Exception):
    """Raised when a bus call cannot be delivered."""


class ConnectionListener(Protocol):
    def on_connect(self) -> None: ...

    def on_disconnect(self) -> None: ...


class LocalBus:
    """Thread-safe bus connecting inbound callers to bound handlers.

    Inbound method calls and signals reach their handlers only while the bus
    is connected. Outbound signals are delivered to subscribers while
    connected and dropped otherwise.
    """

    def __init__(self):
        self.connected = False
        self.logger = logger.bind(component="LocalBus")
        self._lock = threading.RLock()
        self._methods: dict[tuple[str, str], MethodHandler] = {}
        self._signals: dict[tuple[str, str], list[SignalHandler]] = {}
        self._subscribers: list[Subscriber] = []
        self._listeners: list[ConnectionListener] = []

    def add_listener(self, listener: ConnectionListener) -> None:
        """Register a listener for connect and disconnect notifications."""
        with self._lock:
            self._listeners.append(listener)
            connected = self.connected
        if connected:
            listener.on_connect()

    def connect(self) -> None:
        with self._lock:
            if self.connected:
                return
            self.connected = True
            listeners = list(self._listeners)
        self.logger.debug("Bus connected")
        for listener in listeners:
            listener.on_connect()

    def disconnect(self) -> None:
        with self._lock:
            if not self.connected:
                return
            self.connected = False
            listeners = list(self._listeners)
        self.logger.debug("Bus disconnected")
        for listener in listeners:
            listener.on_disconnect()

    def bind_methods(
        self, service: str, interface: str, methods: dict[str, MethodHandler]
    ) -> None:
        """Bind method handlers under a service interface.

        Args:
            service: Service name the methods are offered under
            interface: Interface the methods belong to
            methods: Mapping of method name to handler
        """
        with self._lock:
            for name, handler in methods.items():
                self._methods[(interface, name)] = handler
        self.logger.debug(
            "Methods bound", service=service, interface=interface, methods=list(methods)
        )

    def unbind_methods(
        self, service: str, interface: str, methods: dict[str, MethodHandler]
    ) -> None:
        with self._lock:
            for name in methods:
                self._methods.pop((interface, name), None)
        self.logger.debug("Methods unbound", service=service, interface=interface)

    def bind_signals(self, bindings: list[tuple[str, str, SignalHandler]]) -> None:
        """Bind handlers for signals sent by other bus peers.

        Args:
            bindings: List of (interface, signal name, handler) tuples
        """
        with self._lock:
            for interface, name, handler in bindings:
                self._signals.setdefault((interface, name), []).append(handler)
        self.logger.debug("Signals bound", count=len(bindings))

    def unbind_signals(self, bindings: list[tuple[str, str, SignalHandler]]) -> None:
        with self._lock:
            for interface, name, handler in bindings:
                handlers = self._signals.get((interface, name), [])
                if handler in handlers:
                    handlers.remove(handler)
                if not handlers:
                    self._signals.pop((interface, name), None)
        self.logger.debug("Signals unbound", count=len(bindings))

    def call_method(self, interface: str, name: str, *args: Any) -> Future:
        """Call a bound method.

        Returns:
            Future resolved once the handler has acknowledged the call

        Raises:
            BusError: If the bus is disconnected or the method is not bound
        """
        with self._lock:
            if not self.connected:
                raise BusError("Bus is not connected")
            handler = self._methods.get((interface, name))
        if handler is None:
            raise BusError(f"No handler bound for {interface}.{name}")
        return handler(*args)

    def send_signal(self, interface: str, name: str, *args: Any) -> int:
        """Deliver a signal to every handler bound for it.

        Returns:
            Number of handlers invoked
        """
        with self._lock:
            if not self.connected:
                self.logger.debug(
                    "Bus not connected, signal not delivered",
                    interface=interface,
                    signal=name,
                )
                return 0
            handlers = list(self._signals.get((interface, name), []))
        for handler in handlers:
            handler(*args)
        return len(handlers)

    def subscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

    def emit_signal(self, signal: DiskSpaceSignal) -> bool:
        """Publish an outbound signal to all subscribers.

        Returns:
            True if the signal was delivered, False if the bus is disconnected
        """
        with self._lock:
            if not self.connected:
                self.logger.debug("Bus not connected, dropping signal", **signal.to_dict())
                return False
            subscribers = list(self._subscribers)

        for subscriber in subscribers:
            try:
                subscriber(signal)
            except Exception as e:
                self.logger.error(
                    "Signal subscriber failed",
                    signal=signal.name,
                    error=str(e),
                    exc_info=True,
                )
        return True


def new_reply() -> Future:
    """Create an unresolved acknowledgment for a method call."""
    reply: Future = Future()
    reply.set_running_or_notify_cancel()
    return reply

