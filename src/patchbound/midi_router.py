"""
Hardware MIDI input routing with background port polling.

Every hardware input port (including ones plugged in after startup) is read
on a background thread that only enqueues; the owning event loop drains the
queue and turns each raw message into a scheduled device MIDI event, so
routing never runs in parallel with other handlers.
"""

import queue
import threading
import time
from datetime import datetime
from typing import Callable, Iterable, Optional, Union

import mido

from patchbound.callbacks import CallbackManager
from patchbound.device import Device, MIDIEvent
from patchbound.logging_config import get_logger

logger = get_logger(__name__)

PORT_CONNECTED = "connected"
PORT_DISCONNECTED = "disconnected"

RawMIDI = Union[mido.Message, bytes, Iterable[int]]
PortStateCallback = Callable[[str, str], None]  # (port_name, state)


class MidiInputPort:
    """Registry entry for one hardware input port."""

    def __init__(self, name: str, port: Optional[mido.ports.BaseInput]):
        self.name = name
        self.port = port
        self.attached = port is not None
        self.attached_at = datetime.now()

    def __repr__(self) -> str:
        return f"MidiInputPort({self.name!r}, attached={self.attached})"


class MidiRouter:
    """
    Routes hardware MIDI input into the device's event scheduler.

    All hardware ports are coalesced onto one logical device port. One raw
    message produces exactly one scheduled event, in arrival order.
    """

    def __init__(
        self,
        device: Device,
        logical_port: int = 0,
        poll_interval: float = 0.001,
        hotplug_interval: float = 1.0,
        queue_size: int = 1000,
        list_inputs: Optional[Callable[[], list[str]]] = None,
        open_input: Optional[Callable[[str], mido.ports.BaseInput]] = None,
    ):
        """
        Initialize MIDI router.

        Args:
            device: Device receiving scheduled MIDI events
            logical_port: Device MIDI port every hardware port is routed to
            poll_interval: Seconds between input sweeps on the background thread
            hotplug_interval: Seconds between port enumeration checks
            queue_size: Maximum queued inputs before messages are dropped
            list_inputs: Port enumeration (defaults to mido.get_input_names)
            open_input: Port opener (defaults to mido.open_input)
        """
        self._device = device
        self._logical_port = logical_port
        self._poll_interval = poll_interval
        self._hotplug_interval = hotplug_interval
        self._list_inputs = list_inputs or mido.get_input_names
        self._open_input = open_input or mido.open_input

        # Port registry keyed by hardware port name
        self._registry: dict[str, MidiInputPort] = {}
        self._known_names: set[str] = set()
        self._available = False
        self._access_reported = False

        # Threading components
        self._running = threading.Event()
        self._input_thread: Optional[threading.Thread] = None
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._port_lock = threading.Lock()
        self._last_hotplug_check = 0.0

        self._last_timestamp = 0.0
        self._callbacks = CallbackManager()

        # Statistics
        self._routed_messages = 0
        self._ignored_messages = 0
        self._dropped_messages = 0

    @property
    def is_available(self) -> bool:
        """True once MIDI access was granted."""
        return self._available

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    @property
    def attached_ports(self) -> list[str]:
        """Names of ports currently routed."""
        with self._port_lock:
            return [name for name, entry in self._registry.items() if entry.attached]

    @property
    def registry(self) -> dict[str, MidiInputPort]:
        """Every port ever attached, including detached records."""
        with self._port_lock:
            return dict(self._registry)

    def on_port_change(self, callback: PortStateCallback) -> None:
        """Register a callback fired after a port connects or disconnects."""
        self._callbacks.register(callback)

    # Lifecycle

    def start(self, background: bool = True) -> bool:
        """
        Request MIDI access, attach every input port and start polling.

        Args:
            background: Start the polling thread (False leaves polling to poll_once())

        Returns:
            True if MIDI access was granted; False leaves routing disabled
        """
        try:
            names = list(self._list_inputs())
        except Exception as e:
            if not self._access_reported:
                logger.error(f"MIDI access denied or not supported: {e}")
                self._access_reported = True
            self._available = False
            return False

        self._available = True
        logger.info("MIDI access granted")

        for name in names:
            self.attach(name)
        self._known_names = set(names)

        if names:
            logger.info(f"Connected {len(self.attached_ports)} MIDI input device(s)")
        else:
            logger.info("No MIDI input devices found. Connect a USB MIDI device.")

        if background:
            self._running.set()
            self._last_hotplug_check = time.monotonic()
            self._input_thread = threading.Thread(target=self._input_loop, daemon=True, name="MIDIInputThread")
            self._input_thread.start()
            logger.debug("Started MIDI input thread")
        return True

    def stop(self) -> None:
        """Stop polling, route what is still queued and close every port."""
        if self._input_thread and self._input_thread.is_alive():
            logger.debug("Stopping MIDI input thread...")
            self._running.clear()
            self._input_thread.join(timeout=2.0)

            if self._input_thread.is_alive():
                logger.warning("Input thread did not stop gracefully")

        self._input_thread = None
        self._running.clear()

        remaining = self.process_pending_messages()
        if remaining > 0:
            logger.debug(f"Processed {remaining} remaining inputs on shutdown")

        for name in self.attached_ports:
            self.detach(name)

        logger.debug(f"MIDI router stopped. Stats: {self.get_stats()}")

    # Registry

    def attach(self, name: str) -> Optional[MidiInputPort]:
        """
        Open a hardware input port and route its messages.

        Returns:
            Registry entry, or None if the port could not be opened
        """
        with self._port_lock:
            entry = self._registry.get(name)
            if entry is not None and entry.attached:
                return entry

            try:
                port = self._open_input(name)
            except Exception as e:
                logger.error(f"Failed to open MIDI input '{name}': {e}")
                return None

            entry = MidiInputPort(name, port)
            self._registry[name] = entry

        logger.info(f"MIDI Input: {name}")
        return entry

    def detach(self, name: str) -> bool:
        """
        Stop routing a port and close it. The registry entry is kept.

        Returns:
            True if the port was attached
        """
        with self._port_lock:
            entry = self._registry.get(name)
            if entry is None or not entry.attached:
                return False

            entry.attached = False
            port, entry.port = entry.port, None

        try:
            if port is not None:
                port.close()
        except Exception as e:
            logger.error(f"Error closing MIDI input '{name}': {e}")

        logger.info(f"Detached MIDI input: {name}")
        return True

    # Routing (owning loop)

    def handle_message(
        self,
        port_name: str,
        message: RawMIDI,
        timestamp: Optional[float] = None,
    ) -> Optional[MIDIEvent]:
        """
        Route one raw message from a hardware port.

        Args:
            port_name: Hardware port the message arrived on
            message: mido message or raw bytes
            timestamp: Device time in ms when the message was read (defaults to now)

        Returns:
            The scheduled event, or None if the port is not attached
        """
        entry = self._registry.get(port_name)
        if entry is None or not entry.attached:
            self._ignored_messages += 1
            logger.debug(f"Ignoring MIDI from unattached port '{port_name}'")
            return None

        data = message.bytes() if isinstance(message, mido.Message) else list(message)

        if timestamp is None:
            timestamp = self._now_ms()
        # Never earlier than the previous event
        timestamp = max(timestamp, self._last_timestamp)
        self._last_timestamp = timestamp

        event = MIDIEvent(time=timestamp, port=self._logical_port, data=data)
        self._device.schedule_event(event)
        self._routed_messages += 1
        logger.debug(f"Routed MIDI {data} from '{port_name}' at {timestamp:.3f}ms")
        return event

    def on_port_state_change(self, name: str, state: str, port_type: str = "input") -> None:
        """
        Handle a hot-plug notification.

        Connected input ports are attached; disconnected ones stop routing.
        """
        logger.info(f"MIDI State Change: {name} - {state}")
        if port_type != "input":
            return

        if state == PORT_CONNECTED:
            if self.attach(name) is None:
                return
        elif state == PORT_DISCONNECTED:
            self.detach(name)
        else:
            logger.warning(f"Unknown MIDI port state '{state}' for '{name}'")
            return

        self._callbacks.dispatch(name, name, state)

    def process_pending_messages(self) -> int:
        """
        Route all queued input (call from the owning loop).

        Returns:
            Number of queued items handled
        """
        count = 0

        while True:
            try:
                kind, name, payload = self._queue.get_nowait()
            except queue.Empty:
                break

            try:
                if kind == "message":
                    message, timestamp = payload
                    self.handle_message(name, message, timestamp)
                else:
                    self.on_port_state_change(name, payload)
                count += 1
            except Exception as e:
                logger.exception(f"Error processing MIDI input from '{name}': {e}")

        return count

    # Polling (background thread)

    def poll_once(self, check_hotplug: bool = False) -> None:
        """
        Read pending input from every attached port and enqueue it.

        Args:
            check_hotplug: Diff the port enumeration now instead of on the interval
        """
        with self._port_lock:
            for entry in self._registry.values():
                if not entry.attached or entry.port is None:
                    continue
                # iter_pending() returns immediately with all available messages
                for msg in entry.port.iter_pending():
                    # Stamped on arrival, not when the owning loop drains the queue
                    self._enqueue(("message", entry.name, (msg, self._now_ms())))

        now = time.monotonic()
        if check_hotplug or now - self._last_hotplug_check >= self._hotplug_interval:
            self._last_hotplug_check = now
            self._check_hotplug()

    def _now_ms(self) -> float:
        return self._device.current_time * 1000.0

    def _check_hotplug(self) -> None:
        try:
            names = set(self._list_inputs())
        except Exception as e:
            logger.debug(f"Port enumeration failed: {e}")
            return

        for name in sorted(names - self._known_names):
            self._enqueue(("state", name, PORT_CONNECTED))
        for name in sorted(self._known_names - names):
            self._enqueue(("state", name, PORT_DISCONNECTED))
        self._known_names = names

    def _enqueue(self, item: tuple) -> None:
        try:
            self._queue.put_nowait(item)
        except queue.Full:
            self._dropped_messages += 1
            if self._dropped_messages % 100 == 0:
                logger.warning(f"Dropped {self._dropped_messages} MIDI inputs (queue full)")

    def _input_loop(self) -> None:
        logger.debug("MIDI input loop started")

        while self._running.is_set():
            try:
                self.poll_once()
            except Exception as e:
                logger.exception(f"Error in MIDI input loop: {e}")
            # iter_pending() is non-blocking, so we need this
            time.sleep(self._poll_interval)

        logger.debug("MIDI input loop stopped")

    def get_stats(self) -> dict[str, int]:
        """
        Get routing statistics.

        Returns:
            Dictionary with statistics
        """
        return {
            "routed": self._routed_messages,
            "ignored": self._ignored_messages,
            "dropped": self._dropped_messages,
            "queued": self._queue.qsize(),
            "attached": len(self.attached_ports),
        }

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - stop routing."""
        self.stop()
        return False
