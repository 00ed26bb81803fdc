"""
Message-port bridge between free-text input, the device and an observer.

Inbound: text typed into a form becomes a numeric message scheduled on a
selected inport. Outbound: messages the device emits on declared outports are
forwarded to observers; anything else is discarded.
"""

import math
import re
from typing import Callable, Optional

from patchbound.callbacks import CallbackManager
from patchbound.device import TIME_NOW, Device, MessageEvent, MessagePort
from patchbound.logging_config import get_logger
from patchbound.utils import parse_float

logger = get_logger(__name__)

OutportCallback = Callable[[str, list[float]], None]  # (tag, payload)

_WHITESPACE = re.compile(r"\s+")


def parse_payload(text: str) -> list[float]:
    """
    Turn form text into a message payload.

    Device messages must be numbers, not text: the input is split on
    whitespace runs and every token parsed. Tokens that are not numbers become
    NaN; the submission is not rejected. Leading or trailing whitespace yields
    an empty token (and so a NaN) at that end.
    """
    return [parse_float(token) for token in _WHITESPACE.split(text)]


def format_payload(payload: list[float]) -> str:
    """Comma-separated payload for readouts ("1,2.5,NaN,-Infinity")."""
    return ",".join(_format_number(v) for v in payload)


def _format_number(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == int(value) and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


class MessagePortBridge:
    """
    Bidirectional bridge over the device's declared message ports.

    Ports are read once at construction; the port manifest is immutable
    afterwards.
    """

    def __init__(self, device: Device):
        """
        Initialize bridge.

        Args:
            device: Device whose message ports are bridged
        """
        self._device = device
        self._inports: list[MessagePort] = device.inports
        self._outports: list[MessagePort] = device.outports
        self._outport_tags = {port.tag for port in self._outports}
        self._selected: Optional[str] = self._inports[0].tag if self._inports else None
        self._callbacks = CallbackManager()
        self._attached = False
        self.readout = ""

    # Inbound

    @property
    def inports(self) -> list[MessagePort]:
        return list(self._inports)

    @property
    def has_inports(self) -> bool:
        """False means the input form is not offered."""
        return bool(self._inports)

    @property
    def selected_inport(self) -> Optional[str]:
        return self._selected

    def select_inport(self, tag: str) -> None:
        """
        Choose the inport later submissions go to.

        Raises:
            ValueError: If tag is not a declared inport
        """
        if tag not in {port.tag for port in self._inports}:
            raise ValueError(f"Unknown inport: {tag}")
        self._selected = tag

    def submit(self, text: str, tag: Optional[str] = None) -> MessageEvent:
        """
        Schedule the form text as a message event for "now".

        Scheduling errors from the device propagate to the caller.

        Args:
            text: Whitespace-separated numbers
            tag: Inport to target (defaults to the selected inport)

        Returns:
            The scheduled event

        Raises:
            ValueError: If no inports are declared or tag is unknown
        """
        if not self._inports:
            raise ValueError("Device declares no inports")
        if tag is not None:
            self.select_inport(tag)

        event = MessageEvent(time=TIME_NOW, tag=self._selected, payload=parse_payload(text))
        self._device.schedule_event(event)
        logger.debug(f"Sent {event.tag}: {format_payload(event.payload)}")
        return event

    # Outbound

    @property
    def outports(self) -> list[MessagePort]:
        return list(self._outports)

    @property
    def has_outports(self) -> bool:
        """False means the observer surface is not offered."""
        return bool(self._outports)

    def attach(self) -> bool:
        """
        Subscribe to the device's message stream.

        Returns:
            True if subscribed; False when no outports are declared
        """
        if not self._outports:
            logger.debug("No outports declared, not listening for device messages")
            return False
        if not self._attached:
            self._device.subscribe_message_events(self.on_device_message)
            self._attached = True
        return True

    def on_message(self, callback: OutportCallback, tag: Optional[str] = None) -> None:
        """Register an observer for outport messages (optionally one tag only)."""
        self._callbacks.register(callback, tag)

    def on_device_message(self, tag: str, payload: list[float]) -> bool:
        """
        Handle a device-emitted message.

        Returns:
            True if forwarded, False if the tag is not a declared outport
        """
        if tag not in self._outport_tags:
            return False

        self.readout = f"{tag}: {format_payload(payload)}"
        logger.info(self.readout)
        self._callbacks.dispatch(tag, tag, list(payload))
        return True
