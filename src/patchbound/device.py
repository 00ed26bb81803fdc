"""
Device capability surface consumed by the control plane.

The audio-processing device itself (its runtime, audio graph and wire format)
is an external collaborator. This module defines the models exchanged with it
and the abstract interfaces a device binding and its audio output context must
implement.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

# Scheduling time meaning "as soon as possible" in the device's time base
TIME_NOW = 0.0

# Notification signatures
ParameterChangeCallback = Callable[[str, float], None]  # (parameter_id, value)
MessageEventCallback = Callable[[str, list[float]], None]  # (tag, payload)


class DeviceError(Exception):
    """Raised when the device rejects an operation (e.g. a malformed event)."""

    pass


class AudioContextError(DeviceError):
    """Raised when the audio output context cannot leave the suspended state."""

    pass


class Parameter(BaseModel):
    """
    A named, range-bounded, possibly quantized control value exposed by the device.

    ``steps`` is the number of discrete positions; 0 or 1 means continuous.
    """

    parameter_id: str
    name: str
    min_value: float = 0.0
    max_value: float = 1.0
    steps: int = Field(default=0, ge=0)
    value: float = 0.0

    @model_validator(mode="after")
    def validate_range(self):
        """Ensure min_value <= value <= max_value."""
        if self.min_value > self.max_value:
            raise ValueError(
                f"Parameter '{self.parameter_id}': min_value {self.min_value} > max_value {self.max_value}",
            )
        if not self.min_value <= self.value <= self.max_value:
            raise ValueError(
                f"Parameter '{self.parameter_id}': value {self.value} outside "
                f"[{self.min_value}, {self.max_value}]",
            )
        return self

    @property
    def is_discrete(self) -> bool:
        """True if the device quantizes this parameter to a fixed number of positions."""
        return self.steps > 1

    def quantize(self, value: float) -> float:
        """Snap value into range and, for discrete parameters, onto the nearest step."""
        value = max(self.min_value, min(value, self.max_value))
        if not self.is_discrete or self.max_value == self.min_value:
            return value
        step = (self.max_value - self.min_value) / (self.steps - 1)
        return self.min_value + round((value - self.min_value) / step) * step


class MessagePortType(str, Enum):
    """Direction of a declared message port."""

    INPORT = "inport"
    OUTPORT = "outport"


class MessagePort(BaseModel):
    """Declared message channel into or out of the device."""

    tag: str
    type: MessagePortType

    model_config = {"frozen": True}


class MessageEvent(BaseModel):
    """Scheduled message for an inport: tag plus numeric payload (NaN allowed)."""

    kind: Literal["message"] = "message"
    time: float = TIME_NOW  # Milliseconds in the device's time base
    tag: str
    payload: list[float] = Field(default_factory=list)


class MIDIEvent(BaseModel):
    """Scheduled raw MIDI message for a logical device MIDI port."""

    kind: Literal["midi"] = "midi"
    time: float  # Milliseconds in the device's time base
    port: int = Field(default=0, ge=0)
    data: list[int]

    @field_validator("data")
    @classmethod
    def validate_bytes(cls, v):
        """MIDI payload must be non-empty raw bytes."""
        if not v:
            raise ValueError("MIDI event data cannot be empty")
        if any(not 0 <= b <= 255 for b in v):
            raise ValueError(f"MIDI event data must be bytes (0-255), got {v}")
        return v


ScheduledEvent = Union[MessageEvent, MIDIEvent]


class Device(ABC):
    """
    Abstract device binding.

    Implementations wrap a concrete audio-processing runtime. All methods are
    called from the control plane's event loop thread; notification callbacks
    must be delivered on that same thread.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable device name."""
        pass

    @property
    @abstractmethod
    def parameters(self) -> list[Parameter]:
        """Ordered parameter enumeration (snapshot of definitions and values)."""
        pass

    @abstractmethod
    def get_parameter_value(self, parameter_id: str) -> float:
        """Read the device's authoritative value for a parameter."""
        pass

    @abstractmethod
    def set_parameter_value(self, parameter_id: str, value: float) -> None:
        """Write a parameter. The device may quantize and must notify the change."""
        pass

    @abstractmethod
    def subscribe_parameter_changes(self, callback: ParameterChangeCallback) -> None:
        """Deliver (parameter_id, value) for every change regardless of origin."""
        pass

    @abstractmethod
    def schedule_event(self, event: ScheduledEvent) -> None:
        """Submit an event to the device's time-stamped scheduling queue."""
        pass

    @abstractmethod
    def subscribe_message_events(self, callback: MessageEventCallback) -> None:
        """Deliver (tag, payload) for every device-emitted message."""
        pass

    @property
    @abstractmethod
    def message_ports(self) -> list[MessagePort]:
        """Declared message ports (discovered once at startup)."""
        pass

    @abstractmethod
    def set_preset(self, preset: Any) -> None:
        """Apply an opaque preset payload."""
        pass

    @property
    @abstractmethod
    def current_time(self) -> float:
        """Current playback clock in seconds. Also read from the MIDI input thread to stamp arrivals."""
        pass

    @property
    @abstractmethod
    def transport_running(self) -> bool:
        """Whether the device transport is running."""
        pass

    @abstractmethod
    def set_transport_running(self, running: bool) -> None:
        """Start or stop the device transport."""
        pass

    # Convenience accessors

    @property
    def inports(self) -> list[MessagePort]:
        """Declared inbound message ports."""
        return [port for port in self.message_ports if port.type == MessagePortType.INPORT]

    @property
    def outports(self) -> list[MessagePort]:
        """Declared outbound message ports."""
        return [port for port in self.message_ports if port.type == MessagePortType.OUTPORT]

    def get_parameter(self, parameter_id: str) -> Optional[Parameter]:
        """Find a parameter definition by id."""
        return next((p for p in self.parameters if p.parameter_id == parameter_id), None)


class AudioContextState(str, Enum):
    """Lifecycle state of the audio output context."""

    SUSPENDED = "suspended"
    RUNNING = "running"
    CLOSED = "closed"


class AudioContext(ABC):
    """
    Audio output context the device renders into.

    Starts suspended on most hosts until a user gesture resumes it.
    """

    @property
    @abstractmethod
    def state(self) -> AudioContextState:
        """Current context state."""
        pass

    @abstractmethod
    async def resume(self) -> None:
        """
        Resume the context.

        Raises:
            AudioContextError: If the context cannot be resumed
        """
        pass
