"""
In-memory reference device.

Reference implementation of the device capability surface demonstrating:
- Parameter quantization for discrete parameters
- Change notifications for every write, whatever its origin
- Inport validation on scheduled message events
- Outport emission for device-originated messages

Used by the demo and the test suite; a real runtime binding implements the
same Device / AudioContext interfaces.
"""

import asyncio
import time
from typing import Any, Callable, Iterable, Optional

from patchbound.callbacks import CallbackManager
from patchbound.device import (
    AudioContext,
    AudioContextError,
    AudioContextState,
    Device,
    DeviceError,
    MessageEvent,
    MessageEventCallback,
    MessagePort,
    MessagePortType,
    MIDIEvent,
    Parameter,
    ParameterChangeCallback,
    ScheduledEvent,
)
from patchbound.logging_config import get_logger

logger = get_logger(__name__)

_PARAMETER_TOPIC = "parameter"
_MESSAGE_TOPIC = "message"


class SimulatedDevice(Device):
    """
    Simulated device with:
    - Parameters enumerated once at construction
    - A write log of parameter and transport writes, in order
    - A list of every scheduled event
    """

    def __init__(
        self,
        parameters: Iterable[Parameter],
        message_ports: Optional[Iterable[MessagePort]] = None,
        name: str = "Simulated Device",
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize simulated device.

        Args:
            parameters: Parameter definitions with initial values
            message_ports: Declared inports/outports
            name: Device name
            clock: Seconds clock (defaults to time.monotonic)
        """
        self._name = name
        self._definitions: dict[str, Parameter] = {p.parameter_id: p.model_copy() for p in parameters}
        self._values: dict[str, float] = {pid: p.value for pid, p in self._definitions.items()}
        self._ports = list(message_ports or [])
        self._clock = clock or time.monotonic
        self._start_time = self._clock()
        self._transport_running = False
        self._callbacks = CallbackManager()

        # Recorded activity
        self.writes: list[tuple] = []  # ("parameter", id, value) or ("transport", running)
        self.scheduled_events: list[ScheduledEvent] = []
        self.applied_presets: list[Any] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def parameters(self) -> list[Parameter]:
        return [
            definition.model_copy(update={"value": self._values[pid]})
            for pid, definition in self._definitions.items()
        ]

    def get_parameter_value(self, parameter_id: str) -> float:
        self._require(parameter_id)
        return self._values[parameter_id]

    def set_parameter_value(self, parameter_id: str, value: float) -> None:
        definition = self._require(parameter_id)
        quantized = definition.quantize(value)
        self.writes.append(("parameter", parameter_id, quantized))
        self._apply(parameter_id, quantized)

    def automate(self, parameter_id: str, value: float) -> None:
        """Change a parameter from inside the device (e.g. envelope automation)."""
        definition = self._require(parameter_id)
        self._apply(parameter_id, definition.quantize(value))

    def subscribe_parameter_changes(self, callback: ParameterChangeCallback) -> None:
        self._callbacks.register(callback, _PARAMETER_TOPIC)

    def schedule_event(self, event: ScheduledEvent) -> None:
        if isinstance(event, MessageEvent):
            if event.tag not in {port.tag for port in self.inports}:
                raise DeviceError(f"No inport with tag '{event.tag}'")
        elif not isinstance(event, MIDIEvent):
            raise DeviceError(f"Unsupported event type: {type(event).__name__}")

        self.scheduled_events.append(event)
        logger.debug(f"Scheduled {event.kind} event at {event.time:.3f}ms")

    def subscribe_message_events(self, callback: MessageEventCallback) -> None:
        self._callbacks.register(callback, _MESSAGE_TOPIC)

    def emit_message(self, tag: str, payload: Iterable[float]) -> None:
        """Emit a device-originated message event (any tag, declared or not)."""
        self._callbacks.dispatch(_MESSAGE_TOPIC, tag, list(payload))

    @property
    def message_ports(self) -> list[MessagePort]:
        return list(self._ports)

    def set_preset(self, preset: Any) -> None:
        """
        Apply preset.

        Mapping payloads set every known parameter they name; entries may be
        plain numbers or ``{"value": number}``.
        """
        self.applied_presets.append(preset)
        if not isinstance(preset, dict):
            return
        for parameter_id, entry in preset.items():
            if parameter_id not in self._definitions:
                continue
            value = entry.get("value") if isinstance(entry, dict) else entry
            if isinstance(value, (int, float)):
                self.automate(parameter_id, float(value))

    @property
    def current_time(self) -> float:
        return self._clock() - self._start_time

    @property
    def transport_running(self) -> bool:
        return self._transport_running

    def set_transport_running(self, running: bool) -> None:
        self.writes.append(("transport", running))
        self._transport_running = running

    def _require(self, parameter_id: str) -> Parameter:
        definition = self._definitions.get(parameter_id)
        if definition is None:
            raise DeviceError(f"Unknown parameter: {parameter_id}")
        return definition

    def _apply(self, parameter_id: str, value: float) -> None:
        self._values[parameter_id] = value
        self._callbacks.dispatch(_PARAMETER_TOPIC, parameter_id, value)


class SimulatedAudioContext(AudioContext):
    """Audio context that starts suspended and resumes after an optional delay."""

    def __init__(self, resume_delay: float = 0.0, fail_resume: bool = False):
        self._state = AudioContextState.SUSPENDED
        self.resume_delay = resume_delay
        self.fail_resume = fail_resume
        self.resume_calls = 0

    @property
    def state(self) -> AudioContextState:
        return self._state

    async def resume(self) -> None:
        self.resume_calls += 1
        if self.resume_delay > 0:
            await asyncio.sleep(self.resume_delay)
        if self.fail_resume:
            raise AudioContextError("Audio context refused to resume")
        self._state = AudioContextState.RUNNING

    def suspend(self) -> None:
        """Put the context back into the suspended state."""
        self._state = AudioContextState.SUSPENDED


def demo_device(clock: Optional[Callable[[], float]] = None) -> SimulatedDevice:
    """Device with the parameter and port layout of the bundled demo patch."""
    return SimulatedDevice(
        parameters=[
            Parameter(parameter_id="cut_off", name="cut_off", min_value=20.0, max_value=20000.0, value=1000.0),
            Parameter(parameter_id="res", name="res", min_value=0.0, max_value=1.0, value=0.2),
            Parameter(parameter_id="verb_send", name="verb_send", min_value=0.0, max_value=100.0, steps=101, value=10.0),
            Parameter(parameter_id="loop_select", name="loop_select", min_value=0.0, max_value=4.0, steps=5, value=0.0),
            Parameter(parameter_id="env/attack", name="attack", min_value=0.0, max_value=2000.0, value=10.0),
        ],
        message_ports=[
            MessagePort(tag="in1", type=MessagePortType.INPORT),
            MessagePort(tag="out1", type=MessagePortType.OUTPORT),
        ],
        name="GS1.4",
        clock=clock,
    )
