"""
Parameter mirror for a device.

This module provides the ParameterStore, the single source of truth for what
the UI should currently show for each device parameter, with a bounded change
history.
"""

import threading
from collections import deque
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from patchbound.device import Device, Parameter
from patchbound.logging_config import get_logger

logger = get_logger(__name__)

ValueSource = Literal["initial", "ui", "device"]


class ParameterState(BaseModel):
    """
    Immutable snapshot of a mirrored parameter value.

    ``source`` records who produced the value: the initial enumeration, a
    UI-side write, or a device notification.
    """

    parameter_id: str
    value: float
    source: ValueSource = "initial"
    timestamp: datetime = Field(default_factory=datetime.now)

    model_config = {"frozen": True}


class ParameterStore:
    """
    Read/write mirror of every device parameter keyed by identifier.

    Writes from the UI side go to the device and the mirror; notifications
    from the device are authoritative for the stored value. The control plane
    drives the store from a single thread; the lock only protects snapshot
    reads from auxiliary threads (debug broadcaster).
    """

    def __init__(self, device: Device):
        """
        Initialize parameter store.

        Args:
            device: Device that receives parameter writes
        """
        self._device = device
        self._definitions: dict[str, Parameter] = {}
        self._states: dict[str, ParameterState] = {}
        self._lock = threading.RLock()

        # History tracking (last 1000 changes)
        self._history: deque[ParameterState] = deque(maxlen=1000)

    @classmethod
    def from_device(cls, device: Device) -> "ParameterStore":
        """Create a store mirroring every parameter the device enumerates."""
        store = cls(device)
        for parameter in device.parameters:
            store.register(parameter)
        logger.debug(f"Mirrored {len(store)} parameters from {device.name}")
        return store

    def register(self, parameter: Parameter) -> None:
        """
        Register a parameter (called once at device-ready time).

        Args:
            parameter: Parameter definition with its current value
        """
        with self._lock:
            self._definitions[parameter.parameter_id] = parameter
            self._states[parameter.parameter_id] = ParameterState(
                parameter_id=parameter.parameter_id,
                value=parameter.value,
            )

    def __contains__(self, parameter_id: str) -> bool:
        with self._lock:
            return parameter_id in self._definitions

    def __len__(self) -> int:
        with self._lock:
            return len(self._definitions)

    def ids(self) -> list[str]:
        """Parameter ids in device enumeration order."""
        with self._lock:
            return list(self._definitions)

    def get_definition(self, parameter_id: str) -> Parameter:
        """
        Get parameter definition by id.

        Raises:
            ValueError: If parameter_id not found
        """
        with self._lock:
            definition = self._definitions.get(parameter_id)
            if definition is None:
                raise ValueError(f"Unknown parameter: {parameter_id}")
            return definition

    def get_state(self, parameter_id: str) -> Optional[ParameterState]:
        """Get current state, or None if the parameter is not mirrored."""
        with self._lock:
            return self._states.get(parameter_id)

    def value(self, parameter_id: str) -> float:
        """
        Get the stored value.

        Raises:
            ValueError: If parameter_id not found
        """
        with self._lock:
            state = self._states.get(parameter_id)
            if state is None:
                raise ValueError(f"Unknown parameter: {parameter_id}")
            return state.value

    def write(self, parameter_id: str, value: float) -> ParameterState:
        """
        Write a value to the device and record it in the mirror.

        The device may quantize the value and echo a notification; the echo
        overwrites the recorded value through apply_notification(). If the
        device rejects the write, the mirror is left as it was.

        Raises:
            ValueError: If parameter_id not found
            DeviceError: If the device rejects the write
        """
        self.get_definition(parameter_id)
        previous = self.get_state(parameter_id)
        state = self._record(parameter_id, value, "ui")
        try:
            self._device.set_parameter_value(parameter_id, value)
        except Exception:
            with self._lock:
                # Only roll back if no notification replaced the "ui" record meanwhile
                if self._states.get(parameter_id) is state:
                    self._states[parameter_id] = previous
                    if self._history and self._history[-1] is state:
                        self._history.pop()
            logger.warning(f"Device rejected write of {value} to '{parameter_id}', mirror unchanged")
            raise
        return self.get_state(parameter_id)

    def apply_notification(self, parameter_id: str, value: float) -> Optional[ParameterState]:
        """
        Record a device-originated change.

        Returns:
            New state, or None if the device reported a parameter that was never enumerated
        """
        if parameter_id not in self:
            logger.debug(f"Ignoring notification for unknown parameter: {parameter_id}")
            return None
        return self._record(parameter_id, value, "device")

    def get_all_states(self) -> dict[str, ParameterState]:
        """Get all parameter states keyed by id."""
        with self._lock:
            return dict(self._states)

    def get_all_definitions(self) -> dict[str, Parameter]:
        """Get all parameter definitions keyed by id."""
        with self._lock:
            return dict(self._definitions)

    def get_history(self, limit: Optional[int] = None) -> list[ParameterState]:
        """
        Get change history.

        Args:
            limit: Maximum number of entries to return (None for all)

        Returns:
            States, most recent last
        """
        with self._lock:
            history_list = list(self._history)
            if limit:
                return history_list[-limit:]
            return history_list

    def clear_history(self) -> None:
        """Clear change history."""
        with self._lock:
            self._history.clear()

    def _record(self, parameter_id: str, value: float, source: ValueSource) -> ParameterState:
        state = ParameterState(parameter_id=parameter_id, value=value, source=source)
        with self._lock:
            self._states[parameter_id] = state
            self._history.append(state)
        return state
