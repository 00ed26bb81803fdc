"""
Bidirectional parameter synchronization.

The ParameterSyncEngine keeps slider/text bindings, the ParameterStore and the
device in agreement. Three sources feed it: slider gestures, text commits and
device notifications. Device notifications always win for the stored value;
only the slider's visual position is held back while the user drags it.
"""

import math
from typing import Callable, Optional

from patchbound.callbacks import CallbackManager
from patchbound.device import Parameter
from patchbound.logging_config import get_logger
from patchbound.parameters import ParameterStore
from patchbound.utils import clamp, parse_float
from patchbound.widgets import Binding, InteractionState

logger = get_logger(__name__)

# Callback signature: (binding) after its widgets were refreshed
RefreshCallback = Callable[[Binding], None]


class ParameterSyncEngine:
    """
    Two-way binding between visible parameters and their widgets.

    Interaction state is tracked per binding, so dragging one slider never
    suppresses updates of another.
    """

    def __init__(self, store: ParameterStore, precision: int = 1):
        """
        Initialize sync engine.

        Args:
            store: Parameter mirror shared with the transport
            precision: Decimal places for text display
        """
        self._store = store
        self._precision = precision
        self._bindings: dict[str, Binding] = {}
        self._callbacks = CallbackManager()

    @property
    def bindings(self) -> dict[str, Binding]:
        """Bindings keyed by parameter id, in bind order."""
        return dict(self._bindings)

    def get_binding(self, parameter_id: str) -> Optional[Binding]:
        return self._bindings.get(parameter_id)

    def bind(self, parameter_id: str, label: Optional[str] = None) -> Binding:
        """
        Create the binding for a mirrored parameter.

        Args:
            parameter_id: Parameter to expose
            label: Display label (defaults to the parameter name)

        Returns:
            The new binding

        Raises:
            ValueError: If the parameter is unknown or already bound
        """
        if parameter_id in self._bindings:
            raise ValueError(f"Parameter already bound: {parameter_id}")

        definition = self._store.get_definition(parameter_id)
        current = definition.model_copy(update={"value": self._store.value(parameter_id)})
        binding = Binding(current, label=label, precision=self._precision)
        self._bindings[parameter_id] = binding
        logger.debug(f"Bound parameter '{parameter_id}' as '{binding.label}' (step {binding.slider.step:g})")
        return binding

    def on_refresh(self, callback: RefreshCallback, parameter_id: Optional[str] = None) -> None:
        """Register a callback fired after a binding's widgets change."""
        self._callbacks.register(callback, parameter_id)

    # UI-originated events

    def on_user_drag(self, parameter_id: str) -> None:
        """Pointer down on the slider. No device write."""
        binding = self._require(parameter_id)
        binding.interaction = InteractionState.DRAGGING

    def on_user_slide(self, parameter_id: str, raw_value: float) -> None:
        """
        Slider moved (fires on every interaction tick).

        The value goes to the device unclamped; the slider's own range already
        constrains it.
        """
        binding = self._require(parameter_id)
        binding.slider.value = raw_value
        self._store.write(parameter_id, raw_value)

    def on_user_drag_end(self, parameter_id: str) -> None:
        """
        Pointer up on the slider.

        Re-reads the authoritative value so the widgets pick up any step
        rounding the device applied while the slider was held.
        """
        binding = self._require(parameter_id)
        binding.interaction = InteractionState.IDLE
        value = self._store.value(parameter_id)
        binding.slider.value = value
        binding.show_text(value)
        self._notify(binding)

    def on_user_text_commit(self, parameter_id: str, raw_text: str) -> None:
        """
        Text field committed (Enter).

        Unparseable text reverts the field without touching the device;
        otherwise the value is clamped to the parameter range and written.
        A write the device rejects also reverts the field.

        Raises:
            DeviceError: If the device rejects the write
        """
        binding = self._require(parameter_id)
        value = parse_float(raw_text)
        if math.isnan(value):
            logger.debug(f"Rejected text {raw_text!r} for '{parameter_id}', reverting to {binding.shadow_text}")
            binding.revert_text()
            self._notify(binding)
            return

        definition: Parameter = self._store.get_definition(parameter_id)
        value = clamp(value, definition.min_value, definition.max_value)
        try:
            self._store.write(parameter_id, value)
        except Exception:
            binding.revert_text()
            self._notify(binding)
            raise
        # Stored value already carries any rounding the device echoed back
        binding.show_text(self._store.value(parameter_id))
        self._notify(binding)

    # Device-originated events

    def on_device_notification(self, parameter_id: str, value: float) -> None:
        """
        Device reported a parameter change (any origin, including automation).

        The stored value is always updated. The text field always follows;
        the slider only follows while it is not being dragged.
        """
        if self._store.apply_notification(parameter_id, value) is None:
            return

        binding = self._bindings.get(parameter_id)
        if binding is None:
            return

        if not binding.is_dragging:
            binding.slider.value = value
        binding.show_text(value)
        self._notify(binding)

    def _require(self, parameter_id: str) -> Binding:
        binding = self._bindings.get(parameter_id)
        if binding is None:
            raise ValueError(f"Parameter not bound: {parameter_id}")
        return binding

    def _notify(self, binding: Binding) -> None:
        self._callbacks.dispatch(binding.parameter_id, binding)
