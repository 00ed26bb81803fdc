"""
Display-side models for parameter bindings.

A binding pairs a continuous slider and a numeric text field with one device
parameter. Rendering toolkits observe these models; the models themselves
only hold what each widget currently shows.
"""

from enum import Enum
from typing import Optional

from patchbound.device import Parameter
from patchbound.utils import clamp, format_value


class InteractionState(str, Enum):
    """Per-binding pointer state of the slider."""

    IDLE = "idle"
    DRAGGING = "dragging"  # Device notifications must not move the slider


def slider_step(parameter: Parameter) -> float:
    """
    Slider granularity for a parameter.

    Discrete parameters get one slider step per device position; continuous
    ones get a thousand steps across the range.
    """
    span = parameter.max_value - parameter.min_value
    if parameter.steps > 1:
        return span / (parameter.steps - 1)
    return span / 1000.0


class SliderWidget:
    """Continuous display: a range-bounded slider position."""

    def __init__(self, min_value: float, max_value: float, step: float, value: float):
        self.min_value = min_value
        self.max_value = max_value
        self.step = step
        self._value = clamp(value, min_value, max_value)

    @property
    def value(self) -> float:
        return self._value

    @value.setter
    def value(self, new_value: float) -> None:
        # A slider cannot show a position outside its own range
        self._value = clamp(new_value, self.min_value, self.max_value)

    def __repr__(self) -> str:
        return f"SliderWidget(value={self._value}, range=[{self.min_value}, {self.max_value}])"


class TextWidget:
    """Numeric text field."""

    def __init__(self, text: str = ""):
        self.text = text

    def __repr__(self) -> str:
        return f"TextWidget(text={self.text!r})"


class Binding:
    """
    Slider + text field bound to one parameter.

    ``shadow_text`` is the last known-good text, restored when the user
    commits text that does not parse.
    """

    def __init__(self, parameter: Parameter, label: Optional[str] = None, precision: int = 1):
        self.parameter_id = parameter.parameter_id
        self.label = label or parameter.name
        self.precision = precision
        self.slider = SliderWidget(
            parameter.min_value,
            parameter.max_value,
            slider_step(parameter),
            parameter.value,
        )
        self.text = TextWidget()
        self.shadow_text = ""
        self.interaction = InteractionState.IDLE
        self.show_text(parameter.value)

    @property
    def is_dragging(self) -> bool:
        return self.interaction == InteractionState.DRAGGING

    def show_text(self, value: float) -> None:
        """Display value in the text field and remember it as known-good."""
        self.shadow_text = format_value(value, self.precision)
        self.text.text = self.shadow_text

    def revert_text(self) -> None:
        """Restore the last known-good text."""
        self.text.text = self.shadow_text

    def __repr__(self) -> str:
        return (
            f"Binding({self.parameter_id!r}, slider={self.slider.value}, "
            f"text={self.text.text!r}, {self.interaction.value})"
        )
