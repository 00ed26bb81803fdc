"""
Pydantic configuration models for a control surface.

This module provides type-safe configuration for which device parameters are
exposed as sliders, how the transport's loop selector is laid out, and how
hardware MIDI input is polled.
"""

from pydantic import BaseModel, Field, field_validator

from .logging_config import get_logger

logger = get_logger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or conflicts with the device."""

    pass


class LoopConfig(BaseModel):
    """One entry of the loop selector (e.g. a "LOOP 1" button)."""

    name: str
    value: int = Field(gt=0)  # 0 is reserved for "stopped"


class MIDIConfig(BaseModel):
    """
    Hardware MIDI input settings.

    All hardware ports are coalesced onto a single logical device port.
    """

    enabled: bool = True
    logical_port: int = Field(default=0, ge=0)
    poll_interval: float = Field(default=0.001, gt=0.0)  # Seconds between iter_pending() sweeps
    hotplug_interval: float = Field(default=1.0, gt=0.0)  # Seconds between port enumeration diffs
    queue_size: int = Field(default=1000, ge=1)


def _default_loops() -> list[LoopConfig]:
    return [LoopConfig(name=f"LOOP {i}", value=i) for i in range(1, 5)]


class SurfaceConfig(BaseModel):
    """
    Root configuration for a control surface.

    Attributes:
        visible_parameters: Parameter ids shown as slider/text bindings
        display_names: Optional label overrides keyed by parameter id
        loop_parameter: Device parameter carrying the loop selection (0 = stopped)
        loops: Loop selector entries; the first one is the initial loop for play()
        text_precision: Decimal places used for text display
        midi: Hardware MIDI input settings
    """

    visible_parameters: list[str] = Field(default_factory=lambda: ["cut_off", "res", "verb_send"])
    display_names: dict[str, str] = Field(
        default_factory=lambda: {"cut_off": "CUTOFF", "res": "RESONANCE", "verb_send": "REVERB"},
    )
    loop_parameter: str = "loop_select"
    loops: list[LoopConfig] = Field(default_factory=_default_loops)
    text_precision: int = Field(default=1, ge=0)
    midi: MIDIConfig = Field(default_factory=MIDIConfig)

    @field_validator("visible_parameters")
    @classmethod
    def validate_unique_parameters(cls, v):
        """Each parameter gets exactly one binding."""
        duplicates = sorted({p for p in v if v.count(p) > 1})
        if duplicates:
            raise ValueError(f"Duplicate visible parameters: {duplicates}")
        return v

    @field_validator("loops")
    @classmethod
    def validate_loops(cls, v):
        """Loop selector needs at least one entry and distinct values."""
        if not v:
            raise ValueError("loops cannot be empty")
        values = [loop.value for loop in v]
        if len(set(values)) != len(values):
            raise ValueError(f"Loop values must be unique, got {values}")
        return v

    @property
    def initial_loop(self) -> int:
        """Loop value play() starts before any loop has been selected."""
        return self.loops[0].value

    def display_name(self, parameter_id: str, fallback: str) -> str:
        """Label for a parameter, falling back to the device's own name."""
        return self.display_names.get(parameter_id, fallback)
