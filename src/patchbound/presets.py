"""Preset selection: index -> opaque payload -> device."""

from typing import TYPE_CHECKING, Any, Iterable

from pydantic import BaseModel

from patchbound.device import Device
from patchbound.logging_config import get_logger

if TYPE_CHECKING:
    from patchbound.patcher import PatcherDescription

logger = get_logger(__name__)


class Preset(BaseModel):
    """Named preset; the payload is opaque to the control plane."""

    name: str
    preset: Any = None


class PresetApplier:
    """Applies the preset at a selection index."""

    def __init__(self, device: Device, presets: Iterable[Preset]):
        self._device = device
        self._presets = list(presets)

    @classmethod
    def from_patcher(cls, device: Device, patcher: "PatcherDescription") -> "PresetApplier":
        """Build from the presets listed in an export descriptor."""
        return cls(device, patcher.presets)

    @property
    def is_available(self) -> bool:
        """False means the selection surface is not offered."""
        return bool(self._presets)

    @property
    def names(self) -> list[str]:
        return [preset.name for preset in self._presets]

    def __len__(self) -> int:
        return len(self._presets)

    def apply(self, index: int) -> Preset:
        """
        Apply the preset at index.

        Raises:
            IndexError: If index is out of bounds
        """
        if not 0 <= index < len(self._presets):
            raise IndexError(f"Preset index {index} out of range (0-{len(self._presets) - 1})")

        preset = self._presets[index]
        self._device.set_preset(preset.preset)
        logger.info(f"Applied preset '{preset.name}'")
        return preset
