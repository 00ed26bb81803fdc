"""
Patchbound: live control plane for real-time audio devices

Keeps sliders, text fields, transport buttons and hardware MIDI input in sync
with a running audio-processing device: parameter values are mirrored both
ways, transport commands become ordered parameter writes, and MIDI and form
messages are scheduled on the device's event queue.
"""

__version__ = "0.1.0"

# Main API
# Configuration models
from .config import (
    ConfigurationError,
    LoopConfig,
    MIDIConfig,
    SurfaceConfig,
)

# Device capability surface
from .device import (
    TIME_NOW,
    AudioContext,
    AudioContextError,
    AudioContextState,
    Device,
    DeviceError,
    MessageEvent,
    MessagePort,
    MessagePortType,
    MIDIEvent,
    Parameter,
)

# Logging configuration
from .logging_config import (
    get_logger,
    set_module_level,
    setup_logging,
)

# Components
from .message_bridge import MessagePortBridge
from .midi_router import MidiRouter
from .parameters import ParameterState, ParameterStore
from .patcher import PatcherDescription, load_patcher
from .presets import Preset, PresetApplier
from .simulated import SimulatedAudioContext, SimulatedDevice
from .surface import ControlSurface
from .sync import ParameterSyncEngine
from .transport import TransportSnapshot, TransportState, TransportStateMachine
from .widgets import Binding, InteractionState

__all__ = [
    # Version
    "__version__",
    # Main API
    "ControlSurface",
    # Configuration models
    "SurfaceConfig",
    "LoopConfig",
    "MIDIConfig",
    # Device capability surface
    "Device",
    "AudioContext",
    "AudioContextState",
    "Parameter",
    "MessagePort",
    "MessagePortType",
    "MessageEvent",
    "MIDIEvent",
    "TIME_NOW",
    # Components
    "ParameterStore",
    "ParameterState",
    "ParameterSyncEngine",
    "Binding",
    "InteractionState",
    "TransportStateMachine",
    "TransportState",
    "TransportSnapshot",
    "MidiRouter",
    "MessagePortBridge",
    "PresetApplier",
    "Preset",
    "PatcherDescription",
    "load_patcher",
    # Reference device
    "SimulatedDevice",
    "SimulatedAudioContext",
    # Logging configuration
    "setup_logging",
    "get_logger",
    "set_module_level",
    # Exceptions
    "ConfigurationError",
    "DeviceError",
    "AudioContextError",
]
