"""
Main ControlSurface API - User-facing interface for patchbound.

This module provides the ControlSurface class that wires a device to the
parameter mirror, slider/text bindings, transport, MIDI router, message-port
bridge and preset selection, and exposes them as one object.
"""

from typing import Iterable, Optional

from patchbound.config import ConfigurationError, SurfaceConfig
from patchbound.debug.server import StateBroadcaster
from patchbound.device import AudioContext, AudioContextError, AudioContextState, Device, MessageEvent
from patchbound.logging_config import get_logger
from patchbound.message_bridge import MessagePortBridge
from patchbound.midi_router import MidiRouter
from patchbound.parameters import ParameterStore
from patchbound.patcher import PatcherDescription
from patchbound.presets import Preset, PresetApplier
from patchbound.sync import ParameterSyncEngine
from patchbound.transport import TransportSnapshot, TransportStateMachine

logger = get_logger(__name__)


class ControlSurface:
    """
    Live control plane for one device.

    Provides:
    - Parameter mirror and slider/text bindings for the visible parameters
    - Transport with loop selection (when the device has a loop parameter)
    - Hardware MIDI routing with hot-plug
    - Inport form submission and outport observation
    - Preset selection
    """

    def __init__(
        self,
        device: Device,
        context: AudioContext,
        config: Optional[SurfaceConfig] = None,
        presets: Optional[Iterable[Preset]] = None,
        patcher: Optional[PatcherDescription] = None,
        strict_mode: bool = False,
        midi_router: Optional[MidiRouter] = None,
        debug_server: bool = False,
        debug_host: str = "127.0.0.1",
        debug_port: int = 8765,
    ):
        """
        Initialize control surface.

        Args:
            device: Device binding
            context: Audio output context the device renders into
            config: Surface configuration (defaults to SurfaceConfig())
            presets: Presets offered for selection (defaults to the patcher's presets)
            patcher: Export descriptor used for the title and presets
                     (rejected with ConfigurationError if built by a development runtime)
            strict_mode: If True, raise ConfigurationError when the config names
                        parameters the device lacks. If False, log warnings instead.
            midi_router: Pre-built router (built from config.midi if None)
            debug_server: If True, start a WebSocket server for state debugging
            debug_host: Host for the debug WebSocket server
            debug_port: Port for the debug WebSocket server
        """
        self._device = device
        self._context = context
        self._config = config or SurfaceConfig()
        self._patcher = patcher
        self._strict_mode = strict_mode
        self._connected = False
        self._subscribed = False

        if patcher is not None:
            patcher.check_runtime_version()
        # None means "whatever the patcher lists"
        self._preset_list = list(presets) if presets is not None else None

        # Components (initialized on connect)
        self._store: Optional[ParameterStore] = None
        self._sync: Optional[ParameterSyncEngine] = None
        self._transport: Optional[TransportStateMachine] = None
        self._bridge: Optional[MessagePortBridge] = None
        self._presets: Optional[PresetApplier] = None
        self._midi: Optional[MidiRouter] = midi_router

        # Debug server (optional)
        self._debug_server_enabled = debug_server
        self._debug_host = debug_host
        self._debug_port = debug_port
        self._broadcaster: Optional[StateBroadcaster] = None

    # Properties

    @property
    def config(self) -> SurfaceConfig:
        return self._config

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def title(self) -> str:
        """Patcher title if known, else the device name."""
        return self._patcher.title if self._patcher else self._device.name

    @property
    def store(self) -> ParameterStore:
        self._ensure_connected()
        return self._store

    @property
    def sync(self) -> ParameterSyncEngine:
        self._ensure_connected()
        return self._sync

    @property
    def transport(self) -> Optional[TransportStateMachine]:
        """Transport, or None if the device has no loop-selection parameter."""
        return self._transport

    @property
    def bridge(self) -> MessagePortBridge:
        self._ensure_connected()
        return self._bridge

    @property
    def presets(self) -> PresetApplier:
        self._ensure_connected()
        return self._presets

    @property
    def midi(self) -> Optional[MidiRouter]:
        return self._midi

    @property
    def debug_url(self) -> Optional[str]:
        """Get WebSocket URL for debug client connection."""
        if self._broadcaster and self._broadcaster.is_running:
            return f"ws://{self._broadcaster.host}:{self._broadcaster.port}"
        return None

    # Lifecycle

    def connect(self) -> None:
        """
        Mirror the device and build every component.

        Raises:
            ConfigurationError: If strict_mode and the config names missing parameters
        """
        if self._connected:
            logger.warning("Already connected")
            return

        logger.info(f"Connecting control surface to {self.title}")
        self._store = ParameterStore.from_device(self._device)
        self._build_bindings()
        self._build_transport()

        # Device subscriptions cannot be undone, so the bridge outlives disconnect()
        if self._bridge is None:
            self._bridge = MessagePortBridge(self._device)
            if self._bridge.attach():
                self._bridge.on_message(self._on_outport_message)
            if not self._bridge.has_inports:
                logger.debug("No inports declared, message form not offered")

        if self._preset_list is None and self._patcher is not None:
            self._presets = PresetApplier.from_patcher(self._device, self._patcher)
        else:
            self._presets = PresetApplier(self._device, self._preset_list or [])
        if not self._presets.is_available:
            logger.debug("No presets, preset selection not offered")

        if not self._subscribed:
            self._device.subscribe_parameter_changes(self._on_parameter_change)
            self._subscribed = True

        if self._config.midi.enabled:
            if self._midi is None:
                midi_config = self._config.midi
                self._midi = MidiRouter(
                    self._device,
                    logical_port=midi_config.logical_port,
                    poll_interval=midi_config.poll_interval,
                    hotplug_interval=midi_config.hotplug_interval,
                    queue_size=midi_config.queue_size,
                )
            self._midi.start()

        self._connected = True

        if self._debug_server_enabled:
            self._start_debug_server()

        logger.info(
            f"Connected to {self._device.name} "
            f"({len(self._sync.bindings)} bindings, "
            f"transport: {'yes' if self._transport else 'no'}, "
            f"MIDI: {'yes' if self._midi and self._midi.is_available else 'no'})",
        )

    def disconnect(self) -> None:
        """Stop MIDI routing and the debug server."""
        if not self._connected:
            return

        if self._midi:
            self._midi.stop()

        if self._broadcaster:
            self._broadcaster.stop()
            self._broadcaster = None
            logger.info("Debug server stopped")

        self._connected = False
        logger.info("Control surface disconnected")

    # Transport

    async def play(self) -> TransportSnapshot:
        """
        Play the last remembered loop.

        Raises:
            AudioContextError: If the audio context cannot be resumed
        """
        return await self._require_transport().play()

    def stop(self) -> TransportSnapshot:
        return self._require_transport().stop()

    async def select_loop(self, value: int) -> TransportSnapshot:
        """
        Select and play a loop.

        Raises:
            ValueError: If value <= 0
            AudioContextError: If the audio context cannot be resumed
        """
        return await self._require_transport().select_loop(value)

    async def unlock_audio(self) -> bool:
        """
        Resume a suspended audio context (first user gesture).

        Returns:
            True if the context is running afterwards
        """
        if self._context.state != AudioContextState.SUSPENDED:
            return self._context.state == AudioContextState.RUNNING
        try:
            await self._context.resume()
        except AudioContextError as e:
            logger.error(f"Could not unlock audio: {e}")
            return False
        return True

    # Messages and presets

    def submit_message(self, text: str, tag: Optional[str] = None) -> Optional[MessageEvent]:
        """
        Submit the message form.

        A failing submission is logged and dropped; session state is untouched.

        Returns:
            The scheduled event, or None if the submission failed
        """
        self._ensure_connected()
        try:
            return self._bridge.submit(text, tag)
        except Exception as e:
            logger.exception(f"Message submission failed: {e}")
            return None

    def apply_preset(self, index: int) -> Preset:
        """
        Apply the preset at index.

        Raises:
            IndexError: If index is out of bounds
        """
        self._ensure_connected()
        return self._presets.apply(index)

    # Processing

    def process_events(self) -> int:
        """
        Route pending hardware MIDI input.

        Call this regularly from the owning loop.

        Returns:
            Number of inputs processed
        """
        if not self._midi:
            return 0
        return self._midi.process_pending_messages()

    # Context manager support

    def __enter__(self):
        """Context manager entry."""
        if not self._connected:
            self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - disconnect."""
        self.disconnect()
        return False

    # Internal methods

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise RuntimeError("Control surface not connected. Call connect() first.")

    def _require_transport(self) -> TransportStateMachine:
        self._ensure_connected()
        if self._transport is None:
            raise RuntimeError(f"Device has no '{self._config.loop_parameter}' parameter, transport unavailable")
        return self._transport

    def _handle_config_mismatch(self, message: str) -> None:
        if self._strict_mode:
            raise ConfigurationError(message)
        logger.warning(message)

    def _build_bindings(self) -> None:
        self._sync = ParameterSyncEngine(self._store, precision=self._config.text_precision)

        missing = [pid for pid in self._config.visible_parameters if pid not in self._store]
        if missing:
            self._handle_config_mismatch(f"Device has no parameters named {missing}")

        # Device enumeration order, filtered to the configured subset
        visible = set(self._config.visible_parameters)
        for parameter_id in self._store.ids():
            if parameter_id not in visible:
                continue
            definition = self._store.get_definition(parameter_id)
            self._sync.bind(parameter_id, label=self._config.display_name(parameter_id, definition.name))

    def _build_transport(self) -> None:
        loop_parameter = self._config.loop_parameter
        if loop_parameter not in self._store:
            self._transport = None
            self._handle_config_mismatch(f"Device has no '{loop_parameter}' parameter, transport not offered")
            return

        self._transport = TransportStateMachine(
            self._store,
            self._device,
            self._context,
            loop_parameter=loop_parameter,
            initial_loop=self._config.initial_loop,
        )
        self._transport.on_change(self._on_transport_change)

    def _start_debug_server(self) -> None:
        self._broadcaster = StateBroadcaster(host=self._debug_host, port=self._debug_port)
        self._broadcaster.start()
        self._broadcaster.set_full_state(
            device_name=self._device.name,
            title=self.title,
            states=self._store.get_all_states(),
            definitions=self._store.get_all_definitions(),
            visible=list(self._sync.bindings),
            labels={pid: binding.label for pid, binding in self._sync.bindings.items()},
            transport=self._transport.snapshot if self._transport else None,
        )
        logger.info(f"Debug server started at ws://{self._debug_host}:{self._debug_port}")

    def _on_parameter_change(self, parameter_id: str, value: float) -> None:
        if not self._connected:
            return
        self._sync.on_device_notification(parameter_id, value)
        if self._broadcaster:
            state = self._store.get_state(parameter_id)
            if state is not None:
                self._broadcaster.broadcast_parameter_change(state)

    def _on_transport_change(self, snapshot: TransportSnapshot) -> None:
        logger.debug(f"Transport highlight: {snapshot.state.value}, loop {snapshot.loop}")
        if self._broadcaster:
            self._broadcaster.broadcast_transport_change(snapshot)

    def _on_outport_message(self, tag: str, payload: list[float]) -> None:
        if self._broadcaster:
            self._broadcaster.broadcast_outport(tag, payload)
