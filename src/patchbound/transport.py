"""
Transport and loop-selection state machine.

Play/stop/loop commands become a loop-selection parameter write plus a
transport running-flag write, always in a fixed order, followed by a change
notification for UI highlighting.
"""

from enum import Enum
from typing import Callable

from pydantic import BaseModel, Field

from patchbound.callbacks import CallbackManager
from patchbound.device import AudioContext, AudioContextError, Device
from patchbound.logging_config import get_logger
from patchbound.parameters import ParameterStore

logger = get_logger(__name__)

_TOPIC = "transport"


class TransportState(str, Enum):
    """Transport states."""

    STOPPED = "stopped"
    PLAYING = "playing"


class TransportSnapshot(BaseModel):
    """
    Immutable view of the transport.

    ``loop`` is the value written to the loop-selection parameter (0 while
    stopped); ``last_loop`` is the loop play() resumes.
    """

    state: TransportState
    loop: int = Field(ge=0)
    last_loop: int = Field(gt=0)
    running: bool

    model_config = {"frozen": True}


TransportCallback = Callable[[TransportSnapshot], None]


class TransportStateMachine:
    """
    Serializes play/stop/loop commands into device writes.

    The loop selection is session state: device notifications for the loop
    parameter never change ``last_loop``.
    """

    def __init__(
        self,
        store: ParameterStore,
        device: Device,
        context: AudioContext,
        loop_parameter: str = "loop_select",
        initial_loop: int = 1,
    ):
        """
        Initialize transport.

        Args:
            store: Parameter mirror the loop selection is written through
            device: Device whose transport flag is driven
            context: Audio output context resumed before playing
            loop_parameter: Id of the loop-selection parameter
            initial_loop: Loop played before any loop has been selected

        Raises:
            ValueError: If loop_parameter is unknown or initial_loop <= 0
        """
        if initial_loop <= 0:
            raise ValueError(f"initial_loop must be > 0, got {initial_loop}")
        store.get_definition(loop_parameter)

        self._store = store
        self._device = device
        self._context = context
        self._loop_parameter = loop_parameter
        self._state = TransportState.STOPPED
        self._loop = 0
        self._last_loop = initial_loop
        self._running = False
        self._callbacks = CallbackManager()

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def last_loop(self) -> int:
        return self._last_loop

    @property
    def loop_parameter(self) -> str:
        return self._loop_parameter

    @property
    def snapshot(self) -> TransportSnapshot:
        return TransportSnapshot(
            state=self._state,
            loop=self._loop,
            last_loop=self._last_loop,
            running=self._running,
        )

    def on_change(self, callback: TransportCallback) -> None:
        """Register a callback fired after every completed transition."""
        self._callbacks.register(callback, _TOPIC)

    async def play(self) -> TransportSnapshot:
        """
        Resume the audio context, then play the last remembered loop.

        Raises:
            AudioContextError: If the context cannot be resumed (no transition)
        """
        await self._resume("play")
        self._start(self._last_loop)
        logger.info(f"Transport playing loop {self._last_loop}")
        return self._emit()

    def stop(self) -> TransportSnapshot:
        """Stop the transport and deselect the loop. Does not need the audio context."""
        self._device.set_transport_running(False)
        self._running = False
        self._store.write(self._loop_parameter, 0)
        self._loop = 0
        self._state = TransportState.STOPPED
        logger.info("Transport stopped")
        return self._emit()

    async def select_loop(self, value: int) -> TransportSnapshot:
        """
        Resume the audio context, then switch to and play loop ``value``.

        Overlapping selections are not cancelled: whichever finishes its
        resume last determines the final loop.

        Raises:
            ValueError: If value <= 0
            AudioContextError: If the context cannot be resumed (no transition)
        """
        if value <= 0:
            raise ValueError(f"Loop value must be > 0, got {value}")

        await self._resume(f"select_loop({value})")
        self._start(value)
        self._last_loop = value
        logger.info(f"Transport playing selected loop {value}")
        return self._emit()

    async def _resume(self, action: str) -> None:
        logger.debug(f"{action}: audio context state is {self._context.state.value}")
        try:
            await self._context.resume()
        except AudioContextError:
            logger.error(f"{action}: audio context resume failed, transport unchanged")
            raise
        except Exception as e:
            logger.error(f"{action}: audio context resume failed, transport unchanged: {e}")
            raise AudioContextError(f"Audio context resume failed: {e}") from e

    def _start(self, loop: int) -> None:
        # Loop value is written before the running flag
        self._store.write(self._loop_parameter, loop)
        self._loop = loop
        self._device.set_transport_running(True)
        self._running = True
        self._state = TransportState.PLAYING

    def _emit(self) -> TransportSnapshot:
        snapshot = self.snapshot
        self._callbacks.dispatch(_TOPIC, snapshot)
        return snapshot
