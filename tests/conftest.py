import pytest

from patchbound.device import MessagePort, MessagePortType, Parameter
from patchbound.parameters import ParameterStore
from patchbound.simulated import SimulatedAudioContext, SimulatedDevice, demo_device
from patchbound.sync import ParameterSyncEngine


class FakeClock:
    """Settable seconds clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakePort:
    """Stand-in for a mido input port."""

    def __init__(self, name: str):
        self.name = name
        self.pending: list = []
        self.closed = False

    def iter_pending(self):
        messages, self.pending = self.pending, []
        yield from messages

    def close(self):
        self.closed = True


class FakeMidiBackend:
    """Port enumeration/opening for MidiRouter without hardware."""

    def __init__(self, names=(), deny: bool = False):
        self.names = list(names)
        self.deny = deny
        self.ports: dict[str, FakePort] = {}

    def list_inputs(self) -> list[str]:
        if self.deny:
            raise OSError("MIDI access denied")
        return list(self.names)

    def open_input(self, name: str) -> FakePort:
        if name not in self.names:
            raise OSError(f"No such port: {name}")
        port = FakePort(name)
        self.ports[name] = port
        return port


@pytest.fixture
def clock():
    return FakeClock(1.0)


@pytest.fixture
def device(clock):
    return demo_device(clock=clock)


@pytest.fixture
def context():
    return SimulatedAudioContext()


@pytest.fixture
def store(device):
    return ParameterStore.from_device(device)


@pytest.fixture
def engine(device, store):
    engine = ParameterSyncEngine(store)
    device.subscribe_parameter_changes(engine.on_device_notification)
    for parameter_id in ("cut_off", "res", "verb_send"):
        engine.bind(parameter_id)
    return engine


@pytest.fixture
def midi_backend():
    return FakeMidiBackend(names=["USB Keys", "Pad Controller"])


@pytest.fixture
def port_device(clock):
    return SimulatedDevice(
        parameters=[Parameter(parameter_id="gain", name="gain", value=0.5)],
        message_ports=[
            MessagePort(tag="t1", type=MessagePortType.INPORT),
            MessagePort(tag="t2", type=MessagePortType.INPORT),
            MessagePort(tag="level", type=MessagePortType.OUTPORT),
        ],
        clock=clock,
    )
