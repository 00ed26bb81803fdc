import asyncio
import logging
import math

import pytest

from patchbound.config import ConfigurationError, MIDIConfig, SurfaceConfig
from patchbound.device import AudioContextState, DeviceError
from patchbound.midi_router import MidiRouter
from patchbound.patcher import PatcherDescription
from patchbound.presets import Preset
from patchbound.simulated import SimulatedAudioContext
from patchbound.surface import ControlSurface
from patchbound.transport import TransportState

NO_MIDI = MIDIConfig(enabled=False)


def make_surface(device, context, **kwargs):
    config = kwargs.pop("config", None) or SurfaceConfig(midi=NO_MIDI)
    return ControlSurface(device, context, config=config, **kwargs)


@pytest.fixture
def surface(device, context):
    surface = make_surface(device, context)
    surface.connect()
    yield surface
    surface.disconnect()


def test_connect_binds_visible_parameters_in_device_order(device, context):
    config = SurfaceConfig(visible_parameters=["verb_send", "cut_off"], midi=NO_MIDI)
    surface = make_surface(device, context, config=config)
    surface.connect()

    bindings = surface.sync.bindings
    assert list(bindings) == ["cut_off", "verb_send"]
    assert bindings["cut_off"].label == "CUTOFF"
    assert bindings["verb_send"].label == "REVERB"
    assert len(surface.store) == 5


def test_device_notifications_reach_bindings(device, surface):
    device.automate("res", 0.5)

    binding = surface.sync.get_binding("res")
    assert binding.slider.value == 0.5
    assert binding.text.text == "0.5"


def test_user_slide_round_trips_through_device(device, surface):
    surface.sync.on_user_slide("verb_send", 33.3)

    assert device.get_parameter_value("verb_send") == 33.0
    assert surface.store.value("verb_send") == 33.0
    assert surface.sync.get_binding("verb_send").text.text == "33.0"


def test_transport_through_surface(device, context, surface):
    snapshot = asyncio.run(surface.select_loop(2))
    assert snapshot.state == TransportState.PLAYING
    assert context.state == AudioContextState.RUNNING
    assert device.get_parameter_value("loop_select") == 2.0

    surface.stop()
    assert device.transport_running is False

    snapshot = asyncio.run(surface.play())
    assert snapshot.loop == 2


def test_submit_message(device, surface):
    event = surface.submit_message("1 2 3")

    assert event.tag == "in1"
    assert device.scheduled_events == [event]


def test_failed_submission_is_contained(device, surface, monkeypatch):
    asyncio.run(surface.select_loop(3))

    def refuse(event):
        raise DeviceError("scheduler closed")

    monkeypatch.setattr(device, "schedule_event", refuse)

    assert surface.submit_message("1 2") is None
    assert surface.submit_message("1", tag="no_such_port") is None
    assert surface.transport.snapshot.loop == 3
    assert surface.store.value("loop_select") == 3.0


def test_strict_mode_rejects_missing_parameters(device, context):
    config = SurfaceConfig(visible_parameters=["cut_off", "drive"], midi=NO_MIDI)
    surface = make_surface(device, context, config=config, strict_mode=True)

    with pytest.raises(ConfigurationError, match="drive"):
        surface.connect()
    assert not surface.is_connected


def test_permissive_mode_skips_missing_parameters(device, context, caplog):
    config = SurfaceConfig(visible_parameters=["cut_off", "drive"], midi=NO_MIDI)
    surface = make_surface(device, context, config=config)

    with caplog.at_level(logging.WARNING, logger="patchbound.surface"):
        surface.connect()

    assert list(surface.sync.bindings) == ["cut_off"]
    assert any("drive" in r.getMessage() for r in caplog.records)


def test_transport_not_offered_without_loop_parameter(device, context):
    config = SurfaceConfig(loop_parameter="pattern", midi=NO_MIDI)
    surface = make_surface(device, context, config=config)
    surface.connect()

    assert surface.transport is None
    with pytest.raises(RuntimeError, match="transport unavailable"):
        surface.stop()


def test_unlock_audio(device):
    context = SimulatedAudioContext()
    surface = make_surface(device, context)
    surface.connect()

    assert asyncio.run(surface.unlock_audio()) is True
    assert asyncio.run(surface.unlock_audio()) is True
    assert context.resume_calls == 1


def test_unlock_audio_failure_is_reported(device):
    surface = make_surface(device, SimulatedAudioContext(fail_resume=True))
    surface.connect()

    assert asyncio.run(surface.unlock_audio()) is False


def test_presets_and_title_from_patcher(device, context):
    patcher = PatcherDescription(
        filename="GS1.4",
        rnbo_version="1.3.1",
        presets=[Preset(name="Open", preset={"cut_off": 18000.0})],
    )
    surface = make_surface(device, context, patcher=patcher)
    surface.connect()

    assert surface.title == "GS1.4 (v1.3.1)"
    assert surface.presets.names == ["Open"]

    surface.apply_preset(0)

    assert surface.sync.get_binding("cut_off").text.text == "18000.0"
    with pytest.raises(IndexError):
        surface.apply_preset(1)


def test_title_falls_back_to_device_name(surface):
    assert surface.title == "GS1.4"


def test_requires_connect(device, context):
    surface = make_surface(device, context)

    with pytest.raises(RuntimeError, match="not connected"):
        surface.submit_message("1")
    assert surface.process_events() == 0


def test_reconnect_does_not_duplicate_outport_delivery(device, surface):
    received = []
    surface.bridge.on_message(lambda tag, payload: received.append(payload))

    surface.disconnect()
    surface.connect()
    device.emit_message("out1", [0.5])

    assert received == [[0.5]]
    assert surface.bridge.readout == "out1: 0.5"


def test_midi_router_lifecycle(device, context, midi_backend):
    router = MidiRouter(device, list_inputs=midi_backend.list_inputs, open_input=midi_backend.open_input)
    surface = ControlSurface(device, context, midi_router=router)

    with surface:
        assert surface.midi is router
        assert router.is_running
        assert sorted(router.attached_ports) == ["Pad Controller", "USB Keys"]

    assert not router.is_running
    assert all(port.closed for port in midi_backend.ports.values())


def test_submit_message_with_infinity_returns_event(device, surface):
    event = surface.submit_message("Infinity 1")

    assert event is not None
    assert event.payload == [math.inf, 1.0]
    assert device.scheduled_events == [event]


def test_explicit_presets_replace_patcher_presets(device, context):
    patcher = PatcherDescription(filename="GS1.4", presets=[Preset(name="Open")])
    surface = make_surface(device, context, patcher=patcher, presets=[Preset(name="Mine")])
    surface.connect()

    assert surface.presets.names == ["Mine"]


def test_patcher_from_development_runtime_is_rejected(device, context):
    patcher = PatcherDescription(filename="GS1.4", rnbo_version="1.4.0-dev")

    with pytest.raises(ConfigurationError, match="1.4.0-dev"):
        make_surface(device, context, patcher=patcher)
