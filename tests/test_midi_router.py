import logging

import mido
import pytest

from patchbound.device import DeviceError, MIDIEvent
from patchbound.midi_router import PORT_CONNECTED, PORT_DISCONNECTED, MidiRouter


@pytest.fixture
def router(device, midi_backend):
    router = MidiRouter(
        device,
        list_inputs=midi_backend.list_inputs,
        open_input=midi_backend.open_input,
    )
    yield router
    router.stop()


def midi_events(device):
    return [e for e in device.scheduled_events if isinstance(e, MIDIEvent)]


def test_start_attaches_every_port(router):
    assert router.start(background=False) is True
    assert router.is_available
    assert not router.is_running
    assert sorted(router.attached_ports) == ["Pad Controller", "USB Keys"]


def test_note_on_becomes_one_event_on_port_zero(device, clock, router):
    router.start(background=False)
    clock.now = 1.5

    message = mido.Message("note_on", note=0x40, velocity=0x7F)
    event = router.handle_message("USB Keys", message)

    assert midi_events(device) == [event]
    assert event.port == 0
    assert event.data == [0x90, 0x40, 0x7F]
    assert event.time == pytest.approx(500.0)


def test_raw_bytes_are_accepted(device, router):
    router.start(background=False)

    router.handle_message("Pad Controller", bytes([0xB0, 0x07, 0x64]))

    assert midi_events(device)[0].data == [0xB0, 0x07, 0x64]


def test_timestamps_never_decrease(device, clock, router):
    router.start(background=False)

    clock.now = 3.0
    first = router.handle_message("USB Keys", [0x90, 60, 100])
    clock.now = 2.0
    second = router.handle_message("USB Keys", [0x80, 60, 0])

    assert second.time >= first.time


def test_polled_messages_route_in_arrival_order(device, midi_backend, router):
    router.start(background=False)
    midi_backend.ports["USB Keys"].pending = [
        mido.Message("note_on", note=60, velocity=90),
        mido.Message("note_off", note=60, velocity=0),
    ]

    router.poll_once()
    assert router.process_pending_messages() == 2

    assert [e.data for e in midi_events(device)] == [[0x90, 60, 90], [0x80, 60, 0]]
    assert router.get_stats()["routed"] == 2


def test_hotplugged_port_is_attached_and_routed(device, midi_backend, router):
    router.start(background=False)
    changes = []
    router.on_port_change(lambda name, state: changes.append((name, state)))

    midi_backend.names.append("New Synth")
    router.poll_once(check_hotplug=True)
    router.process_pending_messages()

    assert "New Synth" in router.attached_ports
    assert changes == [("New Synth", PORT_CONNECTED)]

    midi_backend.ports["New Synth"].pending = [mido.Message("note_on", note=36, velocity=64)]
    router.poll_once()
    router.process_pending_messages()

    assert midi_events(device)[-1].data == [0x90, 36, 64]


def test_disconnected_port_stops_routing(device, midi_backend, router):
    router.start(background=False)
    port = midi_backend.ports["USB Keys"]

    midi_backend.names.remove("USB Keys")
    router.poll_once(check_hotplug=True)
    router.process_pending_messages()

    assert "USB Keys" not in router.attached_ports
    assert "USB Keys" in router.registry
    assert port.closed
    assert router.handle_message("USB Keys", [0x90, 60, 100]) is None
    assert midi_events(device) == []
    assert router.get_stats()["ignored"] == 1


def test_non_input_state_changes_are_ignored(router):
    router.start(background=False)
    router.on_port_state_change("Speaker Out", PORT_CONNECTED, port_type="output")
    router.on_port_state_change("USB Keys", PORT_DISCONNECTED, port_type="output")

    assert "Speaker Out" not in router.registry
    assert "USB Keys" in router.attached_ports


def test_access_denied_disables_routing_and_logs_once(device, midi_backend, caplog):
    midi_backend.deny = True
    router = MidiRouter(device, list_inputs=midi_backend.list_inputs, open_input=midi_backend.open_input)

    with caplog.at_level(logging.ERROR, logger="patchbound.midi_router"):
        assert router.start(background=False) is False
        assert router.start(background=False) is False

    assert not router.is_available
    assert router.attached_ports == []
    denied = [r for r in caplog.records if "MIDI access denied" in r.getMessage()]
    assert len(denied) == 1


def test_port_that_fails_to_open_is_skipped(device, midi_backend):
    def open_input(name):
        raise OSError("busy")

    router = MidiRouter(device, list_inputs=midi_backend.list_inputs, open_input=open_input)

    assert router.start(background=False) is True
    assert router.attached_ports == []
    assert router.attach("USB Keys") is None


def test_scheduling_error_does_not_stop_queue_processing(device, midi_backend, router, monkeypatch):
    router.start(background=False)
    original = device.schedule_event
    calls = []

    def flaky(event):
        calls.append(event)
        if len(calls) == 1:
            raise DeviceError("scheduler full")
        original(event)

    monkeypatch.setattr(device, "schedule_event", flaky)
    midi_backend.ports["USB Keys"].pending = [[0x90, 60, 1], [0x90, 61, 1]]

    router.poll_once()
    assert router.process_pending_messages() == 1
    assert [e.data for e in midi_events(device)] == [[0x90, 61, 1]]


def test_logical_port_is_configurable(device, midi_backend):
    router = MidiRouter(
        device,
        logical_port=2,
        list_inputs=midi_backend.list_inputs,
        open_input=midi_backend.open_input,
    )
    router.start(background=False)

    assert router.handle_message("USB Keys", [0xC0, 5]).port == 2


def test_stop_closes_ports(midi_backend, router):
    router.start(background=False)
    router.stop()

    assert router.attached_ports == []
    assert all(port.closed for port in midi_backend.ports.values())


def test_background_thread_lifecycle(midi_backend, router):
    assert router.start() is True
    assert router.is_running

    router.stop()
    assert not router.is_running


def test_messages_are_stamped_when_read(device, clock, midi_backend, router):
    router.start(background=False)
    midi_backend.ports["USB Keys"].pending = [mido.Message("note_on", note=60, velocity=90)]

    clock.now = 1.25
    router.poll_once()
    clock.now = 4.0
    router.process_pending_messages()

    assert midi_events(device)[0].time == pytest.approx(250.0)
