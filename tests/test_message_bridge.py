import math

import pytest

from patchbound.device import TIME_NOW, DeviceError, MessageEvent, Parameter
from patchbound.message_bridge import MessagePortBridge, format_payload, parse_payload
from patchbound.simulated import SimulatedDevice


def test_parse_payload_turns_bad_tokens_into_nan():
    payload = parse_payload("1 2 foo")

    assert payload[:2] == [1.0, 2.0]
    assert math.isnan(payload[2])


def test_parse_payload_splits_on_whitespace_runs():
    assert parse_payload("0.5\t  -3\n7") == [0.5, -3.0, 7.0]


def test_parse_payload_edge_whitespace_yields_nan():
    payload = parse_payload(" 4 ")

    assert len(payload) == 3
    assert math.isnan(payload[0])
    assert payload[1] == 4.0
    assert math.isnan(payload[2])


def test_format_payload():
    assert format_payload([1.0, 2.5, float("nan")]) == "1,2.5,NaN"
    assert format_payload([]) == ""
    assert format_payload([math.inf, -math.inf, 3.0]) == "Infinity,-Infinity,3"


def test_submit_schedules_message_now(port_device):
    bridge = MessagePortBridge(port_device)

    event = bridge.submit("1 2 foo", tag="t1")

    assert port_device.scheduled_events == [event]
    assert isinstance(event, MessageEvent)
    assert event.time == TIME_NOW
    assert event.tag == "t1"
    assert event.payload[:2] == [1.0, 2.0]
    assert math.isnan(event.payload[2])


def test_submit_uses_selected_inport(port_device):
    bridge = MessagePortBridge(port_device)
    assert bridge.selected_inport == "t1"

    bridge.select_inport("t2")

    assert bridge.submit("5").tag == "t2"


def test_unknown_inport_is_rejected(port_device):
    bridge = MessagePortBridge(port_device)

    with pytest.raises(ValueError, match="Unknown inport"):
        bridge.select_inport("level")
    assert port_device.scheduled_events == []


def test_device_scheduling_errors_propagate(port_device, monkeypatch):
    bridge = MessagePortBridge(port_device)

    def refuse(event):
        raise DeviceError("queue closed")

    monkeypatch.setattr(port_device, "schedule_event", refuse)

    with pytest.raises(DeviceError):
        bridge.submit("1")


def test_outport_messages_are_forwarded_once(port_device):
    bridge = MessagePortBridge(port_device)
    received = []
    bridge.on_message(lambda tag, payload: received.append((tag, payload)))

    assert bridge.attach() is True
    assert bridge.attach() is True  # second attach does not double-subscribe

    port_device.emit_message("level", [0.25, 1.0])
    port_device.emit_message("debug_internal", [9.0])
    port_device.emit_message("t1", [1.0])

    assert received == [("level", [0.25, 1.0])]
    assert bridge.readout == "level: 0.25,1"


def test_tag_specific_observer(port_device):
    bridge = MessagePortBridge(port_device)
    bridge.attach()
    received = []
    bridge.on_message(lambda tag, payload: received.append(payload), tag="other")

    port_device.emit_message("level", [1.0])

    assert received == []


def test_device_without_ports():
    device = SimulatedDevice(parameters=[Parameter(parameter_id="gain", name="gain")])
    bridge = MessagePortBridge(device)

    assert not bridge.has_inports
    assert not bridge.has_outports
    assert bridge.selected_inport is None
    assert bridge.attach() is False
    with pytest.raises(ValueError, match="no inports"):
        bridge.submit("1 2")
    assert device.scheduled_events == []


def test_infinite_outport_values_are_forwarded(port_device):
    bridge = MessagePortBridge(port_device)
    bridge.attach()
    received = []
    bridge.on_message(lambda tag, payload: received.append(payload))

    port_device.emit_message("level", [math.inf, -math.inf])

    assert received == [[math.inf, -math.inf]]
    assert bridge.readout == "level: Infinity,-Infinity"


def test_submit_accepts_infinity(port_device):
    bridge = MessagePortBridge(port_device)

    event = bridge.submit("Infinity -1")

    assert event.payload == [math.inf, -1.0]
    assert port_device.scheduled_events == [event]
