import math
from datetime import datetime

from pydantic import TypeAdapter

from patchbound.debug.messages import DebugMessage, OutportMessage, TransportChangeMessage
from patchbound.debug.tui import BAR_WIDTH, render_bar, render_transport
from patchbound.device import Parameter
from patchbound.transport import TransportSnapshot, TransportState

adapter = TypeAdapter(DebugMessage)


def test_outport_message_carries_nan():
    message = OutportMessage(timestamp=datetime.now(), tag="out1", payload=[1.0, float("nan")])

    raw = message.model_dump_json()
    assert "NaN" in raw

    parsed = adapter.validate_json(raw)
    assert isinstance(parsed, OutportMessage)
    assert parsed.payload[0] == 1.0
    assert math.isnan(parsed.payload[1])


def test_messages_are_dispatched_on_type():
    snapshot = TransportSnapshot(state=TransportState.PLAYING, loop=2, last_loop=2, running=True)
    raw = TransportChangeMessage(timestamp=datetime.now(), transport=snapshot).model_dump_json()

    parsed = adapter.validate_json(raw)

    assert isinstance(parsed, TransportChangeMessage)
    assert parsed.transport == snapshot


def test_render_bar():
    definition = Parameter(parameter_id="res", name="res", min_value=0.0, max_value=1.0)

    assert render_bar(0.0, definition) == "░" * BAR_WIDTH
    assert render_bar(1.0, definition) == "█" * BAR_WIDTH
    assert render_bar(0.5, definition).count("█") == BAR_WIDTH // 2


def test_render_transport():
    assert "not available" in render_transport(None).plain
    playing = TransportSnapshot(state=TransportState.PLAYING, loop=3, last_loop=3, running=True)
    assert "loop 3" in render_transport(playing).plain
