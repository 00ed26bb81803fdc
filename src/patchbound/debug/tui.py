"""
Textual TUI application for control surface debugging.

This module provides a terminal view of the parameter mirror, the transport
and the outport message log, receiving real-time updates via WebSocket from a
patchbound ControlSurface with debug_server enabled.
"""

import argparse
import asyncio
import traceback
from datetime import datetime
from typing import Optional

import websockets
from pydantic import TypeAdapter
from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Header, RichLog, Static

from patchbound.debug.messages import (
    DebugMessage,
    FullStateMessage,
    OutportMessage,
    ParameterChangeMessage,
    TransportChangeMessage,
)
from patchbound.device import Parameter
from patchbound.logging_config import get_logger
from patchbound.message_bridge import format_payload
from patchbound.parameters import ParameterState
from patchbound.transport import TransportSnapshot, TransportState
from patchbound.utils import format_value

logger = get_logger(__name__)

BAR_WIDTH = 20

_message_adapter: TypeAdapter[DebugMessage] = TypeAdapter(DebugMessage)


def render_bar(value: float, definition: Parameter) -> str:
    """Horizontal bar showing value's position within the parameter range."""
    span = definition.max_value - definition.min_value
    ratio = (value - definition.min_value) / span if span > 0 else 0.0
    filled = int(max(0.0, min(1.0, ratio)) * BAR_WIDTH)
    return "█" * filled + "░" * (BAR_WIDTH - filled)


def render_transport(transport: Optional[TransportSnapshot]) -> Text:
    """Status line for the transport."""
    if transport is None:
        return Text("Transport: not available", style="dim")
    if transport.state == TransportState.PLAYING:
        return Text(f"▶ PLAYING  loop {transport.loop}", style="bold green")
    return Text(f"■ STOPPED  (next loop {transport.last_loop})", style="bold red")


class SurfaceStateApp(App):
    """Main TUI application for control surface state visualization."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #status {
        height: 1;
        padding: 0 1;
        background: $surface;
    }

    #transport {
        height: 1;
        padding: 0 1;
    }

    #parameters {
        height: 1fr;
        border: solid $primary;
    }

    #outports {
        height: 10;
        border: solid $secondary;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "reconnect", "Reconnect"),
        ("a", "toggle_all", "All/visible parameters"),
    ]

    def __init__(self, ws_url: str = "ws://127.0.0.1:8765"):
        super().__init__()
        self.ws_url = ws_url
        self._device_name = "Unknown"
        self._definitions: dict[str, Parameter] = {}
        self._states: dict[str, ParameterState] = {}
        self._labels: dict[str, str] = {}
        self._visible: list[str] = []
        self._show_all = False

    def compose(self) -> ComposeResult:
        yield Header()
        yield Container(
            Static("Connecting...", id="status"),
            Static(render_transport(None), id="transport"),
            DataTable(id="parameters", cursor_type="row"),
            RichLog(id="outports", markup=False, max_lines=500),
        )
        yield Footer()

    async def on_mount(self) -> None:
        """Set up the table and connect to the WebSocket server."""
        table = self.query_one("#parameters", DataTable)
        table.add_columns("Parameter", "Value", "Position", "Range", "Source")
        self.run_worker(self._connect_and_listen(), exclusive=True)

    async def _connect_and_listen(self) -> None:
        """Connect to WebSocket and process incoming messages."""
        status = self.query_one("#status", Static)

        while True:
            try:
                status.update(Text(f"Connecting to {self.ws_url}...", style="yellow"))
                async with websockets.connect(self.ws_url) as ws:
                    status.update(Text(f"Connected to {self._device_name}", style="green"))
                    async for message in ws:
                        try:
                            self._process_message(message)
                        except Exception as e:
                            logger.error(f"Error processing message: {e}\n{traceback.format_exc()}")
                            continue
            except asyncio.CancelledError:
                break
            except Exception as e:
                status.update(Text(f"Disconnected: {e}. Retrying...", style="red"))
                await asyncio.sleep(2.0)

    def _process_message(self, message: str) -> None:
        """Apply one protocol message to the view."""
        msg = _message_adapter.validate_json(message)

        if isinstance(msg, FullStateMessage):
            self._device_name = msg.title or msg.device_name
            self._definitions = msg.definitions
            self._states = msg.states
            self._labels = msg.labels
            self._visible = msg.visible
            self.query_one("#status", Static).update(Text(f"Connected to {self._device_name}", style="green"))
            self.query_one("#transport", Static).update(render_transport(msg.transport))
            self._rebuild_table()

        elif isinstance(msg, ParameterChangeMessage):
            self._states[msg.state.parameter_id] = msg.state
            self._update_row(msg.state.parameter_id)

        elif isinstance(msg, TransportChangeMessage):
            self.query_one("#transport", Static).update(render_transport(msg.transport))

        elif isinstance(msg, OutportMessage):
            log = self.query_one("#outports", RichLog)
            log.write(f"[{msg.timestamp:%X}] {msg.tag}: {format_payload(msg.payload)}")

    def _shown_ids(self) -> list[str]:
        if self._show_all or not self._visible:
            return list(self._definitions)
        return [pid for pid in self._visible if pid in self._definitions]

    def _row(self, parameter_id: str) -> tuple:
        definition = self._definitions[parameter_id]
        state = self._states.get(parameter_id)
        value = state.value if state else definition.value
        return (
            self._labels.get(parameter_id, definition.name),
            format_value(value),
            render_bar(value, definition),
            f"{definition.min_value:g} - {definition.max_value:g}",
            state.source if state else "-",
        )

    def _rebuild_table(self) -> None:
        table = self.query_one("#parameters", DataTable)
        table.clear()
        for parameter_id in self._shown_ids():
            table.add_row(*self._row(parameter_id), key=parameter_id)

    def _update_row(self, parameter_id: str) -> None:
        if parameter_id not in self._shown_ids():
            return
        table = self.query_one("#parameters", DataTable)
        columns = list(table.columns)
        for column_key, cell in zip(columns, self._row(parameter_id)):
            table.update_cell(parameter_id, column_key, cell)

    def action_toggle_all(self) -> None:
        """Switch between visible bindings and the full parameter mirror."""
        self._show_all = not self._show_all
        self._rebuild_table()

    def action_reconnect(self) -> None:
        """Reconnect to WebSocket server."""
        self.notify(f"Reconnecting at {datetime.now():%X}...")
        self.run_worker(self._connect_and_listen(), exclusive=True)


def run_tui(ws_url: str = "ws://127.0.0.1:8765") -> None:
    """
    Run the TUI application.

    Args:
        ws_url: WebSocket URL to connect to
    """
    app = SurfaceStateApp(ws_url=ws_url)
    app.run()


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Patchbound Control Surface Debug TUI")
    parser.add_argument(
        "--url",
        default="ws://127.0.0.1:8765",
        help="WebSocket URL to connect to (default: ws://127.0.0.1:8765)",
    )
    args = parser.parse_args()

    run_tui(args.url)


if __name__ == "__main__":
    main()
