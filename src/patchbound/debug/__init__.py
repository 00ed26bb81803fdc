"""
Debug module for patchbound state visualization.

This module provides real-time inspection of a control surface through a
WebSocket server and a Textual TUI client.

Usage:
    # Enable debug server on the surface
    surface = ControlSurface(device, context, debug_server=True, debug_port=8765)
    surface.connect()
    print(f"Debug TUI: patchbound-debug --url {surface.debug_url}")

    # In another terminal, run the TUI
    $ patchbound-debug --url ws://127.0.0.1:8765

    # Or via Python
    $ python -m patchbound.debug.tui --url ws://127.0.0.1:8765
"""

from patchbound.debug.messages import (
    DebugMessage,
    FullStateMessage,
    OutportMessage,
    ParameterChangeMessage,
    TransportChangeMessage,
)
from patchbound.debug.server import StateBroadcaster
from patchbound.debug.tui import SurfaceStateApp, run_tui

__all__ = [
    # Protocol
    "DebugMessage",
    "FullStateMessage",
    "OutportMessage",
    "ParameterChangeMessage",
    "TransportChangeMessage",
    # Server and client
    "StateBroadcaster",
    "SurfaceStateApp",
    "run_tui",
]
