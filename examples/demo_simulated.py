#!/usr/bin/env python3
"""
Demo script for a control surface on the simulated device.

This script demonstrates:
- Building a surface from a configuration and a patcher description
- Registering callbacks for binding refreshes, transport and outport messages
- Driving sliders, text fields, transport and the message form
- Routing hardware MIDI input (any connected USB MIDI device) in real-time

Run with --debug to start the WebSocket debug server, then watch it with
`patchbound-debug` in another terminal.
"""

import argparse
import asyncio
import logging
import math

from patchbound.config import LoopConfig, SurfaceConfig
from patchbound.logging_config import get_logger, set_module_level, setup_logging
from patchbound.patcher import PatcherDescription
from patchbound.presets import Preset
from patchbound.simulated import SimulatedAudioContext, demo_device
from patchbound.surface import ControlSurface
from patchbound.transport import TransportSnapshot
from patchbound.widgets import Binding

# Set up rich logging to see what's happening
setup_logging(level=logging.INFO)

logger = get_logger(__name__)

# Enable debug logging for specific modules to see MIDI input
set_module_level("midi_router", logging.DEBUG)


def create_example_config() -> SurfaceConfig:
    """Four loops, the three filter/reverb sliders and the envelope attack."""
    return SurfaceConfig(
        visible_parameters=["cut_off", "res", "verb_send", "env/attack"],
        display_names={"cut_off": "CUTOFF", "res": "RESONANCE", "verb_send": "REVERB", "env/attack": "ATTACK"},
        loops=[LoopConfig(name=f"LOOP {i}", value=i) for i in range(1, 5)],
    )


def create_example_patcher() -> PatcherDescription:
    return PatcherDescription(
        filename="GS1.4",
        rnbo_version="1.3.1",
        presets=[
            Preset(name="Dark", preset={"cut_off": 300.0, "res": 0.7, "verb_send": 40}),
            Preset(name="Bright", preset={"cut_off": 12000.0, "res": 0.1, "verb_send": 5}),
        ],
    )


def on_binding_refresh(binding: Binding):
    """Callback for slider/text refreshes."""
    span = binding.slider.max_value - binding.slider.min_value
    bar = "█" * int(20 * (binding.slider.value - binding.slider.min_value) / span)
    print(f"[PARAM] {binding.label:10s} {binding.text.text:>10s} [{bar:<20s}]")


def on_transport_change(snapshot: TransportSnapshot):
    """Callback for transport highlighting."""
    print(f"[TRANSPORT] {snapshot.state.value.upper():8s} loop={snapshot.loop} next={snapshot.last_loop}")


def on_outport_message(tag: str, payload: list[float]):
    """Callback for device outport messages."""
    print(f"[OUTPORT] {tag}: {payload}")


async def run_script(surface: ControlSurface, device) -> None:
    """Walk through the interactions a user would perform."""
    print("\n-- unlock audio --")
    await surface.unlock_audio()

    print("\n-- slider drag on CUTOFF --")
    surface.sync.on_user_drag("cut_off")
    for value in (1200.0, 1800.0, 2400.0):
        surface.sync.on_user_slide("cut_off", value)
    surface.sync.on_user_drag_end("cut_off")

    print("\n-- text entry on REVERB (42.4 is rounded by the device) --")
    surface.sync.on_user_text_commit("verb_send", "42.4")
    surface.sync.on_user_text_commit("verb_send", "loud")

    print("\n-- transport --")
    await surface.select_loop(3)
    surface.stop()
    await surface.play()

    print("\n-- message form --")
    surface.submit_message("1 2 foo")
    device.emit_message("out1", [0.5, 1.0])

    print("\n-- preset --")
    surface.apply_preset(1)


async def main_loop(surface: ControlSurface, device) -> None:
    await run_script(surface, device)

    print("\n" + "=" * 60)
    print("Listening for MIDI input... (Press Ctrl+C to exit)")
    print("=" * 60)

    phase = 0.0
    while True:
        # Process any pending MIDI events
        surface.process_events()

        # Slow envelope automation from inside the device
        phase += 0.05
        device.automate("env/attack", 1000.0 + 900.0 * math.sin(phase))

        await asyncio.sleep(0.5)


def main():
    """Main demo function."""
    parser = argparse.ArgumentParser(description="Patchbound simulated device demo")
    parser.add_argument("--debug", action="store_true", help="Start the WebSocket debug server")
    args = parser.parse_args()

    print("\n" + "=" * 60)
    print("Patchbound Simulated Device Demo")
    print("=" * 60)

    device = demo_device()
    surface = ControlSurface(
        device,
        SimulatedAudioContext(resume_delay=0.05),
        config=create_example_config(),
        patcher=create_example_patcher(),
        debug_server=args.debug,
    )

    print("\n1. Connecting...")
    surface.connect()
    print(f"   ✓ Connected: {surface.title}")
    if surface.debug_url:
        print(f"   ✓ Debug server at {surface.debug_url}")

    print("\n2. Registering callbacks...")
    surface.sync.on_refresh(on_binding_refresh)
    surface.transport.on_change(on_transport_change)
    surface.bridge.on_message(on_outport_message)
    print("   ✓ Registered binding, transport and outport callbacks")

    try:
        asyncio.run(main_loop(surface, device))
    except KeyboardInterrupt:
        print("\n\nShutting down...")
    finally:
        surface.disconnect()
        print("✓ Disconnected")
        print("\nDemo complete!")


if __name__ == "__main__":
    main()
