"""
Pydantic models for WebSocket messages between debug server and TUI client.

These models define the protocol for real-time control surface state.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from patchbound.device import Parameter
from patchbound.parameters import ParameterState
from patchbound.transport import TransportSnapshot


class FullStateMessage(BaseModel):
    """Message sent on client connection with the complete surface state."""

    type: Literal["full_state"] = "full_state"
    timestamp: datetime
    device_name: str
    title: Optional[str] = None
    visible: list[str] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)
    states: dict[str, ParameterState]
    definitions: dict[str, Parameter]
    transport: Optional[TransportSnapshot] = None


class ParameterChangeMessage(BaseModel):
    """Message sent when a mirrored parameter changes."""

    type: Literal["parameter_change"] = "parameter_change"
    timestamp: datetime
    state: ParameterState


class TransportChangeMessage(BaseModel):
    """Message sent after a transport transition."""

    type: Literal["transport_change"] = "transport_change"
    timestamp: datetime
    transport: TransportSnapshot


class OutportMessage(BaseModel):
    """Message sent when the device emits on a declared outport."""

    type: Literal["outport"] = "outport"
    timestamp: datetime
    tag: str
    payload: list[float]

    model_config = {"ser_json_inf_nan": "constants"}  # Unparseable tokens travel as NaN


# Discriminated union for parsing any incoming message
DebugMessage = Annotated[
    Union[FullStateMessage, ParameterChangeMessage, TransportChangeMessage, OutportMessage],
    Field(discriminator="type"),
]
