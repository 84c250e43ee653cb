"""Pydantic schemas for relay messages.

Learn: Two shapes cross the system boundary:

1. SelectionEnvelope — what publishers put on the Redis channel:
   {"model": "Kickoff", "actions": [8 numbers] | null}
2. Relay frames — what WebSocket clients receive, externally tagged:
   {"Selection": {"model": ..., "actions": {...} | null}}
   {"Statistics": {"model": ..., "counts": 42}}

Inside the relay the model name is called `category`; the wire name
"model" only appears through aliases.
"""

import json
from typing import Annotated, ClassVar, Optional, Sequence, Union

from pydantic import BaseModel, Field, StrictFloat, StrictStr

ACTION_COUNT = 8
BUTTON_THRESHOLD = 0.5


# ─── Inbound (Redis) ──────────────────────────────────────


class SelectionEnvelope(BaseModel):
    """Raw selection message as published on the bus.

    Strict types: "model" must be a JSON string and every action a JSON
    number. NaN and Infinity are not JSON and are rejected too. Unknown
    keys are ignored.
    """

    category: StrictStr = Field(alias="model")
    actions: Optional[
        Annotated[
            list[StrictFloat],
            Field(min_length=ACTION_COUNT, max_length=ACTION_COUNT),
        ]
    ] = None

    model_config = {"allow_inf_nan": False}


# ─── Domain / outbound ────────────────────────────────────


class ControllerInput(BaseModel):
    """Simplified controller state chosen by the model."""

    throttle: float
    steer: float
    pitch: float
    yaw: float
    roll: float
    jump: bool
    boost: bool
    handbrake: bool

    model_config = {"frozen": True}

    @classmethod
    def from_actions(cls, actions: Sequence[float]) -> "ControllerInput":
        """Build from the 8-number action array; the last three are buttons."""
        if len(actions) != ACTION_COUNT:
            raise ValueError(
                f"expected {ACTION_COUNT} actions, got {len(actions)}"
            )
        throttle, steer, pitch, yaw, roll, jump, boost, handbrake = actions
        return cls(
            throttle=throttle,
            steer=steer,
            pitch=pitch,
            yaw=yaw,
            roll=roll,
            jump=jump > BUTTON_THRESHOLD,
            boost=boost > BUTTON_THRESHOLD,
            handbrake=handbrake > BUTTON_THRESHOLD,
        )


class SelectionEvent(BaseModel):
    tag: ClassVar[str] = "Selection"

    category: str = Field(serialization_alias="model")
    actions: Optional[ControllerInput] = None

    model_config = {"frozen": True}


class StatisticsSnapshot(BaseModel):
    tag: ClassVar[str] = "Statistics"

    category: str = Field(serialization_alias="model")
    count: int = Field(ge=0, serialization_alias="counts")

    model_config = {"frozen": True}


# The only payload type flowing through the broadcast hub
RelayMessage = Union[SelectionEvent, StatisticsSnapshot]


def frame_payload(message: RelayMessage) -> dict:
    """Externally tagged dict for a relay message."""
    return {message.tag: message.model_dump(mode="json", by_alias=True)}


def encode_frame(message: RelayMessage) -> str:
    """Serialize a relay message to the JSON text sent to WebSocket clients."""
    return json.dumps(frame_payload(message))
