"""Message parser — raw bus payload → SelectionEvent.

Learn: Publishers are outside our control, so a bad payload is never an
error for the relay. We log it and drop exactly that one message; the
pipeline keeps going.

Rejected payloads:
- not JSON, or not the envelope shape (missing/non-string "model")
- "actions" present but not exactly 8 numbers
"""

from typing import Optional, Union

import structlog
from pydantic import ValidationError

from rkse.schemas.relay import ControllerInput, SelectionEnvelope, SelectionEvent

logger = structlog.get_logger()


def parse_selection(raw: Union[str, bytes]) -> Optional[SelectionEvent]:
    """Decode and validate one payload. Returns None if it was rejected."""
    try:
        envelope = SelectionEnvelope.model_validate_json(raw)
    except ValidationError as e:
        logger.warning(
            "relay.message_rejected",
            payload=raw if isinstance(raw, str) else raw.decode("utf-8", "replace"),
            errors=e.error_count(),
            reason=str(e),
        )
        return None

    actions = None
    if envelope.actions is not None:
        actions = ControllerInput.from_actions(envelope.actions)

    return SelectionEvent(category=envelope.category, actions=actions)
