"""
backend/washbook/services/events.py

Event emitter: pushes reservation events to a Redis queue for downstream
consumers (notifications, analytics).

Queue:
- events:p2p: hold_created, hold_released, hold_expired, booking_created,
  booking_status_changed
"""

import json
import time
import logging

from ..redis_client import redis_client

logger = logging.getLogger(__name__)

EVENTS_QUEUE = "events:p2p"


def emit_event(event_type: str, payload: dict) -> None:
    """
    Emit an event (instant delivery).

    Pushed to Redis list `events:p2p` for the consumer loop. Failures are
    logged, never raised: an event is not part of the booking itself.
    """
    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        redis_client.rpush(EVENTS_QUEUE, json.dumps(event))
        logger.info(f"Event emitted: {event_type} → {EVENTS_QUEUE}")
    except Exception as e:
        logger.error(f"Failed to emit event {event_type}: {e}")
