import json
import uuid
from datetime import datetime, timezone


def build_event(event_type: str, data: dict, source: str | None = None) -> dict:
    """Envelope shared by every event on the domain exchange; event_type doubles as routing key."""
    event = {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }
    if source:
        event["source"] = source
    return event


def to_json(event: dict) -> str:
    # dates and times in payloads serialize as ISO strings
    return json.dumps(event, separators=(",", ":"), ensure_ascii=False, default=str)


def event_id_of(message_body: str) -> str | None:
    try:
        return json.loads(message_body).get("event_id")
    except (ValueError, AttributeError):
        return None
