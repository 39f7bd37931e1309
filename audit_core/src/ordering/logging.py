"""Structured logging for ordering decisions"""
import json
from typing import Dict, Any, Optional, List
from datetime import datetime, UTC


def event_reference(index: int, entity_name: Any, action: Any, created_timestamp: Any) -> str:
    """
    Compact label for an event inside a stage group.

    >>> event_reference(3, 'Shipment', 'create', '2024-03-01T10:05:00+00:00')
    '#3 Shipment.create @ 2024-03-01T10:05:00+00:00'
    """
    return f"#{index} {entity_name or '?'}.{action} @ {created_timestamp}"


def log_ordering_event(
    event_type: str,
    payload: Dict[str, Any],
    logger: Optional[List[Dict]] = None,
    stage: Optional[str] = None,
    timestamp: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Log a structured ordering event.

    Indices in ``payload`` are positions inside the stage group being
    sorted; ``stage`` names that group so entries from different groups
    can be told apart.

    Args:
        event_type: "cycle_fallback" or "payload_parse_failure"
        payload: Event-specific data (group indices, field name, counts)
        logger: Optional list to append to (the caller's forensic log)
        stage: Stage name of the group, None when sorting a bare list
        timestamp: Optional timestamp (defaults to now)

    Returns:
        Structured log entry dict
    """
    if timestamp is None:
        timestamp = datetime.now(UTC)

    log_entry = {
        'timestamp': timestamp.isoformat() if hasattr(timestamp, 'isoformat') else str(timestamp),
        'event_type': event_type,
        'stage': stage,
        **payload
    }

    if logger is not None:
        logger.append(log_entry)

    scope = f"{event_type} [{stage}]" if stage else event_type
    print(f"[ORDER_LOG] {scope}: {json.dumps(payload, default=str)}")

    return log_entry
