"""
Activity log service: append-only audit trail of every mutation.
"""
import json
import logging
from typing import Any, List, Optional

from ryme.exceptions import ValidationError
from ryme.models import ActivityLogEntry, ActivityAction
from ryme.utils.formatters import to_json_safe, utcnow

logger = logging.getLogger(__name__)


def log_activity(
    session,
    action: ActivityAction,
    entity_type: str,
    description: str,
    data: Any = None,
    entity_id: Any = None,
) -> ActivityLogEntry:
    """
    Append an activity entry to the session.

    Args:
        session: Database session
        action: ActivityAction enum value
        entity_type: Type of entity affected (e.g., 'product', 'order')
        description: Human-readable summary
        data: Optional structured snapshot (JSON encoded)
        entity_id: ID of the affected entity

    Note: Caller is responsible for committing the session, so the entry
    lands in the same commit as the change it describes.
    """
    entry = ActivityLogEntry(
        action=ActivityAction(action).value,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        description=description,
        data=json.dumps(to_json_safe(data), default=str) if data is not None else None,
        timestamp=utcnow(),
    )
    session.add(entry)
    logger.info(f"Activity logged: {entry.action} on {entity_type} {entry.entity_id or ''}".rstrip())
    return entry


def get_activity_log(
    session,
    limit: int = 100,
    offset: int = 0,
    action_filter: Optional[str] = None,
    entity_type_filter: Optional[str] = None,
) -> List[ActivityLogEntry]:
    """
    Retrieve activity entries, newest first, with optional filters.
    """
    query = session.query(ActivityLogEntry)

    if action_filter:
        try:
            action_value = ActivityAction(action_filter).value
        except ValueError:
            raise ValidationError(f'Unknown activity action: {action_filter}')
        query = query.filter(ActivityLogEntry.action == action_value)

    if entity_type_filter:
        query = query.filter(ActivityLogEntry.entity_type == entity_type_filter)

    query = query.order_by(ActivityLogEntry.timestamp.desc(), ActivityLogEntry.id.desc())
    return query.limit(limit).offset(offset).all()
