"""Audit event record and schema validation"""
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Mapping, Optional
import pandas as pd


class InvalidEventError(ValueError):
    """Raised when an input element is not a usable audit event"""


@dataclass(frozen=True)
class AuditEvent:
    """One audit log row as recorded by the source system"""
    created_timestamp: str
    action: str
    entity_name: str = ''
    payload: Optional[Any] = None  # JSON string (create/delete)
    difference_list: Optional[Any] = None  # JSON string of change records (update)
    user: Optional[Dict[str, Any]] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any], position: Optional[int] = None) -> 'AuditEvent':
        """Build an event from a mapping, failing fast on missing required fields."""
        problems = EventSchema.validate_record(record, position)
        if problems:
            raise InvalidEventError('; '.join(problems))

        known = {f.name for f in fields(cls)}
        values = {k: record[k] for k in known if k in record}
        if values.get('entity_name') is None:
            values['entity_name'] = ''
        return cls(**values)

    def to_record(self) -> Dict[str, Any]:
        """Plain dict in the column layout of the source export"""
        return {f.name: getattr(self, f.name) for f in fields(self)}


class EventSchema:
    """Field layout of audit log exports"""

    # Rows without these are skipped on upload and rejected by the sorter
    REQUIRED_FIELDS = ['created_timestamp', 'action']

    # Column order of exports written back out
    OPTIONAL_FIELDS = ['entity_name', 'payload', 'difference_list', 'user']

    @staticmethod
    def validate_record(record: Any, position: Optional[int] = None) -> List[str]:
        """Validate a single record. Returns list of problems."""
        where = f"event[{position}]" if position is not None else "event"
        if not isinstance(record, Mapping):
            return [f"{where}: expected a mapping, got {type(record).__name__}"]

        problems = []
        for field in EventSchema.REQUIRED_FIELDS:
            value = record.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                problems.append(f"{where}: Missing required field '{field}'")

        user = record.get('user')
        if user is not None and not isinstance(user, Mapping):
            problems.append(f"{where}: 'user' must be an object")

        return problems

    @staticmethod
    def validate_frame(df: pd.DataFrame, source: str = 'events') -> List[str]:
        """Validate a loaded export. Returns list of missing fields."""
        missing = []
        for field in EventSchema.REQUIRED_FIELDS:
            if field not in df.columns:
                missing.append(f"{source}: Missing required field '{field}'")

        if 'entity_name' not in df.columns:
            missing.append(f"{source}: Missing 'entity_name' (all events will be unclassified)")

        if 'created_timestamp' in df.columns and len(df) > 0:
            parsed = pd.to_datetime(df['created_timestamp'], utc=True, errors='coerce', format='ISO8601')
            bad = int(parsed.isna().sum())
            if bad:
                missing.append(f"{source}: {bad} row(s) with unparseable 'created_timestamp'")

        return missing
