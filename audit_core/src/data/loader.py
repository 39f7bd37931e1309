"""Audit log export loader (CSV / JSON)"""
import json
from pathlib import Path
from typing import Any, Dict, List, Optional
import pandas as pd
from .schema import AuditEvent, EventSchema


class EventLoader:
    """Loads and validates audit events from a CSV or JSON export"""

    SUPPORTED_SUFFIXES = ('.csv', '.json')

    def __init__(self, data_path: str):
        self.data_path = Path(data_path)
        if not self.data_path.exists():
            raise FileNotFoundError(f"Data path does not exist: {data_path}")
        if self.data_path.suffix.lower() not in self.SUPPORTED_SUFFIXES:
            raise ValueError(f"Unsupported export format: {self.data_path.suffix} (expected .csv or .json)")

        self._events: List[AuditEvent] = []
        self._skipped_rows: int = 0

    def load(self) -> List[str]:
        """
        Load all events from the export.
        Returns list of validation errors (empty if valid).
        """
        errors = []
        self._events = []
        self._skipped_rows = 0

        if self.data_path.suffix.lower() == '.csv':
            # Keep payload JSON and "NULL" markers as the raw strings the export holds
            df = pd.read_csv(self.data_path, dtype=str, keep_default_na=False)
            source = self.data_path.name
            errors.extend(EventSchema.validate_frame(df, source))
            if any(field not in df.columns for field in EventSchema.REQUIRED_FIELDS):
                return errors
            records = df.to_dict(orient='records')
        else:
            with open(self.data_path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
            records = self._records_from_json(raw)
            if records is None:
                errors.append(f"{self.data_path.name}: expected a list of events or an object with 'events'")
                return errors

        problems = []
        for position, record in enumerate(records):
            if isinstance(record, dict):
                record = self._clean_record(record)
            record_problems = EventSchema.validate_record(record, position)
            if record_problems:
                self._skipped_rows += 1
                problems.extend(record_problems)
                continue
            self._events.append(AuditEvent.from_record(record, position))

        if self._skipped_rows:
            errors.append(f"{self.data_path.name}: skipped {self._skipped_rows} invalid row(s)")
            errors.extend(f"{self.data_path.name}: {p}" for p in problems)
        if not self._events:
            errors.append(f"{self.data_path.name}: No events found")

        return errors

    @staticmethod
    def _records_from_json(raw: Any) -> Optional[List[Dict[str, Any]]]:
        if isinstance(raw, dict):
            raw = raw.get('events')
        if not isinstance(raw, list):
            return None
        return raw

    @staticmethod
    def _clean_record(record: Dict[str, Any]) -> Dict[str, Any]:
        """Normalize CSV artefacts: blank cells become None, user JSON is decoded"""
        cleaned = dict(record)
        for field in ('payload', 'difference_list'):
            value = cleaned.get(field)
            if isinstance(value, str) and not value.strip():
                cleaned[field] = None

        user = cleaned.get('user')
        if isinstance(user, str):
            if not user.strip():
                cleaned['user'] = None
            else:
                try:
                    decoded = json.loads(user)
                except ValueError:
                    decoded = None
                # Anything but an object stays raw so validation reports it
                if isinstance(decoded, dict):
                    cleaned['user'] = decoded
        return cleaned

    def get_events(self) -> List[AuditEvent]:
        """Get loaded events in recorded order"""
        return list(self._events)

    def get_skipped_count(self) -> int:
        """Rows dropped because they failed record validation"""
        return self._skipped_rows

    def get_time_range(self) -> tuple:
        """Get (start_ts, end_ts) across all loaded events"""
        if not self._events:
            return None, None

        ts = pd.to_datetime(
            pd.Series([e.created_timestamp for e in self._events]),
            utc=True, errors='coerce', format='ISO8601'
        ).dropna()
        if ts.empty:
            return None, None
        return ts.min(), ts.max()
