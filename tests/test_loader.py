"""Loading audit exports"""
import json
import pytest
import pandas as pd

from audit_core.src.data.loader import EventLoader
from audit_core.src.data.schema import AuditEvent, EventSchema, InvalidEventError
from tests.fixtures.toy_events import generate_trade_lifecycle, write_events_csv


START_TS = pd.Timestamp('2024-02-01 08:00:00', tz='UTC')


class TestEventLoader:
    """CSV and JSON exports"""

    @pytest.fixture
    def lifecycle(self):
        return generate_trade_lifecycle(0, START_TS)

    def test_csv_round_trip_keeps_raw_json(self, tmp_path, lifecycle):
        path = tmp_path / "audit.csv"
        write_events_csv(lifecycle, path)

        loader = EventLoader(str(path))
        errors = loader.load()
        events = loader.get_events()

        assert errors == []
        assert len(events) == len(lifecycle)
        assert events[0].payload == lifecycle[0].payload
        assert events[2].payload is None
        assert events[2].difference_list == lifecycle[2].difference_list
        assert events[0].user == {'id': 'analyst', 'name': 'Analyst', 'email': 'analyst@example.com'}

    def test_csv_rows_without_required_fields_are_skipped(self, tmp_path):
        path = tmp_path / "audit.csv"
        pd.DataFrame([
            {'created_timestamp': '2024-02-01T08:00:00Z', 'entity_name': 'Trade', 'action': 'create', 'payload': 'NULL'},
            {'created_timestamp': '', 'entity_name': 'Trade', 'action': 'update', 'payload': ''},
            {'created_timestamp': '2024-02-01T08:01:00Z', 'entity_name': 'Trade', 'action': '', 'payload': ''},
        ]).to_csv(path, index=False)

        loader = EventLoader(str(path))
        errors = loader.load()

        assert len(loader.get_events()) == 1
        assert loader.get_skipped_count() == 2
        assert "audit.csv: skipped 2 invalid row(s)" in errors
        assert "audit.csv: event[1]: Missing required field 'created_timestamp'" in errors
        assert "audit.csv: event[2]: Missing required field 'action'" in errors
        # 'NULL' stays as exported; the sorter treats it as absent
        assert loader.get_events()[0].payload == 'NULL'

    def test_csv_user_cells_are_decoded(self, tmp_path):
        path = tmp_path / "audit.csv"
        pd.DataFrame([
            {'created_timestamp': '2024-02-01T08:00:00Z', 'entity_name': 'Trade', 'action': 'create',
             'payload': '{"tradeId": "T-1"}', 'user': ''},
            {'created_timestamp': '2024-02-01T08:01:00Z', 'entity_name': 'Trade', 'action': 'update',
             'payload': '', 'user': '{"id": "u1", "name": "Ops", "email": "ops@example.com"}'},
        ]).to_csv(path, index=False)

        loader = EventLoader(str(path))
        errors = loader.load()
        events = loader.get_events()

        assert errors == []
        assert loader.get_skipped_count() == 0
        assert [e.user for e in events] == [None, {'id': 'u1', 'name': 'Ops', 'email': 'ops@example.com'}]

    def test_csv_user_cell_that_is_not_an_object_is_skipped(self, tmp_path):
        path = tmp_path / "audit.csv"
        pd.DataFrame([
            {'created_timestamp': '2024-02-01T08:00:00Z', 'entity_name': 'Trade', 'action': 'create', 'user': 'bob'},
            {'created_timestamp': '2024-02-01T08:01:00Z', 'entity_name': 'Trade', 'action': 'update', 'user': ''},
        ]).to_csv(path, index=False)

        loader = EventLoader(str(path))
        errors = loader.load()

        assert len(loader.get_events()) == 1
        assert "audit.csv: event[0]: 'user' must be an object" in errors

    def test_csv_missing_required_column(self, tmp_path):
        path = tmp_path / "audit.csv"
        pd.DataFrame([{'entity_name': 'Trade', 'action': 'create'}]).to_csv(path, index=False)

        loader = EventLoader(str(path))
        errors = loader.load()

        assert "audit.csv: Missing required field 'created_timestamp'" in errors
        assert loader.get_events() == []

    def test_json_list_and_wrapped(self, tmp_path, lifecycle):
        records = [e.to_record() for e in lifecycle]
        for name, content in [("list.json", records), ("wrapped.json", {'events': records})]:
            path = tmp_path / name
            with open(path, 'w') as f:
                json.dump(content, f)
            loader = EventLoader(str(path))
            assert loader.load() == []
            assert loader.get_events() == lifecycle

    def test_json_wrong_shape(self, tmp_path):
        path = tmp_path / "bad.json"
        with open(path, 'w') as f:
            json.dump({'rows': []}, f)
        loader = EventLoader(str(path))
        errors = loader.load()
        assert errors and 'expected a list of events' in errors[0]

    def test_time_range(self, tmp_path, lifecycle):
        path = tmp_path / "audit.csv"
        write_events_csv(lifecycle, path)
        loader = EventLoader(str(path))
        loader.load()
        start_ts, end_ts = loader.get_time_range()
        assert start_ts == START_TS
        assert end_ts == START_TS + pd.Timedelta(minutes=len(lifecycle) - 1)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            EventLoader(str(tmp_path / "nope.csv"))

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "audit.xlsx"
        path.write_bytes(b"")
        with pytest.raises(ValueError):
            EventLoader(str(path))


class TestSchema:
    """Record and frame validation"""

    def test_from_record_ignores_unknown_columns(self):
        event = AuditEvent.from_record({
            'created_timestamp': '2024-02-01T08:00:00Z', 'action': 'create',
            'entity_name': None, 'tenant': 'x'
        })
        assert event.entity_name == ''
        assert event.payload is None

    def test_from_record_fails_fast(self):
        with pytest.raises(InvalidEventError):
            AuditEvent.from_record({'entity_name': 'Trade'})

    def test_validate_record_user_shape(self):
        problems = EventSchema.validate_record(
            {'created_timestamp': '2024-02-01T08:00:00Z', 'action': 'create', 'user': 'bob'}, 3
        )
        assert problems == ["event[3]: 'user' must be an object"]

    def test_validate_frame_flags_bad_timestamps(self):
        df = pd.DataFrame({
            'created_timestamp': ['2024-02-01T08:00:00Z', 'later'],
            'entity_name': ['Trade', 'Trade'],
            'action': ['create', 'update'],
        })
        assert EventSchema.validate_frame(df) == ["events: 1 row(s) with unparseable 'created_timestamp'"]
