"""Report generation: how the logical order differs from the recorded one"""
import hashlib
import json
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
import numpy as np
import pandas as pd

from audit_core.src.ordering.stages import StageClassifier
from audit_core.src.ordering.topology import event_field


def events_to_frame(events: Sequence[Any], classifier: Optional[StageClassifier] = None) -> pd.DataFrame:
    """One row per event with parsed UTC timestamp and stage columns"""
    classifier = classifier if classifier is not None else StageClassifier.from_params()

    rows = []
    for position, event in enumerate(events):
        user = event_field(event, 'user') or {}
        stage_key = classifier.classify(event_field(event, 'entity_name'))
        rows.append({
            'recorded_position': position,
            'created_timestamp': event_field(event, 'created_timestamp'),
            'entity_name': event_field(event, 'entity_name') or '',
            'action': event_field(event, 'action'),
            'stage_key': stage_key,
            'stage_name': classifier.stage_name(stage_key),
            'user_name': user.get('name') if isinstance(user, dict) else None,
        })

    df = pd.DataFrame(rows, columns=[
        'recorded_position', 'created_timestamp', 'entity_name', 'action',
        'stage_key', 'stage_name', 'user_name'
    ])
    df['ts'] = pd.to_datetime(df['created_timestamp'], utc=True, errors='coerce', format='ISO8601')
    return df


def build_order_report(
    events: Sequence[Any],
    ordered: Sequence[Any],
    classifier: Optional[StageClassifier] = None
) -> pd.DataFrame:
    """
    Recorded vs logical position of every event.

    ``ordered`` must be a permutation of ``events`` holding the same objects
    (as returned by sort_events_logically). displacement is
    logical_position - recorded_position, so negative means the event moved
    earlier than it was recorded.
    """
    if len(events) != len(ordered):
        raise ValueError(f"ordered has {len(ordered)} events, expected {len(events)}")

    df = events_to_frame(events, classifier)

    # Identity lookup: equal events recorded twice are still distinct rows
    recorded_by_id: Dict[int, List[int]] = {}
    for position, event in enumerate(events):
        recorded_by_id.setdefault(id(event), []).append(position)

    logical = np.empty(len(events), dtype=int)
    for logical_position, event in enumerate(ordered):
        slots = recorded_by_id.get(id(event))
        if not slots:
            raise ValueError(f"ordered[{logical_position}] is not one of the input events")
        logical[slots.pop(0)] = logical_position

    df['logical_position'] = logical
    df['displacement'] = df['logical_position'] - df['recorded_position']
    return df.sort_values('logical_position').reset_index(drop=True)


def stage_summary(events: Sequence[Any], classifier: Optional[StageClassifier] = None) -> pd.DataFrame:
    """Per-stage event counts and time span, in process order"""
    classifier = classifier if classifier is not None else StageClassifier.from_params()
    df = events_to_frame(events, classifier)

    rows = []
    for stage_key, stage_name in enumerate(classifier.stage_names()):
        stage_df = df[df['stage_key'] == stage_key]
        rows.append({
            'stage_key': stage_key,
            'stage_name': stage_name,
            'event_count': int(len(stage_df)),
            'present': bool(len(stage_df) > 0),
            'first_ts': stage_df['ts'].min() if len(stage_df) else pd.NaT,
            'last_ts': stage_df['ts'].max() if len(stage_df) else pd.NaT,
        })
    return pd.DataFrame(rows)


def write_report(
    events: Sequence[Any],
    ordered: Sequence[Any],
    output_dir: str,
    classifier: Optional[StageClassifier] = None,
    params_snapshot: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Write order_report.csv and summary.json; returns the summary dict.

    When a params snapshot is given it is stored with a short hash so runs
    with different stage tables or identifier rules can be told apart.
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    report = build_order_report(events, ordered, classifier)
    report.drop(columns=['ts']).to_csv(output_path / 'order_report.csv', index=False)

    stages = stage_summary(events, classifier)
    displacement = report['displacement'].to_numpy() if len(report) else np.zeros(0, dtype=int)
    summary = {
        'generated_at': datetime.now(UTC).isoformat(),
        'total_events': int(len(report)),
        'moved_events': int(np.count_nonzero(displacement)),
        'max_abs_displacement': int(np.abs(displacement).max()) if displacement.size else 0,
        'mean_abs_displacement': float(np.abs(displacement).mean()) if displacement.size else 0.0,
        'stages': [
            {
                'stage_key': int(row.stage_key),
                'stage_name': row.stage_name,
                'event_count': int(row.event_count),
                'first_ts': None if pd.isna(row.first_ts) else row.first_ts.isoformat(),
                'last_ts': None if pd.isna(row.last_ts) else row.last_ts.isoformat(),
            }
            for row in stages.itertuples() if row.present
        ],
    }

    if params_snapshot is not None:
        params_json_str = json.dumps(params_snapshot, sort_keys=True, default=str)
        summary['params_hash'] = hashlib.sha256(params_json_str.encode()).hexdigest()[:16]
        summary['params_snapshot'] = params_snapshot

    with open(output_path / 'summary.json', 'w') as f:
        json.dump(summary, f, indent=2)

    return summary
