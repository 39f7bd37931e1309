"""
Sort an audit log export into logical business order.
Writes the reordered events and, optionally, an order report.
"""
import argparse
import json
import sys
from pathlib import Path
import pandas as pd

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from audit_core.config.params_loader import ParamsLoader
from audit_core.src.data.loader import EventLoader
from audit_core.src.data.schema import EventSchema
from audit_core.src.ordering.sequencing import sort_events_by_timestamp, sort_events_logically
from audit_core.src.ordering.stages import StageClassifier
from audit_core.src.reporting import write_report


def write_events(events, output_path: Path) -> None:
    """Write events as JSON (list of records) or CSV, by suffix"""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    records = [e.to_record() for e in events]

    if output_path.suffix.lower() == '.csv':
        df = pd.DataFrame(records, columns=EventSchema.REQUIRED_FIELDS + EventSchema.OPTIONAL_FIELDS)
        df['user'] = df['user'].map(lambda u: json.dumps(u) if u else '')
        df.to_csv(output_path, index=False)
    else:
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(records, f, indent=2)


def main():
    parser = argparse.ArgumentParser(description="Sort audit events into logical business order")
    parser.add_argument("--input", type=str, required=True, help="CSV or JSON audit export")
    parser.add_argument("--output", type=str, required=True, help="Output path (.json or .csv)")
    parser.add_argument("--order", choices=["logical", "timestamp"], default="logical", help="Ordering to apply")
    parser.add_argument("--report-dir", type=str, help="Write order_report.csv and summary.json here")
    parser.add_argument("--overrides", type=str, help="JSON file of parameter overrides")

    args = parser.parse_args()

    params = ParamsLoader(overrides_path=Path(args.overrides) if args.overrides else None)

    loader = EventLoader(args.input)
    errors = loader.load()
    for error in errors:
        print(f"WARNING: {error}")

    events = loader.get_events()
    if not events:
        print("No events to sort.")
        sys.exit(1)

    start_ts, end_ts = loader.get_time_range()
    print(f"Loaded {len(events)} events ({start_ts} -> {end_ts})")

    forensic_log = []
    if args.order == "logical":
        ordered = sort_events_logically(events, params=params, forensic_log=forensic_log)
    else:
        ordered = sort_events_by_timestamp(events)

    write_events(ordered, Path(args.output))
    print(f"Wrote {len(ordered)} events to {args.output}")

    if args.report_dir:
        summary = write_report(
            events, ordered, args.report_dir, StageClassifier.from_params(params), params.snapshot()
        )
        print(f"Moved {summary['moved_events']} of {summary['total_events']} events "
              f"(max displacement {summary['max_abs_displacement']})")
        if forensic_log:
            with open(Path(args.report_dir) / "ordering_log.json", 'w') as f:
                json.dump(forensic_log, f, indent=2, default=str)


if __name__ == "__main__":
    main()
