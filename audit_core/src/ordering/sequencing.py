"""Stage-then-dependency sequencing of audit events"""
from typing import Any, Dict, List, Mapping, Optional, Sequence

from audit_core.src.data.schema import EventSchema, InvalidEventError
from audit_core.src.ordering.identifiers import DependencyRules
from audit_core.src.ordering.stages import StageClassifier
from audit_core.src.ordering.topology import event_field, timestamp_sort_key, topological_sort


class HybridSequencer:
    """Sequence events by business stage, then by inferred dependencies"""

    def __init__(
        self,
        classifier: Optional[StageClassifier] = None,
        rules: Optional[DependencyRules] = None,
        forensic_log: Optional[List[Dict]] = None
    ):
        self.classifier = classifier if classifier is not None else StageClassifier.from_params()
        self.rules = rules if rules is not None else DependencyRules.from_params()
        self.forensic_log = forensic_log

    @classmethod
    def from_params(cls, params: Any, forensic_log: Optional[List[Dict]] = None) -> 'HybridSequencer':
        return cls(StageClassifier.from_params(params), DependencyRules.from_params(params), forensic_log)

    def sequence_events(self, events: Sequence[Any]) -> List[Any]:
        """
        Sequence events in logical order.

        Order:
        1. Stage key ascending (planned obligation, trade, cost, ... invoice,
           unclassified last)
        2. Within a stage: creators before the events that reference what
           they created
        3. Whatever a dependency cycle leaves unresolved: oldest timestamp first
        """
        grouped = self.group_by_stage(events)

        sequenced: List[Any] = []
        for stage_key in sorted(grouped):
            sequenced.extend(topological_sort(
                grouped[stage_key], self.rules, self.forensic_log, self.classifier.stage_name(stage_key)
            ))
        return sequenced

    def group_by_stage(self, events: Sequence[Any]) -> Dict[int, List[Any]]:
        """Group events by stage key, keeping recorded order inside each group"""
        grouped: Dict[int, List[Any]] = {}
        for event in events:
            stage_key = self.classifier.classify(event_field(event, 'entity_name'))
            grouped.setdefault(stage_key, []).append(event)
        return grouped


def sort_events_by_timestamp(events: Sequence[Any], ascending: bool = True) -> List[Any]:
    """Recorded-time view; unparseable timestamps always go last"""
    indexed = list(enumerate(events))
    parsed = [(timestamp_sort_key(event_field(e, 'created_timestamp'), i), e) for i, e in indexed]
    valid = [p for p in parsed if p[0][0] == 0]
    invalid = [p for p in parsed if p[0][0] == 1]
    # Stable on the recorded position in both directions
    valid.sort(key=lambda p: (p[0][1] if ascending else -p[0][1], p[0][2]))
    return [e for _, e in valid] + [e for _, e in invalid]


def _check_events(events: Any) -> None:
    if not isinstance(events, (list, tuple)):
        raise TypeError(f"events must be a list of audit events, got {type(events).__name__}")

    problems = []
    for position, event in enumerate(events):
        if isinstance(event, Mapping):
            problems.extend(EventSchema.validate_record(event, position))
        elif all(hasattr(event, f) for f in EventSchema.REQUIRED_FIELDS):
            record = {f: getattr(event, f) for f in EventSchema.REQUIRED_FIELDS}
            problems.extend(EventSchema.validate_record(record, position))
        else:
            problems.append(f"event[{position}]: expected an AuditEvent or mapping, got {type(event).__name__}")
    if problems:
        raise InvalidEventError('; '.join(problems))


def sort_events_logically(
    events: Sequence[Any],
    params: Optional[Any] = None,
    forensic_log: Optional[List[Dict]] = None
) -> List[Any]:
    """
    Reorder audit events into inferred business order.

    Args:
        events: List of AuditEvent objects or mappings, in recorded order
        params: Optional ParamsLoader (defaults to base_params.json)
        forensic_log: Optional list collecting structured ordering log entries

    Returns:
        New list holding the same event objects, permuted

    Raises:
        TypeError: ``events`` is not a list or tuple
        InvalidEventError: an element is unusable or lacks a required field
    """
    _check_events(events)
    if params is None:
        sequencer = HybridSequencer(forensic_log=forensic_log)
    else:
        sequencer = HybridSequencer.from_params(params, forensic_log)
    return sequencer.sequence_events(events)
