"""Logical reordering of audit log events.

Events recorded out of business order (latency, clock skew, asynchronous
writes) are put back in order by process stage and by which event created
the identifiers the others reference.
"""
from audit_core.src.data.schema import AuditEvent, InvalidEventError
from audit_core.src.ordering.sequencing import HybridSequencer, sort_events_by_timestamp, sort_events_logically

__all__ = [
    'AuditEvent',
    'HybridSequencer',
    'InvalidEventError',
    'sort_events_by_timestamp',
    'sort_events_logically',
]
