"""Creation-before-reference ordering of audit events"""
import heapq
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import pandas as pd

from audit_core.src.ordering.identifiers import (
    DEFAULT_RULES,
    DependencyRules,
    extract_identifiers,
    identifier_pairs,
    merged_references,
    parse_json_field,
)
from audit_core.src.ordering.logging import event_reference, log_ordering_event


def event_field(event: Any, name: str) -> Any:
    """Read a field from an AuditEvent or a plain mapping"""
    if isinstance(event, Mapping):
        return event.get(name)
    return getattr(event, name, None)


def parse_timestamp(raw: Any) -> pd.Timestamp:
    """UTC timestamp, or NaT when the value cannot be parsed"""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return pd.NaT
    try:
        return pd.to_datetime(raw, utc=True)
    except (ValueError, TypeError, OverflowError):
        return pd.NaT


def timestamp_sort_key(raw: Any, index: int) -> Tuple[int, int, int]:
    """Ascending time, unparseable last, recorded position breaks ties"""
    ts = parse_timestamp(raw)
    if pd.isna(ts):
        return (1, 0, index)
    return (0, ts.value, index)


class CreatorRegistry:
    """Owner of each ``label=value`` pair; the first registration is final"""

    def __init__(self):
        self._owners: Dict[str, int] = {}

    def register_if_absent(self, pair: str, index: int) -> bool:
        if pair in self._owners:
            return False
        self._owners[pair] = index
        return True

    def owner_of(self, pair: str) -> Optional[int]:
        return self._owners.get(pair)

    def __len__(self) -> int:
        return len(self._owners)


@dataclass
class DependencyGraph:
    """Index-based DAG: node i is the event at input position i"""
    size: int
    adjacency: List[List[int]] = field(default_factory=list)
    in_degree: List[int] = field(default_factory=list)
    edge_keys: Dict[Tuple[int, int], List[str]] = field(default_factory=dict)

    def __post_init__(self):
        if not self.adjacency:
            self.adjacency = [[] for _ in range(self.size)]
        if not self.in_degree:
            self.in_degree = [0] * self.size

    def add_edge(self, creator: int, dependent: int, pair: str = '') -> bool:
        """Add creator -> dependent. Self-loops and repeats are ignored."""
        if creator == dependent:
            return False
        edge = (creator, dependent)
        if edge in self.edge_keys:
            self.edge_keys[edge].append(pair)
            return False
        self.adjacency[creator].append(dependent)
        self.in_degree[dependent] += 1
        self.edge_keys[edge] = [pair]
        return True

    @property
    def edge_count(self) -> int:
        return len(self.edge_keys)

    def dependencies_of(self, index: int) -> List[int]:
        """Creators the event at ``index`` references, ascending"""
        return sorted(c for c, d in self.edge_keys if d == index)


def _parsed_fields(
    event: Any,
    index: int,
    rules: DependencyRules,
    forensic_log: Optional[List[Dict]],
    stage: Optional[str] = None
) -> Tuple[Any, Any]:
    parsed = []
    for name in ('payload', 'difference_list'):
        errors: List[str] = []
        parsed.append(parse_json_field(event_field(event, name), errors))
        if errors and rules.log_parse_failures:
            log_ordering_event(
                'payload_parse_failure',
                {'index': index, 'field': name, 'entity_name': event_field(event, 'entity_name'), 'error': errors[0]},
                logger=forensic_log,
                stage=stage
            )
    return parsed[0], parsed[1]


def build_dependency_graph(
    events: Sequence[Any],
    rules: DependencyRules = DEFAULT_RULES,
    forensic_log: Optional[List[Dict]] = None,
    stage: Optional[str] = None
) -> DependencyGraph:
    """
    Infer creator -> dependent edges from identifier co-occurrence.

    A creator is the first "create" event whose payload holds a given
    ``label=value`` pair. Every event whose payload or difference list holds
    the same pair depends on it.
    """
    graph = DependencyGraph(len(events))
    parsed = [_parsed_fields(e, i, rules, forensic_log, stage) for i, e in enumerate(events)]

    # Creator registration pass
    registry = CreatorRegistry()
    for index, event in enumerate(events):
        payload = parsed[index][0]
        if payload is None or not rules.is_create(event_field(event, 'action')):
            continue
        created = extract_identifiers(payload, 'payload', rules, rules.identifier_edges_only)
        for pair in identifier_pairs(created):
            registry.register_if_absent(pair, index)

    # Edge construction pass
    for index in range(len(events)):
        payload, difference_list = parsed[index]
        references = merged_references(payload, difference_list)
        found = extract_identifiers(references, '', rules, rules.identifier_edges_only)
        for pair in identifier_pairs(found):
            creator = registry.owner_of(pair)
            if creator is not None:
                graph.add_edge(creator, index, pair)

    return graph


def order_indices(graph: DependencyGraph, timestamps: Sequence[Any]) -> Tuple[List[int], List[int]]:
    """
    Kahn's algorithm with a timestamp fallback.

    Returns (order, unresolved): ``order`` is a permutation of
    ``range(graph.size)``; ``unresolved`` lists the indices Kahn's algorithm
    could not place (members of, or downstream of, a cycle). Those are
    appended in timestamp order.

    The smallest ready index is always placed next, so an input that is
    already a valid order comes back unchanged.
    """
    in_degree = list(graph.in_degree)
    ready = [i for i in range(graph.size) if in_degree[i] == 0]
    heapq.heapify(ready)
    order: List[int] = []

    while ready:
        node = heapq.heappop(ready)
        order.append(node)
        for target in graph.adjacency[node]:
            in_degree[target] -= 1
            if in_degree[target] == 0:
                heapq.heappush(ready, target)

    unresolved: List[int] = []
    if len(order) < graph.size:
        placed = set(order)
        unresolved = [i for i in range(graph.size) if i not in placed]
        unresolved.sort(key=lambda i: timestamp_sort_key(timestamps[i], i))
        order.extend(unresolved)

    return order, unresolved


def topological_sort(
    events: Sequence[Any],
    rules: DependencyRules = DEFAULT_RULES,
    forensic_log: Optional[List[Dict]] = None,
    stage: Optional[str] = None
) -> List[Any]:
    """Reorder events so creators precede the events referencing them."""
    events = list(events)
    if len(events) <= 1:
        return events

    graph = build_dependency_graph(events, rules, forensic_log, stage)
    timestamps = [event_field(e, 'created_timestamp') for e in events]
    order, unresolved = order_indices(graph, timestamps)

    if unresolved:
        log_ordering_event(
            'cycle_fallback',
            {
                'events': len(events),
                'unresolved': unresolved,
                'members': [
                    event_reference(i, event_field(events[i], 'entity_name'), event_field(events[i], 'action'), timestamps[i])
                    for i in unresolved
                ],
                'edges': graph.edge_count,
            },
            logger=forensic_log,
            stage=stage
        )

    return [events[i] for i in order]
