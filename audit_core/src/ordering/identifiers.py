"""Identifier extraction from audit payloads and difference lists"""
import json
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple


_SEPARATORS = re.compile(r'[\s_\-.]+')


def normalize_identifier_key(key: str) -> str:
    """Canonical label: 'tradeId', 'trade_id' and 'TradeID' all become 'tradeid'"""
    return _SEPARATORS.sub('', str(key)).lower()


@dataclass(frozen=True)
class DependencyRules:
    """Which keys count as identifiers and which actions register creators"""
    suffix: str = 'id'
    aliases: Tuple[str, ...] = ('uuid', 'tradeid')
    create_actions: Tuple[str, ...] = ('create',)
    identifier_edges_only: bool = True
    log_parse_failures: bool = True

    @classmethod
    def from_params(cls, params: Optional[Any] = None) -> 'DependencyRules':
        """Build from a ParamsLoader (defaults to base_params.json)"""
        if params is None:
            from audit_core.config.params_loader import ParamsLoader
            params = ParamsLoader()
        return cls(
            suffix=str(params.get('identifiers', 'suffix', default='id')).lower(),
            aliases=tuple(normalize_identifier_key(a) for a in params.get('identifiers', 'aliases', default=[])),
            create_actions=tuple(a.lower() for a in params.get('ordering', 'create_actions', default=['create'])),
            identifier_edges_only=bool(params.get('ordering', 'identifier_edges_only', default=True)),
            log_parse_failures=bool(params.get('ordering', 'log_parse_failures', default=True)),
        )

    def is_create(self, action: Optional[str]) -> bool:
        return bool(action) and str(action).strip().lower() in self.create_actions


DEFAULT_RULES = DependencyRules()


def is_identifier_key(key: str, rules: DependencyRules = DEFAULT_RULES) -> bool:
    """True when a key name ends in the identifier suffix or is a known alias"""
    if not isinstance(key, str) or not key:
        return False
    if key.lower().endswith(rules.suffix):
        return True
    return normalize_identifier_key(key) in rules.aliases


def _is_recordable(value: Any) -> bool:
    # bool is an int subclass; flags never identify a record
    if isinstance(value, bool) or value is None:
        return False
    if isinstance(value, str):
        text = value.strip()
        return bool(text) and text.upper() != 'NULL'
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return not math.isnan(value) and not math.isinf(value)
    return False


def extract_identifiers(
    obj: Any,
    path_prefix: str = '',
    rules: DependencyRules = DEFAULT_RULES,
    identifiers_only: bool = False
) -> Dict[str, Any]:
    """
    Flatten a parsed JSON value into ``{key: scalar}``.

    Identifier keys are recorded under their canonical label so that the same
    identifier collides across differently shaped records; every other scalar
    is recorded under its dotted path unless ``identifiers_only`` is set.
    Nested results merge into the parent in traversal order, later writes win.

    Args:
        obj: Parsed JSON value (dict, list, scalar or None)
        path_prefix: Dotted path of ``obj`` inside its container
        rules: Identifier suffix / alias rules
        identifiers_only: Skip non-identifier keys entirely

    Returns:
        Mapping of label or dotted path to scalar value ({} for scalars/None)
    """
    found: Dict[str, Any] = {}

    if isinstance(obj, dict):
        items = ((str(k), v) for k, v in obj.items())
    elif isinstance(obj, list):
        items = ((str(i), v) for i, v in enumerate(obj))
    else:
        return found

    for key, value in items:
        path = f"{path_prefix}.{key}" if path_prefix else key

        if isinstance(value, (dict, list)):
            found.update(extract_identifiers(value, path, rules, identifiers_only))
            continue

        if not _is_recordable(value):
            continue

        if isinstance(obj, dict) and is_identifier_key(key, rules):
            found[normalize_identifier_key(key)] = value
        elif not identifiers_only:
            found[path] = value

    return found


def format_pair(key: str, value: Any) -> str:
    """Edge key ``label=value``; 7 and 7.0 and "7" are the same identifier"""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str):
        value = value.strip()
    return f"{key}={value}"


def identifier_pairs(identifiers: Dict[str, Any]) -> List[str]:
    return [format_pair(k, v) for k, v in identifiers.items()]


def parse_json_field(raw: Any, errors: Optional[List[str]] = None) -> Any:
    """
    Parse a payload / difference_list column.

    Already-parsed dicts and lists pass through. Empty cells, the literal
    ``NULL`` export marker and non-string values give None. Invalid JSON gives
    None and, when ``errors`` is passed, appends the decoder message to it.
    """
    if isinstance(raw, (dict, list)):
        return raw
    if not isinstance(raw, str):
        return None

    text = raw.strip()
    if not text or text.upper() == 'NULL':
        return None

    try:
        return json.loads(text)
    except ValueError as e:
        if errors is not None:
            errors.append(str(e))
        return None


def difference_list_as_object(parsed: Any) -> Any:
    """
    Collapse change records into ``{field: value}``.

    Each record names its field under ``label`` (or ``field``); the new value
    is used, or the old one when the change cleared the field. Anything that
    is not a list of records is returned unchanged.
    """
    if not isinstance(parsed, list):
        return parsed

    changes: Dict[str, Any] = {}
    for record in parsed:
        if not isinstance(record, dict):
            continue
        name = record.get('label') or record.get('field')
        if not name:
            continue
        value = record.get('newValue')
        if not isinstance(value, (dict, list)) and not _is_recordable(value):
            value = record.get('oldValue')
        changes[str(name)] = value
    return changes


def merged_references(payload: Any, difference_list: Any) -> Dict[str, Any]:
    """Object walked for edge construction: payload plus collapsed changes"""
    merged: Dict[str, Any] = {}
    if payload is not None:
        merged['payload'] = payload
    if difference_list is not None:
        merged['difference_list'] = difference_list_as_object(difference_list)
    return merged
