"""Business-process stage classification of audit entities"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


UNCLASSIFIED_STAGE = 'unclassified'


@dataclass(frozen=True)
class StageDefinition:
    """One business-process phase, matched by lowercase keyword substrings"""
    name: str
    keywords: Tuple[str, ...]
    exclude: Tuple[str, ...] = field(default_factory=tuple)  # e.g. 'cost' keeps TradeCost out of 'trade'

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StageDefinition':
        return cls(
            name=data['name'],
            keywords=tuple(k.lower() for k in data.get('keywords', [])),
            exclude=tuple(k.lower() for k in data.get('exclude', [])),
        )

    def matches(self, lower_entity_name: str) -> bool:
        if not any(k in lower_entity_name for k in self.keywords):
            return False
        return not any(k in lower_entity_name for k in self.exclude)


class StageClassifier:
    """Maps an entity name to the index of the first matching stage.

    Unmatched, empty, or missing names get ``len(definitions)`` so that they
    sort after every recognised stage.
    """

    def __init__(self, definitions: List[StageDefinition]):
        self.definitions: Tuple[StageDefinition, ...] = tuple(definitions)

    @classmethod
    def from_params(cls, params: Optional[Any] = None) -> 'StageClassifier':
        """Build from a ParamsLoader (defaults to base_params.json)"""
        if params is None:
            from audit_core.config.params_loader import ParamsLoader
            params = ParamsLoader()
        return cls([StageDefinition.from_dict(d) for d in params.get_stage_table()])

    @property
    def terminal_key(self) -> int:
        return len(self.definitions)

    def classify(self, entity_name: Optional[str]) -> int:
        if not entity_name:
            return self.terminal_key

        lower_entity_name = str(entity_name).lower()
        for key, definition in enumerate(self.definitions):
            if definition.matches(lower_entity_name):
                return key
        return self.terminal_key

    def stage_name(self, key: int) -> str:
        if 0 <= key < len(self.definitions):
            return self.definitions[key].name
        return UNCLASSIFIED_STAGE

    def stage_names(self) -> List[str]:
        """All stage names in process order, terminal bucket last"""
        return [d.name for d in self.definitions] + [UNCLASSIFIED_STAGE]
