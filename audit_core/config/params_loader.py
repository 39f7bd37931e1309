"""Load and access ordering parameters from base_params.json"""
import json
from pathlib import Path
from typing import Any, Dict, List, Optional
import copy
import warnings


class ParamsLoader:
    """Single source of truth for stage tables and identifier rules"""

    def __init__(self, params_path: Optional[str] = None, overrides_path: Optional[Path] = None, overrides: Dict[str, Any] = None, strict: bool = True):
        if params_path is not None:
            params_file = Path(params_path)
        else:
            # Default to base_params.json in config directory
            params_file = Path(__file__).parent / "base_params.json"

        with open(params_file, 'r') as f:
            self._params = json.load(f)

        # Apply overrides from file if provided
        if overrides_path is not None:
            with open(overrides_path, 'r') as f:
                file_overrides = json.load(f)
            self._params = self._deep_merge(self._params, file_overrides, strict=strict)

        if overrides:
            self._params = self._deep_merge(self._params, overrides, strict=strict)

    def _deep_merge(self, base: Any, override: Any, strict: bool = True, path: str = "") -> Any:
        """
        Recursive merge with strict type checking.

        Rules:
        - dict + dict -> recursive merge
        - list in override -> REPLACE base list (stage tables are replaced whole)
        - scalar -> replace
        - unknown keys in strict mode -> raise KeyError
        - type mismatch -> raise TypeError (unless safe numeric cast)
        """
        if isinstance(base, dict) and isinstance(override, dict):
            result = copy.deepcopy(base)
            for k, v in override.items():
                new_path = f"{path}.{k}" if path else k

                if k not in base:
                    if strict:
                        raise KeyError(f"Override key '{new_path}' does not exist in base params.")
                    else:
                        warnings.warn(f"Override key '{new_path}' does not exist in base params. Adding it.")
                        result[k] = v
                else:
                    result[k] = self._deep_merge(base[k], v, strict=strict, path=new_path)
            return result

        if not isinstance(override, type(base)):
            # bool is an int subclass but never a numeric override
            numeric = (int, float)
            if (isinstance(base, numeric) and isinstance(override, numeric)
                    and not isinstance(base, bool) and not isinstance(override, bool)):
                pass
            elif base is None or override is None:
                pass
            else:
                msg = f"Type mismatch at '{path}': expected {type(base).__name__}, got {type(override).__name__}"
                if strict:
                    raise TypeError(msg)
                else:
                    warnings.warn(msg)

        return override

    def get(self, *keys: str, default: Any = None) -> Any:
        """Get nested parameter value from a tuple of keys"""
        value = self._params
        for key in keys:
            if isinstance(value, dict):
                value = value.get(key, default)
            else:
                return default
        return value

    def get_stage_table(self) -> List[Dict[str, Any]]:
        """Ordered stage definitions as plain dicts"""
        return copy.deepcopy(self.get('stages', default=[]))

    def snapshot(self) -> Dict[str, Any]:
        """Create a snapshot of parameters used (for reporting)"""
        return copy.deepcopy(self._params)
