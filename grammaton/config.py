# grammaton/config.py
import os
import json
from typing import Any, Dict, Optional, Tuple

from grammaton.automaton.builder import DEFAULT_MAX_STATES, DEFAULT_STACK_LIMIT

_DEFAULTS: Dict[str, Any] = {
    "start_symbol": None,
    "stack_limit": DEFAULT_STACK_LIMIT,
    "max_states": DEFAULT_MAX_STATES,
    "output_format": "binary",
    "log_level": "INFO",
    "log_to_file": False,
    "log_file": "~/.grammaton/grammaton.log",
    "max_length": 1000,
    "stop_probability": 0.3,
}

# Accepted JSON value types per key
_TYPES: Dict[str, Tuple[type, ...]] = {
    "start_symbol": (str, type(None)),
    "stack_limit": (int,),
    "max_states": (int,),
    "output_format": (str,),
    "log_level": (str,),
    "log_to_file": (bool,),
    "log_file": (str,),
    "max_length": (int,),
    "stop_probability": (int, float),
}


class GrammatonConfigError(Exception):
    """Configuration file could not be read or written."""
    pass


class GrammatonConfig:
    def __init__(self, **kwargs):
        data = dict(_DEFAULTS)
        data.update(kwargs)
        data["log_file"] = os.path.expanduser(data["log_file"])
        self._data = data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def update(self, **kwargs) -> None:
        """Override values, ignoring None (unset CLI flags)."""
        for key, value in kwargs.items():
            if value is not None:
                self._data[key] = value

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._data)

    def __getattr__(self, name: str) -> Any:
        if name in self._data:
            return self._data[name]
        raise AttributeError(f"'GrammatonConfig' object has no attribute '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "_data":
            super().__setattr__(name, value)
        else:
            self._data[name] = value

    @classmethod
    def load(cls, path: Optional[str] = None) -> "GrammatonConfig":
        """
        Load config from `path` (default ~/.grammaton/config.json).

        A missing default config is created with default values.
        """
        if path is None:
            config_path = os.path.join(_ensure_grammaton_dir(), "config.json")
            if not os.path.exists(config_path):
                config = cls()
                config.save(config_path)
                return config
        else:
            config_path = os.path.expanduser(path)

        try:
            with open(config_path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise GrammatonConfigError(f"Failed to load config from {config_path}: {e}")

        if not isinstance(data, dict):
            raise GrammatonConfigError(f"Config file {config_path} must contain a JSON object")
        unknown = sorted(set(data) - set(_DEFAULTS))
        if unknown:
            raise GrammatonConfigError(f"Unknown config keys in {config_path}: {', '.join(unknown)}")
        for key, value in data.items():
            # bool is an int subclass; only log_to_file takes one
            if not isinstance(value, _TYPES[key]) or (isinstance(value, bool) and bool not in _TYPES[key]):
                expected = " or ".join(t.__name__ for t in _TYPES[key])
                raise GrammatonConfigError(
                    f"Config key '{key}' in {config_path} must be {expected}, got {type(value).__name__}"
                )
        return cls(**data)

    def save(self, path: Optional[str] = None) -> None:
        config_path = path or os.path.join(_ensure_grammaton_dir(), "config.json")
        try:
            with open(config_path, "w") as f:
                json.dump(self._data, f, indent=2)
        except OSError as e:
            raise GrammatonConfigError(f"Failed to save Grammaton config: {e}")


def _ensure_grammaton_dir() -> str:
    """Ensure that ~/.grammaton/ directory exists. Return its path."""
    home = os.path.expanduser("~")
    grammaton_dir = os.path.join(home, ".grammaton")
    os.makedirs(grammaton_dir, exist_ok=True)
    return grammaton_dir
