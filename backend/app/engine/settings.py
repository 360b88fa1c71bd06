"""Typed accessors over a node's persisted settings dict."""

import json
from typing import Any


class NodeSettings:
    """Settings as stored in the workflow graph (node.data.settings).

    Getters fall back to the default whenever the stored value has the
    wrong type, so nodes never see e.g. a string where a number is expected.
    """

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(values or {})

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def get_string(self, key: str, default: str = "") -> str:
        value = self._values.get(key)
        if value is None:
            return default
        if isinstance(value, str):
            return value if value.strip() else default
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return default

    def get_number(self, key: str, default: float = 0) -> float:
        value = self._values.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        return default

    def get_int(self, key: str, default: int = 0) -> int:
        return int(self.get_number(key, default))

    def get_boolean(self, key: str, default: bool = False) -> bool:
        value = self._values.get(key)
        return value if isinstance(value, bool) else default

    def get_json(self, key: str, default: Any = None) -> Any:
        """Return a list/dict setting, decoding it first when stored as JSON text."""
        value = self._values.get(key)
        if isinstance(value, (list, dict)):
            return value
        if isinstance(value, str) and value.strip():
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return default
        return default

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def to_dict(self) -> dict[str, Any]:
        return dict(self._values)
