"""Single read-only view over incoming search parameters.

Search parameters reach the catalog in two shapes: URL query parameters
(Starlette ``QueryParams`` or anything exposing ``get``/``has``) and plain
mappings built by internal callers, where list-valued fields may already be
lists. ``SearchParams`` hides the difference so the builders only ever ask
"what is the value of this name, if any".
"""

from collections.abc import Mapping
from typing import Any


class SearchParams:
    """Lookup from parameter name to an optional string or list of strings."""

    def __init__(self, source: Any = None):
        self._source = source if source is not None else {}

    @classmethod
    def wrap(cls, source: Any) -> "SearchParams":
        if isinstance(source, cls):
            return source
        return cls(source)

    def has(self, name: str) -> bool:
        has = getattr(self._source, "has", None)
        if callable(has):
            return bool(has(name))
        if isinstance(self._source, Mapping):
            return name in self._source
        return False

    def get(self, name: str) -> Any:
        """Return the value for `name`; empty strings count as absent."""
        getlist = getattr(self._source, "getlist", None)
        if callable(getlist):
            values = [v for v in getlist(name) if v != ""]
            if len(values) > 1:
                return values
            return values[0] if values else None

        getter = getattr(self._source, "get", None)
        if not callable(getter):
            return None
        value = getter(name)
        if value is None or value == "":
            return None
        return value
