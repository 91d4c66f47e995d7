"""
KestrelSessions - Parameter groups.

A ParameterGroup is a named, ordered mapping of string keys to values.
Sessions hold one group per name; the store binding skips empty groups
when persisting.
"""

from __future__ import annotations

from typing import Any, Iterator, Mapping


class ParameterGroup:
    """
    Named collection of session-scoped key/value data.

    The group copies whatever mapping it is given, so callers never share
    its storage.

    Example:
        >>> group = ParameterGroup("profile", {"lang": "en"})
        >>> group.get("lang")
        'en'
        >>> group.set_data({"theme": "dark"}).get_data()
        {'theme': 'dark'}
        >>> group.count()
        1
    """

    __slots__ = ("_name", "_data")

    def __init__(self, name: str, values: Mapping[str, Any] | None = None):
        self._name = name
        self._data: dict[str, Any] = dict(values or {})

    @property
    def name(self) -> str:
        """Group name (fixed at creation)."""
        return self._name

    def get(self, key: str, default: Any = None) -> Any:
        """Get value with default."""
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> ParameterGroup:
        self._data[key] = value
        return self

    def has(self, key: str) -> bool:
        return key in self._data

    def delete(self, key: str) -> ParameterGroup:
        self._data.pop(key, None)
        return self

    def get_data(self) -> dict[str, Any]:
        """Return a shallow copy of the group's values."""
        return dict(self._data)

    def set_data(self, values: Mapping[str, Any]) -> ParameterGroup:
        """
        Replace every value in the group.

        Args:
            values: New values; nothing from the previous mapping survives.
        """
        self._data = dict(values)
        return self

    def clear_data(self) -> ParameterGroup:
        self._data.clear()
        return self

    def count(self) -> int:
        """Number of entries."""
        return len(self._data)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __bool__(self) -> bool:
        return bool(self._data)

    def __repr__(self) -> str:
        return f"ParameterGroup({self._name!r}, {self._data!r})"
