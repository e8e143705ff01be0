import re
from collections.abc import ItemsView, Iterator, Mapping, MutableMapping
from typing import Any, Self, TypeVar, overload

from reqchain.types import HeadersType

_T = TypeVar("_T")
_MISSING: Any = object()

_TOKEN_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")


def _check_name(name: object) -> str:
    if not isinstance(name, str):
        msg = f"header name must be str, got {type(name).__name__!r}"
        raise TypeError(msg)
    if not _TOKEN_RE.fullmatch(name):
        msg = f"invalid HTTP header name: {name!r}"
        raise ValueError(msg)
    return name.lower()


def _check_value(value: object) -> str:
    if not isinstance(value, str):
        msg = f"header value must be str, got {type(value).__name__!r}"
        raise TypeError(msg)
    if "\r" in value or "\n" in value or "\x00" in value:
        msg = f"failed to parse header value: {value!r}"
        raise ValueError(msg)
    return value


class HeaderMapItemsView(ItemsView[str, str]):
    """View over every (name, value) pair of a HeaderMap, duplicates included."""

    _mapping: "HeaderMap"

    def __len__(self) -> int:
        return self._mapping.len()

    def __iter__(self) -> Iterator[tuple[str, str]]:
        yield from self._mapping._items

    def __contains__(self, item: object) -> bool:
        if not isinstance(item, tuple) or len(item) != 2:
            return False
        name, value = item
        if not isinstance(name, str):
            return False
        return (name.lower(), value) in self._mapping._items

    def __eq__(self, other: object) -> bool:
        if isinstance(other, HeaderMapItemsView):
            return list(self) == list(other)
        if isinstance(other, list):
            return list(self) == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"HeaderMapItemsView({list(self)!r})"


class HeaderMap(MutableMapping[str, str]):
    """Ordered multi-map of HTTP headers.

    Header names are case-insensitive and stored lower-cased. Mapping access returns the first value of a name,
    assignment replaces all values of a name. Use `append`/`getall` to work with repeated headers.
    """

    __slots__ = ("_items",)

    def __init__(self, other: HeadersType | None = None) -> None:
        """Create a header map, optionally filled from a mapping or a sequence of (name, value) pairs."""
        self._items: list[tuple[str, str]] = []
        if other is not None:
            self.extend(other)

    def __len__(self) -> int:
        return self.keys_len()

    def __iter__(self) -> Iterator[str]:
        return iter(dict.fromkeys(name for name, _ in self._items))

    def __getitem__(self, key: str, /) -> str:
        name = key.lower()
        for k, v in self._items:
            if k == name:
                return v
        raise KeyError(key)

    def __setitem__(self, key: str, value: str, /) -> None:
        self.insert(key, value)

    def __delitem__(self, key: str, /) -> None:
        if not self.popall(key, []):
            raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and any(k == key.lower() for k, _ in self._items)

    def items(self) -> HeaderMapItemsView:  # type: ignore[override]
        """All (name, value) pairs in insertion order."""
        return HeaderMapItemsView(self)

    def len(self) -> int:
        """Total number of values, counting repeated names."""
        return len(self._items)

    def keys_len(self) -> int:
        """Number of distinct header names."""
        return len({k for k, _ in self._items})

    def getall(self, key: str) -> list[str]:
        """All values of a header, empty list when missing."""
        name = key.lower()
        return [v for k, v in self._items if k == name]

    def insert(self, key: str, value: str) -> list[str]:
        """Set a header, replacing existing values in place. Returns the replaced values."""
        name, value = _check_name(key), _check_value(value)
        previous: list[str] = []
        items: list[tuple[str, str]] = []
        for k, v in self._items:
            if k != name:
                items.append((k, v))
                continue
            if not previous:
                items.append((name, value))  # keep the position of the first occurrence
            previous.append(v)
        if not previous:
            items.append((name, value))
        self._items = items
        return previous

    def append(self, key: str, value: str) -> bool:
        """Add a value without removing existing ones. Returns True if the name was already present."""
        name, value = _check_name(key), _check_value(value)
        existed = name in self
        self._items.append((name, value))
        return existed

    def extend(self, other: HeadersType) -> None:
        """Append all pairs from a mapping or a sequence of (name, value) pairs."""
        if isinstance(other, str | bytes):
            msg = f"headers must be a mapping or a sequence of pairs, got {type(other).__name__!r}"
            raise TypeError(msg)
        pairs = other.items() if isinstance(other, Mapping) else other
        for pair in pairs:
            if not isinstance(pair, tuple | list) or len(pair) != 2:
                msg = f"header pair must be a (name, value) tuple, got {pair!r}"
                raise TypeError(msg)
            self.append(pair[0], pair[1])

    @overload
    def popall(self, key: str) -> list[str]: ...
    @overload
    def popall(self, key: str, /, default: _T) -> list[str] | _T: ...
    def popall(self, key: str, /, default: Any = _MISSING) -> Any:
        """Remove and return all values of a header."""
        name = key.lower()
        values = [v for k, v in self._items if k == name]
        if not values:
            if default is _MISSING:
                raise KeyError(key)
            return default
        self._items = [(k, v) for k, v in self._items if k != name]
        return values

    def dict_multi_value(self) -> dict[str, str | list[str]]:
        """Dict view where repeated headers map to a list of values."""
        res: dict[str, str | list[str]] = {}
        for name in self:
            values = self.getall(name)
            res[name] = values[0] if len(values) == 1 else values
        return res

    def copy(self) -> Self:
        new = type(self)()
        new._items = list(self._items)
        return new

    def __copy__(self) -> Self:
        return self.copy()

    def __eq__(self, other: object) -> bool:
        if isinstance(other, HeaderMap):
            return self._items == other._items
        if isinstance(other, Mapping):
            return self.dict_multi_value() == {str(k).lower(): v for k, v in other.items()}
        return NotImplemented

    def __repr__(self) -> str:
        return f"HeaderMap({self._items!r})"
