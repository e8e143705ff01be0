"""Common types and interfaces used in the library."""

from collections.abc import Mapping, Sequence
from typing import Any

HeadersType = Mapping[str, str] | Sequence[tuple[str, str]]
QueryParams = Mapping[str, Any] | Sequence[tuple[str, Any]]
ExtensionsType = Mapping[str, Any] | Sequence[tuple[str, Any]]
