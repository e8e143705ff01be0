"""Explicit client defaults captured at construction time."""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, field_validator

from reqchain.http import validate_base_url


class Config(BaseModel):
    """Defaults applied by client builders.

    The default adapters are used when a client is built without an explicit adapter. There is no process-wide
    default: pass the config to the builder (or to `client()`) of every client that should use it.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    default_adapter: Any = None
    default_sync_adapter: Any = None
    base_url: str | None = None
    default_headers: dict[str, str] | None = None
    error_for_status: bool = False

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str | None) -> str | None:
        return None if value is None else validate_base_url(value)

    @classmethod
    def with_defaults(cls, **kwargs: Any) -> Self:
        """Config using the aiohttp adapter for async clients and the requests adapter for blocking clients."""
        from reqchain.adapters import AiohttpAdapter, RequestsAdapter

        kwargs.setdefault("default_adapter", AiohttpAdapter())
        kwargs.setdefault("default_sync_adapter", RequestsAdapter())
        return cls(**kwargs)
