import inspect
import logging
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Self

from reqchain.context import Context
from reqchain.exceptions import ConfigurationError, MiddlewareError, MisuseError, ReqchainError, TransportError
from reqchain.result import Err, Ok, Result

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Link:
    """Middleware or adapter callable together with the options bound to it."""

    func: Callable[..., Any]
    options: Any = None

    @classmethod
    def resolve(cls, spec: Any, kind: str = "middleware") -> Self:
        """Resolve a bare callable or a (callable, options) pair."""
        if isinstance(spec, Link):
            return cls(spec.func, spec.options)
        if isinstance(spec, tuple):
            if len(spec) != 2:
                msg = f"{kind} spec must be a callable or a (callable, options) pair, got {len(spec)}-tuple"
                raise ConfigurationError(msg)
            func, options = spec
        else:
            func, options = spec, None
        if not callable(func):
            msg = f"{kind} must be callable, got {type(func).__name__!r}"
            raise ConfigurationError(msg)
        return cls(func, options)

    @property
    def name(self) -> str:
        return getattr(self.func, "__qualname__", None) or type(self.func).__qualname__


@dataclass(frozen=True, slots=True)
class Chain:
    """Immutable ordered middleware links terminated by exactly one adapter link."""

    links: tuple[Link, ...]
    adapter: Link

    @classmethod
    def build(cls, middleware: Iterable[Any], adapter: Any) -> Self:
        """Resolve middleware and adapter specs once, at client construction."""
        if adapter is None:
            raise MisuseError("chain has no terminal adapter")
        return cls(
            links=tuple(Link.resolve(spec) for spec in middleware),
            adapter=Link.resolve(adapter, "adapter"),
        )

    def with_middleware(self, spec: Any, *, outermost: bool = False) -> Self:
        """New chain with the middleware added last (or first when outermost)."""
        link = Link.resolve(spec)
        links = (link, *self.links) if outermost else (*self.links, link)
        return type(self)(links=links, adapter=self.adapter)

    def adapter_options(self, ctx: Context) -> Any:
        """Bound adapter options merged with the per-call `ctx.options["adapter"]` overrides."""
        override = ctx.options.get("adapter")
        if override is None:
            return self.adapter.options
        if not isinstance(override, Mapping):
            msg = f"options['adapter'] must be a mapping, got {type(override).__name__!r}"
            raise MisuseError(msg)
        bound = self.adapter.options
        if bound is None:
            return dict(override)
        if not isinstance(bound, Mapping):
            msg = "per-call adapter options require the adapter to be bound with mapping options"
            raise MisuseError(msg)
        return {**bound, **override}

    def __len__(self) -> int:
        return len(self.links)


class _BaseNext:
    __slots__ = ("_chain", "_index", "_used")

    def __init__(self, chain: Chain, index: int = 0) -> None:
        self._chain = chain
        self._index = index
        self._used = False

    @property
    def is_adapter(self) -> bool:
        """Whether running this continuation calls the adapter directly."""
        return self._index >= len(self._chain.links)

    def _claim(self) -> None:
        if self._used:
            raise MisuseError("next_handler.run was already called, a continuation may run only once")
        self._used = True


class Next(_BaseNext):
    """Continuation representing the rest of the chain, including the adapter."""

    __slots__ = ()

    async def run(self, ctx: Context) -> Context:
        """Run the remaining middleware and the adapter with ctx."""
        self._claim()
        chain = self._chain
        if self.is_adapter:
            link = chain.adapter
            res = link.func(ctx, chain.adapter_options(ctx))
        else:
            link = chain.links[self._index]
            res = link.func(ctx, Next(chain, self._index + 1), link.options)
        if not inspect.isawaitable(res):
            msg = f"{link.name} returned {type(res).__name__!r}, a coroutine was expected"
            raise TypeError(msg)
        return _check_context(await res, link)


class SyncNext(_BaseNext):
    """Blocking continuation representing the rest of the chain, including the adapter."""

    __slots__ = ()

    def run(self, ctx: Context) -> Context:
        """Run the remaining middleware and the adapter with ctx."""
        self._claim()
        chain = self._chain
        if self.is_adapter:
            link = chain.adapter
            res = link.func(ctx, chain.adapter_options(ctx))
        else:
            link = chain.links[self._index]
            res = link.func(ctx, SyncNext(chain, self._index + 1), link.options)
        if inspect.isawaitable(res):
            if inspect.iscoroutine(res):
                res.close()
            msg = f"{link.name} returned an awaitable, blocking clients require blocking middleware and adapters"
            raise TypeError(msg)
        return _check_context(res, link)


def _check_context(res: Any, link: Link) -> Context:
    if not isinstance(res, Context):
        msg = f"{link.name} returned {type(res).__name__!r}, expected 'Context'"
        raise MisuseError(msg)
    return res


async def run_pipeline(chain: Chain, ctx: Context) -> Result[Context, ReqchainError]:
    """Run ctx through the chain.

    Transport and middleware errors that no middleware recovered from are returned as `Err`. Any other exception
    propagates.
    """
    start = time.perf_counter()
    try:
        res = await Next(chain).run(ctx)
    except (TransportError, MiddlewareError) as e:
        _log_failure(ctx, e, start)
        return Err(e)
    _log_success(res, start)
    return Ok(res)


def run_pipeline_sync(chain: Chain, ctx: Context) -> Result[Context, ReqchainError]:
    """Blocking version of `run_pipeline`."""
    start = time.perf_counter()
    try:
        res = SyncNext(chain).run(ctx)
    except (TransportError, MiddlewareError) as e:
        _log_failure(ctx, e, start)
        return Err(e)
    _log_success(res, start)
    return Ok(res)


def _log_success(ctx: Context, start: float) -> None:
    if logger.isEnabledFor(logging.DEBUG):
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug("%s %s -> %s (%.1f ms)", ctx.method, ctx.url, ctx.status, elapsed_ms)


def _log_failure(ctx: Context, error: ReqchainError, start: float) -> None:
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s failed with %s: %s (%.1f ms)", ctx.method, ctx.url, type(error).__name__, error, elapsed_ms)
