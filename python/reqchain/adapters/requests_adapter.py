"""Requests-based adapter (blocking)."""

import logging
from datetime import timedelta
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from reqchain.adapters._body import request_body, timeout_seconds
from reqchain.context import Context
from reqchain.exceptions import ConnectError, RequestTimeoutError, TLSError, TransportError

logger = logging.getLogger(__name__)


class RequestsAdapter:
    """Blocking adapter sending requests with requests.

    Options (bound at client construction, overridable per call via `options={"adapter": {...}}`):
    - timeout: request timeout, timedelta or seconds
    - allow_redirects: follow redirects, default True

    Repeated request headers are sent joined with ", ". The request body must be bytes, str, a list of bytes chunks,
    an iterator of chunks or None. Other bodies are rejected with `MiddlewareError`.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        timeout: timedelta | None = None,
        max_retries: int = 0,
    ) -> None:
        """Initialize requests adapter.

        Args:
            session: Optional requests.Session instance, closed by the caller
            timeout: Default request timeout
            max_retries: Connection level retries with exponential backoff for idempotent methods. Responses are
                never retried, an error status reaches the middleware as is.
        """
        self._external_session = session is not None
        self.session = session or requests.Session()
        self._timeout = timeout

        if max_retries:
            retry_strategy = Retry(
                total=max_retries,
                backoff_factor=0.5,
                allowed_methods=["GET", "HEAD", "OPTIONS", "PUT", "DELETE"],
                respect_retry_after_header=False,
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)

    def __call__(self, ctx: Context, options: dict[str, Any] | None) -> Context:
        opts = options or {}
        headers = {name: ", ".join(ctx.headers.getall(name)) for name in ctx.headers}
        data = request_body(ctx, blocking=True)
        try:
            response = self.session.request(
                method=ctx.method.value,
                url=ctx.full_url,
                headers=headers,
                data=data,
                timeout=timeout_seconds(opts.get("timeout", self._timeout)),
                allow_redirects=opts.get("allow_redirects", True),
            )
            return ctx.respond(response.status_code, response.content, list(response.headers.items()))

        except requests.exceptions.Timeout as e:
            raise RequestTimeoutError(f"Request timed out: {ctx.method} {ctx.url}", context=ctx) from e

        except requests.exceptions.SSLError as e:
            raise TLSError(f"TLS error: {e}", context=ctx) from e

        except requests.exceptions.ConnectionError as e:
            raise ConnectError(f"Connection failed: {e}", context=ctx) from e

        except requests.exceptions.RequestException as e:
            logger.debug("requests request failed", exc_info=True)
            raise TransportError(f"Network request failed: {e}", context=ctx) from e

    def close(self) -> None:
        """Close the session if it was created by the adapter."""
        if not self._external_session:
            self.session.close()
