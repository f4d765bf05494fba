import asyncio
import contextlib
import logging
from dataclasses import replace
from typing import Any, Union

from .adapters import coerce_transport
from .cache import ResponseCache
from .env import load_settings_from_env
from .errors import RequestError
from .retry import RetryPolicy
from .session import FileTokenStore, Session, TokenStore
from .throttle import RequestQueue
from .types import (
    CacheConfig,
    RequestSpec,
    Response,
    RetryConfig,
    RetryState,
    SessionConfig,
    ThrottleConfig,
    TransportConfig,
)


def _resolve(config_cls, given, kwargs: dict, fields: dict[str, str]):
    """Prefer an explicit config object, else build one from flat keyword overrides."""
    if given is not None:
        if not isinstance(given, config_cls):
            raise TypeError(f"expected {config_cls.__name__}, got {type(given).__name__}")
        return given
    picked = {field: kwargs[kw] for kw, field in fields.items() if kw in kwargs}
    return config_cls(**picked)


class HttpPipeline:
    """Outbound request pipeline: session headers, GET cache, throttled queue, retries.

    One instance owns all mutable state (queue, cache, session), so independent
    pipelines never interfere.

    Other keywords for kwargs:
    - transport_config / base_url / timeout / upload_timeout
    - throttle_config / dispatch_delay / cache_hit_delay
    - cache_config / cache_ttl / invalidate_on_write
    - retry_config / retry_attempts / retry_delay / rate_limit_attempts / rate_limit_base
      / rate_limit_growth / retry_for_methods
    - session_config / auth_header / auth_scheme / client_version / login_path
      / quiet_404_paths
    """

    def __init__(
        self,
        transport: Union[object, None] = None,
        token_store: Union[TokenStore, None] = None,
        navigator=None,
        log_level: Union[int, None] = None,
        **kwargs,
    ):
        self.transport_config = _resolve(
            TransportConfig,
            kwargs.get("transport_config"),
            kwargs,
            {"base_url": "base_url", "timeout": "timeout", "upload_timeout": "upload_timeout"},
        )
        self.throttle_config = _resolve(
            ThrottleConfig,
            kwargs.get("throttle_config"),
            kwargs,
            {"dispatch_delay": "dispatch_delay", "cache_hit_delay": "cache_hit_delay"},
        )
        self.cache_config = _resolve(
            CacheConfig,
            kwargs.get("cache_config"),
            kwargs,
            {"cache_ttl": "ttl", "invalidate_on_write": "invalidate_on_write"},
        )
        self.retry_config = _resolve(
            RetryConfig,
            kwargs.get("retry_config"),
            kwargs,
            {
                "retry_attempts": "retry_attempts",
                "retry_delay": "retry_delay",
                "rate_limit_attempts": "rate_limit_attempts",
                "rate_limit_base": "rate_limit_base",
                "rate_limit_growth": "rate_limit_growth",
                "retry_for_methods": "retry_for_methods",
            },
        )
        session_config = _resolve(
            SessionConfig,
            kwargs.get("session_config"),
            kwargs,
            {
                "auth_header": "header",
                "auth_scheme": "scheme",
                "client_version": "client_version",
                "login_path": "login_path",
                "quiet_404_paths": "quiet_404_paths",
            },
        )
        session_config = replace(
            session_config, quiet_404_paths=tuple(session_config.quiet_404_paths)
        )

        self._own_transport = transport is None or isinstance(transport, str)
        self.transport = coerce_transport(transport, self.transport_config.base_url)
        self.cache = ResponseCache(self.cache_config.ttl)
        self.retry_policy = RetryPolicy(self.retry_config)
        self.session = Session(token_store, navigator, session_config)
        # cached responses belong to the credentials they were fetched with
        self.session.add_listener(self.cache.clear)
        self.queue = RequestQueue(self._dispatch, self.cache, self.throttle_config)
        self._logger = logging.getLogger("conveyor")
        self._sleep = asyncio.sleep
        self._closed = False
        if log_level is not None:
            with contextlib.suppress(Exception):
                self._logger.setLevel(log_level)

    # ---------- lifecycle ----------
    async def close(self):
        self._closed = True
        await self.queue.close()
        if self._own_transport:
            await self.transport.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
        return False

    @classmethod
    def from_env(cls, env_path: Union[str, None] = None, **kwargs):
        """Build a pipeline from CONVEYOR_* variables, optionally augmented by a .env file.

        Explicit keyword arguments win over the environment.
        """
        settings = load_settings_from_env(env_path=env_path)
        token_file = settings.pop("token_file", None)
        if token_file and kwargs.get("token_store") is None:
            kwargs["token_store"] = FileTokenStore(token_file)
        for k, v in settings.items():
            kwargs.setdefault(k, v)
        return cls(**kwargs)

    # ---------- public API ----------
    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Union[dict[str, Any], None] = None,
        data: Any = None,
        json: Any = None,
        files: Any = None,
        headers: Union[dict[str, str], None] = None,
        timeout: Union[float, None] = None,
        retry: Union[int, None] = None,
        retry_delay: Union[float, None] = None,
        allow_not_found: bool = False,
    ) -> Response:
        """Issue a request and return its Response, or raise RequestError.

        Args:
            method (str): HTTP verb
            path (str): path relative to the base URL, e.g. "/merchants"
            params (dict | None): query parameters; part of the GET cache key
            timeout (float | None): per-request override of the transport timeout
            retry (int | None): transient-failure retry ceiling for this call
            retry_delay (float | None): linear backoff step in seconds for this call
            allow_not_found (bool): return a 404 Response instead of raising

        Raises:
            RequestError: after retries (if any) are exhausted
        """
        if self._closed:
            raise RuntimeError("conveyor: pipeline closed")
        spec = RequestSpec(
            method=method,
            path=path,
            params=params,
            data=data,
            json=json,
            files=files,
            headers=dict(headers or {}),
            timeout=timeout if timeout is not None else self.transport_config.timeout,
            retry=retry if retry is not None else self.retry_config.retry_attempts,
            retry_delay=retry_delay if retry_delay is not None else self.retry_config.retry_delay,
            allow_not_found=allow_not_found,
        )
        state = RetryState()
        while True:
            try:
                return await self._issue(spec)
            except RequestError as err:
                delay = self.retry_policy.next_delay(spec, state, err)
                if delay is None:
                    self.session.on_error(spec, err)
                    raise
                self.session.log_failure(spec, err)
                with contextlib.suppress(Exception):
                    self._logger.info(
                        f"retrying method={spec.method} url={spec.path} status={err.status} "
                        f"code={err.code} in {delay:.2f}s (transient={state.attempts} "
                        f"rate_limited={state.rate_limit_attempts})"
                    )
                await self._sleep(delay)

    async def get(self, path: str, **kw) -> Response:
        return await self.request("GET", path, **kw)

    async def post(self, path: str, **kw) -> Response:
        return await self.request("POST", path, **kw)

    async def put(self, path: str, **kw) -> Response:
        return await self.request("PUT", path, **kw)

    async def patch(self, path: str, **kw) -> Response:
        return await self.request("PATCH", path, **kw)

    async def delete(self, path: str, **kw) -> Response:
        return await self.request("DELETE", path, **kw)

    # ---------- internal ----------
    async def _issue(self, spec: RequestSpec) -> Response:
        """One attempt: credentials, then auth bypass, cache short-circuit or queue."""
        self.session.apply(spec)
        if self.session.is_auth_request(spec):
            return await self._dispatch(spec)
        if spec.is_get:
            cached = self.cache.get(spec.cache_key())
            if cached is not None:
                with contextlib.suppress(Exception):
                    self._logger.debug(f"cache hit url={spec.path}")
                return cached
        return await self.queue.enqueue(spec)

    async def _dispatch(self, spec: RequestSpec) -> Response:
        with contextlib.suppress(Exception):
            self._logger.debug(f"req start method={spec.method} url={spec.path}")
        response = await self.transport.send(
            spec.method,
            spec.path,
            headers=spec.headers,
            params=spec.params,
            data=spec.data,
            json=spec.json,
            files=spec.files,
            timeout=spec.timeout,
        )
        with contextlib.suppress(Exception):
            self._logger.debug(
                f"req done method={spec.method} url={spec.path} status={response.status}"
            )
        if not response.ok:
            if spec.allow_not_found and response.status == 404:  # noqa: PLR2004
                return response
            raise RequestError.from_response(response)
        if self.session.is_auth_request(spec):
            return response
        if spec.is_get:
            self.cache.set(spec.cache_key(), response)
        elif self.cache_config.invalidate_on_write:
            self.cache.invalidate_prefix(spec.path)
        return response
