import asyncio
import contextlib
import json as jsonlib
from typing import Any, Union

from .errors import NETWORK_ERROR, TIMEOUT, RequestError
from .types import DEFAULT_BASE_URL, Response


def _join(base_url: str, path: str) -> str:
    if path.startswith(("http://", "https://")):
        return path
    return base_url.rstrip("/") + "/" + path.lstrip("/")


def _decode_body(content_type: str, text: str) -> Any:
    if not text:
        return None
    if "json" in (content_type or "").lower():
        try:
            return jsonlib.loads(text)
        except ValueError:
            return text
    return text


class Transport:
    """Boundary the pipeline sends through.

    ``send`` returns a Response for any HTTP status and raises RequestError with
    ``status=None`` when no response was received.
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL):
        self.base_url = base_url

    def url_for(self, path: str) -> str:
        return _join(self.base_url, path)

    async def send(
        self,
        method: str,
        path: str,
        *,
        headers: Union[dict[str, str], None] = None,
        params: Union[dict[str, Any], None] = None,
        data: Any = None,
        json: Any = None,
        files: Any = None,
        timeout: Union[float, None] = None,
    ) -> Response:
        raise NotImplementedError

    async def close(self) -> None:
        return None


# ---------- httpx (async, default) ----------
class HttpxTransport(Transport):
    def __init__(self, base_url: str = DEFAULT_BASE_URL, client=None):
        super().__init__(base_url)
        self.client = client
        self._own_client = client is None

    def _client(self):
        if self.client is None:
            import httpx  # noqa: PLC0415

            self.client = httpx.AsyncClient()
            self._own_client = True
        return self.client

    async def send(self, method, path, *, headers=None, params=None, data=None, json=None,
                   files=None, timeout=None):
        import httpx  # noqa: PLC0415

        url = self.url_for(path)
        kwargs: dict[str, Any] = {"headers": headers or {}, "params": params or None}
        if json is not None:
            kwargs["json"] = json
        elif isinstance(data, (bytes, str)):
            kwargs["content"] = data
        elif data is not None:
            kwargs["data"] = data
        if files is not None:
            kwargs["files"] = files
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            resp = await self._client().request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise RequestError(f"timeout of {timeout}s exceeded", url=path, method=method,
                               code=TIMEOUT) from e
        except httpx.TransportError as e:
            raise RequestError(str(e) or "Network Error", url=path, method=method,
                               code=NETWORK_ERROR) from e
        return Response(
            status=resp.status_code,
            data=_decode_body(resp.headers.get("content-type", ""), resp.text),
            headers=dict(resp.headers),
            url=path,
            method=method,
        )

    async def close(self):
        if self._own_client and self.client is not None:
            with contextlib.suppress(Exception):
                await self.client.aclose()
            self.client = None


# ---------- aiohttp (async) ----------
class AiohttpTransport(Transport):
    def __init__(self, base_url: str = DEFAULT_BASE_URL, session=None):
        super().__init__(base_url)
        self.session = session
        self._own_session = session is None

    def _session(self):
        if self.session is None:
            import aiohttp  # noqa: PLC0415

            self.session = aiohttp.ClientSession()
            self._own_session = True
        return self.session

    async def send(self, method, path, *, headers=None, params=None, data=None, json=None,
                   files=None, timeout=None):
        import aiohttp  # noqa: PLC0415

        url = self.url_for(path)
        kwargs: dict[str, Any] = {"headers": headers or {}}
        if params:
            kwargs["params"] = params
        if json is not None:
            kwargs["json"] = json
        elif files is not None:
            form = aiohttp.FormData()
            for k, v in (data or {}).items():
                form.add_field(k, str(v))
            pairs = files.items() if isinstance(files, dict) else files
            for name, file in pairs:
                form.add_field(name, file)
            kwargs["data"] = form
        elif data is not None:
            kwargs["data"] = data
        if timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout)
        try:
            async with self._session().request(method, url, **kwargs) as resp:
                text = await resp.text()
                return Response(
                    status=resp.status,
                    data=_decode_body(resp.headers.get("Content-Type", ""), text),
                    headers=dict(resp.headers),
                    url=path,
                    method=method,
                )
        except asyncio.TimeoutError as e:
            raise RequestError(f"timeout of {timeout}s exceeded", url=path, method=method,
                               code=TIMEOUT) from e
        except aiohttp.ClientError as e:
            raise RequestError(str(e) or "Network Error", url=path, method=method,
                               code=NETWORK_ERROR) from e

    async def close(self):
        if self._own_session and self.session is not None:
            await self.session.close()
            self.session = None


# ---------- requests (sync, run in a worker thread) ----------
class RequestsTransport(Transport):
    def __init__(self, base_url: str = DEFAULT_BASE_URL, session=None):
        super().__init__(base_url)
        self.session = session
        self._own_session = session is None

    def _session(self):
        if self.session is None:
            import requests  # noqa: PLC0415

            self.session = requests.Session()
            self._own_session = True
        return self.session

    def _send_blocking(self, method, url, **kwargs):
        return self._session().request(method, url, **kwargs)

    async def send(self, method, path, *, headers=None, params=None, data=None, json=None,
                   files=None, timeout=None):
        import requests  # noqa: PLC0415

        url = self.url_for(path)
        try:
            resp = await asyncio.to_thread(
                self._send_blocking,
                method,
                url,
                headers=headers or {},
                params=params or None,
                data=data,
                json=json,
                files=files,
                timeout=timeout,
            )
        except requests.Timeout as e:
            raise RequestError(f"timeout of {timeout}s exceeded", url=path, method=method,
                               code=TIMEOUT) from e
        except requests.RequestException as e:
            raise RequestError(str(e) or "Network Error", url=path, method=method,
                               code=NETWORK_ERROR) from e
        return Response(
            status=resp.status_code,
            data=_decode_body(resp.headers.get("Content-Type", ""), resp.text),
            headers=dict(resp.headers),
            url=path,
            method=method,
        )

    async def close(self):
        if self._own_session and self.session is not None:
            with contextlib.suppress(Exception):
                self.session.close()
            self.session = None


def coerce_transport(transport: Union[object, None], base_url: str = DEFAULT_BASE_URL) -> Transport:
    """Turn None | "httpx" | "aiohttp" | "requests" | Transport into a Transport."""
    if transport is None:
        return HttpxTransport(base_url)
    if isinstance(transport, str):
        name = transport.lower()
        if name == "httpx":
            return HttpxTransport(base_url)
        if name == "aiohttp":
            return AiohttpTransport(base_url)
        if name == "requests":
            return RequestsTransport(base_url)
        raise ValueError("Unknown transport string. Use 'httpx', 'aiohttp' or 'requests'.")
    if hasattr(transport, "send"):
        return transport
    raise TypeError("transport must be None, 'httpx'|'aiohttp'|'requests', or have send()")
