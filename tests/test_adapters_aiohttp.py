import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from conveyor import AiohttpTransport, RequestError
from conveyor.errors import NETWORK_ERROR, TIMEOUT


class FakeResponse:
    def __init__(self, status=200, headers=None, text=""):
        self.status = status
        self.headers = headers or {}
        self.text = AsyncMock(return_value=text)


def _session(resp=None, side_effect=None):
    ctx = MagicMock()
    ctx.__aenter__.return_value = resp
    ctx.__aexit__.return_value = False
    session = MagicMock()
    if side_effect is not None:
        session.request.side_effect = side_effect
    else:
        session.request.return_value = ctx
    return session


@pytest.mark.asyncio
async def test_aiohttp_send_decodes_json():
    session = _session(FakeResponse(200, {"Content-Type": "application/json"}, '{"ok": true}'))
    t = AiohttpTransport("https://api.example.com/api/", session=session)
    resp = await t.send("GET", "/health", headers={"X-A": "1"}, params={"q": "x"}, timeout=3)
    assert resp.status == 200  # noqa: PLR2004
    assert resp.data == {"ok": True}
    args, kwargs = session.request.call_args
    assert args == ("GET", "https://api.example.com/api/health")
    assert kwargs["headers"] == {"X-A": "1"}
    assert kwargs["params"] == {"q": "x"}
    assert kwargs["timeout"].total == 3  # noqa: PLR2004


@pytest.mark.asyncio
async def test_aiohttp_multipart_upload():
    session = _session(FakeResponse(201, {"Content-Type": "application/json"}, "{}"))
    t = AiohttpTransport(session=session)
    await t.send("POST", "/upload/single", data={"folder": "docs"}, files={"file": b"bytes"})
    _, kwargs = session.request.call_args
    assert isinstance(kwargs["data"], aiohttp.FormData)


@pytest.mark.asyncio
async def test_aiohttp_errors_normalized():
    t = AiohttpTransport(session=_session(side_effect=aiohttp.ClientConnectionError("down")))
    with pytest.raises(RequestError) as ei:
        await t.send("GET", "/health")
    assert ei.value.code == NETWORK_ERROR

    t = AiohttpTransport(session=_session(side_effect=asyncio.TimeoutError()))
    with pytest.raises(RequestError) as ei:
        await t.send("GET", "/health", timeout=1)
    assert ei.value.code == TIMEOUT


@pytest.mark.asyncio
async def test_aiohttp_borrowed_session_not_closed():
    session = _session(FakeResponse())
    session.close = AsyncMock()
    t = AiohttpTransport(session=session)
    await t.close()
    session.close.assert_not_called()
