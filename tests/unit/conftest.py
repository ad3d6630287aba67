"""Shared fixtures: an in-process stand-in for the WetroCloud API."""

import asyncio
import json
from typing import Any, Dict, List, Tuple

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from wetrocloud.client import WetroCloudClient
from wetrocloud.config import WetroCloudConfig


class FakeWetroCloudAPI:
    """Records every request and answers with canned responses.

    ``/v1/slow/`` blocks until ``release`` is set, ``stream`` request bodies
    are answered with ``stream_chunks`` written one by one, then held open
    until ``release`` when ``stream_hold`` is set.
    """

    def __init__(self) -> None:
        self.requests: List[Dict[str, Any]] = []
        self.responses: Dict[Tuple[str, str], Tuple[int, str]] = {}
        self.stream_chunks: List[bytes] = []
        self.stream_hold = False
        self.release = asyncio.Event()
        self.slow_arrived = asyncio.Event()
        self.slow_expected = 1
        self._slow_count = 0
        self.base_url = ""
        self.api_url = ""

    def respond(self, method: str, path: str, status: int = 200, body: Any = None, text: str = None) -> None:
        self.responses[(method, path)] = (status, text if text is not None else json.dumps(body))

    async def handle(self, request: web.Request) -> web.StreamResponse:
        record: Dict[str, Any] = {
            "method": request.method,
            "path": request.path,
            "headers": request.headers.copy(),
            "content_type": request.content_type,
        }
        if request.content_type == "multipart/form-data":
            form = await request.post()
            record["form"] = {key: form[key] for key in form}
            record["raw"] = ""
            record["body"] = None
        else:
            raw = await request.text()
            record["raw"] = raw
            record["body"] = json.loads(raw) if raw else None
        self.requests.append(record)

        if request.path.endswith("/slow/"):
            self._slow_count += 1
            if self._slow_count >= self.slow_expected:
                self.slow_arrived.set()
            await self.release.wait()
            return web.json_response({"slow": True})

        canned = self.responses.get((request.method, request.path))
        if canned is None and isinstance(record["body"], dict) and record["body"].get("stream"):
            response = web.StreamResponse(status=200, headers={"Content-Type": "application/x-ndjson"})
            await response.prepare(request)
            for chunk in self.stream_chunks:
                await response.write(chunk)
                await asyncio.sleep(0)
            if self.stream_hold:
                await self.release.wait()
            await response.write_eof()
            return response

        status, text = canned or (200, '{"success": true}')
        return web.Response(status=status, text=text, content_type="application/json")


@pytest_asyncio.fixture
async def fake_api():
    """Start the fake API on a local port."""
    fake = FakeWetroCloudAPI()
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", fake.handle)
    server = TestServer(app)
    await server.start_server()
    fake.base_url = f"http://{server.host}:{server.port}"
    fake.api_url = f"{fake.base_url}/v1"
    try:
        yield fake
    finally:
        fake.release.set()
        await server.close()


@pytest_asyncio.fixture
async def live_client(fake_api):
    """Client talking to the fake API over real HTTP."""
    client = WetroCloudClient(WetroCloudConfig(api_key="test_api_key", base_url=fake_api.base_url))
    try:
        yield client
    finally:
        await client.close()


@pytest.fixture
def config():
    """Create test configuration."""
    return WetroCloudConfig(api_key="test_api_key", base_url="http://localhost:9380")
