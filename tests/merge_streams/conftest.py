"""Local HTTP server serving chunk files for URL-mode tests."""

import asyncio
from dataclasses import dataclass, field

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer


@dataclass
class ChunkServer:
    """
    Handle on the running test server.

    Routes:
        /files/{name}      serves ``files[name]`` (404 when missing)
        /redirect/{name}   302 to /files/{name}
        /status/{code}     empty response with that status
        /stall             never answers until teardown
    """

    server: TestServer
    files: dict = field(default_factory=dict)
    requests: list = field(default_factory=list)

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))

    def file_url(self, name: str) -> str:
        return self.url(f"/files/{name}")


@pytest.fixture
async def chunk_server():
    stop = asyncio.Event()
    state = {}

    async def serve_file(request):
        name = request.match_info["name"]
        state["server"].requests.append(name)
        files = state["server"].files
        if name not in files:
            return web.Response(status=404, reason="Not Found")
        return web.Response(body=files[name], content_type="application/octet-stream")

    async def redirect(request):
        raise web.HTTPFound(f"/files/{request.match_info['name']}")

    async def status(request):
        return web.Response(status=int(request.match_info["code"]))

    async def stall(request):
        state["server"].requests.append("stall")
        await stop.wait()
        return web.Response(body=b"")

    app = web.Application()
    app.router.add_get("/files/{name}", serve_file)
    app.router.add_get("/redirect/{name}", redirect)
    app.router.add_get("/status/{code}", status)
    app.router.add_get("/stall", stall)

    async with TestServer(app) as server:
        state["server"] = ChunkServer(server)
        yield state["server"]
        stop.set()
