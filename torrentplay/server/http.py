"""
HTTP content server streaming torrent files to players while they download.
"""

import html
import logging
import mimetypes

from aiohttp import web

from torrentplay.engine import base
from torrentplay.engine.base import SwarmHandle
from torrentplay.engine.events import EventEmitter

log = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def guess_content_type(name: str) -> str:
    content_type, _ = mimetypes.guess_type(name)
    return content_type or DEFAULT_CONTENT_TYPE


class HttpContentServer:
    """
    Serves `GET /` (file index) and `GET /<index>` (file bytes, Range aware).

    Emits `listening` once bound and `connection` for every accepted request.
    """

    def __init__(self, swarm: SwarmHandle, host: str = "0.0.0.0"):
        self.events = EventEmitter()
        self.host = host
        self.port: int | None = None
        self._swarm = swarm
        self._runner: web.AppRunner | None = None

        self._app = web.Application(middlewares=[self._track_connections])
        self._app.router.add_get("/", self._index)
        self._app.router.add_get("/{index}", self._serve_file)

    @property
    def app(self) -> web.Application:
        return self._app

    @property
    def listening(self) -> bool:
        return self._runner is not None

    async def listen(self, port: int) -> None:
        runner = web.AppRunner(self._app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self.host, port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise
        self._runner = runner
        self.port = port
        log.debug(f"Content server listening on {self.host}:{port}")
        self.events.emit(base.LISTENING, port)

    async def close(self) -> None:
        if self._runner is None:
            return
        runner, self._runner = self._runner, None
        await runner.cleanup()
        log.debug("Content server closed.")

    @web.middleware
    async def _track_connections(self, request: web.Request, handler):
        self.events.emit(base.CONNECTION, request.remote)
        return await handler(request)

    async def _index(self, request: web.Request) -> web.Response:
        items = "".join(
            f'<li><a href="/{i}">{html.escape(f.path)}</a></li>'
            for i, f in enumerate(self._swarm.files)
        )
        title = html.escape(self._swarm.name or "torrent")
        body = f"<html><head><title>{title}</title></head><body><ol>{items}</ol></body></html>"
        return web.Response(text=body, content_type="text/html")

    async def _serve_file(self, request: web.Request) -> web.StreamResponse:
        files = self._swarm.files
        try:
            index = int(request.match_info["index"])
        except ValueError:
            raise web.HTTPNotFound() from None
        if not 0 <= index < len(files):
            raise web.HTTPNotFound()
        torrent_file = files[index]

        size = torrent_file.length
        try:
            requested = request.http_range
        except ValueError:
            raise web.HTTPRequestRangeNotSatisfiable(
                headers={"Content-Range": f"bytes */{size}"}
            ) from None

        start, stop = requested.start, requested.stop
        partial = start is not None or stop is not None
        if start is None:
            start = 0
        elif start < 0:
            start = max(0, size + start)
        stop = size if stop is None else min(stop, size)
        if partial and (start >= size or start >= stop):
            raise web.HTTPRequestRangeNotSatisfiable(
                headers={"Content-Range": f"bytes */{size}"}
            )

        response = web.StreamResponse(status=206 if partial else 200)
        response.content_type = guess_content_type(torrent_file.name)
        response.content_length = stop - start
        response.headers["Accept-Ranges"] = "bytes"
        if partial:
            response.headers["Content-Range"] = f"bytes {start}-{stop - 1}/{size}"
        await response.prepare(request)

        if request.method == "HEAD":
            return response
        async for chunk in self._swarm.iter_file(index, start, stop):
            await response.write(chunk)
        await response.write_eof()
        return response
