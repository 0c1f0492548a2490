"""Forwarding proxy that fixes JSON-RPC ids on the way back.

Runs an aiohttp server in front of an MCP server:
1. Resolves the operation ID (request header, or the configured default)
2. Unknown operation: 400, nothing is forwarded
3. Forwards the request unmodified to the upstream
4. Success: rewrites the event stream so `id` is a string
5. Anything else: passes status, headers and body through untouched

The upstream body is buffered in full before rewriting. The rewrite
itself lives in rewriter.py and knows nothing about HTTP.

Usage:
    proxy = IdShimProxy(ShimConfig(upstream_url="https://mcp.example.com"))
    await proxy.start()
    # point the client at proxy.base_url
    await proxy.stop()
"""

import json
import socket

import httpx
import logfire
from aiohttp import hdrs, web

from .coerce import DEFAULT_COERCIONS, Coercion
from .config import ShimConfig
from .dispatch import OperationRouter
from .rewriter import EVENT_STREAM_CONTENT_TYPE, StreamDecodeError, rewrite_body

# Headers to skip when forwarding the request (hop-by-hop + recomputed)
SKIP_REQUEST_HEADERS = {
    "host",
    "connection",
    "keep-alive",
    "transfer-encoding",
    "content-length",
}

# Headers to skip in response (hop-by-hop, and the body may change size)
SKIP_RESPONSE_HEADERS = {
    "content-encoding",
    "content-length",
    "transfer-encoding",
    "connection",
    "keep-alive",
}


def _find_free_port() -> int:
    """Find an available port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        return s.getsockname()[1]


class IdShimProxy:
    """Async proxy that rewrites JSON-RPC ids in upstream event streams.

    Args:
        config: Proxy settings
        transport: Optional httpx transport for the upstream client
            (tests pass an httpx.MockTransport here)
        coercions: Field coercions applied to every rewritten message
    """

    def __init__(
        self,
        config: ShimConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        coercions: tuple[Coercion, ...] = DEFAULT_COERCIONS,
    ):
        self.config = config
        self._transport = transport
        self._coercions = coercions

        self._port: int | None = None
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self._http_client: httpx.AsyncClient | None = None

        self.router = OperationRouter()
        self.router.add(config.operation_id, self._invoke_mcp)

    def build_app(self) -> web.Application:
        """Build the aiohttp application (the upstream client opens on startup)."""
        # Default client_max_size is 1 MB; tool calls can carry more than that. 0 = no limit.
        app = web.Application(client_max_size=0)
        app.router.add_route("*", "/{path:.*}", self._handle_request)
        app.on_startup.append(self._open_client)
        app.on_cleanup.append(self._close_client)
        return app

    async def _open_client(self, app: web.Application) -> None:
        self._http_client = httpx.AsyncClient(
            timeout=self.config.timeout,
            transport=self._transport,
        )

    async def _close_client(self, app: web.Application) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def start(self) -> int:
        """Start the proxy server. Returns the port number."""
        self._port = self.config.port or _find_free_port()
        self._app = self.build_app()

        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.config.host, self._port)
        await self._site.start()

        logfire.info(
            "ID shim listening on {base_url}, forwarding to {upstream} (operations: {operations})",
            base_url=self.base_url,
            upstream=self.config.upstream_url,
            operations=", ".join(self.router.operations),
        )
        return self._port

    async def stop(self) -> None:
        """Stop the proxy server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        self._site = None
        self._app = None
        logfire.debug("ID shim stopped")

    @property
    def base_url(self) -> str:
        """Get the base URL for this proxy."""
        if self._port is None:
            raise RuntimeError("Proxy not started")
        return f"http://{self.config.host}:{self._port}"

    @property
    def port(self) -> int | None:
        """Get the port number."""
        return self._port

    def _log_error_response(
        self,
        path: str,
        status_code: int,
        response_body: bytes,
        span: logfire.LogfireSpan,
    ) -> None:
        """Log an upstream error response before passing it through.

        If the body is a JSON-RPC error, its code and message go on the span.
        """
        try:
            body_text = response_body.decode("utf-8")
        except UnicodeDecodeError:
            body_text = f"<binary, {len(response_body)} bytes>"

        try:
            body_json = json.loads(body_text)
        except (json.JSONDecodeError, ValueError):
            body_json = None

        span.set_attribute("response_body", body_text[:10000])  # Cap at 10KB

        error_msg = ""
        if isinstance(body_json, dict) and isinstance(body_json.get("error"), dict):
            error = body_json["error"]
            if error.get("code") is not None:
                span.set_attribute("rpc_error_code", error["code"])
            span.set_attribute("rpc_error_message", str(error.get("message", "")))
            error_msg = f" - {error.get('code', '?')}: {error.get('message', '?')}"

        logfire.error(
            "Upstream {status_code} on {path}{error_msg}",
            status_code=status_code,
            path=path,
            error_msg=error_msg,
        )

    async def _handle_request(self, request: web.Request) -> web.StreamResponse:
        """Handle incoming requests."""
        path = "/" + request.match_info.get("path", "")

        if request.method == "GET" and path == "/health":
            return web.Response(text="ok")

        operation_id = request.headers.get(self.config.operation_header) or self.config.operation_id

        with logfire.span(
            "id_shim.forward",
            path=path,
            method=request.method,
            operation_id=operation_id,
        ) as span:
            request["span"] = span
            try:
                return await self.router.dispatch(operation_id, request)
            except Exception as e:
                logfire.error(f"ID shim error: {e}")
                span.set_attribute("error", str(e))
                return web.Response(status=500, text=str(e))

    async def _invoke_mcp(self, request: web.Request) -> web.StreamResponse:
        """Forward to the upstream and rewrite a successful event stream."""
        span: logfire.LogfireSpan = request["span"]
        path = "/" + request.match_info.get("path", "")

        if self._http_client is None:
            raise RuntimeError("HTTP client not initialized")

        body_bytes = await request.read()

        headers = [
            (key, value)
            for key, value in request.headers.items()
            if key.lower() not in SKIP_REQUEST_HEADERS and key.lower() != self.config.operation_header
        ]

        url = f"{self.config.upstream_url}{path}"
        if request.query_string:
            url = f"{url}?{request.query_string}"

        logfire.debug(
            "Forwarding {method} {path}: {size} bytes",
            method=request.method,
            path=path,
            size=len(body_bytes),
        )

        try:
            response = await self._http_client.request(
                request.method,
                url,
                content=body_bytes,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logfire.error("Upstream request failed: {error}", error=str(e))
            span.set_attribute("error", str(e))
            return web.Response(status=502, text=f"Upstream request failed: {e}")

        span.set_attribute("status_code", response.status_code)

        if response.status_code >= 400:
            self._log_error_response(path, response.status_code, response.content, span)

        try:
            result = rewrite_body(
                response.content,
                response.is_success,
                mode=self.config.parse_mode,
                coercions=self._coercions,
            )
        except StreamDecodeError as e:
            logfire.error("Upstream event stream could not be decoded: {error}", error=str(e))
            span.set_attribute("error", str(e))
            return web.Response(status=502, text=f"Upstream event stream could not be decoded: {e}")

        span.set_attribute("transformed", result.transformed)
        if result.transformed:
            span.set_attribute("events", result.events)
            span.set_attribute("coerced", result.coerced)
            logfire.debug(
                "Rewrote {events} event(s), coerced {coerced} field(s)",
                events=result.events,
                coerced=result.coerced,
            )
        elif response.is_success:
            logfire.debug("Pass-through (no data segment)")

        response_headers = [
            (key, value)
            for key, value in response.headers.multi_items()
            if key.lower() not in SKIP_RESPONSE_HEADERS
            and not (result.transformed and key.lower() == "content-type")
        ]
        if result.transformed:
            response_headers.append((hdrs.CONTENT_TYPE, EVENT_STREAM_CONTENT_TYPE))

        return web.Response(
            status=response.status_code,
            body=result.body,
            headers=response_headers,
        )
