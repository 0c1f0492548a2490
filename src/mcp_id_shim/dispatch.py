"""Operation routing.

Each incoming request names a logical operation. The router maps
operation names to handlers; anything it doesn't know gets a 400.
"""

from typing import Awaitable, Callable

import logfire
from aiohttp import web

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def unknown_operation_response(operation_id: str) -> web.Response:
    """400 with a JSON string body naming the operation."""
    return web.json_response(f"Unknown operation ID '{operation_id}'", status=400)


class OperationRouter:
    """Routing table from operation ID to request handler.

    Usage:
        router = OperationRouter()
        router.add("InvokeMCP", handle_invoke)
        response = await router.dispatch("InvokeMCP", request)
    """

    def __init__(self):
        self._handlers: dict[str, Handler] = {}

    def add(self, operation_id: str, handler: Handler) -> None:
        """Register a handler. Operation IDs are case-sensitive."""
        if operation_id in self._handlers:
            raise ValueError(f"Operation already registered: {operation_id}")
        self._handlers[operation_id] = handler

    @property
    def operations(self) -> list[str]:
        """Registered operation IDs, in registration order."""
        return list(self._handlers)

    async def dispatch(self, operation_id: str, request: web.Request) -> web.StreamResponse:
        handler = self._handlers.get(operation_id)
        if handler is None:
            logfire.warn("Unknown operation ID {operation_id}", operation_id=operation_id)
            return unknown_operation_response(operation_id)
        return await handler(request)
